"""
Kafka Event Bus
Publishes out-of-jurisdiction violation events to a Kafka topic
"""

import json
from typing import Any, Dict, Optional

from kafka import KafkaProducer
from kafka.errors import KafkaError
from loguru import logger

from shared.collaborators.base import EventBus
from shared.errors import CollaboratorError


class KafkaEventBus(EventBus):
    """
    Event bus backed by a Kafka topic named after the bus

    Each record value is {"source", "detail-type", "detail"}; the image key is
    used as the partition key.
    """

    def __init__(
        self,
        bus_name: str,
        bootstrap_servers: str = "localhost:9092",
        client_id: str = "ticketing-detector",
        acks: str = "all",  # 'all', '0', '1'
        retries: int = 3,
        send_timeout: float = 10.0,
        producer: Optional[KafkaProducer] = None,
    ):
        """
        Initialize Kafka event bus

        Args:
            bus_name: Topic that carries the bus events
            bootstrap_servers: Kafka broker addresses (comma-separated)
            client_id: Client identifier for Kafka
            acks: Acknowledgment level ('all' for strongest guarantee)
            retries: Number of producer retries on failure
            send_timeout: Seconds to block waiting for the broker ack
            producer: Pre-built producer (for testing)
        """
        self.topic = bus_name
        self.bootstrap_servers = bootstrap_servers
        self.send_timeout = send_timeout

        if producer is not None:
            self.producer = producer
            return

        try:
            self.producer = KafkaProducer(
                bootstrap_servers=bootstrap_servers.split(','),
                client_id=client_id,
                value_serializer=lambda v: json.dumps(v).encode('utf-8'),
                acks=acks,
                retries=retries,
            )
            logger.success(f"✅ Connected to Kafka: {bootstrap_servers}")
        except KafkaError as e:
            raise CollaboratorError('kafka', f"Cannot connect to {bootstrap_servers}: {e}", e) from e

    def publish(self, source: str, detail_type: str, detail: Dict[str, Any]):
        key = detail.get('image_key')
        key_bytes = key.encode('utf-8') if key else None

        try:
            future = self.producer.send(
                topic=self.topic,
                value={'source': source, 'detail-type': detail_type, 'detail': detail},
                key=key_bytes,
            )
            # Block until the broker acknowledges so failures reach the caller
            record_metadata = future.get(timeout=self.send_timeout)
        except KafkaError as e:
            raise CollaboratorError('kafka', f"Publish to {self.topic} failed: {e}", e) from e

        logger.debug(
            f"📤 Published to Kafka: topic={record_metadata.topic}, "
            f"partition={record_metadata.partition}, offset={record_metadata.offset}"
        )

    def close(self):
        """Flush and close the producer"""
        self.producer.flush()
        self.producer.close()
        logger.info("Kafka producer closed")
