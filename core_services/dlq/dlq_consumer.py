#!/usr/bin/env python3
"""
Dead Letter Queue Consumer
Monitors the dead-letter queue, logs failed messages and exposes metrics
"""

import sys

from loguru import logger
from prometheus_client import Counter, start_http_server
from pydantic import ValidationError

from shared.collaborators.base import MessageQueue, QueueMessage
from shared.config import TicketingConfig, load_config
from shared.queue_worker import QueueWorker
from shared.schemas.violation import DeadLetterErrorType, DeadLetterRecord, ProcessingOutcome
from shared.utils.log_setup import configure_logging

# Error types that point at a broken producer or a stuck message rather than bad data
CRITICAL_ERROR_TYPES = (
    DeadLetterErrorType.MALFORMED_MESSAGE,
    DeadLetterErrorType.MAX_RECEIVES_EXCEEDED,
)


class DLQConsumer(QueueWorker):
    """
    Consumer for dead letter queue monitoring and alerting

    Every record is logged and counted, then deleted. An undecodable record
    is logged raw and deleted too: the monitor never dead-letters its own
    input.
    """

    stage = 'dlq-monitor'

    # Prometheus metrics
    metrics_dlq_messages = Counter(
        'ticketing_dlq_messages_total',
        'Total DLQ messages processed',
        ['error_type', 'stage']
    )

    def __init__(self, dlq_queue: MessageQueue, wait_time_seconds: float = 20):
        super().__init__(
            dlq_queue,
            wait_time_seconds=wait_time_seconds,
            max_receive_count=sys.maxsize,
        )
        self.error_counts = {error_type.value: 0 for error_type in DeadLetterErrorType}
        self.error_counts['unknown'] = 0

    def process_message(self, message: QueueMessage) -> ProcessingOutcome:
        try:
            record = DeadLetterRecord.model_validate_json(message.body)
        except ValidationError as e:
            self.error_counts['unknown'] += 1
            logger.error(f"Undecodable DLQ entry {message.message_id}: {e}\n   Raw: {message.body[:200]}")
            self.acknowledge(message)
            return ProcessingOutcome.MALFORMED

        self._process_dlq_record(record)
        self.acknowledge(message)

        # Log stats every 100 messages
        if self.stats[ProcessingOutcome.PUBLISHED.value] % 100 == 99:
            self._log_error_counts()
        return ProcessingOutcome.PUBLISHED

    def _process_dlq_record(self, record: DeadLetterRecord):
        """Process and log DLQ record"""
        self.error_counts[record.error_type.value] += 1

        logger.error(
            f"💀 DLQ Message Received\n"
            f"   ID: {record.dlq_id}\n"
            f"   Error Type: {record.error_type.value}\n"
            f"   Stage: {record.stage}\n"
            f"   Source Queue: {record.source_queue}\n"
            f"   Timestamp: {record.timestamp}\n"
            f"   Receives: {record.receive_count}\n"
            f"   Error: {record.error_message}\n"
            f"   Original Message Preview: {record.original_message[:200]}"
        )

        self.metrics_dlq_messages.labels(
            error_type=record.error_type.value,
            stage=record.stage,
        ).inc()

        if record.error_type in CRITICAL_ERROR_TYPES:
            self._trigger_dlq_alert(record)

    def _trigger_dlq_alert(self, record: DeadLetterRecord):
        """Raise a critical log line for records that need an operator"""
        logger.critical(
            f"🚨 CRITICAL DLQ ALERT\n"
            f"   Error Type: {record.error_type.value}\n"
            f"   Stage: {record.stage}\n"
            f"   Source Queue: {record.source_queue}\n"
            f"   Message: {record.error_message}\n"
            f"   Action Required: Investigate and resolve immediately"
        )

    def _log_error_counts(self):
        counts = '\n'.join(f"   {name}: {count}" for name, count in self.error_counts.items())
        logger.info(f"📊 DLQ Consumer Stats:\n{counts}")

    def _log_stats(self):
        super()._log_stats()
        self._log_error_counts()


def build_dlq_consumer(config: TicketingConfig) -> DLQConsumer:
    from shared.factory import build_queue

    if not config.queues.dead_letter_url:
        raise ValueError("queues.dead_letter_url (DEAD_LETTER_QUEUE_URL) is not configured")
    return DLQConsumer(
        build_queue(config.queues.dead_letter_url, config),
        wait_time_seconds=config.queues.wait_time_seconds,
    )


def main():
    """Main entry point"""
    config = load_config()
    configure_logging(config.log_level, stage='dlq-monitor')

    logger.info("=" * 70)
    logger.info("Ticketing Dead Letter Queue Consumer")
    logger.info("=" * 70)
    logger.info(f"Queue: {config.queues.dead_letter_url}")
    logger.info(f"Metrics Port: {config.metrics_port}")
    logger.info("=" * 70)

    if config.metrics_port:
        start_http_server(config.metrics_port)
        logger.success(f"✅ Prometheus metrics server started at http://localhost:{config.metrics_port}/metrics")

    try:
        consumer = build_dlq_consumer(config)
        consumer.install_signal_handlers()
        consumer.run()
    except Exception as e:
        logger.error(f"DLQ consumer failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
