#!/usr/bin/env python3
"""
Vehicle Enricher Service
Consumes violations from the violations queue, resolves each plate against
the vehicle registry and publishes enriched violations for the notifier
"""

import sys
from typing import Optional

from loguru import logger
from prometheus_client import start_http_server
from pydantic import ValidationError

from shared.collaborators.base import DeadLetterSink, MessageQueue, QueueMessage, VehicleRegistry
from shared.config import TicketingConfig, load_config
from shared.errors import LookupMiss
from shared.queue_worker import QueueWorker
from shared.schemas.violation import (
    DeadLetterErrorType,
    EnrichedViolation,
    ProcessingOutcome,
    VehicleRecord,
    ViolationEvent,
)
from shared.utils.log_setup import configure_logging


class VehicleEnricherService(QueueWorker):
    """
    Enrichment stage

    For each violation:
      - plate registered: publish EnrichedViolation (content-derived dedup id)
        to the enriched queue, then delete the source message
      - plate not registered: NOT_FOUND, dead-lettered and deleted
      - registry or queue failure: message left for redelivery

    A crash between publish and delete redelivers the source message and may
    emit a duplicate enriched violation; the enriched queue's dedup window and
    the notifier's duplicate window absorb it.
    """

    stage = 'enricher'

    def __init__(
        self,
        source_queue: MessageQueue,
        output_queue: MessageQueue,
        registry: VehicleRegistry,
        dead_letter_sink: Optional[DeadLetterSink] = None,
        message_group_id: str = 'ticketing',
        wait_time_seconds: float = 20,
        max_receive_count: int = 5,
    ):
        super().__init__(
            source_queue,
            dead_letter_sink=dead_letter_sink,
            wait_time_seconds=wait_time_seconds,
            max_receive_count=max_receive_count,
        )
        self.output_queue = output_queue
        self.registry = registry
        self.message_group_id = message_group_id

    def process_message(self, message: QueueMessage) -> ProcessingOutcome:
        try:
            event = ViolationEvent.model_validate_json(message.body)
        except ValidationError as e:
            logger.error(f"Failed to decode violation message {message.message_id}: {e}")
            self.dead_letter(message, DeadLetterErrorType.MALFORMED_MESSAGE, str(e))
            return ProcessingOutcome.MALFORMED

        logger.info(
            f"📥 Read violation for plate {event.plate}: {event.violation_type} "
            f"at {event.location} ({event.timestamp})"
        )

        try:
            record = self.lookup(event.plate)
        except LookupMiss as e:
            logger.warning(f"Vehicle details not found for license plate {event.plate}")
            self.dead_letter(message, DeadLetterErrorType.NOT_FOUND, str(e))
            return ProcessingOutcome.NOT_FOUND

        enriched = EnrichedViolation.from_parts(event, record)
        self.publish(enriched)
        self.acknowledge(message)

        logger.success(
            f"🚗 Enriched {enriched.plate}: {enriched.vehicle_description()}, "
            f"owner {enriched.owner.name}"
        )
        return ProcessingOutcome.PUBLISHED

    def lookup(self, plate: str) -> VehicleRecord:
        """
        Resolve a plate against the registry

        Raises:
            LookupMiss: If no vehicle is registered for the plate
            CollaboratorError: If the registry cannot be read
        """
        record = self.registry.lookup(plate)
        if record is None:
            raise LookupMiss(plate)
        return record

    def publish(self, enriched: EnrichedViolation) -> str:
        """Send an enriched violation to the notifier's queue"""
        return self.output_queue.send(
            enriched.model_dump_json(),
            group_id=self.message_group_id,
            dedup_id=enriched.dedup_id(),
        )


def build_enricher(config: TicketingConfig) -> VehicleEnricherService:
    from shared.factory import build_dead_letter_sink, build_queue, build_registry

    return VehicleEnricherService(
        source_queue=build_queue(config.queues.violations_url, config),
        output_queue=build_queue(config.queues.enriched_url, config),
        registry=build_registry(config),
        dead_letter_sink=build_dead_letter_sink(config),
        message_group_id=config.queues.message_group_id,
        wait_time_seconds=config.queues.wait_time_seconds,
        max_receive_count=config.queues.max_receive_count,
    )


def main():
    """Main entry point"""
    config = load_config()
    configure_logging(config.log_level, stage='enricher')

    logger.info("=" * 70)
    logger.info("Vehicle Enricher")
    logger.info("=" * 70)
    logger.info(f"Violations Queue: {config.queues.violations_url}")
    logger.info(f"Enriched Queue: {config.queues.enriched_url}")
    logger.info(f"Registry: {config.registry.path} (max staleness {config.registry.max_staleness_seconds}s)")
    logger.info(f"Max Receives: {config.queues.max_receive_count}")
    logger.info("=" * 70)

    if config.metrics_port:
        start_http_server(config.metrics_port)
        logger.success(f"✅ Prometheus metrics server started at http://localhost:{config.metrics_port}/metrics")

    try:
        enricher = build_enricher(config)
        enricher.install_signal_handlers()
        enricher.run()
    except Exception as e:
        logger.error(f"Enricher failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
