#!/usr/bin/env python3
"""
Ticket Notifier Service
Consumes enriched violations, computes the fine and publishes the owner notice
"""

import sys
from typing import Optional

from loguru import logger
from prometheus_client import Counter, start_http_server
from pydantic import ValidationError

from services.notifier.fines import FineSchedule
from services.notifier.notice import REFERENCE_TIME_ZONE, format_notice
from shared.collaborators.base import DeadLetterSink, MessageQueue, NotificationChannel, QueueMessage
from shared.config import TicketingConfig, load_config
from shared.errors import UnknownViolationTypeError
from shared.queue_worker import QueueWorker
from shared.schemas.violation import DeadLetterErrorType, EnrichedViolation, ProcessingOutcome
from shared.utils.dedup_window import DedupWindow
from shared.utils.log_setup import configure_logging


class TicketNotifierService(QueueWorker):
    """
    Notification stage

    For each enriched violation:
      - known violation type: publish the notice, then delete the message
      - unknown violation type: UNKNOWN_VIOLATION_TYPE, dead-lettered and
        deleted; no notice is sent with a blank amount
      - publish failure: message left for redelivery

    Notices already published within the duplicate window are not sent again;
    the redelivered message is just deleted.
    """

    stage = 'notifier'

    metrics_fines_issued = Counter(
        'ticketing_fines_issued_total',
        'Notices published, by violation type',
        ['violation_type']
    )

    def __init__(
        self,
        source_queue: MessageQueue,
        channel: NotificationChannel,
        fine_schedule: Optional[FineSchedule] = None,
        dead_letter_sink: Optional[DeadLetterSink] = None,
        time_zone: str = REFERENCE_TIME_ZONE,
        duplicate_window: Optional[DedupWindow] = None,
        wait_time_seconds: float = 20,
        max_receive_count: int = 5,
    ):
        super().__init__(
            source_queue,
            dead_letter_sink=dead_letter_sink,
            wait_time_seconds=wait_time_seconds,
            max_receive_count=max_receive_count,
        )
        self.channel = channel
        self.fine_schedule = fine_schedule or FineSchedule()
        self.time_zone = time_zone
        self.duplicate_window = duplicate_window

    def process_message(self, message: QueueMessage) -> ProcessingOutcome:
        try:
            violation = EnrichedViolation.model_validate_json(message.body)
        except ValidationError as e:
            logger.error(f"Failed to decode enriched violation {message.message_id}: {e}")
            self.dead_letter(message, DeadLetterErrorType.MALFORMED_MESSAGE, str(e))
            return ProcessingOutcome.MALFORMED

        dedup_id = violation.dedup_id()
        if self.duplicate_window is not None and self.duplicate_window.seen_recently(dedup_id):
            logger.info(f"🔁 Notice for {violation.plate} already sent, dropping redelivered message")
            self.acknowledge(message)
            return ProcessingOutcome.DUPLICATE

        try:
            amount = self.fine_schedule.amount_for(violation.violation_type)
        except UnknownViolationTypeError as e:
            logger.warning(f"No fine for {violation.violation_type} (plate {violation.plate})")
            self.dead_letter(message, DeadLetterErrorType.UNKNOWN_VIOLATION_TYPE, str(e))
            return ProcessingOutcome.UNKNOWN_VIOLATION_TYPE

        notice = format_notice(violation, amount, self.time_zone)
        self.channel.publish(notice)
        if self.duplicate_window is not None:
            self.duplicate_window.mark(dedup_id)
        self.acknowledge(message)

        self.metrics_fines_issued.labels(violation_type=violation.violation_type).inc()
        logger.success(
            f"📧 Ticket sent to {violation.owner.name} for {violation.plate}: "
            f"{violation.violation_type} ${amount}"
        )
        return ProcessingOutcome.PUBLISHED


def build_notifier(config: TicketingConfig) -> TicketNotifierService:
    from shared.factory import build_dead_letter_sink, build_notification_channel, build_queue

    settings = config.notifier
    window = None
    if settings.duplicate_window_seconds > 0:
        window = DedupWindow(window_seconds=settings.duplicate_window_seconds)

    return TicketNotifierService(
        source_queue=build_queue(config.queues.enriched_url, config),
        channel=build_notification_channel(config),
        fine_schedule=FineSchedule(settings.fines),
        dead_letter_sink=build_dead_letter_sink(config),
        time_zone=settings.time_zone,
        duplicate_window=window,
        wait_time_seconds=config.queues.wait_time_seconds,
        max_receive_count=config.queues.max_receive_count,
    )


def main():
    """Main entry point"""
    config = load_config()
    configure_logging(config.log_level, stage='notifier')

    logger.info("=" * 70)
    logger.info("Ticket Notifier")
    logger.info("=" * 70)
    logger.info(f"Enriched Queue: {config.queues.enriched_url}")
    logger.info(f"Channel: {config.notifier.backend} {config.notifier.topic_arn}")
    logger.info(f"Fines: {config.notifier.fines}")
    logger.info(f"Time Zone: {config.notifier.time_zone}")
    logger.info("=" * 70)

    if config.metrics_port:
        start_http_server(config.metrics_port)
        logger.success(f"✅ Prometheus metrics server started at http://localhost:{config.metrics_port}/metrics")

    try:
        notifier = build_notifier(config)
        notifier.install_signal_handlers()
        notifier.run()
    except Exception as e:
        logger.error(f"Notifier failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
