"""
Collaborator Factory
Builds the production adapters named by the configuration
"""

from shared.collaborators.base import (
    DeadLetterSink,
    EventBus,
    MessageQueue,
    NotificationChannel,
    TextDetector,
)
from shared.collaborators.dead_letter import LogDeadLetterSink, QueueDeadLetterSink
from shared.collaborators.minio_store import MinioObjectStore
from shared.collaborators.registry import XmlVehicleRegistry
from shared.config import TicketingConfig


def build_queue(queue_url: str, config: TicketingConfig) -> MessageQueue:
    from shared.collaborators.aws import SQSQueue
    return SQSQueue(queue_url, region=config.aws.region)


def build_dead_letter_sink(config: TicketingConfig) -> DeadLetterSink:
    if config.queues.dead_letter_url:
        return QueueDeadLetterSink(build_queue(config.queues.dead_letter_url, config))
    return LogDeadLetterSink()


def build_object_store(config: TicketingConfig) -> MinioObjectStore:
    settings = config.object_store
    return MinioObjectStore(
        endpoint=settings.endpoint,
        access_key=settings.access_key,
        secret_key=settings.secret_key,
        secure=settings.secure,
    )


def build_text_detector(config: TicketingConfig) -> TextDetector:
    from shared.collaborators.aws import RekognitionTextDetector
    return RekognitionTextDetector(region=config.aws.region)


def build_event_bus(config: TicketingConfig) -> EventBus:
    settings = config.event_bus
    if settings.backend == 'eventbridge':
        from shared.collaborators.aws import EventBridgeBus
        return EventBridgeBus(settings.name, region=config.aws.region)

    from shared.collaborators.kafka_bus import KafkaEventBus
    return KafkaEventBus(settings.name, bootstrap_servers=settings.kafka_bootstrap_servers)


def build_registry(config: TicketingConfig) -> XmlVehicleRegistry:
    return XmlVehicleRegistry(
        config.registry.path,
        max_staleness_seconds=config.registry.max_staleness_seconds,
    )


def build_notification_channel(config: TicketingConfig) -> NotificationChannel:
    settings = config.notifier
    if settings.backend == 'fanout':
        from services.notifier.channels import build_fanout_channel
        return build_fanout_channel(settings)

    from shared.collaborators.aws import SNSChannel
    return SNSChannel(settings.topic_arn, region=config.aws.region)
