"""
Violation Router
Dispatches a classified violation to the violations queue or the event bus
"""

from enum import Enum

from loguru import logger
from prometheus_client import Counter

from shared.collaborators.base import EventBus, MessageQueue
from shared.schemas.violation import Classification, ViolationEvent

DEFAULT_EVENT_SOURCE = 'custom.imageProcessing'
DEFAULT_DETAIL_TYPE = 'Image Processed'


class Route(str, Enum):
    QUEUED = 'queued'  # In jurisdiction: violations queue
    FORWARDED = 'forwarded'  # Out of jurisdiction: event bus


class ViolationRouter:
    """
    Routes each violation to exactly one destination

    In-jurisdiction violations go to the FIFO violations queue under a single
    message group with a content-derived dedup id; everything else is
    published to the event bus. Dispatch failures propagate to the caller.
    """

    metrics_routed = Counter(
        'ticketing_detector_routed_total',
        'Violations dispatched by the router',
        ['route']
    )

    def __init__(
        self,
        violations_queue: MessageQueue,
        event_bus: EventBus,
        message_group_id: str = 'ticketing',
        event_source: str = DEFAULT_EVENT_SOURCE,
        detail_type: str = DEFAULT_DETAIL_TYPE,
    ):
        self.violations_queue = violations_queue
        self.event_bus = event_bus
        self.message_group_id = message_group_id
        self.event_source = event_source
        self.detail_type = detail_type

    def dispatch(self, classification: Classification, event: ViolationEvent) -> Route:
        """
        Send the event to its destination

        Args:
            classification: Jurisdiction classification for the image
            event: Violation event built from the classification and metadata

        Returns:
            The route taken

        Raises:
            CollaboratorError: If the queue or bus rejects the message
        """
        if classification.is_in_jurisdiction:
            message_id = self.violations_queue.send(
                event.model_dump_json(),
                group_id=self.message_group_id,
                dedup_id=event.dedup_id(),
            )
            route = Route.QUEUED
            logger.success(
                f"🚓 Queued violation {event.violation_type} for plate {event.plate} "
                f"(image: {event.image_key}, message: {message_id})"
            )
        else:
            self.event_bus.publish(self.event_source, self.detail_type, event.model_dump())
            route = Route.FORWARDED
            logger.info(
                f"🌐 Forwarded out-of-jurisdiction image {event.image_key} to the event bus"
            )

        self.metrics_routed.labels(route=route.value).inc()
        return route
