"""
Collaborator Interfaces
Abstract base classes for every external system the pipeline talks to.
Each stage receives its collaborators through its constructor.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from shared.errors import PayloadValidationError
from shared.schemas.violation import (
    CapturedImage,
    DeadLetterRecord,
    NotificationMessage,
    TextDetection,
    VehicleRecord,
    ViolationMetadata,
)


@dataclass(frozen=True)
class QueueMessage:
    """A received queue message awaiting acknowledgement"""
    body: str
    receipt_handle: str  # Required by delete(); changes on every receive
    message_id: str
    receive_count: int = 1


class ObjectStore(ABC):
    """Read side of the image store"""

    @abstractmethod
    def get_image(self, bucket: str, key: str) -> CapturedImage:
        """
        Fetch an image with its capture metadata.

        Raises:
            PayloadValidationError: If the violation metadata is missing
            CollaboratorError: If the store cannot be reached
        """


def metadata_from_user_fields(fields: Dict[str, str], key: str) -> ViolationMetadata:
    """
    Build violation metadata from user metadata written at capture time

    The capture helper writes 'violation', 'time' and 'location'.

    Raises:
        PayloadValidationError: If a field is missing or malformed
    """
    missing = [name for name in ('violation', 'time', 'location') if not fields.get(name)]
    if missing:
        raise PayloadValidationError(f"Image {key} is missing metadata: {', '.join(missing)}")
    try:
        return ViolationMetadata(
            violation_type=fields['violation'],
            timestamp=fields['time'],
            location=fields['location'],
        )
    except ValueError as e:
        raise PayloadValidationError(f"Image {key} has invalid metadata: {e}") from e


class TextDetector(ABC):
    """Text recognition over a stored image"""

    @abstractmethod
    def detect_text(self, image: CapturedImage) -> List[TextDetection]:
        """Return recognised tokens in detector order"""


class VehicleRegistry(ABC):
    """Lookup of registered vehicles by exact plate"""

    @abstractmethod
    def lookup(self, plate: str) -> Optional[VehicleRecord]:
        """Return the vehicle registered to the plate, or None"""


class MessageQueue(ABC):
    """
    FIFO queue with explicit acknowledgement.

    Messages are ordered within a message group, redelivered after a
    visibility timeout unless deleted, and duplicate sends with the same
    dedup id are suppressed within the queue's deduplication window.
    """

    name: str = 'queue'

    @abstractmethod
    def send(self, body: str, group_id: str, dedup_id: str) -> str:
        """Enqueue a message body and return the message id"""

    @abstractmethod
    def receive(self, wait_seconds: float) -> Optional[QueueMessage]:
        """Wait up to wait_seconds for at most one message"""

    @abstractmethod
    def delete(self, receipt_handle: str):
        """Acknowledge a received message"""


class EventBus(ABC):
    """Fire-and-forget event publication"""

    @abstractmethod
    def publish(self, source: str, detail_type: str, detail: Dict[str, Any]):
        """Publish one event"""

    def close(self):
        """Release client resources (no-op unless the backend buffers)"""


class NotificationChannel(ABC):
    """Topic-style channel fanning plain-text notices out to subscribers"""

    @abstractmethod
    def publish(self, message: NotificationMessage):
        """Publish one notice"""


class DeadLetterSink(ABC):
    """Destination for messages a stage cannot turn into output"""

    @abstractmethod
    def put(self, record: DeadLetterRecord):
        """Store one dead-letter record"""
