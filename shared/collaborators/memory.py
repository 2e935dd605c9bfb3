"""
In-Memory Collaborators
Deterministic stand-ins for the external systems, used by tests and local runs
"""

import threading
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from shared.collaborators.base import (
    EventBus,
    MessageQueue,
    NotificationChannel,
    ObjectStore,
    QueueMessage,
    TextDetector,
    metadata_from_user_fields,
)
from shared.errors import CollaboratorError
from shared.schemas.violation import (
    CapturedImage,
    NotificationMessage,
    TextDetection,
)


@dataclass
class _StoredMessage:
    message_id: str
    body: str
    group_id: str
    dedup_id: str
    receive_count: int = 0
    visible_at: float = 0.0
    receipt_handle: Optional[str] = None


class InMemoryFifoQueue(MessageQueue):
    """
    FIFO queue with message groups, visibility timeout and deduplication window

    Within a group only the oldest undeleted message is deliverable, and it
    blocks the rest of its group while it is in flight. Visibility and
    deduplication use the injected clock; blocking receives wait in real time.
    """

    def __init__(
        self,
        name: str = 'memory-queue',
        visibility_timeout: float = 30.0,
        dedup_window_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.visibility_timeout = visibility_timeout
        self.dedup_window_seconds = dedup_window_seconds
        self._clock = clock

        self._messages: List[_StoredMessage] = []
        self._dedup: Dict[str, Tuple[str, float]] = {}  # dedup_id -> (message_id, sent_at)
        self._cond = threading.Condition()

        # Stats
        self.sent_count = 0
        self.suppressed_count = 0
        self.deleted_count = 0

    def send(self, body: str, group_id: str, dedup_id: str) -> str:
        with self._cond:
            now = self._clock()
            self._dedup = {
                key: entry for key, entry in self._dedup.items()
                if now - entry[1] < self.dedup_window_seconds
            }

            if dedup_id in self._dedup:
                self.suppressed_count += 1
                message_id = self._dedup[dedup_id][0]
                logger.debug(f"[{self.name}] Duplicate send suppressed (dedup {dedup_id[:12]}...)")
                return message_id

            message_id = str(uuid.uuid4())
            self._messages.append(_StoredMessage(message_id, body, group_id, dedup_id))
            self._dedup[dedup_id] = (message_id, now)
            self.sent_count += 1
            self._cond.notify_all()
            return message_id

    def _next_deliverable(self, now: float) -> Optional[_StoredMessage]:
        seen_groups = set()
        for message in self._messages:
            if message.group_id in seen_groups:
                continue
            seen_groups.add(message.group_id)
            if message.visible_at <= now:
                return message
        return None

    def receive(self, wait_seconds: float) -> Optional[QueueMessage]:
        deadline = time.monotonic() + max(wait_seconds, 0.0)
        with self._cond:
            while True:
                now = self._clock()
                message = self._next_deliverable(now)
                if message is not None:
                    message.receive_count += 1
                    message.visible_at = now + self.visibility_timeout
                    message.receipt_handle = str(uuid.uuid4())
                    return QueueMessage(
                        body=message.body,
                        receipt_handle=message.receipt_handle,
                        message_id=message.message_id,
                        receive_count=message.receive_count,
                    )

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                # Wake periodically so visibility expiry is noticed
                self._cond.wait(timeout=min(remaining, 0.5))

    def delete(self, receipt_handle: str):
        with self._cond:
            for index, message in enumerate(self._messages):
                if message.receipt_handle == receipt_handle:
                    del self._messages[index]
                    self.deleted_count += 1
                    self._cond.notify_all()
                    return
        raise CollaboratorError(self.name, f"Receipt handle {receipt_handle} is not valid")

    def bodies(self) -> List[str]:
        """Bodies of all undeleted messages, oldest first"""
        with self._cond:
            return [m.body for m in self._messages]

    def __len__(self) -> int:
        with self._cond:
            return len(self._messages)


class InMemoryObjectStore(ObjectStore):
    """Dict-backed image store keyed by (bucket, key)"""

    def __init__(self):
        self._objects: Dict[Tuple[str, str], Tuple[bytes, Dict[str, str]]] = {}

    def put_image(self, bucket: str, key: str, data: bytes, metadata: Dict[str, str]):
        self._objects[(bucket, key)] = (data, dict(metadata))

    def get_image(self, bucket: str, key: str) -> CapturedImage:
        try:
            data, metadata = self._objects[(bucket, key)]
        except KeyError as e:
            raise CollaboratorError('object-store', f"No object {bucket}/{key}", e) from e
        return CapturedImage(
            bucket=bucket,
            key=key,
            metadata=metadata_from_user_fields(metadata, key),
            data=data,
        )


class StaticTextDetector(TextDetector):
    """Returns preconfigured tokens per image key"""

    def __init__(self, tokens_by_key: Optional[Dict[str, Sequence[Any]]] = None):
        self._tokens: Dict[str, List[TextDetection]] = {}
        for key, tokens in (tokens_by_key or {}).items():
            self.set_tokens(key, tokens)

    def set_tokens(self, key: str, tokens: Sequence[Any]):
        detections = []
        for token in tokens:
            if isinstance(token, TextDetection):
                detections.append(token)
            elif isinstance(token, tuple):
                detections.append(TextDetection(text=token[0], confidence=token[1]))
            else:
                detections.append(TextDetection(text=token))
        self._tokens[key] = detections

    def detect_text(self, image: CapturedImage) -> List[TextDetection]:
        return list(self._tokens.get(image.key, []))


class InMemoryEventBus(EventBus):
    """Records published events"""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []
        self.closed = False

    def publish(self, source: str, detail_type: str, detail: Dict[str, Any]):
        self.events.append({'source': source, 'detail_type': detail_type, 'detail': dict(detail)})

    def close(self):
        self.closed = True


class InMemoryChannel(NotificationChannel):
    """Records published notices; can be told to fail the next publishes"""

    def __init__(self):
        self.messages: List[NotificationMessage] = []
        self.fail_next = 0

    def publish(self, message: NotificationMessage):
        if self.fail_next > 0:
            self.fail_next -= 1
            raise CollaboratorError('notification-channel', 'Simulated publish failure')
        self.messages.append(message)
