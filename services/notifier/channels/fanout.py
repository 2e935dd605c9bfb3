"""
Local fan-out notification channel
"""

from typing import List

from loguru import logger

from shared.collaborators.base import NotificationChannel
from shared.errors import CollaboratorError
from shared.schemas.violation import NotificationMessage
from .base import BaseSubscriber


class FanOutChannel(NotificationChannel):
    """
    Publishes each notice to every enabled subscriber

    The publish succeeds when at least one subscriber accepts the notice.
    If none does, CollaboratorError is raised so the source message is
    redelivered.
    """

    def __init__(self, subscribers: List[BaseSubscriber]):
        self.subscribers = [s for s in subscribers if s.is_enabled()]
        if not self.subscribers:
            logger.warning("⚠️  No notification subscribers enabled!")

    def publish(self, message: NotificationMessage):
        delivered = [s.name for s in self.subscribers if s.send(message)]

        if not delivered:
            raise CollaboratorError(
                'fanout-channel',
                f"No subscriber accepted the notice ({len(self.subscribers)} enabled)",
            )
        logger.debug(f"Notice delivered via {', '.join(delivered)}")
