"""
Base subscriber abstract class for local notification fan-out.
"""

from abc import ABC, abstractmethod
from typing import Dict

from shared.schemas.violation import NotificationMessage


class BaseSubscriber(ABC):
    """Abstract base class for notice delivery endpoints."""

    name = 'subscriber'

    def __init__(self, config: Dict):
        """
        Initialize subscriber with configuration.

        Args:
            config: Endpoint-specific configuration dict
        """
        self.config = config
        self.enabled = config.get('enabled', False)

    @abstractmethod
    def send(self, message: NotificationMessage) -> bool:
        """
        Deliver a notice.

        Args:
            message: Plain-text notice and the owner's contact

        Returns:
            True if delivered successfully, False otherwise
        """
        pass

    def is_enabled(self) -> bool:
        """Check if subscriber is enabled."""
        return self.enabled

    def validate_config(self) -> bool:
        """
        Validate subscriber configuration.

        Returns:
            True if config is valid, False otherwise
        """
        # Base validation - subclasses can override
        return self.enabled
