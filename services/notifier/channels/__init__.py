"""Local notification channel: fan-out over email and webhook subscribers"""

from shared.config import NotifierSettings
from .base import BaseSubscriber
from .email_subscriber import EmailSubscriber
from .fanout import FanOutChannel
from .webhook_subscriber import WebhookSubscriber


def build_fanout_channel(settings: NotifierSettings) -> FanOutChannel:
    """Build the fan-out channel from the notifier settings"""
    return FanOutChannel([
        EmailSubscriber(settings.email.model_dump()),
        WebhookSubscriber(settings.webhook.model_dump()),
    ])


__all__ = ['BaseSubscriber', 'EmailSubscriber', 'FanOutChannel', 'WebhookSubscriber', 'build_fanout_channel']
