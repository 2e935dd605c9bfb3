"""
Generic webhook subscriber for custom integrations (SMS gateways, case systems).
Sends HTTP POST/PUT requests with configurable headers.
"""

from typing import Dict

import requests
from loguru import logger

from shared.schemas.violation import NotificationMessage
from .base import BaseSubscriber


class WebhookSubscriber(BaseSubscriber):
    """Deliver notices to a webhook."""

    name = 'webhook'

    def __init__(self, config: Dict, session: requests.Session = None):
        """
        Initialize webhook subscriber.

        Required config:
            - url: Webhook URL
        Optional config:
            - method: HTTP method (POST or PUT, default: POST)
            - headers: Dict of HTTP headers
            - timeout: Request timeout in seconds (default: 10)
        """
        super().__init__(config)
        self.url = config.get('url')
        self.method = config.get('method', 'POST').upper()
        self.headers = dict(config.get('headers') or {})
        self.timeout = config.get('timeout', 10)
        self.session = session or requests.Session()

        # Ensure Content-Type is set
        if 'Content-Type' not in self.headers:
            self.headers['Content-Type'] = 'application/json'

    def send(self, message: NotificationMessage) -> bool:
        """
        Send webhook notification.

        Returns:
            True if webhook called successfully, False otherwise
        """
        if not self.validate_config():
            logger.error("Webhook subscriber config invalid, skipping")
            return False

        payload = {
            'recipient': message.recipient_contact,
            'subject': message.subject,
            'body': message.body,
        }

        try:
            response = self.session.request(
                self.method,
                self.url,
                json=payload,
                headers=self.headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Failed to send webhook notification: {e}")
            return False

        if 200 <= response.status_code < 300:
            logger.info(f"Webhook notification sent successfully to {self.url}")
            return True

        logger.error(f"Webhook returned error: {response.status_code} - {response.text}")
        return False

    def validate_config(self) -> bool:
        """Validate webhook configuration."""
        if not self.enabled:
            return False

        if not self.url:
            logger.error("Webhook subscriber missing url")
            return False

        if not self.url.startswith(('http://', 'https://')):
            logger.error("Webhook URL must start with http:// or https://")
            return False

        if self.method not in ['POST', 'PUT']:
            logger.error(f"Unsupported HTTP method: {self.method} (use POST or PUT)")
            return False

        return True
