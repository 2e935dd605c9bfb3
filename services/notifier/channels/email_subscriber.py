"""
Email subscriber using SMTP.
Supports Gmail, Office365, and other SMTP servers with TLS.
"""

import smtplib
from email.mime.text import MIMEText
from typing import Dict, List

from loguru import logger

from shared.schemas.violation import NotificationMessage
from .base import BaseSubscriber


class EmailSubscriber(BaseSubscriber):
    """Send ticket notices via SMTP."""

    name = 'email'

    def __init__(self, config: Dict):
        """
        Initialize email subscriber.

        Required config:
            - smtp_host: SMTP server hostname
            - smtp_port: SMTP server port
            - username: SMTP username
            - password: SMTP password
            - from_address: Sender email address
        Optional config:
            - use_tls: Use STARTTLS (default: True), otherwise implicit SSL
            - recipients: Fixed recipient list; when empty the owner's
              contact address is used
        """
        super().__init__(config)
        self.smtp_host = config.get('smtp_host')
        self.smtp_port = config.get('smtp_port', 587)
        self.use_tls = config.get('use_tls', True)
        self.username = config.get('username')
        self.password = config.get('password')
        self.from_address = config.get('from_address')
        self.recipients = list(config.get('recipients') or [])

    def send(self, message: NotificationMessage) -> bool:
        """
        Send the notice as a plain-text email.

        Returns:
            True if email sent successfully, False otherwise
        """
        if not self.validate_config():
            logger.error("Email subscriber config invalid, skipping")
            return False

        recipients = self._recipients_for(message)
        if not recipients:
            logger.error(f"No email recipient for contact {message.recipient_contact!r}")
            return False

        msg = MIMEText(message.body, 'plain')
        msg['From'] = self.from_address
        msg['To'] = ', '.join(recipients)
        msg['Subject'] = message.subject or 'Traffic violation notice'

        try:
            if self.use_tls:
                with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
                    server.starttls()
                    server.login(self.username, self.password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=10) as server:
                    server.login(self.username, self.password)
                    server.send_message(msg)

            logger.info(f"Email sent successfully to {len(recipients)} recipients")
            return True

        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed: {e}")
            return False
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP error sending email: {e}")
            return False

    def _recipients_for(self, message: NotificationMessage) -> List[str]:
        if self.recipients:
            return self.recipients
        if '@' in message.recipient_contact:
            return [message.recipient_contact]
        return []

    def validate_config(self) -> bool:
        """Validate email configuration."""
        if not self.enabled:
            return False

        required = ['smtp_host', 'smtp_port', 'username', 'password', 'from_address']
        for field in required:
            if not getattr(self, field, None):
                logger.error(f"Email subscriber missing required config: {field}")
                return False

        return True
