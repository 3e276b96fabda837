"""
SMTP delivery used by the email workers.
"""

import asyncio
import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Any, Dict, Optional

from ..core.config import config

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending email notifications over SMTP."""

    def __init__(self, email_config: Optional[Dict[str, Any]] = None):
        self.config = email_config

    def _load_config(self):
        """Load SMTP settings on first use."""
        if self.config is None:
            self.config = asyncio.run(config.get_email_config())

    def _get_smtp_connection(self) -> smtplib.SMTP:
        if self.config["smtp_use_tls"]:
            server = smtplib.SMTP(self.config["smtp_host"], self.config["smtp_port"])
            server.starttls()
        else:
            server = smtplib.SMTP_SSL(self.config["smtp_host"], self.config["smtp_port"])

        if self.config["smtp_username"] and self.config["smtp_password"]:
            server.login(self.config["smtp_username"], self.config["smtp_password"])

        return server

    def send_email(
        self,
        to_email: str,
        subject: str,
        text_content: str,
        html_content: Optional[str] = None
    ) -> bool:
        """
        Send an email.

        Args:
            to_email: Recipient email address
            subject: Email subject
            text_content: Plain text body
            html_content: Optional HTML alternative

        Returns:
            True if email sent successfully, False otherwise
        """
        try:
            self._load_config()

            msg = MIMEMultipart("alternative")
            msg["From"] = f"{self.config['from_name']} <{self.config['from_email']}>"
            msg["To"] = to_email
            msg["Subject"] = subject

            msg.attach(MIMEText(text_content, "plain"))
            if html_content:
                msg.attach(MIMEText(html_content, "html"))

            with self._get_smtp_connection() as server:
                server.send_message(msg)

            logger.info(f"Email sent successfully to {to_email}")
            return True

        except Exception as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            return False


email_service = EmailService()
