"""
Email notification tasks executed by the Celery workers.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from .celery_app import create_celery_app
from .mailer import email_service

logger = logging.getLogger(__name__)

celery_app = create_celery_app()


def deliver_email(to_email: str, subject: str, body: str) -> Dict[str, Any]:
    """Send one email and describe the outcome."""
    if not to_email:
        logger.error("Email task received without a recipient")
        return {
            "success": False,
            "error": "Recipient missing",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    sent = email_service.send_email(to_email, subject, body)
    result = {
        "success": sent,
        "to": to_email,
        "subject": subject,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if not sent:
        result["error"] = "SMTP delivery failed"
    return result


@celery_app.task(bind=True, name="unipal_events.workers.tasks.send_email", max_retries=3)
def send_email(self, to_email: str, subject: str, body: str) -> Dict[str, Any]:
    """
    Deliver a plain-text email, retrying failed SMTP delivery.

    Args:
        to_email: Recipient address
        subject: Email subject
        body: Plain text body

    Returns:
        Task result dictionary
    """
    logger.info(f"Sending email '{subject}' to {to_email}")
    result = deliver_email(to_email, subject, body)
    if not result["success"] and to_email and self.request.retries < self.max_retries:
        raise self.retry(countdown=60)
    return result
