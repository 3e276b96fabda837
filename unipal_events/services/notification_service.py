"""
Notification Service for the UniPal Events Service.
Composes invitation and report emails and hands them to the Celery email workers.
"""

import ssl
import logging
from typing import Optional, Tuple

from celery import Celery

from ..core.config import config
from ..schemas.event import EventRecord, EventReport

logger = logging.getLogger(__name__)

SEND_EMAIL_TASK = "unipal_events.workers.tasks.send_email"
EMAIL_QUEUE = "email_notifications"


def _format_date(event: EventRecord) -> str:
    return event.date.strftime("%d %b %Y") if event.date else "TBA"


def compose_invitation_email(
    platform_name: str,
    event: EventRecord,
    invitee_name: Optional[str],
    inviter_name: Optional[str],
    role_at_event: str,
    message: Optional[str] = None
) -> Tuple[str, str]:
    """Subject and plain-text body for an invitation."""
    subject = f"[{platform_name}] Invitation: {event.name}"
    lines = [
        f"Hello {invitee_name or 'there'},",
        "",
        f"{inviter_name or 'A coordinator'} has invited you to join the event "
        f"\"{event.name}\" scheduled on {_format_date(event)}.",
        f"Role at event: {'Coordinator' if role_at_event == 'coordinator' else 'Attendee'}.",
    ]
    if message:
        lines.append(f"Message: {message}")
    lines += [
        "",
        f"Please log in to {platform_name} to accept or decline this invitation.",
        "",
        f"- {platform_name}",
    ]
    return subject, "\n".join(lines)


def compose_report_email(platform_name: str, event: EventRecord, report: EventReport) -> Tuple[str, str]:
    """Subject and plain-text body for the post-event report sent to deans."""
    subject = f"[{platform_name}] Event Report: {event.name}"
    lines = [f"Event: {event.name}", f"Date: {_format_date(event)}"]
    if event.location:
        lines.append(f"Location: {event.location}")
    if event.school:
        lines.append(f"School: {event.school}")
    if event.department:
        lines.append(f"Department: {event.department}")
    lines += [
        "",
        f"Total Coordinators: {len(event.coordinators)}",
        f"Total Invitees: {len(event.attendees)}",
        f"Attendance Marked: {report.attendee_count}",
        "",
        f"Feedback received: {report.feedback_count}",
        f"Average rating: {report.average_rating}",
    ]
    if report.notes:
        lines += ["", f"Notes from coordinator: {report.notes}"]
    lines += ["", f"Thank you for supporting {platform_name}."]
    return subject, "\n".join(lines)


class NotificationService:
    """
    Dispatches emails to the Celery email workers.
    Every method returns False on failure instead of raising, so a broken mail
    path never fails the workflow operation that triggered it.
    """

    def __init__(self):
        self.enabled = True
        self._celery_app = None
        self._initialized = False
        self.platform_name = "UniPal MIT"

    async def _initialize_celery(self):
        """Initialize Celery app for task dispatch."""
        try:
            if self._initialized:
                return

            self._celery_app = Celery("unipal_events")
            redis_url = await config.get_redis_url()
            self.platform_name = await config.get_platform_name()

            celery_conf = {
                "broker_url": redis_url,
                "result_backend": redis_url,
                "task_serializer": "json",
                "result_serializer": "json",
                "accept_content": ["json"],
                "task_routes": {"unipal_events.workers.tasks.*": {"queue": EMAIL_QUEUE}},
            }
            if redis_url.startswith("rediss://"):
                celery_conf["broker_use_ssl"] = {"ssl_cert_reqs": ssl.CERT_NONE}
                celery_conf["redis_backend_use_ssl"] = {"ssl_cert_reqs": ssl.CERT_NONE}
            self._celery_app.conf.update(**celery_conf)

            self._initialized = True
            logger.info("Celery app initialized for notification dispatch")

        except Exception as e:
            logger.error(f"Failed to initialize Celery app: {e}")
            self._celery_app = None
            self._initialized = False

    async def send_email(self, to_email: str, subject: str, body: str) -> bool:
        """
        Queue a plain-text email for delivery.

        Args:
            to_email: Recipient address
            subject: Email subject
            body: Plain-text body

        Returns:
            True if the task was queued, False otherwise
        """
        try:
            if not self.enabled:
                logger.info(f"Notification service disabled, skipping email to {to_email}")
                return True

            if not self._initialized:
                await self._initialize_celery()

            if not self._celery_app:
                logger.error("Celery app not initialized, cannot send email task")
                return False

            task = self._celery_app.send_task(
                SEND_EMAIL_TASK,
                args=[to_email, subject, body],
                queue=EMAIL_QUEUE
            )
            logger.info(f"Email task queued for {to_email} with ID: {task.id}")
            return True

        except Exception as e:
            logger.error(f"Failed to queue email to {to_email}: {e}")
            return False

    async def send_invitation(
        self,
        to_email: str,
        event: EventRecord,
        invitee_name: Optional[str],
        inviter_name: Optional[str],
        role_at_event: str,
        message: Optional[str] = None
    ) -> bool:
        if not self._initialized:
            await self._initialize_celery()
        subject, body = compose_invitation_email(
            self.platform_name, event, invitee_name, inviter_name, role_at_event, message
        )
        return await self.send_email(to_email, subject, body)

    async def send_event_report(self, to_email: str, event: EventRecord, report: EventReport) -> bool:
        if not self._initialized:
            await self._initialize_celery()
        subject, body = compose_report_email(self.platform_name, event, report)
        return await self.send_email(to_email, subject, body)

