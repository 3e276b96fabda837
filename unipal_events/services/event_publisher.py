"""
Event Publisher Service for the UniPal Events Service.
Publishes lifecycle changes to Redis channels for other services to consume.
"""

import json
import logging
from typing import Any, Dict, Optional
from redis.asyncio import Redis

from ..schemas.event import EventRecord

logger = logging.getLogger(__name__)


class EventPublisher:
    """
    Publishes event lifecycle messages to Redis channels.
    Publishing is best effort: failures are logged and never propagate.
    """

    def __init__(self, redis_client: Optional[Redis]):
        self.redis = redis_client
        self.channel_prefix = "unipal:events"

    @staticmethod
    def _event_data(event: EventRecord) -> Dict[str, Any]:
        return {
            "id": event.id,
            "name": event.name,
            "date": event.date.isoformat() if event.date else None,
            "school": event.school,
            "department": event.department,
            "category": event.category.value,
            "status": event.status.value,
            "approval_status": event.approval_status.value,
            "attendee_count": len(event.attendees),
            "attendance_count": len(event.attendance),
        }

    async def _publish(self, suffix: str, message: Dict[str, Any]) -> bool:
        if self.redis is None:
            logger.debug(f"Redis not configured, skipping {message['type']}")
            return False
        try:
            channel = f"{self.channel_prefix}:{suffix}"
            await self.redis.publish(channel, json.dumps(message, default=str))
            logger.info(f"Published {message['type']} for event {message['event_id']}")
            return True
        except Exception as e:
            logger.error(f"Failed to publish {message['type']}: {e}")
            return False

    async def publish_event_created(self, event: EventRecord) -> bool:
        return await self._publish("created", {
            "type": "EventCreated",
            "event_id": event.id,
            "event_data": self._event_data(event),
        })

    async def publish_event_updated(self, event: EventRecord) -> bool:
        return await self._publish("updated", {
            "type": "EventUpdated",
            "event_id": event.id,
            "event_data": self._event_data(event),
        })

    async def publish_approval_decided(self, event: EventRecord) -> bool:
        return await self._publish("approval", {
            "type": "EventApprovalDecided",
            "event_id": event.id,
            "approval_status": event.approval_status.value,
            "approved_by": event.approved_by,
            "event_data": self._event_data(event),
        })

    async def publish_event_finalized(self, event: EventRecord) -> bool:
        """
        Publish event finalisation together with its report summary.

        Args:
            event: Finalised event record
        """
        report = event.report.model_dump(mode="json") if event.report else None
        return await self._publish("finalized", {
            "type": "EventFinalized",
            "event_id": event.id,
            "report": report,
            "event_data": self._event_data(event),
        })

    async def publish_event_deleted(self, event_id: int) -> bool:
        return await self._publish("deleted", {
            "type": "EventDeleted",
            "event_id": event_id,
        })
