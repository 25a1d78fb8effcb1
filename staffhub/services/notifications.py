from datetime import datetime
from typing import Optional

from staffhub.models.enums import NotificationType


class NotificationSink:
    """Writes in-app notifications. Delivery is somebody else's job."""

    def __init__(self, db):
        self.collection = db.notifications

    async def create(
        self,
        recipient: str,
        type: NotificationType,
        title: str,
        message: str,
        related_entity: Optional[dict] = None,
        action_url: Optional[str] = None,
    ) -> str:
        notification = {
            "recipient": str(recipient),
            "type": NotificationType(type).value,
            "title": title,
            "message": message,
            "related_entity": related_entity or {},
            "action_url": action_url,
            "is_read": False,
            "created_at": datetime.utcnow(),
        }
        result = await self.collection.insert_one(notification)
        return str(result.inserted_id)
