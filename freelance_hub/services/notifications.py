import logging
from typing import Optional
from uuid import UUID

from freelance_hub.core.errors import StorageError
from freelance_hub.db.repositories import NotificationStore
from freelance_hub.models.schemas import Notification, NotificationType

logger = logging.getLogger(__name__)


class Notifier:
    """Persists in-app notifications; delivery is best effort."""

    def __init__(self, store: NotificationStore):
        self.store = store

    def notify(self, user_id: UUID, type: NotificationType, message: str, project_id: Optional[UUID] = None) -> Optional[Notification]:
        notification = Notification(user_id=user_id, type=type, message=message, project_id=project_id)
        try:
            return self.store.add(notification)
        except StorageError as e:
            # The project change is already committed at this point
            logger.warning("Dropped %s notification for user %s: %s", type.value, user_id, e.detail)
            return None
