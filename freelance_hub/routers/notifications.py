from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from freelance_hub.db.firebase_ops import get_firestore_ops_instance
from freelance_hub.db.repositories import NotificationStore
from freelance_hub.models.schemas import Notification, Principal
from freelance_hub.routers.auth import get_current_principal

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=List[Notification])
async def list_notifications(caller: Principal = Depends(get_current_principal)):
    return NotificationStore(get_firestore_ops_instance()).list_for_user(caller.id)


@router.put("/{notification_id}/read", response_model=Notification)
async def mark_notification_read(notification_id: UUID, caller: Principal = Depends(get_current_principal)):
    return NotificationStore(get_firestore_ops_instance()).mark_read(caller.id, notification_id)
