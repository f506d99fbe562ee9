from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.notifications.schemas import NotificationResponse, UnreadCountResponse
from app.modules.notifications.service import NotificationService
from app.core.access_policy import Actor
from app.core.dependencies import get_current_actor
from supabase import Client
from typing import List

router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_notification_service(supabase: Client = Depends(get_supabase)) -> NotificationService:
    return NotificationService(supabase)


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    limit: int = 50,
    actor: Actor = Depends(get_current_actor),
    service: NotificationService = Depends(get_notification_service)
):
    """Latest notifications of the current user"""
    return service.list_for_user(actor.id, limit=limit)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    actor: Actor = Depends(get_current_actor),
    service: NotificationService = Depends(get_notification_service)
):
    return UnreadCountResponse(count=service.unread_count(actor.id))


@router.patch("/read-all")
async def mark_all_read(
    actor: Actor = Depends(get_current_actor),
    service: NotificationService = Depends(get_notification_service)
):
    """Mark all notifications of the current user as read"""
    updated = service.mark_all_read(actor.id)
    return {"message": "All notifications marked as read", "updated": updated}


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    actor: Actor = Depends(get_current_actor),
    service: NotificationService = Depends(get_notification_service)
):
    return service.mark_read(notification_id, actor.id)
