from supabase import Client
from app.core.exceptions import AppError, NotFound
from app.modules.notifications.schemas import NotificationIntent, NotificationResponse
from typing import List, Sequence
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

NOTIFICATION_LIST_LIMIT = 50


class NotificationService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def dispatch(self, intents: Sequence[NotificationIntent]) -> int:
        """Persist notification intents as rows in one bulk insert. Returns the number of rows written."""
        if not intents:
            return 0
        try:
            rows = [intent.to_row() for intent in intents]
            result = self.supabase.table("notifications").insert(rows).execute()
            written = len(result.data) if result.data else len(rows)
            logger.info(f"Dispatched {written} notification(s)")
            return written
        except Exception as e:
            logger.error(f"Error dispatching notifications: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

    def list_for_user(self, user_id: str, limit: int = NOTIFICATION_LIST_LIMIT) -> List[NotificationResponse]:
        """Latest notifications for a user, newest first"""
        try:
            result = self.supabase.table("notifications")\
                .select("*")\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .limit(min(limit, NOTIFICATION_LIST_LIMIT))\
                .execute()

            return [NotificationResponse(**row) for row in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def unread_count(self, user_id: str) -> int:
        try:
            result = self.supabase.table("notifications")\
                .select("id")\
                .eq("user_id", user_id)\
                .eq("is_read", False)\
                .execute()

            return len(result.data or [])
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def mark_read(self, notification_id: str, user_id: str) -> NotificationResponse:
        """Mark one of the user's notifications as read. Other users' rows are reported as missing."""
        try:
            result = self.supabase.table("notifications")\
                .update({"is_read": True})\
                .eq("id", notification_id)\
                .eq("user_id", user_id)\
                .execute()

            if not result.data:
                raise NotFound("Notification", notification_id)

            return NotificationResponse(**result.data[0])
        except AppError:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def mark_all_read(self, user_id: str) -> int:
        try:
            result = self.supabase.table("notifications")\
                .update({"is_read": True})\
                .eq("user_id", user_id)\
                .eq("is_read", False)\
                .execute()

            return len(result.data or [])
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
