from supabase import Client
from app.config.permissions_config import Role
from app.core.access_policy import normalize_email
from app.core.exceptions import AppError, NotFound
from app.modules.users.schemas import UserResponse
from typing import List, Optional, Sequence
from fastapi import HTTPException
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_user_by_id(self, user_id: str) -> UserResponse:
        """Get user by ID"""
        try:
            result = self.supabase.table("users")\
                .select("*")\
                .eq("id", user_id)\
                .maybe_single()\
                .execute()

            if not result or not result.data:
                raise NotFound("User", user_id)

            return UserResponse(**result.data)
        except AppError:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_users(
        self,
        role: Optional[Role] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[UserResponse]:
        """List users, optionally filtered by role"""
        try:
            query = self.supabase.table("users").select("*")
            if role:
                query = query.eq("role", role.value)
            result = query.order("created_at", desc=True)\
                .limit(limit)\
                .offset(offset)\
                .execute()
            return [UserResponse(**user) for user in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_active_staff_ids(self, roles: Sequence[str]) -> List[str]:
        """IDs of active users holding one of the given roles (notification audience)"""
        try:
            result = self.supabase.table("users")\
                .select("id")\
                .in_("role", list(roles))\
                .eq("is_active", True)\
                .execute()
            return list(dict.fromkeys(row["id"] for row in (result.data or [])))
        except Exception as e:
            logger.error(f"Error listing staff recipients: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

    def find_client_user_id(self, client_email: Optional[str]) -> Optional[str]:
        """User account of a client, matched by email. None when the client has no account."""
        email = normalize_email(client_email)
        if not email:
            return None
        try:
            result = self.supabase.table("users")\
                .select("id, email")\
                .eq("role", Role.CLIENT.value)\
                .eq("email", email)\
                .eq("is_active", True)\
                .limit(1)\
                .execute()
            return result.data[0]["id"] if result.data else None
        except Exception as e:
            logger.error(f"Error looking up client user for {client_email}: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

    def update_role(self, user_id: str, role: Role) -> UserResponse:
        """Change a user's role (admin action)"""
        return self._update(user_id, {"role": role.value})

    def set_active(self, user_id: str, is_active: bool) -> UserResponse:
        """Activate or deactivate a user"""
        return self._update(user_id, {"is_active": is_active})

    def _update(self, user_id: str, update_data: dict) -> UserResponse:
        try:
            update_data = {**update_data, "updated_at": datetime.now(timezone.utc).isoformat()}
            result = self.supabase.table("users")\
                .update(update_data)\
                .eq("id", user_id)\
                .execute()

            if not result.data:
                raise NotFound("User", user_id)

            return UserResponse(**result.data[0])
        except AppError:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
