"""
Core dependencies for route protection and capability checking
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.config.permissions_config import Capability
from app.core import access_policy
from app.core.access_policy import Actor
from app.core.exceptions import AccessDenied
from app.database.supabase_client import get_supabase
from app.modules.auth.service import AuthService
from supabase import Client
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


def _get_request_cache(request: Request) -> Dict[str, Any]:
    """Return request-scoped cache for access data (user profile)."""
    if not hasattr(request.state, "access_cache"):
        request.state.access_cache = {}
    return request.state.access_cache


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    token = credentials.credentials
    user_data = auth_service.get_current_user(token)
    return user_data


def get_user_profile(user_id: str, supabase: Client, cache: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
    """
    Return the users row (role, is_active, name), or None when the user has no row.
    Uses request-scoped cache when provided. A store failure raises 503: without the
    row neither the role nor the active flag can be trusted.
    """
    if cache is not None and "profile" in cache:
        return cache["profile"]
    try:
        result = supabase.table("users")\
            .select("id, email, name, role, is_active")\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        profile = result.data[0] if result.data else None
        if cache is not None:
            cache["profile"] = profile
        return profile
    except Exception as e:
        logger.error(f"Error getting user profile for {user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="User profile unavailable"
        )


def resolve_role(user_data: dict, profile: Optional[Dict[str, Any]]) -> Optional[str]:
    """Role claim: the users row wins, app_metadata.role is the fallback. None means no capabilities."""
    if profile and profile.get("role"):
        return profile["role"]
    app_metadata = user_data.get("app_metadata") or {}
    return app_metadata.get("role")


def get_current_actor(
    request: Request,
    user_data: dict = Depends(get_current_user_id),
    supabase: Client = Depends(get_supabase)
) -> Actor:
    """Authenticated user with its role claim. Deactivated accounts are rejected."""
    cache = _get_request_cache(request)
    profile = get_user_profile(user_data["id"], supabase, cache)
    if profile is not None and profile.get("is_active") is False:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or inactive user"
        )
    return Actor(
        id=user_data["id"],
        role=resolve_role(user_data, profile),
        email=user_data.get("email") or (profile or {}).get("email"),
        name=(profile or {}).get("name") or (user_data.get("user_metadata") or {}).get("full_name"),
    )


def require_capability(required_capability: Capability):
    """Factory function to create capability check dependency"""
    def check_capability(actor: Actor = Depends(get_current_actor)) -> Actor:
        """Dependency to check if the actor's role grants the required capability"""
        if not access_policy.check(actor.role, required_capability):
            logger.info(f"Denied {required_capability.value} to user {actor.id} (role={actor.role})")
            raise AccessDenied(
                f"Insufficient permissions. Required: {required_capability.value}",
                role=actor.role,
                capability=required_capability.value,
            )
        return actor
    return check_capability
