from fastapi import APIRouter, Depends, HTTPException, status
from app.config.permissions_config import Capability, Role
from app.database.supabase_client import get_supabase
from app.modules.auth.service import AuthService
from app.modules.users.schemas import UserResponse, UserRoleUpdate, UserStatusUpdate
from app.modules.users.service import UserService
from app.core.access_policy import Actor
from app.core.dependencies import require_capability, get_auth_service
from supabase import Client
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(supabase: Client = Depends(get_supabase)) -> UserService:
    return UserService(supabase)


@router.get("", response_model=List[UserResponse])
async def list_users(
    role: Optional[Role] = None,
    limit: int = 50,
    offset: int = 0,
    actor: Actor = Depends(require_capability(Capability.MANAGE_USERS)),
    service: UserService = Depends(get_user_service)
):
    """List users, optionally filtered by role"""
    return service.list_users(role=role, limit=limit, offset=offset)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    actor: Actor = Depends(require_capability(Capability.MANAGE_USERS)),
    service: UserService = Depends(get_user_service)
):
    """Get user by ID"""
    return service.get_user_by_id(user_id)


@router.put("/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: str,
    body: UserRoleUpdate,
    actor: Actor = Depends(require_capability(Capability.MANAGE_USERS)),
    service: UserService = Depends(get_user_service),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Change a user's role and mirror it into the auth role claim"""
    if user_id == actor.id and body.role != Role.ADMIN:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Admins cannot demote themselves")
    user = service.update_role(user_id, body.role)
    auth_service.set_role_claim(user_id, body.role)
    logger.info(f"User {user_id} role set to {body.role.value} by {actor.id}")
    return user


@router.put("/{user_id}/active", response_model=UserResponse)
async def update_user_status(
    user_id: str,
    body: UserStatusUpdate,
    actor: Actor = Depends(require_capability(Capability.MANAGE_USERS)),
    service: UserService = Depends(get_user_service)
):
    """Activate or deactivate a user"""
    if user_id == actor.id and not body.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Admins cannot deactivate themselves")
    return service.set_active(user_id, body.is_active)
