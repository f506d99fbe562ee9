"""
Access policy: the single decision point for role -> capability checks.
Pure functions over the static table in app.config.permissions_config.
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional, Union

from app.config.permissions_config import Capability, Role, ROLE_CAPABILITIES


class JobScope(str, Enum):
    ALL = "all"
    ASSIGNED = "assigned"
    CLIENT = "client"
    NONE = "none"


@dataclass(frozen=True)
class Actor:
    """The authenticated user performing an operation."""
    id: str
    role: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.id


def _as_role(role: Union[Role, str, None]) -> Optional[Role]:
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except (ValueError, TypeError):
        return None


def _as_capability(capability: Union[Capability, str, None]) -> Optional[Capability]:
    if isinstance(capability, Capability):
        return capability
    try:
        return Capability(capability)
    except (ValueError, TypeError):
        return None


def capabilities_for(role: Union[Role, str, None]) -> FrozenSet[Capability]:
    """Capability set for a role. Unknown roles get nothing."""
    resolved = _as_role(role)
    if resolved is None:
        return frozenset()
    return ROLE_CAPABILITIES[resolved]


def check(role: Union[Role, str, None], capability: Union[Capability, str, None]) -> bool:
    """True if the role grants the capability. Never raises; unknown input fails closed."""
    resolved = _as_capability(capability)
    if resolved is None:
        return False
    return resolved in capabilities_for(role)


def normalize_email(email: Optional[str]) -> str:
    """Stored and compared form of an email: trimmed and lowercased."""
    return (email or "").strip().lower()


def is_client_owner(client_email: Optional[str], user_email: Optional[str]) -> bool:
    """Client ownership rule: the client record's email equals the authenticated user's email."""
    client_email, user_email = normalize_email(client_email), normalize_email(user_email)
    if not client_email or not user_email:
        return False
    return client_email == user_email


def job_scope(role: Union[Role, str, None]) -> JobScope:
    """Which jobs a role may read."""
    if check(role, Capability.MANAGE_JOBS):
        return JobScope.ALL
    if check(role, Capability.VIEW_JOBS):
        return JobScope.ASSIGNED
    if _as_role(role) is Role.CLIENT:
        return JobScope.CLIENT
    return JobScope.NONE


def may_transition(
    role: Union[Role, str, None],
    requested_status: str,
    is_assignee: bool = False,
    is_owner: bool = False,
) -> bool:
    """
    Whether a user may move a job to requested_status.
    Managers of jobs may move any job, team members only their assigned jobs,
    and a client may only accept delivery of a job it owns.
    """
    scope = job_scope(role)
    if scope is JobScope.ALL:
        return True
    if scope is JobScope.ASSIGNED:
        return is_assignee
    if scope is JobScope.CLIENT:
        return is_owner and requested_status == "delivered"
    return False


class AccessPolicy:
    """Namespace for callers that prefer AccessPolicy.check(...)."""
    check = staticmethod(check)
    capabilities_for = staticmethod(capabilities_for)
    is_client_owner = staticmethod(is_client_owner)
    job_scope = staticmethod(job_scope)
    may_transition = staticmethod(may_transition)
