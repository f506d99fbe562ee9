"""
Roles and Capabilities Configuration
This config defines the capability table for every studio role.
It is the only place where role grants are declared; route dependencies,
the job service and the /auth endpoints all read from it.
"""

from enum import Enum
from types import MappingProxyType


class Role(str, Enum):
    ADMIN = "admin"
    RECEPTIONIST = "receptionist"
    PHOTOGRAPHER = "photographer"
    DESIGNER = "designer"
    EDITOR = "editor"
    CLIENT = "client"
    MANAGER = "manager"
    ADS_MANAGER = "ads_manager"


class Capability(str, Enum):
    MANAGE_USERS = "manage_users"
    MANAGE_CLIENTS = "manage_clients"
    MANAGE_JOBS = "manage_jobs"
    VIEW_JOBS = "view_jobs"
    MANAGE_PAYMENTS = "manage_payments"
    VIEW_FILES = "view_files"
    VIEW_ATTENDANCE = "view_attendance"


CAPABILITY_DESCRIPTIONS = {
    Capability.MANAGE_USERS: "Create users, change roles and deactivate accounts",
    Capability.MANAGE_CLIENTS: "Create and edit client records",
    Capability.MANAGE_JOBS: "Create, edit, assign and transition any job",
    Capability.VIEW_JOBS: "View and progress jobs (assigned jobs only for team members)",
    Capability.MANAGE_PAYMENTS: "Record payments and payment requests",
    Capability.VIEW_FILES: "View job files and deliverables",
    Capability.VIEW_ATTENDANCE: "View attendance records",
}

_OFFICE_CAPABILITIES = frozenset({
    Capability.MANAGE_CLIENTS,
    Capability.MANAGE_JOBS,
    Capability.VIEW_JOBS,
    Capability.MANAGE_PAYMENTS,
    Capability.VIEW_FILES,
    Capability.VIEW_ATTENDANCE,
})

# Team members only ever see what is assigned to them; that filter is applied in the job queries.
_TEAM_CAPABILITIES = frozenset({
    Capability.VIEW_JOBS,
    Capability.VIEW_FILES,
    Capability.VIEW_ATTENDANCE,
})

ROLE_CAPABILITIES = MappingProxyType({
    Role.ADMIN: frozenset(Capability),
    Role.RECEPTIONIST: _OFFICE_CAPABILITIES,
    Role.MANAGER: _OFFICE_CAPABILITIES,
    Role.PHOTOGRAPHER: _TEAM_CAPABILITIES,
    Role.DESIGNER: _TEAM_CAPABILITIES,
    Role.EDITOR: _TEAM_CAPABILITIES,
    Role.ADS_MANAGER: _TEAM_CAPABILITIES,
    # Clients read their own jobs through the email ownership rule, not through capabilities
    Role.CLIENT: frozenset(),
})

ROLE_DESCRIPTIONS = {
    Role.ADMIN: "Full administrative access",
    Role.RECEPTIONIST: "Front office: clients, jobs and payments",
    Role.MANAGER: "Studio manager: clients, jobs and payments",
    Role.PHOTOGRAPHER: "Team member working photo sessions",
    Role.DESIGNER: "Team member working design jobs",
    Role.EDITOR: "Team member working video editing jobs",
    Role.ADS_MANAGER: "Team member running ad campaigns",
    Role.CLIENT: "Client portal user",
}


def get_permission_matrix():
    """
    Returns the capability table in a serializable form
    Format: {
        "capabilities": [
            {"name": "manage_jobs", "description": "..."},
            ...
        ],
        "roles": [
            {
                "name": "receptionist",
                "description": "...",
                "capabilities": ["manage_clients", "manage_jobs", ...]
            },
            ...
        ]
    }
    """
    capabilities = [
        {"name": capability.value, "description": CAPABILITY_DESCRIPTIONS[capability]}
        for capability in Capability
    ]
    roles = [
        {
            "name": role.value,
            "description": ROLE_DESCRIPTIONS[role],
            "capabilities": sorted(c.value for c in ROLE_CAPABILITIES[role]),
        }
        for role in Role
    ]
    return {
        "capabilities": capabilities,
        "roles": roles
    }


PERMISSION_MATRIX = get_permission_matrix()
