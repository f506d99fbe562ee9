from fastapi import APIRouter, Depends
from app.config.permissions_config import Capability
from app.database.supabase_client import get_supabase
from app.modules.clients.schemas import ClientCreate, ClientUpdate, ClientResponse
from app.modules.clients.service import ClientService
from app.core import access_policy
from app.core.access_policy import Actor
from app.core.dependencies import require_capability, get_current_actor
from app.core.exceptions import NotFound
from supabase import Client
from typing import List, Optional

router = APIRouter(prefix="/clients", tags=["clients"])


def get_client_service(supabase: Client = Depends(get_supabase)) -> ClientService:
    return ClientService(supabase)


@router.post("", response_model=ClientResponse, status_code=201)
async def create_client(
    client_data: ClientCreate,
    actor: Actor = Depends(require_capability(Capability.MANAGE_CLIENTS)),
    service: ClientService = Depends(get_client_service)
):
    """Create a new client"""
    return service.create_client(client_data, actor.id)


@router.get("", response_model=List[ClientResponse])
async def list_clients(
    search: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    actor: Actor = Depends(require_capability(Capability.MANAGE_CLIENTS)),
    service: ClientService = Depends(get_client_service)
):
    """List clients"""
    return service.list_clients(search=search, limit=limit, offset=offset)


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: str,
    actor: Actor = Depends(get_current_actor),
    service: ClientService = Depends(get_client_service)
):
    """Get client by ID (client managers, or the client itself by email match)"""
    client = service.get_client_by_id(client_id)
    if access_policy.check(actor.role, Capability.MANAGE_CLIENTS):
        return client
    if access_policy.is_client_owner(client.email, actor.email):
        return client
    raise NotFound("Client", client_id)


@router.put("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: str,
    client_data: ClientUpdate,
    actor: Actor = Depends(require_capability(Capability.MANAGE_CLIENTS)),
    service: ClientService = Depends(get_client_service)
):
    """Update client"""
    return service.update_client(client_id, client_data)
