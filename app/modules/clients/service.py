from supabase import Client
from app.core.access_policy import normalize_email
from app.core.exceptions import AppError, NotFound
from app.modules.clients.schemas import ClientCreate, ClientUpdate, ClientResponse
from typing import List, Optional
from fastapi import HTTPException
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


def _escape_like(value: str) -> str:
    """Match value literally inside an ILIKE pattern"""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ClientService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def create_client(self, client_data: ClientCreate, user_id: str) -> ClientResponse:
        """Create a new client record"""
        try:
            insert_data = client_data.model_dump()
            if insert_data.get("email"):
                insert_data["email"] = normalize_email(insert_data["email"])
            insert_data["created_by"] = user_id

            result = self.supabase.table("clients").insert(insert_data).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create client")

            logger.info(f"Client created: {client_data.name} by {user_id}")
            return ClientResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error creating client: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

    def get_client_by_id(self, client_id: str) -> ClientResponse:
        """Get client by ID"""
        try:
            result = self.supabase.table("clients")\
                .select("*")\
                .eq("id", client_id)\
                .maybe_single()\
                .execute()

            if not result or not result.data:
                raise NotFound("Client", client_id)

            return ClientResponse(**result.data)
        except AppError:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_clients(self, search: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[ClientResponse]:
        """List clients, optionally filtered by a name fragment"""
        try:
            query = self.supabase.table("clients").select("*")
            if search:
                query = query.ilike("name", f"%{_escape_like(search)}%")
            result = query.order("created_at", desc=True)\
                .limit(limit)\
                .offset(offset)\
                .execute()
            return [ClientResponse(**client) for client in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_client(self, client_id: str, client_data: ClientUpdate) -> ClientResponse:
        """Update client"""
        try:
            update_data = client_data.model_dump(exclude_none=True)
            if update_data.get("email"):
                update_data["email"] = normalize_email(update_data["email"])
            update_data["updated_at"] = datetime.now(timezone.utc).isoformat()

            result = self.supabase.table("clients")\
                .update(update_data)\
                .eq("id", client_id)\
                .execute()

            if not result.data:
                raise NotFound("Client", client_id)

            return ClientResponse(**result.data[0])
        except AppError:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_client_ids_for_email(self, email: Optional[str]) -> List[str]:
        """Client records owned by a user, by the email ownership rule"""
        email = normalize_email(email)
        if not email:
            return []
        try:
            result = self.supabase.table("clients")\
                .select("id")\
                .eq("email", email)\
                .execute()
            return [c["id"] for c in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
