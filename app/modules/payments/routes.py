from fastapi import APIRouter, Depends
from app.config.permissions_config import Capability
from app.database.supabase_client import get_supabase
from app.modules.payments.schemas import (
    ClientPaymentSummary, PaymentCreate, PaymentResponse, PaymentUpdate,
)
from app.modules.payments.service import PaymentService
from app.core.access_policy import Actor
from app.core.dependencies import require_capability, get_current_actor
from supabase import Client
from typing import List, Optional

router = APIRouter(prefix="/payments", tags=["payments"])


def get_payment_service(supabase: Client = Depends(get_supabase)) -> PaymentService:
    return PaymentService(supabase)


@router.get("", response_model=List[PaymentResponse])
async def list_payments(
    client_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    actor: Actor = Depends(get_current_actor),
    service: PaymentService = Depends(get_payment_service)
):
    """List payments (all for payment managers, own for clients)"""
    return service.list_payments(actor, client_id=client_id, limit=limit, offset=offset)


@router.get("/client/{client_id}", response_model=List[PaymentResponse])
async def list_client_payments(
    client_id: str,
    actor: Actor = Depends(get_current_actor),
    service: PaymentService = Depends(get_payment_service)
):
    return service.list_payments(actor, client_id=client_id)


@router.get("/client/{client_id}/summary", response_model=ClientPaymentSummary)
async def client_payment_summary(
    client_id: str,
    actor: Actor = Depends(get_current_actor),
    service: PaymentService = Depends(get_payment_service)
):
    """Total paid by a client"""
    return service.client_summary(client_id, actor)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: str,
    actor: Actor = Depends(get_current_actor),
    service: PaymentService = Depends(get_payment_service)
):
    return service.get_payment(payment_id, actor)


@router.post("", response_model=PaymentResponse, status_code=201)
async def record_payment(
    payment_data: PaymentCreate,
    actor: Actor = Depends(require_capability(Capability.MANAGE_PAYMENTS)),
    service: PaymentService = Depends(get_payment_service)
):
    """Record a new payment"""
    return service.record_payment(payment_data, actor)


@router.put("/{payment_id}", response_model=PaymentResponse)
async def update_payment(
    payment_id: str,
    payment_data: PaymentUpdate,
    actor: Actor = Depends(require_capability(Capability.MANAGE_PAYMENTS)),
    service: PaymentService = Depends(get_payment_service)
):
    return service.update_payment(payment_id, payment_data, actor)


@router.delete("/{payment_id}", status_code=204)
async def delete_payment(
    payment_id: str,
    actor: Actor = Depends(require_capability(Capability.MANAGE_PAYMENTS)),
    service: PaymentService = Depends(get_payment_service)
):
    """Delete a payment (admins only)"""
    service.delete_payment(payment_id, actor)
    return None
