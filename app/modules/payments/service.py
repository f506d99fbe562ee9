from supabase import Client
from app.config.permissions_config import Capability, Role
from app.core import access_policy
from app.core.access_policy import Actor, JobScope
from app.core.exceptions import AccessDenied, AppError, NotFound
from app.modules.clients.service import ClientService
from app.modules.notifications.schemas import NotificationIntent, NotificationType
from app.modules.notifications.service import NotificationService
from app.modules.payments.schemas import (
    ClientPaymentSummary, PaymentCreate, PaymentResponse, PaymentUpdate,
)
from app.modules.users.service import UserService
from typing import List, Optional
from fastapi import HTTPException
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.clients = ClientService(supabase)
        self.users = UserService(supabase)
        self.notifications = NotificationService(supabase)

    # Visibility

    def _client_ids_for(self, actor: Actor) -> Optional[List[str]]:
        """None means every client; a list restricts reads to those clients"""
        if access_policy.check(actor.role, Capability.MANAGE_PAYMENTS):
            return None
        if access_policy.job_scope(actor.role) is JobScope.CLIENT:
            return self.clients.get_client_ids_for_email(actor.email)
        raise AccessDenied(
            f"Insufficient permissions. Required: {Capability.MANAGE_PAYMENTS.value}",
            role=actor.role,
            capability=Capability.MANAGE_PAYMENTS.value,
        )

    # Reads

    def list_payments(
        self,
        actor: Actor,
        client_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[PaymentResponse]:
        """Payments visible to the actor, newest first. Clients only see their own."""
        visible = self._client_ids_for(actor)
        if visible is not None:
            if client_id:
                visible = [c for c in visible if c == client_id]
            if not visible:
                return []
        try:
            query = self.supabase.table("payments").select("*")
            if visible is not None:
                query = query.in_("client_id", visible)
            elif client_id:
                query = query.eq("client_id", client_id)
            result = query.order("created_at", desc=True)\
                .limit(limit)\
                .offset(offset)\
                .execute()
            return [PaymentResponse(**row) for row in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_payment(self, payment_id: str, actor: Actor) -> PaymentResponse:
        """Get payment by ID. Payments of other clients are reported as missing."""
        payment = self._get_payment_by_id(payment_id)
        visible = self._client_ids_for(actor)
        if visible is not None and payment.client_id not in visible:
            raise NotFound("Payment", payment_id)
        return payment

    def client_summary(self, client_id: str, actor: Actor) -> ClientPaymentSummary:
        """Total paid by a client, summed from its payment rows"""
        visible = self._client_ids_for(actor)
        if visible is not None and client_id not in visible:
            raise NotFound("Client", client_id)
        self.clients.get_client_by_id(client_id)
        try:
            result = self.supabase.table("payments")\
                .select("amount")\
                .eq("client_id", client_id)\
                .execute()
            amounts = [float(row["amount"]) for row in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return ClientPaymentSummary(
            client_id=client_id,
            total_paid=round(sum(amounts), 2),
            payment_count=len(amounts),
        )

    def _get_payment_by_id(self, payment_id: str) -> PaymentResponse:
        try:
            result = self.supabase.table("payments")\
                .select("*")\
                .eq("id", payment_id)\
                .maybe_single()\
                .execute()

            if not result or not result.data:
                raise NotFound("Payment", payment_id)

            return PaymentResponse(**result.data)
        except AppError:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    # Writes

    def _check_job_belongs_to_client(self, job_id: str, client_id: str) -> None:
        try:
            result = self.supabase.table("jobs")\
                .select("id")\
                .eq("id", job_id)\
                .eq("client_id", client_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise HTTPException(status_code=404, detail="Job not found or does not belong to client")

    def record_payment(self, payment_data: PaymentCreate, actor: Actor) -> PaymentResponse:
        """Record a payment for a client, optionally against one of its jobs"""
        client = self.clients.get_client_by_id(payment_data.client_id)
        if payment_data.job_id:
            self._check_job_belongs_to_client(payment_data.job_id, payment_data.client_id)
        client_user_id = self.users.find_client_user_id(client.email)

        insert_data = payment_data.model_dump(mode="json")
        insert_data["recorded_by"] = actor.id
        try:
            result = self.supabase.table("payments").insert(insert_data).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to record payment")

            payment = PaymentResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error recording payment: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

        if client_user_id and client_user_id != actor.id:
            intent = NotificationIntent(
                user_id=client_user_id,
                title="Payment Recorded",
                message=f"Payment of {payment.amount:.2f} has been recorded for your account",
                related_job_id=payment.job_id,
                type=NotificationType.SUCCESS,
            )
            try:
                self.notifications.dispatch([intent])
            except HTTPException as e:
                logger.error(f"Payment {payment.id} saved but client notification failed: {e.detail}")

        logger.info(f"Payment recorded: {payment.amount:.2f} for client {client.id} by {actor.id}")
        return payment

    def update_payment(self, payment_id: str, payment_data: PaymentUpdate, actor: Actor) -> PaymentResponse:
        """Correct amount, description or method of a recorded payment"""
        update_data = payment_data.model_dump(mode="json", exclude_unset=True, exclude_none=True)
        if not update_data:
            return self._get_payment_by_id(payment_id)
        update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
        try:
            result = self.supabase.table("payments")\
                .update(update_data)\
                .eq("id", payment_id)\
                .execute()

            if not result.data:
                raise NotFound("Payment", payment_id)

            logger.info(f"Payment {payment_id} updated by {actor.id}")
            return PaymentResponse(**result.data[0])
        except AppError:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_payment(self, payment_id: str, actor: Actor) -> None:
        """Delete a payment record (admins only)"""
        if actor.role != Role.ADMIN.value:
            raise AccessDenied("Only admins can delete payments", role=actor.role)
        self._get_payment_by_id(payment_id)
        try:
            self.supabase.table("payments")\
                .delete()\
                .eq("id", payment_id)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        logger.info(f"Payment {payment_id} deleted by {actor.id}")
