from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"


class PaymentCreate(BaseModel):
    client_id: str
    amount: float = Field(gt=0)
    job_id: Optional[str] = None
    description: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.CASH


class PaymentUpdate(BaseModel):
    amount: Optional[float] = Field(default=None, gt=0)
    description: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None


class PaymentResponse(BaseModel):
    id: str
    client_id: str
    amount: float
    job_id: Optional[str] = None
    description: Optional[str] = None
    payment_method: Optional[str] = PaymentMethod.CASH.value
    recorded_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ClientPaymentSummary(BaseModel):
    client_id: str
    total_paid: float
    payment_count: int
