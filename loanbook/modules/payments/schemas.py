from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from loanbook.modules.payments.models import PaymentStatus


class PaymentCreate(BaseModel):
    amount: Decimal
    payment_date: Optional[datetime] = None  # defaults to now
    notes: Optional[str] = None


class PaymentFailRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class PaymentResponse(BaseModel):
    id: int
    loan_id: int
    amount: Decimal
    payment_date: datetime
    status: PaymentStatus
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
