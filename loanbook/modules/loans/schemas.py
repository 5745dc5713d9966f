from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from loanbook.modules.loans.models import LoanStatus, ApprovalParty


class LoanCreate(BaseModel):
    """Terms are validated by the ledger so every caller gets the same errors"""
    user_id: Optional[int] = None  # defaults to the caller
    amount: Decimal
    interest_rate: Decimal
    term_months: int
    purpose: Optional[str] = None
    notes: Optional[str] = None


class LoanApproveRequest(BaseModel):
    by: ApprovalParty


class LoanNotesUpdate(BaseModel):
    notes: Optional[str] = None


class LoanResponse(BaseModel):
    id: int
    user_id: int
    amount: Decimal
    interest_rate: Decimal
    term_months: int
    status: LoanStatus
    approved_by_us: bool
    approved_by_customer: bool
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    purpose: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class LoanSummary(BaseModel):
    loan_id: int
    status: LoanStatus
    total_payable: Decimal
    total_paid: Decimal
    remaining_balance: Decimal
    installment: Decimal
    completed_payments: int
    progress_percentage: Decimal = Field(..., ge=0, le=100)
