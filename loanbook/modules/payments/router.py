from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from loanbook.core.database import get_db
from loanbook.core.dependencies import get_current_user, require_staff
from loanbook.modules.loans.services import LoanService
from loanbook.modules.payments import schemas
from loanbook.modules.payments.services import PaymentService
from loanbook.modules.users.models import User

router = APIRouter(prefix="/api/v1", tags=["payments"])


@router.post(
    "/loans/{loan_id}/payments",
    response_model=schemas.PaymentResponse,
    status_code=status.HTTP_201_CREATED
)
async def record_payment(
    loan_id: int,
    payment_in: schemas.PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Record a pending payment on an active loan"""
    LoanService.ensure_can_view(await LoanService(db).get_loan(loan_id), current_user)
    return await PaymentService(db).record_payment(
        loan_id, payment_in.amount, payment_in.payment_date, notes=payment_in.notes
    )


@router.get("/loans/{loan_id}/payments", response_model=List[schemas.PaymentResponse])
async def read_loan_payments(
    loan_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    LoanService.ensure_can_view(await LoanService(db).get_loan(loan_id), current_user)
    return await PaymentService(db).list_for_loan(loan_id)


@router.post("/payments/{payment_id}/settle", response_model=schemas.PaymentResponse)
async def settle_payment(
    payment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """
    Confirm a pending payment.
    
    - Marks the loan paid once completed payments cover the total payable
    """
    return await PaymentService(db).settle(payment_id)


@router.post("/payments/{payment_id}/fail", response_model=schemas.PaymentResponse)
async def fail_payment(
    payment_id: int,
    failure: schemas.PaymentFailRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    return await PaymentService(db).fail(payment_id, failure.reason)


@router.post("/payments/{payment_id}/cancel", response_model=schemas.PaymentResponse)
async def cancel_payment(
    payment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Cancel a pending payment on one of your loans"""
    service = PaymentService(db)
    payment = await service.get_payment(payment_id)
    LoanService.ensure_can_view(await LoanService(db).get_loan(payment.loan_id), current_user)
    return await service.cancel(payment_id)
