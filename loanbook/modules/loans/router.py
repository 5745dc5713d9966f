from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from loanbook.core.database import get_db
from loanbook.core.dependencies import get_current_user, require_staff
from loanbook.core.exceptions import PermissionDeniedError
from loanbook.modules.loans import schemas
from loanbook.modules.loans.models import LoanStatus
from loanbook.modules.loans.services import LoanService
from loanbook.modules.users.models import User

router = APIRouter(prefix="/api/v1/loans", tags=["loans"])


@router.post("", response_model=schemas.LoanResponse, status_code=status.HTTP_201_CREATED)
async def create_loan(
    loan_in: schemas.LoanCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Open a loan.
    
    - Borrowers apply for themselves
    - Agents and admins may open a loan for any user
    """
    user_id = loan_in.user_id or current_user.id
    if user_id != current_user.id and not current_user.is_staff:
        raise PermissionDeniedError("You cannot open a loan for another user")

    return await LoanService(db).create(
        user_id,
        loan_in.amount,
        loan_in.interest_rate,
        loan_in.term_months,
        purpose=loan_in.purpose,
        notes=loan_in.notes
    )


@router.get("", response_model=List[schemas.LoanResponse])
async def read_loans(
    user_id: Optional[int] = None,
    loan_status: Optional[LoanStatus] = Query(default=None, alias="status"),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Borrowers list their own loans; staff can list anyone's"""
    if not current_user.is_staff:
        user_id = current_user.id
    return await LoanService(db).list_loans(user_id=user_id, status=loan_status, skip=skip, limit=limit)


@router.get("/{loan_id}", response_model=schemas.LoanResponse)
async def read_loan(
    loan_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    loan = await LoanService(db).get_loan(loan_id)
    LoanService.ensure_can_view(loan, current_user)
    return loan


@router.get("/{loan_id}/summary", response_model=schemas.LoanSummary)
async def read_loan_summary(
    loan_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Total payable, amount paid and remaining balance"""
    service = LoanService(db)
    LoanService.ensure_can_view(await service.get_loan(loan_id), current_user)
    return await service.summary(loan_id)


@router.post("/{loan_id}/approve", response_model=schemas.LoanResponse)
async def approve_loan(
    loan_id: int,
    approval: schemas.LoanApproveRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Give one side of the dual approval.
    
    - `customer`: the borrower accepts the terms
    - `us`: an agent or admin approves for the lender
    """
    service = LoanService(db)
    LoanService.ensure_can_approve(await service.get_loan(loan_id), current_user, approval.by)
    return await service.approve(loan_id, approval.by)


@router.post("/{loan_id}/cancel", response_model=schemas.LoanResponse)
async def cancel_loan(
    loan_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Cancel a pending loan"""
    service = LoanService(db)
    LoanService.ensure_can_view(await service.get_loan(loan_id), current_user)
    return await service.cancel(loan_id)


@router.post("/{loan_id}/default", response_model=schemas.LoanResponse)
async def default_loan(
    loan_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """Mark an active loan as defaulted"""
    return await LoanService(db).mark_defaulted(loan_id)


@router.patch("/{loan_id}/notes", response_model=schemas.LoanResponse)
async def update_loan_notes(
    loan_id: int,
    notes_in: schemas.LoanNotesUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    return await LoanService(db).update_notes(loan_id, notes_in.notes)
