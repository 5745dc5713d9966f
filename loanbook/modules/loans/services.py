"""
Loan ledger.

Lifecycle::

    pending --(approved by us AND by customer)--> active --(paid off)--> paid
       |                                            |
       +--(cancel)--> cancelled                     +--(mark defaulted)--> defaulted

Interest is simple interest over the whole term:
``total payable = amount * (1 + interest_rate / 100)``.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from dateutil.relativedelta import relativedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, ROUND_UP
from typing import List, Optional, Union
import logging

from loanbook.core.clock import Clock, utcnow
from loanbook.core.exceptions import InvalidStateError, NotFoundError, PermissionDeniedError, ValidationError
from loanbook.core.repository import Repository
from loanbook.modules.loans.models import ApprovalParty, Loan, LoanStatus
from loanbook.modules.loans.schemas import LoanSummary
from loanbook.modules.payments.models import Payment, PaymentStatus
from loanbook.modules.users.models import User

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
MAX_AMOUNT = Decimal("9999999999999.99")
MAX_INTEREST_RATE = Decimal("999.99")

Number = Union[Decimal, int, str]


def to_decimal(value: Number, field: str) -> Decimal:
    """Parse a monetary input without passing through binary floats"""
    if isinstance(value, float):
        value = repr(value)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a decimal number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if result != result.quantize(CENTS):
        raise ValidationError(f"{field} must have at most 2 decimal places")
    return result


def total_payable(amount: Decimal, interest_rate: Decimal) -> Decimal:
    """Principal plus simple interest over the full term, in cents"""
    total = Decimal(amount) * (1 + Decimal(interest_rate) / 100)
    return total.quantize(CENTS, rounding=ROUND_HALF_UP)


def payoff_amount(amount: Decimal, interest_rate: Decimal) -> Decimal:
    """Smallest cent amount that covers the exact total payable"""
    total = Decimal(amount) * (1 + Decimal(interest_rate) / 100)
    return total.quantize(CENTS, rounding=ROUND_UP)


class LoanService:
    """Creates loans and drives them through their lifecycle"""

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.loans = Repository(db, Loan)
        self.payments = Repository(db, Payment)
        self.users = Repository(db, User)

    async def create(
        self,
        user_id: int,
        amount: Number,
        interest_rate: Number,
        term_months: int,
        purpose: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Loan:
        """Open a pending loan with neither approval given"""
        amount = to_decimal(amount, "amount")
        interest_rate = to_decimal(interest_rate, "interest_rate")

        if amount <= 0:
            raise ValidationError("amount must be greater than zero")
        if amount > MAX_AMOUNT:
            raise ValidationError("amount is too large")
        if interest_rate < 0:
            raise ValidationError("interest_rate must not be negative")
        if interest_rate > MAX_INTEREST_RATE:
            raise ValidationError("interest_rate is too large")
        if isinstance(term_months, bool) or not isinstance(term_months, int) or term_months <= 0:
            raise ValidationError("term_months must be a positive integer")

        borrower = await self.users.find_unique(id=user_id)
        if borrower is None or borrower.is_deleted:
            raise NotFoundError("User", user_id)

        now = self.clock()
        try:
            loan = await self.loans.create(
                user_id=user_id,
                amount=amount,
                interest_rate=interest_rate,
                term_months=term_months,
                status=LoanStatus.PENDING,
                approved_by_us=False,
                approved_by_customer=False,
                purpose=purpose,
                notes=notes,
                created_at=now,
                updated_at=now
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Loan {loan.id} created for user {user_id}: {amount} at {interest_rate}% over {term_months} months")
        return loan

    async def get_loan(self, loan_id: int) -> Loan:
        loan = await self.loans.find_unique(id=loan_id)
        if loan is None:
            raise NotFoundError("Loan", loan_id)
        return loan

    async def list_loans(
        self,
        user_id: Optional[int] = None,
        status: Optional[LoanStatus] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Loan]:
        """Newest loans first"""
        criteria = []
        if user_id is not None:
            criteria.append(Loan.user_id == user_id)
        if status is not None:
            criteria.append(Loan.status == status)
        return await self.loans.find_many(
            *criteria,
            order_by=[Loan.created_at.desc(), Loan.id.desc()],
            skip=skip,
            limit=limit
        )

    async def approve(self, loan_id: int, by: ApprovalParty) -> Loan:
        """
        Record one side of the dual approval.

        Approving again with the same party is a no-op. The second distinct
        approval activates the loan, fixing start_date and the term-based
        end_date.
        """
        try:
            by = ApprovalParty(by)
        except ValueError:
            raise ValidationError(f"Unknown approval party: {by}")
        try:
            loan = await self._locked(loan_id)
            if loan.status != LoanStatus.PENDING:
                raise InvalidStateError("loan", loan_id, loan.status.value, "approve")

            flag = "approved_by_us" if by == ApprovalParty.US else "approved_by_customer"
            changes = {}
            if not getattr(loan, flag):
                changes[flag] = True

            approved_by_us = changes.get("approved_by_us", loan.approved_by_us)
            approved_by_customer = changes.get("approved_by_customer", loan.approved_by_customer)
            if changes and approved_by_us and approved_by_customer:
                now = self.clock()
                changes.update(
                    status=LoanStatus.ACTIVE,
                    start_date=now,
                    end_date=now + relativedelta(months=loan.term_months)
                )

            if changes:
                loan = await self.loans.update(loan, **changes, updated_at=self.clock())
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if loan.status == LoanStatus.ACTIVE:
            logger.info(f"Loan {loan_id} activated, ends {loan.end_date.date()}")
        else:
            logger.info(f"Loan {loan_id} approved by {by.value}")
        return loan

    async def cancel(self, loan_id: int) -> Loan:
        """Cancel a loan that has not started"""
        return await self._transition(loan_id, LoanStatus.PENDING, LoanStatus.CANCELLED, "cancel")

    async def mark_defaulted(self, loan_id: int) -> Loan:
        """Operator-triggered default of an active loan"""
        return await self._transition(loan_id, LoanStatus.ACTIVE, LoanStatus.DEFAULTED, "mark defaulted")

    async def update_notes(self, loan_id: int, notes: Optional[str]) -> Loan:
        try:
            loan = await self._locked(loan_id)
            loan = await self.loans.update(loan, notes=notes, updated_at=self.clock())
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return loan

    async def summary(self, loan_id: int) -> LoanSummary:
        """Balance and progress computed from completed payments"""
        loan = await self.get_loan(loan_id)
        payable = total_payable(loan.amount, loan.interest_rate)
        completed = [Payment.loan_id == loan_id, Payment.status == PaymentStatus.COMPLETED]
        paid = (await self.payments.sum(Payment.amount, *completed)).quantize(CENTS)
        completed_count = await self.payments.count(*completed)

        progress = Decimal(completed_count * 100) / loan.term_months
        return LoanSummary(
            loan_id=loan.id,
            status=loan.status,
            total_payable=payable,
            total_paid=paid,
            remaining_balance=max(payable - paid, Decimal("0.00")),
            installment=(payable / loan.term_months).quantize(CENTS, rounding=ROUND_HALF_UP),
            completed_payments=completed_count,
            progress_percentage=min(progress, Decimal(100)).quantize(CENTS, rounding=ROUND_HALF_UP)
        )

    @staticmethod
    def ensure_can_view(loan: Loan, user: User) -> None:
        """Borrowers see their own loans; agents and admins see all"""
        if loan.user_id != user.id and not user.is_staff:
            raise PermissionDeniedError("You do not have access to this loan")

    @staticmethod
    def ensure_can_approve(loan: Loan, user: User, by: ApprovalParty) -> None:
        """Only the borrower approves as customer; only staff approve as us"""
        if by == ApprovalParty.CUSTOMER:
            if loan.user_id != user.id:
                raise PermissionDeniedError("Only the borrower can give customer approval")
        elif not user.is_staff:
            raise PermissionDeniedError("Only agents or admins can approve on behalf of the lender")

    async def _locked(self, loan_id: int) -> Loan:
        loan = await self.loans.find_unique(id=loan_id, for_update=True)
        if loan is None:
            raise NotFoundError("Loan", loan_id)
        return loan

    async def _transition(self, loan_id: int, required: LoanStatus, target: LoanStatus, action: str) -> Loan:
        try:
            loan = await self._locked(loan_id)
            if loan.status != required:
                raise InvalidStateError("loan", loan_id, loan.status.value, action)
            loan = await self.loans.update(loan, status=target, updated_at=self.clock())
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Loan {loan_id} {required.value} -> {target.value}")
        return loan
