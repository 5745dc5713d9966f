from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import List, Optional
import logging

from loanbook.core.clock import Clock, utcnow
from loanbook.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from loanbook.core.repository import Repository
from loanbook.modules.loans.models import Loan, LoanStatus
from loanbook.modules.loans.services import Number, payoff_amount, to_decimal
from loanbook.modules.payments.models import Payment, PaymentStatus

logger = logging.getLogger(__name__)


class PaymentService:
    """Records payments against active loans and retires the balance as they settle"""

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.payments = Repository(db, Payment)
        self.loans = Repository(db, Loan)

    async def record_payment(
        self,
        loan_id: int,
        amount: Number,
        payment_date: Optional[datetime] = None,
        notes: Optional[str] = None
    ) -> Payment:
        """Record a pending payment; the loan must be active"""
        amount = to_decimal(amount, "amount")
        try:
            loan = await self.loans.find_unique(id=loan_id, for_update=True)
            if loan is None:
                raise NotFoundError("Loan", loan_id)
            if loan.status != LoanStatus.ACTIVE:
                raise InvalidStateError("loan", loan_id, loan.status.value, "record a payment on")
            if amount <= 0:
                raise ValidationError("amount must be greater than zero")

            now = self.clock()
            payment = await self.payments.create(
                loan_id=loan_id,
                amount=amount,
                payment_date=payment_date or now,
                status=PaymentStatus.PENDING,
                notes=notes,
                created_at=now,
                updated_at=now
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Payment {payment.id} of {amount} recorded on loan {loan_id}")
        return payment

    async def settle(self, payment_id: int) -> Payment:
        """
        Complete a pending payment.

        The payment and its loan are locked together; once completed
        payments cover the total payable, the loan is marked paid with
        end_date set to the settlement time.
        """
        try:
            payment = await self._locked_pending(payment_id, "settle")
            loan = await self.loans.find_unique(id=payment.loan_id, for_update=True)

            now = self.clock()
            payment = await self.payments.update(payment, status=PaymentStatus.COMPLETED, updated_at=now)

            paid_off = False
            if loan is not None and loan.status == LoanStatus.ACTIVE:
                settled = await self.payments.sum(
                    Payment.amount,
                    Payment.loan_id == loan.id,
                    Payment.status == PaymentStatus.COMPLETED
                )
                if settled >= payoff_amount(loan.amount, loan.interest_rate):
                    await self.loans.update(loan, status=LoanStatus.PAID, end_date=now, updated_at=now)
                    paid_off = True

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Payment {payment_id} settled")
        if paid_off:
            logger.info(f"Loan {payment.loan_id} paid off")
        return payment

    async def fail(self, payment_id: int, reason: str) -> Payment:
        """Mark a pending payment failed; a retry needs a new payment"""
        try:
            payment = await self._locked_pending(payment_id, "fail")
            notes = f"{payment.notes}\nFailed: {reason}" if payment.notes else f"Failed: {reason}"
            payment = await self.payments.update(
                payment, status=PaymentStatus.FAILED, notes=notes, updated_at=self.clock()
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.warning(f"Payment {payment_id} failed: {reason}")
        return payment

    async def cancel(self, payment_id: int) -> Payment:
        try:
            payment = await self._locked_pending(payment_id, "cancel")
            payment = await self.payments.update(
                payment, status=PaymentStatus.CANCELLED, updated_at=self.clock()
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Payment {payment_id} cancelled")
        return payment

    async def get_payment(self, payment_id: int) -> Payment:
        payment = await self.payments.find_unique(id=payment_id)
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        return payment

    async def list_for_loan(self, loan_id: int) -> List[Payment]:
        """Payments on a loan, latest payment date first"""
        if await self.loans.find_unique(id=loan_id) is None:
            raise NotFoundError("Loan", loan_id)
        return await self.payments.find_many(
            Payment.loan_id == loan_id,
            order_by=[Payment.payment_date.desc(), Payment.id.desc()]
        )

    async def _locked_pending(self, payment_id: int, action: str) -> Payment:
        payment = await self.payments.find_unique(id=payment_id, for_update=True)
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        if payment.status != PaymentStatus.PENDING:
            raise InvalidStateError("payment", payment_id, payment.status.value, action)
        return payment
