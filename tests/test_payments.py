"""
Unit tests for Payment Service
"""
import pytest
from datetime import datetime
from decimal import Decimal

from loanbook.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from loanbook.modules.loans.models import ApprovalParty, LoanStatus
from loanbook.modules.loans.services import LoanService
from loanbook.modules.payments.models import PaymentStatus
from loanbook.modules.payments.services import PaymentService


class TestRecordPayment:
    """Tests for recording payments"""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_record_payment(self, db_session, active_loan, clock):
        """Test a payment starts pending and defaults its date to now"""
        service = PaymentService(db_session, clock=clock)

        payment = await service.record_payment(active_loan.id, "250.00", notes="First installment")

        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == Decimal("250.00")
        assert payment.payment_date == clock()
        assert payment.notes == "First installment"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_record_payment_with_date(self, db_session, active_loan):
        """Test an explicit payment date is kept"""
        paid_on = datetime(2026, 3, 1, 12, 0)

        payment = await PaymentService(db_session).record_payment(active_loan.id, "10.00", payment_date=paid_on)

        assert payment.payment_date == paid_on

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_record_on_pending_loan(self, db_session, pending_loan):
        """Test payments need an active loan"""
        with pytest.raises(InvalidStateError):
            await PaymentService(db_session).record_payment(pending_loan.id, "100.00")

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_record_on_unknown_loan(self, db_session):
        """Test payments need an existing loan"""
        with pytest.raises(NotFoundError):
            await PaymentService(db_session).record_payment(31337, "100.00")

    @pytest.mark.integration
    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0", "0.00", "-1.00"])
    async def test_record_non_positive_amount(self, db_session, active_loan, amount):
        """Test the amount must be positive"""
        with pytest.raises(ValidationError):
            await PaymentService(db_session).record_payment(active_loan.id, amount)


class TestSettlement:
    """Tests for settling payments"""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_partial_settlement_keeps_loan_active(self, db_session, active_loan):
        """Test a settled payment below the total leaves the loan active"""
        service = PaymentService(db_session)
        payment = await service.record_payment(active_loan.id, "600.00")

        settled = await service.settle(payment.id)

        loan = await LoanService(db_session).get_loan(active_loan.id)
        assert settled.status == PaymentStatus.COMPLETED
        assert loan.status == LoanStatus.ACTIVE

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_payoff_marks_loan_paid(self, db_session, active_loan, clock):
        """Test covering the total payable pays the loan off at settlement time"""
        service = PaymentService(db_session, clock=clock)
        first = await service.record_payment(active_loan.id, "600.00")
        second = await service.record_payment(active_loan.id, "500.00")
        await service.settle(first.id)

        settled_at = clock.advance(days=30)
        await service.settle(second.id)

        loan = await LoanService(db_session).get_loan(active_loan.id)
        assert loan.status == LoanStatus.PAID
        assert loan.end_date == settled_at

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_sub_cent_shortfall_keeps_loan_active(self, db_session, test_user, clock):
        """Test a sum below the exact total does not pay the loan off"""
        loans = LoanService(db_session, clock=clock)
        loan = await loans.create(test_user.id, "1000.01", "0.01", 12)
        loan_id = loan.id
        await loans.approve(loan_id, ApprovalParty.US)
        await loans.approve(loan_id, ApprovalParty.CUSTOMER)
        service = PaymentService(db_session, clock=clock)

        first = await service.record_payment(loan_id, "1000.11")
        await service.settle(first.id)
        assert (await loans.get_loan(loan_id)).status == LoanStatus.ACTIVE

        last_cent = await service.record_payment(loan_id, "0.01")
        await service.settle(last_cent.id)
        assert (await loans.get_loan(loan_id)).status == LoanStatus.PAID

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_pending_payments_do_not_count(self, db_session, active_loan):
        """Test only completed payments count toward payoff"""
        service = PaymentService(db_session)
        await service.record_payment(active_loan.id, "1100.00")
        small = await service.record_payment(active_loan.id, "10.00")

        await service.settle(small.id)

        loan = await LoanService(db_session).get_loan(active_loan.id)
        assert loan.status == LoanStatus.ACTIVE

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_settle_after_default_keeps_default(self, db_session, active_loan):
        """Test a pending payment can still settle on a defaulted loan"""
        service = PaymentService(db_session)
        payment = await service.record_payment(active_loan.id, "1100.00")
        await LoanService(db_session).mark_defaulted(active_loan.id)

        settled = await service.settle(payment.id)

        loan = await LoanService(db_session).get_loan(active_loan.id)
        assert settled.status == PaymentStatus.COMPLETED
        assert loan.status == LoanStatus.DEFAULTED

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_settle_twice(self, db_session, active_loan):
        """Test a completed payment cannot settle again"""
        service = PaymentService(db_session)
        payment = await service.record_payment(active_loan.id, "100.00")
        payment_id = payment.id
        await service.settle(payment_id)

        with pytest.raises(InvalidStateError):
            await service.settle(payment_id)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_settle_unknown_payment(self, db_session):
        """Test settling a missing payment"""
        with pytest.raises(NotFoundError):
            await PaymentService(db_session).settle(8080)


class TestTerminalStates:
    """Tests for failed and cancelled payments"""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_fail_records_reason(self, db_session, active_loan):
        """Test the failure reason is appended to the notes"""
        service = PaymentService(db_session)
        payment = await service.record_payment(active_loan.id, "100.00", notes="Card ending 4242")

        failed = await service.fail(payment.id, "insufficient funds")

        assert failed.status == PaymentStatus.FAILED
        assert failed.notes == "Card ending 4242\nFailed: insufficient funds"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_failed_payment_is_terminal(self, db_session, active_loan):
        """Test a failed payment cannot settle or be cancelled"""
        service = PaymentService(db_session)
        payment = await service.record_payment(active_loan.id, "100.00")
        payment_id = payment.id
        await service.fail(payment_id, "bounced")

        with pytest.raises(InvalidStateError):
            await service.settle(payment_id)
        with pytest.raises(InvalidStateError):
            await service.cancel(payment_id)

        payment = await service.get_payment(payment_id)
        assert payment.status == PaymentStatus.FAILED
        assert payment.notes == "Failed: bounced"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_cancel(self, db_session, active_loan):
        """Test a cancelled payment cannot settle"""
        service = PaymentService(db_session)
        payment = await service.record_payment(active_loan.id, "100.00")
        payment_id = payment.id

        cancelled = await service.cancel(payment_id)
        assert cancelled.status == PaymentStatus.CANCELLED

        with pytest.raises(InvalidStateError):
            await service.settle(payment_id)


class TestListing:
    """Tests for listing payments"""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_list_for_loan(self, db_session, active_loan):
        """Test payments are listed latest payment date first"""
        service = PaymentService(db_session)
        older = await service.record_payment(active_loan.id, "10.00", payment_date=datetime(2026, 1, 5))
        newer = await service.record_payment(active_loan.id, "20.00", payment_date=datetime(2026, 2, 5))

        payments = await service.list_for_loan(active_loan.id)

        assert [p.id for p in payments] == [newer.id, older.id]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_list_for_unknown_loan(self, db_session):
        """Test listing payments of a missing loan"""
        with pytest.raises(NotFoundError):
            await PaymentService(db_session).list_for_loan(999)
