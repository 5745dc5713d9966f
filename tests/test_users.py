"""
Unit tests for User Service
"""
import pytest
from pydantic import ValidationError as SchemaValidationError

from loanbook.core.exceptions import ConflictError, NotFoundError
from loanbook.modules.auth.models import OtpMethod
from loanbook.modules.loans.services import LoanService
from loanbook.modules.users.schemas import BorrowerUpdate, UserCreate, UserProfileUpdate
from loanbook.modules.users.services import UserService


class TestUserSchemas:
    """Tests for registration payloads"""

    @pytest.mark.unit
    def test_contact_required(self):
        """Test registration needs an email or a phone"""
        with pytest.raises(SchemaValidationError):
            UserCreate(first_name="Nobody")

    @pytest.mark.unit
    def test_phone_only(self):
        """Test a phone number alone is enough"""
        user = UserCreate(phone="+15551234567")

        assert user.email is None


class TestUserService:
    """Tests for user accounts"""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_create_user(self, db_session, clock):
        """Test registration"""
        service = UserService(db_session, clock=clock)

        user = await service.create_user(UserCreate(email="new@loanbook.app", first_name="New"))

        assert user.id is not None
        assert user.is_agent is False
        assert user.is_admin is False
        assert user.is_deleted is False
        assert user.created_at == clock()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_create_agent(self, db_session):
        """Test staff flags"""
        user = await UserService(db_session).create_user(UserCreate(phone="+15557654321"), is_agent=True)

        assert user.is_staff is True

    @pytest.mark.integration
    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"email": "borrower@loanbook.app"},
        {"phone": "+15550000001"},
        {"email": "fresh@loanbook.app", "fiscal_id": "FISCAL-001"},
    ])
    async def test_create_duplicate(self, db_session, test_user, payload):
        """Test email, phone and fiscal id are unique"""
        with pytest.raises(ConflictError):
            await UserService(db_session).create_user(UserCreate(**payload))

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_find_by_identifier(self, db_session, test_user):
        """Test lookup by OTP channel address"""
        service = UserService(db_session)

        by_email = await service.find_by_identifier(OtpMethod.EMAIL, test_user.email)
        by_phone = await service.find_by_identifier(OtpMethod.PHONE, test_user.phone)
        missing = await service.find_by_identifier(OtpMethod.PHONE, test_user.email)

        assert by_email.id == test_user.id
        assert by_phone.id == test_user.id
        assert missing is None

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_update_profile(self, db_session, test_user):
        """Test only submitted fields change and the credit score is not self-service"""
        service = UserService(db_session)

        user = await service.update_profile(test_user.id, UserProfileUpdate(country="CA", credit_score=999))

        assert user.country == "CA"
        assert user.credit_score == 700
        assert user.first_name == "Test"
        assert "credit_score" not in UserProfileUpdate.model_fields

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_update_profile_fiscal_conflict(self, db_session, test_user, other_user):
        """Test a fiscal id taken by someone else is rejected"""
        with pytest.raises(ConflictError):
            await UserService(db_session).update_profile(other_user.id, UserProfileUpdate(fiscal_id="FISCAL-001"))

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_soft_delete(self, db_session, test_user):
        """Test deleted users disappear from lookups and deleting twice is a no-op"""
        service = UserService(db_session)

        await service.soft_delete(test_user.id)
        again = await service.soft_delete(test_user.id)

        assert again.is_deleted is True
        assert await service.find_by_identifier(OtpMethod.EMAIL, test_user.email) is None
        with pytest.raises(NotFoundError):
            await service.get_user(test_user.id)


class TestBorrowerManagement:
    """Tests for staff-side borrower management"""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_list_borrowers(self, db_session, pending_loan, test_user, other_user, test_agent):
        """Test only live users with a loan are listed, by last name"""
        zed = await UserService(db_session).create_user(UserCreate(email="zed@loanbook.app", last_name="Zimmer"))
        zed_id = zed.id
        await LoanService(db_session).create(zed_id, "500.00", "5.00", 6)
        gone = await UserService(db_session).create_user(UserCreate(email="gone@loanbook.app", last_name="Abbott"))
        gone_id = gone.id
        await LoanService(db_session).create(gone_id, "500.00", "5.00", 6)
        await UserService(db_session).soft_delete(gone_id)

        borrowers = await UserService(db_session).list_borrowers()

        assert [u.id for u in borrowers] == [test_user.id, zed_id]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_update_borrower_credit_score(self, db_session, test_user):
        """Test staff can set the credit score and contact details"""
        user = await UserService(db_session).update_borrower(
            test_user.id, BorrowerUpdate(credit_score=640, email="renamed@loanbook.app")
        )

        assert user.credit_score == 640
        assert user.email == "renamed@loanbook.app"
        assert user.phone == "+15550000001"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_update_borrower_keeps_own_contact(self, db_session, test_user):
        """Test resubmitting the borrower's own email is not a conflict"""
        user = await UserService(db_session).update_borrower(
            test_user.id, BorrowerUpdate(email=test_user.email, fiscal_id="FISCAL-001", country="MX")
        )

        assert user.country == "MX"

    @pytest.mark.integration
    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"email": "other@loanbook.app"},
        {"phone": "+15550000002"},
    ])
    async def test_update_borrower_conflict(self, db_session, test_user, other_user, payload):
        """Test contact details taken by someone else are rejected"""
        with pytest.raises(ConflictError):
            await UserService(db_session).update_borrower(test_user.id, BorrowerUpdate(**payload))

    @pytest.mark.unit
    @pytest.mark.parametrize("score", [-1, 1001])
    def test_credit_score_range(self, score):
        """Test the credit score is bounded"""
        with pytest.raises(SchemaValidationError):
            BorrowerUpdate(credit_score=score)
