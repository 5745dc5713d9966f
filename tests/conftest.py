"""
Test configuration and fixtures for Loanbook backend tests.
"""
import pytest
from typing import AsyncGenerator
from decimal import Decimal
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession
from httpx import AsyncClient, ASGITransport

from loanbook.core.clock import utcnow
from loanbook.core.database import Database
from main import app


# ============================================================
# Clock
# ============================================================

class FrozenClock:
    """Controllable time source passed to services as ``clock``"""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta) -> datetime:
        self.current += timedelta(**delta)
        return self.current


@pytest.fixture
def clock() -> FrozenClock:
    """Clock frozen at the current second"""
    return FrozenClock(utcnow().replace(microsecond=0))


# ============================================================
# Database Fixtures
# ============================================================

@pytest.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """Fresh SQLite database file per test"""
    database = Database(url=f"sqlite+aiosqlite:///{tmp_path / 'loanbook_test.db'}", echo=False).connect()
    await database.create_all()

    yield database

    await database.dispose()


@pytest.fixture
def session_factory(database):
    return database.session_factory


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for each test"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(database) -> AsyncGenerator[AsyncClient, None]:
    """Create test client bound to the test database"""
    app.state.database = database

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    del app.state.database


# ============================================================
# User Fixtures
# ============================================================

async def _create_user(session_factory, **fields):
    from loanbook.modules.users.models import User

    async with session_factory() as session:
        user = User(**fields)
        session.add(user)
        await session.commit()
        await session.refresh(user)
    return user


@pytest.fixture
async def test_user(session_factory):
    """Create a borrower"""
    return await _create_user(
        session_factory,
        email="borrower@loanbook.app",
        phone="+15550000001",
        first_name="Test",
        last_name="Borrower",
        fiscal_id="FISCAL-001",
        country="US",
        credit_score=700
    )


@pytest.fixture
async def other_user(session_factory):
    """Create a second borrower"""
    return await _create_user(
        session_factory,
        email="other@loanbook.app",
        phone="+15550000002",
        first_name="Other",
        last_name="Borrower"
    )


@pytest.fixture
async def test_agent(session_factory):
    """Create a lender agent"""
    return await _create_user(
        session_factory,
        email="agent@loanbook.app",
        phone="+15550000009",
        first_name="Test",
        last_name="Agent",
        is_agent=True
    )


# ============================================================
# Auth Fixtures
# ============================================================

@pytest.fixture
def login(session_factory):
    """Return a coroutine that signs a user in and yields auth headers"""
    from loanbook.modules.auth.models import OtpMethod
    from loanbook.modules.auth.services import AuthService

    async def _login(user) -> dict:
        async with session_factory() as session:
            service = AuthService(session)
            otp, _ = await service.request_otp(user.id, OtpMethod.EMAIL, user.email)
            auth_session = await service.verify_otp(otp.id, otp.code)
        return {"Authorization": f"Bearer {auth_session.jwt_token}"}

    return _login


# ============================================================
# Loan Fixtures
# ============================================================

@pytest.fixture
async def pending_loan(session_factory, test_user, clock):
    """1000.00 at 10% over 12 months, awaiting both approvals"""
    from loanbook.modules.loans.services import LoanService

    async with session_factory() as session:
        loan = await LoanService(session, clock=clock).create(
            test_user.id, Decimal("1000.00"), Decimal("10.00"), 12, purpose="Working capital"
        )
    return loan


@pytest.fixture
async def active_loan(session_factory, pending_loan, clock):
    """The pending loan after both approvals"""
    from loanbook.modules.loans.models import ApprovalParty
    from loanbook.modules.loans.services import LoanService

    async with session_factory() as session:
        service = LoanService(session, clock=clock)
        await service.approve(pending_loan.id, ApprovalParty.US)
        loan = await service.approve(pending_loan.id, ApprovalParty.CUSTOMER)
    return loan
