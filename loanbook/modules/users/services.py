from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import or_, select
from typing import List, Optional
import logging

from loanbook.core.clock import Clock, utcnow
from loanbook.core.exceptions import ConflictError, NotFoundError
from loanbook.core.repository import Repository
from loanbook.modules.auth.models import OtpMethod
from loanbook.modules.loans.models import Loan
from loanbook.modules.users.models import User
from loanbook.modules.users import schemas

logger = logging.getLogger(__name__)


class UserService:
    """Service layer for user accounts"""

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.users = Repository(db, User)

    async def create_user(self, user_data: schemas.UserCreate, is_agent: bool = False, is_admin: bool = False) -> User:
        """Register a new user; email, phone and fiscal id must be unused"""
        await self._ensure_unique(user_data.email, user_data.phone, user_data.fiscal_id)

        now = self.clock()
        try:
            user = await self.users.create(
                **user_data.model_dump(),
                is_agent=is_agent,
                is_admin=is_admin,
                created_at=now,
                updated_at=now
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"User {user.id} registered")
        return user

    async def get_user(self, user_id: int) -> User:
        user = await self.users.find_unique(id=user_id)
        if user is None or user.is_deleted:
            raise NotFoundError("User", user_id)
        return user

    async def find_by_identifier(self, method: OtpMethod, identifier: str) -> Optional[User]:
        """Look up a live user by the address an OTP is delivered to"""
        column = User.email if method == OtpMethod.EMAIL else User.phone
        return await self.users.find_first(column == identifier, User.is_deleted == False)  # noqa: E712

    async def update_profile(self, user_id: int, profile: schemas.UserProfileUpdate) -> User:
        """Partial update of the optional profile fields"""
        user = await self.get_user(user_id)
        changes = profile.model_dump(exclude_unset=True)
        if changes.get("fiscal_id") and changes["fiscal_id"] != user.fiscal_id:
            await self._ensure_unique(fiscal_id=changes["fiscal_id"])

        try:
            user = await self.users.update(user, **changes, updated_at=self.clock())
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return user

    async def list_borrowers(self, skip: int = 0, limit: int = 100) -> List[User]:
        """Live users holding at least one loan, by last name"""
        return await self.users.find_many(
            User.id.in_(select(Loan.user_id)),
            User.is_deleted == False,  # noqa: E712
            order_by=[User.last_name, User.id],
            skip=skip,
            limit=limit
        )

    async def update_borrower(self, user_id: int, data: schemas.BorrowerUpdate) -> User:
        """Staff update of a borrower; changed contact details must stay unique"""
        user = await self.get_user(user_id)
        changes = data.model_dump(exclude_unset=True)
        await self._ensure_unique(
            email=changes.get("email") if changes.get("email") != user.email else None,
            phone=changes.get("phone") if changes.get("phone") != user.phone else None,
            fiscal_id=changes.get("fiscal_id") if changes.get("fiscal_id") != user.fiscal_id else None
        )

        try:
            user = await self.users.update(user, **changes, updated_at=self.clock())
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Borrower {user_id} updated: {', '.join(sorted(changes)) or 'no changes'}")
        return user

    async def soft_delete(self, user_id: int) -> User:
        """Mark a user deleted; repeated calls are no-ops"""
        user = await self.users.find_unique(id=user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        if user.is_deleted:
            return user

        try:
            user = await self.users.update(user, is_deleted=True, updated_at=self.clock())
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"User {user_id} soft-deleted")
        return user

    async def _ensure_unique(
        self,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        fiscal_id: Optional[str] = None
    ) -> None:
        criteria = []
        if email:
            criteria.append(User.email == email)
        if phone:
            criteria.append(User.phone == phone)
        if fiscal_id:
            criteria.append(User.fiscal_id == fiscal_id)
        if not criteria:
            return

        existing = await self.users.find_first(or_(*criteria))
        if existing is None:
            return
        if email and existing.email == email:
            raise ConflictError("Email already registered")
        if phone and existing.phone == phone:
            raise ConflictError("Phone number already registered")
        raise ConflictError("Fiscal id already registered")
