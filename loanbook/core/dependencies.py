from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from loanbook.core.database import get_db
from loanbook.core.exceptions import NotFoundError, PermissionDeniedError
from loanbook.modules.auth.models import Session
from loanbook.modules.auth.services import AuthService
from loanbook.modules.users.models import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/otp", auto_error=False)


async def get_current_session(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> Session:
    """Validate the bearer token against the session table"""
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return await AuthService(db).validate_session(token)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user(
    session: Session = Depends(get_current_session),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get the user owning the current session"""
    user = await db.get(User, session.user_id)
    if user is None or user.is_deleted:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is no longer available",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def require_staff(
    current_user: User = Depends(get_current_user)
) -> User:
    """Ensure the user is an agent or admin"""
    if not current_user.is_staff:
        raise PermissionDeniedError("Agent or admin access required")
    return current_user
