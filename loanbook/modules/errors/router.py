from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from typing import List, Optional

from loanbook.core.database import get_session_factory
from loanbook.core.dependencies import require_staff
from loanbook.modules.errors import schemas
from loanbook.modules.errors.models import ErrorSeverity
from loanbook.modules.errors.services import ErrorAuditService
from loanbook.modules.users.models import User

router = APIRouter(prefix="/api/v1/errors", tags=["errors"])

optional_token = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/otp", auto_error=False)


@router.post("", status_code=status.HTTP_202_ACCEPTED)
async def report_error(
    report: schemas.ErrorLogCreate,
    request: Request,
    token: Optional[str] = Depends(optional_token),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory)
):
    """
    Report a client-side error.
    
    - Attributed to the caller when a valid session token is sent
    - Always accepted; storage is best-effort
    """
    report = report.model_copy(update={
        "session_token": token,
        "user_id": None,
        "user_agent": report.user_agent or request.headers.get("user-agent"),
    })
    error_log = await ErrorAuditService(session_factory).record(report)
    return {"recorded": error_log is not None, "error_id": error_log.id if error_log else None}


@router.get("", response_model=List[schemas.ErrorLogResponse])
async def list_errors(
    severity: Optional[ErrorSeverity] = None,
    resolved: Optional[bool] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    current_user: User = Depends(require_staff)
):
    """Newest errors first"""
    return await ErrorAuditService(session_factory).list_errors(severity, resolved, limit)


@router.get("/unresolved", response_model=List[schemas.ErrorLogResponse])
async def list_unresolved_errors(
    severity: Optional[ErrorSeverity] = None,
    user_id: Optional[int] = None,
    oldest_first: bool = False,
    limit: int = Query(default=100, ge=1, le=1000),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    current_user: User = Depends(require_staff)
):
    """Open errors awaiting resolution"""
    error_filter = schemas.ErrorLogFilter(
        severity=severity, user_id=user_id, newest_first=not oldest_first, limit=limit
    )
    return [error_log async for error_log in ErrorAuditService(session_factory).list_unresolved(error_filter)]


@router.post("/{error_id}/resolve", response_model=schemas.ErrorLogResponse)
async def resolve_error(
    error_id: int,
    resolution: schemas.ErrorResolveRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    current_user: User = Depends(require_staff)
):
    """Mark an error resolved"""
    return await ErrorAuditService(session_factory).resolve(error_id, current_user.id, resolution.resolution)
