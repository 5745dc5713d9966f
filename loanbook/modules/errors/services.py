"""
Error audit trail.

Recording is best-effort: it runs in its own session, outside whatever
transaction the failing operation was using, and it never raises. A failed
write is logged and reported as ``None``.
"""
from sqlalchemy import and_, or_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from typing import AsyncIterator, List, Optional, Tuple
import logging
import traceback

from loanbook.core.clock import Clock, utcnow
from loanbook.core.config import settings
from loanbook.core.exceptions import AlreadyResolvedError, LoanbookError, NotFoundError, ValidationError
from loanbook.core.repository import Repository
from loanbook.modules.auth.models import Session, SessionState
from loanbook.modules.errors.models import ErrorLog, ErrorSeverity
from loanbook.modules.errors.schemas import ErrorLogCreate, ErrorLogFilter
from loanbook.modules.users.models import User

logger = logging.getLogger(__name__)


class ErrorAuditService:
    """Records application errors and tracks their resolution"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], clock: Clock = utcnow):
        self.session_factory = session_factory
        self.clock = clock

    async def record(self, error: ErrorLogCreate) -> Optional[ErrorLog]:
        """Persist an error report; never raises"""
        logger.log(
            logging.ERROR if error.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.ERROR) else logging.WARNING,
            f"[{error.severity.value}] {error.name or 'Error'}: {error.message}"
        )
        try:
            async with self.session_factory() as db:
                session_id, user_id = await self._attribution(db, error)
                now = self.clock()
                error_log = await Repository(db, ErrorLog).create(
                    message=error.message,
                    name=error.name,
                    stack=error.stack,
                    code=error.code,
                    type=error.type,
                    severity=error.severity.value,
                    user_id=user_id,
                    session_id=session_id,
                    url=error.url,
                    method=error.method,
                    route=error.route,
                    user_agent=error.user_agent,
                    ip_address=error.ip_address,
                    error_metadata=error.metadata,
                    is_resolved=False,
                    created_at=now,
                    updated_at=now
                )
                await db.commit()
                return error_log
        except Exception:
            logger.exception(f"Failed to record error log: {error.message}")
            return None

    async def record_exception(
        self,
        exc: BaseException,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        **context
    ) -> Optional[ErrorLog]:
        """Record a raised exception with its traceback"""
        try:
            error = ErrorLogCreate(
                message=str(exc) or type(exc).__name__,
                name=type(exc).__name__,
                stack="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                code=getattr(exc, "code", None) if isinstance(exc, LoanbookError) else None,
                type="domain" if isinstance(exc, LoanbookError) else "unhandled",
                severity=severity,
                **context
            )
        except Exception:
            logger.exception(f"Could not build error report for {type(exc).__name__}")
            return None
        return await self.record(error)

    async def resolve(self, error_log_id: int, resolving_user_id: int, resolution: str) -> ErrorLog:
        """Close an error log; a resolved log cannot be resolved again"""
        async with self.session_factory() as db:
            error_logs = Repository(db, ErrorLog)
            try:
                error_log = await error_logs.find_unique(id=error_log_id, for_update=True)
                if error_log is None:
                    raise NotFoundError("Error log", error_log_id)
                if error_log.is_resolved:
                    raise AlreadyResolvedError(error_log_id)
                if await Repository(db, User).find_unique(id=resolving_user_id) is None:
                    raise NotFoundError("User", resolving_user_id)

                now = self.clock()
                error_log = await error_logs.update(
                    error_log,
                    is_resolved=True,
                    resolved_at=now,
                    resolved_by=resolving_user_id,
                    resolution=resolution,
                    updated_at=now
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(f"Error log {error_log_id} resolved by user {resolving_user_id}")
        return error_log

    async def list_unresolved(self, filter: Optional[ErrorLogFilter] = None) -> AsyncIterator[ErrorLog]:
        """
        Lazily iterate unresolved errors page by page.

        Pages are fetched with keyset pagination on (created_at, id), so
        resolving entries while iterating does not skip any.
        """
        filter = filter or ErrorLogFilter()
        page_size = filter.page_size or settings.ERROR_LOG_PAGE_SIZE
        criteria = [ErrorLog.is_resolved == False]  # noqa: E712
        if filter.severity is not None:
            criteria.append(ErrorLog.severity == filter.severity.value)
        if filter.user_id is not None:
            criteria.append(ErrorLog.user_id == filter.user_id)

        if filter.newest_first:
            order_by = [ErrorLog.created_at.desc(), ErrorLog.id.desc()]
        else:
            order_by = [ErrorLog.created_at.asc(), ErrorLog.id.asc()]

        yielded = 0
        last: Optional[Tuple] = None
        while True:
            page_criteria = list(criteria)
            if last is not None:
                page_criteria.append(self._after(last, filter.newest_first))

            async with self.session_factory() as db:
                page = await Repository(db, ErrorLog).find_many(
                    *page_criteria, order_by=order_by, limit=page_size
                )

            for error_log in page:
                if filter.limit is not None and yielded >= filter.limit:
                    return
                yield error_log
                yielded += 1

            if len(page) < page_size:
                return
            last = (page[-1].created_at, page[-1].id)

    async def list_errors(
        self,
        severity: Optional[ErrorSeverity] = None,
        resolved: Optional[bool] = None,
        limit: int = 100
    ) -> List[ErrorLog]:
        """Newest errors first, optionally filtered by severity and resolution"""
        if not 1 <= limit <= 1000:
            raise ValidationError("limit must be between 1 and 1000")

        criteria = []
        if severity is not None:
            criteria.append(ErrorLog.severity == severity.value)
        if resolved is not None:
            criteria.append(ErrorLog.is_resolved == resolved)

        async with self.session_factory() as db:
            return await Repository(db, ErrorLog).find_many(
                *criteria,
                order_by=[ErrorLog.created_at.desc(), ErrorLog.id.desc()],
                limit=limit
            )

    async def _attribution(self, db: AsyncSession, error: ErrorLogCreate) -> Tuple[Optional[int], Optional[int]]:
        """(session_id, user_id) from a live session token, else a known user id, else nulls"""
        if error.session_token:
            session = await Repository(db, Session).find_unique(jwt_token=error.session_token)
            if session is not None and session.state(self.clock()) == SessionState.ACTIVE:
                return session.id, session.user_id

        if error.user_id is not None:
            if await Repository(db, User).find_unique(id=error.user_id) is not None:
                return None, error.user_id

        return None, None

    @staticmethod
    def _after(last: Tuple, newest_first: bool):
        created_at, error_id = last
        if newest_first:
            return or_(
                ErrorLog.created_at < created_at,
                and_(ErrorLog.created_at == created_at, ErrorLog.id < error_id)
            )
        return or_(
            ErrorLog.created_at > created_at,
            and_(ErrorLog.created_at == created_at, ErrorLog.id > error_id)
        )
