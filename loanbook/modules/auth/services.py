"""
Identity & session management.

Users authenticate with a one-time code. A verified code spawns exactly one
session whose JWT is the bearer credential. Session validity is derived:
a session is usable while it is not force-deactivated and ``now`` is before
``expires_at``. Revocation is terminal.
"""
from sqlalchemy import exists
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from datetime import timedelta
from typing import List, Optional, Tuple
import logging

from loanbook.core.clock import Clock, utcnow
from loanbook.core.config import settings
from loanbook.core.exceptions import (
    AlreadyUsedError,
    ExpiredError,
    InvalidCodeError,
    NotFoundError,
    SessionExpiredError,
    SessionRevokedError,
)
from loanbook.core.repository import Repository
from loanbook.core.security import codes_match, create_session_token, decode_session_token, generate_otp
from loanbook.modules.auth.models import Otp, OtpMethod, Session, SessionState
from loanbook.modules.auth.schemas import ClientInfo
from loanbook.modules.notifications.services import OtpDispatcher
from loanbook.modules.users.models import User

logger = logging.getLogger(__name__)


class AuthService:
    """Issues OTPs and manages the sessions they spawn"""

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock = utcnow,
        dispatcher: Optional[OtpDispatcher] = None
    ):
        self.db = db
        self.clock = clock
        self.dispatcher = dispatcher or OtpDispatcher()
        self.users = Repository(db, User)
        self.otps = Repository(db, Otp)
        self.sessions = Repository(db, Session)

    async def request_otp(self, user_id: int, method: OtpMethod, identifier: str) -> Tuple[Otp, bool]:
        """
        Issue a short-lived code for the user and send it over the requested channel.

        A live code for the same user, channel and identifier that has not
        been exchanged yet is handed back without sending it again. Returns
        the OTP and whether it had already been sent.
        """
        user = await self.users.find_unique(id=user_id)
        if user is None or user.is_deleted:
            raise NotFoundError("User", user_id)

        now = self.clock()
        live = await self.otps.find_first(
            Otp.user_id == user_id,
            Otp.method == method,
            Otp.identifier == identifier,
            Otp.expires_at > now,
            ~exists().where(Session.otp_id == Otp.id),
            order_by=[Otp.created_at.desc(), Otp.id.desc()]
        )
        if live is not None:
            logger.info(f"OTP {live.id} for user {user_id} is still live, not resending")
            return live, True

        try:
            otp = await self.otps.create(
                user_id=user_id,
                method=method,
                identifier=identifier,
                code=generate_otp(),
                expires_at=now + timedelta(minutes=settings.OTP_EXPIRY_MINUTES),
                created_at=now
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"OTP {otp.id} issued to user {user_id} via {method.value}")
        await self.dispatcher.dispatch(otp)
        return otp, False

    async def verify_otp(self, otp_id: int, code: str, client: Optional[ClientInfo] = None) -> Session:
        """
        Exchange a valid code for a session.

        Checks run in order: unknown OTP, already used, expired, wrong code.
        The OTP row is locked for the duration, and the unique ``otp_id``
        column on sessions rejects a concurrent second exchange.
        """
        client = client or ClientInfo()
        try:
            otp = await self.otps.find_unique(id=otp_id, for_update=True)
            if otp is None:
                raise NotFoundError("OTP", otp_id)

            if await self.sessions.count(Session.otp_id == otp_id):
                raise AlreadyUsedError(otp_id)

            now = self.clock()
            if now >= otp.expires_at:
                raise ExpiredError(otp_id)

            if not codes_match(otp.code, code):
                logger.warning(f"Invalid code submitted for OTP {otp_id}")
                raise InvalidCodeError(otp_id)

            expires_at = now + timedelta(days=settings.SESSION_TTL_DAYS)
            session = await self.sessions.create(
                user_id=otp.user_id,
                otp_id=otp.id,
                jwt_token=create_session_token(otp.user_id, now, expires_at),
                expires_at=expires_at,
                user_agent=client.user_agent,
                ip_address=client.ip_address,
                device_info=client.device_info,
                force_deactivation=False,
                last_active=now,
                created_at=now,
                updated_at=now
            )
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise AlreadyUsedError(otp_id)
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Session {session.id} created for user {session.user_id} from OTP {otp_id}")
        return session

    async def validate_session(self, jwt_token: str) -> Session:
        """Resolve a bearer token to a live session and record activity"""
        if decode_session_token(jwt_token, verify_exp=False) is None:
            raise NotFoundError("Session", "for token")

        session = await self.sessions.find_unique(jwt_token=jwt_token)
        if session is None:
            raise NotFoundError("Session", "for token")

        now = self.clock()
        state = session.state(now)
        if state == SessionState.REVOKED:
            raise SessionRevokedError(session.id)
        if state == SessionState.EXPIRED:
            raise SessionExpiredError(session.id)

        try:
            session = await self.sessions.update(session, last_active=now, updated_at=now)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return session

    async def revoke_session(self, session_id: int) -> Session:
        """Force-deactivate a session; revoking twice is a no-op"""
        try:
            session = await self.sessions.find_unique(id=session_id, for_update=True)
            if session is None:
                raise NotFoundError("Session", session_id)

            if not session.force_deactivation:
                session = await self.sessions.update(
                    session, force_deactivation=True, updated_at=self.clock()
                )
                logger.info(f"Session {session_id} revoked")
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return session

    async def sign_out(self, jwt_token: str) -> Session:
        """Revoke the session carrying this token"""
        session = await self.sessions.find_unique(jwt_token=jwt_token)
        if session is None:
            raise NotFoundError("Session", "for token")
        return await self.revoke_session(session.id)

    async def revoke_all_sessions(self, user_id: int) -> int:
        """Revoke every session of a user that is not already revoked"""
        try:
            revoked = await self.sessions.update_many(
                Session.user_id == user_id,
                Session.force_deactivation == False,  # noqa: E712
                force_deactivation=True,
                updated_at=self.clock()
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Revoked {revoked} sessions for user {user_id}")
        return revoked

    async def list_active_sessions(self, user_id: int) -> List[Session]:
        """Sessions that are neither revoked nor expired, newest first"""
        return await self.sessions.find_many(
            Session.user_id == user_id,
            Session.force_deactivation == False,  # noqa: E712
            Session.expires_at > self.clock(),
            order_by=[Session.created_at.desc(), Session.id.desc()]
        )
