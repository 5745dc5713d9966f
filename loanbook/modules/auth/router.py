from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from loanbook.core.database import get_db
from loanbook.core.dependencies import get_current_session, get_current_user
from loanbook.core.exceptions import NotFoundError, PermissionDeniedError
from loanbook.modules.auth import schemas
from loanbook.modules.auth.models import Session
from loanbook.modules.auth.services import AuthService
from loanbook.modules.users.models import User
from loanbook.modules.users.services import UserService

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def client_info(request: Request) -> schemas.ClientInfo:
    """Fingerprint of the calling client from request headers"""
    ip_address = request.headers.get("x-forwarded-for") or request.headers.get("x-real-ip")
    if not ip_address and request.client:
        ip_address = request.client.host
    return schemas.ClientInfo(
        user_agent=request.headers.get("user-agent"),
        ip_address=ip_address.split(",")[0].strip() if ip_address else None,
        device_info=request.headers.get("sec-ch-ua-platform"),
    )


@router.post("/otp", response_model=schemas.OtpRequestResponse, status_code=status.HTTP_201_CREATED)
async def request_otp(
    otp_request: schemas.OtpRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Request a one-time code.
    
    - Looks the user up by email or phone
    - Sends the code over that channel
    - Hands back a live unused code instead of sending another
    """
    user = await UserService(db).find_by_identifier(otp_request.method, otp_request.identifier)
    if user is None:
        raise NotFoundError("User", otp_request.identifier)

    otp, already_sent = await AuthService(db).request_otp(user.id, otp_request.method, otp_request.identifier)
    return schemas.OtpRequestResponse(
        otp_id=otp.id,
        method=otp.method,
        expires_at=otp.expires_at,
        status="otp-already-sent" if already_sent else "otp-sent",
    )


@router.post("/otp/{otp_id}/verify", response_model=schemas.SessionTokenResponse)
async def verify_otp(
    otp_id: int,
    verification: schemas.OtpVerifyRequest,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """Exchange a code for a session token"""
    session = await AuthService(db).verify_otp(otp_id, verification.code, client_info(request))
    return schemas.SessionTokenResponse(
        access_token=session.jwt_token,
        expires_at=session.expires_at,
        session=schemas.SessionResponse.model_validate(session),
    )


@router.post("/sign-out", response_model=schemas.SessionResponse)
async def sign_out(
    session: Session = Depends(get_current_session),
    db: AsyncSession = Depends(get_db)
):
    """Revoke the session used for this request"""
    return await AuthService(db).revoke_session(session.id)


@router.get("/sessions", response_model=List[schemas.SessionResponse])
async def list_sessions(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Active sessions of the current user"""
    return await AuthService(db).list_active_sessions(current_user.id)


@router.post("/sessions/{session_id}/revoke", response_model=schemas.SessionResponse)
async def revoke_session(
    session_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Revoke one of the user's sessions; admins may revoke any session"""
    target = await db.get(Session, session_id)
    if target is None:
        raise NotFoundError("Session", session_id)
    if target.user_id != current_user.id and not current_user.is_admin:
        raise PermissionDeniedError("You cannot revoke this session")
    return await AuthService(db).revoke_session(session_id)


@router.post("/logout-all", response_model=schemas.RevokeAllResponse)
async def logout_all_devices(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Logout from all devices.
    
    - Revokes every session of the current user
    - Requires a new OTP on all devices
    """
    revoked = await AuthService(db).revoke_all_sessions(current_user.id)
    return schemas.RevokeAllResponse(revoked=revoked)
