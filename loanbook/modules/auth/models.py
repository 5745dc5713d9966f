from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey
from loanbook.core.clock import utcnow
from loanbook.core.database import Base, enum_column
import enum


class OtpMethod(str, enum.Enum):
    """OTP delivery channel"""
    EMAIL = "email"
    PHONE = "phone"


class SessionState(str, enum.Enum):
    """Derived session state; never persisted"""
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class Otp(Base):
    """One-time code issued for a login or verification request"""
    __tablename__ = "otps"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    
    # Delivery
    method = Column(enum_column(OtpMethod, "otp_method"), nullable=False)
    identifier = Column(String(255), nullable=False)
    
    # Secret
    code = Column(String(32), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Session(Base):
    """Authenticated session spawned by a verified OTP"""
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Unique: an OTP spawns at most one session
    otp_id = Column(Integer, ForeignKey("otps.id"), unique=True, nullable=True)
    
    # Credential
    jwt_token = Column(Text, unique=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    
    # Client fingerprint
    user_agent = Column(String(500), nullable=True)
    ip_address = Column(String(45), nullable=True)  # IPv6 compatible
    device_info = Column(Text, nullable=True)
    
    # Kill switch
    force_deactivation = Column(Boolean, default=False, nullable=False)
    
    # Activity
    last_active = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def state(self, now) -> SessionState:
        """Revocation is terminal and wins over expiry"""
        if self.force_deactivation:
            return SessionState.REVOKED
        if now >= self.expires_at:
            return SessionState.EXPIRED
        return SessionState.ACTIVE
