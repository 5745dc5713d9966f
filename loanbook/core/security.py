from datetime import datetime
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from loanbook.core.config import settings
import secrets
import string
import uuid

OTP_ALPHABETS = {
    "numeric": string.digits,
    "alphanumeric": string.digits + string.ascii_uppercase,
}


def generate_otp(length: Optional[int] = None, alphabet: Optional[str] = None) -> str:
    """Generate a random OTP"""
    if length is None:
        length = settings.OTP_LENGTH
    charset = OTP_ALPHABETS[alphabet or settings.OTP_ALPHABET]
    return ''.join(secrets.choice(charset) for _ in range(length))


def codes_match(expected: str, provided: str) -> bool:
    """Constant-time comparison of an OTP code"""
    return secrets.compare_digest(expected.encode(), provided.encode())


def create_session_token(user_id: int, issued_at: datetime, expires_at: datetime) -> str:
    """Create the signed JWT stored on a session row"""
    to_encode: Dict[str, Any] = {
        "sub": str(user_id),
        "jti": uuid.uuid4().hex,
        "iat": issued_at,
        "exp": expires_at,
        "type": "session",
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_session_token(token: str, verify_exp: bool = True) -> Optional[Dict[str, Any]]:
    """Decode a session JWT; None when the signature or claims are invalid"""
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"verify_exp": verify_exp}
        )
    except JWTError:
        return None


def mask_email(email: str) -> str:
    """Mask email address"""
    if '@' not in email:
        return email
    
    username, domain = email.split('@')
    if len(username) <= 2:
        masked_username = username[0] + '*'
    else:
        masked_username = username[0] + '*' * (len(username) - 2) + username[-1]
    
    return f"{masked_username}@{domain}"


def mask_phone(phone: str) -> str:
    """Mask phone number showing only last 4 digits"""
    if len(phone) < 4:
        return "****"
    return f"******{phone[-4:]}"
