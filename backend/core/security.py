from datetime import datetime, timedelta
from typing import Optional
import hashlib
import hmac
import secrets
from jose import JWTError, jwt
from fastapi.security import HTTPBearer
from core.config import settings
import logging

logger = logging.getLogger(__name__)

# auto_error is off so a missing header goes through the same 401 path as a bad token
bearer_scheme = HTTPBearer(auto_error=False)

def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {"sub": str(user_id), "exp": expire}
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt

def verify_token(token: str) -> Optional[dict]:
    """Verify and decode JWT token"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id: str = payload.get("sub")
        if user_id is None:
            return None
        return payload
    except JWTError as e:
        logger.debug(f"JWT decode failed: {e}")
        return None

def get_user_id_from_token(token: str) -> Optional[str]:
    """Extract user id from token"""
    payload = verify_token(token)
    if payload is None:
        return None
    return payload.get("sub")

def generate_refresh_secret() -> str:
    """Generate a raw refresh token: 64 random bytes, hex encoded"""
    return secrets.token_hex(64)

def hash_refresh_token(raw_token: str) -> str:
    """One-way hash stored in place of the raw refresh token"""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()

def generate_otp(length: Optional[int] = None) -> str:
    """Generate a numeric OTP, leading zeros allowed"""
    length = length or settings.OTP_LENGTH
    return f"{secrets.randbelow(10 ** length):0{length}d}"

def otp_matches(stored_code: str, submitted_code: str) -> bool:
    return hmac.compare_digest(str(stored_code).encode("utf-8"), str(submitted_code).encode("utf-8"))
