"""Password hashing and JWT helpers"""
import hashlib
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from jose import jwt

from app.config import get_settings

settings = get_settings()


def _pre_hash_password(password: str) -> bytes:
    """SHA256 digest keeps long passwords under bcrypt's 72-byte limit"""
    return hashlib.sha256(password.encode("utf-8")).digest()


def hash_password(password: str) -> str:
    """
    Hash a password (user accounts and guest comment passwords).

    Args:
        password: Plain text password

    Returns:
        bcrypt hash as a string
    """
    hashed = bcrypt.hashpw(_pre_hash_password(password), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its bcrypt hash"""
    try:
        return bcrypt.checkpw(
            _pre_hash_password(plain_password), hashed_password.encode("utf-8")
        )
    except ValueError:
        # malformed hash
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode (expects "sub")
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT
    """
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": datetime.utcnow() + expires_delta})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def verify_token(token: str) -> dict:
    """
    Decode and verify a JWT.

    Raises:
        JWTError: If the token is invalid or expired
    """
    return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
