"""Password hashing and token helpers.

Hashing is delegated to passlib and signing to PyJWT; this module only
fixes the schemes and payload shapes used across the application.
"""

from datetime import datetime, timedelta, timezone
import hashlib
import secrets
from typing import Tuple

from passlib.context import CryptContext
import jwt

from .config import settings

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return PWD_CTX.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    """Return True when `password` matches `hashed`.

    Malformed hashes are treated as a mismatch rather than an error.
    """
    try:
        return PWD_CTX.verify(password, hashed)
    except ValueError:
        return False


def create_access_token(student_id: int, email: str) -> str:
    """Return a signed JWT carrying `student_id` and `email`."""
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
    payload = {"student_id": student_id, "email": email, "exp": int(expire.timestamp())}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and verify a JWT token.

    Raises `jwt.ExpiredSignatureError` or `jwt.InvalidTokenError`; the
    HTTP dependency in `auth` turns those into 401 responses.
    """
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])


def hash_recovery_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def new_recovery_token() -> Tuple[str, str]:
    """Return an opaque url-safe token and the digest to persist."""
    token = secrets.token_urlsafe(32)
    return token, hash_recovery_token(token)
