"""
Access tokens and password hashes.

Tokens are HS256 JWTs signed with SECRET_KEY; the subject is the user id as a
string. Login and refresh live in the account service, which shares the key.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from fitpulse.config import settings


def hash_password(password: str) -> str:
    # bcrypt only reads the first 72 bytes
    return bcrypt.hashpw(password.encode("utf-8")[:72], bcrypt.gensalt()).decode("utf-8")


def create_access_token(user_id: int, email: str, expires_minutes: int | None = None) -> str:
    issued_at = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or settings.access_token_expire_minutes)
    claims = {"sub": str(user_id), "email": email, "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    """Verified claims; raises JWTError for bad signatures and expired tokens."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def user_id_from_token(token: str) -> int:
    subject = decode_token(token).get("sub")
    if not isinstance(subject, str) or not subject.isdigit():
        raise JWTError("Token subject is not a user id")
    return int(subject)
