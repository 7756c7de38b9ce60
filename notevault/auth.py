"""
Authentication for the vault API.

A single shared credential is exchanged for a JWT (HS256) that every other
route requires as a bearer token.

Dependencies:
- passlib[bcrypt] - optional hashed storage of the shared password
- python-jose[cryptography] - JWT token generation/validation
"""

import hmac
import logging
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Dict, Optional

from flask import current_app, g, request
from jose import JWTError, jwt
from passlib.context import CryptContext

from .errors import Unauthorized

log = logging.getLogger(__name__)

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_credentials(username: str, password: str,
                       expected_username: str, expected_password: str) -> bool:
    """
    Check a login attempt against the configured credential.

    ``expected_password`` may be plain text or a hash recognised by
    ``pwd_context`` (e.g. ``$2b$12$...``); both comparisons are constant-time.
    """
    if not isinstance(username, str) or not isinstance(password, str):
        return False
    user_ok = hmac.compare_digest(username.encode(), expected_username.encode())
    if pwd_context.identify(expected_password, required=False):
        pass_ok = pwd_context.verify(password, expected_password)
    else:
        pass_ok = hmac.compare_digest(password.encode(), expected_password.encode())
    return user_ok and pass_ok


def create_access_token(subject: str, secret: str, expires_delta: timedelta) -> str:
    """
    Create a signed JWT access token.

    Token payload:
        {"sub": "<username>", "iat": <issued>, "exp": <expiry>}
    """
    now = datetime.now(timezone.utc)
    to_encode = {"sub": subject, "iat": now, "exp": now + expires_delta}
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def decode_access_token(token: str, secret: str) -> Optional[Dict[str, Any]]:
    """Return the payload of a valid token, or None if invalid or expired."""
    try:
        return jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        # Invalid signature, expired token, or malformed token
        return None


def bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_auth(view):

    @wraps(view)
    def wrapper(*args, **kwargs):
        token = bearer_token()
        if token is None:
            raise Unauthorized("Authentication required")
        payload = decode_access_token(token, current_app.config["JWT_SECRET"])
        if payload is None:
            raise Unauthorized("Invalid or expired token")
        g.user = payload.get("sub")
        return view(*args, **kwargs)

    return wrapper
