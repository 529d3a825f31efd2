"""
Authentication and role checks for the marketplace API.

Passwords are stored as ``pbkdf2_sha256$<iterations>$<salt>$<hash>`` so
the work factor can be raised later without invalidating old hashes.
Access tokens are HS256 JWTs carrying the account e-mail in ``sub``
plus ``iat``/``exp`` timestamps.

Every account has exactly one marketplace role, seeded into the
``roles`` table by ``init_db``:

* ``ROLE_ADMIN`` (1) - platform administrators
* ``ROLE_CLIENT`` (2) - users who post jobs and fund budgets
* ``ROLE_DEVELOPER`` (3) - freelancers who deliver milestones
"""

import base64
import hashlib
import hmac
import json
import logging
import os
import time
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings


logger = logging.getLogger(__name__)

ROLE_ADMIN = 1
ROLE_CLIENT = 2
ROLE_DEVELOPER = 3

ROLE_NAMES = {
    ROLE_ADMIN: "ADMIN",
    ROLE_CLIENT: "CLIENT",
    ROLE_DEVELOPER: "DEVELOPER",
}
ROLE_IDS = {name: role_id for role_id, name in ROLE_NAMES.items()}

ALL_ROLES = (ROLE_ADMIN, ROLE_CLIENT, ROLE_DEVELOPER)

PASSWORD_SCHEME = "pbkdf2_sha256"
PASSWORD_ITERATIONS = 100_000


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

def _pbkdf2(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)


def hash_password(password: str) -> str:
    """Hash ``password`` with a fresh 16 byte salt."""
    salt = os.urandom(16)
    digest = _pbkdf2(password, salt, PASSWORD_ITERATIONS)
    return f"{PASSWORD_SCHEME}${PASSWORD_ITERATIONS}${salt.hex()}${digest.hex()}"


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Check ``plain_password`` against a hash produced by :func:`hash_password`."""
    if not hashed_password:
        return False
    parts = hashed_password.split("$")
    if len(parts) != 4 or parts[0] != PASSWORD_SCHEME:
        return False
    try:
        iterations = int(parts[1])
        salt = bytes.fromhex(parts[2])
        expected = bytes.fromhex(parts[3])
    except ValueError:
        return False
    return hmac.compare_digest(_pbkdf2(plain_password, salt, iterations), expected)


# ---------------------------------------------------------------------------
# Access tokens
# ---------------------------------------------------------------------------

def _encode_segment(obj: Dict[str, Any]) -> str:
    raw = json.dumps(obj, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _decode_segment(segment: str) -> Any:
    padded = segment + "=" * (-len(segment) % 4)
    return json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))


def _signature(signing_input: str) -> str:
    digest = hmac.new(settings.secret_key.encode("utf-8"), signing_input.encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def create_access_token(data: Dict[str, Any], expires_delta: Optional[int] = None) -> str:
    """Issue a signed token for the claims in ``data``.

    ``expires_delta`` is the lifetime in seconds and defaults to
    ``settings.access_token_expire_minutes``.
    """
    now = int(time.time())
    lifetime = expires_delta or settings.access_token_expire_minutes * 60
    claims = {**data, "iat": now, "exp": now + lifetime}
    signing_input = f"{_encode_segment({'alg': settings.algorithm, 'typ': 'JWT'})}.{_encode_segment(claims)}"
    return f"{signing_input}.{_signature(signing_input)}"


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the claims of a valid, unexpired token, else ``None``."""
    try:
        header_segment, claims_segment, signature = token.split(".")
    except ValueError:
        return None
    expected = _signature(f"{header_segment}.{claims_segment}")
    if not hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8")):
        return None
    try:
        header = _decode_segment(header_segment)
        claims = _decode_segment(claims_segment)
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(header, dict) or header.get("alg") != settings.algorithm:
        return None
    if not isinstance(claims, dict) or not isinstance(claims.get("exp"), int):
        return None
    if claims["exp"] < int(time.time()):
        return None
    return claims


# ---------------------------------------------------------------------------
# Request authentication
# ---------------------------------------------------------------------------

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _load_account(email: Optional[str]):
    from freelance_marketplace_api.app.core.db import get_connection
    conn = get_connection()
    try:
        return conn.execute(
            "SELECT id, role_id FROM users WHERE email = ? AND is_deleted = 0",
            (email,),
        ).fetchone()
    finally:
        conn.close()


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> Dict[str, Any]:
    """Resolve the caller from the bearer token.

    Returns the token claims plus ``user_id``, ``role_id`` and ``role``.
    The static admin token maps to an ADMIN with ``user_id`` ``None``.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")
    token = credentials.credentials

    static_token = settings.admin_static_token
    if static_token and hmac.compare_digest(token.encode("utf-8"), static_token.encode("utf-8")):
        return {"sub": "static_admin", "user_id": None, "role_id": ROLE_ADMIN, "role": ROLE_NAMES[ROLE_ADMIN]}

    claims = decode_access_token(token)
    if claims is None:
        raise _unauthorized("Invalid or expired token")
    account = _load_account(claims.get("sub"))
    if account is None:
        logger.info("Rejected token of missing or deleted account %s", claims.get("sub"))
        raise _unauthorized("User no longer exists")
    claims.update(
        user_id=account["id"],
        role_id=account["role_id"],
        role=ROLE_NAMES.get(account["role_id"]),
    )
    return claims


def require_roles(*role_ids: int) -> Callable[..., Dict[str, Any]]:
    """Dependency factory admitting only callers with one of ``role_ids``.

    Usage: ``Depends(require_roles(ROLE_CLIENT, ROLE_ADMIN))``.  Other
    roles get HTTP 403.
    """

    def _check_role(current_user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        if current_user.get("role_id") not in role_ids:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user

    return _check_role
