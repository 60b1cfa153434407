from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from jose import JWTError, jwt

from pulsevote.core.settings import get_settings

ROLE_NAMES = ("admin", "manager", "user")


class InvalidToken(Exception):
    """Raised when a token cannot be decoded or carries malformed claims."""


def _jwt_config() -> tuple[str, str]:
    settings = get_settings()
    return settings.jwt_secret, settings.jwt_algorithm


def role_claims(assignments: Iterable[Any]) -> List[Dict[str, Any]]:
    """Serialise role assignments (anything with organisation_id/role) into token claims."""
    claims = [{"organisation_id": a.organisation_id, "role": a.role} for a in assignments]
    # Global roles first, then by organisation, so tokens are stable.
    claims.sort(key=lambda c: (c["organisation_id"] is not None, c["organisation_id"] or 0, c["role"]))
    return claims


def create_access_token(
    user_id: int,
    email: str,
    roles: List[Dict[str, Any]],
    expires_delta: Optional[timedelta] = None,
) -> str:
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=get_settings().jwt_expire_minutes)
    to_encode = {
        "sub": str(user_id),
        "email": email,
        "roles": roles,
        "iat": now,
        "exp": now + expires_delta,
    }
    secret, algorithm = _jwt_config()
    return jwt.encode(to_encode, secret, algorithm=algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    secret, algorithm = _jwt_config()
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError as exc:
        raise InvalidToken(str(exc)) from exc

    sub = payload.get("sub")
    email = payload.get("email")
    roles = payload.get("roles")
    if not isinstance(sub, str) or not sub.isdigit():
        raise InvalidToken("bad subject")
    if not isinstance(email, str) or not isinstance(roles, list):
        raise InvalidToken("missing claims")
    for entry in roles:
        if not isinstance(entry, dict) or entry.get("role") not in ROLE_NAMES:
            raise InvalidToken("bad role claim")
        org = entry.get("organisation_id")
        if org is not None and not isinstance(org, int):
            raise InvalidToken("bad role claim")
    return payload


__all__ = [
    "ROLE_NAMES",
    "InvalidToken",
    "role_claims",
    "create_access_token",
    "decode_access_token",
]
