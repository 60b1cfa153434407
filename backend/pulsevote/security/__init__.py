from typing import FrozenSet, Literal, Optional, Tuple

from fastapi import Depends, HTTPException, Request, status

from pulsevote.security.tokens import InvalidToken, decode_access_token

Role = Literal["admin", "manager", "user"]
RoleClaim = Tuple[Optional[int], str]


class Principal:
    """The caller as described by a verified session token."""

    def __init__(self, user_id: int, email: str, claims: FrozenSet[RoleClaim]):
        self.user_id = user_id
        self.email = email
        self.claims = claims

    @property
    def roles(self) -> FrozenSet[str]:
        """Global roles only; organisation-scoped claims never pass a global gate."""
        return frozenset(role for org, role in self.claims if org is None)

    def has_role(self, *roles: str) -> bool:
        return not self.roles.isdisjoint(roles)

    @property
    def is_admin(self) -> bool:
        return self.has_role("admin")


def _parse_token(token: str) -> Optional[Principal]:
    try:
        payload = decode_access_token(token)
    except InvalidToken:
        return None
    claims = frozenset((entry.get("organisation_id"), entry["role"]) for entry in payload["roles"])
    return Principal(user_id=int(payload["sub"]), email=payload["email"], claims=claims)


def get_current_user(request: Request) -> Principal:
    auth = request.headers.get("authorization", "")
    parts = auth.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        principal = _parse_token(parts[1])
        if principal is not None:
            return principal
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthenticated")


def require_role(*needs: Role):
    """Dependency factory: the caller must hold at least one of ``needs``."""

    def _dep(user: Principal = Depends(get_current_user)) -> Principal:
        if not user.has_role(*needs):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")
        return user

    return _dep
