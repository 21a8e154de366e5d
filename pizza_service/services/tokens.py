from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from jose import JWTError, jwt


class InvalidTokenError(ValueError):
    pass


@dataclass(frozen=True)
class SessionClaims:
    user_id: int
    generation: int
    roles: Tuple[Tuple[str, int], ...]
    issued_at: datetime
    expires_at: datetime
    token_id: str = field(default="")


def _roles_to_claim(roles: List[Tuple[str, int]]) -> List[Dict[str, Any]]:
    return [{"role": role, "scope": int(scope_id)} for role, scope_id in roles]


def _roles_from_claim(raw: Any) -> Tuple[Tuple[str, int], ...]:
    if not isinstance(raw, list):
        raise InvalidTokenError("roles claim must be a list")
    roles = []
    for entry in raw:
        if not isinstance(entry, dict) or "role" not in entry:
            raise InvalidTokenError("malformed role claim")
        try:
            roles.append((str(entry["role"]), int(entry.get("scope", 0) or 0)))
        except (TypeError, ValueError) as exc:
            raise InvalidTokenError("malformed role scope") from exc
    return tuple(roles)


class TokenCodec:
    """Signs and parses the stateless session token (compact JWT).

    Claims:
    - ``sub``: user id (string, python-jose insists on it)
    - ``gen``: revocation generation of the user at issuance
    - ``roles``: snapshot of the user's role grants
    - ``iat`` / ``exp``: issuance and expiry (epoch seconds)
    - ``jti``: random token id, only used for log correlation
    """

    def __init__(self, secret: str, algorithm: str = "HS256", expire_minutes: int = 60 * 24) -> None:
        if not secret:
            raise RuntimeError("JWT_SECRET_KEY is not configured")
        self._secret = secret
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def encode(
        self,
        user_id: int,
        generation: int,
        roles: List[Tuple[str, int]],
        now: Optional[datetime] = None,
    ) -> str:
        now = now or datetime.now(timezone.utc)
        exp = now + timedelta(minutes=self.expire_minutes)
        payload: Dict[str, Any] = {
            "sub": str(user_id),
            "gen": int(generation),
            "roles": _roles_to_claim(roles),
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def decode(self, token: str) -> SessionClaims:
        """Verify signature and expiry; raise ``InvalidTokenError`` otherwise."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except JWTError as exc:
            raise InvalidTokenError("invalid or expired token") from exc

        raw_sub = payload.get("sub")
        if not isinstance(raw_sub, str) or not raw_sub.strip().isdigit():
            raise InvalidTokenError("token has no user id")
        try:
            generation = int(payload["gen"])
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidTokenError("token is missing required claims") from exc

        return SessionClaims(
            user_id=int(raw_sub),
            generation=generation,
            roles=_roles_from_claim(payload.get("roles")),
            issued_at=issued_at,
            expires_at=expires_at,
            token_id=str(payload.get("jti") or ""),
        )
