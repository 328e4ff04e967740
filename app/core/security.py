"""Principal extraction from identity-provider tokens.

Tokens are issued by the user service; this service only verifies the
signature and trusts the ``sub`` and ``role`` claims it finds.
"""
from dataclasses import dataclass

import jwt

from app.config import Settings
from app.core.exceptions import UnauthorizedError

ROLES = ("user", "agent", "admin")


@dataclass(frozen=True)
class Principal:
    id: str
    role: str

    @property
    def can_list(self) -> bool:
        return self.role != "user"


def decode_principal(token: str, settings: Settings) -> Principal:
    """Decode a bearer token into a Principal, raising UnauthorizedError."""
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as e:
        raise UnauthorizedError("Invalid access token") from e

    subject = claims.get("sub") or claims.get("_id")
    if not subject:
        raise UnauthorizedError("Access token has no subject")

    role = str(claims.get("role") or "user").lower()
    if role not in ROLES:
        raise UnauthorizedError(f"Unknown role '{role}'")

    return Principal(id=str(subject), role=role)


def create_access_token(*, user_id: str, role: str, settings: Settings) -> str:
    """Issue a token for local tooling and tests."""
    payload = {"sub": str(user_id), "role": role}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
