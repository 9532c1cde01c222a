"""
Caller identity resolution.

Every protected endpoint receives an explicit `Identity` built from the
`Authorization: Bearer <token>` header. The admin token from settings maps
to the admin role; any other token is looked up in the access_codes table.
Services never read who is calling from global state, the identity is
passed into them.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from starlette.requests import Request

from app.core.config import settings
from app.core.database import get_db
from app.core.logging import get_logger
from app.models import AccessCode, Role

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """Who is calling: a role plus the team a player code is bound to."""
    role: str
    team_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def can_access_team(self, team_id: str) -> bool:
        return self.is_admin or (self.team_id is not None and self.team_id == team_id)


def resolve_token(token: str, db: Session) -> Optional[Identity]:
    """Map a bearer token to an Identity, or None if it is unknown."""
    if settings.ADMIN_TOKEN and token == settings.ADMIN_TOKEN:
        return Identity(role=Role.ADMIN)

    access_code = db.query(AccessCode).filter(AccessCode.code == token).first()
    if access_code is None:
        return None

    if access_code.role == Role.ADMIN:
        return Identity(role=Role.ADMIN)
    return Identity(role=Role.PLAYER, team_id=access_code.team_id)


def get_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_db),
) -> Identity:
    """
    Resolve the caller identity from the Authorization header.

    Raises:
        HTTPException: 401 if the token is missing or unknown
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    identity = resolve_token(credentials.credentials, db)
    if identity is None:
        logger.warning(f"Invalid token attempt from {request.client.host if request.client else 'unknown'}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return identity


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    """Dependency for admin-only endpoints."""
    if not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return identity


def ensure_team_access(identity: Identity, team_id: str) -> None:
    """Raise 403 unless the caller is an admin or a player of `team_id`."""
    if not identity.can_access_team(team_id):
        logger.warning(f"Team access denied: role={identity.role} team={identity.team_id} target={team_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden - You can only manage screenshots for your own team",
        )
