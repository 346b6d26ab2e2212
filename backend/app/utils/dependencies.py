"""
FastAPI dependencies for authentication and project lookup.

Sessions are owned by the external identity provider; this service only
verifies the bearer token it issued and reads the subject.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.exceptions import NotFoundError
from app.models.project import Project

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated caller as described by the identity provider's token."""
    id: str
    email: Optional[str] = None
    role: Optional[str] = None


def decode_access_token(token: str) -> Optional[dict]:
    """Verify a bearer token. Returns the claims, or None if invalid."""
    try:
        return jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE,
        )
    except JWTError:
        return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    """
    Get the current authenticated user from the JWT in the Authorization header.

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or not credentials.credentials:
        raise credentials_exception

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id:
        raise credentials_exception

    return CurrentUser(id=str(user_id), email=payload.get("email"), role=payload.get("role"))


def get_project_or_404(project_id: str, db: Session = Depends(get_db)) -> Project:
    """Resolve the ``project_id`` path parameter or raise 404."""
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise NotFoundError("Project", project_id)
    return project
