"""
Secret API Routes
Store, replace and remove a project's tracker credentials. Values are
never returned.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.exceptions import NotFoundError
from app.models.project import Project
from app.schemas.integration import SecretUpsert
from app.services.secret_service import SecretService, serialize_secret
from app.utils.dependencies import CurrentUser, get_current_user, get_project_or_404

router = APIRouter(prefix="/projects", tags=["Secrets"])


@router.post("/{project_id}/secrets")
async def upsert_secret(
    body: SecretUpsert,
    project: Project = Depends(get_project_or_404),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Create or replace the credentials for one provider."""
    secret = SecretService(db).upsert(project.id, body.provider, body.encrypted_value)
    return serialize_secret(secret)


@router.delete("/{project_id}/secrets/{provider}")
async def delete_secret(
    provider: str,
    project: Project = Depends(get_project_or_404),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Remove the credentials for one provider."""
    if not SecretService(db).delete(project.id, provider):
        raise NotFoundError("Secret", provider)
    return {"ok": True}
