"""
Integration API Routes
CRUD for a project's tracker / document-provider integrations and the live
connection test.
"""
import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.project import Project
from app.rate_limiter import limiter, RateLimits
from app.schemas.integration import IntegrationCreate, IntegrationUpdate
from app.services.connection_validator import get_connection_validator
from app.services.integration_registry import IntegrationRegistry, serialize_integration
from app.utils.dependencies import CurrentUser, get_current_user, get_project_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["Integrations"])


@router.get("/{project_id}/integrations")
async def list_integrations(
    project: Project = Depends(get_project_or_404),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """List a project's integrations, ordered by type."""
    registry = IntegrationRegistry(db)
    return [serialize_integration(i) for i in registry.list_integrations(project.id)]


@router.post("/{project_id}/integrations")
async def create_integration(
    body: IntegrationCreate,
    project: Project = Depends(get_project_or_404),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Create an integration. Active unless ``isActive`` is false."""
    registry = IntegrationRegistry(db)
    integration = registry.create(
        project.id,
        body.type,
        metadata=body.metadata,
        is_active=body.is_active,
        credentials_ref=body.credentials_ref,
    )
    return serialize_integration(integration)


@router.patch("/{project_id}/integrations/{integration_id}")
async def update_integration(
    integration_id: str,
    body: IntegrationUpdate,
    project: Project = Depends(get_project_or_404),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Update activation flag and/or metadata."""
    registry = IntegrationRegistry(db)
    integration = registry.update(
        project.id,
        integration_id,
        is_active=body.is_active,
        metadata=body.metadata,
        credentials_ref=body.credentials_ref,
    )
    return serialize_integration(integration)


@router.delete("/{project_id}/integrations/{integration_id}")
async def delete_integration(
    integration_id: str,
    project: Project = Depends(get_project_or_404),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Delete an integration. Stored credentials are kept."""
    IntegrationRegistry(db).delete(project.id, integration_id)
    return {"ok": True}


@router.post("/{project_id}/integrations/{integration_id}/test")
@limiter.limit(RateLimits.CONNECTION_TEST)
def test_integration(
    request: Request,
    response: Response,
    integration_id: str,
    project: Project = Depends(get_project_or_404),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """
    Test the integration against its tracker and activate it on success.

    A failed test leaves activation untouched and answers 400 (rejected or
    misconfigured) or 500 (network / decryption problem).
    """
    validator = get_connection_validator(db)
    result = validator.verify_and_activate(project.id, integration_id)
    return JSONResponse(status_code=result.status_code, content=result.to_dict())
