"""
Context API Routes
Upload documents into the project's vector store, poll their indexing
status, list and delete them.
"""
import logging

from fastapi import APIRouter, Depends, File, Request, Response, UploadFile
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.config import settings
from app.database import get_db
from app.exceptions import ConfigurationError
from app.models.project import Project
from app.rate_limiter import limiter, RateLimits
from app.services.context_indexing_service import ContextIndexingService, serialize_context
from app.utils.dependencies import CurrentUser, get_current_user, get_project_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["Contexts"])


@router.get("/{project_id}/contexts")
async def list_contexts(
    project: Project = Depends(get_project_or_404),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """List the project's context documents, newest first."""
    service = ContextIndexingService(db)
    return [serialize_context(c) for c in service.list_contexts(project.id)]


@router.post("/{project_id}/contexts/upload")
@limiter.limit(RateLimits.CONTEXT_UPLOAD)
async def upload_context(
    request: Request,
    response: Response,
    file: UploadFile = File(None),
    project: Project = Depends(get_project_or_404),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """
    Upload a context document and attach it to the project's vector store.

    The row is created first; if the upload or attach fails it ends up
    ``failed`` with the error recorded.
    """
    if file is None or not file.filename:
        raise ConfigurationError("file is required")

    content = await file.read()
    if len(content) > settings.MAX_FILE_SIZE:
        raise ConfigurationError(f"File too large (max {settings.MAX_FILE_SIZE // 1024 // 1024} MB)")

    service = ContextIndexingService(db)
    context = await run_in_threadpool(
        service.ingest_upload,
        project.id,
        file.filename,
        content,
        file.content_type,
    )
    return {"id": context.id, "status": context.status}


@router.get("/{project_id}/contexts/{context_id}/status")
@limiter.limit(RateLimits.CONTEXT_STATUS)
def context_status(
    request: Request,
    response: Response,
    context_id: str,
    project: Project = Depends(get_project_or_404),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Re-check indexing status with the provider and return it."""
    service = ContextIndexingService(db)
    return service.reconcile_status(project.id, context_id).to_dict()


@router.delete("/{project_id}/contexts/{context_id}")
def delete_context(
    context_id: str,
    project: Project = Depends(get_project_or_404),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Soft delete a context; remote file removal is best-effort."""
    ContextIndexingService(db).delete_context(project.id, context_id)
    return {"ok": True}
