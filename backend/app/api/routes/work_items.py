"""
Work Item API Routes
Browse and fetch items from the project's active tracker.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.project import Project
from app.rate_limiter import limiter, RateLimits
from app.services.trackers import WorkItemQuery
from app.services.work_item_fetcher import WorkItemFetcher
from app.utils.dependencies import CurrentUser, get_current_user, get_project_or_404

router = APIRouter(prefix="/projects", tags=["Work Items"])


@router.get("/{project_id}/work-items")
@limiter.limit(RateLimits.WORK_ITEM_FETCH)
def list_work_items(
    request: Request,
    response: Response,
    source: str = Query("ado"),
    q: str = Query(""),
    types: Optional[List[str]] = Query(None, alias="type"),
    states: Optional[List[str]] = Query(None, alias="state"),
    assigned_to: Optional[List[str]] = Query(None, alias="assignedTo"),
    iterations: Optional[List[str]] = Query(None, alias="iteration"),
    sort_by: str = Query("ChangedDate", alias="sortBy"),
    sort_dir: str = Query("DESC", alias="sortDir"),
    page: int = Query(1),
    page_size: int = Query(25, alias="pageSize"),
    project: Project = Depends(get_project_or_404),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """One page of work items. Empty when no Azure DevOps integration is active."""
    query = WorkItemQuery(
        q=q,
        types=types or [],
        states=states or [],
        assigned_to=assigned_to or [],
        iterations=iterations or [],
        sort_by=sort_by,
        sort_dir=sort_dir,
        page=page,
        page_size=page_size,
    )
    return WorkItemFetcher(db).list_work_items(project.id, source, query).to_dict()


@router.get("/{project_id}/work-items/{source}/{item_id}")
@limiter.limit(RateLimits.WORK_ITEM_FETCH)
def get_work_item(
    request: Request,
    response: Response,
    source: str,
    item_id: str,
    project: Project = Depends(get_project_or_404),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Fetch one work item (``source`` is ``ado`` or ``jira``) in normalized form."""
    return WorkItemFetcher(db).fetch(project.id, source, item_id).to_dict()
