"""Admin endpoints: section state, refresh/retry and optimistic mutations."""

import logging
from typing import Any, Dict, List, Mapping, NoReturn

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import get_settings
from app.models.request import StatusRequest
from app.models.response import MutationResponse, SectionSummary, SyncState
from app.services.controller import ActivatableController, MutationResult, SubmissionController
from app.services.dashboard import Dashboard
from app.services.forms import EditorForm

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter(prefix="/dashboard", tags=["dashboard"])

# MutationResult.error_kind -> HTTP status
_STATUS_BY_KIND = {
    "validation": 422,
    "authorization": 401,
    "conflict": 409,
    "not_found": 404,
    "unsupported": 405,
}


def get_dashboard(request: Request) -> Dashboard:
    dashboard = getattr(request.app.state, "dashboard", None)
    if dashboard is None:
        dashboard = Dashboard(get_settings())
        request.app.state.dashboard = dashboard
    return dashboard


def _section(dashboard: Dashboard, name: str):
    try:
        return dashboard.sync(name), dashboard.controller(name)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc.args[0]))


def _raise_failure(error: str, kind: str, field_errors: Mapping[str, str]) -> NoReturn:
    status = _STATUS_BY_KIND.get(kind, 502)
    raise HTTPException(
        status_code=status,
        detail={"error": error, "field_errors": dict(field_errors)},
    )


def _respond(result: MutationResult) -> MutationResponse:
    if not result.ok:
        _raise_failure(result.error or "Operation failed.", result.error_kind or "", result.field_errors)
    item = result.item.model_dump(mode="json") if result.item is not None else None
    return MutationResponse(ok=True, item=item)


async def _submit(form: EditorForm, body: Dict[str, Any]) -> MutationResponse:
    for name, value in body.items():
        try:
            form.set_field(name, value)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail={"error": str(exc), "field_errors": {name: str(exc)}})

    if await form.submit():
        return MutationResponse(ok=True, item=form.saved.model_dump(mode="json"))

    if form.result is None:
        # Blocked before reaching the backend: required fields missing.
        _raise_failure("Please fix the highlighted fields.", "validation", form.errors)
    _raise_failure(
        form.result.error or "Save failed.",
        form.result.error_kind or "",
        {k: v for k, v in form.errors.items() if k != "general"},
    )


# ---------------------------------------------------------------------------
# Section state
# ---------------------------------------------------------------------------

@router.get("/sections", response_model=List[SectionSummary], summary="List dashboard sections")
async def list_sections(dashboard: Dashboard = Depends(get_dashboard)) -> List[SectionSummary]:
    return [
        SectionSummary(resource=name, count=len(sync.data), loading=sync.loading, error=sync.error)
        for name, sync in dashboard.syncs.items()
    ]


@router.get("/sections/{name}", response_model=SyncState, summary="Show one section's items")
async def get_section(
    name: str,
    refresh: bool = False,
    dashboard: Dashboard = Depends(get_dashboard),
) -> SyncState:
    """Return the section's list, fetching it first unless the cache is still fresh.

    ``refresh=true`` bypasses the cache.  Fetch failures are reported in the
    ``error`` field while the previously known items stay visible.
    """
    sync, _ = _section(dashboard, name)
    await sync.fetch_data(force=refresh)
    return sync.state()


@router.post("/sections/{name}/retry", response_model=SyncState, summary="Retry a failed fetch")
async def retry_section(name: str, dashboard: Dashboard = Depends(get_dashboard)) -> SyncState:
    sync, _ = _section(dashboard, name)
    await sync.retry()
    return sync.state()


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

@router.post("/sections/{name}/items", response_model=MutationResponse, status_code=201)
@limiter.limit("30/minute")
async def create_item(
    request: Request,
    name: str,
    body: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
) -> MutationResponse:
    _section(dashboard, name)
    return await _submit(dashboard.form(name), body)


@router.put("/sections/{name}/items/{item_id}", response_model=MutationResponse)
@limiter.limit("30/minute")
async def update_item(
    request: Request,
    name: str,
    item_id: str,
    body: Dict[str, Any] = Body(...),
    dashboard: Dashboard = Depends(get_dashboard),
) -> MutationResponse:
    _section(dashboard, name)
    try:
        form = dashboard.form(name, item_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc.args[0]))
    return await _submit(form, body)


@router.delete("/sections/{name}/items/{item_id}", response_model=MutationResponse)
@limiter.limit("30/minute")
async def delete_item(
    request: Request,
    name: str,
    item_id: str,
    dashboard: Dashboard = Depends(get_dashboard),
) -> MutationResponse:
    _, controller = _section(dashboard, name)
    return _respond(await controller.delete(item_id))


@router.post("/sections/{name}/items/{item_id}/activate", response_model=MutationResponse)
@limiter.limit("30/minute")
async def activate_item(
    request: Request,
    name: str,
    item_id: str,
    dashboard: Dashboard = Depends(get_dashboard),
) -> MutationResponse:
    _, controller = _section(dashboard, name)
    if not isinstance(controller, ActivatableController):
        raise HTTPException(status_code=405, detail=f"Items of '{name}' cannot be activated.")
    return _respond(await controller.activate(item_id))


@router.post("/submissions/{item_id}/status", response_model=MutationResponse)
@limiter.limit("30/minute")
async def set_submission_status(
    request: Request,
    item_id: str,
    body: StatusRequest,
    dashboard: Dashboard = Depends(get_dashboard),
) -> MutationResponse:
    controller = dashboard.controller("submissions")
    if not isinstance(controller, SubmissionController):
        raise HTTPException(status_code=500, detail="Submissions section is misconfigured.")
    logger.info("Submission status change", extra={"id": item_id, "status": body.status})
    return _respond(await controller.set_status(item_id, body.status))
