"""Public read-only endpoints consumed by the marketing site."""

import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException

from app.models.content import ContentDocument
from app.models.response import LegalDocumentResponse
from app.routers.dashboard import get_dashboard
from app.services.dashboard import Dashboard
from app.services.sanitizer import clean_html, to_markdown

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/site", tags=["site"])

LegalKind = Literal["privacy", "terms", "disclaimer"]

_LEGAL_FIELDS = {
    "privacy": ("privacy_policies", "privacy_policy"),
    "terms": ("terms", "terms"),
    "disclaimer": ("disclaimers", "disclaimer"),
}


@router.get("/content", response_model=ContentDocument, summary="Current site content")
async def get_content(dashboard: Dashboard = Depends(get_dashboard)) -> ContentDocument:
    """Return the content document, refreshing any section whose cache has gone stale.

    Sections that fail to load keep their last known content.
    """
    await dashboard.load_all()
    return dashboard.content.document


@router.get("/legal/{kind}", response_model=LegalDocumentResponse, summary="Active legal document")
async def get_legal_document(
    kind: LegalKind,
    dashboard: Dashboard = Depends(get_dashboard),
) -> LegalDocumentResponse:
    section, field = _LEGAL_FIELDS[kind]
    await dashboard.sync(section).fetch_data()

    document = getattr(dashboard.content.document, field)
    if document is None:
        raise HTTPException(status_code=404, detail=f"No active {kind} document.")

    html = clean_html(document.content)
    return LegalDocumentResponse(
        kind=kind,
        title=document.title,
        html=html,
        markdown=to_markdown(html),
    )
