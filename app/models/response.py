from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class SyncState(BaseModel):
    """Snapshot of one section's fetch lifecycle, as shown next to its list."""

    resource: str
    items: List[Any]
    loading: bool
    error: Optional[str] = None
    error_kind: Optional[str] = None
    last_fetched_at: Optional[float] = None


class SectionSummary(BaseModel):
    resource: str
    count: int
    loading: bool
    error: Optional[str] = None


class MutationResponse(BaseModel):
    ok: bool
    item: Optional[Any] = None
    error: Optional[str] = None
    field_errors: Dict[str, str] = {}


class LegalDocumentResponse(BaseModel):
    kind: str
    title: str
    html: str
    markdown: str
    """The sanitized HTML rendered as Markdown for plain-text channels."""
