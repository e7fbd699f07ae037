"""Data normalisation: image URL resolution, rich-text cleanup, temporary ids."""

import uuid
from typing import Iterable, TypeVar
from urllib.parse import urljoin, urlparse

from app.models.base import Entity
from app.services.sanitizer import clean_html

E = TypeVar("E", bound=Entity)

TEMP_ID_PREFIX = "tmp-"

_ABSOLUTE_SCHEMES = {"http", "https", "data", "blob"}


def resolve_image_url(value: str, base_url: str) -> str:
    """Return an absolute URL for an image reference returned by the backend.

    Empty strings stay empty, absolute URLs are returned unchanged, and
    relative storage paths are prefixed with *base_url*.
    """
    value = value.strip()
    if not value:
        return ""
    if value.startswith("//") or urlparse(value).scheme in _ABSOLUTE_SCHEMES:
        return value
    return urljoin(base_url.rstrip("/") + "/", value.lstrip("/"))


def normalize_entity(
    entity: E,
    storage_base_url: str,
    image_fields: Iterable[str] = (),
    html_fields: Iterable[str] = (),
) -> E:
    """Return a copy of *entity* with image paths resolved and rich text cleaned.

    Pending uploads (non-string image values) are left untouched.
    """
    update = {}
    for field in image_fields:
        value = getattr(entity, field, None)
        if isinstance(value, str):
            resolved = resolve_image_url(value, storage_base_url)
            if resolved != value:
                update[field] = resolved
    for field in html_fields:
        value = getattr(entity, field, None)
        if isinstance(value, str) and value:
            cleaned = clean_html(value)
            if cleaned != value:
                update[field] = cleaned
    return entity.model_copy(update=update) if update else entity


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}"


def is_temp_id(item_id: str | None) -> bool:
    return bool(item_id) and str(item_id).startswith(TEMP_ID_PREFIX)
