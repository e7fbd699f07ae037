"""Building blocks shared by every synced entity model."""

from abc import abstractmethod
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer


def _coerce_id(value: Any) -> Any:
    # Backends hand out integer primary keys; ids are strings locally.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def _none_to_empty(value: Any) -> Any:
    return "" if value is None else value


def _pending_upload_as_empty(value: Any) -> Any:
    # A pending upload has no URL yet; JSON consumers see an empty image.
    return "" if isinstance(value, FileUpload) else value


EntityId = Annotated[str, BeforeValidator(_coerce_id)]


class FileUpload(BaseModel):
    """An in-memory binary handle waiting to be uploaded with the next write."""

    filename: str
    content: bytes = Field(repr=False, exclude=True)
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


# Empty string, absolute URL, relative storage path, or a pending upload.
ImageRef = Annotated[
    Union[FileUpload, str],
    BeforeValidator(_none_to_empty),
    PlainSerializer(_pending_upload_as_empty, when_used="json"),
]


class Entity(BaseModel):
    """Base class for every list item the backend persists."""

    id: Optional[EntityId] = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ActivatableEntity(Entity):
    """An entity type of which the backend keeps at most one item active."""

    @property
    @abstractmethod
    def active(self) -> bool: ...

    @abstractmethod
    def with_active(self, flag: bool) -> "ActivatableEntity": ...


class FlagActivatable(ActivatableEntity):
    is_active: bool = False

    @property
    def active(self) -> bool:
        return self.is_active

    def with_active(self, flag: bool) -> "FlagActivatable":
        return self.model_copy(update={"is_active": flag})


class StatusActivatable(ActivatableEntity):
    status: Literal["active", "inactive"] = "inactive"

    @property
    def active(self) -> bool:
        return self.status == "active"

    def with_active(self, flag: bool) -> "StatusActivatable":
        return self.model_copy(update={"status": "active" if flag else "inactive"})
