"""Editor forms: a local draft of one entity, validated before it is saved."""

import logging
from typing import Any, Dict, Generic, Optional, TypeVar, Union

from app.models.base import Entity, FileUpload
from app.services.controller import MutationResult, SectionController

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)

MAX_UPLOAD_BYTES = 2 * 1024 * 1024  # 2 MB
ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/jpg", "image/gif"}

REQUIRED_MESSAGE = "This field is required."


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


class EditorForm(Generic[E]):
    """Draft of one entity (new when *item* is omitted) bound to a section controller.

    Closing the form discards everything; nothing reaches the controller until
    :meth:`submit` passes validation.
    """

    def __init__(
        self,
        controller: SectionController[E],
        item: Optional[E] = None,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
    ) -> None:
        self._controller = controller
        self._max_upload_bytes = max_upload_bytes
        self.item_id: Optional[str] = item.id if item is not None else None
        self.draft: Dict[str, Any] = self._seed(item)
        self.files: Dict[str, FileUpload] = {}
        self.errors: Dict[str, str] = {}
        self._file_errors: Dict[str, str] = {}
        self.submitting = False
        self.closed = False
        self.saved: Optional[E] = None
        self.result: Optional[MutationResult] = None

    @property
    def spec(self):
        return self._controller.spec

    @property
    def is_new(self) -> bool:
        return self.item_id is None

    def _seed(self, item: Optional[E]) -> Dict[str, Any]:
        source = item if item is not None else self._controller.spec.model()
        return {name: value for name, value in dict(source).items() if name != "id"}

    def set_field(self, name: str, value: Any) -> None:
        if name == "id" or name not in self.spec.model.model_fields:
            raise ValueError(f"Unknown {self.spec.name} field '{name}'.")
        self.draft[name] = value
        self.errors.pop(name, None)

    def attach_file(self, field: str, upload: FileUpload) -> bool:
        """Hold *upload* for *field* until the next save; returns False when rejected."""
        if field not in self.spec.image_fields:
            raise ValueError(f"{self.spec.name} has no file field '{field}'.")
        if upload.size > self._max_upload_bytes:
            message = f"Image size must be less than {self._max_upload_bytes // (1024 * 1024)}MB"
        elif upload.content_type not in ALLOWED_IMAGE_TYPES:
            message = "Image must be JPEG, PNG, JPG, or GIF"
        else:
            self.files[field] = upload
            self._file_errors.pop(field, None)
            self.errors.pop(field, None)
            return True
        self._file_errors[field] = message
        self.errors[field] = message
        return False

    def preview(self, field: str) -> Union[FileUpload, str]:
        """What the form shows for an image field: the pending upload or the stored URL."""
        return self.files.get(field) or self.draft.get(field) or ""

    def validate(self) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        for field in self.spec.required_fields:
            if _is_blank(self.draft.get(field)):
                errors[field] = REQUIRED_MESSAGE
        if self.is_new:
            # An attached upload or an image URL both satisfy a required file.
            for field in self.spec.required_files:
                if field not in self.files and _is_blank(self.draft.get(field)):
                    errors[field] = REQUIRED_MESSAGE
        errors.update(self._file_errors)
        self.errors = errors
        return errors

    async def submit(self) -> bool:
        """Validate and save the draft; returns True once the backend has confirmed it."""
        if self.closed or self.submitting:
            return False
        if self.validate():
            return False

        payload = {**self.draft, **self.files}
        self.submitting = True
        try:
            if self.is_new:
                result = await self._controller.create(payload)
            else:
                result = await self._controller.update(self.item_id, payload)
        finally:
            self.submitting = False

        self.result = result
        if not result.ok:
            self.errors = dict(result.field_errors) or {"general": result.error or "Save failed."}
            logger.warning("Saving %s form failed: %s", self.spec.name, result.error)
            return False

        # The server-confirmed URL replaces the local preview.
        self.saved = result.item
        self.item_id = result.item.id
        self.draft = self._seed(result.item)
        self.files.clear()
        self.errors = {}
        return True

    def close(self) -> None:
        self.draft = {}
        self.files.clear()
        self.errors = {}
        self._file_errors.clear()
        self.closed = True
