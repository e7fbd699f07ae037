"""Owner of the shared :class:`ContentDocument`.

Section controllers and sync hooks never assign the document directly; they
all go through :meth:`ContentStore.update_content`, the single writer path.
"""

import logging
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from app.models.content import ContentDocument, default_document
from app.models.submission import ContactSubmission
from app.services.cache import SnapshotStore

logger = logging.getLogger(__name__)

_SNAPSHOT_KEY = "content"

Listener = Callable[[ContentDocument], None]


class ContentStore:
    def __init__(
        self,
        document: Optional[ContentDocument] = None,
        store: Optional[SnapshotStore] = None,
    ) -> None:
        self._store = store
        self._listeners: List[Listener] = []
        self.submissions: List[ContactSubmission] = []
        self._document = document or self._load_snapshot() or default_document()

    def _load_snapshot(self) -> Optional[ContentDocument]:
        if self._store is None:
            return None
        raw = self._store.load(_SNAPSHOT_KEY)
        if raw is None:
            return None
        try:
            return ContentDocument.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Discarding invalid content snapshot: %s", exc)
            return None

    @property
    def document(self) -> ContentDocument:
        return self._document

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def update_content(self, document: ContentDocument) -> None:
        """Replace the whole document and notify subscribers."""
        self._document = document
        if self._store is not None:
            # Pending uploads serialize as empty images.
            self._store.save(_SNAPSHOT_KEY, document.model_dump(mode="json"))
        for listener in self._listeners:
            listener(document)

    def merge(self, **sections: Any) -> ContentDocument:
        """Replace the named top-level sections, keeping the rest of the document."""
        document = self._document.model_copy(update=sections)
        self.update_content(document)
        return document

    def update_submissions(self, submissions: List[ContactSubmission]) -> None:
        self.submissions = list(submissions)
