"""Optimistic create/update/delete for one section's list.

A single :class:`SectionController` serves every entity type; the section's
:class:`~app.services.resources.ResourceSpec` supplies the model and endpoint.
Each mutation is applied to the visible list first, then sent to the backend.
On success the touched entry is replaced by the server's representation; on
failure only that entry is rolled back, so operations on other entries that
are in flight at the same time are left alone.

The cache only ever receives settled state: when one operation commits, the
optimistic changes of operations still waiting for the backend (temporary
entries, unconfirmed edits, removals) are undone in the cached copy.
"""

import logging
from types import MappingProxyType
from typing import Any, Dict, Generic, List, Mapping, NamedTuple, Optional, Set, Tuple, TypeVar

from pydantic import BaseModel, ValidationError

from app.models.base import ActivatableEntity, Entity, FileUpload
from app.models.submission import ALLOWED_TRANSITIONS, ContactSubmission
from app.services.api_client import ApiClient, MalformedPayloadError, SyncError, ValidationFailedError
from app.services.normalizer import is_temp_id, new_temp_id
from app.services.sync import ResourceSync

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)
A = TypeVar("A", bound=ActivatableEntity)

_NO_FIELD_ERRORS: Mapping[str, str] = MappingProxyType({})


class MutationResult(NamedTuple):
    ok: bool
    item: Optional[Any] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    field_errors: Mapping[str, str] = _NO_FIELD_ERRORS


def _index_of(items: List[E], item_id: str) -> int:
    for index, item in enumerate(items):
        if item.id == item_id:
            return index
    return -1


def _replace(items: List[E], target_id: str, entity: E) -> List[E]:
    """Put *entity* where *target_id* was, dropping any other entry with the same id."""
    result: List[E] = []
    placed = False
    for item in items:
        if item.id == target_id:
            if not placed:
                result.append(entity)
                placed = True
        elif entity.id is not None and item.id == entity.id:
            continue
        else:
            result.append(item)
    if not placed:
        result.append(entity)
    return result


def _without(items: List[E], target_id: str) -> List[E]:
    return [item for item in items if item.id != target_id]


def _model_field_errors(exc: ValidationError) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for entry in exc.errors():
        field = str(entry["loc"][0]) if entry.get("loc") else "general"
        errors.setdefault(field, entry.get("msg", "Invalid value."))
    return errors


class SectionController(Generic[E]):
    """Bridges one :class:`ResourceSync` to create/update/delete operations."""

    def __init__(self, sync: ResourceSync[E], client: ApiClient) -> None:
        self.sync = sync
        self._client = client
        self._pending: Set[str] = set()
        # target id -> {id: (index, last confirmed entity)} for entries the
        # in-flight operation has changed or removed
        self._confirmed: Dict[str, Dict[str, Tuple[int, E]]] = {}
        self.error: Optional[str] = None

    @property
    def spec(self):
        return self.sync.spec

    @property
    def items(self) -> List[E]:
        return self.sync.data

    def find(self, item_id: str) -> Optional[E]:
        index = _index_of(self.sync.data, item_id)
        return self.sync.data[index] if index >= 0 else None

    def is_busy(self, item_id: str) -> bool:
        """True while an operation on *item_id* is waiting for the backend."""
        return item_id in self._pending

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _payload(self, entity: E) -> Dict[str, Any]:
        """Fields to send for *entity*: everything but the id and unset values.

        Images already stored on the backend are not echoed back; only pending
        uploads and external URLs are sent.
        """
        storage_base = self.sync.storage_base_url
        fields: Dict[str, Any] = {}
        for name in type(entity).model_fields:
            if name == "id":
                continue
            value = getattr(entity, name)
            if value is None:
                continue
            if name in self.spec.image_fields and isinstance(value, str):
                if not value or (storage_base and value.startswith(storage_base)):
                    continue
            if isinstance(value, BaseModel) and not isinstance(value, FileUpload):
                value = value.model_dump(exclude_none=True)
            elif isinstance(value, list):
                value = [v.model_dump() if isinstance(v, BaseModel) else v for v in value]
            fields[name] = value
        return fields

    def _reconcile(self, raw: Optional[Dict[str, Any]], fallback: E) -> E:
        # A write may be acknowledged without echoing the entity back.
        if not raw or "id" not in raw:
            return fallback
        return self.sync.normalize(raw)

    def _without_uploads(self, entity: E, previous: E) -> E:
        """*entity* with pending uploads swapped for *previous*'s stored image."""
        update = {}
        for field in self.spec.image_fields:
            if isinstance(getattr(entity, field, None), FileUpload):
                stored = getattr(previous, field, "")
                update[field] = stored if isinstance(stored, str) else ""
        return entity.model_copy(update=update) if update else entity

    def _begin(self, target_id: str, changed: Optional[Dict[str, Tuple[int, E]]] = None) -> None:
        self._pending.add(target_id)
        self._confirmed[target_id] = changed or {}

    def _end(self, target_id: str) -> None:
        self._pending.discard(target_id)
        self._confirmed.pop(target_id, None)

    def _settled(self, items: List[E]) -> List[E]:
        """*items* with the optimistic changes of still-pending operations undone."""
        originals: Dict[str, Tuple[int, E]] = {}
        for changed in self._confirmed.values():
            for item_id, entry in changed.items():
                originals.setdefault(item_id, entry)

        settled = [
            originals[item.id][1] if item.id in originals else item
            for item in items
            if not is_temp_id(item.id)
        ]
        # Entries removed by a delete that is still in flight.
        for target_id, changed in self._confirmed.items():
            if target_id in changed and _index_of(settled, target_id) < 0:
                index, original = changed[target_id]
                settled.insert(min(index, len(settled)), original)
        return settled

    def _commit(self, items: List[E]) -> None:
        self.sync.commit(items, cached=self._settled(items))

    def _refuse(self, message: str, kind: str = "conflict") -> MutationResult:
        return MutationResult(False, error=message, error_kind=kind)

    def _guard(self, item_id: str) -> Optional[MutationResult]:
        if self.is_busy(item_id):
            return self._refuse(f"An operation on {self.spec.name} item {item_id} is already in progress.")
        if self.find(item_id) is None:
            return self._refuse(f"No {self.spec.name} item with id {item_id}.", "not_found")
        return None

    def _failure(self, action: str, exc: SyncError) -> MutationResult:
        self.error = f"Failed to {action} {self.spec.name} item: {exc.message}"
        logger.error("%s (%s)", self.error, exc.kind)
        field_errors = exc.field_errors if isinstance(exc, ValidationFailedError) else {}
        return MutationResult(
            False, error=self.error, error_kind=exc.kind, field_errors=dict(field_errors)
        )

    def _invalid(self, exc: ValidationError) -> MutationResult:
        return MutationResult(
            False,
            error=f"Invalid {self.spec.name} item.",
            error_kind="validation",
            field_errors=_model_field_errors(exc),
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, draft: Dict[str, Any]) -> MutationResult:
        temp_id = new_temp_id()
        try:
            optimistic = self.spec.model.model_validate({**draft, "id": temp_id})
        except ValidationError as exc:
            return self._invalid(exc)

        self._begin(temp_id)
        self.sync.publish([*self.sync.data, optimistic])
        try:
            raw = await self._client.create(self.spec.endpoint, self._payload(optimistic))
            if not raw or raw.get("id") in (None, ""):
                raise MalformedPayloadError("Backend did not return the created item's id.")
            saved = self.sync.normalize(raw)
        except SyncError as exc:
            self.sync.publish(_without(self.sync.data, temp_id))
            return self._failure("create", exc)
        finally:
            self._end(temp_id)

        self._commit(_replace(self.sync.data, temp_id, saved))
        self.error = None
        logger.info("Created %s item %s", self.spec.name, saved.id)
        return MutationResult(True, item=saved)

    async def update(self, item_id: str, draft: Dict[str, Any]) -> MutationResult:
        refused = self._guard(item_id)
        if refused:
            return refused
        index = _index_of(self.sync.data, item_id)
        current = self.sync.data[index]
        try:
            updated = self.spec.model.model_validate({**dict(current), **draft, "id": item_id})
        except ValidationError as exc:
            return self._invalid(exc)

        self._begin(item_id, {item_id: (index, current)})
        self.sync.publish(_replace(self.sync.data, item_id, updated))
        fallback = self._without_uploads(updated, current)
        try:
            raw = await self._client.update(self.spec.endpoint, item_id, self._payload(updated))
            saved = self._reconcile(raw, fallback)
        except SyncError as exc:
            self.sync.publish(_replace(self.sync.data, item_id, current))
            return self._failure("update", exc)
        finally:
            self._end(item_id)

        self._commit(_replace(self.sync.data, item_id, saved))
        if saved is fallback and fallback is not updated:
            # The upload was accepted but its URL is unknown until the next fetch.
            self.sync.cache.expire()
        self.error = None
        logger.info("Updated %s item %s", self.spec.name, item_id)
        return MutationResult(True, item=saved)

    async def delete(self, item_id: str) -> MutationResult:
        if is_temp_id(item_id):
            return self._refuse(f"{self.spec.name} item {item_id} is still being created.")
        refused = self._guard(item_id)
        if refused:
            return refused

        index = _index_of(self.sync.data, item_id)
        removed = self.sync.data[index]
        self._begin(item_id, {item_id: (index, removed)})
        self.sync.publish(_without(self.sync.data, item_id))
        try:
            await self._client.delete(self.spec.endpoint, item_id)
        except SyncError as exc:
            if self.find(item_id) is None:
                restored = list(self.sync.data)
                restored.insert(min(index, len(restored)), removed)
                self.sync.publish(restored)
            return self._failure("delete", exc)
        finally:
            self._end(item_id)

        self._commit(list(self.sync.data))
        self.error = None
        logger.info("Deleted %s item %s", self.spec.name, item_id)
        return MutationResult(True, item=removed)


class ActivatableController(SectionController[A]):
    """Sections where the backend keeps a single item active at a time."""

    async def activate(self, item_id: str) -> MutationResult:
        refused = self._guard(item_id)
        if refused:
            return refused
        current = self.find(item_id)
        flags = {item.id: item.active for item in self.sync.data}
        changed = {
            item.id: (index, item)
            for index, item in enumerate(self.sync.data)
            if item.active != (item.id == item_id)
        }

        self._begin(item_id, changed)
        self.sync.publish([item.with_active(item.id == item_id) for item in self.sync.data])
        try:
            raw = await self._client.action(self.spec.endpoint, item_id, "activate")
            saved = self._reconcile(raw, self._without_uploads(current.with_active(True), current))
        except SyncError as exc:
            self.sync.publish(
                [item.with_active(flags.get(item.id, item.active)) for item in self.sync.data]
            )
            return self._failure("activate", exc)
        finally:
            self._end(item_id)

        # Mirror the backend: activating one item deactivates every other one.
        reconciled = [
            saved if item.id == item_id else (item.with_active(False) if item.active else item)
            for item in self.sync.data
        ]
        self._commit(reconciled)
        self.error = None
        logger.info("Activated %s item %s", self.spec.name, item_id)
        return MutationResult(True, item=saved)


class SubmissionController(SectionController[ContactSubmission]):
    """Contact submissions are created by visitors; admins only move their status or delete them."""

    def _payload(self, entity: ContactSubmission) -> Dict[str, Any]:
        return {"status": entity.status}

    async def create(self, draft: Dict[str, Any]) -> MutationResult:
        return self._refuse("Contact submissions cannot be created from the dashboard.", "unsupported")

    async def update(self, item_id: str, draft: Dict[str, Any]) -> MutationResult:
        """Only the status of a submission changes, and only forward."""
        current = self.find(item_id)
        if current is None:
            return self._refuse(f"No submission with id {item_id}.", "not_found")
        status = draft.get("status", current.status)
        if status not in ALLOWED_TRANSITIONS.get(current.status, set()):
            return self._refuse(f"Cannot move a submission from {current.status} to {status}.")
        return await super().update(item_id, {"status": status})

    async def set_status(self, item_id: str, status: str) -> MutationResult:
        return await self.update(item_id, {"status": status})

    async def mark_as_read(self, item_id: str) -> MutationResult:
        return await self.set_status(item_id, "read")

    async def mark_as_replied(self, item_id: str) -> MutationResult:
        return await self.set_status(item_id, "replied")
