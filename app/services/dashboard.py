"""Wires every section of the admin dashboard to one HTTP client and one content store."""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from app.config import Settings
from app.services.api_client import ApiClient
from app.services.cache import ResourceCache, SnapshotStore
from app.services.content_store import ContentStore
from app.services.controller import ActivatableController, SectionController, SubmissionController
from app.services.forms import EditorForm
from app.services.resources import SECTIONS, ResourceSpec
from app.services.retry import RetryPolicy
from app.services.sync import ResourceSync, Sleep

logger = logging.getLogger(__name__)

_CONTROLLERS = {
    "list": SectionController,
    "activatable": ActivatableController,
    "submissions": SubmissionController,
}


class Dashboard:
    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        sections: Optional[Dict[str, ResourceSpec]] = None,
    ) -> None:
        self.settings = settings
        self.client = ApiClient(
            settings.api_base_url,
            token=lambda: settings.api_token,
            timeout=settings.request_timeout,
            transport=transport,
        )
        store = SnapshotStore(settings.snapshot_dir) if settings.snapshot_dir else None
        self.content = ContentStore(store=store)
        self.syncs: Dict[str, ResourceSync] = {}
        self.controllers: Dict[str, SectionController] = {}

        for spec in (sections or SECTIONS).values():
            cache = ResourceCache(
                spec.name,
                clock=clock,
                store=store,
                serialize=lambda items: [item.model_dump(mode="json") for item in items],
                deserialize=self._deserializer(spec),
            )
            sync = ResourceSync(
                spec,
                self.client,
                storage_base_url=settings.storage_base_url,
                cache=cache,
                retry_policy=RetryPolicy(
                    max_retries=settings.max_retries,
                    base_delay=settings.retry_base_delay,
                    jitter_ratio=settings.retry_jitter_ratio,
                ),
                ttl=settings.cache_ttl,
                on_change=self._merger(spec),
                sleep=sleep,
                clock=clock,
            )
            self.syncs[spec.name] = sync
            self.controllers[spec.name] = _CONTROLLERS[spec.kind](sync, self.client)

    @staticmethod
    def _deserializer(spec: ResourceSpec) -> Callable[[List[Any]], List[Any]]:
        def deserialize(raw: List[Any]) -> List[Any]:
            # pydantic's ValidationError is a ValueError, which the cache handles.
            return [spec.model.model_validate(item) for item in raw]

        return deserialize

    def _merger(self, spec: ResourceSpec) -> Callable[[List[Any]], None]:
        if spec.merge is None:
            return self.content.update_submissions

        def merge(items: List[Any]) -> None:
            self.content.merge(**spec.merge(self.content.document, items))

        return merge

    def sync(self, name: str) -> ResourceSync:
        try:
            return self.syncs[name]
        except KeyError:
            raise KeyError(f"Unknown section '{name}'.") from None

    def controller(self, name: str) -> SectionController:
        try:
            return self.controllers[name]
        except KeyError:
            raise KeyError(f"Unknown section '{name}'.") from None

    def form(self, name: str, item_id: Optional[str] = None) -> EditorForm:
        """Open an editor for a new item, or for *item_id* when given."""
        controller = self.controller(name)
        item = None
        if item_id is not None:
            item = controller.find(item_id)
            if item is None:
                raise KeyError(f"No {name} item with id {item_id}.")
        return EditorForm(controller, item, max_upload_bytes=self.settings.max_upload_bytes)

    async def load_all(self, force: bool = False) -> None:
        """Fetch every section; a slow or failing section does not hold up the others."""
        await asyncio.gather(*(sync.fetch_data(force) for sync in self.syncs.values()))
        failed = [name for name, sync in self.syncs.items() if sync.error]
        if failed:
            logger.warning("Sections failed to load: %s", ", ".join(failed))

    async def aclose(self) -> None:
        await self.client.aclose()
