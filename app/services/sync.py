"""Fetch lifecycle for one backend collection.

:class:`ResourceSync` is the single source of truth for a section's list:
it decides between the cache and the network, retries rate-limited reads
with backoff, normalises what comes back, and hands the result to the owner
of the content document.  It never lets a transport error escape; failures
end up in :attr:`ResourceSync.error` with stale data left in place.

Overlapping fetches follow a "last response wins" rule: every network fetch
takes a new generation number and anything belonging to an older generation
is discarded when it resolves.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

from pydantic import ValidationError

from app.models.base import Entity
from app.models.response import SyncState
from app.services.api_client import ApiClient, MalformedPayloadError, RateLimitedError, SyncError
from app.services.cache import DEFAULT_TTL, ResourceCache
from app.services.normalizer import normalize_entity
from app.services.resources import ResourceSpec
from app.services.retry import RetryPolicy

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)

Sleep = Callable[[float], Awaitable[Any]]


class ResourceSync(Generic[E]):
    def __init__(
        self,
        spec: ResourceSpec,
        client: ApiClient,
        *,
        storage_base_url: str = "",
        cache: Optional[ResourceCache] = None,
        retry_policy: Optional[RetryPolicy] = None,
        ttl: float = DEFAULT_TTL,
        on_change: Optional[Callable[[List[E]], None]] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.spec = spec
        self._client = client
        self._storage_base_url = storage_base_url
        self._cache = cache or ResourceCache(spec.name, clock=clock)
        self._retry_policy = retry_policy or RetryPolicy()
        self._ttl = ttl
        self._on_change = on_change
        self._sleep = sleep
        self._clock = clock

        self.data: List[E] = self._cache.get()[0]
        self.loading = False
        self.error: Optional[str] = None
        self.error_kind: Optional[str] = None
        self.attempt = 0
        self._generation = 0

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def cache(self) -> ResourceCache:
        return self._cache

    @property
    def storage_base_url(self) -> str:
        return self._storage_base_url

    # ------------------------------------------------------------------
    # Normalisation
    # ------------------------------------------------------------------

    def normalize(self, raw: Dict[str, Any]) -> E:
        """Validate one backend object into the section's model and resolve its URLs."""
        try:
            entity = self.spec.model.model_validate(raw)
        except ValidationError as exc:
            raise MalformedPayloadError(
                f"Unexpected {self.spec.name} item from the backend: {exc.error_count()} error(s)."
            ) from exc
        return normalize_entity(
            entity,
            self._storage_base_url,
            image_fields=self.spec.image_fields,
            html_fields=self.spec.html_fields,
        )

    # ------------------------------------------------------------------
    # Fetch lifecycle
    # ------------------------------------------------------------------

    async def fetch_data(self, force: bool = False) -> None:
        """Bring :attr:`data` up to date, from the cache when it is still fresh."""
        if not force and self._cache.is_fresh(self._clock(), self._ttl):
            logger.debug("Cache hit for %s", self.name)
            return

        self._generation += 1
        generation = self._generation
        self.attempt = 0
        self.loading = True
        try:
            await self._fetch(generation)
        finally:
            if generation == self._generation:
                self.loading = False

    async def _fetch(self, generation: int) -> None:
        # Retry budget is per fetch.
        attempt = 0
        while True:
            try:
                raw_items = await self._client.list(self.spec.endpoint)
                items = [self.normalize(raw) for raw in raw_items]
            except RateLimitedError as exc:
                if generation != self._generation:
                    return
                decision = self._retry_policy.decide(attempt)
                if not decision.should_retry:
                    self._fail(exc)
                    return
                attempt += 1
                self.attempt = attempt
                logger.warning(
                    "Rate limit hit for %s; retry %d/%d in %.1fs",
                    self.name,
                    attempt,
                    self._retry_policy.max_retries,
                    decision.delay,
                )
                await self._sleep(decision.delay)
                if generation != self._generation:
                    return
                continue
            except SyncError as exc:
                if generation == self._generation:
                    self._fail(exc)
                return

            if generation != self._generation:
                logger.debug("Discarding superseded %s response", self.name)
                return
            self._cache.set(items)
            self.error = None
            self.error_kind = None
            self.attempt = 0
            self.publish(items)
            logger.info("Fetched %d %s item(s)", len(items), self.name)
            return

    def _fail(self, exc: SyncError) -> None:
        self.error = f"Failed to fetch {self.name}: {exc.message}"
        self.error_kind = exc.kind
        logger.error("Error fetching %s: %s", self.name, exc.message)

    async def retry(self) -> None:
        """Clear the error and retry budget, then fetch from the network."""
        self.attempt = 0
        self.error = None
        self.error_kind = None
        await self.fetch_data(force=True)

    # ------------------------------------------------------------------
    # Local list updates (used by section controllers)
    # ------------------------------------------------------------------

    def publish(self, items: List[E]) -> None:
        """Show *items* and fold them into the content document; the cache is untouched."""
        self.data = list(items)
        if self._on_change is not None:
            self._on_change(self.data)

    def commit(self, items: List[E], cached: Optional[List[E]] = None) -> None:
        """Publish a list reconciled with the server and store it in the cache.

        *cached*, when given, is what the cache keeps instead of *items*: the same
        list without optimistic entries that the backend has not confirmed yet.
        """
        self._cache.set(items if cached is None else cached)
        self.publish(items)

    def state(self) -> SyncState:
        return SyncState(
            resource=self.name,
            items=[item.model_dump(mode="json") for item in self.data],
            loading=self.loading,
            error=self.error,
            error_kind=self.error_kind,
            last_fetched_at=self._cache.get()[1],
        )
