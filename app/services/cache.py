"""Per-resource in-memory cache with a freshness window.

A :class:`ResourceCache` may be backed by a :class:`SnapshotStore`, a
directory of JSON files that survives restarts.  Snapshots are written through
on every :meth:`ResourceCache.set` and read back only to seed a cold cache.
A seeded cache carries no fetch timestamp, so it is never considered fresh:
the network stays the system of record and the snapshot is only shown until
the first successful fetch replaces it.
"""

import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300.0  # seconds

_KEY_RE = re.compile(r"[^a-z0-9_\-]+")


class SnapshotStore:
    """Opaque key/value JSON snapshots kept in a directory."""

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)

    def _path(self, key: str) -> Path:
        safe = _KEY_RE.sub("-", key.lower()).strip("-") or "snapshot"
        return self._dir / f"{safe}.json"

    def load(self, key: str) -> Optional[Any]:
        """Return the stored value for *key*, or *None* when missing or unreadable."""
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable snapshot %s: %s", path, exc)
            return None

    def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(json.dumps(value, ensure_ascii=False), encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            # Snapshots are best-effort; the in-memory state is what matters.
            logger.warning("Failed to write snapshot %s: %s", path, exc)


class ResourceCache:
    """Last-known list for one resource type plus the time it was fetched."""

    def __init__(
        self,
        key: str,
        *,
        clock: Callable[[], float] = time.monotonic,
        store: Optional[SnapshotStore] = None,
        serialize: Callable[[List[Any]], Any] = list,
        deserialize: Callable[[Any], List[Any]] = list,
    ) -> None:
        self.key = key
        self._clock = clock
        self._store = store
        self._serialize = serialize
        self._items: List[Any] = []
        self._fetched_at: Optional[float] = None

        if store is not None:
            raw = store.load(key)
            if isinstance(raw, list):
                try:
                    self._items = deserialize(raw)
                except ValueError as exc:
                    logger.warning("Discarding snapshot for %s: %s", key, exc)

    def get(self) -> Tuple[List[Any], Optional[float]]:
        return list(self._items), self._fetched_at

    def set(self, items: List[Any]) -> None:
        """Replace the cached list and stamp it with the current time."""
        self._items = list(items)
        self._fetched_at = self._clock()
        if self._store is not None:
            self._store.save(self.key, self._serialize(self._items))

    def expire(self) -> None:
        """Keep the items but force the next read to go to the network."""
        self._fetched_at = None

    def is_fresh(self, now: Optional[float] = None, ttl: float = DEFAULT_TTL) -> bool:
        if self._fetched_at is None:
            return False
        if now is None:
            now = self._clock()
        return now - self._fetched_at < ttl
