"""Per-provider search results with upsert by searchModuleId.

The store is the only mutator of its lists. Results are deep-copied on the way in and out,
and every mutation rewrites the provider's whole list under its storage key.
"""

import json
import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from src.core.errors import PersistenceCorrupt
from src.core.logger import logger as events
from src.loadboards.models import Provider, SearchResult
from src.store.kv import KeyValueStore

logger = logging.getLogger(__name__)

STORAGE_KEYS: dict[Provider, str] = {
    Provider.DAT: "datSearchResults",
    Provider.SYLECTUS: "sylectusSearchResults",
}

# get_by_search_module_id looks in this order
LOOKUP_ORDER = (Provider.DAT, Provider.SYLECTUS)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | None) -> datetime | None:
    """ISO-8601 to an aware datetime; naive values are taken as UTC."""
    if not value:
        return None
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


class ResultStore:
    def __init__(
        self,
        storage: KeyValueStore,
        *,
        retention_hours: float = 24.0,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._storage = storage
        self._retention = timedelta(hours=retention_hours)
        self._clock = clock
        self._results: dict[Provider, list[SearchResult]] = {
            provider: self._load(provider) for provider in STORAGE_KEYS
        }

    # -- persistence ---------------------------------------------------------

    def _load(self, provider: Provider) -> list[SearchResult]:
        key = STORAGE_KEYS[provider]
        raw = self._storage.get(key)
        if raw is None:
            return []
        try:
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                raise PersistenceCorrupt(key, str(e)) from e
            if not isinstance(data, list):
                raise PersistenceCorrupt(key, f"expected a list, got {type(data).__name__}")
            try:
                return [SearchResult.model_validate(item) for item in data]
            except ValidationError as e:
                raise PersistenceCorrupt(key, f"{e.error_count()} invalid field(s)") from e
        except PersistenceCorrupt as e:
            logger.warning("%s; starting with an empty list", e)
            return []

    def _persist(self, provider: Provider, action: str, search_module_id: str | None) -> None:
        items = self._results[provider]
        key = STORAGE_KEYS[provider]
        payload = json.dumps([r.model_dump(mode="json", by_alias=True) for r in items])
        try:
            self._storage.set(key, payload)
        except OSError as e:
            # the in-memory list stays authoritative; the next mutation writes it again
            logger.error(
                "Storage: could not write %s (%s %s): %s", key, action, search_module_id, e
            )
            return
        events.store_mutation(key, action, search_module_id, len(items))

    # -- queries -------------------------------------------------------------

    def results(self, provider: Provider) -> list[SearchResult]:
        return [r.model_copy(deep=True) for r in self._results[provider]]

    def latest(self, provider: Provider) -> SearchResult | None:
        items = self._results[provider]
        return items[-1].model_copy(deep=True) if items else None

    def find(self, search_module_id: str) -> tuple[Provider, SearchResult] | None:
        if not search_module_id:
            return None
        for provider in LOOKUP_ORDER:
            for result in self._results[provider]:
                if result.search_module_id == search_module_id:
                    return provider, result.model_copy(deep=True)
        return None

    def get_by_search_module_id(self, search_module_id: str) -> SearchResult | None:
        found = self.find(search_module_id)
        return found[1] if found else None

    def results_for_ids(self, ids: Iterable[str]) -> list[SearchResult]:
        wanted = {i for i in ids if i}
        return [
            r.model_copy(deep=True)
            for provider in LOOKUP_ORDER
            for r in self._results[provider]
            if r.search_module_id in wanted
        ]

    def __len__(self) -> int:
        return sum(len(items) for items in self._results.values())

    # -- mutations -----------------------------------------------------------

    def add(self, provider: Provider, result: SearchResult) -> int:
        """Upsert by searchModuleId: replace in place, else append. Returns the index."""
        item = result.model_copy(deep=True)
        items = self._results[provider]
        search_module_id = item.search_module_id
        if item.success and not search_module_id:
            logger.error(
                "%s result stored without a searchModuleId; it cannot be linked to a lane",
                provider.value,
            )

        index = None
        if search_module_id:
            index = next(
                (i for i, r in enumerate(items) if r.search_module_id == search_module_id),
                None,
            )
        if index is None:
            items.append(item)
            index = len(items) - 1
            action = "append"
        else:
            items[index] = item
            action = "replace"
        self._persist(provider, action, search_module_id)
        return index

    def delete(self, provider: Provider, search_module_id: str) -> bool:
        items = self._results[provider]
        kept = [r for r in items if r.search_module_id != search_module_id]
        if len(kept) == len(items):
            return False
        self._results[provider] = kept
        self._persist(provider, "delete", search_module_id)
        return True

    def delete_by_search_module_id(self, search_module_id: str) -> int:
        if not search_module_id:
            return 0
        return sum(self.delete(provider, search_module_id) for provider in LOOKUP_ORDER)

    def clear(self) -> None:
        for provider in STORAGE_KEYS:
            self._results[provider] = []
            self._persist(provider, "clear", None)

    def cleanup(self, now: datetime | None = None) -> int:
        """Drop results strictly older than the retention window. Returns how many went.

        Results without a readable timestamp count as expired.
        """
        now = now or self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        cutoff = now - self._retention
        removed = 0
        for provider in STORAGE_KEYS:
            items = self._results[provider]
            kept = []
            for r in items:
                ts = parse_timestamp(r.data.timestamp if r.data else None)
                if ts is not None and ts >= cutoff:
                    kept.append(r)
            if len(kept) != len(items):
                removed += len(items) - len(kept)
                self._results[provider] = kept
                self._persist(provider, "cleanup", None)
        if removed:
            logger.info("Result cleanup removed %d expired result(s)", removed)
        return removed
