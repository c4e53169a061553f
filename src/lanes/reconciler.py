"""Lane reconciliation: successful search results become durable, deduplicated lanes.

A lane is keyed by the searchModuleId of the search that created it. Later results for the
same search (other provider, refresh, push event) merge into it. Lanes are only removed by
an explicit delete, and driver assignments only change through the driver operations.
"""

import json
import logging
from datetime import date, datetime, timezone
from typing import Any

from pydantic import ValidationError

from src.core.errors import PersistenceCorrupt
from src.core.ids import generate_search_module_id
from src.core.logger import logger as events
from src.loadboards.adapters.dat import asset_matches_body
from src.loadboards.models import (
    Lane,
    LaneSource,
    Place,
    Provider,
    ResultPayload,
    SearchResult,
)
from src.store.kv import KeyValueStore
from src.store.results import ResultStore

logger = logging.getLogger(__name__)

LANES_KEY = "lanes"


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    return None


def _dat_body(payload: ResultPayload) -> dict[str, Any] | None:
    extras = payload.model_extra or {}
    for candidate in (extras, payload.raw):
        body = asset_matches_body(candidate)
        if body is not None:
            return body
    raw = payload.raw or {}
    if "matchCounts" in raw or "matches" in raw:
        return raw
    return None


def count_dat_results(payload: ResultPayload) -> int:
    """``matchCounts.totalCount``, then ``len(matches)``, then ``resultsFound``, else 0."""
    body = _dat_body(payload)
    if body is not None:
        total = _int_or_none((body.get("matchCounts") or {}).get("totalCount"))
        if total is not None:
            return total
        if isinstance(body.get("matches"), list):
            return len(body["matches"])
    return payload.results_found or 0


def count_sylectus_results(payload: ResultPayload) -> int:
    """``totalRecords``, then ``len(loads)``, then ``resultsFound``, else 0."""
    if payload.total_records is not None:
        return payload.total_records
    if payload.loads:
        return len(payload.loads)
    return payload.results_found or 0


def count_results(provider: Provider, payload: ResultPayload) -> int:
    if provider == Provider.DAT:
        return count_dat_results(payload)
    return count_sylectus_results(payload)


def _place(original: dict[str, Any] | None, criteria: dict[str, Any], field: str) -> Place:
    """Prefer the user's selection object, then the provider criteria (string or object)."""
    value = (original or {}).get(field)
    if isinstance(value, dict):
        return Place.parse(value) or Place()
    return Place.parse(criteria.get(field)) or Place()


def _today() -> str:
    return date.today().isoformat()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class LaneReconciler:
    def __init__(self, storage: KeyValueStore, results: ResultStore | None = None):
        self._storage = storage
        self._results = results
        self._lanes: list[Lane] = self._load()

    def _load(self) -> list[Lane]:
        raw = self._storage.get(LANES_KEY)
        if raw is None:
            return []
        try:
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                raise PersistenceCorrupt(LANES_KEY, str(e)) from e
            if not isinstance(data, list):
                raise PersistenceCorrupt(LANES_KEY, f"expected a list, got {type(data).__name__}")
            try:
                return [Lane.model_validate(item) for item in data]
            except ValidationError as e:
                raise PersistenceCorrupt(LANES_KEY, f"{e.error_count()} invalid field(s)") from e
        except PersistenceCorrupt as e:
            logger.warning("%s; starting with no lanes", e)
            return []

    def _persist(self, action: str, lane_id: str | None) -> None:
        payload = json.dumps([lane.model_dump(mode="json", by_alias=True) for lane in self._lanes])
        try:
            self._storage.set(LANES_KEY, payload)
        except OSError as e:
            logger.error("Storage: could not write %s (%s %s): %s", LANES_KEY, action, lane_id, e)
            return
        events.store_mutation(LANES_KEY, action, lane_id, len(self._lanes))

    def _index(self, lane_id: str) -> int | None:
        return next((i for i, lane in enumerate(self._lanes) if lane.id == lane_id), None)

    # -- queries -------------------------------------------------------------

    def lanes(self) -> list[Lane]:
        return [lane.model_copy(deep=True) for lane in self._lanes]

    def get(self, lane_id: str) -> Lane | None:
        i = self._index(lane_id)
        return self._lanes[i].model_copy(deep=True) if i is not None else None

    def find_for_search_module_id(self, search_module_id: str) -> Lane | None:
        i = self._resolve(search_module_id, None)
        return self._lanes[i].model_copy(deep=True) if i is not None else None

    def results_for_lane(self, lane_id: str) -> list[SearchResult]:
        lane = self.get(lane_id)
        if lane is None or self._results is None:
            return []
        return self._results.results_for_ids(lane.linked_search_module_ids())

    # -- reconciliation ------------------------------------------------------

    def _resolve(self, search_module_id: str, provider: Provider | None) -> int | None:
        """Lane owning ``search_module_id``: by id, then search-module ids, then query ids.

        Push results are keyed by the provider's query id, so a lane whose query-id field
        equals the incoming searchModuleId is the same search.
        """
        for i, lane in enumerate(self._lanes):
            if lane.id == search_module_id:
                return i
        for i, lane in enumerate(self._lanes):
            if search_module_id in (
                lane.search_module_id,
                lane.dat_search_module_id,
                lane.sylectus_search_module_id,
            ):
                return i
        for i, lane in enumerate(self._lanes):
            if provider == Provider.DAT:
                query_ids = (lane.dat_query_id,)
            elif provider == Provider.SYLECTUS:
                query_ids = (lane.sylectus_query_id,)
            else:
                query_ids = (lane.dat_query_id, lane.sylectus_query_id)
            if search_module_id in query_ids:
                return i
        return None

    def upsert_from_result(self, result: SearchResult, provider: Provider) -> Lane | None:
        """Create or merge the lane for one successful result. Returns the stored lane."""
        if not result.success or result.data is None:
            return None
        payload = result.data
        search_module_id = payload.search_module_id
        if not search_module_id:
            logger.warning(
                "%s result without searchModuleId cannot be added to lanes", provider.value
            )
            return None

        criteria = payload.search_criteria or {}
        original = payload.original_search_data
        count = count_results(provider, payload)
        fields: dict[str, Any] = {
            "origin": _place(original, criteria, "origin"),
            "destination": _place(original, criteria, "destination"),
            "date_range": (
                criteria.get("startDate") or _today(),
                criteria.get("endDate") or _today(),
            ),
            "weight": criteria.get("weightPounds") or 0,
            "last_refreshed": _now_iso(),
        }
        if provider == Provider.DAT:
            fields["dat_search_module_id"] = search_module_id
            fields["dat_results_count"] = count
        else:
            fields["sylectus_search_module_id"] = search_module_id
            fields["sylectus_results_count"] = count

        index = self._resolve(search_module_id, provider)
        if index is None:
            lane = Lane(
                id=search_module_id,
                search_module_id=search_module_id,
                driver_ids=[],
                source=LaneSource(provider.value),
                results_count=count,
                **fields,
            )
            self._set_query_id(lane, provider, payload.query_id)
            self._lanes.append(lane)
            self._persist("create", lane.id)
            return lane.model_copy(deep=True)

        # a result without criteria (push events) keeps the lane's geography and dates
        for key in ("origin", "destination"):
            if fields[key].is_empty():
                del fields[key]
        if not criteria.get("startDate") and not criteria.get("endDate"):
            del fields["date_range"]
        if not criteria.get("weightPounds"):
            del fields["weight"]

        existing = self._lanes[index]
        merged = existing.model_copy(update=fields, deep=True)
        self._set_query_id(merged, provider, payload.query_id, keep=existing)
        merged.source = self._merged_source(existing, provider)
        merged.results_count = (merged.dat_results_count or 0) + (
            merged.sylectus_results_count or 0
        )
        merged.id = existing.id
        merged.driver_ids = list(existing.driver_ids)
        self._lanes[index] = merged
        self._persist("merge", merged.id)
        return merged.model_copy(deep=True)

    @staticmethod
    def _set_query_id(
        lane: Lane, provider: Provider, query_id: str | None, keep: Lane | None = None
    ) -> None:
        if provider == Provider.DAT:
            lane.dat_query_id = query_id or (keep.dat_query_id if keep else None)
        else:
            lane.sylectus_query_id = query_id or (keep.sylectus_query_id if keep else None)

    @staticmethod
    def _merged_source(existing: Lane, provider: Provider) -> LaneSource:
        if provider == Provider.DAT:
            other = existing.sylectus_search_module_id or existing.sylectus_query_id
        else:
            other = existing.dat_search_module_id or existing.dat_query_id
        if other or existing.source == LaneSource.COMBINED:
            return LaneSource.COMBINED
        if existing.source == LaneSource.MANUAL:
            return LaneSource.MANUAL
        return LaneSource(provider.value)

    # -- explicit lane operations -------------------------------------------

    def add_manual_lane(
        self,
        origin: Place,
        destination: Place,
        date_range: tuple[str, str] | None = None,
        weight: int = 0,
        driver_ids: list[str] | None = None,
        details: str | None = None,
    ) -> Lane:
        lane = Lane(
            id=generate_search_module_id(),
            origin=origin,
            destination=destination,
            date_range=date_range or (_today(), _today()),
            weight=weight,
            driver_ids=list(driver_ids or []),
            source=LaneSource.MANUAL,
            details=details,
        )
        self._lanes.append(lane)
        self._persist("create", lane.id)
        return lane.model_copy(deep=True)

    def update_lane(self, lane_id: str, **changes: Any) -> Lane | None:
        """Edit lane fields by name. ``id`` never changes; ``driver_ids`` only when given."""
        i = self._index(lane_id)
        if i is None:
            return None
        changes.pop("id", None)
        data = self._lanes[i].model_dump()
        data.update(changes)
        lane = Lane.model_validate(data)
        self._lanes[i] = lane
        self._persist("update", lane_id)
        return lane.model_copy(deep=True)

    def set_drivers(self, lane_id: str, driver_ids: list[str]) -> Lane | None:
        i = self._index(lane_id)
        if i is None:
            return None
        self._lanes[i].driver_ids = list(dict.fromkeys(driver_ids))
        self._persist("drivers", lane_id)
        return self._lanes[i].model_copy(deep=True)

    def assign_driver(self, lane_id: str, driver_id: str) -> Lane | None:
        lane = self.get(lane_id)
        if lane is None:
            return None
        if driver_id in lane.driver_ids:
            return lane
        return self.set_drivers(lane_id, [*lane.driver_ids, driver_id])

    def unassign_driver(self, lane_id: str, driver_id: str) -> Lane | None:
        lane = self.get(lane_id)
        if lane is None:
            return None
        return self.set_drivers(lane_id, [d for d in lane.driver_ids if d != driver_id])

    def delete_lane(self, lane_id: str) -> bool:
        """Remove a lane and the stored results linked to it."""
        i = self._index(lane_id)
        if i is None:
            return False
        lane = self._lanes.pop(i)
        self._persist("delete", lane_id)
        if self._results is not None:
            for search_module_id in lane.linked_search_module_ids():
                self._results.delete_by_search_module_id(search_module_id)
        return True
