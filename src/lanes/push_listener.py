"""DAT push events (loads captured in the DAT tab, refreshed lane findings) into stores."""

import logging
from typing import Any

from pydantic import ValidationError

from src.contracts.extension_v1 import DatLoadsReceived, DatSearchFindings, PushFamily
from src.lanes.reconciler import LaneReconciler
from src.loadboards.adapters.dat import normalize_matches
from src.loadboards.interface import utc_now_iso
from src.loadboards.models import Provider, ResultMode, ResultPayload, SearchResult
from src.store.results import ResultStore
from src.transport.correlation import CorrelationTransport

logger = logging.getLogger(__name__)


class DatPushListener:
    def __init__(
        self,
        transport: CorrelationTransport,
        results: ResultStore,
        lanes: LaneReconciler,
    ):
        self._transport = transport
        self._results = results
        self._lanes = lanes

    def start(self) -> None:
        self._transport.register(PushFamily.DAT_LOADS, self.on_loads_received)
        self._transport.register(PushFamily.DAT_FINDINGS, self.on_search_findings)

    def stop(self) -> None:
        self._transport.register(PushFamily.DAT_LOADS, None)
        self._transport.register(PushFamily.DAT_FINDINGS, None)

    def _previous_payload(self, search_module_id: str) -> ResultPayload | None:
        previous = self._results.get_by_search_module_id(search_module_id)
        return previous.data if previous is not None else None

    def on_loads_received(self, message: dict[str, Any]) -> SearchResult | None:
        try:
            event = DatLoadsReceived.model_validate(message)
        except ValidationError as e:
            logger.warning("DAT_LOADS_RECEIVED ignored, invalid payload: %s", e.errors()[:1])
            return None
        if not event.query_id:
            logger.warning("DAT_LOADS_RECEIVED without queryId ignored")
            return None

        search_module_id = event.query_id
        previous = self._previous_payload(search_module_id)
        count = event.match_count if event.match_count is not None else len(event.loads)
        payload = ResultPayload(
            search_module_id=search_module_id,
            timestamp=event.timestamp or utc_now_iso(),
            provider=Provider.DAT,
            mode=ResultMode.EXTENSION,
            raw=message,
            loads=normalize_matches(event.loads, search_module_id),
            search_criteria=previous.search_criteria if previous else {},
            original_search_data=previous.original_search_data if previous else None,
            query_id=event.query_id,
            total_records=count,
            results_found=count,
        )
        result = SearchResult(
            success=True,
            message=f"Received {count} DAT loads from extension",
            data=payload,
        )
        self._results.add(Provider.DAT, result)
        self._lanes.upsert_from_result(result, Provider.DAT)
        return result

    def on_search_findings(self, message: dict[str, Any]) -> SearchResult | None:
        try:
            event = DatSearchFindings.model_validate(message)
        except ValidationError as e:
            logger.warning("DAT_SEARCH_FINDINGS ignored, invalid payload: %s", e.errors()[:1])
            return None
        if not event.lane_id:
            logger.warning("DAT_SEARCH_FINDINGS without laneId ignored")
            return None

        lane = self._lanes.get(event.lane_id)
        if lane is None:
            lane = self._lanes.find_for_search_module_id(event.lane_id)
        if lane is None:
            logger.warning("DAT_SEARCH_FINDINGS for unknown lane %s ignored", event.lane_id)
            return None

        search_module_id = lane.dat_search_module_id or lane.search_module_id or lane.id
        previous = self._previous_payload(search_module_id)
        findings = event.findings
        raw = findings.model_dump(by_alias=True)
        payload = ResultPayload(
            search_module_id=search_module_id,
            timestamp=findings.timestamp or utc_now_iso(),
            provider=Provider.DAT,
            mode=ResultMode.EXTENSION,
            raw=raw,
            loads=normalize_matches(findings.matches, search_module_id),
            search_criteria=previous.search_criteria if previous else {},
            original_search_data=previous.original_search_data if previous else None,
            query_id=lane.dat_query_id,
            results_found=len(findings.matches),
        )
        result = SearchResult(
            success=True,
            message=f"Updated DAT findings for lane {lane.id}",
            data=payload,
        )
        self._results.add(Provider.DAT, result)
        self._lanes.upsert_from_result(result, Provider.DAT)
        return result
