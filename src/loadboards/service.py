"""Search fan-out across providers, result recording and lane refresh.

One search module id is shared by every provider call of a search. Provider calls run
concurrently and settle independently: a failing provider shows up in ``errors`` and never
cancels or hides its siblings.
"""

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field

from src.lanes.reconciler import LaneReconciler
from src.loadboards.interface import LoadBoardAdapter, request_for_lane
from src.loadboards.models import Lane, Provider, SearchRequest, SearchResult
from src.loadboards.registry import LoadBoardRegistry
from src.store.results import ResultStore

logger = logging.getLogger(__name__)


@dataclass
class AggregateSearchResult:
    search_module_id: str
    results: dict[Provider, SearchResult] = field(default_factory=dict)
    errors: dict[Provider, str] = field(default_factory=dict)
    lanes: list[Lane] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return any(r.success for r in self.results.values())


class LoadBoardSearchService:
    def __init__(
        self,
        registry: LoadBoardRegistry,
        results: ResultStore,
        lanes: LaneReconciler,
    ):
        self._registry = registry
        self._results = results
        self._lanes = lanes

    def _adapters(self, providers: list[Provider | str] | None) -> list[LoadBoardAdapter]:
        if providers is None:
            return self._registry.enabled()
        return self._registry.for_providers(providers)

    def _record(self, provider: Provider, result: SearchResult) -> Lane | None:
        # failed results carry no payload and are reported, not stored
        if result.data is None:
            return None
        self._results.add(provider, result)
        return self._lanes.upsert_from_result(result, provider)

    async def _settle(
        self,
        aggregate: AggregateSearchResult,
        adapters: list[LoadBoardAdapter],
        calls: list[Awaitable[SearchResult]],
    ) -> AggregateSearchResult:
        outcomes = await asyncio.gather(*calls, return_exceptions=True)
        for adapter, outcome in zip(adapters, outcomes):
            provider = adapter.provider
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.warning("Search failed for %s: %s", provider.value, outcome)
                aggregate.errors[provider] = str(outcome) or type(outcome).__name__
                continue
            aggregate.results[provider] = outcome
            if not outcome.success:
                aggregate.errors[provider] = outcome.message or outcome.error or "search failed"
            lane = self._record(provider, outcome)
            if lane is not None:
                aggregate.lanes = [known for known in aggregate.lanes if known.id != lane.id]
                aggregate.lanes.append(lane)
        return aggregate

    async def search_all(
        self,
        request: SearchRequest,
        providers: list[Provider | str] | None = None,
    ) -> AggregateSearchResult:
        adapters = self._adapters(providers)
        aggregate = AggregateSearchResult(search_module_id=request.search_module_id)
        if not adapters:
            logger.warning("Search %s: no load boards selected", request.search_module_id)
            return aggregate
        return await self._settle(
            aggregate, adapters, [adapter.search(request) for adapter in adapters]
        )

    async def search_one(self, request: SearchRequest, provider: Provider | str) -> SearchResult:
        adapter = self._registry.get(provider)
        if adapter is None:
            return SearchResult.fail(f"No load board registered for {provider}")
        result = await adapter.search(request)
        self._record(adapter.provider, result)
        return result

    async def refresh_lane(
        self,
        lane_id: str,
        providers: list[Provider | str] | None = None,
    ) -> AggregateSearchResult | None:
        """Re-run a lane's search under its own search module id. None for an unknown lane.

        Each adapter marks the call as a refresh its own way (DAT sends ``isRefresh`` and the
        lane's ``datQueryId``).
        """
        lane = self._lanes.get(lane_id)
        if lane is None:
            return None
        if providers is None:
            providers = []
            if lane.dat_search_module_id or lane.dat_query_id:
                providers.append(Provider.DAT)
            if lane.sylectus_search_module_id or lane.sylectus_query_id:
                providers.append(Provider.SYLECTUS)
            if not providers:
                providers = [a.provider for a in self._registry.enabled()]
        adapters = self._adapters(providers)
        aggregate = AggregateSearchResult(search_module_id=lane.search_module_id or lane.id)
        if not adapters:
            logger.warning("Refresh %s: no load boards selected", lane.id)
            return aggregate
        logger.info("Refreshing lane %s via %s", lane.id, [a.provider.value for a in adapters])
        return await self._settle(aggregate, adapters, [a.refresh(lane) for a in adapters])
