"""Standard interface for load-board adapters used by the search service.

Every adapter turns a SearchRequest into one extension message, awaits the correlated
response and returns a SearchResult. Transport failures and provider errors fall back to a
simulated result; only unexpected errors produce ``success=False``.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from src.core.errors import ProviderRejected, TransportError
from src.core.ids import generate_mock_query_id
from src.core.logger import logger
from src.loadboards.models import (
    Lane,
    Provider,
    ProviderSearchData,
    ResultMode,
    ResultPayload,
    SearchRequest,
    SearchResult,
)
from src.transport.correlation import CorrelationTransport


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def request_for_lane(lane: Lane) -> SearchRequest:
    """The search a lane stands for, under the lane's own search module id."""
    return SearchRequest(
        origin=None if lane.origin.is_empty() else lane.origin,
        destination=None if lane.destination.is_empty() else lane.destination,
        start_date=lane.date_range[0] or None,
        end_date=lane.date_range[1] or None,
        weight_pounds=lane.weight or None,
        search_module_id=lane.search_module_id or lane.id,
    )


class LoadBoardAdapter(ABC):
    """Base class for all load-board adapters."""

    provider: Provider
    name: str
    enabled: bool = True

    def __init__(
        self,
        transport: CorrelationTransport | None,
        simulation_delay_s: float = 0.0,
    ):
        self._transport = transport
        self._simulation_delay_s = simulation_delay_s

    def build_search_data(self, request: SearchRequest) -> ProviderSearchData:
        return ProviderSearchData.from_request(request)

    @abstractmethod
    def build_message(self, request: SearchRequest, data: ProviderSearchData) -> dict[str, Any]:
        """Extension request for one search."""

    @abstractmethod
    def parse_response(
        self,
        request: SearchRequest,
        data: ProviderSearchData,
        response: dict[str, Any],
    ) -> ResultPayload:
        """Payload for a successful extension response."""

    def _base_payload(
        self, request: SearchRequest, data: ProviderSearchData, mode: ResultMode
    ) -> dict[str, Any]:
        return {
            "search_module_id": request.search_module_id,
            "timestamp": utc_now_iso(),
            "provider": self.provider,
            "mode": mode,
            "search_criteria": data.to_wire(),
            "original_search_data": request.to_wire(),
        }

    async def _exchange(self, message: dict[str, Any]) -> dict[str, Any]:
        """Send one request. Raises TransportError on any delivery or provider failure."""
        if self._transport is None:
            raise TransportError("no extension transport configured")
        response = await self._transport.send(message)
        if not isinstance(response, dict):
            raise ProviderRejected(f"unexpected response: {response!r}"[:200])
        if response.get("success"):
            return response
        if response.get("error"):
            raise ProviderRejected(str(response["error"]))
        raise ProviderRejected("extension response without success")

    async def simulate(self, request: SearchRequest, data: ProviderSearchData) -> SearchResult:
        await asyncio.sleep(self._simulation_delay_s)
        payload = ResultPayload(
            **self._base_payload(request, data, ResultMode.SIMULATION),
            query_id=generate_mock_query_id(),
            results_found=0,
        )
        return SearchResult(
            success=True,
            message=f"Search executed successfully on {self.provider.value} (simulated)",
            data=payload,
        )

    def refresh_params(self, lane: Lane) -> dict[str, Any]:
        """Extra message params that mark a search as a refresh of ``lane``."""
        return {}

    async def refresh(self, lane: Lane) -> SearchResult:
        """Re-run a lane's search so its stored result and lane update in place."""
        return await self.search(request_for_lane(lane), extra_params=self.refresh_params(lane))

    async def search(
        self, request: SearchRequest, *, extra_params: dict[str, Any] | None = None
    ) -> SearchResult:
        """Execute one search. Never raises."""
        started = time.monotonic()
        logger.provider_search(self.provider.value, request.search_module_id)
        try:
            data = self.build_search_data(request)
            try:
                message = self.build_message(request, data)
                if extra_params:
                    message["params"] = {**message.get("params", {}), **extra_params}
                response = await self._exchange(message)
            except TransportError as e:
                logger.warning(
                    f"{self.provider.value}: extension communication failed ({e}), using simulation"
                )
                result = await self.simulate(request, data)
            else:
                result = SearchResult(
                    success=True,
                    message=f"Search executed successfully on {self.provider.value} via extension",
                    data=self.parse_response(request, data, response),
                )
        except Exception as e:
            logger.error(f"{self.provider.value} search error", exception=e)
            result = SearchResult.fail(f"Failed to search on {self.provider.value}: {e}")

        logger.provider_result(
            self.provider.value,
            request.search_module_id,
            result.success,
            mode=result.data.mode.value if result.data else None,
            load_count=len(result.data.loads) if result.data else 0,
            duration_seconds=time.monotonic() - started,
            error_reason=None if result.success else result.message,
        )
        return result
