"""Sylectus adapter: SYLECTUS_SEARCH over the extension plus captured-HTML extraction."""

import logging
import re
from typing import Any, Literal

from pydantic import Field, ValidationError

from src.contracts.extension_v1 import RequestType
from src.loadboards.extraction.sylectus_html import (
    SylectusLoad,
    extract_sylectus_table,
)
from src.loadboards.interface import LoadBoardAdapter
from src.loadboards.models import (
    Contact,
    Load,
    Place,
    Provider,
    ProviderSearchData,
    ResultMode,
    ResultPayload,
    SearchRequest,
    WireModel,
)
from src.transport.correlation import CorrelationTransport

log = logging.getLogger(__name__)

DEFAULT_RADIUS_MILES = 120
DEFAULT_REFRESH_RATE_S = 300

_MONEY = re.compile(r"-?\d[\d,]*(?:\.\d+)?")


class SylectusSearchParams(WireModel):
    from_city: str = ""
    from_state: str = ""
    to_city: str | None = None
    to_state: str | None = None
    miles: int = DEFAULT_RADIUS_MILES
    from_date: str | None = None
    load_types: list[str] = Field(default_factory=list)
    max_weight: str | None = None
    min_cargo: str | None = None
    max_cargo: str | None = None
    freight: Literal["Both", "3PL", "Alliance"] = "Both"
    refresh_rate: int = DEFAULT_REFRESH_RATE_S
    search_module_id: str | None = None


def parse_amount(text: str) -> float:
    m = _MONEY.search(text or "")
    if not m:
        return 0.0
    try:
        return float(m.group(0).replace(",", ""))
    except ValueError:
        return 0.0


def to_load(item: SylectusLoad, search_module_id: str) -> Load:
    score = (item.days_to_pay_credit.score or "") if item.days_to_pay_credit else ""
    return Load(
        id=item.id,
        posted_at=item.post_date_time,
        origin=Place(
            city=item.pickup_location.city,
            state=item.pickup_location.state,
            zip=item.pickup_location.zip_code,
        ),
        destination=Place(
            city=item.delivery_location.city,
            state=item.delivery_location.state,
            zip=item.delivery_location.zip_code,
        ),
        contact=Contact(company=item.posted_by or item.company),
        rate=parse_amount(item.amount or item.rate),
        comment=item.notes or "",
        equipment_type=item.vehicle_size or item.eq,
        miles=item.miles or item.trip,
        weight=item.weight,
        full_partial=item.load_type or item.capacity,
        credit_score=int(score) if score.isdigit() else None,
        source=Provider.SYLECTUS,
        search_module_id=search_module_id,
        ref_no=item.ref_no or None,
        bid_url=item.bid_url,
        pickup_at=item.pickup_date_time or None,
        delivery_at=item.delivery_date_time or None,
        pieces=item.pieces,
        orderNo=item.order_no,
        brokerMC=item.broker_mc,
        saferUrl=item.safer_url,
    )


class SylectusAdapter(LoadBoardAdapter):
    provider = Provider.SYLECTUS
    name = "Sylectus"

    def __init__(
        self,
        transport: CorrelationTransport | None,
        simulation_delay_s: float = 0.0,
        radius_miles: int = DEFAULT_RADIUS_MILES,
    ):
        super().__init__(transport, simulation_delay_s)
        self._radius_miles = radius_miles

    def build_params(self, request: SearchRequest) -> SylectusSearchParams:
        origin = request.origin
        destination = request.destination
        return SylectusSearchParams(
            from_city=(origin.city if origin else "").lower(),
            from_state=origin.state if origin else "",
            to_city=destination.city if destination and destination.city else None,
            to_state=destination.state if destination and destination.state else None,
            miles=self._radius_miles,
            from_date=request.start_date.isoformat() if request.start_date else None,
            max_weight=str(request.weight_pounds) if request.weight_pounds else None,
            search_module_id=request.search_module_id,
        )

    def build_message(self, request: SearchRequest, data: ProviderSearchData) -> dict[str, Any]:
        return {
            "type": RequestType.SYLECTUS_SEARCH.value,
            "params": self.build_params(request).to_wire(),
        }

    def collect_loads(self, response: dict[str, Any]) -> tuple[list[SylectusLoad], int | None]:
        """Loads from captured ``html`` and pre-extracted ``loads``; footer record count."""
        items: list[SylectusLoad] = []
        footer_total: int | None = None
        html = response.get("html")
        if isinstance(html, str) and html.strip():
            extraction = extract_sylectus_table(html)
            items.extend(extraction.loads)
            footer_total = extraction.total_records
        seen = {item.id for item in items}
        for raw in response.get("loads") or []:
            try:
                item = SylectusLoad.model_validate(raw)
            except ValidationError as e:
                log.warning("Sylectus: skipping malformed load: %s", e.errors()[:1])
                continue
            if item.id not in seen:
                seen.add(item.id)
                items.append(item)
        return items, footer_total

    def parse_response(
        self,
        request: SearchRequest,
        data: ProviderSearchData,
        response: dict[str, Any],
    ) -> ResultPayload:
        items, footer_total = self.collect_loads(response)
        total = response.get("totalRecords")
        if not isinstance(total, int):
            total = footer_total if footer_total is not None else len(items)
        return ResultPayload(
            **self._base_payload(request, data, ResultMode.EXTENSION),
            raw={k: v for k, v in response.items() if k != "html"},
            loads=[to_load(item, request.search_module_id) for item in items],
            query_id=str(response["queryId"]) if response.get("queryId") else None,
            total_records=total,
            results_found=len(items),
            sylectusLoads=[item.to_wire() for item in items],
        )
