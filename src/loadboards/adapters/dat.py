"""DAT adapter: DAT_SEARCH over the extension, match normalization, lane refresh."""

import logging
from typing import Any

from src.contracts.extension_v1 import RequestType
from src.loadboards.interface import LoadBoardAdapter
from src.loadboards.models import (
    Contact,
    Lane,
    Load,
    Place,
    Provider,
    ProviderSearchData,
    ResultMode,
    ResultPayload,
    SearchRequest,
)

log = logging.getLogger(__name__)

QUERY_ID_KEYS = ("searchId", "queryId", "datQueryId")


def _dig(value: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def asset_matches_body(response: dict[str, Any] | None) -> dict[str, Any] | None:
    """``rawResponse.data.createAssetAndGetMatches.assetMatchesBody`` when present."""
    body = _dig(response, "rawResponse", "data", "createAssetAndGetMatches", "assetMatchesBody")
    return body if isinstance(body, dict) else None


def extract_query_id(response: dict[str, Any] | None) -> str | None:
    if not isinstance(response, dict):
        return None
    for key in QUERY_ID_KEYS:
        value = response.get(key)
        if value:
            return str(value)
    return None


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def normalize_match(match: dict[str, Any], search_module_id: str) -> Load:
    """One DAT match (or an already-flat load dict) as a Load.

    Raises KeyError/TypeError/ValueError when the match has no usable id.
    """
    if "matchId" not in match and "id" in match:
        return Load.model_validate(
            {"source": Provider.DAT, "searchModuleId": search_module_id, **match}
        )

    asset = match.get("matchingAssetInfo") or {}
    shipment = _dig(asset, "capacity", "shipment") or {}
    poster = match.get("posterInfo") or {}
    contact = poster.get("contact") or {}
    credit = poster.get("credit") or {}
    rate = _dig(match, "loadBoardRateInfo", "nonBookable", "rateUsd")

    extras: dict[str, Any] = {}
    if shipment.get("maximumLengthFeet") is not None:
        extras["lengthFeet"] = shipment["maximumLengthFeet"]
    if credit.get("daysToPay") is not None:
        extras["daysToPay"] = credit["daysToPay"]

    return Load(
        id=str(match["matchId"]),
        posted_at=str(_dig(match, "availability", "earliestWhen") or ""),
        origin=Place.parse(_dig(asset, "origin", "place")) or Place(),
        destination=Place.parse(_dig(asset, "destination", "place")) or Place(),
        contact=Contact(
            company=str(poster.get("companyName") or ""),
            name=str(contact.get("name") or ""),
            phone=contact.get("phone") or contact.get("phoneNumber"),
            email=contact.get("email"),
        ),
        rate=float(rate or 0),
        comment=str(match.get("comments") or ""),
        equipment_type=str(asset.get("equipmentType") or ""),
        miles=_int(_dig(match, "tripLength", "miles")),
        weight=_int(shipment.get("maximumWeightPounds")),
        full_partial=str(shipment.get("fullPartial") or ""),
        deadhead_miles=_int(_dig(match, "originDeadheadMiles", "miles")),
        credit_score=credit.get("creditScore"),
        source=Provider.DAT,
        search_module_id=search_module_id,
        ref_no=match.get("postersReferenceId"),
        **extras,
    )


def normalize_matches(matches: list[Any], search_module_id: str) -> list[Load]:
    loads: list[Load] = []
    for match in matches:
        if not isinstance(match, dict):
            log.warning("DAT: skipping non-object match %r", match)
            continue
        try:
            loads.append(normalize_match(match, search_module_id))
        except (KeyError, TypeError, ValueError) as e:
            log.warning("DAT: skipping malformed match (%s): %s", e, str(match)[:300])
    return loads


class DatAdapter(LoadBoardAdapter):
    provider = Provider.DAT
    name = "DAT Power"

    def build_message(self, request: SearchRequest, data: ProviderSearchData) -> dict[str, Any]:
        return {"type": RequestType.DAT_SEARCH.value, "params": data.to_wire()}

    def parse_response(
        self,
        request: SearchRequest,
        data: ProviderSearchData,
        response: dict[str, Any],
    ) -> ResultPayload:
        body = asset_matches_body(response)
        if body is not None and isinstance(body.get("matches"), list):
            matches = body["matches"]
        else:
            matches = response.get("loads") if isinstance(response.get("loads"), list) else []
        loads = normalize_matches(matches, request.search_module_id)
        return ResultPayload(
            **self._base_payload(request, data, ResultMode.EXTENSION),
            raw=response,
            loads=loads,
            query_id=extract_query_id(response),
            results_found=response.get("resultsFound"),
        )

    def refresh_params(self, lane: Lane) -> dict[str, Any]:
        params: dict[str, Any] = {"isRefresh": True}
        if lane.dat_query_id:
            params["datQueryId"] = lane.dat_query_id
        return params
