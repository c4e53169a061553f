"""Provider-agnostic search, result, load and lane models.

All models serialize with the dashboard's camelCase field names (``searchModuleId``,
``driverIds``...) and accept either the alias or the Python field name on input.
"""

from __future__ import annotations

from datetime import date
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.core.ids import generate_search_module_id


class Provider(StrEnum):
    DAT = "DAT"
    SYLECTUS = "SYLECTUS"


class LaneSource(StrEnum):
    DAT = "DAT"
    SYLECTUS = "SYLECTUS"
    MANUAL = "MANUAL"
    COMBINED = "COMBINED"


class ResultMode(StrEnum):
    EXTENSION = "extension"
    SIMULATION = "simulation"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Place(WireModel):
    city: str = ""
    state: str = ""
    zip: str | None = None

    def label(self) -> str:
        """``"City, ST"`` as the load boards expect it."""
        return f"{self.city}, {self.state}"

    def is_empty(self) -> bool:
        return not self.city and not self.state

    @classmethod
    def parse(cls, value: Any) -> Place | None:
        """Accept ``"City, ST"`` or ``{city, state, zip?}``; anything else is None."""
        if isinstance(value, Place):
            return value.model_copy()
        if isinstance(value, str):
            if not value.strip():
                return None
            parts = [p.strip() for p in value.split(",")]
            return cls(city=parts[0], state=parts[1] if len(parts) > 1 else "")
        if isinstance(value, dict):
            zip_code = value.get("zip") or value.get("zipCode") or value.get("postalCode")
            return cls(
                city=str(value.get("city") or ""),
                state=str(value.get("state") or value.get("stateProv") or ""),
                zip=str(zip_code) if zip_code else None,
            )
        return None


class SearchRequest(WireModel):
    """One user-initiated search, shared by every provider it is sent to."""

    origin: Place | None = None
    destination: Place | None = None
    start_date: date | None = None
    end_date: date | None = None
    origin_states: list[str] = Field(default_factory=list)
    destination_states: list[str] = Field(default_factory=list)
    weight_pounds: int | None = None
    search_module_id: str = Field(default_factory=generate_search_module_id)

    @property
    def date_range(self) -> tuple[date | None, date | None]:
        return (self.start_date, self.end_date)


class ProviderSearchData(WireModel):
    """Criteria in the shape the extension's search handlers take."""

    origin: str | None = None
    destination: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    origin_states: list[str] = Field(default_factory=list)
    destination_states: list[str] = Field(default_factory=list)
    weight_pounds: int | None = None
    search_module_id: str | None = None

    @classmethod
    def from_request(cls, request: SearchRequest) -> ProviderSearchData:
        return cls(
            origin=request.origin.label() if request.origin else None,
            destination=request.destination.label() if request.destination else None,
            start_date=request.start_date.isoformat() if request.start_date else None,
            end_date=request.end_date.isoformat() if request.end_date else None,
            origin_states=list(request.origin_states),
            destination_states=list(request.destination_states),
            weight_pounds=request.weight_pounds,
            search_module_id=request.search_module_id,
        )


class Contact(WireModel):
    company: str = ""
    name: str = ""
    phone: str | None = None
    email: str | None = None


class Load(WireModel):
    """One normalized posting. Provider-specific extras ride along as extra fields."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    posted_at: str = ""
    origin: Place = Field(default_factory=Place)
    destination: Place = Field(default_factory=Place)
    contact: Contact = Field(default_factory=Contact)
    rate: float = 0.0
    comment: str = ""
    equipment_type: str = ""
    miles: int = 0
    weight: int = 0
    full_partial: str = ""
    deadhead_miles: int = 0
    credit_score: int | None = None
    source: Provider
    search_module_id: str = ""
    ref_no: str | None = None
    bid_url: str | None = None
    pickup_at: str | None = None
    delivery_at: str | None = None
    pieces: int | None = None


class ResultPayload(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    search_module_id: str = ""
    timestamp: str
    provider: Provider | None = None
    mode: ResultMode = ResultMode.EXTENSION
    raw: dict[str, Any] | None = None
    loads: list[Load] = Field(default_factory=list)
    search_criteria: dict[str, Any] = Field(default_factory=dict)
    original_search_data: dict[str, Any] | None = None
    query_id: str | None = None
    total_records: int | None = None
    results_found: int | None = None


class SearchResult(WireModel):
    success: bool
    message: str = ""
    error: str | None = None
    data: ResultPayload | None = None

    @property
    def search_module_id(self) -> str | None:
        if self.data is None:
            return None
        return self.data.search_module_id or None

    @classmethod
    def fail(cls, message: str) -> SearchResult:
        return cls(success=False, message=message)


class Lane(WireModel):
    """A durable origin/destination/date search the user keeps on the board."""

    id: str
    origin: Place = Field(default_factory=Place)
    destination: Place = Field(default_factory=Place)
    date_range: tuple[str, str] = ("", "")
    weight: int = 0
    driver_ids: list[str] = Field(default_factory=list)
    source: LaneSource | None = None
    dat_query_id: str | None = None
    sylectus_query_id: str | None = None
    dat_search_module_id: str | None = None
    sylectus_search_module_id: str | None = None
    dat_results_count: int | None = None
    sylectus_results_count: int | None = None
    results_count: int | None = None
    last_refreshed: str | None = None
    search_module_id: str | None = None
    details: str | None = None

    def linked_search_module_ids(self) -> list[str]:
        """Result-store keys that belong to this lane, first occurrence wins."""
        ids: list[str] = []
        for value in (
            self.dat_search_module_id,
            self.sylectus_search_module_id,
            self.search_module_id,
            self.dat_query_id,
            self.sylectus_query_id,
        ):
            if value and value not in ids:
                ids.append(value)
        return ids
