"""Extension message contract v1.

Defines the canonical types for:
  - Request and push message types exchanged with the browser extension
  - Push event families (one callback slot per family)
  - The broadcast envelope used by the fallback channel
  - Typed payloads for the DAT push events

Every message is a JSON object with a ``type`` discriminator. Fields use the
extension's camelCase names on the wire.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Message types
# ---------------------------------------------------------------------------


class RequestType(StrEnum):
    CONNECTION_CHECK = "CONNECTION_CHECK"
    PING_DAT_TAB = "PING_DAT_TAB"
    DAT_SEARCH = "DAT_SEARCH"
    SYLECTUS_SEARCH = "SYLECTUS_SEARCH"


class PushType(StrEnum):
    DAT_TAB_CONNECTED = "DAT_TAB_CONNECTED"
    DAT_TAB_DISCONNECTED = "DAT_TAB_DISCONNECTED"
    EXTENSION_DETECTED = "EXTENSION_DETECTED"
    DAT_LOADS_RECEIVED = "DAT_LOADS_RECEIVED"
    DAT_SEARCH_FINDINGS = "DAT_SEARCH_FINDINGS"


class PushFamily(StrEnum):
    """Callback slots for unsolicited messages. Each family holds at most one callback."""

    TAB = "tab"
    EXTENSION = "extension"
    DAT_LOADS = "dat_loads"
    DAT_FINDINGS = "dat_findings"


PUSH_FAMILIES: dict[str, PushFamily] = {
    PushType.DAT_TAB_CONNECTED: PushFamily.TAB,
    PushType.DAT_TAB_DISCONNECTED: PushFamily.TAB,
    PushType.EXTENSION_DETECTED: PushFamily.EXTENSION,
    PushType.DAT_LOADS_RECEIVED: PushFamily.DAT_LOADS,
    PushType.DAT_SEARCH_FINDINGS: PushFamily.DAT_FINDINGS,
}


def push_family(message_type: str | None) -> PushFamily | None:
    if not message_type:
        return None
    return PUSH_FAMILIES.get(message_type)


# ---------------------------------------------------------------------------
# Broadcast envelope
# ---------------------------------------------------------------------------


class BroadcastEnvelope(BaseModel):
    """Outgoing fallback-channel message: the request plus routing fields."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    target: str = Field(description="Fixed extension-page marker the relay listens for")
    request_id: str = Field(alias="requestId", description="Correlation key echoed back")
    type: str

    @classmethod
    def wrap(cls, message: dict[str, Any], target: str, request_id: str) -> BroadcastEnvelope:
        return cls.model_validate({**message, "target": target, "requestId": request_id})

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Push payloads
# ---------------------------------------------------------------------------


class DatLoadsReceived(BaseModel):
    """``DAT_LOADS_RECEIVED``: loads the extension captured for one DAT query."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str = PushType.DAT_LOADS_RECEIVED.value
    query_id: str | None = Field(default=None, alias="queryId")
    loads: list[dict[str, Any]] = Field(default_factory=list)
    match_count: int | None = Field(default=None, alias="matchCount")
    timestamp: str | None = None
    provider: str | None = None


class DatFindings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    matches: list[dict[str, Any]] = Field(default_factory=list)
    match_counts: dict[str, Any] = Field(default_factory=dict, alias="matchCounts")
    timestamp: str | None = None
    provider: str | None = None


class DatSearchFindings(BaseModel):
    """``DAT_SEARCH_FINDINGS``: refreshed matches for an existing lane."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str = PushType.DAT_SEARCH_FINDINGS.value
    lane_id: str | None = Field(default=None, alias="laneId")
    findings: DatFindings = Field(default_factory=DatFindings)
