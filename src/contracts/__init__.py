"""Extension message contract v1: shared types for requests, push events and envelopes."""

from src.contracts.extension_v1 import (
    BroadcastEnvelope,
    DatLoadsReceived,
    DatSearchFindings,
    PushFamily,
    PushType,
    RequestType,
)

__all__ = [
    "BroadcastEnvelope",
    "DatLoadsReceived",
    "DatSearchFindings",
    "PushFamily",
    "PushType",
    "RequestType",
]
