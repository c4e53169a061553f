"""Load-board adapters, models and the multi-provider search service."""

from src.loadboards.interface import LoadBoardAdapter
from src.loadboards.models import (
    Lane,
    LaneSource,
    Load,
    Place,
    Provider,
    ResultMode,
    ResultPayload,
    SearchRequest,
    SearchResult,
)
from src.loadboards.registry import LoadBoardRegistry

__all__ = [
    "Lane",
    "LaneSource",
    "Load",
    "LoadBoardAdapter",
    "LoadBoardRegistry",
    "Place",
    "Provider",
    "ResultMode",
    "ResultPayload",
    "SearchRequest",
    "SearchResult",
]
