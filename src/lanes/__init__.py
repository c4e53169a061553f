from src.lanes.push_listener import DatPushListener
from src.lanes.reconciler import (
    LaneReconciler,
    count_dat_results,
    count_sylectus_results,
)

__all__ = [
    "DatPushListener",
    "LaneReconciler",
    "count_dat_results",
    "count_sylectus_results",
]
