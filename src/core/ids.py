"""Identifier helpers for search modules, transport requests and synthetic loads."""

import random
import string
import time

_BASE36 = string.digits + string.ascii_lowercase


def _now_ms() -> int:
    return int(time.time() * 1000)


def random_base36(length: int) -> str:
    return "".join(random.choice(_BASE36) for _ in range(length))


def generate_search_module_id() -> str:
    """Return ``SM_<epochMillis>_<random6>``, e.g. ``SM_1642601234567_abc123``."""
    return f"SM_{_now_ms()}_{random_base36(6)}"


def search_module_timestamp(search_module_id: str) -> int:
    """Epoch millis embedded in a search module id, or 0 when the id has another shape."""
    parts = search_module_id.split("_")
    if len(parts) >= 2 and parts[0] == "SM":
        try:
            return int(parts[1])
        except ValueError:
            return 0
    return 0


def generate_request_id() -> str:
    return f"req_{_now_ms()}_{random_base36(9)}"


def generate_load_id() -> str:
    return f"load_{_now_ms()}_{random_base36(9)}"


def generate_mock_query_id() -> str:
    return f"mock_{_now_ms()}"
