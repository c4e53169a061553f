from collections.abc import AsyncIterator
from dataclasses import replace

import pytest
import pytest_asyncio

from src.core.bootstrap import AppContext, build_context
from src.core.config import config
from src.store.kv import MemoryStore


@pytest_asyncio.fixture
async def context() -> AsyncIterator[AppContext]:
    """Context wired to the live extension bridge, with throwaway storage."""
    if not config.extension_bridge_url:
        pytest.skip("EXTENSION_BRIDGE_URL is not set")
    instance = build_context(replace(config, transport_timeout_ms=15000), storage=MemoryStore())
    try:
        yield instance
    finally:
        await instance.close()
