import os
import tempfile
from collections.abc import Callable, Sequence
from typing import Any

import pytest

# Keep event logs and stored collections out of the project tree; must run before src imports.
_TMP = tempfile.mkdtemp(prefix="lanedesk-tests-")
os.environ.setdefault("LANEDESK_LOGS_DIR", os.path.join(_TMP, "logs"))
os.environ.setdefault("LANEDESK_DATA_DIR", os.path.join(_TMP, "data"))
os.environ.setdefault("EXTENSION_BRIDGE_URL", "")

from src.store.kv import MemoryStore  # noqa: E402
from src.transport.broadcast import BroadcastBus  # noqa: E402
from src.transport.correlation import CorrelationTransport  # noqa: E402

MARKER = "truckarooskie-extension"
EXTENSION_ID = "pgdncppejlbjbpbifphhmjiebjdpgehi"

Handler = dict[str, Any] | Callable[[dict[str, Any]], dict[str, Any] | None] | None


class FakeExtension:
    """Answers broadcast requests on the bus the way the extension's content script does.

    ``handlers`` maps request type to a reply dict, a callable returning one, or None for
    "never answer". Every request seen is kept in ``requests``.
    """

    def __init__(self, bus: BroadcastBus, handlers: dict[str, Handler] | None = None):
        self.bus = bus
        self.handlers: dict[str, Handler] = dict(handlers or {})
        self.requests: list[dict[str, Any]] = []
        bus.add_listener(self._on_message)

    def _on_message(self, event: dict[str, Any]) -> None:
        if event.get("target") != MARKER:
            return
        self.requests.append(event)
        handler = self.handlers.get(event.get("type"))
        reply = handler(event) if callable(handler) else handler
        if reply is None:
            return
        self.bus.post({**reply, "source": MARKER, "requestId": event["requestId"]})

    def push(self, message: dict[str, Any]) -> None:
        self.bus.post({**message, "source": MARKER})

    def requests_of(self, message_type: str) -> list[dict[str, Any]]:
        return [r for r in self.requests if r.get("type") == message_type]


@pytest.fixture
def storage() -> MemoryStore:
    return MemoryStore()


class DiskFullStore(MemoryStore):
    """Reads work, every write fails like a full disk."""

    def set(self, key: str, value: str) -> None:
        raise OSError(28, "No space left on device")


@pytest.fixture
def full_disk() -> DiskFullStore:
    return DiskFullStore()


@pytest.fixture
def bus() -> BroadcastBus:
    return BroadcastBus()


@pytest.fixture
def transport(bus: BroadcastBus) -> CorrelationTransport:
    return CorrelationTransport(
        extension_id=EXTENSION_ID, marker=MARKER, bus=bus, timeout_s=0.2
    )


@pytest.fixture
def extension(bus: BroadcastBus) -> FakeExtension:
    return FakeExtension(bus)


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration/e2e tests that require a live extension bridge.",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers", "integration: requires runtime services or user configuration"
    )
    config.addinivalue_line("markers", "e2e: end-to-end runtime tests")
    config.addinivalue_line("markers", "property: property-based deterministic tests")


def pytest_collection_modifyitems(
    config: pytest.Config,
    items: Sequence[pytest.Item],
) -> None:
    run_integration = config.getoption("--run-integration")
    skip_integration = pytest.mark.skip(
        reason="integration/e2e is opt-in; rerun with --run-integration"
    )

    for item in items:
        if "tests/e2e/" in item.nodeid:
            item.add_marker("integration")
            item.add_marker("e2e")
        if (
            item.get_closest_marker("integration") or item.get_closest_marker("e2e")
        ) and not run_integration:
            item.add_marker(skip_integration)
