"""Application wiring: transport, monitor, stores, adapters and services at startup."""

from dataclasses import dataclass, field

from src.core.config import Config, config as default_config
from src.core.logger import logger
from src.lanes.push_listener import DatPushListener
from src.lanes.reconciler import LaneReconciler
from src.loadboards.adapters import DatAdapter, SylectusAdapter
from src.loadboards.registry import LoadBoardRegistry
from src.loadboards.service import LoadBoardSearchService
from src.store.kv import JsonFileStore, KeyValueStore
from src.store.results import ResultStore
from src.transport.broadcast import BroadcastBus
from src.transport.correlation import CorrelationTransport
from src.transport.direct import DirectChannel, HttpDirectChannel
from src.transport.monitor import ConnectionMonitor


@dataclass
class AppContext:
    config: Config
    storage: KeyValueStore
    bus: BroadcastBus
    transport: CorrelationTransport
    monitor: ConnectionMonitor
    results: ResultStore
    lanes: LaneReconciler
    registry: LoadBoardRegistry
    service: LoadBoardSearchService
    push_listener: DatPushListener
    closables: list[object] = field(default_factory=list)

    async def close(self) -> None:
        await self.monitor.stop()
        self.push_listener.stop()
        self.transport.close()
        for resource in self.closables:
            try:
                await resource.close()
            except Exception as e:
                logger.warning(f"Shutdown: failed to close {type(resource).__name__}: {e}")


def build_context(
    cfg: Config | None = None,
    *,
    storage: KeyValueStore | None = None,
    direct: DirectChannel | None = None,
    bus: BroadcastBus | None = None,
) -> AppContext:
    """Wire one application instance. Expired results are dropped before anything runs."""
    cfg = cfg or default_config
    for problem in cfg.validate():
        logger.warning(f"Config: {problem}")

    closables: list[object] = []
    storage = storage if storage is not None else JsonFileStore(cfg.data_dir)
    bus = bus if bus is not None else BroadcastBus()
    if direct is None and cfg.extension_bridge_url:
        direct = HttpDirectChannel(cfg.extension_bridge_url, timeout_s=cfg.transport_timeout_s)
        closables.append(direct)

    transport = CorrelationTransport(
        extension_id=cfg.extension_id,
        marker=cfg.extension_marker,
        direct=direct,
        bus=bus,
        timeout_s=cfg.transport_timeout_s,
    )
    monitor = ConnectionMonitor(transport, interval_s=cfg.connection_check_interval_s)

    results = ResultStore(storage, retention_hours=cfg.result_retention_hours)
    removed = results.cleanup()
    if removed:
        logger.info(f"Startup: removed {removed} expired search result(s)")
    lanes = LaneReconciler(storage, results)

    registry = LoadBoardRegistry(
        [
            DatAdapter(transport, simulation_delay_s=cfg.dat_simulation_delay_ms / 1000),
            SylectusAdapter(
                transport,
                simulation_delay_s=cfg.sylectus_simulation_delay_ms / 1000,
                radius_miles=cfg.sylectus_radius_miles,
            ),
        ]
    )
    service = LoadBoardSearchService(registry, results, lanes)
    push_listener = DatPushListener(transport, results, lanes)
    push_listener.start()

    return AppContext(
        config=cfg,
        storage=storage,
        bus=bus,
        transport=transport,
        monitor=monitor,
        results=results,
        lanes=lanes,
        registry=registry,
        service=service,
        push_listener=push_listener,
        closables=closables,
    )
