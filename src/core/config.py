"""Configuration from environment variables (.env)."""

import os
from pathlib import Path
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name, "").strip()
    return Path(raw).expanduser() if raw else default


@dataclass
class Config:
    project_root: Path
    data_dir: Path
    logs_dir: Path
    extension_id: str
    extension_marker: str  # broadcast target / source marker shared with the extension
    extension_bridge_url: str  # empty disables the direct channel
    transport_timeout_ms: int
    connection_check_interval_s: float
    dat_simulation_delay_ms: int
    sylectus_simulation_delay_ms: int
    result_retention_hours: float
    sylectus_radius_miles: int

    @classmethod
    def load(cls) -> "Config":
        project_root = Path(__file__).parent.parent.parent
        return cls(
            project_root=project_root,
            data_dir=_env_path("LANEDESK_DATA_DIR", project_root / "data"),
            logs_dir=_env_path("LANEDESK_LOGS_DIR", project_root / "logs"),
            extension_id=os.getenv("EXTENSION_ID", "pgdncppejlbjbpbifphhmjiebjdpgehi"),
            extension_marker=os.getenv("EXTENSION_MARKER", "truckarooskie-extension"),
            extension_bridge_url=os.getenv("EXTENSION_BRIDGE_URL", "").strip().rstrip("/"),
            transport_timeout_ms=int(os.getenv("TRANSPORT_TIMEOUT_MS", "5000")),
            connection_check_interval_s=float(os.getenv("CONNECTION_CHECK_INTERVAL_S", "30")),
            dat_simulation_delay_ms=int(os.getenv("DAT_SIMULATION_DELAY_MS", "1500")),
            sylectus_simulation_delay_ms=int(os.getenv("SYLECTUS_SIMULATION_DELAY_MS", "2000")),
            result_retention_hours=float(os.getenv("RESULT_RETENTION_HOURS", "24")),
            sylectus_radius_miles=int(os.getenv("SYLECTUS_RADIUS_MILES", "120")),
        )

    @property
    def transport_timeout_s(self) -> float:
        return self.transport_timeout_ms / 1000

    def validate(self) -> list[str]:
        errors = []
        if not self.extension_id:
            errors.append("EXTENSION_ID is empty")
        if not self.extension_marker:
            errors.append("EXTENSION_MARKER is empty")
        if self.transport_timeout_ms <= 0:
            errors.append(f"TRANSPORT_TIMEOUT_MS must be positive, got {self.transport_timeout_ms}")
        if self.connection_check_interval_s <= 0:
            errors.append(
                f"CONNECTION_CHECK_INTERVAL_S must be positive, got {self.connection_check_interval_s}"
            )
        if self.result_retention_hours <= 0:
            errors.append(f"RESULT_RETENTION_HOURS must be positive, got {self.result_retention_hours}")
        if self.extension_bridge_url and not self.extension_bridge_url.startswith(("http://", "https://")):
            errors.append(f"EXTENSION_BRIDGE_URL is not an http(s) URL: {self.extension_bridge_url}")
        return errors


config = Config.load()
