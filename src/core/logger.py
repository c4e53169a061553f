"""Structured logging: console plus a JSON-lines event log."""

import json
import logging
import os
import sys
import threading
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from src.core.config import config

_STD_LOG_KWARGS = {"exc_info", "stack_info", "stacklevel", "extra"}


def _format_duration(seconds: float) -> str:
    if seconds < 0:
        return "0s"
    if seconds >= 60:
        m = int(seconds // 60)
        s = seconds % 60
        if s < 0.05:
            return f"{m}m"
        return f"{m}m {s:.0f}s" if s >= 1 else f"{m}m {s:.1f}s"
    if seconds >= 1:
        return f"{seconds:.1f}s"
    if seconds >= 0.001:
        return f"{seconds * 1000:.0f}ms"
    if seconds > 0:
        return "<1ms"
    return "0s"


def _short_reason(reason: str | None, max_len: int = 80) -> str:
    """One-line short reason for console (failed call)."""
    if not reason or not reason.strip():
        return ""
    s = reason.strip().replace("\n", " ").strip()
    return s[:max_len] + "..." if len(s) > max_len else s


def _use_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    try:
        return sys.stdout.isatty()
    except Exception:
        return False


def _c(role: str) -> str:
    if not _use_color():
        return ""
    # 38;5;N = foreground 256-color
    codes = {
        "dim": "\033[38;5;239m",
        "provider": "\033[38;5;81m",  # cyan for provider / message type
        "ok": "\033[38;5;78m",
        "fail": "\033[38;5;203m",
        "sim": "\033[38;5;221m",  # yellow for simulated results
        "duration": "\033[38;5;221m",
    }
    return codes.get(role, "")


def _reset() -> str:
    if not _use_color():
        return ""
    return "\033[0m"


@dataclass
class LogEvent:
    event_type: str
    timestamp: str
    data: dict[str, Any]

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class LaneDeskLogger:
    def __init__(self):
        config.logs_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = config.logs_dir / "events.log"
        self._file_lock = threading.Lock()
        self._log_file_handle = open(self.log_file, "a", encoding="utf-8")
        self._setup_console_logger()

    def _setup_console_logger(self):
        self.console = logging.getLogger("lanedesk")
        self.console.setLevel(logging.DEBUG)
        self._console_formatter = logging.Formatter(
            "%(asctime)s │ %(message)s", datefmt="%H:%M:%S"
        )
        if not self.console.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(logging.INFO)
            handler.setFormatter(self._console_formatter)
            self.console.addHandler(handler)
        self._setup_library_console_logging()

    def _setup_library_console_logging(self):
        # Modules using logging.getLogger(__name__) live under "src.*"
        handler = logging.StreamHandler()
        handler.setLevel(logging.WARNING)
        handler.setFormatter(self._console_formatter)
        log = logging.getLogger("src")
        if not log.handlers:
            log.setLevel(logging.INFO)
            log.addHandler(handler)
        logging.getLogger("httpx").setLevel(logging.WARNING)

    def log_event(self, event: LogEvent) -> None:
        with self._file_lock:
            self._log_file_handle.write(event.to_json() + "\n")
            self._log_file_handle.flush()

    def _timestamp(self) -> str:
        return datetime.now().isoformat()

    def _event(self, event_type: str, **data: Any) -> None:
        self.log_event(
            LogEvent(event_type=event_type, timestamp=self._timestamp(), data=data)
        )

    def transport_request(
        self, message_type: str, strategy: str, request_id: str | None = None
    ) -> None:
        self._event(
            "TRANSPORT_REQUEST",
            type=message_type,
            strategy=strategy,
            request_id=request_id,
        )
        self.console.debug(
            f"→ {_c('provider')}{message_type}{_reset()} via {strategy}"
            + (f" [{request_id}]" if request_id else "")
        )

    def transport_response(
        self,
        message_type: str,
        strategy: str,
        duration_seconds: float,
        success: bool,
        *,
        error_reason: str | None = None,
    ) -> None:
        data: dict[str, Any] = {
            "type": message_type,
            "strategy": strategy,
            "success": success,
            "duration_seconds": round(duration_seconds, 3),
        }
        if not success and error_reason:
            data["error_reason"] = error_reason[:500]
        self._event("TRANSPORT_RESPONSE", **data)
        dur = f"{_c('duration')}{_format_duration(duration_seconds)}{_reset()}"
        if success:
            self.console.debug(f"← {message_type} via {strategy}  {dur}")
        else:
            self.console.info(
                f"← {message_type} via {strategy}  {dur}  "
                f"{_c('fail')}[failed]{_reset()} {_short_reason(error_reason)}"
            )

    def provider_search(self, provider: str, search_module_id: str) -> None:
        self._event("PROVIDER_SEARCH", provider=provider, search_module_id=search_module_id)
        self.console.info(
            f"▶ Search  {_c('provider')}{provider}{_reset()}  {search_module_id}"
        )

    def provider_result(
        self,
        provider: str,
        search_module_id: str | None,
        success: bool,
        *,
        mode: str | None = None,
        load_count: int = 0,
        duration_seconds: float | None = None,
        error_reason: str | None = None,
    ) -> None:
        data: dict[str, Any] = {
            "provider": provider,
            "search_module_id": search_module_id,
            "success": success,
            "mode": mode,
            "load_count": load_count,
        }
        if duration_seconds is not None:
            data["duration_seconds"] = round(duration_seconds, 3)
        if not success and error_reason:
            data["error_reason"] = error_reason[:500]
        self._event("PROVIDER_RESULT", **data)
        dur = (
            f"  {_c('duration')}{_format_duration(duration_seconds)}{_reset()}"
            if duration_seconds is not None
            else ""
        )
        if not success:
            status = f"{_c('fail')}[failed]{_reset()} {_short_reason(error_reason)}"
        elif mode == "simulation":
            status = f"{_c('sim')}[simulated]{_reset()}"
        else:
            status = f"{_c('ok')}[ok]{_reset()}"
        self.console.info(
            f"✓ Done  {_c('provider')}{provider}{_reset()}  {load_count} loads{dur}  {status}"
        )

    def push_event(self, message_type: str, family: str | None, handled: bool) -> None:
        self._event("PUSH_EVENT", type=message_type, family=family, handled=handled)
        self.console.debug(
            f"⇠ push {message_type}" + ("" if handled else "  (no callback)")
        )

    def store_mutation(self, collection: str, action: str, key: str | None, size: int) -> None:
        self._event("STORE_MUTATION", collection=collection, action=action, key=key, size=size)
        self.console.debug(f"💾 {collection}: {action} {key or ''} ({size} items)")

    @staticmethod
    def _std_kwargs(kwargs: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in kwargs.items() if k in _STD_LOG_KWARGS}

    def error(self, message: str, *args, exception: Exception | None = None, **kwargs):
        self._event("ERROR", message=message, exception=str(exception) if exception else None)
        log_kwargs = self._std_kwargs(kwargs)
        if exception and "exc_info" not in log_kwargs:
            log_kwargs["exc_info"] = exception
        self.console.error(f"❌ Error: {message}", *args, **log_kwargs)

    def info(self, message: str, *args, **kwargs):
        self.console.info(message, *args, **self._std_kwargs(kwargs))

    def warning(self, message: str, *args, **kwargs):
        self._event("WARNING", message=message[:500])
        self.console.warning(f"⚠️ {message}", *args, **self._std_kwargs(kwargs))

    def exception(self, message: str, *args, **kwargs):
        self._event("ERROR", message=message[:500])
        self.console.exception(f"❌ {message}", *args, **kwargs)

    def debug(self, message: str, *args, **kwargs):
        self._event("DEBUG", message=message)
        self.console.debug(message, *args, **self._std_kwargs(kwargs))


logger = LaneDeskLogger()
