# mixmaster/logging_system.py
"""
Station logging.

Console lines carry the current tick. When a log directory is configured,
each ICSLogger also writes rotating JSON lines. Alarm and safety events
are kept in a short in-memory trail so tests and status views can see
what tripped.

Plain diagnostics use ``logging.getLogger``. Components that report
process events (alarms, interlock trips, state changes) use
``get_logger`` for an ``ICSLogger``.
"""

import json
import logging
import logging.handlers
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

__all__ = [
    "EventSeverity",
    "EventCategory",
    "LogEntry",
    "TickFormatter",
    "JSONFormatter",
    "ICSLogger",
    "configure_logging",
    "get_logger",
    "set_tick_source",
]

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


class EventSeverity(Enum):
    """Event severity, IEC 62443 style: 1 is the most severe."""

    CRITICAL = 1  # Interlock trip
    ERROR = 3  # Command failure
    WARNING = 4  # Point alarm
    INFO = 6
    DEBUG = 7


class EventCategory(Enum):
    SAFETY = "safety"
    PROCESS = "process"
    ALARM = "alarm"
    SYSTEM = "system"


# Events retained in the trail
TRAIL_CATEGORIES = (EventCategory.ALARM, EventCategory.SAFETY)

_LEVEL_FOR_SEVERITY = {
    EventSeverity.CRITICAL: logging.CRITICAL,
    EventSeverity.ERROR: logging.ERROR,
    EventSeverity.WARNING: logging.WARNING,
    EventSeverity.INFO: logging.INFO,
    EventSeverity.DEBUG: logging.DEBUG,
}
_SEVERITY_FOR_LEVEL = {level: severity for severity, level in _LEVEL_FOR_SEVERITY.items()}

# ----------------------------------------------------------------
# Tick source
# ----------------------------------------------------------------

_tick_source: Callable[[], int] | None = None


def set_tick_source(source: Callable[[], int] | None) -> None:
    """Install the callable whose value prefixes every log line."""
    global _tick_source
    _tick_source = source


def _current_tick() -> int:
    if _tick_source is None:
        return 0
    try:
        return int(_tick_source())
    except Exception:
        return 0


@dataclass
class LogEntry:
    """One alarm, safety or process event."""

    tick: int
    wall_time: float
    severity: EventSeverity
    category: EventCategory
    message: str

    device: str = ""
    component: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Flatten for a JSON line; empty context fields are left out."""
        result: dict[str, Any] = {
            "tick": self.tick,
            "wall_time": self.wall_time,
            "severity": self.severity.name,
            "category": self.category.value,
            "message": self.message,
        }
        for key in ("device", "component"):
            value = getattr(self, key)
            if value:
                result[key] = value
        if self.data:
            result["data"] = json.dumps(self.data, default=str)
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def to_human_readable(self) -> str:
        context = "".join(f"{part}:" for part in (self.device, self.component) if part)
        return f"[{self.category.value.upper()}] {context} {self.message}"


# ----------------------------------------------------------------
# Formatters
# ----------------------------------------------------------------


class TickFormatter(logging.Formatter):
    def __init__(self):
        super().__init__(fmt="[TICK:%(tick)6d] [%(levelname)8s] %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        record.tick = _current_tick()
        return super().format(record)


class JSONFormatter(logging.Formatter):
    """Render any log record as a SYSTEM LogEntry JSON line."""

    def __init__(self, device: str = ""):
        super().__init__()
        self.device = device

    def format(self, record: logging.LogRecord) -> str:
        entry = LogEntry(
            tick=_current_tick(),
            wall_time=record.created,
            severity=_SEVERITY_FOR_LEVEL.get(record.levelno, EventSeverity.INFO),
            category=EventCategory.SYSTEM,
            message=record.getMessage(),
            device=self.device,
            component=record.name,
        )
        if record.exc_info:
            entry.data["exception"] = self.formatException(record.exc_info)
        return entry.to_json()


class ICSLogger:
    """
    Station logger with an alarm/safety event trail.

    Example:
        >>> log = get_logger("AutomationController", device="mixer_master")
        >>> log.log_safety("V1 open while mixing", component="interlock")
        >>> log.get_event_trail(category=EventCategory.SAFETY)
    """

    def __init__(
        self,
        name: str,
        device: str = "",
        log_dir: Path | None = None,
        level: int = logging.INFO,
        enable_console: bool = True,
        max_trail_entries: int = 1000,
    ):
        """
        Args:
            name: Underlying ``logging`` logger name
            device: Station name attached to every event
            log_dir: Directory for ``<device>.json.log`` (None disables it)
            level: Minimum level passed to the handlers
            enable_console: Attach the tick-prefixed console handler
            max_trail_entries: Oldest trail entries are dropped past this size
        """
        self.name = name
        self.device = device
        self.log_dir = log_dir

        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.logger.propagate = False
        self.logger.handlers.clear()

        if enable_console:
            console = logging.StreamHandler()
            console.setFormatter(TickFormatter())
            self.logger.addHandler(console)
        if log_dir:
            self._attach_json_file()

        self._trail: deque[LogEntry] = deque(maxlen=max_trail_entries)
        self._trail_lock = threading.Lock()

    def _attach_json_file(self) -> None:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            self.log_dir / f"{self.device or 'master'}.json.log",
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
        )
        handler.setFormatter(JSONFormatter(device=self.device))
        self.logger.addHandler(handler)

    def debug(self, message: str, **kwargs) -> None:
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self.logger.error(message, **kwargs)

    # ----------------------------------------------------------------
    # Process events
    # ----------------------------------------------------------------

    def log_event(
        self,
        severity: EventSeverity,
        category: EventCategory,
        message: str,
        **kwargs,
    ) -> LogEntry:
        """
        Emit an event at the level matching its severity.

        Alarm and safety events are also appended to the trail.

        Args:
            severity: Event severity
            category: Event category
            message: Text shown after the category tag
            **kwargs: Extra LogEntry fields (device, component, data)

        Returns:
            The LogEntry emitted
        """
        kwargs.setdefault("device", self.device)
        entry = LogEntry(
            tick=_current_tick(),
            wall_time=time.time(),
            severity=severity,
            category=category,
            message=message,
            **kwargs,
        )

        self.logger.log(_LEVEL_FOR_SEVERITY[severity], entry.to_human_readable())

        if category in TRAIL_CATEGORIES:
            with self._trail_lock:
                self._trail.append(entry)
        return entry

    def log_alarm(self, message: str, **kwargs) -> LogEntry:
        return self.log_event(EventSeverity.WARNING, EventCategory.ALARM, message, **kwargs)

    def log_safety(
        self, message: str, severity: EventSeverity = EventSeverity.CRITICAL, **kwargs
    ) -> LogEntry:
        return self.log_event(severity, EventCategory.SAFETY, message, **kwargs)

    def get_event_trail(
        self, limit: int = 100, category: EventCategory | None = None
    ) -> list[LogEntry]:
        """Newest ``limit`` trail entries, oldest first, optionally of one category."""
        with self._trail_lock:
            entries = [e for e in self._trail if category is None or e.category == category]
        return entries[-limit:]


# ----------------------------------------------------------------
# Factory
# ----------------------------------------------------------------

_loggers: dict[str, ICSLogger] = {}
_loggers_lock = threading.Lock()
_default_log_dir: Path | None = None
_default_level: int = logging.INFO


def configure_logging(
    log_dir: Path | str | None = None,
    level: int | str = logging.INFO,
    tick_source: Callable[[], int] | None = None,
) -> None:
    """
    Set the log directory and level used by loggers created from now on.

    Args:
        log_dir: JSON log directory, created if missing (None disables files)
        level: ``logging`` constant or level name; unknown names mean INFO
        tick_source: Callable returning the current tick
    """
    global _default_log_dir, _default_level

    _default_log_dir = Path(log_dir) if log_dir else None
    if _default_log_dir is not None:
        _default_log_dir.mkdir(parents=True, exist_ok=True)

    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        level = resolved if isinstance(resolved, int) else logging.INFO
    _default_level = level

    logging.basicConfig(
        level=_default_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if tick_source is not None:
        set_tick_source(tick_source)


def get_logger(name: str, device: str = "", **kwargs) -> ICSLogger:
    """Return the cached ICSLogger for (name, device), creating it on first use."""
    key = f"{name}:{device}"

    with _loggers_lock:
        if key not in _loggers:
            if _default_log_dir and "log_dir" not in kwargs:
                kwargs["log_dir"] = _default_log_dir
            kwargs.setdefault("level", _default_level)
            _loggers[key] = ICSLogger(name, device, **kwargs)
        return _loggers[key]
