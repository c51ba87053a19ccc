# mixmaster/config/config_loader.py
"""
Config loader for the master station YAML settings.
"""

import logging
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

MASTER_FILE = "master.yml"

DEFAULT_SETTINGS: dict[str, Any] = {
    "master": {
        "name": "mixer_master",
        "unit_address": 1,
        "tick_period": 1.0,
        "time_mode": "realtime",
        "time_acceleration": 1.0,
    },
    "executor": {
        "kind": "loopback",
        "host": "127.0.0.1",
        "port": 502,
        "timeout": 2.0,
    },
    "points_file": "points.txt",
    "automation": {
        "enabled": True,
        "addresses": {
            "start": 3000,
            "motor": 3001,
            "valve_v1": 4000,
            "valve_v2": 4001,
            "valve_v3": 4002,
            "valve_v4": 4003,
            "mixer_contents": 1000,
        },
        "rates": {
            "chocolate": 50.0,
            "milk": 50.0,
            "water": 30.0,
            "drain": 100.0,
        },
        "targets": {
            "chocolate": 100.0,
            "milk": 150.0,
            "water": 120.0,
            "mixing_ticks": 10,
        },
    },
    "logging": {
        "log_dir": None,
        "level": "INFO",
    },
}

VALID_EXECUTORS = ("loopback", "tcp")
VALID_TIME_MODES = ("realtime", "accelerated", "stepped")


class ConfigLoader:
    """Loads master station settings from YAML and validates them."""

    def __init__(self, config_dir="config"):
        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

    def load_all(self) -> dict[str, Any]:
        """Load master.yml, merged over defaults and validated.

        A default master.yml is written when none exists.
        """
        master_path = self.config_dir / MASTER_FILE
        if master_path.exists():
            with open(master_path) as f:
                loaded = yaml.safe_load(f) or {}
        else:
            loaded = {}
            self._save_defaults(master_path)

        config = _merge(DEFAULT_SETTINGS, loaded)
        self._validate(config)

        points_file = Path(config["points_file"])
        if not points_file.is_absolute():
            points_file = self.config_dir / points_file
        config["points_path"] = points_file

        return config

    def _validate(self, config: dict[str, Any]) -> None:
        """Replace invalid values with defaults, logging each substitution."""
        master = config["master"]
        master_defaults = DEFAULT_SETTINGS["master"]

        tick_period = master.get("tick_period")
        if not isinstance(tick_period, (int, float)) or tick_period <= 0:
            logger.warning(f"Invalid tick_period {tick_period}, using default 1.0")
            master["tick_period"] = master_defaults["tick_period"]

        acceleration = master.get("time_acceleration")
        if not isinstance(acceleration, (int, float)) or acceleration <= 0:
            logger.warning(
                f"Invalid time_acceleration {acceleration}, using default 1.0"
            )
            master["time_acceleration"] = master_defaults["time_acceleration"]

        if master.get("time_mode") not in VALID_TIME_MODES:
            logger.warning(
                f"Invalid time_mode {master.get('time_mode')}, using realtime"
            )
            master["time_mode"] = master_defaults["time_mode"]

        unit_address = master.get("unit_address")
        if not isinstance(unit_address, int) or not 0 <= unit_address <= 255:
            logger.warning(f"Invalid unit_address {unit_address}, using default 1")
            master["unit_address"] = master_defaults["unit_address"]

        executor = config["executor"]
        executor_defaults = DEFAULT_SETTINGS["executor"]
        if executor.get("kind") not in VALID_EXECUTORS:
            logger.warning(
                f"Invalid executor kind {executor.get('kind')}, using loopback"
            )
            executor["kind"] = executor_defaults["kind"]

        timeout = executor.get("timeout")
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            logger.warning(f"Invalid executor timeout {timeout}, using default 2.0")
            executor["timeout"] = executor_defaults["timeout"]

    def _save_defaults(self, path: Path) -> None:
        """Save default master configuration to file."""
        with open(path, "w") as f:
            yaml.dump(DEFAULT_SETTINGS, f, default_flow_style=False, sort_keys=False)
        logger.info(f"Created default master config at {path}")


def _merge(defaults: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge overrides onto a copy of defaults."""
    merged: dict[str, Any] = {}
    for key, value in defaults.items():
        if isinstance(value, dict):
            override = overrides.get(key)
            merged[key] = _merge(value, override if isinstance(override, dict) else {})
        else:
            merged[key] = overrides.get(key, value)
    for key, value in overrides.items():
        if key not in merged:
            merged[key] = value
    return merged
