# mixmaster/config/config_item.py
"""
Point configuration rows.

Each row of the points file describes one address range:

    DO_REG 4 4000 0 0 1 0 DO @Valves 2 1
    HR_INT 1 1000 0 0 65535 0 AO @Contents # 1 0 0 400 380 0

Tokens, in order: registry type, number of registers, start address,
decimal separator place, min, max, default, processing type, description
(leading '@' stripped), acquisition interval ('#' means 1). Analog rows
append scale factor, deviation, EGU min/max and high/low alarm limits;
digital rows append the abnormal value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from mixmaster.errors import ConfigParseError
from mixmaster.state.points import PointType

logger = logging.getLogger(__name__)

REGISTRY_TYPE_TOKENS = {
    "DO_REG": PointType.DIGITAL_OUTPUT,
    "DI_REG": PointType.DIGITAL_INPUT,
    "IN_REG": PointType.ANALOG_INPUT,
    "HR_INT": PointType.ANALOG_OUTPUT,
}

MIN_TOKENS = 10
ANALOG_TOKENS = 16
DIGITAL_TOKENS = 11

# scale, deviation, egu_min, egu_max, high_limit, low_limit
ANALOG_DEFAULTS = (1.0, 0.0, 0.0, 65535.0, 60000.0, 1000.0)
DIGITAL_DEFAULT_ABNORMAL = 1  # nominal state is OFF


def _parse_int(token: str, field_name: str) -> int:
    try:
        return int(token)
    except ValueError:
        error = ConfigParseError(f"Invalid integer for {field_name}: {token!r}")
        logger.warning(f"{error}, using 0")
        return 0


def _parse_float(token: str, field_name: str) -> float:
    try:
        return float(token)
    except ValueError:
        error = ConfigParseError(f"Invalid number for {field_name}: {token!r}")
        logger.warning(f"{error}, using 0.0")
        return 0.0


def _to_uint16(value: int) -> int:
    return value & 0xFFFF


@dataclass(frozen=True, eq=False)
class ConfigItem:
    """
    Configuration of one address range.

    Immutable once loaded. Equality and hashing are by identity so items
    can key per-item state owned by other components.
    """

    registry_type: PointType
    number_of_registers: int
    start_address: int
    decimal_separator_place: int = 0
    min_value: int = 0
    max_value: int = 0
    default_value: int = 0
    processing_type: str = ""
    description: str = ""
    acquisition_interval: int = 1
    scale_factor: float = 1.0
    deviation: float = 0.0
    egu_min: float = 0.0
    egu_max: float = 65535.0
    high_limit: float = 60000.0
    low_limit: float = 1000.0
    abnormal_value: int = 0

    # ----------------------------------------------------------------
    # Parsing
    # ----------------------------------------------------------------

    @classmethod
    def from_tokens(cls, tokens: list[str]) -> ConfigItem:
        """Build an item from one configuration row.

        Malformed numeric tokens are logged and replaced with 0 before the
        per-type defaults are applied.

        Raises:
            ConfigParseError: If the row has fewer than the mandatory tokens
        """
        if len(tokens) < MIN_TOKENS:
            raise ConfigParseError(
                f"Configuration row needs at least {MIN_TOKENS} tokens, got {len(tokens)}"
            )

        registry_type = REGISTRY_TYPE_TOKENS.get(tokens[0], PointType.HR_LONG)

        if tokens[9] == "#":
            acquisition_interval = 1
        else:
            acquisition_interval = _parse_int(tokens[9], "acquisition_interval")

        common = dict(
            registry_type=registry_type,
            number_of_registers=_to_uint16(_parse_int(tokens[1], "number_of_registers")),
            start_address=_to_uint16(_parse_int(tokens[2], "start_address")),
            decimal_separator_place=_to_uint16(
                _parse_int(tokens[3], "decimal_separator_place")
            ),
            min_value=_to_uint16(_parse_int(tokens[4], "min_value")),
            max_value=_to_uint16(_parse_int(tokens[5], "max_value")),
            default_value=_to_uint16(_parse_int(tokens[6], "default_value")),
            processing_type=tokens[7],
            description=tokens[8].lstrip("@"),
            acquisition_interval=acquisition_interval,
        )

        if registry_type in (PointType.ANALOG_INPUT, PointType.ANALOG_OUTPUT):
            if len(tokens) >= ANALOG_TOKENS:
                scale = _parse_float(tokens[10], "scale_factor")
                analog = (
                    scale if scale != 0 else 1.0,
                    _parse_float(tokens[11], "deviation"),
                    _parse_float(tokens[12], "egu_min"),
                    _parse_float(tokens[13], "egu_max"),
                    _parse_float(tokens[14], "high_limit"),
                    _parse_float(tokens[15], "low_limit"),
                )
            else:
                analog = ANALOG_DEFAULTS
            return cls(**common, **_analog_fields(analog), abnormal_value=0)

        if registry_type.is_digital:
            if len(tokens) >= DIGITAL_TOKENS:
                abnormal = _to_uint16(_parse_int(tokens[10], "abnormal_value"))
            else:
                abnormal = DIGITAL_DEFAULT_ABNORMAL
            return cls(
                **common,
                **_analog_fields((1.0, 0.0, 0.0, 1.0, 0.0, 0.0)),
                abnormal_value=abnormal,
            )

        return cls(**common, **_analog_fields(ANALOG_DEFAULTS), abnormal_value=0)

    # ----------------------------------------------------------------
    # Queries
    # ----------------------------------------------------------------

    def contains(self, address: int) -> bool:
        """True if the address falls inside this item's range."""
        return self.start_address <= address < self.start_address + self.number_of_registers

    def addresses(self) -> range:
        return range(self.start_address, self.start_address + self.number_of_registers)

    def __repr__(self) -> str:
        return (
            f"<ConfigItem {self.registry_type.name} "
            f"{self.start_address}+{self.number_of_registers} "
            f"'{self.description}' every {self.acquisition_interval}>"
        )


def _analog_fields(values: tuple[float, ...]) -> dict[str, float]:
    scale, deviation, egu_min, egu_max, high, low = values
    return {
        "scale_factor": scale,
        "deviation": deviation,
        "egu_min": egu_min,
        "egu_max": egu_max,
        "high_limit": high,
        "low_limit": low,
    }
