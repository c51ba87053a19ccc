# mixmaster/state/points.py
"""
Point data model.

A point is the master's view of one remote coil, input or register.
Points are created once per configured address and mutated only through
the command dispatcher's update path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mixmaster.config.config_item import ConfigItem


class PointType(IntEnum):
    """Registry types a point can belong to."""

    DIGITAL_OUTPUT = 1
    DIGITAL_INPUT = 2
    ANALOG_INPUT = 3
    ANALOG_OUTPUT = 4
    HR_LONG = 5

    @property
    def is_analog(self) -> bool:
        return self in (
            PointType.ANALOG_INPUT,
            PointType.ANALOG_OUTPUT,
            PointType.HR_LONG,
        )

    @property
    def is_digital(self) -> bool:
        return self in (PointType.DIGITAL_INPUT, PointType.DIGITAL_OUTPUT)


class AlarmType(Enum):
    """Alarm classification of a point."""

    NO_ALARM = "no_alarm"
    REASONABILITY_FAILURE = "reasonability_failure"
    LOW_ALARM = "low_alarm"
    HIGH_ALARM = "high_alarm"
    ABNORMAL_VALUE = "abnormal_value"


class DState(IntEnum):
    """Digital point state."""

    OFF = 0
    ON = 1


@dataclass(frozen=True)
class PointIdentifier:
    """Unique key of a point: registry type plus address."""

    point_type: PointType
    address: int

    def __str__(self) -> str:
        return f"{self.point_type.name}[{self.address}]"


@dataclass(eq=False)
class Point:
    """Common state shared by analog and digital points."""

    config_item: ConfigItem
    address: int
    raw_value: int = 0
    timestamp: datetime | None = None
    alarm: AlarmType = AlarmType.NO_ALARM

    @property
    def point_type(self) -> PointType:
        return self.config_item.registry_type

    @property
    def identifier(self) -> PointIdentifier:
        return PointIdentifier(self.point_type, self.address)


@dataclass(eq=False)
class AnalogPoint(Point):
    """Register-backed point with an engineering-unit value."""

    egu_value: float = 0.0


@dataclass(eq=False)
class DigitalPoint(Point):
    """Bit-backed point with an ON/OFF state."""

    state: DState = DState.OFF
