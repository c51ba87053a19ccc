"""Point model and in-memory point storage."""

from mixmaster.state.point_store import PointStore
from mixmaster.state.points import (
    AlarmType,
    AnalogPoint,
    DigitalPoint,
    DState,
    Point,
    PointIdentifier,
    PointType,
)

__all__ = [
    "AlarmType",
    "AnalogPoint",
    "DigitalPoint",
    "DState",
    "Point",
    "PointIdentifier",
    "PointStore",
    "PointType",
]
