# mixmaster/state/point_store.py
"""
In-memory point storage.

Provides lookup by identifier for the dispatcher's update path and
read-only access for automation logic. Points mutate in place through
field assignment; the store itself never copies them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from mixmaster.state.points import (
    AnalogPoint,
    DigitalPoint,
    Point,
    PointIdentifier,
)

if TYPE_CHECKING:
    from mixmaster.config.configuration import Configuration

logger = logging.getLogger(__name__)


class PointStore:
    """
    Point storage keyed by PointIdentifier.

    Example:
        >>> store = PointStore()
        >>> store.create_points(configuration)
        >>> [point] = store.get_points([PointIdentifier(PointType.DIGITAL_OUTPUT, 3000)])
        >>> point.raw_value
        0
    """

    def __init__(self):
        self._points: dict[PointIdentifier, Point] = {}

    # ----------------------------------------------------------------
    # Population
    # ----------------------------------------------------------------

    def add_point(self, point: Point) -> None:
        """Add a point. Identifiers are unique per store.

        Raises:
            ValueError: If a point with the same identifier already exists
        """
        identifier = point.identifier
        if identifier in self._points:
            raise ValueError(f"Duplicate point identifier: {identifier}")
        self._points[identifier] = point

    def create_points(self, configuration: Configuration) -> int:
        """Create one point for every address covered by the configuration.

        Returns:
            Number of points created
        """
        created = 0
        for item in configuration.get_configuration_items():
            for offset in range(item.number_of_registers):
                address = item.start_address + offset
                if item.registry_type.is_digital:
                    point = DigitalPoint(config_item=item, address=address)
                else:
                    point = AnalogPoint(config_item=item, address=address)
                try:
                    self.add_point(point)
                except ValueError as e:
                    logger.warning(f"Skipping point: {e}")
                    continue
                created += 1

        logger.info(f"PointStore created {created} points")
        return created

    # ----------------------------------------------------------------
    # Lookup
    # ----------------------------------------------------------------

    def get_points(self, ids: Iterable[PointIdentifier]) -> list[Point]:
        """Return the points for the given identifiers, skipping unknown ones."""
        return [self._points[i] for i in ids if i in self._points]

    def get_point(self, identifier: PointIdentifier) -> Point | None:
        return self._points.get(identifier)

    def all_points(self) -> list[Point]:
        return list(self._points.values())

    def __len__(self) -> int:
        return len(self._points)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._points
