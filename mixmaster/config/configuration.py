# mixmaster/config/configuration.py
"""
Runtime configuration: point configuration items plus station settings.

Also owns the transaction id sequence shared by every component that
issues commands.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from pathlib import Path

from mixmaster.config.config_item import ConfigItem
from mixmaster.errors import ConfigParseError
from mixmaster.state.points import PointType

logger = logging.getLogger(__name__)

COMMENT_PREFIXES = ("#", ";")


class Configuration:
    """
    Configured items and station addressing.

    Example:
        >>> configuration = Configuration.from_file("config/points.txt")
        >>> configuration.unit_address
        1
        >>> item = configuration.find_item(4000, (PointType.DIGITAL_OUTPUT,))
    """

    def __init__(
        self,
        items: Iterable[ConfigItem] = (),
        unit_address: int = 1,
        tcp_port: int = 502,
    ):
        self._items: list[ConfigItem] = list(items)
        self.unit_address = unit_address
        self.tcp_port = tcp_port

        self._transaction_id = 0
        self._transaction_lock = threading.Lock()

    # ----------------------------------------------------------------
    # Loading
    # ----------------------------------------------------------------

    @classmethod
    def from_lines(
        cls, lines: Iterable[str], unit_address: int = 1, tcp_port: int = 502
    ) -> Configuration:
        """Parse configuration rows.

        ``STA <unit>`` and ``TCP <port>`` rows override the given station
        addressing. Blank lines and lines starting with '#' or ';' are ignored. A row
        that cannot be turned into an item is logged and skipped.
        """
        configuration = cls(unit_address=unit_address, tcp_port=tcp_port)

        for line_number, line in enumerate(lines, start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith(COMMENT_PREFIXES):
                continue

            tokens = stripped.split()
            keyword = tokens[0].upper()

            if keyword in ("STA", "TCP"):
                if len(tokens) < 2:
                    logger.warning(f"Line {line_number}: {keyword} without value")
                    continue
                try:
                    value = int(tokens[1])
                except ValueError:
                    logger.warning(
                        f"Line {line_number}: invalid {keyword} value {tokens[1]!r}"
                    )
                    continue
                if keyword == "STA":
                    configuration.unit_address = value & 0xFF
                else:
                    configuration.tcp_port = value
                continue

            try:
                configuration._items.append(ConfigItem.from_tokens(tokens))
            except ConfigParseError as e:
                logger.warning(f"Line {line_number}: {e}, row skipped")

        logger.info(
            f"Configuration loaded: {len(configuration._items)} items, "
            f"unit={configuration.unit_address}, port={configuration.tcp_port}"
        )
        return configuration

    @classmethod
    def from_file(cls, path: str | Path, **defaults: int) -> Configuration:
        """Parse a points file.

        Raises:
            ConfigParseError: If the file cannot be read
        """
        path = Path(path)
        try:
            text = path.read_text()
        except OSError as e:
            raise ConfigParseError(f"Cannot read configuration file {path}: {e}") from e
        return cls.from_lines(text.splitlines(), **defaults)

    # ----------------------------------------------------------------
    # Queries
    # ----------------------------------------------------------------

    def get_configuration_items(self) -> list[ConfigItem]:
        return list(self._items)

    def find_item(
        self, address: int, registry_types: Iterable[PointType] | None = None
    ) -> ConfigItem | None:
        """Return the first item whose range contains the address.

        Args:
            address: Point address
            registry_types: Acceptable registry types (None = any)
        """
        types = tuple(registry_types) if registry_types is not None else None
        for item in self._items:
            if types is not None and item.registry_type not in types:
                continue
            if item.contains(address):
                return item
        return None

    def get_transaction_id(self) -> int:
        """Return the next transaction id, wrapping after 65535."""
        with self._transaction_lock:
            transaction_id = self._transaction_id
            self._transaction_id = (self._transaction_id + 1) & 0xFFFF
            return transaction_id
