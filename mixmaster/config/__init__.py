"""Configuration: YAML station settings and point configuration rows."""

from mixmaster.config.config_item import ConfigItem
from mixmaster.config.config_loader import ConfigLoader
from mixmaster.config.configuration import Configuration

__all__ = ["ConfigItem", "ConfigLoader", "Configuration"]
