"""Core package containing the configuration and logging managers."""

from libpacker.core.base import BaseManager, PackerManager
from libpacker.core.config_manager import ConfigManager
from libpacker.core.logging_manager import LoggingManager
