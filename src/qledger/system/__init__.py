"""System-wide configuration and logging."""

from qledger.system.config import LoggingConfig, SystemConfig, get_system_config, reload_system_config
from qledger.system.log_system import LoggerFactory

__all__ = [
    "LoggerFactory",
    "LoggingConfig",
    "SystemConfig",
    "get_system_config",
    "reload_system_config",
]
