"""
System Configuration Management.

Minimal configuration for the qledger accounting engine. The engine itself is
configured per call (close strategy, timestamps), so the system config only
carries settings that apply process-wide.

Currently supports:
- Logging configuration

Usage:
    >>> from qledger.system import get_system_config
    >>> config = get_system_config()
    >>> print(config.logging.level)
    INFO
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional

import yaml


@dataclass
class LoggingConfig:
    """Logging configuration (maps to log_system.LoggingConfig)."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json"] = "console"
    timestamp_format: Literal["iso", "compact", "time"] = "compact"
    enable_file: bool = False
    file_path: str = "logs/qledger.log"
    file_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    file_rotation: bool = True
    max_file_size_mb: int = 10
    backup_count: int = 3

    def to_logger_config(self):
        """Convert to log_system.LoggingConfig for LoggerFactory."""
        from qledger.system.log_system import LoggingConfig as LogSystemConfig

        return LogSystemConfig(
            level=self.level,
            format=self.format,
            timestamp_format=self.timestamp_format,
            enable_file=self.enable_file,
            file_path=Path(self.file_path) if self.file_path else None,
            file_level=self.file_level,
            file_rotation=self.file_rotation,
            max_file_size_mb=self.max_file_size_mb,
            backup_count=self.backup_count,
        )


@dataclass
class SystemConfig:
    """
    System configuration for qledger.

    What's defined here:
        - Logging settings

    Example:
        >>> config = SystemConfig.load()
        >>> print(config.logging.format)
        console
    """

    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "SystemConfig":
        """
        Load system configuration from YAML file.

        Configuration search order:
        1. Explicit config_path if provided
        2. ./config/qledger.yaml (project-relative)
        3. ~/.qledger/qledger.yaml (user home)
        4. Built-in defaults (if no files found)

        Args:
            config_path: Explicit path to config file (overrides search)

        Returns:
            SystemConfig instance with loaded settings

        Example:
            >>> # Load from default location
            >>> config = SystemConfig.load()
            >>>
            >>> # Load from specific file
            >>> config = SystemConfig.load(Path("my_config.yaml"))
        """
        config_dict: dict[str, Any] = {}

        search_paths: list[Path] = []

        if config_path:
            search_paths.append(config_path)
        else:
            project_config = Path("config/qledger.yaml")
            if project_config.exists():
                search_paths.append(project_config)

            home_config = Path.home() / ".qledger" / "qledger.yaml"
            if home_config.exists():
                search_paths.append(home_config)

        # Load config files (later files override earlier)
        for path in search_paths:
            if path.exists():
                with open(path) as f:
                    loaded = yaml.safe_load(f)
                    if loaded:
                        config_dict = _deep_merge(config_dict, loaded)

        config_dict = _substitute_env_vars(config_dict)

        return cls._from_dict(config_dict)

    @classmethod
    def _from_dict(cls, config_dict: dict[str, Any]) -> "SystemConfig":
        """Build SystemConfig from nested dictionary."""
        logging_dict = config_dict.get("logging", {})
        logging = LoggingConfig(
            level=str(logging_dict.get("level", "INFO")).upper(),  # type: ignore[arg-type]
            format=logging_dict.get("format", "console"),
            timestamp_format=logging_dict.get("timestamp_format", "compact"),
            enable_file=_as_bool(logging_dict.get("enable_file", False)),
            file_path=logging_dict.get("file_path") or "logs/qledger.log",
            file_level=str(logging_dict.get("file_level", "WARNING")).upper(),  # type: ignore[arg-type]
            file_rotation=_as_bool(logging_dict.get("file_rotation", True)),
            max_file_size_mb=int(logging_dict.get("max_file_size_mb", 10)),
            backup_count=int(logging_dict.get("backup_count", 3)),
        )

        return cls(logging=logging)


def _as_bool(value: Any) -> bool:
    """Interpret YAML/env-substituted flags ("true", "0", ...) as booleans."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _substitute_env_vars(config: Any) -> Any:
    """Recursively substitute ${VAR_NAME} with environment variables."""
    import re

    if isinstance(config, dict):
        return {k: _substitute_env_vars(v) for k, v in config.items()}
    elif isinstance(config, list):
        return [_substitute_env_vars(item) for item in config]
    elif isinstance(config, str):
        pattern = r"\$\{([^}]+)\}"

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            return os.environ.get(var_name, match.group(0))

        return re.sub(pattern, replace_var, config)
    else:
        return config


# Global config instance (loaded on first access)
_config: Optional[SystemConfig] = None


def get_system_config(config_path: Optional[Path] = None) -> SystemConfig:
    """
    Get the system configuration singleton.

    Loads config on first access and caches for subsequent calls.
    Use reload_system_config() to force reload.

    Args:
        config_path: Optional explicit path to config file

    Returns:
        SystemConfig instance
    """
    global _config
    if _config is None or config_path is not None:
        _config = SystemConfig.load(config_path)
    return _config


def reload_system_config(config_path: Optional[Path] = None) -> SystemConfig:
    """
    Reload system configuration from files.

    Forces a fresh load of configuration, clearing the cached singleton.

    Args:
        config_path: Optional explicit path to config file

    Returns:
        Reloaded SystemConfig instance
    """
    global _config
    _config = SystemConfig.load(config_path)
    return _config
