"""Unit tests for YAML system configuration."""

from pathlib import Path

import pytest

from qledger.system import config as config_module
from qledger.system.config import LoggingConfig, SystemConfig, get_system_config, reload_system_config


@pytest.fixture
def isolated_dirs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run with an empty working directory and home so no real config is found."""
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    monkeypatch.setattr(config_module, "_config", None)
    return tmp_path


def write_yaml(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestSystemConfigLoad:
    """Test configuration file discovery and parsing."""

    def test_defaults_without_files(self, isolated_dirs: Path):
        config = SystemConfig.load()

        assert config.logging == LoggingConfig()
        assert config.logging.level == "INFO"
        assert config.logging.format == "console"

    def test_explicit_path(self, isolated_dirs: Path):
        path = write_yaml(
            isolated_dirs / "custom.yaml",
            "logging:\n  level: debug\n  format: json\n  enable_file: true\n  backup_count: 7\n",
        )

        config = SystemConfig.load(path)

        assert config.logging.level == "DEBUG"
        assert config.logging.format == "json"
        assert config.logging.enable_file is True
        assert config.logging.backup_count == 7

    def test_project_and_home_files_merge(self, isolated_dirs: Path):
        """Home config overrides project config key by key."""
        write_yaml(isolated_dirs / "work" / "config" / "qledger.yaml", "logging:\n  level: WARNING\n  format: json\n")
        write_yaml(isolated_dirs / "home" / ".qledger" / "qledger.yaml", "logging:\n  level: ERROR\n")

        config = SystemConfig.load()

        assert config.logging.level == "ERROR"
        assert config.logging.format == "json"

    def test_env_substitution(self, isolated_dirs: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("QLEDGER_LOG_FILE", "/var/log/ledger.log")
        monkeypatch.setenv("QLEDGER_FILE_LOGGING", "yes")
        path = write_yaml(
            isolated_dirs / "env.yaml",
            "logging:\n  file_path: ${QLEDGER_LOG_FILE}\n  enable_file: ${QLEDGER_FILE_LOGGING}\n",
        )

        config = SystemConfig.load(path)

        assert config.logging.file_path == "/var/log/ledger.log"
        assert config.logging.enable_file is True

    def test_unknown_env_var_left_as_is(self, isolated_dirs: Path):
        path = write_yaml(isolated_dirs / "env.yaml", "logging:\n  file_path: ${QLEDGER_UNSET_VARIABLE}/x.log\n")

        config = SystemConfig.load(path)

        assert config.logging.file_path == "${QLEDGER_UNSET_VARIABLE}/x.log"

    def test_empty_file_uses_defaults(self, isolated_dirs: Path):
        path = write_yaml(isolated_dirs / "empty.yaml", "")

        assert SystemConfig.load(path).logging == LoggingConfig()


class TestConfigSingleton:
    """Test cached access."""

    def test_get_system_config_caches(self, isolated_dirs: Path):
        assert get_system_config() is get_system_config()

    def test_reload_picks_up_changes(self, isolated_dirs: Path):
        first = get_system_config()
        write_yaml(isolated_dirs / "work" / "config" / "qledger.yaml", "logging:\n  level: CRITICAL\n")

        reloaded = reload_system_config()

        assert reloaded is not first
        assert reloaded.logging.level == "CRITICAL"
        assert get_system_config() is reloaded


class TestToLoggerConfig:
    """Test mapping to the log system configuration."""

    def test_to_logger_config(self):
        config = LoggingConfig(level="DEBUG", enable_file=True, file_path="out/app.log", file_level="INFO")

        logger_config = config.to_logger_config()

        assert logger_config.level == "DEBUG"
        assert logger_config.enable_file is True
        assert logger_config.file_path == Path("out/app.log")
        assert logger_config.file_level == "INFO"
