"""Tests for configuration loading and precedence."""
import pytest

from cassmon.config_manager import Config, ConfigManager
from cassmon.exceptions import ConfigError


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "cassmon.yaml"
    path.write_text(
        "connection:\n"
        "  host: file-host\n"
        "  port: 7000\n"
        "logging:\n"
        "  level: info\n"
    )
    return path


@pytest.mark.unit
class TestConfigManager:

    def test_defaults(self):
        config = ConfigManager(environ={}).load_config()

        assert config == Config()
        assert config.connection.host == "127.0.0.1"
        assert config.connection.port == 8778
        assert config.logging.level == "WARNING"

    def test_yaml_file(self, config_file):
        config = ConfigManager(str(config_file), environ={}).load_config()

        assert config.connection.host == "file-host"
        assert config.connection.port == 7000
        assert config.logging.level == "INFO"

    def test_config_file_from_environment(self, config_file):
        config = ConfigManager(environ={"CASSMON_CONFIG": str(config_file)}).load_config()

        assert config.connection.host == "file-host"

    def test_environment_overrides_file(self, config_file):
        environ = {"CASSMON_PORT": "9000", "CASSMON_SSL": "yes", "CASSMON_TIMEOUT": "2.5"}

        config = ConfigManager(str(config_file), environ=environ).load_config()

        assert config.connection.host == "file-host"
        assert config.connection.port == 9000
        assert config.connection.ssl is True
        assert config.connection.timeout == 2.5

    def test_cli_overrides_environment(self, config_file):
        manager = ConfigManager(str(config_file), environ={"CASSMON_HOST": "env-host"})

        config = manager.load_config({"connection": {"host": "cli-host", "port": None}, "logging": {"level": None}})

        assert config.connection.host == "cli-host"
        assert config.connection.port == 7000
        assert config.logging.level == "INFO"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            ConfigManager(str(tmp_path / "missing.yaml"), environ={}).load_config()

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("connection: [unclosed\n")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            ConfigManager(str(path), environ={}).load_config()

    @pytest.mark.parametrize("environ", [
        {"CASSMON_PORT": "70000"},
        {"CASSMON_PORT": "not-a-port"},
        {"CASSMON_LOG_LEVEL": "LOUD"},
        {"CASSMON_USERNAME": "monitor"},
    ])
    def test_invalid_values(self, environ):
        with pytest.raises(ConfigError, match="Configuration validation failed"):
            ConfigManager(environ=environ).load_config()

    def test_empty_section_with_environment_override(self, tmp_path):
        path = tmp_path / "sections.yaml"
        path.write_text("connection:\nlogging:\n  level: info\n")

        config = ConfigManager(str(path), environ={"CASSMON_HOST": "node7"}).load_config()

        assert config.connection.host == "node7"
        assert config.logging.level == "INFO"

    def test_non_mapping_section_with_environment_override(self, tmp_path):
        path = tmp_path / "sections.yaml"
        path.write_text("connection: foo\n")

        with pytest.raises(ConfigError, match="Section 'connection' in .* must be a mapping"):
            ConfigManager(str(path), environ={"CASSMON_HOST": "node7"}).load_config()

    def test_empty_section_without_environment(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("connection:\n")

        assert ConfigManager(str(path), environ={}).load_config() == Config()

    def test_non_mapping_logging_section(self, tmp_path):
        path = tmp_path / "logging.yaml"
        path.write_text("logging: [debug]\n")

        with pytest.raises(ConfigError, match="Section 'logging'"):
            ConfigManager(str(path), environ={}).load_config()
