import os
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from cassmon.connection import DEFAULT_PORT, DEFAULT_TIMEOUT
from cassmon.exceptions import ConfigError

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ConnectionConfig(BaseModel):
    """Management agent connection settings"""
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    username: Optional[str] = Field(default=None)
    password: Optional[str] = Field(default=None)
    ssl: bool = Field(default=False)
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)

    @model_validator(mode="after")
    def validate_credentials(self):
        if bool(self.username) != bool(self.password):
            raise ValueError("username and password must be given together")
        return self


class LoggingConfig(BaseModel):
    """Logging configuration settings"""
    level: str = Field(default="WARNING")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v):
        if v.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {VALID_LOG_LEVELS}")
        return v.upper()


class Config(BaseModel):
    """Main configuration model"""
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class ConfigManager:
    """
    Builds the effective configuration.

    Precedence, lowest first: model defaults, the YAML file, CASSMON_*
    environment variables, then explicit command line overrides.
    """

    ENV_MAPPINGS = {
        "CASSMON_HOST": ["connection", "host"],
        "CASSMON_PORT": ["connection", "port"],
        "CASSMON_USERNAME": ["connection", "username"],
        "CASSMON_PASSWORD": ["connection", "password"],
        "CASSMON_SSL": ["connection", "ssl"],
        "CASSMON_TIMEOUT": ["connection", "timeout"],
        "CASSMON_LOG_LEVEL": ["logging", "level"],
    }

    def __init__(self, config_file: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        self.environ = os.environ if environ is None else environ
        config_file = config_file or self.environ.get("CASSMON_CONFIG")
        self.config_file = Path(config_file) if config_file else None

    def load_config(self, overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> Config:
        config_data: Dict[str, Any] = {}

        if self.config_file is not None:
            if not self.config_file.exists():
                raise ConfigError(f"Configuration file not found: {self.config_file}")
            logger.info(f"Loading configuration from {self.config_file}")
            try:
                with open(self.config_file, "r") as f:
                    config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {self.config_file}: {e}") from e
            if not isinstance(config_data, dict):
                raise ConfigError(f"Configuration file {self.config_file} must contain a mapping")
            config_data = self._check_sections(config_data)

        config_data = self._apply_env_overrides(config_data)
        if overrides:
            config_data = self._deep_merge(config_data, self._drop_unset(overrides))

        try:
            return Config(**config_data)
        except ValidationError as e:
            raise ConfigError(f"Configuration validation failed: {e}") from e

    def _check_sections(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Replace empty sections with {} and reject sections that are not mappings"""
        for key in Config.model_fields:
            if key in config_data and config_data[key] is None:
                config_data[key] = {}
            elif key in config_data and not isinstance(config_data[key], dict):
                raise ConfigError(f"Section '{key}' in {self.config_file} must be a mapping")
        return config_data

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries"""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def _drop_unset(self, overrides: Dict[str, Any]) -> Dict[str, Any]:
        result = {}
        for key, value in overrides.items():
            if isinstance(value, dict):
                value = self._drop_unset(value)
                if value:
                    result[key] = value
            elif value is not None:
                result[key] = value
        return result

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        for env_var, config_path in self.ENV_MAPPINGS.items():
            env_value = self.environ.get(env_var)
            if env_value is None:
                continue

            current_dict = config_data
            for key in config_path[:-1]:
                if current_dict.get(key) is None:
                    current_dict[key] = {}
                elif not isinstance(current_dict[key], dict):
                    raise ConfigError(f"Section '{key}' in {self.config_file} must be a mapping")
                current_dict = current_dict[key]
            current_dict[config_path[-1]] = self._convert_env_value(env_value, config_path)
            if config_path[-1] != "password":
                logger.debug(f"Environment override: {env_var} = {env_value}")

        return config_data

    def _convert_env_value(self, value: str, config_path: list) -> Any:
        if config_path[-1] == "ssl":
            return value.lower() in ["true", "1", "yes", "on"]
        # Port and timeout are left as strings for pydantic to coerce and range check
        return value
