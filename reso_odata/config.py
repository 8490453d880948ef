"""
Configuration Manager for the RESO OData client.

Handles loading and validation of environment variables and configuration settings.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any, List
from dotenv import load_dotenv

from .errors import ConfigurationError


@dataclass(frozen=True)
class ClientConfig:
    """
    Connection settings shared by every request.

    Frozen so one instance can be shared across threads without locking.
    """
    base_url: str
    token: str = field(repr=False)
    dataset_id: Optional[str] = None
    timeout: float = 30


@dataclass
class LoggingConfig:
    """Logging configuration settings."""
    log_level: str = "INFO"
    log_dir: str = "logs"
    use_json: bool = True


@dataclass
class RetryConfig:
    """Caller-side retry settings."""
    max_retries: int = 3
    base_delay: float = 1.0


@dataclass
class Config:
    """Main configuration container."""
    client: ClientConfig
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)


def _parse_number(name: str, value: str, cast):
    try:
        return cast(value)
    except ValueError:
        raise ConfigurationError(f"Invalid value for {name}: {value!r}")


class ConfigManager:
    """
    Manages configuration loading from environment variables.

    Supports loading from .env files and environment variables,
    with validation of required settings.
    """

    REQUIRED_VARS = ["RESO_BASE_URL", "RESO_TOKEN"]

    def __init__(self, env_file: Optional[str] = None):
        """
        Initialize ConfigManager.

        Args:
            env_file: Optional path to .env file. If None, looks for .env in current directory.
        """
        self._env_file = env_file
        self._config: Optional[Config] = None
        self._loaded = False

    def load_config(self, env_file: Optional[str] = None) -> Config:
        """
        Load configuration from environment variables.

        Args:
            env_file: Optional path to .env file to load.

        Returns:
            Config object with all settings.

        Raises:
            ConfigurationError: If required settings are missing or invalid.
        """
        file_to_load = env_file or self._env_file

        if file_to_load:
            env_path = Path(file_to_load)
            if env_path.exists():
                load_dotenv(env_path)
            else:
                raise ConfigurationError(f"Environment file not found: {file_to_load}")
        else:
            load_dotenv()

        self._validate_required_vars()

        self._config = Config(
            client=self._load_client_config(),
            logging=self._load_logging_config(),
            retry=self._load_retry_config()
        )
        self._loaded = True

        return self._config

    def _validate_required_vars(self) -> None:
        """Validate that all required environment variables are set."""
        missing_vars = [var for var in self.REQUIRED_VARS if not os.getenv(var)]

        if missing_vars:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing_vars)}"
            )

    def _load_client_config(self) -> ClientConfig:
        """Load connection configuration from environment."""
        return ClientConfig(
            base_url=os.getenv("RESO_BASE_URL", ""),
            token=os.getenv("RESO_TOKEN", ""),
            dataset_id=os.getenv("RESO_DATASET_ID") or None,
            timeout=_parse_number("RESO_TIMEOUT", os.getenv("RESO_TIMEOUT", "30"), float)
        )

    def _load_logging_config(self) -> LoggingConfig:
        """Load logging configuration from environment."""
        return LoggingConfig(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_dir=os.getenv("LOG_DIR", "logs"),
            use_json=os.getenv("LOG_JSON", "true").lower() == "true"
        )

    def _load_retry_config(self) -> RetryConfig:
        """Load retry configuration from environment."""
        return RetryConfig(
            max_retries=_parse_number("MAX_RETRIES", os.getenv("MAX_RETRIES", "3"), int),
            base_delay=_parse_number("RETRY_BASE_DELAY", os.getenv("RETRY_BASE_DELAY", "1.0"), float)
        )

    def reload_config(self, env_file: Optional[str] = None) -> Config:
        """
        Reload configuration from environment.

        Args:
            env_file: Optional path to .env file.

        Returns:
            Updated Config object.
        """
        self._loaded = False
        self._config = None
        return self.load_config(env_file)

    @property
    def config(self) -> Config:
        """Get the current configuration."""
        if not self._loaded or not self._config:
            raise ConfigurationError("Configuration not loaded. Call load_config() first.")
        return self._config


class ConfigValidator:
    """
    Validates configuration settings on startup.

    Catches bad URLs, timeouts and log levels before the first request.
    """

    VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

    def __init__(self, config: Config):
        """
        Initialize ConfigValidator.

        Args:
            config: Configuration object to validate.
        """
        self.config = config
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate(self) -> bool:
        """
        Perform all validation checks.

        Returns:
            True if configuration is valid, False otherwise.
        """
        self.errors = []
        self.warnings = []

        self._validate_client_config()
        self._validate_logging_config()
        self._validate_retry_config()

        return len(self.errors) == 0

    def _validate_client_config(self) -> None:
        """Validate connection configuration."""
        client = self.config.client

        if not client.base_url.startswith(("http://", "https://")):
            self.errors.append(f"Base URL must start with http:// or https://: {client.base_url}")
        elif client.base_url.startswith("http://"):
            self.warnings.append("Base URL uses plain http; the bearer token will be sent unencrypted")

        if not client.token or len(client.token.strip()) == 0:
            self.errors.append("API token is empty")

        if client.dataset_id is not None and "/" in client.dataset_id.strip("/"):
            self.errors.append(f"Dataset id must be a single path segment: {client.dataset_id}")

        if client.timeout <= 0:
            self.errors.append(f"API timeout must be positive: {client.timeout}")
        elif client.timeout > 300:
            self.warnings.append(f"API timeout is very high ({client.timeout}s), consider reducing")

    def _validate_logging_config(self) -> None:
        """Validate logging configuration."""
        log = self.config.logging

        if log.log_level.upper() not in self.VALID_LOG_LEVELS:
            self.errors.append(
                f"Invalid log level: {log.log_level}. "
                f"Must be one of: {', '.join(self.VALID_LOG_LEVELS)}"
            )

        if not log.log_dir:
            self.errors.append("Log directory is empty")

    def _validate_retry_config(self) -> None:
        """Validate retry configuration."""
        retry = self.config.retry

        if retry.max_retries < 0:
            self.errors.append(f"Max retries cannot be negative: {retry.max_retries}")
        elif retry.max_retries > 10:
            self.warnings.append(f"Max retries is high ({retry.max_retries}), may cause long delays")

        if retry.base_delay < 0:
            self.errors.append(f"Retry base delay cannot be negative: {retry.base_delay}")

    def get_validation_report(self) -> Dict[str, Any]:
        """
        Get a detailed validation report.

        Returns:
            Dictionary with validation results.
        """
        return {
            "valid": len(self.errors) == 0,
            "errors": self.errors,
            "warnings": self.warnings,
            "error_count": len(self.errors),
            "warning_count": len(self.warnings)
        }

    def raise_on_errors(self) -> None:
        """
        Raise ConfigurationError if validation failed.

        Raises:
            ConfigurationError: If there are validation errors.
        """
        if self.errors:
            error_list = "\n  - ".join(self.errors)
            raise ConfigurationError(f"Configuration validation failed:\n  - {error_list}")


def validate_config_on_startup(config: Config, raise_on_error: bool = True) -> Dict[str, Any]:
    """
    Validate configuration on startup.

    Args:
        config: Configuration object to validate.
        raise_on_error: If True, raise exception on validation errors.

    Returns:
        Validation report dictionary.

    Raises:
        ConfigurationError: If raise_on_error is True and validation fails.
    """
    validator = ConfigValidator(config)
    validator.validate()

    report = validator.get_validation_report()

    if raise_on_error and not report["valid"]:
        validator.raise_on_errors()

    return report
