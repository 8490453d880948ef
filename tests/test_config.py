"""
Property-based tests for Configuration Manager.

Covers loading RESO_* settings from .env files, required variable checks,
numeric parsing and startup validation.
"""

import os
import tempfile

import pytest
from hypothesis import given, strategies as st, settings

from reso_odata.config import (
    ClientConfig, Config, ConfigManager, ConfigValidator, LoggingConfig, RetryConfig,
    validate_config_on_startup,
)
from reso_odata.errors import ConfigurationError, ErrorKind


# Strategy for generating non-empty strings suitable for config values
config_value_strategy = st.text(
    alphabet=st.sampled_from(
        "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789_-."
    ),
    min_size=1,
    max_size=64
)

host_strategy = st.from_regex(r'[a-z][a-z0-9-]{0,20}\.(com|net|org)', fullmatch=True)

timeout_strategy = st.integers(min_value=1, max_value=300)


def create_env_file(config_dict: dict) -> str:
    """Create a temporary .env file with the given configuration."""
    fd, path = tempfile.mkstemp(suffix=".env")
    with os.fdopen(fd, 'w') as f:
        for key, value in config_dict.items():
            f.write(f"{key}={value}\n")
    return path


def cleanup_env_file(path: str) -> None:
    """Remove temporary env file."""
    try:
        os.unlink(path)
    except OSError:
        pass


RESO_ENV_VARS = [
    "RESO_BASE_URL", "RESO_TOKEN", "RESO_DATASET_ID", "RESO_TIMEOUT",
    "LOG_LEVEL", "LOG_DIR", "LOG_JSON", "MAX_RETRIES", "RETRY_BASE_DELAY"
]


def clear_env_vars():
    """Clear all RESO-related environment variables."""
    for var in RESO_ENV_VARS:
        os.environ.pop(var, None)


def load_from(config_dict: dict) -> Config:
    env_path = create_env_file(config_dict)
    try:
        clear_env_vars()
        return ConfigManager().load_config(env_path)
    finally:
        cleanup_env_file(env_path)


def make_config(**client_overrides) -> Config:
    client = {'base_url': "https://api-test.example.com/odata", 'token': "test_token"}
    client.update(client_overrides)
    return Config(client=ClientConfig(**client))


class TestConfigurationLoading:
    """Settings from an .env file end up in the right config section."""

    def setup_method(self):
        clear_env_vars()

    def teardown_method(self):
        clear_env_vars()

    @given(host=host_strategy, token=config_value_strategy, dataset_id=config_value_strategy)
    @settings(max_examples=20)
    def test_required_and_optional_settings_load(self, host, token, dataset_id):
        config = load_from({
            "RESO_BASE_URL": f"https://{host}/odata",
            "RESO_TOKEN": token,
            "RESO_DATASET_ID": dataset_id,
        })

        assert isinstance(config, Config)
        assert config.client.base_url == f"https://{host}/odata"
        assert config.client.token == token
        assert config.client.dataset_id == dataset_id

    def test_defaults(self):
        config = load_from({
            "RESO_BASE_URL": "https://api-test.example.com/odata",
            "RESO_TOKEN": "test_token",
        })

        assert config.client.dataset_id is None
        assert config.client.timeout == 30
        assert config.logging == LoggingConfig()
        assert config.retry == RetryConfig()

    @given(timeout=timeout_strategy, max_retries=st.integers(min_value=0, max_value=10))
    @settings(max_examples=20)
    def test_numeric_settings_are_parsed(self, timeout, max_retries):
        config = load_from({
            "RESO_BASE_URL": "https://api-test.example.com/odata",
            "RESO_TOKEN": "test_token",
            "RESO_TIMEOUT": str(timeout),
            "MAX_RETRIES": str(max_retries),
            "RETRY_BASE_DELAY": "0.5",
            "LOG_JSON": "false",
            "LOG_LEVEL": "DEBUG",
        })

        assert config.client.timeout == float(timeout)
        assert config.retry.max_retries == max_retries
        assert config.retry.base_delay == 0.5
        assert config.logging.use_json is False
        assert config.logging.log_level == "DEBUG"

    @pytest.mark.parametrize('missing', ["RESO_BASE_URL", "RESO_TOKEN"])
    def test_missing_required_variable(self, missing):
        values = {"RESO_BASE_URL": "https://api-test.example.com/odata", "RESO_TOKEN": "test_token"}
        del values[missing]

        with pytest.raises(ConfigurationError) as exc_info:
            load_from(values)

        assert missing in exc_info.value.message
        assert exc_info.value.kind is ErrorKind.CONFIG

    def test_invalid_number(self):
        with pytest.raises(ConfigurationError) as exc_info:
            load_from({
                "RESO_BASE_URL": "https://api-test.example.com/odata",
                "RESO_TOKEN": "test_token",
                "MAX_RETRIES": "three",
            })

        assert "MAX_RETRIES" in exc_info.value.message

    def test_missing_env_file(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager("/nonexistent/path/.env").load_config()

        assert "Environment file not found" in exc_info.value.message

    def test_config_property_requires_load(self):
        with pytest.raises(ConfigurationError):
            ConfigManager().config

    def test_reload_picks_up_new_values(self):
        first = create_env_file({"RESO_BASE_URL": "https://a.example.com/odata", "RESO_TOKEN": "one"})
        second = create_env_file({"RESO_BASE_URL": "https://b.example.com/odata", "RESO_TOKEN": "two"})
        try:
            manager = ConfigManager(first)
            assert manager.load_config().client.token == "one"

            clear_env_vars()
            config = manager.reload_config(second)

            assert config.client.token == "two"
            assert manager.config is config
        finally:
            cleanup_env_file(first)
            cleanup_env_file(second)


class TestConfigValidation:
    """Startup validation catches bad settings before the first request."""

    def test_valid_config(self):
        report = validate_config_on_startup(make_config())

        assert report['valid']
        assert report['error_count'] == 0
        assert report['warning_count'] == 0

    @pytest.mark.parametrize('overrides', [
        {'base_url': "ftp://api-test.example.com/odata"},
        {'base_url': ""},
        {'token': "   "},
        {'dataset_id': "a/b"},
        {'timeout': 0},
        {'timeout': -5},
    ])
    def test_client_errors(self, overrides):
        validator = ConfigValidator(make_config(**overrides))

        assert not validator.validate()
        with pytest.raises(ConfigurationError):
            validator.raise_on_errors()

    def test_plain_http_warns(self):
        report = validate_config_on_startup(make_config(base_url="http://api-test.example.com/odata"))

        assert report['valid']
        assert report['warning_count'] == 1

    def test_surrounding_slashes_on_dataset_are_accepted(self):
        assert validate_config_on_startup(make_config(dataset_id="/abor/"))['valid']

    def test_high_timeout_warns(self):
        report = validate_config_on_startup(make_config(timeout=600))
        assert report['valid']
        assert any("timeout" in w for w in report['warnings'])

    def test_logging_and_retry_errors(self):
        config = make_config()
        config.logging = LoggingConfig(log_level="VERBOSE", log_dir="")
        config.retry = RetryConfig(max_retries=-1, base_delay=-1.0)

        report = validate_config_on_startup(config, raise_on_error=False)

        assert not report['valid']
        assert report['error_count'] == 4

    def test_many_retries_warns(self):
        config = make_config()
        config.retry = RetryConfig(max_retries=20)

        report = validate_config_on_startup(config)

        assert report['valid']
        assert report['warning_count'] == 1

    def test_raise_on_error(self):
        with pytest.raises(ConfigurationError) as exc_info:
            validate_config_on_startup(make_config(timeout=0))

        assert "Configuration validation failed" in exc_info.value.message
