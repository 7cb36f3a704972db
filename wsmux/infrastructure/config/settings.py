"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
configuration file (~/.wsmux/config.yaml). Keys are flat and lower-case
(e.g. ``wsapi_key``); the matching environment variable is the upper-case
key (``WSAPI_KEY``).
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".wsmux"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

DEFAULTS: Dict[str, Any] = {
    "wsapi_base_uri": "https://api.weathersource.com",
    "wsapi_version": "v1",
    "wsapi_key": "",
    "wsapi_return_diagnostics": False,
    "wsapi_suppress_response_codes": False,
    "wssdk_max_threads": 10,
    "wssdk_thread_launch_interval_delay": 0.05,
    "wssdk_distance_unit": "imperial",
    "wssdk_temperature_unit": "fahrenheit",
    "wssdk_log_errors": False,
    "wssdk_error_log_directory": "error_logs/",
    "wssdk_request_retry_on_error_count": 5,
    "wssdk_request_retry_on_error_delay": 2,
}

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_runtime_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def load_configuration(
    config_file: Optional[Path] = None,
    env_file: Optional[Path] = None,
    force: bool = False,
) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Defaults

    Args:
        config_file: Path to the YAML configuration file (~/.wsmux/config.yaml if None).
        env_file: Path to the .env file (searches upwards from cwd if None).
        force: Reload even if configuration was already loaded.
    """
    global _config, _loaded
    if _loaded and not force:
        logger.debug("Configuration already loaded.")
        return

    _config = {}
    config_file = config_file or DEFAULT_CONFIG_FILE

    # 1. YAML file (lowest priority)
    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
        else:
            if isinstance(yaml_config, dict):
                _config.update(yaml_config)
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. .env file; override=False so real environment variables win
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("Skipping .env file loading (no file found).")

    # 3. Environment variables are read on demand in get_config

    _loaded = True
    logger.debug("Configuration loading process completed.")


def _coerce(value: str) -> Any:
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        if "." in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration
    2. Values set at runtime with set_config (e.g. CLI flags)
    3. Environment variable (upper-cased key)
    4. YAML config
    5. Built-in default for the key
    6. ``default``
    """
    if key in _test_config:
        return _test_config[key]

    if key in _runtime_config:
        return _runtime_config[key]

    env_key = key.upper().replace(".", "_")
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    if key in DEFAULTS and default is None:
        return DEFAULTS[key]

    logger.debug(f"Config key '{key}' not found. Returning default: {default}")
    return default


def set_config(key: str, value: Any) -> None:
    """Sets a configuration value for the rest of the process.

    Runtime values win over the environment and the YAML file, and survive
    a forced reload.
    """
    logger.debug(f"Setting config: {key} = {value!r}")
    _runtime_config[key] = value


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values override every other source.
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")


# --- Typed Settings ---

def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass(frozen=True)
class ApiSettings:
    """Weather Source API and SDK settings."""
    base_uri: str = DEFAULTS["wsapi_base_uri"]
    version: str = DEFAULTS["wsapi_version"]
    key: str = DEFAULTS["wsapi_key"]
    return_diagnostics: bool = False
    suppress_response_codes: bool = False
    max_threads: int = DEFAULTS["wssdk_max_threads"]
    thread_launch_interval_delay: float = DEFAULTS["wssdk_thread_launch_interval_delay"]
    distance_unit: str = DEFAULTS["wssdk_distance_unit"]
    temperature_unit: str = DEFAULTS["wssdk_temperature_unit"]
    log_errors: bool = False
    error_log_directory: str = DEFAULTS["wssdk_error_log_directory"]
    request_retry_count: int = DEFAULTS["wssdk_request_retry_on_error_count"]
    request_retry_delay: float = DEFAULTS["wssdk_request_retry_on_error_delay"]


def load_api_settings() -> ApiSettings:
    """Builds ApiSettings from the loaded configuration."""
    load_configuration()
    return ApiSettings(
        base_uri=str(get_config("wsapi_base_uri")).rstrip("/"),
        version=str(get_config("wsapi_version")),
        key=str(get_config("wsapi_key") or ""),
        return_diagnostics=_as_bool(get_config("wsapi_return_diagnostics")),
        suppress_response_codes=_as_bool(get_config("wsapi_suppress_response_codes")),
        max_threads=int(get_config("wssdk_max_threads")),
        thread_launch_interval_delay=float(get_config("wssdk_thread_launch_interval_delay")),
        distance_unit=str(get_config("wssdk_distance_unit")).lower(),
        temperature_unit=str(get_config("wssdk_temperature_unit")).lower(),
        log_errors=_as_bool(get_config("wssdk_log_errors")),
        error_log_directory=str(get_config("wssdk_error_log_directory")),
        request_retry_count=int(get_config("wssdk_request_retry_on_error_count")),
        request_retry_delay=float(get_config("wssdk_request_retry_on_error_delay")),
    )
