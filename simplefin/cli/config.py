"""Configuration loading from files, the environment and `.env` files.

This module handles loading configuration from JSON and YAML files, reading
SimpleFIN settings from the process environment and a `.env` file, merging
CLI arguments on top (CLI takes precedence), and validating the result.

Configuration files can specify:
- access_url: SimpleFIN access URL with embedded Basic Auth credentials
- bridge_url: Root URL of the SimpleFIN bridge
- user_agent: User-Agent header sent with every request
- output_format: Default output format (text, json, csv)
- timeout: Request timeout in seconds

Precedence, highest first: CLI arguments, config file, environment
(process environment over `.env`), built-in defaults.
"""

import json
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values

from simplefin.cli.render import OUTPUT_FORMATS
from simplefin.core.clients import DEFAULT_BRIDGE_ROOT_URL, DEFAULT_USER_AGENT
from simplefin.core.credentials import AccessCredentials
from simplefin.core.decoding import decode_uri, trim_or_none
from simplefin.core.exceptions import SimplefinError

CONFIG_KEYS = ("access_url", "bridge_url", "user_agent", "output_format", "timeout")

ENVIRONMENT_VARIABLES = {
    "access_url": "SIMPLEFIN_ACCESS_URL",
    "bridge_url": "SIMPLEFIN_BRIDGE_URL",
    "user_agent": "SIMPLEFIN_USER_AGENT",
}

DEFAULTS: dict[str, Any] = {
    "bridge_url": DEFAULT_BRIDGE_ROOT_URL,
    "user_agent": DEFAULT_USER_AGENT,
    "output_format": "text",
    "timeout": 30.0,
}


class ConfigError(Exception):
    """Configuration file error.

    Raised when configuration files or `.env` files cannot be loaded or
    parsed, or when they do not contain a mapping of settings.
    """
    pass


def load_config(path: Path) -> dict[str, Any]:
    """Load configuration from JSON or YAML file.

    Format is determined by file extension (.json, .yaml, .yml); any other
    extension is tried as JSON first and then as YAML.

    Args:
        path: Path to configuration file

    Returns:
        Configuration dictionary (empty for an empty YAML document)

    Raises:
        ConfigError: If file cannot be loaded, parsed, or is not a mapping

    Example:
        >>> from pathlib import Path
        >>> from simplefin.cli.config import load_config
        >>>
        >>> config = load_config(Path("simplefin.yaml"))
        >>> print(config["output_format"])  # "json"
    """
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")

        if path.suffix == ".json":
            data = json.loads(content)
        elif path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content)
        else:
            try:
                data = json.loads(content)
            except json.JSONDecodeError:
                data = yaml.safe_load(content)

    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Configuration in {path} must be a mapping, got {type(data).__name__}"
        )
    return data


def load_environment(env_file: Path | None = None) -> dict[str, str]:
    """Read SimpleFIN settings from the process environment and a `.env` file.

    Variables already set in the process environment win over values in the
    `.env` file. Blank values are ignored. When ``env_file`` is omitted, a
    `.env` in the current directory is used if present.

    Raises:
        ConfigError: If an explicitly requested ``env_file`` does not exist
    """
    if env_file is not None and not env_file.exists():
        raise ConfigError(f"Environment file not found: {env_file}")

    path = env_file if env_file is not None else Path.cwd() / ".env"
    file_values = dotenv_values(path) if path.exists() else {}

    settings: dict[str, str] = {}
    for key, variable in ENVIRONMENT_VARIABLES.items():
        value = trim_or_none(os.environ.get(variable)) or trim_or_none(
            file_values.get(variable)
        )
        if value is not None:
            settings[key] = value
    return settings


def merge_config(
    base: dict[str, Any],
    **overrides: Any
) -> dict[str, Any]:
    """Merge CLI arguments into base configuration.

    Only non-None override values are applied, allowing config file and
    environment values to be used when CLI arguments are not specified.

    Example:
        >>> from simplefin.cli.config import merge_config
        >>>
        >>> merged = merge_config({"output_format": "text"}, output_format="csv")
        >>> print(merged)  # {"output_format": "csv"}
    """
    merged = base.copy()

    for key, value in overrides.items():
        if value is not None:
            merged[key] = value
    return merged


def resolve_config(
    config_path: Path | None = None,
    env_file: Path | None = None,
    **overrides: Any
) -> dict[str, Any]:
    """Build the effective configuration for a command.

    Layers defaults, environment, config file and CLI overrides in that
    order, each later layer winning over the earlier ones.

    Raises:
        ConfigError: If the config file or `.env` file cannot be loaded
    """
    config = dict(DEFAULTS)
    config.update(load_environment(env_file))
    if config_path is not None:
        config = merge_config(config, **load_config(config_path))
    return merge_config(config, **overrides)


def validate_config(config: dict[str, Any]) -> list[str]:
    """Validate configuration keys and values.

    Checks that:
    - Only known keys are present
    - output_format is one of the supported formats
    - timeout is a positive number
    - access_url carries Basic Auth credentials
    - bridge_url is an absolute URI

    Returns:
        List of validation error messages (empty list if valid)

    Example:
        >>> from simplefin.cli.config import validate_config
        >>>
        >>> errors = validate_config({"output_format": "xml"})
        >>> print(errors)  # ["Unknown output format: xml (expected text, json, csv)"]
    """
    errors = []

    for key in config:
        if key not in CONFIG_KEYS:
            errors.append(f"Unknown configuration key: {key}")

    if "output_format" in config and config["output_format"] not in OUTPUT_FORMATS:
        errors.append(
            f"Unknown output format: {config['output_format']} "
            f"(expected {', '.join(OUTPUT_FORMATS)})"
        )

    if "timeout" in config:
        timeout = config["timeout"]
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            errors.append(f"timeout must be a positive number of seconds, got {timeout!r}")

    for key in ("access_url", "bridge_url", "user_agent"):
        if key in config and not isinstance(config[key], str):
            errors.append(f"{key} must be a string")

    if isinstance(config.get("access_url"), str):
        try:
            AccessCredentials.parse(config["access_url"])
        except SimplefinError as e:
            errors.append(f"Invalid access_url: {e.message}")

    if isinstance(config.get("bridge_url"), str):
        decoded = decode_uri(config["bridge_url"].strip(), "bridge_url")
        if not decoded.ok:
            errors.append(decoded.error.message)

    return errors
