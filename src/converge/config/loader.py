"""Configuration loading and validation."""

from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from converge.config.schema import ConvergeConfig

DEFAULT_CONFIG_PATH = Path.home() / ".converge" / "converge.yaml"


class ConfigError(Exception):
    """Configuration loading or validation error."""


def load_config(path: Optional[Path] = None) -> ConvergeConfig:
    """Load and validate configuration from a YAML file.

    Args:
        path: Path to config file. If None, tries default location.
              If file doesn't exist, returns default config.

    Returns:
        Validated configuration object

    Raises:
        ConfigError: If config file exists but is invalid
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH

    # Zero-config mode: if file doesn't exist, use all defaults
    if not path.exists():
        return ConvergeConfig()

    try:
        with open(path) as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            return ConvergeConfig()

        if not isinstance(config_data, dict):
            raise ConfigError(f"Top level of {path} must be a mapping")

        return ConvergeConfig(**config_data)

    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e


def save_config(config: ConvergeConfig, path: Optional[Union[str, Path]] = None) -> None:
    """Save configuration to YAML file.

    Credentials are never written; supply them through the environment.

    Args:
        config: Configuration object to save
        path: Destination path (string or Path object). If None, uses default location.
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH
    elif isinstance(path, str):
        path = Path(path)

    path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump(
        exclude={
            "provider": {"api_key"},
            "tools": {"search": {"api_key"}, "pipeline": {"api_key"}},
        }
    )

    with open(path, "w") as f:
        yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)
