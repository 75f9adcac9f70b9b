"""config.yaml loading and stack assembly shared by app.py and the CLI."""

from pathlib import Path
from typing import Any

import aws_cdk as cdk
import yaml

from .exceptions import ConfigurationError
from .graph import Configuration, load_configuration
from .logger import get_logger
from .stacks.cost_report_stack import CostReportStack

logger = get_logger(__name__)

REQUIRED_KEYS = ("account", "region", "tags", "cur")


def load_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config.yaml

    Returns:
        Loaded configuration dictionary

    Raises:
        ConfigurationError: If the file is missing, empty or not valid YAML
    """
    if not config_path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}. "
            f"Copy config.yaml from the project root and adjust it.",
            path=str(config_path),
        )

    try:
        with open(config_path) as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file: {e}", path=str(config_path)) from e

    if not config:
        raise ConfigurationError(f"Configuration file is empty: {config_path}", path=str(config_path))

    return config


def environment_config(config: dict[str, Any], environment: str) -> dict[str, Any]:
    """Return the block for one environment, checking its required keys.

    Args:
        config: Full configuration dictionary
        environment: Environment name (e.g., 'FINOPS')

    Raises:
        ConfigurationError: If environment config is missing or incomplete
    """
    if environment not in config:
        available = [k for k in config.keys() if str(k).isupper()]
        raise ConfigurationError(
            f"Environment '{environment}' not found in config.yaml",
            available=", ".join(available) or "none",
        )

    env_config = config[environment]
    missing_keys = [key for key in REQUIRED_KEYS if key not in env_config]
    if missing_keys:
        raise ConfigurationError(
            f"Missing required configuration keys for {environment}",
            missing=", ".join(missing_keys),
            required=", ".join(REQUIRED_KEYS),
        )
    return env_config


def configuration_from_environment(env_config: dict[str, Any]) -> Configuration:
    """Merge account, region and tags into the ``cur`` block and validate it."""
    data = dict(env_config["cur"] or {})
    data["account_id"] = str(env_config["account"])
    data["region"] = env_config["region"]
    data["tags"] = env_config["tags"] or {}
    return load_configuration(data)


def stack_name(environment: str, env_config: dict[str, Any]) -> str:
    return env_config.get("stack_name") or f"CostReport-{environment}"


def build_stack(app: cdk.App, environment: str, env_config: dict[str, Any]) -> CostReportStack:
    """Create the Cost Report stack for one environment block."""
    configuration = configuration_from_environment(env_config)
    name = stack_name(environment, env_config)
    logger.info(
        "building_stack",
        stack=name,
        account=configuration.account_id,
        region=configuration.region,
    )
    return CostReportStack(
        app,
        name,
        configuration=configuration,
        env=cdk.Environment(account=configuration.account_id, region=configuration.region),
    )
