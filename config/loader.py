import os
import re
import yaml
from typing import Any, Dict, IO

from utils.errors import ConfigError

# ${VAR} or ${VAR:-default}
ENV_VAR_MATCHER = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


def substitute_env_vars(value: str) -> str:
    """
    Replaces every ${VAR} / ${VAR:-default} reference in the value.

    Raises:
        ConfigError: If a variable is unset and has no default.
    """
    def _replace(match: "re.Match[str]") -> str:
        env_var, default = match.group(1), match.group(2)
        replacement = os.getenv(env_var)
        if replacement is None:
            if default is None:
                raise ConfigError(f"Environment variable '{env_var}' not found for substitution in config.")
            return default
        return replacement

    return ENV_VAR_MATCHER.sub(_replace, value)


class EnvVarLoader(yaml.SafeLoader):
    """SafeLoader that expands environment variables in plain scalars."""


def _env_var_constructor(loader: EnvVarLoader, node: yaml.ScalarNode) -> Any:
    value = substitute_env_vars(loader.construct_scalar(node))
    # An empty expansion means "unset"; type coercion is left to the pydantic models.
    return value if value else None


EnvVarLoader.add_constructor("!env", _env_var_constructor)
EnvVarLoader.add_implicit_resolver("!env", re.compile(r".*\$\{\w+(?::-[^}]*)?\}.*"), None)


def load_config(config_file: IO[str]) -> Dict[str, Any]:
    """
    Loads a YAML configuration file.

    Args:
        config_file: A file-like object representing the YAML configuration.

    Returns:
        A dictionary containing the configuration.

    Raises:
        ConfigError: If the file cannot be parsed.
    """
    try:
        config = yaml.load(config_file, Loader=EnvVarLoader)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML configuration: {e}") from e
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigError("Configuration root must be a mapping.")
    return config
