import collections.abc
from pathlib import Path
from typing import Any, Dict, List, Optional

from config.loader import load_config
from config.models import Config
from utils.errors import ConfigError
from utils.logger import logger

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yaml"
USER_CONFIG_DIR = Path.home() / ".ctxcommit"
USER_CONFIG_PATH = USER_CONFIG_DIR / "config.yaml"
PROJECT_CONFIG_FILENAME = ".ctxcommit.yaml"


def deep_merge(target: Dict[str, Any], source: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merges source into target. Lists and scalars are replaced.
    A None in source does not clear a value set by an earlier layer.
    """
    for key, value in source.items():
        if isinstance(value, collections.abc.Mapping) and isinstance(target.get(key), collections.abc.Mapping):
            target[key] = deep_merge(dict(target[key]), value)
        elif value is not None or key not in target:
            target[key] = value
    return target


def find_project_root(start_dir: Path = Path(".")) -> Optional[Path]:
    """
    Finds the project root by searching upwards for a .git directory or pyproject.toml.
    """
    d = start_dir.resolve()
    while d != d.parent:
        if (d / ".git").is_dir() or (d / "pyproject.toml").is_file():
            return d
        d = d.parent
    return None


def find_project_config(start_dir: Path = Path(".")) -> Optional[Path]:
    project_root = find_project_root(start_dir)
    if project_root:
        project_config_path = project_root / PROJECT_CONFIG_FILENAME
        if project_config_path.is_file():
            return project_config_path
    return None


def _drop_nones(data: Dict[str, Any]) -> Dict[str, Any]:
    """Removes unset leaves so the pydantic defaults apply."""
    cleaned: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, collections.abc.Mapping):
            cleaned[key] = _drop_nones(dict(value))
        elif value is not None:
            cleaned[key] = value
    return cleaned


def load_and_merge_configs(custom_config_path: Optional[str] = None) -> Config:
    """
    Loads the default, user and project configurations and merges them, in
    that order of precedence. A custom config path replaces the user and
    project layers.
    """
    if not DEFAULT_CONFIG_PATH.is_file():
        raise ConfigError("Default configuration file not found.")
    config_paths: List[Path] = [DEFAULT_CONFIG_PATH]

    if custom_config_path:
        path = Path(custom_config_path)
        if not path.is_file():
            raise ConfigError(f"Custom config file not found at: {custom_config_path}")
        config_paths.append(path)
        logger.info(f"Using custom configuration from: {custom_config_path}")
    else:
        if USER_CONFIG_PATH.is_file():
            config_paths.append(USER_CONFIG_PATH)
        project_config_path = find_project_config()
        if project_config_path:
            config_paths.append(project_config_path)

    merged_config: Dict[str, Any] = {}
    for path in config_paths:
        logger.debug(f"Loading configuration from: {path}")
        with open(path, "r", encoding="utf-8") as f:
            merged_config = deep_merge(merged_config, load_config(f))

    try:
        final_config = Config(**_drop_nones(merged_config))
    except Exception as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e
    logger.debug(f"Final merged config: {final_config.model_dump_json(indent=2, exclude={'object_store': {'token'}})}")
    return final_config
