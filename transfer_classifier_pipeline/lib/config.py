import json
from pathlib import Path
from typing import Any, Dict, Type, TypeVar, Union

import yaml
from pydantic import BaseModel, ValidationError

from .errors import ConfigError, NotFoundError

ConfigModel = TypeVar("ConfigModel", bound=BaseModel)


def read_config_file(config_file: Union[str, Path]) -> Dict[str, Any]:
    """Read a YAML or JSON configuration file into a plain dictionary."""
    config_path = Path(config_file)
    if not config_path.is_file():
        raise NotFoundError(f"Configuration file {config_path} does not exist")

    if config_path.suffix.lower() in [".yaml", ".yml"]:
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f)
    elif config_path.suffix.lower() == ".json":
        with open(config_path, "r") as f:
            config_data = json.load(f)
    else:
        raise ConfigError(f"Unsupported config file format: {config_path.suffix}")

    # An empty YAML document means "all defaults"
    return config_data or {}


def load_config(config_file: Union[str, Path], model: Type[ConfigModel]) -> ConfigModel:
    """Load and validate a configuration file against a pydantic model."""
    config_data = read_config_file(config_file)
    try:
        return model.model_validate(config_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_file}:\n{e}") from e
