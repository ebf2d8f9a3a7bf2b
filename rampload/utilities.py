import math
import os
from typing import Any, Dict, Mapping

import yaml

TRUTHY = ("true", "1", "yes")

def env_bool(env: Mapping[str, str], key: str, default: bool = False) -> bool:
    value = env.get(key)
    if value is None:
        return default
    return value.strip().lower() in TRUTHY

def env_number(env: Mapping[str, str], key: str, default: float, cast=float) -> Any:
    """
    Read a numeric environment value.
    Args:
        env: mapping to read from, usually os.environ.
        key: variable name.
        default: used when the variable is unset or empty.
        cast: int or float.
    Raises:
        ValueError: if the variable is set but does not parse with cast.
    """
    raw = env.get(key)
    if raw is None or not raw.strip():
        return cast(default)
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"Invalid value for {key}: {raw!r}, expected {cast.__name__}")

def format_bytes(size: float) -> str:
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    i = min(int(math.floor(math.log(size, 1024))), len(units) - 1)
    return f"{round(size / 1024 ** i, 1):g} {units[i]}"

class yamlUtilities:
    @staticmethod
    def load_yaml(yaml_path: str) -> Dict[str, Any]:
        if not os.path.exists(yaml_path):
            raise FileNotFoundError(f"Load plan {yaml_path} not found")
        with open(yaml_path, 'r') as file:
            data = yaml.safe_load(file)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"Invalid load plan {yaml_path}: expected a mapping at the top level, got {type(data).__name__}")
        return data
