"""YAML config loader with environment variable interpolation."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from steptrail.config.models import StepTrailConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".steptrail.yaml"
CONFIG_FILENAMES = (CONFIG_FILENAME, ".steptrail.yml")
CONFIG_ENV_VAR = "STEPTRAIL_CONFIG"

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _interpolate_env(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}``; unset variables without a default are left as written."""

    def _replace(match: re.Match[str]) -> str:
        name, sep, default = match.group(1).partition(":-")
        resolved = os.environ.get(name.strip())
        if resolved is not None:
            return resolved
        return default if sep else match.group(0)

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(data: Any) -> Any:
    if isinstance(data, str):
        return _interpolate_env(data)
    if isinstance(data, dict):
        return {key: _interpolate_recursive(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_interpolate_recursive(item) for item in data]
    return data


def find_config_file(start: Path | None = None) -> Path | None:
    """Locate the config file.

    ``$STEPTRAIL_CONFIG`` wins when set. Otherwise walk up from *start*
    (default cwd) and return the first ``.steptrail.yaml``/``.yml`` found.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    here = (start or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        for filename in CONFIG_FILENAMES:
            candidate = directory / filename
            if candidate.is_file():
                return candidate
    return None


def load_config(path: Path | None = None) -> StepTrailConfig:
    """Read, interpolate and validate the steptrail config.

    Raises FileNotFoundError when no file is found and ValueError when the
    file does not validate.
    """
    config_path = path or find_config_file()
    if config_path is None or not config_path.exists():
        raise FileNotFoundError(
            f"Could not find {CONFIG_FILENAME}. Create one in your project root, "
            f"set ${CONFIG_ENV_VAR}, or pass a path."
        )
    with config_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid configuration in {config_path}: expected a mapping at the top level")
    try:
        config = StepTrailConfig(**_interpolate_recursive(raw))
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration in {config_path}: {exc}") from exc
    logger.debug("Loaded configuration from %s", config_path)
    return config
