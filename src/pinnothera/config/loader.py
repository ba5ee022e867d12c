"""JSON / YAML topology loader."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

import structlog
import yaml
from pydantic import ValidationError

from pinnothera.config.models import ProvisioningConfig
from pinnothera.errors import ConfigError

logger = structlog.get_logger()

ConfigFormat = Literal["json", "yaml"]


def build_config(data: Any, *, source: str = "<inline>") -> ProvisioningConfig:
    """Validate already-parsed data as a ProvisioningConfig."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = (
            f"Expected a mapping of queue names at top level in {source}, "
            f"got {type(data).__name__}"
        )
        raise ConfigError(msg, operation="load_config", resource=source)
    try:
        return ProvisioningConfig.model_validate(data)
    except ValidationError as exc:
        msg = f"Invalid topology config ({source}):\n{exc}"
        raise ConfigError(msg, operation="load_config", resource=source) from exc


def config_from_json(text: str, *, source: str = "<json>") -> ProvisioningConfig:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.error("config.json_invalid", source=source, data=text)
        msg = (
            f"Failed to parse JSON in {source} at line {exc.lineno}, "
            f"column {exc.colno}: {exc.msg}"
        )
        raise ConfigError(msg, operation="load_config", resource=source) from exc
    return build_config(data, source=source)


def config_from_yaml(text: str, *, source: str = "<yaml>") -> ProvisioningConfig:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        logger.error("config.yaml_invalid", source=source, data=text)
        msg = f"Failed to parse YAML in {source}"
        if hasattr(exc, "problem_mark") and exc.problem_mark is not None:
            mark = exc.problem_mark
            msg += f" at line {mark.line + 1}, column {mark.column + 1}"
        msg += f": {exc}"
        raise ConfigError(msg, operation="load_config", resource=source) from exc
    return build_config(data, source=source)


def load_config_file(path: str | Path, fmt: ConfigFormat) -> ProvisioningConfig:
    """Read a topology file from disk in the given format."""
    p = Path(path)
    if not p.exists():
        msg = f"Config file not found: {p}"
        raise ConfigError(msg, operation="load_config", resource=str(p))
    text = p.read_text()
    if fmt == "json":
        return config_from_json(text, source=str(p))
    return config_from_yaml(text, source=str(p))
