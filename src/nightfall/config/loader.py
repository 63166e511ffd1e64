"""Configuration loading and merging."""

from __future__ import annotations

import copy
import logging
from typing import Any

import yaml
from pydantic import ValidationError

from nightfall.config.schema import MatchConfig

logger = logging.getLogger(__name__)


def load_config(path: str | None = None) -> MatchConfig:
    """Load a match configuration from a YAML file.

    Parameters
    ----------
    path:
        Path to a YAML configuration file.  If *None* or the file does
        not exist, a default :class:`MatchConfig` is returned.

    Returns
    -------
    MatchConfig
        Parsed and validated configuration.
    """
    if path is None:
        logger.debug("No config path provided, using defaults")
        return MatchConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.warning("Config file not found: %s -- using defaults", path)
        return MatchConfig()
    except yaml.YAMLError as exc:
        logger.error("Failed to parse YAML config %s: %s", path, exc)
        return MatchConfig()

    if not isinstance(data, dict):
        logger.warning("Config file %s did not produce a dict, using defaults", path)
        return MatchConfig()

    try:
        return MatchConfig.model_validate(data)
    except ValidationError as exc:
        logger.error("Config validation failed for %s: %s", path, exc)
        return MatchConfig()


def merge_configs(base: MatchConfig, overrides: dict[str, Any]) -> MatchConfig:
    """Deep-merge an override dict into *base* and re-validate.

    Falls back to *base* if the merged result does not validate.
    """
    merged = _deep_merge(base.model_dump(), overrides)

    try:
        return MatchConfig.model_validate(merged)
    except ValidationError as exc:
        logger.error("Merged config validation failed: %s", exc)
        return base


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *overrides* into a copy of *base*."""
    result = copy.deepcopy(base)
    for key, value in overrides.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result
