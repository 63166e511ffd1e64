"""Configuration loading and validation."""

from nightfall.config.schema import (
    ChatConfig,
    MatchConfig,
    PhaseDurations,
    SchedulerConfig,
)
from nightfall.config.loader import load_config, merge_configs

__all__ = [
    "ChatConfig",
    "MatchConfig",
    "PhaseDurations",
    "SchedulerConfig",
    "load_config",
    "merge_configs",
]
