"""Pydantic models for all configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field


class PhaseDurations(BaseModel):
    """Countdown length of each phase, in ticks."""

    night: int = Field(default=60, ge=1)
    day: int = Field(default=90, ge=1)
    voting: int = Field(default=45, ge=1)


class ChatConfig(BaseModel):
    """Chat routing configuration."""

    allow_faction_chat: bool = True
    max_length: int = Field(default=500, ge=1)


class SchedulerConfig(BaseModel):
    """Real-time tick scheduling."""

    tick_interval: float = Field(default=1.0, gt=0)


class MatchConfig(BaseModel):
    """Top-level match configuration."""

    ruleset: str = "classic"
    min_participants: int = Field(default=3, ge=3)
    durations: PhaseDurations = Field(default_factory=PhaseDurations)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
