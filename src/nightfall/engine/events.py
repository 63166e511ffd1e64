"""Narrative events synthesized by the match at phase boundaries."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from nightfall.engine.phase import Phase


@dataclass(frozen=True)
class MatchEvent:
    """Base match event."""

    round: int = 1
    phase: Phase = Phase.NIGHT

    @property
    def type(self) -> str:
        return "match_event"


@dataclass(frozen=True)
class PhaseChangeEvent(MatchEvent):
    """The match phase changed."""

    old_phase: Phase = Phase.NIGHT
    new_phase: Phase = Phase.NIGHT

    @property
    def type(self) -> str:
        return f"{self.new_phase.value}_start"


@dataclass(frozen=True)
class EliminationEvent(MatchEvent):
    """A participant was eliminated."""

    participant_id: str = ""
    name: str = ""
    cause: str = ""  # "faction_kill" or "vote"

    @property
    def type(self) -> str:
        return "participant_died"


@dataclass(frozen=True)
class NightResultEvent(MatchEvent):
    """Summary of the night after resolution. Nobody learns who was protected."""

    victim_id: str | None = None
    saved: bool = False

    @property
    def type(self) -> str:
        return "night_result"


@dataclass(frozen=True)
class VoteResultEvent(MatchEvent):
    """Result of a vote tally."""

    tally: dict[str, int] = field(default_factory=dict)
    eliminated_id: str | None = None
    tie: bool = False

    @property
    def type(self) -> str:
        return "vote_result"


@dataclass(frozen=True)
class InvestigationEvent(MatchEvent):
    """Private answer to an investigator's night action."""

    investigator_id: str = ""
    target_id: str = ""
    target_name: str = ""
    is_faction: bool = False

    @property
    def type(self) -> str:
        return "investigation_result"


@dataclass(frozen=True)
class MatchEndEvent(MatchEvent):
    """The match ended."""

    winning_team: str = ""
    winners: list[str] = field(default_factory=list)
    reason: str = ""

    @property
    def type(self) -> str:
        return "match_end"


def event_to_dict(event: MatchEvent) -> dict[str, Any]:
    """Convert an event into a JSON-friendly dict for delivery."""
    d: dict[str, Any] = {"type": event.type}
    for f in dataclasses.fields(event):
        val = getattr(event, f.name)
        if isinstance(val, Enum):
            val = val.value
        d[f.name] = val
    return d
