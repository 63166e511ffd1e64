"""Immutable match state and the public snapshots derived from it."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from nightfall.engine.phase import Phase
from nightfall.roles.base import Role


@dataclass(frozen=True)
class Participant:
    """Immutable record for one participant in the match."""

    participant_id: str
    name: str
    role: Role
    is_alive: bool = True
    can_act: bool = True

    def to_public_dict(self) -> dict[str, Any]:
        """Roster entry without role information."""
        return {
            "id": self.participant_id,
            "name": self.name,
            "is_alive": self.is_alive,
        }

    def to_private_dict(self) -> dict[str, Any]:
        """Full record, only for the participant it describes."""
        return {
            "id": self.participant_id,
            "name": self.name,
            "role": self.role.value,
            "team": self.role.team,
            "description": self.role.definition.description,
            "is_alive": self.is_alive,
            "can_act": self.can_act,
        }


@dataclass(frozen=True)
class MatchState:
    """Immutable snapshot of one match.

    Every mutation method returns a *new* MatchState; the original is never
    modified, so a published snapshot never shows a half-applied transition.
    """

    match_id: str
    phase: Phase = Phase.NIGHT
    round: int = 1
    time_remaining: int = 0
    participants: tuple[Participant, ...] = ()
    votes: dict[str, str] = field(default_factory=dict)
    pending_actions: dict[str, str] = field(default_factory=dict)
    last_killed: str | None = None
    last_voted: str | None = None
    winner: str | None = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def is_over(self) -> bool:
        return self.phase is Phase.RESULTS

    def get_participant(self, participant_id: str) -> Participant | None:
        """Return the Participant with the given id, or None."""
        for p in self.participants:
            if p.participant_id == participant_id:
                return p
        return None

    def get_alive_participants(self) -> list[Participant]:
        return [p for p in self.participants if p.is_alive]

    def get_alive_ids(self) -> list[str]:
        return [p.participant_id for p in self.participants if p.is_alive]

    def get_participants_by_role(self, role: Role) -> list[Participant]:
        """Return all participants (alive or dead) with *role*."""
        return [p for p in self.participants if p.role is role]

    def get_faction_ids(self) -> list[str]:
        """Ids of every faction member, alive or dead."""
        return [p.participant_id for p in self.participants if p.role.is_faction]

    def alive_roles(self) -> dict[str, Role]:
        return {p.participant_id: p.role for p in self.participants if p.is_alive}

    def all_roles(self) -> dict[str, Role]:
        return {p.participant_id: p.role for p in self.participants}

    # ------------------------------------------------------------------
    # Immutable updates
    # ------------------------------------------------------------------

    def with_phase(self, phase: Phase, time_remaining: int) -> MatchState:
        """Return a copy in *phase* with a freshly armed countdown."""
        return replace(self, phase=phase, time_remaining=time_remaining)

    def with_round(self, round_number: int) -> MatchState:
        return replace(self, round=round_number)

    def with_time_decremented(self) -> MatchState:
        return replace(self, time_remaining=max(self.time_remaining - 1, 0))

    def with_participant_killed(self, participant_id: str) -> MatchState:
        """Return a copy where the given participant is marked dead."""
        new_participants = tuple(
            replace(p, is_alive=False, can_act=False)
            if p.participant_id == participant_id
            else p
            for p in self.participants
        )
        return replace(self, participants=new_participants)

    def with_pending_action(self, actor_id: str, target_id: str) -> MatchState:
        """Record a night action and spend the actor's turn."""
        new_actions = dict(self.pending_actions)
        new_actions[actor_id] = target_id
        new_participants = tuple(
            replace(p, can_act=False) if p.participant_id == actor_id else p
            for p in self.participants
        )
        return replace(
            self, pending_actions=new_actions, participants=new_participants
        )

    def with_vote(self, voter_id: str, target_id: str) -> MatchState:
        """Return a copy with *voter_id*'s vote set (overwriting any prior vote)."""
        new_votes = dict(self.votes)
        new_votes[voter_id] = target_id
        return replace(self, votes=new_votes)

    def clear_votes(self) -> MatchState:
        return replace(self, votes={})

    def reset_actions(self) -> MatchState:
        """Clear pending actions and give every living participant their turn back."""
        new_participants = tuple(
            replace(p, can_act=True) if p.is_alive else p
            for p in self.participants
        )
        return replace(self, pending_actions={}, participants=new_participants)

    def with_last_killed(self, name: str | None) -> MatchState:
        return replace(self, last_killed=name)

    def with_last_voted(self, name: str | None) -> MatchState:
        return replace(self, last_voted=name)

    def with_winner(self, team: str) -> MatchState:
        return replace(self, winner=team, phase=Phase.RESULTS, time_remaining=0)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def to_snapshot(self) -> dict[str, Any]:
        """Public state snapshot; carries no role information."""
        return {
            "match_id": self.match_id,
            "phase": self.phase.value,
            "round": self.round,
            "time_remaining": self.time_remaining,
            "votes": dict(self.votes),
            "last_killed": self.last_killed,
            "last_voted": self.last_voted,
            "winner": self.winner,
        }

    def roster(self) -> list[dict[str, Any]]:
        """All participants as public entries with liveness."""
        return [p.to_public_dict() for p in self.participants]
