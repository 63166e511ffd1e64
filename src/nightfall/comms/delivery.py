"""Delivery contract between the engine and the transport.

The engine never talks to a socket. It hands ``Envelope`` objects to
listeners; each envelope names its audience and a JSON-friendly payload and
the transport does the fan-out.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any


class AudienceKind:
    """Audience kind constants."""

    EVERYONE = "everyone"
    PARTICIPANT = "participant"
    GROUP = "group"


class EnvelopeKind:
    """Payload kind constants."""

    STATE = "state"
    ROSTER = "roster"
    ROLE = "role"
    EVENT = "event"
    CHAT = "chat"


@dataclass(frozen=True)
class Audience:
    """Addressee of an envelope."""

    kind: str
    name: str = ""
    members: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def everyone(cls) -> Audience:
        return cls(kind=AudienceKind.EVERYONE)

    @classmethod
    def participant(cls, participant_id: str) -> Audience:
        return cls(
            kind=AudienceKind.PARTICIPANT,
            name=participant_id,
            members=frozenset({participant_id}),
        )

    @classmethod
    def group(cls, name: str, member_ids: Iterable[str]) -> Audience:
        return cls(kind=AudienceKind.GROUP, name=name, members=frozenset(member_ids))

    def includes(self, participant_id: str) -> bool:
        """Return True if *participant_id* is addressed by this audience."""
        if self.kind == AudienceKind.EVERYONE:
            return True
        return participant_id in self.members


@dataclass(frozen=True)
class Envelope:
    """One outbound delivery: audience plus payload."""

    match_id: str
    audience: Audience
    kind: str
    payload: Any


Listener = Callable[[Envelope], None]
