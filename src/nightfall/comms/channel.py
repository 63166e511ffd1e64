"""Communication channel abstractions."""

from __future__ import annotations

from abc import ABC, abstractmethod

from nightfall.comms.delivery import Audience
from nightfall.engine.phase import Phase


class Channel(ABC):
    """Abstract base for a communication channel."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique channel identifier."""
        ...

    @abstractmethod
    def can_send(self, participant_id: str, phase: Phase) -> bool:
        """Return True if *participant_id* may post here during *phase*."""
        ...

    @abstractmethod
    def can_read(self, participant_id: str) -> bool:
        """Return True if *participant_id* receives messages posted here."""
        ...

    @property
    @abstractmethod
    def members(self) -> frozenset[str]:
        """Set of participant ids that belong to this channel."""
        ...

    @abstractmethod
    def audience(self) -> Audience:
        """Delivery audience for messages posted on this channel."""
        ...


class PublicChannel(Channel):
    """Match-wide channel, open in every phase."""

    def __init__(self, participant_ids: list[str]) -> None:
        self._participant_ids = frozenset(participant_ids)

    @property
    def name(self) -> str:
        return "public"

    def can_send(self, participant_id: str, phase: Phase) -> bool:
        return participant_id in self._participant_ids

    def can_read(self, participant_id: str) -> bool:
        return participant_id in self._participant_ids

    @property
    def members(self) -> frozenset[str]:
        return self._participant_ids

    def audience(self) -> Audience:
        return Audience.everyone()


class FactionChannel(Channel):
    """Faction-only channel, used at night.

    Membership is fixed by role at match start, so dead faction members keep
    reading it.
    """

    def __init__(self, faction_ids: list[str]) -> None:
        self._faction_ids = frozenset(faction_ids)

    @property
    def name(self) -> str:
        return "faction"

    def can_send(self, participant_id: str, phase: Phase) -> bool:
        return participant_id in self._faction_ids and phase is Phase.NIGHT

    def can_read(self, participant_id: str) -> bool:
        return participant_id in self._faction_ids

    @property
    def members(self) -> frozenset[str]:
        return self._faction_ids

    def audience(self) -> Audience:
        return Audience.group(self.name, self._faction_ids)
