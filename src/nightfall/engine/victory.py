"""Win condition checks."""

from __future__ import annotations

from collections.abc import Iterable

from nightfall.engine.events import MatchEndEvent
from nightfall.engine.phase import Phase
from nightfall.engine.state import Participant
from nightfall.roles.base import Team


def check_victory(
    participants: Iterable[Participant],
    round_number: int = 1,
) -> MatchEndEvent | None:
    """Return a ``MatchEndEvent`` if the match is over, otherwise ``None``.

    Only living participants count:
    * **Faction wins** -- alive faction members >= every other living
      participant combined.
    * **Town wins** -- no faction member is left alive.
    """
    participants = list(participants)
    alive = [p for p in participants if p.is_alive]

    alive_faction = [p for p in alive if p.role.is_faction]
    alive_others = [p for p in alive if not p.role.is_faction]

    if len(alive_faction) >= len(alive_others):
        return MatchEndEvent(
            round=round_number,
            phase=Phase.RESULTS,
            winning_team=Team.FACTION,
            winners=[p.participant_id for p in participants if p.role.is_faction],
            reason="The faction equals or outnumbers everyone else.",
        )

    if not alive_faction:
        return MatchEndEvent(
            round=round_number,
            phase=Phase.RESULTS,
            winning_team=Team.TOWN,
            winners=[p.participant_id for p in participants if p.role.team == Team.TOWN],
            reason="Every faction member has been eliminated.",
        )

    return None
