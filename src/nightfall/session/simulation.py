"""Scripted random participants and a manual-tick match runner."""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from nightfall.config.schema import MatchConfig
from nightfall.engine.phase import Phase
from nightfall.engine.registry import MatchRegistry

if TYPE_CHECKING:
    from nightfall.comms.delivery import Listener
    from nightfall.engine.state import MatchState

logger = logging.getLogger(__name__)

_NAMES = [
    "Alice", "Bruno", "Chen", "Dana", "Emeka", "Farah",
    "Gus", "Hana", "Ivo", "Jules", "Kira", "Lev",
]

_CANNED_LINES = [
    "I think we should hear from everyone before voting.",
    "Something about last night does not add up.",
    "I'm not sure who to trust right now.",
    "Let's not rush this decision.",
]

_SUSPICION_LINES = [
    "I'm suspicious of {target}.",
    "{target} has been awfully quiet.",
    "Has anyone else noticed {target} acting strange?",
]

_FACTION_LINES = [
    "Let's go after {target} tonight.",
    "{target} looks like the investigator to me.",
]


@dataclass
class SimulationResult:
    """Outcome of one simulated match."""

    match_id: str
    winner: str | None
    rounds: int
    ticks: int
    final_state: MatchState


class RandomParticipant:
    """Participant that picks targets and chat lines at random."""

    def __init__(self, participant_id: str, rng: random.Random, chat_rate: float = 0.3) -> None:
        self.participant_id = participant_id
        self.rng = rng
        self.chat_rate = chat_rate

    def night_target(self, state: MatchState) -> str | None:
        me = state.get_participant(self.participant_id)
        if me is None or not me.is_alive or me.role.definition.ability is None:
            return None

        if me.role.is_faction:
            candidates = [p for p in state.get_alive_participants() if not p.role.is_faction]
        else:
            candidates = [
                p for p in state.get_alive_participants()
                if p.participant_id != self.participant_id
            ]
        if not candidates:
            return None
        return self.rng.choice(candidates).participant_id

    def vote_target(self, state: MatchState) -> str | None:
        me = state.get_participant(self.participant_id)
        if me is None or not me.is_alive:
            return None
        candidates = [
            p for p in state.get_alive_participants()
            if p.participant_id != self.participant_id
            and not (me.role.is_faction and p.role.is_faction)
        ]
        if not candidates:
            return None
        return self.rng.choice(candidates).participant_id

    def chat_line(self, state: MatchState) -> str | None:
        me = state.get_participant(self.participant_id)
        if me is None or not me.is_alive or self.rng.random() >= self.chat_rate:
            return None

        others = [
            p.name for p in state.get_alive_participants()
            if p.participant_id != self.participant_id
        ]
        if state.phase is Phase.NIGHT:
            if not me.role.is_faction or not others:
                return None
            return self.rng.choice(_FACTION_LINES).format(target=self.rng.choice(others))
        if others and self.rng.random() < 0.5:
            return self.rng.choice(_SUSPICION_LINES).format(target=self.rng.choice(others))
        return self.rng.choice(_CANNED_LINES)


def run_simulation(
    config: MatchConfig | None = None,
    num_players: int = 5,
    seed: int | None = None,
    max_rounds: int = 20,
    listeners: list[Listener] | None = None,
) -> SimulationResult:
    """Play one match with random participants by ticking it by hand.

    The match is torn down after *max_rounds* rounds if no side has won.
    """
    rng = random.Random(seed)
    config = config or MatchConfig()
    registry = MatchRegistry(config, listeners=listeners)

    match_id = f"sim-{seed}" if seed is not None else uuid.uuid4().hex[:8]
    roster = [
        (f"p{i + 1}", _NAMES[i] if i < len(_NAMES) else f"Player{i + 1}")
        for i in range(num_players)
    ]
    registry.start_match(match_id, roster, rng=rng)
    match = registry.get(match_id)
    if match is None:
        raise RuntimeError(f"Match {match_id} was not registered")

    bots = [RandomParticipant(pid, rng) for pid, _ in roster]
    _play_phase(registry, match_id, match.state, bots)

    ticks = 0
    phase = match.phase
    while True:
        if match.state.round > max_rounds:
            logger.info("Simulation %s hit the %d round limit", match_id, max_rounds)
            registry.teardown(match_id)
            break

        live = registry.tick(match_id)
        ticks += 1
        if match.phase is not phase:
            phase = match.phase
            _play_phase(registry, match_id, match.state, bots)
        if not live:
            break

    return SimulationResult(
        match_id=match_id,
        winner=match.state.winner,
        rounds=match.state.round,
        ticks=ticks,
        final_state=match.state,
    )


def _play_phase(
    registry: MatchRegistry,
    match_id: str,
    state: MatchState,
    bots: list[RandomParticipant],
) -> None:
    """Submit every bot's input for the phase that just started."""
    for bot in bots:
        if state.phase is Phase.NIGHT:
            target = bot.night_target(state)
            if target is not None:
                registry.handle_action(match_id, bot.participant_id, target)
        elif state.phase is Phase.VOTING:
            target = bot.vote_target(state)
            if target is not None:
                registry.handle_vote(match_id, bot.participant_id, target)

        if state.phase is not Phase.RESULTS:
            line = bot.chat_line(state)
            if line is not None:
                registry.handle_chat(match_id, bot.participant_id, line)
