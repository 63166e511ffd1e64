"""Match -- the per-match phase state machine."""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Sequence
from typing import Any

from nightfall.comms.delivery import Audience, Envelope, EnvelopeKind, Listener
from nightfall.comms.message import ChatMessage
from nightfall.comms.router import ChannelRouter
from nightfall.config.schema import MatchConfig
from nightfall.engine.events import (
    EliminationEvent,
    InvestigationEvent,
    MatchEndEvent,
    MatchEvent,
    NightResultEvent,
    PhaseChangeEvent,
    VoteResultEvent,
    event_to_dict,
)
from nightfall.engine.phase import Phase
from nightfall.engine.resolver import resolve_night, resolve_votes
from nightfall.engine.state import MatchState, Participant
from nightfall.engine.victory import check_victory
from nightfall.roles.assignment import assign_roles

logger = logging.getLogger(__name__)


class Match:
    """Owns one match's state and drives it through its phases.

    The match never schedules anything itself: an external scheduler (or a
    test) calls :meth:`tick` once per time unit. Every public operation runs
    under the match's own lock, so a command never sees a half-applied
    transition. Outbound envelopes are queued while the lock is held and
    handed to listeners after it is released.

    Parameters
    ----------
    match_id:
        Identifier of the match.
    roster:
        ``(participant_id, display_name)`` pairs, in lobby order.
    config:
        Match configuration; defaults to :class:`MatchConfig`.
    rng:
        Randomness source for role assignment.
    listeners:
        Callables receiving every outbound :class:`Envelope`.
    """

    def __init__(
        self,
        match_id: str,
        roster: Sequence[tuple[str, str]],
        config: MatchConfig | None = None,
        rng: random.Random | None = None,
        listeners: list[Listener] | None = None,
    ) -> None:
        self.config = config or MatchConfig()
        if len(roster) < self.config.min_participants:
            raise ValueError(
                f"Match {match_id} needs at least {self.config.min_participants} "
                f"participants, got {len(roster)}"
            )

        participant_ids = [pid for pid, _ in roster]
        roles = assign_roles(participant_ids, rng)
        participants = tuple(
            Participant(participant_id=pid, name=name, role=roles[pid])
            for pid, name in roster
        )

        self.state = MatchState(
            match_id=match_id,
            phase=Phase.NIGHT,
            round=1,
            time_remaining=self.config.durations.night,
            participants=participants,
        )
        self.router = ChannelRouter.create(
            participant_ids, self.state.get_faction_ids(), self.config.chat
        )
        self.listeners: list[Listener] = list(listeners or [])

        self._lock = threading.RLock()
        self._outbox: list[Envelope] = []
        self._draining = False
        self._closed = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def match_id(self) -> str:
        return self.state.match_id

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def is_over(self) -> bool:
        return self.state.is_over

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def participants(self) -> tuple[Participant, ...]:
        return self.state.participants

    def add_listener(self, listener: Listener) -> None:
        self.listeners.append(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def announce_start(self) -> None:
        """Publish the opening state, roster, private role reveals and the
        first night announcement."""
        with self._lock:
            self._queue_state()
            self._queue_roster()
            for p in self.state.participants:
                self._queue(
                    Audience.participant(p.participant_id),
                    EnvelopeKind.ROLE,
                    p.to_private_dict(),
                )
            self._queue_event(
                PhaseChangeEvent(
                    round=1,
                    phase=Phase.NIGHT,
                    old_phase=Phase.NIGHT,
                    new_phase=Phase.NIGHT,
                )
            )
        logger.info(
            "Match %s started with %d participants",
            self.match_id,
            len(self.state.participants),
        )
        self._flush()

    def close(self) -> bool:
        """Stop accepting ticks and commands. Returns False if already closed."""
        with self._lock:
            if self._closed:
                return False
            self._closed = True
        logger.debug("Match %s closed", self.match_id)
        return True

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def tick(self) -> bool:
        """Advance the countdown by one unit; transition when it hits zero.

        Returns False (and does nothing) once the match is over or closed.
        """
        with self._lock:
            if self._closed or self.state.is_over:
                return False

            self.state = self.state.with_time_decremented()
            if self.state.time_remaining <= 0:
                self._advance()

            self._queue_state()
            self._queue_roster()
        self._flush()
        return True

    def _advance(self) -> None:
        phase = self.state.phase
        if phase is Phase.NIGHT:
            self._end_night()
        elif phase is Phase.DAY:
            self._end_day()
        elif phase is Phase.VOTING:
            self._end_voting()

    def _end_night(self) -> None:
        state = self.state
        outcome = resolve_night(
            state.pending_actions, state.alive_roles(), state.all_roles()
        )

        victim = state.get_participant(outcome.victim) if outcome.victim else None
        if victim is not None:
            state = state.with_participant_killed(
                victim.participant_id
            ).with_last_killed(victim.name)
            logger.info(
                "Match %s round %d: %s killed by the faction",
                self.match_id,
                state.round,
                victim.participant_id,
            )
        state = state.reset_actions().with_phase(Phase.DAY, self.config.durations.day)
        self.state = state

        self._queue_phase_change(Phase.NIGHT, Phase.DAY)
        self._queue_event(
            NightResultEvent(
                round=state.round,
                phase=Phase.DAY,
                victim_id=victim.participant_id if victim else None,
                saved=outcome.saved,
            )
        )
        if victim is not None:
            self._queue_event(
                EliminationEvent(
                    round=state.round,
                    phase=Phase.DAY,
                    participant_id=victim.participant_id,
                    name=victim.name,
                    cause="faction_kill",
                )
            )

        for result in outcome.investigations:
            target = state.get_participant(result.target_id)
            event = InvestigationEvent(
                round=state.round,
                phase=Phase.DAY,
                investigator_id=result.investigator_id,
                target_id=result.target_id,
                target_name=target.name if target else result.target_id,
                is_faction=result.is_faction,
            )
            self._queue(
                Audience.participant(result.investigator_id),
                EnvelopeKind.EVENT,
                event_to_dict(event),
            )

    def _end_day(self) -> None:
        self.state = self.state.clear_votes().with_phase(
            Phase.VOTING, self.config.durations.voting
        )
        self._queue_phase_change(Phase.DAY, Phase.VOTING)

    def _end_voting(self) -> None:
        state = self.state
        outcome = resolve_votes(state.votes, state.get_alive_ids())

        victim = state.get_participant(outcome.victim) if outcome.victim else None
        if victim is not None:
            state = state.with_participant_killed(
                victim.participant_id
            ).with_last_voted(victim.name)
            logger.info(
                "Match %s round %d: %s eliminated by vote",
                self.match_id,
                state.round,
                victim.participant_id,
            )
        self.state = state

        self._queue_event(
            VoteResultEvent(
                round=state.round,
                phase=Phase.VOTING,
                tally=outcome.tally,
                eliminated_id=victim.participant_id if victim else None,
                tie=outcome.tie,
            )
        )
        if victim is not None:
            self._queue_event(
                EliminationEvent(
                    round=state.round,
                    phase=Phase.VOTING,
                    participant_id=victim.participant_id,
                    name=victim.name,
                    cause="vote",
                )
            )

        result = check_victory(state.participants, state.round)
        if result is not None:
            self.state = state.with_winner(result.winning_team)
            self._queue_phase_change(Phase.VOTING, Phase.RESULTS)
            self._queue_event(result)
            logger.info(
                "Match %s over after round %d: %s wins",
                self.match_id,
                state.round,
                result.winning_team,
            )
            return

        self.state = (
            state.with_round(state.round + 1)
            .reset_actions()
            .with_phase(Phase.NIGHT, self.config.durations.night)
        )
        self._queue_phase_change(Phase.VOTING, Phase.NIGHT)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def submit_action(self, actor_id: str, target_id: str) -> bool:
        """Record a night action for *actor_id* against *target_id*."""
        with self._lock:
            if self._closed or self.state.phase is not Phase.NIGHT:
                self._log_rejection("action", actor_id, "not night")
                return False

            actor = self.state.get_participant(actor_id)
            if actor is None or not actor.is_alive:
                self._log_rejection("action", actor_id, "actor not alive")
                return False
            if not actor.can_act:
                self._log_rejection("action", actor_id, "already acted")
                return False
            if not self._is_alive(target_id):
                self._log_rejection("action", actor_id, "target not alive")
                return False

            self.state = self.state.with_pending_action(actor_id, target_id)
        logger.debug("Match %s: %s acted", self.match_id, actor_id)
        return True

    def submit_vote(self, voter_id: str, target_id: str) -> bool:
        """Set *voter_id*'s vote, replacing any earlier vote this phase."""
        with self._lock:
            if self._closed or self.state.phase is not Phase.VOTING:
                self._log_rejection("vote", voter_id, "not voting")
                return False
            if not self._is_alive(voter_id):
                self._log_rejection("vote", voter_id, "voter not alive")
                return False
            if not self._is_alive(target_id):
                self._log_rejection("vote", voter_id, "target not alive")
                return False

            self.state = self.state.with_vote(voter_id, target_id)
            self._queue_state()
        self._flush()
        return True

    def submit_chat(self, sender_id: str, text: str) -> ChatMessage | None:
        """Route a chat message; returns None when rejected."""
        with self._lock:
            if self._closed:
                self._log_rejection("chat", sender_id, "match closed")
                return None
            sender = self.state.get_participant(sender_id)
            if sender is None or not sender.is_alive:
                self._log_rejection("chat", sender_id, "sender not alive")
                return None

            text = text.strip()[: self.config.chat.max_length]
            if not text:
                self._log_rejection("chat", sender_id, "empty message")
                return None

            message, audience = self.router.route(
                sender_id, sender.name, text, self.state.phase, self.state.round
            )
            self._queue(audience, EnvelopeKind.CHAT, message.to_dict())
        self._flush()
        return message

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _is_alive(self, participant_id: str) -> bool:
        p = self.state.get_participant(participant_id)
        return p is not None and p.is_alive

    def _log_rejection(self, command: str, participant_id: str, reason: str) -> None:
        logger.debug(
            "Match %s rejected %s from %s: %s",
            self.match_id,
            command,
            participant_id,
            reason,
        )

    def _queue(self, audience: Audience, kind: str, payload: Any) -> None:
        self._outbox.append(
            Envelope(
                match_id=self.match_id,
                audience=audience,
                kind=kind,
                payload=payload,
            )
        )

    def _queue_state(self) -> None:
        self._queue(Audience.everyone(), EnvelopeKind.STATE, self.state.to_snapshot())

    def _queue_roster(self) -> None:
        self._queue(Audience.everyone(), EnvelopeKind.ROSTER, self.state.roster())

    def _queue_phase_change(self, old_phase: Phase, new_phase: Phase) -> None:
        self._queue_event(
            PhaseChangeEvent(
                round=self.state.round,
                phase=new_phase,
                old_phase=old_phase,
                new_phase=new_phase,
            )
        )
        logger.info(
            "Match %s round %d: %s -> %s",
            self.match_id,
            self.state.round,
            old_phase.value,
            new_phase.value,
        )

    def _queue_event(self, event: MatchEvent) -> None:
        """Queue a public narrative event and log it as a narrative message."""
        message, audience = self.router.narrate(
            _describe(event), event.phase, event.round
        )
        payload = event_to_dict(event)
        payload["message"] = message.to_dict()
        self._queue(audience, EnvelopeKind.EVENT, payload)

    def _flush(self) -> None:
        """Hand queued envelopes to listeners outside the lock.

        Only one caller drains at a time. Envelopes queued while another
        caller is delivering are left for that caller, so listeners always
        see them in queue order.
        """
        with self._lock:
            if self._draining:
                return
            self._draining = True

        try:
            while True:
                with self._lock:
                    pending, self._outbox = self._outbox, []
                    if not pending:
                        self._draining = False
                        return
                self._deliver(pending)
        except BaseException:
            with self._lock:
                self._draining = False
            raise

    def _deliver(self, pending: list[Envelope]) -> None:
        for envelope in pending:
            for listener in self.listeners:
                try:
                    listener(envelope)
                except Exception:
                    logger.exception(
                        "Listener raised while delivering %s for match %s",
                        envelope.kind,
                        self.match_id,
                    )


def _describe(event: MatchEvent) -> str:
    """Narrator text for a public event."""
    if isinstance(event, PhaseChangeEvent):
        if event.new_phase is Phase.NIGHT:
            return f"Night {event.round} falls. Everyone closes their eyes."
        if event.new_phase is Phase.DAY:
            return f"Day {event.round} begins."
        if event.new_phase is Phase.VOTING:
            return "The town gathers to vote."
        return "The match is over."
    if isinstance(event, NightResultEvent):
        if event.victim_id is None:
            return "Nobody died last night."
        return "Someone did not survive the night."
    if isinstance(event, EliminationEvent):
        if event.cause == "vote":
            return f"{event.name} was voted out."
        return f"{event.name} was found dead."
    if isinstance(event, VoteResultEvent):
        if event.eliminated_id is None:
            return "The vote ends without an elimination."
        return f"The votes are counted: {sum(event.tally.values())} cast."
    if isinstance(event, MatchEndEvent):
        return f"{event.winning_team.capitalize()} wins. {event.reason}"
    return type(event).__name__
