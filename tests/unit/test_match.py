"""Tests for nightfall.engine.match -- the per-match state machine."""

from __future__ import annotations

import random
import threading
from collections import Counter

import pytest

from nightfall.comms.delivery import AudienceKind, Envelope, EnvelopeKind
from nightfall.comms.message import Visibility
from nightfall.config.schema import ChatConfig, MatchConfig, PhaseDurations
from nightfall.engine.match import Match
from nightfall.engine.phase import Phase
from nightfall.roles.assignment import build_role_template
from nightfall.roles.base import Role

ROSTER = [
    ("p1", "Alice"),
    ("p2", "Bruno"),
    ("p3", "Chen"),
    ("p4", "Dana"),
    ("p5", "Emeka"),
    ("p6", "Farah"),
    ("p7", "Gus"),
]


# ======================================================================
# Fixtures & helpers
# ======================================================================


@pytest.fixture
def quick_config() -> MatchConfig:
    """Every phase lasts a single tick."""
    return MatchConfig(
        durations=PhaseDurations(night=1, day=1, voting=1),
        chat=ChatConfig(max_length=20),
    )


@pytest.fixture
def envelopes() -> list[Envelope]:
    return []


@pytest.fixture
def match(quick_config: MatchConfig, envelopes: list[Envelope]) -> Match:
    """A 7-participant match: 2 faction, investigator, protector, 3 ordinary."""
    return Match(
        "m1",
        ROSTER,
        config=quick_config,
        rng=random.Random(7),
        listeners=[envelopes.append],
    )


def _ids(match: Match, role: Role) -> list[str]:
    return [p.participant_id for p in match.participants if p.role is role]


def _one(match: Match, role: Role) -> str:
    return _ids(match, role)[0]


def _alive(match: Match, participant_id: str) -> bool:
    p = match.state.get_participant(participant_id)
    assert p is not None
    return p.is_alive


def _events(envelopes: list[Envelope], event_type: str) -> list[dict]:
    return [
        e.payload
        for e in envelopes
        if e.kind == EnvelopeKind.EVENT and e.payload["type"] == event_type
    ]


def _tick_until(match: Match, phase: Phase, limit: int = 20) -> None:
    for _ in range(limit):
        if match.phase is phase:
            return
        match.tick()
    assert match.phase is phase


def _vote_out(match: Match, target: str) -> None:
    """From night, run a quiet night and day, then have everyone vote *target* out."""
    _tick_until(match, Phase.VOTING)
    for voter in match.state.get_alive_ids():
        if voter != target:
            assert match.submit_vote(voter, target)
    match.tick()


# ======================================================================
# Creation
# ======================================================================


class TestMatchCreation:
    """Initial state and start announcements."""

    def test_initial_state(self, match: Match) -> None:
        assert match.phase is Phase.NIGHT
        assert match.state.round == 1
        assert match.state.time_remaining == 1
        assert match.state.votes == {}
        assert match.state.pending_actions == {}

    def test_default_night_duration(self) -> None:
        m = Match("m", ROSTER[:3])
        assert m.state.time_remaining == 60

    def test_roles_follow_template(self, match: Match) -> None:
        roles = Counter(p.role for p in match.participants)
        assert roles == Counter(build_role_template(len(ROSTER)))

    def test_roster_order_and_names_kept(self, match: Match) -> None:
        assert [(p.participant_id, p.name) for p in match.participants] == ROSTER

    def test_everyone_starts_alive_and_able(self, match: Match) -> None:
        assert all(p.is_alive and p.can_act for p in match.participants)

    def test_too_few_participants(self) -> None:
        with pytest.raises(ValueError):
            Match("m", ROSTER[:2])

    def test_announce_start(self, match: Match, envelopes: list[Envelope]) -> None:
        match.announce_start()

        reveals = [e for e in envelopes if e.kind == EnvelopeKind.ROLE]
        assert len(reveals) == len(ROSTER)
        for envelope in reveals:
            assert envelope.audience.kind == AudienceKind.PARTICIPANT
            (pid,) = envelope.audience.members
            p = match.state.get_participant(pid)
            assert p is not None
            assert envelope.payload["role"] == p.role.value

        kinds = [e.kind for e in envelopes]
        assert EnvelopeKind.STATE in kinds
        assert EnvelopeKind.ROSTER in kinds
        assert len(_events(envelopes, "night_start")) == 1


# ======================================================================
# Night actions
# ======================================================================


class TestSubmitAction:
    """Night action validation and can_act bookkeeping."""

    def test_accepted_at_night(self, match: Match) -> None:
        actor = _one(match, Role.FACTION_MEMBER)
        target = _one(match, Role.ORDINARY_MEMBER)
        assert match.submit_action(actor, target) is True
        assert match.state.pending_actions == {actor: target}

    def test_can_act_flips_false(self, match: Match) -> None:
        actor = _one(match, Role.PROTECTOR)
        match.submit_action(actor, actor)
        p = match.state.get_participant(actor)
        assert p is not None and p.can_act is False

    def test_second_action_rejected(self, match: Match) -> None:
        actor = _one(match, Role.FACTION_MEMBER)
        ordinary = _ids(match, Role.ORDINARY_MEMBER)
        assert match.submit_action(actor, ordinary[0]) is True
        assert match.submit_action(actor, ordinary[1]) is False
        assert match.state.pending_actions == {actor: ordinary[0]}

    def test_unknown_actor_rejected(self, match: Match) -> None:
        assert match.submit_action("ghost", "p1") is False

    def test_unknown_target_rejected(self, match: Match) -> None:
        assert match.submit_action("p1", "ghost") is False

    def test_rejected_outside_night(self, match: Match) -> None:
        match.tick()
        assert match.phase is Phase.DAY
        assert match.submit_action("p1", "p2") is False

    def test_dead_actor_rejected(self, match: Match) -> None:
        faction = _ids(match, Role.FACTION_MEMBER)
        _vote_out(match, faction[0])
        assert match.phase is Phase.NIGHT
        assert _alive(match, faction[0]) is False
        assert match.submit_action(faction[0], _one(match, Role.ORDINARY_MEMBER)) is False

    def test_can_act_restored_next_night(self, match: Match) -> None:
        actor = _one(match, Role.INVESTIGATOR)
        target = _one(match, Role.ORDINARY_MEMBER)
        assert match.submit_action(actor, target) is True

        _tick_until(match, Phase.DAY)
        _tick_until(match, Phase.NIGHT)
        assert match.state.round == 2
        p = match.state.get_participant(actor)
        assert p is not None and p.can_act is True
        assert match.submit_action(actor, target) is True


# ======================================================================
# Ticking and transitions
# ======================================================================


class TestTick:
    """Countdown and phase transitions."""

    def test_countdown_without_transition(self) -> None:
        m = Match("m", ROSTER[:4])
        assert m.tick() is True
        assert m.state.time_remaining == 59
        assert m.phase is Phase.NIGHT

    def test_every_tick_emits_state_and_roster(
        self, match: Match, envelopes: list[Envelope]
    ) -> None:
        match.tick()
        kinds = [e.kind for e in envelopes]
        assert kinds.count(EnvelopeKind.STATE) == 1
        assert kinds.count(EnvelopeKind.ROSTER) == 1
        roster = next(e.payload for e in envelopes if e.kind == EnvelopeKind.ROSTER)
        assert all("role" not in entry for entry in roster)

    def test_night_kill(self, match: Match, envelopes: list[Envelope]) -> None:
        faction = _one(match, Role.FACTION_MEMBER)
        victim = _one(match, Role.ORDINARY_MEMBER)
        match.submit_action(faction, victim)

        match.tick()

        assert match.phase is Phase.DAY
        assert match.state.time_remaining == 1
        assert _alive(match, victim) is False
        victim_name = dict(ROSTER)[victim]
        assert match.state.last_killed == victim_name
        assert match.state.pending_actions == {}

        assert len(_events(envelopes, "day_start")) == 1
        (died,) = _events(envelopes, "participant_died")
        assert died["participant_id"] == victim
        assert died["cause"] == "faction_kill"
        assert victim_name in died["message"]["text"]

    def test_protector_saves(self, match: Match, envelopes: list[Envelope]) -> None:
        target = _one(match, Role.ORDINARY_MEMBER)
        match.submit_action(_one(match, Role.FACTION_MEMBER), target)
        match.submit_action(_one(match, Role.PROTECTOR), target)

        match.tick()

        assert _alive(match, target) is True
        assert match.state.last_killed is None
        (result,) = _events(envelopes, "night_result")
        assert result["victim_id"] is None
        assert result["saved"] is True

    def test_quiet_night(self, match: Match) -> None:
        match.tick()
        assert len(match.state.get_alive_ids()) == len(ROSTER)

    def test_quiet_night_keeps_last_killed(self, match: Match) -> None:
        victim = _one(match, Role.ORDINARY_MEMBER)
        match.submit_action(_one(match, Role.FACTION_MEMBER), victim)
        match.tick()
        _tick_until(match, Phase.NIGHT)
        assert match.state.round == 2

        match.tick()

        assert match.phase is Phase.DAY
        assert match.state.last_killed == dict(ROSTER)[victim]

    def test_can_act_reset_after_night(self, match: Match) -> None:
        actor = _one(match, Role.PROTECTOR)
        match.submit_action(actor, actor)
        match.tick()
        p = match.state.get_participant(actor)
        assert p is not None and p.can_act is True

    def test_investigation_is_private(
        self, match: Match, envelopes: list[Envelope]
    ) -> None:
        investigator = _one(match, Role.INVESTIGATOR)
        suspect = _one(match, Role.FACTION_MEMBER)
        match.submit_action(investigator, suspect)

        match.tick()

        (envelope,) = [
            e
            for e in envelopes
            if e.kind == EnvelopeKind.EVENT
            and e.payload["type"] == "investigation_result"
        ]
        assert envelope.audience.kind == AudienceKind.PARTICIPANT
        assert envelope.audience.members == frozenset({investigator})
        assert envelope.payload["target_id"] == suspect
        assert envelope.payload["is_faction"] is True

    def test_day_to_voting(self, match: Match, envelopes: list[Envelope]) -> None:
        match.tick()
        match.tick()
        assert match.phase is Phase.VOTING
        assert match.state.votes == {}
        assert len(match.state.get_alive_ids()) == len(ROSTER)
        assert len(_events(envelopes, "voting_start")) == 1

    def test_vote_elimination(self, match: Match, envelopes: list[Envelope]) -> None:
        target = _one(match, Role.ORDINARY_MEMBER)
        _vote_out(match, target)

        assert _alive(match, target) is False
        assert match.state.last_voted == dict(ROSTER)[target]
        assert match.phase is Phase.NIGHT
        assert match.state.round == 2
        (result,) = _events(envelopes, "vote_result")
        assert result["eliminated_id"] == target
        assert result["tie"] is False

    def test_vote_tie_breaks_on_lowest_id(self, match: Match) -> None:
        _tick_until(match, Phase.VOTING)
        assert match.submit_vote("p1", "p5")
        assert match.submit_vote("p2", "p3")
        match.tick()
        assert _alive(match, "p3") is False
        assert _alive(match, "p5") is True

    def test_no_votes_no_elimination(self, match: Match) -> None:
        _tick_until(match, Phase.VOTING)
        match.tick()
        assert match.phase is Phase.NIGHT
        assert match.state.round == 2
        assert match.state.last_voted is None
        assert len(match.state.get_alive_ids()) == len(ROSTER)

    def test_alive_count_never_increases(self, match: Match) -> None:
        counts = []
        for target in _ids(match, Role.ORDINARY_MEMBER)[:2]:
            _vote_out(match, target)
            counts.append(len(match.state.get_alive_ids()))
        assert counts == sorted(counts, reverse=True)

    def test_town_wins(self, match: Match, envelopes: list[Envelope]) -> None:
        for faction in _ids(match, Role.FACTION_MEMBER):
            _tick_until(match, Phase.NIGHT)
            _vote_out(match, faction)

        assert match.phase is Phase.RESULTS
        assert match.state.winner == "town"
        (end,) = _events(envelopes, "match_end")
        assert end["winning_team"] == "town"

    def test_results_is_terminal(self, match: Match, envelopes: list[Envelope]) -> None:
        for faction in _ids(match, Role.FACTION_MEMBER):
            _tick_until(match, Phase.NIGHT)
            _vote_out(match, faction)
        assert match.is_over

        envelopes.clear()
        state = match.state
        assert match.tick() is False
        assert match.state is state
        assert envelopes == []


# ======================================================================
# Voting
# ======================================================================


class TestSubmitVote:
    """Vote validation and overwrite semantics."""

    def test_rejected_at_night(self, match: Match) -> None:
        assert match.submit_vote("p1", "p2") is False

    def test_rejected_by_day(self, match: Match) -> None:
        match.tick()
        assert match.submit_vote("p1", "p2") is False

    def test_overwrite(self, match: Match) -> None:
        _tick_until(match, Phase.VOTING)
        assert match.submit_vote("p1", "p2") is True
        assert match.submit_vote("p1", "p3") is True
        assert match.state.votes == {"p1": "p3"}

    def test_accepted_vote_emits_state(
        self, match: Match, envelopes: list[Envelope]
    ) -> None:
        _tick_until(match, Phase.VOTING)
        envelopes.clear()
        match.submit_vote("p1", "p2")
        (envelope,) = envelopes
        assert envelope.kind == EnvelopeKind.STATE
        assert envelope.payload["votes"] == {"p1": "p2"}

    def test_dead_voter_and_target_rejected(self, match: Match) -> None:
        target = _one(match, Role.ORDINARY_MEMBER)
        _vote_out(match, target)
        _tick_until(match, Phase.VOTING)
        alive = [pid for pid in match.state.get_alive_ids()]
        assert match.submit_vote(target, alive[0]) is False
        assert match.submit_vote(alive[0], target) is False

    def test_unknown_participants_rejected(self, match: Match) -> None:
        _tick_until(match, Phase.VOTING)
        assert match.submit_vote("ghost", "p1") is False
        assert match.submit_vote("p1", "ghost") is False


# ======================================================================
# Chat
# ======================================================================


class TestSubmitChat:
    """Chat routing through the match."""

    def test_faction_chat_at_night(self, match: Match, envelopes: list[Envelope]) -> None:
        faction = _ids(match, Role.FACTION_MEMBER)
        msg = match.submit_chat(faction[0], "hit p3")
        assert msg is not None
        assert msg.visibility is Visibility.FACTION

        (envelope,) = [e for e in envelopes if e.kind == EnvelopeKind.CHAT]
        recipients = {pid for pid, _ in ROSTER if envelope.audience.includes(pid)}
        assert recipients == set(faction)

    def test_faction_chat_reaches_dead_members(
        self, match: Match, envelopes: list[Envelope]
    ) -> None:
        faction = _ids(match, Role.FACTION_MEMBER)
        _vote_out(match, faction[0])
        assert match.phase is Phase.NIGHT

        envelopes.clear()
        msg = match.submit_chat(faction[1], "alone now")
        assert msg is not None and msg.visibility is Visibility.FACTION
        (envelope,) = [e for e in envelopes if e.kind == EnvelopeKind.CHAT]
        assert envelope.audience.includes(faction[0]) is True

    def test_day_chat_is_public(self, match: Match, envelopes: list[Envelope]) -> None:
        match.tick()
        msg = match.submit_chat(_one(match, Role.FACTION_MEMBER), "good morning")
        assert msg is not None
        assert msg.visibility is Visibility.PUBLIC
        (envelope,) = [e for e in envelopes if e.kind == EnvelopeKind.CHAT]
        assert envelope.audience.kind == AudienceKind.EVERYONE

    def test_town_chat_at_night_is_public(self, match: Match) -> None:
        msg = match.submit_chat(_one(match, Role.ORDINARY_MEMBER), "scared")
        assert msg is not None
        assert msg.visibility is Visibility.PUBLIC

    def test_dead_sender_rejected(self, match: Match) -> None:
        target = _one(match, Role.ORDINARY_MEMBER)
        _vote_out(match, target)
        assert match.submit_chat(target, "boo") is None

    def test_unknown_sender_rejected(self, match: Match) -> None:
        assert match.submit_chat("ghost", "hello") is None

    def test_blank_text_rejected(self, match: Match) -> None:
        assert match.submit_chat("p1", "   ") is None

    def test_long_text_truncated(self, match: Match) -> None:
        msg = match.submit_chat("p1", "x" * 100)
        assert msg is not None
        assert msg.text == "x" * 20


# ======================================================================
# Delivery isolation and closing
# ======================================================================


class TestListenersAndClose:
    """Failing listeners and closed matches."""

    def test_failing_listener_does_not_break_tick(self, quick_config: MatchConfig) -> None:
        received: list[Envelope] = []

        def broken(envelope: Envelope) -> None:
            raise RuntimeError("transport down")

        m = Match(
            "m",
            ROSTER,
            config=quick_config,
            rng=random.Random(1),
            listeners=[broken, received.append],
        )
        assert m.tick() is True
        assert m.phase is Phase.DAY
        assert received

    def test_concurrent_flushes_deliver_in_order(self) -> None:
        entered = threading.Event()
        release = threading.Event()
        remaining: list[int] = []

        def slow(envelope: Envelope) -> None:
            if envelope.kind != EnvelopeKind.STATE:
                return
            remaining.append(envelope.payload["time_remaining"])
            if len(remaining) == 1:
                entered.set()
                release.wait(timeout=5)

        m = Match("m", ROSTER, listeners=[slow])
        worker = threading.Thread(target=m.tick)
        worker.start()
        assert entered.wait(timeout=5)

        assert m.tick() is True
        release.set()
        worker.join(timeout=5)

        assert not worker.is_alive()
        assert remaining == [59, 58]

    def test_event_payload_fields(self, match: Match, envelopes: list[Envelope]) -> None:
        match.tick()
        (payload,) = _events(envelopes, "day_start")
        assert set(payload) == {
            "type",
            "round",
            "phase",
            "old_phase",
            "new_phase",
            "message",
        }
        assert payload["new_phase"] == "day"

    def test_close_is_idempotent(self, match: Match) -> None:
        assert match.close() is True
        assert match.close() is False
        assert match.is_closed

    def test_closed_match_rejects_everything(self, match: Match) -> None:
        match.close()
        assert match.tick() is False
        assert match.submit_action("p1", "p2") is False
        assert match.submit_chat("p1", "hello") is None
        assert match.phase is Phase.NIGHT


# ======================================================================
# End to end
# ======================================================================


class TestFiveParticipantScenario:
    """Night kill, quiet day, decisive vote, faction victory."""

    def test_faction_victory(self, quick_config: MatchConfig) -> None:
        envelopes: list[Envelope] = []
        roster = ROSTER[:5]
        m = Match("e2e", roster, config=quick_config, rng=random.Random(3),
                  listeners=[envelopes.append])

        roles = Counter(p.role for p in m.participants)
        assert roles == Counter({
            Role.FACTION_MEMBER: 2,
            Role.INVESTIGATOR: 1,
            Role.PROTECTOR: 1,
            Role.ORDINARY_MEMBER: 1,
        })

        faction = _ids(m, Role.FACTION_MEMBER)
        investigator = _one(m, Role.INVESTIGATOR)
        protector = _one(m, Role.PROTECTOR)
        ordinary = _one(m, Role.ORDINARY_MEMBER)

        # Night: one faction action, no protector action.
        assert m.submit_action(faction[0], investigator)
        m.tick()
        assert m.phase is Phase.DAY
        assert _alive(m, investigator) is False

        # Day: nothing resolves.
        m.tick()
        assert m.phase is Phase.VOTING
        assert len(m.state.get_alive_ids()) == 4

        # Voting: three votes for the ordinary member.
        for voter in (faction[0], faction[1], protector):
            assert m.submit_vote(voter, ordinary)
        m.tick()

        assert _alive(m, ordinary) is False
        assert m.phase is Phase.RESULTS
        assert m.state.winner == "faction"
        (end,) = _events(envelopes, "match_end")
        assert sorted(end["winners"]) == sorted(faction)
        assert m.tick() is False
