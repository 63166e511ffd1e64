"""Night-action and vote resolution.

Both resolvers are pure: they read an actor -> target mapping plus the set of
living participants and return an outcome object. Applying the outcome to
the match state is the caller's job.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from nightfall.roles.base import Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Investigation:
    """Answer owed to an investigator after the night."""

    investigator_id: str
    target_id: str
    is_faction: bool


@dataclass(frozen=True)
class NightOutcome:
    """Result of resolving one night."""

    victim: str | None = None
    faction_target: str | None = None
    protected: str | None = None
    saved: bool = False
    investigations: tuple[Investigation, ...] = ()


@dataclass(frozen=True)
class VoteOutcome:
    """Result of a vote tally."""

    victim: str | None = None
    tally: dict[str, int] = field(default_factory=dict)
    tie: bool = False


# ------------------------------------------------------------------
# Plurality
# ------------------------------------------------------------------


def plurality_tally(targets: Iterable[str]) -> tuple[str | None, Counter[str], bool]:
    """Count *targets* and pick the winner.

    Returns ``(winner, tally, tie)``. The target with strictly the highest
    count wins. When several targets share the highest count, the lowest
    participant id (plain string ordering) wins and ``tie`` is True. No
    targets -> ``(None, Counter(), False)``.
    """
    tally = Counter(targets)
    if not tally:
        return None, tally, False

    top_count = max(tally.values())
    leaders = sorted(t for t, c in tally.items() if c == top_count)
    return leaders[0], tally, len(leaders) > 1


def plurality(targets: Iterable[str]) -> str | None:
    """Return the plurality target of *targets*, or None when empty."""
    winner, _, _ = plurality_tally(targets)
    return winner


# ------------------------------------------------------------------
# Resolvers
# ------------------------------------------------------------------


def resolve_night(
    actions: Mapping[str, str],
    alive_roles: Mapping[str, Role],
    all_roles: Mapping[str, Role] | None = None,
) -> NightOutcome:
    """Resolve the night's pending actions.

    Faction members' targets are combined by plurality. The protector's
    target (plurality again, should a ruleset ever field several) cancels
    the kill when it matches. A faction target that is not alive, or not in
    the match at all, produces no elimination.

    Investigator actions are answered from *all_roles* (defaults to
    *alive_roles*).
    """
    all_roles = all_roles if all_roles is not None else alive_roles

    faction_targets: list[str] = []
    protector_targets: list[str] = []
    investigations: list[Investigation] = []

    for actor_id, target_id in actions.items():
        role = alive_roles.get(actor_id)
        if role is None:
            # Dead or unknown actor; should have been rejected on submit.
            logger.warning("Ignoring night action from non-living actor %s", actor_id)
            continue

        if role is Role.FACTION_MEMBER:
            faction_targets.append(target_id)
        elif role is Role.PROTECTOR:
            protector_targets.append(target_id)
        elif role is Role.INVESTIGATOR:
            target_role = all_roles.get(target_id)
            if target_role is not None:
                investigations.append(
                    Investigation(
                        investigator_id=actor_id,
                        target_id=target_id,
                        is_faction=target_role.is_faction,
                    )
                )

    faction_target = plurality(faction_targets)
    protected = plurality(protector_targets)

    if faction_target is None:
        return NightOutcome(protected=protected, investigations=tuple(investigations))

    if faction_target == protected:
        return NightOutcome(
            faction_target=faction_target,
            protected=protected,
            saved=True,
            investigations=tuple(investigations),
        )

    victim = faction_target if faction_target in alive_roles else None
    if victim is None:
        logger.warning("Faction target %s is not alive; no elimination", faction_target)

    return NightOutcome(
        victim=victim,
        faction_target=faction_target,
        protected=protected,
        investigations=tuple(investigations),
    )


def resolve_votes(
    votes: Mapping[str, str],
    alive_ids: Iterable[str],
) -> VoteOutcome:
    """Eliminate the plurality target of *votes*; no votes -> no elimination."""
    winner, tally, tie = plurality_tally(votes.values())
    if winner is None:
        return VoteOutcome()

    victim = winner if winner in set(alive_ids) else None
    if victim is None:
        logger.warning("Vote winner %s is not alive; no elimination", winner)

    return VoteOutcome(victim=victim, tally=dict(tally), tie=tie)
