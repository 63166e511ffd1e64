"""Role template construction and randomized assignment."""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence

from nightfall.roles.base import Role

logger = logging.getLogger(__name__)

MIN_PARTICIPANTS = 3
LARGE_BRACKET = 5


def build_role_template(count: int) -> list[Role]:
    """Return the fixed role multiset for *count* participants.

    * 5 or more: two faction members, one investigator, one protector,
      ordinary members for the rest.
    * 3 or 4: one faction member, one investigator, ordinary members for
      the rest.
    """
    if count < MIN_PARTICIPANTS:
        raise ValueError(
            f"A match needs at least {MIN_PARTICIPANTS} participants, got {count}"
        )

    if count >= LARGE_BRACKET:
        roles = [
            Role.FACTION_MEMBER,
            Role.FACTION_MEMBER,
            Role.INVESTIGATOR,
            Role.PROTECTOR,
        ]
    else:
        roles = [Role.FACTION_MEMBER, Role.INVESTIGATOR]

    roles.extend([Role.ORDINARY_MEMBER] * (count - len(roles)))
    return roles


def assign_roles(
    participant_ids: Sequence[str],
    rng: random.Random | None = None,
) -> dict[str, Role]:
    """Shuffle the template for ``len(participant_ids)`` and zip it with the
    roster in its original order.

    *rng* defaults to a ``SystemRandom``; pass a seeded ``random.Random``
    for a reproducible assignment.
    """
    if len(set(participant_ids)) != len(participant_ids):
        raise ValueError("Roster contains duplicate participant ids")

    template = build_role_template(len(participant_ids))
    rng = rng or random.SystemRandom()
    rng.shuffle(template)

    assignment = dict(zip(participant_ids, template))
    logger.debug("Assigned %d roles", len(assignment))
    return assignment
