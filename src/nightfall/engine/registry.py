"""Registry of concurrently running matches."""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING

from nightfall.comms.delivery import Listener
from nightfall.config.schema import MatchConfig
from nightfall.engine.match import Match
from nightfall.engine.state import MatchState, Participant

if TYPE_CHECKING:
    from nightfall.comms.message import ChatMessage
    from nightfall.session.scheduler import MatchScheduler

logger = logging.getLogger(__name__)


class MatchRegistry:
    """Owns every live :class:`Match`, keyed by match id.

    This is the surface the session and delivery layers talk to. Commands
    for an unknown match are rejected, never raised. A match that reaches
    its results phase is torn down right after its final outputs go out.

    Parameters
    ----------
    config:
        Configuration applied to every match started here.
    listeners:
        Delivery callables attached to every match.
    scheduler:
        Optional real-time ticker. Without one, the caller drives
        :meth:`tick` itself.
    """

    def __init__(
        self,
        config: MatchConfig | None = None,
        listeners: list[Listener] | None = None,
        scheduler: MatchScheduler | None = None,
    ) -> None:
        self.config = config or MatchConfig()
        self.listeners: list[Listener] = list(listeners or [])
        self.scheduler = scheduler
        self._matches: dict[str, Match] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, match_id: str) -> Match | None:
        with self._lock:
            return self._matches.get(match_id)

    def match_ids(self) -> list[str]:
        with self._lock:
            return list(self._matches)

    def __contains__(self, match_id: object) -> bool:
        with self._lock:
            return match_id in self._matches

    def __len__(self) -> int:
        with self._lock:
            return len(self._matches)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_match(
        self,
        match_id: str,
        roster: Sequence[tuple[str, str]],
        rng: random.Random | None = None,
    ) -> tuple[MatchState, list[Participant]]:
        """Create, register, schedule and announce a match.

        Returns the initial state and the role-tagged roster. Raises
        ``ValueError`` for a roster that cannot start a match or a match id
        that is already live.
        """
        match = Match(
            match_id,
            roster,
            config=self.config,
            rng=rng,
            listeners=self.listeners,
        )

        with self._lock:
            if match_id in self._matches:
                raise ValueError(f"Match {match_id} is already running")
            self._matches[match_id] = match

        if self.scheduler is not None:
            try:
                self.scheduler.start(match_id, self.tick)
            except Exception:
                with self._lock:
                    self._matches.pop(match_id, None)
                match.close()
                logger.error("Could not schedule match %s; released it", match_id)
                raise

        match.announce_start()
        return match.state, list(match.participants)

    def tick(self, match_id: str) -> bool:
        """Drive one tick of *match_id*. Returns False if the match is gone."""
        match = self.get(match_id)
        if match is None:
            return False

        match.tick()
        if match.is_over:
            self.teardown(match_id)
            return False
        return True

    def teardown(self, match_id: str) -> bool:
        """Stop the match's timer and release it.

        Safe to call repeatedly; only the first call has an effect.
        """
        with self._lock:
            match = self._matches.pop(match_id, None)
        if match is None:
            logger.debug("Teardown of unknown match %s ignored", match_id)
            return False

        if self.scheduler is not None:
            self.scheduler.stop(match_id)
        match.close()
        logger.info("Match %s torn down", match_id)
        return True

    def teardown_all(self) -> None:
        for match_id in self.match_ids():
            self.teardown(match_id)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def handle_action(self, match_id: str, actor_id: str, target_id: str) -> bool:
        match = self.get(match_id)
        if match is None:
            logger.debug("Action for unknown match %s rejected", match_id)
            return False
        return match.submit_action(actor_id, target_id)

    def handle_vote(self, match_id: str, voter_id: str, target_id: str) -> bool:
        match = self.get(match_id)
        if match is None:
            logger.debug("Vote for unknown match %s rejected", match_id)
            return False
        return match.submit_vote(voter_id, target_id)

    def handle_chat(
        self, match_id: str, sender_id: str, text: str
    ) -> ChatMessage | None:
        match = self.get(match_id)
        if match is None:
            logger.debug("Chat for unknown match %s rejected", match_id)
            return None
        return match.submit_chat(sender_id, text)
