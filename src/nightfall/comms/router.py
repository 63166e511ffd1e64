"""Channel router -- picks the channel for each chat message and keeps the log."""

from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING

from nightfall.comms.channel import Channel, FactionChannel, PublicChannel
from nightfall.comms.delivery import Audience
from nightfall.comms.message import ChatMessage, Visibility
from nightfall.engine.phase import Phase

if TYPE_CHECKING:
    from nightfall.config.schema import ChatConfig

logger = logging.getLogger(__name__)

NARRATOR_ID = "narrator"
NARRATOR_NAME = "Narrator"


class ChannelRouter:
    """Routes chat for one match and stores its messages."""

    def __init__(self, channels: list[Channel] | None = None) -> None:
        self._channels: dict[str, Channel] = {}
        self._messages: list[ChatMessage] = []
        if channels:
            for ch in channels:
                self._channels[ch.name] = ch

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def route(
        self,
        sender_id: str,
        sender_name: str,
        text: str,
        phase: Phase,
        round_number: int = 1,
    ) -> tuple[ChatMessage, Audience]:
        """Classify and store a participant message.

        Night chat from a faction member goes to the faction channel;
        everything else is public. The caller has already checked that the
        sender is a living participant.
        """
        faction = self._channels.get("faction")
        if faction is not None and faction.can_send(sender_id, phase):
            channel = faction
            visibility = Visibility.FACTION
        else:
            channel = self._channels["public"]
            visibility = Visibility.PUBLIC

        message = ChatMessage(
            message_id=uuid.uuid4().hex,
            sender_id=sender_id,
            sender_name=sender_name,
            text=text,
            timestamp=time.time(),
            visibility=visibility,
            round=round_number,
            phase_name=phase.value,
        )
        self._messages.append(message)
        logger.debug("Routed message %s to %s", message.message_id, channel.name)
        return message, channel.audience()

    def narrate(
        self, text: str, phase: Phase, round_number: int = 1
    ) -> tuple[ChatMessage, Audience]:
        """Store a system announcement; always public."""
        message = ChatMessage(
            message_id=uuid.uuid4().hex,
            sender_id=NARRATOR_ID,
            sender_name=NARRATOR_NAME,
            text=text,
            timestamp=time.time(),
            visibility=Visibility.NARRATIVE,
            round=round_number,
            phase_name=phase.value,
        )
        self._messages.append(message)
        return message, Audience.everyone()

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def visible_messages(self, participant_id: str) -> list[ChatMessage]:
        """Return every stored message *participant_id* is allowed to see."""
        faction = self._channels.get("faction")
        visible: list[ChatMessage] = []
        for msg in self._messages:
            if msg.visibility is Visibility.FACTION:
                if faction is None or not faction.can_read(participant_id):
                    continue
            visible.append(msg)
        return visible

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    def get_channel(self, name: str) -> Channel | None:
        """Look up a channel by name."""
        return self._channels.get(name)

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        participant_ids: list[str],
        faction_ids: list[str],
        config: ChatConfig | None = None,
    ) -> ChannelRouter:
        """Build the standard channel set for a match."""
        channels: list[Channel] = [PublicChannel(participant_ids)]
        if config is None or config.allow_faction_chat:
            channels.append(FactionChannel(faction_ids))
        return cls(channels)
