"""Chat message data structure for the communication layer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Visibility(Enum):
    """Who a message is meant for."""

    PUBLIC = "public"  # everyone in the match
    FACTION = "faction"  # faction members only
    NARRATIVE = "narrative"  # system announcement, everyone


@dataclass(frozen=True)
class ChatMessage:
    """An immutable chat message."""

    message_id: str
    sender_id: str
    sender_name: str
    text: str
    timestamp: float
    visibility: Visibility = Visibility.PUBLIC
    round: int = 1
    phase_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.message_id,
            "sender_id": self.sender_id,
            "sender_name": self.sender_name,
            "text": self.text,
            "timestamp": self.timestamp,
            "visibility": self.visibility.value,
            "round": self.round,
            "phase": self.phase_name,
        }
