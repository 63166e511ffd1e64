"""Role tags, teams, and the per-role definitions shown in role reveals."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Team:
    """Team constants."""

    TOWN = "town"
    FACTION = "faction"
    NEUTRAL = "neutral"


class Role(Enum):
    """Secret role assigned to a participant for the whole match."""

    ORDINARY_MEMBER = "ordinary_member"
    INVESTIGATOR = "investigator"
    PROTECTOR = "protector"
    FACTION_MEMBER = "faction_member"
    LONE_KILLER = "lone_killer"

    @property
    def definition(self) -> RoleDefinition:
        return ROLE_DEFINITIONS[self]

    @property
    def team(self) -> str:
        return ROLE_DEFINITIONS[self].team

    @property
    def is_faction(self) -> bool:
        return self is Role.FACTION_MEMBER


@dataclass(frozen=True)
class RoleDefinition:
    """Static description of a role."""

    team: str
    ability: str | None  # night ability name, None = no night action
    description: str


ROLE_DEFINITIONS: dict[Role, RoleDefinition] = {
    Role.ORDINARY_MEMBER: RoleDefinition(
        team=Team.TOWN,
        ability=None,
        description=(
            "You have no special ability. Find the faction members and vote "
            "them out during the day."
        ),
    ),
    Role.INVESTIGATOR: RoleDefinition(
        team=Team.TOWN,
        ability="investigate",
        description=(
            "Each night, choose one player to learn whether they belong to "
            "the faction."
        ),
    ),
    Role.PROTECTOR: RoleDefinition(
        team=Team.TOWN,
        ability="protect",
        description=(
            "Each night, choose one player to protect. If the faction targets "
            "that player, nobody dies."
        ),
    ),
    Role.FACTION_MEMBER: RoleDefinition(
        team=Team.FACTION,
        ability="kill",
        description=(
            "You belong to the faction. At night, coordinate with the other "
            "members in the faction channel and choose a victim."
        ),
    ),
    Role.LONE_KILLER: RoleDefinition(
        team=Team.NEUTRAL,
        ability="kill",
        description="You work alone and answer to nobody.",
    ),
}
