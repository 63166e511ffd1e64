"""Phase enum for the match state machine."""

from enum import Enum


class Phase(Enum):
    """Match phases in order of progression. RESULTS is terminal."""

    NIGHT = "night"
    DAY = "day"
    VOTING = "voting"
    RESULTS = "results"
