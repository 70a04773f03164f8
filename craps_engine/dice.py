"""
Dice rolls and the come-out / point cycle of the table.
"""
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional

from .constants import DICE_SIDES, VALID_POINTS
from .errors import InvalidDiceValues


class GamePhase(Enum):
    """Represents the current phase of the craps game."""
    COME_OUT = 0  # Initial roll, establishing the point
    POINT = 1     # Point has been established, rolling for point or 7


@dataclass(frozen=True)
class DiceRoll:
    """Represents a single roll of two dice."""
    die1: int
    die2: int

    def __post_init__(self):
        for die in (self.die1, self.die2):
            if not 1 <= die <= DICE_SIDES:
                raise InvalidDiceValues(die1=self.die1, die2=self.die2)

    @property
    def total(self) -> int:
        return self.die1 + self.die2

    @property
    def is_hard(self) -> bool:
        """Returns True if both dice show the same number (hardway)."""
        return self.die1 == self.die2

    def __str__(self) -> str:
        return f"({self.die1}, {self.die2}) = {self.total}"


_WAYS = {2: 1, 3: 2, 4: 3, 5: 4, 6: 5, 7: 6, 8: 5, 9: 4, 10: 3, 11: 2, 12: 1}


def ways_to_roll(total: int) -> int:
    """Number of the 36 dice combinations that produce ``total``."""
    return _WAYS.get(total, 0)


def is_natural(total: int) -> bool:
    return total in (7, 11)


def is_craps(total: int) -> bool:
    return total in (2, 3, 12)


def is_seven(total: int) -> bool:
    return total == 7


def is_point_number(total: int) -> bool:
    return total in VALID_POINTS


def roll_name(roll: DiceRoll) -> str:
    """Table call for a roll, for logs and display."""
    total = roll.total
    named = {2: "Snake Eyes", 3: "Ace Deuce", 7: "Seven", 11: "Yo-leven", 12: "Boxcars"}
    if total in named:
        return named[total]
    words = {4: "Four", 5: "Five", 6: "Six", 8: "Eight", 9: "Nine", 10: "Ten"}
    if total in (4, 6, 8, 10):
        return f"{'Hard' if roll.is_hard else 'Easy'} {words[total]}"
    return words[total]


class PhaseChange(NamedTuple):
    """Table state after a roll has been processed."""
    phase: GamePhase
    point: int              # 0 when no point is established
    point_made: bool
    seven_out: bool


def advance(phase: GamePhase, point: Optional[int], roll: DiceRoll) -> PhaseChange:
    """Process a roll based on the current game phase."""
    total = roll.total

    if phase == GamePhase.COME_OUT:
        if is_point_number(total):
            # Point established (4, 5, 6, 8, 9, 10)
            return PhaseChange(GamePhase.POINT, total, False, False)
        # Natural or craps - phase stays COME_OUT for next roll
        return PhaseChange(GamePhase.COME_OUT, 0, False, False)

    if total == point:
        return PhaseChange(GamePhase.COME_OUT, 0, True, False)
    if is_seven(total):
        return PhaseChange(GamePhase.COME_OUT, 0, False, True)
    return PhaseChange(GamePhase.POINT, point or 0, False, False)
