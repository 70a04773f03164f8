"""
Per-player tracker for multi-roll bonus wagers.

The tracker follows one shooter's hand. Every finalized roll is recorded;
the payout rules then read the counters when a bonus wager resolves. Small
and tall progress is wiped by any 7, everything else only by a seven-out.
"""
from dataclasses import dataclass

from .constants import U8_MAX, VALID_POINTS
from .dice import DiceRoll, GamePhase
from .layout import FixedRecord, array, bit, has_bit, u8

SMALL_NUMBERS = (2, 3, 4, 5, 6)
TALL_NUMBERS = (8, 9, 10, 11, 12)
ALL_FIVE = 0b11111


def _bump(value: int) -> int:
    return min(value + 1, U8_MAX)


def point_index(number: int) -> int:
    return VALID_POINTS.index(number)


def combination_mask(total: int) -> int:
    """Bits for every dice combination that makes ``total``, keyed by the low die."""
    mask = 0
    for low in range(max(1, total - 6), total // 2 + 1):
        mask |= bit(low - 1)
    return mask


@dataclass
class BonusState(FixedRecord):
    small_rolled: int = u8()        # bit n-2 for n in 2..6
    tall_rolled: int = u8()         # bit n-8 for n in 8..12
    doubles_rolled: int = u8()      # bit d-1 for d-d
    points_made: int = u8()         # bit per VALID_POINTS index
    ride_line_streak: int = u8()
    hits: list = array("B", 11)
    pass_wins: list = array("B", 6)
    doubles: list = array("B", 6)
    hot_combos: list = array("B", 6, pad=6)

    def update_for_roll(self, roll: DiceRoll, phase: GamePhase, point: int) -> None:
        """Record a roll. ``phase`` and ``point`` are the table state before it."""
        total = roll.total
        self.hits[total - 2] = _bump(self.hits[total - 2])

        if total in SMALL_NUMBERS:
            self.small_rolled |= bit(total - 2)
        elif total in TALL_NUMBERS:
            self.tall_rolled |= bit(total - 8)

        if roll.is_hard:
            self.doubles_rolled |= bit(roll.die1 - 1)
            self.doubles[roll.die1 - 1] = _bump(self.doubles[roll.die1 - 1])

        if total in VALID_POINTS:
            low = min(roll.die1, roll.die2)
            self.hot_combos[point_index(total)] |= bit(low - 1)

        if phase == GamePhase.POINT and total == point:
            index = point_index(point)
            self.pass_wins[index] = _bump(self.pass_wins[index])
            self.points_made |= bit(index)
            self.ride_line_streak = _bump(self.ride_line_streak)

    def reset_after_roll(self, roll: DiceRoll, seven_out: bool) -> None:
        if seven_out:
            self.reset_on_seven_out()
        elif roll.total == 7:
            self.small_rolled = 0
            self.tall_rolled = 0

    def reset_on_seven_out(self) -> None:
        self.small_rolled = 0
        self.tall_rolled = 0
        self.doubles_rolled = 0
        self.points_made = 0
        self.ride_line_streak = 0
        self.hits = [0] * 11
        self.pass_wins = [0] * 6
        self.doubles = [0] * 6
        self.hot_combos = [0] * 6

    # Queries used by the payout rules

    def small_complete(self) -> bool:
        return self.small_rolled == ALL_FIVE

    def tall_complete(self) -> bool:
        return self.tall_rolled == ALL_FIVE

    def hit_count(self, number: int) -> int:
        if 2 <= number <= 12:
            return self.hits[number - 2]
        return 0

    def pass_win_count(self, point: int) -> int:
        if point in VALID_POINTS:
            return self.pass_wins[point_index(point)]
        return 0

    def distinct_points_made(self) -> int:
        return bin(self.points_made).count("1")

    def distinct_doubles(self) -> int:
        return bin(self.doubles_rolled).count("1")

    def has_twice_hard(self) -> bool:
        return any(count >= 2 for count in self.doubles)

    def covered_points(self) -> int:
        """Point numbers for which every dice combination has been rolled."""
        return sum(
            1 for i, number in enumerate(VALID_POINTS)
            if self.hot_combos[i] == combination_mask(number)
        )

    def is_double_rolled(self, die: int) -> bool:
        return has_bit(self.doubles_rolled, die - 1)
