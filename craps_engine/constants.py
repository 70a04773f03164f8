"""
Wager catalogue and fixed table constants.
"""
from enum import IntEnum
from typing import Optional


class BetType(IntEnum):
    """The 64 wager types. Values are the 6-bit ids stored in packed bets."""
    # Line bets and field
    PASS = 0
    DONT_PASS = 1
    COME = 2
    DONT_COME = 3
    FIELD = 4

    # YES bets - number before 7
    YES_2 = 5
    YES_3 = 6
    YES_4 = 7
    YES_5 = 8
    YES_6 = 9
    YES_8 = 10
    YES_9 = 11
    YES_10 = 12
    YES_11 = 13
    YES_12 = 14

    # NO bets - 7 before number
    NO_2 = 15
    NO_3 = 16
    NO_4 = 17
    NO_5 = 18
    NO_6 = 19
    NO_8 = 20
    NO_9 = 21
    NO_10 = 22
    NO_11 = 23
    NO_12 = 24

    # Hard ways
    HARD_4 = 25
    HARD_6 = 26
    HARD_8 = 27
    HARD_10 = 28

    # Odds
    ODDS_PASS = 29
    ODDS_DONT_PASS = 30
    ODDS_COME = 31
    ODDS_DONT_COME = 32

    # Bonus / multi-roll
    HOT_ROLLER = 33
    FIRE = 34
    TWICE_HARD = 35
    RIDE_LINE = 36
    MUGGSY = 37
    BONUS_SMALL = 38
    BONUS_TALL = 39
    BONUS_SMALL_TALL = 40
    REPLAY = 41
    DIFFERENT_DOUBLES = 42

    # NEXT - one roll
    NEXT_2 = 43
    NEXT_3 = 44
    NEXT_4 = 45
    NEXT_5 = 46
    NEXT_6 = 47
    NEXT_7 = 48
    NEXT_8 = 49
    NEXT_9 = 50
    NEXT_10 = 51
    NEXT_11 = 52
    NEXT_12 = 53

    # Repeater
    REPEATER_2 = 54
    REPEATER_3 = 55
    REPEATER_4 = 56
    REPEATER_5 = 57
    REPEATER_6 = 58
    REPEATER_8 = 59
    REPEATER_9 = 60
    REPEATER_10 = 61
    REPEATER_11 = 62
    REPEATER_12 = 63

    @property
    def label(self) -> str:
        """Display name, e.g. ``Don't Pass`` or ``Yes 6``."""
        words = self.name.replace("DONT", "DON'T").split("_")
        return " ".join(word.capitalize() if not word.isdigit() else word for word in words)


# Numbers each numbered family is built on, in id order
YES_NO_NUMBERS = (2, 3, 4, 5, 6, 8, 9, 10, 11, 12)
HARD_NUMBERS = (4, 6, 8, 10)
NEXT_NUMBERS = (2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12)
REPEATER_NUMBERS = YES_NO_NUMBERS

COME_BETS = frozenset({BetType.COME, BetType.DONT_COME})
LINKED_ODDS = {
    BetType.ODDS_COME: BetType.COME,
    BetType.ODDS_DONT_COME: BetType.DONT_COME,
}


def target_number(bet_type: int) -> Optional[int]:
    """Return the dice total a numbered wager is built on, or None."""
    bet_type = int(bet_type)
    if BetType.YES_2 <= bet_type <= BetType.YES_12:
        return YES_NO_NUMBERS[bet_type - BetType.YES_2]
    if BetType.NO_2 <= bet_type <= BetType.NO_12:
        return YES_NO_NUMBERS[bet_type - BetType.NO_2]
    if BetType.HARD_4 <= bet_type <= BetType.HARD_10:
        return HARD_NUMBERS[bet_type - BetType.HARD_4]
    if BetType.NEXT_2 <= bet_type <= BetType.NEXT_12:
        return NEXT_NUMBERS[bet_type - BetType.NEXT_2]
    if BetType.REPEATER_2 <= bet_type <= BetType.REPEATER_12:
        return REPEATER_NUMBERS[bet_type - BetType.REPEATER_2]
    return None


# Packed bet layout
BET_TYPE_BITS = 6
AMOUNT_INDEX_BITS = 10
AMOUNT_INDEX_MASK = (1 << AMOUNT_INDEX_BITS) - 1  # 0x3FF
MAX_BET_TYPE = (1 << BET_TYPE_BITS) - 1          # 63

# Dice
DICE_SIDES = 6
VALID_POINTS = (4, 5, 6, 8, 9, 10)

# Batches
MAX_BETS_PER_BATCH = 16
NO_LINK = 255

# RNG
MAX_ENTROPY_SOURCES = 15
REQUIRED_ENTROPY_SOURCES = 10
ENTROPY_VALUE_SIZE = 32
ENTROPY_BLOCK_SIZE = 64
JITTER_MULTIPLIER = 0x9E3779B97F4A7C15

# Fixed-width integer bounds
U8_MAX = 0xFF
U16_MAX = 0xFFFF
U64_MAX = 0xFFFF_FFFF_FFFF_FFFF
