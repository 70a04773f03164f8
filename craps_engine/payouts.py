"""
Craps pay tables for all 64 wager types.

Every rule is stateless: the per-wager memory (a come point) and the
shooter's hand (BonusState) are passed in. ``resolve`` returns a BetResult
once the wager is decided and None while it is still working.

All arithmetic is integer. Ratios are exact Fractions applied as
``amount * numerator // denominator``.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from typing import NamedTuple, Optional

from .bonus import BonusState
from .constants import COME_BETS, VALID_POINTS, BetType, target_number
from .dice import DiceRoll, GamePhase, is_craps, is_natural, ways_to_roll
from .errors import BonusAlreadyStarted, InvalidBetForPhase, InvalidBetType


class BetStatus(Enum):
    """Status of a resolved bet."""
    WON = "won"
    LOST = "lost"
    PUSH = "push"     # Stake returned


@dataclass
class BetResult:
    """Result of resolving a bet."""
    status: BetStatus
    payout: int       # Net winnings (0 for loss and push)
    message: str
    returned: int = 0  # Owed to the player: stake + payout on a win, stake on a push

    @property
    def is_realizable(self) -> bool:
        return self.returned > 0


@dataclass(frozen=True)
class PayoutRules:
    """Table-specific pay options."""
    field_2_payout: int = 2   # 2:1 on 2
    field_12_payout: int = 2  # 2:1 on 12 (some tables pay 3:1)

    def __post_init__(self):
        if self.field_2_payout < 1 or self.field_12_payout < 1:
            raise ValueError("Field payouts must be at least 1:1")


DEFAULT_RULES = PayoutRules()


class RollContext(NamedTuple):
    """Everything a rule may look at when deciding a wager."""
    roll: DiceRoll
    phase: GamePhase          # Table phase before the roll
    point: int                # Table point before the roll, 0 if none
    bonus: BonusState
    come_point: int = 0
    rules: PayoutRules = DEFAULT_RULES

    @property
    def total(self) -> int:
        return self.roll.total

    @property
    def seven_out(self) -> bool:
        return self.phase == GamePhase.POINT and self.roll.total == 7


def won(amount: int, ratio: Fraction, message: str) -> BetResult:
    payout = amount * ratio.numerator // ratio.denominator
    return BetResult(BetStatus.WON, payout, message, amount + payout)


def lost(message: str) -> BetResult:
    return BetResult(BetStatus.LOST, 0, message, 0)


def push(amount: int, message: str) -> BetResult:
    return BetResult(BetStatus.PUSH, 0, message, amount)


EVEN = Fraction(1, 1)


class Rule(ABC):
    """Pay rule for one wager type."""

    # Table phase the wager may be placed in, None for any phase
    placeable: Optional[GamePhase] = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Display name of the bet."""

    @abstractmethod
    def resolve(self, amount: int, ctx: RollContext) -> Optional[BetResult]:
        """
        Resolve the bet based on a roll.
        Returns BetResult if bet is resolved, None if bet remains active.
        """

    def started(self, bonus: BonusState) -> bool:
        """True once the hand holds progress this wager would be paid on."""
        return False


# =============================================================================
# Line Bets (Pass, Don't Pass, Come, Don't Come)
# =============================================================================

class PassLine(Rule):
    """
    Win on 7/11 come-out, lose on 2/3/12 come-out.
    After point established, win on point, lose on 7. Pays 1:1.
    """

    name = "Pass Line"
    placeable = GamePhase.COME_OUT

    def resolve(self, amount, ctx):
        total = ctx.total
        if ctx.phase == GamePhase.COME_OUT:
            if is_natural(total):
                return won(amount, EVEN, f"Natural {total}! Pass line wins!")
            if is_craps(total):
                return lost(f"Craps {total}! Pass line loses.")
            return None

        if total == ctx.point:
            return won(amount, EVEN, f"Point {total} made! Pass line wins!")
        if total == 7:
            return lost("Seven out! Pass line loses.")
        return None


class DontPass(Rule):
    """
    Win on 2/3 come-out, push on 12, lose on 7/11 come-out.
    After point established, win on 7, lose on point. Pays 1:1.
    """

    name = "Don't Pass"
    placeable = GamePhase.COME_OUT

    def resolve(self, amount, ctx):
        total = ctx.total
        if ctx.phase == GamePhase.COME_OUT:
            if total in (2, 3):
                return won(amount, EVEN, f"Craps {total}! Don't pass wins!")
            if total == 12:
                return push(amount, "12 - Don't pass pushes (bar 12).")
            if total in (7, 11):
                return lost(f"Natural {total}! Don't pass loses.")
            return None

        if total == 7:
            return won(amount, EVEN, "Seven! Don't pass wins!")
        if total == ctx.point:
            return lost(f"Point {total} made! Don't pass loses.")
        return None


class Come(Rule):
    """Like pass line, using the first roll after placement as its come-out."""

    name = "Come"
    placeable = GamePhase.POINT

    def resolve(self, amount, ctx):
        total = ctx.total
        if not ctx.come_point:
            if is_natural(total):
                return won(amount, EVEN, f"Natural {total}! Come bet wins!")
            if is_craps(total):
                return lost(f"Craps {total}! Come bet loses.")
            return None

        if total == ctx.come_point:
            return won(amount, EVEN, f"Come point {total} made!")
        if total == 7:
            return lost("Seven out! Come bet loses.")
        return None


class DontCome(Rule):
    name = "Don't Come"
    placeable = GamePhase.POINT

    def resolve(self, amount, ctx):
        total = ctx.total
        if not ctx.come_point:
            if total in (2, 3):
                return won(amount, EVEN, f"Craps {total}! Don't come wins!")
            if total == 12:
                return push(amount, "12 - Don't come pushes.")
            if total in (7, 11):
                return lost(f"Natural {total}! Don't come loses.")
            return None

        if total == 7:
            return won(amount, EVEN, "Seven! Don't come wins!")
        if total == ctx.come_point:
            return lost(f"Point {total} made! Don't come loses.")
        return None


def next_come_point(bet_type: int, roll: DiceRoll, come_point: int) -> int:
    """Come point a come wager holds after ``roll``."""
    if bet_type in COME_BETS and not come_point and roll.total in VALID_POINTS:
        return roll.total
    return come_point


# =============================================================================
# Field Bet
# =============================================================================

class Field(Rule):
    """One-roll bet on 2, 3, 4, 9, 10, 11, 12. 2 and 12 pay extra."""

    FIELD_NUMBERS = {2, 3, 4, 9, 10, 11, 12}

    name = "Field"

    def resolve(self, amount, ctx):
        total = ctx.total
        if total not in self.FIELD_NUMBERS:
            return lost(f"{total} - Field bet loses.")
        if total == 2:
            multiple = ctx.rules.field_2_payout
            return won(amount, Fraction(multiple), f"Field {total}! Pays {multiple}:1!")
        if total == 12:
            multiple = ctx.rules.field_12_payout
            return won(amount, Fraction(multiple), f"Field {total}! Pays {multiple}:1!")
        return won(amount, EVEN, f"Field {total} wins!")


# =============================================================================
# Number Bets (YES, NO, Hard ways, NEXT)
# =============================================================================

class Yes(Rule):
    """Number rolled before a 7."""

    YES_PAYOUTS = {
        2: Fraction(6, 1),
        3: Fraction(3, 1),
        4: Fraction(9, 5),
        5: Fraction(7, 5),
        6: Fraction(7, 6),
        8: Fraction(7, 6),
        9: Fraction(7, 5),
        10: Fraction(9, 5),
        11: Fraction(3, 1),
        12: Fraction(6, 1),
    }

    def __init__(self, number: int):
        self.number = number

    @property
    def name(self) -> str:
        return f"Yes {self.number}"

    def resolve(self, amount, ctx):
        if ctx.total == self.number:
            ratio = self.YES_PAYOUTS[self.number]
            return won(amount, ratio, f"{self.number} hits! Yes pays {ratio.numerator}:{ratio.denominator}!")
        if ctx.total == 7:
            return lost(f"Seven! Yes {self.number} loses.")
        return None


class No(Rule):
    """7 rolled before the number. Pays the YES ratio reversed."""

    def __init__(self, number: int):
        self.number = number

    @property
    def name(self) -> str:
        return f"No {self.number}"

    def resolve(self, amount, ctx):
        if ctx.total == 7:
            ratio = 1 / Yes.YES_PAYOUTS[self.number]
            return won(amount, ratio, f"Seven! No {self.number} pays {ratio.numerator}:{ratio.denominator}!")
        if ctx.total == self.number:
            return lost(f"{self.number} hits! No bet loses.")
        return None


class Hardway(Rule):
    """Doubles before 7 or the easy way."""

    HARDWAY_PAYOUTS = {
        4: 7,   # Hard 4 pays 7:1
        6: 9,   # Hard 6 pays 9:1
        8: 9,   # Hard 8 pays 9:1
        10: 7,  # Hard 10 pays 7:1
    }

    def __init__(self, number: int):
        self.number = number

    @property
    def name(self) -> str:
        return f"Hard {self.number}"

    def resolve(self, amount, ctx):
        total = ctx.total
        if total == self.number:
            if ctx.roll.is_hard:
                multiple = self.HARDWAY_PAYOUTS[self.number]
                return won(amount, Fraction(multiple), f"Hard {self.number}! Pays {multiple}:1!")
            return lost(f"Easy {self.number}! Hardway loses.")
        if total == 7:
            return lost("Seven! Hardway loses.")
        return None


class Next(Rule):
    """One-roll bet on a single total."""

    NEXT_PAYOUTS = {2: 35, 3: 17, 4: 11, 5: 8, 6: 7, 7: 4, 8: 7, 9: 8, 10: 11, 11: 17, 12: 35}

    def __init__(self, number: int):
        self.number = number

    @property
    def name(self) -> str:
        return f"Next {self.number}"

    def resolve(self, amount, ctx):
        if ctx.total == self.number:
            multiple = self.NEXT_PAYOUTS[self.number]
            return won(amount, Fraction(multiple), f"{self.number}! Pays {multiple}:1!")
        return lost(f"{ctx.total} - Next {self.number} loses.")


# =============================================================================
# Odds Bets (True odds, no house edge)
# =============================================================================

def true_odds(point: int) -> Fraction:
    """Right-side odds for a point: 6 ways to roll 7 against the point's ways."""
    return Fraction(6, ways_to_roll(point))


class Odds(Rule):
    """
    Odds behind pass or come. Pays true odds; not working without a point.
    """

    placeable = GamePhase.POINT

    def __init__(self, on_come: bool):
        self.on_come = on_come

    @property
    def name(self) -> str:
        return "Come Odds" if self.on_come else "Pass Odds"

    def target(self, ctx: RollContext) -> int:
        if self.on_come:
            return ctx.come_point
        return ctx.point if ctx.phase == GamePhase.POINT else 0

    def resolve(self, amount, ctx):
        point = self.target(ctx)
        if not point:
            return None
        if ctx.total == point:
            ratio = true_odds(point)
            return won(amount, ratio, f"Point {point}! Odds pays {ratio.numerator}:{ratio.denominator}!")
        if ctx.total == 7:
            return lost("Seven out! Odds bet loses.")
        return None


class LayOdds(Odds):
    """Odds behind don't pass or don't come - true odds reversed."""

    @property
    def name(self) -> str:
        return "Don't Come Odds" if self.on_come else "Don't Pass Odds"

    def resolve(self, amount, ctx):
        point = self.target(ctx)
        if not point:
            return None
        if ctx.total == 7:
            ratio = 1 / true_odds(point)
            return won(amount, ratio, f"Seven! Lay odds pays {ratio.numerator}:{ratio.denominator}!")
        if ctx.total == point:
            return lost(f"Point {point} made! Lay odds loses.")
        return None


# =============================================================================
# Bonus Bets (multi-roll, read the shooter's hand)
# =============================================================================

class SevenOutBonus(Rule):
    """
    Bonus bet decided when the shooter sevens out.
    ``payouts`` maps the achieved count to the win multiple; anything else loses.
    """

    payouts: dict[int, int] = {}

    def __init__(self, name: str):
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    def achieved(self, bonus: BonusState) -> int:
        """Count the pay table is keyed on."""

    def multiple(self, count: int) -> Optional[int]:
        return self.payouts.get(count)

    def started(self, bonus):
        return self.achieved(bonus) > 0

    def resolve(self, amount, ctx):
        if not ctx.seven_out:
            return None
        count = self.achieved(ctx.bonus)
        multiple = self.multiple(count)
        if multiple is None:
            return lost(f"Seven out! {self.name} loses with {count}.")
        return won(amount, Fraction(multiple), f"Seven out with {count}! {self.name} pays {multiple}:1!")


class HotRoller(SevenOutBonus):
    payouts = {2: 4, 3: 9, 4: 19, 5: 49, 6: 199}
    placeable = GamePhase.COME_OUT

    def achieved(self, bonus):
        return bonus.covered_points()

    def started(self, bonus):
        return any(bonus.hot_combos)


class FireBet(SevenOutBonus):
    payouts = {4: 24, 5: 249, 6: 999}
    placeable = GamePhase.COME_OUT

    def achieved(self, bonus):
        return bonus.distinct_points_made()


class TwiceHard(SevenOutBonus):
    payouts = {1: 8}

    def achieved(self, bonus):
        return int(bonus.has_twice_hard())

    def started(self, bonus):
        return any(bonus.doubles)


class RideLine(SevenOutBonus):
    payouts = {3: 1, 4: 2, 5: 3, 6: 4, 7: 10, 8: 15, 9: 20, 10: 30}

    def achieved(self, bonus):
        return bonus.ride_line_streak

    def multiple(self, count):
        if count >= 11:
            return 150
        return self.payouts.get(count)


class DifferentDoubles(SevenOutBonus):
    payouts = {3: 4, 4: 8, 5: 15, 6: 100}

    def achieved(self, bonus):
        return bonus.distinct_doubles()


class Replay(Rule):
    """
    The point in force at the seven-out was made three or more times
    during the hand. Other points' wins do not count.
    """

    REPLAY_PAYOUTS = {
        4: (120, 1000),
        5: (95, 500),
        6: (70, 100),
        8: (70, 100),
        9: (95, 500),
        10: (120, 1000),
    }

    name = "Replay"

    def multiple_for(self, point: int, bonus: BonusState) -> int:
        if point not in self.REPLAY_PAYOUTS:
            return 0
        three, four_plus = self.REPLAY_PAYOUTS[point]
        wins = bonus.pass_win_count(point)
        if wins >= 4:
            return four_plus
        if wins == 3:
            return three
        return 0

    def started(self, bonus):
        return any(bonus.pass_wins)

    def resolve(self, amount, ctx):
        if not ctx.seven_out:
            return None
        multiple = self.multiple_for(ctx.point, ctx.bonus)
        if not multiple:
            return lost(f"Seven out! Point {ctx.point} was not made three times.")
        return won(amount, Fraction(multiple), f"Seven out! Replay pays {multiple}:1!")


class Muggsy(Rule):
    """
    Muggsy's Corner - 7 on the come-out pays 2:1, a point then 7 pays 3:1.
    """

    name = "Muggsy's Corner"
    placeable = GamePhase.COME_OUT

    def resolve(self, amount, ctx):
        total = ctx.total
        if ctx.phase == GamePhase.COME_OUT:
            if total == 7:
                return won(amount, Fraction(2), "Come-out 7! Muggsy pays 2:1!")
            if total in VALID_POINTS:
                return None
            return lost(f"{total} on the come-out. Muggsy loses.")

        if total == 7:
            return won(amount, Fraction(3), "Seven after the point! Muggsy pays 3:1!")
        if total == ctx.point:
            return lost(f"Point {total} made! Muggsy loses.")
        return None


class AllNumbers(Rule):
    """Small (2-6), Tall (8-12) or All: every number before any 7."""

    placeable = GamePhase.COME_OUT

    def __init__(self, small: bool, tall: bool, multiple: int):
        self.small = small
        self.tall = tall
        self.multiple = multiple

    @property
    def name(self) -> str:
        if self.small and self.tall:
            return "All"
        return "Small" if self.small else "Tall"

    def started(self, bonus):
        return bool((self.small and bonus.small_rolled) or (self.tall and bonus.tall_rolled))

    def complete(self, bonus: BonusState) -> bool:
        if self.small and not bonus.small_complete():
            return False
        if self.tall and not bonus.tall_complete():
            return False
        return True

    def resolve(self, amount, ctx):
        if ctx.total == 7:
            return lost(f"Seven! {self.name} loses.")
        if self.complete(ctx.bonus):
            return won(amount, Fraction(self.multiple), f"{self.name} complete! Pays {self.multiple}:1!")
        return None


class Repeater(Rule):
    """Number rolled its required count of times before a seven-out."""

    placeable = GamePhase.COME_OUT

    REQUIRED_HITS = {2: 2, 3: 3, 4: 4, 5: 5, 6: 6, 8: 6, 9: 5, 10: 4, 11: 3, 12: 2}
    REPEATER_PAYOUTS = {2: 40, 3: 50, 4: 65, 5: 80, 6: 90, 8: 90, 9: 80, 10: 65, 11: 50, 12: 40}

    def __init__(self, number: int):
        self.number = number

    @property
    def name(self) -> str:
        return f"Repeater {self.number}"

    def started(self, bonus):
        return bonus.hit_count(self.number) > 0

    def resolve(self, amount, ctx):
        if ctx.seven_out:
            return lost(f"Seven out! {self.name} loses.")
        if ctx.total == self.number and ctx.bonus.hit_count(self.number) >= self.REQUIRED_HITS[self.number]:
            multiple = self.REPEATER_PAYOUTS[self.number]
            return won(amount, Fraction(multiple), f"{self.number} repeated! Pays {multiple}:1!")
        return None


# =============================================================================
# Rule book
# =============================================================================

def _build_rulebook() -> dict[BetType, Rule]:
    book: dict[BetType, Rule] = {
        BetType.PASS: PassLine(),
        BetType.DONT_PASS: DontPass(),
        BetType.COME: Come(),
        BetType.DONT_COME: DontCome(),
        BetType.FIELD: Field(),
        BetType.ODDS_PASS: Odds(on_come=False),
        BetType.ODDS_DONT_PASS: LayOdds(on_come=False),
        BetType.ODDS_COME: Odds(on_come=True),
        BetType.ODDS_DONT_COME: LayOdds(on_come=True),
        BetType.HOT_ROLLER: HotRoller("Hot Roller"),
        BetType.FIRE: FireBet("Fire"),
        BetType.TWICE_HARD: TwiceHard("Twice Hard"),
        BetType.RIDE_LINE: RideLine("Ride the Line"),
        BetType.MUGGSY: Muggsy(),
        BetType.BONUS_SMALL: AllNumbers(small=True, tall=False, multiple=36),
        BetType.BONUS_TALL: AllNumbers(small=False, tall=True, multiple=36),
        BetType.BONUS_SMALL_TALL: AllNumbers(small=True, tall=True, multiple=180),
        BetType.REPLAY: Replay(),
        BetType.DIFFERENT_DOUBLES: DifferentDoubles("Different Doubles"),
    }
    numbered = {"YES": Yes, "NO": No, "HARD": Hardway, "NEXT": Next, "REPEATER": Repeater}
    for bet_type in BetType:
        number = target_number(bet_type)
        if number is not None:
            book[bet_type] = numbered[bet_type.name.split("_")[0]](number)
    return book


RULEBOOK = _build_rulebook()


def rule_for(bet_type: int) -> Rule:
    try:
        return RULEBOOK[BetType(bet_type)]
    except ValueError:
        raise InvalidBetType(bet_type=bet_type) from None


def describe(bet_type: int) -> str:
    """Display name for a wager type."""
    return rule_for(bet_type).name


def validate_bet_for_phase(bet_type: int, phase: GamePhase, point: int,
                           bonus_state: Optional[BonusState] = None) -> None:
    """
    Reject a wager the table cannot take right now.

    Line bets open on the come-out while come and odds bets need a point.
    A bonus is refused once the player's tracker holds progress it would be
    paid on, so it only counts rolls made after it was placed.
    """
    rule = rule_for(bet_type)
    if rule.placeable is not None:
        if phase != rule.placeable or (rule.placeable == GamePhase.POINT and not point):
            raise InvalidBetForPhase(bet=rule.name, phase=phase.name, point=point or 0)
    if bonus_state is not None and rule.started(bonus_state):
        raise BonusAlreadyStarted(bet=rule.name)


def calculate_bet_payout(
    bet_type: int,
    amount: int,
    roll: DiceRoll,
    phase: GamePhase,
    point: int,
    bonus_state: Optional[BonusState] = None,
    come_point: int = 0,
    rules: Optional[PayoutRules] = None,
) -> Optional[BetResult]:
    """
    Evaluate one wager against a finalized roll.
    ``phase`` and ``point`` are the table state the roll was made in.
    Returns None while the wager is still working.
    """
    ctx = RollContext(
        roll=roll,
        phase=phase,
        point=point or 0,
        bonus=bonus_state if bonus_state is not None else BonusState(),
        come_point=come_point,
        rules=rules or DEFAULT_RULES,
    )
    return rule_for(bet_type).resolve(amount, ctx)
