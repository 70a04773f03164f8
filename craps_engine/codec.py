"""
Bet encoding: pack (wager type, stake) into a single 16-bit value.

Layout of a packed bet::

    bits 15..10  wager type (0-63)
    bits  9..0   index into the amount table

Stakes are not a continuous range. The amount table is a list of
contiguous tiers, each covering ``low..high`` in steps of ``step``; the
first valid value of a tier is ``low - 1 + step``. With the default tiers
this yields 768 stakes, indices 0-767. Amounts that fall between steps are
rejected, never rounded.
"""
from bisect import bisect_left
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from .constants import AMOUNT_INDEX_BITS, AMOUNT_INDEX_MASK, MAX_BET_TYPE, U16_MAX
from .errors import InvalidAmount, InvalidBetType, InvalidIndex


@dataclass(frozen=True)
class AmountTier:
    """One contiguous band of stakes sharing a step size."""
    low: int
    high: int
    step: int

    @property
    def base(self) -> int:
        return self.low - 1

    @property
    def count(self) -> int:
        return (self.high - self.base) // self.step


DEFAULT_TIERS = (
    AmountTier(1, 100, 1),
    AmountTier(101, 500, 5),
    AmountTier(501, 1_500, 10),
    AmountTier(1_501, 5_000, 25),
    AmountTier(5_001, 10_000, 50),
    AmountTier(10_001, 20_000, 100),
    AmountTier(20_001, 40_000, 250),
    AmountTier(40_001, 60_000, 500),
    AmountTier(60_001, 80_000, 1_000),
    AmountTier(80_001, 100_000, 2_500),
)


class AmountTable:
    """Bidirectional map between valid stakes and 10-bit indices."""

    def __init__(self, tiers: Iterable[AmountTier] = DEFAULT_TIERS):
        self.tiers = tuple(tiers)
        if not self.tiers:
            raise ValueError("Amount table needs at least one tier")

        expected_low = 1
        first_index = 0
        self._first_indices = []
        for tier in self.tiers:
            if tier.low != expected_low:
                raise ValueError(f"Tier {tier} does not start at {expected_low}")
            if tier.step < 1 or tier.high < tier.low:
                raise ValueError(f"Tier {tier} is empty")
            if (tier.high - tier.base) % tier.step:
                raise ValueError(f"Tier {tier} width is not a multiple of its step")
            self._first_indices.append(first_index)
            first_index += tier.count
            expected_low = tier.high + 1

        self.size = first_index
        if self.size > 1 << AMOUNT_INDEX_BITS:
            raise ValueError(f"Amount table has {self.size} values, more than 10 bits can index")
        self._highs = [tier.high for tier in self.tiers]

    @property
    def max_amount(self) -> int:
        return self.tiers[-1].high

    def encode(self, amount: int) -> int:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise InvalidAmount(amount=amount)
        if amount < 1 or amount > self.max_amount:
            raise InvalidAmount(amount=amount)

        position = bisect_left(self._highs, amount)
        tier = self.tiers[position]
        offset = amount - tier.base
        if offset % tier.step:
            raise InvalidAmount(
                f"Amount must be a multiple of {tier.step} above {tier.base}",
                amount=amount,
            )
        return self._first_indices[position] + offset // tier.step - 1

    def decode(self, index: int) -> int:
        if index < 0 or index >= self.size:
            raise InvalidIndex(index=index, size=self.size)

        position = bisect_left(self._first_indices, index + 1) - 1
        tier = self.tiers[position]
        return tier.base + (index - self._first_indices[position] + 1) * tier.step

    def values(self) -> Iterator[int]:
        """Every valid stake in ascending order."""
        for tier in self.tiers:
            yield from range(tier.base + tier.step, tier.high + 1, tier.step)

    def __len__(self) -> int:
        return self.size


DEFAULT_TABLE = AmountTable()


def encode_amount(amount: int, table: Optional[AmountTable] = None) -> int:
    return (table or DEFAULT_TABLE).encode(amount)


def decode_amount(index: int, table: Optional[AmountTable] = None) -> int:
    return (table or DEFAULT_TABLE).decode(index)


def encode_bet(bet_type: int, amount: int, table: Optional[AmountTable] = None) -> int:
    """Pack a wager into 16 bits: ``(type << 10) | amount_index``."""
    if not 0 <= int(bet_type) <= MAX_BET_TYPE:
        raise InvalidBetType(bet_type=bet_type)
    index = encode_amount(amount, table)
    return (int(bet_type) << AMOUNT_INDEX_BITS) | (index & AMOUNT_INDEX_MASK)


def decode_bet(packed: int, table: Optional[AmountTable] = None) -> tuple[int, int]:
    """Unpack a 16-bit wager into ``(bet_type, amount)``."""
    if not 0 <= packed <= U16_MAX:
        raise InvalidIndex(packed=packed)
    return bet_type_of(packed), decode_amount(amount_index_of(packed), table)


def bet_type_of(packed: int) -> int:
    return packed >> AMOUNT_INDEX_BITS


def amount_index_of(packed: int) -> int:
    return packed & AMOUNT_INDEX_MASK
