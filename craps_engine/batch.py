"""
Per-player, per-epoch ledger of up to 16 packed wagers.

Each slot moves through its lifecycle using four bitmasks:

    placed -> resolved -> realizable (won or pushed) -> settled (claimed)

``winning`` marks the realizable slots that actually won. Masks only ever
gain bits, and after every mutation

    settled <= realizable <= resolved <= occupied,  winning <= realizable

holds as a subset relation.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from .bonus import BonusState
from .codec import AmountTable, bet_type_of, decode_bet
from .constants import COME_BETS, LINKED_ODDS, MAX_BETS_PER_BATCH, NO_LINK, BetType
from .errors import BatchCorrupted, InvalidBetLink, InvalidEpoch, MaxBetsReached, NothingToClaim
from .layout import (
    FixedRecord,
    array,
    bit,
    bits_of,
    checked_add,
    has_bit,
    is_subset,
    raw,
    slots_mask,
    u16,
    u64,
    u8,
)
from .outcome import EpochOutcome
from .payouts import BetResult, BetStatus, PayoutRules, calculate_bet_payout, next_come_point, push

logger = logging.getLogger(__name__)


@dataclass
class BetBatch(FixedRecord):
    epoch: int = u64()
    player: bytes = raw(32)
    bet_count: int = u8(pad=7)
    total_amount: int = u64()
    packed_bets: list = array("H", MAX_BETS_PER_BATCH)
    resolved: int = u16()
    realizable: int = u16()
    settled: int = u16()
    winning: int = u16()
    payout_total: int = u64()
    individual_payouts: list = array("Q", MAX_BETS_PER_BATCH)
    come_points: list = array("B", MAX_BETS_PER_BATCH)
    linked_bets: list = array("B", MAX_BETS_PER_BATCH, default=NO_LINK)
    cached_outcomes: list = array("B", MAX_BETS_PER_BATCH)  # dice total that decided the slot
    cache_epoch: int = u64()
    bump: int = u8(pad=7)

    # -------------------------------------------------------------------------
    # Masks
    # -------------------------------------------------------------------------

    @property
    def occupied(self) -> int:
        return slots_mask(self.bet_count)

    @property
    def unresolved_mask(self) -> int:
        return self.occupied & ~self.resolved

    @property
    def unclaimed_mask(self) -> int:
        return self.realizable & ~self.settled

    @property
    def is_fully_resolved(self) -> bool:
        return self.resolved == self.occupied

    def is_cleanable(self, current_epoch: int, retention: int) -> bool:
        """Every wager decided, every realizable amount claimed, and old enough."""
        return (
            self.is_fully_resolved
            and not self.unclaimed_mask
            and current_epoch >= self.epoch + retention
        )

    def check_invariants(self) -> None:
        if self.bet_count > MAX_BETS_PER_BATCH:
            raise BatchCorrupted("Bet batch holds too many wagers", bet_count=self.bet_count)
        if not (is_subset(self.settled, self.realizable)
                and is_subset(self.realizable, self.resolved)
                and is_subset(self.resolved, self.occupied)
                and is_subset(self.winning, self.realizable)):
            raise BatchCorrupted(resolved=f"{self.resolved:#06x}", realizable=f"{self.realizable:#06x}",
                                 settled=f"{self.settled:#06x}", winning=f"{self.winning:#06x}")

    # -------------------------------------------------------------------------
    # Placement
    # -------------------------------------------------------------------------

    def bet(self, slot: int, table: Optional[AmountTable] = None) -> tuple[int, int]:
        """``(bet_type, amount)`` of an occupied slot."""
        if not 0 <= slot < self.bet_count:
            raise NothingToClaim("No wager in this slot", slot=slot)
        return decode_bet(self.packed_bets[slot], table)

    def place(self, packed: int, linked_slot: Optional[int] = None,
              table: Optional[AmountTable] = None) -> int:
        """Store a packed wager in the next free slot and return the slot."""
        if self.bet_count >= MAX_BETS_PER_BATCH:
            raise MaxBetsReached(capacity=MAX_BETS_PER_BATCH)

        bet_type, amount = decode_bet(packed, table)
        link = self._validate_link(bet_type, linked_slot)

        slot = self.bet_count
        self.total_amount = checked_add(self.total_amount, amount)
        self.packed_bets[slot] = packed
        self.linked_bets[slot] = link
        self.bet_count = slot + 1
        self.check_invariants()
        return slot

    def _validate_link(self, bet_type: int, linked_slot: Optional[int]) -> int:
        base_type = LINKED_ODDS.get(bet_type)
        if base_type is None:
            if linked_slot is not None:
                raise InvalidBetLink("Only come odds can link to another wager", bet_type=bet_type)
            return NO_LINK
        if linked_slot is None or not 0 <= linked_slot < self.bet_count:
            raise InvalidBetLink(bet_type=bet_type, linked_slot=linked_slot)
        if bet_type_of(self.packed_bets[linked_slot]) != base_type:
            raise InvalidBetLink(bet_type=bet_type, linked_slot=linked_slot)
        if has_bit(self.resolved, linked_slot):
            raise InvalidBetLink("Linked come wager is already decided", linked_slot=linked_slot)
        return linked_slot

    # -------------------------------------------------------------------------
    # Settlement
    # -------------------------------------------------------------------------

    def apply_outcome(
        self,
        outcome: EpochOutcome,
        bonus: Optional[BonusState] = None,
        rules: Optional[PayoutRules] = None,
        table: Optional[AmountTable] = None,
    ) -> dict[int, BetResult]:
        """
        Judge every working wager against one finalized roll.
        Epochs must be applied in increasing order, each at most once.
        """
        if outcome.epoch < self.epoch or outcome.epoch <= self.cache_epoch:
            raise InvalidEpoch(
                "Outcome was already applied or predates the batch",
                outcome_epoch=outcome.epoch,
                batch_epoch=self.epoch,
                cache_epoch=self.cache_epoch,
            )

        roll = outcome.roll
        phase = outcome.game_phase
        results: dict[int, BetResult] = {}

        for slot in bits_of(self.unresolved_mask):
            bet_type, amount = self.bet(slot, table)
            result = calculate_bet_payout(
                bet_type, amount, roll, phase, outcome.point,
                bonus_state=bonus,
                come_point=self._come_point_for(slot),
                rules=rules,
            )
            if result is not None:
                results[slot] = result

        # Odds on a come wager that was decided without ever getting a point
        for slot in bits_of(self.unresolved_mask):
            base = self.linked_bets[slot]
            if slot in results or base == NO_LINK:
                continue
            if (has_bit(self.resolved, base) or base in results) and not self.come_points[base]:
                _, amount = self.bet(slot, table)
                results[slot] = push(amount, "Come wager decided before its point. Odds returned.")

        for slot in bits_of(self.unresolved_mask):
            if slot in results:
                continue
            bet_type = bet_type_of(self.packed_bets[slot])
            if bet_type in COME_BETS:
                self.come_points[slot] = next_come_point(bet_type, roll, self.come_points[slot])

        for slot, result in sorted(results.items()):
            self._record(slot, result, roll.total)
            logger.debug("Slot %d %s: %s", slot, BetType(bet_type_of(self.packed_bets[slot])).label,
                         result.message)

        self.cache_epoch = outcome.epoch
        self.check_invariants()
        return results

    def _come_point_for(self, slot: int) -> int:
        base = self.linked_bets[slot]
        if base != NO_LINK:
            return self.come_points[base]
        return self.come_points[slot]

    def _record(self, slot: int, result: BetResult, total: int) -> None:
        self.resolved |= bit(slot)
        self.cached_outcomes[slot] = total
        if result.returned:
            self.realizable |= bit(slot)
            self.individual_payouts[slot] = result.returned
            self.payout_total = checked_add(self.payout_total, result.returned)
        if result.status == BetStatus.WON:
            self.winning |= bit(slot)

    # -------------------------------------------------------------------------
    # Claims
    # -------------------------------------------------------------------------

    def claim(self, slot: int) -> int:
        """Mark one realizable slot settled and return the amount owed."""
        if not 0 <= slot < self.bet_count or not has_bit(self.unclaimed_mask, slot):
            raise NothingToClaim(slot=slot)
        self.settled |= bit(slot)
        self.check_invariants()
        return self.individual_payouts[slot]

    def claimable(self) -> tuple[int, int]:
        """``(mask, total)`` of everything realizable but not yet settled."""
        mask = self.unclaimed_mask
        total = 0
        for slot in bits_of(mask):
            total = checked_add(total, self.individual_payouts[slot])
        return mask, total

    def claim_all(self) -> int:
        mask, total = self.claimable()
        if not mask:
            raise NothingToClaim("No unclaimed winnings in this batch", epoch=self.epoch)
        self.settled |= mask
        self.check_invariants()
        return total
