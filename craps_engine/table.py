"""
Craps table controller.

CrapsTable owns one TableState and exposes every operation a client can
perform. Operations are all-or-nothing: each works on copies of the records
it touches, moves tokens last, and only then commits the copies. A raised
error leaves the table exactly as it was.
"""
import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from . import rng as rng_engine
from .batch import BetBatch
from .bonus import BonusState
from .codec import encode_bet
from .collaborators import (
    ACCOUNT_ID_SIZE,
    AuthorityKind,
    AuthoritySet,
    EntropyProvider,
    SlotClock,
    SystemEntropyProvider,
    TokenTransfer,
    account_id,
)
from .config import TableConfig
from .constants import BetType
from .dice import GamePhase, advance, roll_name
from .errors import (
    BatchNotCleanable,
    BettingClosed,
    EpochTooRecent,
    InvalidEpoch,
    InvalidPlayer,
    NothingToClaim,
    RngNotFinalized,
)
from .layout import checked_add
from .outcome import EpochOutcome
from .payouts import BetResult, validate_bet_for_phase
from .rng import EntropySource, RngPhase, RngState
from .treasury import DisbursementKind, Treasury, TreasuryGuard

logger = logging.getLogger(__name__)


class EmergencyKind(Enum):
    SHUTDOWN = "shutdown"        # Halt disbursements and betting
    RESUME = "resume"
    PAUSE_GAME = "pause_game"    # Betting only
    RESUME_GAME = "resume_game"


BatchKey = tuple[bytes, int]


@dataclass
class TableState:
    """Everything the table persists."""
    epoch: int = 0
    phase: GamePhase = GamePhase.COME_OUT
    point: int = 0
    rng: RngState = field(default_factory=RngState)
    treasury: Treasury = field(default_factory=Treasury)
    batches: dict[BatchKey, BetBatch] = field(default_factory=dict)
    outcomes: dict[int, EpochOutcome] = field(default_factory=dict)
    bonus: dict[bytes, BonusState] = field(default_factory=dict)
    # Hand state as each roll left it, before any seven-out reset
    bonus_snapshots: dict[tuple[int, bytes], BonusState] = field(default_factory=dict)


class CrapsTable:
    """
    Main table controller handling betting, dice, settlement and claims.
    """

    def __init__(
        self,
        authorities: AuthoritySet,
        tokens: TokenTransfer,
        clock: SlotClock,
        config: Optional[TableConfig] = None,
        entropy: Optional[EntropyProvider] = None,
        vault: bytes = account_id("vault"),
        mint: bytes = account_id("chip"),
    ):
        self.config = config or TableConfig()
        self.authorities = authorities
        self.tokens = tokens
        self.clock = clock
        self.entropy = entropy or SystemEntropyProvider()
        self.guard = TreasuryGuard(self.config.treasury)
        self.state = TableState()
        self.state.treasury.vault = vault
        self.state.treasury.mint = mint
        self.state.treasury.authority = authorities.keys.get(AuthorityKind.TREASURY, bytes(ACCOUNT_ID_SIZE))

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def epoch(self) -> int:
        return self.state.epoch

    @property
    def phase(self) -> GamePhase:
        return self.state.phase

    @property
    def point(self) -> int:
        return self.state.point

    @property
    def treasury(self) -> Treasury:
        return self.state.treasury

    @property
    def rng(self) -> RngState:
        return self.state.rng

    @property
    def vault(self) -> bytes:
        return self.state.treasury.vault

    @property
    def is_betting_open(self) -> bool:
        return (
            self.state.epoch > 0
            and self.state.rng.rng_phase == RngPhase.BETTING
            and not self.state.treasury.is_halted
            and not self.state.treasury.is_betting_paused
        )

    def outcome(self, epoch: int) -> EpochOutcome:
        """A copy of the epoch's recorded roll."""
        try:
            return copy.copy(self.state.outcomes[epoch])
        except KeyError:
            raise RngNotFinalized(epoch=epoch) from None

    def batch(self, player: bytes, epoch: int) -> Optional[BetBatch]:
        return self.state.batches.get((player, epoch))

    def player_batches(self, player: bytes) -> list[BetBatch]:
        return [b for (owner, _), b in sorted(self.state.batches.items()) if owner == player]

    def bonus(self, player: bytes) -> Optional[BonusState]:
        return self.state.bonus.get(player)

    def max_safe_payout(self) -> int:
        return self.guard.max_safe_disbursement(self.state.treasury, DisbursementKind.PAYOUT,
                                                self.clock.current_slot())

    # -------------------------------------------------------------------------
    # Betting
    # -------------------------------------------------------------------------

    def place_bet(self, player: bytes, bet_type: int, amount: int,
                  linked_slot: Optional[int] = None) -> int:
        """Stake a wager in the current epoch. Returns the batch slot used."""
        _check_player(player)
        if not self.is_betting_open:
            raise BettingClosed(epoch=self.state.epoch, rng_phase=self.state.rng.rng_phase.name)

        epoch = self.state.epoch
        packed = encode_bet(bet_type, amount, self.config.amount_table)
        validate_bet_for_phase(bet_type, self.state.phase, self.state.point, self.state.bonus.get(player))

        key = (player, epoch)
        existing = self.state.batches.get(key)
        batch = copy.deepcopy(existing) if existing else BetBatch(epoch=epoch, player=player)
        slot = batch.place(packed, linked_slot, self.config.amount_table)

        treasury = copy.deepcopy(self.state.treasury)
        self.guard.record_wager(treasury, amount)

        self.tokens.transfer(player, treasury.vault, amount)

        self.state.batches[key] = batch
        self.state.treasury = treasury
        self.state.bonus.setdefault(player, BonusState())
        logger.info("Epoch %d: %s placed %s for %d in slot %d",
                    epoch, _short(player), BetType(bet_type).label, amount, slot)
        return slot

    # -------------------------------------------------------------------------
    # Dice
    # -------------------------------------------------------------------------

    def start_betting_phase(self, caller: bytes) -> int:
        """Open the next epoch for betting. Returns the new epoch."""
        self.authorities.require(AuthorityKind.RNG, caller)
        slot = self.clock.current_slot()
        epoch = self.state.epoch + 1

        rng = copy.deepcopy(self.state.rng)
        rng_engine.start_betting_phase(rng, epoch, slot, self.config.betting_window_slots,
                                       self.config.jitter_slots)
        treasury = copy.deepcopy(self.state.treasury)
        treasury.snapshot_epoch_balance()

        self.state.rng = rng
        self.state.treasury = treasury
        self.state.epoch = epoch
        return epoch

    def begin_collection(self, caller: bytes) -> None:
        self.authorities.require(AuthorityKind.RNG, caller)
        rng = copy.deepcopy(self.state.rng)
        rng_engine.begin_collection(rng, self.clock.current_slot())
        self.state.rng = rng

    def collect_entropy(self, caller: bytes, source: Optional[EntropySource] = None) -> int:
        """Add one entropy source, drawing it from the provider if none is given."""
        self.authorities.require(AuthorityKind.RNG, caller)
        if source is None:
            source = self.entropy.next_source(self.clock.current_slot())
        rng = copy.deepcopy(self.state.rng)
        rng_engine.collect_entropy_source(rng, source)
        self.state.rng = rng
        return rng.hash_count

    def finalize_rng(self, caller: bytes, required_count: Optional[int] = None) -> EpochOutcome:
        """Fix the epoch's dice and move the table along."""
        self.authorities.require(AuthorityKind.RNG, caller)
        slot = self.clock.current_slot()
        state = self.state

        rng = copy.deepcopy(state.rng)
        roll = rng_engine.finalize(rng, slot, required_count or self.config.required_entropy_sources)
        outcome = EpochOutcome.record(rng.epoch, roll, state.phase, state.point, slot)
        change = advance(state.phase, state.point, roll)

        bonus = {}
        snapshots = {}
        for player, tracker in state.bonus.items():
            updated = copy.deepcopy(tracker)
            updated.update_for_roll(roll, state.phase, state.point)
            snapshots[(rng.epoch, player)] = copy.deepcopy(updated)
            updated.reset_after_roll(roll, change.seven_out)
            bonus[player] = updated

        state.rng = rng
        state.outcomes[rng.epoch] = outcome
        state.phase = change.phase
        state.point = change.point
        state.bonus = bonus
        state.bonus_snapshots.update(snapshots)

        if change.seven_out:
            logger.info("Epoch %d: %s - seven out", rng.epoch, roll)
        elif change.point_made:
            logger.info("Epoch %d: %s - point made", rng.epoch, roll)
        elif change.phase == GamePhase.POINT and outcome.game_phase == GamePhase.COME_OUT:
            logger.info("Epoch %d: %s - point is %d", rng.epoch, roll, change.point)
        else:
            logger.info("Epoch %d: %s - %s", rng.epoch, roll, roll_name(roll))
        return copy.copy(outcome)

    # -------------------------------------------------------------------------
    # Settlement
    # -------------------------------------------------------------------------

    def settle_bets(self, epoch: int, player: Optional[bytes] = None) -> dict[BatchKey, dict[int, BetResult]]:
        """
        Apply every finalized outcome up to ``epoch`` to the batches still
        waiting for it, oldest outcome first.
        """
        self.outcome(epoch)
        state = self.state

        pending = {}
        already_settled = False
        for key, batch in sorted(state.batches.items()):
            owner, batch_epoch = key
            if player is not None and owner != player:
                continue
            if batch_epoch > epoch:
                continue
            if batch.cache_epoch >= epoch:
                already_settled = True
                continue
            if batch.unresolved_mask:
                pending[key] = copy.deepcopy(batch)

        if not pending and already_settled and player is not None:
            raise InvalidEpoch("Epoch already settled for this player", epoch=epoch)

        results: dict[BatchKey, dict[int, BetResult]] = {}
        for key, batch in pending.items():
            owner, batch_epoch = key
            first = max(batch_epoch, batch.cache_epoch + 1)
            decided: dict[int, BetResult] = {}
            for applied in range(first, epoch + 1):
                outcome = state.outcomes.get(applied)
                if outcome is None:
                    continue
                decided.update(batch.apply_outcome(
                    outcome,
                    bonus=state.bonus_snapshots.get((applied, owner)),
                    rules=self.config.payout_rules,
                    table=self.config.amount_table,
                ))
                if not batch.unresolved_mask:
                    break
            results[key] = decided

        state.batches.update(pending)
        decided_count = sum(len(r) for r in results.values())
        logger.info("Epoch %d settled: %d wagers decided across %d batches",
                    epoch, decided_count, len(results))
        return results

    # -------------------------------------------------------------------------
    # Claims
    # -------------------------------------------------------------------------

    def claim_payout(self, player: bytes, epoch: int, slot: int) -> int:
        """Collect one realizable wager. Returns the amount paid."""
        _check_player(player)
        existing = self.state.batches.get((player, epoch))
        if existing is None:
            raise NothingToClaim("No wagers for this epoch", epoch=epoch)

        batch = copy.deepcopy(existing)
        amount = batch.claim(slot)
        treasury = copy.deepcopy(self.state.treasury)
        self.guard.disburse(treasury, DisbursementKind.PAYOUT, amount, self.clock.current_slot())

        self.tokens.transfer(treasury.vault, player, amount)

        self.state.batches[(player, epoch)] = batch
        self.state.treasury = treasury
        logger.info("%s claimed %d from epoch %d slot %d", _short(player), amount, epoch, slot)
        return amount

    def claim_all(self, player: bytes, epoch: Optional[int] = None) -> int:
        """Collect every unclaimed realizable wager as one disbursement."""
        _check_player(player)
        batches = {}
        total = 0
        for (owner, batch_epoch), existing in sorted(self.state.batches.items()):
            if owner != player or (epoch is not None and batch_epoch != epoch):
                continue
            if not existing.unclaimed_mask:
                continue
            batch = copy.deepcopy(existing)
            total = checked_add(total, batch.claim_all())
            batches[(owner, batch_epoch)] = batch

        if not batches:
            raise NothingToClaim("No unclaimed winnings", epoch=epoch)

        treasury = copy.deepcopy(self.state.treasury)
        self.guard.disburse(treasury, DisbursementKind.PAYOUT, total, self.clock.current_slot())

        self.tokens.transfer(treasury.vault, player, total)

        self.state.batches.update(batches)
        self.state.treasury = treasury
        logger.info("%s claimed %d across %d batches", _short(player), total, len(batches))
        return total

    # -------------------------------------------------------------------------
    # Treasury
    # -------------------------------------------------------------------------

    def deposit(self, caller: bytes, amount: int) -> int:
        self.authorities.require(AuthorityKind.TREASURY, caller)
        treasury = copy.deepcopy(self.state.treasury)
        self.guard.deposit(treasury, amount, self.clock.current_slot())

        self.tokens.transfer(caller, treasury.vault, amount)

        self.state.treasury = treasury
        return treasury.balance

    def withdraw(self, caller: bytes, amount: int) -> int:
        self.authorities.require(AuthorityKind.TREASURY, caller)
        treasury = copy.deepcopy(self.state.treasury)
        self.guard.disburse(treasury, DisbursementKind.WITHDRAWAL, amount, self.clock.current_slot())

        self.tokens.transfer(treasury.vault, caller, amount)

        self.state.treasury = treasury
        return treasury.balance

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    def emergency_operation(self, caller: bytes, kind: EmergencyKind) -> None:
        self.authorities.require(AuthorityKind.EMERGENCY, caller)
        treasury = copy.deepcopy(self.state.treasury)
        if kind == EmergencyKind.SHUTDOWN:
            treasury.halted = 1
            treasury.betting_paused = 1
        elif kind == EmergencyKind.RESUME:
            treasury.halted = 0
            treasury.betting_paused = 0
        elif kind == EmergencyKind.PAUSE_GAME:
            treasury.betting_paused = 1
        elif kind == EmergencyKind.RESUME_GAME:
            treasury.betting_paused = 0
        treasury.last_update_slot = self.clock.current_slot()
        self.state.treasury = treasury

        if kind == EmergencyKind.SHUTDOWN:
            logger.warning("Emergency shutdown at slot %d", treasury.last_update_slot)
        else:
            logger.info("Emergency operation %s at slot %d", kind.value, treasury.last_update_slot)

    def update_authority(self, caller: bytes, kind: AuthorityKind, new_key: bytes) -> None:
        self.authorities.require(AuthorityKind.ADMIN, caller)
        authorities = copy.deepcopy(self.authorities)
        authorities.rotate(kind, new_key)

        self.authorities = authorities
        if kind == AuthorityKind.TREASURY:
            self.state.treasury.authority = new_key
        logger.info("Authority %s rotated", kind.value)

    def cleanup_batch(self, player: bytes, epoch: int) -> None:
        """Remove a fully claimed batch once it is past the retention window."""
        batch = self.state.batches.get((player, epoch))
        if batch is None or not batch.is_cleanable(self.state.epoch, self.config.retention_epochs):
            raise BatchNotCleanable(epoch=epoch, current_epoch=self.state.epoch)
        del self.state.batches[(player, epoch)]
        logger.debug("Removed batch for %s epoch %d", _short(player), epoch)

    def cleanup_epoch_outcome(self, caller: bytes, epoch: int) -> None:
        self.authorities.require(AuthorityKind.ADMIN, caller)
        self.outcome(epoch)
        if self.state.epoch - epoch < self.config.min_outcome_age:
            raise EpochTooRecent(epoch=epoch, current_epoch=self.state.epoch,
                                 min_age=self.config.min_outcome_age)
        for (_, batch_epoch), batch in self.state.batches.items():
            if batch_epoch <= epoch and batch.cache_epoch < epoch and batch.unresolved_mask:
                raise EpochTooRecent("Outcome is still needed by unsettled wagers", epoch=epoch)

        del self.state.outcomes[epoch]
        for key in [k for k in self.state.bonus_snapshots if k[0] == epoch]:
            del self.state.bonus_snapshots[key]
        logger.debug("Removed outcome for epoch %d", epoch)


def _check_player(player: bytes) -> None:
    if not isinstance(player, bytes) or len(player) != ACCOUNT_ID_SIZE:
        raise InvalidPlayer(player=player)


def _short(account: bytes) -> str:
    return account[:4].hex()
