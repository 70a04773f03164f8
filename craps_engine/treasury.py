"""
Treasury accounting and the disbursement circuit breaker.

Every payout and withdrawal passes TreasuryGuard.check, which applies the
limits in a fixed order and stops at the first failure:

    1. single-transaction cap
    2. hourly aggregate cap (tumbling window of ``hourly_slots`` slots)
    3. amount <= max_payout_ratio_pct of the current balance
    4. balance afterwards >= emergency_reserve_pct of the epoch-start balance

A halted treasury rejects every disbursement before any of these run.
Nothing is mutated unless all checks pass.
"""
import logging
from dataclasses import dataclass
from enum import Enum

from .errors import (
    CircuitBreakerError,
    DepositExceedsLimit,
    EmergencyReserveInsufficient,
    HourlyLimitExceeded,
    InvalidAmount,
    PayoutRatioExceeded,
    SinglePayoutTooLarge,
    TreasuryHalted,
)
from .layout import FixedRecord, checked_add, checked_sub, raw, u64, u8

logger = logging.getLogger(__name__)


class DisbursementKind(Enum):
    PAYOUT = "payout"
    WITHDRAWAL = "withdrawal"


@dataclass(frozen=True)
class TreasuryLimits:
    """Circuit breaker thresholds."""
    max_single_payout: int = 100_000
    max_single_withdrawal: int = 250_000
    max_single_deposit: int = 10_000_000
    max_hourly_payouts: int = 1_000_000
    max_hourly_withdrawals: int = 500_000
    hourly_slots: int = 7_200           # ~1 hour at 0.5s slots
    max_payout_ratio_pct: int = 80
    emergency_reserve_pct: int = 20

    def __post_init__(self):
        for name in ("max_single_payout", "max_single_withdrawal", "max_single_deposit",
                     "max_hourly_payouts", "max_hourly_withdrawals", "hourly_slots"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")
        if not 0 < self.max_payout_ratio_pct <= 100:
            raise ValueError("max_payout_ratio_pct must be between 1 and 100")
        if not 0 <= self.emergency_reserve_pct <= 100:
            raise ValueError("emergency_reserve_pct must be between 0 and 100")

    def single_cap(self, kind: DisbursementKind) -> int:
        if kind == DisbursementKind.PAYOUT:
            return self.max_single_payout
        return self.max_single_withdrawal

    def hourly_cap(self, kind: DisbursementKind) -> int:
        if kind == DisbursementKind.PAYOUT:
            return self.max_hourly_payouts
        return self.max_hourly_withdrawals


@dataclass
class Treasury(FixedRecord):
    authority: bytes = raw(32)
    mint: bytes = raw(32)
    vault: bytes = raw(32)
    total_deposits: int = u64()
    total_withdrawals: int = u64()
    total_payouts: int = u64()
    total_wagered: int = u64()
    window_start_slot: int = u64()
    window_payouts: int = u64()
    window_withdrawals: int = u64()
    epoch_start_balance: int = u64()
    last_update_slot: int = u64()
    halted: int = u8()
    betting_paused: int = u8(pad=6)

    @property
    def balance(self) -> int:
        inflow = checked_add(self.total_deposits, self.total_wagered)
        outflow = checked_add(self.total_withdrawals, self.total_payouts)
        return checked_sub(inflow, outflow)

    @property
    def is_halted(self) -> bool:
        return bool(self.halted)

    @property
    def is_betting_paused(self) -> bool:
        return bool(self.betting_paused)

    def snapshot_epoch_balance(self) -> None:
        """Fix the reference balance the emergency reserve is measured against."""
        self.epoch_start_balance = self.balance

    def window_used(self, kind: DisbursementKind, slot: int, hourly_slots: int) -> int:
        if slot >= self.window_start_slot + hourly_slots:
            return 0
        if kind == DisbursementKind.PAYOUT:
            return self.window_payouts
        return self.window_withdrawals


class TreasuryGuard:
    """Applies TreasuryLimits to a Treasury record."""

    def __init__(self, limits: TreasuryLimits = TreasuryLimits()):
        self.limits = limits

    def reserve_floor(self, treasury: Treasury) -> int:
        # Rounded up so the floor never dips below the configured share
        return -(-treasury.epoch_start_balance * self.limits.emergency_reserve_pct // 100)

    def check(self, treasury: Treasury, kind: DisbursementKind, amount: int, slot: int) -> None:
        """Raise the first circuit breaker the disbursement would trip."""
        try:
            self._check(treasury, kind, amount, slot)
        except CircuitBreakerError as e:
            logger.warning("Rejected %s of %d at slot %d: %s", kind.value, amount, slot, e)
            raise

    def _check(self, treasury: Treasury, kind: DisbursementKind, amount: int, slot: int) -> None:
        limits = self.limits
        if treasury.is_halted:
            raise TreasuryHalted(kind=kind.value)
        if amount < 1:
            raise InvalidAmount(amount=amount)

        cap = limits.single_cap(kind)
        if amount > cap:
            raise SinglePayoutTooLarge(amount=amount, cap=cap)

        used = treasury.window_used(kind, slot, limits.hourly_slots)
        hourly = limits.hourly_cap(kind)
        if used + amount > hourly:
            raise HourlyLimitExceeded(amount=amount, used=used, cap=hourly)

        balance = treasury.balance
        if amount * 100 > balance * limits.max_payout_ratio_pct:
            raise PayoutRatioExceeded(amount=amount, balance=balance, max_pct=limits.max_payout_ratio_pct)

        floor = self.reserve_floor(treasury)
        if balance - amount < floor:
            raise EmergencyReserveInsufficient(amount=amount, balance=balance, reserve=floor)

    def disburse(self, treasury: Treasury, kind: DisbursementKind, amount: int, slot: int) -> None:
        """Check, then book the disbursement against the totals and the hourly window."""
        self.check(treasury, kind, amount, slot)

        if slot >= treasury.window_start_slot + self.limits.hourly_slots:
            treasury.window_start_slot = slot
            treasury.window_payouts = 0
            treasury.window_withdrawals = 0

        if kind == DisbursementKind.PAYOUT:
            treasury.window_payouts = checked_add(treasury.window_payouts, amount)
            treasury.total_payouts = checked_add(treasury.total_payouts, amount)
        else:
            treasury.window_withdrawals = checked_add(treasury.window_withdrawals, amount)
            treasury.total_withdrawals = checked_add(treasury.total_withdrawals, amount)
        treasury.last_update_slot = slot
        logger.info("Treasury %s of %d at slot %d, balance %d", kind.value, amount, slot, treasury.balance)

    def deposit(self, treasury: Treasury, amount: int, slot: int) -> None:
        """Deposits stay open while halted so the house can recapitalise."""
        if amount < 1:
            raise InvalidAmount(amount=amount)
        if amount > self.limits.max_single_deposit:
            raise DepositExceedsLimit(amount=amount, cap=self.limits.max_single_deposit)
        treasury.total_deposits = checked_add(treasury.total_deposits, amount)
        treasury.last_update_slot = slot
        logger.info("Treasury deposit of %d at slot %d, balance %d", amount, slot, treasury.balance)

    def record_wager(self, treasury: Treasury, amount: int) -> None:
        treasury.total_wagered = checked_add(treasury.total_wagered, amount)

    def max_safe_disbursement(self, treasury: Treasury, kind: DisbursementKind, slot: int) -> int:
        """Largest amount that would pass every check right now."""
        if treasury.is_halted:
            return 0
        limits = self.limits
        balance = treasury.balance
        hourly_left = limits.hourly_cap(kind) - treasury.window_used(kind, slot, limits.hourly_slots)
        candidates = (
            limits.single_cap(kind),
            hourly_left,
            balance * limits.max_payout_ratio_pct // 100,
            balance - self.reserve_floor(treasury),
        )
        return max(0, min(candidates))
