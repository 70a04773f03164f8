import pytest

from craps_engine.errors import (
    CircuitBreakerError,
    DepositExceedsLimit,
    EmergencyReserveInsufficient,
    HourlyLimitExceeded,
    InvalidAmount,
    PayoutRatioExceeded,
    SinglePayoutTooLarge,
    TreasuryHalted,
)
from craps_engine.treasury import DisbursementKind, Treasury, TreasuryGuard, TreasuryLimits

PAYOUT = DisbursementKind.PAYOUT
WITHDRAWAL = DisbursementKind.WITHDRAWAL


def _funded(balance: int) -> Treasury:
    treasury = Treasury(total_deposits=balance)
    treasury.snapshot_epoch_balance()
    return treasury


@pytest.fixture
def guard():
    return TreasuryGuard()


def test_record_is_176_bytes():
    assert Treasury.size() == 176
    treasury = _funded(5_000)
    treasury.halted = 1
    assert Treasury.from_bytes(treasury.to_bytes()) == treasury


def test_balance_follows_the_totals():
    treasury = Treasury(total_deposits=1_000, total_wagered=300, total_payouts=200, total_withdrawals=100)
    assert treasury.balance == 1_000


def test_emergency_reserve_protects_epoch_start_balance(guard):
    treasury = _funded(1_000)
    guard.disburse(treasury, PAYOUT, 500, slot=10)
    assert treasury.balance == 500

    before = treasury.to_bytes()
    with pytest.raises(EmergencyReserveInsufficient):
        guard.disburse(treasury, WITHDRAWAL, 350, slot=11)
    assert treasury.to_bytes() == before

    guard.disburse(treasury, WITHDRAWAL, 300, slot=12)
    assert treasury.balance == 200


def test_reserve_floor_rounds_up(guard):
    assert guard.reserve_floor(_funded(1_001)) == 201
    assert guard.reserve_floor(_funded(1_000)) == 200


def test_single_cap_checked_first(guard):
    treasury = _funded(10)
    with pytest.raises(SinglePayoutTooLarge):
        guard.check(treasury, PAYOUT, 100_001, slot=1)
    with pytest.raises(SinglePayoutTooLarge):
        guard.check(treasury, WITHDRAWAL, 250_001, slot=1)


def test_halt_rejects_before_any_limit(guard):
    treasury = _funded(1_000_000)
    treasury.halted = 1
    with pytest.raises(TreasuryHalted):
        guard.check(treasury, PAYOUT, 100_000_000, slot=1)
    assert guard.max_safe_disbursement(treasury, PAYOUT, slot=1) == 0


@pytest.mark.parametrize("amount", [0, -5])
def test_non_positive_amounts_rejected(guard, amount):
    with pytest.raises(InvalidAmount):
        guard.check(_funded(1_000), PAYOUT, amount, slot=1)


def test_hourly_window_tumbles():
    guard = TreasuryGuard(TreasuryLimits(max_hourly_payouts=1_000, hourly_slots=100))
    treasury = _funded(1_000_000)

    guard.disburse(treasury, PAYOUT, 600, slot=1_000)
    assert treasury.window_start_slot == 1_000
    with pytest.raises(HourlyLimitExceeded):
        guard.disburse(treasury, PAYOUT, 401, slot=1_099)
    guard.disburse(treasury, PAYOUT, 400, slot=1_099)

    # Withdrawals have their own running total
    guard.disburse(treasury, WITHDRAWAL, 1_000, slot=1_099)

    guard.disburse(treasury, PAYOUT, 1_000, slot=1_100)
    assert treasury.window_start_slot == 1_100
    assert treasury.window_payouts == 1_000
    assert treasury.window_withdrawals == 0


def test_payout_ratio():
    guard = TreasuryGuard(TreasuryLimits(emergency_reserve_pct=0))
    treasury = _funded(1_000)
    with pytest.raises(PayoutRatioExceeded):
        guard.check(treasury, PAYOUT, 801, slot=1)
    guard.check(treasury, PAYOUT, 800, slot=1)


def test_check_order_reports_first_failure():
    guard = TreasuryGuard(TreasuryLimits(max_single_payout=500, max_hourly_payouts=400))
    treasury = _funded(100)
    treasury.epoch_start_balance = 400
    with pytest.raises(SinglePayoutTooLarge):
        guard.check(treasury, PAYOUT, 501, slot=1)
    with pytest.raises(HourlyLimitExceeded):
        guard.check(treasury, PAYOUT, 450, slot=1)
    with pytest.raises(PayoutRatioExceeded):
        guard.check(treasury, PAYOUT, 90, slot=1)
    with pytest.raises(EmergencyReserveInsufficient):
        guard.check(treasury, PAYOUT, 80, slot=1)


def test_rejections_are_logged(guard, caplog):
    with caplog.at_level("WARNING", logger="craps_engine.treasury"):
        with pytest.raises(CircuitBreakerError):
            guard.check(_funded(100), PAYOUT, 100, slot=1)
    assert "Rejected payout of 100" in caplog.text


def test_deposits(guard):
    treasury = _funded(0)
    treasury.halted = 1
    guard.deposit(treasury, 10_000, slot=3)
    assert treasury.balance == 10_000
    assert treasury.last_update_slot == 3

    with pytest.raises(DepositExceedsLimit):
        guard.deposit(treasury, 10_000_001, slot=4)
    with pytest.raises(InvalidAmount):
        guard.deposit(treasury, 0, slot=4)
    assert treasury.total_deposits == 10_000


def test_wagers_raise_the_balance(guard):
    treasury = _funded(100)
    guard.record_wager(treasury, 50)
    assert treasury.balance == 150
    # The reserve stays pinned to the epoch-start snapshot
    assert guard.reserve_floor(treasury) == 20


def test_max_safe_disbursement_passes_check(guard):
    treasury = _funded(1_000)
    guard.disburse(treasury, PAYOUT, 100, slot=1)
    safe = guard.max_safe_disbursement(treasury, WITHDRAWAL, slot=2)
    assert safe == 700
    guard.check(treasury, WITHDRAWAL, safe, slot=2)
    with pytest.raises(CircuitBreakerError):
        guard.check(treasury, WITHDRAWAL, safe + 1, slot=2)


@pytest.mark.parametrize("kwargs", [
    {"max_single_payout": 0},
    {"hourly_slots": 0},
    {"max_payout_ratio_pct": 0},
    {"max_payout_ratio_pct": 101},
    {"emergency_reserve_pct": 101},
])
def test_invalid_limits_rejected(kwargs):
    with pytest.raises(ValueError):
        TreasuryLimits(**kwargs)
