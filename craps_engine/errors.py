"""
Error taxonomy for the craps engine.

Errors are grouped by kind. Each kind is a subclass of CrapsError and every
concrete failure is a subclass of its kind, so callers can catch a whole
family (``except CircuitBreakerError``) or one precise failure
(``except EmergencyReserveInsufficient``).
"""
from typing import Any


class CrapsError(Exception):
    """Base class for every engine failure."""

    kind = "craps"
    code = 0
    default_message = "Operation rejected"

    def __init__(self, message: str = "", **context: Any):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in sorted(self.context.items()))
        return f"{self.message} ({details})"


# =============================================================================
# Encoding
# =============================================================================

class EncodingError(CrapsError):
    kind = "encoding"


class InvalidAmount(EncodingError):
    code = 100
    default_message = "Amount is not a valid stake"


class InvalidBetType(EncodingError):
    code = 101
    default_message = "Bet type must be between 0 and 63"


class InvalidIndex(EncodingError):
    code = 102
    default_message = "Amount index is outside the amount table"


class InvalidBetLink(EncodingError):
    code = 103
    default_message = "Odds wager must reference a matching come wager"


class InvalidDiceValues(EncodingError):
    code = 104
    default_message = "Dice values must be between 1 and 6"


# =============================================================================
# Phase
# =============================================================================

class PhaseError(CrapsError):
    kind = "phase"


class InvalidRngPhase(PhaseError):
    code = 200
    default_message = "Operation is not valid in the current RNG phase"


class RngNotFinalized(PhaseError):
    code = 201
    default_message = "No finalized outcome exists for this epoch"


class InvalidEpoch(PhaseError):
    code = 202
    default_message = "Epoch does not match"


class BettingClosed(PhaseError):
    code = 203
    default_message = "Betting is closed"


class BettingWindowOpen(PhaseError):
    code = 204
    default_message = "Betting window has not elapsed yet"


class BatchNotCleanable(PhaseError):
    code = 205
    default_message = "Bet batch still has unresolved or unclaimed wagers"


class EpochTooRecent(PhaseError):
    code = 206
    default_message = "Epoch has not aged past the retention window"


class InvalidBetForPhase(PhaseError):
    code = 207
    default_message = "Wager cannot be placed in the current table phase"


class BonusAlreadyStarted(PhaseError):
    code = 208
    default_message = "Bonus wagers open only before the shooter's hand has progress"


class BatchCorrupted(PhaseError):
    code = 209
    default_message = "Bet batch masks are inconsistent"


# =============================================================================
# Capacity
# =============================================================================

class CapacityError(CrapsError):
    kind = "capacity"


class MaxBetsReached(CapacityError):
    code = 300
    default_message = "Bet batch is full"


class MaxEntropySourcesReached(CapacityError):
    code = 301
    default_message = "Entropy buffer is full"


# =============================================================================
# Entropy
# =============================================================================

class EntropyError(CrapsError):
    kind = "entropy"


class DuplicateEntropySource(EntropyError):
    code = 400
    default_message = "Entropy source already consumed or out of order"


class InsufficientEntropy(EntropyError):
    code = 401
    default_message = "Not enough entropy to finalize"


class InvalidEntropySource(EntropyError):
    code = 402
    default_message = "Entropy source value is malformed or predictable"


class EntropyBeforeCollection(EntropyError):
    code = 403
    default_message = "Source predates the collection window"


# =============================================================================
# Arithmetic
# =============================================================================

class CounterArithmeticError(CrapsError):
    kind = "arithmetic"


class NumericalOverflow(CounterArithmeticError):
    code = 500
    default_message = "Counter overflow"


class NumericalUnderflow(CounterArithmeticError):
    code = 501
    default_message = "Counter underflow"


class InsufficientFunds(CounterArithmeticError):
    code = 502
    default_message = "Account balance is too low"


# =============================================================================
# Authority
# =============================================================================

class AuthorityError(CrapsError):
    kind = "authority"


class Unauthorized(AuthorityError):
    code = 600
    default_message = "Caller lacks the required authority"


class InvalidPlayer(AuthorityError):
    code = 601
    default_message = "Bet batch belongs to another player"


# =============================================================================
# Circuit breaker
# =============================================================================

class CircuitBreakerError(CrapsError):
    kind = "circuit_breaker"


class SinglePayoutTooLarge(CircuitBreakerError):
    code = 700
    default_message = "Amount exceeds the single-transaction cap"


class HourlyLimitExceeded(CircuitBreakerError):
    code = 701
    default_message = "Amount exceeds the hourly cap"


class PayoutRatioExceeded(CircuitBreakerError):
    code = 702
    default_message = "Amount exceeds the allowed share of the treasury"


class EmergencyReserveInsufficient(CircuitBreakerError):
    code = 703
    default_message = "Disbursement would breach the emergency reserve"


class TreasuryHalted(CircuitBreakerError):
    code = 704
    default_message = "Treasury is halted"


class DepositExceedsLimit(CircuitBreakerError):
    code = 705
    default_message = "Deposit exceeds the single deposit cap"


# =============================================================================
# Claim
# =============================================================================

class ClaimError(CrapsError):
    kind = "claim"


class NothingToClaim(ClaimError):
    code = 800
    default_message = "Nothing to claim for this wager"


ERROR_KINDS = (
    EncodingError,
    PhaseError,
    CapacityError,
    EntropyError,
    CounterArithmeticError,
    AuthorityError,
    CircuitBreakerError,
    ClaimError,
)
