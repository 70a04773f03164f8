"""
Services the table relies on but does not own: token movement, authority
keys, entropy and the slot clock.

Each is an abstract interface with an in-memory implementation that tests
and the simulator use.
"""
import hashlib
import random
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from .constants import ENTROPY_VALUE_SIZE
from .errors import InsufficientFunds, InvalidAmount, Unauthorized
from .rng import EntropySource

ACCOUNT_ID_SIZE = 32


def account_id(label: str) -> bytes:
    """Derive a 32-byte account identity from a readable label."""
    return hashlib.sha256(label.encode("utf-8")).digest()


# =============================================================================
# Tokens
# =============================================================================

class TokenTransfer(ABC):
    """Moves stake tokens between accounts."""

    @abstractmethod
    def transfer(self, source: bytes, destination: bytes, amount: int) -> None:
        """Move ``amount`` from ``source`` to ``destination`` or raise."""
        pass


class InMemoryTokenLedger(TokenTransfer):
    """Balances held in a dict. Raises InsufficientFunds on overdraft."""

    def __init__(self, balances: Optional[dict[bytes, int]] = None):
        self.balances: dict[bytes, int] = dict(balances or {})

    def mint(self, account: bytes, amount: int) -> None:
        if amount < 0:
            raise InvalidAmount(amount=amount)
        self.balances[account] = self.balances.get(account, 0) + amount

    def balance_of(self, account: bytes) -> int:
        return self.balances.get(account, 0)

    def transfer(self, source: bytes, destination: bytes, amount: int) -> None:
        if amount < 0:
            raise InvalidAmount(amount=amount)
        available = self.balance_of(source)
        if available < amount:
            raise InsufficientFunds(amount=amount, available=available)
        self.balances[source] = available - amount
        self.balances[destination] = self.balance_of(destination) + amount


# =============================================================================
# Authorities
# =============================================================================

class AuthorityKind(Enum):
    """Roles allowed to drive privileged table operations."""
    RNG = "rng"
    ADMIN = "admin"
    EMERGENCY = "emergency"
    TREASURY = "treasury"


@dataclass
class AuthoritySet:
    keys: dict[AuthorityKind, bytes] = field(default_factory=dict)

    @classmethod
    def single(cls, key: bytes) -> "AuthoritySet":
        """One key holding every role."""
        return cls({kind: key for kind in AuthorityKind})

    def require(self, kind: AuthorityKind, caller: bytes) -> None:
        expected = self.keys.get(kind)
        if expected is None or not secrets.compare_digest(expected, caller):
            raise Unauthorized(authority=kind.value)

    def rotate(self, kind: AuthorityKind, new_key: bytes) -> None:
        if len(new_key) != ACCOUNT_ID_SIZE or not any(new_key):
            raise Unauthorized("Authority keys must be 32 non-zero bytes", authority=kind.value)
        self.keys[kind] = new_key


# =============================================================================
# Entropy
# =============================================================================

class EntropyProvider(ABC):
    """Abstract interface for entropy sources."""

    @abstractmethod
    def next_source(self, slot: int) -> EntropySource:
        """
        Produce the entropy value observed at ``slot``.

        Returns:
            EntropySource: (slot, 32-byte value)
        """
        pass


class SystemEntropyProvider(EntropyProvider):
    """Operating system randomness via ``secrets``."""

    def next_source(self, slot: int) -> EntropySource:
        value = secrets.token_bytes(ENTROPY_VALUE_SIZE)
        while not any(value):
            value = secrets.token_bytes(ENTROPY_VALUE_SIZE)
        return EntropySource(slot, value)


class SeededEntropyProvider(EntropyProvider):
    """Reproducible values from a seeded generator, for simulations."""

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._random = random.Random(seed)

    def next_source(self, slot: int) -> EntropySource:
        value = self._random.randbytes(ENTROPY_VALUE_SIZE)
        while not any(value):
            value = self._random.randbytes(ENTROPY_VALUE_SIZE)
        return EntropySource(slot, value)


class SequenceEntropyProvider(EntropyProvider):
    """
    Replays values from a pre-recorded sequence.

    Raises IndexError when sequence is exhausted.
    """

    def __init__(self, values: Iterable[bytes]):
        self.values = list(values)
        self.index = 0

    def next_source(self, slot: int) -> EntropySource:
        if self.index >= len(self.values):
            raise IndexError(f"Entropy sequence exhausted after {self.index} values")
        value = self.values[self.index]
        self.index += 1
        return EntropySource(slot, value)

    def reset(self):
        """Reset to beginning of sequence."""
        self.index = 0

    @property
    def remaining(self) -> int:
        return len(self.values) - self.index


# =============================================================================
# Clock
# =============================================================================

class SlotClock(ABC):
    """Monotonic slot counter of the surrounding ledger."""

    @abstractmethod
    def current_slot(self) -> int:
        pass


class ManualClock(SlotClock):
    """A clock that only moves when told to."""

    def __init__(self, start: int = 0):
        self.slot = start

    def current_slot(self) -> int:
        return self.slot

    def advance(self, slots: int = 1) -> int:
        if slots < 0:
            raise ValueError("Slot clock cannot run backwards")
        self.slot += slots
        return self.slot
