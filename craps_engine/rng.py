"""
Commit-reveal dice generation.

One RngState exists per epoch and moves through three phases:

    BETTING -> COLLECTING -> FINALIZED

Wagers are only accepted while BETTING. Once the betting window has
elapsed, COLLECTING accepts entropy sources (32-byte values, each tagged
with the slot it was observed at) in strictly increasing slot order. When
enough sources are in, finalization mixes them into a 64-byte entropy block
and derives two dice by rejection sampling.

An adversary who can predict or bias some of the sources still has to
control every one of them to steer the result, which is why the required
source count is configurable and defaults to 10.
"""
import hashlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Sequence

from .constants import (
    DICE_SIDES,
    ENTROPY_VALUE_SIZE,
    JITTER_MULTIPLIER,
    MAX_ENTROPY_SOURCES,
    REQUIRED_ENTROPY_SOURCES,
    U64_MAX,
)
from .dice import DiceRoll
from .errors import (
    BettingWindowOpen,
    DuplicateEntropySource,
    EntropyBeforeCollection,
    InsufficientEntropy,
    InvalidEntropySource,
    InvalidRngPhase,
    MaxEntropySourcesReached,
)
from .layout import FixedRecord, array, raw_array, u64, u8

logger = logging.getLogger(__name__)


class RngPhase(Enum):
    BETTING = 0
    COLLECTING = 1
    FINALIZED = 2


class EntropySource(NamedTuple):
    """A raw entropy value and the slot it was observed at."""
    slot: int
    value: bytes


@dataclass
class RngState(FixedRecord):
    """Persisted RNG record for one epoch."""
    epoch: int = u64()
    phase: int = u8()
    hash_count: int = u8()
    die1: int = u8()
    die2: int = u8(pad=4)
    betting_start_slot: int = u64()
    collection_start_slot: int = u64()
    finalization_slot: int = u64()
    source_slots: list = array("Q", MAX_ENTROPY_SOURCES)
    hashes: list = raw_array(ENTROPY_VALUE_SIZE, MAX_ENTROPY_SOURCES)

    @property
    def rng_phase(self) -> RngPhase:
        return RngPhase(self.phase)

    @property
    def is_finalized(self) -> bool:
        return self.rng_phase == RngPhase.FINALIZED

    @property
    def final_dice(self) -> DiceRoll:
        if not self.is_finalized:
            raise InvalidRngPhase("Dice are only available once finalized", phase=self.rng_phase.name)
        return DiceRoll(self.die1, self.die2)

    def sources(self) -> list[EntropySource]:
        """Collected sources in collection order."""
        return [
            EntropySource(self.source_slots[i], self.hashes[i])
            for i in range(self.hash_count)
        ]

    def last_source_slot(self) -> int:
        return self.source_slots[self.hash_count - 1] if self.hash_count else 0


# =============================================================================
# Pure helpers
# =============================================================================

def collection_start(epoch: int, slot: int, betting_window: int, jitter_slots: int) -> int:
    """First slot at which entropy collection may begin.

    The window end carries a jitter derived from the epoch and start slot so
    the exact close is not a fixed offset.
    """
    jitter = 0
    if jitter_slots:
        jitter = (((epoch * JITTER_MULTIPLIER) & U64_MAX) ^ slot) % jitter_slots
    return slot + betting_window + jitter


def mix_entropy(sources: Sequence[EntropySource], epoch: int) -> bytes:
    """Combine all sources into a 64-byte entropy block.

    XOR-folds the source values, then chains SHA-256 over the fold, the
    epoch and every (slot, value) pair, and expands the result with SHA-512.
    Changing any single source changes the whole block.
    """
    if not sources:
        raise InsufficientEntropy("No entropy sources collected")

    folded = bytearray(ENTROPY_VALUE_SIZE)
    for source in sources:
        for i, byte in enumerate(source.value):
            folded[i] ^= byte

    chain = hashlib.sha256(epoch.to_bytes(8, "little") + bytes(folded)).digest()
    for source in sources:
        chain = hashlib.sha256(chain + source.slot.to_bytes(8, "little") + source.value).digest()
    return hashlib.sha512(chain).digest()


def derive_dice(block: bytes) -> DiceRoll:
    """Derive two dice from an entropy block by rejection sampling.

    Each byte yields ``byte % 8``, uniform over 0-7 since 256 is a multiple
    of 8. Values 6 and 7 are discarded; 0-5 map to faces 1-6. A plain
    ``byte % 6`` would favour low faces.
    """
    dice = []
    for byte in block:
        value = byte % 8
        if value < DICE_SIDES:
            dice.append(value + 1)
            if len(dice) == 2:
                return DiceRoll(dice[0], dice[1])
    raise InsufficientEntropy("Entropy block exhausted before two dice were accepted",
                              block_size=len(block), accepted=len(dice))


# =============================================================================
# Phase transitions
# =============================================================================

def start_betting_phase(state: RngState, epoch: int, slot: int,
                        betting_window: int = 40, jitter_slots: int = 0) -> None:
    """Reset the record for ``epoch`` and open betting. Valid from any phase."""
    state.epoch = epoch
    state.phase = RngPhase.BETTING.value
    state.hash_count = 0
    state.die1 = 0
    state.die2 = 0
    state.betting_start_slot = slot
    state.collection_start_slot = collection_start(epoch, slot, betting_window, jitter_slots)
    state.finalization_slot = 0
    state.source_slots = [0] * MAX_ENTROPY_SOURCES
    state.hashes = [bytes(ENTROPY_VALUE_SIZE)] * MAX_ENTROPY_SOURCES
    logger.info("Epoch %d betting open at slot %d, collection from slot %d",
                epoch, slot, state.collection_start_slot)


def begin_collection(state: RngState, slot: int) -> None:
    """Close betting and start accepting entropy."""
    if state.rng_phase != RngPhase.BETTING:
        raise InvalidRngPhase("Collection can only start from betting", phase=state.rng_phase.name)
    if slot < state.collection_start_slot:
        raise BettingWindowOpen(slot=slot, opens_at=state.collection_start_slot)

    state.phase = RngPhase.COLLECTING.value
    logger.info("Epoch %d collecting entropy from slot %d", state.epoch, slot)


def collect_entropy_source(state: RngState, source: EntropySource) -> None:
    """Append one entropy source to the buffer."""
    if state.rng_phase != RngPhase.COLLECTING:
        raise InvalidRngPhase("Entropy is only collected while collecting", phase=state.rng_phase.name)
    if len(source.value) != ENTROPY_VALUE_SIZE or not any(source.value):
        raise InvalidEntropySource(slot=source.slot, size=len(source.value))
    if source.slot < state.collection_start_slot:
        raise EntropyBeforeCollection(slot=source.slot, opens_at=state.collection_start_slot)
    if state.hash_count and source.slot <= state.last_source_slot():
        raise DuplicateEntropySource(slot=source.slot, last_slot=state.last_source_slot())
    if state.hash_count >= MAX_ENTROPY_SOURCES:
        raise MaxEntropySourcesReached(capacity=MAX_ENTROPY_SOURCES)

    index = state.hash_count
    state.source_slots[index] = source.slot
    state.hashes[index] = bytes(source.value)
    state.hash_count = index + 1
    logger.debug("Epoch %d collected source %d from slot %d", state.epoch, state.hash_count, source.slot)


def finalize(state: RngState, slot: int,
             required_count: int = REQUIRED_ENTROPY_SOURCES) -> DiceRoll:
    """Mix the collected sources and fix the epoch's dice."""
    if state.rng_phase != RngPhase.COLLECTING:
        raise InvalidRngPhase("Only a collecting RNG can be finalized", phase=state.rng_phase.name)
    if state.hash_count < required_count:
        raise InsufficientEntropy(collected=state.hash_count, required=required_count)

    block = mix_entropy(state.sources(), state.epoch)
    roll = derive_dice(block)

    state.die1 = roll.die1
    state.die2 = roll.die2
    state.finalization_slot = slot
    state.phase = RngPhase.FINALIZED.value
    logger.info("Epoch %d finalized with %d sources: %s", state.epoch, state.hash_count, roll)
    return roll
