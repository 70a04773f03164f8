from collections import Counter

import pytest

from craps_engine import rng
from craps_engine.collaborators import SeededEntropyProvider
from craps_engine.constants import ENTROPY_BLOCK_SIZE, MAX_ENTROPY_SOURCES, REQUIRED_ENTROPY_SOURCES
from craps_engine.dice import DiceRoll
from craps_engine.errors import (
    BettingWindowOpen,
    DuplicateEntropySource,
    EntropyBeforeCollection,
    InsufficientEntropy,
    InvalidEntropySource,
    InvalidRngPhase,
    MaxEntropySourcesReached,
)
from craps_engine.report import looks_fair
from craps_engine.rng import EntropySource, RngPhase, RngState


def _value(n: int) -> bytes:
    return bytes([n % 251 + 1]) * 32


def _collecting(epoch=1, slot=100, window=10) -> RngState:
    state = RngState()
    rng.start_betting_phase(state, epoch, slot, betting_window=window)
    rng.begin_collection(state, slot + window)
    return state


def _feed(state: RngState, count: int, first_slot=200):
    for i in range(count):
        rng.collect_entropy_source(state, EntropySource(first_slot + i, _value(i)))


def test_start_betting_phase_resets_everything():
    state = _collecting()
    _feed(state, 10)
    rng.finalize(state, slot=300)

    rng.start_betting_phase(state, 2, 400, betting_window=40)

    assert state.rng_phase == RngPhase.BETTING
    assert state.epoch == 2
    assert state.hash_count == 0
    assert (state.die1, state.die2) == (0, 0)
    assert state.betting_start_slot == 400
    assert state.collection_start_slot == 440
    assert state.sources() == []


def test_jitter_stays_inside_configured_range():
    for epoch in range(1, 50):
        start = rng.collection_start(epoch, 1_000 + epoch, 40, 8)
        assert 1_040 + epoch <= start < 1_048 + epoch


def test_collection_waits_for_betting_window():
    state = RngState()
    rng.start_betting_phase(state, 1, 100, betting_window=10)
    with pytest.raises(BettingWindowOpen):
        rng.begin_collection(state, 109)
    assert state.rng_phase == RngPhase.BETTING
    rng.begin_collection(state, 110)
    assert state.rng_phase == RngPhase.COLLECTING


def test_collect_outside_collecting_phase_rejected():
    state = RngState()
    rng.start_betting_phase(state, 1, 100)
    with pytest.raises(InvalidRngPhase):
        rng.collect_entropy_source(state, EntropySource(200, _value(1)))


def test_sources_must_arrive_in_increasing_slots():
    state = _collecting()
    rng.collect_entropy_source(state, EntropySource(200, _value(1)))

    with pytest.raises(DuplicateEntropySource):
        rng.collect_entropy_source(state, EntropySource(200, _value(2)))
    with pytest.raises(DuplicateEntropySource):
        rng.collect_entropy_source(state, EntropySource(150, _value(3)))
    assert state.hash_count == 1

    rng.collect_entropy_source(state, EntropySource(201, _value(4)))
    assert state.hash_count == 2
    assert [s.slot for s in state.sources()] == [200, 201]


def test_source_before_collection_window_rejected():
    state = _collecting(slot=100, window=10)
    with pytest.raises(EntropyBeforeCollection):
        rng.collect_entropy_source(state, EntropySource(105, _value(1)))
    assert state.hash_count == 0


@pytest.mark.parametrize("value", [bytes(32), b"\x01" * 31, b"\x01" * 33])
def test_malformed_or_predictable_sources_rejected(value):
    state = _collecting()
    with pytest.raises(InvalidEntropySource):
        rng.collect_entropy_source(state, EntropySource(200, value))
    assert state.hash_count == 0


def test_buffer_holds_fifteen_sources():
    state = _collecting()
    _feed(state, MAX_ENTROPY_SOURCES)
    with pytest.raises(MaxEntropySourcesReached):
        rng.collect_entropy_source(state, EntropySource(999, _value(99)))
    assert state.hash_count == MAX_ENTROPY_SOURCES


def test_finalize_requires_enough_sources():
    state = _collecting()
    _feed(state, 9)
    with pytest.raises(InsufficientEntropy):
        rng.finalize(state, slot=300)
    assert state.rng_phase == RngPhase.COLLECTING

    _feed(state, 1, first_slot=250)
    roll = rng.finalize(state, slot=300)
    assert state.rng_phase == RngPhase.FINALIZED
    assert state.final_dice == roll
    assert state.finalization_slot == 300


def test_required_count_is_configurable():
    state = _collecting()
    _feed(state, 3)
    rng.finalize(state, slot=300, required_count=3)
    assert state.is_finalized


def test_finalize_outside_collecting_rejected():
    state = RngState()
    rng.start_betting_phase(state, 1, 100)
    with pytest.raises(InvalidRngPhase):
        rng.finalize(state, slot=300)

    state = _collecting()
    _feed(state, 10)
    rng.finalize(state, slot=300)
    with pytest.raises(InvalidRngPhase):
        rng.finalize(state, slot=301)


def test_final_dice_unavailable_before_finalization():
    state = _collecting()
    with pytest.raises(InvalidRngPhase):
        state.final_dice


def test_same_sources_give_same_dice():
    first = _collecting()
    second = _collecting()
    _feed(first, 10)
    _feed(second, 10)
    assert rng.finalize(first, slot=300) == rng.finalize(second, slot=300)


def test_mixing_depends_on_every_source_and_the_epoch():
    sources = [EntropySource(200 + i, _value(i)) for i in range(10)]
    block = rng.mix_entropy(sources, epoch=1)
    assert len(block) == ENTROPY_BLOCK_SIZE

    changed = list(sources)
    changed[7] = EntropySource(207, _value(77))
    assert rng.mix_entropy(changed, epoch=1) != block
    assert rng.mix_entropy(sources, epoch=2) != block
    assert rng.mix_entropy(list(reversed(sources)), epoch=1) != block


def test_mix_entropy_requires_sources():
    with pytest.raises(InsufficientEntropy):
        rng.mix_entropy([], epoch=1)


def test_rejection_sampling_skips_six_and_seven():
    # 6, 7 and 14 (14 % 8 == 6) are discarded
    assert rng.derive_dice(bytes([6, 7, 14, 0, 5])) == DiceRoll(1, 6)
    assert rng.derive_dice(bytes([8, 13])) == DiceRoll(1, 6)


@pytest.mark.parametrize("block", [bytes([6] * 64), bytes([255] * 64), bytes([3])])
def test_exhausted_block_raises(block):
    with pytest.raises(InsufficientEntropy):
        rng.derive_dice(block)


def test_accepted_bytes_map_uniformly_onto_faces():
    faces = Counter(rng.derive_dice(bytes([b, 0])).die1 for b in range(256) if b % 8 < 6)
    assert faces == {face: 32 for face in range(1, 7)}


def test_finalized_dice_are_uniform():
    provider = SeededEntropyProvider(2024)
    state = RngState()
    first, second, pairs = Counter(), Counter(), Counter()
    slot = 0
    for epoch in range(1, 3601):
        rng.start_betting_phase(state, epoch, slot, betting_window=1)
        slot += 1
        rng.begin_collection(state, slot)
        for _ in range(REQUIRED_ENTROPY_SOURCES):
            slot += 1
            rng.collect_entropy_source(state, provider.next_source(slot))
        roll = rng.finalize(state, slot)
        first[roll.die1] += 1
        second[roll.die2] += 1
        pairs[(roll.die1, roll.die2)] += 1

    assert set(first) == set(second) == set(range(1, 7))
    assert looks_fair(first)
    assert looks_fair(second)
    assert len(pairs) == 36


def test_rng_state_record_round_trip():
    state = _collecting()
    _feed(state, 10)
    rng.finalize(state, slot=300)

    assert RngState.size() == 640
    data = state.to_bytes()
    assert len(data) == 640
    assert RngState.from_bytes(data) == state
