import pytest

from craps_engine.batch import BetBatch
from craps_engine.codec import encode_bet
from craps_engine.constants import MAX_BETS_PER_BATCH, NO_LINK, BetType
from craps_engine.dice import DiceRoll, GamePhase
from craps_engine.errors import BatchCorrupted, InvalidBetLink, InvalidEpoch, MaxBetsReached, NothingToClaim
from craps_engine.outcome import EpochOutcome
from craps_engine.payouts import BetStatus

PLAYER = b"\x01" * 32


def _batch(*bets, epoch=3) -> BetBatch:
    batch = BetBatch(epoch=epoch, player=PLAYER)
    for bet_type, amount in bets:
        batch.place(encode_bet(bet_type, amount))
    return batch


def _outcome(epoch, die1, die2, phase=GamePhase.COME_OUT, point=0) -> EpochOutcome:
    return EpochOutcome.record(epoch, DiceRoll(die1, die2), phase, point, slot=500 + epoch)


def test_record_layout():
    assert BetBatch.size() == 296
    batch = _batch((BetType.PASS, 100), (BetType.FIELD, 50))
    batch.apply_outcome(_outcome(3, 3, 4))
    restored = BetBatch.from_bytes(batch.to_bytes())
    assert restored == batch
    assert restored.linked_bets == [NO_LINK] * MAX_BETS_PER_BATCH


def test_place_fills_slots_in_order():
    batch = BetBatch(epoch=1, player=PLAYER)
    assert batch.place(encode_bet(BetType.PASS, 100)) == 0
    assert batch.place(encode_bet(BetType.HARD_8, 10)) == 1
    assert batch.bet_count == 2
    assert batch.total_amount == 110
    assert batch.occupied == 0b11
    assert batch.bet(1) == (BetType.HARD_8, 10)


def test_batch_holds_sixteen_wagers():
    batch = _batch(*[(BetType.FIELD, 5)] * MAX_BETS_PER_BATCH)
    with pytest.raises(MaxBetsReached):
        batch.place(encode_bet(BetType.FIELD, 5))
    assert batch.bet_count == MAX_BETS_PER_BATCH
    assert batch.total_amount == 80


def test_empty_slot_has_no_wager():
    with pytest.raises(NothingToClaim):
        _batch((BetType.PASS, 10)).bet(1)


def test_come_odds_must_link_to_a_come_wager():
    batch = _batch((BetType.PASS, 10), (BetType.COME, 10))
    odds = encode_bet(BetType.ODDS_COME, 20)

    with pytest.raises(InvalidBetLink):
        batch.place(odds)
    with pytest.raises(InvalidBetLink):
        batch.place(odds, linked_slot=0)
    with pytest.raises(InvalidBetLink):
        batch.place(odds, linked_slot=5)
    with pytest.raises(InvalidBetLink):
        batch.place(encode_bet(BetType.ODDS_DONT_COME, 20), linked_slot=1)
    with pytest.raises(InvalidBetLink):
        batch.place(encode_bet(BetType.FIELD, 20), linked_slot=1)
    assert batch.bet_count == 2

    assert batch.place(odds, linked_slot=1) == 2
    assert batch.linked_bets[2] == 1


def test_apply_outcome_records_results():
    batch = _batch((BetType.PASS, 100), (BetType.FIELD, 50), (BetType.HARD_6, 10))
    results = batch.apply_outcome(_outcome(3, 3, 4))

    assert results[0].status == BetStatus.WON
    assert results[1].status == BetStatus.LOST
    assert results[2].status == BetStatus.LOST
    assert batch.resolved == 0b111
    assert batch.realizable == 0b001
    assert batch.winning == 0b001
    assert batch.individual_payouts[0] == 200
    assert batch.payout_total == 200
    assert batch.cached_outcomes[:3] == [7, 7, 7]
    assert batch.cache_epoch == 3
    assert batch.is_fully_resolved


def test_outcomes_apply_once_and_in_order():
    batch = _batch((BetType.PASS, 100), epoch=3)
    with pytest.raises(InvalidEpoch):
        batch.apply_outcome(_outcome(2, 3, 3))

    batch.apply_outcome(_outcome(3, 3, 3))
    with pytest.raises(InvalidEpoch):
        batch.apply_outcome(_outcome(3, 3, 3))
    assert batch.cache_epoch == 3


def test_wager_keeps_working_across_epochs():
    batch = _batch((BetType.PASS, 100), (BetType.FIELD, 10))
    first = batch.apply_outcome(_outcome(3, 2, 4))
    assert 0 not in first
    assert batch.unresolved_mask == 0b01

    assert batch.apply_outcome(_outcome(4, 4, 4, GamePhase.POINT, 6)) == {}
    final = batch.apply_outcome(_outcome(5, 1, 5, GamePhase.POINT, 6))
    assert final[0].payout == 100
    assert batch.cached_outcomes[0] == 6
    assert batch.cache_epoch == 5


def test_push_is_claimable_but_not_a_win():
    batch = _batch((BetType.DONT_PASS, 100))
    batch.apply_outcome(_outcome(3, 6, 6))
    assert batch.realizable == 0b1
    assert batch.winning == 0
    assert batch.claim(0) == 100


def test_come_wager_carries_its_own_point():
    batch = _batch((BetType.COME, 10))
    batch.apply_outcome(_outcome(3, 2, 3))
    assert batch.come_points[0] == 5
    assert not batch.resolved

    batch.apply_outcome(_outcome(4, 4, 4, GamePhase.POINT, 8))
    assert not batch.resolved

    results = batch.apply_outcome(_outcome(5, 1, 4, GamePhase.POINT, 8))
    assert results[0].status == BetStatus.WON
    assert batch.come_points[0] == 5


def test_come_odds_follow_the_linked_point():
    batch = _batch((BetType.COME, 10))
    batch.place(encode_bet(BetType.ODDS_COME, 10), linked_slot=0)

    batch.apply_outcome(_outcome(3, 2, 2))
    assert batch.come_points[0] == 4
    assert batch.come_points[1] == 0
    assert not batch.resolved

    results = batch.apply_outcome(_outcome(4, 1, 3, GamePhase.POINT, 9))
    assert results[0].payout == 10
    assert results[1].payout == 20
    assert batch.claim_all() == 20 + 30


def test_come_odds_push_when_come_decided_without_point():
    batch = _batch((BetType.COME, 10))
    batch.place(encode_bet(BetType.ODDS_COME, 30), linked_slot=0)

    results = batch.apply_outcome(_outcome(3, 5, 6))
    assert results[0].status == BetStatus.WON
    assert results[1].status == BetStatus.PUSH
    assert results[1].returned == 30
    assert batch.winning == 0b01
    assert batch.realizable == 0b11


def test_claims():
    batch = _batch((BetType.PASS, 100), (BetType.FIELD, 50), (BetType.NEXT_2, 10), (BetType.HARD_4, 10))
    batch.apply_outcome(_outcome(3, 5, 6))

    with pytest.raises(NothingToClaim):
        batch.claim(2)   # lost
    with pytest.raises(NothingToClaim):
        batch.claim(3)   # still working
    with pytest.raises(NothingToClaim):
        batch.claim(7)   # empty

    assert batch.claimable() == (0b11, 300)
    assert batch.claim(0) == 200
    with pytest.raises(NothingToClaim):
        batch.claim(0)
    assert batch.claim_all() == 100
    with pytest.raises(NothingToClaim):
        batch.claim_all()
    assert batch.settled == 0b11


def test_cleanable_once_decided_claimed_and_old():
    batch = _batch((BetType.PASS, 100), epoch=3)
    assert not batch.is_cleanable(current_epoch=20, retention=2)

    batch.apply_outcome(_outcome(3, 3, 4))
    assert not batch.is_cleanable(current_epoch=20, retention=2)

    batch.claim(0)
    assert not batch.is_cleanable(current_epoch=4, retention=2)
    assert batch.is_cleanable(current_epoch=5, retention=2)


def test_inconsistent_masks_rejected():
    batch = _batch((BetType.PASS, 100))
    batch.settled = 0b1
    with pytest.raises(BatchCorrupted):
        batch.check_invariants()

    batch = _batch((BetType.PASS, 100))
    batch.resolved = 0b10
    with pytest.raises(BatchCorrupted) as excinfo:
        batch.check_invariants()
    assert excinfo.value.kind == "phase"
    assert excinfo.value.context["resolved"] == "0x0002"
