import pytest

from craps_engine.codec import (
    DEFAULT_TABLE,
    AmountTable,
    AmountTier,
    amount_index_of,
    bet_type_of,
    decode_amount,
    decode_bet,
    encode_amount,
    encode_bet,
)
from craps_engine.constants import BetType
from craps_engine.errors import EncodingError, InvalidAmount, InvalidBetType, InvalidIndex


def test_default_table_has_768_stakes():
    assert len(DEFAULT_TABLE) == 768
    assert DEFAULT_TABLE.max_amount == 100_000
    assert len(list(DEFAULT_TABLE.values())) == 768


@pytest.mark.parametrize("amount, index", [
    (1, 0),
    (100, 99),
    (105, 100),
    (500, 179),
    (510, 180),
    (1_500, 279),
    (5_000, 419),
    (100_000, 767),
])
def test_tier_boundaries(amount, index):
    assert encode_amount(amount) == index
    assert decode_amount(index) == amount


def test_every_type_and_amount_round_trips():
    amounts = list(DEFAULT_TABLE.values())
    for bet_type in range(64):
        for amount in amounts:
            packed = encode_bet(bet_type, amount)
            assert 0 <= packed <= 0xFFFF
            assert decode_bet(packed) == (bet_type, amount)


def test_indices_are_dense_and_ordered():
    amounts = list(DEFAULT_TABLE.values())
    assert amounts == sorted(amounts)
    assert [encode_amount(a) for a in amounts] == list(range(768))


@pytest.mark.parametrize("amount", [0, -5, 102, 503, 1_510, 100_001, 2.5, True, "10"])
def test_off_step_and_out_of_range_amounts_rejected(amount):
    with pytest.raises(InvalidAmount):
        encode_amount(amount)


@pytest.mark.parametrize("index", [-1, 768, 1023])
def test_decode_amount_rejects_unused_indices(index):
    with pytest.raises(InvalidIndex):
        decode_amount(index)


@pytest.mark.parametrize("bet_type", [-1, 64, 255])
def test_encode_bet_rejects_unknown_types(bet_type):
    with pytest.raises(InvalidBetType):
        encode_bet(bet_type, 10)


def test_packed_layout():
    assert encode_bet(BetType.PASS, 100) == 99
    assert encode_bet(63, 1) == 63 << 10
    packed = encode_bet(BetType.HARD_4, 105)
    assert bet_type_of(packed) == BetType.HARD_4
    assert amount_index_of(packed) == 100


def test_decode_bet_rejects_bad_values():
    with pytest.raises(InvalidIndex):
        decode_bet(0x10000)
    with pytest.raises(InvalidIndex):
        decode_bet(-1)
    with pytest.raises(InvalidIndex):
        decode_bet((5 << 10) | 800)


def test_encoding_errors_share_a_kind():
    with pytest.raises(EncodingError):
        encode_bet(BetType.FIELD, 102)


def test_custom_tier_table():
    table = AmountTable([AmountTier(1, 10, 1), AmountTier(11, 20, 5)])
    assert table.size == 12
    assert encode_amount(15, table) == 10
    assert encode_amount(20, table) == 11
    assert decode_bet(encode_bet(BetType.FIELD, 15, table), table) == (BetType.FIELD, 15)
    with pytest.raises(InvalidAmount):
        encode_amount(12, table)


@pytest.mark.parametrize("tiers", [
    [],
    [AmountTier(2, 10, 1)],
    [AmountTier(1, 10, 1), AmountTier(12, 20, 1)],
    [AmountTier(1, 10, 3)],
    [AmountTier(1, 2_000, 1)],
])
def test_invalid_tier_tables_rejected(tiers):
    with pytest.raises(ValueError):
        AmountTable(tiers)
