"""Pytest configuration for the craps engine."""

import sys
from pathlib import Path

import pytest


def _ensure_repo_on_path() -> None:
    """Make the repository importable without an editable install."""
    repo_root = Path(__file__).resolve().parent.parent
    path_str = str(repo_root)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)


_ensure_repo_on_path()

from craps_engine.collaborators import (  # noqa: E402
    AuthoritySet,
    InMemoryTokenLedger,
    ManualClock,
    SeededEntropyProvider,
    account_id,
)
from craps_engine.config import TableConfig  # noqa: E402
from craps_engine.table import CrapsTable  # noqa: E402

HOUSE_FLOAT = 1_000_000
PLAYER_BANKROLL = 100_000


@pytest.fixture
def house():
    return account_id("house")


@pytest.fixture
def alice():
    return account_id("alice")


@pytest.fixture
def bob():
    return account_id("bob")


@pytest.fixture
def ledger(house, alice, bob):
    ledger = InMemoryTokenLedger()
    ledger.mint(house, 10 * HOUSE_FLOAT)
    ledger.mint(alice, PLAYER_BANKROLL)
    ledger.mint(bob, PLAYER_BANKROLL)
    return ledger


@pytest.fixture
def clock():
    return ManualClock(1_000)


@pytest.fixture
def table_config():
    return TableConfig(required_entropy_sources=3, betting_window_slots=10, jitter_slots=0,
                       retention_epochs=2, min_outcome_age=5)


@pytest.fixture
def table(house, ledger, clock, table_config):
    table = CrapsTable(AuthoritySet.single(house), ledger, clock,
                       config=table_config, entropy=SeededEntropyProvider(7))
    table.deposit(house, HOUSE_FLOAT)
    return table


@pytest.fixture
def fixed_dice(monkeypatch):
    """Queue of DiceRoll values the next finalizations will produce."""
    queue = []

    def _next_roll(block):
        return queue.pop(0)

    monkeypatch.setattr("craps_engine.rng.derive_dice", _next_roll)
    return queue
