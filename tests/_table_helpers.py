"""Helpers that walk a table through an epoch."""

from craps_engine.outcome import EpochOutcome
from craps_engine.table import CrapsTable


def roll(table: CrapsTable, authority: bytes) -> EpochOutcome:
    """Close betting, feed the required entropy and finalize."""
    clock = table.clock
    clock.advance(table.config.betting_window_slots + table.config.jitter_slots)
    table.begin_collection(authority)
    for _ in range(table.config.required_entropy_sources):
        clock.advance()
        table.collect_entropy(authority)
    return table.finalize_rng(authority)


def play_epoch(table: CrapsTable, authority: bytes, bets=()) -> EpochOutcome:
    """Open an epoch, place ``(player, bet_type, amount)`` wagers, roll and settle."""
    epoch = table.start_betting_phase(authority)
    for player, bet_type, amount in bets:
        table.place_bet(player, bet_type, amount)
    outcome = roll(table, authority)
    table.settle_bets(epoch)
    return outcome
