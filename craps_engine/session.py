"""
Session runner for driving a table through many epochs.

Each epoch is one full round: open betting, let every scripted player
stake their plan, collect entropy, finalize, settle and claim. Results
cover the dice (for fairness checks), the treasury and every player.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from .collaborators import (
    AuthoritySet,
    EntropyProvider,
    InMemoryTokenLedger,
    ManualClock,
    SeededEntropyProvider,
    account_id,
)
from .config import TableConfig
from .constants import LINKED_ODDS, BetType
from .dice import GamePhase
from .errors import CircuitBreakerError, CrapsError, NothingToClaim
from .table import CrapsTable

logger = logging.getLogger(__name__)


@dataclass
class Wager:
    bet_type: BetType
    amount: int


@dataclass
class BettingPlan:
    """
    Wagers a scripted player makes, keyed on table events.

    ``new_shooter`` fires on the first come-out of each hand, ``come_out``
    on every come-out roll, ``new_point`` on the first roll after a point is
    set and ``every_roll`` on every epoch. Come odds link to the come wager
    placed earlier in the same list.
    """
    name: str
    come_out: list[Wager] = field(default_factory=list)
    new_point: list[Wager] = field(default_factory=list)
    new_shooter: list[Wager] = field(default_factory=list)
    every_roll: list[Wager] = field(default_factory=list)

    def wagers_for(self, phase: GamePhase, point_is_new: bool, shooter_is_new: bool) -> list[Wager]:
        wagers = []
        if shooter_is_new:
            wagers.extend(self.new_shooter)
        if phase == GamePhase.COME_OUT:
            wagers.extend(self.come_out)
        elif point_is_new:
            wagers.extend(self.new_point)
        wagers.extend(self.every_roll)
        return wagers


DEFAULT_PLANS = (
    BettingPlan(
        "Pass Line with Odds",
        come_out=[Wager(BetType.PASS, 10)],
        new_point=[Wager(BetType.ODDS_PASS, 20)],
    ),
    BettingPlan(
        "Don't Pass with Lay Odds",
        come_out=[Wager(BetType.DONT_PASS, 10)],
        new_point=[Wager(BetType.ODDS_DONT_PASS, 30)],
    ),
    BettingPlan(
        "Field and Hardways",
        new_point=[Wager(BetType.HARD_6, 5), Wager(BetType.HARD_8, 5)],
        every_roll=[Wager(BetType.FIELD, 10)],
    ),
    BettingPlan(
        "Come with Odds",
        new_point=[Wager(BetType.COME, 10), Wager(BetType.ODDS_COME, 20)],
    ),
    BettingPlan(
        "Bonus Hunter",
        new_shooter=[
            Wager(BetType.FIRE, 5),
            Wager(BetType.BONUS_SMALL_TALL, 5),
            Wager(BetType.REPEATER_6, 5),
        ],
        come_out=[Wager(BetType.PASS, 10)],
    ),
)


@dataclass
class SessionConfig:
    """Configuration for a session run."""
    plans: list[BettingPlan] = field(default_factory=lambda: list(DEFAULT_PLANS))
    epochs: int = 100
    starting_bankroll: int = 10_000
    house_bankroll: int = 1_000_000
    seed: Optional[int] = None
    table: TableConfig = field(default_factory=TableConfig)

    def __post_init__(self):
        if self.epochs < 1:
            raise ValueError("A session needs at least one epoch")
        if self.starting_bankroll < 0 or self.house_bankroll < 1:
            raise ValueError("Bankrolls must be positive")


@dataclass
class PlayerResult:
    """Results for a single scripted player."""
    name: str
    starting_bankroll: int
    final_bankroll: int
    wagered: int = 0
    collected: int = 0
    wagers_placed: int = 0
    wagers_rejected: int = 0

    @property
    def net_change(self) -> int:
        return self.final_bankroll - self.starting_bankroll

    @property
    def roi_percent(self) -> float:
        return (self.net_change / self.wagered * 100) if self.wagered > 0 else 0.0


@dataclass
class SessionResult:
    epochs: int
    rolls: list[tuple[int, int]] = field(default_factory=list)
    roll_distribution: dict[int, int] = field(default_factory=lambda: {t: 0 for t in range(2, 13)})
    face_counts: dict[int, int] = field(default_factory=lambda: {f: 0 for f in range(1, 7)})
    points_made: int = 0
    seven_outs: int = 0
    treasury_series: list[int] = field(default_factory=list)
    players: list[PlayerResult] = field(default_factory=list)
    rejected_claims: int = 0

    @property
    def house_net(self) -> int:
        if not self.treasury_series:
            return 0
        return self.treasury_series[-1] - self.treasury_series[0]


class SessionRunner:
    """
    Runs scripted players against one table for a fixed number of epochs.
    """

    def __init__(self, config: SessionConfig, entropy: Optional[EntropyProvider] = None):
        self.config = config
        self.house = account_id("house")
        self.ledger = InMemoryTokenLedger()
        self.clock = ManualClock()
        self.table = CrapsTable(
            authorities=AuthoritySet.single(self.house),
            tokens=self.ledger,
            clock=self.clock,
            config=config.table,
            entropy=entropy or SeededEntropyProvider(config.seed),
        )
        self.players = [account_id(f"player:{i}:{plan.name}") for i, plan in enumerate(config.plans)]

    def run(self) -> SessionResult:
        config = self.config
        table = self.table

        self.ledger.mint(self.house, config.house_bankroll)
        table.deposit(self.house, config.house_bankroll)

        results = []
        for plan, player in zip(config.plans, self.players):
            self.ledger.mint(player, config.starting_bankroll)
            results.append(PlayerResult(plan.name, config.starting_bankroll, config.starting_bankroll))

        session = SessionResult(epochs=config.epochs, players=results)
        session.treasury_series.append(table.treasury.balance)

        point_is_new = False
        shooter_is_new = True
        for _ in range(config.epochs):
            epoch = table.start_betting_phase(self.house)
            for plan, player, result in zip(config.plans, self.players, results):
                wagers = plan.wagers_for(table.phase, point_is_new, shooter_is_new)
                self._place_plan(player, wagers, result)

            outcome = self._roll()
            table.settle_bets(epoch)
            for player, result in zip(self.players, results):
                self._collect(player, result, session)
            self._cleanup()

            roll = outcome.roll
            session.rolls.append((roll.die1, roll.die2))
            session.roll_distribution[roll.total] += 1
            session.face_counts[roll.die1] += 1
            session.face_counts[roll.die2] += 1
            session.treasury_series.append(table.treasury.balance)

            point_is_new = outcome.game_phase == GamePhase.COME_OUT and table.phase == GamePhase.POINT
            shooter_is_new = False
            if outcome.game_phase == GamePhase.POINT:
                if roll.total == outcome.point:
                    session.points_made += 1
                elif roll.total == 7:
                    session.seven_outs += 1
                    shooter_is_new = True

        for player, result in zip(self.players, results):
            result.final_bankroll = self.ledger.balance_of(player)
        logger.info("Session finished after %d epochs, house net %d", config.epochs, session.house_net)
        return session

    def _place_plan(self, player: bytes, wagers: list[Wager], result: PlayerResult) -> None:
        slots: dict[BetType, int] = {}
        for wager in wagers:
            if self.ledger.balance_of(player) < wager.amount:
                result.wagers_rejected += 1
                continue
            base = LINKED_ODDS.get(wager.bet_type)
            try:
                slot = self.table.place_bet(player, wager.bet_type, wager.amount,
                                            linked_slot=slots.get(base) if base is not None else None)
            except CrapsError as e:
                logger.debug("%s could not place %s: %s", result.name, wager.bet_type.label, e)
                result.wagers_rejected += 1
                continue
            slots[wager.bet_type] = slot
            result.wagers_placed += 1
            result.wagered += wager.amount

    def _roll(self):
        table = self.table
        config = self.config.table
        self.clock.advance(config.betting_window_slots + config.jitter_slots)
        table.begin_collection(self.house)
        for _ in range(config.required_entropy_sources):
            self.clock.advance()
            table.collect_entropy(self.house)
        return table.finalize_rng(self.house)

    def _collect(self, player: bytes, result: PlayerResult, session: SessionResult) -> None:
        try:
            result.collected += self.table.claim_all(player)
        except NothingToClaim:
            pass
        except CircuitBreakerError as e:
            logger.warning("%s claim held by circuit breaker: %s", result.name, e)
            session.rejected_claims += 1

    def _cleanup(self) -> None:
        table = self.table
        for player in self.players:
            for batch in table.player_batches(player):
                if batch.is_cleanable(table.epoch, table.config.retention_epochs):
                    table.cleanup_batch(player, batch.epoch)
