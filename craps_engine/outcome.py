"""
Record of one finalized roll.

The table keeps the stored outcome to itself and hands callers copies, so a
recorded roll cannot change after it is finalized.
"""
from dataclasses import dataclass

from .dice import DiceRoll, GamePhase
from .layout import FixedRecord, u64, u8


@dataclass
class EpochOutcome(FixedRecord):
    """
    The dice of an epoch and the table state they were rolled in.
    ``phase`` and ``point`` are recorded as they stood before the roll,
    since that is what every wager is judged against.
    """
    epoch: int = u64()
    die1: int = u8()
    die2: int = u8()
    phase: int = u8()
    point: int = u8(pad=4)
    finalized_slot: int = u64()

    @classmethod
    def record(cls, epoch: int, roll: DiceRoll, phase: GamePhase, point: int, slot: int) -> "EpochOutcome":
        return cls(
            epoch=epoch,
            die1=roll.die1,
            die2=roll.die2,
            phase=phase.value,
            point=point or 0,
            finalized_slot=slot,
        )

    @property
    def roll(self) -> DiceRoll:
        return DiceRoll(self.die1, self.die2)

    @property
    def game_phase(self) -> GamePhase:
        return GamePhase(self.phase)

    def __str__(self) -> str:
        where = f"point {self.point}" if self.point else "come-out"
        return f"epoch {self.epoch}: {self.roll} on the {where}"
