"""
Table configuration.
"""
import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Union

from .codec import DEFAULT_TIERS, AmountTable, AmountTier
from .constants import MAX_ENTROPY_SOURCES
from .payouts import PayoutRules
from .treasury import TreasuryLimits


@dataclass
class TableConfig:
    """Configurable rules for one table."""
    required_entropy_sources: int = 10
    betting_window_slots: int = 40
    jitter_slots: int = 8

    # Epochs a fully claimed batch is kept before it may be removed
    retention_epochs: int = 10
    # Epochs an outcome is kept before an admin may remove it
    min_outcome_age: int = 100

    # Field bet payouts (2 and 12 often pay extra)
    field_2_payout: int = 2   # 2:1 on 2
    field_12_payout: int = 2  # 2:1 on 12 (some tables pay 3:1)

    amount_tiers: tuple = DEFAULT_TIERS
    treasury: TreasuryLimits = field(default_factory=TreasuryLimits)

    amount_table: AmountTable = field(init=False, repr=False, compare=False)
    payout_rules: PayoutRules = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not 1 <= self.required_entropy_sources <= MAX_ENTROPY_SOURCES:
            raise ValueError(f"required_entropy_sources must be between 1 and {MAX_ENTROPY_SOURCES}")
        if self.betting_window_slots < 0 or self.jitter_slots < 0:
            raise ValueError("Betting window and jitter cannot be negative")
        if self.retention_epochs < 0 or self.min_outcome_age < 0:
            raise ValueError("Retention windows cannot be negative")
        self.amount_tiers = tuple(self.amount_tiers)
        self.amount_table = AmountTable(self.amount_tiers)
        self.payout_rules = PayoutRules(self.field_2_payout, self.field_12_payout)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TableConfig":
        """Build a config from plain data, as loaded from JSON."""
        known = {f.name for f in fields(cls) if f.init}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown table settings: {', '.join(sorted(unknown))}")

        kwargs = dict(data)
        if "treasury" in kwargs:
            limits = kwargs["treasury"]
            limit_names = {f.name for f in fields(TreasuryLimits)}
            unknown = set(limits) - limit_names
            if unknown:
                raise ValueError(f"Unknown treasury settings: {', '.join(sorted(unknown))}")
            kwargs["treasury"] = TreasuryLimits(**limits)
        if "amount_tiers" in kwargs:
            kwargs["amount_tiers"] = tuple(_tier(t) for t in kwargs["amount_tiers"])
        return cls(**kwargs)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "TableConfig":
        with open(path, encoding="utf-8") as f:
            return cls.from_dict(json.load(f))


def _tier(value: Union[dict, list, tuple]) -> AmountTier:
    if isinstance(value, dict):
        return AmountTier(**value)
    low, high, step = value
    return AmountTier(low, high, step)
