# Craps Engine Package
from .codec import AmountTable, AmountTier, decode_amount, decode_bet, encode_amount, encode_bet
from .constants import BetType
from .dice import DiceRoll, GamePhase
from .payouts import BetResult, BetStatus, calculate_bet_payout
from .batch import BetBatch
from .treasury import Treasury, TreasuryGuard, TreasuryLimits
from .config import TableConfig
from .table import CrapsTable, EmergencyKind
from .collaborators import AuthorityKind, AuthoritySet, InMemoryTokenLedger, ManualClock, account_id
