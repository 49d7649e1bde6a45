"""
Custodial Staking Ledger with Referral Rewards

This module provides:
- Identity registry and referral forest with iterative traversals
- Staked-balance ledger backed by an external value-transfer port
- Append-only per-user transaction history
- Reward engine: direct referral, multi-hop level-up and periodic staking rewards
- All-or-nothing signup and per-group administrative transfers
"""

from .engine import RewardEngine
from .errors import (
    InsufficientPoolBalance,
    ReentrantCallError,
    StakingError,
    TransferFailure,
    UnknownIdentityError,
    ValidationError,
)
from .models import EventType, LedgerEvent, Transaction, TransactionKind
from .ports import InMemoryValueTransfer, LoggingNotifier, NotificationPort, ValueTransferPort

__all__ = [
    "RewardEngine",
    "StakingError",
    "ValidationError",
    "UnknownIdentityError",
    "InsufficientPoolBalance",
    "TransferFailure",
    "ReentrantCallError",
    "Transaction",
    "TransactionKind",
    "EventType",
    "LedgerEvent",
    "ValueTransferPort",
    "NotificationPort",
    "InMemoryValueTransfer",
    "LoggingNotifier",
]
