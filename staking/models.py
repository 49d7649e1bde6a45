from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TransactionKind(str, Enum):
    STAKE = "STAKE"
    PERIODIC_REWARD = "PERIODIC_REWARD"
    LEVEL_UP_REWARD = "LEVEL_UP_REWARD"
    REFERRAL_REWARD = "REFERRAL_REWARD"


class EventType(str, Enum):
    REGISTERED = "REGISTERED"
    STAKED = "STAKED"
    REFERRAL_REWARD = "REFERRAL_REWARD"
    LEVEL_UP_REWARD = "LEVEL_UP_REWARD"
    PERIODIC_REWARD = "PERIODIC_REWARD"
    OWNERSHIP_TRANSFERRED = "OWNERSHIP_TRANSFERRED"


REWARD_EVENTS = {
    TransactionKind.STAKE: EventType.STAKED,
    TransactionKind.REFERRAL_REWARD: EventType.REFERRAL_REWARD,
    TransactionKind.LEVEL_UP_REWARD: EventType.LEVEL_UP_REWARD,
    TransactionKind.PERIODIC_REWARD: EventType.PERIODIC_REWARD,
}


class Transaction(BaseModel):
    kind: TransactionKind
    user: str
    amount: int = Field(..., ge=0)
    timestamp: int

    model_config = ConfigDict(frozen=True)


class LedgerEvent(BaseModel):
    type: EventType
    user: str
    amount: Optional[int] = None
    timestamp: int
    metadata: dict = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def for_transaction(cls, tx: Transaction, **metadata) -> "LedgerEvent":
        return cls(
            type=REWARD_EVENTS[tx.kind], user=tx.user, amount=tx.amount,
            timestamp=tx.timestamp, metadata=metadata,
        )


class SignupRequest(BaseModel):
    identity: str = Field(..., min_length=1)
    name: str = Field(default="")
    referrer: str = Field(..., min_length=1, description="Registered identity that referred this user")
    amount: int = Field(..., gt=0, description="Initial stake in the asset's smallest unit")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "identity": "0xB0b",
            "name": "Bob",
            "referrer": "0xA11ce",
            "amount": 1000,
        }
    })


class StakeRequest(BaseModel):
    amount: int = Field(..., gt=0)


class PayoutRequest(BaseModel):
    recipient: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)


class TransferItem(BaseModel):
    recipient: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)


class BatchTransferRequest(BaseModel):
    groups: list[list[TransferItem]] = Field(..., description="Each group is paid all-or-nothing")


class OwnershipRequest(BaseModel):
    new_owner: str = Field(..., min_length=1)


class PeriodicRewardRequest(BaseModel):
    now: Optional[int] = Field(default=None, description="Batch timestamp; defaults to the engine clock")


class UserSummary(BaseModel):
    identity: str
    name: str
    referrer: Optional[str] = None
    signup_timestamp: int
    last_reward_timestamp: int
    staked_amount: int
    referrals: list[str] = Field(default_factory=list)


class SignupResponse(BaseModel):
    user: UserSummary
    rewards: list[Transaction]
    message: str


class ReferralTreeResponse(BaseModel):
    identity: str
    layers: list[list[str]]
    total_descendants: int


class TransactionHistoryResponse(BaseModel):
    identity: str
    transactions: list[Transaction]
    total_count: int


class PeriodicSkip(BaseModel):
    user: str
    reward: int
    available: int
    reason: str = "insufficient budget"


class PeriodicRewardReport(BaseModel):
    timestamp: int
    paid: list[Transaction] = Field(default_factory=list)
    skipped: list[PeriodicSkip] = Field(default_factory=list)
    remaining_budget: int


class GroupResult(BaseModel):
    index: int
    total: int
    paid: bool
    reason: Optional[str] = None


class BatchTransferReport(BaseModel):
    groups: list[GroupResult]
    total_paid: int


class PoolResponse(BaseModel):
    balance: int
    total_staked: int
    administrative_outflow: int
