from dataclasses import dataclass
from typing import Iterator

from loguru import logger

from .errors import UnknownIdentityError, ValidationError


@dataclass
class UserRecord:
    identity: str
    name: str
    signup_timestamp: int
    last_reward_timestamp: int
    staked_amount: int = 0


class IdentityRegistry:
    """
    Arena of user records.

    Each identity gets a stable integer slot on registration; other components
    (the referral graph in particular) index their own tables by that slot.
    """

    def __init__(self):
        self._records: list[UserRecord] = []
        self._slots: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[UserRecord]:
        return iter(self._records)

    def register(self, identity: str, name: str, timestamp: int) -> int:
        if not identity:
            raise ValidationError("Identity must be a non-empty string")
        if identity in self._slots:
            raise ValidationError(f"Identity {identity} is already registered")

        slot = len(self._records)
        self._records.append(UserRecord(
            identity=identity, name=name,
            signup_timestamp=timestamp, last_reward_timestamp=timestamp,
        ))
        self._slots[identity] = slot
        logger.bind(identity=identity, slot=slot).debug("Identity registered")
        return slot

    def exists(self, identity: str) -> bool:
        return identity in self._slots

    def slot_of(self, identity: str) -> int:
        try:
            return self._slots[identity]
        except KeyError:
            raise UnknownIdentityError(f"Identity {identity} is not registered") from None

    def identity_at(self, slot: int) -> str:
        return self._records[slot].identity

    def record(self, identity: str) -> UserRecord:
        return self._records[self.slot_of(identity)]

    def advance_reward_timestamp(self, identity: str, timestamp: int) -> None:
        record = self.record(identity)
        if timestamp < record.last_reward_timestamp:
            raise ValidationError(
                f"Reward timestamp for {identity} cannot move backwards "
                f"({timestamp} < {record.last_reward_timestamp})"
            )
        record.last_reward_timestamp = timestamp
