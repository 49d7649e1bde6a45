from loguru import logger

from .amounts import checked_add, checked_sub, require_positive
from .errors import InsufficientPoolBalance, TransferFailure
from .models import Transaction, TransactionKind
from .ports import ValueTransferPort
from .registry import IdentityRegistry
from .txlog import TransactionLog


class StakeLedger:
    """
    Per-user staked balances and their aggregate.

    ``total_staked`` tracks deposits minus administrative payouts, so
    ``total_staked + administrative_outflow`` always equals the sum of the
    per-user balances.
    """

    def __init__(self, registry: IdentityRegistry, log: TransactionLog, transfer: ValueTransferPort):
        self._registry = registry
        self._log = log
        self._transfer = transfer
        self.total_staked = 0
        self.administrative_outflow = 0

    def staked_of(self, user: str) -> int:
        return self._registry.record(user).staked_amount

    def check_deposit(self, amount: int, current: int = 0) -> None:
        require_positive(amount)
        checked_add(current, amount)
        checked_add(self.total_staked, amount)

    def deposit(self, user: str, amount: int, timestamp: int) -> Transaction:
        record = self._registry.record(user)
        self.check_deposit(amount, record.staked_amount)

        if not self._transfer.pull(user, amount):
            raise TransferFailure(f"Could not pull {amount} from {user} into the pool")
        return self.record_deposit(user, amount, timestamp)

    def record_deposit(self, user: str, amount: int, timestamp: int) -> Transaction:
        """Book a deposit whose funds are already in the pool."""
        record = self._registry.record(user)
        record.staked_amount = checked_add(record.staked_amount, amount)
        self.total_staked = checked_add(self.total_staked, amount)

        tx = self._log.append(user, Transaction(
            kind=TransactionKind.STAKE, user=user, amount=amount, timestamp=timestamp,
        ))
        logger.bind(user=user, amount=amount, staked=record.staked_amount, total_staked=self.total_staked) \
            .info("Stake recorded")
        return tx

    def check_payout(self, amount: int) -> None:
        if amount > self.total_staked:
            raise InsufficientPoolBalance(amount, self.total_staked, "Total staked cannot cover payout")

    def admin_payout(self, recipient: str, amount: int) -> int:
        """
        Push ``amount`` out of the pool to ``recipient``.

        The recipient's own stake is not consulted or changed; only
        ``total_staked`` is reduced. Returns the new ``total_staked``.
        """
        require_positive(amount)
        self.check_payout(amount)

        if not self._transfer.push(recipient, amount):
            raise TransferFailure(f"Could not push {amount} to {recipient}")
        return self.record_payout(recipient, amount)

    def record_payout(self, recipient: str, amount: int) -> int:
        self.total_staked = checked_sub(self.total_staked, amount)
        self.administrative_outflow = checked_add(self.administrative_outflow, amount)
        logger.bind(recipient=recipient, amount=amount, total_staked=self.total_staked) \
            .info("Administrative payout")
        return self.total_staked

    def pool_balance(self) -> int:
        return self._transfer.balance()

    def consistent(self) -> bool:
        staked = sum(record.staked_amount for record in self._registry)
        return self.total_staked >= 0 and self.total_staked + self.administrative_outflow == staked
