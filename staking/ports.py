"""
Collaborator interfaces.

``ValueTransferPort`` moves the underlying asset between a wallet and the pool.
``NotificationPort`` receives ledger events after they are committed.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from loguru import logger

from .models import LedgerEvent


class ValueTransferPort(Protocol):
    def pull(self, source: str, amount: int) -> bool:
        ...

    def push(self, target: str, amount: int) -> bool:
        ...

    def balance(self) -> int:
        ...


class NotificationPort(Protocol):
    def notify(self, event: LedgerEvent) -> None:
        ...


class InMemoryValueTransfer:
    """
    Pool custody held in process memory.

    When ``wallets`` is given, pulls are limited to each wallet's balance and
    pushes credit the recipient's wallet. Without it, external wallets are not
    metered and only the pool side is tracked.
    """

    def __init__(self, pool_balance: int = 0, wallets: Optional[dict[str, int]] = None):
        self.pool_balance = pool_balance
        self.wallets = wallets

    def pull(self, source: str, amount: int) -> bool:
        if self.wallets is not None:
            if self.wallets.get(source, 0) < amount:
                return False
            self.wallets[source] -= amount
        self.pool_balance += amount
        return True

    def push(self, target: str, amount: int) -> bool:
        if self.pool_balance < amount:
            return False
        self.pool_balance -= amount
        if self.wallets is not None:
            self.wallets[target] = self.wallets.get(target, 0) + amount
        return True

    def balance(self) -> int:
        return self.pool_balance


class LoggingNotifier:
    def notify(self, event: LedgerEvent) -> None:
        logger.bind(**event.model_dump(mode="json")).info("Ledger event")


@dataclass(frozen=True)
class Move:
    """A single pool movement: ``pull`` from or ``push`` to ``counterparty``."""

    direction: str
    counterparty: str
    amount: int


def execute_moves(port: ValueTransferPort, moves: Sequence[Move]) -> bool:
    """
    Run ``moves`` in order against ``port``.

    If any move is refused, the moves already completed are reversed
    (newest first) and ``False`` is returned. If the port raises, the same
    reversal happens before the exception propagates.
    """
    completed: list[Move] = []
    for move in moves:
        try:
            ok = _apply(port, move)
        except Exception:
            logger.bind(direction=move.direction, counterparty=move.counterparty, completed=len(completed)) \
                .exception("Transfer raised, reverting completed moves")
            _revert(port, completed)
            raise
        if not ok:
            logger.bind(
                direction=move.direction, counterparty=move.counterparty,
                amount=move.amount, completed=len(completed),
            ).warning("Transfer refused, reverting completed moves")
            _revert(port, completed)
            return False
        completed.append(move)
    return True


def _apply(port: ValueTransferPort, move: Move) -> bool:
    if move.direction == "pull":
        return port.pull(move.counterparty, move.amount)
    return port.push(move.counterparty, move.amount)


def _revert(port: ValueTransferPort, completed: list[Move]) -> None:
    for move in reversed(completed):
        inverse = Move("push" if move.direction == "pull" else "pull", move.counterparty, move.amount)
        try:
            ok = _apply(port, inverse)
        except Exception:
            logger.bind(direction=inverse.direction, counterparty=move.counterparty, amount=move.amount) \
                .exception("Reverting transfer raised")
            continue
        if not ok:
            logger.bind(direction=inverse.direction, counterparty=move.counterparty, amount=move.amount) \
                .error("Could not revert transfer")
