import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Sequence

from loguru import logger

from .amounts import checked_add, percent_of, require_positive
from .constants import (
    LEVEL_UP_MAX_HOPS,
    LEVEL_UP_START_PERCENT,
    PERIODIC_REWARD_DIVISOR,
    PERIODIC_REWARD_INTERVAL,
    REFERRAL_REWARD_PERCENT,
)
from .errors import (
    InsufficientPoolBalance,
    ReentrantCallError,
    TransferFailure,
    UnknownIdentityError,
    ValidationError,
)
from .models import (
    BatchTransferReport,
    EventType,
    GroupResult,
    LedgerEvent,
    PeriodicRewardReport,
    PeriodicSkip,
    PoolResponse,
    ReferralTreeResponse,
    SignupResponse,
    Transaction,
    TransactionHistoryResponse,
    TransactionKind,
    UserSummary,
)
from .ports import LoggingNotifier, Move, NotificationPort, ValueTransferPort, execute_moves
from .registry import UserRecord
from .store import LedgerStore


def wall_clock() -> int:
    return int(time.time())


@dataclass(frozen=True)
class RewardPayout:
    recipient: str
    amount: int
    kind: TransactionKind
    hop: Optional[int] = None


@dataclass
class SignupPlan:
    identity: str
    name: str
    referrer: str
    amount: int
    timestamp: int
    payouts: list[RewardPayout] = field(default_factory=list)

    @property
    def reward_total(self) -> int:
        total = 0
        for payout in self.payouts:
            total = checked_add(total, payout.amount)
        return total


class RewardEngine:
    """
    Orchestrates signup, staking and the three reward algorithms.

    Every mutating method runs under one exclusive guard. Events are handed
    to the notifier only after the guard is released, so a notifier may call
    back into the engine.
    """

    def __init__(
        self,
        transfer: ValueTransferPort,
        root: str = "root",
        root_name: str = "root",
        owner: Optional[str] = None,
        notifier: Optional[NotificationPort] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.transfer = transfer
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock or wall_clock
        self.root = root
        self.owner = owner or root
        self.store = LedgerStore(transfer)

        self._lock = threading.Lock()
        self._holder: Optional[int] = None

        self.store.registry.register(root, root_name, self.clock())

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if self._holder == threading.get_ident():
            raise ReentrantCallError("A ledger operation is already in progress on this thread")
        with self._lock:
            self._holder = threading.get_ident()
            try:
                yield
            finally:
                self._holder = None

    def _now(self, now: Optional[int]) -> int:
        return self.clock() if now is None else now

    def _publish(self, events: list[LedgerEvent]) -> None:
        for event in events:
            self.notifier.notify(event)

    # Signup

    def signup(
        self, identity: str, name: str, referrer: str, amount: int, now: Optional[int] = None,
    ) -> SignupResponse:
        with self._exclusive():
            plan = self._plan_signup(identity, name, referrer, amount, self._now(now))

            moves = [Move("pull", plan.identity, plan.amount)]
            moves += [Move("push", p.recipient, p.amount) for p in plan.payouts]
            if not execute_moves(self.transfer, moves):
                raise TransferFailure(f"Signup transfers for {identity} failed; nothing was recorded")

            rewards = self._commit_signup(plan)

        events = [
            LedgerEvent(type=EventType.REGISTERED, user=identity, timestamp=plan.timestamp,
                        metadata={"referrer": referrer, "name": name}),
            LedgerEvent(type=EventType.STAKED, user=identity, amount=amount, timestamp=plan.timestamp),
        ]
        events += [LedgerEvent.for_transaction(tx, source=identity) for tx in rewards]
        self._publish(events)

        return SignupResponse(
            user=self.user(identity),
            rewards=rewards,
            message=f"Registered with {len(rewards)} reward payment(s)",
        )

    def _plan_signup(self, identity: str, name: str, referrer: str, amount: int, timestamp: int) -> SignupPlan:
        store = self.store
        if not identity:
            raise ValidationError("Identity must be a non-empty string")
        if store.registry.exists(identity):
            raise ValidationError(f"Identity {identity} is already registered")
        store.graph.check_edge(referrer, identity)
        store.ledger.check_deposit(amount)

        plan = SignupPlan(identity=identity, name=name, referrer=referrer, amount=amount, timestamp=timestamp)

        if referrer != self.root:
            reward = percent_of(amount, REFERRAL_REWARD_PERCENT)
            if reward:
                plan.payouts.append(RewardPayout(referrer, reward, TransactionKind.REFERRAL_REWARD))

        plan.payouts += self._level_up_payouts(referrer, amount)

        required = plan.reward_total
        available = self.transfer.balance()
        if required > available:
            logger.bind(identity=identity, required=required, available=available) \
                .warning("Signup rejected, pool cannot fund rewards")
            raise InsufficientPoolBalance(required, available, "Pool cannot fund signup rewards")
        return plan

    def _level_up_payouts(self, referrer: str, amount: int) -> list[RewardPayout]:
        # The exclusion target stays the new user's direct referrer at every hop.
        payouts = []
        for ancestor, hop in self.store.graph.lineage(referrer, LEVEL_UP_MAX_HOPS):
            percent = LEVEL_UP_START_PERCENT - hop
            if percent <= 0:
                break
            if ancestor == self.root or ancestor == referrer:
                logger.bind(ancestor=ancestor, hop=hop).debug("Level-up hop excluded")
                continue
            reward = percent_of(amount, percent)
            if reward:
                payouts.append(RewardPayout(ancestor, reward, TransactionKind.LEVEL_UP_REWARD, hop))
        return payouts

    def _commit_signup(self, plan: SignupPlan) -> list[Transaction]:
        store = self.store
        store.registry.register(plan.identity, plan.name, plan.timestamp)
        store.graph.add_edge(plan.referrer, plan.identity)
        store.ledger.record_deposit(plan.identity, plan.amount, plan.timestamp)

        rewards = [
            store.log.append(p.recipient, Transaction(
                kind=p.kind, user=p.recipient, amount=p.amount, timestamp=plan.timestamp,
            ))
            for p in plan.payouts
        ]
        logger.bind(
            identity=plan.identity, referrer=plan.referrer, amount=plan.amount,
            rewards=len(rewards), reward_total=plan.reward_total,
        ).info("Signup committed")
        return rewards

    # Staking and administration

    def stake(self, identity: str, amount: int, now: Optional[int] = None) -> Transaction:
        with self._exclusive():
            tx = self.store.ledger.deposit(identity, amount, self._now(now))
        self._publish([LedgerEvent.for_transaction(tx)])
        return tx

    def withdraw_pool(self, recipient: str, amount: int) -> int:
        with self._exclusive():
            return self.store.ledger.admin_payout(recipient, amount)

    def transfer_ownership(self, new_owner: str, now: Optional[int] = None) -> str:
        with self._exclusive():
            if not new_owner:
                raise ValidationError("New owner must be a non-empty string")
            if new_owner == self.owner:
                raise ValidationError(f"{new_owner} already owns the ledger")
            previous, self.owner = self.owner, new_owner
            timestamp = self._now(now)
        logger.bind(previous=previous, owner=new_owner).info("Ownership transferred")
        self._publish([LedgerEvent(
            type=EventType.OWNERSHIP_TRANSFERRED, user=new_owner, timestamp=timestamp,
            metadata={"previous_owner": previous},
        )])
        return previous

    def batch_transfer(self, groups: Sequence[Sequence[tuple[str, int]]]) -> BatchTransferReport:
        """
        Pay each group of ``(recipient, amount)`` pairs all-or-nothing.

        A group is paid only if both the pool balance and ``total_staked``
        cover its total; a group that cannot be paid is reported and the
        remaining groups still run. Malformed amounts reject the whole batch
        before anything moves.
        """
        for group in groups:
            for _, amount in group:
                require_positive(amount)

        ledger = self.store.ledger
        results: list[GroupResult] = []
        total_paid = 0
        with self._exclusive():
            for index, group in enumerate(groups):
                total = 0
                for _, amount in group:
                    total = checked_add(total, amount)

                available = self.transfer.balance()
                reason = None
                if total > available:
                    reason = f"pool balance {available} cannot cover {total}"
                elif total > ledger.total_staked:
                    reason = f"total staked {ledger.total_staked} cannot cover {total}"
                elif not execute_moves(self.transfer, [Move("push", r, a) for r, a in group]):
                    reason = "transfer refused"

                if reason:
                    logger.bind(group=index, total=total, reason=reason).warning("Batch group not paid")
                    results.append(GroupResult(index=index, total=total, paid=False, reason=reason))
                    continue

                for recipient, amount in group:
                    ledger.record_payout(recipient, amount)
                total_paid += total
                results.append(GroupResult(index=index, total=total, paid=True))

        return BatchTransferReport(groups=results, total_paid=total_paid)

    # Periodic staking reward

    def distribute_periodic_rewards(self, now: Optional[int] = None) -> PeriodicRewardReport:
        """
        Pay the periodic staking reward to root's direct referrals.

        Only the first generation is scanned. The budget is read from the pool
        once per batch. A user whose reward exceeds what is left, or whose
        transfer is refused, is skipped and the batch carries on. Events for
        users already paid are published even if the port raises mid-batch.
        """
        store = self.store
        events: list[LedgerEvent] = []
        try:
            with self._exclusive():
                timestamp = self._now(now)
                budget = self.transfer.balance()
                report = PeriodicRewardReport(timestamp=timestamp, remaining_budget=budget)

                for child in store.graph.direct_children(self.root):
                    record = store.registry.record(child)
                    if not self._periodic_eligible(record, timestamp):
                        continue

                    reward = record.staked_amount // PERIODIC_REWARD_DIVISOR
                    if reward == 0:
                        continue
                    if reward > budget:
                        logger.bind(user=child, reward=reward, available=budget) \
                            .warning("Periodic reward skipped, budget exhausted")
                        report.skipped.append(PeriodicSkip(user=child, reward=reward, available=budget))
                        continue
                    if not self.transfer.push(child, reward):
                        logger.bind(user=child, reward=reward).warning("Periodic reward skipped, transfer refused")
                        report.skipped.append(PeriodicSkip(
                            user=child, reward=reward, available=budget, reason="transfer refused",
                        ))
                        continue

                    store.registry.advance_reward_timestamp(child, timestamp)
                    budget -= reward
                    tx = store.log.append(child, Transaction(
                        kind=TransactionKind.PERIODIC_REWARD, user=child, amount=reward, timestamp=timestamp,
                    ))
                    report.paid.append(tx)
                    events.append(LedgerEvent.for_transaction(tx))

                report.remaining_budget = budget
        finally:
            self._publish(events)

        logger.bind(paid=len(report.paid), skipped=len(report.skipped), remaining_budget=budget) \
            .info("Periodic reward batch finished")
        return report

    @staticmethod
    def _periodic_eligible(record: UserRecord, now: int) -> bool:
        return (
            now >= record.signup_timestamp + PERIODIC_REWARD_INTERVAL
            and now >= record.last_reward_timestamp + PERIODIC_REWARD_INTERVAL
            and record.staked_amount > 0
        )

    # Read queries

    def user_exists(self, identity: str) -> bool:
        return self.store.registry.exists(identity)

    def user(self, identity: str) -> UserSummary:
        store = self.store
        record = store.registry.record(identity)
        return UserSummary(
            identity=record.identity,
            name=record.name,
            referrer=store.graph.referrer_of(identity),
            signup_timestamp=record.signup_timestamp,
            last_reward_timestamp=record.last_reward_timestamp,
            staked_amount=record.staked_amount,
            referrals=store.graph.direct_children(identity),
        )

    def referral_tree(self, identity: str) -> ReferralTreeResponse:
        layers = self.store.graph.level_order(identity)
        return ReferralTreeResponse(
            identity=identity, layers=layers, total_descendants=sum(len(layer) for layer in layers),
        )

    def transactions(self, identity: str) -> TransactionHistoryResponse:
        if not self.store.registry.exists(identity):
            raise UnknownIdentityError(f"Identity {identity} is not registered")
        history = list(self.store.log.history(identity))
        return TransactionHistoryResponse(identity=identity, transactions=history, total_count=len(history))

    def pool_balance(self) -> int:
        return self.store.ledger.pool_balance()

    def pool(self) -> PoolResponse:
        ledger = self.store.ledger
        return PoolResponse(
            balance=ledger.pool_balance(),
            total_staked=ledger.total_staked,
            administrative_outflow=ledger.administrative_outflow,
        )

    def ledger_consistent(self) -> bool:
        return self.store.ledger.consistent()
