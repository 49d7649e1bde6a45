import pytest

from staking.engine import RewardEngine
from staking.ports import InMemoryValueTransfer


DAY = 24 * 60 * 60
HOUR = 60 * 60
START = 1_700_000_000
ROOT = "R"


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify(self, event):
        self.events.append(event)

    @property
    def types(self):
        return [e.type for e in self.events]


class RefusingTransfer(InMemoryValueTransfer):
    """Pool that refuses pushes to the identities listed in ``refuse``."""

    def __init__(self, *args, refuse=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.refuse = set(refuse)

    def push(self, target, amount):
        if target in self.refuse:
            return False
        return super().push(target, amount)


@pytest.fixture
def pool():
    return InMemoryValueTransfer(pool_balance=0)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def engine(pool, notifier):
    return RewardEngine(pool, root=ROOT, root_name="Root", notifier=notifier, clock=lambda: START)


class CallbackTransfer(InMemoryValueTransfer):
    """Pool that runs ``callbacks[target]()`` before pushing to ``target``."""

    def __init__(self, *args, callbacks=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.callbacks = callbacks or {}

    def push(self, target, amount):
        if target in self.callbacks:
            self.callbacks[target]()
        return super().push(target, amount)
