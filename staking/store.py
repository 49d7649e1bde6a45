from .graph import ReferralGraph
from .ports import ValueTransferPort
from .registry import IdentityRegistry
from .stake import StakeLedger
from .txlog import TransactionLog


class LedgerStore:
    """All mutable ledger state, owned by a single ``RewardEngine``."""

    def __init__(self, transfer: ValueTransferPort):
        self.registry = IdentityRegistry()
        self.graph = ReferralGraph(self.registry)
        self.log = TransactionLog()
        self.ledger = StakeLedger(self.registry, self.log, transfer)
