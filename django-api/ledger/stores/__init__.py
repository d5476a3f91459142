from ledger.stores.interfaces import ClassListFilters, LedgerStore, NewPayment, NewUserPackage
from ledger.stores.memory_store import InMemoryLedgerStore

__all__ = [
    "ClassListFilters",
    "InMemoryLedgerStore",
    "LedgerStore",
    "NewPayment",
    "NewUserPackage",
]
