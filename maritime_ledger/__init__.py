# maritime_ledger/__init__.py
"""
Maritime Ledger — vessel and sailor identity registries plus an append-only,
owner-gated voyage log.

Logbook-style record keeping: every voyage is written by the vessel's recorded
owner, references registered identities and is never rewritten.
"""

from maritime_ledger.core.errors import Denied, InvalidPrincipal, LedgerError, NotFound
from maritime_ledger.core.types import Event, Identity, VoyageEntry
from maritime_ledger.system import MaritimeLedger

__version__ = "0.1.0.dev0"

__all__ = [
    "MaritimeLedger",
    "Identity",
    "VoyageEntry",
    "Event",
    "LedgerError",
    "InvalidPrincipal",
    "NotFound",
    "Denied",
]
