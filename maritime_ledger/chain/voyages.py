# maritime_ledger/chain/voyages.py
import logging
import threading
from typing import Dict, List, Optional, Tuple

from maritime_ledger.core.errors import Denied, NotFound
from maritime_ledger.core.principal import validate_principal
from maritime_ledger.core.types import VOYAGE_LOGGED, VoyageEntry
from maritime_ledger.chain.events import EventLog
from maritime_ledger.chain.gate import authorize
from maritime_ledger.registry.identity import IdentityRegistry
from maritime_ledger.storage import StorageBackend, atomic

logger = logging.getLogger(__name__)

# largest value an SQLite INTEGER column holds
MAX_TIMESTAMP = 2**63 - 1


class VoyageLedger:
    """
    Append-only voyage log, partitioned by vessel id.

    Appends to one vessel are serialized by that vessel's lock; appends to
    different vessels do not wait on each other. Each vessel's history is an
    immutable tuple replaced in one assignment, so readers never lock and
    always see a complete prefix of the append order.
    """

    def __init__(
        self,
        vessels: IdentityRegistry,
        sailors: IdentityRegistry,
        events: Optional[EventLog] = None,
        storage: Optional[StorageBackend] = None,
    ):
        self.vessels = vessels
        self.sailors = sailors
        self.events = events
        self.storage = storage
        self._history: Dict[int, Tuple[VoyageEntry, ...]] = {}
        self._locks: Dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

        if self.storage is not None:
            loaded = self.storage.load_voyages()
            for entry in loaded:
                self._history[entry.vessel_id] = self._history.get(entry.vessel_id, ()) + (entry,)
            if loaded:
                logger.info("[maritime-ledger] Loaded %d voyages for %d vessels from storage",
                            len(loaded), len(self._history))

    def _vessel_lock(self, vessel_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(vessel_id)
            if lock is None:
                lock = self._locks[vessel_id] = threading.Lock()
            return lock

    def log_voyage(
        self,
        caller: str,
        vessel_id: int,
        sailor_id: int,
        evidence_ref: str,
        description: str,
        timestamp: int,
    ) -> VoyageEntry:
        """
        Append a voyage to `vessel_id`'s history on behalf of `caller`.

        Checks run in order and the first failure wins: vessel exists, sailor
        exists, caller owns the vessel. `timestamp` is stored exactly as given;
        the ledger does not compare it with its own clock, so callers can
        record any date.

        Returns the committed entry with its position in the vessel history.
        """
        validate_principal(caller)
        if isinstance(timestamp, bool) or not isinstance(timestamp, int):
            raise ValueError(f"timestamp must be integer seconds since epoch, got {timestamp!r}")
        if timestamp < 0:
            raise ValueError(f"timestamp must not be negative, got {timestamp}")
        if timestamp > MAX_TIMESTAMP:
            raise ValueError(f"timestamp must not exceed {MAX_TIMESTAMP}, got {timestamp}")
        if not isinstance(evidence_ref, str) or not isinstance(description, str):
            raise TypeError("evidence_ref and description must be strings")

        self.vessels.get(vessel_id)

        event = None
        with self._vessel_lock(vessel_id):
            # re-checked under the lock so ownership is read at write time
            self.sailors.get(sailor_id)
            try:
                authorize(caller, vessel_id, self.vessels)
            except Denied:
                logger.warning("[maritime-ledger] Denied voyage on vessel #%d for %s", vessel_id, caller)
                raise

            history = self._history.get(vessel_id, ())
            entry = VoyageEntry(
                vessel_id=vessel_id,
                sailor_id=sailor_id,
                evidence_ref=evidence_ref,
                description=description,
                timestamp=timestamp,
                sequence=len(history),
            )
            with atomic(self.storage):
                if self.storage is not None:
                    self.storage.save_voyage(entry)
                if self.events is not None:
                    event = self.events.record(VOYAGE_LOGGED, {
                        "vessel_id": entry.vessel_id,
                        "sailor_id": entry.sailor_id,
                        "timestamp": entry.timestamp,
                        "evidence_ref": entry.evidence_ref,
                    })
            self._history[vessel_id] = history + (entry,)

        if event is not None:
            self.events.publish(event)
        logger.info("[maritime-ledger] Voyage #%d logged for vessel #%d (sailor #%d)",
                    entry.sequence, vessel_id, sailor_id)
        return entry

    def get_vessel_history(self, vessel_id: int, strict: bool = False) -> Tuple[VoyageEntry, ...]:
        """
        All entries for `vessel_id`, oldest first, in append order.

        An unknown vessel reads as an empty history unless `strict` is set,
        in which case NotFound is raised.
        """
        if strict and not self.vessels.exists(vessel_id):
            raise NotFound(self.vessels.kind, vessel_id)
        try:
            return self._history.get(vessel_id, ())
        except TypeError:
            # unhashable id, cannot have been issued
            return ()

    def count(self, vessel_id: int) -> int:
        return len(self.get_vessel_history(vessel_id))

    def vessel_ids(self) -> List[int]:
        """Vessels with at least one committed voyage, ascending."""
        return sorted(self._history)
