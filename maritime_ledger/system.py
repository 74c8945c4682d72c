# maritime_ledger/system.py
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple, Union

from maritime_ledger.core.types import (
    SAILOR_REGISTERED,
    VESSEL_REGISTERED,
    Event,
    Identity,
    VoyageEntry,
)
from maritime_ledger.chain.events import EventLog, Listener
from maritime_ledger.chain.voyages import VoyageLedger
from maritime_ledger.registry.identity import IdentityRegistry
from maritime_ledger.storage import StorageBackend, create_storage
from maritime_ledger.verify.verifier import LedgerSnapshot

logger = logging.getLogger(__name__)


@dataclass
class MaritimeLedger:
    """
    The whole ledger: vessel registry, sailor registry, voyage log and their events.

    Built in dependency order (storage, event log, registries, then the voyage
    ledger that holds both registries). Supports optional persistent storage;
    previously recorded state is loaded on construction.
    """
    storage: Optional[Union[StorageBackend, str]] = None
    events: EventLog = field(init=False)
    vessels: IdentityRegistry = field(init=False)
    sailors: IdentityRegistry = field(init=False)
    voyages: VoyageLedger = field(init=False)

    def __post_init__(self):
        if isinstance(self.storage, str):
            stripped = self.storage.strip()
            if stripped.startswith("sqlite://"):
                self.storage = create_storage(stripped)
            elif stripped:
                # plain file path, e.g. storage="ledger.db"
                self.storage = create_storage(f"sqlite://{stripped}")
            else:
                self.storage = None

        self.events = EventLog(storage=self.storage)
        self.vessels = IdentityRegistry("vessel", VESSEL_REGISTERED, events=self.events, storage=self.storage)
        self.sailors = IdentityRegistry("sailor", SAILOR_REGISTERED, events=self.events, storage=self.storage)
        self.voyages = VoyageLedger(self.vessels, self.sailors, events=self.events, storage=self.storage)

    def create_vessel(self, owner: str, metadata_ref: str) -> Identity:
        return self.vessels.create(owner, metadata_ref)

    def create_sailor(self, owner: str, metadata_ref: str) -> Identity:
        return self.sailors.create(owner, metadata_ref)

    def get_vessel(self, vessel_id: int) -> Identity:
        return self.vessels.get(vessel_id)

    def get_sailor(self, sailor_id: int) -> Identity:
        return self.sailors.get(sailor_id)

    def log_voyage(
        self,
        caller: str,
        vessel_id: int,
        sailor_id: int,
        evidence_ref: str,
        description: str,
        timestamp: int,
    ) -> VoyageEntry:
        return self.voyages.log_voyage(caller, vessel_id, sailor_id, evidence_ref, description, timestamp)

    def get_vessel_history(self, vessel_id: int, strict: bool = False) -> Tuple[VoyageEntry, ...]:
        return self.voyages.get_vessel_history(vessel_id, strict=strict)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.events.subscribe(listener)

    def query_events(self, name: Optional[str] = None, since: int = 0) -> Tuple[Event, ...]:
        return self.events.events(name=name, since=since)

    def snapshot(self) -> LedgerSnapshot:
        """Point-in-time copy of every record, voyages grouped by vessel."""
        events = self.events.events()
        voyages = [e for vid in self.voyages.vessel_ids() for e in self.voyages.get_vessel_history(vid)]
        return LedgerSnapshot(
            vessels=self.vessels.list(),
            sailors=self.sailors.list(),
            voyages=voyages,
            events=events,
        )

    def close(self) -> None:
        """Release storage resources (e.g. the database connection)."""
        if self.storage is not None:
            self.storage.close()
            logger.info("[maritime-ledger] Storage closed")
            self.storage = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
