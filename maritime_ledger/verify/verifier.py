# maritime_ledger/verify/verifier.py
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from maritime_ledger.core.errors import InvalidPrincipal
from maritime_ledger.core.principal import validate_principal
from maritime_ledger.core.types import (
    SAILOR_REGISTERED,
    VESSEL_REGISTERED,
    VOYAGE_LOGGED,
    Event,
    Identity,
    VoyageEntry,
)
from maritime_ledger.storage import StorageBackend


@dataclass
class VerificationFailure:
    index: int
    message: str
    category: str = "general"  # "identity_sequence", "reference", "sequence", "event", "storage"


@dataclass
class VerificationResult:
    is_valid: bool
    message: str = ""
    failures: List[VerificationFailure] = field(default_factory=list)

    @property
    def first_failure(self) -> Optional[VerificationFailure]:
        return self.failures[0] if self.failures else None

    def fail(self, index: int, message: str, category: str) -> None:
        self.failures.append(VerificationFailure(index, message, category))
        self.is_valid = False

    def __bool__(self):
        return self.is_valid

    def __str__(self):
        if self.is_valid:
            return "Ledger is valid ✓"
        lines = [f"Verification FAILED ({len(self.failures)} issues):"]
        for f in self.failures:
            lines.append(f"  • [{f.index}] {f.category}: {f.message}")
        return "\n".join(lines)


@dataclass
class LedgerSnapshot:
    vessels: Sequence[Identity]
    sailors: Sequence[Identity]
    voyages: Sequence[VoyageEntry]
    events: Sequence[Event] = ()


class LedgerVerifier:
    """
    Offline audit of a ledger snapshot.
    Can verify loaded records or read them directly from storage.
    """

    def verify(self, snapshot: LedgerSnapshot) -> VerificationResult:
        result = VerificationResult(True)

        # 1. Identity numbering and owners
        for kind, identities in (("vessel", snapshot.vessels), ("sailor", snapshot.sailors)):
            for i, identity in enumerate(identities):
                if identity.id != i + 1:
                    result.fail(i, f"{kind} id mismatch: expected {i + 1}, got {identity.id}", "identity_sequence")
                if identity.kind != kind:
                    result.fail(i, f"{kind} registry holds a {identity.kind} record", "identity_sequence")
                try:
                    validate_principal(identity.owner)
                except InvalidPrincipal as e:
                    result.fail(i, str(e), "identity_sequence")

        vessel_ids = {v.id for v in snapshot.vessels}
        sailor_ids = {s.id for s in snapshot.sailors}

        # 2. References and per-vessel positions
        histories: Dict[int, List[VoyageEntry]] = defaultdict(list)
        for i, entry in enumerate(snapshot.voyages):
            if entry.vessel_id not in vessel_ids:
                result.fail(i, f"Voyage references unknown vessel {entry.vessel_id}", "reference")
            if entry.sailor_id not in sailor_ids:
                result.fail(i, f"Voyage references unknown sailor {entry.sailor_id}", "reference")
            histories[entry.vessel_id].append(entry)

        for vessel_id, history in histories.items():
            for position, entry in enumerate(history):
                if entry.sequence != position:
                    result.fail(
                        position,
                        f"Vessel {vessel_id} sequence mismatch: expected {position}, got {entry.sequence}",
                        "sequence",
                    )

        # 3. Change-log agrees with the records
        if snapshot.events:
            self._verify_events(snapshot, histories, result)

        result.message = "Valid ledger" if result.is_valid else f"Failed with {len(result.failures)} issues"
        return result

    def _verify_events(
        self,
        snapshot: LedgerSnapshot,
        histories: Dict[int, List[VoyageEntry]],
        result: VerificationResult,
    ) -> None:
        registered = {VESSEL_REGISTERED: list(snapshot.vessels), SAILOR_REGISTERED: list(snapshot.sailors)}
        seen = {VESSEL_REGISTERED: 0, SAILOR_REGISTERED: 0}
        logged: Dict[int, int] = defaultdict(int)

        for i, event in enumerate(snapshot.events):
            if event.seq != i + 1:
                result.fail(i, f"Event seq mismatch: expected {i + 1}, got {event.seq}", "event")

            if event.name in registered:
                identities = registered[event.name]
                n = seen[event.name]
                seen[event.name] += 1
                if n >= len(identities):
                    result.fail(i, f"{event.name} for an identity that is not stored", "event")
                    continue
                identity = identities[n]
                expected = {"id": identity.id, "owner": identity.owner, "metadata_ref": identity.metadata_ref}
                if dict(event.payload) != expected:
                    result.fail(i, f"{event.name} payload does not match identity {identity.id}", "event")

            elif event.name == VOYAGE_LOGGED:
                vessel_id = event.payload.get("vessel_id")
                n = logged[vessel_id]
                logged[vessel_id] += 1
                history = histories.get(vessel_id, [])
                if n >= len(history):
                    result.fail(i, f"VoyageLogged for vessel {vessel_id} has no stored voyage", "event")
                    continue
                entry = history[n]
                expected = {
                    "vessel_id": entry.vessel_id,
                    "sailor_id": entry.sailor_id,
                    "timestamp": entry.timestamp,
                    "evidence_ref": entry.evidence_ref,
                }
                if dict(event.payload) != expected:
                    result.fail(i, f"VoyageLogged payload does not match voyage {n} of vessel {vessel_id}", "event")

            else:
                result.fail(i, f"Unknown event name '{event.name}'", "event")

        for name, identities in registered.items():
            if seen[name] != len(identities):
                result.fail(-1, f"{len(identities)} identities stored but {seen[name]} {name} events", "event")
        for vessel_id, history in histories.items():
            if logged[vessel_id] != len(history):
                result.fail(
                    -1,
                    f"Vessel {vessel_id} has {len(history)} voyages but {logged[vessel_id]} VoyageLogged events",
                    "event",
                )

    def verify_from_storage(self, storage: StorageBackend) -> VerificationResult:
        """
        Load every record from persistent storage and verify it.
        Returns a failed result with a storage failure if loading fails.
        """
        try:
            snapshot = LedgerSnapshot(
                vessels=storage.load_identities("vessel"),
                sailors=storage.load_identities("sailor"),
                voyages=storage.load_voyages(),
                events=storage.load_events(),
            )
        except Exception as e:
            return VerificationResult(
                False,
                f"Failed to load ledger from storage: {str(e)}",
                [VerificationFailure(-1, str(e), "storage")]
            )

        return self.verify(snapshot)
