# maritime_ledger/registry/identity.py
import logging
import threading
from typing import Dict, List, Optional

from maritime_ledger.core.errors import NotFound
from maritime_ledger.core.principal import validate_principal
from maritime_ledger.core.types import Identity, IdentityKind
from maritime_ledger.chain.events import EventLog
from maritime_ledger.storage import StorageBackend, atomic

logger = logging.getLogger(__name__)


class IdentityRegistry:
    """
    Issues sequential identities (1, 2, 3 ...) bound to an owner and a metadata reference.

    One instance per identity kind; vessel and sailor ids live in separate spaces.
    Issuance runs under the registry lock: validate, persist, then publish in
    memory, so a failed write never consumes an id. Listeners hear about the
    new identity only after the lock is released.
    """

    def __init__(
        self,
        kind: IdentityKind,
        event_name: str,
        events: Optional[EventLog] = None,
        storage: Optional[StorageBackend] = None,
    ):
        self.kind = kind
        self.event_name = event_name
        self.events = events
        self.storage = storage
        self._lock = threading.Lock()
        self._identities: Dict[int, Identity] = {}
        self._last_id = 0

        if self.storage is not None:
            for identity in self.storage.load_identities(kind):
                self._identities[identity.id] = identity
                self._last_id = max(self._last_id, identity.id)
            if self._identities:
                logger.info("[maritime-ledger] Loaded %d %s identities from storage", len(self._identities), kind)

    @property
    def count(self) -> int:
        return len(self._identities)

    def create(self, owner: str, metadata_ref: str) -> Identity:
        """
        Issue the next identity for `owner`. `metadata_ref` is stored as given,
        empty strings included. Raises InvalidPrincipal for a malformed owner.
        """
        validate_principal(owner)
        if not isinstance(metadata_ref, str):
            raise TypeError(f"metadata_ref must be a string, got {type(metadata_ref).__name__}")

        event = None
        with self._lock:
            identity = Identity(
                id=self._last_id + 1,
                owner=owner,
                metadata_ref=metadata_ref,
                kind=self.kind,
            )
            with atomic(self.storage):
                if self.storage is not None:
                    self.storage.save_identity(identity)
                # recorded under the registry lock so event order follows id order
                if self.events is not None:
                    event = self.events.record(self.event_name, {
                        "id": identity.id,
                        "owner": identity.owner,
                        "metadata_ref": identity.metadata_ref,
                    })
            self._identities[identity.id] = identity
            self._last_id = identity.id

        if event is not None:
            self.events.publish(event)
        logger.info("[maritime-ledger] %s #%d registered to %s", self.kind.capitalize(), identity.id, owner)
        return identity

    def get(self, identity_id: int) -> Identity:
        if isinstance(identity_id, bool) or not isinstance(identity_id, int):
            raise NotFound(self.kind, identity_id)
        identity = self._identities.get(identity_id)
        if identity is None:
            raise NotFound(self.kind, identity_id)
        return identity

    def exists(self, identity_id: int) -> bool:
        try:
            self.get(identity_id)
        except NotFound:
            return False
        return True

    def list(self) -> List[Identity]:
        """All issued identities in id order."""
        snapshot = dict(self._identities)
        return [snapshot[i] for i in sorted(snapshot)]
