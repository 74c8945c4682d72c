# maritime_ledger/storage/__init__.py
"""
Storage backends for durable registry, voyage and event records.
"""

from abc import ABC, abstractmethod
from contextlib import nullcontext
from typing import Callable, ContextManager, List, Optional
from pathlib import Path
from maritime_ledger.core.types import Event, Identity, IdentityKind, VoyageEntry


class StorageBackend(ABC):
    """Abstract base for all persistent storage implementations."""

    @abstractmethod
    def save_identity(self, identity: Identity) -> None:
        pass

    @abstractmethod
    def load_identities(self, kind: IdentityKind) -> List[Identity]:
        pass

    @abstractmethod
    def save_voyage(self, entry: VoyageEntry) -> None:
        pass

    @abstractmethod
    def load_voyages(self) -> List[VoyageEntry]:
        pass

    @abstractmethod
    def save_event(self, event: Event) -> None:
        pass

    @abstractmethod
    def load_events(self) -> List[Event]:
        pass

    def atomic(self) -> ContextManager:
        """Group several saves into one all-or-nothing write. No-op by default."""
        return nullcontext()

    def on_commit(self, callback: Callable[[], None]) -> None:
        """Run `callback` once the current atomic() block commits. Immediately by default."""
        callback()

    @abstractmethod
    def close(self) -> None:
        pass


def atomic(storage: Optional[StorageBackend]) -> ContextManager:
    """`storage.atomic()`, or a no-op when running purely in memory."""
    if storage is None:
        return nullcontext()
    return storage.atomic()


def create_storage(uri: str) -> StorageBackend:
    if uri.startswith("sqlite://"):
        from .sqlite import SQLiteStorage
        # Extract everything after sqlite://
        raw_path = uri[len("sqlite://"):]
        if not raw_path:
            raise ValueError(f"Missing database path in storage URI: {uri}")
        return SQLiteStorage(Path(raw_path).resolve())
    else:
        raise ValueError(f"Unsupported storage URI: {uri}")


from .sqlite import SQLiteStorage

__all__ = ["StorageBackend", "atomic", "create_storage", "SQLiteStorage"]
