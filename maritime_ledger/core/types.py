# maritime_ledger/core/types.py
from dataclasses import dataclass, field, asdict
from types import MappingProxyType
from typing import Any, Dict, Literal, Mapping

IdentityKind = Literal["vessel", "sailor"]

VESSEL_REGISTERED = "VesselRegistered"
SAILOR_REGISTERED = "SailorRegistered"
VOYAGE_LOGGED = "VoyageLogged"


@dataclass(frozen=True)
class Identity:
    """Registry record binding an owner principal to an opaque metadata reference."""
    id: int                         # 1, 2, 3 ... per registry
    owner: str                      # principal, e.g. "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
    metadata_ref: str               # opaque, e.g. "ipfs://bafy..."
    kind: IdentityKind

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class VoyageEntry:
    """Single committed entry in a vessel's history."""
    vessel_id: int
    sailor_id: int
    evidence_ref: str
    description: str
    timestamp: int                  # seconds since epoch, as supplied by the caller
    sequence: int = 0               # position in the vessel's history, 0 = oldest

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AuthorizationContext:
    """Who asked to write to which vessel. Lives only for one append."""
    requesting_principal: str
    target_vessel_id: int


@dataclass(frozen=True)
class Event:
    """Notification recorded after a state change commits."""
    seq: int
    name: str
    payload: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # read-only view so listeners cannot rewrite what others will see
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    def to_dict(self) -> Dict[str, Any]:
        return {"seq": self.seq, "name": self.name, "payload": dict(self.payload)}
