# maritime_ledger/chain/gate.py
"""
Ownership check performed before every voyage append.

Authority is the vessel's owner as currently recorded in the vessel registry.
Nothing is cached between calls and there is no delegation.
"""

from maritime_ledger.core.errors import Denied
from maritime_ledger.core.types import AuthorizationContext, Identity
from maritime_ledger.registry.identity import IdentityRegistry


def is_owner(principal: str, identity: Identity) -> bool:
    return principal == identity.owner


def authorize(requesting_principal: str, vessel_id: int, vessels: IdentityRegistry) -> AuthorizationContext:
    """
    Allow `requesting_principal` to write to `vessel_id` or raise.

    Raises NotFound if the vessel was never registered, Denied if the caller
    is not its owner.
    """
    vessel = vessels.get(vessel_id)
    if not is_owner(requesting_principal, vessel):
        raise Denied(requesting_principal, vessel_id)
    return AuthorizationContext(requesting_principal=requesting_principal, target_vessel_id=vessel_id)
