from maritime_ledger.registry.identity import IdentityRegistry

__all__ = ["IdentityRegistry"]
