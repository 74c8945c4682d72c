# maritime_ledger/core/errors.py
"""
Error taxonomy shared by the registries, the authorization gate and the ledger.
"""


class LedgerError(Exception):
    """Base class for every rejection raised by the ledger core."""


class InvalidPrincipal(LedgerError, ValueError):
    """Owner or caller identifier is malformed."""

    def __init__(self, principal: object):
        self.principal = principal
        super().__init__(f"Invalid principal: {principal!r}")


class NotFound(LedgerError, LookupError):
    """Referenced vessel or sailor id was never issued."""

    def __init__(self, kind: str, identity_id: object):
        self.kind = kind
        self.identity_id = identity_id
        super().__init__(f"{kind.capitalize()} {identity_id!r} does not exist")


class Denied(LedgerError, PermissionError):
    """Caller is not allowed to write to the target vessel."""

    NOT_OWNER = "caller is not the owner of this vessel"

    def __init__(self, principal: str, vessel_id: int, reason: str = NOT_OWNER):
        self.principal = principal
        self.vessel_id = vessel_id
        self.reason = reason
        super().__init__(reason)
