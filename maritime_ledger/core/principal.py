# maritime_ledger/core/principal.py
import re

from maritime_ledger.core.errors import InvalidPrincipal

MAX_PRINCIPAL_LENGTH = 256

_FORBIDDEN = re.compile(r"[\s\x00-\x1f\x7f]")


def validate_principal(principal: object) -> str:
    """
    Return `principal` unchanged if it is a usable caller/owner identifier.
    Principals are opaque: any non-empty string without whitespace or control
    characters is accepted. Raises InvalidPrincipal otherwise.
    """
    if not isinstance(principal, str):
        raise InvalidPrincipal(principal)
    if not principal or len(principal) > MAX_PRINCIPAL_LENGTH:
        raise InvalidPrincipal(principal)
    if _FORBIDDEN.search(principal):
        raise InvalidPrincipal(principal)
    return principal
