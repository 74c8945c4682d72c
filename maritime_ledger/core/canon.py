# maritime_ledger/core/canon.py
from typing import Any

try:
    import jcs
except ImportError:
    raise ImportError("Please install jcs: pip install jcs")


def canonical_json(obj: Any) -> bytes:
    """
    Produce deterministic UTF-8 bytes according to RFC 8785 (JSON Canonicalization Scheme).
    Used for stored record copies and exports, so equal records always serialize equally.
    """
    return jcs.canonicalize(obj)


def canonical_json_str(obj: Any) -> str:
    """Same as above, but returns string."""
    return canonical_json(obj).decode("utf-8")
