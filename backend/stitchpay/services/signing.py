"""
Length-prefixed serialization shared by the 2Checkout signatures.

WHAT: Turns a flat parameter map into the string both 2Checkout digests
are computed over.

WHY: Outbound buy-links (HMAC-SHA256) and inbound INS notifications (MD5)
serialize their fields the same way: keys in lexicographic order, each
value written as "<byte length><value>". Prefixing the length keeps
"ab" + "c" and "a" + "bc" from producing the same input.

HOW: Lengths count UTF-8 bytes, so product names with non-ASCII
characters serialize the same way the provider does.
"""

from typing import Iterable, Mapping, Optional


def length_prefixed(value: Optional[str]) -> str:
    """Return "<utf-8 byte length><value>"; None counts as the empty string."""
    text = "" if value is None else str(value)
    return f"{len(text.encode('utf-8'))}{text}"


def serialize_sorted(
    params: Mapping[str, Optional[str]],
    exclude: Iterable[str] = (),
) -> str:
    """
    Serialize params in key order, skipping the excluded keys.

    Args:
        params: Flat string map
        exclude: Keys left out of the serialization (the signature field itself)

    Returns:
        Concatenation of length-prefixed values
    """
    skipped = set(exclude)
    return "".join(
        length_prefixed(params[key]) for key in sorted(params) if key not in skipped
    )
