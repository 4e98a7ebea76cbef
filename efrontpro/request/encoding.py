"""
eFrontPro SDK - Form Encoding

Builds application/x-www-form-urlencoded request bodies.
"""

from collections.abc import Mapping
from typing import Any, Iterator, List, Optional, Tuple
from urllib.parse import urlencode


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _flatten(prefix: str, value: Any) -> Iterator[Tuple[str, str]]:
    if value is None:
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            yield from _flatten(f"{prefix}[{key}]", item)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield from _flatten(f"{prefix}[{index}]", item)
    else:
        yield prefix, _scalar(value)


def build_query(params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Encode parameters as an URL-encoded form body.

    Pairs are joined with "&" in the mapping's iteration order, with no
    leading separator. Nested mappings and sequences become bracketed keys
    (``a[b]=1``, ``a[0]=x``), None values are skipped and booleans are
    sent as 1/0.

    Args:
        params: Parameter mapping (None or empty yields "")

    Returns:
        Encoded body
    """
    if not params:
        return ""

    pairs: List[Tuple[str, str]] = []
    for key, value in params.items():
        pairs.extend(_flatten(str(key), value))
    return urlencode(pairs)
