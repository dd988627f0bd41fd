"""Pagination cursors and page-size parsing.

Two cursor schemes coexist:

- Opaque key cursors wrap the store's continuation key (JSON, then
  unpadded base64url). They page through a single partition.
- Timestamp cursors are the ``createdAt`` of the last item emitted by a
  fan-in query, because a merged position across many partitions has no
  single continuation key. The next page asks every partition for items
  strictly older than the cursor.
"""

import base64
import binascii
import json
import re
from collections.abc import Mapping
from typing import Any

from . import schema

DEFAULT_LIMIT = 10
MAX_LIMIT = 50

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_KEY_ATTRIBUTES = frozenset({"PK", "SK"})


def parse_limit(raw: Any) -> int:
    """
    Parse a page size, defaulting to 10 and clamping to [1, 50].

    Only the leading integer counts, so ``"3abc"`` and ``"2.5"`` read as 3
    and 2.
    """
    if raw is None:
        return DEFAULT_LIMIT
    match = _LEADING_INT.match(str(raw))
    if match is None:
        return DEFAULT_LIMIT
    limit = int(match.group(1))
    if limit < 1:
        return DEFAULT_LIMIT
    return min(limit, MAX_LIMIT)


def encode_cursor(last_evaluated_key: Mapping[str, Any] | None) -> str | None:
    """Encode a continuation key as an opaque cursor, or None on the last page."""
    if not last_evaluated_key:
        return None
    raw = json.dumps(dict(last_evaluated_key), separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def decode_cursor(cursor: str | None) -> dict[str, Any] | None:
    """
    Decode an opaque cursor back into a continuation key.

    Anything that is not a cursor this module produced (bad base64, bad
    JSON, not exactly a string ``PK``/``SK`` pair) yields None, so
    pagination restarts from the beginning instead of failing the request.
    """
    if not cursor:
        return None
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        decoded = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError):
        return None
    if not isinstance(decoded, dict) or decoded.keys() != _KEY_ATTRIBUTES:
        return None
    if not all(isinstance(v, str) and v for v in decoded.values()):
        return None
    return decoded


def ratings_before(cursor: str | None) -> tuple[str, str] | None:
    """
    Sort key range selecting ratings strictly older than a timestamp cursor.

    ``RATING#<cursor>`` sorts before every ``RATING#<cursor>#<id>``, so an
    inclusive BETWEEN ending there excludes the cursor's own timestamp.
    """
    if not cursor:
        return None
    return (schema.SK_RATING, f"{schema.SK_RATING}{cursor}")
