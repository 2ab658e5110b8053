# reanchor/engine/fingerprint.py

"""Cheap structural and textual signatures for content change detection."""

import logging
from datetime import datetime
from itertools import islice
from typing import Iterable, Iterator, Optional

from reanchor.core.document import DocumentAdapter
from reanchor.core.domain import Fingerprint, utc_now

logger = logging.getLogger(__name__)

DEFAULT_TAG_LIMIT = 100
DEFAULT_TEXT_LIMIT = 1000


def rolling_hash(text: str) -> int:
    """Signed 32-bit polynomial hash (h * 31 + code point)."""
    h = 0
    for char in text:
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def _visible_text(leaves: Iterable[str], limit: int) -> str:
    """Joins non-blank leaf texts with newlines, stopping after `limit` chars."""
    parts = []
    size = 0
    for text in leaves:
        if not text.strip():
            continue
        if parts:
            parts.append("\n")
            size += 1
        parts.append(text)
        size += len(text)
        if size >= limit:
            break
    return "".join(parts)[:limit]


def _leaf_texts(adapter: DocumentAdapter) -> Iterator[str]:
    for text, _node in adapter.iterate_text_leaves():
        yield text


def structural_hash(adapter: DocumentAdapter, tag_limit: int = DEFAULT_TAG_LIMIT) -> int:
    tags = islice(adapter.iterate_tags(), tag_limit)
    return rolling_hash(",".join(tag.upper() for tag in tags))


def textual_hash(adapter: DocumentAdapter, text_limit: int = DEFAULT_TEXT_LIMIT) -> int:
    return rolling_hash(_visible_text(_leaf_texts(adapter), text_limit))


def capture_fingerprint(
    adapter: DocumentAdapter,
    tag_limit: int = DEFAULT_TAG_LIMIT,
    text_limit: int = DEFAULT_TEXT_LIMIT,
    captured_at: Optional[datetime] = None,
) -> Fingerprint:
    """Computes a fingerprint of the adapter's content region.

    Only the first `tag_limit` tags and `text_limit` characters are read, so
    cost does not grow with document size.

    Args:
        adapter: Live document
        tag_limit: Number of tags sampled for the structural hash
        text_limit: Number of visible characters sampled for the textual hash
        captured_at: Timestamp override, defaults to now (UTC)

    Returns:
        Immutable Fingerprint
    """
    fingerprint = Fingerprint(
        structural_hash=structural_hash(adapter, tag_limit),
        textual_hash=textual_hash(adapter, text_limit),
        captured_at=captured_at or utc_now(),
    )
    logger.debug(
        "Fingerprint captured",
        extra={
            "structural_hash": fingerprint.structural_hash,
            "textual_hash": fingerprint.textual_hash,
        },
    )
    return fingerprint


def fingerprint_differs(stored: Optional[Fingerprint], current: Optional[Fingerprint]) -> bool:
    """Any per-hash mismatch signals material change; missing data never does."""
    if stored is None or current is None:
        return False
    return not stored.matches(current)
