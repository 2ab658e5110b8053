# reanchor/core/document.py

"""Contracts for the collaborators the core consumes.

The document adapter is read-only access to the live tree. Nodes are opaque
to the core: it only passes them back to the adapter that produced them.
All coordinates crossing this boundary are viewport coordinates.
"""

from typing import Any, Iterable, Optional, Protocol, Sequence, Tuple

from reanchor.core.domain import Anchor, BoundingBox

Node = Any


class DocumentAdapter(Protocol):
    """Read-only query interface over the live document."""

    def query_by_identifier(self, identifier: str) -> Sequence[Node]:
        """Returns every node carrying the given stable identifier."""
        ...

    def query_by_path(self, indices: Sequence[int]) -> Optional[Node]:
        """Follows ordinal child indices from the root; None when out of range."""
        ...

    def iterate_text_leaves(self) -> Iterable[Tuple[str, Node]]:
        """Yields (text, owning node) for text-bearing leaves in document order."""
        ...

    def iterate_tags(self) -> Iterable[str]:
        """Yields tag names of the content region in document order."""
        ...

    def get_bounding_box(self, node: Node) -> Optional[BoundingBox]:
        ...

    def hit_test(self, x: float, y: float) -> Optional[Node]:
        ...

    def get_neighbor_tags(self, node: Node) -> Sequence[str]:
        """Returns the tags of the node's siblings, in order."""
        ...

    def current_scroll_offset(self) -> Tuple[float, float]:
        ...

    def get_identifier(self, node: Node) -> Optional[str]:
        ...

    def get_path(self, node: Node) -> Sequence[Tuple[int, str]]:
        """Returns (child index, tag) pairs from the root down to the node."""
        ...


class PersistenceSink(Protocol):
    """Idempotent save callback supplied by the storage layer."""

    def save(self, anchor: Anchor) -> bool:
        ...
