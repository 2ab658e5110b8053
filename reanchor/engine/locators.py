# reanchor/engine/locators.py

"""Locator strategies: descriptor generation and resolution.

Every resolver here is a pure function of (descriptor, adapter). Returning
None is the normal "no result" outcome. Ambiguity is treated as a miss.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from reanchor.core.definitions import StrategyKind
from reanchor.core.document import DocumentAdapter, Node
from reanchor.core.domain import (
    IdentifierDescriptor,
    Offset,
    PathStep,
    Point,
    SpatialPositionDescriptor,
    StructuralPathDescriptor,
    TextContextDescriptor,
)
from reanchor.core.exceptions import AnchorValidationError

logger = logging.getLogger(__name__)

DEFAULT_OVERLAP_THRESHOLD = 0.7


@dataclass(frozen=True)
class LocatorMatch:
    """A live position found by one strategy (viewport, before learned offset)."""

    point: Point
    node: Any = None


def normalize_text(text: str) -> str:
    """Collapses whitespace runs into single spaces."""
    return " ".join(text.split())


def _text_leaves(adapter: DocumentAdapter) -> List[Tuple[str, Node]]:
    return [
        (normalize_text(text), node)
        for text, node in adapter.iterate_text_leaves()
        if text and text.strip()
    ]


def _anchored_point(
    node: Node, offset: Offset, adapter: DocumentAdapter
) -> Optional[LocatorMatch]:
    box = adapter.get_bounding_box(node)
    if box is None:
        return None
    return LocatorMatch(point=box.top_left + offset, node=node)


def neighbor_overlap(recorded: Sequence[str], actual: Sequence[str]) -> float:
    """Share of recorded neighbor tags still present, counted as a multiset."""
    if not recorded:
        return 1.0
    expected = Counter(tag.lower() for tag in recorded)
    found = Counter(tag.lower() for tag in actual)
    return sum((expected & found).values()) / len(recorded)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def locate_by_identifier(
    descriptor: IdentifierDescriptor, adapter: DocumentAdapter
) -> Optional[LocatorMatch]:
    """Succeeds only when exactly one live node carries the identifier."""
    candidates = list(adapter.query_by_identifier(descriptor.identifier))

    if len(candidates) > 1:
        logger.info(
            "Ambiguous identifier match treated as miss",
            extra={"identifier": descriptor.identifier, "candidates": len(candidates)},
        )
        return None

    if not candidates:
        return None

    return _anchored_point(candidates[0], descriptor.offset, adapter)


def locate_by_text_context(
    descriptor: TextContextDescriptor, adapter: DocumentAdapter
) -> Optional[LocatorMatch]:
    """Returns the owner of the first target occurrence whose neighbors still match.

    Neighbor fragments match by substring containment, so minor edits around
    the recorded context are tolerated.
    """
    target = normalize_text(descriptor.target)
    before = normalize_text(descriptor.context_before)
    after = normalize_text(descriptor.context_after)

    leaves = _text_leaves(adapter)

    for i, (text, node) in enumerate(leaves):
        if target not in text:
            continue

        if before and (i == 0 or before not in leaves[i - 1][0]):
            continue

        if after and (i + 1 >= len(leaves) or after not in leaves[i + 1][0]):
            continue

        return _anchored_point(node, descriptor.offset, adapter)

    return None


def locate_by_structural_path(
    descriptor: StructuralPathDescriptor, adapter: DocumentAdapter
) -> Optional[LocatorMatch]:
    """Follows recorded child indices; any out-of-range step or tag mismatch fails."""
    node = adapter.query_by_path([step.index for step in descriptor.steps])
    if node is None:
        return None

    live_path = list(adapter.get_path(node))
    if len(live_path) != len(descriptor.steps):
        return None

    for step, (index, tag) in zip(descriptor.steps, live_path):
        if step.index != index or step.tag.lower() != tag.lower():
            logger.debug(
                "Structural path tag mismatch",
                extra={"expected": step.tag, "found": tag, "index": index},
            )
            return None

    return _anchored_point(node, descriptor.offset, adapter)


def locate_by_spatial_position(
    descriptor: SpatialPositionDescriptor,
    adapter: DocumentAdapter,
    overlap_threshold: float = DEFAULT_OVERLAP_THRESHOLD,
) -> Optional[LocatorMatch]:
    """Hit-tests the recorded coordinate and checks the neighborhood still matches."""
    point = descriptor.point.to_viewport(adapter.current_scroll_offset())
    node = adapter.hit_test(point.x, point.y)
    if node is None:
        return None

    overlap = neighbor_overlap(descriptor.neighbor_tags, adapter.get_neighbor_tags(node))
    if overlap < overlap_threshold:
        logger.debug(
            "Spatial hit rejected on neighbor overlap",
            extra={"overlap": round(overlap, 3), "threshold": overlap_threshold},
        )
        return None

    return LocatorMatch(point=point, node=node)


def locate(
    descriptor: Any,
    adapter: DocumentAdapter,
    overlap_threshold: float = DEFAULT_OVERLAP_THRESHOLD,
) -> Optional[LocatorMatch]:
    """Dispatches a descriptor to its strategy.

    Raises:
        AnchorValidationError: If the descriptor is not one of the known kinds.
    """
    if isinstance(descriptor, IdentifierDescriptor):
        return locate_by_identifier(descriptor, adapter)
    if isinstance(descriptor, TextContextDescriptor):
        return locate_by_text_context(descriptor, adapter)
    if isinstance(descriptor, StructuralPathDescriptor):
        return locate_by_structural_path(descriptor, adapter)
    if isinstance(descriptor, SpatialPositionDescriptor):
        return locate_by_spatial_position(descriptor, adapter, overlap_threshold)
    raise AnchorValidationError(f"Unsupported locator descriptor: {type(descriptor).__name__}")


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def describe_text_context(
    node: Node, adapter: DocumentAdapter, sample_length: int = 50
) -> Optional[Tuple[str, str, str]]:
    """Returns (target, context_before, context_after) for text the node owns.

    Only the node's first text leaf is recorded, together with the leaves on
    either side of it, so resolution can match it leaf by leaf.
    """
    leaves = _text_leaves(adapter)
    first = next((i for i, (_text, owner) in enumerate(leaves) if owner == node), None)
    if first is None:
        return None

    target = leaves[first][0][:sample_length]
    before = leaves[first - 1][0][-sample_length:] if first > 0 else ""
    after = leaves[first + 1][0][:sample_length] if first + 1 < len(leaves) else ""
    return target, before.strip(), after.strip()


def build_descriptors(
    point: Point,
    node: Optional[Node],
    adapter: DocumentAdapter,
    text_sample_length: int = 50,
    neighbor_tag_limit: int = 5,
) -> Dict[StrategyKind, Any]:
    """Records every descriptor that can be derived for a viewport point.

    A strategy whose data is unavailable (no identifier, no owned text, no
    path) is simply left out. Spatial position is always recorded.

    Raises:
        AnchorValidationError: If the node has no bounding box.
    """
    absolute = point.to_absolute(adapter.current_scroll_offset())
    descriptors: Dict[StrategyKind, Any] = {}

    if node is None:
        descriptors[StrategyKind.SPATIAL_POSITION] = SpatialPositionDescriptor(point=absolute)
        return descriptors

    box = adapter.get_bounding_box(node)
    if box is None:
        raise AnchorValidationError("Anchored node has no bounding box")

    offset = point - box.top_left

    identifier = adapter.get_identifier(node)
    if identifier and identifier.strip():
        descriptors[StrategyKind.IDENTIFIER] = IdentifierDescriptor(
            identifier=identifier, offset=offset
        )

    text_context = describe_text_context(node, adapter, text_sample_length)
    if text_context is not None:
        target, before, after = text_context
        descriptors[StrategyKind.TEXT_CONTEXT] = TextContextDescriptor(
            target=target, context_before=before, context_after=after, offset=offset
        )

    path = adapter.get_path(node)
    if path:
        descriptors[StrategyKind.STRUCTURAL_PATH] = StructuralPathDescriptor(
            steps=[PathStep(index=index, tag=tag) for index, tag in path],
            offset=offset,
        )

    descriptors[StrategyKind.SPATIAL_POSITION] = SpatialPositionDescriptor(
        point=absolute,
        neighbor_tags=list(adapter.get_neighbor_tags(node))[:neighbor_tag_limit],
    )

    return descriptors
