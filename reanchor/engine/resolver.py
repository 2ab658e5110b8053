# reanchor/engine/resolver.py

"""Confidence-ordered resolution of anchors against a live document."""

import logging
from collections import Counter
from typing import Iterable, List

from reanchor.core.definitions import PRIORITY_RANK, StrategyKind
from reanchor.core.document import DocumentAdapter
from reanchor.core.domain import Anchor, Resolution, ResolutionBatch
from reanchor.core.exceptions import AnchorValidationError
from reanchor.engine.fingerprint import (
    DEFAULT_TAG_LIMIT,
    DEFAULT_TEXT_LIMIT,
    capture_fingerprint,
    fingerprint_differs,
)
from reanchor.engine.locators import DEFAULT_OVERLAP_THRESHOLD, locate

logger = logging.getLogger(__name__)


def order_strategies(anchor: Anchor) -> List[StrategyKind]:
    """Descending confidence, ties broken by the fixed strategy priority."""
    return sorted(
        anchor.confidence,
        key=lambda kind: (-anchor.confidence[kind], PRIORITY_RANK[kind]),
    )


def reinforce(anchor: Anchor, kind: StrategyKind, step: float) -> float:
    """Raises one strategy's confidence by `step`, capped at 1.0.

    There is deliberately no counterpart that lowers confidence.
    """
    updated = min(1.0, round(anchor.confidence[kind] + step, 10))
    anchor.confidence[kind] = updated
    return updated


class AnchorResolver:
    """Resolves anchors by trying strategies sequentially until one succeeds.

    Strategies run one at a time on the caller's thread; document queries are
    not assumed to be safe anywhere else.
    """

    def __init__(
        self,
        reinforcement_step: float = 0.05,
        degraded_confidence: float = 0.10,
        overlap_threshold: float = DEFAULT_OVERLAP_THRESHOLD,
        fingerprint_tag_limit: int = DEFAULT_TAG_LIMIT,
        fingerprint_text_limit: int = DEFAULT_TEXT_LIMIT,
    ) -> None:
        self.reinforcement_step = reinforcement_step
        self.degraded_confidence = degraded_confidence
        self.overlap_threshold = overlap_threshold
        self.fingerprint_tag_limit = fingerprint_tag_limit
        self.fingerprint_text_limit = fingerprint_text_limit

    def content_changed(self, anchor: Anchor, adapter: DocumentAdapter) -> bool:
        current = capture_fingerprint(
            adapter,
            tag_limit=self.fingerprint_tag_limit,
            text_limit=self.fingerprint_text_limit,
        )
        return fingerprint_differs(anchor.fingerprint, current)

    def resolve(self, anchor: Anchor, adapter: DocumentAdapter) -> Resolution:
        """Resolves an anchor to a viewport position.

        Args:
            anchor: Anchor to resolve; its confidence and last known point
                are updated in place on success
            adapter: Live document

        Returns:
            Resolution. When every strategy misses, a degraded resolution at
            the last known position with requires_review set.

        Raises:
            AnchorValidationError: If `anchor` is not an Anchor.
        """
        if not isinstance(anchor, Anchor):
            raise AnchorValidationError(
                f"Expected Anchor, received {type(anchor).__name__}"
            )

        scroll = adapter.current_scroll_offset()
        changed = self.content_changed(anchor, adapter)
        attempted: List[StrategyKind] = []

        for kind in order_strategies(anchor):
            descriptor = anchor.descriptors.get(kind)
            if descriptor is None:
                continue

            attempted.append(kind)
            match = locate(descriptor, adapter, self.overlap_threshold)
            if match is None:
                logger.debug(
                    "Strategy miss",
                    extra={"anchor_id": anchor.anchor_id, "strategy": kind.value},
                )
                continue

            point = match.point
            if anchor.learned_offset is not None:
                point = point + anchor.learned_offset

            confidence = reinforce(anchor, kind, self.reinforcement_step)
            anchor.last_known_point = point.to_absolute(scroll)
            anchor.last_strategy = kind

            resolution = Resolution(
                resolved_point=point,
                strategy_used=kind,
                confidence=confidence,
                success=True,
                content_changed=changed,
                matched_node=match.node,
                attempted=attempted,
            )
            anchor.remember(resolution)

            logger.debug(
                "Anchor resolved",
                extra={
                    "anchor_id": anchor.anchor_id,
                    "strategy": kind.value,
                    "confidence": confidence,
                    "content_changed": changed,
                },
            )
            return resolution

        anchor.last_strategy = None
        resolution = Resolution(
            resolved_point=anchor.last_known_point.to_viewport(scroll),
            strategy_used=None,
            confidence=self.degraded_confidence,
            success=False,
            requires_review=True,
            content_changed=changed,
            attempted=attempted,
        )
        anchor.remember(resolution)

        logger.info(
            "All strategies missed; using last known position",
            extra={
                "anchor_id": anchor.anchor_id,
                "attempted": [kind.value for kind in attempted],
                "content_changed": changed,
            },
        )
        return resolution

    def resolve_all(
        self, anchors: Iterable[Anchor], adapter: DocumentAdapter
    ) -> ResolutionBatch:
        """Resolves each anchor independently.

        Raises:
            AnchorValidationError: If two anchors share an anchor_id.
        """
        anchors = list(anchors)
        ids = Counter(a.anchor_id for a in anchors if isinstance(a, Anchor))
        duplicates = sorted(anchor_id for anchor_id, count in ids.items() if count > 1)
        if duplicates:
            raise AnchorValidationError(f"Duplicate anchor ids in batch: {duplicates}")

        batch = ResolutionBatch()
        for anchor in anchors:
            batch.resolutions[anchor.anchor_id] = self.resolve(anchor, adapter)
        return batch
