# reanchor/engine/anchoring.py

"""Anchoring engine: generation, resolution, calibration and re-anchoring."""

import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from reanchor.core.document import DocumentAdapter, Node
from reanchor.core.domain import (
    Anchor,
    CalibrationResult,
    Point,
    Resolution,
    ResolutionBatch,
)
from reanchor.core.exceptions import AnchorValidationError
from reanchor.engine.fingerprint import capture_fingerprint
from reanchor.engine.locators import build_descriptors
from reanchor.engine.resolver import AnchorResolver
from reanchor.logic.calibration import DriftCalibrator
from reanchor.service.config import Settings

logger = logging.getLogger(__name__)


def coerce_point(value: Any) -> Point:
    """Accepts a Point, an (x, y) pair or a {'x', 'y'} mapping.

    Raises:
        AnchorValidationError: If the value is not a finite 2D point.
    """
    if isinstance(value, Point):
        return value
    try:
        if isinstance(value, Mapping):
            return Point.model_validate(value)
        x, y = value
        return Point(x=x, y=y)
    except (PydanticValidationError, TypeError, ValueError) as e:
        raise AnchorValidationError(f"Invalid point: {value!r}") from e


class AnchoringEngine:
    """Owns the resolver and calibrator configured from Settings.

    Anchors are plain data; every mutation happens in place on the record
    passed in, so callers persist the same object they handed over.
    """

    def __init__(self, config: Optional[Settings] = None) -> None:
        self.config = config or Settings()
        self._resolver = AnchorResolver(
            reinforcement_step=self.config.reinforcement_step,
            degraded_confidence=self.config.degraded_confidence,
            overlap_threshold=self.config.neighbor_overlap_threshold,
            fingerprint_tag_limit=self.config.fingerprint_tag_limit,
            fingerprint_text_limit=self.config.fingerprint_text_limit,
        )
        self._calibrator = DriftCalibrator(
            cap=self.config.correction_cap,
            min_samples=self.config.calibration_min_samples,
            consistency_threshold=self.config.calibration_consistency_threshold,
        )

    @property
    def resolver(self) -> AnchorResolver:
        return self._resolver

    @property
    def calibrator(self) -> DriftCalibrator:
        return self._calibrator

    def _capture(self, adapter: DocumentAdapter):
        return capture_fingerprint(
            adapter,
            tag_limit=self.config.fingerprint_tag_limit,
            text_limit=self.config.fingerprint_text_limit,
        )

    def generate_anchor(
        self,
        point: Any,
        node: Optional[Node],
        adapter: DocumentAdapter,
        document_key: str = "",
    ) -> Anchor:
        """Records every strategy's descriptor for an annotation being created.

        Args:
            point: Viewport position of the annotation
            node: Node under the annotation, or None for free positioning
            adapter: Live document
            document_key: Normalized document identifier supplied by the caller

        Returns:
            New Anchor with initial confidences and a fresh fingerprint

        Raises:
            AnchorValidationError: If the point or node data is malformed.
        """
        viewport_point = coerce_point(point)
        descriptors = build_descriptors(
            viewport_point,
            node,
            adapter,
            text_sample_length=self.config.text_sample_length,
            neighbor_tag_limit=self.config.neighbor_tag_limit,
        )

        try:
            anchor = Anchor(
                document_key=document_key,
                descriptors=descriptors,
                confidence=dict(self.config.initial_confidence),
                fingerprint=self._capture(adapter),
                last_known_point=viewport_point.to_absolute(adapter.current_scroll_offset()),
            )
        except PydanticValidationError as e:
            raise AnchorValidationError(f"Generated anchor is invalid: {e}") from e

        logger.info(
            "Anchor generated",
            extra={
                "anchor_id": anchor.anchor_id,
                "document_key": document_key,
                "strategies": [kind.value for kind in anchor.descriptors],
            },
        )
        return anchor

    def load_anchor(self, record: Mapping[str, Any]) -> Anchor:
        """Validates a persisted record, filling absent confidences with defaults.

        Stored corrections beyond the configured cap are dropped, oldest first.

        Raises:
            AnchorValidationError: If required descriptor fields are missing.
        """
        if isinstance(record, Anchor):
            return record
        if not isinstance(record, Mapping):
            raise AnchorValidationError(
                f"Anchor record must be a mapping, received {type(record).__name__}"
            )

        data: Dict[str, Any] = dict(record)
        confidence = {
            kind.value: score for kind, score in self.config.initial_confidence.items()
        }
        confidence.update(data.get("confidence") or {})
        data["confidence"] = confidence

        corrections = data.get("corrections")
        cap = self.config.correction_cap
        if isinstance(corrections, list) and len(corrections) > cap:
            logger.debug(
                "Trimming stored corrections to cap",
                extra={"stored": len(corrections), "cap": cap},
            )
            data["corrections"] = corrections[-cap:]

        try:
            return Anchor.model_validate(data)
        except PydanticValidationError as e:
            raise AnchorValidationError(f"Malformed anchor record: {e}") from e

    @staticmethod
    def dump_anchor(anchor: Anchor) -> Dict[str, Any]:
        """Storage-agnostic, JSON-compatible layout of an anchor."""
        return anchor.model_dump(mode="json")

    def resolve(self, anchor: Anchor, adapter: DocumentAdapter) -> Resolution:
        return self._resolver.resolve(anchor, adapter)

    def resolve_all(
        self, anchors: Iterable[Anchor], adapter: DocumentAdapter
    ) -> ResolutionBatch:
        return self._resolver.resolve_all(anchors, adapter)

    def record_correction(
        self, anchor: Anchor, old_point: Any, new_point: Any
    ) -> CalibrationResult:
        if not isinstance(anchor, Anchor):
            raise AnchorValidationError(
                f"Expected Anchor, received {type(anchor).__name__}"
            )
        return self._calibrator.record_correction(
            anchor, coerce_point(old_point), coerce_point(new_point)
        )

    @staticmethod
    def fingerprint_changed(anchor: Anchor) -> bool:
        """Content-change flag of the anchor's last resolution."""
        resolution = anchor.last_resolution
        return bool(resolution and resolution.content_changed)

    def confirm_anchor(self, anchor: Anchor, adapter: DocumentAdapter) -> Anchor:
        """Accepts the current content after the user reviewed a change.

        The fingerprint is only ever replaced here, and its timestamp never
        moves backwards.
        """
        current = self._capture(adapter)
        if current.captured_at < anchor.fingerprint.captured_at:
            current = current.model_copy(
                update={"captured_at": anchor.fingerprint.captured_at}
            )
        anchor.fingerprint = current

        resolution = anchor.last_resolution
        if resolution is not None:
            resolution.content_changed = False

        logger.info(
            "Anchor content confirmed",
            extra={"anchor_id": anchor.anchor_id, "document_key": anchor.document_key},
        )
        return anchor

    def regenerate_anchor(
        self,
        anchor: Anchor,
        point: Any,
        node: Optional[Node],
        adapter: DocumentAdapter,
    ) -> Anchor:
        """Re-anchors a repositioned annotation at a user-confirmed location.

        Identity, confidences and correction history are kept. Strategies
        that can no longer be described are dropped from the descriptor set.
        """
        fresh = self.generate_anchor(point, node, adapter, anchor.document_key)
        self.confirm_anchor(anchor, adapter)

        anchor.descriptors = fresh.descriptors
        anchor.last_known_point = fresh.last_known_point
        return anchor

