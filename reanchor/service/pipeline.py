# reanchor/service/pipeline.py

"""Main anchoring service entry points."""

import logging
import threading
from typing import Any, Dict, Iterable, Mapping, Optional

from reanchor.service.config import settings
from reanchor.engine.anchoring import AnchoringEngine
from reanchor.core.definitions import ResolutionTrigger
from reanchor.core.document import DocumentAdapter, Node, PersistenceSink
from reanchor.core.domain import Anchor, CalibrationResult, Resolution, ResolutionBatch
from reanchor.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)


class AnchorService:
    """Singleton service wrapper for the anchoring engine.

    Only construction is guarded; resolution itself runs synchronously on
    the caller's thread.
    """

    _instance: Optional[AnchoringEngine] = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> AnchoringEngine:
        """Returns singleton anchoring engine instance."""
        if cls._instance is None:
            with cls._lock:
                # Double-checked locking pattern
                if cls._instance is None:
                    logger.info("Initializing anchoring engine")
                    cls._instance = AnchoringEngine(settings)

        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drops the engine so the next call rebuilds it from current settings."""
        with cls._lock:
            cls._instance = None


def save_anchor(anchor: Anchor, sink: PersistenceSink) -> None:
    """Hands an anchor to the persistence callback.

    Raises:
        PersistenceError: If the sink reports failure or raises.
    """
    try:
        saved = sink.save(anchor)
    except Exception as e:
        raise PersistenceError(f"Saving anchor {anchor.anchor_id} failed: {e}") from e

    if not saved:
        raise PersistenceError(f"Persistence sink rejected anchor {anchor.anchor_id}")


def _persist(
    anchor: Anchor, sink: Optional[PersistenceSink], metadata: Dict[str, Any]
) -> None:
    """Saves after a mutation; failures are reported in metadata, not raised.

    The in-memory anchor stays valid either way, so the caller may retry.
    """
    if sink is None:
        return

    try:
        save_anchor(anchor, sink)
        metadata["persisted"] = True

    except PersistenceError as e:
        logger.error(
            "Anchor persistence failed",
            exc_info=True,
            extra={"anchor_id": anchor.anchor_id, "document_key": anchor.document_key},
        )
        metadata.update(
            {
                "persisted": False,
                "error": str(e),
                "error_type": type(e).__name__,
            }
        )


def generate_anchor(
    point: Any,
    node: Optional[Node],
    adapter: DocumentAdapter,
    document_key: str = "",
    sink: Optional[PersistenceSink] = None,
) -> Anchor:
    """Creates the anchor for a new annotation.

    Args:
        point: Viewport position of the annotation
        node: Node under the annotation, or None
        adapter: Live document
        document_key: Normalized document identifier the record is stored under
        sink: Optional persistence callback

    Returns:
        The new Anchor

    Raises:
        AnchorValidationError: If the input is malformed.
        PersistenceError: If a sink was given and saving failed.
    """
    anchor = AnchorService.get_instance().generate_anchor(
        point, node, adapter, document_key
    )
    if sink is not None:
        save_anchor(anchor, sink)
    return anchor


def resolve(
    anchor: Any,
    adapter: DocumentAdapter,
    trigger: ResolutionTrigger = ResolutionTrigger.LOAD,
    sink: Optional[PersistenceSink] = None,
) -> Resolution:
    """Resolves one anchor (or persisted anchor record) to a viewport position.

    Args:
        anchor: Anchor or its persisted record
        adapter: Live document
        trigger: Event that caused the resolution
        sink: Optional persistence callback invoked after the confidence update

    Returns:
        Resolution; persistence failures are reported in its metadata

    Raises:
        AnchorValidationError: If the anchor record is malformed.
    """
    engine = AnchorService.get_instance()
    anchor = engine.load_anchor(anchor)

    resolution = engine.resolve(anchor, adapter)
    resolution.metadata["trigger"] = trigger.value

    if resolution.success:
        _persist(anchor, sink, resolution.metadata)
    return resolution


def resolve_all(
    anchors: Iterable[Any],
    adapter: DocumentAdapter,
    trigger: ResolutionTrigger = ResolutionTrigger.MUTATION,
    sink: Optional[PersistenceSink] = None,
) -> ResolutionBatch:
    """Re-resolves every anchor of a document after a (debounced) trigger.

    Anchors resolve independently; one anchor's outcome never affects another.

    Raises:
        AnchorValidationError: If a record is malformed or two anchors share
            an anchor_id.
    """
    engine = AnchorService.get_instance()
    loaded = [engine.load_anchor(a) for a in anchors]

    batch = engine.resolve_all(loaded, adapter)
    batch.metadata["trigger"] = trigger.value

    for anchor in loaded:
        resolution = batch.resolutions[anchor.anchor_id]
        resolution.metadata["trigger"] = trigger.value
        if resolution.success:
            _persist(anchor, sink, resolution.metadata)

    logger.info(
        "Anchors re-resolved",
        extra={
            "trigger": trigger.value,
            "anchor_count": len(loaded),
            "review_required": batch.review_required,
            "content_changed": batch.content_changed,
        },
    )
    return batch


def record_correction(
    anchor: Anchor,
    old_point: Any,
    new_point: Any,
    sink: Optional[PersistenceSink] = None,
) -> CalibrationResult:
    """Records one completed repositioning gesture (caller debounces moves)."""
    result = AnchorService.get_instance().record_correction(anchor, old_point, new_point)
    _persist(anchor, sink, result.metadata)
    return result


def fingerprint_changed(anchor: Anchor) -> bool:
    """Whether the last resolution saw content different from the stored fingerprint."""
    return AnchorService.get_instance().fingerprint_changed(anchor)


def confirm_anchor(
    anchor: Anchor, adapter: DocumentAdapter, sink: Optional[PersistenceSink] = None
) -> Anchor:
    """Accepts changed content after user review and recaptures the fingerprint.

    Raises:
        PersistenceError: If a sink was given and saving failed.
    """
    anchor = AnchorService.get_instance().confirm_anchor(anchor, adapter)
    if sink is not None:
        save_anchor(anchor, sink)
    return anchor


def load_anchor(record: Mapping[str, Any]) -> Anchor:
    return AnchorService.get_instance().load_anchor(record)


def dump_anchor(anchor: Anchor) -> Dict[str, Any]:
    return AnchoringEngine.dump_anchor(anchor)


def regenerate_anchor(
    anchor: Anchor,
    point: Any,
    node: Optional[Node],
    adapter: DocumentAdapter,
    sink: Optional[PersistenceSink] = None,
) -> Anchor:
    """Re-anchors an annotation the user explicitly placed somewhere new.

    Raises:
        AnchorValidationError: If the point or node data is malformed.
        PersistenceError: If a sink was given and saving failed.
    """
    anchor = AnchorService.get_instance().regenerate_anchor(anchor, point, node, adapter)
    if sink is not None:
        save_anchor(anchor, sink)
    return anchor
