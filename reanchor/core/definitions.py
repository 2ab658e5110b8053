# reanchor/core/definitions.py

"""Locator strategy identifiers and their fixed tie-break priority."""

from enum import Enum
from typing import Dict, List


class StrategyKind(str, Enum):
    """The closed set of locator strategies."""

    IDENTIFIER = "identifier"
    TEXT_CONTEXT = "text_context"
    STRUCTURAL_PATH = "structural_path"
    SPATIAL_POSITION = "spatial_position"


class ResolutionTrigger(str, Enum):
    """External events that cause anchors to be re-resolved."""

    LOAD = "load"
    MUTATION = "mutation"
    RESIZE = "resize"


class AnchorState(str, Enum):
    """Conceptual per-anchor state, re-derived on every resolution."""

    FRESH = "fresh"
    RESOLVED = "resolved"
    DEGRADED = "degraded"


# Highest priority first; used to break confidence ties.
STRATEGY_PRIORITY: List[StrategyKind] = [
    StrategyKind.IDENTIFIER,
    StrategyKind.TEXT_CONTEXT,
    StrategyKind.STRUCTURAL_PATH,
    StrategyKind.SPATIAL_POSITION,
]

PRIORITY_RANK: Dict[StrategyKind, int] = {
    kind: rank for rank, kind in enumerate(STRATEGY_PRIORITY)
}
