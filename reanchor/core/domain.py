# reanchor/core/domain.py

"""Domain models for anchors, locator descriptors and resolution results.

Persisted records (Anchor and everything it owns) are pydantic models so
that malformed input is rejected at the boundary and the storage layout is
a plain JSON-compatible dict. Transient results are dataclasses.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    field_validator,
    model_validator,
)

from reanchor.core.definitions import STRATEGY_PRIORITY, AnchorState, StrategyKind


def utc_now() -> datetime:
    """Returns the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Reads naive timestamps from storage as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


class Offset(BaseModel):
    """A positional delta in document units."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    dx: float = 0.0
    dy: float = 0.0

    def __add__(self, other: "Offset") -> "Offset":
        return Offset(dx=self.dx + other.dx, dy=self.dy + other.dy)


class Point(BaseModel):
    """A 2D coordinate. Viewport or absolute depending on context."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    x: float
    y: float

    def __add__(self, offset: Offset) -> "Point":
        return Point(x=self.x + offset.dx, y=self.y + offset.dy)

    def __sub__(self, other: "Point") -> Offset:
        return Offset(dx=self.x - other.x, dy=self.y - other.y)

    def to_absolute(self, scroll: Tuple[float, float]) -> "Point":
        """Converts a viewport point to document coordinates."""
        return Point(x=self.x + scroll[0], y=self.y + scroll[1])

    def to_viewport(self, scroll: Tuple[float, float]) -> "Point":
        """Converts a document point to viewport coordinates."""
        return Point(x=self.x - scroll[0], y=self.y - scroll[1])


@dataclass(frozen=True)
class BoundingBox:
    """Viewport-relative box of a live node, as reported by the adapter."""

    x: float
    y: float
    width: float
    height: float

    @property
    def top_left(self) -> Point:
        return Point(x=self.x, y=self.y)

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x <= self.x + self.width and self.y <= y <= self.y + self.height


# ---------------------------------------------------------------------------
# Locator descriptors (closed tagged union)
# ---------------------------------------------------------------------------


class PathStep(BaseModel):
    """One step of a root-to-node path: ordinal child index and expected tag."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    tag: str = Field(min_length=1)


class IdentifierDescriptor(BaseModel):
    """Stable unique attribute of the anchored node."""

    kind: Literal["identifier"] = "identifier"
    identifier: str
    offset: Offset = Field(default_factory=Offset)

    @field_validator("identifier")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("identifier cannot be blank")
        return v


class TextContextDescriptor(BaseModel):
    """Target text fragment plus the text immediately around it."""

    kind: Literal["text_context"] = "text_context"
    target: str
    context_before: str = ""
    context_after: str = ""
    offset: Offset = Field(default_factory=Offset)

    @field_validator("target")
    @classmethod
    def validate_target(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("target text cannot be blank")
        return v


class StructuralPathDescriptor(BaseModel):
    """Root-to-node path of ordinal child indices with expected tags."""

    kind: Literal["structural_path"] = "structural_path"
    steps: List[PathStep] = Field(min_length=1)
    offset: Offset = Field(default_factory=Offset)


class SpatialPositionDescriptor(BaseModel):
    """Absolute coordinate plus a short list of neighbor tags for validation."""

    kind: Literal["spatial_position"] = "spatial_position"
    point: Point
    neighbor_tags: List[str] = Field(default_factory=list)


LocatorDescriptor = Annotated[
    Union[
        IdentifierDescriptor,
        TextContextDescriptor,
        StructuralPathDescriptor,
        SpatialPositionDescriptor,
    ],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Persisted anchor state
# ---------------------------------------------------------------------------


class Fingerprint(BaseModel):
    """Bounded structural/textual signature of the document content region.

    Attributes:
        structural_hash: Rolling hash over the first K tags in document order
        textual_hash: Rolling hash over the first M characters of visible text
        captured_at: When the signature was taken
    """

    model_config = ConfigDict(frozen=True)

    structural_hash: int
    textual_hash: int
    captured_at: datetime = Field(default_factory=utc_now)

    @field_validator("captured_at")
    @classmethod
    def validate_captured_at(cls, v: datetime) -> datetime:
        return as_utc(v)

    def matches(self, other: "Fingerprint") -> bool:
        return (
            self.structural_hash == other.structural_hash
            and self.textual_hash == other.textual_hash
        )


class Correction(BaseModel):
    """One completed user repositioning gesture.

    Attributes:
        captured_at: When the gesture completed
        delta: new position minus old position
        strategy_used: Strategy that produced the corrected position,
            None when it came from the degraded fallback
    """

    model_config = ConfigDict(frozen=True)

    captured_at: datetime = Field(default_factory=utc_now)
    delta: Offset
    strategy_used: Optional[StrategyKind] = None

    @field_validator("captured_at")
    @classmethod
    def validate_captured_at(cls, v: datetime) -> datetime:
        return as_utc(v)


class Anchor(BaseModel):
    """Self-contained, persisted record that re-locates one annotation.

    Attributes:
        anchor_id: Identity of the owning annotation's anchor
        document_key: Normalized document identifier supplied by the caller
        descriptors: One descriptor per strategy that could be derived
        confidence: One score in [0, 1] for every strategy
        fingerprint: Content signature captured at creation or re-anchoring
        learned_offset: Calibrated drift applied on top of every resolution
        corrections: Bounded history of user corrections, oldest first
        last_known_point: Last displayed position in document coordinates
        last_strategy: Strategy behind the last displayed position
    """

    anchor_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    document_key: str = ""
    descriptors: Dict[StrategyKind, LocatorDescriptor]
    confidence: Dict[StrategyKind, float]
    fingerprint: Fingerprint
    learned_offset: Optional[Offset] = None
    corrections: List[Correction] = Field(default_factory=list)
    last_known_point: Point
    last_strategy: Optional[StrategyKind] = None
    created_at: datetime = Field(default_factory=utc_now)

    _last_resolution: Optional[Any] = PrivateAttr(default=None)

    @field_validator("created_at")
    @classmethod
    def validate_created_at(cls, v: datetime) -> datetime:
        return as_utc(v)

    @field_validator("confidence")
    @classmethod
    def validate_confidence(
        cls, v: Dict[StrategyKind, float]
    ) -> Dict[StrategyKind, float]:
        """Ensure every strategy has exactly one score within [0, 1]."""
        missing = [kind.value for kind in STRATEGY_PRIORITY if kind not in v]
        if missing:
            raise ValueError(f"confidence missing for strategies: {missing}")
        for kind, score in v.items():
            if not 0.0 <= score <= 1.0:
                raise ValueError(f"confidence for {kind.value} out of range: {score}")
        return v

    @model_validator(mode="after")
    def validate_descriptors(self) -> "Anchor":
        if not self.descriptors:
            raise ValueError("anchor requires at least one locator descriptor")
        for kind, descriptor in self.descriptors.items():
            if descriptor.kind != kind.value:
                raise ValueError(
                    f"descriptor of kind '{descriptor.kind}' stored under '{kind.value}'"
                )
        return self

    @property
    def last_resolution(self) -> Optional["Resolution"]:
        return self._last_resolution

    @property
    def state(self) -> AnchorState:
        """Derived from the last resolution; there is no terminal state."""
        if self._last_resolution is None:
            return AnchorState.FRESH
        if self._last_resolution.success:
            return AnchorState.RESOLVED
        return AnchorState.DEGRADED

    def remember(self, resolution: "Resolution") -> None:
        """Keeps the last resolution in memory only."""
        self._last_resolution = resolution


# ---------------------------------------------------------------------------
# Transient results
# ---------------------------------------------------------------------------


@dataclass
class Resolution:
    """Result of one resolve() call.

    Attributes:
        resolved_point: Viewport position, learned offset included
        strategy_used: Winning strategy, None when degraded
        confidence: Confidence reported for this resolution
        success: False when every strategy missed
        requires_review: Caller should surface a non-fatal warning
        content_changed: Fingerprint differs from the stored one
        matched_node: Live node the winning strategy found, if any
        attempted: Strategies tried, in order
        metadata: Additional processing information
    """

    resolved_point: Point
    strategy_used: Optional[StrategyKind]
    confidence: float
    success: bool
    requires_review: bool = False
    content_changed: bool = False
    matched_node: Any = None
    attempted: List[StrategyKind] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CalibrationResult:
    """Outcome of recording one correction.

    Attributes:
        committed: True when a new learned offset was written
        learned_offset: Learned offset after this correction (may be None)
        sample_size: Corrections currently buffered
        mean: Mean delta over the buffer, once enough samples exist
        spread: Per-axis population standard deviation, once enough samples exist
        metadata: Additional processing information
    """

    committed: bool
    learned_offset: Optional[Offset]
    sample_size: int
    mean: Optional[Offset] = None
    spread: Optional[Tuple[float, float]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ResolutionBatch:
    """Resolutions for every anchor of one re-resolve trigger."""

    resolutions: Dict[str, Resolution] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def review_required(self) -> int:
        return sum(1 for r in self.resolutions.values() if r.requires_review)

    @property
    def content_changed(self) -> int:
        return sum(1 for r in self.resolutions.values() if r.content_changed)
