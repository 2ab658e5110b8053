# reanchor/logic/calibration.py

"""Drift calibration: turning repeated user corrections into a learned offset."""

import logging
import statistics
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from reanchor.core.domain import (
    Anchor,
    CalibrationResult,
    Correction,
    Offset,
    Point,
    utc_now,
)

logger = logging.getLogger(__name__)


class CalibrationLogic:
    """Utility methods for correction statistics."""

    @staticmethod
    def mean_delta(corrections: Sequence[Correction]) -> Offset:
        return Offset(
            dx=statistics.fmean(c.delta.dx for c in corrections),
            dy=statistics.fmean(c.delta.dy for c in corrections),
        )

    @staticmethod
    def spread(corrections: Sequence[Correction]) -> Tuple[float, float]:
        """Per-axis population standard deviation of the deltas."""
        return (
            statistics.pstdev([c.delta.dx for c in corrections]),
            statistics.pstdev([c.delta.dy for c in corrections]),
        )


class DriftCalibrator:
    """Commits the mean correction as learned offset once corrections agree.

    Inconsistent corrections are noise rather than systematic drift and leave
    the learned offset untouched. A committed value replaces the previous one.
    """

    def __init__(
        self,
        cap: int = 20,
        min_samples: int = 3,
        consistency_threshold: float = 20.0,
    ) -> None:
        self.cap = cap
        self.min_samples = min_samples
        self.consistency_threshold = consistency_threshold

    def append(self, anchor: Anchor, correction: Correction) -> List[Correction]:
        """Appends to the anchor's ring buffer, evicting the oldest beyond the cap."""
        anchor.corrections.append(correction)
        overflow = len(anchor.corrections) - self.cap
        if overflow > 0:
            del anchor.corrections[:overflow]
        return anchor.corrections

    def record_correction(
        self,
        anchor: Anchor,
        old_point: Point,
        new_point: Point,
        captured_at: Optional[datetime] = None,
    ) -> CalibrationResult:
        """Records one completed repositioning gesture.

        Args:
            anchor: Anchor whose annotation was moved
            old_point: Position before the gesture
            new_point: Position after the gesture
            captured_at: Timestamp override, defaults to now (UTC)

        Returns:
            CalibrationResult describing whether a new offset was committed
        """
        correction = Correction(
            captured_at=captured_at or utc_now(),
            delta=new_point - old_point,
            strategy_used=anchor.last_strategy,
        )
        buffer = self.append(anchor, correction)

        if len(buffer) < self.min_samples:
            return CalibrationResult(
                committed=False,
                learned_offset=anchor.learned_offset,
                sample_size=len(buffer),
            )

        mean = CalibrationLogic.mean_delta(buffer)
        spread = CalibrationLogic.spread(buffer)
        consistent = all(axis < self.consistency_threshold for axis in spread)

        if consistent:
            anchor.learned_offset = mean
            logger.info(
                "Learned offset committed",
                extra={
                    "anchor_id": anchor.anchor_id,
                    "dx": round(mean.dx, 3),
                    "dy": round(mean.dy, 3),
                    "samples": len(buffer),
                },
            )
        else:
            logger.debug(
                "Corrections too inconsistent to calibrate",
                extra={
                    "anchor_id": anchor.anchor_id,
                    "spread_x": round(spread[0], 3),
                    "spread_y": round(spread[1], 3),
                },
            )

        return CalibrationResult(
            committed=consistent,
            learned_offset=anchor.learned_offset,
            sample_size=len(buffer),
            mean=mean,
            spread=spread,
        )
