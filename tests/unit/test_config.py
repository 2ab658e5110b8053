"""Unit tests for reanchor.service.config."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from reanchor.core.definitions import StrategyKind
from reanchor.service.config import Settings


class TestSettings:
    def test_defaults(self) -> None:
        config = Settings()
        assert config.reinforcement_step == pytest.approx(0.05)
        assert config.degraded_confidence == pytest.approx(0.10)
        assert config.neighbor_overlap_threshold == pytest.approx(0.7)
        assert config.fingerprint_tag_limit == 100
        assert config.fingerprint_text_limit == 1000
        assert config.correction_cap == 20
        assert config.calibration_min_samples == 3
        assert config.calibration_consistency_threshold == pytest.approx(20.0)
        assert set(config.initial_confidence) == set(StrategyKind)

    def test_environment_override(self, monkeypatch) -> None:
        monkeypatch.setenv("REANCHOR_CORRECTION_CAP", "5")
        monkeypatch.setenv("REANCHOR_LOG_LEVEL", "debug")
        config = Settings()
        assert config.correction_cap == 5
        assert config.log_level == "DEBUG"

    def test_rejects_out_of_range_step(self) -> None:
        with pytest.raises(ValidationError):
            Settings(reinforcement_step=0)

    def test_rejects_debounce_outside_recommended_window(self) -> None:
        with pytest.raises(ValidationError):
            Settings(mutation_debounce_ms=50)

    def test_initial_confidence_must_cover_every_strategy(self) -> None:
        with pytest.raises(ValidationError, match="missing"):
            Settings(initial_confidence={StrategyKind.IDENTIFIER: 0.9})

    def test_rejects_unknown_log_level(self) -> None:
        with pytest.raises(ValidationError):
            Settings(log_level="LOUD")
