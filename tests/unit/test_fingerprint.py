"""Unit tests for reanchor.engine.fingerprint."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from reanchor.core.domain import Fingerprint
from reanchor.engine.fingerprint import (
    capture_fingerprint,
    fingerprint_differs,
    rolling_hash,
    structural_hash,
    textual_hash,
)
from tests.fake_document import FakeDocument, el


def _long_document() -> FakeDocument:
    """Document whose visible text runs well past the 1000-character window."""
    return FakeDocument(
        el(
            "body",
            el("h1", text="Quarterly report", box=(0, 0, 100, 20)),
            el("p", text="x" * 1200, box=(0, 20, 100, 20)),
            el("p", text="Closing remarks", box=(0, 40, 100, 20)),
        )
    )


class TestRollingHash:
    def test_empty_string(self) -> None:
        assert rolling_hash("") == 0

    def test_matches_java_string_hash(self) -> None:
        assert rolling_hash("hello") == 99162322

    def test_wraps_to_signed_32_bit(self) -> None:
        assert rolling_hash("polygenelubricants") == -(2**31)


class TestCaptureFingerprint:
    def test_unchanged_document_matches(self) -> None:
        first = capture_fingerprint(_long_document())
        second = capture_fingerprint(_long_document())
        assert not fingerprint_differs(first, second)

    def test_text_edit_inside_window_changes_textual_hash(self) -> None:
        doc = _long_document()
        before = capture_fingerprint(doc)
        doc.by_text("Quarterly report").text = "Quarterly report (draft)"
        after = capture_fingerprint(doc)
        assert after.textual_hash != before.textual_hash
        assert after.structural_hash == before.structural_hash
        assert fingerprint_differs(before, after)

    def test_text_edit_outside_window_is_ignored(self) -> None:
        doc = _long_document()
        before = capture_fingerprint(doc)
        doc.by_text("Closing remarks").text = "Completely different ending"
        after = capture_fingerprint(doc)
        assert not fingerprint_differs(before, after)

    def test_structure_change_changes_structural_hash(self) -> None:
        doc = _long_document()
        before = capture_fingerprint(doc)
        doc.root.append(el("table"))
        after = capture_fingerprint(doc)
        assert after.structural_hash != before.structural_hash

    def test_structural_hash_samples_first_tags_only(self) -> None:
        doc = FakeDocument(el("body", *[el("div") for _ in range(150)]))
        baseline = structural_hash(doc)

        doc.root.children[120].tag = "span"
        assert structural_hash(doc) == baseline

        doc.root.children[5].tag = "span"
        assert structural_hash(doc) != baseline

    def test_tag_case_is_ignored(self) -> None:
        lower = FakeDocument(el("body", el("div"), el("p")))
        upper = FakeDocument(el("BODY", el("DIV"), el("P")))
        assert structural_hash(lower) == structural_hash(upper)

    def test_text_limit_is_configurable(self) -> None:
        doc = FakeDocument(el("body", el("p", text="abcdef"), el("p", text="ghij")))
        assert textual_hash(doc, text_limit=3) == rolling_hash("abc")
        assert textual_hash(doc, text_limit=100) == rolling_hash("abcdef\nghij")

    def test_captured_at_override(self) -> None:
        stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert capture_fingerprint(_long_document(), captured_at=stamp).captured_at == stamp


class TestFingerprintDiffers:
    def test_missing_fingerprint_never_signals_change(self) -> None:
        current = Fingerprint(structural_hash=1, textual_hash=2)
        assert not fingerprint_differs(None, current)
        assert not fingerprint_differs(current, None)

    @pytest.mark.parametrize(
        "structural, textual", [(1, 3), (9, 2)], ids=["text", "structure"]
    )
    def test_any_hash_mismatch_signals_change(self, structural: int, textual: int) -> None:
        stored = Fingerprint(structural_hash=1, textual_hash=2)
        current = Fingerprint(structural_hash=structural, textual_hash=textual)
        assert fingerprint_differs(stored, current)

    def test_fingerprint_is_immutable(self) -> None:
        stored = Fingerprint(structural_hash=1, textual_hash=2)
        with pytest.raises(ValidationError):
            stored.textual_hash = 5
