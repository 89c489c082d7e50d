from __future__ import annotations

from designlens.services.contrast import score_frame
from designlens.services.frame_scorer import heuristic_context, score_categories
from designlens.services.normalizer import normalize_document

from design_fixtures import document, frame, rect, text


def _scored(*children):
    return score_frame(normalize_document(document(frame("1:1", "Home", *children)))[0])


def test_well_formed_frame_scores_full_marks() -> None:
    scores = score_categories(
        _scored(
            text("1:2", "Title", y=40, font_size=60),
            text("1:3", "Subtitle", y=120, font_size=20),
            text("1:4", "Body", y=160, font_size=16),
        )
    )
    assert scores.frame_id == "1:1"
    assert (scores.color, scores.typography, scores.usability, scores.layout, scores.hierarchy) == (
        100,
        100,
        100,
        100,
        100,
    )
    assert scores.overall == 100


def test_single_font_size_has_weak_hierarchy() -> None:
    scores = score_categories(
        _scored(text("1:2", "One", y=40), text("1:3", "Two", y=80))
    )
    assert scores.hierarchy == 40
    assert "single font size" in scores.justifications.hierarchy


def test_small_tap_targets_lower_usability() -> None:
    scores = score_categories(
        _scored(
            rect("1:2", "Chip", width=30, height=30, fill=(0.9, 0.9, 0.9)),
            rect("1:3", "Action", y=100, width=48, height=48, fill=(0.9, 0.9, 0.9)),
        )
    )
    assert scores.usability == 50


def test_frame_without_text_keeps_color_score() -> None:
    scores = score_categories(_scored(rect("1:2", "Hero", width=200, height=200)))
    assert scores.color == 100
    assert scores.typography == 100


def test_small_text_lowers_typography() -> None:
    scores = score_categories(
        _scored(text("1:2", "Caption", font_size=12), text("1:3", "Body", y=60, font_size=16))
    )
    assert scores.typography == 50


def test_heuristic_context_averages_frames() -> None:
    first = score_categories(_scored(text("1:2", "One", y=40), text("1:3", "Two", y=80)))
    second = score_categories(
        _scored(
            text("1:2", "Title", y=40, font_size=60),
            text("1:3", "Subtitle", y=120, font_size=20),
            text("1:4", "Body", y=160, font_size=16),
        )
    )
    context = heuristic_context([first, second], {"1:1": 100, "2:1": 50})
    assert context["hierarchy"] == 70
    assert context["accessibility"] == 75
    assert heuristic_context([], {}) == {}


def test_heuristic_context_rounds_halves_up() -> None:
    scores = score_categories(_scored(text("1:2", "One", y=40), text("1:3", "Two", y=80)))
    context = heuristic_context([scores], {"1:1": 50, "2:1": 51})
    assert context["accessibility"] == 51
