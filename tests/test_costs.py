"""Tests for storycast.costs."""

import pytest

from storycast.costs import estimate_cost, format_estimate


def test_narrative_estimate() -> None:
    est = estimate_cost("narrative")
    assert est.completion_cost == pytest.approx(0.16)
    assert est.speech_cost == pytest.approx(0.0375)
    assert est.total_cost == pytest.approx(0.1975)
    assert format_estimate(est) == "$0.20 (~10 min)"


def test_formats_ordered_by_cost() -> None:
    narrative, interview, debate = (
        estimate_cost(f).total_cost for f in ("narrative", "interview", "debate")
    )
    assert narrative < interview < debate


def test_adventure_scales_with_nodes() -> None:
    est = estimate_cost("adventure", node_count=10)
    assert est.completion_cost == pytest.approx(1.37)
    assert est.speech_cost == pytest.approx(0.45)
    assert est.estimated_duration == 2400
    assert format_estimate(est) == "$1.82 (~40 min)"
    assert estimate_cost("adventure", node_count=5).total_cost < est.total_cost


def test_invalid_input() -> None:
    with pytest.raises(ValueError):
        estimate_cost("podcast")
    with pytest.raises(ValueError):
        estimate_cost("adventure", node_count=0)
