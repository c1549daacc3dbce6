"""Pairwise similarity scoring properties."""
from datetime import timedelta

import pytest

from factories import T0, dishes, restaurant, wines
from taste_api.matching.categories import TasteCategory
from taste_api.matching.classifier import evaluate, is_eligible
from taste_api.matching.extractor import extract_rated_items
from taste_api.matching.scorer import recency_weight, score_pair

R = TasteCategory.RESTAURANT
W = TasteCategory.WINE


def _items(notes, category=R):
    return extract_rated_items(notes, category)


def test_identical_ratings_score_one() -> None:
    a = _items([restaurant("a", "Ramen", 8), restaurant("a", "Sushi", 9)])
    b = _items([restaurant("b", "Ramen", 8), restaurant("b", "Sushi", 9)])
    result = score_pair(R, "a", "b", a, b)
    assert result.overlap_count == 2
    assert result.score == 1.0


def test_six_items_one_point_apart() -> None:
    a = _items(dishes("a", [8, 7, 6, 9, 5, 4]))
    b = _items(dishes("b", [9, 6, 7, 8, 6, 3]))
    result = score_pair(R, "a", "b", a, b)
    assert result.overlap_count == 6
    assert result.score == pytest.approx(round(1 - 1 / 9, 3))


def test_no_overlap_gives_null_score() -> None:
    a = _items(dishes("a", [8, 7]))
    b = _items(dishes("b", [8, 7], start=10))
    result = score_pair(R, "a", "b", a, b)
    assert result.overlap_count == 0
    assert result.score is None
    assert result.insufficient_data(5)


def test_maximal_disagreement_scores_zero() -> None:
    a = _items(dishes("a", [1, 10, 1]))
    b = _items(dishes("b", [10, 1, 10]))
    assert score_pair(R, "a", "b", a, b).score == 0.0


def test_score_is_symmetric() -> None:
    a = _items(wines("a", [3, 7, 9, 2, 10, 6]), W)
    b = _items(wines("b", [5, 7, 1, 4, 8, 6, 9]), W)
    ab = score_pair(W, "a", "b", a, b)
    ba = score_pair(W, "b", "a", b, a)
    assert ab.score == ba.score
    assert ab.overlap_count == ba.overlap_count == 6


def test_score_stays_in_bounds() -> None:
    for shift in range(10):
        a = _items(dishes("a", [1, 2, 3, 4, 5, 6, 7, 8, 9, 10]))
        b = _items(dishes("b", [min(10, r + shift) for r in range(1, 11)]))
        score = score_pair(R, "a", "b", a, b).score
        assert 0.0 <= score <= 1.0


def test_recency_weight_halves_every_half_life() -> None:
    assert recency_weight(T0, T0, 180) == pytest.approx(1.0)
    assert recency_weight(T0, T0 + timedelta(days=180), 180) == pytest.approx(0.5)
    # Future experiences are not boosted
    assert recency_weight(T0 + timedelta(days=5), T0, 180) == pytest.approx(1.0)


def test_recent_agreement_outweighs_old_disagreement() -> None:
    now = T0 + timedelta(days=730)
    a = _items([
        restaurant("a", "Old", 1, at=T0),
        restaurant("a", "New", 8, at=now),
    ])
    b = _items([
        restaurant("b", "Old", 10, at=T0),
        restaurant("b", "New", 8, at=now),
    ])
    unweighted = score_pair(R, "a", "b", a, b).score
    weighted = score_pair(R, "a", "b", a, b, half_life_days=180, now=now).score
    assert unweighted == pytest.approx(0.5)
    assert weighted > 0.9
    assert weighted == score_pair(R, "b", "a", b, a, half_life_days=180, now=now).score


def test_cache_payload_roundtrip() -> None:
    a = _items(dishes("a", [8, 7]))
    b = _items(dishes("b", [8, 5]))
    result = score_pair(R, "a", "b", a, b)
    restored = type(result).from_cache(R, "a", "b", result.to_cache())
    assert restored == result


def test_score_exactly_on_pin_threshold_is_eligible() -> None:
    # Differences (0, 1, 1, 1, 1, 1, 1, 5, 8, 8): mean 2.7, score exactly 0.70
    a = _items(dishes("a", [5, 5, 5, 5, 5, 5, 5, 5, 1, 1]))
    b = _items(dishes("b", [5, 6, 6, 6, 6, 6, 6, 10, 9, 9]))

    result = score_pair(R, "a", "b", a, b)

    assert result.overlap_count == 10
    assert result.score == 0.70
    assert is_eligible(result.score, result.overlap_count) is True
    assert evaluate(result).eligible is True
    assert score_pair(R, "b", "a", b, a).score == 0.70


def test_scores_are_rounded_to_three_decimals() -> None:
    a = _items(dishes("a", [8, 7, 6]))
    b = _items(dishes("b", [8, 7, 5]))
    assert score_pair(R, "a", "b", a, b).score == 0.963
