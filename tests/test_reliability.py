import pytest

from ginmai.services.reliability import score


def test_no_meals_is_new_with_perfect_score():
    r = score(0, 0, 0)
    assert r.label == "New"
    assert r.score == 1.0
    assert r.percentage == 100


def test_under_three_meals_is_new_even_with_no_shows():
    r = score(1, 1, 2)
    assert r.label == "New"
    assert r.score == 0.0


@pytest.mark.parametrize(
    "hosted, joined, no_shows, label",
    [
        (10, 10, 0, "Reliable"),
        (10, 10, 1, "Reliable"),  # 0.95 boundary
        (5, 5, 1, "Good"),
        (5, 5, 2, "Good"),  # 0.80 boundary
        (5, 5, 3, "Fair"),
        (5, 5, 4, "Fair"),  # 0.60 boundary
        (5, 5, 5, "Warning"),
    ],
)
def test_label_thresholds(hosted, joined, no_shows, label):
    assert score(hosted, joined, no_shows).label == label


def test_more_no_shows_than_meals_clamps_to_zero():
    r = score(3, 0, 10)
    assert r.score == 0.0
    assert r.meals_completed == 0
    assert r.label == "Warning"


def test_warning_banner_needs_five_meals():
    assert score(5, 0, 3).should_show_warning is True
    assert score(3, 0, 3).should_show_warning is False
    assert score(10, 0, 0).should_show_warning is False


def test_badge_and_description():
    r = score(10, 10, 0)
    assert r.badge == "⭐"
    assert "reliable" in r.description.lower()
