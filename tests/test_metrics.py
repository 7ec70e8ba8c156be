import pytest

from embedding_flame.comparison.metrics import (
    cosine_similarity, levenshtein_distance, text_distance_percent,
)


@pytest.mark.parametrize("a,b,expected", [
    ([1, 0], [0, 1], 0.0),
    ([1, 2], [2, 4], 1.0),
    ([1, 2], [-1, -2], -1.0),
    ([0, 0], [1, 1], 0.0),
    ([1, 2, 3], [1, 2], 0.0),
    ([], [], 0.0),
])
def test_cosine_similarity(a, b, expected):
    assert cosine_similarity(a, b) == pytest.approx(expected)


@pytest.mark.parametrize("a,b,expected", [
    ("kitten", "sitting", 3),
    ("", "abc", 3),
    ("abc", "", 3),
    ("flame", "flame", 0),
    ("flaw", "lawn", 2),
])
def test_levenshtein_distance(a, b, expected):
    assert levenshtein_distance(a, b) == expected


def test_text_distance_percent():
    assert text_distance_percent("abc", "abd") == pytest.approx(100 / 3)
    assert text_distance_percent("", "") == 0.0
