"""Tests for integer percentage rounding."""

import pytest

from mindful.utils import percent_of


@pytest.mark.parametrize(
    "part,whole,expected",
    [
        (0, 0, 0),
        (0, 5, 0),
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),
        (1, 200, 1),
        (199, 200, 100),
        (1, 2, 50),
        (7, 7, 100),
    ],
)
def test_percent_of(part: int, whole: int, expected: int) -> None:
    assert percent_of(part, whole) == expected
