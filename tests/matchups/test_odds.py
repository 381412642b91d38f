from __future__ import annotations

import pytest

from racematch.matchups.odds import (
    ODDS_BUCKETS,
    final_salary,
    fractional_to_decimal,
    is_also_eligible,
    mu_sigma_for_odds,
    salary_for_odds,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("5/2", 2.5),
        ("4/1", 4.0),
        (" 9 / 5 ", 1.8),
        ("1/3", 0.33),
        ("3/0", None),
        ("even", None),
        ("", None),
        (None, None),
    ],
)
def test_fractional_to_decimal(raw: str | None, expected: float | None) -> None:
    assert fractional_to_decimal(raw) == expected


@pytest.mark.parametrize(
    "odds, expected",
    [
        (0.5, 2400),
        (1.0, 2300),
        (2.4, 2000),
        (2.5, 1800),
        (10.0, 1000),
        (29.9, 400),
        (45.0, 200),
        (0.0, 0),
        (None, 0),
    ],
)
def test_salary_for_odds(odds: float | None, expected: int) -> None:
    assert salary_for_odds(odds) == expected


def test_also_eligible_salary_floor_is_higher() -> None:
    assert salary_for_odds(25.0, also_eligible=True) == 400
    assert salary_for_odds(45.0, also_eligible=True) == 400
    assert salary_for_odds(3.0, also_eligible=True) == 1800


def test_final_salary_averages_valid_prices() -> None:
    assert final_salary([2.0, 4.0, None, -1.0]) == 1800
    assert final_salary([]) == 0


def test_odds_buckets_cover_the_line() -> None:
    assert mu_sigma_for_odds(1.5).label == "0-2"
    assert mu_sigma_for_odds(2.0).label == "2-4"
    assert mu_sigma_for_odds(75.0).label == "50-100"
    assert mu_sigma_for_odds(500.0) is ODDS_BUCKETS[-1]
    for lower, upper in zip(ODDS_BUCKETS, ODDS_BUCKETS[1:]):
        assert lower.high == upper.low


@pytest.mark.parametrize(
    "record, expected",
    [
        ({"scratchIndicator": "a"}, True),
        ({"alsoEligible": True}, True),
        ({"notes": "Also Eligible entry"}, True),
        ({"status": "entered"}, False),
        ({"alsoEligible": "yes"}, False),
    ],
)
def test_is_also_eligible(record: dict, expected: bool) -> None:
    assert is_also_eligible(record) is expected
