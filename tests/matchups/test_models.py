from __future__ import annotations

import math
from typing import Callable

import pytest

from racematch.matchups.entities import Connection
from racematch.matchups.models import (
    DEFAULT_AVPA,
    SideProfile,
    balance_score,
    calculate_set_mu_sigma,
    connection_profile,
    head_to_head_probability,
    normal_cdf,
    odds_bucket_profile,
    three_way_probabilities,
)


def test_normal_cdf_matches_reference_points() -> None:
    assert normal_cdf(0.0) == pytest.approx(0.5, abs=1e-7)
    assert normal_cdf(1.0) == pytest.approx(0.8413447, abs=1e-6)
    assert normal_cdf(-1.96) == pytest.approx(0.0249979, abs=1e-6)
    assert normal_cdf(8.0) == pytest.approx(1.0, abs=1e-7)


def test_zero_sigma_is_deterministic() -> None:
    assert head_to_head_probability(10.0, 0.0, 5.0, 0.0) == 1.0
    assert head_to_head_probability(5.0, 0.0, 10.0, 0.0) == 0.0
    assert head_to_head_probability(7.0, 0.0, 7.0, 0.0) == 0.5


@pytest.mark.parametrize(
    "mu_a, sigma_a, mu_b, sigma_b",
    [
        (10.0, 3.0, 8.0, 4.0),
        (40.0, 20.0, 12.0, 1.0),
        (0.0, 0.5, 0.0, 0.5),
        (5.0, 0.0, 6.0, 2.0),
    ],
)
def test_head_to_head_is_symmetric(
    mu_a: float, sigma_a: float, mu_b: float, sigma_b: float
) -> None:
    forward = head_to_head_probability(mu_a, sigma_a, mu_b, sigma_b)
    backward = head_to_head_probability(mu_b, sigma_b, mu_a, sigma_a)
    assert forward + backward == pytest.approx(1.0, abs=1e-9)


def test_stronger_side_is_favoured() -> None:
    assert head_to_head_probability(20.0, 5.0, 10.0, 5.0) > 0.5
    assert head_to_head_probability(10.0, 5.0, 20.0, 5.0) < 0.5


@pytest.mark.parametrize(
    "profiles",
    [
        (SideProfile(10, 3), SideProfile(10, 3), SideProfile(10, 3)),
        (SideProfile(30, 0), SideProfile(10, 4), SideProfile(5, 2)),
        (SideProfile(5, 0), SideProfile(5, 0), SideProfile(5, 0)),
        (SideProfile(1, 0), SideProfile(2, 0), SideProfile(3, 0)),
    ],
)
def test_three_way_probabilities_sum_to_one(profiles: tuple[SideProfile, ...]) -> None:
    result = three_way_probabilities(*profiles)
    assert sum(result) == pytest.approx(1.0, abs=1e-9)
    assert all(0.0 <= value <= 1.0 for value in result)


def test_three_way_identical_sides_split_evenly() -> None:
    result = three_way_probabilities(SideProfile(10, 3), SideProfile(10, 3), SideProfile(10, 3))
    # Pairwise terms are all 0.5, so each raw score is 0.25 before normalising.
    assert result.p_a == pytest.approx(1 / 3)
    assert result.p_b == pytest.approx(1 / 3)
    assert result.p_c == pytest.approx(1 / 3)
    assert result.max_deviation() == pytest.approx(0.0, abs=1e-12)


def test_three_way_uses_pairwise_product_heuristic() -> None:
    a, b, c = SideProfile(12, 4), SideProfile(10, 3), SideProfile(8, 5)
    p_ab = head_to_head_probability(a.mu, a.sigma, b.mu, b.sigma)
    p_ac = head_to_head_probability(a.mu, a.sigma, c.mu, c.sigma)
    p_bc = head_to_head_probability(b.mu, b.sigma, c.mu, c.sigma)
    raw = (p_ab * p_ac, (1 - p_ab) * p_bc, (1 - p_ac) * (1 - p_bc))
    total = sum(raw)

    result = three_way_probabilities(a, b, c)

    assert result.p_a == pytest.approx(raw[0] / total)
    assert result.p_b == pytest.approx(raw[1] / total)
    assert result.p_c == pytest.approx(raw[2] / total)


def test_empty_set_profile_is_zero() -> None:
    assert tuple(calculate_set_mu_sigma([])) == (0.0, 0.0)


def test_set_profile_uses_explicit_values(
    connection_factory: Callable[..., Connection],
) -> None:
    single = connection_factory("Solo", mu=10.0, sigma=3.0)
    assert tuple(calculate_set_mu_sigma([single])) == (10.0, 3.0)

    pair = calculate_set_mu_sigma([single, connection_factory("Partner", mu=10.0, sigma=3.0)])
    assert pair.mu == pytest.approx(20.0)
    assert pair.sigma == pytest.approx(math.sqrt(18.0))


def test_fallback_profile_prefers_thirty_day_efficiency(
    connection_factory: Callable[..., Connection],
) -> None:
    connection = connection_factory("Fallback", mu=None, sigma=None, apps=3)
    connection.avpa_30d = 12.0
    connection.avpa_race = 4.0
    assert tuple(connection_profile(connection)) == (36.0, 18.0)

    connection.avpa_30d = 0.0
    assert tuple(connection_profile(connection)) == (12.0, 6.0)

    connection.avpa_race = 0.0
    connection.apps = 0
    assert tuple(connection_profile(connection)) == (DEFAULT_AVPA, DEFAULT_AVPA / 2)


def test_odds_bucket_profile_scales_with_starts(
    connection_factory: Callable[..., Connection],
) -> None:
    connection = connection_factory("Priced", mu=None, sigma=None, apps=4, avg_odds=3.0)
    profile = odds_bucket_profile(connection)
    assert profile.mu == pytest.approx(13.89 * 4)
    assert profile.sigma == pytest.approx(15.42 * 2)


@pytest.mark.parametrize(
    "deviation, ways, expected",
    [
        (0.0, 2, 100),
        (0.0, 3, 100),
        (0.15, 2, 70),
        (0.5, 2, 0),
        (0.2, 3, 40),
        (1 / 3, 3, 0),
        (0.9, 3, 0),
        # Halves round up.
        (0.1875, 2, 63),
        (0.0075, 2, 99),
    ],
)
def test_balance_score(deviation: float, ways: int, expected: int) -> None:
    assert balance_score(deviation, ways) == expected


def test_equal_sides_are_an_exact_coin_flip() -> None:
    assert normal_cdf(0.0) == 0.5
    assert normal_cdf(-0.0) == 0.5
    forward = head_to_head_probability(10.0, 3.0, 10.0, 3.0)
    assert forward == 0.5
    assert forward + head_to_head_probability(10.0, 3.0, 10.0, 3.0) == 1.0
