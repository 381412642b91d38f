"""Statistical model and win-probability calculators for matchup sides.

A side's point total is modelled as a normal variable.  Members of a side are
treated as independent, so expected points add and variances add.  Head to
head probabilities come from the normal difference of two sides; three-way
probabilities combine the pairwise results with a normalised product
heuristic rather than a trivariate integral.  Balance tolerances elsewhere in
the package were tuned against that heuristic.
"""

from __future__ import annotations

import dataclasses
import math
from typing import Iterable, Iterator, Sequence

from .entities import Connection
from .odds import ODDS_BUCKETS, OddsBucket, mu_sigma_for_odds

DEFAULT_AVPA = 8.0
FALLBACK_VOLATILITY = 0.5
FAIR_TWO_WAY = 0.5
FAIR_THREE_WAY = 1.0 / 3.0

# Abramowitz & Stegun 7.1.26
_A1 = 0.254829592
_A2 = -0.284496736
_A3 = 1.421413741
_A4 = -1.453152027
_A5 = 1.061405429
_P = 0.3275911


@dataclasses.dataclass(frozen=True, slots=True)
class SideProfile:
    """Expected points and standard deviation for a side."""

    mu: float
    sigma: float

    def __iter__(self) -> Iterator[float]:
        yield self.mu
        yield self.sigma


@dataclasses.dataclass(frozen=True, slots=True)
class ThreeWayProbabilities:
    """Win probabilities for the three sides of a 3-way matchup."""

    p_a: float
    p_b: float
    p_c: float

    def __iter__(self) -> Iterator[float]:
        yield self.p_a
        yield self.p_b
        yield self.p_c

    def max_deviation(self, target: float = FAIR_THREE_WAY) -> float:
        return max(abs(self.p_a - target), abs(self.p_b - target), abs(self.p_c - target))


# ---------------------------------------------------------------------------
# Statistical model
# ---------------------------------------------------------------------------


def connection_profile(connection: Connection) -> SideProfile:
    """Return a single connection's (mu, sigma).

    Explicit values assigned upstream win.  Otherwise expected points are
    estimated from the connection's points-per-$1000 efficiency and its
    number of starts, with an assumed 50% coefficient of variation.
    """

    if connection.mu is not None and connection.sigma is not None:
        return SideProfile(float(connection.mu), float(connection.sigma))
    efficiency = connection.avpa_30d or connection.avpa_race or DEFAULT_AVPA
    estimated_mu = efficiency * max(connection.apps, 1)
    return SideProfile(estimated_mu, FALLBACK_VOLATILITY * estimated_mu)


def calculate_set_mu_sigma(connections: Iterable[Connection]) -> SideProfile:
    """Combine member profiles assuming independence between members."""

    total_mu = 0.0
    total_variance = 0.0
    for connection in connections:
        profile = connection_profile(connection)
        total_mu += profile.mu
        total_variance += profile.sigma * profile.sigma
    return SideProfile(total_mu, math.sqrt(total_variance))


def odds_bucket_profile(
    connection: Connection, buckets: Sequence[OddsBucket] = ODDS_BUCKETS
) -> SideProfile:
    """Profile from the odds bucket of the connection's average price.

    Bucket figures are per start, so they are scaled by the number of starts
    on the slate.
    """

    starts = max(connection.apps, 1)
    bucket = mu_sigma_for_odds(connection.avg_odds, buckets)
    return SideProfile(bucket.mu * starts, bucket.sigma * math.sqrt(starts))


# ---------------------------------------------------------------------------
# Probability calculators
# ---------------------------------------------------------------------------


def normal_cdf(x: float) -> float:
    """Standard normal CDF via a rational approximation (|error| < 1.5e-7)."""

    if x == 0:
        return 0.5
    sign = -1.0 if x < 0 else 1.0
    z = abs(x) / math.sqrt(2.0)
    t = 1.0 / (1.0 + _P * z)
    y = 1.0 - (((((_A5 * t + _A4) * t) + _A3) * t + _A2) * t + _A1) * t * math.exp(-z * z)
    return 0.5 * (1.0 + sign * y)


def head_to_head_probability(
    mu_a: float, sigma_a: float, mu_b: float, sigma_b: float
) -> float:
    """Probability that side A outscores side B."""

    mu_diff = mu_a - mu_b
    sigma_diff = math.sqrt(sigma_a * sigma_a + sigma_b * sigma_b)
    if sigma_diff == 0:
        if mu_diff > 0:
            return 1.0
        if mu_diff < 0:
            return 0.0
        return 0.5
    return 1.0 - normal_cdf(-mu_diff / sigma_diff)


def three_way_probabilities(
    a: SideProfile, b: SideProfile, c: SideProfile
) -> ThreeWayProbabilities:
    """Approximate win probabilities for three sides from pairwise results.

    ``P(A wins)`` is taken proportional to ``P(A>B) * P(A>C)`` (and likewise
    for B and C) and the three scores are normalised to sum to one.
    """

    p_ab = head_to_head_probability(a.mu, a.sigma, b.mu, b.sigma)
    p_ac = head_to_head_probability(a.mu, a.sigma, c.mu, c.sigma)
    p_bc = head_to_head_probability(b.mu, b.sigma, c.mu, c.sigma)

    raw_a = p_ab * p_ac
    raw_b = (1.0 - p_ab) * p_bc
    raw_c = (1.0 - p_ac) * (1.0 - p_bc)
    total = raw_a + raw_b + raw_c
    if total <= 0.0:
        # Only reachable with degenerate cyclic inputs; fall back to a fair split.
        return ThreeWayProbabilities(FAIR_THREE_WAY, FAIR_THREE_WAY, FAIR_THREE_WAY)
    return ThreeWayProbabilities(raw_a / total, raw_b / total, raw_c / total)


def balance_score(max_deviation: float, ways: int) -> int:
    """0-100 score for how close probabilities sit to the fair split."""

    factor = 3.0 if ways == 3 else 2.0
    # Half-up rounding, so 98.5 scores 99.
    score = math.floor((1.0 - max_deviation * factor) * 100 + 0.5)
    return int(min(100, max(0, score)))


__all__ = [
    "DEFAULT_AVPA",
    "FAIR_THREE_WAY",
    "FAIR_TWO_WAY",
    "SideProfile",
    "ThreeWayProbabilities",
    "balance_score",
    "calculate_set_mu_sigma",
    "connection_profile",
    "head_to_head_probability",
    "normal_cdf",
    "odds_bucket_profile",
    "three_way_probabilities",
]
