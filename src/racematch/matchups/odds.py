"""Odds conversion, salary bins and odds-bucket scoring profiles."""

from __future__ import annotations

import dataclasses
import math
from fractions import Fraction
from typing import Iterable, Mapping, Sequence, Tuple

__all__ = [
    "ALSO_ELIGIBLE_SALARY_BINS",
    "ODDS_BUCKETS",
    "OddsBucket",
    "SALARY_BINS",
    "final_salary",
    "fractional_to_decimal",
    "is_also_eligible",
    "mu_sigma_for_odds",
    "salary_for_odds",
]


# (upper bound of decimal odds, salary).  Odds above the last bound get the
# floor salary.
SALARY_BINS: Tuple[Tuple[float, int], ...] = (
    (0.7, 2400),
    (1.1, 2300),
    (1.7, 2200),
    (2.4, 2000),
    (3.4, 1800),
    (4.4, 1600),
    (5.9, 1400),
    (7.9, 1200),
    (10.9, 1000),
    (14.9, 800),
    (19.9, 600),
    (29.9, 400),
)
SALARY_FLOOR = 200

ALSO_ELIGIBLE_SALARY_BINS: Tuple[Tuple[float, int], ...] = SALARY_BINS[:-1]
ALSO_ELIGIBLE_SALARY_FLOOR = 400


@dataclasses.dataclass(frozen=True, slots=True)
class OddsBucket:
    """Empirical per-start points distribution for an odds range."""

    low: float
    high: float
    mu: float
    sigma: float
    label: str

    def contains(self, odds: float) -> bool:
        return self.low <= odds < self.high


ODDS_BUCKETS: Tuple[OddsBucket, ...] = (
    OddsBucket(0.0, 2.0, 19.69, 13.91, "0-2"),
    OddsBucket(2.0, 4.0, 13.89, 15.42, "2-4"),
    OddsBucket(4.0, 6.0, 11.54, 16.16, "4-6"),
    OddsBucket(6.0, 10.0, 10.01, 16.74, "6-10"),
    OddsBucket(10.0, 15.0, 7.75, 17.03, "10-15"),
    OddsBucket(15.0, 20.0, 7.74, 19.77, "15-20"),
    OddsBucket(20.0, 30.0, 5.51, 17.57, "20-30"),
    OddsBucket(30.0, 50.0, 5.01, 20.00, "30-50"),
    OddsBucket(50.0, 100.0, 2.90, 18.33, "50-100"),
    OddsBucket(100.0, math.inf, 5.89, 42.57, "100+"),
)


def fractional_to_decimal(odds: str | None) -> float | None:
    """Convert a fractional price such as ``"5/2"`` to its decimal ratio.

    Race cards quote the ratio itself (``4/1`` is ``4.0``), so unlike
    sportsbook decimal odds no stake is added.  Returns ``None`` when the
    value cannot be parsed.
    """

    if not odds:
        return None
    parts = odds.strip().split("/")
    if len(parts) != 2:
        return None
    try:
        numerator = Fraction(parts[0].strip())
        denominator = Fraction(parts[1].strip())
    except (ValueError, ZeroDivisionError):
        return None
    if denominator == 0:
        return None
    return round(float(numerator / denominator), 2)


def salary_for_odds(odds: float | None, also_eligible: bool = False) -> int:
    """Return the salary assigned to a starter quoted at ``odds``."""

    if odds is None or odds <= 0:
        return 0
    if also_eligible:
        bins, floor = ALSO_ELIGIBLE_SALARY_BINS, ALSO_ELIGIBLE_SALARY_FLOOR
    else:
        bins, floor = SALARY_BINS, SALARY_FLOOR
    for upper, salary in bins:
        if odds <= upper:
            return salary
    return floor


def final_salary(odds_list: Iterable[float | None]) -> int:
    """Salary for the average of the valid prices in ``odds_list``."""

    valid = [odds for odds in odds_list if odds is not None and odds > 0]
    if not valid:
        return 0
    return salary_for_odds(sum(valid) / len(valid))


def mu_sigma_for_odds(
    odds: float, buckets: Sequence[OddsBucket] = ODDS_BUCKETS
) -> OddsBucket:
    """Return the bucket for ``odds``; prices beyond every bucket use the last one."""

    for bucket in buckets:
        if bucket.contains(odds):
            return bucket
    return buckets[-1]


_ALSO_ELIGIBLE_FLAGS = (
    "alsoEligible",
    "also_eligible",
    "alsoEligibleIndicator",
    "isAlsoEligible",
    "is_also_eligible",
    "alsoEligibleFlag",
)
_ALSO_ELIGIBLE_TEXT_FIELDS = ("status", "entryType", "notes", "comments", "conditions")


def is_also_eligible(record: Mapping[str, object]) -> bool:
    """Whether a raw race record is flagged as an also-eligible entry."""

    indicator = str(record.get("scratchIndicator") or "").strip().upper()
    if indicator == "A":
        return True
    if any(record.get(flag) is True for flag in _ALSO_ELIGIBLE_FLAGS):
        return True
    for field in _ALSO_ELIGIBLE_TEXT_FIELDS:
        value = record.get(field)
        if isinstance(value, str):
            lowered = value.lower()
            if "also" in lowered and "elig" in lowered:
                return True
    return False
