"""Bounded combinatorial search for balanced matchups.

Every shape follows the same recipe:

* rank the pool (salary for salary-led shapes, expected points for shapes
  built around a strong single anchor) so that comparable connections sit
  close together in index space;
* for each anchor in a truncated prefix, scan a bounded forward window for
  the partner(s) that minimise ``0.6 * probability deviation + 0.4 *
  normalised salary gap`` while staying inside the probability tolerance and
  the salary cap, stopping early once a combination is good enough;
* accept the best candidate across all anchors, claim its connections in the
  :class:`Allocation`, and repeat until ``max_matchups`` are emitted or no
  anchor has a valid candidate left.

Running out of candidates is not an error; callers receive a shorter slate.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Callable, Dict, Iterable, List, Mapping, Sequence, Tuple

from .entities import Connection, Matchup, SetSide, freeze_connections
from .models import (
    FAIR_THREE_WAY,
    FAIR_TWO_WAY,
    SideProfile,
    balance_score,
    calculate_set_mu_sigma,
    connection_profile,
    head_to_head_probability,
    three_way_probabilities,
)

logger = logging.getLogger(__name__)

PROBABILITY_WEIGHT = 0.6
SALARY_WEIGHT = 0.4

DEFAULT_TWO_WAY_TOLERANCE = 0.15
DEFAULT_THREE_WAY_TOLERANCE = 0.2
DEFAULT_TWO_WAY_SALARY_DIFF = 500.0
DEFAULT_THREE_WAY_SALARY_DIFF = 800.0


@dataclasses.dataclass(slots=True)
class ShapeLimits:
    """Search bounds and early-exit cutoffs for a single shape."""

    anchors: int
    window: int
    inner_window: int = 0
    good_enough_deviation: float = 0.05
    good_enough_salary_gap: float = 100.0

    def good_enough(self, deviation: float, salary_gap: float) -> bool:
        return (
            deviation < self.good_enough_deviation
            and salary_gap < self.good_enough_salary_gap
        )


def _default_1v1() -> ShapeLimits:
    return ShapeLimits(anchors=100, window=40)


def _default_2v1() -> ShapeLimits:
    return ShapeLimits(anchors=50, window=30, inner_window=20)


def _default_1v1v1() -> ShapeLimits:
    return ShapeLimits(anchors=60, window=25, good_enough_salary_gap=150.0)


def _default_2v1v1() -> ShapeLimits:
    return ShapeLimits(anchors=25, window=12, good_enough_salary_gap=150.0)


@dataclasses.dataclass(slots=True)
class SearchLimits:
    """Named search bounds for every shape."""

    one_v_one: ShapeLimits = dataclasses.field(default_factory=_default_1v1)
    two_v_one: ShapeLimits = dataclasses.field(default_factory=_default_2v1)
    one_v_one_v_one: ShapeLimits = dataclasses.field(default_factory=_default_1v1v1)
    two_v_one_v_one: ShapeLimits = dataclasses.field(default_factory=_default_2v1v1)

    def for_shape(self, shape: str) -> ShapeLimits:
        mapping = {
            "1v1": self.one_v_one,
            "2v1": self.two_v_one,
            "1v1v1": self.one_v_one_v_one,
            "2v1v1": self.two_v_one_v_one,
        }
        try:
            return mapping[shape]
        except KeyError:
            raise ValueError(f"Unknown matchup shape: {shape}") from None


class Allocation:
    """Set of connection ids already consumed by emitted matchups.

    One instance is threaded through every generator call of a batch so that
    a connection appears in at most one matchup of the whole slate.
    """

    def __init__(self, ids: Iterable[str] = ()) -> None:
        self._ids: set[str] = set(ids)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def ids(self) -> frozenset[str]:
        return frozenset(self._ids)

    def is_free(self, connection: Connection) -> bool:
        return connection.id not in self._ids

    def all_free(self, ids: Iterable[str]) -> bool:
        return not any(cid in self._ids for cid in ids)

    def claim(self, ids: Iterable[str]) -> None:
        self._ids.update(ids)


@dataclasses.dataclass(slots=True)
class _Candidate:
    anchor: int
    score: float
    deviation: float
    salary_gap: float
    sides: Tuple[Tuple[Connection, ...], ...]

    @property
    def ids(self) -> List[str]:
        return [member.id for side in self.sides for member in side]


def _quality(deviation: float, salary_gap: float, max_salary: float) -> float:
    normalised_gap = salary_gap / max_salary if max_salary > 0 else 0.0
    return deviation * PROBABILITY_WEIGHT + normalised_gap * SALARY_WEIGHT


def _combine(*profiles: SideProfile) -> SideProfile:
    mu = sum(profile.mu for profile in profiles)
    variance = sum(profile.sigma * profile.sigma for profile in profiles)
    return SideProfile(mu, variance**0.5)


def _prepare_pool(
    connections: Sequence[Connection],
    allocation: Allocation,
    key: Callable[[Connection], float],
) -> List[Connection]:
    seen: set[str] = set()
    pool: List[Connection] = []
    for connection in connections:
        if connection.id in seen or connection.id in allocation:
            continue
        seen.add(connection.id)
        pool.append(connection)
    pool.sort(key=key, reverse=True)
    return pool


def _salary_key(connection: Connection) -> float:
    return connection.salary_sum


def _mu_key(connection: Connection) -> float:
    return connection_profile(connection).mu


# ---------------------------------------------------------------------------
# Emission
# ---------------------------------------------------------------------------


def _frozen_side(members: Sequence[Connection]) -> SetSide:
    side = SetSide.from_connections(freeze_connections(members))
    profile = calculate_set_mu_sigma(side.connections)
    side.mu = profile.mu
    side.sigma = profile.sigma
    return side


def build_matchup(
    shape: str, matchup_id: str, members: Sequence[Sequence[Connection]]
) -> Matchup:
    """Freeze ``members`` into sides and attach probabilities and balance."""

    sides = [_frozen_side(side) for side in members]
    if len(sides) == 2:
        set_a, set_b = sides
        probability = head_to_head_probability(set_a.mu, set_a.sigma, set_b.mu, set_b.sigma)
        set_a.win_probability = probability
        set_b.win_probability = 1.0 - probability
        return Matchup(
            id=matchup_id,
            set_a=set_a,
            set_b=set_b,
            type=shape,
            balance=balance_score(abs(probability - FAIR_TWO_WAY), 2),
        )
    set_a, set_b, set_c = sides
    probabilities = three_way_probabilities(
        SideProfile(set_a.mu, set_a.sigma),
        SideProfile(set_b.mu, set_b.sigma),
        SideProfile(set_c.mu, set_c.sigma),
    )
    set_a.win_probability, set_b.win_probability, set_c.win_probability = probabilities
    return Matchup(
        id=matchup_id,
        set_a=set_a,
        set_b=set_b,
        set_c=set_c,
        type=shape,
        balance=balance_score(probabilities.max_deviation(FAIR_THREE_WAY), 3),
    )


def _run_search(
    shape: str,
    pool: Sequence[Connection],
    limits: ShapeLimits,
    max_matchups: int,
    allocation: Allocation,
    best_for_anchor: Callable[[int], _Candidate | None],
) -> List[Matchup]:
    anchors = range(min(len(pool), max(0, limits.anchors)))
    cache: Dict[int, _Candidate | None] = {}
    matchups: List[Matchup] = []
    while len(matchups) < max_matchups:
        best: _Candidate | None = None
        for i in anchors:
            if pool[i].id in allocation:
                continue
            if i in cache:
                candidate = cache[i]
                if candidate is not None and not allocation.all_free(candidate.ids):
                    candidate = cache[i] = best_for_anchor(i)
            else:
                candidate = cache[i] = best_for_anchor(i)
            if candidate is None:
                continue
            if best is None or candidate.score < best.score:
                best = candidate
        if best is None:
            break
        allocation.claim(best.ids)
        matchups.append(build_matchup(shape, f"{shape}-{len(matchups) + 1}", best.sides))
    logger.debug(
        "Generated %d of %d requested %s matchups from a pool of %d",
        len(matchups),
        max_matchups,
        shape,
        len(pool),
    )
    return matchups


# ---------------------------------------------------------------------------
# Shape generators
# ---------------------------------------------------------------------------


def generate_1v1_matchups(
    connections: Sequence[Connection],
    tolerance: float = DEFAULT_TWO_WAY_TOLERANCE,
    max_salary_diff: float = DEFAULT_TWO_WAY_SALARY_DIFF,
    max_matchups: int = 40,
    *,
    allocation: Allocation | None = None,
    limits: SearchLimits | None = None,
) -> List[Matchup]:
    """Pair single connections into salary- and probability-balanced 1v1s."""

    allocation = allocation if allocation is not None else Allocation()
    shape_limits = (limits or SearchLimits()).one_v_one
    pool = _prepare_pool(connections, allocation, _salary_key)
    if len(pool) < 2 or max_matchups <= 0:
        return []
    profiles = [connection_profile(member) for member in pool]
    max_salary = max(member.salary_sum for member in pool)

    def best_for_anchor(i: int) -> _Candidate | None:
        anchor = pool[i]
        best: _Candidate | None = None
        for j in range(i + 1, min(len(pool), i + 1 + shape_limits.window)):
            other = pool[j]
            if other.id in allocation:
                continue
            gap = abs(anchor.salary_sum - other.salary_sum)
            if gap > max_salary_diff:
                continue
            probability = head_to_head_probability(
                profiles[i].mu, profiles[i].sigma, profiles[j].mu, profiles[j].sigma
            )
            deviation = abs(probability - FAIR_TWO_WAY)
            if deviation > tolerance:
                continue
            score = _quality(deviation, gap, max_salary)
            if best is None or score < best.score:
                best = _Candidate(i, score, deviation, gap, ((anchor,), (other,)))
                if shape_limits.good_enough(deviation, gap):
                    break
        return best

    return _run_search("1v1", pool, shape_limits, max_matchups, allocation, best_for_anchor)


def generate_2v1_matchups(
    connections: Sequence[Connection],
    tolerance: float = DEFAULT_TWO_WAY_TOLERANCE,
    max_salary_diff: float = DEFAULT_TWO_WAY_SALARY_DIFF,
    max_matchups: int = 10,
    *,
    allocation: Allocation | None = None,
    limits: SearchLimits | None = None,
) -> List[Matchup]:
    """Match a strong single (side A) against a pair of weaker connections (side B)."""

    allocation = allocation if allocation is not None else Allocation()
    shape_limits = (limits or SearchLimits()).two_v_one
    pool = _prepare_pool(connections, allocation, _mu_key)
    if len(pool) < 3 or max_matchups <= 0:
        return []
    profiles = [connection_profile(member) for member in pool]
    max_salary = max(member.salary_sum for member in pool)
    inner = shape_limits.inner_window or shape_limits.window

    def best_for_anchor(i: int) -> _Candidate | None:
        anchor = pool[i]
        best: _Candidate | None = None
        outer_end = min(len(pool), i + 1 + shape_limits.window)
        for j in range(i + 1, outer_end):
            if pool[j].id in allocation:
                continue
            for k in range(j + 1, min(len(pool), j + 1 + inner)):
                if pool[k].id in allocation:
                    continue
                pair_salary = pool[j].salary_sum + pool[k].salary_sum
                gap = abs(anchor.salary_sum - pair_salary)
                if gap > max_salary_diff:
                    continue
                pair = _combine(profiles[j], profiles[k])
                probability = head_to_head_probability(
                    profiles[i].mu, profiles[i].sigma, pair.mu, pair.sigma
                )
                deviation = abs(probability - FAIR_TWO_WAY)
                if deviation > tolerance:
                    continue
                score = _quality(deviation, gap, max_salary)
                if best is None or score < best.score:
                    best = _Candidate(i, score, deviation, gap, ((anchor,), (pool[j], pool[k])))
                    if shape_limits.good_enough(deviation, gap):
                        return best
        return best

    return _run_search("2v1", pool, shape_limits, max_matchups, allocation, best_for_anchor)


def generate_1v1v1_matchups(
    connections: Sequence[Connection],
    tolerance: float = DEFAULT_THREE_WAY_TOLERANCE,
    max_salary_diff: float = DEFAULT_THREE_WAY_SALARY_DIFF,
    max_matchups: int = 15,
    *,
    allocation: Allocation | None = None,
    limits: SearchLimits | None = None,
) -> List[Matchup]:
    """Build three-way matchups of single connections targeting 1/3 each."""

    allocation = allocation if allocation is not None else Allocation()
    shape_limits = (limits or SearchLimits()).one_v_one_v_one
    pool = _prepare_pool(connections, allocation, _salary_key)
    if len(pool) < 3 or max_matchups <= 0:
        return []
    profiles = [connection_profile(member) for member in pool]
    max_salary = max(member.salary_sum for member in pool)

    def best_for_anchor(i: int) -> _Candidate | None:
        anchor = pool[i]
        best: _Candidate | None = None
        end = min(len(pool), i + 1 + shape_limits.window)
        for j in range(i + 1, end):
            if pool[j].id in allocation:
                continue
            for k in range(j + 1, end):
                if pool[k].id in allocation:
                    continue
                salaries = (anchor.salary_sum, pool[j].salary_sum, pool[k].salary_sum)
                spread = max(salaries) - min(salaries)
                if spread > max_salary_diff:
                    continue
                deviation = three_way_probabilities(
                    profiles[i], profiles[j], profiles[k]
                ).max_deviation(FAIR_THREE_WAY)
                if deviation > tolerance:
                    continue
                score = _quality(deviation, spread, max_salary)
                if best is None or score < best.score:
                    best = _Candidate(i, score, deviation, spread, ((anchor,), (pool[j],), (pool[k],)))
                    if shape_limits.good_enough(deviation, spread):
                        return best
        return best

    return _run_search("1v1v1", pool, shape_limits, max_matchups, allocation, best_for_anchor)


def generate_2v1v1_matchups(
    connections: Sequence[Connection],
    tolerance: float = DEFAULT_THREE_WAY_TOLERANCE,
    max_salary_diff: float = DEFAULT_THREE_WAY_SALARY_DIFF,
    max_matchups: int = 3,
    *,
    allocation: Allocation | None = None,
    limits: SearchLimits | None = None,
) -> List[Matchup]:
    """Three-way matchups of a strong single (A), a pair (B) and a single (C).

    The single/pair/pair-partner loops make this the most expensive shape, so
    its anchor prefix and window are the narrowest.
    """

    allocation = allocation if allocation is not None else Allocation()
    shape_limits = (limits or SearchLimits()).two_v_one_v_one
    pool = _prepare_pool(connections, allocation, _mu_key)
    if len(pool) < 4 or max_matchups <= 0:
        return []
    profiles = [connection_profile(member) for member in pool]
    max_salary = max(member.salary_sum for member in pool)

    def best_for_anchor(i: int) -> _Candidate | None:
        anchor = pool[i]
        best: _Candidate | None = None
        end = min(len(pool), i + 1 + shape_limits.window)
        for j in range(i + 1, end):
            if pool[j].id in allocation:
                continue
            for k in range(i + 1, end):
                if k == j or pool[k].id in allocation:
                    continue
                for m in range(k + 1, end):
                    if m == j or pool[m].id in allocation:
                        continue
                    pair_salary = pool[k].salary_sum + pool[m].salary_sum
                    salaries = (anchor.salary_sum, pair_salary, pool[j].salary_sum)
                    spread = max(salaries) - min(salaries)
                    if spread > max_salary_diff:
                        continue
                    deviation = three_way_probabilities(
                        profiles[i], _combine(profiles[k], profiles[m]), profiles[j]
                    ).max_deviation(FAIR_THREE_WAY)
                    if deviation > tolerance:
                        continue
                    score = _quality(deviation, spread, max_salary)
                    if best is None or score < best.score:
                        best = _Candidate(
                            i,
                            score,
                            deviation,
                            spread,
                            ((anchor,), (pool[k], pool[m]), (pool[j],)),
                        )
                        if shape_limits.good_enough(deviation, spread):
                            return best
        return best

    return _run_search("2v1v1", pool, shape_limits, max_matchups, allocation, best_for_anchor)


GENERATORS: Mapping[str, Callable[..., List[Matchup]]] = {
    "1v1": generate_1v1_matchups,
    "2v1": generate_2v1_matchups,
    "1v1v1": generate_1v1v1_matchups,
    "2v1v1": generate_2v1v1_matchups,
}


def generate_shape(shape: str, connections: Sequence[Connection], **kwargs: object) -> List[Matchup]:
    """Dispatch to the generator registered for ``shape``."""

    generator = GENERATORS.get(shape)
    if generator is None:
        raise ValueError(f"Unknown matchup shape: {shape}")
    return generator(connections, **kwargs)


__all__ = [
    "Allocation",
    "GENERATORS",
    "SearchLimits",
    "build_matchup",
    "ShapeLimits",
    "generate_1v1_matchups",
    "generate_1v1v1_matchups",
    "generate_2v1_matchups",
    "generate_2v1v1_matchups",
    "generate_shape",
]
