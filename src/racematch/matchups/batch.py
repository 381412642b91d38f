"""Slate orchestration across matchup shapes.

Two entry points serve different call sites:

* :func:`generate_all_matchups` builds the initial slate.  The pool is
  shuffled once, three-way shapes are filled first while the whole pool is
  still available, and every connection they consume is excluded before the
  two-way shapes run.  Results are interleaved three-way first.
* :func:`generate_tolerance_matchups` backs the interactive "regenerate with
  tolerance" control.  It draws random side sizes and balances the opposing
  side purely on salary, within an absolute dollar tolerance.
"""

from __future__ import annotations

import dataclasses
import logging
import random
from typing import Iterable, List, Sequence, Tuple

from .entities import Connection, Matchup
from .search import (
    DEFAULT_THREE_WAY_SALARY_DIFF,
    DEFAULT_TWO_WAY_SALARY_DIFF,
    Allocation,
    SearchLimits,
    build_matchup,
    generate_1v1_matchups,
    generate_1v1v1_matchups,
    generate_2v1_matchups,
    generate_2v1v1_matchups,
)

logger = logging.getLogger(__name__)


@dataclasses.dataclass(slots=True)
class BatchOptions:
    """Parameters for the mixed-shape slate."""

    total_target: int = 24
    tolerance: float = 0.2
    two_way_salary_diff: float = DEFAULT_TWO_WAY_SALARY_DIFF
    three_way_salary_diff: float = DEFAULT_THREE_WAY_SALARY_DIFF
    max1v1: int = 40
    max2v1: int = 10
    max1v1v1: int = 15
    max2v1v1: int = 3
    limits: SearchLimits = dataclasses.field(default_factory=SearchLimits)


@dataclasses.dataclass(slots=True)
class BatchResult:
    all: List[Matchup]
    three_way: List[Matchup]
    two_way: List[Matchup]
    allocation: Allocation

    def __len__(self) -> int:
        return len(self.all)


def interleave_matchups(
    first: Sequence[Matchup], second: Sequence[Matchup], total: int
) -> List[Matchup]:
    """Alternate ``first`` and ``second`` up to ``total`` items.

    Once one list runs dry the remainder of the other is appended.  A matchup
    sharing any connection with one already taken is dropped.
    """

    result: List[Matchup] = []
    seen: set[str] = set()

    def _take(matchup: Matchup) -> None:
        ids = matchup.connection_ids()
        if any(cid in seen for cid in ids):
            logger.debug("Dropping %s: connection already used in slate", matchup.id)
            return
        seen.update(ids)
        result.append(matchup)

    i = j = 0
    while len(result) < total and (i < len(first) or j < len(second)):
        if i < len(first):
            _take(first[i])
            i += 1
        if len(result) >= total:
            break
        if j < len(second):
            _take(second[j])
            j += 1
    return result


def generate_all_matchups(
    connections: Sequence[Connection],
    options: BatchOptions | None = None,
    *,
    rng: random.Random | None = None,
) -> BatchResult:
    """Generate a mixed 2-way/3-way slate with each connection used once."""

    options = options or BatchOptions()
    rng = rng or random.Random()
    pool = list(connections)
    rng.shuffle(pool)

    allocation = Allocation()
    # Three-way shapes are the hardest to fill; they go first, over the full pool.
    three_way = generate_1v1v1_matchups(
        pool,
        options.tolerance,
        options.three_way_salary_diff,
        options.max1v1v1,
        allocation=allocation,
        limits=options.limits,
    )
    three_way += generate_2v1v1_matchups(
        pool,
        options.tolerance,
        options.three_way_salary_diff,
        options.max2v1v1,
        allocation=allocation,
        limits=options.limits,
    )

    remaining = [connection for connection in pool if connection.id not in allocation]
    two_way = generate_1v1_matchups(
        remaining,
        options.tolerance,
        options.two_way_salary_diff,
        options.max1v1,
        allocation=allocation,
        limits=options.limits,
    )
    two_way += generate_2v1_matchups(
        remaining,
        options.tolerance,
        options.two_way_salary_diff,
        options.max2v1,
        allocation=allocation,
        limits=options.limits,
    )

    combined = interleave_matchups(three_way, two_way, options.total_target)
    logger.info(
        "Generated slate of %d matchups (%d three-way, %d two-way candidates) from %d connections",
        len(combined),
        len(three_way),
        len(two_way),
        len(pool),
    )
    return BatchResult(all=combined, three_way=three_way, two_way=two_way, allocation=allocation)


# ---------------------------------------------------------------------------
# Tolerance regeneration path
# ---------------------------------------------------------------------------


def _unique(connections: Iterable[Connection]) -> List[Connection]:
    seen: set[str] = set()
    unique: List[Connection] = []
    for connection in connections:
        if connection.id not in seen:
            seen.add(connection.id)
            unique.append(connection)
    return unique


def _draw_sizes(
    rng: random.Random, sizes: Sequence[int], one_v_one: bool
) -> Tuple[int, int]:
    if one_v_one:
        return 1, 1
    size_a = rng.choice(sizes)
    size_b = rng.choice(sizes)
    if size_a > 1 and size_b > 1:
        if rng.random() < 0.5:
            size_a = 1
        else:
            size_b = 1
    return size_a, size_b


def _closest_by_salary(
    candidates: Sequence[Connection], target: float, size: int
) -> List[Connection] | None:
    """Greedily pick ``size`` connections whose salaries add up near ``target``."""

    remaining = list(candidates)
    chosen: List[Connection] = []
    total = 0.0
    for slots_left in range(size, 0, -1):
        if not remaining:
            return None
        share = (target - total) / slots_left
        index = min(range(len(remaining)), key=lambda idx: abs(share - remaining[idx].salary_sum))
        pick = remaining.pop(index)
        chosen.append(pick)
        total += pick.salary_sum
    return chosen


def generate_tolerance_matchups(
    pool: Sequence[Connection],
    *,
    count: int = 10,
    tolerance: float = 500.0,
    sizes: Sequence[int] = (1, 2),
    rng: random.Random | None = None,
    max_attempts: int = 500,
    fresh_slots: int = 5,
    min_apps: int = 2,
    prefer_1v1: float = 0.8,
) -> List[Matchup]:
    """Salary-balanced matchups with random side sizes.

    ``tolerance`` is an absolute salary gap in dollars.  The first
    ``fresh_slots`` matchups never reuse a connection; later slots may, so
    that a full slate can still be produced from a small pool.  No connection
    ever appears on both sides of the same matchup.
    """

    rng = rng or random.Random()
    eligible = _unique(c for c in pool if c.apps >= min_apps and c.points_sum > 0)
    if len(eligible) < 2:
        logger.warning("Not enough eligible connections for matchup generation")
        return []

    shuffled = list(eligible)
    rng.shuffle(shuffled)
    by_popularity = sorted(eligible, key=lambda c: (c.points_sum, c.apps), reverse=True)
    allowed_sizes = tuple(sizes) or (1,)

    used: set[str] = set()
    matchups: List[Matchup] = []
    for slot in range(count):
        fresh = slot < fresh_slots
        one_v_one = 1 in allowed_sizes and rng.random() < prefer_1v1
        for _attempt in range(max_attempts):
            size_a, size_b = _draw_sizes(rng, allowed_sizes, one_v_one)
            use_variety = rng.random() < 0.5
            source = shuffled if use_variety else by_popularity
            available = [c for c in source if not (fresh and c.id in used)]
            if len(available) < size_a + size_b:
                available = list(shuffled)
                use_variety = True

            if use_variety:
                candidates = list(available)
                rng.shuffle(candidates)
            else:
                # Draw side A from the popular end, keep the rest for balancing.
                head = max(size_a, len(available) // 4)
                side_a_pool = rng.sample(available[:head], size_a)
                taken = {member.id for member in side_a_pool}
                candidates = side_a_pool + [c for c in available if c.id not in taken]

            side_a = candidates[:size_a]
            salary_a = sum(member.salary_sum for member in side_a)
            side_b = _closest_by_salary(candidates[size_a:], salary_a, size_b)
            if side_b is None:
                continue
            salary_b = sum(member.salary_sum for member in side_b)
            if abs(salary_a - salary_b) > tolerance:
                continue

            matchup = build_matchup(
                f"{size_a}v{size_b}", f"tolerance-{slot + 1}", (side_a, side_b)
            )
            if fresh:
                used.update(matchup.connection_ids())
            matchups.append(matchup)
            break
        else:
            logger.warning(
                "Failed to generate matchup %d after %d attempts", slot + 1, max_attempts
            )
    return matchups


__all__ = [
    "BatchOptions",
    "BatchResult",
    "generate_all_matchups",
    "generate_tolerance_matchups",
    "interleave_matchups",
]
