from __future__ import annotations

import logging
import random
from typing import Callable, List

import pytest

from racematch.matchups.batch import (
    BatchOptions,
    generate_all_matchups,
    generate_tolerance_matchups,
    interleave_matchups,
)
from racematch.matchups.entities import Connection, Matchup
from racematch.matchups.search import build_matchup


def _pool(factory: Callable[..., Connection], size: int) -> List[Connection]:
    return [
        factory(
            f"Runner {index}",
            salary=1200.0 + 15.0 * index,
            mu=11.0 + 0.05 * (index % 5),
            sigma=3.5,
            points=float(index + 1),
            apps=2 + index % 3,
        )
        for index in range(size)
    ]


def _ids(matchups: List[Matchup]) -> List[str]:
    return [cid for matchup in matchups for cid in matchup.connection_ids()]


def test_batch_uses_each_connection_once(
    connection_factory: Callable[..., Connection], rng: random.Random
) -> None:
    pool = _pool(connection_factory, 60)

    result = generate_all_matchups(pool, BatchOptions(total_target=24), rng=rng)

    assert 0 < len(result.all) <= 24
    used = _ids(result.all)
    assert len(used) == len(set(used))
    candidates = _ids(result.three_way + result.two_way)
    assert len(candidates) == len(set(candidates))
    assert set(candidates) == set(result.allocation.ids)
    for matchup in result.all:
        assert 0 <= matchup.balance <= 100


def test_batch_interleaves_three_way_first(
    connection_factory: Callable[..., Connection], rng: random.Random
) -> None:
    pool = _pool(connection_factory, 60)

    result = generate_all_matchups(pool, BatchOptions(total_target=6), rng=rng)

    assert len(result.all) == 6
    kinds = [matchup.is_three_way for matchup in result.all]
    assert kinds == [True, False, True, False, True, False]


def test_batch_is_reproducible_with_a_seed(
    connection_factory: Callable[..., Connection],
) -> None:
    pool = _pool(connection_factory, 40)

    first = generate_all_matchups(pool, rng=random.Random(7))
    second = generate_all_matchups(pool, rng=random.Random(7))

    assert [m.connection_ids() for m in first.all] == [m.connection_ids() for m in second.all]


def test_batch_leaves_input_pool_untouched(
    connection_factory: Callable[..., Connection], rng: random.Random
) -> None:
    pool = _pool(connection_factory, 12)
    order = [member.id for member in pool]

    generate_all_matchups(pool, rng=rng)

    assert [member.id for member in pool] == order


def test_batch_with_tiny_pool_returns_short_slate(
    connection_factory: Callable[..., Connection], rng: random.Random
) -> None:
    result = generate_all_matchups(_pool(connection_factory, 1), rng=rng)
    assert result.all == []


def test_interleave_appends_remainder_and_drops_duplicates(
    connection_factory: Callable[..., Connection],
) -> None:
    a, b, c, d, e = (connection_factory(name) for name in "ABCDE")
    three = [build_matchup("1v1v1", "1v1v1-1", ([a], [b], [c]))]
    two = [
        build_matchup("1v1", "1v1-1", ([a], [d])),
        build_matchup("1v1", "1v1-2", ([d], [e])),
    ]

    result = interleave_matchups(three, two, 10)

    assert [matchup.id for matchup in result] == ["1v1v1-1", "1v1-2"]


def test_interleave_stops_at_total(connection_factory: Callable[..., Connection]) -> None:
    members = [connection_factory(f"M{index}") for index in range(8)]
    two = [
        build_matchup("1v1", f"1v1-{index}", ([members[2 * index]], [members[2 * index + 1]]))
        for index in range(4)
    ]
    assert len(interleave_matchups([], two, 3)) == 3


def test_tolerance_matchups_balance_salary(
    connection_factory: Callable[..., Connection], rng: random.Random
) -> None:
    pool = _pool(connection_factory, 30)

    matchups = generate_tolerance_matchups(pool, count=10, tolerance=300.0, rng=rng)

    assert len(matchups) == 10
    for index, matchup in enumerate(matchups, start=1):
        assert matchup.id == f"tolerance-{index}"
        assert abs(matchup.set_a.salary_total - matchup.set_b.salary_total) <= 300.0
        assert not (matchup.set_a.size > 1 and matchup.set_b.size > 1)
        assert matchup.type == f"{matchup.set_a.size}v{matchup.set_b.size}"
        ids = matchup.connection_ids()
        assert len(ids) == len(set(ids))
    fresh = _ids(matchups[:5])
    assert len(fresh) == len(set(fresh))


def test_tolerance_matchups_allow_reuse_after_fresh_slots(
    connection_factory: Callable[..., Connection],
) -> None:
    pool = _pool(connection_factory, 4)

    matchups = generate_tolerance_matchups(
        pool,
        count=4,
        tolerance=1000.0,
        sizes=(1,),
        rng=random.Random(3),
        fresh_slots=2,
    )

    assert len(matchups) == 4
    assert len(_ids(matchups[:2])) == len(set(_ids(matchups[:2])))
    assert len(set(_ids(matchups))) < len(_ids(matchups))


def test_tolerance_matchups_skip_ineligible_connections(
    connection_factory: Callable[..., Connection],
    caplog: pytest.LogCaptureFixture,
) -> None:
    pool = [
        connection_factory("One Start", apps=1, points=10.0),
        connection_factory("No Points", apps=3, points=0.0),
        connection_factory("Eligible", apps=3, points=5.0),
    ]

    with caplog.at_level(logging.WARNING, logger="racematch.matchups.batch"):
        matchups = generate_tolerance_matchups(pool, rng=random.Random(1))

    assert matchups == []
    assert "Not enough eligible connections" in caplog.text


def test_tolerance_matchups_warn_on_unfilled_slot(
    connection_factory: Callable[..., Connection],
    caplog: pytest.LogCaptureFixture,
) -> None:
    pool = [
        connection_factory("Rich", salary=5000.0, points=3.0),
        connection_factory("Poor", salary=500.0, points=3.0),
    ]

    with caplog.at_level(logging.WARNING, logger="racematch.matchups.batch"):
        matchups = generate_tolerance_matchups(
            pool, count=1, tolerance=100.0, sizes=(1,), rng=random.Random(1), max_attempts=20
        )

    assert matchups == []
    assert "Failed to generate matchup 1 after 20 attempts" in caplog.text
