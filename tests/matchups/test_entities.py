from __future__ import annotations

from typing import Callable

import pytest

from racematch.matchups.entities import (
    Connection,
    ConnectionRole,
    Matchup,
    SetSide,
    connection_id,
    freeze_connections,
)
from racematch.matchups.search import build_matchup


def test_connection_id_normalises_whitespace_and_case() -> None:
    assert connection_id("  Irad   Ortiz Jr ", ConnectionRole.JOCKEY) == "irad-ortiz-jr-jockey"
    assert connection_id("Bob Baffert", "trainer") == "bob-baffert-trainer"


def test_connection_round_trips_through_dict(connection_factory: Callable[..., Connection]) -> None:
    original = connection_factory("Flavien Prat", role=ConnectionRole.TRAINER, points=14.0)
    payload = original.to_dict()

    assert payload["role"] == "trainer"
    restored = Connection.from_dict(payload)
    assert restored == original
    assert restored.starters[0].horse_name == "Flavien Prat horse 1"


def test_freeze_shares_no_mutable_state(connection_factory: Callable[..., Connection]) -> None:
    original = connection_factory("Joel Rosario")
    (frozen,) = freeze_connections([original])

    original.points_sum = 99.0
    original.starters.clear()

    assert frozen.points_sum == 0.0
    assert len(frozen.starters) == 2


def test_expected_points_and_profile(connection_factory: Callable[..., Connection]) -> None:
    assert connection_factory("Priced", mu=8.5).expected_points == 8.5
    unpriced = connection_factory("Unpriced", mu=None, sigma=None)
    assert unpriced.has_profile is False
    assert unpriced.expected_points is None


def test_set_side_requires_members() -> None:
    with pytest.raises(ValueError, match="at least one connection"):
        SetSide.from_connections([])
    with pytest.raises(ValueError, match="at least one connection"):
        SetSide.from_dict({"connections": []})


def test_side_lookup(connection_factory: Callable[..., Connection]) -> None:
    two_way = build_matchup(
        "1v1", "1v1-1", ([connection_factory("Alpha")], [connection_factory("Bravo")])
    )
    assert two_way.labels() == ("A", "B")
    assert two_way.side("b").connections[0].name == "Bravo"
    with pytest.raises(ValueError, match="has no side"):
        two_way.side("C")

    three_way = build_matchup(
        "1v1v1",
        "1v1v1-1",
        (
            [connection_factory("Alpha")],
            [connection_factory("Bravo")],
            [connection_factory("Charlie")],
        ),
    )
    assert three_way.is_three_way
    assert three_way.side("C").connections[0].name == "Charlie"
    assert three_way.connection_ids() == ["alpha-jockey", "bravo-jockey", "charlie-jockey"]


def test_matchup_round_trips_through_dict(connection_factory: Callable[..., Connection]) -> None:
    matchup = build_matchup(
        "2v1",
        "2v1-3",
        (
            [connection_factory("Lead", salary=2000.0)],
            [connection_factory("Left", salary=1000.0), connection_factory("Right", salary=1050.0)],
        ),
    )

    restored = Matchup.from_dict(matchup.to_dict())

    assert restored.id == "2v1-3"
    assert restored.type == "2v1"
    assert restored.set_c is None
    assert restored.set_b.size == 2
    assert restored.set_b.salary_total == pytest.approx(2050.0)
    assert restored.balance == matchup.balance
