from __future__ import annotations

import random
from pathlib import Path
from typing import Any, Callable, Dict, List

import pytest

from racematch.matchups.entities import Connection, ConnectionRole, Starter


def make_connection(
    name: str,
    *,
    role: ConnectionRole = ConnectionRole.JOCKEY,
    salary: float = 1000.0,
    mu: float | None = 10.0,
    sigma: float | None = 3.0,
    points: float = 0.0,
    apps: int = 2,
    avg_odds: float = 4.0,
) -> Connection:
    starters = [
        Starter(track="SA", race=index + 1, horse_name=f"{name} horse {index + 1}")
        for index in range(apps)
    ]
    return Connection(
        id=f"{name.lower().replace(' ', '-')}-{role.value}",
        name=name,
        role=role,
        track_set=["SA"],
        apps=apps,
        avg_odds=avg_odds,
        salary_sum=salary,
        points_sum=points,
        mu=mu,
        sigma=sigma,
        starters=starters,
    )


@pytest.fixture
def connection_factory() -> Callable[..., Connection]:
    return make_connection


@pytest.fixture
def even_pool() -> List[Connection]:
    """Twenty near-identical connections across a narrow salary band."""

    return [
        make_connection(
            f"Rider {index}",
            salary=1500.0 + 20.0 * index,
            mu=12.0 + 0.1 * (index % 3),
            sigma=4.0,
            points=float(index),
        )
        for index in range(20)
    ]


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def track_payload() -> Dict[str, Any]:
    return {
        "track": "SA",
        "records": [
            {
                "track": "SA",
                "race": 1,
                "horse": "Fast Lane",
                "jockey": "Irad Ortiz Jr",
                "trainer": "Bob Baffert",
                "sire1": "Into Mischief",
                "ml_odds_frac": "5/2",
                "place": 1,
                "points": 25,
            },
            {
                "track": "SA",
                "race": 2,
                "horse": "Slow Burn",
                "jockey": "Irad Ortiz Jr",
                "trainer": "Chad Brown",
                "sire1": "Into Mischief",
                "ml_odds_frac": "10/1",
                "ml_odds_decimal": 10.0,
                "place": 5,
                "points": 4,
            },
            {
                "track": "SA",
                "race": 3,
                "horse": "Scratched Runner",
                "jockey": "Irad Ortiz Jr",
                "trainer": "Chad Brown",
                "ml_odds_frac": "3/1",
                "scratched": True,
                "place": 1,
                "points": 30,
            },
            {
                "track": "SA",
                "race": None,
                "horse": "Missing Race",
                "jockey": "Flavien Prat",
            },
        ],
        "jockeys": [{"name": "Irad Ortiz Jr", "avpa_30_days": 11.5}],
        "trainers": [{"name": "Chad Brown", "avpa_30_days": 9.0}],
    }


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "matchups.yaml"
    path.write_text(
        """
environment: default
batch:
  total_target: 6
  tolerance: 0.25
generation:
  seed: 99
"""
    )
    return path
