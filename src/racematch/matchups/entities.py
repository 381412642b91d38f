"""Core entities shared by the matchup engine and its collaborators.

Connections are built once per ingestion pass and are treated as immutable
while a slate is generated.  Matchups hold *frozen* copies of their
connections so that later changes to the live pool never leak into a slate
that has already been handed to a caller.
"""

from __future__ import annotations

import dataclasses
import enum
import re
from typing import Any, Dict, Iterable, List, Literal, Mapping, Sequence, Tuple

SideLabel = Literal["A", "B", "C"]

_WHITESPACE = re.compile(r"\s+")


class ConnectionRole(str, enum.Enum):
    """Roles a connection can hold on a race card."""

    JOCKEY = "jockey"
    TRAINER = "trainer"
    SIRE = "sire"


def connection_id(name: str, role: ConnectionRole | str) -> str:
    """Return the stable identifier for ``name`` in ``role``."""

    role_value = role.value if isinstance(role, ConnectionRole) else str(role)
    slug = _WHITESPACE.sub("-", name.strip().lower())
    return f"{slug}-{role_value}"


@dataclasses.dataclass(slots=True)
class Starter:
    """One race entry linking a horse to its connections."""

    track: str
    race: int
    horse_name: str
    jockey: str | None = None
    trainer: str | None = None
    sire1: str | None = None
    sire2: str | None = None
    ml_odds_frac: str | None = None
    decimal_odds: float | None = None
    salary: float = 0.0
    points: float = 0.0
    pos: int = 0
    scratched: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Starter":
        names = {field.name for field in dataclasses.fields(cls)}
        return cls(**{key: value for key, value in payload.items() if key in names})


@dataclasses.dataclass(slots=True)
class Connection:
    """A jockey, trainer or sire scored across the starts of a slate."""

    id: str
    name: str
    role: ConnectionRole
    track_set: List[str] = dataclasses.field(default_factory=list)
    apps: int = 0
    avg_odds: float = 0.0
    salary_sum: float = 0.0
    points_sum: float = 0.0
    avpa_30d: float = 0.0
    avpa_race: float = 0.0
    mu: float | None = None
    sigma: float | None = None
    starters: List[Starter] = dataclasses.field(default_factory=list)

    @property
    def has_profile(self) -> bool:
        return self.mu is not None and self.sigma is not None

    @property
    def expected_points(self) -> float | None:
        return self.mu

    def freeze(self) -> "Connection":
        """Return a deep copy that shares no mutable state with ``self``."""

        return dataclasses.replace(
            self,
            track_set=list(self.track_set),
            starters=[dataclasses.replace(starter) for starter in self.starters],
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = dataclasses.asdict(self)
        payload["role"] = self.role.value
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Connection":
        names = {field.name for field in dataclasses.fields(cls)}
        values = {key: value for key, value in payload.items() if key in names}
        values["role"] = ConnectionRole(values["role"])
        values["track_set"] = list(values.get("track_set") or [])
        values["starters"] = [Starter.from_dict(item) for item in values.get("starters") or []]
        return cls(**values)


@dataclasses.dataclass(slots=True)
class SetSide:
    """One side of a matchup."""

    connections: List[Connection]
    salary_total: float
    mu: float | None = None
    sigma: float | None = None
    win_probability: float | None = None

    @classmethod
    def from_connections(cls, connections: Iterable[Connection]) -> "SetSide":
        members = list(connections)
        if not members:
            raise ValueError("A side needs at least one connection")
        return cls(
            connections=members,
            salary_total=sum(member.salary_sum for member in members),
        )

    @property
    def size(self) -> int:
        return len(self.connections)

    @property
    def ids(self) -> List[str]:
        return [member.id for member in self.connections]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "connections": [member.to_dict() for member in self.connections],
            "salary_total": self.salary_total,
            "mu": self.mu,
            "sigma": self.sigma,
            "win_probability": self.win_probability,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SetSide":
        connections = [Connection.from_dict(item) for item in payload.get("connections") or []]
        if not connections:
            raise ValueError("A side needs at least one connection")
        salary_total = payload.get("salary_total")
        return cls(
            connections=connections,
            salary_total=(
                float(salary_total)
                if salary_total is not None
                else sum(member.salary_sum for member in connections)
            ),
            mu=payload.get("mu"),
            sigma=payload.get("sigma"),
            win_probability=payload.get("win_probability"),
        )


@dataclasses.dataclass(slots=True)
class Matchup:
    """A two- or three-way competition between sides."""

    id: str
    set_a: SetSide
    set_b: SetSide
    set_c: SetSide | None = None
    type: str = ""
    balance: int | None = None

    @property
    def is_three_way(self) -> bool:
        return self.set_c is not None

    @property
    def sides(self) -> Tuple[SetSide, ...]:
        if self.set_c is None:
            return (self.set_a, self.set_b)
        return (self.set_a, self.set_b, self.set_c)

    def side(self, label: SideLabel | str) -> SetSide:
        token = str(label).upper()
        if token == "A":
            return self.set_a
        if token == "B":
            return self.set_b
        if token == "C" and self.set_c is not None:
            return self.set_c
        raise ValueError(f"Matchup {self.id} has no side {label!r}")

    def labels(self) -> Tuple[str, ...]:
        return ("A", "B", "C") if self.is_three_way else ("A", "B")

    def connection_ids(self) -> List[str]:
        return [cid for side in self.sides for cid in side.ids]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "balance": self.balance,
            "set_a": self.set_a.to_dict(),
            "set_b": self.set_b.to_dict(),
            "set_c": self.set_c.to_dict() if self.set_c is not None else None,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Matchup":
        """Rebuild a matchup from :meth:`to_dict` output."""

        set_c = payload.get("set_c")
        return cls(
            id=str(payload["id"]),
            set_a=SetSide.from_dict(payload["set_a"]),
            set_b=SetSide.from_dict(payload["set_b"]),
            set_c=SetSide.from_dict(set_c) if set_c else None,
            type=str(payload.get("type") or ""),
            balance=payload.get("balance"),
        )


@dataclasses.dataclass(slots=True)
class RoundPick:
    matchup_id: str
    chosen: SideLabel


@dataclasses.dataclass(slots=True)
class Round:
    """A user's submitted picks across several matchups."""

    id: str
    matchups: Sequence[Matchup]
    picks: Sequence[RoundPick]
    entry_amount: float = 0.0
    multiplier: float | None = None
    winnings: float | None = None
    created_at: str | None = None


def freeze_connections(connections: Iterable[Connection]) -> List[Connection]:
    return [connection.freeze() for connection in connections]


__all__ = [
    "Connection",
    "ConnectionRole",
    "Matchup",
    "Round",
    "RoundPick",
    "SetSide",
    "SideLabel",
    "Starter",
    "connection_id",
    "freeze_connections",
]
