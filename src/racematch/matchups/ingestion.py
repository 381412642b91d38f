"""Race-card ingestion: per-track records to aggregated connections."""

from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence

import polars as pl

from .entities import Connection, ConnectionRole, Matchup, Starter, connection_id
from .models import odds_bucket_profile
from .odds import ODDS_BUCKETS, OddsBucket, fractional_to_decimal, is_also_eligible, salary_for_odds

logger = logging.getLogger(__name__)

# Record field -> role of the connection it names.
ROLE_FIELDS: Sequence[tuple[str, ConnectionRole]] = (
    ("jockey", ConnectionRole.JOCKEY),
    ("trainer", ConnectionRole.TRAINER),
    ("sire1", ConnectionRole.SIRE),
    ("sire2", ConnectionRole.SIRE),
)

AGGREGATE_KEYS: Mapping[str, ConnectionRole] = {
    "jockeys": ConnectionRole.JOCKEY,
    "trainers": ConnectionRole.TRAINER,
    "sires": ConnectionRole.SIRE,
}

RECORD_SCHEMA: Mapping[str, pl.DataType] = {
    "track": pl.Utf8,
    "race": pl.Int64,
    "horse": pl.Utf8,
    "jockey": pl.Utf8,
    "trainer": pl.Utf8,
    "sire1": pl.Utf8,
    "sire2": pl.Utf8,
    "ml_odds_frac": pl.Utf8,
    "ml_odds_decimal": pl.Float64,
    "scratched": pl.Boolean,
    "salary": pl.Float64,
    "points": pl.Float64,
    "place": pl.Int64,
}

MATCHUP_SCHEMA: Mapping[str, pl.DataType] = {
    "matchup_id": pl.Utf8,
    "type": pl.Utf8,
    "balance": pl.Int64,
    "side": pl.Utf8,
    "side_mu": pl.Float64,
    "side_sigma": pl.Float64,
    "win_probability": pl.Float64,
    "connection_id": pl.Utf8,
    "name": pl.Utf8,
    "role": pl.Utf8,
    "apps": pl.Int64,
    "salary_sum": pl.Float64,
    "points_sum": pl.Float64,
}

_TRUE_STRINGS = {"1", "true", "t", "yes", "y"}


@dataclasses.dataclass(slots=True)
class TrackData:
    """Records for one track plus optional per-role aggregate rows."""

    track: str
    records: List[Dict[str, Any]] = dataclasses.field(default_factory=list)
    aggregates: Dict[str, List[Dict[str, Any]]] = dataclasses.field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], default_track: str = "") -> "TrackData":
        track = str(payload.get("track") or default_track)
        records = [dict(record) for record in payload.get("records") or []]
        aggregates = {
            key: [dict(item) for item in payload.get(key) or []]
            for key in AGGREGATE_KEYS
            if payload.get(key)
        }
        return cls(track=track, records=records, aggregates=aggregates)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _as_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_int(value: Any) -> int:
    number = _as_float(value)
    return int(number) if number is not None else 0


def _coerce_track(track: TrackData | Mapping[str, Any]) -> TrackData:
    if isinstance(track, TrackData):
        return track
    return TrackData.from_payload(track)


def _build_starter(track: str, record: Mapping[str, Any]) -> Starter:
    decimal_odds = _as_float(record.get("ml_odds_decimal"))
    if decimal_odds is None:
        decimal_odds = fractional_to_decimal(record.get("ml_odds_frac"))
    salary = _as_float(record.get("salary"))
    if not salary:
        salary = float(salary_for_odds(decimal_odds, also_eligible=is_also_eligible(record)))
    return Starter(
        track=str(record.get("track") or track),
        race=_as_int(record.get("race")),
        horse_name=str(record.get("horse")),
        jockey=record.get("jockey") or None,
        trainer=record.get("trainer") or None,
        sire1=record.get("sire1") or None,
        sire2=record.get("sire2") or None,
        ml_odds_frac=record.get("ml_odds_frac") or None,
        decimal_odds=decimal_odds,
        salary=salary,
        points=_as_float(record.get("points")) or 0.0,
        pos=_as_int(record.get("place")),
        scratched=False,
    )


def _add_start(connection: Connection, starter: Starter) -> None:
    if starter.track not in connection.track_set:
        connection.track_set.append(starter.track)
    connection.starters.append(starter)
    connection.apps += 1
    connection.salary_sum += starter.salary
    if 1 <= starter.pos <= 3:
        connection.points_sum += starter.points
    priced = [s.decimal_odds for s in connection.starters if s.decimal_odds and s.decimal_odds > 0]
    if priced:
        connection.avg_odds = sum(priced) / len(priced)


def _avpa_30d_lookup(tracks: Sequence[TrackData]) -> Dict[str, float]:
    lookup: Dict[str, float] = {}
    for track in tracks:
        for key, role in AGGREGATE_KEYS.items():
            for item in track.aggregates.get(key, []):
                name = item.get("name")
                value = _as_float(item.get("avpa_30_days"))
                if name and value is not None:
                    lookup[connection_id(str(name), role)] = value
    return lookup


def merge_track_data(tracks: Iterable[TrackData | Mapping[str, Any]]) -> List[Connection]:
    """Aggregate every unscratched start into one connection per name and role.

    Records missing a race number or horse name are discarded and reported
    in a single summary warning.
    """

    track_list = [_coerce_track(track) for track in tracks]
    connections: Dict[str, Connection] = {}
    discarded: Dict[str, int] = {}

    for track in track_list:
        for record in track.records:
            if _as_bool(record.get("scratched")):
                continue
            if record.get("race") in (None, ""):
                discarded["missing_race"] = discarded.get("missing_race", 0) + 1
                continue
            if not record.get("horse"):
                discarded["missing_horse"] = discarded.get("missing_horse", 0) + 1
                continue
            for field, role in ROLE_FIELDS:
                name = record.get(field)
                if not name:
                    continue
                cid = connection_id(str(name), role)
                connection = connections.get(cid)
                if connection is None:
                    connection = Connection(id=cid, name=str(name), role=role)
                    connections[cid] = connection
                _add_start(connection, _build_starter(track.track, record))

    if discarded:
        logger.warning("Discarded race records summary: %s", discarded)

    avpa_30d = _avpa_30d_lookup(track_list)
    merged = [connection for connection in connections.values() if connection.apps > 0]
    for connection in merged:
        if connection.salary_sum > 0:
            connection.avpa_race = 1000.0 * connection.points_sum / connection.salary_sum
        connection.avpa_30d = avpa_30d.get(connection.id, connection.avpa_30d)
    logger.debug("Merged %d tracks into %d connections", len(track_list), len(merged))
    return merged


def assign_odds_profiles(
    connections: Iterable[Connection],
    buckets: Sequence[OddsBucket] = ODDS_BUCKETS,
    *,
    overwrite: bool = False,
) -> int:
    """Fill missing mu/sigma from the odds bucket of each connection's price.

    Connections without a positive average price keep the efficiency-based
    fallback.  Returns the number of connections updated.
    """

    assigned = 0
    for connection in connections:
        if connection.has_profile and not overwrite:
            continue
        if connection.avg_odds <= 0:
            continue
        profile = odds_bucket_profile(connection, buckets)
        connection.mu = profile.mu
        connection.sigma = profile.sigma
        assigned += 1
    return assigned


# ---------------------------------------------------------------------------
# File and frame helpers
# ---------------------------------------------------------------------------


def load_track_file(path: str | Path) -> TrackData:
    """Load one track from JSON, CSV or Parquet.

    JSON files hold ``{"track": ..., "records": [...], "jockeys": [...]}``
    or a bare list of records.  Tabular files hold one record per row.
    """

    source = Path(path)
    if not source.exists():
        raise FileNotFoundError(source)
    default_track = source.stem.upper()
    suffix = source.suffix.lower()
    if suffix == ".json":
        payload = json.loads(source.read_text(encoding="utf-8"))
        if isinstance(payload, list):
            payload = {"records": payload}
        if not isinstance(payload, Mapping):
            raise ValueError(f"Track file {source} must contain an object or a list of records")
        return TrackData.from_payload(payload, default_track=default_track)
    if suffix == ".csv":
        frame = pl.read_csv(source)
    elif suffix in {".parquet", ".pq"}:
        frame = pl.read_parquet(source)
    else:
        raise ValueError(f"Unsupported track file format: {source.suffix or source.name}")
    records = frame.to_dicts()
    track = next((str(record["track"]) for record in records if record.get("track")), default_track)
    return TrackData(track=track, records=records)


def records_frame(tracks: Iterable[TrackData | Mapping[str, Any]]) -> pl.DataFrame:
    """Materialise every record of ``tracks`` as a Polars dataframe."""

    rows: List[Dict[str, Any]] = []
    for track in (_coerce_track(item) for item in tracks):
        for record in track.records:
            row = {column: record.get(column) for column in RECORD_SCHEMA}
            row["track"] = row["track"] or track.track
            row["scratched"] = _as_bool(row["scratched"])
            rows.append(row)
    if not rows:
        return pl.DataFrame(schema=RECORD_SCHEMA)
    return pl.DataFrame(rows, schema=RECORD_SCHEMA, strict=False)


def matchups_frame(matchups: Iterable[Matchup]) -> pl.DataFrame:
    """Flatten a slate to one row per connection per side."""

    rows: List[Dict[str, Any]] = []
    for matchup in matchups:
        for label, side in zip(matchup.labels(), matchup.sides):
            for connection in side.connections:
                rows.append(
                    {
                        "matchup_id": matchup.id,
                        "type": matchup.type,
                        "balance": matchup.balance,
                        "side": label,
                        "side_mu": side.mu,
                        "side_sigma": side.sigma,
                        "win_probability": side.win_probability,
                        "connection_id": connection.id,
                        "name": connection.name,
                        "role": connection.role.value,
                        "apps": connection.apps,
                        "salary_sum": connection.salary_sum,
                        "points_sum": connection.points_sum,
                    }
                )
    if not rows:
        return pl.DataFrame(schema=MATCHUP_SCHEMA)
    return pl.DataFrame(rows, schema=MATCHUP_SCHEMA, strict=False)


__all__ = [
    "TrackData",
    "assign_odds_profiles",
    "load_track_file",
    "matchups_frame",
    "merge_track_data",
    "records_frame",
]
