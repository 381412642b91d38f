"""
racematch: balanced fantasy horse-racing matchups.

Jockeys, trainers and sires ("connections") are grouped into head-to-head
and three-way sets whose expected scoring is statistically close to even.
The engine lives in :mod:`racematch.matchups`; the most common entry points
are re-exported here.
"""

from importlib.metadata import PackageNotFoundError, version

try:  # pragma: no cover - exercised in packaging workflows
    __version__ = version("racematch")
except PackageNotFoundError:  # pragma: no cover - local editable installs
    __version__ = "0.0.0"

_EXPORTS = {
    # Generation
    "generate_all_matchups": ".matchups.batch",
    "generate_tolerance_matchups": ".matchups.batch",
    "BatchOptions": ".matchups.batch",
    # Ingestion
    "merge_track_data": ".matchups.ingestion",
    "load_track_file": ".matchups.ingestion",
    "assign_odds_profiles": ".matchups.ingestion",
    # Scoring
    "matchup_winner": ".matchups.scoring",
    "settle_round": ".matchups.scoring",
    # Configuration
    "get_config": ".config",
    "load_matchup_config": ".matchups.configuration",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> object:  # pragma: no cover - thin lazy importer
    from importlib import import_module

    target_module = _EXPORTS.get(name)
    if not target_module:
        raise AttributeError(f"module {__name__} has no attribute {name}")
    module = import_module(target_module, __name__)
    attr = getattr(module, name)
    globals()[name] = attr
    return attr


def __dir__() -> list[str]:  # pragma: no cover - trivial
    return sorted(list(globals().keys()) + __all__)
