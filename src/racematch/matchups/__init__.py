"""Matchup generation engine.

Connections are scored as normal variables (:mod:`.models`), combined into
sides, and searched over bounded windows for combinations that are both
probability- and salary-balanced (:mod:`.search`).  :mod:`.batch` merges the
per-shape generators into one slate in which every connection is used at
most once, and :mod:`.scoring` settles finished matchups and rounds.
"""

from .batch import (
    BatchOptions,
    BatchResult,
    generate_all_matchups,
    generate_tolerance_matchups,
    interleave_matchups,
)
from .configuration import (
    ConfigurationError,
    MatchupConfig,
    create_batch_options,
    create_rng,
    create_search_limits,
    create_shape_options,
    load_matchup_config,
    validate_matchup_config,
)
from .entities import (
    Connection,
    ConnectionRole,
    Matchup,
    Round,
    RoundPick,
    SetSide,
    Starter,
    connection_id,
)
from .ingestion import (
    TrackData,
    assign_odds_profiles,
    load_track_file,
    matchups_frame,
    merge_track_data,
    records_frame,
)
from .logging import configure_logging
from .models import (
    SideProfile,
    ThreeWayProbabilities,
    balance_score,
    calculate_set_mu_sigma,
    connection_profile,
    head_to_head_probability,
    normal_cdf,
    odds_bucket_profile,
    three_way_probabilities,
)
from .odds import (
    ODDS_BUCKETS,
    OddsBucket,
    final_salary,
    fractional_to_decimal,
    mu_sigma_for_odds,
    salary_for_odds,
)
from .scoring import (
    PickResult,
    RoundSettlement,
    RoundValidationError,
    matchup_winner,
    payout_multiplier,
    round_outcome,
    set_avpa_race,
    set_points,
    settle_round,
)
from .search import (
    Allocation,
    SearchLimits,
    ShapeLimits,
    build_matchup,
    generate_1v1_matchups,
    generate_1v1v1_matchups,
    generate_2v1_matchups,
    generate_2v1v1_matchups,
    generate_shape,
)

__all__ = [
    "Allocation",
    "BatchOptions",
    "BatchResult",
    "ConfigurationError",
    "Connection",
    "ConnectionRole",
    "MatchupConfig",
    "Matchup",
    "ODDS_BUCKETS",
    "OddsBucket",
    "PickResult",
    "Round",
    "RoundPick",
    "RoundSettlement",
    "RoundValidationError",
    "SearchLimits",
    "SetSide",
    "ShapeLimits",
    "SideProfile",
    "Starter",
    "ThreeWayProbabilities",
    "TrackData",
    "assign_odds_profiles",
    "balance_score",
    "build_matchup",
    "calculate_set_mu_sigma",
    "configure_logging",
    "connection_id",
    "connection_profile",
    "create_batch_options",
    "create_rng",
    "create_search_limits",
    "create_shape_options",
    "final_salary",
    "fractional_to_decimal",
    "generate_1v1_matchups",
    "generate_1v1v1_matchups",
    "generate_2v1_matchups",
    "generate_2v1v1_matchups",
    "generate_all_matchups",
    "generate_shape",
    "generate_tolerance_matchups",
    "head_to_head_probability",
    "interleave_matchups",
    "load_matchup_config",
    "load_track_file",
    "matchup_winner",
    "matchups_frame",
    "merge_track_data",
    "mu_sigma_for_odds",
    "normal_cdf",
    "odds_bucket_profile",
    "payout_multiplier",
    "records_frame",
    "round_outcome",
    "salary_for_odds",
    "set_avpa_race",
    "set_points",
    "settle_round",
    "three_way_probabilities",
    "validate_matchup_config",
]
