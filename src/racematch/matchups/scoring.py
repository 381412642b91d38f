"""Outcome evaluation and round settlement for finalised matchups.

Scoring reads the points already baked into each matchup's frozen
connections; nothing is re-fetched.  A chosen side wins only when it strictly
outscores its opponent, so an exact tie is a loss for the chooser.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from typing import Dict, Iterable, Sequence

from .entities import Matchup, Round, RoundPick, SetSide

logger = logging.getLogger(__name__)

MIN_PICKS = 2
MAX_PICKS = 10
TWO_WAY_GROSS = 2
THREE_WAY_GROSS = 3
HOUSE_TAKE = 0.2
FLEX_ALL_WIN_SHARE = 0.7
FLEX_ONE_MISS_SHARE = 0.3


class RoundValidationError(ValueError):
    """Raised when a round cannot be submitted or settled."""


@dataclasses.dataclass(slots=True)
class PickResult:
    won: bool
    chosen_points: float
    opponent_points: float


@dataclasses.dataclass(slots=True)
class RoundSettlement:
    """Settled outcome of a round."""

    won: bool
    misses: int
    multiplier: float
    winnings: float


def set_points(side: SetSide) -> float:
    return sum(connection.points_sum for connection in side.connections)


def set_avpa_race(side: SetSide) -> float:
    """Points per $1000 of salary for ``side``; zero when it carries no salary."""

    if side.salary_total == 0:
        return 0.0
    return 1000.0 * set_points(side) / side.salary_total


def matchup_winner(matchup: Matchup, chosen: str) -> PickResult:
    """Evaluate a pick on ``matchup``.

    In a three-way matchup the chosen side must beat the best of the other
    two sides.
    """

    chosen_side = matchup.side(chosen)
    label = str(chosen).upper()
    chosen_points = set_points(chosen_side)
    opponent_points = max(
        set_points(matchup.side(other)) for other in matchup.labels() if other != label
    )
    return PickResult(
        won=chosen_points > opponent_points,
        chosen_points=chosen_points,
        opponent_points=opponent_points,
    )


def _pick_results(round_: Round) -> list[PickResult]:
    by_id: Dict[str, Matchup] = {matchup.id: matchup for matchup in round_.matchups}
    results: list[PickResult] = []
    for pick in round_.picks:
        matchup = by_id.get(pick.matchup_id)
        if matchup is None:
            logger.debug("Ignoring pick for unknown matchup %s", pick.matchup_id)
            continue
        results.append(matchup_winner(matchup, pick.chosen))
    return results


def round_outcome(round_: Round) -> bool:
    """A round wins only if every pick wins."""

    return all(result.won for result in _pick_results(round_))


def payout_multiplier(matchups: Iterable[Matchup], flex: bool = False) -> Dict[str, float]:
    """Return the payout multipliers for a set of picked matchups.

    The gross multiplier is the product of the per-matchup odds (2 for a
    two-way matchup, 3 for a three-way one).  The house keeps 20% of it.  Flex
    rounds split the payout into an all-win and a one-miss tier.
    """

    gross = 1
    for matchup in matchups:
        gross *= THREE_WAY_GROSS if matchup.is_three_way else TWO_WAY_GROSS
    payout = math.floor(gross * (1.0 - HOUSE_TAKE))
    if not flex:
        return {"gross": float(gross), "standard": float(payout)}
    return {
        "gross": float(gross),
        "standard": float(payout),
        "all_win": float(math.floor(payout * FLEX_ALL_WIN_SHARE)),
        "one_miss": float(math.floor(payout * FLEX_ONE_MISS_SHARE)),
    }


def validate_round(
    round_: Round, *, min_picks: int = MIN_PICKS, max_picks: int = MAX_PICKS
) -> None:
    errors = []
    # Only picks on the round's own matchups count.
    known = {matchup.id for matchup in round_.matchups}
    resolved = sum(1 for pick in round_.picks if pick.matchup_id in known)
    if not min_picks <= resolved <= max_picks:
        errors.append(
            f"a round needs between {min_picks} and {max_picks} picks on its matchups, got {resolved}"
        )
    if round_.entry_amount <= 0:
        errors.append("entry amount must be positive")
    if errors:
        raise RoundValidationError("; ".join(errors))


def _picked_matchups(matchups: Sequence[Matchup], picks: Sequence[RoundPick]) -> list[Matchup]:
    by_id = {matchup.id: matchup for matchup in matchups}
    return [by_id[pick.matchup_id] for pick in picks if pick.matchup_id in by_id]


def settle_round(
    round_: Round,
    flex: bool = False,
    *,
    min_picks: int = MIN_PICKS,
    max_picks: int = MAX_PICKS,
) -> RoundSettlement:
    """Settle ``round_`` and record its multiplier and winnings on it."""

    validate_round(round_, min_picks=min_picks, max_picks=max_picks)
    results = _pick_results(round_)
    misses = sum(1 for result in results if not result.won)
    tiers = payout_multiplier(_picked_matchups(round_.matchups, round_.picks), flex=flex)

    if not flex:
        multiplier = tiers["standard"] if misses == 0 else 0.0
    elif misses == 0:
        multiplier = tiers["all_win"]
    elif misses == 1:
        multiplier = tiers["one_miss"]
    else:
        multiplier = 0.0

    winnings = round_.entry_amount * multiplier
    round_.multiplier = multiplier
    round_.winnings = winnings
    logger.info(
        "Settled round %s: %d picks, %d misses, multiplier %.0fx",
        round_.id,
        len(results),
        misses,
        multiplier,
    )
    return RoundSettlement(
        won=misses == 0,
        misses=misses,
        multiplier=multiplier,
        winnings=winnings,
    )


__all__ = [
    "PickResult",
    "RoundSettlement",
    "RoundValidationError",
    "matchup_winner",
    "payout_multiplier",
    "round_outcome",
    "set_avpa_race",
    "set_points",
    "settle_round",
    "validate_round",
]
