"""Command line interface for the matchup engine."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import random
from pathlib import Path
from typing import Callable, List, Protocol, Sequence, TypeVar

from ..config import RacematchConfig, get_config
from .batch import generate_all_matchups, generate_tolerance_matchups
from .configuration import (
    ConfigurationError,
    MatchupConfig,
    create_batch_options,
    create_rng,
    create_shape_options,
    load_matchup_config,
    validate_matchup_config,
)
from .entities import Connection, Matchup, Round, RoundPick
from .ingestion import assign_odds_profiles, load_track_file, matchups_frame, merge_track_data
from .logging import configure_logging
from .scoring import RoundValidationError, matchup_winner, settle_round
from .search import GENERATORS, generate_shape

logger = logging.getLogger(__name__)


@dataclasses.dataclass(slots=True)
class CommandContext:
    """Runtime objects shared across command handlers."""

    config: MatchupConfig
    settings: RacematchConfig
    rng: random.Random


class ContextCommandHandler(Protocol):
    def __call__(self, context: CommandContext, args: argparse.Namespace) -> None:
        """Execute a command that relies on a runtime context."""


class ConfigCommandHandler(Protocol):
    def __call__(self, config: MatchupConfig, args: argparse.Namespace) -> None:
        """Execute a command that only needs configuration data."""


CommandHandler = ContextCommandHandler | ConfigCommandHandler

HandlerT = TypeVar("HandlerT", bound=CommandHandler)


@dataclasses.dataclass(slots=True)
class Subcommand:
    """Container describing a CLI sub-command."""

    name: str
    help: str
    configure: Callable[[argparse.ArgumentParser], None]
    handler: CommandHandler
    requires_context: bool

    def add_to_parser(
        self,
        subparsers,
        parent: argparse.ArgumentParser,
    ) -> argparse.ArgumentParser:
        """Create the parser for this subcommand."""

        parser = subparsers.add_parser(self.name, parents=[parent], help=self.help)
        self.configure(parser)
        parser.set_defaults(
            handler=self.handler,
            command=self.name,
            requires_context=self.requires_context,
        )
        return parser


class SubcommandApp:
    """Registry that wires handlers into an :class:`argparse` parser."""

    def __init__(self, description: str | None = None) -> None:
        self._commands: list[Subcommand] = []
        self._description = description

    def command(
        self,
        name: str,
        *,
        help: str,
        configure: Callable[[argparse.ArgumentParser], None],
        requires_context: bool = True,
    ) -> Callable[[HandlerT], HandlerT]:
        """Register ``handler`` as a sub-command with configuration callback."""

        def _decorator(handler: HandlerT) -> HandlerT:
            if any(command.name == name for command in self._commands):
                raise ValueError(f"Command '{name}' is already registered")
            self._commands.append(
                Subcommand(
                    name=name,
                    help=help,
                    configure=configure,
                    handler=handler,
                    requires_context=requires_context,
                )
            )
            return handler

        return _decorator

    @property
    def commands(self) -> Sequence[Subcommand]:
        return tuple(self._commands)

    def build_parser(self) -> argparse.ArgumentParser:
        parent = argparse.ArgumentParser(add_help=False)
        parent.add_argument("--config", dest="config_file")
        parent.add_argument("--environment", dest="config_environment")
        parent.add_argument("--log-level", dest="log_level")

        parser = argparse.ArgumentParser(description=self._description)
        subparsers = parser.add_subparsers(dest="command", required=True)
        for command in self._commands:
            command.add_to_parser(subparsers, parent)
        return parser


APP = SubcommandApp(description=__doc__)


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _side_label(connections: Sequence[Connection]) -> str:
    return " + ".join(f"{member.name} ({member.role.value[0].upper()})" for member in connections)


def _render_matchups(matchups: Sequence[Matchup]) -> None:
    if not matchups:
        print("No matchups available; try adjusting the tolerance.")
        return
    header = (
        f"{'Matchup':<14} {'Type':<6} {'Bal':>4} {'Side':<4}"
        f" {'Connections':<52} {'Salary':>8} {'Mu':>8} {'Win':>7}"
    )
    print(header)
    print("-" * len(header))
    for matchup in matchups:
        for index, (label, side) in enumerate(zip(matchup.labels(), matchup.sides)):
            matchup_id = matchup.id if index == 0 else ""
            kind = matchup.type if index == 0 else ""
            balance = str(matchup.balance) if index == 0 and matchup.balance is not None else ""
            mu = f"{side.mu:.1f}" if side.mu is not None else "-"
            win = f"{side.win_probability:.1%}" if side.win_probability is not None else "-"
            print(
                f"{matchup_id:<14} {kind:<6} {balance:>4} {label:<4}"
                f" {_side_label(side.connections):<52.52} {side.salary_total:>8.0f}"
                f" {mu:>8} {win:>7}"
            )


def _load_pool(paths: Sequence[str]) -> List[Connection]:
    tracks = [load_track_file(path) for path in paths]
    connections = merge_track_data(tracks)
    assigned = assign_odds_profiles(connections)
    logger.info(
        "Loaded %d connections from %d track files (%d odds profiles assigned)",
        len(connections),
        len(tracks),
        assigned,
    )
    return connections


def _parse_pick(token: str) -> RoundPick:
    matchup_id, separator, label = token.partition("=")
    label = label.strip().upper()
    if not separator or not matchup_id.strip() or label not in {"A", "B", "C"}:
        raise argparse.ArgumentTypeError(f"Picks must look like MATCHUP_ID=A|B|C, got {token!r}")
    return RoundPick(matchup_id=matchup_id.strip(), chosen=label)  # type: ignore[arg-type]


def _load_slate(path: str | Path) -> List[Matchup]:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("matchups") or []
    return [Matchup.from_dict(item) for item in payload]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _configure_generate_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--tracks", nargs="+", required=True, help="Track files (JSON, CSV or Parquet)")
    parser.add_argument("--mode", choices=("batch", "tolerance", "shape"), default="batch")
    parser.add_argument("--shape", choices=tuple(GENERATORS), default="1v1", help="Shape for --mode shape")
    parser.add_argument("--total", type=int, help="Number of matchups to produce")
    parser.add_argument(
        "--tolerance",
        type=float,
        help="Probability tolerance in batch and shape modes; salary tolerance in dollars in tolerance mode",
    )
    parser.add_argument("--seed", type=int, help="Seed for reproducible slates")
    parser.add_argument("--format", choices=("table", "json"), default="table")
    parser.add_argument("--parquet", help="Also write the flattened slate to this Parquet file")


@APP.command(
    "generate",
    help="Generate a matchup slate from race cards",
    configure=_configure_generate_parser,
)
def _cmd_generate(context: CommandContext, args: argparse.Namespace) -> None:
    pool = _load_pool(args.tracks)
    if args.mode == "batch":
        options = create_batch_options(context.config)
        if args.total is not None:
            options.total_target = args.total
        if args.tolerance is not None:
            options.tolerance = args.tolerance
        matchups = generate_all_matchups(pool, options, rng=context.rng).all
    elif args.mode == "shape":
        shape_options = create_shape_options(context.config, args.shape)
        if args.total is not None:
            shape_options["max_matchups"] = args.total
        if args.tolerance is not None:
            shape_options["tolerance"] = args.tolerance
        shuffled = list(pool)
        context.rng.shuffle(shuffled)
        matchups = generate_shape(args.shape, shuffled, **shape_options)
    else:
        tolerance_cfg = context.config.tolerance
        matchups = generate_tolerance_matchups(
            pool,
            count=args.total if args.total is not None else tolerance_cfg.count,
            tolerance=args.tolerance if args.tolerance is not None else tolerance_cfg.salary_tolerance,
            sizes=tuple(tolerance_cfg.sizes),
            rng=context.rng,
            max_attempts=tolerance_cfg.max_attempts,
            fresh_slots=tolerance_cfg.fresh_slots,
            min_apps=tolerance_cfg.min_apps,
            prefer_1v1=tolerance_cfg.prefer_1v1,
        )

    if args.parquet:
        destination = Path(args.parquet)
        destination.parent.mkdir(parents=True, exist_ok=True)
        matchups_frame(matchups).write_parquet(destination)
    if args.format == "json":
        print(json.dumps([matchup.to_dict() for matchup in matchups], indent=2))
    else:
        _render_matchups(matchups)


def _configure_score_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--matchups", required=True, help="JSON slate with final points")
    parser.add_argument(
        "--chosen",
        nargs="+",
        required=True,
        type=_parse_pick,
        help="Picks as MATCHUP_ID=A|B|C",
    )
    parser.add_argument("--entry", type=float, default=10.0, help="Entry amount")
    parser.add_argument("--flex", action="store_true", default=None, help="Settle as a flex round")
    parser.add_argument("--round-id", default="cli-round")


@APP.command(
    "score",
    help="Settle picks against a slate carrying final points",
    configure=_configure_score_parser,
)
def _cmd_score(context: CommandContext, args: argparse.Namespace) -> None:
    matchups = _load_slate(args.matchups)
    by_id = {matchup.id: matchup for matchup in matchups}
    for pick in args.chosen:
        matchup = by_id.get(pick.matchup_id)
        if matchup is None:
            print(f"{pick.matchup_id:<14} unknown matchup, ignored")
            continue
        try:
            result = matchup_winner(matchup, pick.chosen)
        except ValueError as exc:
            raise SystemExit(str(exc)) from exc
        outcome = "WIN" if result.won else "LOSS"
        print(
            f"{pick.matchup_id:<14} {pick.chosen:<2} {outcome:<5}"
            f" {result.chosen_points:>7.1f} vs {result.opponent_points:>7.1f}"
        )

    scoring = context.config.scoring
    flex = scoring.flex if args.flex is None else args.flex
    round_ = Round(id=args.round_id, matchups=matchups, picks=list(args.chosen), entry_amount=args.entry)
    try:
        settlement = settle_round(
            round_, flex=flex, min_picks=scoring.min_picks, max_picks=scoring.max_picks
        )
    except RoundValidationError as exc:
        raise SystemExit(f"Round not settled: {exc}") from exc
    print(
        json.dumps(
            {
                "round": round_.id,
                "flex": flex,
                "won": settlement.won,
                "misses": settlement.misses,
                "multiplier": settlement.multiplier,
                "winnings": settlement.winnings,
            },
            indent=2,
        )
    )


def _configure_validate_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--warnings-as-errors",
        action="store_true",
        help="Exit with status 2 when warnings are present",
    )


@APP.command(
    "validate-config",
    help="Validate matchup configuration",
    configure=_configure_validate_parser,
    requires_context=False,
)
def _cmd_validate_config(config: MatchupConfig, args: argparse.Namespace) -> None:
    try:
        warnings = validate_matchup_config(config)
    except ConfigurationError as exc:
        print("Configuration invalid:")
        for line in str(exc).splitlines()[1:]:
            text = line if line.startswith("-") else f"- {line}"
            print(text)
        raise SystemExit(1) from exc

    print(f"Configuration '{config.environment}' is valid.")
    if warnings:
        print("Warnings:")
        for message in warnings:
            print(f"- {message}")
        if getattr(args, "warnings_as_errors", False):
            raise SystemExit(2)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    return APP.build_parser()


def _dispatch(args: argparse.Namespace) -> None:
    settings = get_config()
    base_path = args.config_file or settings.resolve_config_path()
    config = load_matchup_config(
        base_path=base_path,
        environment=args.config_environment,
    )
    handler = args.handler
    if not getattr(args, "requires_context", True):
        handler(config, args)
        return

    try:
        warnings = validate_matchup_config(config)
    except ConfigurationError as exc:
        raise SystemExit(str(exc)) from exc

    for message in warnings:
        logger.warning("[config-warning] %s", message)

    seed = getattr(args, "seed", None)
    if seed is None:
        seed = settings.seed
    context = CommandContext(config=config, settings=settings, rng=create_rng(config, seed))
    handler(context, args)


def main(argv: Sequence[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level or get_config().log_level)
    _dispatch(args)


__all__ = ["APP", "CommandContext", "SubcommandApp", "main"]


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
