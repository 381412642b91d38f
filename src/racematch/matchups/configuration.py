from __future__ import annotations

import dataclasses
import os
import random
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

import yaml
from pydantic import BaseModel, Field, model_validator

from .batch import BatchOptions
from .search import SearchLimits, ShapeLimits

ENVIRONMENT_VARIABLE = "RACEMATCH_ENV"
EXTRA_CONFIG_VARIABLE = "RACEMATCH_MATCHUPS_CONFIG"
ENV_OVERRIDE_PREFIX = "RACEMATCH_MATCHUPS__"
DEFAULT_CONFIG_PATH = Path("config/matchups.yaml")


class ShapeLimitsConfig(BaseModel):
    """Search bounds for one matchup shape."""

    anchors: int
    window: int
    inner_window: int = 0
    good_enough_deviation: float = 0.05
    good_enough_salary_gap: float = 100.0


class SearchConfig(BaseModel):
    """Anchor prefixes, windows and early-exit cutoffs per shape.

    Each shape section may be partial; missing keys keep the engine defaults.
    """

    one_v_one: ShapeLimitsConfig
    two_v_one: ShapeLimitsConfig
    one_v_one_v_one: ShapeLimitsConfig
    two_v_one_v_one: ShapeLimitsConfig

    @model_validator(mode="before")
    @classmethod
    def _fill_shape_defaults(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        merged: Dict[str, Any] = dict(data)
        for name, defaults in dataclasses.asdict(SearchLimits()).items():
            value = data.get(name)
            if value is None:
                merged[name] = defaults
            elif isinstance(value, Mapping):
                merged[name] = {**defaults, **value}
        return merged


class GenerationConfig(BaseModel):
    """Tolerances and salary caps used by the shape generators."""

    two_way_tolerance: float = 0.15
    three_way_tolerance: float = 0.2
    two_way_salary_diff: float = 500.0
    three_way_salary_diff: float = 800.0
    seed: int | None = None


class BatchConfig(BaseModel):
    """Slate size and per-shape caps for the mixed-shape batch."""

    total_target: int = 24
    tolerance: float = 0.2
    max1v1: int = 40
    max2v1: int = 10
    max1v1v1: int = 15
    max2v1v1: int = 3


class ToleranceConfig(BaseModel):
    """Defaults for salary-tolerance regeneration."""

    count: int = 10
    salary_tolerance: float = 500.0
    sizes: list[int] = Field(default_factory=lambda: [1, 2])
    max_attempts: int = 500
    fresh_slots: int = 5
    min_apps: int = 2
    prefer_1v1: float = 0.8


class ScoringConfig(BaseModel):
    """Round constraints applied at settlement."""

    min_picks: int = 2
    max_picks: int = 10
    flex: bool = False


class MatchupConfig(BaseModel):
    """Aggregate configuration for matchup generation and scoring."""

    environment: str = "default"
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    tolerance: ToleranceConfig = Field(default_factory=ToleranceConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)


class ConfigurationError(ValueError):
    """Raised when matchup configuration validation fails."""


_TOKEN = re.compile(r"\$\{([^}]+)\}")


def _read_layer(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    layer = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(layer, Mapping):
        raise TypeError(f"Configuration at {path} must be a mapping")
    return dict(layer)


def _deep_merge(base: Mapping[str, Any], layer: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in layer.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _expand_tokens(value: Any) -> Any:
    """Replace ``${NAME}`` tokens with environment values (empty when unset)."""

    if isinstance(value, str):
        return _TOKEN.sub(lambda match: os.environ.get(match.group(1), ""), value)
    if isinstance(value, Mapping):
        return {key: _expand_tokens(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_tokens(item) for item in value]
    return value


def _env_layer(environ: Mapping[str, str]) -> Dict[str, Any]:
    """Nested overrides from ``RACEMATCH_MATCHUPS__section__key`` variables.

    Values are parsed as YAML scalars or flow collections, so ``15``,
    ``true`` and ``[1, 3]`` arrive typed.
    """

    layer: Dict[str, Any] = {}
    for name in sorted(environ):
        if not name.startswith(ENV_OVERRIDE_PREFIX):
            continue
        keys = [
            part.lower().replace("-", "_")
            for part in name[len(ENV_OVERRIDE_PREFIX) :].split("__")
            if part
        ]
        if not keys:
            continue
        override: Any = yaml.safe_load(environ[name])
        for key in reversed(keys):
            override = {key: override}
        layer = _deep_merge(layer, override)
    return layer


def _override_paths(extra_paths: Sequence[str | os.PathLike[str]] | None) -> List[Path]:
    paths = [Path(path) for path in extra_paths or ()]
    from_env = os.environ.get(EXTRA_CONFIG_VARIABLE, "")
    paths.extend(Path(token) for token in from_env.split(os.pathsep) if token)
    return [path for path in paths if path.exists()]


def load_matchup_config(
    *,
    base_path: str | os.PathLike[str] | None = None,
    environment: str | None = None,
    extra_paths: Sequence[str | os.PathLike[str]] | None = None,
) -> MatchupConfig:
    """Load layered configuration for matchup generation.

    Layers, lowest precedence first: the base file (``config/matchups.yaml``
    unless ``base_path`` is given), ``matchups.<env>.yaml`` beside it, the
    ``extra_paths`` and ``RACEMATCH_MATCHUPS_CONFIG`` override files, then
    ``RACEMATCH_MATCHUPS__`` variables.  ``${NAME}`` tokens are expanded last.
    An explicit ``base_path`` must exist; when the default file is absent the
    built-in defaults are the base layer.
    """

    base = Path(base_path) if base_path is not None else DEFAULT_CONFIG_PATH
    data = _read_layer(base) if base_path is not None or base.exists() else {}

    env_name = environment or os.environ.get(ENVIRONMENT_VARIABLE) or data.get("environment")
    if isinstance(env_name, str):
        env_file = base.with_name(f"{base.stem}.{env_name}{base.suffix}")
        if env_file.exists():
            data = _deep_merge(data, _read_layer(env_file))
        data["environment"] = env_name

    for path in _override_paths(extra_paths):
        data = _deep_merge(data, _read_layer(path))
    data = _deep_merge(data, _env_layer(os.environ))

    return MatchupConfig.model_validate(_expand_tokens(data))


def validate_matchup_config(config: MatchupConfig) -> list[str]:
    """Validate a :class:`MatchupConfig` instance.

    Args:
        config: Parsed configuration object to validate.

    Returns:
        A list of warning messages. The function raises
        :class:`ConfigurationError` if any fatal issues are detected.
    """

    errors: list[str] = []
    warnings: list[str] = []

    generation = config.generation
    for name in ("two_way_tolerance", "three_way_tolerance"):
        value = getattr(generation, name)
        if not 0 < value <= 1:
            errors.append(f"generation.{name} must be within (0, 1]")
    for name in ("two_way_salary_diff", "three_way_salary_diff"):
        if getattr(generation, name) < 0:
            errors.append(f"generation.{name} must be non-negative")
    if generation.two_way_tolerance > 0.5:
        warnings.append(
            "generation.two_way_tolerance above 0.5 accepts every two-way pairing"
        )

    batch = config.batch
    if batch.total_target <= 0:
        errors.append("batch.total_target must be greater than zero")
    if not 0 < batch.tolerance <= 1:
        errors.append("batch.tolerance must be within (0, 1]")
    for name in ("max1v1", "max2v1", "max1v1v1", "max2v1v1"):
        if getattr(batch, name) < 0:
            errors.append(f"batch.{name} must be non-negative")
    if batch.max1v1 + batch.max2v1 + batch.max1v1v1 + batch.max2v1v1 < batch.total_target:
        warnings.append(
            "batch shape caps add up to less than batch.total_target; slates will come back short"
        )
    if batch.max2v1v1 > 5:
        warnings.append("batch.max2v1v1 above 5 makes the 2v1v1 search noticeably slower")

    tolerance = config.tolerance
    if tolerance.count <= 0:
        errors.append("tolerance.count must be greater than zero")
    if tolerance.salary_tolerance < 0:
        errors.append("tolerance.salary_tolerance must be non-negative")
    if not tolerance.sizes:
        errors.append("tolerance.sizes must list at least one side size")
    elif any(size <= 0 for size in tolerance.sizes):
        errors.append("tolerance.sizes entries must be greater than zero")
    if tolerance.max_attempts <= 0:
        errors.append("tolerance.max_attempts must be greater than zero")
    if tolerance.fresh_slots < 0:
        errors.append("tolerance.fresh_slots must be non-negative")
    if tolerance.min_apps < 0:
        errors.append("tolerance.min_apps must be non-negative")
    if not 0 <= tolerance.prefer_1v1 <= 1:
        errors.append("tolerance.prefer_1v1 must be within [0, 1]")

    for name, limits in config.search:
        if limits.anchors <= 0:
            errors.append(f"search.{name}.anchors must be greater than zero")
        if limits.window <= 0:
            errors.append(f"search.{name}.window must be greater than zero")
        if limits.inner_window < 0:
            errors.append(f"search.{name}.inner_window must be non-negative")
        if limits.good_enough_deviation < 0:
            errors.append(f"search.{name}.good_enough_deviation must be non-negative")
        if limits.good_enough_salary_gap < 0:
            errors.append(f"search.{name}.good_enough_salary_gap must be non-negative")

    scoring = config.scoring
    if scoring.min_picks < 1:
        errors.append("scoring.min_picks must be at least one")
    if scoring.max_picks < scoring.min_picks:
        errors.append("scoring.max_picks must not be below scoring.min_picks")

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise ConfigurationError(f"Configuration validation failed:\n{bullet_list}")

    return warnings


def _shape_limits(config: ShapeLimitsConfig) -> ShapeLimits:
    return ShapeLimits(**config.model_dump())


def create_search_limits(config: MatchupConfig) -> SearchLimits:
    """Build :class:`SearchLimits` from the ``search`` section."""

    search = config.search
    return SearchLimits(
        one_v_one=_shape_limits(search.one_v_one),
        two_v_one=_shape_limits(search.two_v_one),
        one_v_one_v_one=_shape_limits(search.one_v_one_v_one),
        two_v_one_v_one=_shape_limits(search.two_v_one_v_one),
    )


def create_batch_options(config: MatchupConfig) -> BatchOptions:
    """Construct :class:`BatchOptions` with configuration defaults."""

    batch = config.batch
    return BatchOptions(
        total_target=batch.total_target,
        tolerance=batch.tolerance,
        two_way_salary_diff=config.generation.two_way_salary_diff,
        three_way_salary_diff=config.generation.three_way_salary_diff,
        max1v1=batch.max1v1,
        max2v1=batch.max2v1,
        max1v1v1=batch.max1v1v1,
        max2v1v1=batch.max2v1v1,
        limits=create_search_limits(config),
    )


_SHAPE_CAPS = {"1v1": "max1v1", "2v1": "max2v1", "1v1v1": "max1v1v1", "2v1v1": "max2v1v1"}


def create_shape_options(config: MatchupConfig, shape: str) -> Dict[str, Any]:
    """Keyword arguments for running a single shape generator on its own."""

    if shape not in _SHAPE_CAPS:
        raise ValueError(f"Unknown matchup shape: {shape}")
    generation = config.generation
    three_way = shape.count("v") == 2
    return {
        "tolerance": generation.three_way_tolerance if three_way else generation.two_way_tolerance,
        "max_salary_diff": (
            generation.three_way_salary_diff if three_way else generation.two_way_salary_diff
        ),
        "max_matchups": getattr(config.batch, _SHAPE_CAPS[shape]),
        "limits": create_search_limits(config),
    }


def create_rng(config: MatchupConfig, seed: int | None = None) -> random.Random:
    """Return the random source for a run; an explicit ``seed`` wins."""

    return random.Random(seed if seed is not None else config.generation.seed)


__all__ = [
    "BatchConfig",
    "ConfigurationError",
    "GenerationConfig",
    "MatchupConfig",
    "ScoringConfig",
    "SearchConfig",
    "ShapeLimitsConfig",
    "ToleranceConfig",
    "create_batch_options",
    "create_rng",
    "create_search_limits",
    "create_shape_options",
    "load_matchup_config",
    "validate_matchup_config",
]
