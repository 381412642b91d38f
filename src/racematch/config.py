"""Configuration management for racematch."""

from pathlib import Path

from platformdirs import user_config_dir
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RacematchConfig(BaseSettings):
    """Process-level settings for racematch."""

    # Matchup configuration file
    config_path: Path | None = Field(
        default=None,
        description="Path to the layered matchup configuration YAML",
        alias="RACEMATCH_CONFIG",
    )

    config_dir: Path = Field(
        default_factory=lambda: Path(user_config_dir("racematch")),
        description="Directory searched for matchups.yaml when no path is given",
        alias="RACEMATCH_CONFIG_DIR",
    )

    # Reproducibility
    seed: int | None = Field(
        default=None,
        description="Seed for the shuffle and retry random source",
        alias="RACEMATCH_SEED",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Root log level used by the command line interface",
        alias="RACEMATCH_LOG_LEVEL",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    def resolve_config_path(self) -> Path | None:
        """Return the configuration file to load, if any exists."""
        if self.config_path is not None:
            return self.config_path
        for candidate in (Path("config/matchups.yaml"), self.config_dir / "matchups.yaml"):
            if candidate.exists():
                return candidate
        return None


# Global configuration instance
config = RacematchConfig()


def get_config() -> RacematchConfig:
    """Get the current configuration."""
    return config


def update_config(**kwargs) -> None:
    """Update configuration settings."""
    global config
    for key, value in kwargs.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            raise ValueError(f"Unknown configuration option: {key}")


def reset_config() -> None:
    """Reset configuration to defaults."""
    global config
    config = RacematchConfig()
