"""Engine configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


def _find_project_root() -> Path:
    """Find project root by locating pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path(__file__).resolve().parent.parent.parent


# YAML section -> {yaml key: Settings field}
_YAML_SECTIONS: dict[str, dict[str, str]] = {
    "safety": {
        "new_user_max_difficulty": "new_user_max_difficulty",
        "struggling_max_difficulty": "struggling_max_difficulty",
        "easy_subtype_marker": "easy_subtype_marker",
        "global_max_difficulty": "global_max_difficulty",
    },
    "producer": {
        "timeout_seconds": "producer_timeout_seconds",
        "max_attempts_per_slot": "max_attempts_per_slot",
    },
    "behavior": {
        "window_size": "behavioral_window_size",
        "max_age_hours": "behavioral_max_age_hours",
        "recent_outcomes_limit": "recent_outcomes_limit",
        "performance_samples_limit": "performance_samples_limit",
    },
    "modifiers": {
        "confidence_crisis_failures": "confidence_crisis_failures",
        "disengaged_threshold": "disengaged_threshold",
        "power_dependency_threshold": "power_dependency_threshold",
        "fatigue_min_samples": "fatigue_min_samples",
        "session_decline_threshold": "session_decline_threshold",
    },
    "levels": {
        "points_per_level": "points_per_level",
        "strength_level_threshold": "strength_level_threshold",
    },
    "persona": {
        "pattern_like_types": "pattern_like_types",
        "math_like_types": "math_like_types",
    },
    "logging": {
        "level": "log_level",
        "json": "log_json",
    },
}


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from settings.yaml."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        """Not used - we implement __call__ instead."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        """Load settings from YAML file."""
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        # Flatten nested structure to match Settings field names
        flattened = {}
        for section, keys in _YAML_SECTIONS.items():
            values = data.get(section) or {}
            for yaml_key, field_name in keys.items():
                flattened[field_name] = values.get(yaml_key)

        # Remove None values
        return {k: v for k, v in flattened.items() if v is not None}


class Settings(BaseSettings):
    """Engine settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Safety caps
    new_user_max_difficulty: float = Field(default=0.4, ge=0.0, le=1.0)
    struggling_max_difficulty: float = Field(default=0.6, ge=0.0, le=1.0)
    easy_subtype_marker: str = Field(default="easy")
    global_max_difficulty: float | None = Field(default=None, ge=0.0, le=1.0)

    # Puzzle producer
    producer_timeout_seconds: float = Field(default=2.0, gt=0.0)
    max_attempts_per_slot: int = Field(default=2, ge=1)

    # Behavioral history
    behavioral_window_size: int = Field(default=20, ge=1)
    behavioral_max_age_hours: float = Field(default=72.0, gt=0.0)
    recent_outcomes_limit: int = Field(default=10, ge=1)
    performance_samples_limit: int = Field(default=50, ge=4)

    # State modifiers
    confidence_crisis_failures: int = Field(default=3)
    disengaged_threshold: float = Field(default=0.4)
    power_dependency_threshold: float = Field(default=0.5)
    fatigue_min_samples: int = Field(default=3, ge=2)
    session_decline_threshold: float = Field(default=0.1)

    # Levels
    points_per_level: int = Field(default=30, gt=0)
    strength_level_threshold: int = Field(default=15)

    # Sub-persona detection
    pattern_like_types: list[str] = Field(default_factory=lambda: ["pattern"])
    math_like_types: list[str] = Field(
        default_factory=lambda: [
            "number-series",
            "number-analogy",
            "algebraic-reasoning",
            "number-grid",
        ]
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings sources to include YAML file.

        Priority order (highest to lowest):
        1. init_settings (arguments passed to Settings())
        2. env_settings (environment variables)
        3. dotenv_settings (.env file)
        4. YamlSettingsSource (settings.yaml)
        5. file_secret_settings
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Get engine settings singleton."""
    return Settings()


class PuzzleTypeConfig(BaseModel):
    """Catalog entry for one producible puzzle type."""

    name: str
    category: str
    enabled: bool = True
    weight: float = Field(default=1.0, ge=0.0)
    beginner_friendly: bool = False


# Built-in catalog, used when config/puzzle_types.yaml is absent.
DEFAULT_PUZZLE_CATALOG: list[PuzzleTypeConfig] = [
    PuzzleTypeConfig(name="pattern", category="visual", beginner_friendly=True),
    PuzzleTypeConfig(name="serial-reasoning", category="logical"),
    PuzzleTypeConfig(name="number-series", category="mathematical"),
    PuzzleTypeConfig(name="algebraic-reasoning", category="mathematical", enabled=False, weight=0.0),
    PuzzleTypeConfig(name="number-grid", category="mathematical"),
    PuzzleTypeConfig(name="number-analogy", category="mathematical", beginner_friendly=True),
    PuzzleTypeConfig(name="transformation", category="visual", enabled=False, weight=0.0),
    PuzzleTypeConfig(name="sequential-figures", category="visual"),
    PuzzleTypeConfig(name="analogy", category="logical", beginner_friendly=True),
]


def load_puzzle_catalog(path: Path | None = None) -> list[PuzzleTypeConfig]:
    """Load the puzzle type catalog from YAML, or the built-in catalog."""
    catalog_path = path or _find_project_root() / "config" / "puzzle_types.yaml"
    if not catalog_path.exists():
        if path is not None:
            raise FileNotFoundError(f"Puzzle catalog not found: {catalog_path}")
        return list(DEFAULT_PUZZLE_CATALOG)
    with open(catalog_path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    entries = data.get("puzzle_types", {})
    return [PuzzleTypeConfig(name=name, **(entry or {})) for name, entry in entries.items()]


def enabled_type_names(catalog: list[PuzzleTypeConfig]) -> list[str]:
    """Names of enabled catalog types, in catalog order."""
    return [entry.name for entry in catalog if entry.enabled]
