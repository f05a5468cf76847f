"""Configuration loader for the blocks-world planner.

Loads config from a YAML cascade: config/default.yaml is always loaded,
then environment-specific overrides, then environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from blocksworld.core.exceptions import ConfigError

DEFAULT_MAX_ITERATIONS = 2500
MAX_ITERATIONS_CAP = 5000


# ---------------------------------------------------------------------------
# Config schema
# ---------------------------------------------------------------------------

class PlannerConfig(BaseModel):
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    enable_negotiation: bool = True
    deliberation_timeout_ms: int = 5000  # accepted, not enforced

    @field_validator("max_iterations")
    @classmethod
    def _positive_iterations(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_iterations must be at least 1")
        return value


class NegotiationConfig(BaseModel):
    utility_threshold: float = 0.1
    enable_cooperative_sequencing: bool = True
    enable_cooperative_alternative: bool = False  # opt-in
    random_seed: Optional[int] = None


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ObservabilityConfig(BaseModel):
    enabled: bool = False
    events_jsonl_path: str = "artifacts/blocksworld/events.jsonl"
    metrics_path: str = "artifacts/blocksworld/metrics.json"


class AppConfig(BaseModel):
    planner: PlannerConfig = Field(default_factory=PlannerConfig)
    negotiation: NegotiationConfig = Field(default_factory=NegotiationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "BLOCKSWORLD_MAX_ITERATIONS": ("planner", "max_iterations"),
    "BLOCKSWORLD_ENABLE_NEGOTIATION": ("planner", "enable_negotiation"),
    "BLOCKSWORLD_RANDOM_SEED": ("negotiation", "random_seed"),
    "BLOCKSWORLD_LOG_LEVEL": ("logging", "level"),
}


def resolve_max_iterations(requested: Optional[int], default: int = DEFAULT_MAX_ITERATIONS) -> int:
    """Clamp a requested iteration ceiling to [1, MAX_ITERATIONS_CAP]."""
    if requested is None:
        return max(1, min(default, MAX_ITERATIONS_CAP))
    return max(1, min(int(requested), MAX_ITERATIONS_CAP))


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Could not parse {path}: {exc}") from exc
    return data if isinstance(data, dict) else {}


def _apply_env_overrides(merged: dict[str, Any]) -> dict[str, Any]:
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or raw == "":
            continue
        merged.setdefault(section, {})
        merged[section][key] = raw
    return merged


def load_config(
    config_dir: Optional[Path] = None,
    env: Optional[str] = None,
) -> AppConfig:
    """Load application config from YAML cascade.

    Order: default.yaml -> {env}.yaml -> env vars (BLOCKSWORLD_*)
    """
    if config_dir is None:
        config_dir = Path(__file__).parent.parent.parent / "config"

    merged = _load_yaml(config_dir / "default.yaml")

    if env:
        overlay = _load_yaml(config_dir / f"{env}.yaml")
        merged = _deep_merge(merged, overlay)

    merged = _apply_env_overrides(merged)

    try:
        return AppConfig(**merged)
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
