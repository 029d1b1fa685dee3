"""Configuration management for the optimization engine."""

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from procure import logger
from procure.engine.errors import InputInvalid

ENV_PREFIX = "PROCURE_"


class EngineConfig(BaseModel):
    """Tunables for pricing tiers, routing, cash estimates and clustering."""

    elevated_ratio: float = Field(
        1.2, gt=1, description="Cells above best_price * ratio are 'elevated'."
    )
    exact_route_limit: int = Field(
        8,
        ge=1,
        le=10,
        description="Largest shop count routed by exhaustive permutation search.",
    )
    two_opt_max_iterations: int = Field(
        200, ge=0, description="Cap on 2-opt improvement passes."
    )
    speed_kmh: float = Field(30.0, gt=0, description="Assumed travel speed.")
    dwell_minutes: float = Field(10.0, ge=0, description="Time spent at each shop.")
    cash_contingency_pct: float = Field(
        10.0, ge=0, le=100, description="Extra cash to carry on a trip (%)."
    )
    snapshot_ttl_seconds: float = Field(
        180.0, gt=0, description="Age after which a catalog snapshot is stale."
    )
    cluster_base_degrees: float = Field(
        0.01, gt=0, description="Grid cell size at the reference zoom."
    )
    cluster_reference_zoom: float = Field(13.0)
    cluster_zoom_threshold: float = Field(
        13.0, description="Zoom level from which individual markers are shown."
    )


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    return Path.home() / ".procure"


def get_config_file() -> Path:
    """Get the configuration file path."""
    return get_config_dir() / "config.toml"


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for name in EngineConfig.model_fields:
        value = os.getenv(ENV_PREFIX + name.upper())
        if value is not None:
            overrides[name] = value
    return overrides


def load_engine_config() -> EngineConfig:
    """
    Load engine configuration.

    Precedence order:
    1. ``PROCURE_<FIELD>`` environment variables (e.g. ``PROCURE_SPEED_KMH``)
    2. ``~/.procure/config.toml`` → ``[engine]`` section
    3. Built-in defaults

    Raises:
        InputInvalid: If a configured value is out of range or malformed.
    """
    values: dict[str, Any] = {}

    config_file = get_config_file()
    if config_file.exists():
        try:
            with open(config_file, "rb") as f:
                config_data = tomllib.load(f)
            values.update(config_data.get("engine", {}))
            logger.debug(f"Loaded engine config from {config_file}")
        except Exception as e:
            logger.warning(f"Failed to load config file: {e}")

    values.update(_env_overrides())

    try:
        return EngineConfig(**values)
    except ValidationError as e:
        raise InputInvalid(f"Invalid engine configuration: {e}") from e


def create_default_config() -> Path:
    """Write a default configuration file (no-op if one already exists)."""
    config_file = get_config_file()

    if config_file.exists():
        logger.warning(f"Config file already exists at {config_file}")
        return config_file

    defaults = EngineConfig()
    lines = [
        "# procure engine configuration",
        "# Every key can be overridden with a PROCURE_<KEY> environment variable.",
        "",
        "[engine]",
    ]
    for name, field in EngineConfig.model_fields.items():
        if field.description:
            lines.append(f"# {field.description}")
        lines.append(f"{name} = {getattr(defaults, name)!r}")

    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text("\n".join(lines) + "\n")
    logger.info(f"Created default config file at {config_file}")
    return config_file
