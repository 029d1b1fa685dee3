"""Configuration management commands."""

import click

from procure import logger
from procure.engine.config import (
    EngineConfig,
    create_default_config,
    get_config_file,
    load_engine_config,
)
from procure.engine.errors import InputInvalid


@click.group("config")
def config_group() -> None:
    """Manage procure engine configuration."""


@config_group.command("init")
def init_config() -> None:
    """Write ~/.procure/config.toml with the default engine settings."""
    try:
        config_file = create_default_config()
        click.echo(f"✓ Configuration file: {config_file}")
    except OSError as e:
        click.echo(f"❌ Failed to create config file: {e}")
        logger.error(f"Config init failed: {e}")
        raise click.exceptions.Exit(1)


@config_group.command("show")
def show_config() -> None:
    """Display the effective engine configuration.

    Values come from PROCURE_* environment variables, then the config file,
    then built-in defaults.
    """
    config_file = get_config_file()
    if not config_file.exists():
        click.echo(f"No config file at {config_file}; using defaults and environment.")

    try:
        config = load_engine_config()
    except InputInvalid as e:
        click.echo(f"❌ {e}")
        logger.error(f"Config show failed: {e}")
        raise click.exceptions.Exit(1)

    defaults = EngineConfig()
    for name in EngineConfig.model_fields:
        value = getattr(config, name)
        marker = "" if value == getattr(defaults, name) else "  (customised)"
        click.echo(f"  {name} = {value}{marker}")
