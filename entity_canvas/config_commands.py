"""``ec config``: read and change vault, canvas and layout settings."""

import sys

from cyclopts import App

from entity_canvas.config import DEFAULTS, get_config, known_keys, layout_config_from
from entity_canvas.models import EntityType

config_app = App(name="config", help="Manage vault, canvas and layout settings")


def _scope(global_: bool) -> str:
    return "global" if global_ else "local"


def _check_key(key: str) -> None:
    if key not in known_keys():
        print(f"Unknown setting {key}. Run 'ec config list' to see known settings.", file=sys.stderr)
        sys.exit(1)


@config_app.command
def set(key: str, value: str, global_: bool = False) -> None:
    """Change a setting.

    Layout settings must be whole numbers (pixels, or a column count for
    layout.orphan_columns).

    Args:
        key: Setting name, e.g. vault.path or layout.column_gap
        value: New value
        global_: Write to ~/.entity-canvas instead of ./.entity-canvas
    """
    _check_key(key)
    stored: str | int = value
    if key.startswith("layout."):
        try:
            stored = int(value)
        except ValueError:
            print(f"{key} must be a whole number, got {value!r}", file=sys.stderr)
            sys.exit(1)
    get_config(use_global=global_).set(key, stored)
    print(f"Set {key} = {stored} ({_scope(global_)})")


@config_app.command
def unset(key: str, global_: bool = False) -> None:
    """Remove a setting so the next scope (global, then default) applies.

    Args:
        key: Setting name
        global_: Remove from ~/.entity-canvas instead of ./.entity-canvas
    """
    _check_key(key)
    get_config(use_global=global_).unset(key)
    print(f"Unset {key} ({_scope(global_)})")


@config_app.command
def get(key: str, global_: bool = False) -> None:
    """Show the value a setting resolves to.

    Args:
        key: Setting name
        global_: Only look at ~/.entity-canvas
    """
    _check_key(key)
    config = get_config(use_global=global_)
    source = config.source(key)
    if source is None:
        print(f"{key} is not set")
    elif source == "default":
        print(f"{key} = {config.get(key)} (default)")
    else:
        print(f"{key} = {config.get(key)}")


@config_app.command(name="list")
def list_config(global_: bool = False) -> None:
    """List configured settings, followed by the defaults they override.

    Args:
        global_: Only list ~/.entity-canvas
    """
    settings = get_config(use_global=global_).list()
    if settings:
        print(f"{_scope(global_).capitalize()} settings:\n")
        for key, value in settings.items():
            print(f"{key} = {value}")
    else:
        print(f"No {_scope(global_)} settings")

    print("\nDefaults:\n")
    for key, value in DEFAULTS.items():
        print(f"{key} = {value}")


@config_app.command
def layout() -> None:
    """Show the node sizes and spacing the next pass will use."""
    settings = layout_config_from(get_config())
    print(f"column_gap = {settings.column_gap}")
    print(f"row_gap = {settings.row_gap}")
    print(f"lane_gap = {settings.lane_gap}")
    print(f"orphan_gap = {settings.orphan_gap}")
    print(f"orphan_columns = {settings.orphan_columns or 'auto'}")
    print("\nNode sizes:\n")
    for entity_type in EntityType:
        width, height = settings.size_of(entity_type)
        print(f"{entity_type.value}: {width} x {height}")
