"""Configuration management for entity-canvas using YAML files."""

from pathlib import Path
from typing import Any

import structlog
import yaml

from entity_canvas.layout import LayoutConfig
from entity_canvas.models import EntityType

logger = structlog.get_logger()

CONFIG_DIR_NAME = ".entity-canvas"

DEFAULTS: dict[str, Any] = {
    "vault.path": ".",
    "vault.archive_folder": "archive",
    "canvas.path": "project.canvas",
}

LAYOUT_KEYS = ("column_gap", "row_gap", "lane_gap", "orphan_gap", "orphan_columns")


def _read_yaml(path: Path) -> dict[str, Any]:
    """Read a flat settings mapping; a missing file is empty.

    Raises:
        ValueError: if the file cannot be read or is not a mapping
    """
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error("Failed to load config", path=str(path), error=str(e))
        raise ValueError(f"Failed to load config from {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Config {path} must be a mapping of settings")
    return data


class Config:
    """Settings stored as flat dotted keys (``vault.path``, ``layout.row_gap``).

    Local settings live in .entity-canvas/config.yaml under the working directory and
    global ones in ~/.entity-canvas/config.yaml. Lookups try local, then global, then
    DEFAULTS. A global Config only sees the global file.
    """

    def __init__(self, use_global: bool = False, config_dir: Path | None = None) -> None:
        """Initialize configuration manager.

        Args:
            use_global: If True, use global config only. If False, use local config with global fallback.
            config_dir: Custom directory to store config file (overrides the default location)
        """
        global_dir = Path.home() / CONFIG_DIR_NAME
        if config_dir is not None:
            self.config_dir = Path(config_dir)
        else:
            self.config_dir = global_dir if use_global else Path.cwd() / CONFIG_DIR_NAME
        self.is_global = use_global
        self.config_file = self.config_dir / "config.yaml"
        self._config = _read_yaml(self.config_file)

        self._global_config: dict[str, Any] = {}
        global_file = global_dir / "config.yaml"
        if not self.is_global and global_file != self.config_file:
            try:
                self._global_config = _read_yaml(global_file)
            except ValueError as e:
                logger.warning("Ignoring unreadable global config", error=str(e))

        logger.debug("Config initialized", config_file=str(self.config_file), is_global=self.is_global)

    def _save(self) -> None:
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w", encoding="utf-8") as f:
                yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=True)
        except OSError as e:
            logger.error("Failed to save config", path=str(self.config_file), error=str(e))
            raise ValueError(f"Failed to save config to {self.config_file}: {e}") from e
        logger.debug("Config saved", path=str(self.config_file), keys=len(self._config))

    def source(self, key: str) -> str | None:
        """Where a setting's value comes from: "local", "global", "default" or None."""
        if key in self._config:
            return "global" if self.is_global else "local"
        if key in self._global_config:
            return "global"
        if key in DEFAULTS:
            return "default"
        return None

    def get(self, key: str, default: Any = None) -> Any:
        """Get a setting.

        Args:
            key: Setting name
            default: Returned instead of the built-in default when no file sets the key

        Returns:
            The configured value, else ``default``, else the built-in default
        """
        source = self.source(key)
        logger.debug("Reading config value", key=key, source=source)
        if source == "local" or (source == "global" and self.is_global):
            return self._config[key]
        if source == "global":
            return self._global_config[key]
        return default if default is not None else DEFAULTS.get(key)

    def set(self, key: str, value: Any) -> None:
        logger.debug("Setting config value", key=key)
        self._config[key] = value
        self._save()

    def unset(self, key: str) -> None:
        logger.debug("Unsetting config value", key=key)
        if self._config.pop(key, None) is not None:
            self._save()

    def list(self) -> dict[str, Any]:
        """Settings set in files, local overriding global, sorted by key."""
        merged = {} if self.is_global else dict(self._global_config)
        merged.update(self._config)
        return dict(sorted(merged.items()))


def get_config(use_global: bool = False) -> Config:
    """Get a configuration instance.

    Args:
        use_global: If True, return global config. If False, return local config with global fallback.

    Returns:
        Config instance
    """
    return Config(use_global=use_global)


def known_keys() -> list[str]:
    """Every setting entity-canvas reads."""
    keys = list(DEFAULTS)
    keys += [f"layout.{key}" for key in LAYOUT_KEYS]
    keys += ["layout.node_width", "layout.node_height"]
    for entity_type in EntityType:
        keys += [f"layout.{entity_type.value}.width", f"layout.{entity_type.value}.height"]
    return keys


def _as_int(config: Config, key: str) -> int | None:
    value = config.get(key)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Config value {key} must be a whole number, got {value!r}") from e


def layout_config_from(config: Config) -> LayoutConfig:
    """Build layout settings from ``layout.*`` config keys.

    ``layout.node_width``/``layout.node_height`` set every type's size;
    ``layout.<type>.width``/``layout.<type>.height`` override one type.
    """
    layout = LayoutConfig()
    for key in LAYOUT_KEYS:
        value = _as_int(config, f"layout.{key}")
        if value is not None:
            setattr(layout, key, value)

    width = _as_int(config, "layout.node_width")
    height = _as_int(config, "layout.node_height")
    for entity_type in EntityType:
        default_width, default_height = layout.size_of(entity_type)
        type_width = _as_int(config, f"layout.{entity_type.value}.width")
        type_height = _as_int(config, f"layout.{entity_type.value}.height")
        layout.node_sizes[entity_type] = (
            type_width or width or default_width,
            type_height or height or default_height,
        )
    return layout
