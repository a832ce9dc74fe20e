"""
Configuration Management
Loads scenario and navigation settings from YAML or JSON files, merges them
over defaults and applies GRIDNAV_ environment variable overrides.
"""

import os
import yaml
import json
import logging
from typing import Dict, List, Optional, Any, Union
from pathlib import Path
from dataclasses import dataclass, field, asdict
import copy

from gridnav.utils.exceptions import ConfigurationError

SUPPORTED_PLANNERS = ("anytime", "incremental")

DEFAULT_CONFIG: Dict[str, Any] = {
    "world": {
        "connectivity": 8,
        "default_belief_cost": 0,
    },
    "navigation": {
        "planner": "anytime",
        "time_budget": 0.2,
        "initial_eps": 2.0,
        "search_until_first_solution": False,
        "goal_threshold": 0,
        "max_cycles": None,
        "trace_path": "sol.txt",
        "planner_config": {},
    },
    "logging": {
        "level": "INFO",
        "console_logging": True,
        "file_logging": False,
        "error_file_logging": False,
    },
}


@dataclass
class SystemConfig:
    """Complete run configuration."""

    world: Dict[str, Any] = field(default_factory=dict)
    navigation: Dict[str, Any] = field(default_factory=dict)
    logging: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConfigManager:
    """
    Configuration loading with defaults, file sources and environment overrides.

    Environment variables named GRIDNAV_<SECTION>__<KEY> override single
    values, e.g. GRIDNAV_NAVIGATION__TIME_BUDGET=0.5.
    """

    def __init__(self, config_dir: str = "configs"):
        self.config_dir = Path(config_dir)
        self.logger = logging.getLogger(__name__)

        self._config_cache: Dict[str, SystemConfig] = {}

        self.env_prefix = "GRIDNAV_"
        self.key_separator = "__"

        self.logger.info(f"Config Manager initialized: {config_dir}")

    def load_config(self, config_name: str = "default") -> SystemConfig:
        """
        Load a named configuration from the config directory.

        Args:
            config_name: File stem, resolved as <config_dir>/<name>.yaml or .json

        Returns:
            Loaded system configuration
        """
        if config_name in self._config_cache:
            return self._config_cache[config_name]

        config_path = None
        for suffix in (".yaml", ".yml", ".json"):
            candidate = self.config_dir / f"{config_name}{suffix}"
            if candidate.exists():
                config_path = candidate
                break

        if config_path is None:
            self.logger.warning(f"Config file not found: {self.config_dir / config_name}, using defaults")
            config_data = {}
        else:
            config_data = self._load_config_file(config_path)

        system_config = self.build_config(config_data)
        self._config_cache[config_name] = system_config

        self.logger.info(f"Configuration loaded: {config_name}")
        return system_config

    def load_file(self, config_path: Union[str, Path]) -> SystemConfig:
        """Load a configuration from an explicit file path."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        system_config = self.build_config(self._load_config_file(config_path))
        self.logger.info(f"Configuration loaded: {config_path}")
        return system_config

    def build_config(self, config_data: Optional[Dict[str, Any]]) -> SystemConfig:
        """Merge data over defaults, apply environment overrides and wrap it."""
        config_data = config_data or {}

        unknown = set(config_data) - set(DEFAULT_CONFIG)
        if unknown:
            self.logger.warning(f"Ignoring unknown config sections: {sorted(unknown)}")
            config_data = {k: v for k, v in config_data.items() if k in DEFAULT_CONFIG}

        merged = self._merge_configs(DEFAULT_CONFIG, config_data)
        merged = self._apply_env_overrides(merged)

        return SystemConfig(**merged)

    def _load_config_file(self, config_path: Path) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file."""
        suffix = config_path.suffix.lower()
        if suffix not in (".yaml", ".yml", ".json"):
            raise ConfigurationError(f"Unsupported config format: {config_path.suffix}")

        try:
            with open(config_path, "r") as f:
                if suffix == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            self.logger.error(f"Failed to load config {config_path}: {e}")
            raise ConfigurationError(f"Failed to load config {config_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config {config_path} must contain a mapping at top level")

        # Relative world files resolve against the config file's directory.
        world = data.get("world")
        if isinstance(world, dict) and world.get("cfg_file"):
            cfg_file = Path(world["cfg_file"])
            if not cfg_file.is_absolute():
                world["cfg_file"] = str(config_path.parent / cfg_file)

        return data

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides."""
        overrides = {}

        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                config_key = key[len(self.env_prefix):].lower()
                config_path = [part for part in config_key.split(self.key_separator) if part]
                if len(config_path) < 2 or config_path[0] not in DEFAULT_CONFIG:
                    self.logger.debug(f"Skipping environment variable {key}")
                    continue

                parsed_value = self._parse_env_value(value)

                self._set_nested_value(overrides, config_path, parsed_value)

        if overrides:
            config_data = self._merge_configs(config_data, overrides)
            self.logger.info(f"Applied environment overrides to: {sorted(overrides)}")

        return config_data

    def _parse_env_value(self, value: str) -> Any:
        """Parse environment variable value to appropriate type."""
        if value.lower() in ["true", "false"]:
            return value.lower() == "true"

        if value.lower() in ["none", "null"]:
            return None

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        # JSON for lists and mappings
        try:
            return json.loads(value)
        except (json.JSONDecodeError, ValueError):
            pass

        return value

    def _set_nested_value(self, config: Dict[str, Any], path: List[str], value: Any):
        """Set value in nested dictionary."""
        current = config
        for key in path[:-1]:
            if key not in current or not isinstance(current[key], dict):
                current[key] = {}
            current = current[key]

        current[path[-1]] = value

    def _merge_configs(
        self, base_config: Dict[str, Any], override_config: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries."""
        result = copy.deepcopy(base_config)

        for key, value in override_config.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = copy.deepcopy(value)

        return result

    def save_config(self, config: SystemConfig, output_path: str):
        """Save configuration to file."""
        output_path = Path(output_path)

        config_dict = config.to_dict()

        with open(output_path, "w") as f:
            if output_path.suffix.lower() in [".yaml", ".yml"]:
                yaml.dump(config_dict, f, default_flow_style=False, indent=2)
            else:
                json.dump(config_dict, f, indent=2)

        self.logger.info(f"Configuration saved to {output_path}")


# Convenience functions
def load_config(config_path: Optional[Union[str, Path]] = None) -> SystemConfig:
    """Load system configuration from a file, or defaults plus overrides."""
    manager = ConfigManager()

    if config_path:
        return manager.load_file(config_path)

    return manager.build_config({})


def validate_config(config: SystemConfig) -> Dict[str, List[str]]:
    """
    Validate system configuration.

    Returns:
        Dictionary of validation errors by section
    """
    errors = {}

    world_errors = []
    world = config.world
    if not any(world.get(source) is not None for source in ("cfg_file", "costs", "random")):
        world_errors.append("World needs one of 'cfg_file', 'costs' or 'random'")
    if world.get("connectivity", 8) not in (4, 8, 16):
        world_errors.append(f"Connectivity must be 4, 8 or 16, got {world.get('connectivity')}")
    cfg_file = world.get("cfg_file")
    if cfg_file and not Path(cfg_file).exists():
        world_errors.append(f"Environment file does not exist: {cfg_file}")
    if world.get("costs") is not None:
        for key in ("start", "goal"):
            if world.get(key) is None:
                world_errors.append(f"Inline world needs '{key}'")

    if world_errors:
        errors["world"] = world_errors

    nav_errors = []
    nav = config.navigation
    if nav.get("planner") not in SUPPORTED_PLANNERS:
        nav_errors.append(f"Planner must be one of {SUPPORTED_PLANNERS}, got {nav.get('planner')}")
    if not isinstance(nav.get("time_budget"), (int, float)) or nav.get("time_budget") <= 0:
        nav_errors.append("Time budget must be positive")
    if not isinstance(nav.get("initial_eps"), (int, float)) or nav.get("initial_eps") < 1.0:
        nav_errors.append("Initial eps must be >= 1.0")
    if not isinstance(nav.get("goal_threshold"), int) or nav.get("goal_threshold") < 0:
        nav_errors.append("Goal threshold must be a non-negative integer")
    max_cycles = nav.get("max_cycles")
    if max_cycles is not None and (not isinstance(max_cycles, int) or max_cycles <= 0):
        nav_errors.append("Max cycles must be a positive integer or null")

    if nav_errors:
        errors["navigation"] = nav_errors

    level = str(config.logging.get("level", "INFO")).upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        errors["logging"] = [f"Unknown log level: {level}"]

    return errors
