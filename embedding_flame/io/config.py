"""
Configuration file management.

Configuration files are YAML or JSON documents (chosen by file suffix)
with optional "render" and "overlap" sections whose keys mirror RenderConfig and OverlapConfig.
Named presets provide common starting points, and FLAME_ECHO_* environment
variables override individual values.
"""

import json
import os
from dataclasses import asdict, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union
import logging

import yaml

from ..api import RenderConfig
from ..comparison.overlap import OverlapConfig
from ..exceptions import InvalidInputError

logger = logging.getLogger(__name__)

PRESETS: Dict[str, Dict[str, Dict[str, Any]]] = {
    'preview': {
        'render': {'width': 400, 'height': 400, 'iterations': 100_000},
    },
    'standard': {
        'render': {'width': 800, 'height': 800, 'iterations': 1_000_000},
    },
    'export': {
        'render': {'width': 800, 'height': 800, 'iterations': 1_000_000,
                   'resolution_multiplier': 2},
    },
}

YAML_SUFFIXES = ('.yaml', '.yml')


def detect_format(filepath: Union[str, Path]) -> str:
    """Config format implied by a file suffix; JSON unless it is .yaml or .yml."""
    return 'yaml' if Path(filepath).suffix.lower() in YAML_SUFFIXES else 'json'


class EnvironmentConfig:
    """Reads FLAME_ECHO_* overrides from the environment."""

    PREFIX = 'FLAME_ECHO_'

    RENDER_KEYS = {
        'ITERATIONS': ('iterations', int),
        'SEED': ('seed', int),
        'WORKERS': ('num_workers', int),
        'WIDTH': ('width', int),
        'HEIGHT': ('height', int),
    }
    OVERLAP_KEYS = {
        'MAX_DISTANCE': ('max_distance', int),
        'SIGMA': ('sigma', float),
    }

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = os.environ if environ is None else environ

    def _collect(self, table) -> Dict[str, Any]:
        values = {}
        for suffix, (key, cast) in table.items():
            raw = self.environ.get(self.PREFIX + suffix)
            if raw is None or raw == '':
                continue
            try:
                values[key] = cast(raw)
            except ValueError as e:
                raise InvalidInputError(f"Invalid value for {self.PREFIX}{suffix}: {raw!r}") from e
        return values

    def render_overrides(self) -> Dict[str, Any]:
        return self._collect(self.RENDER_KEYS)

    def overlap_overrides(self) -> Dict[str, Any]:
        return self._collect(self.OVERLAP_KEYS)


class ConfigManager:
    """Loads, merges and saves render and overlap configuration."""

    def __init__(self, environment: Optional[EnvironmentConfig] = None):
        self.environment = environment or EnvironmentConfig()

    def load_config(self, filepath: Union[str, Path]) -> Dict[str, Any]:
        """
        Load a configuration file.

        Args:
            filepath: Path to a YAML (.yaml, .yml) or JSON file

        Returns:
            Parsed configuration dictionary
        """
        filepath = Path(filepath)
        fmt = detect_format(filepath)
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                if fmt == 'yaml':
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise InvalidInputError(f"Config file {filepath} is not valid {fmt.upper()}: {e}") from e

        if not isinstance(data, dict):
            raise InvalidInputError(f"Config file {filepath} must contain a mapping")
        logger.info(f"Loaded configuration from {filepath}")
        return data

    def get_preset(self, name: str) -> Dict[str, Any]:
        """Get a named preset."""
        if name not in PRESETS:
            available = ', '.join(PRESETS.keys())
            raise InvalidInputError(f"Unknown preset '{name}'. Available: {available}")
        return PRESETS[name]

    def create_render_config(self, data: Optional[Mapping[str, Any]] = None,
                             base: Optional[RenderConfig] = None) -> RenderConfig:
        """Build a RenderConfig from the "render" section of a config dict."""
        section = (data or {}).get('render', {})
        return _apply(base or RenderConfig(), section, 'render')

    def create_overlap_config(self, data: Optional[Mapping[str, Any]] = None,
                              base: Optional[OverlapConfig] = None) -> OverlapConfig:
        """Build an OverlapConfig from the "overlap" section of a config dict."""
        section = (data or {}).get('overlap', {})
        return _apply(base or OverlapConfig(), section, 'overlap')

    def resolve(self, config_file: Optional[Union[str, Path]] = None,
                preset: Optional[str] = None) -> Tuple[RenderConfig, OverlapConfig]:
        """
        Resolve configuration from preset, file and environment, in that order.

        Returns:
            Tuple of (RenderConfig, OverlapConfig)
        """
        render_config = RenderConfig()
        overlap_config = OverlapConfig()

        if preset:
            preset_data = self.get_preset(preset)
            render_config = self.create_render_config(preset_data, render_config)
            overlap_config = self.create_overlap_config(preset_data, overlap_config)

        if config_file:
            file_data = self.load_config(config_file)
            render_config = self.create_render_config(file_data, render_config)
            overlap_config = self.create_overlap_config(file_data, overlap_config)

        render_config = replace(render_config, **self.environment.render_overrides())
        overlap_config = replace(overlap_config, **self.environment.overlap_overrides())

        render_config.validate()
        overlap_config.validate()
        return render_config, overlap_config

    def save_config(self, filepath: Union[str, Path],
                    render_config: Optional[RenderConfig] = None,
                    overlap_config: Optional[OverlapConfig] = None,
                    fmt: Optional[str] = None) -> None:
        """
        Write a configuration file with both sections.

        Args:
            filepath: Output path
            render_config: Render section (defaults if None)
            overlap_config: Overlap section (defaults if None)
            fmt: 'yaml' or 'json'; detected from the suffix if None
        """
        fmt = fmt or detect_format(filepath)
        if fmt not in ('yaml', 'json'):
            raise InvalidInputError(f"Unsupported config format: {fmt}")
        data = {
            'render': asdict(render_config or RenderConfig()),
            'overlap': asdict(overlap_config or OverlapConfig()),
        }
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, 'w', encoding='utf-8') as f:
            if fmt == 'yaml':
                yaml.dump(data, f, default_flow_style=False, sort_keys=False)
            else:
                json.dump(data, f, indent=2)
        logger.info(f"Saved {fmt.upper()} configuration to {filepath}")


def _apply(config, section: Mapping[str, Any], name: str):
    """Return a copy of a config dataclass with known keys replaced."""
    if not isinstance(section, Mapping):
        raise InvalidInputError(f"'{name}' section must be an object")

    known = {f.name for f in fields(config)}
    updates = {}
    for key, value in section.items():
        if key in known:
            updates[key] = value
        else:
            logger.warning(f"Ignoring unknown {name} config key: {key}")
    return replace(config, **updates)
