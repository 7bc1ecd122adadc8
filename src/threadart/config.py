"""
Configuration management for the thread art engine.

A single tree of frozen dataclasses is built once (defaults, optionally merged
with a YAML file) and handed read-only to every component.
"""

import os
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Optional, Tuple

import yaml


STRATEGIES = ("greedy", "population")


@dataclass(frozen=True)
class LayoutConfig:
    """Canvas and pin geometry."""
    image_size: int = 400
    pin_count: int = 288
    min_distance: int = 20  # in pin indices around the circle


@dataclass(frozen=True)
class SearchConfig:
    """Line commitment and termination."""
    line_weight: float = 15.0
    end_threshold: float = 5.0
    max_lines: Optional[int] = 4000
    recent_pin_window: int = 20


@dataclass(frozen=True)
class ScoringConfig:
    """Target derivation and line scoring."""
    contrast: float = 1.0
    run_dark_threshold: float = 80.0
    run_residual_threshold: float = 128.0


@dataclass(frozen=True)
class PopulationConfig:
    """Genetic optimizer parameters."""
    population_size: int = 40
    genome_length: int = 400
    elitism_fraction: float = 0.1
    mutation_rate: float = 0.01
    tournament_size: int = 3
    max_generations_without_improvement: int = 25
    max_generations: Optional[int] = 500
    seed_with_greedy: bool = False


@dataclass(frozen=True)
class ColorConfig:
    """Thread colors as (r, g, b) tuples."""
    target_colors: Tuple[Tuple[int, int, int], ...] = ((0, 0, 0),)


@dataclass(frozen=True)
class ScheduleConfig:
    """How often the search loops yield to the host."""
    yield_every_lines: int = 100
    yield_every_generations: int = 1


@dataclass(frozen=True)
class ExportConfig:
    """Rendering of results by the host-side exporters."""
    scale: int = 4
    stroke_width: float = 1.0
    stroke_opacity: float = 0.35
    palette_names: Optional[Tuple[str, ...]] = None  # one label per target color


@dataclass(frozen=True)
class TracingConfig:
    """Configuration for runtime tracing."""
    enabled: bool = False
    level: str = "INFO"
    file_path: Optional[str] = None
    json_output: bool = False


@dataclass(frozen=True)
class DebugConfig:
    """Configuration for debug artifact generation."""
    enabled: bool = False
    max_edge_scale: int = 1600


@dataclass(frozen=True)
class EngineConfig:
    """Complete engine configuration."""
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    population: PopulationConfig = field(default_factory=PopulationConfig)
    colors: ColorConfig = field(default_factory=ColorConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    tracing: TracingConfig = field(default_factory=TracingConfig)
    debug: DebugConfig = field(default_factory=DebugConfig)
    strategy: str = "greedy"
    seed: int = 0

    @property
    def is_multicolor(self):
        return len(self.colors.target_colors) > 1


SECTIONS = ("layout", "search", "scoring", "population", "colors",
            "schedule", "export", "tracing", "debug")


def load_config(config_path=None):
    """
    Load configuration from a YAML file.

    Missing sections and keys keep their defaults; unknown keys are ignored.
    """
    config = EngineConfig()

    if config_path and os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}

        config = merge_config(config, yaml_data)

    return config


def merge_config(config, data):
    """Return a copy of ``config`` with values from a nested dict applied."""
    updates = {}

    for section_name in SECTIONS:
        if section_name not in data or not data[section_name]:
            continue
        section = getattr(config, section_name)
        known = {f.name for f in fields(section)}
        values = {k: v for k, v in data[section_name].items() if k in known}
        if section_name == "colors" and "target_colors" in values:
            values["target_colors"] = tuple(tuple(int(c) for c in color) for color in values["target_colors"])
        if section_name == "export" and values.get("palette_names") is not None:
            values["palette_names"] = tuple(str(name) for name in values["palette_names"])
        updates[section_name] = replace(section, **values)

    for key in ("strategy", "seed"):
        if key in data:
            updates[key] = data[key]

    return replace(config, **updates)


def with_overrides(config, section_name, **values):
    """Replace individual fields of one section, e.g. ``with_overrides(c, "search", max_lines=10)``."""
    section = replace(getattr(config, section_name), **values)
    return replace(config, **{section_name: section})


def config_to_dict(config):
    """Plain-dict form of the configuration, suitable for YAML or JSON."""
    data = asdict(config)
    data["colors"]["target_colors"] = [list(c) for c in config.colors.target_colors]
    if config.export.palette_names is not None:
        data["export"]["palette_names"] = list(config.export.palette_names)
    return data


def save_default_config(path):
    """Save default configuration to YAML file for reference."""
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config_to_dict(EngineConfig()), f, default_flow_style=False, sort_keys=False)


def validate_config(config):
    """
    Check configuration values that would make any computation meaningless.

    Returns a list of error messages (empty if all valid).
    """
    errors = []
    layout = config.layout

    if layout.image_size <= 0:
        errors.append(f"image_size must be positive, got {layout.image_size}")
    if layout.min_distance < 1:
        errors.append(f"min_distance must be at least 1, got {layout.min_distance}")
    if layout.pin_count < 2 * layout.min_distance:
        errors.append(
            f"pin_count ({layout.pin_count}) must be at least twice min_distance ({layout.min_distance})"
        )

    if config.search.line_weight <= 0:
        errors.append(f"line_weight must be positive, got {config.search.line_weight}")
    if config.search.max_lines is not None and config.search.max_lines < 0:
        errors.append(f"max_lines must not be negative, got {config.search.max_lines}")
    if config.search.recent_pin_window < 0:
        errors.append(f"recent_pin_window must not be negative, got {config.search.recent_pin_window}")

    if not config.colors.target_colors:
        errors.append("target_colors must contain at least one color")
    for color in config.colors.target_colors:
        if len(color) != 3 or any(not 0 <= c <= 255 for c in color):
            errors.append(f"Invalid color {color}: expected three channels in 0..255")

    names = config.export.palette_names
    if names is not None and len(names) != len(config.colors.target_colors):
        errors.append(
            f"palette_names has {len(names)} entries for {len(config.colors.target_colors)} target colors"
        )

    if config.strategy not in STRATEGIES:
        errors.append(f"Unknown strategy '{config.strategy}', expected one of {STRATEGIES}")

    if config.strategy == "population" and not config.is_multicolor:
        pop = config.population
        if pop.population_size < 2:
            errors.append(f"population_size must be at least 2, got {pop.population_size}")
        if pop.genome_length < 2:
            errors.append(f"genome_length must be at least 2, got {pop.genome_length}")
        if not 0.0 <= pop.elitism_fraction < 1.0:
            errors.append(f"elitism_fraction must be in [0, 1), got {pop.elitism_fraction}")
        if not 0.0 <= pop.mutation_rate <= 1.0:
            errors.append(f"mutation_rate must be in [0, 1], got {pop.mutation_rate}")
        if pop.tournament_size < 1:
            errors.append(f"tournament_size must be at least 1, got {pop.tournament_size}")
        if pop.max_generations_without_improvement < 1:
            errors.append("max_generations_without_improvement must be at least 1")

    if config.schedule.yield_every_lines < 1 or config.schedule.yield_every_generations < 1:
        errors.append("yield intervals must be at least 1")

    return errors
