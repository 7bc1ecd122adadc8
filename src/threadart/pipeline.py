"""
Main orchestrator for the thread art engine.

``generate_string_art`` is the in-memory entry point: decoded pixels in,
``StringArtResult`` out. ``run_pipeline`` wraps it for files on disk and
writes the result, instructions, SVG and preview.
"""

import os
import time

import numpy as np

from threadart.config import EngineConfig, load_config, validate_config, with_overrides
from threadart.export.instructions import instruction_csv, instruction_text
from threadart.export.preview import pin_overlay, render_preview
from threadart.export.svg_export import emit_result_svg
from threadart.field.residual import color_fields, grayscale_field
from threadart.geometry.line_cache import LineCache
from threadart.geometry.pins import compute_pins
from threadart.io.load_image import load_image, prepare_canvas, validate_image_path
from threadart.io.save_artifacts import DebugArtifactWriter, ensure_dir, save_image, save_json, save_text
from threadart.models import RunStats, StringArtResult, generate_result_id
from threadart.search.greedy import GreedySelector, greedy_sequence
from threadart.search.multicolor import MultiColorRouter
from threadart.search.ordering import order_segments, pen_lifts
from threadart.search.population import PopulationOptimizer
from threadart.tracer import get_tracer, trace


def validate_inputs(image, config):
    """
    Check the pixel buffer and configuration before any computation.

    Returns a list of error messages (empty if all valid).
    """
    errors = []

    if image is None:
        errors.append("No image given")
    else:
        img = np.asarray(image)
        if img.ndim != 3 or img.shape[2] not in (3, 4):
            errors.append(f"Expected an RGB or RGBA image, got shape {img.shape}")
        elif img.shape[0] <= 0 or img.shape[1] <= 0:
            errors.append(f"Image has zero size: {img.shape[1]}x{img.shape[0]}")
        elif img.shape[0] != img.shape[1]:
            errors.append(f"Image must be square, got {img.shape[1]}x{img.shape[0]}")

    errors.extend(validate_config(config))
    return errors


def build_search(image, cache, config):
    """
    Pick and construct the search strategy for ``config``.

    Returns ``(search, fields)`` where fields are the freshly derived target
    fields (before any commit) for display.
    """
    if config.is_multicolor:
        fields = color_fields(image, config.colors.target_colors, config.scoring)
        search = MultiColorRouter(cache, [f.copy() for f in fields], config)
        return search, fields

    field = grayscale_field(image, config.scoring)

    if config.strategy == "population":
        seeds = []
        if config.population.seed_with_greedy:
            with get_tracer().span("greedy_seed", module="pipeline"):
                seeds.append(greedy_sequence(cache, field, config, max_lines=config.population.genome_length - 1))
        return PopulationOptimizer(cache, field, config, initial_genomes=seeds), [field]

    return GreedySelector(cache, field.copy(), config), [field]


def _execute(image, config, progress=None, cancel=None):
    tracer = get_tracer()

    errors = validate_inputs(image, config)
    if errors:
        for error in errors:
            tracer.event(error, level="ERROR")
        raise ValueError(f"Input validation failed: {errors}")

    image = np.asarray(image)
    start_time = time.perf_counter()
    size = image.shape[0]

    with tracer.span("layout", module="pipeline"):
        pins = compute_pins(size, config.layout.pin_count)
        cache = LineCache(pins, size, config.layout.min_distance)

    with tracer.span("search", module="pipeline"):
        search, fields = build_search(image, cache, config)
        outcome = search.run(progress=progress, cancel=cancel)

    with tracer.span("ordering", module="pipeline"):
        polylines = order_segments(outcome.segments, pins)

    elapsed = (time.perf_counter() - start_time) * 1000

    result = StringArtResult(
        result_id=generate_result_id(size, len(pins), outcome.segments),
        image_size=size,
        pin_count=len(pins),
        pins=pins,
        colors=[list(c) for c in config.colors.target_colors],
        sequence=outcome.sequence,
        segments=outcome.segments,
        polylines=polylines,
        stats=RunStats(
            strategy=outcome.strategy,
            stop_reason=outcome.stop_reason,
            steps=outcome.steps,
            lines=outcome.lines,
            best_fitness=outcome.best_fitness,
            fitness_history=outcome.fitness_history,
            elapsed_ms=elapsed,
        ),
    )

    tracer.event(
        f"Run complete: strategy={outcome.strategy.value}, lines={outcome.lines}, "
        f"stop={outcome.stop_reason.value}, pen_lifts={pen_lifts(polylines)}"
    )
    return result, outcome, fields


@trace(label="generate_string_art")
def generate_string_art(image, config=None, progress=None, cancel=None):
    """
    Run the engine on a decoded square image.

    Args:
        image: (L, L, 3|4) uint8 RGB or RGBA array
        config: EngineConfig (defaults if omitted)
        progress: optional callable receiving ProgressUpdate at yield points
        cancel: optional CancelToken; a cancelled run returns its partial result

    Returns:
        StringArtResult

    Raises ValueError when the image or configuration is unusable.
    """
    if config is None:
        config = EngineConfig()
    result, _, _ = _execute(image, config, progress=progress, cancel=cancel)
    return result


@trace(label="run_pipeline")
def run_pipeline(input_path, out_dir, config=None, config_path=None, debug=False, progress=None, cancel=None):
    """
    Load an image file, run the engine and write all outputs.

    Writes ``result.json``, ``sequence.txt``, ``sequence.csv``,
    ``threads.svg`` and ``preview.png`` to ``out_dir``, plus ``debug/``
    artifacts when debug is enabled.

    Returns the StringArtResult.
    """
    tracer = get_tracer()

    if config is None:
        config = load_config(config_path)
    if debug:
        config = with_overrides(config, "debug", enabled=True)

    if not os.path.exists(input_path):
        tracer.event(f"File not found: {input_path}", level="ERROR")
        raise FileNotFoundError(f"Input image not found: {input_path}")

    errors = validate_image_path(input_path)
    if errors:
        for error in errors:
            tracer.event(error, level="ERROR")
        raise ValueError(f"Input validation failed: {errors}")

    ensure_dir(out_dir)
    debug_writer = DebugArtifactWriter(
        out_dir,
        enabled=config.debug.enabled,
        max_edge=config.debug.max_edge_scale,
    ) if config.debug.enabled else None

    with tracer.span("prepare", module="pipeline"):
        img, _ = load_image(input_path)
        canvas = prepare_canvas(img, config.layout.image_size)

    result, outcome, fields = _execute(canvas, config, progress=progress, cancel=cancel)

    with tracer.span("export", module="pipeline"):
        save_json(result, os.path.join(out_dir, "result.json"))
        save_text(instruction_text(result, names=config.export.palette_names), os.path.join(out_dir, "sequence.txt"))
        save_text(instruction_csv(result), os.path.join(out_dir, "sequence.csv"))
        save_text(emit_result_svg(result, config.export).tostring(), os.path.join(out_dir, "threads.svg"))
        save_image(render_preview(result, config.export), os.path.join(out_dir, "preview.png"))

    if debug_writer:
        debug_writer.save_image(pin_overlay(canvas[:, :, :3], result.pins), "input", "00_canvas_pins.png")
        for i, field in enumerate(fields):
            debug_writer.save_image(field.target_image(), "fields", f"target_{i}.png")
        for i, buffer in enumerate(outcome.buffers):
            debug_writer.save_image(buffer, "search", f"final_{i}.png")
        debug_writer.save_json(result.stats, "search", "stats.json")

    return result
