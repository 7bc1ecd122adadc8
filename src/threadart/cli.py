"""
Command-line interface for the thread art engine.

Provides commands for generating thread art from an image and for writing a
default configuration file.
"""

import argparse
import sys
from dataclasses import replace

import yaml

from threadart.config import load_config, save_default_config, with_overrides
from threadart.tracer import configure_tracer, get_tracer


def main(argv=None):
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Thread art: approximate an image with chords strung between pins on a circle",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Generate thread art from an image")
    run_parser.add_argument(
        "--input", "-i",
        required=True,
        help="Input image file",
    )
    run_parser.add_argument(
        "--out", "-o",
        required=True,
        help="Output directory",
    )
    run_parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to YAML configuration file",
    )
    run_parser.add_argument(
        "--strategy",
        choices=["greedy", "population"],
        default=None,
        help="Search strategy for single-color runs (overrides config)",
    )
    run_parser.add_argument(
        "--max-lines",
        type=int,
        default=None,
        help="Cap on committed lines (overrides config)",
    )
    run_parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug artifact generation",
    )
    run_parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable runtime tracing",
    )
    run_parser.add_argument(
        "--trace-level",
        default="INFO",
        choices=["ERROR", "WARN", "INFO", "DEBUG"],
        help="Trace log level",
    )
    run_parser.add_argument(
        "--trace-file",
        default=None,
        help="Path to write trace logs",
    )
    run_parser.add_argument(
        "--trace-json",
        action="store_true",
        help="Enable JSON trace output",
    )

    init_parser = subparsers.add_parser("init-config", help="Create default config file")
    init_parser.add_argument(
        "--out", "-o",
        default="threadart_config.yaml",
        help="Output path for config file",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "run":
        return handle_run(args)
    elif args.command == "init-config":
        return handle_init_config(args)

    return 0


def handle_run(args):
    """Handle the run command."""
    try:
        config = load_config(args.config)
        tracing = config.tracing
        configure_tracer(
            enabled=args.trace or tracing.enabled,
            level=args.trace_level if args.trace else tracing.level,
            file_path=args.trace_file or tracing.file_path,
            json_output=args.trace_json or tracing.json_output,
        )
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"\nError: invalid configuration: {e}", file=sys.stderr)
        return 1

    tracer = get_tracer()

    if args.strategy:
        config = replace(config, strategy=args.strategy)
    if args.max_lines is not None:
        config = with_overrides(config, "search", max_lines=args.max_lines)

    try:
        from threadart.pipeline import run_pipeline

        with tracer.span("cli_run", module="cli"):
            result = run_pipeline(
                input_path=args.input,
                out_dir=args.out,
                config=config,
                debug=args.debug,
                progress=_print_progress,
            )

        stats = result.stats
        print(f"\nThread art generated.")
        print(f"  Strategy: {stats.strategy.value}")
        print(f"  Lines: {stats.lines}")
        print(f"  Stopped by: {stats.stop_reason.value}")
        print(f"  Paths: {sum(len(p) for p in result.polylines.values())}")
        print(f"\nOutputs saved to: {args.out}/")
        print(f"  - result.json")
        print(f"  - sequence.txt")
        print(f"  - sequence.csv")
        print(f"  - threads.svg")
        print(f"  - preview.png")

        return 0

    except Exception as e:
        tracer.event(f"Generation failed: {str(e)}", level="ERROR")
        print(f"\nError: {str(e)}", file=sys.stderr)
        return 1


def _print_progress(update):
    if update.finished:
        return
    value = update.best_fitness if update.best_fitness is not None else update.best_score
    best = f"{value:.2f}" if value is not None else "-"
    print(f"  {update.strategy.value}: step {update.step}, lines {update.lines}, best {best}")


def handle_init_config(args):
    """Handle the init-config command."""
    save_default_config(args.out)
    print(f"Default configuration saved to: {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
