"""
smparser CLI - Command-line interface for the engine.

Usage:
    smparser evaluate <condition_file> [--context FILE] [--timestamp T]
    smparser dispatch <definition_file> --event NAME [--state S] [--value JSON]
    smparser validate <definition_file>

Files are JSON. `dispatch` prints the next state, context and timers as
JSON; pass `--timers` with a previous run's output to carry `$after`
windows across invocations.
"""

import argparse
import json
import sys

from .engine_core import (
    DEFAULT_INITIAL_STATE,
    EvaluationOptions,
    StateMachineError,
    Timer,
    evaluate,
    handle_event,
)
from .engine_core.resolution import clone_value
from .log import collecting_logger, configure_logging, engine_logger
from .spec_schema import validate_definition


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="smparser - JSON state machine interpreter",
        prog="smparser",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Evaluate command
    evaluate_parser = subparsers.add_parser("evaluate", help="Evaluate a condition tree")
    evaluate_parser.add_argument("condition_file", help="Path to condition JSON")
    evaluate_parser.add_argument("--context", help="Path to context JSON")
    evaluate_parser.add_argument("--timestamp", type=float, help="Event timestamp (seconds)")
    evaluate_parser.add_argument("--trace", action="store_true", help="Print visit/trace log")

    # Dispatch command
    dispatch_parser = subparsers.add_parser("dispatch", help="Dispatch one event")
    dispatch_parser.add_argument("definition_file", help="Path to state machine JSON")
    dispatch_parser.add_argument("--event", required=True, help="Event name")
    dispatch_parser.add_argument("--state", default=DEFAULT_INITIAL_STATE, help="Current state")
    dispatch_parser.add_argument("--context", help="Path to context JSON (defaults to definition's)")
    dispatch_parser.add_argument("--value", help="Event payload as JSON")
    dispatch_parser.add_argument("--timestamp", type=float, help="Event timestamp (seconds)")
    dispatch_parser.add_argument("--timers", help="Path to timers JSON from a previous run")

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate a state machine")
    validate_parser.add_argument("definition_file", help="Path to state machine JSON")
    validate_parser.add_argument("--state", default=DEFAULT_INITIAL_STATE, help="Initial state")

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        if args.command == "evaluate":
            return cmd_evaluate(args)
        elif args.command == "dispatch":
            return cmd_dispatch(args)
        elif args.command == "validate":
            return cmd_validate(args)
    except FileNotFoundError as e:
        print(f"Error: File not found: {e.filename}", file=sys.stderr)
        return 2
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON: {e}", file=sys.stderr)
        return 1
    except StateMachineError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


def _load_json(path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def cmd_evaluate(args):
    """Evaluate a condition tree against a context."""
    condition = _load_json(args.condition_file)
    context = _load_json(args.context) if args.context else {}

    entries = []
    sink = engine_logger()
    options = EvaluationOptions(
        event_timestamp=args.timestamp,
        timers=[],
        logger=collecting_logger(entries, forward=sink) if args.trace else sink,
    )
    result = evaluate(condition, context, options)

    if args.trace:
        for category, message in entries:
            print(f"[{category}] {message}")
    print(json.dumps(result))
    return 0


def cmd_dispatch(args):
    """Dispatch one event and print the outcome."""
    definition = _load_json(args.definition_file)
    if args.context:
        context = _load_json(args.context)
    else:
        context = clone_value(definition.get("Context") or {})

    timers = []
    if args.timers:
        saved = _load_json(args.timers)
        # Accept either a bare list or a previous dispatch output.
        if isinstance(saved, dict):
            saved = saved.get("timers", [])
        timers = [Timer.from_dict(t) for t in saved]

    value = json.loads(args.value) if args.value else None

    result = handle_event(
        definition,
        args.state,
        args.event,
        context,
        timers,
        args.timestamp,
        value=value,
    )

    print(json.dumps({
        "state": result.state,
        "handled": result.handled,
        "context": result.context,
        "timers": [t.to_dict() for t in timers],
    }, indent=2))
    return 0


def cmd_validate(args):
    """Validate a state machine definition."""
    definition = _load_json(args.definition_file)
    result = validate_definition(definition, initial_state=args.state)

    print(f"Validating: {args.definition_file}")
    if result.warnings:
        print("\nWarnings:")
        for w in result.warnings:
            print(f"  - {w}")
    if result.errors:
        print("\nErrors:")
        for e in result.errors:
            print(f"  - {e}")

    print(f"\nValid: {result.valid}")
    return 0 if result.valid else 1


if __name__ == "__main__":
    sys.exit(main())
