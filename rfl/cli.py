# Copyright 2025 Ralph Lemke
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""RFL command-line interface."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from .config import create_service, load_config
from .emitter import JSONEmitter
from .loader import ProgramLoader, ProgramLoadError
from .program import Program
from .runtime import Interpreter, RuntimeError, ServiceError, SimulatedService, Telemetry
from .validator import validate

# Known subcommands for routing
_SUBCOMMANDS = {"run", "check"}


def parse_inputs(text: str | None) -> dict[str, str]:
    """Parse a ``"key:value, key2:value2"`` list into a string mapping.

    Pairs without a key or a value are ignored.
    """
    if not text:
        return {}

    inputs: dict[str, str] = {}
    for pair in text.split(","):
        key, sep, value = pair.strip().partition(":")
        key, value = key.strip(), value.strip()
        if sep and key and value:
            inputs[key] = value
    return inputs


def _add_program_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "program",
        nargs="?",
        help="RFL program file (JSON). Reads from stdin if not provided.",
    )


def _build_run_parser(parser: argparse.ArgumentParser) -> None:
    """Add run-specific arguments to *parser*."""
    _add_program_arg(parser)

    parser.add_argument(
        "--inputs",
        metavar="PAIRS",
        help='Initial inputs as "key:value, key2:value2" (string values)',
    )

    parser.add_argument(
        "--inputs-json",
        metavar="JSON",
        help="Initial inputs as a JSON object (overrides --inputs on conflict)",
    )

    parser.add_argument(
        "-o",
        "--output",
        help="Output file (writes to stdout if not provided)",
    )

    parser.add_argument(
        "--compact",
        action="store_true",
        help="Output compact JSON (no indentation)",
    )

    parser.add_argument(
        "--no-validate",
        action="store_true",
        help="Skip program validation before running",
    )

    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Use the offline simulated service instead of the configured provider",
    )

    parser.add_argument(
        "--join-workers",
        type=int,
        metavar="N",
        help="Run join branches on N threads (overrides config)",
    )

    parser.add_argument(
        "--telemetry",
        metavar="FILE",
        help="Write collected telemetry events to FILE (JSON), even if the run fails",
    )


def _build_check_parser(parser: argparse.ArgumentParser) -> None:
    """Add check-specific arguments to *parser*."""
    _add_program_arg(parser)

    parser.add_argument(
        "--check-expressions",
        action="store_true",
        help="Also parse the expression of every code routine",
    )


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    """Add arguments shared by all subcommands."""
    parser.add_argument(
        "--config",
        metavar="FILE",
        help="Path to RFL config file (JSON). "
        "Defaults to rfl.config.json in cwd, ~/.rfl/, or /etc/rfl/",
    )

    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: WARNING)",
    )

    parser.add_argument(
        "--log-file",
        default=None,
        metavar="FILE",
        help="Log to file instead of stderr",
    )


def _configure_logging(parsed: argparse.Namespace) -> None:
    """Set up logging from parsed CLI args."""
    log_handlers: list[logging.Handler] = []
    if parsed.log_file:
        log_handlers.append(logging.FileHandler(parsed.log_file))
    else:
        log_handlers.append(logging.StreamHandler())

    logging.basicConfig(
        level=getattr(logging, parsed.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        handlers=log_handlers,
    )


def _read_program(parsed: argparse.Namespace) -> tuple[dict[str, Any], Program]:
    """Load the program document named on the command line (or stdin)."""
    if parsed.program:
        document = ProgramLoader.read_file(parsed.program)
    else:
        document = ProgramLoader.load_document(sys.stdin.read(), source="<stdin>")
    return document, Program.from_dict(document)


def _collect_inputs(parsed: argparse.Namespace) -> dict[str, Any]:
    inputs: dict[str, Any] = parse_inputs(parsed.inputs)
    if parsed.inputs_json:
        try:
            extra = json.loads(parsed.inputs_json)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid --inputs-json: {e.msg}") from e
        if not isinstance(extra, dict):
            raise ValueError("--inputs-json must be a JSON object")
        inputs.update(extra)
    return inputs


def _report_invalid(result) -> int:
    for error in result.errors:
        print(f"Error: {error}", file=sys.stderr)
    return 1


def _write_telemetry(path: str, telemetry: Telemetry) -> bool:
    try:
        Path(path).write_text(telemetry.to_json() + "\n")
    except OSError as e:
        print(f"Error writing telemetry: {e}", file=sys.stderr)
        return False
    return True


# =========================================================================
# Run handler
# =========================================================================


def _handle_run(parsed: argparse.Namespace) -> int:
    """Execute the run subcommand."""
    try:
        config = load_config(parsed.config)
        document, program = _read_program(parsed)
        inputs = _collect_inputs(parsed)
    except (ProgramLoadError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not parsed.no_validate:
        result = validate(document, known_inputs=inputs.keys())
        if not result.is_valid:
            return _report_invalid(result)

    try:
        service = SimulatedService() if parsed.simulate else create_service(config)
    except ServiceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    # an explicit --telemetry file turns collection on
    telemetry = Telemetry(enabled=config.runtime.telemetry or bool(parsed.telemetry))
    join_workers = parsed.join_workers or config.runtime.join_workers
    interpreter = Interpreter(
        program,
        service,
        telemetry=telemetry,
        join_workers=join_workers,
    )

    run_result = None
    try:
        run_result = interpreter.run(inputs)
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)

    if parsed.telemetry and not _write_telemetry(parsed.telemetry, telemetry):
        return 1
    if run_result is None:
        return 1

    emitter = JSONEmitter(indent=None if parsed.compact else 2)
    try:
        output = emitter.emit(run_result)
    except ValueError as e:
        print(f"Error: Cannot write result as JSON: {e}", file=sys.stderr)
        return 1

    try:
        if parsed.output:
            Path(parsed.output).write_text(output + "\n")
            print(f"Output written to {parsed.output}", file=sys.stderr)
        else:
            print(output)
    except OSError as e:
        print(f"Error writing output: {e}", file=sys.stderr)
        return 1

    return 0


# =========================================================================
# Check handler
# =========================================================================


def _handle_check(parsed: argparse.Namespace) -> int:
    """Execute the check subcommand."""
    try:
        document, _ = _read_program(parsed)
    except ProgramLoadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    result = validate(document, check_expressions=parsed.check_expressions)
    if not result.is_valid:
        return _report_invalid(result)

    print("OK: program is valid", file=sys.stderr)
    return 0


# =========================================================================
# Main entry point
# =========================================================================


def main(args: list[str] | None = None) -> int:
    """Main entry point for the RFL CLI.

    Supports subcommands ``run`` (default) and ``check``. If the first
    argument is not a known subcommand, ``run`` is assumed.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    argv = args if args is not None else sys.argv[1:]

    subcommand = "run"
    remaining = list(argv)
    if remaining and remaining[0] in _SUBCOMMANDS:
        subcommand = remaining[0]
        remaining = remaining[1:]

    if subcommand == "run":
        parser = argparse.ArgumentParser(
            prog="rfl run",
            description="Run an RFL (Routine Flow Language) program",
        )
        _build_run_parser(parser)
        _add_common_args(parser)
        parsed = parser.parse_args(remaining)
        _configure_logging(parsed)
        return _handle_run(parsed)

    parser = argparse.ArgumentParser(
        prog="rfl check",
        description="Validate an RFL program without running it",
    )
    _build_check_parser(parser)
    _add_common_args(parser)
    parsed = parser.parse_args(remaining)
    _configure_logging(parsed)
    return _handle_check(parsed)


if __name__ == "__main__":
    sys.exit(main())
