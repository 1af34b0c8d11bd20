# src/main.py — v2
"""CLI entry point: validate, types commands.

Usage:
    rapidval validate <file> --type csv.timeseries.ga4.v1 [options]
    rapidval types
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from rapidval.config.settings import Settings, load_settings
from rapidval.core.errors import RapidValError
from rapidval.version import __version__

logger = logging.getLogger(__name__)

EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_CONFLICT = 2


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        args.settings = load_settings()
    except (RapidValError, ValidationError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    _setup_logging(args.settings, args.verbose)

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="rapidval",
        description=f"rapidval v{__version__}: idempotent structured-data validation",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- validate ---
    p_validate = subparsers.add_parser(
        "validate", help="Validate a single file",
    )
    p_validate.add_argument("file", type=Path, help="Path to the file to validate")
    p_validate.add_argument(
        "-t", "--type", dest="operation_type", default="csv.timeseries.ga4.v1",
        help="Validation type (default: csv.timeseries.ga4.v1)",
    )
    p_validate.add_argument(
        "-o", "--option", dest="options", action="append", default=[],
        metavar="KEY=VALUE",
        help="Validator option; VALUE is parsed as JSON when possible (repeatable)",
    )
    p_validate.add_argument(
        "--key", default=None,
        help="Idempotency key; requires --caller",
    )
    p_validate.add_argument(
        "--caller", default=None,
        help="Caller identity that scopes the idempotency key",
    )
    p_validate.add_argument(
        "--base64", action="store_true",
        help="Send the file base64-encoded instead of as text",
    )
    p_validate.set_defaults(func=_cmd_validate)

    # --- types ---
    p_types = subparsers.add_parser(
        "types", help="List supported validation types",
    )
    p_types.set_defaults(func=_cmd_types)

    return parser


async def _cmd_validate(args: argparse.Namespace) -> int:
    """Validate one file through the idempotent orchestrator."""
    from rapidval.api.facade import build_orchestrator, handle_validation

    file_path: Path = args.file
    if not file_path.exists():
        logger.error("File not found: %s", file_path)
        return 1

    raw = file_path.read_bytes()
    if args.base64:
        content = "base64:" + base64.b64encode(raw).decode("ascii")
    else:
        content = "text:" + raw.decode("utf-8")

    body = {
        "type": args.operation_type,
        "content": content,
        "options": _parse_options(args.options),
    }

    orchestrator = build_orchestrator(args.settings)
    response = await handle_validation(
        body,
        idempotency_key=args.key,
        caller_identity=args.caller,
        orchestrator=orchestrator,
    )

    print(json.dumps(response.body, indent=2))
    if response.status_code == 200:
        return EXIT_VALID
    if response.status_code == 409:
        return EXIT_CONFLICT
    return EXIT_INVALID


async def _cmd_types(args: argparse.Namespace) -> int:
    """Print the validator catalog."""
    from rapidval.api.facade import list_types

    print(json.dumps(list_types(), indent=2))
    return 0


def _parse_options(pairs: list[str]) -> dict[str, Any]:
    """Parse repeated KEY=VALUE flags into an options mapping."""
    options: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid option {pair!r}, expected KEY=VALUE")
        try:
            options[key] = json.loads(value)
        except json.JSONDecodeError:
            options[key] = value
    return options


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Apply the logging settings; --verbose forces DEBUG."""
    from rapidval.logging.logger import setup_logging_from_settings

    if verbose:
        settings = settings.model_copy(update={"log_level": "DEBUG"})
    setup_logging_from_settings(settings)


if __name__ == "__main__":
    sys.exit(main())
