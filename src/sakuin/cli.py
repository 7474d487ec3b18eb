"""Sakuin CLI.

Usage:
    python -m sakuin serve [--host HOST] [--port PORT] [--backend NAME] [--base-dir PATH]
    python -m sakuin config [--backend NAME] [--base-dir PATH]

Settings are read from SAKUIN_* environment variables (see sakuin.config);
command-line flags override them.

Exit codes:
    0: Success
    1: Internal error (unexpected)
    2: Invalid configuration
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import sys
from pathlib import Path
from typing import Any

from sakuin.config import VALID_BACKENDS, Settings, build_service, configure_logging
from sakuin.errors import ConfigError


def _output_json(data: dict[str, Any]) -> None:
    """Output JSON to stdout with deterministic ordering."""
    print(json.dumps(data, sort_keys=True, indent=2))


def _make_error_result(code: str, message: str) -> dict[str, Any]:
    return {"error": {"code": code, "message": message}}


def _settings_from_args(args: argparse.Namespace) -> Settings:
    """Read settings from the environment and apply command-line overrides.

    Raises:
        ConfigError: If the environment or an override is invalid.
    """
    settings = Settings.from_env()
    overrides: dict[str, Any] = {}

    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None) is not None:
        overrides["port"] = args.port
    if getattr(args, "backend", None):
        overrides["store_backend"] = args.backend
    if getattr(args, "base_dir", None):
        overrides["store_base_dir"] = Path(args.base_dir)

    if overrides:
        settings = dataclasses.replace(settings, **overrides)
    return settings


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP API with uvicorn until interrupted."""
    import uvicorn

    from sakuin.api.main import create_app
    from sakuin.observability.tracing import configure_tracing

    settings = _settings_from_args(args)
    configure_logging(settings)
    configure_tracing()

    app = create_app(service=build_service(settings), settings=settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Print the effective settings as JSON."""
    _output_json(_settings_from_args(args).to_dict())
    return 0


def _add_store_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--backend",
        choices=sorted(VALID_BACKENDS),
        help="Store backend (overrides SAKUIN_STORE_BACKEND)",
    )
    parser.add_argument(
        "--base-dir",
        metavar="PATH",
        help="Base directory for the filesystem backend (overrides SAKUIN_STORE_BASE_DIR)",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="sakuin",
        description="Sakuin - object and metadata indexing service",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address (overrides SAKUIN_HOST)")
    serve_parser.add_argument("--port", type=int, help="Bind port (overrides SAKUIN_PORT)")
    _add_store_arguments(serve_parser)

    # config command
    config_parser = subparsers.add_parser("config", help="Print the effective settings")
    _add_store_arguments(config_parser)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Exit codes:
        0: Success
        1: Internal error (unexpected)
        2: Invalid configuration
    """
    try:
        parser = create_parser()
        args = parser.parse_args(argv)

        if args.command is None:
            parser.print_help()
            return 0

        if args.command == "serve":
            return cmd_serve(args)

        if args.command == "config":
            return cmd_config(args)

        return 0

    except ConfigError as e:
        _output_json(_make_error_result("CONFIG_ERROR", str(e)))
        return 2

    except Exception as e:
        # Fail-closed: unexpected errors return exit code 1
        _output_json(_make_error_result("INTERNAL_ERROR", str(e)))
        return 1


if __name__ == "__main__":
    sys.exit(main())
