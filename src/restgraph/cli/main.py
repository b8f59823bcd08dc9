#!/usr/bin/env python3
"""
restgraph CLI - Main entry point.

Usage:
    restgraph init                     # Create restgraph.yaml
    restgraph print-schema             # Print the GraphQL schema (SDL)
    restgraph report                   # Print the translation report (JSON)
    restgraph serve                    # Run the gateway
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from graphql import print_schema

from ..core.errors import RestGraphError
from ..translation import TranslationResult, create_graphql_schema
from .config import RestGraphConfig, load_config


def _load(args: argparse.Namespace) -> RestGraphConfig | None:
    config = load_config(args.config)
    if not config:
        print(f"Error: {args.config} not found. Run 'restgraph init' first.")
        return None
    if not config.documents:
        print(f"Error: {args.config} lists no documents.")
        return None
    return config


def _translate(config: RestGraphConfig) -> TranslationResult:
    return create_graphql_schema(config.load_documents(), config.translation_options())


def cmd_init(args: argparse.Namespace) -> int:
    """Create a restgraph.yaml."""
    config_path = Path(args.config)

    if config_path.exists() and not args.force:
        print(f"Error: {config_path} already exists. Use --force to overwrite.")
        return 1

    config = RestGraphConfig(
        project=args.name or Path.cwd().name,
        documents=args.documents or [],
    )
    config.save(config_path)
    print(f"Created {config_path}")

    print("Next steps:")
    print("  restgraph print-schema   # Check the generated schema")
    print("  restgraph serve          # Run the gateway")
    return 0


def cmd_print_schema(args: argparse.Namespace) -> int:
    """Print the translated schema."""
    config = _load(args)
    if not config:
        return 1

    try:
        result = _translate(config)
    except RestGraphError as e:
        print(f"Error translating documents: {e}")
        return 1

    sdl = print_schema(result.schema)
    if args.output:
        Path(args.output).write_text(sdl + "\n")
        print(f"Schema saved: {args.output}")
    else:
        print(sdl)
    return 0


def cmd_report(args: argparse.Namespace) -> int:
    """Print the translation report."""
    config = _load(args)
    if not config:
        return 1

    try:
        result = _translate(config)
    except RestGraphError as e:
        print(f"Error translating documents: {e}")
        return 1

    print(result.report.model_dump_json(indent=2))
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the gateway."""
    from ..gateway import Gateway, run

    config = _load(args)
    if not config:
        return 1

    try:
        gateway = Gateway(
            config.load_documents(),
            config.translation_options(),
            title=config.project,
            redis_url=config.gateway.redis_url,
        )
    except RestGraphError as e:
        print(f"Error translating documents: {e}")
        return 1

    run(gateway, host=args.host or config.gateway.host, port=args.port or config.gateway.port)
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="restgraph",
        description="restgraph - GraphQL schemas for OpenAPI described REST APIs"
    )
    parser.add_argument("--version", action="version", version="%(prog)s 0.1.0")
    parser.add_argument("--config", "-c", default="restgraph.yaml", help="Config file")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init
    init_parser = subparsers.add_parser("init", help="Create restgraph.yaml")
    init_parser.add_argument("documents", nargs="*", help="OpenAPI documents")
    init_parser.add_argument("--name", help="Project name")
    init_parser.add_argument("--force", "-f", action="store_true", help="Overwrite existing config")

    # print-schema
    schema_parser = subparsers.add_parser("print-schema", help="Print the GraphQL schema")
    schema_parser.add_argument("--output", "-o", help="Write the schema to a file")

    # report
    subparsers.add_parser("report", help="Print the translation report")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the gateway")
    serve_parser.add_argument("--host", help="Bind host")
    serve_parser.add_argument("--port", "-p", type=int, help="Bind port")

    return parser


def app(args: Optional[List[str]] = None) -> int:
    """Main CLI application."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    logging.basicConfig(
        level=parsed.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not parsed.command:
        parser.print_help()
        return 0

    commands = {
        "init": cmd_init,
        "print-schema": cmd_print_schema,
        "report": cmd_report,
        "serve": cmd_serve,
    }

    handler = commands.get(parsed.command)
    if handler:
        return handler(parsed)

    parser.print_help()
    return 1


def main() -> None:
    """Entry point for CLI."""
    sys.exit(app())


if __name__ == "__main__":
    main()
