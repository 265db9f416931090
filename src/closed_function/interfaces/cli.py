#!/usr/bin/env python3
"""
Closed Function CLI - Build a source tree with closed blocks mounted
"""

import argparse
import asyncio
import sys
from pathlib import Path

from closed_function import __version__
from closed_function.domain.errors import ClosedBlockError, ConfigurationError
from closed_function.domain.value_objects import BuildMode
from closed_function.infrastructure.config.config import get_settings
from closed_function.infrastructure.config.project_options import load_project_options
from closed_function.infrastructure.logging.logging_config import configure_logging, get_logger
from closed_function.interfaces.hooks import CompilationOptions
from closed_function.interfaces.plugin import ClosedFunctionPlugin
from closed_function.interfaces.source_tree import SourceTreeBuild


def parse_args(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="closed-function",
        description="Closed Function CLI - Isolate closed function bodies into bundles"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Build a source tree")
    build.add_argument(
        "source",
        type=str,
        help="Source directory containing Python modules"
    )
    build.add_argument(
        "--out", "-o",
        type=str,
        required=True,
        help="Output directory for the built tree"
    )
    build.add_argument(
        "--mode", "-m",
        choices=[mode.value for mode in BuildMode],
        default=None,
        help="Build mode (default: from pyproject.toml, else none)"
    )
    build.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    return parser.parse_args(argv)


async def build(args) -> int:
    """Run the build command and return the exit code"""
    settings = get_settings()
    configure_logging(
        log_level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
    )
    logger = get_logger()

    source = Path(args.source)
    if not source.is_dir():
        print(f"Error: Source directory not found: {args.source}", file=sys.stderr)
        return 2

    try:
        project = load_project_options(source)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    mode = BuildMode(args.mode) if args.mode else project.mode
    python_paths = [str(source.resolve()), *project.python_paths]
    options = CompilationOptions(mode=mode, python_paths=tuple(python_paths))

    runner = SourceTreeBuild(
        source_root=source,
        output_root=Path(args.out),
        options=options,
        plugins=[ClosedFunctionPlugin(settings=settings)],
    )
    report = await runner.run()

    for error in report.errors:
        print(f"Error: {error}", file=sys.stderr)

    logger.debug("CLI finished", succeeded=report.succeeded)
    print(f"Built {len(report.modules)} modules into {args.out} ({report.duration_ms} ms)")
    return 0 if report.succeeded else 1


def main(argv=None) -> int:
    """Main CLI function"""
    args = parse_args(argv)
    if args.command == "build":
        return asyncio.run(build(args))
    return 2


def entry_point():
    """CLI entry point"""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(130)
    except ClosedBlockError as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    entry_point()
