"""Command-line interface for libpacker.

Sub-commands mirror the build steps: ``clean`` removes the output
directory, ``copy`` writes the package essentials, ``bundle`` builds the
enabled targets and ``build`` runs all of them.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from libpacker.build.builder import Builder, BuildReport
from libpacker.build.engine import CommandBuildEngine
from libpacker.build.utils import get_application_version
from libpacker.core.config_manager import ConfigManager
from libpacker.core.logging_manager import LoggingManager
from libpacker.utils.exceptions import CopyError, PackerError


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog='libpacker',
        description='Build a library project into its distributable artifacts'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {get_application_version()}')
    parser.add_argument('--project-dir', type=str, default='.', help='Project root directory')
    parser.add_argument('--config', type=str, default=None, help='Path to configuration file')
    parser.add_argument(
        '--log-level',
        type=str,
        default=None,
        choices=['debug', 'info', 'warning', 'error', 'critical'],
        help='Override the configured log level'
    )

    subparsers = parser.add_subparsers(dest='command', required=True, help='Command to execute')
    subparsers.add_parser('build', help='Clean, copy essentials and bundle all targets')
    subparsers.add_parser('bundle', help='Bundle the enabled targets')
    subparsers.add_parser('copy', help='Copy package essentials to the output directory')
    subparsers.add_parser('clean', help='Remove the output directory')

    return parser.parse_args(argv)


def report_outcomes(report: BuildReport) -> int:
    """Print a summary of a bundling run.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    for outcome in report.outcomes:
        if outcome.success:
            print(f'[{outcome.label}] built {outcome.artifact_path}')
        else:
            print(f'[{outcome.label}] failed: {outcome.error}', file=sys.stderr)
    if report.aborted:
        print('[build:bundle] failure, remaining targets were not built', file=sys.stderr)
    return 0 if report.succeeded else 1


async def main_async(argv: Optional[List[str]] = None) -> int:
    args = parse_arguments(argv)
    project_dir = Path(args.project_dir).resolve()

    config_manager = ConfigManager(project_dir=project_dir, config_path=args.config)
    try:
        await config_manager.initialize()
    except PackerError as e:
        cause = e.__cause__ or e
        print(f'Error loading configuration: {cause}', file=sys.stderr)
        return 1

    logging_manager = LoggingManager(config_manager, level_override=args.log_level)
    await logging_manager.initialize()

    config = config_manager.config
    engine = CommandBuildEngine.from_config(
        config.engine, project_dir, config.tmp, logger=logging_manager.get_logger('build_engine')
    )
    builder = Builder(
        config,
        config_manager.package,
        engine,
        project_dir=project_dir,
        logger=logging_manager.get_logger('builder'),
    )

    try:
        if args.command == 'clean':
            builder.clean()
            return 0
        if args.command == 'copy':
            await builder.copy_essentials()
            return 0
        if args.command == 'bundle':
            return report_outcomes(await builder.bundle())
        return report_outcomes(await builder.build())
    except CopyError as e:
        print(f'[build:copy:essentials] failure: {e}', file=sys.stderr)
        return 1
    finally:
        await logging_manager.shutdown()
        await config_manager.shutdown()


def main(argv: Optional[List[str]] = None) -> int:
    try:
        return asyncio.run(main_async(argv))
    except KeyboardInterrupt:
        print('\nStopped by user.')
        return 130


if __name__ == '__main__':
    sys.exit(main())
