# Copyright 2026 Google LLC
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
#
# SPDX-License-Identifier: Apache-2.0


"""CLI entry point for cargo-subspace.

Subcommands::

    cargo-subspace discover ARG   Print the rust-project.json for a package
    cargo-subspace check PATH     Run `cargo check` for the package owning PATH
    cargo-subspace clippy PATH    Run `cargo clippy` for the package owning PATH
    cargo-subspace version        Show the version, rustc and sysroot
    cargo-subspace explain CODE   Explain an error code

rust-analyzer configuration::

    "rust-analyzer.workspace.discoverConfig": {
        "command": ["cargo-subspace", "discover", "{arg}"],
        "progressLabel": "cargo-subspace",
        "filesToWatch": ["Cargo.toml"]
    }

``{arg}`` is a JSON object, either ``{"path": "<any file>"}`` (the
manifest is found by walking up from the file) or
``{"buildfile": "<Cargo.toml>"}``.

Logs go to ``~/.local/state/cargo-subspace/cargo-subspace.log`` unless
``--log-to-stderr`` is given; stdout carries only the discover protocol.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

from rich_argparse import RichHelpFormatter

from subspace import __version__
from subspace.backends._run import run_command
from subspace.config import SubspaceConfig, find_config, load_config
from subspace.discover import DiscoverRunner, FeatureOption
from subspace.errors import E, SubspaceError, explain, render_error
from subspace.logging import configure_logging, default_log_file, get_logger
from subspace.paths import FilePath, find_manifest
from subspace.project import write_descriptor
from subspace.reporter import Reporter
from subspace.toolchain import Toolchain

logger = get_logger(__name__)


def parse_discover_argument(text: str) -> FilePath:
    """Resolve the ``discover`` argument to a manifest path.

    Raises:
        SubspaceError: ``SS-ARGUMENT-INVALID`` if ``text`` is not a JSON
            object with exactly one of ``path`` or ``buildfile``.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None
    if not isinstance(data, dict) or len(data) != 1 or not set(data) <= {'path', 'buildfile'}:
        raise SubspaceError(
            code=E.ARGUMENT_INVALID,
            message=f'Expected a JSON object with a key of `path` or `buildfile`. Got: {text}',
            hint='rust-analyzer passes this as {arg} in discoverConfig.',
        )
    ((key, value),) = data.items()
    if not isinstance(value, str):
        raise SubspaceError(
            code=E.ARGUMENT_INVALID,
            message=f'`{key}` must be a string, got {type(value).__name__}',
        )
    if key == 'path':
        return find_manifest(value)
    return FilePath.from_path(os.path.abspath(value))


def _toolchain(args: argparse.Namespace, config: SubspaceConfig | None = None) -> Toolchain:
    cargo_home = args.cargo_home
    if cargo_home is None and config is not None:
        cargo_home = config.cargo_home
    if cargo_home is None and os.environ.get('CARGO_HOME'):
        cargo_home = Path(os.environ['CARGO_HOME'])
    return Toolchain(cargo_home)


def _load_config_for(args: argparse.Namespace, manifest: FilePath) -> SubspaceConfig:
    config_path = args.config if args.config is not None else find_config(manifest.parent)
    return load_config(config_path)


def _feature_option(args: argparse.Namespace, config: SubspaceConfig) -> FeatureOption:
    if args.all_features:
        return FeatureOption.ALL
    if args.no_default_features:
        return FeatureOption.NO_DEFAULT
    return FeatureOption(config.features)


async def _discover(args: argparse.Namespace, reporter: Reporter) -> int:
    reporter.progress('Looking for manifest path')
    manifest = parse_discover_argument(args.arg)
    config = _load_config_for(args, manifest)
    toolchain = _toolchain(args, config)

    runner = DiscoverRunner(
        toolchain,
        manifest,
        features=_feature_option(args, config),
        filter_platform=config.filter_platform,
        fetch=config.fetch,
        compile_time_deps=config.compile_time_deps,
        reporter=reporter,
    )
    project = await runner.discover(exclude_dirs=config.exclude_dirs)
    buildfile = await asyncio.to_thread(toolchain.locate_workspace, manifest)
    data = project.to_dict()

    if args.output is not None:
        await write_descriptor(args.output, data)
    reporter.finished(buildfile, data)
    logger.info('discover_finished', manifest=str(manifest), crates=len(project.crates))
    return 0


def _cmd_discover(args: argparse.Namespace) -> int:
    reporter = Reporter()
    try:
        return asyncio.run(_discover(args, reporter))
    except SubspaceError as exc:
        logger.error('discover_failed', code=exc.code.value, error=exc.message)
        reporter.error(exc.message)
        return 1
    except Exception as exc:
        logger.exception('discover_crashed', error=str(exc))
        reporter.error(str(exc))
        return 1


def _cmd_check(args: argparse.Namespace) -> int:
    manifest = find_manifest(args.path)
    config = _load_config_for(args, manifest)
    toolchain = _toolchain(args, config)

    if sys.stdout.isatty():
        message_format = '--message-format=human'
    elif args.disable_color_diagnostics:
        message_format = '--message-format=json'
    else:
        message_format = '--message-format=json-diagnostic-rendered-ansi'

    cmd = [
        toolchain.cargo,
        args.command,
        message_format,
        '--keep-going',
        '--all-targets',
        '--manifest-path',
        str(manifest),
        *args.passthrough,
    ]
    try:
        result = run_command(cmd, capture=False, timeout=None)
    except OSError as exc:
        raise SubspaceError(
            code=E.CHECK_FAILED,
            message=f'Failed to run `{cmd[0]}`: {exc}',
        ) from exc
    if not result.ok:
        raise SubspaceError(
            code=E.CHECK_FAILED,
            message=f'Failed to run `cargo {args.command}` (exit status {result.return_code})',
        )
    return 0


def _cmd_version(args: argparse.Namespace) -> int:
    print(f'cargo-subspace {__version__}')  # noqa: T201 - CLI output
    toolchain = _toolchain(args)
    try:
        rustc = toolchain.version()
        sysroot = toolchain.sysroot()
    except SubspaceError as exc:
        logger.warning('toolchain_unavailable', error=exc.message)
    else:
        print(f'rustc: {rustc}')  # noqa: T201 - CLI output
        print(f'sysroot: {sysroot}')  # noqa: T201 - CLI output
    return 0


def _cmd_explain(args: argparse.Namespace) -> int:
    text = explain(args.code)
    if text is None:
        print(f'Unknown error code: {args.code}', file=sys.stderr)  # noqa: T201 - CLI output
        return 1
    print(text)  # noqa: T201 - CLI output
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns:
        Configured :class:`argparse.ArgumentParser`.
    """
    RichHelpFormatter.styles['argparse.groups'] = 'bold yellow'
    parser = argparse.ArgumentParser(
        prog='cargo-subspace',
        description='rust-analyzer project discovery for large cargo workspaces.',
        formatter_class=RichHelpFormatter,
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}',
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging.')
    parser.add_argument('--quiet', '-q', action='store_true', help='Only log errors.')
    parser.add_argument(
        '--log-to-stderr',
        action='store_true',
        help='Log to stderr instead of the log file.',
    )
    parser.add_argument('--json-log', action='store_true', help='Write logs as JSON lines.')
    parser.add_argument(
        '--cargo-home',
        type=Path,
        default=None,
        help='Directory containing bin/cargo and bin/rustc (default: $CARGO_HOME, then PATH).',
    )
    parser.add_argument(
        '--log-location',
        type=Path,
        default=None,
        help='Directory for the log file (default: ~/.local/state/cargo-subspace).',
    )
    parser.add_argument(
        '--config',
        type=Path,
        default=None,
        help='Path to subspace.toml (default: nearest one above the manifest).',
    )

    subparsers = parser.add_subparsers(dest='command')

    subparsers.add_parser('version', help='Print the version, rustc version and sysroot.')

    discover_parser = subparsers.add_parser(
        'discover',
        help='Print the rust-project.json for a package.',
    )
    discover_parser.add_argument(
        'arg',
        help='JSON object: {"path": "<file>"} or {"buildfile": "<Cargo.toml>"}.',
    )
    features = discover_parser.add_mutually_exclusive_group()
    features.add_argument('--all-features', action='store_true', help='Resolve with all features enabled.')
    features.add_argument(
        '--no-default-features',
        action='store_true',
        help='Resolve without default features.',
    )
    discover_parser.add_argument(
        '--output',
        '-o',
        type=Path,
        default=None,
        help='Also write the descriptor to this file.',
    )

    for name in ('check', 'clippy'):
        check_parser = subparsers.add_parser(
            name,
            help=f'Run `cargo {name}` for the package owning PATH (extra args after --).',
        )
        check_parser.add_argument('path', help='Any file inside the package.')
        check_parser.add_argument(
            '--disable-color-diagnostics',
            action='store_true',
            help="Don't emit ANSI color codes in diagnostics.",
        )

    explain_parser = subparsers.add_parser('explain', help='Explain an error code.')
    explain_parser.add_argument('code', help='Error code, e.g. SS-MEMBER-NOT-FOUND.')

    return parser


def _split_passthrough(argv: list[str]) -> tuple[list[str], list[str]]:
    """Split ``argv`` at the first ``--``."""
    if '--' in argv:
        index = argv.index('--')
        return argv[:index], argv[index + 1 :]
    return argv, []


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    own_args, passthrough = _split_passthrough(list(sys.argv[1:] if argv is None else argv))
    parser = build_parser()
    args = parser.parse_args(own_args)
    args.passthrough = passthrough

    log_file = None
    log_dir_error = None
    if not args.log_to_stderr:
        try:
            log_file = default_log_file(args.log_location)
        except OSError as exc:
            log_dir_error = str(exc)

    configure_logging(
        verbose=args.verbose,
        quiet=args.quiet,
        json_log=args.json_log,
        log_file=log_file,
    )
    if log_dir_error is not None:
        logger.warning('log_file_unavailable', error=log_dir_error, fallback='stderr')
    logger.debug('cli_start', version=__version__, argv=own_args, passthrough=passthrough)

    try:
        command = args.command
        if command == 'discover':
            return _cmd_discover(args)
        if command in ('check', 'clippy'):
            return _cmd_check(args)
        if command == 'version':
            return _cmd_version(args)
        if command == 'explain':
            return _cmd_explain(args)

        parser.print_help()  # noqa: T201 - CLI output
        print(  # noqa: T201 - CLI output
            f'\n{parser.prog}: error: please provide a command',
            file=sys.stderr,
        )
        return 2

    except SubspaceError as exc:
        logger.error('command_failed', code=exc.code.value, error=exc.message)
        render_error(exc)
        return 1
    except KeyboardInterrupt:
        logger.info('interrupted')
        return 130


def _main() -> None:
    """Wrapper for pyproject.toml [project.scripts] entry point."""
    sys.exit(main())


__all__ = [
    'build_parser',
    'main',
    'parse_discover_argument',
]
