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


"""Compile-time dependency pre-pass.

rust-analyzer cannot expand proc-macros or see build-script output on
its own, so discovery runs ``cargo check --message-format json`` once and
correlates what cargo reports back onto the pruned graph by package id::

    cargo check (child process)          build_compile_time_deps()
    ┌────────────────────────────┐      ┌────────────────────────────────┐
    │ {"reason":                 │      │ read stdout line by line       │
    │  "compiler-artifact", ...} │─────→│ proc-macro + dylib file        │
    │ {"reason":                 │      │   → dylibs[package id]         │
    │  "build-script-executed"}  │─────→│ every build script             │
    │ {"reason": "..."}          │      │   → build_scripts[package id]  │
    └────────────────────────────┘      │ anything else → ignored        │
                                        └───────────────┬────────────────┘
                                                        │
                                        apply_artifacts(graph, artifacts)

``--keep-going`` stops one broken crate from hiding the artifacts of the
rest. A non-zero exit or a failed spawn is reported on the result but
never discards records already collected. A malformed or over-long line aborts.

stdout is consumed while cargo is still writing, so a long build cannot
fill the pipe buffer and deadlock.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field

from subspace.errors import E, SubspaceError
from subspace.graph import CrateGraph
from subspace.logging import get_logger
from subspace.messages import BuildScript, BuildScriptExecuted, CompilerArtifact, parse_message
from subspace.paths import FilePath
from subspace.reporter import Reporter
from subspace.toolchain import Toolchain

log = get_logger('subspace.compile_deps')

# Rendered diagnostics can make a single message line very long; the
# asyncio default of 64 KiB is not enough.
STREAM_LIMIT = 16 * 1024 * 1024


@dataclass
class CompileTimeArtifacts:
    """Everything the pre-pass reported, keyed by package id.

    Attributes:
        dylibs: Compiled proc-macro dylib per package.
        build_scripts: Executed build script outputs per package.
        return_code: cargo's exit status, ``None`` if it never started.
        error: Description of a spawn failure or non-zero exit.
    """

    dylibs: dict[str, FilePath] = field(default_factory=dict)
    build_scripts: dict[str, BuildScript] = field(default_factory=dict)
    return_code: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Whether cargo ran and exited successfully."""
        return self.error is None and self.return_code == 0


def check_command(
    toolchain: Toolchain,
    manifest_path: str | os.PathLike[str],
    *,
    compile_time_deps: bool = False,
) -> list[str]:
    """Return the ``cargo check`` invocation for the pre-pass.

    Args:
        toolchain: Toolchain providing the cargo binary.
        manifest_path: Manifest of the package being discovered.
        compile_time_deps: Only build proc-macros and run build scripts
            (needs a nightly cargo).
    """
    cmd = [
        toolchain.cargo,
        'check',
        '--quiet',
        '--message-format',
        'json',
        '--keep-going',
        '--all-targets',
        '--manifest-path',
        os.fspath(manifest_path),
    ]
    if compile_time_deps:
        cmd.extend(['-Zunstable-options', '--compile-time-deps'])
    return cmd


def _record_artifact(
    message: CompilerArtifact,
    artifacts: CompileTimeArtifacts,
    reporter: Reporter | None,
) -> None:
    dylib = message.find_dylib()
    if dylib is None or not message.is_proc_macro:
        return
    artifacts.dylibs[message.package_id] = FilePath.from_path(dylib)
    log.debug('proc_macro_built', target=message.target_name, dylib=dylib)
    if reporter is not None:
        reporter.progress(f'proc-macro {message.target_name} built')


def _record_build_script(
    message: BuildScriptExecuted,
    artifacts: CompileTimeArtifacts,
    graph: CrateGraph | None,
    reporter: Reporter | None,
) -> None:
    artifacts.build_scripts[message.package_id] = message.build_script
    node = graph.get(message.package_id) if graph is not None else None
    log.debug('build_script_run', package_id=message.package_id, out_dir=message.build_script.out_dir)
    if reporter is not None:
        reporter.progress(f'build script {node.name} run' if node is not None else 'build script run')


async def build_compile_time_deps(
    toolchain: Toolchain,
    manifest_path: str | os.PathLike[str],
    *,
    graph: CrateGraph | None = None,
    compile_time_deps: bool = False,
    reporter: Reporter | None = None,
) -> CompileTimeArtifacts:
    """Run the ``cargo check`` pre-pass and collect its artifacts.

    Args:
        toolchain: Toolchain providing the cargo binary.
        manifest_path: Manifest of the package being discovered.
        graph: Used only to name packages in progress messages.
        compile_time_deps: See :func:`check_command`.
        reporter: Receives a progress notification per artifact.

    Returns:
        The collected artifacts, with ``error`` set if cargo could not
        be started or exited unsuccessfully.

    Raises:
        SubspaceError: ``SS-MESSAGE-MALFORMED`` if cargo prints a line
            that is not a valid message or exceeds ``STREAM_LIMIT``.
    """
    cmd = check_command(toolchain, manifest_path, compile_time_deps=compile_time_deps)
    artifacts = CompileTimeArtifacts()
    log.debug('compile_time_deps_start', cmd=' '.join(cmd))

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
            limit=STREAM_LIMIT,
        )
    except OSError as exc:
        artifacts.error = f'Failed to spawn `{cmd[0]}`: {exc}'
        log.error('compile_time_deps_spawn_failed', cmd=cmd[0], error=str(exc))
        return artifacts

    try:
        if proc.stdout is not None:
            async for raw in proc.stdout:
                try:
                    line = raw.decode('utf-8').strip()
                except UnicodeDecodeError as exc:
                    raise SubspaceError(
                        code=E.MESSAGE_MALFORMED,
                        message=f'cargo emitted non-UTF-8 output: {exc}',
                    ) from exc
                if not line:
                    continue
                message = parse_message(line)
                if isinstance(message, CompilerArtifact):
                    _record_artifact(message, artifacts, reporter)
                elif isinstance(message, BuildScriptExecuted):
                    _record_build_script(message, artifacts, graph, reporter)
        artifacts.return_code = await proc.wait()
    except (ValueError, asyncio.LimitOverrunError) as exc:
        # StreamReader raises ValueError for a line over STREAM_LIMIT.
        raise SubspaceError(
            code=E.MESSAGE_MALFORMED,
            message=f'cargo emitted a message line longer than {STREAM_LIMIT} bytes: {exc}',
            hint='Your cargo may be incompatible with cargo-subspace; upgrade the toolchain.',
        ) from exc
    finally:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()

    if artifacts.return_code != 0:
        artifacts.error = f'`cargo check` exited with status {artifacts.return_code}'
        log.error(
            'compile_time_deps_failed',
            return_code=artifacts.return_code,
            dylibs=len(artifacts.dylibs),
            build_scripts=len(artifacts.build_scripts),
        )
    else:
        log.info(
            'compile_time_deps_built',
            dylibs=len(artifacts.dylibs),
            build_scripts=len(artifacts.build_scripts),
        )
    return artifacts


def apply_artifacts(graph: CrateGraph, artifacts: CompileTimeArtifacts) -> int:
    """Attach collected artifacts to the matching graph nodes.

    Records for package ids not in the graph are skipped.

    Returns:
        The number of records attached.
    """
    applied = 0
    for package_id, dylib in artifacts.dylibs.items():
        node = graph.get(package_id)
        if node is not None:
            node.proc_macro_dylib = dylib
            applied += 1
    for package_id, script in artifacts.build_scripts.items():
        node = graph.get(package_id)
        if node is not None:
            node.build_script = script
            applied += 1
    log.debug('applied_artifacts', applied=applied)
    return applied


__all__ = [
    'CompileTimeArtifacts',
    'STREAM_LIMIT',
    'apply_artifacts',
    'build_compile_time_deps',
    'check_command',
]
