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


"""The discovery pipeline.

Stages run strictly in order, each consuming the complete output of the
one before::

    fetch_metadata()   build_graph()   prune()        build_compile_time_deps()
    ┌─────────────┐   ┌────────────┐   ┌──────────┐   ┌─────────────────────┐
    │ cargo       │──→│ ingest     │──→│ keep     │──→│ cargo check; attach │
    │ metadata    │   │ packages   │   │ reachable│   │ dylibs + build      │
    └─────────────┘   └────────────┘   └──────────┘   │ scripts to nodes    │
                                                      └──────────┬──────────┘
                                                                 ▼
                                           lower_graph() → assemble_project()

Pruning happens before the pre-pass so cargo is never asked about
packages the opened package cannot reach.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable
from enum import Enum
from pathlib import Path
from typing import Any

from subspace.backends._run import DEFAULT_TIMEOUT_SECONDS, CommandResult, TimeoutExpired, run_command
from subspace.compile_deps import apply_artifacts, build_compile_time_deps
from subspace.errors import E, SubspaceError
from subspace.graph import CrateGraph, build_graph, prune
from subspace.logging import get_logger
from subspace.lowering import DEFAULT_EXCLUDE_DIRS, lower_graph
from subspace.paths import FilePath
from subspace.project import ProjectJson, assemble_project
from subspace.reporter import Reporter
from subspace.toolchain import Toolchain

log = get_logger(__name__)


class FeatureOption(str, Enum):
    """Which features ``cargo metadata`` resolves with."""

    DEFAULT = 'default'
    ALL = 'all'
    NO_DEFAULT = 'no-default'


class DiscoverRunner:
    """Builds the pruned, artifact-annotated crate graph for one package.

    Args:
        toolchain: The cargo/rustc pair to run.
        manifest_path: ``Cargo.toml`` of the package being opened.
        features: Feature selection for ``cargo metadata``.
        filter_platform: Pass ``--filter-platform <host triple>``.
        fetch: Run ``cargo fetch`` before reading metadata.
        compile_time_deps: Restrict the pre-pass to compile-time deps.
        reporter: Receives progress notifications.
        timeout: Seconds to allow each ``cargo fetch`` or ``cargo metadata`` run.
    """

    def __init__(
        self,
        toolchain: Toolchain,
        manifest_path: FilePath,
        *,
        features: FeatureOption = FeatureOption.DEFAULT,
        filter_platform: bool = True,
        fetch: bool = False,
        compile_time_deps: bool = False,
        reporter: Reporter | None = None,
        timeout: int | None = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the runner."""
        self.toolchain = toolchain
        self.manifest_path = manifest_path
        self.features = features
        self.filter_platform = filter_platform
        self.fetch = fetch
        self.compile_time_deps = compile_time_deps
        self.reporter = reporter
        self.timeout = timeout

    def with_all_features(self) -> DiscoverRunner:
        """Resolve with ``--all-features``."""
        self.features = FeatureOption.ALL
        return self

    def with_no_default_features(self) -> DiscoverRunner:
        """Resolve with ``--no-default-features``."""
        self.features = FeatureOption.NO_DEFAULT
        return self

    def with_default_features(self) -> DiscoverRunner:
        """Resolve with the default feature set."""
        self.features = FeatureOption.DEFAULT
        return self

    def _progress(self, message: str) -> None:
        log.debug('progress', message=message)
        if self.reporter is not None:
            self.reporter.progress(message)

    def metadata_command(self, host_triple: str | None = None) -> list[str]:
        """Return the ``cargo metadata`` invocation."""
        cmd = [
            self.toolchain.cargo,
            'metadata',
            '--format-version',
            '1',
            '--manifest-path',
            str(self.manifest_path),
        ]
        if host_triple:
            cmd.extend(['--filter-platform', host_triple])
        if self.features is FeatureOption.ALL:
            cmd.append('--all-features')
        elif self.features is FeatureOption.NO_DEFAULT:
            cmd.append('--no-default-features')
        return cmd

    def fetch_metadata(self) -> dict[str, Any]:
        """Run ``cargo metadata`` and decode its output.

        Raises:
            SubspaceError: ``SS-METADATA-FAILED`` if cargo fails,
                ``SS-METADATA-INVALID`` if its output is not JSON.
        """
        if self.fetch:
            self._progress('Fetching packages')
            fetch = self._run([self.toolchain.cargo, 'fetch', '--manifest-path', str(self.manifest_path)])
            if not fetch.ok:
                log.warning('cargo_fetch_failed', stderr=fetch.stderr[:500])

        self._progress('Fetching metadata')
        host_triple = self.toolchain.host_triple() if self.filter_platform else None
        result = self._run(self.metadata_command(host_triple))
        if not result.ok:
            raise SubspaceError(
                code=E.METADATA_FAILED,
                message=f'`cargo metadata` failed: {result.stderr.strip()}',
                hint="Run 'cargo metadata --format-version 1' in the package directory to see the error.",
            )
        try:
            metadata = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise SubspaceError(
                code=E.METADATA_INVALID,
                message=f'`cargo metadata` printed invalid JSON: {exc.msg}',
            ) from exc
        if not isinstance(metadata, dict):
            raise SubspaceError(
                code=E.METADATA_INVALID,
                message='`cargo metadata` output is not a JSON object',
            )
        return metadata

    def _run(self, cmd: list[str]) -> CommandResult:
        try:
            return run_command(cmd, cwd=self.manifest_path.parent, timeout=self.timeout)
        except TimeoutExpired as exc:
            raise SubspaceError(
                code=E.METADATA_FAILED,
                message=f'`cargo {cmd[1]}` timed out after {exc.timeout} seconds',
                hint='A slow registry fetch can take a while; retry or run `cargo fetch` by hand.',
            ) from exc
        except OSError as exc:
            raise SubspaceError(
                code=E.METADATA_FAILED,
                message=f'Failed to run `{cmd[0]}`: {exc}',
                hint='Install Rust via rustup or pass --cargo-home.',
            ) from exc

    async def run(self) -> CrateGraph:
        """Fetch metadata, build and prune the graph, and attach artifacts."""
        metadata = await asyncio.to_thread(self.fetch_metadata)

        graph = build_graph(metadata)

        self._progress('Pruning crate graph')
        prune(graph, self.manifest_path)

        self._progress('Building compile-time dependencies')
        artifacts = await build_compile_time_deps(
            self.toolchain,
            self.manifest_path,
            graph=graph,
            compile_time_deps=self.compile_time_deps,
            reporter=self.reporter,
        )
        if artifacts.error is not None:
            self._progress(f'{artifacts.error}; continuing with the artifacts built so far')
        apply_artifacts(graph, artifacts)
        return graph

    async def discover(self, *, exclude_dirs: Iterable[str] = DEFAULT_EXCLUDE_DIRS) -> ProjectJson:
        """Run the whole pipeline and assemble the descriptor."""
        graph = await self.run()
        self._progress('Lowering crate graph')
        crates = lower_graph(graph, exclude_dirs=exclude_dirs)
        return await asyncio.to_thread(
            assemble_project,
            crates,
            self.toolchain,
            cwd=Path(self.manifest_path.parent),
        )


__all__ = [
    'DiscoverRunner',
    'FeatureOption',
]
