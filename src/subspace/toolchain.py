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


"""Locating and querying the Rust toolchain.

By default ``cargo`` and ``rustc`` are taken from ``PATH``. With an
explicit cargo home (``--cargo-home`` or ``$CARGO_HOME``) the binaries
under ``<cargo_home>/bin`` are used instead.
"""

from __future__ import annotations

import os
from pathlib import Path

from subspace.backends._run import CommandResult, TimeoutExpired, run_command
from subspace.errors import E, SubspaceError
from subspace.logging import get_logger

log = get_logger('subspace.toolchain')

# Sysroot-relative location of the standard library sources.
SYSROOT_SRC = Path('lib') / 'rustlib' / 'src' / 'rust' / 'library'


class Toolchain:
    """The ``cargo``/``rustc`` pair used for discovery.

    Args:
        cargo_home: Directory containing ``bin/cargo`` and ``bin/rustc``.
    """

    def __init__(self, cargo_home: Path | None = None) -> None:
        """Initialize with an optional cargo home."""
        self.cargo_home = cargo_home

    def _binary(self, name: str) -> str:
        if self.cargo_home is None:
            return name
        return str(self.cargo_home / 'bin' / name)

    @property
    def cargo(self) -> str:
        """Path or name of the ``cargo`` executable."""
        return self._binary('cargo')

    @property
    def rustc(self) -> str:
        """Path or name of the ``rustc`` executable."""
        return self._binary('rustc')

    def _query(self, cmd: list[str], *, cwd: Path | None = None) -> CommandResult:
        try:
            result = run_command(cmd, cwd=cwd)
        except TimeoutExpired as exc:
            raise SubspaceError(
                code=E.TOOLCHAIN_FAILED,
                message=f'`{cmd[0]}` timed out after {exc.timeout} seconds',
            ) from exc
        except OSError as exc:
            raise SubspaceError(
                code=E.TOOLCHAIN_FAILED,
                message=f'Failed to run `{cmd[0]}`: {exc}',
                hint='Install Rust via rustup or pass --cargo-home.',
            ) from exc
        if not result.ok:
            raise SubspaceError(
                code=E.TOOLCHAIN_FAILED,
                message=f'`{result.command_str}` failed: {result.stderr.strip()}',
            )
        return result

    def host_triple(self) -> str | None:
        """Return the host target triple reported by ``rustc -vV``."""
        result = self._query([self.rustc, '-vV'])
        for line in result.stdout.splitlines():
            if line.startswith('host: '):
                return line.removeprefix('host: ').strip()
        log.warning('host_triple_missing', output=result.stdout[:200])
        return None

    def sysroot(self) -> Path:
        """Return the sysroot from ``rustc --print sysroot``."""
        result = self._query([self.rustc, '--print', 'sysroot'])
        return Path(result.stdout.strip())

    def sysroot_src(self, sysroot: Path) -> Path | None:
        """Return the standard library sources under ``sysroot``, if installed."""
        src = sysroot / SYSROOT_SRC
        return src if src.is_dir() else None

    def locate_workspace(self, manifest_path: str | os.PathLike[str]) -> str:
        """Return the workspace root manifest for ``manifest_path``."""
        result = self._query([
            self.cargo,
            'locate-project',
            '--workspace',
            '--message-format',
            'plain',
            '--manifest-path',
            os.fspath(manifest_path),
        ])
        return result.stdout.strip()

    def version(self) -> str:
        """Return ``rustc --version``."""
        return self._query([self.rustc, '--version']).stdout.strip()


__all__ = [
    'SYSROOT_SRC',
    'Toolchain',
]
