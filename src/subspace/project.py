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


"""``rust-project.json`` types and assembly.

These mirror the format rust-analyzer documents for non-cargo
projects. Each type has a ``to_dict()`` that follows rust-analyzer's
serialization: optional fields are omitted when unset, and ``cfg`` and
``env`` are omitted when empty.

A descriptor looks like::

    {
      "sysroot": "/home/me/.rustup/toolchains/stable-x86_64-unknown-linux-gnu",
      "sysroot_src": ".../lib/rustlib/src/rust/library",
      "crates": [
        {"display_name": "my_app", "root_module": ".../src/main.rs",
         "deps": [{"crate": 1, "name": "my_app"}], ...},
        ...
      ],
      "runnables": [...]
    }
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiofiles

from subspace.logging import get_logger
from subspace.paths import FilePath
from subspace.toolchain import Toolchain
from subspace.workspace import TargetKind

log = get_logger(__name__)


@dataclass(frozen=True)
class Dep:
    """A dependency of a crate.

    Attributes:
        crate_index: Index of the dependency in the ``crates`` array.
        name: Name used in the implicit ``extern crate``.
    """

    crate_index: int
    name: str

    def to_dict(self) -> dict[str, Any]:
        """Serialize to rust-project.json form."""
        return {'crate': self.crate_index, 'name': self.name}


@dataclass(frozen=True)
class CrateSource:
    """The set of directories that make up a crate's sources."""

    include_dirs: list[str]
    exclude_dirs: list[str]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to rust-project.json form."""
        return {'include_dirs': list(self.include_dirs), 'exclude_dirs': list(self.exclude_dirs)}


@dataclass(frozen=True)
class BuildInfo:
    """Build-system data about a crate.

    Attributes:
        label: Build-system identifier of the target (the target name).
        build_file: The manifest that defines the target.
        target_kind: Used by rust-analyzer to choose runnables.
    """

    label: str
    build_file: str
    target_kind: TargetKind

    def to_dict(self) -> dict[str, Any]:
        """Serialize to rust-project.json form."""
        return {
            'label': self.label,
            'build_file': self.build_file,
            'target_kind': self.target_kind.value,
        }


@dataclass
class Crate:
    """One compilation unit of the descriptor."""

    display_name: str | None
    root_module: FilePath
    edition: str
    version: str | None
    deps: list[Dep] = field(default_factory=list)
    is_workspace_member: bool = False
    source: CrateSource | None = None
    cfg: list[str] = field(default_factory=list)
    target: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    is_proc_macro: bool = False
    proc_macro_dylib_path: FilePath | None = None
    repository: str | None = None
    build: BuildInfo | None = None
    proc_macro_cwd: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to rust-project.json form."""
        data: dict[str, Any] = {
            'display_name': self.display_name,
            'root_module': str(self.root_module),
            'edition': self.edition,
            'version': self.version,
            'deps': [dep.to_dict() for dep in self.deps],
            'is_workspace_member': self.is_workspace_member,
        }
        if self.source is not None:
            data['source'] = self.source.to_dict()
        if self.cfg:
            data['cfg'] = list(self.cfg)
        if self.target is not None:
            data['target'] = self.target
        if self.env:
            data['env'] = dict(self.env)
        data['is_proc_macro'] = self.is_proc_macro
        if self.proc_macro_dylib_path is not None:
            data['proc_macro_dylib_path'] = str(self.proc_macro_dylib_path)
        if self.repository is not None:
            data['repository'] = self.repository
        if self.build is not None:
            data['build'] = self.build.to_dict()
        data['proc_macro_cwd'] = self.proc_macro_cwd
        return data


@dataclass(frozen=True)
class Runnable:
    """A command rust-analyzer can run for the project.

    ``args`` may contain ``{label}`` and ``{test_id}`` placeholders,
    which rust-analyzer fills in.
    """

    program: str
    args: list[str]
    cwd: str
    kind: str

    def to_dict(self) -> dict[str, Any]:
        """Serialize to rust-project.json form."""
        return {'program': self.program, 'args': list(self.args), 'cwd': self.cwd, 'kind': self.kind}


@dataclass
class ProjectJson:
    """The complete descriptor handed to rust-analyzer."""

    sysroot: str
    crates: list[Crate]
    sysroot_src: str | None = None
    runnables: list[Runnable] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to rust-project.json form."""
        data: dict[str, Any] = {'sysroot': self.sysroot}
        if self.sysroot_src is not None:
            data['sysroot_src'] = self.sysroot_src
        data['crates'] = [c.to_dict() for c in self.crates]
        data['runnables'] = [r.to_dict() for r in self.runnables]
        return data


def default_runnables(program: str, cwd: str | os.PathLike[str]) -> list[Runnable]:
    """Return the cargo runnables offered for every project."""
    cwd_str = os.fspath(cwd)
    return [
        Runnable(
            program=program,
            args=['check', '--message-format=json', '--keep-going', '--all-targets'],
            cwd=cwd_str,
            kind='flycheck',
        ),
        Runnable(
            program=program,
            args=['test', '--', '{test_id}', '--exact', '--nocapture'],
            cwd=cwd_str,
            kind='testOne',
        ),
    ]


def assemble_project(
    crates: list[Crate],
    toolchain: Toolchain,
    *,
    cwd: str | os.PathLike[str],
) -> ProjectJson:
    """Combine lowered crates with the toolchain's sysroot.

    Args:
        crates: Output of :func:`subspace.lowering.lower_graph`.
        toolchain: Queried for the sysroot.
        cwd: Working directory for runnables (the package directory).
    """
    sysroot = toolchain.sysroot()
    sysroot_src = toolchain.sysroot_src(sysroot)
    if sysroot_src is None:
        log.warning('sysroot_src_missing', sysroot=str(sysroot), hint='rustup component add rust-src')
    return ProjectJson(
        sysroot=str(sysroot),
        sysroot_src=str(sysroot_src) if sysroot_src is not None else None,
        crates=crates,
        runnables=default_runnables(toolchain.cargo, cwd),
    )


async def write_descriptor(path: Path, data: dict[str, Any]) -> None:
    """Write a descriptor to ``path`` as indented JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(path, mode='w', encoding='utf-8') as f:
        await f.write(json.dumps(data, indent=2) + '\n')
    log.info('descriptor_written', path=str(path))


__all__ = [
    'BuildInfo',
    'Crate',
    'CrateSource',
    'Dep',
    'ProjectJson',
    'Runnable',
    'assemble_project',
    'default_runnables',
    'write_descriptor',
]
