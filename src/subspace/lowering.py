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


"""Lowering the crate graph into rust-project.json crates.

cargo thinks in packages; rust-analyzer thinks in compilation units.
Every (package, target) pair becomes one :class:`~subspace.project.Crate`
and dependency edges become indices into the flat crate list.

Two Passes::

    Pass 1 (append):                         Pass 2 (link):
    ┌────────────────────────────────┐      ┌─────────────────────────────────┐
    │ for package, for target:       │      │ for every crate:                │
    │   crates.append(unit)          │      │   for dep of its package:       │
    │   lib target → lib_index[id]   │─────→│     lib_index[dep.id] → index   │
    │   bin/test → deps on own libs  │      │     (missing → dropped)         │
    └────────────────────────────────┘      │   sort deps by index            │
                                            └─────────────────────────────────┘

Example: package ``app`` (lib + bin) depending on ``serde``::

    index  crate          deps
    0      app (lib)      [{crate: 2, name: serde}]
    1      app (bin)      [{crate: 0, name: app}, {crate: 2, name: serde}]
    2      serde (lib)    []

A package with several library targets maps to the last one. Sorting
by index keeps the output stable across runs regardless of how the
graph was built.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import PurePath

from subspace.graph import CrateGraph
from subspace.logging import get_logger
from subspace.project import BuildInfo, Crate, CrateSource, Dep
from subspace.workspace import PackageNode, TargetKind

log = get_logger(__name__)

DEFAULT_EXCLUDE_DIRS: tuple[str, ...] = ('.git', 'target')


def crate_name(name: str) -> str:
    """Return ``name`` as a Rust identifier (``my-crate`` → ``my_crate``)."""
    return name.replace('-', '_')


def feature_cfgs(features: Iterable[str]) -> list[str]:
    """Return one ``feature="<name>"`` cfg per enabled feature."""
    return [f'feature="{feature}"' for feature in features]


def _build_script_data(package: PackageNode) -> tuple[dict[str, str], list[str]]:
    """Return the env map and include dirs shared by a package's crates."""
    include_dirs = [str(package.manifest_path.parent)]
    env: dict[str, str] = {}
    script = package.build_script
    if script is not None:
        env['OUT_DIR'] = script.out_dir
        env.update(script.env)
        out_parent = str(PurePath(script.out_dir).parent)
        if out_parent not in include_dirs:
            include_dirs.append(out_parent)
    return env, include_dirs


def _lower_package(
    package: PackageNode,
    crates: list[Crate],
    owners: list[str],
    lib_index: dict[str, int],
    exclude_dirs: tuple[str, ...],
) -> None:
    """Append one crate per target of ``package``."""
    start = len(crates)
    own_libs = [
        Dep(crate_index=start + offset, name=crate_name(target.name))
        for offset, target in enumerate(package.targets)
        if target.target_kind is TargetKind.LIB
    ]
    env, include_dirs = _build_script_data(package)
    cfg = feature_cfgs(package.features)
    manifest_dir = str(package.manifest_path.parent)

    for target in package.targets:
        target_kind = target.target_kind
        if target_kind is TargetKind.LIB:
            lib_index[package.id] = len(crates)
            deps: list[Dep] = []
        else:
            # Binaries and tests see their own package's library.
            deps = list(own_libs)

        crates.append(
            Crate(
                display_name=crate_name(package.name),
                root_module=target.root_module,
                edition=target.edition,
                version=package.version,
                deps=deps,
                is_workspace_member=package.is_workspace_member,
                source=CrateSource(include_dirs=list(include_dirs), exclude_dirs=list(exclude_dirs)),
                cfg=list(cfg),
                env=dict(env),
                is_proc_macro=target.is_proc_macro,
                proc_macro_dylib_path=package.proc_macro_dylib if target.is_proc_macro else None,
                repository=package.repository,
                build=BuildInfo(
                    label=target.name,
                    build_file=str(package.manifest_path),
                    target_kind=target_kind,
                ),
                proc_macro_cwd=manifest_dir,
            )
        )
        owners.append(package.id)


def lower_graph(
    graph: CrateGraph,
    *,
    exclude_dirs: Iterable[str] = DEFAULT_EXCLUDE_DIRS,
) -> list[Crate]:
    """Expand every package target into a flat, index-linked crate list.

    The proc-macro dylib path is set only on a package's proc-macro crates,
    never on its binaries or tests, which cannot be loaded as macros.

    Args:
        graph: The pruned graph, with compile-time artifacts applied.
        exclude_dirs: Directory names excluded from every crate's sources.

    Returns:
        The crates; each crate's position is the index its dependents use.
    """
    excluded = tuple(exclude_dirs)
    crates: list[Crate] = []
    owners: list[str] = []
    lib_index: dict[str, int] = {}

    for package in graph.packages.values():
        _lower_package(package, crates, owners, lib_index, excluded)

    dropped = 0
    for index, (crate, package_id) in enumerate(zip(crates, owners)):
        for dep in graph.packages[package_id].dependencies:
            dep_index = lib_index.get(dep.id)
            if dep_index is None or dep_index == index:
                dropped += 1
                log.debug('dependency_dropped', package_id=package_id, dependency=dep.id, name=dep.name)
                continue
            crate.deps.append(Dep(crate_index=dep_index, name=dep.name))
        crate.deps.sort(key=lambda d: d.crate_index)

    log.info('lowered_graph', packages=len(graph), crates=len(crates), dropped_edges=dropped)
    return crates


__all__ = [
    'DEFAULT_EXCLUDE_DIRS',
    'crate_name',
    'feature_cfgs',
    'lower_graph',
]
