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


"""The crate graph and reachability pruning.

A :class:`CrateGraph` holds every package from ``cargo metadata``. Before
anything expensive happens (the ``cargo check`` pre-pass), the graph is
pruned down to the package being opened plus its transitive
dependencies.

Edge Direction::

    Edges point from a dependent to its dependency:

        my-app ──→ my-core ──→ serde
           │                     ▲
           └─────────────────────┘

    packages["my-app"].dependencies = [my-core, serde]

Pruning::

    prune(graph, "/ws/app/Cargo.toml")
    ┌──────────────────────┐    ┌──────────────────────┐    ┌──────────────┐
    │ find_member():       │    │ reachable():         │    │ drop every   │
    │ manifest path match  │───→│ explicit-stack DFS   │───→│ unvisited id │
    │ (exact, absolute)    │    │ with a visited set   │    │              │
    └──────────────────────┘    └──────────────────────┘    └──────────────┘

The traversal never recurses, so arbitrarily deep graphs are safe, and
the visited set makes malformed cyclic input terminate.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from subspace.errors import E, SubspaceError
from subspace.logging import get_logger
from subspace.workspace import PackageNode, ingest_metadata

logger = get_logger(__name__)


@dataclass
class CrateGraph:
    """Resolved packages keyed by package id.

    Attributes:
        packages: Mapping from package id to :class:`PackageNode`.
    """

    packages: dict[str, PackageNode] = field(default_factory=dict)

    @property
    def ids(self) -> list[str]:
        """Package ids in iteration order."""
        return list(self.packages)

    def get(self, package_id: str) -> PackageNode | None:
        """Return the node for ``package_id``, if present."""
        return self.packages.get(package_id)

    def __contains__(self, package_id: object) -> bool:
        return package_id in self.packages

    def __len__(self) -> int:
        """Return the number of packages in the graph."""
        return len(self.packages)


def build_graph(metadata: dict[str, Any]) -> CrateGraph:
    """Build a :class:`CrateGraph` from decoded ``cargo metadata`` output."""
    graph = CrateGraph(packages=ingest_metadata(metadata))
    logger.debug('built_crate_graph', packages=len(graph))
    return graph


def find_member(graph: CrateGraph, manifest_path: str | os.PathLike[str]) -> str:
    """Return the id of the package whose manifest is ``manifest_path``.

    The path is made absolute (without resolving symlinks) and compared
    exactly against each package's manifest path.

    Raises:
        SubspaceError: ``SS-MEMBER-NOT-FOUND`` when no package matches.
    """
    absolute = Path(os.path.abspath(manifest_path))
    for package_id, node in graph.packages.items():
        if node.manifest_path.path == absolute:
            return package_id

    raise SubspaceError(
        code=E.MEMBER_NOT_FOUND,
        message=f'workspace member not found for manifest path {manifest_path}',
        hint='Pass the Cargo.toml of a package (not a virtual workspace manifest).',
    )


def reachable(graph: CrateGraph, root_id: str) -> set[str]:
    """Return ``root_id`` plus every package reachable from it.

    Edges that name ids absent from the graph are not followed.
    """
    visited: set[str] = set()
    stack: list[str] = [root_id]
    while stack:
        current = stack.pop()
        if current in visited:
            continue
        node = graph.packages.get(current)
        if node is None:
            continue
        visited.add(current)
        stack.extend(dep.id for dep in node.dependencies if dep.id not in visited)
    return visited


def prune(graph: CrateGraph, manifest_path: str | os.PathLike[str]) -> None:
    """Keep only the package at ``manifest_path`` and its dependencies.

    Mutates ``graph`` in place.

    Raises:
        SubspaceError: ``SS-MEMBER-NOT-FOUND`` when no package matches.
    """
    root_id = find_member(graph, manifest_path)
    keep = reachable(graph, root_id)
    before = len(graph)
    graph.packages = {pid: node for pid, node in graph.packages.items() if pid in keep}
    logger.info('pruned_graph', root=root_id, kept=len(graph), dropped=before - len(graph))


__all__ = [
    'CrateGraph',
    'build_graph',
    'find_member',
    'prune',
    'reachable',
]
