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


"""Package graph types and ``cargo metadata`` ingestion.

Reads the resolved workspace description printed by
``cargo metadata --format-version 1`` into one :class:`PackageNode` per
package, keyed by cargo's opaque package id.

Data Flow::

    cargo metadata JSON                      ingest_metadata()
    ┌───────────────────────────┐      ┌──────────────────────────────┐
    │ packages[]                │─────→│ 1. Index resolve.nodes:      │
    │   id, name, version,      │      │    features + deps per id    │
    │   manifest_path, targets  │      │ 2. Per package: drop test/   │
    │ workspace_members[]       │─────→│    bench/example targets of  │
    │ resolve.nodes[]           │      │    non-members               │
    │   id, features,           │─────→│ 3. Validate manifest and     │
    │   deps[{name, pkg}]       │      │    root module paths         │
    └───────────────────────────┘      └──────────────────────────────┘
                                                    │
                                       dict[package id, PackageNode]

Dependency edges keep cargo's import name (``deps[].name``), which
differs from the package name for renamed dependencies such as
``serde1 = { package = "serde" }``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from subspace.errors import E, SubspaceError
from subspace.logging import get_logger
from subspace.messages import BuildScript
from subspace.paths import FilePath

log = get_logger(__name__)

# Target kinds that only workspace members keep.
MEMBER_ONLY_KINDS: frozenset[str] = frozenset({'test', 'bench', 'example'})


class TargetKind(str, Enum):
    """The coarse target kind rust-analyzer uses to pick runnables."""

    BIN = 'bin'
    LIB = 'lib'
    TEST = 'test'

    @classmethod
    def from_kinds(cls, kinds: list[str] | tuple[str, ...]) -> TargetKind:
        """Map cargo's kind tags to a :class:`TargetKind`.

        The first recognized tag decides; unrecognized tags are skipped.
        A target with no recognized tag is treated as a binary.
        """
        for kind in kinds:
            mapped = _KIND_MAP.get(kind)
            if mapped is not None:
                return mapped
        return cls.BIN


_KIND_MAP: dict[str, TargetKind] = {
    'bin': TargetKind.BIN,
    'test': TargetKind.TEST,
    'bench': TargetKind.TEST,
    'example': TargetKind.BIN,
    'custom-build': TargetKind.BIN,
    'proc-macro': TargetKind.LIB,
    'lib': TargetKind.LIB,
    'dylib': TargetKind.LIB,
    'cdylib': TargetKind.LIB,
    'staticlib': TargetKind.LIB,
    'rlib': TargetKind.LIB,
}


@dataclass(frozen=True)
class Target:
    """One buildable unit of a package.

    Attributes:
        name: Target name (may contain ``-``).
        edition: Rust edition, e.g. ``"2021"``.
        kind: cargo's raw kind tags, e.g. ``["lib"]`` or ``["proc-macro"]``.
        root_module: The crate root source file.
    """

    name: str
    edition: str
    kind: tuple[str, ...]
    root_module: FilePath

    @property
    def target_kind(self) -> TargetKind:
        """The simplified kind of this target."""
        return TargetKind.from_kinds(self.kind)

    @property
    def is_proc_macro(self) -> bool:
        """Whether this target is a proc-macro."""
        return 'proc-macro' in self.kind


@dataclass(frozen=True)
class Dependency:
    """A resolved dependency edge.

    Attributes:
        id: Package id of the dependency.
        name: Name the dependent imports it under.
    """

    id: str
    name: str


@dataclass
class PackageNode:
    """One resolved package of the graph.

    ``proc_macro_dylib`` and ``build_script`` start empty and are filled
    in by :func:`subspace.compile_deps.apply_artifacts`.
    """

    id: str
    name: str
    manifest_path: FilePath
    version: str
    is_workspace_member: bool
    features: list[str] = field(default_factory=list)
    dependencies: list[Dependency] = field(default_factory=list)
    repository: str | None = None
    targets: list[Target] = field(default_factory=list)
    proc_macro_dylib: FilePath | None = None
    build_script: BuildScript | None = None


def _invalid(detail: str) -> SubspaceError:
    return SubspaceError(
        code=E.METADATA_INVALID,
        message=f'Unexpected cargo metadata format: {detail}',
        hint='cargo-subspace reads `cargo metadata --format-version 1`; check your cargo version.',
    )


def _resolve_index(
    metadata: dict[str, Any],
) -> tuple[dict[str, set[str]], dict[str, list[Dependency]]]:
    """Collect enabled features and dependency edges per package id."""
    features: dict[str, set[str]] = {}
    dependencies: dict[str, list[Dependency]] = {}

    resolve = metadata.get('resolve')
    if not resolve:
        return features, dependencies

    for node in resolve.get('nodes', []):
        node_id = node['id']
        features.setdefault(node_id, set()).update(str(f) for f in node.get('features', []))
        dependencies.setdefault(node_id, []).extend(
            Dependency(id=dep['pkg'], name=dep['name']) for dep in node.get('deps', [])
        )
    return features, dependencies


def _ingest_targets(raw_targets: list[dict[str, Any]], *, is_member: bool) -> list[Target]:
    targets: list[Target] = []
    for raw in raw_targets:
        kind = tuple(raw['kind'])
        if not is_member and MEMBER_ONLY_KINDS.intersection(kind):
            continue
        targets.append(
            Target(
                name=raw['name'],
                edition=str(raw.get('edition', '2015')),
                kind=kind,
                root_module=FilePath.from_path(raw['src_path']),
            )
        )
    return targets


def ingest_metadata(metadata: dict[str, Any]) -> dict[str, PackageNode]:
    """Build the package map from ``cargo metadata`` output.

    Args:
        metadata: Decoded ``cargo metadata --format-version 1`` JSON.

    Returns:
        Package nodes keyed by package id, in metadata order.

    Raises:
        SubspaceError: ``SS-METADATA-INVALID`` for structurally broken
            metadata, ``SS-PATH-NOT-UTF8`` / ``SS-PATH-NOT-FILE`` for
            manifest or source paths that are not valid files.
    """
    try:
        members: set[str] = set(metadata['workspace_members'])
        features, dependencies = _resolve_index(metadata)
        packages: list[dict[str, Any]] = metadata['packages']
    except (KeyError, TypeError) as exc:
        raise _invalid(f'missing {exc}') from exc

    nodes: dict[str, PackageNode] = {}
    for package in packages:
        try:
            package_id = package['id']
            is_member = package_id in members
            node = PackageNode(
                id=package_id,
                name=package['name'],
                manifest_path=FilePath.from_path(package['manifest_path']),
                version=str(package['version']),
                is_workspace_member=is_member,
                features=sorted(features.get(package_id, set())),
                dependencies=list(dependencies.get(package_id, [])),
                repository=package.get('repository'),
                targets=_ingest_targets(package['targets'], is_member=is_member),
            )
        except (KeyError, TypeError) as exc:
            raise _invalid(f'package entry missing {exc}') from exc
        nodes[package_id] = node

    log.debug(
        'ingested_metadata',
        packages=len(nodes),
        members=len(members),
        edges=sum(len(n.dependencies) for n in nodes.values()),
    )
    return nodes


__all__ = [
    'Dependency',
    'MEMBER_ONLY_KINDS',
    'PackageNode',
    'Target',
    'TargetKind',
    'ingest_metadata',
]
