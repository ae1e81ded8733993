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


"""Tests for subspace.lowering module."""

from __future__ import annotations

from pathlib import Path

from subspace.compile_deps import CompileTimeArtifacts, apply_artifacts
from subspace.graph import build_graph, prune
from subspace.lowering import DEFAULT_EXCLUDE_DIRS, crate_name, feature_cfgs, lower_graph
from subspace.messages import BuildScript
from subspace.paths import FilePath
from subspace.project import Crate, Dep
from subspace.workspace import Dependency, TargetKind
from tests._fakes import MetadataBuilder


def _by_label(crates: list[Crate]) -> dict[tuple[str, str], int]:
    """Map (display name, target kind) to crate index."""
    out: dict[tuple[str, str], int] = {}
    for index, crate in enumerate(crates):
        assert crate.build is not None
        out[(crate.build.label, crate.build.target_kind.value)] = index
    return out


class TestHelpers:
    """Name and cfg helpers."""

    def test_crate_name(self) -> None:
        """Hyphens become underscores."""
        assert crate_name('my-crate-name') == 'my_crate_name'
        assert crate_name('plain') == 'plain'

    def test_feature_cfgs(self) -> None:
        """Each feature becomes a feature cfg."""
        assert feature_cfgs(['default', 'std']) == ['feature="default"', 'feature="std"']
        assert feature_cfgs([]) == []


class TestLowerGraph:
    """lower_graph expands packages into index-linked crates."""

    def test_one_crate_per_target(self, tmp_path: Path) -> None:
        """A lib + bin package yields two crates, in target order."""
        meta = MetadataBuilder(tmp_path)
        meta.package('app', member=True, bins=['app'])
        crates = lower_graph(build_graph(meta.build()))
        assert len(crates) == 2
        assert [c.build.target_kind for c in crates if c.build] == [TargetKind.LIB, TargetKind.BIN]

    def test_features_and_renamed_dependency(self, tmp_path: Path) -> None:
        """Enabled features become cfgs; renamed deps keep the import name."""
        meta = MetadataBuilder(tmp_path)
        serde = meta.package('serde', features=['derive', 'default'])
        meta.package('app', member=True, deps=[('serde1', serde)])
        crates = lower_graph(build_graph(meta.build()))

        serde_crate, app_crate = crates
        assert serde_crate.cfg == ['feature="default"', 'feature="derive"']
        assert app_crate.cfg == []
        assert app_crate.deps == [Dep(crate_index=0, name='serde1')]

    def test_display_name_normalized(self, tmp_path: Path) -> None:
        """display_name is the package name with hyphens replaced."""
        meta = MetadataBuilder(tmp_path)
        meta.package('my-lib', member=True)
        (crate,) = lower_graph(build_graph(meta.build()))
        assert crate.display_name == 'my_lib'
        assert crate.build is not None
        assert crate.build.label == 'my-lib'

    def test_binary_sees_own_library(self, tmp_path: Path) -> None:
        """A bin depends on its own package's lib under the lib's crate name."""
        meta = MetadataBuilder(tmp_path)
        meta.package('my-app', member=True, bins=['my-app'], tests=['integration'])
        crates = lower_graph(build_graph(meta.build()))
        index = _by_label(crates)
        lib = index[('my-app', 'lib')]
        assert crates[lib].deps == []
        assert crates[index[('my-app', 'bin')]].deps == [Dep(crate_index=lib, name='my_app')]
        assert crates[index[('integration', 'test')]].deps == [Dep(crate_index=lib, name='my_app')]

    def test_binary_also_sees_package_dependencies(self, tmp_path: Path) -> None:
        """Non-lib units get the package's deps after their own lib, sorted."""
        meta = MetadataBuilder(tmp_path)
        meta.package('app', member=True, bins=['app'])
        serde = meta.package('serde')
        data = meta.build()
        data['resolve']['nodes'][0]['deps'] = [{'name': 'serde', 'pkg': serde}]
        crates = lower_graph(build_graph(data))
        # app lib=0, app bin=1, serde lib=2
        assert crates[0].deps == [Dep(crate_index=2, name='serde')]
        assert crates[1].deps == [Dep(crate_index=0, name='app'), Dep(crate_index=2, name='serde')]

    def test_deps_sorted_by_index(self, tmp_path: Path) -> None:
        """Dependency lists are ordered by crate index."""
        meta = MetadataBuilder(tmp_path)
        a = meta.package('a')
        b = meta.package('b')
        c = meta.package('c')
        meta.package('app', member=True, deps=[('c', c), ('a', a), ('b', b)])
        crates = lower_graph(build_graph(meta.build()))
        assert [d.crate_index for d in crates[-1].deps] == [0, 1, 2]

    def test_dangling_dependency_dropped(self, tmp_path: Path) -> None:
        """An edge to a package without a lib crate is dropped."""
        meta = MetadataBuilder(tmp_path)
        tool = meta.package('tool', lib=False, bins=['tool'])
        meta.package('app', member=True, deps=[('tool', tool), ('ghost', 'ghost 1.0.0')])
        crates = lower_graph(build_graph(meta.build()))
        assert crates[-1].deps == []

    def test_self_edge_dropped(self, tmp_path: Path) -> None:
        """A package listing itself never points a lib at itself."""
        meta = MetadataBuilder(tmp_path)
        app = meta.package('app', member=True)
        graph = build_graph(meta.build())
        graph.packages[app].dependencies.append(Dependency(id=app, name='app'))
        (crate,) = lower_graph(graph)
        assert crate.deps == []

    def test_last_library_wins(self, tmp_path: Path) -> None:
        """With several lib targets dependents link the last one."""
        meta = MetadataBuilder(tmp_path)
        multi = meta.package('multi', extra_targets=[('multi-extra', ['cdylib'])])
        meta.package('app', member=True, deps=[('multi', multi)])
        crates = lower_graph(build_graph(meta.build()))
        assert crates[-1].deps == [Dep(crate_index=1, name='multi')]

    def test_indices_valid(self, tmp_path: Path) -> None:
        """Every dep index is in range and never the crate itself."""
        meta = MetadataBuilder(tmp_path)
        log = meta.package('log')
        serde = meta.package('serde', deps=[('log', log)])
        core = meta.package('core', member=True, bins=['core-cli'], deps=[('serde', serde), ('log', log)])
        meta.package('app', member=True, bins=['app'], tests=['it'], deps=[('core', core)])
        crates = lower_graph(build_graph(meta.build()))
        for index, crate in enumerate(crates):
            for dep in crate.deps:
                assert 0 <= dep.crate_index < len(crates)
                assert dep.crate_index != index

    def test_deterministic(self, tmp_path: Path) -> None:
        """Lowering the same graph twice gives identical output."""
        meta = MetadataBuilder(tmp_path)
        serde = meta.package('serde', features=['std'])
        meta.package('app', member=True, bins=['app'], deps=[('serde', serde)])
        data = meta.build()
        first = [c.to_dict() for c in lower_graph(build_graph(data))]
        second = [c.to_dict() for c in lower_graph(build_graph(data))]
        assert first == second

    def test_build_script_env_and_include_dirs(self, tmp_path: Path) -> None:
        """Build-script output becomes env and an extra include dir."""
        meta = MetadataBuilder(tmp_path)
        sys_crate = meta.package('openssl-sys')
        graph = build_graph(meta.build())
        out_dir = tmp_path / 'target' / 'debug' / 'build' / 'openssl-sys-abc' / 'out'
        apply_artifacts(
            graph,
            CompileTimeArtifacts(
                build_scripts={sys_crate: BuildScript(out_dir=str(out_dir), env=(('DEP_OPENSSL_VERSION', '300'),))},
            ),
        )
        (crate,) = lower_graph(graph)
        assert crate.env == {'OUT_DIR': str(out_dir), 'DEP_OPENSSL_VERSION': '300'}
        assert crate.source is not None
        assert crate.source.include_dirs == [str(tmp_path / 'openssl-sys'), str(out_dir.parent)]
        assert crate.source.exclude_dirs == list(DEFAULT_EXCLUDE_DIRS)

    def test_no_build_script(self, tmp_path: Path) -> None:
        """Without a build script env is empty and sources are the package dir."""
        meta = MetadataBuilder(tmp_path)
        meta.package('plain')
        (crate,) = lower_graph(build_graph(meta.build()), exclude_dirs=['target'])
        assert crate.env == {}
        assert crate.source is not None
        assert crate.source.include_dirs == [str(tmp_path / 'plain')]
        assert crate.source.exclude_dirs == ['target']

    def test_proc_macro_dylib(self, tmp_path: Path) -> None:
        """A compiled proc-macro gets its dylib path; other targets don't."""
        meta = MetadataBuilder(tmp_path)
        derive = meta.package('my-derive', proc_macro=True, extra_targets=[('gen', ['bin'])])
        meta.package('app', member=True, deps=[('my_derive', derive)])
        graph = build_graph(meta.build())
        dylib = tmp_path / 'target' / 'libmy_derive-123.so'
        dylib.parent.mkdir(parents=True)
        dylib.write_bytes(b'')
        apply_artifacts(graph, CompileTimeArtifacts(dylibs={derive: FilePath.from_path(dylib)}))

        crates = lower_graph(graph)
        macro, gen, app = crates
        assert macro.is_proc_macro
        assert macro.proc_macro_dylib_path == FilePath.from_path(dylib)
        assert not gen.is_proc_macro
        assert gen.proc_macro_dylib_path is None
        assert app.deps == [Dep(crate_index=0, name='my_derive')]

    def test_proc_macro_without_dylib(self, tmp_path: Path) -> None:
        """A proc-macro that did not build still lowers, without a path."""
        meta = MetadataBuilder(tmp_path)
        meta.package('my-derive', proc_macro=True)
        (crate,) = lower_graph(build_graph(meta.build()))
        assert crate.is_proc_macro
        assert crate.proc_macro_dylib_path is None

    def test_build_info_and_cwd(self, tmp_path: Path) -> None:
        """Each crate names its target and manifest and runs macros in the package dir."""
        meta = MetadataBuilder(tmp_path)
        meta.package('app', member=True, repository='https://example.com/app')
        (crate,) = lower_graph(build_graph(meta.build()))
        assert crate.build is not None
        assert crate.build.build_file == str(meta.manifest('app'))
        assert crate.proc_macro_cwd == str(tmp_path / 'app')
        assert crate.repository == 'https://example.com/app'
        assert crate.is_workspace_member
        assert crate.edition == '2021'
        assert crate.version == '0.1.0'

    def test_only_pruned_packages_lowered(self, tmp_path: Path) -> None:
        """After pruning, unrelated workspace members produce no crates."""
        meta = MetadataBuilder(tmp_path)
        serde = meta.package('serde')
        meta.package('app', member=True, deps=[('serde', serde)])
        meta.package('other', member=True, bins=['other'])
        graph = build_graph(meta.build())
        prune(graph, meta.manifest('app'))
        crates = lower_graph(graph)
        assert sorted(c.display_name or '' for c in crates) == ['app', 'serde']
