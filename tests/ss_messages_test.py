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


"""Tests for subspace.messages module."""

from __future__ import annotations

import json

import pytest
from subspace.errors import E, SubspaceError
from subspace.messages import (
    BuildScript,
    BuildScriptExecuted,
    CompilerArtifact,
    OtherMessage,
    is_dylib,
    parse_message,
)


def _artifact(kinds: list[str], filenames: list[str]) -> str:
    return json.dumps({
        'reason': 'compiler-artifact',
        'package_id': 'pm 0.1.0',
        'target': {'name': 'pm', 'kind': kinds, 'src_path': '/x/src/lib.rs'},
        'filenames': filenames,
        'fresh': False,
    })


class TestIsDylib:
    """is_dylib recognizes dynamic-library suffixes only."""

    @pytest.mark.parametrize('name', ['libpm.so', 'pm.dll', 'libpm.dylib', '/a/b/libpm-abc123.so'])
    def test_dylib(self, name: str) -> None:
        """Dynamic-library extensions match."""
        assert is_dylib(name)

    @pytest.mark.parametrize('name', ['libpm.rlib', 'libpm.rmeta', 'pm.so.1', 'pm'])
    def test_not_dylib(self, name: str) -> None:
        """Anything else does not."""
        assert not is_dylib(name)


class TestParseMessage:
    """parse_message decodes the variants discovery cares about."""

    def test_compiler_artifact(self) -> None:
        """compiler-artifact keeps the package id, target and files."""
        msg = parse_message(_artifact(['proc-macro'], ['/t/libpm.so']))
        assert isinstance(msg, CompilerArtifact)
        assert msg.package_id == 'pm 0.1.0'
        assert msg.target_name == 'pm'
        assert msg.is_proc_macro
        assert msg.find_dylib() == '/t/libpm.so'

    def test_artifact_without_dylib(self) -> None:
        """A library artifact has no dylib."""
        msg = parse_message(_artifact(['lib'], ['/t/libx.rlib', '/t/libx.rmeta']))
        assert isinstance(msg, CompilerArtifact)
        assert not msg.is_proc_macro
        assert msg.find_dylib() is None

    def test_first_dylib_wins(self) -> None:
        """With several dylibs the first listed is chosen."""
        msg = parse_message(_artifact(['proc-macro'], ['/t/a.rmeta', '/t/a.so', '/t/b.so']))
        assert isinstance(msg, CompilerArtifact)
        assert msg.find_dylib() == '/t/a.so'

    def test_build_script_executed(self) -> None:
        """build-script-executed keeps out_dir and env pairs in order."""
        line = json.dumps({
            'reason': 'build-script-executed',
            'package_id': 'b 0.1.0',
            'linked_libs': [],
            'linked_paths': [],
            'cfgs': [],
            'env': [['B', '2'], ['A', '1']],
            'out_dir': '/t/build/b-1/out',
        })
        msg = parse_message(line)
        assert msg == BuildScriptExecuted(
            package_id='b 0.1.0',
            build_script=BuildScript(out_dir='/t/build/b-1/out', env=(('B', '2'), ('A', '1'))),
        )

    def test_build_script_without_env(self) -> None:
        """A missing env list means no variables."""
        line = json.dumps({'reason': 'build-script-executed', 'package_id': 'b', 'out_dir': '/o'})
        msg = parse_message(line)
        assert isinstance(msg, BuildScriptExecuted)
        assert msg.build_script.env == ()

    @pytest.mark.parametrize('reason', ['compiler-message', 'build-finished', 'something-new'])
    def test_other_reasons_ignored(self, reason: str) -> None:
        """Unrecognized reasons decode to OtherMessage."""
        msg = parse_message(json.dumps({'reason': reason, 'success': True}))
        assert isinstance(msg, OtherMessage)
        assert msg.reason == reason

    def test_invalid_json(self) -> None:
        """A line that is not JSON is malformed."""
        with pytest.raises(SubspaceError) as exc_info:
            parse_message('warning: unused variable')
        assert exc_info.value.code == E.MESSAGE_MALFORMED

    def test_not_an_object(self) -> None:
        """A JSON array is malformed."""
        with pytest.raises(SubspaceError) as exc_info:
            parse_message('[1, 2]')
        assert exc_info.value.code == E.MESSAGE_MALFORMED

    def test_known_variant_missing_field(self) -> None:
        """A compiler-artifact without a target is malformed."""
        with pytest.raises(SubspaceError) as exc_info:
            parse_message(json.dumps({'reason': 'compiler-artifact', 'package_id': 'x', 'filenames': []}))
        assert exc_info.value.code == E.MESSAGE_MALFORMED

    def test_long_line_is_truncated_in_message(self) -> None:
        """The error message quotes at most a prefix of the line."""
        with pytest.raises(SubspaceError) as exc_info:
            parse_message('x' * 1000)
        assert len(exc_info.value.message) < 400
