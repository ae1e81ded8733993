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


"""Decoding of cargo's ``--message-format json`` stream.

Each line cargo prints is one JSON object tagged by ``reason``. Only two
variants matter for project discovery; everything else decodes to
:class:`OtherMessage` and is ignored by the caller::

    reason                   variant                 used for
    ───────────────────────  ──────────────────────  ─────────────────────────
    compiler-artifact        CompilerArtifact        proc-macro dylib paths
    build-script-executed    BuildScriptExecuted     OUT_DIR + exported env
    (anything else)          OtherMessage            nothing

A line that is not JSON, not an object, or a known variant with missing
fields raises ``SS-MESSAGE-MALFORMED``: cargo's protocol is assumed
well-formed, so a corrupt line means an incompatible cargo.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import PurePath

from subspace.errors import E, SubspaceError

DYLIB_SUFFIXES: frozenset[str] = frozenset({'.so', '.dll', '.dylib'})


@dataclass(frozen=True)
class BuildScript:
    """Outputs of one executed build script.

    Attributes:
        out_dir: The ``OUT_DIR`` the script wrote into.
        env: Variables exported with ``cargo:rustc-env``, in emission order.
    """

    out_dir: str
    env: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class CompilerArtifact:
    """A target finished compiling."""

    package_id: str
    target_name: str
    target_kinds: tuple[str, ...]
    filenames: tuple[str, ...]

    @property
    def is_proc_macro(self) -> bool:
        """Whether the compiled target is a proc-macro."""
        return 'proc-macro' in self.target_kinds

    def find_dylib(self) -> str | None:
        """Return the first produced file with a dynamic-library suffix."""
        return next((f for f in self.filenames if is_dylib(f)), None)


@dataclass(frozen=True)
class BuildScriptExecuted:
    """A build script ran."""

    package_id: str
    build_script: BuildScript


@dataclass(frozen=True)
class OtherMessage:
    """Any message kind discovery does not care about."""

    reason: str = ''


Message = CompilerArtifact | BuildScriptExecuted | OtherMessage


def is_dylib(path: str) -> bool:
    """Whether ``path`` has a ``.so``, ``.dll`` or ``.dylib`` extension."""
    return PurePath(path).suffix in DYLIB_SUFFIXES


def _malformed(line: str, detail: str) -> SubspaceError:
    snippet = line if len(line) <= 200 else line[:200] + '...'
    return SubspaceError(
        code=E.MESSAGE_MALFORMED,
        message=f'Malformed cargo message ({detail}): {snippet}',
        hint='Your cargo may be incompatible with cargo-subspace; upgrade the toolchain.',
    )


def parse_message(line: str) -> Message:
    """Decode one line of cargo JSON output.

    Raises:
        SubspaceError: ``SS-MESSAGE-MALFORMED`` for undecodable lines.
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as exc:
        raise _malformed(line, f'invalid JSON: {exc.msg}') from exc

    if not isinstance(data, dict):
        raise _malformed(line, 'not a JSON object')

    reason = data.get('reason', '')
    try:
        if reason == 'compiler-artifact':
            target = data['target']
            return CompilerArtifact(
                package_id=data['package_id'],
                target_name=target['name'],
                target_kinds=tuple(target['kind']),
                filenames=tuple(data['filenames']),
            )
        if reason == 'build-script-executed':
            return BuildScriptExecuted(
                package_id=data['package_id'],
                build_script=BuildScript(
                    out_dir=data['out_dir'],
                    env=tuple((key, value) for key, value in data.get('env', [])),
                ),
            )
    except (KeyError, TypeError, ValueError) as exc:
        raise _malformed(line, f'missing or invalid field {exc}') from exc

    return OtherMessage(reason=str(reason))


__all__ = [
    'BuildScript',
    'BuildScriptExecuted',
    'CompilerArtifact',
    'DYLIB_SUFFIXES',
    'Message',
    'OtherMessage',
    'is_dylib',
    'parse_message',
]
