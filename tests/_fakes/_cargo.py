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


"""A scriptable fake cargo/rustc pair.

:class:`FakeToolchain` writes executable ``bin/cargo`` and ``bin/rustc``
scripts under a cargo home. Both read their canned responses from a
JSON file next to them and append every invocation to ``calls.jsonl``,
so tests can drive :class:`subspace.toolchain.Toolchain` end to end
without a Rust install.
"""

from __future__ import annotations

import json
import stat
import sys
from pathlib import Path
from typing import Any

from subspace.toolchain import Toolchain

_SCRIPT = '''#!{python}
import json
import os
import sys
import time

HERE = os.path.dirname(os.path.abspath(__file__))
with open(os.path.join(HERE, 'responses.json'), encoding='utf-8') as f:
    R = json.load(f)
with open(os.path.join(HERE, 'calls.jsonl'), 'a', encoding='utf-8') as f:
    f.write(json.dumps(sys.argv) + '\\n')

tool = os.path.basename(sys.argv[0])
args = sys.argv[1:]

if tool == 'rustc':
    if args == ['-vV']:
        sys.stdout.write(R['rustc_vv'])
    elif args == ['--print', 'sysroot']:
        sys.stdout.write(R['sysroot'] + '\\n')
    elif args == ['--version']:
        sys.stdout.write(R['rustc_version'] + '\\n')
    else:
        sys.exit(2)
    sys.exit(R['rustc_rc'])

command = args[0] if args else ''
if command == 'metadata':
    time.sleep(R['metadata_sleep'])
    sys.stdout.write(R['metadata_stdout'])
    sys.stderr.write(R['metadata_stderr'])
    sys.exit(R['metadata_rc'])
if command == 'check':
    for line in R['check_lines']:
        sys.stdout.write(line + '\\n')
        sys.stdout.flush()
    sys.exit(R['check_rc'])
if command == 'fetch':
    sys.exit(R['fetch_rc'])
if command == 'locate-project':
    sys.stdout.write(R['workspace'] + '\\n')
    sys.exit(0)
if command == 'clippy':
    sys.exit(R['check_rc'])
sys.exit(2)
'''


class FakeToolchain:
    """Fake cargo home whose binaries replay canned responses.

    Args:
        cargo_home: Directory to create ``bin/`` in.
        metadata: Document ``cargo metadata`` prints.
        check_lines: Lines ``cargo check`` prints, one message each.
        sysroot: Path ``rustc --print sysroot`` prints.
    """

    def __init__(
        self,
        cargo_home: Path,
        *,
        metadata: dict[str, Any] | None = None,
        check_lines: list[str] | None = None,
        sysroot: Path | None = None,
        workspace: str = '/fake/Cargo.toml',
        host: str = 'x86_64-unknown-linux-gnu',
    ) -> None:
        """Create the scripts and write the initial responses."""
        self.cargo_home = cargo_home
        self.bin_dir = cargo_home / 'bin'
        self.bin_dir.mkdir(parents=True, exist_ok=True)
        self.responses: dict[str, Any] = {
            'rustc_vv': f'rustc 1.80.0 (051478957 2024-07-21)\nbinary: rustc\nhost: {host}\nrelease: 1.80.0\n',
            'rustc_version': 'rustc 1.80.0 (051478957 2024-07-21)',
            'rustc_rc': 0,
            'sysroot': str(sysroot or cargo_home / 'sysroot'),
            'metadata_stdout': json.dumps(metadata or {}),
            'metadata_stderr': '',
            'metadata_rc': 0,
            'metadata_sleep': 0,
            'check_lines': list(check_lines or []),
            'check_rc': 0,
            'fetch_rc': 0,
            'workspace': workspace,
        }
        script = _SCRIPT.format(python=sys.executable)
        for tool in ('cargo', 'rustc'):
            path = self.bin_dir / tool
            path.write_text(script, encoding='utf-8')
            path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        self._save()

    def _save(self) -> None:
        (self.bin_dir / 'responses.json').write_text(json.dumps(self.responses), encoding='utf-8')

    def set(self, **responses: Any) -> None:  # noqa: ANN401 - canned values of any JSON type
        """Override canned responses."""
        self.responses.update(responses)
        self._save()

    @property
    def toolchain(self) -> Toolchain:
        """A :class:`Toolchain` pointed at the fake binaries."""
        return Toolchain(self.cargo_home)

    def calls(self) -> list[list[str]]:
        """Every recorded invocation, as ``[tool, *args]``."""
        log = self.bin_dir / 'calls.jsonl'
        if not log.exists():
            return []
        return [[Path(argv[0]).name, *argv[1:]] for argv in map(json.loads, log.read_text(encoding='utf-8').splitlines())]
