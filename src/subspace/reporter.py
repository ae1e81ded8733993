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


"""Discover-protocol notifications.

rust-analyzer runs ``cargo-subspace discover`` with stdout piped and
reads one JSON object per line, tagged by ``kind``::

    {"kind": "progress", "message": "Fetching metadata"}
    {"kind": "error", "error": "...", "source": null}
    {"kind": "finished", "buildfile": "/ws/Cargo.toml", "project": {...}}

When stdout is a terminal the same notifications are printed for a
human instead, with ``rich``.
"""

from __future__ import annotations

import json
import sys
from typing import Any, TextIO

from rich.console import Console
from rich.markup import escape as rich_escape


class Reporter:
    """Writes discover notifications to a stream.

    Args:
        stream: Output stream (defaults to ``sys.stdout``).
        interactive: Force human-readable (``True``) or JSON (``False``)
            output. Defaults to whether ``stream`` is a TTY.
    """

    def __init__(self, stream: TextIO | None = None, *, interactive: bool | None = None) -> None:
        """Initialize with an output stream."""
        self._stream = stream or sys.stdout
        self.interactive = self._stream.isatty() if interactive is None else interactive
        self._console = Console(file=self._stream, highlight=False) if self.interactive else None

    def _emit(self, payload: dict[str, Any]) -> None:
        self._stream.write(json.dumps(payload) + '\n')
        self._stream.flush()

    def progress(self, message: str) -> None:
        """Report a progress step."""
        if self._console is not None:
            self._console.print(f'[dim]progress[/dim]: {rich_escape(message)}')
        else:
            self._emit({'kind': 'progress', 'message': message})

    def error(self, error: str, source: str | None = None) -> None:
        """Report that discovery failed."""
        if self._console is not None:
            self._console.print(f'[bold red]error[/bold red]: {rich_escape(error)}')
        else:
            self._emit({'kind': 'error', 'error': error, 'source': source})

    def finished(self, buildfile: str, project: dict[str, Any]) -> None:
        """Report the finished project descriptor."""
        payload = {'kind': 'finished', 'buildfile': buildfile, 'project': project}
        if self._console is not None:
            self._console.print_json(data=payload)
        else:
            self._emit(payload)


__all__ = [
    'Reporter',
]
