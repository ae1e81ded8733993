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


"""Central subprocess abstraction for cargo-subspace.

All one-shot tool calls (``cargo metadata``, ``cargo fetch``, ``rustc``,
``cargo locate-project``, ``cargo check``) go through
:func:`run_command`, which provides:

- Structured logging of every subprocess invocation.
- A configurable timeout with clear error messages.
- A consistent return type (:class:`CommandResult`).

The streaming ``cargo check`` pre-pass in :mod:`subspace.compile_deps`
reads its output incrementally and does not use this module.
"""

from __future__ import annotations

import subprocess  # noqa: S404 - subprocess is the core purpose of this module
import time
from dataclasses import dataclass
from pathlib import Path

from subspace.logging import get_logger

log = get_logger('subspace.backends.run')

# Default timeout for subprocess calls (10 minutes; cargo metadata may
# need to fetch the registry index).
DEFAULT_TIMEOUT_SECONDS = 600


@dataclass(frozen=True)
class CommandResult:
    """Result of a subprocess invocation.

    Attributes:
        command: The command that was executed (as a list of strings).
        return_code: Process exit code (0 = success).
        stdout: Captured standard output.
        stderr: Captured standard error.
        duration: Wall-clock duration in milliseconds.
    """

    command: list[str]
    return_code: int
    stdout: str = ''
    stderr: str = ''
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        """Whether the command succeeded (return_code == 0)."""
        return self.return_code == 0

    @property
    def command_str(self) -> str:
        """The command as a single shell-style string."""
        return ' '.join(self.command)


def run_command(
    cmd: list[str],
    *,
    cwd: Path | str | None = None,
    timeout: int | None = DEFAULT_TIMEOUT_SECONDS,
    capture: bool = True,
) -> CommandResult:
    """Execute a subprocess command with logging.

    Args:
        cmd: Command and arguments as a list of strings.
        cwd: Working directory for the command.
        timeout: Maximum seconds to wait before killing the process, or
            ``None`` to wait indefinitely.
        capture: If ``True``, capture stdout and stderr; otherwise the
            child inherits this process's streams.

    Returns:
        A :class:`CommandResult` with the command output and metadata.

    Raises:
        subprocess.TimeoutExpired: If the command exceeds ``timeout``.
        OSError: If the executable cannot be spawned.
    """
    cmd_str = ' '.join(cmd)
    log.debug('run_command', cmd=cmd_str, cwd=str(cwd or '.'))

    start = time.monotonic()
    try:
        result = subprocess.run(  # noqa: S603 -- commands are built from fixed argument lists
            cmd,
            cwd=cwd,
            capture_output=capture,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        duration = (time.monotonic() - start) * 1000
        log.error('command_timeout', cmd=cmd_str, timeout=timeout, duration=duration)
        raise

    duration = (time.monotonic() - start) * 1000
    cmd_result = CommandResult(
        command=cmd,
        return_code=result.returncode,
        stdout=result.stdout if capture else '',
        stderr=result.stderr if capture else '',
        duration=duration,
    )

    if result.returncode != 0:
        log.warning(
            'command_failed',
            cmd=cmd_str,
            return_code=result.returncode,
            stderr=result.stderr[:500] if capture else '',
            duration=duration,
        )
    else:
        log.debug('command_ok', cmd=cmd_str, duration=duration)

    return cmd_result


__all__ = [
    'CommandResult',
    'DEFAULT_TIMEOUT_SECONDS',
    'TimeoutExpired',
    'run_command',
]

# Re-exported so callers can catch timeouts without importing subprocess.
TimeoutExpired = subprocess.TimeoutExpired
