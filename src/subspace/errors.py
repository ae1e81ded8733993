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


"""Structured error system for cargo-subspace.

Every error has a unique ``SS-NAMED-KEY`` code, a human-readable message,
and an optional hint with a suggested fix.

Code categories::

    SS-PATH-*, SS-MANIFEST-*,
    SS-MEMBER-*, SS-ARGUMENT-*    Input-consistency errors (wrong path, bad
                                  argument, inconsistent metadata snapshot)
    SS-METADATA-*, SS-MESSAGE-*   cargo protocol errors (unparseable output,
                                  usually an incompatible cargo version)
    SS-TOOLCHAIN-*, SS-CHECK-*    Subprocess failures
    SS-CONFIG-*                   subspace.toml errors

None of these are retried. The discover command renders them as a
single ``{"kind": "error"}`` line so rust-analyzer can tell a failed
discovery apart from a finished one.

Usage::

    from subspace.errors import E, SubspaceError

    raise SubspaceError(
        code=E.MEMBER_NOT_FOUND,
        message='workspace member not found for manifest path /x/Cargo.toml',
        hint='Pass the manifest of a package that belongs to the workspace.',
    )
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from rich.console import Console
from rich.markup import escape as rich_escape


class ErrorCode(str, Enum):
    """Enumeration of all cargo-subspace diagnostic codes."""

    # Input consistency
    PATH_NOT_UTF8 = 'SS-PATH-NOT-UTF8'
    PATH_NOT_FILE = 'SS-PATH-NOT-FILE'
    MANIFEST_NOT_FOUND = 'SS-MANIFEST-NOT-FOUND'
    MEMBER_NOT_FOUND = 'SS-MEMBER-NOT-FOUND'
    ARGUMENT_INVALID = 'SS-ARGUMENT-INVALID'

    # cargo protocol
    METADATA_INVALID = 'SS-METADATA-INVALID'
    MESSAGE_MALFORMED = 'SS-MESSAGE-MALFORMED'

    # Subprocesses
    METADATA_FAILED = 'SS-METADATA-FAILED'
    TOOLCHAIN_FAILED = 'SS-TOOLCHAIN-FAILED'
    CHECK_FAILED = 'SS-CHECK-FAILED'

    # Configuration
    CONFIG_PARSE_ERROR = 'SS-CONFIG-PARSE-ERROR'
    CONFIG_INVALID_KEY = 'SS-CONFIG-INVALID-KEY'
    CONFIG_INVALID_VALUE = 'SS-CONFIG-INVALID-VALUE'


# Convenience alias for shorter imports.
E = ErrorCode


@dataclass(frozen=True)
class ErrorInfo:
    """Metadata for a single error code.

    Attributes:
        code: The ``SS-NAMED-KEY`` error code.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    code: ErrorCode
    message: str
    hint: str = ''


class SubspaceError(Exception):
    """Base exception for all cargo-subspace errors.

    Args:
        code: The error code from :class:`ErrorCode`.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    def __init__(self, code: ErrorCode, message: str, hint: str = '') -> None:
        """Initialize with an error code, message, and optional hint."""
        self.info = ErrorInfo(code=code, message=message, hint=hint)
        super().__init__(f'[{code.value}] {message}')

    @property
    def code(self) -> ErrorCode:
        """The error code."""
        return self.info.code

    @property
    def message(self) -> str:
        """The bare message, without the code prefix."""
        return self.info.message

    @property
    def hint(self) -> str:
        """Suggestion for fixing this error, or empty string."""
        return self.info.hint


ERRORS: dict[ErrorCode, ErrorInfo] = {
    E.PATH_NOT_UTF8: ErrorInfo(
        code=E.PATH_NOT_UTF8,
        message='A path contains characters that cannot be encoded as UTF-8.',
        hint='rust-project.json requires UTF-8 paths; rename the offending file or directory.',
    ),
    E.PATH_NOT_FILE: ErrorInfo(
        code=E.PATH_NOT_FILE,
        message='A path expected to name a file does not exist or is not a regular file.',
        hint="Run 'cargo metadata' to check that the workspace is consistent.",
    ),
    E.MANIFEST_NOT_FOUND: ErrorInfo(
        code=E.MANIFEST_NOT_FOUND,
        message='No Cargo.toml was found in the given directory or any of its parents.',
        hint='Open a file that belongs to a cargo package.',
    ),
    E.MEMBER_NOT_FOUND: ErrorInfo(
        code=E.MEMBER_NOT_FOUND,
        message='The manifest path does not belong to any package in the cargo metadata.',
        hint='Pass the Cargo.toml of a package (not a virtual workspace manifest).',
    ),
    E.MESSAGE_MALFORMED: ErrorInfo(
        code=E.MESSAGE_MALFORMED,
        message='cargo emitted a line that is not a valid JSON message.',
        hint='Your cargo may be incompatible; upgrade the toolchain.',
    ),
    E.METADATA_FAILED: ErrorInfo(
        code=E.METADATA_FAILED,
        message="'cargo metadata' exited with an error.",
        hint="Run 'cargo metadata --format-version 1' in the package directory to see the error.",
    ),
}


def explain(code: str) -> str | None:
    """Return a detailed explanation for an error code.

    Args:
        code: The error code string, e.g. ``"SS-MEMBER-NOT-FOUND"``.

    Returns:
        A formatted explanation string, or ``None`` if the code is unknown.
    """
    try:
        error_code = ErrorCode(code)
    except ValueError:
        return None

    info = ERRORS.get(error_code)
    if info is None:
        return f'{code}: No detailed explanation available.'

    lines = [f'{code}: {info.message}']
    if info.hint:
        lines.append(f'  Hint: {info.hint}')
    return '\n'.join(lines)


def render_error(exc: SubspaceError, *, file: TextIO | None = None) -> None:
    """Render an error in Rust-compiler style.

    Output format::

        error[SS-MEMBER-NOT-FOUND]: workspace member not found ...
          |
          = hint: Pass the Cargo.toml of a package ...

    Args:
        exc: The error to render.
        file: Output stream (defaults to ``sys.stderr``).
    """
    out = file or sys.stderr

    if out.isatty():
        console = Console(file=out, highlight=False)
        msg = rich_escape(exc.message)
        console.print(
            f'[bold red]error[/bold red][bold red]\\[{exc.code.value}][/bold red][bold]: {msg}[/bold]',
        )
        if exc.hint:
            console.print('  [dim]|[/dim]')
            console.print(f'  [dim]=[/dim] [cyan]hint[/cyan]: {rich_escape(exc.hint)}')
        console.print()
    else:
        print(f'error[{exc.code.value}]: {exc.message}', file=out)  # noqa: T201 - CLI output
        if exc.hint:
            print('  |', file=out)  # noqa: T201 - CLI output
            print(f'  = hint: {exc.hint}', file=out)  # noqa: T201 - CLI output
        print(file=out)  # noqa: T201 - CLI output


__all__ = [
    'E',
    'ERRORS',
    'ErrorCode',
    'ErrorInfo',
    'SubspaceError',
    'explain',
    'render_error',
]
