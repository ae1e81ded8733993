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


"""Validated file paths.

rust-project.json stores paths as UTF-8 strings, and every manifest or
root module it names must be an actual file. :class:`FilePath` enforces
both at construction: the only way to get one is the fallible
:meth:`FilePath.from_path`.

Usage::

    from subspace.paths import FilePath, find_manifest

    root = FilePath.from_path('/src/app/src/lib.rs')
    manifest = find_manifest('/src/app/src/lib.rs')  # /src/app/Cargo.toml
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from subspace.errors import E, SubspaceError
from subspace.logging import get_logger

log = get_logger(__name__)

MANIFEST_NAME = 'Cargo.toml'


def ensure_utf8(path: str | os.PathLike[str]) -> str:
    """Return ``path`` as a string, or raise if it is not valid UTF-8.

    Undecodable bytes from the OS show up as surrogate escapes, and JSON
    may carry lone surrogates; neither survives a strict UTF-8 encode.
    """
    text = os.fspath(path)
    try:
        text.encode('utf-8')
    except UnicodeEncodeError as exc:
        raise SubspaceError(
            code=E.PATH_NOT_UTF8,
            message=f'Path contains non-UTF-8 characters: {text!r}',
            hint='rust-project.json requires UTF-8 paths.',
        ) from exc
    return text


@dataclass(frozen=True)
class FilePath:
    """A UTF-8 path that named an existing regular file when constructed.

    Attributes:
        path: The underlying path.
    """

    path: Path

    @classmethod
    def from_path(cls, value: str | os.PathLike[str]) -> FilePath:
        """Validate ``value`` and wrap it.

        Raises:
            SubspaceError: ``SS-PATH-NOT-UTF8`` or ``SS-PATH-NOT-FILE``.
        """
        path = Path(ensure_utf8(value))
        if not path.is_file():
            raise SubspaceError(
                code=E.PATH_NOT_FILE,
                message=f'`{path}` is not a file',
            )
        return cls(path)

    @property
    def parent(self) -> Path:
        """The directory containing the file."""
        return self.path.parent

    def __str__(self) -> str:
        return str(self.path)

    def __fspath__(self) -> str:
        return str(self.path)


def find_manifest(path: str | os.PathLike[str]) -> FilePath:
    """Find the ``Cargo.toml`` governing ``path``.

    Starts at ``path`` itself when it is a directory, otherwise at its
    parent, and walks up through the ancestors.

    Raises:
        SubspaceError: ``SS-MANIFEST-NOT-FOUND`` if no ancestor has one.
    """
    absolute = Path(os.path.abspath(ensure_utf8(path)))
    start = absolute if absolute.is_dir() else absolute.parent

    for directory in (start, *start.parents):
        candidate = directory / MANIFEST_NAME
        if candidate.is_file():
            log.debug('found_manifest', manifest_path=str(candidate))
            return FilePath.from_path(candidate)

    raise SubspaceError(
        code=E.MANIFEST_NOT_FOUND,
        message=f'Could not find manifest for path `{absolute}`',
        hint='Open a file that belongs to a cargo package.',
    )


__all__ = [
    'FilePath',
    'MANIFEST_NAME',
    'ensure_utf8',
    'find_manifest',
]
