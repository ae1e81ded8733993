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


"""Configuration reader for cargo-subspace.

Reads an optional ``subspace.toml`` and returns a validated, frozen
:class:`SubspaceConfig`. The file is looked up next to the package's
``Cargo.toml`` and then in each parent directory, so a single file at
the workspace root covers every member. Command-line flags override it.

Supported keys in ``subspace.toml``::

    features          = "default"          # "default", "all" or "no-default"
    filter_platform   = true               # --filter-platform <host triple>
    fetch             = false              # run `cargo fetch` first
    compile_time_deps = false              # nightly `--compile-time-deps`
    exclude_dirs      = [".git", "target"] # excluded from every crate's sources
    cargo_home        = "/opt/cargo"       # use <cargo_home>/bin/cargo

Validation Pipeline::

    subspace.toml
    ┌────────────────────┐
    │ featurs = "all"    │  ← typo!
    └─────────┬──────────┘
              ▼
    ┌────────────────────┐     ┌──────────────────────────────┐
    │ 1. Unknown key     │────→│ SS-CONFIG-INVALID-KEY:       │
    │    detection       │     │ hint: "Did you mean          │
    └─────────┬──────────┘     │       'features'?"           │
              ▼                └──────────────────────────────┘
    ┌────────────────────┐     ┌──────────────────────────────┐
    │ 2. Type check      │────→│ SS-CONFIG-INVALID-VALUE      │
    │ 3. Value check     │     └──────────────────────────────┘
    └─────────┬──────────┘
              ▼
       SubspaceConfig()
"""

from __future__ import annotations

import difflib
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomlkit
import tomlkit.exceptions

from subspace.errors import E, SubspaceError
from subspace.logging import get_logger
from subspace.lowering import DEFAULT_EXCLUDE_DIRS

logger = get_logger(__name__)

CONFIG_FILENAME = 'subspace.toml'

ALLOWED_FEATURES: frozenset[str] = frozenset({'default', 'all', 'no-default'})

_TYPE_MAP: dict[str, type | tuple[type, ...]] = {
    'features': str,
    'filter_platform': bool,
    'fetch': bool,
    'compile_time_deps': bool,
    'exclude_dirs': list,
    'cargo_home': str,
}

VALID_KEYS: frozenset[str] = frozenset(_TYPE_MAP)


@dataclass(frozen=True)
class SubspaceConfig:
    """Validated cargo-subspace settings.

    Attributes:
        features: Feature selection passed to ``cargo metadata``.
        filter_platform: Restrict metadata to the host platform.
        fetch: Run ``cargo fetch`` before ``cargo metadata``.
        compile_time_deps: Ask cargo to build only compile-time deps.
        exclude_dirs: Directory names excluded from crate sources.
        cargo_home: Directory whose ``bin/`` holds cargo and rustc.
        config_path: The file the settings came from, if any.
    """

    features: str = 'default'
    filter_platform: bool = True
    fetch: bool = False
    compile_time_deps: bool = False
    exclude_dirs: tuple[str, ...] = field(default=DEFAULT_EXCLUDE_DIRS)
    cargo_home: Path | None = None
    config_path: Path | None = None


def find_config(start: Path) -> Path | None:
    """Return the nearest ``subspace.toml`` at or above ``start``."""
    directory = start if start.is_dir() else start.parent
    for candidate_dir in (directory, *directory.parents):
        candidate = candidate_dir / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def _validate_value_type(key: str, value: Any, context: str) -> None:  # noqa: ANN401 - dynamic config values
    """Raise if a config value has the wrong type."""
    expected = _TYPE_MAP[key]
    if not isinstance(value, expected):
        type_name = expected.__name__ if isinstance(expected, type) else str(expected)
        raise SubspaceError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"'{key}' must be {type_name}, got {type(value).__name__}",
            hint=f'Check the value of {key} in {context}.',
        )


def _validate_features(value: str) -> None:
    if value not in ALLOWED_FEATURES:
        raise SubspaceError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"features must be one of {sorted(ALLOWED_FEATURES)}, got '{value}'",
            hint="Use 'all' for --all-features or 'no-default' for --no-default-features.",
        )


def _validate_string_list(key: str, items: list[object], context: str) -> None:
    for item in items:
        if not isinstance(item, str):
            raise SubspaceError(
                code=E.CONFIG_INVALID_VALUE,
                message=f"'{key}' entries must be strings, got {type(item).__name__}",
                hint=f'Check the value of {key} in {context}.',
            )


def parse_config(raw: dict[str, Any], *, config_path: Path | None = None) -> SubspaceConfig:  # noqa: ANN401 - dynamic config
    """Validate a decoded ``subspace.toml`` table.

    Raises:
        SubspaceError: ``SS-CONFIG-INVALID-KEY`` or ``SS-CONFIG-INVALID-VALUE``.
    """
    context = str(config_path) if config_path is not None else CONFIG_FILENAME
    for key in raw:
        if key not in VALID_KEYS:
            suggestion = difflib.get_close_matches(key, VALID_KEYS, n=1, cutoff=0.6)
            raise SubspaceError(
                code=E.CONFIG_INVALID_KEY,
                message=f"Unknown key '{key}' in {context}",
                hint=f"Did you mean '{suggestion[0]}'?" if suggestion else f'Valid keys: {sorted(VALID_KEYS)}',
            )

    for key, value in raw.items():
        _validate_value_type(key, value, context)

    if 'features' in raw:
        _validate_features(raw['features'])
    if 'exclude_dirs' in raw:
        _validate_string_list('exclude_dirs', raw['exclude_dirs'], context)

    kwargs: dict[str, Any] = dict(raw)  # noqa: ANN401
    if 'exclude_dirs' in kwargs:
        kwargs['exclude_dirs'] = tuple(kwargs['exclude_dirs'])
    if 'cargo_home' in kwargs:
        kwargs['cargo_home'] = Path(os.path.expanduser(kwargs['cargo_home']))
    return SubspaceConfig(**kwargs, config_path=config_path)


def load_config(config_path: Path | None) -> SubspaceConfig:
    """Load and validate ``config_path``; defaults when it is ``None``.

    Raises:
        SubspaceError: If the file cannot be read, parsed or validated.
    """
    if config_path is None:
        logger.debug('no_subspace_config')
        return SubspaceConfig()

    try:
        text = config_path.read_text(encoding='utf-8')
    except OSError as exc:
        raise SubspaceError(
            code=E.CONFIG_PARSE_ERROR,
            message=f'Failed to read {config_path}: {exc}',
        ) from exc

    try:
        doc = tomlkit.parse(text)
    except tomlkit.exceptions.TOMLKitError as exc:
        raise SubspaceError(
            code=E.CONFIG_PARSE_ERROR,
            message=f'Failed to parse {config_path}: {exc}',
        ) from exc

    config = parse_config(doc.unwrap(), config_path=config_path)
    logger.debug('loaded_subspace_config', path=str(config_path))
    return config


__all__ = [
    'ALLOWED_FEATURES',
    'CONFIG_FILENAME',
    'SubspaceConfig',
    'VALID_KEYS',
    'find_config',
    'load_config',
    'parse_config',
]
