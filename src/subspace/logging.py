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


"""Structured logging for cargo-subspace.

Configures `structlog <https://www.structlog.org/>`_ with two renderers:

- **Console**: human-readable output, colored only on a TTY.
- **JSON** (``--json-log``): one JSON object per line.

rust-analyzer reads the discover protocol from stdout, so logs never go
there. By default they are appended to a log file under
``~/.local/state/cargo-subspace``; ``--log-to-stderr`` sends them to
stderr instead.

Usage::

    from subspace.logging import configure_logging, get_logger

    configure_logging(verbose=True, log_file=default_log_file())
    log = get_logger()
    log.info('pruned_graph', packages=42)
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import structlog

DEFAULT_LOG_DIR = Path('.local') / 'state' / 'cargo-subspace'
LOG_FILE_NAME = 'cargo-subspace.log'


def default_log_file(log_location: Path | None = None) -> Path:
    """Return the log file path, creating its directory.

    Args:
        log_location: Directory for the log file. Defaults to
            ``~/.local/state/cargo-subspace``.
    """
    directory = log_location or Path.home() / DEFAULT_LOG_DIR
    directory.mkdir(parents=True, exist_ok=True)
    return directory / LOG_FILE_NAME


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    json_log: bool = False,
    log_file: Path | None = None,
) -> None:
    """Configure structlog for cargo-subspace.

    Should be called once at startup, before any logging calls.

    Args:
        verbose: Enable debug-level output.
        quiet: Only report errors.
        json_log: Use JSON output instead of console output.
        log_file: Append to this file instead of writing to stderr.
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.WARNING

    if log_file is not None:
        logging.basicConfig(
            format='%(message)s',
            filename=str(log_file),
            filemode='a',
            encoding='utf-8',
            level=level,
            force=True,
        )
    else:
        logging.basicConfig(
            format='%(message)s',
            stream=sys.stderr,
            level=level,
            force=True,
        )

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_log:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=log_file is None and sys.stderr.isatty(),
        )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    for handler in logging.root.handlers:
        handler.setFormatter(formatter)


def get_logger(name: str = 'subspace') -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger.

    Args:
        name: Logger name, used for filtering and identification.
    """
    return structlog.get_logger(name)


__all__ = [
    'configure_logging',
    'default_log_file',
    'get_logger',
]
