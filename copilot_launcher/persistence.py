"""
Best-effort persistence for the launcher's shared JSON files.

The registry, the terminal cache and the last-update timestamp are shared by
every launcher process on the host.  None of them may ever crash a caller:
reads degrade to "absent" and writes degrade to a silent no-op.  That policy
lives in :func:`best_effort` so it is applied the same way everywhere.
"""

from __future__ import annotations

import functools
import json
import logging
import os
import tempfile
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def best_effort(default: Any = None) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorate an I/O operation so any exception returns ``default`` instead.

    ``default`` may be a zero-argument callable (e.g. ``dict``) to produce a
    fresh value per call.
    """

    def decorator(fn: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except Exception as e:
                logger.debug("%s failed: %s", fn.__qualname__, e)
                return default() if callable(default) else default

        return wrapper

    return decorator


def write_text_atomic(path: str, content: str) -> None:
    """Write ``content`` to a temp file beside ``path`` and rename it into place."""
    directory = os.path.dirname(os.path.abspath(path))
    fd, temp_path = tempfile.mkstemp(prefix=f".{os.path.basename(path)}.", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
    finally:
        if os.path.exists(temp_path):
            os.unlink(temp_path)


class MappingStore(Protocol):
    """Repository interface over a persisted string-keyed mapping."""

    def exists(self) -> bool: ...

    def load(self) -> dict[str, Any] | None: ...

    def save(self, mapping: dict[str, Any]) -> bool: ...


class JsonFileStore:
    """A JSON object persisted as one file, written atomically."""

    def __init__(self, path: str):
        self.path = path

    def exists(self) -> bool:
        return os.path.exists(self.path)

    @best_effort(default=None)
    def load(self) -> dict[str, Any] | None:
        """Return the stored mapping, or None when absent or unparsable."""
        if not os.path.exists(self.path):
            return None
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            logger.debug("Ignoring non-object JSON in %s", self.path)
            return None
        return data

    @best_effort(default=False)
    def save(self, mapping: dict[str, Any]) -> bool:
        write_text_atomic(self.path, json.dumps(mapping))
        return True
