"""
Host-wide named mutual exclusion.

Windows uses a kernel named mutex (pywin32).  Elsewhere an exclusive
``flock`` on ``<lock dir>/<name>.lock`` plays the same role.  In both cases
the OS releases the lock when the owning process exits, so a crashed holder
never wedges the other launchers.
"""

from __future__ import annotations

import errno
import logging
import os
import re
import sys
import time

from .constants import LOCK_DIR, LOCK_POLL_INTERVAL

logger = logging.getLogger(__name__)


class NamedMutex:
    """Common interface; use :func:`create_named_mutex` to get one."""

    def __init__(self, name: str):
        self.name = name

    @property
    def held(self) -> bool:
        raise NotImplementedError

    def acquire(self, timeout: float = 0.0) -> bool:
        """Try to take the mutex, waiting at most ``timeout`` seconds (0 = don't wait)."""
        raise NotImplementedError

    def release(self) -> None:
        raise NotImplementedError

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.release()


class FlockMutex(NamedMutex):
    def __init__(self, name: str, lock_dir: str = LOCK_DIR):
        super().__init__(name)
        safe = re.sub(r"[^A-Za-z0-9_.-]+", "-", name).strip("-") or "mutex"
        self.path = os.path.join(lock_dir, f"{safe}.lock")
        self._handle = None

    @property
    def held(self) -> bool:
        return self._handle is not None

    def acquire(self, timeout: float = 0.0) -> bool:
        import fcntl

        if self._handle is not None:
            return True
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        handle = open(self.path, "a+", encoding="utf-8")  # pylint: disable=consider-using-with
        deadline = time.monotonic() + max(0.0, timeout)
        while True:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                self._handle = handle
                return True
            except OSError as e:
                if e.errno not in (errno.EAGAIN, errno.EACCES, errno.EWOULDBLOCK):
                    handle.close()
                    raise
            if time.monotonic() >= deadline:
                handle.close()
                return False
            time.sleep(LOCK_POLL_INTERVAL)

    def release(self) -> None:
        import fcntl

        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()


class Win32Mutex(NamedMutex):
    """Kernel named mutex.

    Ownership is per thread: a mutex released from another thread than the one
    that acquired it is only closed, and Windows frees it when that thread ends.
    """

    def __init__(self, name: str):
        super().__init__(name)
        self._handle = None

    @property
    def held(self) -> bool:
        return self._handle is not None

    def acquire(self, timeout: float = 0.0) -> bool:
        import win32api
        import win32event

        if self._handle is not None:
            return True
        handle = win32event.CreateMutex(None, False, self.name)
        rc = win32event.WaitForSingleObject(handle, int(max(0.0, timeout) * 1000))
        if rc in (win32event.WAIT_OBJECT_0, win32event.WAIT_ABANDONED):
            self._handle = handle
            return True
        win32api.CloseHandle(handle)
        return False

    def release(self) -> None:
        import pywintypes
        import win32api
        import win32event

        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            win32event.ReleaseMutex(handle)
        except pywintypes.error as e:
            logger.debug("ReleaseMutex(%s) from non-owning thread: %s", self.name, e)
        finally:
            win32api.CloseHandle(handle)


def create_named_mutex(name: str, lock_dir: str = LOCK_DIR) -> NamedMutex:
    """Return the platform's named mutex for ``name`` (not yet acquired)."""
    if sys.platform == "win32":
        return Win32Mutex(name)
    return FlockMutex(name, lock_dir)
