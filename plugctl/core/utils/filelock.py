"""
Cross-platform file locks

Exclusive advisory locks shared by every plugctl process on the machine.

- Unix/Linux/macOS: fcntl.flock
- Windows: msvcrt.locking

Usage:
    from plugctl.core.utils.filelock import exclusive_lock

    with exclusive_lock(Path("plugins.toml.lock"), timeout=10):
        # ... critical section ...
"""

import logging
import platform
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

# Delay between attempts while waiting for a held lock
POLL_INTERVAL = 0.05


class FileLockError(Exception):
    """File lock operation failed"""
    pass


class LockAcquisitionError(FileLockError):
    """Lock is held by another process"""
    pass


def acquire_lock(file_handle, non_blocking: bool = True):
    """
    Acquire an exclusive lock on an open file

    Args:
        file_handle: Open file object
        non_blocking: Fail immediately if the lock is held (False: wait)

    Raises:
        LockAcquisitionError: Lock held by another process (non_blocking=True only)
        FileLockError: Any other lock failure
    """
    if platform.system() == "Windows":
        _acquire_lock_windows(file_handle, non_blocking)
    else:
        _acquire_lock_unix(file_handle, non_blocking)

    logger.debug(f"Acquired lock on {file_handle.name}")


def release_lock(file_handle):
    """
    Release a lock taken with acquire_lock

    Raises:
        FileLockError: Unlock failed
    """
    try:
        if platform.system() == "Windows":
            _release_lock_windows(file_handle)
        else:
            _release_lock_unix(file_handle)

        logger.debug(f"Released lock on {file_handle.name}")

    except Exception as e:
        logger.error(f"Failed to release lock: {e}")
        raise FileLockError(f"Failed to release lock: {e}") from e


@contextmanager
def exclusive_lock(lock_path: Path, timeout: Optional[float] = None) -> Iterator[None]:
    """
    Hold an exclusive lock on lock_path for the duration of the block

    Args:
        lock_path: Lock file (created if missing, never deleted)
        timeout: Seconds to keep retrying; None waits forever

    Raises:
        LockAcquisitionError: Lock still held when timeout expired
        FileLockError: Lock file could not be opened or locked
    """
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(lock_path, "a+", encoding="utf-8")
    except OSError as e:
        raise FileLockError(f"Cannot open lock file {lock_path}: {e}") from e

    try:
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            try:
                acquire_lock(handle, non_blocking=True)
                break
            except LockAcquisitionError:
                if deadline is not None and time.monotonic() >= deadline:
                    raise
                time.sleep(POLL_INTERVAL)

        try:
            yield
        finally:
            release_lock(handle)
    finally:
        handle.close()


# ============================================
# Unix/Linux/macOS
# ============================================

def _acquire_lock_unix(file_handle, non_blocking: bool):
    import fcntl

    try:
        flags = fcntl.LOCK_EX
        if non_blocking:
            flags |= fcntl.LOCK_NB

        fcntl.flock(file_handle.fileno(), flags)

    except BlockingIOError as e:
        raise LockAcquisitionError(
            f"Lock is held by another process: {file_handle.name}"
        ) from e
    except OSError as e:
        raise FileLockError(f"fcntl.flock failed: {e}") from e


def _release_lock_unix(file_handle):
    import fcntl

    try:
        fcntl.flock(file_handle.fileno(), fcntl.LOCK_UN)
    except OSError as e:
        raise FileLockError(f"fcntl.flock unlock failed: {e}") from e


# ============================================
# Windows
# ============================================

def _acquire_lock_windows(file_handle, non_blocking: bool):
    import msvcrt

    try:
        # msvcrt locks a byte range; lock the first byte of the file
        file_handle.seek(0)
        mode = msvcrt.LK_NBLCK if non_blocking else msvcrt.LK_LOCK
        msvcrt.locking(file_handle.fileno(), mode, 1)

    except OSError as e:
        # errno 13 (EACCES) / 36 (EDEADLOCK): held by someone else
        if e.errno in (13, 36):
            raise LockAcquisitionError(
                f"Lock is held by another process: {file_handle.name}"
            ) from e
        raise FileLockError(f"msvcrt.locking failed: {e}") from e


def _release_lock_windows(file_handle):
    import msvcrt

    try:
        file_handle.seek(0)
        msvcrt.locking(file_handle.fileno(), msvcrt.LK_UNLCK, 1)
    except OSError as e:
        raise FileLockError(f"msvcrt.locking unlock failed: {e}") from e
