"""Process-scoped registry of running extension clients"""

import atexit
import logging
import threading
from typing import List, Protocol

logger = logging.getLogger(__name__)


class RuntimeHandle(Protocol):
    """A running extension process (subprocess.Popen satisfies this)"""

    def kill(self) -> None:
        ...


class ClientLifecycle:
    """
    Tracks extension runtime handles and tears them all down once

    One instance is owned by the CLI for the life of the process.
    cleanup_all() is safe to call more than once; only the first call
    after a registration does any work.
    """

    def __init__(self):
        self._handles: List[RuntimeHandle] = []
        self._lock = threading.Lock()
        self._exit_hook_installed = False

    def register(self, handle: RuntimeHandle) -> RuntimeHandle:
        with self._lock:
            self._handles.append(handle)
        return handle

    def unregister(self, handle: RuntimeHandle) -> None:
        with self._lock:
            if handle in self._handles:
                self._handles.remove(handle)

    @property
    def active(self) -> int:
        return len(self._handles)

    def cleanup_all(self) -> None:
        """Kill every tracked client; failures are logged and do not stop the teardown"""
        with self._lock:
            handles, self._handles = self._handles, []

        if not handles:
            return

        logger.debug(f"Tearing down {len(handles)} extension client(s) before exit")
        for handle in handles:
            try:
                handle.kill()
            except Exception as e:
                logger.warning(f"Failed to stop extension client {handle!r}: {e}")

    def install_exit_hook(self) -> None:
        """Run cleanup_all() at interpreter exit (registered at most once)"""
        if self._exit_hook_installed:
            return
        atexit.register(self.cleanup_all)
        self._exit_hook_installed = True
