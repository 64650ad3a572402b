"""Generic PID-file daemon wrapper around a start/stop service."""

import logging
import os
import signal
import time
from pathlib import Path
from typing import Optional, Protocol, Union

from .exceptions import DaemonAlreadyRunningError, DaemonError, DaemonNotRunningError

logger = logging.getLogger(__name__)


class Service(Protocol):
    """Anything the daemon can manage."""

    def start(self) -> None: ...

    def stop(self) -> None: ...


def is_process_running(pid: int) -> bool:
    """Check whether a process with the given pid exists."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class Daemon:
    """
    Runs a service in the foreground and records it in a PID file.

    A second invocation with the same name can find the running instance
    through the PID file and interrupt it with SIGINT.
    """

    def __init__(self, name: str, service: Optional[Service] = None, pid_dir: Union[str, Path] = "."):
        """
        Initialize the daemon.

        Args:
            name: Identifier used for the PID file name (".<name>.pid")
            service: Service to run; only needed for start()
            pid_dir: Directory holding the PID file
        """
        self.name = name
        self.service = service
        self.pid_file = Path(pid_dir) / f".{name}.pid"
        self._pid: Optional[int] = None
        self._foreground = False
        self._running = False

    @property
    def pid(self) -> Optional[int]:
        return self._pid

    def start(self) -> None:
        """
        Write the PID file and start the service in this process.

        Raises:
            DaemonAlreadyRunningError: If another live process owns the PID file
            DaemonError: If there is no service or the PID file cannot be written
        """
        if self.service is None:
            raise DaemonError(f"{self.name} has no service to start")
        if self.is_running():
            raise DaemonAlreadyRunningError(f"{self.name} is already running (pid {self._pid})")

        pid = os.getpid()
        try:
            self.pid_file.write_text(str(pid), encoding="utf-8")
        except OSError as e:
            raise DaemonError(f"cannot write {self.pid_file}: {e}") from e

        try:
            self.service.start()
        except Exception:
            self._remove_pid_file()
            raise

        self._pid = pid
        self._foreground = True
        self._running = True
        logger.info(f"{self.name} started (pid {pid})")

    def is_running(self) -> bool:
        """Check for an instance started here or recorded in the PID file."""
        if self._running:
            return True

        pid = self._read_pid()
        if pid is None:
            return False
        self._pid = pid
        return is_process_running(pid)

    def stop(self, timeout: float = 5.0) -> None:
        """
        Stop the running instance.

        An instance started by this object is stopped directly. Any other
        instance is sent SIGINT and waited for.

        Raises:
            DaemonNotRunningError: If nothing is running
            DaemonError: If the process cannot be signalled or does not exit
        """
        if not self.is_running():
            raise DaemonNotRunningError(f"{self.name} does not exist")

        if self._foreground:
            self.service.stop()
            self._remove_pid_file()
            self._running = False
            self._foreground = False
            logger.info(f"{self.name} stopped")
            return

        pid = self._pid
        try:
            os.kill(pid, signal.SIGINT)
        except OSError as e:
            raise DaemonError(f"cannot signal process {pid}: {e}") from e

        deadline = time.monotonic() + timeout
        while is_process_running(pid):
            if time.monotonic() >= deadline:
                raise DaemonError(f"cannot stop the process: {pid}")
            time.sleep(0.1)

        # The process normally removes its own PID file; clear it if it did not.
        if self._read_pid() == pid:
            self._remove_pid_file()
        logger.info(f"{self.name} (pid {pid}) stopped")

    def _read_pid(self) -> Optional[int]:
        try:
            return int(self.pid_file.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return None

    def _remove_pid_file(self) -> None:
        try:
            self.pid_file.unlink()
        except FileNotFoundError:
            pass
