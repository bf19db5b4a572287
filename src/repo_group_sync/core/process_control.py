"""Process control helpers for background git execution and cancellation."""

import platform
import subprocess
import threading
from typing import Any, Dict, Set


IS_WINDOWS = platform.system() == "Windows"


def background_subprocess_kwargs() -> Dict[str, Any]:
    """Return subprocess kwargs that hide console windows on Windows."""
    if not IS_WINDOWS:
        return {}

    startupinfo = subprocess.STARTUPINFO()
    startupinfo.dwFlags |= subprocess.STARTF_USESHOWWINDOW
    startupinfo.wShowWindow = subprocess.SW_HIDE
    return {
        "startupinfo": startupinfo,
        "creationflags": subprocess.CREATE_NO_WINDOW,
    }


def terminate_process(process: subprocess.Popen, timeout: float = 2.0) -> None:
    """Terminate a process (and children on Windows) best-effort."""
    if process.poll() is not None:
        return

    try:
        if IS_WINDOWS:
            subprocess.run(
                ["taskkill", "/F", "/T", "/PID", str(process.pid)],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
                **background_subprocess_kwargs(),
            )
        else:
            process.terminate()
    except OSError:
        pass

    try:
        process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            pass


class CancelSignal:
    """Cancellation flag for one group run plus the git processes it owns.

    Setting the flag stops unstarted repositories from ever reaching the
    backend and terminates every tracked subprocess. Processes started after
    cancellation are terminated as soon as they are tracked.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._processes: Set[subprocess.Popen] = set()
        self._lock = threading.Lock()

    def cancel(self) -> None:
        """Signal cancellation and terminate running tracked subprocesses."""
        self._event.set()
        self.terminate_all()

    def is_canceled(self) -> bool:
        return self._event.is_set()

    def start_process(self, command, **kwargs) -> subprocess.Popen:
        """Start a subprocess in background mode and track it for cancellation."""
        popen_kwargs = dict(kwargs)
        for key, value in background_subprocess_kwargs().items():
            popen_kwargs.setdefault(key, value)

        process = subprocess.Popen(command, **popen_kwargs)
        with self._lock:
            self._processes.add(process)
        if self.is_canceled():
            terminate_process(process)
        return process

    def untrack(self, process: subprocess.Popen) -> None:
        with self._lock:
            self._processes.discard(process)

    def terminate_all(self) -> None:
        """Terminate all tracked subprocesses best-effort."""
        with self._lock:
            processes = list(self._processes)

        for process in processes:
            terminate_process(process)
            self.untrack(process)

    @property
    def tracked_count(self) -> int:
        with self._lock:
            return len(self._processes)
