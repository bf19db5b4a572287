from pathlib import Path
import sys
import threading
import time

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def _clear_log_callback():
    from repo_group_sync.infra.logger import set_log_callback

    set_log_callback(None)
    yield
    set_log_callback(None)


class FakeBackend:
    """In-memory backend: emits scripted phases, fails chosen destinations."""

    def __init__(self, phases=None, failures=None, delays=None, on_call=None):
        from repo_group_sync.domain.models import ProgressPhase

        self.phases = phases if phases is not None else [
            ProgressPhase.receiving(1, 2, 512),
            ProgressPhase.receiving(2, 2, 1024),
            ProgressPhase.resolving(1, 1),
            ProgressPhase.checking_out(3, 3),
        ]
        self.failures = dict(failures or {})
        self.delays = dict(delays or {})
        self.on_call = on_call
        self.calls = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def _perform(self, operation, key, on_progress):
        with self._lock:
            self.calls.append((operation, key))
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.on_call is not None:
                self.on_call(operation, key)
            time.sleep(self.delays.get(key, 0.01))
            for phase in self.phases:
                on_progress(phase)
            if key in self.failures:
                raise self.failures[key]
        finally:
            with self._lock:
                self.active -= 1

    def clone(self, url, dest, on_progress, *, branch="", cancel=None):
        self._perform("clone", Path(dest).name, on_progress)

    def update(self, path, on_progress, *, branch="", cancel=None):
        self._perform("update", Path(path).name, on_progress)


@pytest.fixture
def fake_backend_cls():
    return FakeBackend


@pytest.fixture
def make_descriptors(tmp_path):
    from repo_group_sync.domain.models import RepoDescriptor

    def _make(*names):
        return [
            RepoDescriptor(dest=str(tmp_path / name), source=f"https://example.com/{name}.git", name=name)
            for name in names
        ]

    return _make
