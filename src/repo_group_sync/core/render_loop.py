"""Periodic redraw of the aggregator's view."""

import threading
from typing import Optional, Protocol, Sequence

from ..config import RENDER_INTERVAL
from ..domain.models import ProgressSnapshot
from ..infra.logger import log_warning
from .progress import ProgressAggregator


class ProgressRenderer(Protocol):
    """Draws one line per repository from an ordered snapshot sequence."""

    def render(self, snapshots: Sequence[ProgressSnapshot]) -> None:
        ...


class RenderLoop:
    """Background thread pushing ``snapshot_all()`` to a renderer every tick.

    Used as a context manager around a group run. Leaving the block stops the
    thread and draws one last frame, so the final frame always shows the
    terminal state of every repository.
    """

    def __init__(
        self,
        aggregator: ProgressAggregator,
        renderer: ProgressRenderer,
        interval: float = RENDER_INTERVAL,
    ):
        if interval <= 0:
            raise ValueError(f"render interval must be positive: {interval}")
        self.aggregator = aggregator
        self.renderer = renderer
        self.interval = interval
        self.frames = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def render_once(self) -> None:
        self.renderer.render(self.aggregator.snapshot_all())
        self.frames += 1

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.render_once()
            except Exception as exc:
                # a broken frame must not kill the display for the rest of the run
                log_warning(f"render failed: {exc}")

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="render-loop", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join()
        self._thread = None
        self.render_once()

    def __enter__(self) -> "RenderLoop":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
