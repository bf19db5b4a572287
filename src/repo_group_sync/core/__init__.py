"""Group orchestration, progress aggregation and the git backend."""

from .errors import (
    CanceledError,
    InvalidConfigError,
    InvalidGroupError,
    SyncError,
    VcsError,
    VcsErrorCategory,
)
from .git_backend import GitCliBackend, VcsBackend
from .orchestrator import GroupOrchestrator
from .process_control import CancelSignal
from .progress import ProgressAggregator
from .render_loop import ProgressRenderer, RenderLoop
from .task import RepoTask, TaskState

__all__ = [
    "CanceledError",
    "CancelSignal",
    "GitCliBackend",
    "GroupOrchestrator",
    "InvalidConfigError",
    "InvalidGroupError",
    "ProgressAggregator",
    "ProgressRenderer",
    "RenderLoop",
    "RepoTask",
    "SyncError",
    "TaskState",
    "VcsBackend",
    "VcsError",
    "VcsErrorCategory",
]
