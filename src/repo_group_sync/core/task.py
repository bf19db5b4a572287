"""Single-repository clone/update task."""

import threading
import time
from enum import Enum
from pathlib import Path
from typing import Optional

from .errors import CanceledError, VcsError, VcsErrorCategory
from .git_backend import VcsBackend
from .process_control import CancelSignal
from .progress import ProgressAggregator
from ..domain.models import (
    OperationKind,
    OutcomeStatus,
    ProgressPhase,
    ProgressSnapshot,
    RepoDescriptor,
    RepoOutcome,
)
from ..infra.logger import log_error, log_success, log_warning


class TaskState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.COMPLETED, TaskState.FAILED, TaskState.CANCELED)


def _is_work_tree(path: Path) -> bool:
    return (path / ".git").exists()


def _is_empty_dir(path: Path) -> bool:
    return path.is_dir() and not any(path.iterdir())


class RepoTask:
    """Runs one descriptor against the backend and reports its progress.

    The operation follows the destination, not the requested kind: an absent
    or empty destination is cloned, an existing work tree is updated. The task
    only ever writes its own aggregator entry and its own destination.
    """

    def __init__(
        self,
        descriptor: RepoDescriptor,
        backend: VcsBackend,
        aggregator: ProgressAggregator,
        cancel: Optional[CancelSignal] = None,
    ):
        self.descriptor = descriptor
        self.backend = backend
        self.aggregator = aggregator
        self.cancel = cancel or CancelSignal()
        self._state = TaskState.PENDING
        self._state_lock = threading.Lock()

    @property
    def repo_id(self) -> str:
        return self.descriptor.repo_id

    @property
    def state(self) -> TaskState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: TaskState) -> None:
        with self._state_lock:
            self._state = state

    def _report(self, phase: ProgressPhase) -> None:
        self.aggregator.update(ProgressSnapshot(self.repo_id, phase, time.time()))

    def _resolve_operation(self) -> OperationKind:
        dest = self.descriptor.dest_path
        if _is_work_tree(dest):
            return OperationKind.UPDATE
        if not dest.exists() or _is_empty_dir(dest):
            if not self.descriptor.source:
                if self.descriptor.kind == OperationKind.UPDATE:
                    raise VcsError.repo_not_found(str(dest))
                raise VcsError.url_not_set(self.repo_id)
            return OperationKind.CLONE
        raise VcsError(
            VcsErrorCategory.IO,
            "destination_exists",
            f"destination path '{dest}' already exists and is not a git work tree",
        )

    def _perform(self) -> OperationKind:
        operation = self._resolve_operation()
        if operation == OperationKind.CLONE:
            self.backend.clone(
                self.descriptor.source,
                self.descriptor.dest_path,
                self._report,
                branch=self.descriptor.branch,
                cancel=self.cancel,
            )
        else:
            self.backend.update(
                self.descriptor.dest_path,
                self._report,
                branch=self.descriptor.branch,
                cancel=self.cancel,
            )
        return operation

    def mark_canceled(self) -> RepoOutcome:
        """Record cancellation for a task that never reached the backend."""
        self._set_state(TaskState.CANCELED)
        self._report(ProgressPhase.canceled())
        log_warning(f"canceled before start: {self.repo_id}")
        return RepoOutcome(self.repo_id, OutcomeStatus.CANCELED, CanceledError(self.repo_id))

    def mark_failed(self, error: VcsError) -> RepoOutcome:
        self._set_state(TaskState.FAILED)
        self._report(ProgressPhase.failed(str(error)))
        log_error(f"{self.descriptor.kind.value} failed [{error.reason}]: {self.repo_id}")
        return RepoOutcome(self.repo_id, OutcomeStatus.ERR, error)

    def run(self) -> RepoOutcome:
        if self.cancel.is_canceled():
            return self.mark_canceled()

        self._set_state(TaskState.RUNNING)
        self._report(ProgressPhase.connecting())
        try:
            operation = self._perform()
        except VcsError as exc:
            return self.mark_failed(exc)
        except OSError as exc:
            return self.mark_failed(VcsError(VcsErrorCategory.IO, "io_error", str(exc)))

        self._set_state(TaskState.COMPLETED)
        self._report(ProgressPhase.completed())
        log_success(f"{operation.value} success: {self.repo_id}")
        return RepoOutcome(self.repo_id, OutcomeStatus.OK)
