"""Run clone/update tasks for a group of repositories on a bounded worker pool."""

from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Sequence

from .errors import InvalidConfigError, InvalidGroupError, VcsError, VcsErrorCategory
from .git_backend import VcsBackend
from .process_control import CancelSignal
from .progress import ProgressAggregator
from .task import RepoTask, TaskState
from ..domain.models import GroupResult, RepoDescriptor, RepoOutcome
from ..infra.logger import log_error, log_info, log_warning


def validate_group(descriptors: Sequence[RepoDescriptor], concurrency_limit: int) -> None:
    """Reject a run before any work starts."""
    if not descriptors:
        raise InvalidGroupError("no repositories in group")

    counts = Counter(d.repo_id for d in descriptors)
    duplicates = sorted(repo_id for repo_id, count in counts.items() if count > 1)
    if duplicates:
        raise InvalidGroupError(f"duplicate repository ids: {', '.join(duplicates)}")

    if isinstance(concurrency_limit, bool) or not isinstance(concurrency_limit, int):
        raise InvalidConfigError(f"concurrency limit must be an integer: {concurrency_limit!r}")
    if concurrency_limit < 1:
        raise InvalidConfigError(f"concurrency limit must be >= 1: {concurrency_limit}")


class GroupOrchestrator:
    """Drive one :class:`RepoTask` per descriptor and collect the outcomes.

    At most ``concurrency_limit`` tasks run at once; the rest wait in
    submission order. A failing repository never cancels, pauses or reorders
    its siblings. ``run`` only raises for invalid input and otherwise returns
    a :class:`GroupResult` once every repository is terminal.

    Cancellation is best-effort: repositories that have not started are
    marked canceled without touching the backend; running git processes are
    terminated and finish as whatever the backend reports.
    """

    def __init__(self, backend: VcsBackend, aggregator: Optional[ProgressAggregator] = None):
        self.backend = backend
        self._owns_aggregator = aggregator is None
        self.aggregator = aggregator or ProgressAggregator()
        self._cancel: Optional[CancelSignal] = None
        self._tasks: Dict[str, RepoTask] = {}

    def cancel(self) -> None:
        """Request cancellation of the current run (no-op before ``run``)."""
        if self._cancel is not None:
            self._cancel.cancel()

    def state_of(self, repo_id: str) -> TaskState:
        return self._tasks[repo_id].state

    def run(
        self,
        descriptors: Sequence[RepoDescriptor],
        concurrency_limit: int,
        cancel: Optional[CancelSignal] = None,
    ) -> GroupResult:
        descriptors = list(descriptors)
        validate_group(descriptors, concurrency_limit)

        if self._owns_aggregator and self.aggregator.repo_ids:
            self.aggregator = ProgressAggregator()
        self._cancel = cancel or CancelSignal()
        tasks: List[RepoTask] = [
            RepoTask(d, self.backend, self.aggregator, self._cancel) for d in descriptors
        ]
        self._tasks = {task.repo_id: task for task in tasks}
        self.aggregator.register(task.repo_id for task in tasks)

        total = len(tasks)
        log_info(f"start group run, total: {total}, parallel tasks: {concurrency_limit}")

        outcomes: Dict[str, RepoOutcome] = {}
        with ThreadPoolExecutor(max_workers=concurrency_limit, thread_name_prefix="repo-task") as executor:
            future_to_task = {executor.submit(task.run): task for task in tasks}

            try:
                for future in as_completed(future_to_task):
                    task = future_to_task[future]
                    try:
                        outcomes[task.repo_id] = future.result()
                    except Exception as exc:
                        log_error(f"task exception: {task.repo_id} - {exc}")
                        error = VcsError(VcsErrorCategory.UNKNOWN, "exception", str(exc))
                        outcomes[task.repo_id] = task.mark_failed(error)
            except BaseException:
                # queued tasks see the signal and finish as canceled while the pool drains
                self._cancel.cancel()
                raise

        result = GroupResult(tuple(outcomes[task.repo_id] for task in tasks))
        if self._cancel.is_canceled():
            log_warning(f"group run canceled, {len(result.canceled)} repositories not started")
        log_info(
            f"group run finished, success: {len(result.succeeded)}, "
            f"fail: {len(result.failed)}, canceled: {len(result.canceled)}"
        )
        return result
