import threading
from collections import defaultdict

import pytest

from repo_group_sync.core.errors import (
    CanceledError,
    InvalidConfigError,
    InvalidGroupError,
    VcsError,
    VcsErrorCategory,
)
from repo_group_sync.core.orchestrator import GroupOrchestrator
from repo_group_sync.core.process_control import CancelSignal
from repo_group_sync.core.progress import ProgressAggregator
from repo_group_sync.core.task import TaskState
from repo_group_sync.domain.models import OutcomeStatus, PhaseKind, RepoDescriptor


class RecordingAggregator(ProgressAggregator):
    """Keeps every accepted snapshot per repository."""

    def __init__(self):
        super().__init__()
        self.accepted = defaultdict(list)
        self._record_lock = threading.Lock()

    def update(self, snapshot):
        accepted = super().update(snapshot)
        if accepted:
            with self._record_lock:
                self.accepted[snapshot.repo_id].append(snapshot.phase.kind)
        return accepted


def test_result_has_one_entry_per_descriptor_in_submission_order(fake_backend_cls, make_descriptors):
    # later repos finish first
    backend = fake_backend_cls(delays={"a": 0.15, "b": 0.08, "c": 0.01})
    orchestrator = GroupOrchestrator(backend)

    result = orchestrator.run(make_descriptors("a", "b", "c"), concurrency_limit=3)

    assert [o.repo_id for o in result] == ["a", "b", "c"]
    assert result.all_ok
    assert len(backend.calls) == 3


def test_partial_failure_does_not_affect_siblings(fake_backend_cls, make_descriptors):
    error = VcsError(VcsErrorCategory.NETWORK, "network_error", "Could not resolve host")
    backend = fake_backend_cls(failures={"b": error})
    aggregator = ProgressAggregator()
    orchestrator = GroupOrchestrator(backend, aggregator)

    result = orchestrator.run(make_descriptors("a", "b", "c"), concurrency_limit=1)

    assert [o.status for o in result] == [OutcomeStatus.OK, OutcomeStatus.ERR, OutcomeStatus.OK]
    assert result[1].error is error
    kinds = {s.repo_id: s.phase.kind for s in aggregator.snapshot_all()}
    assert kinds == {"a": PhaseKind.COMPLETED, "b": PhaseKind.FAILED, "c": PhaseKind.COMPLETED}
    assert "network_error" in aggregator.get("b").phase.reason
    assert orchestrator.state_of("b") == TaskState.FAILED


def test_concurrency_limit_is_never_exceeded(fake_backend_cls, make_descriptors):
    backend = fake_backend_cls(delays={name: 0.05 for name in "abcdefgh"})

    result = GroupOrchestrator(backend).run(make_descriptors(*"abcdefgh"), concurrency_limit=3)

    assert result.all_ok
    assert 1 <= backend.max_active <= 3


def test_snapshot_sequences_only_move_forward(fake_backend_cls, make_descriptors):
    aggregator = RecordingAggregator()
    GroupOrchestrator(fake_backend_cls(), aggregator).run(make_descriptors("a", "b"), concurrency_limit=2)

    for repo_id in ("a", "b"):
        ranks = [kind.rank for kind in aggregator.accepted[repo_id]]
        assert ranks == sorted(ranks)
        assert aggregator.accepted[repo_id][-1] == PhaseKind.COMPLETED
        assert sum(1 for kind in aggregator.accepted[repo_id] if kind.is_terminal) == 1


def test_cancel_after_first_repo_started(fake_backend_cls, make_descriptors):
    orchestrator = None

    def cancel_on_first_call(operation, key):
        if key == "a":
            orchestrator.cancel()

    backend = fake_backend_cls(on_call=cancel_on_first_call)
    orchestrator = GroupOrchestrator(backend)

    result = orchestrator.run(make_descriptors("a", "b", "c"), concurrency_limit=1)

    # the fake backend has no interruption point, so "a" completes normally
    assert result[0].status == OutcomeStatus.OK
    assert [o.status for o in result[1:]] == [OutcomeStatus.CANCELED, OutcomeStatus.CANCELED]
    assert isinstance(result[1].error, CanceledError)
    assert backend.calls == [("clone", "a")]
    assert orchestrator.aggregator.get("b").phase.kind == PhaseKind.CANCELED
    assert orchestrator.state_of("c") == TaskState.CANCELED


def test_cancel_before_run_marks_everything_canceled(fake_backend_cls, make_descriptors):
    backend = fake_backend_cls()
    cancel = CancelSignal()
    cancel.cancel()

    result = GroupOrchestrator(backend).run(make_descriptors("a", "b"), concurrency_limit=2, cancel=cancel)

    assert len(result.canceled) == 2
    assert backend.calls == []


def test_interrupt_while_waiting_cancels_queued_repos(monkeypatch, fake_backend_cls, make_descriptors):
    from repo_group_sync.core import orchestrator as orchestrator_module

    first_started = threading.Event()

    def interrupted_as_completed(futures):
        first_started.wait(5)
        raise KeyboardInterrupt
        yield  # pragma: no cover

    monkeypatch.setattr(orchestrator_module, "as_completed", interrupted_as_completed)
    backend = fake_backend_cls(delays={"a": 0.1}, on_call=lambda operation, key: first_started.set())
    orchestrator = GroupOrchestrator(backend)

    with pytest.raises(KeyboardInterrupt):
        orchestrator.run(make_descriptors(*"abcde"), concurrency_limit=1)

    assert backend.calls == [("clone", "a")]
    assert [orchestrator.state_of(name) for name in "bcde"] == [TaskState.CANCELED] * 4
    assert orchestrator.aggregator.get("e").phase.kind == PhaseKind.CANCELED


def test_interrupted_running_task_is_recorded_as_failed(fake_backend_cls, make_descriptors):
    interrupted = VcsError(VcsErrorCategory.INTERRUPTED, "interrupted")
    backend = fake_backend_cls(failures={"a": interrupted})

    result = GroupOrchestrator(backend).run(make_descriptors("a", "b"), concurrency_limit=2)

    assert result[0].status == OutcomeStatus.ERR
    assert result[1].status == OutcomeStatus.OK


@pytest.mark.parametrize("names", [(), ("a", "a")])
def test_invalid_group_invokes_backend_zero_times(fake_backend_cls, make_descriptors, names):
    backend = fake_backend_cls()
    with pytest.raises(InvalidGroupError):
        GroupOrchestrator(backend).run(make_descriptors(*names), concurrency_limit=2)
    assert backend.calls == []


def test_duplicate_destinations_without_names_are_rejected(fake_backend_cls, tmp_path):
    dest = str(tmp_path / "same")
    descriptors = [RepoDescriptor(dest=dest, source="https://x/a.git"), RepoDescriptor(dest=dest, source="https://x/b.git")]
    with pytest.raises(InvalidGroupError):
        GroupOrchestrator(fake_backend_cls()).run(descriptors, concurrency_limit=1)


@pytest.mark.parametrize("limit", [0, -1, "2", 1.5])
def test_invalid_concurrency_limit(fake_backend_cls, make_descriptors, limit):
    backend = fake_backend_cls()
    with pytest.raises(InvalidConfigError):
        GroupOrchestrator(backend).run(make_descriptors("a"), concurrency_limit=limit)
    assert backend.calls == []


def test_unexpected_task_exception_is_recorded_as_error(fake_backend_cls, make_descriptors):
    backend = fake_backend_cls(failures={"a": RuntimeError("boom")})
    orchestrator = GroupOrchestrator(backend)

    result = orchestrator.run(make_descriptors("a", "b"), concurrency_limit=2)

    assert result[0].status == OutcomeStatus.ERR
    assert result[0].error.category == VcsErrorCategory.UNKNOWN
    assert result[1].ok
    assert orchestrator.aggregator.get("a").phase.kind == PhaseKind.FAILED


def test_orchestrator_can_run_twice_with_own_aggregator(fake_backend_cls, make_descriptors):
    orchestrator = GroupOrchestrator(fake_backend_cls())
    orchestrator.run(make_descriptors("a"), concurrency_limit=1)
    result = orchestrator.run(make_descriptors("b"), concurrency_limit=1)

    assert [o.repo_id for o in result] == ["b"]
    assert orchestrator.aggregator.repo_ids == ("b",)
