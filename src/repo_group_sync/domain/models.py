"""Domain data structures shared by tasks, the aggregator and renderers."""

import time
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple


class OperationKind(str, Enum):
    CLONE = "clone"
    UPDATE = "update"


@dataclass(frozen=True)
class RepoDescriptor:
    """One repository of a group: where it comes from and where it lives."""

    dest: str
    source: str = ""
    kind: OperationKind = OperationKind.CLONE
    branch: str = ""
    name: str = ""

    @property
    def repo_id(self) -> str:
        return self.name or str(self.dest)

    @property
    def dest_path(self) -> Path:
        return Path(self.dest)


class PhaseKind(IntEnum):
    """Stages of a repository operation, ordered by how far along they are.

    The three terminal kinds share the highest rank, so no terminal state can
    be replaced by another through an ordinal comparison.
    """

    QUEUED = 0
    CONNECTING = 1
    RECEIVING = 2
    RESOLVING = 3
    CHECKING_OUT = 4
    COMPLETED = 5
    FAILED = 6
    CANCELED = 7

    @property
    def rank(self) -> int:
        return min(int(self), 5)

    @property
    def is_terminal(self) -> bool:
        return self >= PhaseKind.COMPLETED


@dataclass(frozen=True)
class ProgressPhase:
    kind: PhaseKind
    received_objects: int = 0
    total_objects: int = 0
    received_bytes: int = 0
    indexed_deltas: int = 0
    total_deltas: int = 0
    checked_out_files: int = 0
    total_files: int = 0
    reason: str = ""

    @classmethod
    def queued(cls) -> "ProgressPhase":
        return cls(PhaseKind.QUEUED)

    @classmethod
    def connecting(cls) -> "ProgressPhase":
        return cls(PhaseKind.CONNECTING)

    @classmethod
    def receiving(cls, received_objects: int, total_objects: int, received_bytes: int = 0) -> "ProgressPhase":
        return cls(
            PhaseKind.RECEIVING,
            received_objects=received_objects,
            total_objects=total_objects,
            received_bytes=received_bytes,
        )

    @classmethod
    def resolving(cls, indexed_deltas: int, total_deltas: int) -> "ProgressPhase":
        return cls(PhaseKind.RESOLVING, indexed_deltas=indexed_deltas, total_deltas=total_deltas)

    @classmethod
    def checking_out(cls, checked_out_files: int, total_files: int) -> "ProgressPhase":
        return cls(PhaseKind.CHECKING_OUT, checked_out_files=checked_out_files, total_files=total_files)

    @classmethod
    def completed(cls) -> "ProgressPhase":
        return cls(PhaseKind.COMPLETED)

    @classmethod
    def failed(cls, reason: str) -> "ProgressPhase":
        return cls(PhaseKind.FAILED, reason=reason)

    @classmethod
    def canceled(cls, reason: str = "canceled") -> "ProgressPhase":
        return cls(PhaseKind.CANCELED, reason=reason)

    @property
    def is_terminal(self) -> bool:
        return self.kind.is_terminal

    @property
    def fraction(self) -> Optional[float]:
        """Progress within the current phase in ``[0, 1]``, ``None`` if unknown."""
        if self.kind == PhaseKind.RECEIVING:
            done, total = self.received_objects, self.total_objects
        elif self.kind == PhaseKind.RESOLVING:
            done, total = self.indexed_deltas, self.total_deltas
        elif self.kind == PhaseKind.CHECKING_OUT:
            done, total = self.checked_out_files, self.total_files
        elif self.kind == PhaseKind.COMPLETED:
            return 1.0
        else:
            return None
        if total <= 0:
            return None
        return min(1.0, done / total)


@dataclass(frozen=True)
class ProgressSnapshot:
    repo_id: str
    phase: ProgressPhase
    updated_at: float = field(default_factory=time.time)

    @property
    def is_terminal(self) -> bool:
        return self.phase.is_terminal


class OutcomeStatus(str, Enum):
    OK = "ok"
    ERR = "err"
    CANCELED = "canceled"


@dataclass(frozen=True)
class RepoOutcome:
    """Final result for one repository of a group."""

    repo_id: str
    status: OutcomeStatus
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.OK


@dataclass(frozen=True)
class GroupResult:
    """Outcomes of a group run, in submission order."""

    outcomes: Tuple[RepoOutcome, ...]

    def __iter__(self) -> Iterator[RepoOutcome]:
        return iter(self.outcomes)

    def __len__(self) -> int:
        return len(self.outcomes)

    def __getitem__(self, index: int) -> RepoOutcome:
        return self.outcomes[index]

    @property
    def succeeded(self) -> Tuple[RepoOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status == OutcomeStatus.OK)

    @property
    def failed(self) -> Tuple[RepoOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status == OutcomeStatus.ERR)

    @property
    def canceled(self) -> Tuple[RepoOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status == OutcomeStatus.CANCELED)

    @property
    def all_ok(self) -> bool:
        return all(o.ok for o in self.outcomes)

    def by_id(self) -> Dict[str, RepoOutcome]:
        return {o.repo_id: o for o in self.outcomes}
