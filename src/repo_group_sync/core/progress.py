"""Thread-safe store of the latest progress snapshot per repository."""

import threading
from collections import Counter
from typing import Dict, Iterable, Optional, Tuple

from .errors import InvalidGroupError
from ..domain.models import PhaseKind, ProgressPhase, ProgressSnapshot


class ProgressAggregator:
    """Latest :class:`ProgressSnapshot` per repository, in submission order.

    Writers are worker threads relaying backend callbacks; readers are render
    loops. Every operation holds the lock only for a dict lookup and swap, so
    a writer never waits behind I/O and a reader never blocks a transfer.

    Updates move forward only: a snapshot whose phase ranks below the current
    one, or any snapshot arriving after a terminal one, is dropped.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._order: Tuple[str, ...] = ()
        self._latest: Dict[str, ProgressSnapshot] = {}
        self._registered = False

    def register(self, repo_ids: Iterable[str]) -> None:
        """Fix the repository set and queue every id. Allowed once."""
        ids = tuple(repo_ids)
        duplicates = sorted(repo_id for repo_id, count in Counter(ids).items() if count > 1)
        if duplicates:
            raise InvalidGroupError(f"duplicate repository ids: {', '.join(duplicates)}")

        with self._lock:
            if self._registered:
                raise InvalidGroupError("repository set is already registered")
            self._order = ids
            self._latest = {repo_id: ProgressSnapshot(repo_id, ProgressPhase.queued()) for repo_id in ids}
            self._registered = True

    def update(self, snapshot: ProgressSnapshot) -> bool:
        """Record ``snapshot``; return ``False`` when it was dropped."""
        with self._lock:
            current = self._latest.get(snapshot.repo_id)
            if current is None:
                raise KeyError(snapshot.repo_id)
            if current.is_terminal:
                return False
            if snapshot.phase.kind.rank < current.phase.kind.rank:
                return False
            self._latest[snapshot.repo_id] = snapshot
            return True

    def snapshot_all(self) -> Tuple[ProgressSnapshot, ...]:
        with self._lock:
            return tuple(self._latest[repo_id] for repo_id in self._order)

    def get(self, repo_id: str) -> Optional[ProgressSnapshot]:
        with self._lock:
            return self._latest.get(repo_id)

    @property
    def repo_ids(self) -> Tuple[str, ...]:
        return self._order

    def counts(self) -> Dict[PhaseKind, int]:
        """Number of repositories currently in each phase."""
        tally: Dict[PhaseKind, int] = {kind: 0 for kind in PhaseKind}
        for snapshot in self.snapshot_all():
            tally[snapshot.phase.kind] += 1
        return tally

    def all_terminal(self) -> bool:
        return all(snapshot.is_terminal for snapshot in self.snapshot_all())
