"""Application service running a group with live progress."""

import time
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from ..config import RENDER_INTERVAL
from ..core.failed_repos import save_failed_repos
from ..core.git_backend import GitCliBackend, VcsBackend
from ..core.orchestrator import GroupOrchestrator, validate_group
from ..core.process_control import CancelSignal
from ..core.progress import ProgressAggregator
from ..core.render_loop import RenderLoop
from ..domain.models import GroupResult, RepoDescriptor
from ..ui.renderer import NullRenderer


def summarize(result: GroupResult, duration: int, failed_file: str = "") -> Dict[str, Any]:
    """UI-friendly summary of a group result."""
    return {
        "total": len(result),
        "success": len(result.succeeded),
        "fail": len(result.failed),
        "canceled": len(result.canceled),
        "duration": duration,
        "failed_file": failed_file,
        "failed_reasons": {
            outcome.repo_id: getattr(outcome.error, "reason", "canceled")
            for outcome in result
            if not outcome.ok
        },
    }


def run_group(
    descriptors: Sequence[RepoDescriptor],
    concurrency: int,
    backend: Optional[VcsBackend] = None,
    renderer=None,
    interval: float = RENDER_INTERVAL,
    cancel: Optional[CancelSignal] = None,
    failed_repos_file: Optional[Path] = None,
    dest_dir: Path = Path("."),
) -> Tuple[GroupResult, Dict[str, Any]]:
    """Run a group under a render loop and return ``(result, summary)``.

    ``renderer`` must be a context manager exposing ``render(snapshots)``;
    it stays active until the final frame has been drawn. Invalid input
    raises before the renderer is entered.
    """
    descriptors = list(descriptors)
    validate_group(descriptors, concurrency)

    backend = backend or GitCliBackend()
    renderer = renderer if renderer is not None else NullRenderer()
    aggregator = ProgressAggregator()
    orchestrator = GroupOrchestrator(backend, aggregator)

    start_time = time.time()
    with renderer:
        with RenderLoop(aggregator, renderer, interval):
            result = orchestrator.run(descriptors, concurrency, cancel=cancel)

    failed_file = ""
    if failed_repos_file is not None:
        if save_failed_repos(descriptors, result, failed_repos_file, dest_dir):
            failed_file = str(failed_repos_file)

    return result, summarize(result, int(time.time() - start_time), failed_file)
