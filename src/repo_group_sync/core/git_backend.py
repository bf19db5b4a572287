# Git backend: clone and update repositories with the git executable
#
# Main functions:
#   - GitCliBackend.clone(): git clone --progress into a destination
#   - GitCliBackend.update(): git fetch --progress + fast-forward merge
#   - parse_progress_line(): turn one git progress line into a ProgressPhase
#   - classify_failure(): map git stderr to a reason tag and error category
#
# Features:
#   - progress is read from git's stderr as it is written (\r-separated)
#   - every git process is tracked by the run's CancelSignal
#   - a failed clone removes the destination directory it created

import os
import platform
import re
import shutil
import subprocess
from collections import deque
from pathlib import Path
from typing import Callable, Deque, List, Optional, Protocol, Sequence, Tuple

from ..config import GIT_CONFIG_OVERRIDES, GIT_ENV
from ..domain.models import ProgressPhase
from ..infra.logger import log_warning
from .errors import VcsError, VcsErrorCategory
from .process_control import CancelSignal, background_subprocess_kwargs, terminate_process

ProgressCallback = Callable[[ProgressPhase], None]

STDERR_TAIL_LINES = 20

_UNIT_FACTORS = {
    "bytes": 1,
    "byte": 1,
    "KiB": 1024,
    "MiB": 1024 ** 2,
    "GiB": 1024 ** 3,
}

_COUNTER = r":\s+\d+%\s+\((\d+)/(\d+)\)"
RECEIVING_PATTERN = re.compile(
    r"(?:Receiving|Unpacking) objects" + _COUNTER + r"(?:,\s+([\d.]+)\s+(bytes?|KiB|MiB|GiB))?"
)
RESOLVING_PATTERN = re.compile(r"Resolving deltas" + _COUNTER)
CHECKOUT_PATTERN = re.compile(r"(?:Updating|Checking out) files" + _COUNTER)
CONNECTING_PATTERN = re.compile(
    r"^(?:Cloning into|remote: (?:Enumerating|Counting|Compressing) objects)"
)


class VcsBackend(Protocol):
    """Capability that performs the actual version-control work."""

    def clone(
        self,
        url: str,
        dest: Path,
        on_progress: ProgressCallback,
        *,
        branch: str = "",
        cancel: Optional[CancelSignal] = None,
    ) -> None:
        ...

    def update(
        self,
        path: Path,
        on_progress: ProgressCallback,
        *,
        branch: str = "",
        cancel: Optional[CancelSignal] = None,
    ) -> None:
        ...


def _to_bytes(amount: Optional[str], unit: Optional[str]) -> int:
    if not amount or not unit:
        return 0
    try:
        return int(float(amount) * _UNIT_FACTORS.get(unit, 1))
    except ValueError:
        return 0


def parse_progress_line(line: str) -> Optional[ProgressPhase]:
    """Translate one line of ``git --progress`` output, ``None`` if it carries no progress."""
    text = line.strip()
    if not text:
        return None

    match = RECEIVING_PATTERN.search(text)
    if match:
        return ProgressPhase.receiving(
            int(match.group(1)),
            int(match.group(2)),
            _to_bytes(match.group(3), match.group(4)),
        )

    match = RESOLVING_PATTERN.search(text)
    if match:
        return ProgressPhase.resolving(int(match.group(1)), int(match.group(2)))

    match = CHECKOUT_PATTERN.search(text)
    if match:
        return ProgressPhase.checking_out(int(match.group(1)), int(match.group(2)))

    if CONNECTING_PATTERN.search(text):
        return ProgressPhase.connecting()

    return None


_REASON_CATEGORIES = {
    "not_git_repo": VcsErrorCategory.CORRUPTION,
    "corrupted": VcsErrorCategory.CORRUPTION,
    "repo_not_found": VcsErrorCategory.NOT_FOUND,
    "remote_ref_missing": VcsErrorCategory.NOT_FOUND,
    "branch_not_found": VcsErrorCategory.NOT_FOUND,
    "no_upstream": VcsErrorCategory.NOT_FOUND,
    "local_changes_conflict": VcsErrorCategory.CONFLICT,
    "unrelated_histories": VcsErrorCategory.CONFLICT,
    "not_fast_forward": VcsErrorCategory.CONFLICT,
    "destination_exists": VcsErrorCategory.IO,
    "io_error": VcsErrorCategory.IO,
    "network_error": VcsErrorCategory.NETWORK,
    "auth_error": VcsErrorCategory.AUTH,
    "unknown": VcsErrorCategory.UNKNOWN,
}


def _extract_failure_reason(stderr_text: str) -> str:
    """Map common git stderr to concise reason tags."""
    text = (stderr_text or "").lower()
    if not text:
        return "unknown"
    if "not a git repository" in text:
        return "not_git_repo"
    if "repository not found" in text or "does not appear to be a git repository" in text:
        return "repo_not_found"
    if "remote branch" in text and "not found" in text:
        return "branch_not_found"
    if "did not match any file(s) known to git" in text or "invalid reference" in text:
        return "branch_not_found"
    if "couldn't find remote ref" in text or "no such remote" in text:
        return "remote_ref_missing"
    if "no upstream" in text or "no tracking information" in text:
        return "no_upstream"
    if "your local changes" in text or "would be overwritten" in text:
        return "local_changes_conflict"
    if "refusing to merge unrelated histories" in text:
        return "unrelated_histories"
    if "not possible to fast-forward" in text or "cannot fast-forward" in text:
        return "not_fast_forward"
    if "already exists and is not an empty directory" in text:
        return "destination_exists"
    if "corrupt" in text or "bad object" in text or "loose object" in text:
        return "corrupted"
    if "no space left on device" in text or "read-only file system" in text or "could not create" in text:
        return "io_error"
    if "could not resolve host" in text or "failed to connect" in text or "timed out" in text:
        return "network_error"
    if "early eof" in text or "connection reset" in text or "the remote end hung up" in text:
        return "network_error"
    if "authentication failed" in text or "permission denied" in text:
        return "auth_error"
    if "could not read username" in text or "terminal prompts disabled" in text:
        return "auth_error"
    return "unknown"


def classify_failure(stderr_text: str) -> Tuple[VcsErrorCategory, str]:
    """Return ``(category, reason)`` for a failed git invocation."""
    reason = _extract_failure_reason(stderr_text)
    return _REASON_CATEGORIES[reason], reason


def _last_message(lines: Sequence[str]) -> str:
    for line in reversed(lines):
        line = line.strip()
        if line:
            return line[:200]
    return ""


class GitCliBackend:
    """:class:`VcsBackend` driving the ``git`` executable.

    ``jobs`` is handed to ``git clone --jobs`` (parallel submodule fetches);
    ``git`` is the executable to run.
    """

    def __init__(self, git: str = "git", jobs: int = 0, config_overrides: Sequence[str] = GIT_CONFIG_OVERRIDES):
        self.git = git
        self.jobs = jobs
        self.config_overrides = tuple(config_overrides)

    def _base_command(self) -> List[str]:
        command = [self.git]
        for override in self.config_overrides:
            command.extend(["-c", override])
        return command

    def _env(self):
        env = dict(os.environ)
        env.update(GIT_ENV)
        return env

    def _run(
        self,
        args: Sequence[str],
        on_progress: Optional[ProgressCallback],
        cancel: Optional[CancelSignal],
    ) -> None:
        """Run one git command, relaying progress and raising VcsError on failure."""
        cancel = cancel or CancelSignal()
        command = self._base_command() + list(args)
        tail: Deque[str] = deque(maxlen=STDERR_TAIL_LINES)

        try:
            process = cancel.start_process(
                command,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                errors="replace",
                env=self._env(),
            )
        except FileNotFoundError as exc:
            raise VcsError(VcsErrorCategory.IO, "git_not_found", str(exc)) from exc
        except OSError as exc:
            raise VcsError(VcsErrorCategory.IO, "io_error", str(exc)) from exc

        try:
            # universal newlines: git's \r-separated progress arrives line by line
            for line in process.stderr:
                phase = parse_progress_line(line)
                if phase is None:
                    tail.append(line)
                elif on_progress is not None:
                    on_progress(phase)
            result_code = process.wait()
        except BaseException:
            terminate_process(process)
            raise
        finally:
            cancel.untrack(process)
            if process.stderr is not None:
                process.stderr.close()

        if result_code == 0:
            return

        if cancel.is_canceled():
            raise VcsError(VcsErrorCategory.INTERRUPTED, "interrupted", "operation stopped by cancellation")

        stderr_text = "".join(tail)
        category, reason = classify_failure(stderr_text)
        raise VcsError(category, reason, _last_message(list(tail)))

    def clone(
        self,
        url: str,
        dest: Path,
        on_progress: ProgressCallback,
        *,
        branch: str = "",
        cancel: Optional[CancelSignal] = None,
    ) -> None:
        if not url:
            raise VcsError.url_not_set(str(dest))

        dest = Path(dest)
        created = not dest.exists()
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise VcsError(VcsErrorCategory.IO, "io_error", f"cannot create {dest.parent}: {exc}") from exc

        args = ["clone", "--progress"]
        if branch:
            args.extend(["--branch", branch])
        if self.jobs:
            args.extend(["--jobs", str(self.jobs)])
        args.extend([url, str(dest)])

        try:
            self._run(args, on_progress, cancel)
        except VcsError:
            if created:
                _cleanup_failed_directory(dest)
            raise

    def update(
        self,
        path: Path,
        on_progress: ProgressCallback,
        *,
        branch: str = "",
        cancel: Optional[CancelSignal] = None,
    ) -> None:
        path = Path(path)
        if not (path / ".git").exists():
            raise VcsError.repo_not_found(str(path))

        repo = ["-C", str(path)]
        self._run(repo + ["fetch", "--progress", "--prune"], on_progress, cancel)
        if branch:
            self._run(repo + ["checkout", "--progress", branch], on_progress, cancel)
        self._run(repo + ["merge", "--ff-only", "--progress", "@{upstream}"], on_progress, cancel)


def _cleanup_failed_directory(target_path: Path) -> None:
    """Remove a partially cloned directory (Windows compatible)."""
    if not target_path.exists():
        return

    try:
        shutil.rmtree(target_path)
    except OSError as exc:
        if platform.system() == "Windows":
            subprocess.run(
                ["cmd.exe", "/c", "rmdir", "/s", "/q", str(target_path)],
                check=False,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=5,
                **background_subprocess_kwargs(),
            )
        else:
            log_warning(f"could not remove partial clone {target_path}: {exc}")
