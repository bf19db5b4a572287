import io

import pytest

from repo_group_sync.core import process_control
from repo_group_sync.core.errors import VcsError, VcsErrorCategory
from repo_group_sync.core.git_backend import GitCliBackend, classify_failure, parse_progress_line
from repo_group_sync.core.process_control import CancelSignal
from repo_group_sync.domain.models import PhaseKind, ProgressPhase


CLONE_OUTPUT = "\n".join(
    [
        "Cloning into 'demo'...",
        "remote: Enumerating objects: 120, done.",
        "remote: Counting objects: 100% (120/120), done.",
        "Receiving objects:  50% (60/120), 1.50 MiB | 3.00 MiB/s",
        "Receiving objects: 100% (120/120), 3.00 MiB | 3.00 MiB/s, done.",
        "Resolving deltas: 100% (40/40), done.",
        "Updating files: 100% (30/30), done.",
        "",
    ]
)


class FakePopen:
    """Stands in for subprocess.Popen, replaying scripted git stderr."""

    commands = []
    script = staticmethod(lambda command: ("", 0))

    def __init__(self, command, **kwargs):
        FakePopen.commands.append(list(command))
        self.kwargs = kwargs
        output, self.returncode = FakePopen.script(command)
        self.stderr = io.StringIO(output)
        self.pid = 4242

    def wait(self, timeout=None):
        return self.returncode

    def poll(self):
        return self.returncode

    def terminate(self):
        pass

    def kill(self):
        pass


@pytest.fixture
def fake_git(monkeypatch):
    FakePopen.commands = []
    FakePopen.script = staticmethod(lambda command: ("", 0))
    monkeypatch.setattr(process_control.subprocess, "Popen", FakePopen)
    return FakePopen


def test_parse_progress_line_receiving_with_bytes():
    phase = parse_progress_line("Receiving objects:  50% (60/120), 1.50 MiB | 3.00 MiB/s")
    assert phase == ProgressPhase.receiving(60, 120, int(1.5 * 1024 * 1024))


def test_parse_progress_line_other_phases():
    assert parse_progress_line("Resolving deltas:  25% (1/4)") == ProgressPhase.resolving(1, 4)
    assert parse_progress_line("Updating files:  10% (3/30)") == ProgressPhase.checking_out(3, 30)
    assert parse_progress_line("Checking out files: 100% (2/2), done.") == ProgressPhase.checking_out(2, 2)
    assert parse_progress_line("Unpacking objects: 100% (3/3), 276 bytes | 276.00 KiB/s, done.") == (
        ProgressPhase.receiving(3, 3, 276)
    )
    assert parse_progress_line("remote: Counting objects: 100% (5/5), done.").kind == PhaseKind.CONNECTING
    assert parse_progress_line("Cloning into 'x'...").kind == PhaseKind.CONNECTING


def test_parse_progress_line_ignores_other_output():
    assert parse_progress_line("") is None
    assert parse_progress_line("remote: Total 120 (delta 40), reused 0") is None
    assert parse_progress_line("fatal: repository 'x' not found") is None


def test_classify_failure_known_cases():
    assert classify_failure("fatal: not a git repository") == (VcsErrorCategory.CORRUPTION, "not_git_repo")
    assert classify_failure("fatal: couldn't find remote ref main")[1] == "remote_ref_missing"
    assert classify_failure("Your local changes to the following files would be overwritten") == (
        VcsErrorCategory.CONFLICT,
        "local_changes_conflict",
    )
    assert classify_failure("fatal: refusing to merge unrelated histories")[1] == "unrelated_histories"
    assert classify_failure("fatal: Not possible to fast-forward, aborting.") == (
        VcsErrorCategory.CONFLICT,
        "not_fast_forward",
    )
    assert classify_failure("fatal: Could not resolve host: github.com") == (
        VcsErrorCategory.NETWORK,
        "network_error",
    )
    assert classify_failure("remote: Permission denied\nfatal: Authentication failed") == (
        VcsErrorCategory.AUTH,
        "auth_error",
    )
    assert classify_failure("remote: Repository not found.\nfatal: repository 'x' not found")[1] == "repo_not_found"
    assert classify_failure("warning: Could not find remote branch dev to clone.\nfatal: Remote branch dev not found in upstream origin")[1] == (
        "branch_not_found"
    )
    assert classify_failure("fatal: destination path 'x' already exists and is not an empty directory.")[1] == (
        "destination_exists"
    )
    assert classify_failure("error: object file .git/objects/ab/cd is empty\nfatal: loose object abcd is corrupt")[0] == (
        VcsErrorCategory.CORRUPTION
    )
    assert classify_failure("fatal: There is no tracking information for the current branch.")[1] == "no_upstream"


def test_classify_failure_unknown_and_empty():
    assert classify_failure("") == (VcsErrorCategory.UNKNOWN, "unknown")
    assert classify_failure("random unexpected stderr") == (VcsErrorCategory.UNKNOWN, "unknown")


def test_clone_relays_progress_in_order(fake_git, tmp_path):
    fake_git.script = staticmethod(lambda command: (CLONE_OUTPUT, 0))
    phases = []

    GitCliBackend(jobs=4).clone("https://example.com/demo.git", tmp_path / "demo", phases.append, branch="dev")

    kinds = [phase.kind for phase in phases]
    assert kinds == [
        PhaseKind.CONNECTING,
        PhaseKind.CONNECTING,
        PhaseKind.CONNECTING,
        PhaseKind.RECEIVING,
        PhaseKind.RECEIVING,
        PhaseKind.RESOLVING,
        PhaseKind.CHECKING_OUT,
    ]
    command = fake_git.commands[0]
    assert command[0] == "git"
    assert command[command.index("clone"):] == [
        "clone", "--progress", "--branch", "dev", "--jobs", "4",
        "https://example.com/demo.git", str(tmp_path / "demo"),
    ]


def test_clone_failure_raises_classified_error_and_cleans_up(fake_git, tmp_path):
    dest = tmp_path / "demo"

    def script(command):
        dest.mkdir()
        return "Cloning into 'demo'...\nfatal: unable to access 'https://example.com/': Could not resolve host: example.com\n", 128

    fake_git.script = staticmethod(script)

    with pytest.raises(VcsError) as exc_info:
        GitCliBackend().clone("https://example.com/demo.git", dest, lambda phase: None)

    assert exc_info.value.category == VcsErrorCategory.NETWORK
    assert "Could not resolve host" in exc_info.value.detail
    assert not dest.exists()


def test_clone_without_url_never_starts_git(fake_git, tmp_path):
    with pytest.raises(VcsError) as exc_info:
        GitCliBackend().clone("", tmp_path / "x", lambda phase: None)
    assert exc_info.value.reason == "url_not_set"
    assert fake_git.commands == []


def test_update_fetches_then_fast_forwards(fake_git, tmp_path):
    (tmp_path / "repo" / ".git").mkdir(parents=True)

    GitCliBackend().update(tmp_path / "repo", lambda phase: None)

    subcommands = [command[command.index("-C") + 2] for command in fake_git.commands]
    assert subcommands == ["fetch", "merge"]
    assert "--ff-only" in fake_git.commands[1]


def test_update_with_branch_checks_it_out(fake_git, tmp_path):
    (tmp_path / "repo" / ".git").mkdir(parents=True)

    def script(command):
        if "checkout" in command:
            return "error: pathspec 'nope' did not match any file(s) known to git\n", 1
        return "", 0

    fake_git.script = staticmethod(script)

    with pytest.raises(VcsError) as exc_info:
        GitCliBackend().update(tmp_path / "repo", lambda phase: None, branch="nope")

    assert exc_info.value.reason == "branch_not_found"
    assert len(fake_git.commands) == 2


def test_update_of_non_repository(fake_git, tmp_path):
    with pytest.raises(VcsError) as exc_info:
        GitCliBackend().update(tmp_path, lambda phase: None)
    assert exc_info.value.reason == "repo_not_found"
    assert fake_git.commands == []


def test_failure_after_cancel_is_reported_as_interrupted(fake_git, tmp_path):
    (tmp_path / "repo" / ".git").mkdir(parents=True)
    cancel = CancelSignal()

    def script(command):
        cancel.cancel()
        return "Receiving objects:  10% (1/10)\n", -15

    fake_git.script = staticmethod(script)

    with pytest.raises(VcsError) as exc_info:
        GitCliBackend().update(tmp_path / "repo", lambda phase: None, cancel=cancel)

    assert exc_info.value.category == VcsErrorCategory.INTERRUPTED
    assert cancel.tracked_count == 0


def test_git_receives_non_interactive_environment(fake_git, tmp_path):
    (tmp_path / "repo" / ".git").mkdir(parents=True)
    created = []
    original_init = FakePopen.__init__

    def recording_init(self, command, **kwargs):
        original_init(self, command, **kwargs)
        created.append(kwargs)

    fake_git.__init__ = recording_init
    try:
        GitCliBackend().update(tmp_path / "repo", lambda phase: None)
    finally:
        fake_git.__init__ = original_init

    env = created[0]["env"]
    assert env["GIT_TERMINAL_PROMPT"] == "0"
    assert env["LC_ALL"] == "C"


def test_missing_git_executable(monkeypatch, tmp_path):
    def missing(command, **kwargs):
        raise FileNotFoundError(command[0])

    monkeypatch.setattr(process_control.subprocess, "Popen", missing)

    with pytest.raises(VcsError) as exc_info:
        GitCliBackend(git="no-such-git").clone("https://example.com/a.git", tmp_path / "a", lambda phase: None)

    assert exc_info.value.reason == "git_not_found"
