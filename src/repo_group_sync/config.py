"""Runtime defaults shared by the CLI and the orchestration layer."""

import os
from pathlib import Path
from typing import Dict

ENV_TASKS = "REPO_GROUP_SYNC_TASKS"

# Number of repositories operated on at once when neither ``-t`` nor the
# environment override is given.
BUILTIN_CONCURRENCY = 5

# Seconds between two redraws of the live progress display.
RENDER_INTERVAL = 0.15

# Base directory for group-file destinations (``-d`` overrides it).
DEFAULT_DEST_DIR = Path(".")

# Environment applied to every git subprocess: stable (English) progress and
# error text, and no interactive credential prompt blocking a worker thread.
GIT_ENV: Dict[str, str] = {
    "LC_ALL": "C",
    "LANG": "C",
    "GIT_TERMINAL_PROMPT": "0",
}

# Per-process git settings passed with ``-c`` (never written to git config).
GIT_CONFIG_OVERRIDES = (
    "http.lowSpeedLimit=1000",
    "http.lowSpeedTime=60",
    "core.compression=1",
)


def default_concurrency() -> int:
    """Concurrency limit from ``REPO_GROUP_SYNC_TASKS`` or the built-in default.

    Invalid values fall back to :data:`BUILTIN_CONCURRENCY`; the orchestrator
    still validates whatever the CLI finally passes in.
    """
    raw = os.environ.get(ENV_TASKS, "").strip()
    if not raw:
        return BUILTIN_CONCURRENCY
    try:
        value = int(raw)
    except ValueError:
        return BUILTIN_CONCURRENCY
    return value if value >= 1 else BUILTIN_CONCURRENCY
