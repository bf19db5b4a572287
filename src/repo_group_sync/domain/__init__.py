"""Domain models and group file parsing."""

from .models import (
    GroupResult,
    OperationKind,
    OutcomeStatus,
    PhaseKind,
    ProgressPhase,
    ProgressSnapshot,
    RepoDescriptor,
    RepoOutcome,
)
from .repo_groups import (
    build_group_text,
    descriptors_from_pairs,
    load_group_file,
    parse_group_text,
    repo_name_from_source,
)

__all__ = [
    "GroupResult",
    "OperationKind",
    "OutcomeStatus",
    "PhaseKind",
    "ProgressPhase",
    "ProgressSnapshot",
    "RepoDescriptor",
    "RepoOutcome",
    "build_group_text",
    "descriptors_from_pairs",
    "load_group_file",
    "parse_group_text",
    "repo_name_from_source",
]
