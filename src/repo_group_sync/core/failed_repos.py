# Failed repository list
#
# Main functions:
#   - save_failed_repos(): write failed/canceled repositories as a group file
#
# The written file can be passed back with -f to retry just those repositories.

from pathlib import Path
from typing import List, Sequence

from ..domain.models import GroupResult, RepoDescriptor
from ..domain.repo_groups import build_group_text
from ..infra.logger import log_info, log_warning


def failed_descriptors(descriptors: Sequence[RepoDescriptor], result: GroupResult) -> List[RepoDescriptor]:
    """Descriptors whose outcome is not OK, in submission order."""
    outcomes = result.by_id()
    return [d for d in descriptors if not outcomes[d.repo_id].ok]


def save_failed_repos(
    descriptors: Sequence[RepoDescriptor],
    result: GroupResult,
    failed_repos_file: Path,
    dest_dir: Path,
) -> bool:
    """Write the failed part of a group run to ``failed_repos_file``.

    Nothing is written when every repository succeeded; a stale file from an
    earlier run is removed instead. Returns ``True`` when a file was written.
    """
    failed = failed_descriptors(descriptors, result)
    if not failed:
        if failed_repos_file.exists():
            try:
                failed_repos_file.unlink()
            except OSError as exc:
                log_warning(f"could not remove stale failed list: {failed_repos_file} - {exc}")
        return False

    content = build_group_text(failed, dest_dir)
    try:
        failed_repos_file.write_text(content, encoding="utf-8")
    except OSError as exc:
        log_warning(f"could not save failed list: {failed_repos_file} - {exc}")
        return False

    log_warning(f"{len(failed)} repositories did not succeed")
    log_info(f"failed list saved to: {failed_repos_file} (retry with -f)")
    return True
