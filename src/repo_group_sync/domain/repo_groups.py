"""Group file parsing and rendering.

A group file is a small markdown document::

    # Repository group

    owner: octocat

    ## tools <!-- command-line helpers -->
    - hello-world
    - https://example.com/team/build-scripts.git

Each ``## FOLDER`` header opens a folder under the destination directory and
each ``- ENTRY`` line is one repository cloned into ``FOLDER/<repo name>``.
With an ``owner:`` line, a bare repository name expands to a GitHub URL.
"""

import re
from collections import OrderedDict
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .models import OperationKind, RepoDescriptor


OWNER_PATTERN = re.compile(r"^owner:\s*(.+)$", re.MULTILINE | re.IGNORECASE)
GROUP_HEADER_PATTERN = re.compile(r"^##\s+(.+?)(?:\s*<!--\s*(.+?)\s*-->)?\s*$")
REPO_LINE_PATTERN = re.compile(r"^\s*-\s+(\S+)(?:\s+(\S+))?")

GITHUB_URL_TEMPLATE = "https://github.com/{owner}/{name}.git"


def extract_owner(content: str) -> str:
    """Return the ``owner:`` value, or an empty string when absent."""
    match = OWNER_PATTERN.search(content)
    if not match:
        return ""
    return match.group(1).strip()


def repo_name_from_source(source: str) -> str:
    """Derive the checkout folder name git itself would pick for ``source``."""
    name = source.split("?", 1)[0].rstrip("/\\")
    name = re.split(r"[/\\:]", name)[-1]
    if name.endswith(".git"):
        name = name[:-4]
    return name


def resolve_source(entry: str, owner: str) -> str:
    """Expand a bare repository name to a GitHub URL when an owner is known."""
    is_bare = not re.search(r"[/\\:]", entry)
    if is_bare and owner:
        return GITHUB_URL_TEMPLATE.format(owner=owner, name=entry)
    return entry


def parse_group_text(
    content: str,
    dest_dir: Path,
    kind: OperationKind = OperationKind.CLONE,
    branch: str = "",
) -> List[RepoDescriptor]:
    """Parse group file text into descriptors, in file order.

    An optional second token on an entry line overrides the folder name.
    Entries above the first header land directly in ``dest_dir``.
    """
    owner = extract_owner(content)
    descriptors: List[RepoDescriptor] = []
    current_folder: Optional[Path] = None

    for line in content.splitlines():
        group_match = GROUP_HEADER_PATTERN.match(line)
        if group_match:
            current_folder = dest_dir / group_match.group(1).strip()
            continue

        repo_match = REPO_LINE_PATTERN.match(line)
        if not repo_match:
            continue

        entry = repo_match.group(1).strip()
        source = resolve_source(entry, owner)
        folder_name = (repo_match.group(2) or "").strip() or repo_name_from_source(source)
        base = current_folder if current_folder is not None else dest_dir
        descriptors.append(
            RepoDescriptor(
                dest=str(base / folder_name),
                source=source,
                kind=kind,
                branch=branch,
            )
        )

    return descriptors


def load_group_file(
    path: Path,
    dest_dir: Path,
    kind: OperationKind = OperationKind.CLONE,
    branch: str = "",
) -> List[RepoDescriptor]:
    content = path.read_text(encoding="utf-8-sig")
    return parse_group_text(content, dest_dir, kind=kind, branch=branch)


def build_group_text(descriptors: Sequence[RepoDescriptor], dest_dir: Path) -> str:
    """Render descriptors back into group file text.

    Used to write failed repositories out for a retry run; entries keep
    explicit URLs so the file does not depend on an ``owner:`` line.
    """
    folders: Dict[str, List[str]] = OrderedDict()
    loose: List[str] = []

    for descriptor in descriptors:
        dest = descriptor.dest_path
        entry = descriptor.source or str(dest)
        if dest.name != repo_name_from_source(entry):
            entry = f"{entry} {dest.name}"

        try:
            folder = dest.parent.relative_to(dest_dir).as_posix()
        except ValueError:
            # outside dest_dir: keep only the source, the folder is lost
            loose.append(descriptor.source or str(dest))
            continue

        if folder in ("", "."):
            loose.append(entry)
        else:
            folders.setdefault(folder, []).append(entry)

    lines = ["# Repository group", ""]
    for entry in loose:
        lines.append(f"- {entry}")
    if loose:
        lines.append("")
    for folder, entries in folders.items():
        lines.append(f"## {folder}")
        for entry in entries:
            lines.append(f"- {entry}")
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def split_source_dest(item: str) -> Tuple[str, str]:
    """Split a ``SOURCE[=DEST]`` item at its last ``=``.

    An ``=`` that belongs to the source URL's query string (``?key=value``)
    is not a separator.
    """
    source, sep, dest = item.rpartition("=")
    if not sep:
        return item, ""
    if "?" in source:
        last_param = source.rsplit("?", 1)[-1].rsplit("&", 1)[-1]
        if "=" not in last_param:
            return item, ""
    return source, dest


def descriptors_from_pairs(
    items: Sequence[str],
    dest_dir: Path,
    kind: OperationKind,
    branch: str = "",
) -> List[RepoDescriptor]:
    """Build descriptors from CLI items.

    Clone items are ``SOURCE`` or ``SOURCE=DEST``; a bare ``SOURCE`` clones
    into ``dest_dir/<repo name>``. Update items are local work tree paths.
    """
    descriptors: List[RepoDescriptor] = []
    for item in items:
        if kind == OperationKind.UPDATE:
            descriptors.append(RepoDescriptor(dest=item, kind=kind, branch=branch))
            continue

        source, dest = split_source_dest(item)
        if not dest:
            dest = str(dest_dir / repo_name_from_source(source))
        descriptors.append(RepoDescriptor(dest=dest, source=source, kind=kind, branch=branch))
    return descriptors


__all__ = [
    "OWNER_PATTERN",
    "GROUP_HEADER_PATTERN",
    "REPO_LINE_PATTERN",
    "extract_owner",
    "repo_name_from_source",
    "resolve_source",
    "parse_group_text",
    "load_group_file",
    "build_group_text",
    "split_source_dest",
    "descriptors_from_pairs",
]
