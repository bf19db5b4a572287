#!/usr/bin/env python3
# Clone or update a group of git repositories with live progress
#
# Usage:
#   python main.py clone-group SOURCE[=DEST] ... [-t NUM] [-f FILE]
#   python main.py update-group PATH ... [-t NUM] [-f FILE]
#
# Flow:
#   1. parse arguments and collect repository descriptors
#   2. run the group on a bounded worker pool, redrawing progress
#   3. print one summary line per repository
#   4. exit 0 only when every repository succeeded

import sys
from pathlib import Path

SRC = Path(__file__).resolve().parent / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from repo_group_sync.cli import main  # noqa: E402


if __name__ == '__main__':
    sys.exit(main())
