# Command line entry point
#
# Main functions:
#   - parse_args(): clone-group / update-group subcommands
#   - main(): build descriptors, run the group with live progress, print a
#     per-repository summary, return the exit code
#
# Exit codes:
#   0  every repository succeeded
#   1  at least one repository failed or was canceled
#   2  invalid input (empty group, duplicate destinations, bad limits)

import argparse
import signal
import sys
import threading
import time
from pathlib import Path
from typing import List, Optional, Sequence

from rich.console import Console

from . import __version__
from .application.execution import run_group
from .config import DEFAULT_DEST_DIR, RENDER_INTERVAL, default_concurrency
from .core.errors import InvalidConfigError, InvalidGroupError
from .core.git_backend import GitCliBackend
from .core.process_control import CancelSignal
from .domain.models import GroupResult, OperationKind, OutcomeStatus, RepoDescriptor
from .domain.repo_groups import descriptors_from_pairs, load_group_file
from .infra.logger import log_error, log_info, log_success, log_warning, set_color_enabled
from .ui.renderer import NullRenderer, RichProgressRenderer

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2

COMMAND_KINDS = {
    "clone-group": OperationKind.CLONE,
    "update-group": OperationKind.UPDATE,
}


def validate_positive_int(value: str) -> int:
    """Argument type: integer >= 1."""
    try:
        num = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"must be an integer: {value}")
    if num < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer >= 1: {value}")
    return num


def validate_interval(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"must be a number: {value}")
    if seconds <= 0:
        raise argparse.ArgumentTypeError(f"must be > 0: {value}")
    return seconds


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '-f', '--file',
        type=str,
        default=None,
        metavar='FILE',
        help='group file listing repositories (markdown: "## folder" headers, "- source" lines)'
    )
    parser.add_argument(
        '-d', '--dest-dir',
        type=Path,
        default=DEFAULT_DEST_DIR,
        metavar='DIR',
        help='base directory for destinations (default: current directory)'
    )
    parser.add_argument(
        '-t', '--tasks',
        type=validate_positive_int,
        default=None,
        metavar='NUM',
        help='repositories operated on at once (default: %d, env REPO_GROUP_SYNC_TASKS)' % default_concurrency()
    )
    parser.add_argument(
        '-b', '--branch',
        type=str,
        default="",
        metavar='BRANCH',
        help='branch to check out in every repository'
    )
    parser.add_argument(
        '--interval',
        type=validate_interval,
        default=RENDER_INTERVAL,
        metavar='SECONDS',
        help='seconds between progress redraws (default: %(default)s)'
    )
    parser.add_argument(
        '--no-progress',
        action='store_true',
        help='do not draw the live progress table'
    )
    parser.add_argument(
        '--no-color',
        action='store_true',
        help='plain output without ANSI colors'
    )
    parser.add_argument(
        '--save-failed',
        type=Path,
        default=None,
        metavar='FILE',
        help='write failed/canceled repositories to FILE as a group file for a retry run'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repo-group-sync",
        description="Clone or update a group of git repositories with live progress",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  %(prog)s clone-group https://github.com/psf/requests.git https://github.com/pallets/flask.git
  %(prog)s clone-group https://example.com/a.git=vendor/a -t 2
  %(prog)s clone-group -f REPO-GROUPS.md -d ~/src -t 8
  %(prog)s update-group ~/src/tools/requests ~/src/tools/flask
  %(prog)s update-group -f REPO-GROUPS.md -d ~/src --save-failed failed-repos.md
        """
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', metavar='COMMAND')
    subparsers.required = True

    clone_parser = subparsers.add_parser(
        'clone-group',
        help='clone repositories (existing work trees are updated)',
        description='Clone every repository of a group; destinations that already hold a work tree are updated.',
    )
    clone_parser.add_argument(
        'items',
        nargs='*',
        metavar='SOURCE[=DEST]',
        help='repository URL or path, optionally followed by =DEST'
    )
    clone_parser.add_argument(
        '-c', '--connections',
        type=validate_positive_int,
        default=None,
        metavar='NUM',
        help='parallel submodule fetches per clone (git clone --jobs)'
    )
    _add_common_arguments(clone_parser)

    update_parser = subparsers.add_parser(
        'update-group',
        help='fetch and fast-forward existing repositories',
        description='Fetch and fast-forward every repository of a group.',
    )
    update_parser.add_argument(
        'items',
        nargs='*',
        metavar='PATH',
        help='local work tree to update'
    )
    _add_common_arguments(update_parser)

    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.file is not None:
        file_path = Path(args.file)
        if not file_path.is_file():
            parser.error(f"group file not found: {file_path}")
    if args.tasks is None:
        args.tasks = default_concurrency()
    return args


def collect_descriptors(args: argparse.Namespace) -> List[RepoDescriptor]:
    kind = COMMAND_KINDS[args.command]
    descriptors = descriptors_from_pairs(args.items, args.dest_dir, kind, branch=args.branch)
    if args.file:
        log_info(f"reading group file: {args.file}")
        descriptors.extend(load_group_file(Path(args.file), args.dest_dir, kind=kind, branch=args.branch))
    return descriptors


def print_summary(result: GroupResult, duration: int) -> None:
    """Per-repository lines, then totals."""
    print()
    for outcome in result:
        if outcome.status == OutcomeStatus.OK:
            log_success(f"[OK] {outcome.repo_id}")
        elif outcome.status == OutcomeStatus.ERR:
            category = getattr(getattr(outcome.error, "category", None), "value", "unknown")
            log_error(f"[FAILED] {outcome.repo_id} ({category}) {outcome.error}")
        else:
            log_warning(f"[CANCELED] {outcome.repo_id}")

    hours = duration // 3600
    minutes = (duration % 3600) // 60
    seconds = duration % 60

    log_info("========== group finished ==========")
    log_info(f"total: {len(result)}")
    log_success(f"success: {len(result.succeeded)}")
    if result.failed:
        log_error(f"failed: {len(result.failed)}")
    else:
        log_info("failed: 0")
    if result.canceled:
        log_warning(f"canceled: {len(result.canceled)}")
    log_info(f"elapsed: {hours}h {minutes}m {seconds}s")
    log_info("====================================")


def _install_interrupt_handler(cancel: CancelSignal):
    """Route Ctrl+C to the run's cancel signal; returns the previous handler.

    The handler only sets the signal: it may interrupt a log call holding the
    logger lock.
    """
    if threading.current_thread() is not threading.main_thread():
        return None

    def _handler(signum, frame):
        cancel.cancel()

    return signal.signal(signal.SIGINT, _handler)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        descriptors = collect_descriptors(args)
    except (OSError, UnicodeDecodeError) as exc:
        log_error(f"cannot read group file {args.file}: {exc}")
        return EXIT_INVALID

    cancel = CancelSignal()
    backend = GitCliBackend(jobs=getattr(args, "connections", None) or 0)
    if args.no_color:
        set_color_enabled(False)
    renderer = NullRenderer() if args.no_progress else RichProgressRenderer(Console(no_color=args.no_color))

    previous_handler = _install_interrupt_handler(cancel)
    start_time = time.time()
    try:
        result, _ = run_group(
            descriptors,
            args.tasks,
            backend=backend,
            renderer=renderer,
            interval=args.interval,
            cancel=cancel,
            failed_repos_file=args.save_failed,
            dest_dir=args.dest_dir,
        )
    except (InvalidGroupError, InvalidConfigError) as exc:
        log_error(str(exc))
        return EXIT_INVALID
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    if cancel.is_canceled():
        log_warning("run interrupted, repositories that had not started were canceled")
    print_summary(result, int(time.time() - start_time))
    return EXIT_OK if result.all_ok else EXIT_FAILED


def run() -> None:
    sys.exit(main())


if __name__ == '__main__':
    run()
