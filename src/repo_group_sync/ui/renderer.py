"""Terminal renderers for group progress."""

from typing import Dict, Optional, Sequence, Tuple

from rich import box
from rich.console import Console
from rich.live import Live
from rich.table import Table
from rich.text import Text

from ..domain.models import PhaseKind, ProgressPhase, ProgressSnapshot

BAR_WIDTH = 20

_PHASE_STYLES: Dict[PhaseKind, Tuple[str, str, str]] = {
    PhaseKind.QUEUED: ("dim", "..", "queued"),
    PhaseKind.CONNECTING: ("bold cyan", ">>", "connecting"),
    PhaseKind.RECEIVING: ("bold cyan", ">>", "receiving"),
    PhaseKind.RESOLVING: ("bold cyan", ">>", "resolving"),
    PhaseKind.CHECKING_OUT: ("bold cyan", ">>", "checking out"),
    PhaseKind.COMPLETED: ("bold green", "ok", "completed"),
    PhaseKind.FAILED: ("bold red", "!!", "failed"),
    PhaseKind.CANCELED: ("bold yellow", "--", "canceled"),
}


def format_bytes(size: int) -> str:
    value = float(size)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if value < 1024 or unit == "GiB":
            if unit == "B":
                return f"{int(value)} {unit}"
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GiB"


def progress_bar(fraction: Optional[float], width: int = BAR_WIDTH) -> str:
    if fraction is None:
        return ""
    filled = int(round(fraction * width))
    return "█" * filled + "░" * (width - filled)


def describe_phase(phase: ProgressPhase) -> str:
    """Counter text shown next to the bar."""
    if phase.kind == PhaseKind.RECEIVING:
        text = f"{phase.received_objects}/{phase.total_objects} objects"
        if phase.received_bytes:
            text += f", {format_bytes(phase.received_bytes)}"
        return text
    if phase.kind == PhaseKind.RESOLVING:
        return f"{phase.indexed_deltas}/{phase.total_deltas} deltas"
    if phase.kind == PhaseKind.CHECKING_OUT:
        return f"{phase.checked_out_files}/{phase.total_files} files"
    if phase.kind in (PhaseKind.FAILED, PhaseKind.CANCELED):
        return phase.reason
    return ""


def build_progress_table(snapshots: Sequence[ProgressSnapshot]) -> Table:
    counts: Dict[PhaseKind, int] = {kind: 0 for kind in PhaseKind}
    for snapshot in snapshots:
        counts[snapshot.phase.kind] += 1
    active = sum(counts[k] for k in (PhaseKind.CONNECTING, PhaseKind.RECEIVING, PhaseKind.RESOLVING, PhaseKind.CHECKING_OUT))

    title = (
        f"[bold]active [cyan]{active}[/cyan]  "
        f"queued [dim]{counts[PhaseKind.QUEUED]}[/dim]  "
        f"done [green]{counts[PhaseKind.COMPLETED]}[/green]  "
        f"failed [red]{counts[PhaseKind.FAILED]}[/red]"
        + (f"  canceled [yellow]{counts[PhaseKind.CANCELED]}[/yellow]" if counts[PhaseKind.CANCELED] else "")
        + "[/bold]"
    )

    table = Table(
        title=title,
        box=box.SIMPLE_HEAVY,
        show_lines=False,
        header_style="bold magenta",
        expand=False,
        padding=(0, 1),
    )
    table.add_column("", no_wrap=True, width=2)
    table.add_column("Repo", style="bold", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Progress", no_wrap=True)
    table.add_column("Detail", overflow="fold")

    for snapshot in snapshots:
        phase = snapshot.phase
        style, icon, label = _PHASE_STYLES[phase.kind]
        detail = describe_phase(phase)
        detail_style = "red" if phase.kind == PhaseKind.FAILED else ""
        table.add_row(
            Text(icon, style=style),
            Text(snapshot.repo_id),
            Text(label, style=style),
            Text(progress_bar(phase.fraction), style=style),
            Text(detail, style=detail_style),
        )

    return table


class RichProgressRenderer:
    """Redraws a live table, one row per repository, in submission order.

    Must be entered (``with renderer:``) before frames are pushed. While the
    live display is active, anything printed to stdout/stderr is shown above
    the table instead of tearing through it.
    """

    def __init__(self, console: Optional[Console] = None, transient: bool = False):
        self.console = console or Console()
        self.transient = transient
        self._live: Optional[Live] = None

    def __enter__(self) -> "RichProgressRenderer":
        self._live = Live(
            Table(),
            console=self.console,
            auto_refresh=False,
            transient=self.transient,
            redirect_stdout=True,
            redirect_stderr=True,
        )
        self._live.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None

    def render(self, snapshots: Sequence[ProgressSnapshot]) -> None:
        table = build_progress_table(snapshots)
        if self._live is None:
            self.console.print(table)
            return
        self._live.update(table, refresh=True)


class NullRenderer:
    """Discards frames (``--no-progress``)."""

    def __enter__(self) -> "NullRenderer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def render(self, snapshots: Sequence[ProgressSnapshot]) -> None:
        return None
