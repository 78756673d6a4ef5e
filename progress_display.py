"""Rich progress display with Panel layout for throttled batches.

Composes a Progress instance (task tracker/renderer) with an explicit Live
instance (display manager). Live calls ``__rich__()`` on every refresh, so the
gate occupancy line always reflects the throttler's current counts.
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.text import Text

from throttler import Throttler


def format_gates(throttler: Throttler) -> str:
    """One-line summary of slots held and callers waiting on each gate."""
    count, queue = throttler.count, throttler.queue
    window = f"window {count.window}/{throttler.max} ({len(queue.window)} waiting)"
    limit = throttler.concurrent if throttler.concurrent is not None else "∞"
    concurrent = f"in flight {count.concurrent}/{limit} ({len(queue.concurrent)} waiting)"
    return f"  {window}  ·  {concurrent}"


class ThrottleProgress:
    """Progress bars plus a gate status line inside a Panel.

    Usage::

        progress = ThrottleProgress(throttler, console=console)
        with progress:
            task = progress.add_task("Requests", total=10)
            progress.advance(task)
    """

    def __init__(
        self,
        throttler: Throttler,
        *,
        console: Console,
        disable: bool = False,
        title: str = "throttlify",
    ):
        self._throttler = throttler
        self._console = console
        self._disable = disable
        self._title = title

        # Inner Progress is never entered; its own Live stays dormant.
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
        )

        self._live: Live | None = None

    def __rich__(self) -> Panel:
        task_table = self._progress.make_tasks_table(self._progress.tasks)
        status = Text(format_gates(self._throttler), style="dim italic", no_wrap=True, overflow="ellipsis")
        return Panel(
            Group(task_table, status),
            title=f"[bold]{self._title}[/bold]",
            border_style="bright_blue",
            padding=(0, 1),
        )

    def __enter__(self) -> ThrottleProgress:
        if self._disable:
            return self
        self._live = Live(
            self,
            console=self._console,
            refresh_per_second=10,
            redirect_stderr=True,
            redirect_stdout=False,
        )
        self._live.start()
        return self

    def __exit__(self, *args) -> None:
        if self._live:
            self._live.stop()
            self._live = None

    def add_task(self, description: str, **kwargs) -> TaskID:
        return self._progress.add_task(description, **kwargs)

    def advance(self, task_id: TaskID, advance: float = 1) -> None:
        self._progress.advance(task_id, advance)

    @property
    def tasks(self):
        return self._progress.tasks
