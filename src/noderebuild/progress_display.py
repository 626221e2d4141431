"""Rich-based progress display for a rebuild run.

Renders one line per discovered module, updated live as lifecycle events
arrive:

    bcrypt            Building  ⠹ 4.1s
    sqlite3           Done      ✓ 12.3s
    @serialport/bindings  Skipped   up to date

On a non-interactive console (CI logs, pipes) the live table is replaced by
one printed line per finished module.

Thread-safe: in parallel mode events arrive from several pool threads while
the display refreshes on Rich's own thread.
"""

import threading
import time
from typing import Any, Optional

from rich.console import Console, Group
from rich.live import Live
from rich.table import Table
from rich.text import Text

from .events import LifecycleEvent

# Braille spinner frames for modules being built
_SPINNER_FRAMES = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")

_BUILDING = "building"
_DONE = "done"
_SKIPPED = "skipped"
_FAILED = "failed"


class _ModuleDisplayState:
    """Internal state for a single module's display line."""

    __slots__ = ("name", "status", "detail", "start_time", "elapsed")

    def __init__(self, name: str) -> None:
        self.name = name
        self.status = _BUILDING
        self.detail = ""
        self.start_time = time.monotonic()
        self.elapsed = 0.0


class RebuildProgressDisplay:
    """Live module table driven by lifecycle events.

    Implements LifecycleListener; subscribe it to the run's Lifecycle and
    wrap the run in the display's context manager.

    Args:
        console: Rich Console for rendering. If None, creates a new one.
        title: Header line (e.g. "Rebuilding native modules for node v22.6.0 (x64)").
        refresh_per_second: Live refresh rate.
    """

    def __init__(self, console: Optional[Console] = None, title: str = "Rebuilding native modules", refresh_per_second: int = 10) -> None:
        self._console = console if console is not None else Console()
        self._title = title
        self._refresh_per_second = refresh_per_second
        self._states: dict[str, _ModuleDisplayState] = {}
        self._order: list[str] = []
        self._lock = threading.Lock()
        self._live: Optional[Live] = None
        self._started = False

    @property
    def is_live(self) -> bool:
        """True when rendering a live table rather than printed lines."""
        return self._live is not None

    def on_event(self, event: LifecycleEvent, module_name: Optional[str]) -> None:
        """Update module state from a lifecycle event. Thread-safe."""
        if module_name is None:
            return
        finished: Optional[_ModuleDisplayState] = None
        with self._lock:
            state = self._states.get(module_name)
            if event == LifecycleEvent.MODULE_FOUND:
                if state is None:
                    self._states[module_name] = _ModuleDisplayState(module_name)
                    self._order.append(module_name)
                return
            if state is None:
                state = _ModuleDisplayState(module_name)
                self._states[module_name] = state
                self._order.append(module_name)

            if event == LifecycleEvent.MODULE_SKIP:
                state.status = _SKIPPED
                state.detail = "up to date"
                finished = state
            elif event == LifecycleEvent.MODULE_DONE and state.status == _BUILDING:
                state.status = _DONE
                state.elapsed = time.monotonic() - state.start_time
                finished = state

        if finished is not None and self._live is None and self._started:
            self._console.print(self._format_line(finished))

    def mark_failed(self, module_name: str, detail: str = "") -> None:
        """Show a module as failed (build failures are exceptions, not events)."""
        with self._lock:
            state = self._states.get(module_name)
            if state is None:
                state = _ModuleDisplayState(module_name)
                self._states[module_name] = state
                self._order.append(module_name)
            state.status = _FAILED
            state.detail = detail
            state.elapsed = time.monotonic() - state.start_time
        if self._live is None and self._started:
            self._console.print(self._format_line(state))

    def start(self) -> None:
        """Start rendering. Call before the run starts."""
        self._started = True
        if not self._console.is_terminal:
            self._console.print(Text(self._title, style="bold"))
            return
        self._live = Live(
            self._render_display(),
            console=self._console,
            refresh_per_second=self._refresh_per_second,
            transient=False,
            get_renderable=self._render_display,
        )
        self._live.start()

    def stop(self) -> None:
        """Stop rendering and print the final state."""
        if self._live is not None:
            self._live.update(self._render_display())
            self._live.stop()
            self._live = None
        elif self._started:
            self._console.print(self._render_footer())
        self._started = False

    def _render_display(self) -> Group:
        header = Text(f"\n{self._title}\n", style="bold")
        return Group(header, self._render_table(), self._render_footer())

    def _render_table(self) -> Table:
        table = Table(show_header=False, show_edge=False, show_lines=False, box=None, padding=(0, 1), expand=False)
        table.add_column("Module", style="bold", no_wrap=True, min_width=28)
        table.add_column("Status", no_wrap=True, min_width=10)
        table.add_column("Detail", no_wrap=True, min_width=20)

        with self._lock:
            for name in self._order:
                state = self._states[name]
                table.add_row(*self._format_row(state))
        return table

    def _render_footer(self) -> Text:
        with self._lock:
            statuses = [s.status for s in self._states.values()]
        parts = [f"{len(statuses)} modules"]
        for status in (_BUILDING, _DONE, _SKIPPED, _FAILED):
            count = statuses.count(status)
            if count:
                parts.append(f"{count} {status}")
        return Text(f"\n  {', '.join(parts)}", style="dim")

    def _format_row(self, state: _ModuleDisplayState) -> tuple[Text, Text, Text]:
        if state.status == _BUILDING:
            spinner = _SPINNER_FRAMES[int(time.monotonic() * 8) % len(_SPINNER_FRAMES)]
            elapsed = time.monotonic() - state.start_time
            return Text(state.name, style="bold cyan"), Text("Building", style="magenta"), Text(f"{spinner} {elapsed:.1f}s", style="magenta")
        if state.status == _DONE:
            return Text(state.name, style="green"), Text("Done", style="green"), Text(f"✓ {state.elapsed:.1f}s", style="green")
        if state.status == _SKIPPED:
            return Text(state.name, style="dim"), Text("Skipped", style="dim"), Text(state.detail, style="dim")
        return Text(state.name, style="red"), Text("Failed", style="red bold"), Text(f"✗ {state.detail or 'Error'}", style="red")

    def _format_line(self, state: _ModuleDisplayState) -> Text:
        name, status, detail = self._format_row(state)
        return Text.assemble("  ", name, " ", status, " ", detail)

    def get_snapshot(self) -> list[dict[str, Any]]:
        """Get a snapshot of current module states for testing."""
        with self._lock:
            return [
                {
                    "name": self._states[name].name,
                    "status": self._states[name].status,
                    "detail": self._states[name].detail,
                    "elapsed": self._states[name].elapsed,
                }
                for name in self._order
            ]

    def __enter__(self) -> "RebuildProgressDisplay":
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()
