"""Unit tests for the rebuild progress display (Rich-based renderer).

Tests cover:
- RebuildProgressDisplay implements LifecycleListener
- Module registration and ordering
- Event transitions update display state
- Failure marking
- Footer summary counts
- Printed lines on a non-terminal console
- Thread-safety: concurrent on_event calls
"""

import threading
from io import StringIO
from typing import Optional

from rich.console import Console

from noderebuild.events import Lifecycle, LifecycleEvent, LifecycleListener
from noderebuild.progress_display import RebuildProgressDisplay, _ModuleDisplayState


def make_display(buffer: Optional[StringIO] = None) -> RebuildProgressDisplay:
    return RebuildProgressDisplay(console=Console(file=buffer or StringIO(), width=120), title="Rebuilding", refresh_per_second=4)


class TestModuleDisplayState:
    """Tests for the internal _ModuleDisplayState class."""

    def test_initial_state(self) -> None:
        state = _ModuleDisplayState("bcrypt")
        assert state.name == "bcrypt"
        assert state.status == "building"
        assert state.detail == ""
        assert state.elapsed == 0.0


class TestProtocol:
    """Tests that RebuildProgressDisplay satisfies LifecycleListener."""

    def test_implements_protocol(self) -> None:
        assert isinstance(make_display(), LifecycleListener)

    def test_subscribes_to_lifecycle(self) -> None:
        display = make_display()
        lifecycle = Lifecycle()
        lifecycle.subscribe(display)
        lifecycle.emit(LifecycleEvent.START)
        lifecycle.emit(LifecycleEvent.MODULE_FOUND, "bcrypt")
        assert [s["name"] for s in display.get_snapshot()] == ["bcrypt"]


class TestEventTransitions:
    """Tests for state changes driven by lifecycle events."""

    def test_start_event_ignored(self) -> None:
        display = make_display()
        display.on_event(LifecycleEvent.START, None)
        assert display.get_snapshot() == []

    def test_found_registers_in_order(self) -> None:
        display = make_display()
        for name in ("sqlite3", "bcrypt", "@serialport/bindings"):
            display.on_event(LifecycleEvent.MODULE_FOUND, name)
        snapshot = display.get_snapshot()
        assert [s["name"] for s in snapshot] == ["sqlite3", "bcrypt", "@serialport/bindings"]
        assert all(s["status"] == "building" for s in snapshot)

    def test_duplicate_found_is_noop(self) -> None:
        display = make_display()
        display.on_event(LifecycleEvent.MODULE_FOUND, "bcrypt")
        display.on_event(LifecycleEvent.MODULE_FOUND, "bcrypt")
        assert len(display.get_snapshot()) == 1

    def test_done(self) -> None:
        display = make_display()
        display.on_event(LifecycleEvent.MODULE_FOUND, "bcrypt")
        display.on_event(LifecycleEvent.MODULE_DONE, "bcrypt")
        snapshot = display.get_snapshot()[0]
        assert snapshot["status"] == "done"
        assert snapshot["elapsed"] >= 0.0

    def test_skip_then_done_stays_skipped(self) -> None:
        """A skipped module also receives MODULE_DONE; it must stay skipped."""
        display = make_display()
        display.on_event(LifecycleEvent.MODULE_FOUND, "bcrypt")
        display.on_event(LifecycleEvent.MODULE_SKIP, "bcrypt")
        display.on_event(LifecycleEvent.MODULE_DONE, "bcrypt")
        snapshot = display.get_snapshot()[0]
        assert snapshot["status"] == "skipped"
        assert snapshot["detail"] == "up to date"

    def test_event_for_unregistered_module(self) -> None:
        display = make_display()
        display.on_event(LifecycleEvent.MODULE_DONE, "late")
        assert display.get_snapshot()[0]["status"] == "done"

    def test_mark_failed(self) -> None:
        display = make_display()
        display.on_event(LifecycleEvent.MODULE_FOUND, "bcrypt")
        display.mark_failed("bcrypt", "exit code 1")
        snapshot = display.get_snapshot()[0]
        assert snapshot["status"] == "failed"
        assert snapshot["detail"] == "exit code 1"


class TestFooter:
    """Tests for the summary line."""

    def test_counts(self) -> None:
        display = make_display()
        for name in ("a", "b", "c", "d"):
            display.on_event(LifecycleEvent.MODULE_FOUND, name)
        display.on_event(LifecycleEvent.MODULE_DONE, "a")
        display.on_event(LifecycleEvent.MODULE_SKIP, "b")
        display.mark_failed("c")
        footer = display._render_footer().plain
        assert "4 modules" in footer
        assert "1 building" in footer
        assert "1 done" in footer
        assert "1 skipped" in footer
        assert "1 failed" in footer

    def test_zero_counts_omitted(self) -> None:
        display = make_display()
        display.on_event(LifecycleEvent.MODULE_FOUND, "a")
        display.on_event(LifecycleEvent.MODULE_DONE, "a")
        footer = display._render_footer().plain
        assert "building" not in footer
        assert "failed" not in footer


class TestNonTerminalOutput:
    """Tests for the printed-line fallback used in CI logs and pipes."""

    def test_not_live_on_string_console(self) -> None:
        with make_display() as display:
            assert not display.is_live

    def test_prints_finished_modules(self) -> None:
        buffer = StringIO()
        with make_display(buffer) as display:
            display.on_event(LifecycleEvent.MODULE_FOUND, "bcrypt")
            display.on_event(LifecycleEvent.MODULE_FOUND, "sqlite3")
            display.on_event(LifecycleEvent.MODULE_DONE, "bcrypt")
            display.on_event(LifecycleEvent.MODULE_SKIP, "sqlite3")
            display.on_event(LifecycleEvent.MODULE_DONE, "sqlite3")

        output = buffer.getvalue()
        assert output.startswith("Rebuilding")
        assert "bcrypt" in output and "Done" in output
        assert "sqlite3" in output and "up to date" in output
        # One line per finished module, not one per event
        assert output.count("sqlite3") == 1
        assert "2 modules" in output

    def test_nothing_printed_before_start(self) -> None:
        buffer = StringIO()
        display = make_display(buffer)
        display.on_event(LifecycleEvent.MODULE_FOUND, "bcrypt")
        display.on_event(LifecycleEvent.MODULE_DONE, "bcrypt")
        assert buffer.getvalue() == ""

    def test_failure_printed(self) -> None:
        buffer = StringIO()
        with make_display(buffer) as display:
            display.on_event(LifecycleEvent.MODULE_FOUND, "bcrypt")
            display.mark_failed("bcrypt", "exit code 2")
        assert "Failed" in buffer.getvalue()
        assert "exit code 2" in buffer.getvalue()


class TestTableRendering:
    """Tests for the live table contents."""

    def test_render_contains_all_modules(self) -> None:
        buffer = StringIO()
        display = make_display(buffer)
        display.on_event(LifecycleEvent.MODULE_FOUND, "bcrypt")
        display.on_event(LifecycleEvent.MODULE_FOUND, "sqlite3")
        display.on_event(LifecycleEvent.MODULE_DONE, "sqlite3")

        display._console.print(display._render_display())

        output = buffer.getvalue()
        assert "Rebuilding" in output
        assert "bcrypt" in output and "Building" in output
        assert "sqlite3" in output and "Done" in output


class TestThreadSafety:
    """Tests for concurrent event delivery."""

    def test_concurrent_events(self) -> None:
        display = make_display()
        names = [f"mod-{i}" for i in range(50)]

        def worker(name: str) -> None:
            display.on_event(LifecycleEvent.MODULE_FOUND, name)
            display._render_table()
            display.on_event(LifecycleEvent.MODULE_DONE, name)

        threads = [threading.Thread(target=worker, args=(name,)) for name in names]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        snapshot = display.get_snapshot()
        assert sorted(s["name"] for s in snapshot) == sorted(names)
        assert all(s["status"] == "done" for s in snapshot)
