"""Pytest configuration and fixtures for node-rebuild tests.

Provides a NodeTree helper for laying out fake projects (package.json files,
node_modules trees, binding.gyp markers) and a make_config factory that
builds a RebuildConfig with local runtime assets, so no test touches the
network or the user's node-gyp directory.

Also keeps the Python 3.13 stdio workaround: tests that close
stdout/stderr must not break pytest's capture teardown
(https://github.com/pytest-dev/pytest/issues/11439).
"""

import json
import sys
import warnings
from pathlib import Path
from typing import Any, Iterable, Optional

import pytest

from noderebuild import output
from noderebuild.config import RebuildConfig

# Suppress ResourceWarnings from file cleanup in Python 3.13
if sys.version_info >= (3, 13):
    warnings.filterwarnings("ignore", category=ResourceWarning)


class NodeTree:
    """Builds a fake npm project on disk.

    Usage:
        tree = NodeTree(tmp_path / "app")
        tree.manifest(dependencies=["bcrypt"])
        tree.add_module("bcrypt", native=True)
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _deps(names: Optional[Iterable[str]]) -> dict[str, str]:
        return {name: "*" for name in (names or ())}

    def manifest(
        self,
        dependencies: Optional[Iterable[str]] = None,
        optional: Optional[Iterable[str]] = None,
        dev: Optional[Iterable[str]] = None,
        native: bool = False,
        **extra: Any,
    ) -> Path:
        """Write the root package.json (and binding.gyp if native)."""
        data: dict[str, Any] = {"name": self.root.name, "version": "0.0.1"}
        data["dependencies"] = self._deps(dependencies)
        data["optionalDependencies"] = self._deps(optional)
        data["devDependencies"] = self._deps(dev)
        data.update(extra)
        path = self.root / "package.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        if native:
            (self.root / "binding.gyp").write_text("{}", encoding="utf-8")
        return path

    def add_module(
        self,
        name: str,
        under: Optional[Path] = None,
        dependencies: Optional[Iterable[str]] = None,
        optional: Optional[Iterable[str]] = None,
        native: bool = False,
        version: str = "1.0.0",
        binary: Optional[dict[str, Any]] = None,
        manifest: bool = True,
    ) -> Path:
        """Create node_modules/<name> under `under` (default: the project root)."""
        module_path = (under if under is not None else self.root) / "node_modules" / name
        module_path.mkdir(parents=True, exist_ok=True)
        if manifest:
            data: dict[str, Any] = {"name": name, "version": version}
            if dependencies:
                data["dependencies"] = self._deps(dependencies)
            if optional:
                data["optionalDependencies"] = self._deps(optional)
            if binary is not None:
                data["binary"] = binary
            (module_path / "package.json").write_text(json.dumps(data), encoding="utf-8")
        if native:
            (module_path / "binding.gyp").write_text("{}", encoding="utf-8")
        return module_path


@pytest.fixture
def node_tree(tmp_path: Path) -> NodeTree:
    """Empty fake project rooted at tmp_path/app."""
    return NodeTree(tmp_path / "app")


@pytest.fixture
def runtime_dir(tmp_path: Path) -> Path:
    """Pre-populated runtime headers and import library."""
    runtime = tmp_path / "runtime"
    (runtime / "include" / "node").mkdir(parents=True)
    (runtime / "libnode22.lib").write_bytes(b"lib")
    return runtime


@pytest.fixture
def make_config(tmp_path: Path, runtime_dir: Path, monkeypatch: pytest.MonkeyPatch):
    """Factory for RebuildConfig objects that never download anything."""
    monkeypatch.setenv("NODE_REBUILD_GYP_DIR", str(tmp_path / "gyp"))
    monkeypatch.delenv("GYP_MSVS_VERSION", raising=False)

    def _make(build_path: Path, **kwargs: Any) -> RebuildConfig:
        kwargs.setdefault("node_dir", runtime_dir)
        kwargs.setdefault("node_lib_file", runtime_dir / "libnode22.lib")
        kwargs.setdefault("arch", "x64")
        return RebuildConfig.create(build_path, **kwargs)

    return _make


@pytest.fixture(autouse=True)
def _reset_output():
    """Point the console writer back at sys.stdout/sys.stderr after each test."""
    yield
    output.init_timer()
    output.set_verbose(True)


@pytest.fixture(autouse=True)
def _restore_stdio():  # noqa: PT004
    """Ensure stdout/stderr are always restored after each test."""
    yield

    if sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if sys.stderr.closed:
        sys.stderr = sys.__stderr__
