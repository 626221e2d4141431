"""Unit tests for logging compliance across the codebase.

Library modules report through logging or the output helpers; only the
entry points (the CLI, the worker process and the output module itself)
write to the standard streams with print().
"""

import ast
import tokenize
import tomllib
from pathlib import Path

import pytest

SRC_DIR = Path(__file__).parent.parent.parent / "src" / "noderebuild"

PRINT_ALLOWED = {"cli.py", "output.py", "worker.py"}


def _source_files() -> list[Path]:
    return [p for p in SRC_DIR.rglob("*.py") if "__pycache__" not in p.parts]


def _calls_named(tree: ast.AST, name: str) -> list[int]:
    return [node.lineno for node in ast.walk(tree) if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and node.func.id == name]


class TestLoggingCompliance:
    """Test cases for logging vs print statement compliance."""

    def test_source_tree_found(self) -> None:
        assert SRC_DIR.exists(), f"Source directory not found: {SRC_DIR}"
        assert _source_files(), "No Python files found in src/"

    def test_no_print_in_library_code(self) -> None:
        """print() in docstrings is fine; actual calls are not."""
        violations = []
        for file_path in _source_files():
            if file_path.name in PRINT_ALLOWED:
                continue
            tree = ast.parse(file_path.read_text(encoding="utf-8"))
            violations.extend(f"{file_path}:{line}" for line in _calls_named(tree, "print"))

        if violations:
            pytest.fail("print() calls in library code:\n" + "\n".join(violations) + "\n\nUse logging or noderebuild.output instead.")

    def test_only_cli_configures_logging(self) -> None:
        """Modules log through getLogger(__name__); handler setup lives in the CLI."""
        violations = []
        for file_path in _source_files():
            if file_path.name == "cli.py":
                continue
            content = file_path.read_text(encoding="utf-8")
            if "logging.basicConfig" in content or "addHandler(" in content:
                violations.append(str(file_path))

        assert violations == []

    def test_loggers_use_module_name(self) -> None:
        violations = []
        for file_path in _source_files():
            content = file_path.read_text(encoding="utf-8")
            for line_num, line in enumerate(content.splitlines(), start=1):
                if "logging.getLogger(" in line and "getLogger(__name__)" not in line and "getLogger()" not in line:
                    violations.append(f"{file_path}:{line_num}: {line.strip()}")

        assert violations == []


class TestSourceStyle:
    """Checks on comment style and the declared Python floor."""

    def test_no_box_drawing_comment_separators(self) -> None:
        violations = []
        for file_path in _source_files():
            with file_path.open("rb") as f:
                for token in tokenize.tokenize(f.readline):
                    if token.type == tokenize.COMMENT and any("─" <= ch <= "╿" for ch in token.string):
                        violations.append(f"{file_path}:{token.start[0]}")

        assert violations == []

    def test_python_floor_supports_worker_flags(self) -> None:
        """-P needs 3.11 and the tarfile data filter needs 3.11.4."""
        pyproject = SRC_DIR.parent.parent / "pyproject.toml"
        with pyproject.open("rb") as f:
            requires = tomllib.load(f)["project"]["requires-python"]
        assert requires == ">=3.11.4"
