"""Unit tests for the build worker process entry point."""

import io
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from noderebuild.build.worker import EXIT_BAD_REQUEST, EXIT_NODE_GYP_MISSING, BuildRequest, find_node_gyp, main

REQUEST = BuildRequest(module_name="bcrypt", build_args=["rebuild", "--verbose"], work_dir="/gyp/_p/bcrypt")


def run_main(stdin_text: str) -> int:
    with patch("sys.stdin", io.StringIO(stdin_text)):
        return main()


class TestBuildRequest:
    """Tests for the stdin wire format."""

    def test_wire_keys(self) -> None:
        assert BuildRequest.from_json(REQUEST.to_json()) == REQUEST
        assert '"moduleName": "bcrypt"' in REQUEST.to_json()

    @pytest.mark.parametrize(
        "text",
        [
            "not json",
            "[]",
            '{"buildArgs": [], "workDir": "/x"}',
            '{"moduleName": "a", "buildArgs": "rebuild", "workDir": "/x"}',
            '{"moduleName": "a", "buildArgs": [1], "workDir": "/x"}',
            '{"moduleName": "a", "buildArgs": []}',
        ],
    )
    def test_rejects_malformed(self, text: str) -> None:
        with pytest.raises(ValueError):
            BuildRequest.from_json(text)


class TestFindNodeGyp:
    """Tests for node-gyp lookup."""

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NODE_GYP", "/opt/node-gyp")
        assert find_node_gyp() == ["/opt/node-gyp"]

    def test_env_override_script(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NODE_GYP", "/opt/node-gyp/bin/node-gyp.js")
        assert find_node_gyp() == ["node", "/opt/node-gyp/bin/node-gyp.js"]

    def test_path_lookup(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NODE_GYP", raising=False)
        with patch("noderebuild.build.worker.shutil.which", return_value="/usr/bin/node-gyp"):
            assert find_node_gyp() == ["/usr/bin/node-gyp"]

    def test_not_found(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NODE_GYP", raising=False)
        with patch("noderebuild.build.worker.shutil.which", return_value=None):
            assert find_node_gyp() is None


class TestMain:
    """Tests for the worker's exit codes."""

    @patch("noderebuild.build.worker.safe_run")
    @patch("noderebuild.build.worker.find_node_gyp", return_value=["node-gyp"])
    def test_runs_node_gyp_with_devdir(self, mock_find: MagicMock, mock_run: MagicMock) -> None:
        mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=0)

        assert run_main(REQUEST.to_json()) == 0

        mock_run.assert_called_once_with(["node-gyp", "rebuild", "--verbose", "--devdir=/gyp/_p/bcrypt"])

    @patch("noderebuild.build.worker.safe_run")
    @patch("noderebuild.build.worker.find_node_gyp", return_value=["node-gyp"])
    def test_propagates_exit_code(self, mock_find: MagicMock, mock_run: MagicMock) -> None:
        mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=7)
        assert run_main(REQUEST.to_json()) == 7

    def test_bad_request(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert run_main("{") == EXIT_BAD_REQUEST
        assert "bad request" in capsys.readouterr().err

    @patch("noderebuild.build.worker.find_node_gyp", return_value=None)
    def test_node_gyp_missing(self, mock_find: MagicMock) -> None:
        assert run_main(REQUEST.to_json()) == EXIT_NODE_GYP_MISSING

    @patch("noderebuild.build.worker.safe_run", side_effect=FileNotFoundError("nope"))
    @patch("noderebuild.build.worker.find_node_gyp", return_value=["/missing/node-gyp"])
    def test_node_gyp_not_executable(self, mock_find: MagicMock, mock_run: MagicMock) -> None:
        assert run_main(REQUEST.to_json()) == EXIT_NODE_GYP_MISSING
