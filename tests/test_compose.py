"""
Compose tool wrapper tests.
"""

import subprocess
from unittest.mock import Mock, patch

import pytest

from ente_selfhost.compose import (
    ComposeRunner,
    check_runtime_dependencies,
    ensure_running,
    stop,
)
from ente_selfhost.errors import ToolMissingError


@pytest.fixture
def runner(tmp_path):
    return ComposeRunner(["podman", "compose"], tmp_path)


class TestComposeRunner:
    def test_up_runs_detached_in_project_dir(self, runner, tmp_path):
        with patch("subprocess.run", return_value=Mock(returncode=0)) as mock_run:
            runner.up()

        assert mock_run.call_args[0][0] == ["podman", "compose", "up", "-d"]
        assert mock_run.call_args[1]["cwd"] == tmp_path

    def test_down(self, runner):
        with patch("subprocess.run", return_value=Mock(returncode=0)) as mock_run:
            runner.down()
        assert mock_run.call_args[0][0] == ["podman", "compose", "down"]

    def test_exec_disables_tty(self, runner):
        with patch("subprocess.run", return_value=Mock(returncode=0)) as mock_run:
            runner.exec("minio", "mc", "ls", "local/")
        assert mock_run.call_args[0][0] == ["podman", "compose", "exec", "-T", "minio", "mc", "ls", "local/"]

    def test_up_background_does_not_wait(self, runner, tmp_path):
        with patch("subprocess.Popen") as mock_popen:
            runner.up_background()

        mock_popen.assert_called_once()
        assert mock_popen.call_args[0][0] == ["podman", "compose", "up", "-d"]
        assert mock_popen.call_args[1]["stdout"] == subprocess.DEVNULL
        mock_popen.return_value.wait.assert_not_called()

    def test_docker_compose_command(self, tmp_path):
        runner = ComposeRunner(["docker", "compose"], tmp_path)
        with patch("subprocess.run", return_value=Mock(returncode=0)) as mock_run:
            runner.up()
        assert mock_run.call_args[0][0][:2] == ["docker", "compose"]


class TestRuntimeDependencies:
    def test_missing_binary(self, runner):
        with patch("subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(ToolMissingError, match="podman compose"):
                check_runtime_dependencies(runner)

    def test_version_failure(self, runner):
        with patch("subprocess.run", return_value=Mock(returncode=125)):
            with pytest.raises(ToolMissingError):
                check_runtime_dependencies(runner)

    def test_available(self, runner):
        with patch("subprocess.run", return_value=Mock(returncode=0)) as mock_run:
            check_runtime_dependencies(runner)
        assert mock_run.call_args[0][0] == ["podman", "compose", "version"]


class TestLifecycle:
    def test_ensure_running_success(self, runner):
        with patch("subprocess.run", return_value=Mock(returncode=0, stdout="", stderr="")):
            assert ensure_running(runner) is True

    def test_ensure_running_failure(self, runner, capsys):
        with patch("subprocess.run", return_value=Mock(returncode=1, stdout="", stderr="no such image")):
            assert ensure_running(runner) is False
        assert "no such image" in capsys.readouterr().out

    def test_stop_ignores_failures(self, runner):
        with patch("subprocess.run", return_value=Mock(returncode=1, stdout="", stderr="not running")):
            stop(runner)

    def test_stop_without_compose_binary(self, runner, capsys):
        with patch("subprocess.run", side_effect=FileNotFoundError("podman")):
            stop(runner)
        assert "Could not run compose down" in capsys.readouterr().out
