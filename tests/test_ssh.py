"""Tests for xhyve_runner.ssh module."""

from __future__ import annotations

import subprocess
from unittest.mock import call, patch

import pytest

from xhyve_runner.exceptions import (
    LaunchError,
    ReadinessTimeout,
    RemoteExecutionFailure,
    RemoteTransportError,
)
from xhyve_runner.models import ExecuteOptions
from xhyve_runner.ssh import RemoteShell

IP = "192.168.0.2"


def _completed(returncode: int = 0) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args="ssh", returncode=returncode, stdout="", stderr="")


def _expected_argv(ssh_key):
    return [
        "ssh",
        "-o",
        "BatchMode=yes",
        "-o",
        "ConnectTimeout=5",
        "-i",
        str(ssh_key),
        f"root@{IP}",
    ]


@pytest.fixture
def shell(ssh_key):
    with patch("xhyve_runner.ssh.has_controlling_tty", return_value=False):
        yield RemoteShell(ssh_key, IP)


class TestCommandLine:
    def test_without_tty(self, shell, ssh_key):
        assert shell.command_line() == _expected_argv(ssh_key)

    def test_with_tty_requests_pseudo_terminal(self, ssh_key):
        with patch("xhyve_runner.ssh.has_controlling_tty", return_value=True):
            assert RemoteShell(ssh_key, IP).command_line()[:2] == ["ssh", "-t"]

    def test_never_prompts_and_bounds_connect(self, shell):
        argv = shell.command_line()
        assert argv[argv.index("BatchMode=yes") - 1] == "-o"
        assert argv[argv.index("ConnectTimeout=5") - 1] == "-o"


class TestExecute:
    def test_feeds_command_on_stdin(self, shell, ssh_key):
        with patch("xhyve_runner.ssh.subprocess.run", return_value=_completed(returncode=0)) as mock_run:
            outcome = shell.execute("freebsd-version")
        assert outcome.exit_code == 0
        assert outcome.success
        args, kwargs = mock_run.call_args
        assert args[0] == _expected_argv(ssh_key)
        assert kwargs["input"] == "freebsd-version"
        assert kwargs["stdout"] is None
        assert kwargs["timeout"] is None

    def test_logs_command_by_default(self, shell):
        with (
            patch("xhyve_runner.ssh.subprocess.run", return_value=_completed()),
            patch("xhyve_runner.ssh.log") as mock_log,
        ):
            shell.execute("ls /")
        mock_log.assert_called_once_with("INFO", "Executing command inside VM: ls /")

    def test_silent_and_unlogged(self, shell):
        with (
            patch("xhyve_runner.ssh.subprocess.run", return_value=_completed()) as mock_run,
            patch("xhyve_runner.ssh.log") as mock_log,
        ):
            shell.execute("true", ExecuteOptions(log=False, silent=True))
        mock_log.assert_not_called()
        assert mock_run.call_args.kwargs["stdout"] is subprocess.DEVNULL
        assert mock_run.call_args.kwargs["stderr"] is subprocess.DEVNULL

    def test_non_zero_exit_raises_execution_failure(self, shell):
        with patch("xhyve_runner.ssh.subprocess.run", return_value=_completed(returncode=3)):
            with pytest.raises(RemoteExecutionFailure) as exc:
                shell.execute("make test")
        assert exc.value.exit_code == 3
        assert exc.value.command == "make test"
        assert IP in str(exc.value)

    def test_exit_255_is_a_transport_error(self, shell):
        with patch("xhyve_runner.ssh.subprocess.run", return_value=_completed(returncode=255)):
            with pytest.raises(RemoteTransportError) as exc:
                shell.execute("make test")
        assert exc.value.command == "make test"
        assert exc.value.ip_address == IP
        assert not isinstance(exc.value, RemoteExecutionFailure)

    @pytest.mark.parametrize("code", [1, 127, 255])
    def test_ignore_return_code_never_raises(self, shell, code):
        with patch("xhyve_runner.ssh.subprocess.run", return_value=_completed(returncode=code)):
            outcome = shell.execute("false", ExecuteOptions(ignore_return_code=True))
        assert outcome.exit_code == code
        assert not outcome.success

    def test_timeout_is_passed_through(self, shell):
        with patch("xhyve_runner.ssh.subprocess.run", return_value=_completed()) as mock_run:
            shell.execute("true", ExecuteOptions(timeout=3))
        assert mock_run.call_args.kwargs["timeout"] == 3

    def test_missing_ssh_binary_is_a_launch_error(self, shell):
        with patch("xhyve_runner.ssh.subprocess.run", side_effect=FileNotFoundError("ssh")):
            with pytest.raises(LaunchError):
                shell.execute("true")


class TestWaitUntilReady:
    def test_returns_on_first_success(self, shell):
        results = [_completed(returncode=255), _completed(returncode=255), _completed(returncode=0)]
        with (
            patch("xhyve_runner.ssh.subprocess.run", side_effect=results) as mock_run,
            patch("xhyve_runner.ssh.time.sleep") as mock_sleep,
        ):
            shell.wait_until_ready(10)
        assert mock_run.call_count == 3
        assert mock_sleep.call_args_list == [call(1.0), call(1.0)]
        assert mock_run.call_args.kwargs["input"] == "true"
        assert mock_run.call_args.kwargs["timeout"] == 10

    def test_times_out_after_budget(self, shell):
        with (
            patch("xhyve_runner.ssh.subprocess.run", return_value=_completed(returncode=255)) as mock_run,
            patch("xhyve_runner.ssh.time.sleep"),
        ):
            with pytest.raises(ReadinessTimeout, match="timed out after 5 seconds") as exc:
                shell.wait_until_ready(5)
        assert mock_run.call_count == 5
        assert exc.value.timeout == 5

    def test_hung_probe_counts_as_not_ready(self, shell):
        results = [subprocess.TimeoutExpired("ssh", 10), _completed(returncode=0)]
        with (
            patch("xhyve_runner.ssh.subprocess.run", side_effect=results) as mock_run,
            patch("xhyve_runner.ssh.time.sleep"),
        ):
            shell.wait_until_ready(3)
        assert mock_run.call_count == 2

    def test_hung_probes_exhaust_budget(self, shell):
        with (
            patch("xhyve_runner.ssh.subprocess.run", side_effect=subprocess.TimeoutExpired("ssh", 10)),
            patch("xhyve_runner.ssh.time.sleep"),
        ):
            with pytest.raises(ReadinessTimeout):
                shell.wait_until_ready(2)

    def test_stops_when_wall_clock_budget_spent(self, shell):
        # deadline computed at 0.0; every later check reads 100.0
        clock = iter([0.0])
        with (
            patch("xhyve_runner.ssh.subprocess.run", return_value=_completed(returncode=255)) as mock_run,
            patch("xhyve_runner.ssh.time.sleep") as mock_sleep,
            patch("xhyve_runner.ssh.time.monotonic", side_effect=lambda: next(clock, 100.0)),
        ):
            with pytest.raises(ReadinessTimeout):
                shell.wait_until_ready(10)
        assert mock_run.call_count == 1
        mock_sleep.assert_not_called()
