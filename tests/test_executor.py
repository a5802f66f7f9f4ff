import os
import signal
import sys

import pytest

from qcmd import executor
from qcmd.executor import InterruptedBySignal, LaunchFailed, run, shell_argv
from qcmd.models import CommandCandidate

posix_only = pytest.mark.skipif(os.name == "nt", reason="POSIX shell semantics")


def test_shell_argv_posix() -> None:
    assert shell_argv("ls | wc -l", "/bin/bash") == ["/bin/bash", "-c", "ls | wc -l"]


def test_shell_argv_powershell() -> None:
    assert shell_argv("Get-ChildItem", "powershell") == ["powershell", "-NoProfile", "-Command", "Get-ChildItem"]


@posix_only
def test_exit_code_is_returned_verbatim() -> None:
    outcome = run(CommandCandidate("exit 3"), shell="/bin/sh")
    assert outcome.launched
    assert outcome.exit_code == 3


@posix_only
def test_successful_command(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    outcome = run("touch created.txt && ls *.txt > listing", shell="/bin/sh")
    assert outcome.succeeded
    # Runs in the caller's working directory with shell globbing.
    assert (tmp_path / "listing").read_text().strip() == "created.txt"


@posix_only
def test_environment_is_inherited(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("QCMD_TEST_VALUE", "inherited")
    monkeypatch.chdir(tmp_path)
    run('printf %s "$QCMD_TEST_VALUE" > out', shell="/bin/sh")
    assert (tmp_path / "out").read_text() == "inherited"


@posix_only
def test_command_not_found() -> None:
    with pytest.raises(LaunchFailed):
        run("definitely-not-a-real-command-qcmd", shell="/bin/sh")


def test_missing_shell() -> None:
    with pytest.raises(LaunchFailed):
        run("ls", shell="/nonexistent/shell")


@posix_only
def test_killed_by_signal() -> None:
    with pytest.raises(InterruptedBySignal) as exc_info:
        run("kill -TERM $$", shell="/bin/sh")
    assert exc_info.value.signum == signal.SIGTERM


def test_keyboard_interrupt_is_forwarded(monkeypatch) -> None:
    sent = []

    class FakePopen:
        def __init__(self, argv):
            self.waits = 0

        def wait(self):
            self.waits += 1
            if self.waits == 1:
                raise KeyboardInterrupt
            return -2

        def send_signal(self, signum):
            sent.append(signum)

        def terminate(self):
            sent.append("terminate")

    monkeypatch.setattr(executor.subprocess, "Popen", FakePopen)
    with pytest.raises(InterruptedBySignal):
        run("sleep 100", shell=sys.executable)
    assert sent
