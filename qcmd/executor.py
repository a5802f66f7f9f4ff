"""Running approved commands.

The command string is handed to the user's shell so pipes, globs and
builtins behave as they would at the prompt.  The child inherits the
working directory, the environment and the terminal's standard
streams, so its output appears live and nothing is captured.
"""

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
from typing import List, Optional, Union

from .models import CommandCandidate, ExecutionOutcome, QcmdError

logger = logging.getLogger(__name__)

# Exit status POSIX shells use for "command not found".
COMMAND_NOT_FOUND = 127


class ExecutionError(QcmdError):
    summary = "Command execution failed"


class LaunchFailed(ExecutionError):
    summary = "Could not launch command"


class InterruptedBySignal(ExecutionError):
    summary = "Command was interrupted"

    def __init__(self, message: str, signum: Optional[int] = None) -> None:
        super().__init__(message)
        self.signum = signum


def default_shell() -> str:
    """Return the shell used to run commands on this machine."""
    if os.name == "nt":
        return "powershell"
    shell = os.environ.get("SHELL")
    if shell and os.path.isabs(shell) and os.access(shell, os.X_OK):
        return shell
    return "/bin/sh"


def shell_argv(command: str, shell: Optional[str] = None) -> List[str]:
    """Return the argument vector that runs ``command`` in ``shell``."""
    shell = shell or default_shell()
    name = os.path.basename(shell).lower()
    if name.endswith(".exe"):
        name = name[:-4]
    if name in ("powershell", "pwsh"):
        return [shell, "-NoProfile", "-Command", command]
    if name == "cmd":
        return [shell, "/C", command]
    return [shell, "-c", command]


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"signal {signum}"


def run(candidate: Union[CommandCandidate, str], shell: Optional[str] = None) -> ExecutionOutcome:
    """Run the command and return its exit status.

    :raises LaunchFailed: When the shell cannot be started or reports
      that the command does not exist.
    :raises InterruptedBySignal: When the user presses Ctrl-C while the
      command runs or the child is killed by a signal.
    """
    command = candidate.command if isinstance(candidate, CommandCandidate) else candidate
    argv = shell_argv(command, shell)
    if shutil.which(argv[0]) is None and not os.path.exists(argv[0]):
        raise LaunchFailed(f"shell not found: {argv[0]}")

    logger.debug("Executing %r via %s", command, argv[0])
    try:
        proc = subprocess.Popen(argv)
    except OSError as exc:
        raise LaunchFailed(f"{argv[0]}: {exc.strerror or exc}") from exc

    try:
        returncode = proc.wait()
    except KeyboardInterrupt:
        # The terminal usually delivers SIGINT to the whole foreground
        # process group already; sending it again is harmless.
        if os.name != "nt":
            proc.send_signal(signal.SIGINT)
        else:
            proc.terminate()
        try:
            proc.wait()
        except KeyboardInterrupt:
            proc.kill()
            proc.wait()
        raise InterruptedBySignal("interrupted by user (SIGINT)", getattr(signal, "SIGINT", None)) from None

    if returncode < 0:
        raise InterruptedBySignal(f"terminated by {_signal_name(-returncode)}", -returncode)
    if returncode == COMMAND_NOT_FOUND and os.name != "nt":
        raise LaunchFailed("command not found")
    logger.debug("Command exited with status %s", returncode)
    return ExecutionOutcome(launched=True, exit_code=returncode)
