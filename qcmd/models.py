"""Data types shared by the pipeline stages.

Everything here lives for a single query.  Nothing is written to disk
and no instance is reused across invocations.
"""

from __future__ import annotations

import enum
import os
import platform
from dataclasses import dataclass, field
from typing import Optional, Tuple


class QcmdError(Exception):
    """Base class for every error raised by this package."""


class RiskLevel(enum.IntEnum):
    """Coarse danger classification of a command.

    Values are ordered so that ``max()`` picks the most conservative
    level when several rules match.
    """

    SAFE = 0
    CAUTION = 1
    DESTRUCTIVE = 2

    @property
    def label(self) -> str:
        return self.name.capitalize()


class GateDecision(enum.Enum):
    PROCEED = "proceed"
    ABORT = "abort"


def detect_shell() -> str:
    """Return the name of the user's shell.

    ``$SHELL`` wins on Unix-like systems.  On Windows we look for the
    ``PSModulePath`` variable PowerShell exports and fall back to
    ``cmd``.
    """
    shell = os.environ.get("SHELL")
    if shell:
        return os.path.basename(shell.rstrip("/\\")) or "unknown"
    if os.name == "nt":
        if os.environ.get("PSModulePath"):
            return "powershell"
        return "cmd"
    return "bash"


@dataclass(frozen=True)
class SystemContext:
    """Facts about the user's machine used to bias command syntax."""

    os: str
    shell: str
    current_dir: Optional[str] = None

    @classmethod
    def gather(cls, shell_override: Optional[str] = None, include_directory: bool = True) -> "SystemContext":
        return cls(
            os=platform.system() or "unknown",
            shell=shell_override or detect_shell(),
            current_dir=os.getcwd() if include_directory else None,
        )


@dataclass(frozen=True)
class ProviderRequest:
    query: str
    context: Optional[SystemContext] = None


@dataclass(frozen=True)
class CommandCandidate:
    """A command extracted from a provider response.

    ``command`` is never empty and never contains provider commentary
    or code fence markers.
    """

    command: str
    explanation: Optional[str] = None
    warning: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.command or not self.command.strip():
            raise ValueError("CommandCandidate.command must not be empty")
        if "```" in self.command:
            raise ValueError("CommandCandidate.command must not contain code fences")


@dataclass(frozen=True)
class RiskAssessment:
    level: RiskLevel
    reasons: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ExecutionOutcome:
    """Result of handing a command to the executor.

    ``launched`` is ``False`` when the user declined and no process
    was started; ``exit_code`` is ``None`` in that case.
    """

    launched: bool
    exit_code: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.launched and self.exit_code == 0
