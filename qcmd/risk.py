"""Risk classification of candidate commands.

Commands coming back from a model must be looked at before anyone is
asked to run them.  This module matches the command string against an
ordered rule table and reports the most severe level that matched.
The table is plain data: adding a rule means appending a
:class:`RiskRule`, never touching :func:`assess`.

Patterns are anchored to command positions (start of the line, after
``;``, ``&&``, ``||``, ``|``, ``(`` and behind wrappers like ``sudo``
or ``xargs``) so every command in a chain is inspected.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

from .models import CommandCandidate, RiskAssessment, RiskLevel

# Start of a simple command, optionally behind a wrapper.
_AT = r"(?:^|[;&|(\n`]|\$\()\s*(?:(?:sudo|doas|nohup|exec|time|env|xargs)\s+(?:-\S+\s+)*)*"
# Rest of the current simple command.
_ARGS = r"[^;&|\n]*"
_SYSTEM_DIRS = r"(?:etc|usr|bin|sbin|boot|lib|lib64|var|opt|sys|proc|dev|root|System|Library)"


def _cmd(name: str) -> str:
    return _AT + r"(?:\S*/)?" + name + r"(?=\s|$|[;&|)])"


@dataclass(frozen=True)
class RiskRule:
    pattern: str
    level: RiskLevel
    reason: str

    def matches(self, command: str) -> bool:
        return re.search(self.pattern, command) is not None


D = RiskLevel.DESTRUCTIVE
C = RiskLevel.CAUTION

RULES: Tuple[RiskRule, ...] = (
    # Filesystem-wide deletion
    RiskRule(
        _cmd("rm") + r"(?=" + _ARGS + r"\s(?:-[a-zA-Z]*[rR]|--recursive))" + _ARGS + r"\s['\"]?(?:/|~|\$HOME|\*)",
        D,
        "Recursive delete of an absolute, home or wildcard path",
    ),
    RiskRule(_cmd("rm") + _ARGS + r"--no-preserve-root", D, "Delete with --no-preserve-root"),
    RiskRule(_cmd("find") + r"\s+['\"]?(?:/|~)['\"]?\s" + _ARGS + r"-delete\b", D, "find -delete from the filesystem root"),
    RiskRule(_cmd("shred") + _ARGS + r"\s(?:/dev/|/\s|/$)", D, "Shred on a device or root"),
    # Disk formatting and raw device writes
    RiskRule(_cmd(r"mkfs(?:\.\w+)?"), D, "Filesystem creation (mkfs)"),
    RiskRule(_cmd(r"(?:mkswap|wipefs|fdisk|sfdisk|parted|gdisk)"), D, "Disk partitioning or formatting"),
    RiskRule(_cmd("dd") + _ARGS + r"\bof=/dev/(?!null\b)", D, "Raw device write with dd"),
    RiskRule(r">\s*/dev/(?:sd|hd|vd|xvd|nvme|mmcblk|disk)", D, "Redirect into a block device"),
    # Permission changes on system paths
    RiskRule(
        _cmd(r"(?:chmod|chown|chgrp)") + _ARGS + r"\s['\"]?/(?:\*|['\"]?(?=\s|$)|" + _SYSTEM_DIRS + r"\b)",
        D,
        "Permission change on a system path",
    ),
    RiskRule(r"(?<!>)>(?!>)\s*['\"]?/(?:etc|usr|bin|sbin|boot|lib|lib64)/", D, "Overwrite of a system file"),
    # Force-pushes
    RiskRule(
        _cmd("git") + _ARGS + r"\bpush\b" + _ARGS + r"\s(?:--force(?![-\w])|-[a-zA-Z]*f[a-zA-Z]*(?=\s|$)|\+[\w./-]+)",
        D,
        "Force-push rewrites remote history",
    ),
    # Broad process kills
    RiskRule(_cmd("kill") + r"(?:\s+-\S+)*\s+(?:--\s+)?(?:-1|0|1)(?=\s*(?:$|[;&|)\n]))", D, "Signal sent to every process or to init"),
    RiskRule(_cmd("pkill") + r"(?!" + _ARGS + r"\s(?:-x|--exact)\b)", D, "pkill matches process names by substring"),
    RiskRule(_cmd("killall5"), D, "Signal sent to every process"),
    # Everything else that takes the machine down or runs unseen code
    RiskRule(r":\s*\(\s*\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:", D, "Fork bomb"),
    RiskRule(_cmd(r"(?:shutdown|reboot|halt|poweroff)"), D, "System power action"),
    RiskRule(r"\b(?:curl|wget)\b[^;&\n]*\|\s*(?:sudo\s+)?(?:ba|z|da|k)?sh\b", D, "Pipe remote script to shell"),
    # Caution
    RiskRule(_AT + r"(?:sudo|doas|su)(?=\s|$)", C, "Runs with elevated privileges"),
    RiskRule(_cmd(r"(?:rm|rmdir|unlink)"), C, "Deletes files"),
    RiskRule(_cmd("find") + _ARGS + r"\s(?:-delete\b|-exec\s+rm\b)", C, "find deletes matching files"),
    RiskRule(
        r"(?<![<0-9&])>>?\s*['\"]?(?:/|~|\.\./)(?!dev/(?:null|stdout|stderr|tty)\b)",
        C,
        "Writes outside the current directory",
    ),
    RiskRule(
        _cmd(r"(?:mv|cp|rsync|ln|install)") + _ARGS + r"\s['\"]?(?:/|~|\.\./)[^\s;&|]*['\"]?\s*(?=$|[;&|\n])",
        C,
        "Writes outside the current directory",
    ),
    RiskRule(_cmd("tee") + _ARGS + r"\s['\"]?(?:/|~|\.\./)(?!dev/null\b)", C, "Writes outside the current directory"),
    RiskRule(_cmd(r"(?:chmod|chown|chgrp)"), C, "Changes permissions or ownership"),
    RiskRule(_cmd("git") + _ARGS + r"\bpush\b" + _ARGS + r"--force-with-lease", C, "Force-push with lease"),
    RiskRule(_cmd("git") + _ARGS + r"\breset\b" + _ARGS + r"--hard", C, "Discards uncommitted changes"),
    RiskRule(_cmd("git") + _ARGS + r"\bclean\b" + _ARGS + r"\s-[a-zA-Z]*f", C, "Deletes untracked files"),
    RiskRule(_cmd("git") + _ARGS + r"\bbranch\b" + _ARGS + r"\s-D\b", C, "Force-deletes a branch"),
    RiskRule(_cmd(r"(?:kill|killall|pkill)"), C, "Terminates processes"),
    RiskRule(_cmd("dd"), C, "Low-level copy with dd"),
    RiskRule(_cmd("truncate"), C, "Truncates files"),
    RiskRule(_cmd("sed") + _ARGS + r"\s-[a-zA-Z]*i", C, "Edits files in place"),
)


def _command_text(candidate: Union[CommandCandidate, str]) -> str:
    if isinstance(candidate, CommandCandidate):
        return candidate.command
    return candidate or ""


def assess(candidate: Union[CommandCandidate, str], rules: Sequence[RiskRule] = RULES) -> RiskAssessment:
    """Return the risk level and the reasons of every rule that matched.

    When a command matches rules of different levels the most severe
    one wins.  No match means :attr:`RiskLevel.SAFE`.
    """
    command = _command_text(candidate).strip()
    matched = [rule for rule in rules if rule.matches(command)]
    if not matched:
        return RiskAssessment(RiskLevel.SAFE)
    level = max(rule.level for rule in matched)
    reasons = []
    for rule in matched:
        if rule.level == level and rule.reason not in reasons:
            reasons.append(rule.reason)
    return RiskAssessment(level, tuple(reasons))


def classify(candidate: Union[CommandCandidate, str], rules: Sequence[RiskRule] = RULES) -> RiskLevel:
    """Return the :class:`RiskLevel` of a command.  Never raises."""
    return assess(candidate, rules).level


def is_dangerous(command: str) -> bool:
    """Return True if the command is classified as destructive."""
    return classify(command) is RiskLevel.DESTRUCTIVE
