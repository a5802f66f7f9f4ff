"""Command extraction from raw model output.

Models rarely answer with a bare command.  This module locates the
command inside a response and separates it from the surrounding prose.
The lookup order is:

1. the first non-empty triple-backtick fenced block (a JSON answer
   inside the fence is unpacked, shell prompts are dropped);
2. a JSON object with a ``command`` key (``explanation`` and
   ``warning`` are picked up as well);
3. a single distinct inline ```code``` span;
4. the only line that looks like a shell invocation.

If none applies the response is rejected.  Several plausible lines
with nothing to tell them apart are reported back so the user can
rephrase the query.  Extraction is a pure function of the text.
"""

from __future__ import annotations

import json
import re
from typing import List, Optional, Tuple

from .models import CommandCandidate, QcmdError


class ExtractionError(QcmdError):
    summary = "Could not extract a command from the AI response"


class NoCommandFound(ExtractionError):
    summary = "The AI response did not contain a command"


class MultipleAmbiguousCommands(ExtractionError):
    summary = "The AI response contained several possible commands"

    def __init__(self, candidates: List[str]) -> None:
        super().__init__(f"{len(candidates)} candidate lines, please rephrase the query")
        self.candidates = list(candidates)


_FENCE_RE = re.compile(r"```(?:[\w+#.-]*[ \t]*\n)?(.*?)```", re.DOTALL)
_INLINE_RE = re.compile(r"(?<!`)`([^`\n]+)`(?!`)")
_BULLET_RE = re.compile(r"^\s*(?:[-*+•]\s+|\d+[.)]\s+)")
_PROMPT_RE = re.compile(r"^(?:\$|>|PS>)\s+")
_LEAD_IN_RE = re.compile(
    r"^(?:here(?:'s| is)\b[^:]*|(?:the\s+)?(?:shell\s+)?command(?:\s+is)?|run(?:\s+this)?|try|use)\s*:\s*",
    re.IGNORECASE,
)
_LABEL_RE = re.compile(r"^\**(explanation|description|warning|note)\**\s*:\s*\**\s*", re.IGNORECASE)
_WARNING_RE = re.compile(r"^(?:⚠️?\s*|\**warning\**\s*:\s*\**)", re.IGNORECASE)
_TOKEN_RE = re.compile(r"^(?:[A-Za-z_][A-Za-z0-9_]*=\S*|[a-z0-9_.~/][\w.+~/:-]*|[A-Z][a-z]+-[A-Za-z]+)$")
_SENTENCE_END_RE = re.compile(r"[A-Za-z)][.!?]$")
_QUOTES = "\"'`“”‘’"

# First words that begin English sentences rather than commands.
PROSE_WORDS = frozenset(
    """
    a an and are as be but can certainly could do does for here how i if in is it
    it's let's make may might note of on or please should so sure that the then
    there these this those to use using we which will with would you your
    """.split()
)


def _strip_markers(line: str) -> str:
    """Remove bullets, prompts, lead-ins and wrapping quotes from a line."""
    text = line.strip()
    text = _BULLET_RE.sub("", text)
    text = _PROMPT_RE.sub("", text)
    text = _LEAD_IN_RE.sub("", text)
    text = text.strip()
    while len(text) >= 2 and text[0] in _QUOTES and text[-1] in _QUOTES:
        text = text[1:-1].strip()
    return text


def looks_like_command(line: str) -> bool:
    """Return True when ``line`` reads as a shell invocation, not prose."""
    text = line.strip()
    if not text or text.endswith(":"):
        return False
    first = text.split()[0]
    if first.endswith(":") or first.lower() in PROSE_WORDS:
        return False
    if not _TOKEN_RE.match(first):
        return False
    words = text.split()
    if len(words) > 3 and _SENTENCE_END_RE.search(text):
        # "Lists every file in the directory." style sentences
        return False
    return True


def _explanation_and_warning(lines: List[str]) -> Tuple[Optional[str], Optional[str]]:
    explanation = None
    warning = None
    for raw in lines:
        line = raw.strip()
        if not line:
            continue
        if _WARNING_RE.match(line):
            if warning is None:
                warning = _LABEL_RE.sub("", _WARNING_RE.sub("", line)).strip(" *") or None
            continue
        line = _LABEL_RE.sub("", _BULLET_RE.sub("", line)).strip()
        if not line or line.endswith(":") or line.startswith("```"):
            continue
        if explanation is None:
            explanation = line
    return explanation, warning


def _unprompt(block: str) -> str:
    """Drop shell prompts when the block is one line or every line has one."""
    lines = block.splitlines()
    if len(lines) == 1 or all(_PROMPT_RE.match(line) for line in lines):
        return "\n".join(_PROMPT_RE.sub("", line) for line in lines).strip()
    return block


def _from_fence(raw: str) -> Optional[CommandCandidate]:
    for match in _FENCE_RE.finditer(raw):
        command = match.group(1).strip()
        if not command:
            continue
        # ```json blocks carrying {"command": ...}
        answer = _from_json(command)
        if answer is not None:
            return answer
        command = _unprompt(command)
        rest = (raw[: match.start()] + "\n" + raw[match.end():]).splitlines()
        explanation, warning = _explanation_and_warning(rest)
        return CommandCandidate(command=command, explanation=explanation, warning=warning)
    return None


def _from_json(raw: str) -> Optional[CommandCandidate]:
    text = raw.strip()
    if not (text.startswith("{") and text.endswith("}")):
        return None
    try:
        data = json.loads(text)
    except ValueError:
        return None
    command = data.get("command") if isinstance(data, dict) else None
    if not isinstance(command, str) or not command.strip():
        return None

    def _optional(key: str) -> Optional[str]:
        value = data.get(key)
        return value.strip() or None if isinstance(value, str) else None

    return CommandCandidate(
        command=command.strip(),
        explanation=_optional("explanation"),
        warning=_optional("warning"),
    )


def _from_inline(raw: str) -> Optional[CommandCandidate]:
    spans = []
    for match in _INLINE_RE.finditer(raw):
        span = match.group(1).strip()
        if span and span not in spans:
            spans.append(span)
    if len(spans) != 1 or not looks_like_command(spans[0]):
        return None
    # Lines consisting only of the span are dropped; prose around it stays.
    rest = [line for line in raw.splitlines() if _strip_markers(line) != spans[0]]
    explanation, warning = _explanation_and_warning(rest)
    return CommandCandidate(command=spans[0], explanation=explanation, warning=warning)


def _from_lines(raw: str) -> CommandCandidate:
    lines = raw.splitlines()
    matches = []
    for index, line in enumerate(lines):
        text = _strip_markers(line)
        if looks_like_command(text):
            matches.append((index, text))
    distinct = []
    for _, text in matches:
        if text not in distinct:
            distinct.append(text)
    if not distinct:
        raise NoCommandFound("no command-like content in the response")
    if len(distinct) > 1:
        raise MultipleAmbiguousCommands(distinct)
    used = {index for index, _ in matches}
    rest = [line for index, line in enumerate(lines) if index not in used]
    explanation, warning = _explanation_and_warning(rest)
    return CommandCandidate(command=distinct[0], explanation=explanation, warning=warning)


def extract(raw: str) -> CommandCandidate:
    """Return the command contained in the raw provider text.

    :param raw: Unmodified model output.
    :raises NoCommandFound: When nothing in the text is a command.
    :raises MultipleAmbiguousCommands: When more than one unfenced line
      could be the command.
    """
    if not raw or not raw.strip():
        raise NoCommandFound("the response was empty")
    for strategy in (_from_fence, _from_json, _from_inline):
        candidate = strategy(raw)
        if candidate is not None:
            return candidate
    return _from_lines(raw)
