from __future__ import annotations

from typing import List, Optional

import pytest

from qcmd.models import ExecutionOutcome, ProviderRequest
from qcmd.providers import BaseProvider


class FakeProvider(BaseProvider):
    """Returns canned responses, or raises canned errors, in order."""

    name = "fake"

    def __init__(self, *replies) -> None:
        self.replies = list(replies)
        self.requests: List[ProviderRequest] = []

    def submit(self, request: ProviderRequest) -> str:
        self.requests.append(request)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class Answers:
    """Stand-in for ``click.prompt`` that replays scripted answers."""

    def __init__(self, *answers: str) -> None:
        self.answers = list(answers)
        self.questions: List[str] = []
        self.defaults: List[Optional[str]] = []

    def __call__(self, text, default=None, **kwargs):
        self.questions.append(text)
        self.defaults.append(default)
        if not self.answers:
            raise AssertionError(f"unexpected prompt: {text}")
        answer = self.answers.pop(0)
        if answer == "" and default is not None:
            return default
        return answer


class RecordingRunner:
    def __init__(self, exit_code: int = 0) -> None:
        self.exit_code = exit_code
        self.commands: List[str] = []

    def __call__(self, candidate, shell=None):
        self.commands.append(candidate.command)
        return ExecutionOutcome(launched=True, exit_code=self.exit_code)


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "q" / "config.yaml"
    monkeypatch.setenv("Q_CONFIG", str(path))
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    return path
