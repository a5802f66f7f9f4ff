import click
import pytest

from qcmd.gate import decide
from qcmd.models import CommandCandidate, GateDecision, RiskLevel

from .conftest import Answers


@pytest.mark.parametrize("level", list(RiskLevel))
def test_skip_confirmation_always_proceeds(level) -> None:
    ask = Answers()
    assert decide(level, True, prompt=ask) is GateDecision.PROCEED
    assert ask.questions == []


@pytest.mark.parametrize("answer", ["n", "no", "", "maybe", "yess", "N"])
def test_destructive_non_affirmative_aborts(answer) -> None:
    ask = Answers(answer)
    assert decide(RiskLevel.DESTRUCTIVE, False, prompt=ask) is GateDecision.ABORT
    assert ask.defaults == ["n"]
    assert "Destructive" in ask.questions[0]


@pytest.mark.parametrize("answer", ["y", "yes", "Y", " YES "])
def test_destructive_explicit_yes_proceeds(answer) -> None:
    assert decide(RiskLevel.DESTRUCTIVE, False, prompt=Answers(answer)) is GateDecision.PROCEED


@pytest.mark.parametrize("level", [RiskLevel.SAFE, RiskLevel.CAUTION])
def test_safe_and_caution_default_to_yes(level) -> None:
    ask = Answers("")
    assert decide(level, False, prompt=ask) is GateDecision.PROCEED
    assert ask.defaults == ["y"]


def test_safe_declined() -> None:
    assert decide(RiskLevel.SAFE, False, prompt=Answers("no")) is GateDecision.ABORT


def test_interrupted_prompt_aborts() -> None:
    def interrupted(*args, **kwargs):
        raise click.Abort()

    assert decide(RiskLevel.SAFE, False, prompt=interrupted) is GateDecision.ABORT


def test_candidate_is_shown(capsys) -> None:
    candidate = CommandCandidate("rm -rf /tmp/*", explanation="Empties /tmp", warning="Irreversible")
    decide(RiskLevel.DESTRUCTIVE, False, candidate=candidate, reasons=["Recursive delete"], prompt=Answers("n"))
    out = capsys.readouterr().out
    assert "rm -rf /tmp/*" in out
    assert "Empties /tmp" in out
    assert "Irreversible" in out
    assert "Risk: Destructive" in out
    assert "Recursive delete" in out


def test_explanation_can_be_hidden(capsys) -> None:
    candidate = CommandCandidate("ls", explanation="Lists files")
    decide(RiskLevel.SAFE, True, candidate=candidate, show_explanation=False)
    out = capsys.readouterr().out
    assert "ls" in out
    assert "Lists files" not in out
