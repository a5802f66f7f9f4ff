"""The confirmation gate between extraction and execution.

Every command passes through :func:`decide` before it may be handed to
the executor.  ``--yes`` is an explicit trust override and skips the
prompt for every risk level; otherwise the user has to answer the
prompt with ``y`` or ``yes``.  Destructive commands default to "no".
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

import click

from .models import CommandCandidate, GateDecision, RiskLevel

logger = logging.getLogger(__name__)

AFFIRMATIVE = ("y", "yes")

_LEVEL_COLOURS = {
    RiskLevel.SAFE: "green",
    RiskLevel.CAUTION: "yellow",
    RiskLevel.DESTRUCTIVE: "red",
}


def show_candidate(
    candidate: CommandCandidate,
    risk: RiskLevel,
    reasons: Sequence[str] = (),
    show_explanation: bool = True,
) -> None:
    """Print the command, its explanation and any warnings."""
    click.secho("\nSuggested command:", fg="cyan", bold=True)
    click.secho(candidate.command, bold=True)
    if show_explanation and candidate.explanation:
        click.secho("\nExplanation:", fg="yellow")
        click.echo(candidate.explanation)
    if candidate.warning:
        click.secho("\nWARNING:", fg="red", bold=True)
        click.secho(candidate.warning, fg="red")
    if risk is not RiskLevel.SAFE:
        click.echo()
        click.secho(f"Risk: {risk.label}", fg=_LEVEL_COLOURS[risk], bold=risk is RiskLevel.DESTRUCTIVE)
        for reason in reasons:
            click.secho(f"  - {reason}", fg=_LEVEL_COLOURS[risk])


def decide(
    risk: RiskLevel,
    skip_confirmation: bool,
    candidate: Optional[CommandCandidate] = None,
    reasons: Sequence[str] = (),
    show_explanation: bool = True,
    prompt: Optional[Callable[..., str]] = None,
) -> GateDecision:
    """Return whether the command may run.

    :param risk: Classification of ``candidate``.
    :param skip_confirmation: ``True`` when ``-y/--yes`` was given.
    :param prompt: Callable with the signature of :func:`click.prompt`,
      used to read the answer.
    :returns: :attr:`GateDecision.PROCEED` only for ``--yes`` or an
      explicit affirmative answer.
    """
    if candidate is not None:
        show_candidate(candidate, risk, reasons, show_explanation)

    if skip_confirmation:
        logger.debug("Confirmation skipped for %s command", risk.label)
        return GateDecision.PROCEED

    if risk is RiskLevel.DESTRUCTIVE:
        question = click.style("Destructive command. Run it anyway? [y/N]", fg="red", bold=True)
        default = "n"
    else:
        question = "Run this command? [Y/n]"
        default = "y"

    ask = prompt or click.prompt
    click.echo()
    try:
        answer = ask(question, default=default, show_default=False)
    except click.Abort:
        click.echo()
        return GateDecision.ABORT
    if str(answer).strip().lower() in AFFIRMATIVE:
        return GateDecision.PROCEED
    logger.debug("User answered %r, aborting", answer)
    return GateDecision.ABORT
