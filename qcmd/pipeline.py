"""End-to-end query pipeline.

A :class:`Pipeline` takes one query through the stages

    QUERYING -> EXTRACTING -> CLASSIFYING -> CONFIRMING -> EXECUTING -> DONE

strictly in order.  With ``--yes`` the CONFIRMING stage is skipped, but
the command still goes through :func:`qcmd.gate.decide`, which returns
without prompting.  A declined confirmation ends in DONE with
``declined`` set and the executor is never called.  Any component
error stops the run at its stage and is re-raised as a
:class:`PipelineError` carrying the stage and the original error.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import click

from . import executor, extractor, gate, placeholders, risk
from .config import Config
from .models import (
    CommandCandidate,
    ExecutionOutcome,
    GateDecision,
    ProviderRequest,
    QcmdError,
    RiskAssessment,
    RiskLevel,
    SystemContext,
)
from .providers import BaseProvider, NetworkError, ProviderError, RateLimited

logger = logging.getLogger(__name__)

# Upper bound on a single wait between provider attempts, in seconds.
MAX_RETRY_DELAY = 10.0


class Stage(enum.Enum):
    QUERYING = "querying"
    EXTRACTING = "extracting"
    CLASSIFYING = "classifying"
    CONFIRMING = "confirming"
    EXECUTING = "executing"
    DONE = "done"
    FAILED = "failed"


class PipelineError(QcmdError):
    """A stage failed; ``cause`` is the component error."""

    def __init__(self, stage: Stage, cause: Exception) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(self.message)

    @property
    def message(self) -> str:
        summary = getattr(self.cause, "summary", "Unexpected error")
        detail = str(self.cause)
        return f"{summary}: {detail}" if detail else summary

    @property
    def details(self) -> List[str]:
        """Extra lines to show under the message."""
        if isinstance(self.cause, extractor.MultipleAmbiguousCommands):
            return list(self.cause.candidates)
        return []


@dataclass
class PipelineResult:
    query: str
    stage: Stage = Stage.QUERYING
    candidate: Optional[CommandCandidate] = None
    assessment: Optional[RiskAssessment] = None
    outcome: ExecutionOutcome = field(default_factory=lambda: ExecutionOutcome(launched=False))
    trace: List[Stage] = field(default_factory=list)

    @property
    def declined(self) -> bool:
        return self.stage is Stage.DONE and not self.outcome.launched

    @property
    def exit_code(self) -> int:
        return self.outcome.exit_code or 0


class Pipeline:
    """Runs one query from provider to executor."""

    def __init__(
        self,
        provider: BaseProvider,
        context: Optional[SystemContext] = None,
        max_attempts: int = 1,
        retry_backoff: float = 0.5,
        show_explanation: bool = True,
        shell: Optional[str] = None,
        prompt: Optional[Callable[..., str]] = None,
        runner: Callable[..., ExecutionOutcome] = executor.run,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.provider = provider
        self.context = context
        self.max_attempts = max(1, max_attempts)
        self.retry_backoff = retry_backoff
        self.show_explanation = show_explanation
        self.shell = shell
        self.prompt = prompt
        self.runner = runner
        self.sleep = sleep

    @classmethod
    def from_config(cls, config: Config, provider: BaseProvider, **kwargs) -> "Pipeline":
        ctx = config.context
        context = None
        if ctx.include_shell_info:
            context = SystemContext.gather(ctx.shell, include_directory=ctx.include_directory)
        kwargs.setdefault("context", context)
        kwargs.setdefault("max_attempts", config.provider.max_attempts)
        kwargs.setdefault("retry_backoff", config.provider.retry_backoff)
        kwargs.setdefault("show_explanation", config.execution.show_explanation)
        return cls(provider, **kwargs)

    def _enter(self, result: PipelineResult, stage: Stage) -> None:
        logger.debug("%s -> %s", result.stage.value, stage.value)
        result.stage = stage
        result.trace.append(stage)

    def _fail(self, result: PipelineResult, exc: Exception) -> PipelineError:
        failed = PipelineError(result.stage, exc)
        logger.debug("Pipeline failed at %s: %s", result.stage.value, failed.message)
        result.trace.append(Stage.FAILED)
        return failed

    def _submit(self, request: ProviderRequest) -> str:
        """Call the provider, retrying transient failures a bounded number of times."""
        attempt = 1
        while True:
            try:
                return self.provider.submit(request)
            except (NetworkError, RateLimited) as exc:
                if attempt >= self.max_attempts or not getattr(exc, "transient", True):
                    raise
                delay = self.retry_backoff * (2 ** (attempt - 1))
                if isinstance(exc, RateLimited) and exc.retry_after is not None:
                    delay = exc.retry_after
                delay = min(delay, MAX_RETRY_DELAY)
                logger.info("Attempt %d/%d failed (%s), retrying in %.1fs", attempt, self.max_attempts, exc, delay)
                self.sleep(delay)
                attempt += 1

    def _confirm(self, result: PipelineResult, skip_confirmation: bool) -> GateDecision:
        return gate.decide(
            result.assessment.level,
            skip_confirmation,
            candidate=result.candidate,
            reasons=result.assessment.reasons,
            show_explanation=self.show_explanation,
            prompt=self.prompt,
        )

    def _resolve_placeholders(self, result: PipelineResult, skip_confirmation: bool) -> GateDecision:
        command = result.candidate.command
        if not placeholders.find_placeholders(command):
            return GateDecision.PROCEED
        try:
            final = placeholders.fill_placeholders(command, prompt=self.prompt)
        except click.Abort:
            click.echo()
            return GateDecision.ABORT
        previous = result.assessment.level
        result.candidate = CommandCandidate(
            command=final,
            explanation=result.candidate.explanation,
            warning=result.candidate.warning,
        )
        result.assessment = risk.assess(result.candidate)
        if result.assessment.level is RiskLevel.DESTRUCTIVE and previous is not RiskLevel.DESTRUCTIVE:
            logger.debug("Filled command became destructive, confirming again")
            return self._confirm(result, skip_confirmation)
        return GateDecision.PROCEED

    def run(self, query: str, skip_confirmation: bool = False) -> PipelineResult:
        """Take ``query`` through every stage.

        :returns: The finished :class:`PipelineResult`.  ``declined`` is
          set when the user said no.
        :raises PipelineError: When a stage fails.
        """
        result = PipelineResult(query=query.strip())

        self._enter(result, Stage.QUERYING)
        try:
            raw = self._submit(ProviderRequest(query=result.query, context=self.context))
        except ProviderError as exc:
            raise self._fail(result, exc) from exc
        except KeyboardInterrupt:
            raise self._fail(result, NetworkError("interrupted by user", transient=False)) from None

        self._enter(result, Stage.EXTRACTING)
        try:
            result.candidate = extractor.extract(raw)
        except extractor.ExtractionError as exc:
            raise self._fail(result, exc) from exc

        self._enter(result, Stage.CLASSIFYING)
        result.assessment = risk.assess(result.candidate)
        logger.debug("Classified %r as %s", result.candidate.command, result.assessment.level.label)

        if not skip_confirmation:
            self._enter(result, Stage.CONFIRMING)
        decision = self._confirm(result, skip_confirmation)
        if decision is GateDecision.PROCEED:
            decision = self._resolve_placeholders(result, skip_confirmation)
        if decision is GateDecision.ABORT:
            click.secho("Command not executed.", dim=True)
            self._enter(result, Stage.DONE)
            return result

        self._enter(result, Stage.EXECUTING)
        click.secho("\nExecuting...", fg="green", err=True)
        try:
            result.outcome = self.runner(result.candidate, shell=self.shell)
        except executor.ExecutionError as exc:
            raise self._fail(result, exc) from exc

        self._enter(result, Stage.DONE)
        return result
