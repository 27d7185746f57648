"""Worker -> aligner retry cycle shared by the breakdown and script stages.

One cycle:

    worker generates -> aligner reviews -> PASS: accepted
                                        -> otherwise: feed the report back
                                           to the worker and try again,
                                           at most max_retries attempts

A TransportError from either call ends the cycle at once; it is never
retried here. The loop does not touch ProjectState; callers decide how to
record the AgentResult.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Optional

from .context import TransportError
from .env import DEFAULT_MAX_RETRIES
from .logging import breadcrumb as _breadcrumb, log_run as _log_run
from .validation import verdict_passes

Generator = Callable[[str, str], str]

FEEDBACK_HEADER = "[Previous Feedback - Please Fix]"
REPORT_GENERATION_ERROR = "generation error"
REPORT_VALIDATION_ERROR = "validation error"
REPORT_MAX_RETRIES = "max retries reached: "


class LoopStatus(enum.Enum):
    PASS = "PASS"
    FAIL = "FAIL"


class LoopOutcome(enum.Enum):
    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"
    GENERATION_ERROR = "generation_error"
    VALIDATION_ERROR = "validation_error"

    @property
    def committable(self) -> bool:
        """Accepted and exhausted cycles are recorded; transport failures are not."""
        return self in (LoopOutcome.ACCEPTED, LoopOutcome.EXHAUSTED)


class Phase(enum.Enum):
    WORKER = "worker"
    ALIGNER = "aligner"


@dataclass(frozen=True)
class ProgressEvent:
    phase: Phase
    attempt: int
    message: str


@dataclass(frozen=True)
class AgentResult:
    content: str
    status: LoopStatus
    report: str
    outcome: LoopOutcome
    attempts: int

    @property
    def passed(self) -> bool:
        return self.status is LoopStatus.PASS


def build_worker_prompt(task_prompt: str, feedback: str) -> str:
    if not feedback:
        return task_prompt
    return f"{task_prompt}\n\n{FEEDBACK_HEADER}\n{feedback}"


def run_agent_loop(
    worker_prompt: str,
    worker_system_prompt: str,
    aligner_system_prompt: str,
    build_aligner_prompt: Callable[[str], str],
    max_retries: int = DEFAULT_MAX_RETRIES,
    *,
    generate: Generator,
    aligner_generate: Optional[Generator] = None,
    on_event: Optional[Callable[[ProgressEvent], None]] = None,
    context_tag: str = "",
) -> AgentResult:
    """Run worker/aligner attempts until the aligner reports PASS or max_retries is spent.

    `generate(system, prompt)` runs the worker; `aligner_generate` (default:
    the same callable) runs the aligner. Progress events are emitted before
    every call and have no effect on control flow.
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")
    review = aligner_generate or generate

    def _emit(phase: Phase, attempt: int, message: str) -> None:
        if on_event is not None:
            on_event(ProgressEvent(phase=phase, attempt=attempt, message=message))

    content = ""
    feedback = ""
    attempt = 0
    while attempt < max_retries:
        number = attempt + 1
        _emit(
            Phase.WORKER,
            number,
            "Worker: Generating content..." if attempt == 0 else f"Worker: Refining content (Attempt {number})...",
        )
        try:
            content = generate(worker_system_prompt, build_worker_prompt(worker_prompt, feedback))
        except TransportError as e:
            _log_run(f"AGENT {context_tag} | attempt={number} worker transport error: {e}")
            return AgentResult(
                content=content,
                status=LoopStatus.FAIL,
                report=f"{REPORT_GENERATION_ERROR}: {e}",
                outcome=LoopOutcome.GENERATION_ERROR,
                attempts=number,
            )

        _emit(Phase.ALIGNER, number, "Aligner: Checking quality...")
        try:
            report = review(aligner_system_prompt, build_aligner_prompt(content))
        except TransportError as e:
            _log_run(f"AGENT {context_tag} | attempt={number} aligner transport error: {e}")
            return AgentResult(
                content=content,
                status=LoopStatus.FAIL,
                report=f"{REPORT_VALIDATION_ERROR}: {e}",
                outcome=LoopOutcome.VALIDATION_ERROR,
                attempts=number,
            )
        report = report or ""

        if verdict_passes(report):
            _log_run(f"AGENT {context_tag} | attempt={number} PASS")
            return AgentResult(
                content=content,
                status=LoopStatus.PASS,
                report=report,
                outcome=LoopOutcome.ACCEPTED,
                attempts=number,
            )
        _breadcrumb(f"agent:{context_tag}:rejected attempt={number}")
        feedback = report
        attempt += 1

    _log_run(f"AGENT {context_tag} | exhausted after {max_retries} attempt(s)")
    return AgentResult(
        content=content,
        status=LoopStatus.FAIL,
        report=REPORT_MAX_RETRIES + feedback,
        outcome=LoopOutcome.EXHAUSTED,
        attempts=max_retries,
    )
