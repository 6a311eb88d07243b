"""
Ordered step execution with per-step fault isolation.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

from rich.markup import escape

from ubuntu_post_install.applier import SettingTally
from ubuntu_post_install.ui import NordColors, console, print_error

logger = logging.getLogger(__name__)


class StepStatus(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


class RunnerState(Enum):
    RUNNING = "running"
    DONE = "done"


@dataclass
class Step:
    """A named unit of provisioning work."""

    name: str
    body: Callable[[], Any]
    description: str = ""

    @property
    def title(self) -> str:
        return self.description or self.name.replace("_", " ").capitalize()


@dataclass
class StepResult:
    name: str
    status: StepStatus
    message: str = ""
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status is StepStatus.SUCCESS


@dataclass
class RunReport:
    """Ordered success/failure record of one run."""

    results: List[StepResult] = field(default_factory=list)
    tally: SettingTally = field(default_factory=SettingTally)
    aborted: bool = False

    def __iter__(self) -> Iterator[StepResult]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    def __getitem__(self, index: int) -> StepResult:
        return self.results[index]

    def append(self, result: StepResult) -> None:
        self.results.append(result)

    @property
    def failed(self) -> List[StepResult]:
        return [r for r in self.results if r.status is StepStatus.FAILURE]

    @property
    def succeeded(self) -> List[StepResult]:
        return [r for r in self.results if r.status is StepStatus.SUCCESS]

    def as_pairs(self) -> List[Tuple[str, StepStatus]]:
        return [(r.name, r.status) for r in self.results]


class StepRunner:
    """
    Run steps strictly in order, one at a time.

    A step fails when its body raises an exception or returns ``False``.
    Failures are logged and recorded; by default the runner moves on to the
    next step. With ``stop_on_failure`` the first failure ends the run and the
    remaining steps are recorded as skipped, so the report always has one
    entry per input step.
    """

    def __init__(self, stop_on_failure: bool = False, tally: Optional[SettingTally] = None):
        self.stop_on_failure = stop_on_failure
        self.tally = tally if tally is not None else SettingTally()
        self.state = RunnerState.DONE

    def run(self, steps: Sequence[Step]) -> RunReport:
        report = RunReport(tally=self.tally)
        self.state = RunnerState.RUNNING
        total = len(steps)

        for index, step in enumerate(steps, start=1):
            if self.state is RunnerState.DONE:
                report.append(
                    StepResult(step.name, StepStatus.SKIPPED, "Not run: previous step failed")
                )
                continue

            console.print(
                f"\n[bold {NordColors.FROST_1}]{escape(f'[{index}/{total}]')} Running: {escape(step.title)}[/]"
            )
            logger.debug(f"Starting step {step.name}")
            result = self._run_step(step)
            report.append(result)

            if result.status is StepStatus.FAILURE and self.stop_on_failure:
                logger.error(f"Stopping after failed step '{step.name}'.")
                report.aborted = True
                self.state = RunnerState.DONE

        self.state = RunnerState.DONE
        return report

    def _run_step(self, step: Step) -> StepResult:
        start = time.monotonic()
        try:
            returned = step.body()
        except Exception as e:
            elapsed = time.monotonic() - start
            logger.error(f"Error during {step.name}: {e}")
            logger.debug(f"Traceback for {step.name}", exc_info=True)
            print_error(f"{step.title} failed after {elapsed:.1f}s. Check logs.")
            return StepResult(step.name, StepStatus.FAILURE, str(e) or type(e).__name__, elapsed)

        elapsed = time.monotonic() - start
        if returned is False:
            logger.error(f"Step {step.name} reported failure.")
            print_error(f"{step.title} reported failure after {elapsed:.1f}s.")
            return StepResult(step.name, StepStatus.FAILURE, "Step reported failure", elapsed)

        logger.debug(f"Step {step.name} completed in {elapsed:.2f}s")
        return StepResult(step.name, StepStatus.SUCCESS, "", elapsed)
