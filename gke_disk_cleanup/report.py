"""
Outcome reporting for the command line.

The pipelines only yield Outcome values; this module decides how loud each
one is and renders the end-of-run summary.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field

from rich.console import Console
from rich.table import Table

from .models import CleanupAction, Diagnostic, Outcome, OutcomeKind

logger = logging.getLogger(__name__)


def outcome_level(outcome: Outcome) -> int:
    """Log level for an outcome."""
    if outcome.kind is OutcomeKind.FAILED:
        return logging.ERROR
    if outcome.action is CleanupAction.DELETE:
        return logging.WARNING
    if outcome.kind is OutcomeKind.APPLIED or outcome.diagnostic is Diagnostic.DRY_RUN_SUPPRESSED:
        return logging.INFO
    return logging.DEBUG


def describe(outcome: Outcome) -> str:
    volume = outcome.volume
    action = outcome.action.value if outcome.action is not None else "process"

    if outcome.kind is OutcomeKind.FAILED:
        return f"{outcome.pipeline}: failed to {action} disk {volume.name}: {outcome.error}"

    if outcome.kind is OutcomeKind.APPLIED:
        message = f"{outcome.pipeline}: {action} disk {volume.name} ({volume.size_gb} GB)"
    elif outcome.diagnostic is Diagnostic.DRY_RUN_SUPPRESSED:
        message = f"{outcome.pipeline}: [dry run] would {action} disk {volume.name} ({volume.size_gb} GB)"
    else:
        diagnostic = outcome.diagnostic.value if outcome.diagnostic is not None else "skipped"
        message = f"{outcome.pipeline}: skipping disk {volume.name}: {diagnostic}"

    if outcome.detail:
        message += f" [{outcome.detail}]"
    return message


def log_outcome(outcome: Outcome, log: logging.Logger = logger) -> None:
    log.log(outcome_level(outcome), describe(outcome), extra={"outcome": outcome.to_dict()})


@dataclass
class Tally:
    """Running counts of outcomes by step and kind."""
    counts: Counter = field(default_factory=Counter)
    failed_volumes: set[str] = field(default_factory=set)

    def add(self, outcome: Outcome) -> None:
        step = outcome.action.value if outcome.action is not None else "-"
        key = (step, outcome.diagnostic.value if outcome.diagnostic else outcome.kind.value)
        self.counts[key] += 1
        if outcome.kind is OutcomeKind.FAILED:
            self.failed_volumes.add(outcome.volume.name)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def failures(self) -> int:
        return len(self.failed_volumes)


def render_summary(tally: Tally, title: str, console: Console | None = None) -> None:
    console = console or Console(stderr=True)

    table = Table(title=title)
    table.add_column("Step")
    table.add_column("Result")
    table.add_column("Count", justify="right")

    for (step, result), count in sorted(tally.counts.items()):
        style = "red" if result == OutcomeKind.FAILED.value else None
        table.add_row(step, result, str(count), style=style)

    console.print(table)
    if tally.failures:
        console.print(f"[red]{tally.failures} disk(s) failed[/red]")
