"""
Reduction of run counters into per-stage and combined throughput figures.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import pandas as pd

from paybench.algorithms.stage import StageResult
from paybench.common.stage_spec import StageSpec
from paybench.persistence.metrics_aggregator import MetricsAggregator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageReport:
    name: str
    operation: str
    target_requests: int
    sent: int
    completed: int
    failed: int
    errors: int
    success_percent: float
    rate: float
    send_rate: float
    average_duration: float
    observed_duration: float
    timed_out: bool
    started: bool


@dataclass(frozen=True)
class CombinedReport:
    """Totals over stages whose windows overlap; they progress in parallel."""

    stage_names: Tuple[str, ...]
    target_requests: int
    sent: int
    completed: int
    failed: int
    errors: int
    success_percent: float
    rate: float
    send_rate: float
    average_duration: float
    observed_duration: float

    @property
    def name(self) -> str:
        return " + ".join(self.stage_names)


@dataclass(frozen=True)
class RunReport:
    stages: Tuple[StageReport, ...]
    combined: Tuple[CombinedReport, ...]
    total_duration: float

    def stage(self, name: str) -> StageReport:
        for report in self.stages:
            if report.name == name:
                return report
        raise KeyError(name)


def overlap_groups(specs: Sequence[StageSpec]) -> List[List[str]]:
    """Group stages whose scheduled windows intersect, transitively.

    Args:
        specs: Stage specifications in run order

    Returns:
        Groups of stage names, each ordered as in `specs`
    """
    ordered = sorted(enumerate(specs), key=lambda item: (item[1].start_offset, item[0]))
    groups: List[List[Tuple[int, StageSpec]]] = []
    group_end = None

    for index, spec in ordered:
        if groups and spec.start_offset < group_end:
            groups[-1].append((index, spec))
            group_end = max(group_end, spec.window_end)
        else:
            groups.append([(index, spec)])
            group_end = spec.window_end

    return [[spec.name for _, spec in sorted(group, key=lambda item: item[0])] for group in groups]


def _per_second(count: pd.Series, duration: pd.Series) -> pd.Series:
    return (count / duration).where(duration > 0, 0.0)


def _percent(part: pd.Series, whole: pd.Series) -> pd.Series:
    return (part * 100.0 / whole).where(whole > 0, 0.0)


def build_stage_frame(aggregator: MetricsAggregator, stage_results: Sequence[StageResult]) -> pd.DataFrame:
    """One row per stage with raw counters, timings and derived rates."""
    rows = []
    for result in stage_results:
        snapshot = aggregator.snapshot(result.spec.name)
        rows.append({
            'name': result.spec.name,
            'operation': result.spec.operation.value,
            'target_requests': result.spec.target_requests,
            'sent': snapshot.sent,
            'completed': snapshot.completed,
            'failed': snapshot.failed,
            'duration_sum': float(sum(snapshot.durations)),
            'samples': len(snapshot.durations),
            'observed_duration': float(result.observed_duration),
            'timed_out': result.timed_out,
            'started': result.started,
        })

    frame = pd.DataFrame(rows, columns=[
        'name', 'operation', 'target_requests', 'sent', 'completed', 'failed',
        'duration_sum', 'samples', 'observed_duration', 'timed_out', 'started',
    ])
    return _derive(frame)


def _derive(frame: pd.DataFrame) -> pd.DataFrame:
    frame = frame.copy()
    frame['errors'] = frame['sent'] - frame['completed']
    frame['success_percent'] = _percent(frame['completed'], frame['sent'])
    frame['rate'] = _per_second(frame['completed'], frame['observed_duration'])
    frame['send_rate'] = _per_second(frame['sent'], frame['observed_duration'])
    frame['average_duration'] = (frame['duration_sum'] / frame['samples']).where(frame['samples'] > 0, 0.0)
    return frame


def combine_groups(frame: pd.DataFrame, groups: List[List[str]]) -> pd.DataFrame:
    """Sum counters per overlap group (indexed by group id); a group lasts as long as its longest stage."""
    group_of: Dict[str, int] = {
        name: group_id for group_id, names in enumerate(groups) for name in names
    }
    grouped = frame.assign(group=frame['name'].map(group_of)).groupby('group', sort=True)
    combined = grouped.agg(
        stage_count=('name', 'size'),
        target_requests=('target_requests', 'sum'),
        sent=('sent', 'sum'),
        completed=('completed', 'sum'),
        failed=('failed', 'sum'),
        duration_sum=('duration_sum', 'sum'),
        samples=('samples', 'sum'),
        observed_duration=('observed_duration', 'max'),
    )
    combined = combined[combined['stage_count'] > 1]
    return _derive(combined)


def reduce(
    aggregator: MetricsAggregator,
    stage_results: Sequence[StageResult],
    total_duration: float,
) -> RunReport:
    """Compute the run report from the aggregator and measured stage durations.

    Args:
        aggregator: Aggregator of the finished run
        stage_results: One result per stage, in run order
        total_duration: Wall time of the whole run in seconds

    Returns:
        RunReport with per-stage rows and one combined row per overlap group
    """
    frame = build_stage_frame(aggregator, stage_results)
    groups = overlap_groups([result.spec for result in stage_results])

    stages = tuple(
        StageReport(
            name=row.name,
            operation=row.operation,
            target_requests=int(row.target_requests),
            sent=int(row.sent),
            completed=int(row.completed),
            failed=int(row.failed),
            errors=int(row.errors),
            success_percent=float(row.success_percent),
            rate=float(row.rate),
            send_rate=float(row.send_rate),
            average_duration=float(row.average_duration),
            observed_duration=float(row.observed_duration),
            timed_out=bool(row.timed_out),
            started=bool(row.started),
        )
        for row in frame.itertuples(index=False)
    )

    if not any(len(group) > 1 for group in groups):
        combined = ()
    else:
        combined = _combined_reports(combine_groups(frame, groups), groups)

    for report in stages:
        logger.info(
            f"Stage {report.name}: {report.completed}/{report.sent} completed, "
            f"{report.rate:.2f} req/s over {report.observed_duration:.2f}s"
        )

    return RunReport(stages=stages, combined=combined, total_duration=total_duration)


def _combined_reports(combined_frame: pd.DataFrame, groups: List[List[str]]) -> Tuple[CombinedReport, ...]:
    return tuple(
        CombinedReport(
            stage_names=tuple(groups[row.Index]),
            target_requests=int(row.target_requests),
            sent=int(row.sent),
            completed=int(row.completed),
            failed=int(row.failed),
            errors=int(row.errors),
            success_percent=float(row.success_percent),
            rate=float(row.rate),
            send_rate=float(row.send_rate),
            average_duration=float(row.average_duration),
            observed_duration=float(row.observed_duration),
        )
        for row in combined_frame.itertuples()
    )
