"""
Fixed-width text rendering of a run report.
"""

from typing import List, Sequence

from paybench.configuration import (
    MILLISECONDS_PER_SECOND,
    REPORT_NAME_WIDTH,
    REPORT_NUMBER_WIDTH,
    REPORT_RULE_CHAR,
)
from paybench.reporting.reducer import RunReport

HEADERS = (
    "Target", "Sent", "Completed", "Errors", "Success %",
    "Send RPS", "RPS", "Avg ms", "Duration s",
)
OPERATION_WIDTH = 5
TIMED_OUT_MARK = "*"


def _cell_name(name: str) -> str:
    if len(name) > REPORT_NAME_WIDTH:
        name = name[:REPORT_NAME_WIDTH - 1] + "~"
    return name.ljust(REPORT_NAME_WIDTH)


def _column_widths(value_rows: Sequence[Sequence[str]]) -> List[int]:
    """Numeric columns keep their default width unless a value needs more."""
    return [
        max([REPORT_NUMBER_WIDTH] + [len(values[column]) for values in value_rows])
        for column in range(len(HEADERS))
    ]


def _row(name: str, operation: str, values: Sequence[str], widths: Sequence[int]) -> str:
    cells = [_cell_name(name), operation.ljust(OPERATION_WIDTH)]
    cells.extend(value.rjust(width) for value, width in zip(values, widths))
    return "│ " + " │ ".join(cells) + " │"


def _values(report, timed_out: bool = False) -> List[str]:
    duration = f"{report.observed_duration:.2f}"
    if timed_out:
        duration += TIMED_OUT_MARK
    return [
        str(report.target_requests),
        str(report.sent),
        str(report.completed),
        str(report.errors),
        f"{report.success_percent:.1f}",
        f"{report.send_rate:.2f}",
        f"{report.rate:.2f}",
        f"{report.average_duration * MILLISECONDS_PER_SECOND:.1f}",
        duration,
    ]


def render(report: RunReport) -> str:
    """Render the report as a fixed-column table.

    Args:
        report: Reduced run report

    Returns:
        Multi-line text ending with a newline
    """
    stage_rows = [(stage.name, stage.operation, _values(stage, stage.timed_out)) for stage in report.stages]
    combined_rows = [(combined.name, "all", _values(combined)) for combined in report.combined]
    widths = _column_widths([HEADERS] + [values for _, _, values in stage_rows + combined_rows])

    header = _row("Stage", "Op", HEADERS, widths)
    width = len(header)
    rule = REPORT_RULE_CHAR * width
    separator = "├" + "─" * (width - 2) + "┤"

    lines = [
        rule,
        "LOAD TEST RESULTS",
        f"Run time: {report.total_duration:.2f}s",
        rule,
        header,
        separator,
    ]

    for name, operation, values in stage_rows:
        lines.append(_row(name, operation, values, widths))

    if combined_rows:
        lines.append(separator)
        for name, operation, values in combined_rows:
            lines.append(_row(name, operation, values, widths))

    lines.append(rule)

    for stage in report.stages:
        if not stage.started:
            lines.append(f"{stage.name}: not started before the run ended")
            continue
        sent_percent = stage.sent * 100.0 / stage.target_requests
        lines.append(
            f"{stage.name}: sent {stage.sent} of {stage.target_requests} "
            f"target requests ({sent_percent:.1f}%)"
        )

    if any(stage.timed_out for stage in report.stages):
        lines.append(f"{TIMED_OUT_MARK} stage stopped at its maximum duration")

    return "\n".join(lines) + "\n"
