"""
Tests for report reduction and fixed-width rendering.
"""

import os
import sys
import unittest

# Add the parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from paybench.algorithms.stage import StageResult
from paybench.common.stage_spec import StageSpec
from paybench.persistence.metrics_aggregator import MetricsAggregator
from paybench.persistence.record import Classification, Outcome
from paybench.reporting.reducer import RunReport, StageReport, overlap_groups, reduce
from paybench.reporting.table import render


def spec(name, operation="write", workers=10, iterations=10, max_duration=5.0, start_offset=0.0):
    return StageSpec(name, operation, workers, iterations, max_duration, start_offset)


def result(stage_spec, observed, timed_out=False, started=True):
    started_at = stage_spec.start_offset if started else None
    finished_at = stage_spec.start_offset + observed if started else None
    return StageResult(stage_spec, started_at, finished_at, observed, timed_out)


def fill(aggregator, stage_name, completed, failed, elapsed=0.02):
    for i in range(completed + failed):
        aggregator.record(Outcome(
            stage_name=stage_name,
            worker_id=0,
            iteration=i,
            sent_at=0.0,
            elapsed=elapsed,
            classification=Classification.COMPLETED if i < completed else Classification.FAILED,
        ))


class TestOverlapGroups(unittest.TestCase):

    def test_groups_are_transitive(self):
        specs = [
            spec("a", max_duration=5),
            spec("b", max_duration=5, start_offset=4),
            spec("c", max_duration=5, start_offset=8),
            spec("d", max_duration=1, start_offset=20),
        ]
        self.assertEqual(overlap_groups(specs), [["a", "b", "c"], ["d"]])

    def test_touching_windows_do_not_overlap(self):
        specs = [spec("a", max_duration=5), spec("b", max_duration=5, start_offset=5)]
        self.assertEqual(overlap_groups(specs), [["a"], ["b"]])

    def test_groups_keep_run_order(self):
        specs = [spec("late", start_offset=1), spec("early")]
        self.assertEqual(overlap_groups(specs), [["late", "early"]])


class TestReduce(unittest.TestCase):

    def setUp(self):
        self.aggregator = MetricsAggregator()
        self.save = spec("stage_save", "write", workers=75, iterations=20)
        self.read = spec("stage_read", "read", workers=25, iterations=100)
        fill(self.aggregator, "stage_save", completed=1200, failed=300, elapsed=0.04)
        fill(self.aggregator, "stage_read", completed=2500, failed=0, elapsed=0.01)
        self.aggregator.close()

    def test_per_stage_figures(self):
        report = reduce(
            self.aggregator,
            [result(self.save, 4.0), result(self.read, 2.5)],
            total_duration=4.1,
        )

        save = report.stage("stage_save")
        self.assertEqual(save.target_requests, 1500)
        self.assertEqual((save.sent, save.completed, save.failed, save.errors), (1500, 1200, 300, 300))
        self.assertAlmostEqual(save.success_percent, 80.0)
        self.assertAlmostEqual(save.rate, 300.0)
        self.assertAlmostEqual(save.send_rate, 375.0)
        self.assertAlmostEqual(save.average_duration, 0.04)
        self.assertEqual(save.operation, "write")

        read = report.stage("stage_read")
        self.assertAlmostEqual(read.rate, 1000.0)
        self.assertEqual(read.errors, 0)
        self.assertEqual(report.total_duration, 4.1)

    def test_combined_rate_uses_longest_stage(self):
        report = reduce(
            self.aggregator,
            [result(self.save, 4.0), result(self.read, 2.5)],
            total_duration=4.1,
        )

        combined, = report.combined
        self.assertEqual(combined.stage_names, ("stage_save", "stage_read"))
        self.assertEqual(combined.name, "stage_save + stage_read")
        self.assertEqual(combined.target_requests, 4000)
        self.assertEqual(combined.sent, 4000)
        self.assertEqual(combined.completed, 3700)
        self.assertEqual(combined.errors, 300)
        self.assertAlmostEqual(combined.observed_duration, 4.0)
        self.assertAlmostEqual(combined.rate, 3700 / 4.0)
        self.assertAlmostEqual(combined.average_duration, (1500 * 0.04 + 2500 * 0.01) / 4000)

    def test_stage_without_samples(self):
        idle = spec("idle", "read", workers=1, iterations=1, start_offset=10)
        report = reduce(MetricsAggregator(), [result(idle, 0.0, timed_out=True, started=False)], 0.5)

        stage = report.stage("idle")
        self.assertEqual((stage.sent, stage.rate, stage.success_percent, stage.average_duration), (0, 0.0, 0.0, 0.0))
        self.assertFalse(stage.started)
        with self.assertRaises(KeyError):
            report.stage("missing")


class TestRender(unittest.TestCase):

    def make_report(self, timed_out=False):
        aggregator = MetricsAggregator()
        save = spec("stage_save", "write", workers=75, iterations=20)
        read = spec("stage_read", "read", workers=25, iterations=100)
        fill(aggregator, "stage_save", completed=1499, failed=1, elapsed=0.0123)
        fill(aggregator, "stage_read", completed=2000, failed=0)
        return reduce(
            aggregator,
            [result(save, 5.0, timed_out=timed_out), result(read, 5.0, timed_out=timed_out)],
            total_duration=5.02,
        )

    def test_table_rows_have_stable_width(self):
        text = render(self.make_report())
        rows = [line for line in text.splitlines() if line.startswith("│") or line.startswith("├")]

        self.assertEqual(len(rows), 6)  # header, separator, 2 stages, separator, combined
        self.assertEqual(len({len(row) for row in rows}), 1)

    def test_numbers_and_percentages(self):
        text = render(self.make_report())
        save_row = next(line for line in text.splitlines() if line.startswith("│ stage_save "))

        self.assertIn("99.9", save_row)     # 1499 / 1500
        self.assertIn("299.80", save_row)   # 1499 / 5.0
        self.assertIn("12.3", save_row)     # average in ms
        self.assertIn("stage_save: sent 1500 of 1500 target requests (100.0%)", text)
        self.assertIn("stage_read: sent 2000 of 2500 target requests (80.0%)", text)
        self.assertIn("stage_save + st~", text)
        self.assertTrue(text.endswith("\n"))

    def test_wide_values_widen_their_column_for_every_row(self):
        report = self.make_report()
        fast = StageReport(
            name="burst", operation="read", target_requests=1_000_000, sent=1_000_000,
            completed=1_000_000, failed=0, errors=0, success_percent=100.0,
            rate=1_000_000 / 0.0004, send_rate=1_000_000 / 0.0004, average_duration=0.0001,
            observed_duration=0.0004, timed_out=False, started=True,
        )
        report = RunReport(stages=report.stages + (fast,), combined=report.combined, total_duration=5.02)
        text = render(report)
        rows = [line for line in text.splitlines() if line.startswith("│") or line.startswith("├")]

        self.assertIn("2500000000.00", text)
        self.assertEqual(len(rows), 7)
        self.assertEqual(len({len(row) for row in rows}), 1)

    def test_timed_out_stages_are_marked(self):
        text = render(self.make_report(timed_out=True))
        self.assertIn("5.00*", text)
        self.assertIn("stopped at its maximum duration", text)


if __name__ == '__main__':
    unittest.main()
