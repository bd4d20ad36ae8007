import unittest

import numpy as np

from tariff_sim.core.convergence import RunningStatistics
from tariff_sim.core.summary import (
    PERCENTILE_LADDER,
    build_distribution_bins,
    build_percentile_table,
    build_scenario_outcomes,
    compute_risk_metrics,
    summarise_outcomes,
)


class SummaryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.values = list(np.random.default_rng(12).normal(-1.0, 2.0, size=2000))
        self.statistics = RunningStatistics()
        for value in self.values:
            self.statistics.update(float(value))

    def test_summary_uses_streaming_moments(self) -> None:
        summary = summarise_outcomes(self.values, self.statistics, 0.95)
        self.assertEqual(summary.count, 2000)
        self.assertAlmostEqual(summary.mean, self.statistics.mean)
        self.assertEqual(set(summary.percentiles), {f"p{p}" for p in PERCENTILE_LADDER})
        self.assertAlmostEqual(summary.median, float(np.median(self.values)))
        self.assertLessEqual(summary.minimum, summary.percentiles["p1"])
        self.assertAlmostEqual(summary.half_width, 1.96 * summary.standard_error, places=2)

    def test_empty_summary(self) -> None:
        summary = summarise_outcomes([], RunningStatistics(), 0.9)
        self.assertEqual(summary.count, 0)
        self.assertEqual(summary.confidence_interval, (0.0, 0.0))
        self.assertIsNone(summary.median)
        self.assertEqual(summary.percentiles, {})

    def test_percentile_table(self) -> None:
        table = build_percentile_table(self.values)
        self.assertEqual(list(table.columns), ["percentile", "outcome"])
        self.assertEqual(len(table), 19)
        self.assertTrue(table["outcome"].is_monotonic_increasing)

    def test_distribution_bins(self) -> None:
        bins = build_distribution_bins(self.values, bins=10)
        self.assertEqual(len(bins), 10)
        self.assertEqual(sum(item.frequency for item in bins), 2000)
        self.assertAlmostEqual(bins[-1].cumulative, 1.0)
        self.assertEqual(build_distribution_bins([]), [])
        single = build_distribution_bins([2.0, 2.0])
        self.assertEqual(len(single), 1)
        self.assertEqual(single[0].frequency, 2)

    def test_risk_metrics(self) -> None:
        values = [float(v) for v in range(-10, 90)]
        metrics = compute_risk_metrics(values, confidence=0.95)
        self.assertAlmostEqual(metrics.probability_of_loss, 0.10)
        self.assertGreater(metrics.value_at_risk, 0.0)
        self.assertGreaterEqual(metrics.expected_shortfall, metrics.value_at_risk)
        gains_only = compute_risk_metrics([1.0, 2.0, 3.0])
        self.assertEqual(gains_only.value_at_risk, 0.0)
        self.assertEqual(gains_only.probability_of_loss, 0.0)

    def test_scenario_outcomes(self) -> None:
        outcomes = build_scenario_outcomes(self.values)
        self.assertEqual(set(outcomes), {"pessimistic", "realistic", "optimistic"})
        self.assertAlmostEqual(sum(band.probability for band in outcomes.values()), 1.0)
        self.assertLess(outcomes["pessimistic"].mean_value, outcomes["optimistic"].mean_value)
        self.assertEqual(build_scenario_outcomes([]), {})
        with self.assertRaises(ValueError):
            build_scenario_outcomes(self.values, pessimistic=0.9, optimistic=0.1)


if __name__ == "__main__":
    unittest.main()
