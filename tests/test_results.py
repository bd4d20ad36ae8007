import unittest

from tariff_sim.core.convergence import RunningStatistics
from tariff_sim.core.summary import PERCENTILE_LADDER, summarise_outcomes
from tariff_sim.models.results import RunState, Sample, SimulationResult, StopReason


class SampleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.drawn = {"tariffRate": 0.1, "passThrough": 0.5}
        self.sample = Sample(iteration_index=0, scenario=self.drawn, outcome=-1.0)

    def test_scenario_is_read_only(self) -> None:
        with self.assertRaises(TypeError):
            self.sample.scenario["tariffRate"] = 0.9
        self.assertEqual(self.sample.scenario["tariffRate"], 0.1)

    def test_scenario_is_detached_from_source(self) -> None:
        self.drawn["tariffRate"] = 0.2
        self.assertEqual(self.sample.scenario["tariffRate"], 0.1)

    def test_dump_returns_plain_mapping(self) -> None:
        dumped = self.sample.model_dump()
        self.assertEqual(dumped["scenario"], {"tariffRate": 0.1, "passThrough": 0.5})
        self.assertIsInstance(dumped["scenario"], dict)
        self.assertEqual(self.sample.model_dump(mode="json")["scenario"]["passThrough"], 0.5)

    def test_equal_samples_compare_equal(self) -> None:
        twin = Sample(iteration_index=0, scenario=dict(self.drawn, tariffRate=0.1), outcome=-1.0)
        self.assertEqual(self.sample, twin)


class SimulationResultTests(unittest.TestCase):
    def _result(self, outcomes) -> SimulationResult:
        statistics = RunningStatistics()
        for value in outcomes:
            statistics.update(value)
        samples = [
            Sample(iteration_index=index, scenario={"tariffRate": value}, outcome=value)
            for index, value in enumerate(outcomes)
        ]
        return SimulationResult(
            run_id="run",
            state=RunState.COMPLETE,
            stop_reason=StopReason.MAX_ITERATIONS,
            final_statistics=summarise_outcomes(outcomes, statistics, 0.95),
            samples=samples,
            iterations_required=statistics.count,
        )

    def test_percentile_table(self) -> None:
        result = self._result([float(value) for value in range(101)])
        table = result.percentile_table()
        self.assertEqual(list(table.columns), ["percentile", "outcome"])
        self.assertEqual(list(table["percentile"]), [f"p{p}" for p in PERCENTILE_LADDER])
        self.assertAlmostEqual(table.set_index("percentile").loc["p50", "outcome"], 50.0)

    def test_empty_percentile_table_keeps_columns(self) -> None:
        table = self._result([]).percentile_table()
        self.assertTrue(table.empty)
        self.assertEqual(list(table.columns), ["percentile", "outcome"])

    def test_frames_and_payload(self) -> None:
        result = self._result([1.0, 2.0, 3.0])
        self.assertEqual(list(result.samples_frame().columns), ["iteration_index", "tariffRate", "outcome"])
        self.assertEqual(result.summary_frame().loc[0, "iterations"], 3)
        payload = result.to_payload(include_samples=True)
        self.assertEqual(payload["samples"][2]["scenario"], {"tariffRate": 3.0})
        self.assertNotIn("samples", result.to_payload())


if __name__ == "__main__":
    unittest.main()
