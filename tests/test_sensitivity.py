import unittest

from tariff_sim.core.random_source import RandomSource
from tariff_sim.core.sampler import ScenarioSampler
from tariff_sim.core.sensitivity import analyse_sensitivity
from tariff_sim.models.results import Sample
from tariff_sim.models.simulation import ParameterSpec


def _samples(specs, evaluator, count=2000, seed=5):
    sampler = ScenarioSampler(specs)
    source = RandomSource(seed)
    samples = []
    for index in range(count):
        scenario = sampler.sample(source)
        samples.append(Sample(iteration_index=index, scenario=scenario, outcome=evaluator(scenario)))
    return samples


class SensitivityTests(unittest.TestCase):
    def setUp(self) -> None:
        self.specs = [
            ParameterSpec.uniform("noise", 0.0, 1.0),
            ParameterSpec.uniform("driver", 0.0, 1.0),
        ]
        self.samples = _samples(self.specs, lambda s: 10.0 * s["driver"] + 0.1 * s["noise"])

    def test_dominant_parameter_ranks_first(self) -> None:
        factors = analyse_sensitivity(self.samples, ["noise", "driver"])
        self.assertEqual([factor.parameter_name for factor in factors], ["driver", "noise"])
        self.assertEqual([factor.rank for factor in factors], [1, 2])
        self.assertAlmostEqual(factors[0].sensitivity_score, 1.0)
        self.assertLess(factors[1].sensitivity_score, 0.2)
        self.assertGreater(factors[0].correlation, 0.95)

    def test_scores_are_clamped(self) -> None:
        factors = analyse_sensitivity(self.samples, ["noise", "driver"])
        for factor in factors:
            self.assertGreaterEqual(factor.sensitivity_score, 0.0)
            self.assertLessEqual(factor.sensitivity_score, 1.0)

    def test_negative_relationship_has_positive_score(self) -> None:
        samples = _samples(self.specs, lambda s: -5.0 * s["driver"])
        factor = analyse_sensitivity(samples, ["driver"])[0]
        self.assertLess(factor.mean_difference, 0.0)
        self.assertGreater(factor.sensitivity_score, 0.5)
        self.assertLess(factor.correlation, -0.95)

    def test_constant_parameter_scores_zero(self) -> None:
        specs = [ParameterSpec.normal("fixed", 1.0, 0.0), ParameterSpec.uniform("x", 0.0, 1.0)]
        samples = _samples(specs, lambda s: s["x"], count=200)
        by_name = {factor.parameter_name: factor for factor in analyse_sensitivity(samples, ["fixed", "x"])}
        self.assertEqual(by_name["fixed"].sensitivity_score, 0.0)

    def test_constant_outcome_scores_zero(self) -> None:
        samples = _samples(self.specs, lambda s: 3.0, count=100)
        factors = analyse_sensitivity(samples, ["noise", "driver"])
        self.assertTrue(all(factor.sensitivity_score == 0.0 for factor in factors))
        # Ties keep parameter order.
        self.assertEqual([factor.parameter_name for factor in factors], ["noise", "driver"])

    def test_skewed_discrete_parameter(self) -> None:
        specs = [ParameterSpec.discrete("rate", {0.0: 1.0, 1.0: 9.0})]
        samples = _samples(specs, lambda s: 4.0 * s["rate"], count=500)
        factor = analyse_sensitivity(samples, ["rate"])[0]
        self.assertGreater(factor.sensitivity_score, 0.9)

    def test_no_parameters(self) -> None:
        self.assertEqual(analyse_sensitivity(self.samples, []), [])


if __name__ == "__main__":
    unittest.main()
