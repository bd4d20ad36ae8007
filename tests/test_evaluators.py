import unittest

from tariff_sim.core.errors import InvalidConfig
from tariff_sim.evaluators import TariffImpactEvaluator, build_evaluator
from tariff_sim.models.simulation import ParameterSpec, SimulationConfig


class EvaluatorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = SimulationConfig(
            time_horizon_months=6,
            parameter_specs=[
                ParameterSpec.uniform("tariffRate", 0.0, 0.25),
                ParameterSpec.uniform("passThrough", 0.0, 1.0),
            ],
        )

    def test_tariff_impact_is_a_cost(self) -> None:
        evaluator = TariffImpactEvaluator(annual_import_value=1000.0, time_horizon_months=12)
        self.assertAlmostEqual(evaluator({"tariffRate": 0.1}), -100.0)
        self.assertAlmostEqual(evaluator({"tariffRate": 0.1, "passThrough": 0.5}), -50.0)
        self.assertEqual(evaluator({}), 0.0)

    def test_demand_response_reduces_volume(self) -> None:
        evaluator = TariffImpactEvaluator(annual_import_value=1000.0, demand_elasticity=2.0)
        self.assertAlmostEqual(evaluator({"tariffRate": 0.1}), -80.0)

    def test_build_default_uses_config_horizon(self) -> None:
        evaluator = build_evaluator(None, self.config)
        self.assertIsInstance(evaluator, TariffImpactEvaluator)
        self.assertEqual(evaluator.time_horizon_months, 6)

    def test_build_identity_and_linear(self) -> None:
        identity = build_evaluator({"type": "identity"}, self.config)
        self.assertEqual(identity({"tariffRate": 0.2, "passThrough": 0.4}), 0.2)
        linear = build_evaluator(
            {"type": "linear", "coefficients": {"passThrough": 2.0}, "intercept": 1.0}, self.config
        )
        self.assertAlmostEqual(linear({"tariffRate": 0.2, "passThrough": 0.4}), 1.8)

    def test_build_rejects_unknown(self) -> None:
        with self.assertRaises(InvalidConfig):
            build_evaluator({"type": "oracle"}, self.config)
        with self.assertRaises(InvalidConfig):
            build_evaluator({"type": "identity", "parameter": "quota"}, self.config)
        with self.assertRaises(InvalidConfig):
            build_evaluator({"type": "linear", "coefficients": {"quota": 1.0}}, self.config)


if __name__ == "__main__":
    unittest.main()
