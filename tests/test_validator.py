import json
import tempfile
import unittest
from pathlib import Path

from tariff_sim.config import EngineSettings
from tariff_sim.core.errors import InvalidConfig
from tariff_sim.core.validator import config_problems, load_config, load_config_file, validate_config
from tariff_sim.models.simulation import ParameterSpec, SimulationConfig


def _config(**overrides) -> SimulationConfig:
    values = dict(
        max_iterations=1000,
        parameter_specs=[ParameterSpec.uniform("tariffRate", 0.0, 0.25)],
    )
    values.update(overrides)
    return SimulationConfig(**values)


class ConfigValidationTests(unittest.TestCase):
    def test_valid_config_passes(self) -> None:
        config = _config()
        self.assertIs(validate_config(config), config)

    def test_every_problem_is_reported(self) -> None:
        config = _config(
            max_iterations=0,
            target_confidence_level=1.0,
            convergence_tolerance=-0.5,
            parameter_specs=[
                ParameterSpec.uniform("a", 2.0, 1.0),
                ParameterSpec.normal("a", 0.0, -1.0),
            ],
        )
        problems = config_problems(config)
        self.assertEqual(len(problems), 6)
        self.assertTrue(any("duplicate" in problem for problem in problems))

    def test_zero_tolerance_and_horizon_accepted(self) -> None:
        config = _config(convergence_tolerance=0.0, time_horizon_months=0)
        self.assertEqual(config_problems(config), [])
        self.assertIs(validate_config(config), config)

    def test_negative_tolerance_and_horizon_rejected(self) -> None:
        problems = config_problems(_config(convergence_tolerance=-0.01, time_horizon_months=-1))
        self.assertEqual(len(problems), 2)

    def test_missing_parameters_rejected(self) -> None:
        with self.assertRaises(InvalidConfig):
            validate_config(_config(parameter_specs=[]))

    def test_non_finite_values_rejected(self) -> None:
        with self.assertRaises(InvalidConfig):
            validate_config(_config(parameter_specs=[ParameterSpec.uniform("x", 0.0, float("inf"))]))
        with self.assertRaises(InvalidConfig):
            validate_config(_config(convergence_tolerance=float("nan")))

    def test_discrete_checks(self) -> None:
        bad = [
            ParameterSpec(name="x", distribution={"kind": "discrete", "values": [1.0, 2.0], "weights": [1.0]}),
            ParameterSpec.discrete("y", {1.0: -1.0, 2.0: 2.0}),
            ParameterSpec.discrete("z", {}),
        ]
        problems = config_problems(_config(parameter_specs=bad))
        self.assertEqual(len(problems), 3)

    def test_load_from_wire_mapping(self) -> None:
        config = load_config(
            {
                "maxIterations": 500,
                "targetConfidenceLevel": 0.9,
                "convergenceTolerance": 0.05,
                "parameterSpecs": [
                    {"name": "tariffRate", "distribution": {"kind": "uniform", "low": 0, "high": 0.25}},
                    {"name": "passThrough", "distribution": {"kind": "discrete", "values": [0, 0.5], "weights": [1, 1]}},
                ],
                "seed": 7,
            }
        )
        self.assertEqual(config.max_iterations, 500)
        self.assertEqual(config.parameter_names, ["tariffRate", "passThrough"])
        self.assertEqual(config.parameter_specs[1].distribution.kind, "discrete")
        self.assertEqual(SimulationConfig.from_metadata(config.to_metadata()), config)

    def test_type_errors_become_invalid_config(self) -> None:
        with self.assertRaises(InvalidConfig) as ctx:
            load_config({"maxIterations": "lots", "parameterSpecs": []})
        self.assertTrue(any("maxIterations" in problem for problem in ctx.exception.problems))
        with self.assertRaises(InvalidConfig):
            load_config({"parameterSpecs": [{"name": "x", "distribution": {"kind": "beta"}}]})

    def test_non_config_rejected(self) -> None:
        with self.assertRaises(InvalidConfig):
            validate_config({"maxIterations": 10})

    def test_load_yaml_and_json_files(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            yaml_path = Path(tmp) / "run.yaml"
            yaml_path.write_text(
                "simulation:\n"
                "  maxIterations: 200\n"
                "  parameterSpecs:\n"
                "    - name: tariffRate\n"
                "      distribution: {kind: uniform, low: 0.0, high: 0.25}\n",
                encoding="utf-8",
            )
            self.assertEqual(load_config_file(yaml_path).max_iterations, 200)

            json_path = Path(tmp) / "run.json"
            json_path.write_text(json.dumps(_config().to_metadata()), encoding="utf-8")
            self.assertEqual(load_config_file(json_path), _config())

            with self.assertRaises(InvalidConfig):
                load_config_file(Path(tmp) / "missing.yaml")


class EngineSettingsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        settings = EngineSettings.from_env({})
        self.assertEqual(settings, EngineSettings())
        self.assertIsNone(settings.max_retained_samples)

    def test_environment_overrides(self) -> None:
        settings = EngineSettings.from_env(
            {
                "TARIFF_SIM_PROGRESS_INTERVAL": "25",
                "TARIFF_SIM_MAX_RETAINED_SAMPLES": "1000",
                "TARIFF_SIM_LOG_LEVEL": "debug",
            }
        )
        self.assertEqual(settings.progress_interval, 25)
        self.assertEqual(settings.max_retained_samples, 1000)
        self.assertEqual(settings.log_level, "DEBUG")

    def test_invalid_values(self) -> None:
        with self.assertRaises(InvalidConfig):
            EngineSettings.from_env({"TARIFF_SIM_PROGRESS_INTERVAL": "often"})
        with self.assertRaises(InvalidConfig):
            EngineSettings(progress_interval=0)
        with self.assertRaises(InvalidConfig):
            EngineSettings(log_level="LOUD")


if __name__ == "__main__":
    unittest.main()
