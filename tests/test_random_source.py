import unittest

from tariff_sim.core.random_source import RandomSource


class RandomSourceTests(unittest.TestCase):
    def test_same_seed_produces_identical_sequence(self) -> None:
        first = RandomSource(42)
        second = RandomSource(42)
        self.assertEqual([first.next() for _ in range(100)], [second.next() for _ in range(100)])

    def test_different_seeds_diverge(self) -> None:
        first = [RandomSource(1).next() for _ in range(5)]
        second = [RandomSource(2).next() for _ in range(5)]
        self.assertNotEqual(first, second)

    def test_values_fall_in_unit_interval(self) -> None:
        source = RandomSource(7)
        values = [source.next() for _ in range(1000)]
        self.assertTrue(all(0.0 <= value < 1.0 for value in values))
        self.assertEqual(source.draws, 1000)


if __name__ == "__main__":
    unittest.main()
