"""
Tests for population storage and seeding.
"""

import unittest
import numpy as np

from puzzle_ga.catalog import TileCatalog
from puzzle_ga.data_models import Arrangement, PuzzleGeometry
from puzzle_ga.population import Population, generate_population, perturb


class TestGeneratePopulation(unittest.TestCase):
    """Test seeding a population from one arrangement."""

    def setUp(self):
        """Set up an 8x8 puzzle with duplicate tiles."""
        self.geometry = PuzzleGeometry()
        rng = np.random.default_rng(11)
        tiles = rng.integers(0, 3, size=(64, 4))
        self.catalog = TileCatalog(tiles, self.geometry)
        self.seed = Arrangement(edges=tiles, geometry=self.geometry)

    def test_slot_zero_is_seed(self):
        """Test the first individual reproduces the seed exactly."""
        population = generate_population(self.seed, 20, np.random.default_rng(0))
        self.assertEqual(population.get(0), self.seed)

    def test_size(self):
        """Test population size."""
        population = generate_population(self.seed, 17, np.random.default_rng(0))
        self.assertEqual(len(population), 17)
        self.assertEqual(population.tiles.shape, (17, 64, 4))

    def test_every_slot_keeps_multiset(self):
        """Test seeding never changes which tiles are used."""
        population = generate_population(self.seed, 30, np.random.default_rng(1))
        for arrangement in population.arrangements():
            self.assertTrue(self.catalog.satisfies_invariant(arrangement))

    def test_slots_are_perturbed(self):
        """Test non-zero slots differ from the seed and from each other."""
        population = generate_population(self.seed, 10, np.random.default_rng(2))
        flattened = {population.tiles[i].tobytes() for i in range(10)}

        self.assertEqual(len(flattened), 10)
        for i in range(1, 10):
            self.assertNotEqual(population.get(i), self.seed)

    def test_seed_left_untouched(self):
        """Test seeding does not modify the seed arrangement."""
        before = self.seed.copy()
        generate_population(self.seed, 5, np.random.default_rng(3))
        self.assertEqual(self.seed, before)

    def test_deterministic_for_fixed_seed(self):
        """Test identical generators give identical populations."""
        first = generate_population(self.seed, 12, np.random.default_rng(4))
        second = generate_population(self.seed, 12, np.random.default_rng(4))
        np.testing.assert_array_equal(first.tiles, second.tiles)

    def test_threaded_matches_sequential(self):
        """Test worker threads build the same population as one thread."""
        sequential = generate_population(self.seed, 16, np.random.default_rng(5), workers=1)
        threaded = generate_population(self.seed, 16, np.random.default_rng(5), workers=4)
        np.testing.assert_array_equal(sequential.tiles, threaded.tiles)

    def test_single_individual(self):
        """Test a population of one is just the seed."""
        population = generate_population(self.seed, 1, np.random.default_rng(6))
        self.assertEqual(len(population), 1)
        self.assertEqual(population.get(0), self.seed)

    def test_invalid_size(self):
        """Test rejection of empty populations."""
        with self.assertRaises(ValueError):
            generate_population(self.seed, 0, np.random.default_rng(7))

    def test_perturb_keeps_multiset(self):
        """Test a single perturbation."""
        perturbed = perturb(self.seed, np.random.default_rng(8))
        self.assertTrue(self.catalog.satisfies_invariant(perturbed))
        self.assertNotEqual(perturbed, self.seed)


class TestPopulation(unittest.TestCase):
    """Test population storage."""

    def setUp(self):
        """Set up a small 2x2 population."""
        self.geometry = PuzzleGeometry(side=2)
        self.arrangements = [
            Arrangement(edges=np.full((4, 4), value), geometry=self.geometry)
            for value in range(3)
        ]
        self.population = Population.from_arrangements(self.arrangements)

    def test_from_arrangements_copies(self):
        """Test the population owns its own data."""
        self.arrangements[0].edges[0, 0] = 42
        self.assertEqual(self.population.tiles[0, 0, 0], 0)

    def test_view_shares_memory(self):
        """Test views write through to the population."""
        view = self.population.view(1)
        view.rotate(0)
        view.edges[0, 0] = 9
        self.assertEqual(self.population.tiles[1, 0, 0], 9)

    def test_get_returns_copy(self):
        """Test get() is independent of the population."""
        copy = self.population.get(2)
        copy.edges[:] = 7
        self.assertEqual(self.population.tiles[2, 0, 0], 2)

    def test_set_copies_in(self):
        """Test set() overwrites a slot by value."""
        replacement = Arrangement(edges=np.full((4, 4), 5), geometry=self.geometry)
        self.population.set(0, replacement)
        replacement.edges[:] = 6
        self.assertEqual(self.population.tiles[0, 0, 0], 5)

    def test_wrong_shape_rejected(self):
        """Test population arrays must match the geometry."""
        with self.assertRaises(ValueError):
            Population(np.zeros((3, 5, 4)), self.geometry)
        with self.assertRaises(ValueError):
            Population.from_arrangements([])


if __name__ == '__main__':
    unittest.main()
