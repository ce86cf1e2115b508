"""
Tests for GA operations: crossover, mutation, and selection.
"""

import unittest
import numpy as np

from puzzle_ga.catalog import TileCatalog
from puzzle_ga.data_models import Arrangement, PuzzleGeometry
from puzzle_ga.population import Population, perturb
from puzzle_ga.crossover import (
    apply_crossover,
    crossover_statistics,
    draw_crossover_points,
    one_point_crossover,
    order_crossover,
    two_point_crossover,
)
from puzzle_ga.mutation import (
    mutate,
    mutate_offspring,
    mutation_statistics,
    rotate_random_tile,
    swap_random_tiles,
)
from puzzle_ga.selection import (
    pair_parents,
    parent_group_size,
    replace_worst,
    select_parents_and_worst,
)


def make_parents(tiles, geometry, rng):
    """Two independently scrambled permutations of the same tiles."""
    seed = Arrangement(edges=tiles, geometry=geometry)
    return perturb(seed, rng), perturb(seed, rng)


class TestOrderCrossover(unittest.TestCase):
    """Test duplicate-aware order crossover."""

    def setUp(self):
        """Set up a duplicate-heavy 8x8 puzzle."""
        self.geometry = PuzzleGeometry()
        self.rng = np.random.default_rng(21)
        # Two motifs give at most six identities for 64 tiles
        self.tiles = self.rng.integers(0, 2, size=(64, 4))
        self.catalog = TileCatalog(self.tiles, self.geometry)

    def test_offspring_keep_multiset(self):
        """Test offspring are always permutations of the puzzle's tiles."""
        self.assertTrue(self.catalog.has_duplicates())

        for _ in range(200):
            parent_a, parent_b = make_parents(self.tiles, self.geometry, self.rng)
            offspring_a, offspring_b, _ = order_crossover(parent_a, parent_b, self.catalog, self.rng)

            self.assertEqual(self.catalog.invariant_violations(offspring_a), {})
            self.assertEqual(self.catalog.invariant_violations(offspring_b), {})

    def test_offspring_keep_multiset_with_moderate_duplicates(self):
        """Test with a realistic motif alphabet."""
        tiles = self.rng.integers(0, 4, size=(64, 4))
        tiles[10] = tiles[20]
        tiles[30] = np.roll(tiles[20], 1)
        catalog = TileCatalog(tiles, self.geometry)

        for _ in range(100):
            parent_a, parent_b = make_parents(tiles, self.geometry, self.rng)
            offspring_a, offspring_b, _ = order_crossover(parent_a, parent_b, catalog, self.rng)

            self.assertTrue(catalog.satisfies_invariant(offspring_a))
            self.assertTrue(catalog.satisfies_invariant(offspring_b))

    def test_inherited_segment(self):
        """Test the segment [c1, c2) is copied crosswise."""
        for _ in range(50):
            parent_a, parent_b = make_parents(self.tiles, self.geometry, self.rng)
            offspring_a, offspring_b, (c1, c2) = order_crossover(
                parent_a, parent_b, self.catalog, self.rng
            )

            self.assertLessEqual(c1, c2)
            np.testing.assert_array_equal(offspring_b.edges[c1:c2], parent_a.edges[c1:c2])
            np.testing.assert_array_equal(offspring_a.edges[c1:c2], parent_b.edges[c1:c2])

    def test_remaining_tiles_come_from_donor(self):
        """Test tiles outside the segment are oriented tiles of the donor parent."""
        for _ in range(50):
            parent_a, parent_b = make_parents(self.tiles, self.geometry, self.rng)
            offspring_a, offspring_b, (c1, c2) = order_crossover(
                parent_a, parent_b, self.catalog, self.rng
            )

            donor_b = {parent_b.tile(i) for i in range(64)}
            donor_a = {parent_a.tile(i) for i in range(64)}
            outside = [i for i in range(64) if not c1 <= i < c2]

            for i in outside:
                self.assertIn(offspring_b.tile(i), donor_b)
                self.assertIn(offspring_a.tile(i), donor_a)

    def test_parents_untouched(self):
        """Test crossover does not modify its parents."""
        parent_a, parent_b = make_parents(self.tiles, self.geometry, self.rng)
        before_a, before_b = parent_a.copy(), parent_b.copy()

        order_crossover(parent_a, parent_b, self.catalog, self.rng)

        self.assertEqual(parent_a, before_a)
        self.assertEqual(parent_b, before_b)

    def test_identical_parents_give_identical_offspring(self):
        """Test crossing an arrangement with itself reproduces it."""
        parent, _ = make_parents(self.tiles, self.geometry, self.rng)
        offspring_a, offspring_b, _ = order_crossover(parent, parent.copy(), self.catalog, self.rng)

        self.assertEqual(offspring_a, parent)
        self.assertEqual(offspring_b, parent)

    def test_unique_tiles_match_classic_order_crossover(self):
        """Test the duplicate-free case reduces to classic order crossover."""
        geometry = PuzzleGeometry(side=4)
        # Sixteen tiles with pairwise distinct identities
        tiles = np.array([[i, i + 1, i + 2, i + 3] for i in range(0, 64, 4)])
        catalog = TileCatalog(tiles, geometry)
        self.assertFalse(catalog.has_duplicates())

        for _ in range(30):
            parent_a, parent_b = make_parents(tiles, geometry, self.rng)
            offspring_a, offspring_b, (c1, c2) = order_crossover(parent_a, parent_b, catalog, self.rng)

            # Reference: fill from the donor in circular order, skipping segment tiles
            segment = {catalog.identity(parent_a.edges[i]) for i in range(c1, c2)}
            expected = parent_b.edges.copy()
            expected[c1:c2] = parent_a.edges[c1:c2]
            slot = c2
            for step in range(16):
                index = (c2 + step) % 16
                if catalog.identity(parent_b.edges[index]) in segment:
                    continue
                expected[slot] = parent_b.edges[index]
                slot = (slot + 1) % 16

            np.testing.assert_array_equal(offspring_b.edges, expected)
            self.assertTrue(catalog.satisfies_invariant(offspring_a))

    def test_crossover_points_ordered(self):
        """Test drawn points are ordered and in range."""
        for _ in range(100):
            c1, c2 = draw_crossover_points(64, self.rng)
            self.assertLessEqual(0, c1)
            self.assertLessEqual(c1, c2)
            self.assertLess(c2, 64)


class TestSegmentCrossover(unittest.TestCase):
    """Test crossover variants without duplicate tracking."""

    def setUp(self):
        """Set up two distinguishable 2x2 parents."""
        self.geometry = PuzzleGeometry(side=2)
        self.parent_a = Arrangement(edges=np.full((4, 4), 1), geometry=self.geometry)
        self.parent_b = Arrangement(edges=np.full((4, 4), 2), geometry=self.geometry)
        self.rng = np.random.default_rng(0)

    def test_one_point_swaps_tail(self):
        """Test one-point crossover swaps everything after the point."""
        offspring_a, offspring_b, (point, end) = one_point_crossover(
            self.parent_a, self.parent_b, self.rng
        )

        self.assertEqual(end, 4)
        self.assertTrue((offspring_a.edges[:point] == 1).all())
        self.assertTrue((offspring_a.edges[point:] == 2).all())
        self.assertTrue((offspring_b.edges[:point] == 2).all())
        self.assertTrue((offspring_b.edges[point:] == 1).all())

    def test_two_point_swaps_inclusive_segment(self):
        """Test two-point crossover swaps [c1, c2]."""
        offspring_a, offspring_b, (c1, c2) = two_point_crossover(
            self.parent_a, self.parent_b, self.rng
        )

        for i in range(4):
            inside = c1 <= i <= c2
            self.assertEqual(offspring_a.tile(i)[0], 2 if inside else 1)
            self.assertEqual(offspring_b.tile(i)[0], 1 if inside else 2)

    def test_two_point_may_break_multiset(self):
        """Test segment swaps do not protect the invariant when parents differ."""
        geometry = PuzzleGeometry(side=4)
        tiles = np.array([[i, i + 1, i + 2, i + 3] for i in range(0, 64, 4)])
        catalog = TileCatalog(tiles, geometry)
        rng = np.random.default_rng(9)

        broken = 0
        for _ in range(50):
            parent_a, parent_b = make_parents(tiles, geometry, rng)
            offspring_a, offspring_b, _ = two_point_crossover(parent_a, parent_b, rng)
            stats = crossover_statistics(offspring_a, offspring_b, catalog)
            if not stats['offspring_a_valid']:
                broken += 1

        self.assertGreater(broken, 0)


class TestApplyCrossover(unittest.TestCase):
    """Test crossover gating."""

    def setUp(self):
        """Set up an 8x8 puzzle and two parents."""
        self.geometry = PuzzleGeometry()
        self.rng = np.random.default_rng(31)
        tiles = self.rng.integers(0, 5, size=(64, 4))
        self.catalog = TileCatalog(tiles, self.geometry)
        self.parent_a, self.parent_b = make_parents(tiles, self.geometry, self.rng)

    def test_order_crossover_at_threshold(self):
        """Test order crossover engages at or below the threshold."""
        config = {'order_threshold': 10, 'fallback': 'two_point'}
        _, _, strategy = apply_crossover(
            self.parent_a, self.parent_b, self.catalog, config, 10, self.rng
        )
        self.assertEqual(strategy, 'order')

    def test_no_crossover_above_threshold(self):
        """Test the 'none' fallback passes parents through as copies."""
        config = {'order_threshold': 10, 'fallback': 'none'}
        offspring_a, offspring_b, strategy = apply_crossover(
            self.parent_a, self.parent_b, self.catalog, config, 11, self.rng
        )

        self.assertEqual(strategy, 'none')
        self.assertEqual(offspring_a, self.parent_a)
        self.assertEqual(offspring_b, self.parent_b)
        self.assertIsNot(offspring_a.edges, self.parent_a.edges)

    def test_fallback_strategies(self):
        """Test configured fallbacks above the threshold."""
        for fallback in ['two_point', 'one_point']:
            config = {'order_threshold': 0, 'fallback': fallback}
            _, _, strategy = apply_crossover(
                self.parent_a, self.parent_b, self.catalog, config, 50, self.rng
            )
            self.assertEqual(strategy, fallback)

    def test_unknown_fallback(self):
        """Test unknown fallback strategies are rejected."""
        config = {'order_threshold': 0, 'fallback': 'uniform'}
        with self.assertRaises(ValueError):
            apply_crossover(self.parent_a, self.parent_b, self.catalog, config, 50, self.rng)

    def test_crossover_statistics(self):
        """Test statistics of a valid crossover."""
        offspring_a, offspring_b, _ = order_crossover(
            self.parent_a, self.parent_b, self.catalog, self.rng
        )
        stats = crossover_statistics(offspring_a, offspring_b, self.catalog)

        self.assertTrue(stats['offspring_a_valid'])
        self.assertTrue(stats['offspring_b_valid'])
        self.assertEqual(stats['offspring_a_violations'], 0)
        self.assertIn('differing_positions', stats)


class TestMutation(unittest.TestCase):
    """Test mutation operators."""

    def setUp(self):
        """Set up an 8x8 arrangement with duplicates."""
        self.geometry = PuzzleGeometry()
        self.rng = np.random.default_rng(41)
        tiles = self.rng.integers(0, 3, size=(64, 4))
        self.catalog = TileCatalog(tiles, self.geometry)
        self.arrangement = Arrangement(edges=tiles.copy(), geometry=self.geometry)

    def test_swap_uses_distinct_positions(self):
        """Test swaps always pick two different positions."""
        for _ in range(100):
            first, second = swap_random_tiles(self.arrangement, self.rng)
            self.assertNotEqual(first, second)

    def test_rotate_changes_one_tile(self):
        """Test rotation touches only the chosen tile."""
        before = self.arrangement.copy()
        index = rotate_random_tile(self.arrangement, self.rng)

        for i in range(64):
            if i != index:
                self.assertEqual(self.arrangement.tile(i), before.tile(i))
        self.assertEqual(self.catalog.identity(self.arrangement.edges[index]),
                         self.catalog.identity(before.edges[index]))

    def test_mutation_preserves_multiset(self):
        """Test mutation only moves and rotates tiles."""
        for rate in [1, 3, 8, 32]:
            for _ in range(25):
                mutate(self.arrangement, rate, self.rng)
                self.assertTrue(self.catalog.satisfies_invariant(self.arrangement))

    def test_step_count_bounded_by_rate(self):
        """Test the number of steps stays below the rate."""
        steps = [mutate(self.arrangement, 5, self.rng) for _ in range(200)]
        self.assertTrue(all(0 <= s < 5 for s in steps))
        self.assertEqual(set(steps), {0, 1, 2, 3, 4})

    def test_rate_one_never_mutates(self):
        """Test a rate of one draws zero steps."""
        before = self.arrangement.copy()
        self.assertEqual(mutate(self.arrangement, 1, self.rng), 0)
        self.assertEqual(self.arrangement, before)

    def test_invalid_rate(self):
        """Test non-positive rates are rejected."""
        with self.assertRaises(ValueError):
            mutate(self.arrangement, 0, self.rng)

    def test_mutate_offspring(self):
        """Test batch mutation."""
        offspring = [self.arrangement.copy() for _ in range(6)]
        steps = mutate_offspring(offspring, 16, self.rng)

        self.assertEqual(len(steps), 6)
        for child in offspring:
            self.assertTrue(self.catalog.satisfies_invariant(child))

    def test_mutation_statistics(self):
        """Test change statistics."""
        original = self.arrangement.copy()
        mutated = self.arrangement.copy()
        mutated.swap(0, 1)
        mutated.edges[0] = [9, 9, 9, 9]

        stats = mutation_statistics(original, mutated)
        self.assertEqual(stats['total_tiles'], 64)
        self.assertGreaterEqual(stats['positions_changed'], 1)
        self.assertLessEqual(stats['change_rate'], 1.0)


class TestSelection(unittest.TestCase):
    """Test parent selection and replacement."""

    def test_parent_group_size(self):
        """Test ratio-adjusted even group sizes."""
        self.assertEqual(parent_group_size(10000, 0.25), 2500)
        self.assertEqual(parent_group_size(50, 0.25), 12)
        self.assertEqual(parent_group_size(30, 0.25), 8)   # 7 rounded up
        self.assertEqual(parent_group_size(6, 0.5), 2)     # capped below half
        self.assertEqual(parent_group_size(1, 0.25), 0)

    def test_parent_group_size_even(self):
        """Test group sizes are always even and never overlap."""
        for size in range(1, 60):
            for ratio in [0.1, 0.25, 0.5]:
                group = parent_group_size(size, ratio)
                self.assertEqual(group % 2, 0)
                self.assertLessEqual(2 * group, size)

    def test_select_parents_and_worst(self):
        """Test best and worst groups from an ascending ranking."""
        ranked = [(4, 0), (1, 2), (0, 3), (5, 5), (3, 8), (2, 9)]
        parents, worst = select_parents_and_worst(ranked, 2)

        self.assertEqual(parents, [4, 1])
        self.assertEqual(worst, [3, 2])

    def test_select_empty_group(self):
        """Test zero-sized groups."""
        self.assertEqual(select_parents_and_worst([(0, 1)], 0), ([], []))

    def test_mirrored_pairing(self):
        """Test i-th parent pairs with the (count-1-i)-th."""
        pairs = pair_parents([10, 11, 12, 13], mirrored=True)
        self.assertEqual(pairs, [(10, 13, 0, 3), (12, 11, 2, 1)])

        slots = sorted(slot for pair in pair_parents(list(range(8))) for slot in pair[2:])
        self.assertEqual(slots, list(range(8)))

    def test_consecutive_pairing(self):
        """Test neighbours pair up."""
        pairs = pair_parents([10, 11, 12, 13], mirrored=False)
        self.assertEqual(pairs, [(10, 11, 0, 1), (12, 13, 2, 3)])

    def test_replace_worst(self):
        """Test offspring overwrite the worst slots index for index."""
        geometry = PuzzleGeometry(side=2)
        population = Population(np.zeros((4, 4, 4), dtype=np.int64), geometry)
        offspring = [
            Arrangement(edges=np.full((4, 4), 7), geometry=geometry),
            Arrangement(edges=np.full((4, 4), 8), geometry=geometry),
        ]

        replace_worst(population, [3, 1], offspring)

        self.assertTrue((population.tiles[3] == 7).all())
        self.assertTrue((population.tiles[1] == 8).all())
        self.assertTrue((population.tiles[0] == 0).all())
        self.assertTrue((population.tiles[2] == 0).all())

    def test_replace_worst_size_mismatch(self):
        """Test group size mismatches are rejected."""
        geometry = PuzzleGeometry(side=2)
        population = Population(np.zeros((4, 4, 4), dtype=np.int64), geometry)
        with self.assertRaises(ValueError):
            replace_worst(population, [0, 1], [])


if __name__ == '__main__':
    unittest.main()
