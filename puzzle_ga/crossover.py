"""
Crossover operators for the puzzle GA.

Implements a duplicate-aware order crossover that keeps offspring valid
permutations of the puzzle's tile multiset, plus cheaper one-point and
two-point segment swaps that do not track duplicates.
"""

from typing import Dict, Tuple

import numpy as np

from .catalog import TileCatalog
from .data_models import Arrangement


def draw_crossover_points(tile_count: int, rng: np.random.Generator) -> Tuple[int, int]:
    """
    Draw two crossover points uniformly from [0, tile_count).

    Returns:
        (first, second) with first <= second
    """
    first, second = (int(p) for p in rng.integers(0, tile_count, size=2))
    if first > second:
        first, second = second, first
    return first, second


def _fill_from_donor(
    offspring: np.ndarray,
    donor: np.ndarray,
    donor_identities: np.ndarray,
    placed: Dict[int, int],
    multiplicities: Dict[int, int],
    start: int,
    count_limit: int
) -> None:
    """
    Fill the positions outside the inherited segment from a donor parent.

    Walks the donor circularly from start, placing each tile whose identity
    is not yet saturated into the next open slot (also scanned circularly
    from start) and skipping tiles whose identity count is already full.
    """
    tile_count = len(donor)
    slot = start
    placed_count = 0
    index = start

    for _ in range(tile_count):
        if placed_count == count_limit:
            break
        key = int(donor_identities[index])
        if placed.get(key, 0) < multiplicities[key]:
            offspring[slot] = donor[index]
            placed[key] = placed.get(key, 0) + 1
            slot = (slot + 1) % tile_count
            placed_count += 1
        index = (index + 1) % tile_count

    if placed_count != count_limit:
        raise AssertionError(
            f"Order crossover placed {placed_count} of {count_limit} tiles; "
            f"parents are not permutations of the same tile multiset"
        )


def order_crossover(
    parent_a: Arrangement,
    parent_b: Arrangement,
    catalog: TileCatalog,
    rng: np.random.Generator
) -> Tuple[Arrangement, Arrangement, Tuple[int, int]]:
    """
    Combine two parents using duplicate-aware order crossover.

    The segment [c1, c2) is inherited crosswise: offspring_b receives
    parent_a's segment and offspring_a receives parent_b's. The remaining
    positions of each offspring are filled from its own parent, walking
    circularly from c2 and skipping tiles whose canonical identity has
    already been placed as many times as the puzzle contains it.

    Args:
        parent_a: First parent (left untouched)
        parent_b: Second parent (left untouched)
        catalog: Tile catalog holding identity multiplicities
        rng: Random number generator

    Returns:
        Tuple of (offspring_a, offspring_b, (c1, c2))

    Note:
        When every tile is unique this is classic order crossover. Both
        parents must satisfy the multiset invariant for the offspring to.
    """
    tile_count = parent_a.geometry.tile_count
    c1, c2 = draw_crossover_points(tile_count, rng)

    edges_a = parent_a.edges
    edges_b = parent_b.edges
    identities_a = catalog.identities(edges_a)
    identities_b = catalog.identities(edges_b)

    offspring_a = edges_a.copy()
    offspring_b = edges_b.copy()

    # Inherited segment
    offspring_b[c1:c2] = edges_a[c1:c2]
    offspring_a[c1:c2] = edges_b[c1:c2]

    placed_a: Dict[int, int] = {}
    placed_b: Dict[int, int] = {}
    for i in range(c1, c2):
        key_b = int(identities_b[i])
        key_a = int(identities_a[i])
        placed_a[key_b] = placed_a.get(key_b, 0) + 1
        placed_b[key_a] = placed_b.get(key_a, 0) + 1

    count_limit = tile_count - (c2 - c1)
    multiplicities = catalog.multiplicities

    _fill_from_donor(offspring_b, edges_b, identities_b, placed_b, multiplicities, c2, count_limit)
    _fill_from_donor(offspring_a, edges_a, identities_a, placed_a, multiplicities, c2, count_limit)

    geometry = parent_a.geometry
    return (
        Arrangement(edges=offspring_a, geometry=geometry),
        Arrangement(edges=offspring_b, geometry=geometry),
        (c1, c2),
    )


def one_point_crossover(
    parent_a: Arrangement,
    parent_b: Arrangement,
    rng: np.random.Generator
) -> Tuple[Arrangement, Arrangement, Tuple[int, int]]:
    """
    Swap the tails of two parents after a random point.

    Does not track duplicates: offspring may repeat or lose tiles whenever
    the parents differ in the swapped region.

    Returns:
        Tuple of (offspring_a, offspring_b, (point, tile_count))
    """
    tile_count = parent_a.geometry.tile_count
    point = int(rng.integers(0, tile_count))

    offspring_a = parent_a.copy()
    offspring_b = parent_b.copy()
    offspring_a.edges[point:] = parent_b.edges[point:]
    offspring_b.edges[point:] = parent_a.edges[point:]

    return offspring_a, offspring_b, (point, tile_count)


def two_point_crossover(
    parent_a: Arrangement,
    parent_b: Arrangement,
    rng: np.random.Generator
) -> Tuple[Arrangement, Arrangement, Tuple[int, int]]:
    """
    Swap the inclusive segment [c1, c2] between two parents.

    Does not track duplicates, like one_point_crossover.

    Returns:
        Tuple of (offspring_a, offspring_b, (c1, c2))
    """
    tile_count = parent_a.geometry.tile_count
    c1, c2 = draw_crossover_points(tile_count, rng)

    offspring_a = parent_a.copy()
    offspring_b = parent_b.copy()
    offspring_a.edges[c1:c2 + 1] = parent_b.edges[c1:c2 + 1]
    offspring_b.edges[c1:c2 + 1] = parent_a.edges[c1:c2 + 1]

    return offspring_a, offspring_b, (c1, c2)


def apply_crossover(
    parent_a: Arrangement,
    parent_b: Arrangement,
    catalog: TileCatalog,
    config: Dict,
    best_mismatch: int,
    rng: np.random.Generator
) -> Tuple[Arrangement, Arrangement, str]:
    """
    Apply crossover using the configured gating.

    Order crossover is engaged once the best mismatch count is at or below
    config['order_threshold']; above it the configured fallback is used.

    Args:
        parent_a: First parent
        parent_b: Second parent
        catalog: Tile catalog
        config: Crossover configuration ('order_threshold', 'fallback')
        best_mismatch: Best mismatch count of the current generation
        rng: Random number generator

    Returns:
        Tuple of (offspring_a, offspring_b, strategy_name)

    Raises:
        ValueError: If the fallback strategy is unknown
    """
    if best_mismatch <= config.get('order_threshold', 10):
        offspring_a, offspring_b, _ = order_crossover(parent_a, parent_b, catalog, rng)
        return offspring_a, offspring_b, 'order'

    fallback = config.get('fallback', 'none')

    if fallback == 'none':
        return parent_a.copy(), parent_b.copy(), 'none'

    elif fallback == 'two_point':
        offspring_a, offspring_b, _ = two_point_crossover(parent_a, parent_b, rng)
        return offspring_a, offspring_b, 'two_point'

    elif fallback == 'one_point':
        offspring_a, offspring_b, _ = one_point_crossover(parent_a, parent_b, rng)
        return offspring_a, offspring_b, 'one_point'

    else:
        raise ValueError(f"Unknown crossover fallback: {fallback}")


def crossover_statistics(
    offspring_a: Arrangement,
    offspring_b: Arrangement,
    catalog: TileCatalog
) -> Dict:
    """
    Calculate statistics about a crossover result.

    Args:
        offspring_a: First offspring
        offspring_b: Second offspring
        catalog: Tile catalog to check the multiset invariant against

    Returns:
        Dictionary with crossover statistics
    """
    violations_a = catalog.invariant_violations(offspring_a)
    violations_b = catalog.invariant_violations(offspring_b)

    return {
        'offspring_a_valid': not violations_a,
        'offspring_b_valid': not violations_b,
        'offspring_a_violations': len(violations_a),
        'offspring_b_violations': len(violations_b),
        'differing_positions': int((offspring_a.edges != offspring_b.edges).any(axis=1).sum()),
    }
