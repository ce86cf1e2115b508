"""
Mutation operators for the puzzle GA.

Mutation only moves and rotates tiles, so it can never break the tile
multiset invariant.
"""

from typing import Dict, List, Tuple

import numpy as np

from .data_models import Arrangement


def swap_random_tiles(arrangement: Arrangement, rng: np.random.Generator) -> Tuple[int, int]:
    """
    Swap two distinct randomly chosen positions in place.

    Returns:
        The (first, second) positions that were swapped
    """
    first, second = (int(p) for p in rng.choice(arrangement.geometry.tile_count, size=2, replace=False))
    arrangement.swap(first, second)
    return first, second


def rotate_random_tile(arrangement: Arrangement, rng: np.random.Generator) -> int:
    """
    Rotate one randomly chosen tile by one step in place.

    Returns:
        Position of the rotated tile
    """
    index = int(rng.integers(0, arrangement.geometry.tile_count))
    arrangement.rotate(index)
    return index


def mutate(arrangement: Arrangement, mutation_rate: int, rng: np.random.Generator) -> int:
    """
    Perturb an arrangement in place with alternating swaps and rotations.

    Draws a step count uniformly from [0, mutation_rate); even steps swap two
    positions, odd steps rotate one tile.

    Args:
        arrangement: Arrangement to mutate
        mutation_rate: Exclusive upper bound on the number of steps
        rng: Random number generator

    Returns:
        Number of steps applied
    """
    if mutation_rate < 1:
        raise ValueError(f"Mutation rate must be positive, got {mutation_rate}")

    num_iterations = int(rng.integers(0, mutation_rate))

    for step in range(num_iterations):
        if step % 2 == 0:
            swap_random_tiles(arrangement, rng)
        else:
            rotate_random_tile(arrangement, rng)

    return num_iterations


def mutate_offspring(
    offspring: List[Arrangement],
    mutation_rate: int,
    rng: np.random.Generator
) -> List[int]:
    """
    Mutate every offspring in place.

    Returns:
        Number of steps applied to each offspring
    """
    return [mutate(child, mutation_rate, rng) for child in offspring]


def mutation_statistics(original: Arrangement, mutated: Arrangement) -> Dict:
    """
    Calculate statistics about a mutation.

    Args:
        original: Arrangement before mutation
        mutated: Arrangement after mutation

    Returns:
        Dictionary with mutation statistics
    """
    changed = (original.edges != mutated.edges).any(axis=1)

    stats = {
        'total_tiles': len(mutated),
        'positions_changed': int(changed.sum()),
    }
    stats['change_rate'] = stats['positions_changed'] / max(stats['total_tiles'], 1)

    return stats
