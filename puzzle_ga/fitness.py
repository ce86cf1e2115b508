"""
Fitness evaluation for the puzzle GA.

Fitness is the number of adjacent edge pairs that do not match. Lower is
better; zero is a solved puzzle.
"""

from typing import List, Tuple

import numpy as np

from .data_models import Arrangement, PuzzleGeometry

TOP, RIGHT, BOTTOM, LEFT = range(4)


def count_edge_mismatches(edges: np.ndarray, geometry: PuzzleGeometry) -> np.ndarray:
    """
    Count edge mismatches for one or many arrangements at once.

    A tile outside the leftmost column mismatches when its left edge differs
    from its left neighbour's right edge; a tile outside the top row
    mismatches when its top edge differs from the bottom edge of the tile
    above.

    Args:
        edges: Array of shape (..., tile_count, tile_size)
        geometry: Puzzle geometry

    Returns:
        Integer array of mismatch counts with the last two axes removed
    """
    edges = np.asarray(edges)
    side = geometry.side
    grid = edges.reshape(edges.shape[:-2] + (side, side, geometry.tile_size))

    horizontal = grid[..., :, 1:, LEFT] != grid[..., :, :-1, RIGHT]
    vertical = grid[..., 1:, :, TOP] != grid[..., :-1, :, BOTTOM]

    return horizontal.sum(axis=(-2, -1)) + vertical.sum(axis=(-2, -1))


def count_edge_mismatch(arrangement: Arrangement) -> int:
    """
    Count edge mismatches of a single arrangement.

    Args:
        arrangement: Arrangement to score

    Returns:
        Number of mismatching adjacent edge pairs
    """
    return int(count_edge_mismatches(arrangement.edges, arrangement.geometry))


def rank_population(population, descending: bool = False) -> List[Tuple[int, int]]:
    """
    Score and rank every individual in a population.

    Args:
        population: Population to evaluate
        descending: If True, worst (highest mismatch) first

    Returns:
        List of (index, mismatch) pairs sorted by mismatch; ties keep index order
    """
    scores = count_edge_mismatches(population.tiles, population.geometry)
    ranked = [(index, int(score)) for index, score in enumerate(scores)]
    ranked.sort(key=lambda pair: pair[1], reverse=descending)
    return ranked
