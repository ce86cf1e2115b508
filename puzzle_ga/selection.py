"""
Parent and survivor selection for the puzzle GA.

The best-ranked group breeds and its offspring overwrite the worst-ranked
group. Everyone in between survives untouched.
"""

from typing import List, Sequence, Tuple

from .data_models import Arrangement
from .population import Population


def parent_group_size(population_size: int, ratio: float) -> int:
    """
    Number of parents (and replacement targets) per generation.

    The ratio-adjusted size is rounded up to an even number so parents pair
    off, then capped so the parent and worst groups never overlap.

    Args:
        population_size: Number of individuals
        ratio: Fraction of the population selected as parents

    Returns:
        Even group size, possibly 0 for tiny populations
    """
    size = int(population_size * ratio)
    if size % 2:
        size += 1

    limit = population_size // 2
    if limit % 2:
        limit -= 1

    return min(size, limit)


def select_parents_and_worst(
    ranked: Sequence[Tuple[int, int]],
    group_size: int
) -> Tuple[List[int], List[int]]:
    """
    Pick the best and worst individuals from an ascending ranking.

    Args:
        ranked: (index, mismatch) pairs sorted ascending by mismatch
        group_size: Number of individuals in each group

    Returns:
        Tuple of (parent_indices, worst_indices); parents are ordered best
        first, worst are ordered worst last
    """
    if group_size == 0:
        return [], []

    parents = [index for index, _ in ranked[:group_size]]
    worst = [index for index, _ in ranked[-group_size:]]
    return parents, worst


def pair_parents(parents: Sequence[int], mirrored: bool = True) -> List[Tuple[int, int, int, int]]:
    """
    Pair parents for crossover.

    Mirrored pairing matches parent i with parent count-1-i for every even
    i; consecutive pairing matches 2j with 2j+1.

    Args:
        parents: Parent population indices
        mirrored: Use mirrored pairing

    Returns:
        List of (parent_a, parent_b, slot_a, slot_b) where slot_* are the
        offspring positions the pair's children occupy
    """
    count = len(parents)
    pairs = []

    for i in range(0, count - 1, 2):
        partner = count - 1 - i if mirrored else i + 1
        pairs.append((parents[i], parents[partner], i, partner))

    return pairs


def replace_worst(
    population: Population,
    worst: Sequence[int],
    offspring: Sequence[Arrangement]
) -> None:
    """
    Overwrite the worst individuals with offspring, index for index.

    Raises:
        ValueError: If group sizes differ
    """
    if len(worst) != len(offspring):
        raise ValueError(f"Got {len(offspring)} offspring for {len(worst)} replacement slots")

    for index, child in zip(worst, offspring):
        population.set(index, child)
