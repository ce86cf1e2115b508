"""
Population storage and seeding for the puzzle GA.

A population owns a single (size, tile_count, tile_size) array; individuals
are addressed by index.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import List, Sequence

import numpy as np

from .data_models import Arrangement, PuzzleGeometry


class Population:
    """Fixed-size collection of arrangements backed by one array."""

    def __init__(self, tiles: np.ndarray, geometry: PuzzleGeometry):
        """
        Args:
            tiles: Array of shape (size, tile_count, tile_size)
            geometry: Puzzle geometry shared by every individual
        """
        self.tiles = np.asarray(tiles, dtype=np.int64)
        self.geometry = geometry

        expected = (geometry.tile_count, geometry.tile_size)
        if self.tiles.ndim != 3 or self.tiles.shape[1:] != expected:
            raise ValueError(
                f"Population array must have shape (size, {expected[0]}, {expected[1]}), "
                f"got {self.tiles.shape}"
            )

    @classmethod
    def from_arrangements(cls, arrangements: Sequence[Arrangement]) -> "Population":
        """Build a population by copying a sequence of arrangements."""
        if not arrangements:
            raise ValueError("Population must contain at least one arrangement")
        geometry = arrangements[0].geometry
        return cls(np.stack([a.edges for a in arrangements]), geometry)

    def __len__(self) -> int:
        return len(self.tiles)

    def view(self, index: int) -> Arrangement:
        """
        Arrangement sharing memory with slot index.

        Mutating the returned arrangement mutates the population.
        """
        return Arrangement(edges=self.tiles[index], geometry=self.geometry)

    def get(self, index: int) -> Arrangement:
        """Copy of the arrangement in slot index."""
        return Arrangement(edges=self.tiles[index].copy(), geometry=self.geometry)

    def set(self, index: int, arrangement: Arrangement) -> None:
        """Copy an arrangement into slot index."""
        self.tiles[index] = arrangement.edges

    def arrangements(self) -> List[Arrangement]:
        """Copies of every individual, in slot order."""
        return [self.get(i) for i in range(len(self))]


def perturb(seed: Arrangement, rng: np.random.Generator) -> Arrangement:
    """
    Produce a scrambled copy of seed.

    Applies tile_count // 2 iterations of a random two-position swap
    followed by a one-step rotation of the tile swapped into the first
    position. Swaps and rotations never change tile identities, so the
    result uses the same tile multiset as seed.

    Args:
        seed: Arrangement to scramble (left untouched)
        rng: Generator owned by the caller

    Returns:
        New perturbed arrangement
    """
    working = seed.copy()
    tile_count = seed.geometry.tile_count

    for _ in range(tile_count // 2):
        first, second = rng.choice(tile_count, size=2, replace=False)
        working.swap(first, second)
        working.rotate(first)

    return working


def generate_population(
    seed: Arrangement,
    size: int,
    rng: np.random.Generator,
    workers: int = 1
) -> Population:
    """
    Seed a population from a single arrangement.

    Slot 0 is an exact copy of seed. Every other slot is an independently
    perturbed copy with its own generator, derived from rng, so the result
    depends only on rng and not on how many workers build it.

    Args:
        seed: Starting arrangement
        size: Number of individuals
        rng: Generator from which per-slot generators are derived
        workers: Number of threads used to build slots

    Returns:
        New Population of the requested size
    """
    if size < 1:
        raise ValueError(f"Population size must be positive, got {size}")

    slot_seeds = rng.integers(0, 2**63 - 1, size=size - 1)

    def build_slot(slot_seed: int) -> np.ndarray:
        return perturb(seed, np.random.default_rng(int(slot_seed))).edges

    if workers > 1 and size > 2:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            slots = list(executor.map(build_slot, slot_seeds))
    else:
        slots = [build_slot(s) for s in slot_seeds]

    tiles = np.empty((size, seed.geometry.tile_count, seed.geometry.tile_size), dtype=np.int64)
    tiles[0] = seed.edges
    if slots:
        tiles[1:] = np.stack(slots)

    return Population(tiles, seed.geometry)
