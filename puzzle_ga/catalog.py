"""
Tile catalog for the puzzle GA.

Canonicalizes tiles to rotation-invariant identities and records how many
physical copies of each identity the puzzle contains. Crossover relies on
these multiplicities to keep every offspring a permutation of the original
tile multiset.
"""

from collections import Counter
from typing import Dict, List, Tuple

import numpy as np

from .data_models import Arrangement, PuzzleGeometry, rotate_left


class TileCatalog:
    """
    Rotation-invariant tile identities and their multiplicities.

    A tile's identity is its lexicographically least rotation, packed into
    a single integer using the motif alphabet size as the base. Packing with
    a fixed base preserves lexicographic order, so the least packed value is
    the least rotation.
    """

    def __init__(self, tiles: np.ndarray, geometry: PuzzleGeometry):
        """
        Build catalog from the puzzle's tiles.

        Args:
            tiles: Array of shape (tile_count, tile_size) with non-negative motifs
            geometry: Puzzle geometry

        Raises:
            ValueError: If tile count or shape does not match geometry, or
                        if any motif is negative
        """
        tiles = np.asarray(tiles, dtype=np.int64)
        expected = (geometry.tile_count, geometry.tile_size)
        if tiles.shape != expected:
            raise ValueError(
                f"Puzzle must contain {geometry.tile_count} tiles of {geometry.tile_size} edges, "
                f"got array of shape {tiles.shape}"
            )
        if (tiles < 0).any():
            raise ValueError("Tile motifs must be non-negative integers")

        self.geometry = geometry
        self.tiles = tiles
        self.base = int(tiles.max()) + 1
        self._weights = self.base ** np.arange(geometry.tile_size - 1, -1, -1, dtype=np.int64)

        self.original_identities = self.identities(tiles)
        self.multiplicities: Dict[int, int] = dict(
            Counter(int(key) for key in self.original_identities)
        )

    @classmethod
    def from_tiles(cls, tiles, geometry: PuzzleGeometry = None) -> "TileCatalog":
        """Build a catalog, defaulting to the standard 8x8 geometry."""
        return cls(tiles, geometry or PuzzleGeometry())

    def identities(self, edges: np.ndarray) -> np.ndarray:
        """
        Compute canonical identities for tiles.

        Args:
            edges: Array whose last axis holds tile edges, e.g. (T, 4) or (N, T, 4)

        Returns:
            Integer array of identities with the last axis removed
        """
        edges = np.asarray(edges, dtype=np.int64)
        packed = np.stack(
            [rotate_left(edges, k) @ self._weights for k in range(self.geometry.tile_size)],
            axis=-1
        )
        return packed.min(axis=-1)

    def identity(self, tile) -> int:
        """Canonical identity of a single tile."""
        return int(self.identities(np.asarray(tile)))

    def counts(self, arrangement: Arrangement) -> Dict[int, int]:
        """
        Count tiles per identity in an arrangement.

        Args:
            arrangement: Arrangement to count

        Returns:
            Dictionary mapping identity to number of tiles with that identity
        """
        return dict(Counter(int(key) for key in self.identities(arrangement.edges)))

    def invariant_violations(self, arrangement: Arrangement) -> Dict[int, Tuple[int, int]]:
        """
        Find identities whose count differs from the catalog multiplicity.

        Args:
            arrangement: Arrangement to check

        Returns:
            Dictionary mapping identity to (count_in_arrangement, multiplicity);
            empty if the arrangement is a valid permutation of the puzzle
        """
        have = self.counts(arrangement)
        violations = {}
        for key in set(have) | set(self.multiplicities):
            found = have.get(key, 0)
            wanted = self.multiplicities.get(key, 0)
            if found != wanted:
                violations[key] = (found, wanted)
        return violations

    def satisfies_invariant(self, arrangement: Arrangement) -> bool:
        """True if arrangement uses exactly the catalog's tile multiset."""
        return not self.invariant_violations(arrangement)

    def has_duplicates(self) -> bool:
        """True if any identity occurs more than once."""
        return any(count > 1 for count in self.multiplicities.values())

    def locate(self, arrangement: Arrangement) -> List[Tuple[int, int]]:
        """
        Map each placed tile back to an input tile ID and rotation.

        Tiles sharing an identity are assigned to the input tiles with that
        identity in input order.

        Args:
            arrangement: Arrangement satisfying the multiset invariant

        Returns:
            List of (tile_id, rotation) per position, where rotation is the
            number of left rotations turning the input tile into the placed one

        Raises:
            ValueError: If a placed tile has no unused input tile left
        """
        available: Dict[int, List[int]] = {}
        for tile_id, key in enumerate(self.original_identities):
            available.setdefault(int(key), []).append(tile_id)

        located = []
        for position, key in enumerate(self.identities(arrangement.edges)):
            candidates = available.get(int(key))
            if not candidates:
                raise ValueError(f"Tile at position {position} has no matching puzzle tile left")
            tile_id = candidates.pop(0)

            placed = arrangement.edges[position]
            original = self.tiles[tile_id]
            rotation = next(
                k for k in range(self.geometry.tile_size)
                if np.array_equal(rotate_left(original, k), placed)
            )
            located.append((tile_id, rotation))

        return located

    def __len__(self) -> int:
        """Number of distinct identities."""
        return len(self.multiplicities)
