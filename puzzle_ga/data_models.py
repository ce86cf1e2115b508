"""
Data models for the puzzle GA.

Core data structures representing puzzle geometry, candidate arrangements,
and improvement records.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Any

import numpy as np


def rotate_left(tile: np.ndarray, steps: int = 1) -> np.ndarray:
    """
    Rotate a tile's edges to the left.

    One step maps (top, right, bottom, left) -> (right, bottom, left, top).
    Four steps return the original tile.

    Args:
        tile: Edge vector of length tile_size
        steps: Number of one-step rotations to apply

    Returns:
        New rotated edge vector
    """
    return np.roll(np.asarray(tile), -steps, axis=-1)


@dataclass(frozen=True)
class PuzzleGeometry:
    """
    Fixed geometry of a square edge-matching puzzle.

    Attributes:
        side: Number of tiles along each side of the grid
        tile_size: Number of edges per tile (top, right, bottom, left)
    """
    side: int = 8
    tile_size: int = 4

    def __post_init__(self):
        """Validate geometry."""
        if self.side < 2:
            raise ValueError(f"Puzzle side must be at least 2, got {self.side}")
        if self.tile_size != 4:
            raise ValueError(f"Square tiles have 4 edges, got tile_size={self.tile_size}")

    @property
    def tile_count(self) -> int:
        """Number of tiles in the puzzle."""
        return self.side * self.side

    @property
    def max_mismatch(self) -> int:
        """Number of interior edge boundaries (worst possible score)."""
        return 2 * self.side * (self.side - 1)

    def position(self, index: int) -> tuple[int, int]:
        """Row-major (row, col) for a tile index."""
        return divmod(index, self.side)


@dataclass
class Arrangement:
    """
    An ordered placement of oriented tiles on the grid (one individual).

    Tiles are stored row-major in a (tile_count, tile_size) integer array;
    index i occupies row i // side and column i % side.

    Attributes:
        edges: Array of shape (tile_count, tile_size)
        geometry: Puzzle geometry this arrangement belongs to
    """
    edges: np.ndarray
    geometry: PuzzleGeometry = field(default_factory=PuzzleGeometry)

    def __post_init__(self):
        """Ensure edges form a well-shaped integer array."""
        self.edges = np.asarray(self.edges, dtype=np.int64)
        expected = (self.geometry.tile_count, self.geometry.tile_size)
        if self.edges.shape != expected:
            raise ValueError(f"Arrangement must have shape {expected}, got {self.edges.shape}")

    def copy(self) -> "Arrangement":
        """
        Create a deep copy of this arrangement.

        Returns:
            New Arrangement owning its own edge array
        """
        return Arrangement(edges=self.edges.copy(), geometry=self.geometry)

    def __len__(self) -> int:
        return len(self.edges)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Arrangement):
            return NotImplemented
        return self.geometry == other.geometry and np.array_equal(self.edges, other.edges)

    def tile(self, index: int) -> tuple[int, ...]:
        """Edges of the tile at index as a plain tuple."""
        return tuple(int(v) for v in self.edges[index])

    def swap(self, first: int, second: int) -> None:
        """Swap the tiles at two positions in place."""
        self.edges[[first, second]] = self.edges[[second, first]]

    def rotate(self, index: int, steps: int = 1) -> None:
        """Rotate the tile at index left by the given number of steps, in place."""
        self.edges[index] = rotate_left(self.edges[index], steps)

    def rows(self) -> list[list[tuple[int, ...]]]:
        """
        Arrange tiles as a grid of rows.

        Returns:
            List of side rows, each a list of side edge tuples
        """
        side = self.geometry.side
        return [
            [self.tile(row * side + col) for col in range(side)]
            for row in range(side)
        ]


@dataclass
class ImprovementRecord:
    """
    Records one new best-so-far arrangement found during a run.

    Attributes:
        generation: Generation in which the improvement was observed
        mismatch: Edge mismatch count of the new best
        mutation_rate: Mutation rate in effect at that generation
        path: Where the arrangement was saved, if it was saved
        timestamp: When the improvement was recorded
        metadata: Additional information
    """
    generation: int
    mismatch: int
    mutation_rate: int
    path: Optional[Path] = None
    timestamp: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate record and ensure path is a Path object."""
        if self.path is not None and not isinstance(self.path, Path):
            self.path = Path(self.path)

        if self.mismatch < 0:
            raise ValueError(f"Mismatch count must be non-negative, got {self.mismatch}")

    def to_dict(self) -> dict[str, Any]:
        """
        Convert record to dictionary for CSV export.

        Returns:
            Dictionary with string-serializable values
        """
        return {
            "generation": self.generation,
            "mismatch": self.mismatch,
            "mutation_rate": self.mutation_rate,
            "path": str(self.path) if self.path else "",
            "timestamp": self.timestamp or "",
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImprovementRecord":
        """
        Create record from dictionary (e.g., from CSV).

        Args:
            data: Dictionary with improvement information

        Returns:
            ImprovementRecord instance
        """
        return cls(
            generation=int(data["generation"]),
            mismatch=int(data["mismatch"]),
            mutation_rate=int(data["mutation_rate"]),
            path=Path(data["path"]) if data.get("path") else None,
            timestamp=data.get("timestamp") or None,
        )
