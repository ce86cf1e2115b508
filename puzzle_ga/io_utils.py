"""
I/O utilities for the puzzle GA.

Handles puzzle text files, solution records, improvement logging,
and YAML configuration loading.
"""

import csv
from pathlib import Path
from typing import List, Optional, Union
from datetime import datetime

import numpy as np
import yaml

from .catalog import TileCatalog
from .data_models import Arrangement, ImprovementRecord, PuzzleGeometry, rotate_left

ARRANGEMENT_CSV_FIELDS = ['position', 'row', 'col', 'tile_id', 'rotation', 'edges']
IMPROVEMENT_LOG_FIELDS = ['generation', 'mismatch', 'mutation_rate', 'path', 'timestamp']


def _writable_path(path: Union[str, Path], overwrite: bool, kind: str) -> Path:
    """Refuse to clobber an existing file unless overwrite; create parent dirs."""
    path = Path(path)
    if path.exists() and not overwrite:
        raise FileExistsError(f"{kind} already exists: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def load_puzzle_tiles(
    puzzle_path: Union[str, Path],
    geometry: Optional[PuzzleGeometry] = None
) -> np.ndarray:
    """
    Load tiles from a puzzle text file.

    File format (one grid row per line, one token per tile, one digit per
    edge in top, right, bottom, left order):
        # optional comment lines
        0123 4501 2310 ...
        ...

    Args:
        puzzle_path: Path to puzzle file
        geometry: Expected geometry (defaults to 8x8)

    Returns:
        Array of shape (tile_count, tile_size)

    Raises:
        FileNotFoundError: If puzzle file doesn't exist
        ValueError: If a token is malformed or the tile count is wrong
    """
    puzzle_path = Path(puzzle_path)
    geometry = geometry or PuzzleGeometry()

    if not puzzle_path.exists():
        raise FileNotFoundError(f"Puzzle file not found: {puzzle_path}")

    tiles = []
    with open(puzzle_path, 'r') as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith('#'):
                continue

            for token in line.split():
                if len(token) != geometry.tile_size or not token.isdigit():
                    raise ValueError(
                        f"Invalid tile '{token}' on line {line_number} of {puzzle_path}. "
                        f"Expected {geometry.tile_size} digits"
                    )
                tiles.append([int(digit) for digit in token])

    if len(tiles) != geometry.tile_count:
        raise ValueError(
            f"Puzzle file {puzzle_path} contains {len(tiles)} tiles, expected {geometry.tile_count}"
        )

    return np.array(tiles, dtype=np.int64)


def load_arrangement(
    puzzle_path: Union[str, Path],
    geometry: Optional[PuzzleGeometry] = None
) -> Arrangement:
    """Load a puzzle text file as an arrangement in file order."""
    geometry = geometry or PuzzleGeometry()
    return Arrangement(edges=load_puzzle_tiles(puzzle_path, geometry), geometry=geometry)


def format_arrangement(arrangement: Arrangement) -> str:
    """
    Render an arrangement in puzzle text format.

    Returns:
        One line per grid row, tiles separated by single spaces
    """
    return "\n".join(
        " ".join("".join(str(edge) for edge in tile) for tile in row)
        for row in arrangement.rows()
    )


def save_arrangement(
    arrangement: Arrangement,
    output_path: Union[str, Path],
    mismatch: Optional[int] = None,
    overwrite: bool = False
) -> Path:
    """
    Save an arrangement in puzzle text format.

    Args:
        arrangement: Arrangement to save
        output_path: Path for output file
        mismatch: Mismatch count written to the header comment
        overwrite: If True, overwrite existing file

    Returns:
        Path to saved file

    Raises:
        FileExistsError: If file exists and overwrite=False
    """
    output_path = _writable_path(output_path, overwrite, "Output file")

    with open(output_path, 'w') as f:
        header = f"# saved_at={datetime.now().isoformat()}"
        if mismatch is not None:
            header += f" mismatch={mismatch}"
        f.write(header + "\n")
        f.write(format_arrangement(arrangement) + "\n")

    return output_path


def save_arrangement_csv(
    arrangement: Arrangement,
    catalog: TileCatalog,
    output_path: Union[str, Path],
    overwrite: bool = False
) -> Path:
    """
    Save an arrangement as a record of tile IDs and rotations.

    CSV format:
        position,row,col,tile_id,rotation,edges
        0,0,0,17,3,0123
        ...

    tile_id indexes the tile in the original puzzle file; rotation is the
    number of left rotations applied to it. Both are left empty when the
    arrangement is not a permutation of the puzzle's tiles, which only
    happens with the segment-swap crossover fallbacks.

    Args:
        arrangement: Arrangement to save
        catalog: Catalog of the puzzle the arrangement solves
        output_path: Path for output CSV
        overwrite: If True, overwrite existing file

    Returns:
        Path to saved CSV file

    Raises:
        FileExistsError: If file exists and overwrite=False
    """
    output_path = _writable_path(output_path, overwrite, "Output file")

    if catalog.satisfies_invariant(arrangement):
        located = catalog.locate(arrangement)
    else:
        located = [("", "")] * arrangement.geometry.tile_count

    with open(output_path, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(ARRANGEMENT_CSV_FIELDS)

        for position, (tile_id, rotation) in enumerate(located):
            row, col = arrangement.geometry.position(position)
            edges = "".join(str(edge) for edge in arrangement.tile(position))
            writer.writerow([position, row, col, tile_id, rotation, edges])

    return output_path


def load_arrangement_csv(
    csv_path: Union[str, Path],
    catalog: TileCatalog
) -> Arrangement:
    """
    Rebuild an arrangement from a tile ID / rotation CSV.

    Raises:
        FileNotFoundError: If CSV file doesn't exist
        ValueError: If CSV format is invalid
    """
    csv_path = Path(csv_path)

    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    geometry = catalog.geometry
    edges = np.zeros((geometry.tile_count, geometry.tile_size), dtype=np.int64)
    seen = set()

    with open(csv_path, 'r') as f:
        reader = csv.DictReader(f)

        if not all(col in (reader.fieldnames or []) for col in ['position', 'tile_id', 'rotation']):
            raise ValueError(f"Invalid CSV format in {csv_path}. Expected columns: position,tile_id,rotation")

        for row in reader:
            position = int(row['position'])
            if not row['tile_id']:
                raise ValueError(f"{csv_path} has no tile ID for position {position}")
            tile_id = int(row['tile_id'])
            rotation = int(row['rotation'])
            edges[position] = rotate_left(catalog.tiles[tile_id], rotation)
            seen.add(position)

    if len(seen) != geometry.tile_count:
        raise ValueError(f"CSV file {csv_path} covers {len(seen)} of {geometry.tile_count} positions")

    return Arrangement(edges=edges, geometry=geometry)


def save_improvement_log(
    records: List[ImprovementRecord],
    output_path: Union[str, Path],
    overwrite: bool = False
) -> Path:
    """
    Save improvement records to CSV file.

    Args:
        records: List of ImprovementRecord objects
        output_path: Path for output CSV
        overwrite: If True, overwrite existing file

    Returns:
        Path to saved log

    Raises:
        FileExistsError: If file exists and overwrite=False
    """
    output_path = _writable_path(output_path, overwrite, "Improvement log")

    with open(output_path, 'w', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=IMPROVEMENT_LOG_FIELDS)
        writer.writeheader()
        writer.writerows(record.to_dict() for record in records)

    return output_path


def load_improvement_log(log_path: Union[str, Path]) -> List[ImprovementRecord]:
    """Load improvement records written by save_improvement_log."""
    log_path = Path(log_path)

    if not log_path.exists():
        raise FileNotFoundError(f"Improvement log not found: {log_path}")

    with open(log_path, 'r') as f:
        return [ImprovementRecord.from_dict(row) for row in csv.DictReader(f)]


def solution_filename(mismatch: int, generation: int, suffix: str = ".txt") -> str:
    """Standard file name for a saved solution."""
    return f"solution_{mismatch:03d}_{generation:05d}{suffix}"


def load_config(config_path: Union[str, Path]) -> dict:
    """
    Read a GA settings file.

    Returns:
        Settings dictionary; empty for an empty file

    Raises:
        FileNotFoundError: If config file doesn't exist
    """
    config_path = Path(config_path)
    if not config_path.is_file():
        raise FileNotFoundError(f"GA settings file not found: {config_path}")

    return yaml.safe_load(config_path.read_text()) or {}


def save_metadata(
    metadata: dict,
    output_path: Union[str, Path],
    overwrite: bool = False
) -> Path:
    """
    Save run metadata to a YAML sidecar file.

    Raises:
        FileExistsError: If file exists and overwrite=False
    """
    output_path = _writable_path(output_path, overwrite, "Metadata file")

    with open(output_path, 'w') as f:
        yaml.dump(metadata, f, default_flow_style=False, sort_keys=False)

    return output_path
