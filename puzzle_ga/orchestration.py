"""
Orchestration module for the puzzle GA.

Implements evolve and evaluate mode workflows.
"""

from typing import Dict, Tuple
from pathlib import Path
import time

import numpy as np

from .catalog import TileCatalog
from .data_models import Arrangement, PuzzleGeometry
from .evolution import EvolutionConfig, EvolutionController, GenerationStats
from .fitness import count_edge_mismatch
from .io_utils import (
    format_arrangement,
    load_arrangement,
    load_config,
    save_arrangement,
    save_arrangement_csv,
    save_improvement_log,
    save_metadata,
    solution_filename
)


def build_evolution_config(run_config: Dict) -> EvolutionConfig:
    """
    Merge GA settings from the run configuration.

    Settings from the file named by 'ga_config' are overridden by the inline
    'evolution' section, and 'random_seed' overrides both. A fresh seed is
    drawn when none is configured so the run can be reproduced.

    Args:
        run_config: Run configuration dict from YAML

    Returns:
        Validated EvolutionConfig
    """
    settings = {}
    if 'ga_config' in run_config:
        settings.update(load_config(run_config['ga_config']))

    for key, value in (run_config.get('evolution') or {}).items():
        if isinstance(value, dict) and isinstance(settings.get(key), dict):
            settings[key] = {**settings[key], **value}
        else:
            settings[key] = value

    if run_config.get('random_seed') is not None:
        settings['random_seed'] = run_config['random_seed']
    if settings.get('random_seed') is None:
        settings['random_seed'] = int(np.random.randint(0, 2**31))

    return EvolutionConfig.from_dict(settings)


def _load_puzzle(run_config: Dict) -> Tuple[PuzzleGeometry, TileCatalog, Arrangement]:
    side = run_config['input'].get('geometry', {}).get('side', 8)
    geometry = PuzzleGeometry(side=side)

    puzzle_path = run_config['input']['puzzle']
    print(f"Loading puzzle from: {puzzle_path}")
    puzzle = load_arrangement(puzzle_path, geometry)
    catalog = TileCatalog(puzzle.edges, geometry)

    return geometry, catalog, puzzle


def run_evolve_mode(run_config: Dict) -> None:
    """
    Search for a low-mismatch arrangement of the input puzzle.

    Args:
        run_config: Run configuration dict from YAML

    Algorithm:
        1. Load puzzle and build tile catalog
        2. Build evolution config (ga_config file + inline overrides)
        3. Create output directory: run_config['output']['root']
        4. Evolve, saving every improvement at or below save_threshold
           to output_root/solution_{mismatch}_{generation}.txt and .csv
        5. Save improvement log and run metadata
        6. Print summary report

    Returns:
        None (writes to disk)
    """
    print("=" * 70)
    print("EVOLVE MODE")
    print("=" * 70)

    geometry, catalog, puzzle = _load_puzzle(run_config)
    print(f"Tiles: {geometry.tile_count} ({len(catalog)} distinct, "
          f"duplicates: {'yes' if catalog.has_duplicates() else 'no'})")
    print(f"Initial edge mismatch: {count_edge_mismatch(puzzle)}")

    config = build_evolution_config(run_config)
    print(f"Population size: {config.population_size}")
    print(f"Generations: {config.generations}")
    print(f"Random seed: {config.random_seed}")

    # Create output directory
    output_root = Path(run_config['output']['root'])
    overwrite = run_config['output'].get('overwrite', False)
    save_threshold = run_config['output'].get('save_threshold', 25)
    verbose = run_config.get('verbose', False)

    if output_root.exists() and not overwrite:
        raise FileExistsError(
            f"Output directory already exists: {output_root}\n"
            f"Set 'output.overwrite: true' in config to overwrite"
        )

    output_root.mkdir(parents=True, exist_ok=overwrite)
    print(f"Output directory: {output_root}\n")

    saved_paths = {}
    controller = None

    def on_improvement(arrangement: Arrangement, mismatch: int) -> None:
        generation = controller.generation
        if verbose:
            print(f"  New best at generation {generation}: {mismatch} edge mismatches")

        if mismatch <= save_threshold:
            path = output_root / solution_filename(mismatch, generation)
            save_arrangement(arrangement, path, mismatch=mismatch, overwrite=True)
            save_arrangement_csv(arrangement, catalog, path.with_suffix('.csv'), overwrite=True)
            saved_paths[generation] = path

    def on_generation(stats: GenerationStats) -> None:
        if verbose:
            print(f"GEN {stats.generation}  edge mismatch: {stats.best_mismatch}"
                  f" ... mutation rate: {stats.mutation_rate}"
                  f" ... lowest edge mismatch: {stats.lowest_mismatch}"
                  + (" ... restarted" if stats.restarted else ""))

    controller = EvolutionController(
        catalog,
        puzzle,
        config,
        on_improvement=on_improvement,
        on_generation=on_generation
    )

    start_time = time.time()
    result = controller.run()
    elapsed_time = time.time() - start_time

    for record in result.improvements:
        record.path = saved_paths.get(record.generation)

    best_valid = catalog.satisfies_invariant(result.best_arrangement)
    best_path = output_root / 'best.txt'
    save_arrangement(result.best_arrangement, best_path, mismatch=result.best_mismatch, overwrite=True)
    save_arrangement_csv(result.best_arrangement, catalog, output_root / 'best.csv', overwrite=True)

    log_path = output_root / 'improvement_log.csv'
    save_improvement_log(result.improvements, log_path, overwrite=True)

    save_metadata(
        {
            'puzzle': str(run_config['input']['puzzle']),
            'side': geometry.side,
            'evolution': config.to_dict(),
            'generations_performed': result.generations,
            'best_mismatch': result.best_mismatch,
            'solved': result.solved,
            'tile_multiset_valid': best_valid,
            'elapsed_seconds': round(elapsed_time, 3),
        },
        output_root / 'run_metadata.yaml',
        overwrite=True
    )

    # Print summary
    print()
    print("=" * 70)
    print("SUMMARY")
    print("=" * 70)
    print(f"Best Puzzle with {result.best_mismatch} edge mismatches:")
    print()
    print(format_arrangement(result.best_arrangement))
    print()
    print(f"Generations performed: {result.generations}")
    print(f"Improvements recorded: {len(result.improvements)}")
    print(f"Solved: {'yes' if result.solved else 'no'}")
    if not best_valid:
        print("Tile multiset: INVALID (best.csv has no tile IDs)")
    print(f"Time taken: {elapsed_time:.3f} seconds")
    print(f"Output directory: {output_root}")
    print(f"Improvement log: {log_path}")


def run_evaluate_mode(run_config: Dict) -> None:
    """
    Score an arrangement file.

    If 'input.reference' names the original puzzle, also checks that the
    arrangement uses exactly the reference's tile multiset.

    Args:
        run_config: Run configuration dict from YAML

    Returns:
        None (prints report)
    """
    print("=" * 70)
    print("EVALUATE MODE")
    print("=" * 70)

    geometry, _, arrangement = _load_puzzle(run_config)
    mismatch = count_edge_mismatch(arrangement)

    print()
    print(format_arrangement(arrangement))
    print()
    print(f"Edge mismatches: {mismatch} of {geometry.max_mismatch}")

    reference_path = run_config['input'].get('reference')
    if reference_path is not None:
        reference = load_arrangement(reference_path, geometry)
        reference_catalog = TileCatalog(reference.edges, geometry)
        violations = reference_catalog.invariant_violations(arrangement)

        if violations:
            print(f"Tile multiset: INVALID ({len(violations)} tile identities miscounted)")
        else:
            print(f"Tile multiset: valid permutation of {reference_path}")
