"""
Genetic algorithm for edge-matching tile puzzles

This package searches for an arrangement of square tiles on a square grid
that minimizes mismatching adjacent edges, using every tile exactly once
(duplicates included) in any of its four rotations.

Key Features:
- Duplicate-aware order crossover (offspring stay permutations of the tile multiset)
- Adaptive mutation rate driven by the current best mismatch count
- Escalating stagnation restarts from the best arrangement so far
- Deterministic runs from an explicit random seed

Modules:
- data_models: Core data structures (PuzzleGeometry, Arrangement, ImprovementRecord)
- catalog: Rotation-invariant tile identities and multiplicities
- fitness: Edge mismatch counting and population ranking
- population: Population storage and seeding
- crossover: Order, one-point and two-point crossover operators
- mutation: Swap/rotate mutation operators
- selection: Parent selection and replacement of the worst individuals
- evolution: Generational controller and run configuration
- io_utils: Puzzle files, solution records, improvement logs, YAML config
- orchestration: Evolve and evaluate mode workflows
- cli: Command-line interface for run configurations
"""

__version__ = "0.1.0"

from .data_models import PuzzleGeometry, Arrangement, ImprovementRecord
from .catalog import TileCatalog
from .fitness import count_edge_mismatch
from .evolution import EvolutionConfig, EvolutionController, EvolutionState, RunResult

__all__ = [
    "PuzzleGeometry",
    "Arrangement",
    "ImprovementRecord",
    "TileCatalog",
    "count_edge_mismatch",
    "EvolutionConfig",
    "EvolutionController",
    "EvolutionState",
    "RunResult",
]
