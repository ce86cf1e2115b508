"""
Generational loop for the puzzle GA.

Evaluates the population, tracks the best arrangement, restarts the
population from the best arrangement when progress stalls, adapts the
mutation rate to the current mismatch count, and breeds offspring that
replace the worst individuals.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from .catalog import TileCatalog
from .cli import ConfigValidationError
from .crossover import apply_crossover
from .data_models import Arrangement, ImprovementRecord
from .fitness import count_edge_mismatch, rank_population
from .mutation import mutate_offspring
from .population import Population, generate_population
from .selection import (
    parent_group_size,
    select_parents_and_worst,
    pair_parents,
    replace_worst
)

PAIRING_MODES = ('mirrored', 'consecutive')
CROSSOVER_FALLBACKS = ('none', 'two_point', 'one_point')


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class EvolutionConfig:
    """
    Parameters of an evolution run.

    Attributes:
        population_size: Number of individuals
        generations: Generation budget
        parent_ratio: Fraction of the population bred each generation
        pairing: 'mirrored' or 'consecutive' parent pairing
        initial_mutation_rate: Mutation rate before the first lookup
        min_mutation_rate: Floor of the adaptive mutation rate
        max_mutation_rate: Cap of the adaptive mutation rate
        stagnation_base: Base of the population-scaled stagnation threshold
        stagnation_floor: Minimum stagnation threshold
        restart_tiers: Threshold multiples at which the population restarts
        order_threshold: Best mismatch at or below which order crossover runs
        crossover_fallback: Crossover used above order_threshold
        workers: Threads used for population seeding
        random_seed: Seed of the run's generator (None for a fresh seed)
    """
    population_size: int = 1000
    generations: int = 1000
    parent_ratio: float = 0.25
    pairing: str = 'mirrored'
    initial_mutation_rate: int = 32
    min_mutation_rate: int = 3
    max_mutation_rate: int = 32
    stagnation_base: int = 1000
    stagnation_floor: int = 10
    restart_tiers: Tuple[int, ...] = (1, 10, 100)
    order_threshold: int = 10
    crossover_fallback: str = 'none'
    workers: int = 1
    random_seed: Optional[int] = None

    def __post_init__(self):
        self.restart_tiers = tuple(self.restart_tiers)
        self.validate()

    def validate(self) -> None:
        """
        Check every parameter.

        Raises:
            ConfigValidationError: If any parameter is out of range
        """
        positive = {
            'population_size': self.population_size,
            'generations': self.generations,
            'initial_mutation_rate': self.initial_mutation_rate,
            'min_mutation_rate': self.min_mutation_rate,
            'max_mutation_rate': self.max_mutation_rate,
            'stagnation_base': self.stagnation_base,
            'stagnation_floor': self.stagnation_floor,
            'workers': self.workers,
        }
        for name, value in positive.items():
            if not _is_int(value) or value <= 0:
                raise ConfigValidationError(f"'{name}' must be a positive integer, got: {value}")

        if not isinstance(self.parent_ratio, (int, float)) or not 0 < self.parent_ratio <= 0.5:
            raise ConfigValidationError(
                f"'parent_ratio' must be in (0, 0.5], got: {self.parent_ratio}"
            )

        if self.pairing not in PAIRING_MODES:
            raise ConfigValidationError(
                f"Invalid pairing: '{self.pairing}'. Must be one of {', '.join(PAIRING_MODES)}"
            )

        if self.min_mutation_rate > self.max_mutation_rate:
            raise ConfigValidationError(
                f"'min_mutation_rate' ({self.min_mutation_rate}) exceeds "
                f"'max_mutation_rate' ({self.max_mutation_rate})"
            )

        tiers = self.restart_tiers
        if not tiers or not all(_is_int(t) and t > 0 for t in tiers):
            raise ConfigValidationError(f"'restart_tiers' must be positive integers, got: {list(tiers)}")
        if list(tiers) != sorted(set(tiers)):
            raise ConfigValidationError(f"'restart_tiers' must be strictly increasing, got: {list(tiers)}")

        if not _is_int(self.order_threshold) or self.order_threshold < 0:
            raise ConfigValidationError(
                f"'order_threshold' must be a non-negative integer, got: {self.order_threshold}"
            )

        if self.crossover_fallback not in CROSSOVER_FALLBACKS:
            raise ConfigValidationError(
                f"Invalid crossover fallback: '{self.crossover_fallback}'. "
                f"Must be one of {', '.join(CROSSOVER_FALLBACKS)}"
            )

        if self.random_seed is not None and not _is_int(self.random_seed):
            raise ConfigValidationError(f"'random_seed' must be an integer, got: {self.random_seed}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvolutionConfig":
        """
        Create config from a (YAML-loaded) dictionary.

        Nested 'mutation', 'stagnation' and 'crossover' sections map onto the
        flat attributes; missing keys keep their defaults.

        Raises:
            ConfigValidationError: If a key is unknown or a value is invalid
        """
        data = dict(data or {})
        mutation = data.pop('mutation', None) or {}
        stagnation = data.pop('stagnation', None) or {}
        crossover = data.pop('crossover', None) or {}

        nested = {
            'initial_mutation_rate': mutation.get('initial_rate'),
            'min_mutation_rate': mutation.get('min_rate'),
            'max_mutation_rate': mutation.get('max_rate'),
            'stagnation_base': stagnation.get('base'),
            'stagnation_floor': stagnation.get('floor'),
            'restart_tiers': stagnation.get('tiers'),
            'order_threshold': crossover.get('order_threshold'),
            'crossover_fallback': crossover.get('fallback'),
        }

        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ConfigValidationError(f"Unknown evolution settings: {', '.join(sorted(unknown))}")

        kwargs = {key: value for key, value in nested.items() if value is not None}
        kwargs.update(data)
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Flat dictionary of all parameters."""
        result = asdict(self)
        result['restart_tiers'] = list(self.restart_tiers)
        return result


class EvolutionState(Enum):
    """Controller states."""
    RUNNING = "running"
    STAGNATED_RESTART = "stagnated_restart"
    TERMINATED = "terminated"


@dataclass
class GenerationStats:
    """Summary of one generation."""
    generation: int
    best_mismatch: int
    lowest_mismatch: int
    mutation_rate: int
    stagnation_count: int
    state: EvolutionState
    improved: bool = False
    restarted: bool = False


@dataclass
class RunResult:
    """
    Outcome of a complete run.

    Attributes:
        best_arrangement: Best arrangement found
        best_mismatch: Its mismatch count
        generations: Number of generations performed
        solved: True if a zero-mismatch arrangement was found
        improvements: One record per new best-so-far
        history: Per-generation statistics
    """
    best_arrangement: Arrangement
    best_mismatch: int
    generations: int
    solved: bool
    improvements: List[ImprovementRecord] = field(default_factory=list)
    history: List[GenerationStats] = field(default_factory=list)


def build_mutation_rate_table(max_mismatch: int, min_rate: int, max_rate: int) -> List[int]:
    """
    Precompute the mutation rate for every possible best mismatch count.

    The rate grows proportionally with the mismatch count, so populations
    far from a solution are disrupted more, bounded by min_rate and max_rate.

    Args:
        max_mismatch: Highest possible mismatch count
        min_rate: Floor
        max_rate: Cap (reached at max_mismatch)

    Returns:
        List indexed by mismatch count 0..max_mismatch
    """
    inverse_max_mismatch = 1.0 / max_mismatch
    return [
        min(max_rate, max(min_rate, int(i * inverse_max_mismatch * max_rate)))
        for i in range(max_mismatch + 1)
    ]


def stagnation_threshold(population_size: int, base: int, floor: int) -> int:
    """
    Generations without improvement before the first restart.

    Larger populations explore more per generation and get less patience.
    """
    return max(floor, (base // population_size) * base)


class EvolutionController:
    """
    Runs the generational search.

    The controller owns the population and the random generator. Each new
    best-so-far arrangement is passed to on_improvement together with its
    mismatch count; on_generation receives a GenerationStats after every
    generation.
    """

    def __init__(
        self,
        catalog: TileCatalog,
        seed: Arrangement,
        config: Optional[EvolutionConfig] = None,
        on_improvement: Optional[Callable[[Arrangement, int], None]] = None,
        on_generation: Optional[Callable[[GenerationStats], None]] = None,
        rng: Optional[np.random.Generator] = None
    ):
        """
        Args:
            catalog: Tile catalog of the puzzle
            seed: Arrangement the first population is generated from
            config: Run parameters (defaults if omitted)
            on_improvement: Sink called with (arrangement, mismatch)
            on_generation: Called with each generation's statistics
            rng: Generator to use instead of one built from config.random_seed

        Raises:
            ValueError: If seed is not a permutation of the catalog's tiles
        """
        if seed.geometry != catalog.geometry:
            raise ValueError("Seed arrangement geometry does not match the catalog")
        if not catalog.satisfies_invariant(seed):
            raise ValueError("Seed arrangement does not use the puzzle's tile multiset")

        self.catalog = catalog
        self.seed = seed.copy()
        self.config = config or EvolutionConfig()
        self.on_improvement = on_improvement
        self.on_generation = on_generation
        self.rng = rng if rng is not None else np.random.default_rng(self.config.random_seed)

        geometry = catalog.geometry
        self.mutation_rate_table = build_mutation_rate_table(
            geometry.max_mismatch,
            self.config.min_mutation_rate,
            self.config.max_mutation_rate
        )
        self.stagnation_threshold = stagnation_threshold(
            self.config.population_size,
            self.config.stagnation_base,
            self.config.stagnation_floor
        )
        self.group_size = parent_group_size(self.config.population_size, self.config.parent_ratio)
        self.crossover_config = {
            'order_threshold': self.config.order_threshold,
            'fallback': self.config.crossover_fallback,
        }

        self.state = EvolutionState.RUNNING
        self.population: Optional[Population] = None
        self.generation = 0
        self.best_arrangement: Optional[Arrangement] = None
        self.best_mismatch: Optional[int] = None
        self.stagnation_count = 0
        self.mutation_rate = self.config.initial_mutation_rate
        self.improvements: List[ImprovementRecord] = []
        self.history: List[GenerationStats] = []

        self._last_generation_best: Optional[int] = None
        self._stop_requested = False

    def initialize(self) -> None:
        """Generate the first population from the seed arrangement."""
        self.population = generate_population(
            self.seed, self.config.population_size, self.rng, self.config.workers
        )

    def request_stop(self) -> None:
        """Stop the run at the next generation boundary."""
        self._stop_requested = True

    @property
    def solved(self) -> bool:
        return self.best_mismatch == 0

    def observe(self, mismatch: int, arrangement: Arrangement) -> bool:
        """
        Record a generation's best individual.

        A strictly better mismatch than any seen before becomes the new best,
        resets the stagnation counter and is emitted to on_improvement;
        otherwise the stagnation counter grows by one.

        Returns:
            True if the arrangement is a new best
        """
        if self.best_mismatch is not None and mismatch >= self.best_mismatch:
            self.stagnation_count += 1
            return False

        self.best_mismatch = mismatch
        self.best_arrangement = arrangement.copy()
        self.stagnation_count = 0

        self.improvements.append(
            ImprovementRecord(
                generation=self.generation,
                mismatch=mismatch,
                mutation_rate=self.mutation_rate,
                timestamp=datetime.now().isoformat()
            )
        )

        if self.on_improvement is not None:
            self.on_improvement(self.best_arrangement.copy(), mismatch)

        return True

    def restart_due(self) -> bool:
        """
        Check the stagnation counter against the restart tiers.

        The counter resets to zero once the largest tier fires.
        """
        tiers = [self.stagnation_threshold * tier for tier in self.config.restart_tiers]
        if self.stagnation_count not in tiers:
            return False

        if self.stagnation_count == tiers[-1]:
            self.stagnation_count = 0
        return True

    def update_mutation_rate(self, generation_best: int) -> int:
        """Look up the mutation rate when the generation's best mismatch changes."""
        if generation_best != self._last_generation_best:
            self._last_generation_best = generation_best
            index = min(generation_best, len(self.mutation_rate_table) - 1)
            self.mutation_rate = self.mutation_rate_table[index]
        return self.mutation_rate

    def restart(self) -> None:
        """Re-seed the whole population from the best arrangement so far."""
        self.state = EvolutionState.STAGNATED_RESTART
        self.population = generate_population(
            self.best_arrangement, self.config.population_size, self.rng, self.config.workers
        )

    def breed(self, ranked: List[Tuple[int, int]], generation_best: int) -> List[Arrangement]:
        """
        Produce offspring from the best group and overwrite the worst group.

        Args:
            ranked: Ascending (index, mismatch) ranking of the population
            generation_best: Best mismatch of the current generation

        Returns:
            The offspring placed into the population
        """
        parents, worst = select_parents_and_worst(ranked, self.group_size)
        if not parents:
            return []

        offspring: List[Optional[Arrangement]] = [None] * len(parents)
        mirrored = self.config.pairing == 'mirrored'

        for parent_a, parent_b, slot_a, slot_b in pair_parents(parents, mirrored):
            child_a, child_b, _ = apply_crossover(
                self.population.view(parent_a),
                self.population.view(parent_b),
                self.catalog,
                self.crossover_config,
                generation_best,
                self.rng
            )
            offspring[slot_a] = child_a
            offspring[slot_b] = child_b

        mutate_offspring(offspring, self.mutation_rate, self.rng)
        replace_worst(self.population, worst, offspring)

        return offspring

    def step(self) -> GenerationStats:
        """
        Run a single generation.

        Returns:
            Statistics of the generation
        """
        if self.population is None:
            self.initialize()

        self.generation += 1
        self.state = EvolutionState.RUNNING

        ranked = rank_population(self.population)
        best_index, generation_best = ranked[0]

        self.update_mutation_rate(generation_best)
        improved = self.observe(generation_best, self.population.view(best_index))

        restarted = False
        if self.solved:
            self.state = EvolutionState.TERMINATED
        elif self.restart_due():
            self.restart()
            restarted = True
        else:
            self.breed(ranked, generation_best)

        stats = GenerationStats(
            generation=self.generation,
            best_mismatch=generation_best,
            lowest_mismatch=self.best_mismatch,
            mutation_rate=self.mutation_rate,
            stagnation_count=self.stagnation_count,
            state=self.state,
            improved=improved,
            restarted=restarted
        )
        self.history.append(stats)

        if self.on_generation is not None:
            self.on_generation(stats)

        return stats

    def run(self) -> RunResult:
        """
        Evolve until solved, out of generations, or asked to stop.

        Returns:
            RunResult describing the best arrangement found
        """
        while self.generation < self.config.generations and not self._stop_requested:
            self.step()
            if self.solved:
                break

        self.state = EvolutionState.TERMINATED

        if self.best_arrangement is None:
            best_arrangement = self.seed.copy()
            best_mismatch = count_edge_mismatch(best_arrangement)
        else:
            best_arrangement = self.best_arrangement.copy()
            best_mismatch = self.best_mismatch

        return RunResult(
            best_arrangement=best_arrangement,
            best_mismatch=best_mismatch,
            generations=self.generation,
            solved=self.solved,
            improvements=list(self.improvements),
            history=list(self.history)
        )
