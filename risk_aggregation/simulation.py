"""Monte Carlo simulation of dependent events.

Draws correlated event outcomes from a Gaussian copula and estimates joint,
union and exclusive probabilities by counting, as an independent check on
the analytic engines.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .combinatorics import all_combinations
from .copula import GaussianCopula, standard_z

ArrayLike = Union[Sequence[float], np.ndarray]


class CopulaSimulator:
    """Draws binary event outcomes linked through a Gaussian copula.

    Event i occurs in a scenario when its latent normal falls below Φ⁻¹(p_i).
    """

    def __init__(self, copula: GaussianCopula, random_state: Optional[int] = None):
        self.copula = copula
        self.random_state = random_state
        self._rng = np.random.default_rng(random_state)

    def latent_scenarios(self, num_scenarios: int) -> np.ndarray:
        """Correlated standard normals of shape (num_scenarios, dimension)."""
        seed = self._rng.integers(0, 2**31)
        return self.copula.sample(num_scenarios, random_state=seed)

    def event_indicators(self, probabilities: ArrayLike, num_scenarios: int) -> np.ndarray:
        """Boolean outcomes of shape (num_scenarios, dimension)."""
        p = np.asarray(probabilities, dtype=float)
        if p.size != self.copula.dimension:
            raise ValueError(f"Expected {self.copula.dimension} probabilities, got {p.size}")
        if np.any(p < 0) or np.any(p > 1):
            raise ValueError(f"Probabilities must be between 0 and 1, got {p}")
        thresholds = np.asarray(standard_z(p), dtype=float)
        outcomes = self.latent_scenarios(num_scenarios) < thresholds
        # Certain and impossible events are exact regardless of the clipped threshold.
        outcomes[:, p >= 1] = True
        outcomes[:, p <= 0] = False
        return outcomes


@dataclass
class EventSimulationResult:
    """Simulated event outcomes.

    Attributes:
        event_indicators: Boolean array of outcomes (scenarios x events)
        num_scenarios: Number of scenarios simulated
    """
    event_indicators: np.ndarray
    num_scenarios: int

    @property
    def num_events(self) -> int:
        return self.event_indicators.shape[1]

    @property
    def event_frequencies(self) -> np.ndarray:
        """Simulated marginal probability of each event."""
        return self.event_indicators.mean(axis=0)

    @property
    def union_frequency(self) -> float:
        """Fraction of scenarios in which at least one event occurs."""
        return float(np.mean(np.any(self.event_indicators, axis=1)))

    @property
    def none_frequency(self) -> float:
        return 1.0 - self.union_frequency

    def joint_frequency(self, indicators: ArrayLike) -> float:
        """Fraction of scenarios in which every indicated event occurs."""
        mask = np.asarray(indicators) != 0
        return float(np.mean(np.all(self.event_indicators[:, mask], axis=1)))

    def joint_frequencies(self) -> np.ndarray:
        """Joint frequencies of every event subset, in enumeration order."""
        return np.array([self.joint_frequency(row) for row in all_combinations(self.num_events)])

    def exclusive_frequencies(self) -> np.ndarray:
        """Frequencies of every exact occurrence pattern, in enumeration order."""
        weights = 1 << np.arange(self.num_events)
        codes = self.event_indicators.astype(np.int64) @ weights
        counts = np.bincount(codes, minlength=1 << self.num_events)
        patterns = all_combinations(self.num_events).astype(np.int64) @ weights
        return counts[patterns] / self.num_scenarios

    def standard_error(self, frequency: float) -> float:
        """Binomial standard error of a simulated frequency."""
        return float(np.sqrt(frequency * (1.0 - frequency) / self.num_scenarios))


class MonteCarloEngine:
    """Monte Carlo engine for dependent event probabilities."""

    def __init__(self, copula: GaussianCopula, random_state: Optional[int] = None):
        """Initialize the simulation engine.

        Args:
            copula: Gaussian copula linking the events
            random_state: Random seed for reproducibility
        """
        self.copula = copula
        self.random_state = random_state
        self._simulator = CopulaSimulator(copula, random_state)

    def simulate_events(self, probabilities: ArrayLike, num_scenarios: int,
                        batch_size: Optional[int] = None) -> EventSimulationResult:
        """Run Monte Carlo simulation.

        Args:
            probabilities: Marginal probability of each event
            num_scenarios: Number of scenarios to generate
            batch_size: Optional batch size for memory efficiency

        Returns:
            EventSimulationResult with the simulated outcomes
        """
        if num_scenarios < 1:
            raise ValueError(f"Number of scenarios must be positive, got {num_scenarios}")
        if batch_size is None or batch_size >= num_scenarios:
            indicators = self._simulator.event_indicators(probabilities, num_scenarios)
            return EventSimulationResult(event_indicators=indicators, num_scenarios=num_scenarios)

        batches = []
        remaining = num_scenarios
        while remaining > 0:
            current_batch = min(batch_size, remaining)
            batches.append(self._simulator.event_indicators(probabilities, current_batch))
            remaining -= current_batch

        return EventSimulationResult(event_indicators=np.concatenate(batches),
                                     num_scenarios=num_scenarios)


def _simulate_chunk(args: Tuple) -> EventSimulationResult:
    """Worker function for parallel simulation.

    Args:
        args: Tuple of (copula, probabilities, num_scenarios, seed)

    Returns:
        EventSimulationResult for this chunk
    """
    copula, probabilities, num_scenarios, seed = args
    engine = MonteCarloEngine(copula, random_state=seed)
    return engine.simulate_events(probabilities, num_scenarios)


class ParallelMonteCarloEngine:
    """Monte Carlo engine splitting the scenarios over worker threads."""

    def __init__(self, copula: GaussianCopula, num_workers: Optional[int] = None,
                 random_state: Optional[int] = None):
        """Initialize parallel engine.

        Args:
            copula: Gaussian copula linking the events
            num_workers: Number of parallel workers (None = CPU count)
            random_state: Random seed
        """
        self.copula = copula
        self.num_workers = num_workers
        self.random_state = random_state
        self._rng = np.random.default_rng(random_state)

    def simulate_events(self, probabilities: ArrayLike,
                        num_scenarios: int) -> EventSimulationResult:
        """Run the simulation in independently seeded chunks and combine them."""
        workers = max(1, min(self.num_workers or os.cpu_count() or 1, num_scenarios))
        scenarios_per_worker = num_scenarios // workers
        remainder = num_scenarios % workers

        chunks: List[Tuple] = []
        for i in range(workers):
            n = scenarios_per_worker + (1 if i < remainder else 0)
            seed = self._rng.integers(0, 2**31)
            chunks.append((self.copula.clone(), probabilities, n, seed))

        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(_simulate_chunk, chunks))

        return EventSimulationResult(
            event_indicators=np.concatenate([r.event_indicators for r in results]),
            num_scenarios=num_scenarios,
        )
