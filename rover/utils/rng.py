"""Random number generation utilities for the rover simulation.

Two generators are kept apart on purpose: ``InteractiveRNG`` drives the
playground, random and comparison modes, ``Mulberry32`` drives the daily
challenge and replay verification. Every consumer receives its generator
explicitly; there is no module-level random state.
"""

from typing import List, Optional, Sequence, TypeVar
import numpy as np

T = TypeVar("T")

UINT32_MASK = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    """32-bit integer multiply, keeping the low 32 bits."""
    return (a * b) & UINT32_MASK


class RandomSource:
    """Base random source; subclasses provide ``random()`` in [0, 1)."""

    def random(self) -> float:
        raise NotImplementedError

    def randrange(self, n: int) -> int:
        """Random integer in [0, n)."""
        return int(self.random() * n)

    def choice(self, seq: Sequence[T]) -> T:
        """Choose random element from a non-empty sequence."""
        return seq[self.randrange(len(seq))]

    def sample(self, population: Sequence[T], k: int) -> List[T]:
        """Sample k elements without replacement, in draw order."""
        pool = list(population)
        selected = []
        while len(selected) < k and pool:
            selected.append(pool.pop(self.randrange(len(pool))))
        return selected

    def shuffle(self, seq: List[T]) -> None:
        """Shuffle list in place (Fisher-Yates)."""
        for i in range(len(seq) - 1, 0, -1):
            j = self.randrange(i + 1)
            seq[i], seq[j] = seq[j], seq[i]


class InteractiveRNG(RandomSource):
    """Non-reproducible generator for interactive modes.

    A seed may be passed in tests; each instance owns its own numpy
    ``Generator`` so seeding one never affects another.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._gen = np.random.default_rng(seed)

    def random(self) -> float:
        """Generate random float in [0, 1)."""
        return float(self._gen.random())

    def randrange(self, n: int) -> int:
        """Generate random integer in [0, n)."""
        return int(self._gen.integers(n))

    def shuffle(self, seq: List[T]) -> None:
        """Shuffle list in place."""
        order = self._gen.permutation(len(seq))
        seq[:] = [seq[i] for i in order]


class Mulberry32(RandomSource):
    """32-bit mulberry32 generator.

    All arithmetic wraps at 32 bits like the published algorithm, so layouts and
    replays derived from a seed are identical on every platform.
    """

    def __init__(self, seed: int):
        self.seed = seed & UINT32_MASK
        self._state = self.seed

    def next_uint32(self) -> int:
        """Advance the state and return the next unsigned 32-bit output."""
        self._state = (self._state + 0x6D2B79F5) & UINT32_MASK
        value = self._state
        value = _imul(value ^ (value >> 15), value | 1)
        value ^= (value + _imul(value ^ (value >> 7), value | 61)) & UINT32_MASK
        return (value ^ (value >> 14)) & UINT32_MASK

    def random(self) -> float:
        """Generate random float in [0, 1)."""
        return self.next_uint32() / 4294967296


def make_interactive_rng(seed: Optional[int] = None) -> InteractiveRNG:
    """Create a fresh generator for an interactive run."""
    return InteractiveRNG(seed)
