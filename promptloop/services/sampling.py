"""Weighted random sampling for reviewers, insight models and the optimization trigger"""
import logging
import threading
from typing import List, Optional, Sequence, TypeVar

import numpy as np

logger = logging.getLogger(__name__)

T = TypeVar("T")

class SamplingPolicy:
    """
    Bernoulli sampling against a 0-100 percentage.

    Every call draws a fresh integer uniformly from [0, 100] and samples iff
    the draw is <= the configured percentage, so draws are independent per
    reviewer per log. The generator is injected so tests can script draws.
    """

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()
        self._lock = threading.Lock()

    def draw(self) -> int:
        """Uniform integer in [0, 100]"""
        with self._lock:
            return int(self.rng.integers(0, 101))

    def should_sample(self, percentage: float, label: str = "") -> bool:
        draw = self.draw()
        sampled = draw <= percentage
        logger.debug(f"Sampling {label or 'draw'}: r={draw} percentage={percentage} sampled={sampled}")
        return sampled

    def shuffle(self, items: Sequence[T]) -> List[T]:
        """Random permutation of items (used to pick insight review candidates)"""
        items = list(items)
        if not items:
            return items
        with self._lock:
            order = self.rng.permutation(len(items))
        return [items[int(i)] for i in order]
