"""Per-feature threshold sampling for the online learner."""

from __future__ import annotations

import numpy as np
import torch

from .data import AbstractDataStorage


class RandomThresholdGenerator:
    """Draws candidate thresholds uniformly between per-feature bounds."""

    def __init__(self, mins: np.ndarray, maxs: np.ndarray) -> None:
        mins_np = np.asarray(mins, dtype=np.float64)
        maxs_np = np.asarray(maxs, dtype=np.float64)
        if mins_np.ndim != 1 or mins_np.shape != maxs_np.shape:
            raise ValueError("mins and maxs must be 1-D arrays of equal length")
        if np.any(mins_np > maxs_np):
            raise ValueError("every feature minimum must not exceed its maximum")
        self._mins = mins_np
        self._maxs = maxs_np

    @classmethod
    def from_storage(cls, storage: AbstractDataStorage) -> "RandomThresholdGenerator":
        if storage.size == 0:
            raise ValueError("cannot derive feature bounds from an empty dataset")
        X = storage.data_points(np.arange(storage.size))
        return cls(X.min(axis=0), X.max(axis=0))

    @property
    def size(self) -> int:
        return int(self._mins.shape[0])

    def get_min(self, feature: int) -> float:
        return float(self._mins[feature])

    def get_max(self, feature: int) -> float:
        return float(self._maxs[feature])

    def sample(self, feature: int, generator: torch.Generator | None = None) -> float:
        lo = self._mins[feature]
        hi = self._maxs[feature]
        u = float(torch.rand((), generator=generator, dtype=torch.float64))
        return float(lo + u * (hi - lo))
