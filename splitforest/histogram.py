"""Class-count sufficient statistics with incremental entropy."""

from __future__ import annotations

import math
from typing import Iterable

import numpy as np


def _xlogx(n: int) -> float:
    return n * math.log(n) if n > 0 else 0.0


def total_entropy(counts: np.ndarray) -> np.ndarray:
    """Return ``mass*log(mass) - sum(c*log(c))`` over the last axis of ``counts``.

    This is the entropy of the class distribution scaled by the mass, so the
    values of two children can be added and compared directly with the value
    of their parent.
    """
    counts_f = np.asarray(counts, dtype=np.float64)
    mass = counts_f.sum(axis=-1)
    with np.errstate(divide="ignore", invalid="ignore"):
        clogc = np.where(counts_f > 0, counts_f * np.log(counts_f), 0.0).sum(axis=-1)
        mlogm = np.where(mass > 0, mass * np.log(mass), 0.0)
    return mlogm - clogc


def smoothed_log_probabilities(counts: np.ndarray, smoothing: float) -> np.ndarray:
    """Convert class ``counts`` into ``log((c + a) / (mass + C * a))``."""
    counts_f = np.asarray(counts, dtype=np.float64)
    if counts_f.ndim != 1 or counts_f.size == 0:
        raise RuntimeError("leaf histogram must be a non-empty 1-D count vector")
    mass = float(counts_f.sum())
    denominator = mass + counts_f.size * float(smoothing)
    if denominator <= 0:
        raise RuntimeError("cannot build leaf probabilities without class mass")
    with np.errstate(divide="ignore"):
        return np.log((counts_f + smoothing) / denominator)


class ClassHistogram:
    """Mutable class histogram supporting O(1) add/remove and entropy queries.

    ``entropy()`` returns the total entropy ``mass*log(mass) - sum(c*log(c))``,
    maintained incrementally while labels are moved in and out.
    """

    __slots__ = ("_counts", "_mass", "_clogc", "_nonzero")

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError("histogram size must be non-negative")
        self._counts = [0] * int(size)
        self._mass = 0
        self._clogc = 0.0
        self._nonzero = 0

    @classmethod
    def from_counts(cls, counts: Iterable[int]) -> "ClassHistogram":
        values = [int(c) for c in counts]
        if any(c < 0 for c in values):
            raise ValueError("class counts must be non-negative")
        hist = cls(len(values))
        hist._counts = values
        hist._mass = sum(values)
        hist._clogc = sum(_xlogx(c) for c in values)
        hist._nonzero = sum(1 for c in values if c > 0)
        return hist

    @property
    def size(self) -> int:
        return len(self._counts)

    @property
    def counts(self) -> np.ndarray:
        return np.asarray(self._counts, dtype=np.int64)

    def at(self, label: int) -> int:
        return self._counts[label]

    def mass(self) -> int:
        return self._mass

    def is_pure(self) -> bool:
        """``True`` when at most one class holds mass."""
        return self._nonzero <= 1

    def add(self, label: int, k: int = 1) -> None:
        """Add ``k`` occurrences of ``label``."""
        if k <= 0:
            return
        old = self._counts[label]
        new = old + k
        self._clogc += _xlogx(new) - _xlogx(old)
        self._counts[label] = new
        self._mass += k
        if old == 0:
            self._nonzero += 1

    def add_one(self, label: int) -> None:
        self.add(label, 1)

    def sub_one(self, label: int) -> None:
        """Remove one occurrence of ``label``; it must have been added before."""
        old = self._counts[label]
        new = old - 1
        self._clogc += _xlogx(new) - _xlogx(old)
        self._counts[label] = new
        self._mass -= 1
        if new == 0:
            self._nonzero -= 1

    def reset(self) -> None:
        self._counts = [0] * len(self._counts)
        self._mass = 0
        self._clogc = 0.0
        self._nonzero = 0

    def entropy(self) -> float:
        if self._mass <= 0:
            return 0.0
        # Clamp the tiny negative drift left by repeated add/sub round trips.
        return max(0.0, _xlogx(self._mass) - self._clogc)

    def copy(self) -> "ClassHistogram":
        clone = ClassHistogram(0)
        clone._counts = list(self._counts)
        clone._mass = self._mass
        clone._clogc = self._clogc
        clone._nonzero = self._nonzero
        return clone

    def log_probabilities(self, smoothing: float) -> np.ndarray:
        """Smoothed per-class log-probabilities for a leaf."""
        return smoothed_log_probabilities(self.counts, smoothing)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ClassHistogram):
            return NotImplemented
        return self._counts == other._counts

    def __repr__(self) -> str:
        return f"ClassHistogram(counts={self._counts}, mass={self._mass})"
