"""Scoring primitives for candidate splits.

The objective of a split is ``entropy(left) + entropy(right)`` with the
mass-scaled entropy of :func:`splitforest.histogram.total_entropy`; lower is
better.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..histogram import total_entropy
from ..model import SplitDescriptor

# Adjacent sorted values closer than this (relative) are treated as tied.
TIE_EPSILON = 1e-6


@dataclass(slots=True)
class SplitCandidate:
    """Best split found for a node."""

    split: SplitDescriptor
    objective: float
    left_mass: int
    right_mass: int


@dataclass(slots=True)
class ThresholdSweep:
    """Outcome of sweeping one feature of a node."""

    threshold: float
    objective: float
    left_mass: int
    right_mass: int


def one_hot_counts(labels: np.ndarray, num_classes: int) -> np.ndarray:
    out = np.zeros((labels.shape[0], num_classes), dtype=np.int64)
    out[np.arange(labels.shape[0]), labels] = 1
    return out


def midpoint(lo: float, hi: float) -> float:
    """Threshold strictly above ``lo`` and at most ``hi`` for ``lo < hi``."""
    # Halving first keeps values near the float maximum finite.
    mid = 0.5 * lo + 0.5 * hi
    if not lo < mid:
        return hi
    return mid


def best_threshold_split(
    values: np.ndarray, labels: np.ndarray, num_classes: int, min_child: int = 1
) -> Optional[ThresholdSweep]:
    """Sweep the sorted ``values`` left to right and return the best threshold.

    Every example is moved from the right to the left histogram in sorted
    order; a split between positions ``m-1`` and ``m`` is only scored when the
    two values are not tied and both sides keep at least ``min_child``
    examples. Returns the first minimiser in sweep order, or ``None`` when no
    position qualifies.
    """
    n = values.shape[0]
    if n < 2:
        return None
    order = np.argsort(values, kind="stable")
    sorted_values = values[order]
    sorted_labels = labels[order]

    left_counts = np.cumsum(one_hot_counts(sorted_labels, num_classes), axis=0)[:-1]
    totals = np.bincount(sorted_labels, minlength=num_classes)
    right_counts = totals[None, :] - left_counts

    lo = sorted_values[:-1]
    hi = sorted_values[1:]
    scale = np.maximum(np.abs(hi + TIE_EPSILON), np.abs(lo + TIE_EPSILON))
    valid = np.abs(hi - lo) >= TIE_EPSILON * scale
    left_sizes = np.arange(1, n)
    valid &= (left_sizes >= min_child) & (n - left_sizes >= min_child)
    if not valid.any():
        return None

    objective = total_entropy(left_counts) + total_entropy(right_counts)
    objective = np.where(valid, objective, np.inf)
    pos = int(np.argmin(objective))
    left_mass = pos + 1
    return ThresholdSweep(
        threshold=midpoint(float(lo[pos]), float(hi[pos])),
        objective=float(objective[pos]),
        left_mass=left_mass,
        right_mass=n - left_mass,
    )


def mask_objective(
    left_mask: np.ndarray, labels: np.ndarray, num_classes: int
) -> tuple[float, int, int]:
    """Return ``(objective, left_mass, right_mass)`` for a routing mask."""
    left_counts = np.bincount(labels[left_mask], minlength=num_classes)
    right_counts = np.bincount(labels[~left_mask], minlength=num_classes)
    objective = float(total_entropy(left_counts) + total_entropy(right_counts))
    return objective, int(left_counts.sum()), int(right_counts.sum())
