import numpy as np
import pytest

from splitforest.core import PartitionArena, best_threshold_split, mask_objective, split_partition
from splitforest.core.sweep import midpoint
from splitforest.histogram import total_entropy


def test_sweep_finds_clean_threshold() -> None:
    values = np.array([10.0, 0.0, 11.0, 1.0])
    labels = np.array([1, 0, 1, 0])
    sweep = best_threshold_split(values, labels, num_classes=2)
    assert sweep is not None
    assert sweep.threshold == pytest.approx(5.5)
    assert sweep.objective == pytest.approx(0.0)
    assert (sweep.left_mass, sweep.right_mass) == (2, 2)


def test_sweep_never_splits_inside_ties() -> None:
    values = np.array([1.0, 1.0, 1.0, 2.0])
    labels = np.array([0, 1, 0, 1])
    sweep = best_threshold_split(values, labels, num_classes=2)
    assert sweep is not None
    assert sweep.left_mass == 3
    assert 1.0 < sweep.threshold < 2.0
    assert best_threshold_split(np.full(5, 3.0), np.array([0, 1, 0, 1, 0]), 2) is None


def test_sweep_respects_min_child() -> None:
    values = np.arange(6, dtype=np.float64)
    labels = np.array([0, 1, 1, 1, 1, 1])
    best = best_threshold_split(values, labels, 2)
    assert best.left_mass == 1
    constrained = best_threshold_split(values, labels, 2, min_child=2)
    assert constrained.left_mass >= 2 and constrained.right_mass >= 2
    assert best_threshold_split(values, labels, 2, min_child=4) is None


def test_sweep_ties_keep_first_position() -> None:
    values = np.array([0.0, 1.0, 2.0, 3.0])
    labels = np.array([0, 1, 0, 1])
    sweep = best_threshold_split(values, labels, 2)
    # Left masses 1 and 3 score the same; the first one in sweep order wins.
    objectives = []
    for pos in range(1, 4):
        left = np.bincount(labels[:pos], minlength=2)
        right = np.bincount(labels[pos:], minlength=2)
        objectives.append(float(total_entropy(left) + total_entropy(right)))
    assert sweep.left_mass == int(np.argmin(objectives)) + 1
    assert sweep.left_mass == 1


def test_mask_objective() -> None:
    labels = np.array([0, 0, 1, 1])
    objective, left, right = mask_objective(np.array([True, True, False, False]), labels, 2)
    assert objective == pytest.approx(0.0)
    assert (left, right) == (2, 2)


def test_arena_transfers_ownership() -> None:
    arena = PartitionArena()
    arena.assign(0, np.arange(4))
    assert 0 in arena
    assert arena.get(0).size == 4
    assert 0 in arena
    rows = arena.take(0)
    assert 0 not in arena
    assert len(arena) == 0
    left, right = split_partition(rows, rows < 1)
    assert left.size + right.size == rows.size
    arena.assign(1, left)
    with pytest.raises(RuntimeError):
        arena.assign(1, right)
    with pytest.raises(RuntimeError):
        arena.take(7)
    arena.release(1)
    assert len(arena) == 0
    with pytest.raises(RuntimeError):
        arena.release(1)
    with pytest.raises(RuntimeError):
        arena.get(1)


def test_threshold_near_float_max_stays_finite() -> None:
    values = np.array([1.7e308, 1e308])
    sweep = best_threshold_split(values, np.array([1, 0]), 2)
    assert sweep is not None
    assert np.isfinite(sweep.threshold)
    assert 1e308 < sweep.threshold < 1.7e308
    assert midpoint(-1.7e308, 1.7e308) == 0.0


def test_midpoint_of_adjacent_floats_separates_them() -> None:
    lo = -1e-6
    hi = float(np.nextafter(lo, 0.0))
    mid = midpoint(lo, hi)
    assert lo < mid <= hi
    assert midpoint(1.0, 3.0) == 2.0
