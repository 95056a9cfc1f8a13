import math

import numpy as np
import pytest

from splitforest.histogram import ClassHistogram, smoothed_log_probabilities, total_entropy


def test_add_then_sub_restores_state() -> None:
    hist = ClassHistogram.from_counts([3, 0, 5])
    before_counts = hist.counts.copy()
    before_entropy = hist.entropy()
    for label in (0, 1, 2):
        hist.add_one(label)
        hist.sub_one(label)
        np.testing.assert_array_equal(hist.counts, before_counts)
        assert hist.mass() == 8
    assert hist.entropy() == pytest.approx(before_entropy, abs=1e-9)


def test_entropy_is_mass_scaled() -> None:
    hist = ClassHistogram(2)
    for label in (0, 0, 1, 1):
        hist.add_one(label)
    assert hist.entropy() == pytest.approx(4 * math.log(2))
    pure = ClassHistogram.from_counts([0, 7])
    assert pure.entropy() == pytest.approx(0.0)
    assert ClassHistogram(3).entropy() == 0.0


def test_vectorised_entropy_matches_incremental() -> None:
    rng = np.random.default_rng(0)
    counts = rng.integers(0, 20, size=(6, 4))
    expected = [ClassHistogram.from_counts(row).entropy() for row in counts]
    np.testing.assert_allclose(total_entropy(counts), expected, rtol=1e-12, atol=1e-12)


def test_purity_tracks_nonzero_buckets() -> None:
    hist = ClassHistogram(3)
    assert hist.is_pure()
    hist.add_one(2)
    hist.add_one(2)
    assert hist.is_pure()
    hist.add_one(0)
    assert not hist.is_pure()
    hist.sub_one(0)
    assert hist.is_pure()


def test_add_many_and_reset() -> None:
    hist = ClassHistogram(2)
    hist.add(1, 3)
    hist.add(0, 0)
    assert hist.at(1) == 3
    assert hist.mass() == 3
    hist.reset()
    assert hist.mass() == 0
    np.testing.assert_array_equal(hist.counts, [0, 0])
    assert hist.size == 2


def test_copy_is_independent() -> None:
    hist = ClassHistogram.from_counts([1, 2])
    clone = hist.copy()
    clone.add_one(0)
    assert hist.at(0) == 1
    assert clone.at(0) == 2
    assert clone != hist


@pytest.mark.parametrize("smoothing", [0.1, 1.0, 5.0])
def test_log_probabilities_normalise(smoothing: float) -> None:
    hist = ClassHistogram.from_counts([4, 0, 1])
    probs = np.exp(hist.log_probabilities(smoothing))
    assert probs.sum() == pytest.approx(1.0)
    assert np.all(probs > 0)


def test_log_probabilities_without_smoothing() -> None:
    log_probs = smoothed_log_probabilities(np.array([3, 0]), 0.0)
    assert log_probs[0] == pytest.approx(0.0)
    assert np.isneginf(log_probs[1])


def test_empty_leaf_histograms_are_contract_violations() -> None:
    with pytest.raises(RuntimeError):
        ClassHistogram(0).log_probabilities(1.0)
    with pytest.raises(RuntimeError):
        ClassHistogram(2).log_probabilities(0.0)
