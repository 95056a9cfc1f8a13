"""Configuration objects for splitforest tree learners."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TreeLearnerConfig:
    """Hyper-parameters steering batch decision tree induction.

    Parameters
    ----------
    num_features:
        Number of candidate splits evaluated per node. For the axis-aligned
        learner this is the number of features sampled without replacement;
        for the projective and dot-product learners it is the number of random
        projections / anchor pairs drawn. ``-1`` resolves to ``sqrt(D)``.
    max_depth:
        Maximum depth of any node (root depth is 0).
    min_split_examples:
        Nodes holding fewer examples are turned into leaves.
    min_child_split_examples:
        Minimum number of examples each child needs for a split to be
        accepted. Never treated as less than one.
    smoothing:
        Additive smoothing constant used when converting leaf class counts
        into log-probabilities.
    use_bootstrap:
        Grow the tree on a bootstrap resample of the data and refresh the leaf
        histograms on the full dataset afterwards.
    num_bootstrap_examples:
        Size of the bootstrap resample. ``-1`` uses the dataset size.
    projection_sparsity:
        Number of non-zero weights in each sparse random projection.
    random_state:
        Optional seed for the generator created by every ``learn`` call.
    """

    num_features: int = -1
    max_depth: int = 100
    min_split_examples: int = 3
    min_child_split_examples: int = 1
    smoothing: float = 1.0
    use_bootstrap: bool = False
    num_bootstrap_examples: int = -1
    projection_sparsity: int = 3
    random_state: int | None = None

    def resolve_num_features(self, dimensionality: int) -> int:
        """Return the effective number of candidates for ``dimensionality``."""
        if self.num_features < 0:
            return max(1, int(math.sqrt(dimensionality)))
        return int(self.num_features)

    def resolve_num_bootstrap_examples(self, size: int) -> int:
        if self.num_bootstrap_examples < 0:
            return int(size)
        return int(self.num_bootstrap_examples)

    def validate(self) -> None:
        if self.max_depth < 0:
            raise ValueError("max_depth must be non-negative")
        if self.min_split_examples < 0:
            raise ValueError("min_split_examples must be non-negative")
        if self.min_child_split_examples < 0:
            raise ValueError("min_child_split_examples must be non-negative")
        if self.smoothing < 0:
            raise ValueError("smoothing must be non-negative")
        if self.projection_sparsity < 1:
            raise ValueError("projection_sparsity must be at least 1")


@dataclass(frozen=True, slots=True)
class OnlineTreeLearnerConfig(TreeLearnerConfig):
    """Hyper-parameters for the streaming learner.

    Adds to :class:`TreeLearnerConfig`:

    num_thresholds:
        Candidate thresholds sampled per feature when a leaf is first visited.
    min_split_objective:
        A leaf is split only when the best gain reaches this value.
    bootstrap_lambda:
        Poisson mean of the per-example replication count when
        ``use_bootstrap`` is enabled.

    ``num_bootstrap_examples`` is ignored; ``min_child_split_examples`` must be
    strictly exceeded by both candidate children.
    """

    num_thresholds: int = 2
    min_split_objective: float = 1.0
    bootstrap_lambda: float = 1.0

    def validate(self) -> None:
        TreeLearnerConfig.validate(self)
        if self.num_thresholds < 1:
            raise ValueError("num_thresholds must be at least 1")
        if self.bootstrap_lambda < 0:
            raise ValueError("bootstrap_lambda must be non-negative")
