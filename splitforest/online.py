"""Streaming decision tree learner with per-leaf candidate split statistics."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from time import perf_counter
from typing import Dict, Optional

import numpy as np
import torch

from .config import OnlineTreeLearnerConfig
from .data import AbstractDataStorage
from .histogram import ClassHistogram, total_entropy
from .learner import LearnerState, make_generator
from .model import AxisAlignedSplit, DecisionTree, SplitDescriptor
from .thresholds import RandomThresholdGenerator

# Successive thresholds closer than this are re-drawn (bounded retries).
THRESHOLD_EPSILON = 1e-6
MAX_THRESHOLD_RETRIES = 10


@dataclass(slots=True)
class OnlineSplitChoice:
    feature_slot: int
    threshold_slot: int
    gain: float


@dataclass
class LeafStatistics:
    """Running statistics of one leaf and all of its candidate splits.

    ``left_counts[f, t]`` / ``right_counts[f, t]`` hold the class counts of
    the examples that would fall left / right of ``thresholds[f, t]`` on
    feature ``features[f]``.
    """

    node_statistics: ClassHistogram
    features: np.ndarray
    thresholds: np.ndarray
    left_counts: np.ndarray
    right_counts: np.ndarray

    @classmethod
    def empty(cls, features: np.ndarray, thresholds: np.ndarray, num_classes: int) -> "LeafStatistics":
        shape = thresholds.shape + (num_classes,)
        return cls(
            node_statistics=ClassHistogram(num_classes),
            features=np.asarray(features, dtype=np.int64),
            thresholds=np.asarray(thresholds, dtype=np.float64),
            left_counts=np.zeros(shape, dtype=np.int64),
            right_counts=np.zeros(shape, dtype=np.int64),
        )

    def update(self, x: np.ndarray, label: int, k: int = 1) -> None:
        """Account for ``k`` copies of the example ``(x, label)``."""
        if k <= 0:
            return
        self.node_statistics.add(label, k)
        goes_left = x[self.features][:, None] < self.thresholds
        self.left_counts[..., label] += k * goes_left
        self.right_counts[..., label] += k * ~goes_left

    def left_histogram(self, feature_slot: int, threshold_slot: int) -> ClassHistogram:
        return ClassHistogram.from_counts(self.left_counts[feature_slot, threshold_slot])

    def right_histogram(self, feature_slot: int, threshold_slot: int) -> ClassHistogram:
        return ClassHistogram.from_counts(self.right_counts[feature_slot, threshold_slot])

    def best_split(self, min_child: int) -> Optional[OnlineSplitChoice]:
        """Return the candidate with the largest positive gain.

        Both children must hold strictly more than ``min_child`` examples.
        Ties keep the first candidate in (feature, threshold) order.
        """
        left_mass = self.left_counts.sum(axis=-1)
        right_mass = self.right_counts.sum(axis=-1)
        valid = (left_mass > min_child) & (right_mass > min_child)
        if not valid.any():
            return None
        gains = (
            self.node_statistics.entropy()
            - total_entropy(self.left_counts)
            - total_entropy(self.right_counts)
        )
        gains = np.where(valid, gains, -np.inf)
        flat = int(np.argmax(gains))
        f, t = np.unravel_index(flat, gains.shape)
        gain = float(gains[f, t])
        if not gain > 0.0:
            return None
        return OnlineSplitChoice(feature_slot=int(f), threshold_slot=int(t), gain=gain)


@dataclass
class OnlineDecisionTree(DecisionTree):
    """Decision tree whose leaves may carry live :class:`LeafStatistics`."""

    num_classes: int = 0
    statistics: Dict[int, LeafStatistics] = field(default_factory=dict)

    @classmethod
    def new(cls, num_classes: int = 0) -> "OnlineDecisionTree":
        tree = cls(num_classes=int(num_classes))
        tree.add_node(0)
        return tree

    def split_node(self, node_id: int, split: SplitDescriptor) -> int:
        left = super().split_node(node_id, split)
        self.statistics.pop(node_id, None)
        return left


class OnlineDecisionTreeLearner:
    """Grows a tree one example at a time without revisiting past data."""

    def __init__(
        self,
        config: OnlineTreeLearnerConfig | None = None,
        threshold_generator: RandomThresholdGenerator | None = None,
    ) -> None:
        self.config = config if config is not None else OnlineTreeLearnerConfig()
        self.threshold_generator = threshold_generator
        self._logger = logging.getLogger(__name__)

    # Public -------------------------------------------------------------

    def learn(
        self,
        storage: AbstractDataStorage,
        tree: OnlineDecisionTree | None = None,
        state: LearnerState | None = None,
    ) -> OnlineDecisionTree:
        """Stream every example of ``storage`` (in order) into ``tree``.

        Without a threshold generator, one is derived from the bounds of
        ``storage`` and kept for later calls.
        """
        cfg = self.config
        cfg.validate()
        if self.threshold_generator is None:
            self.threshold_generator = RandomThresholdGenerator.from_storage(storage)
        self._check_storage(storage)
        if tree is None:
            tree = OnlineDecisionTree.new(storage.class_count)
        if tree.num_nodes == 0:
            raise RuntimeError("the tree must hold at least the root node")
        if tree.num_classes == 0:
            tree.num_classes = storage.class_count
        elif tree.num_classes != storage.class_count:
            raise ValueError(
                f"tree tracks {tree.num_classes} classes, data has {storage.class_count}"
            )
        if state is None:
            state = LearnerState()
        state.reset()
        state.started = True
        state.total = storage.size
        start = perf_counter()

        rng = make_generator(cfg.random_state)
        splits_before = tree.num_nodes
        for n in range(storage.size):
            self.update(tree, storage.data_point(n), storage.class_label(n), rng, state)

        state.num_nodes = tree.num_nodes
        state.terminated = True
        if self._logger.isEnabledFor(logging.INFO):
            payload = state.to_dict()
            payload.update({
                "learner": type(self).__name__,
                "new_splits": (tree.num_nodes - splits_before) // 2,
                "live_leaves": len(tree.statistics),
                "bootstrap": bool(cfg.use_bootstrap),
                "seed": cfg.random_state,
                "seconds": perf_counter() - start,
            })
            self._logger.info(json.dumps(payload))
        return tree

    def update(
        self,
        tree: OnlineDecisionTree,
        x: np.ndarray,
        label: int,
        rng: torch.Generator,
        state: LearnerState | None = None,
    ) -> int:
        """Process a single example and return the id of the leaf it reached."""
        cfg = self.config
        x = np.asarray(x, dtype=np.float64)
        if not np.all(np.isfinite(x)):
            raise RuntimeError("non-finite feature value in online example")
        if self.threshold_generator is None:
            raise RuntimeError("online learning requires a threshold generator")
        if not 0 <= int(label) < tree.num_classes:
            raise ValueError(f"label {label} outside of [0, {tree.num_classes})")

        leaf = tree.find_leaf_node(x)
        depth = tree.nodes[leaf].depth
        if state is not None:
            state.processed += 1
            state.depth = max(state.depth, depth)

        stats = tree.statistics.get(leaf)
        if stats is None:
            stats = self._init_statistics(x.shape[0], tree.num_classes, rng)
            tree.statistics[leaf] = stats

        stats.update(x, int(label), self._replication_count(rng))
        node_stats = stats.node_statistics

        if (
            node_stats.mass() < cfg.min_split_examples
            or node_stats.is_pure()
            or depth >= cfg.max_depth
        ):
            self._refresh_leaf(tree, leaf, stats)
            return leaf

        choice = stats.best_split(int(cfg.min_child_split_examples))
        if choice is None or choice.gain < cfg.min_split_objective:
            self._refresh_leaf(tree, leaf, stats)
            return leaf

        f, t = choice.feature_slot, choice.threshold_slot
        split = AxisAlignedSplit(
            feature=int(stats.features[f]), threshold=float(stats.thresholds[f, t])
        )
        left = tree.split_node(leaf, split)
        # The winning slot may hold the last examples these children ever see.
        tree.nodes[left].histogram = stats.left_histogram(f, t).log_probabilities(cfg.smoothing)
        tree.nodes[left + 1].histogram = stats.right_histogram(f, t).log_probabilities(cfg.smoothing)
        if state is not None:
            state.num_nodes = tree.num_nodes
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(
                "online split of leaf %d (depth %d) on feature %d at %.6g, gain=%.6g",
                leaf, depth, split.feature, split.threshold, choice.gain,
            )
        return leaf

    # Internals ----------------------------------------------------------

    def _check_storage(self, storage: AbstractDataStorage) -> None:
        D = storage.dimensionality
        k = self.config.resolve_num_features(D)
        if not 1 <= k <= D:
            raise ValueError(f"num_features must lie in [1, {D}], got {k}")
        if self.threshold_generator.size != D:
            raise ValueError(
                f"threshold generator covers {self.threshold_generator.size} features, data has {D}"
            )

    def _init_statistics(
        self, dimensionality: int, num_classes: int, rng: torch.Generator
    ) -> LeafStatistics:
        cfg = self.config
        generator = self.threshold_generator
        k = min(cfg.resolve_num_features(dimensionality), dimensionality)
        features = torch.randperm(dimensionality, generator=rng)[:k].numpy()
        thresholds = np.empty((k, cfg.num_thresholds), dtype=np.float64)
        for f, feature in enumerate(features):
            for t in range(cfg.num_thresholds):
                value = generator.sample(int(feature), rng)
                retries = 0
                while (
                    t > 0
                    and abs(value - thresholds[f, t - 1]) < THRESHOLD_EPSILON
                    and retries < MAX_THRESHOLD_RETRIES
                ):
                    value = generator.sample(int(feature), rng)
                    retries += 1
                thresholds[f, t] = value
        return LeafStatistics.empty(features, thresholds, num_classes)

    def _replication_count(self, rng: torch.Generator) -> int:
        if not self.config.use_bootstrap:
            return 1
        rate = torch.tensor([float(self.config.bootstrap_lambda)], dtype=torch.float64)
        # Zero is a valid draw: the example is skipped for this visit.
        return int(torch.poisson(rate, generator=rng)[0].item())

    def _refresh_leaf(self, tree: OnlineDecisionTree, leaf: int, stats: LeafStatistics) -> None:
        # Without mass only smoothing can give a distribution (uniform).
        if stats.node_statistics.mass() > 0 or self.config.smoothing > 0:
            tree.nodes[leaf].histogram = stats.node_statistics.log_probabilities(self.config.smoothing)
