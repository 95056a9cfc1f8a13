"""Batch decision tree learners: axis-aligned, sparse projective and dot-product."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import asdict, dataclass
from time import perf_counter
from typing import Optional

import numpy as np
import torch

from .config import TreeLearnerConfig
from .core import NodeTask, PartitionArena, SplitCandidate, best_threshold_split, mask_objective, split_partition
from .data import AbstractDataStorage
from .histogram import ClassHistogram
from .model import (
    AxisAlignedSplit,
    DecisionTree,
    DotProductSplit,
    ProjectionSplit,
    refresh_leaf_histograms,
)


@dataclass
class LearnerState:
    """Progress record filled in while a tree is learned."""

    started: bool = False
    terminated: bool = False
    total: int = 0
    processed: int = 0
    num_nodes: int = 0
    depth: int = 0

    def reset(self) -> None:
        self.started = False
        self.terminated = False
        self.total = 0
        self.processed = 0
        self.num_nodes = 0
        self.depth = 0

    def to_dict(self) -> dict[str, int | bool]:
        return asdict(self)


def make_generator(random_state: int | None) -> torch.Generator:
    """Create the generator owned by a single build."""
    rng = torch.Generator(device="cpu")
    if random_state is not None:
        rng.manual_seed(int(random_state))
    else:
        rng.seed()
    return rng


def randint(high: int, rng: torch.Generator) -> int:
    return int(torch.randint(0, int(high), (1,), generator=rng).item())


class _BatchTreeLearner:
    """Worklist-driven tree growth shared by all batch learners.

    Subclasses provide :meth:`_find_best_split`; everything else (stop
    criteria, partition bookkeeping, leaf conversion and the bootstrap
    refresh) lives here.
    """

    def __init__(self, config: TreeLearnerConfig | None = None) -> None:
        self.config = config if config is not None else TreeLearnerConfig()
        self._logger = logging.getLogger(__name__)

    # Public -------------------------------------------------------------

    def learn(
        self, storage: AbstractDataStorage, state: LearnerState | None = None
    ) -> DecisionTree:
        cfg = self.config
        cfg.validate()
        self._check_storage(storage)
        if state is None:
            state = LearnerState()
        state.reset()
        state.started = True
        start = perf_counter()

        rng = make_generator(cfg.random_state)
        num_candidates = cfg.resolve_num_features(storage.dimensionality)
        if cfg.use_bootstrap:
            sample, _ = storage.bootstrap(cfg.resolve_num_bootstrap_examples(storage.size), rng)
        else:
            sample = storage
        if sample.size == 0:
            raise ValueError("cannot learn a tree from an empty dataset")

        num_classes = sample.class_count
        min_child = max(int(cfg.min_child_split_examples), 1)
        state.total = sample.size

        tree = DecisionTree()
        tree.add_node(0)
        arena = PartitionArena()
        arena.assign(0, np.arange(sample.size, dtype=np.int64))
        worklist: list[NodeTask] = [NodeTask(node_id=0, depth=0, sample_count=sample.size)]

        while worklist:
            task = worklist.pop()
            state.num_nodes = tree.num_nodes
            state.depth = max(state.depth, task.depth)

            rows = arena.get(task.node_id)
            if rows.size != task.sample_count:
                raise RuntimeError(
                    f"node {task.node_id} owns {rows.size} examples, expected {task.sample_count}"
                )
            labels = sample.class_labels(rows)
            hist = ClassHistogram.from_counts(np.bincount(labels, minlength=num_classes))

            if (
                hist.mass() < cfg.min_split_examples
                or hist.is_pure()
                or task.depth >= cfg.max_depth
            ):
                self._make_leaf(tree, task.node_id, hist)
                arena.release(task.node_id)
                state.processed += int(rows.size)
                continue

            candidate = self._find_best_split(
                sample, rows, labels, hist, num_candidates, min_child, rng
            )
            if (
                candidate is None
                or candidate.left_mass < min_child
                or candidate.right_mass < min_child
            ):
                self._make_leaf(tree, task.node_id, hist)
                arena.release(task.node_id)
                state.processed += int(rows.size)
                continue

            values = candidate.split.project(sample.data_points(rows))
            if not np.all(np.isfinite(values)):
                raise RuntimeError(f"non-finite feature value while partitioning node {task.node_id}")
            left_rows, right_rows = split_partition(
                arena.take(task.node_id), values < candidate.split.threshold
            )
            if left_rows.size != candidate.left_mass or right_rows.size != candidate.right_mass:
                raise RuntimeError(
                    f"partition of node {task.node_id} gave {left_rows.size}/{right_rows.size} "
                    f"examples, expected {candidate.left_mass}/{candidate.right_mass}"
                )

            left = tree.split_node(task.node_id, candidate.split)
            arena.assign(left, left_rows)
            arena.assign(left + 1, right_rows)
            worklist.append(NodeTask(left, task.depth + 1, int(left_rows.size)))
            worklist.append(NodeTask(left + 1, task.depth + 1, int(right_rows.size)))
            if self._logger.isEnabledFor(logging.DEBUG):
                self._logger.debug(
                    "split node %d (depth %d): %d -> %d/%d objective=%.6g",
                    task.node_id, task.depth, rows.size,
                    left_rows.size, right_rows.size, candidate.objective,
                )

        if len(arena):
            raise RuntimeError(f"{len(arena)} partitions left unresolved after growth")

        if cfg.use_bootstrap:
            refresh_leaf_histograms(tree, storage, cfg.smoothing)

        state.num_nodes = tree.num_nodes
        state.terminated = True
        if self._logger.isEnabledFor(logging.INFO):
            payload = state.to_dict()
            payload.update({
                "learner": type(self).__name__,
                "leaves": len(tree.leaf_ids()),
                "bootstrap": bool(cfg.use_bootstrap),
                "seed": cfg.random_state,
                "seconds": perf_counter() - start,
            })
            self._logger.info(json.dumps(payload))
        return tree

    # Internals ----------------------------------------------------------

    def _check_storage(self, storage: AbstractDataStorage) -> None:
        if storage.class_count <= 0:
            raise ValueError("dataset must have at least one class")

    def _make_leaf(self, tree: DecisionTree, node_id: int, hist: ClassHistogram) -> None:
        if hist.size == 0:
            raise RuntimeError(f"leaf {node_id} has a zero-size histogram")
        if hist.mass() == 0:
            raise RuntimeError(f"leaf {node_id} has no class mass")
        # Bootstrapped trees get their histograms from the full data afterwards.
        if self.config.use_bootstrap:
            tree.nodes[node_id].histogram = None
        else:
            tree.nodes[node_id].histogram = hist.log_probabilities(self.config.smoothing)

    def _find_best_split(
        self,
        storage: AbstractDataStorage,
        rows: np.ndarray,
        labels: np.ndarray,
        hist: ClassHistogram,
        num_candidates: int,
        min_child: int,
        rng: torch.Generator,
    ) -> Optional[SplitCandidate]:
        raise NotImplementedError


class DecisionTreeLearner(_BatchTreeLearner):
    """Exact axis-aligned threshold search over a random feature subset."""

    def _check_storage(self, storage: AbstractDataStorage) -> None:
        super()._check_storage(storage)
        if self.config.resolve_num_features(storage.dimensionality) > storage.dimensionality:
            raise ValueError(
                "The number of feature evaluations must not exceed the feature dimension."
            )

    def _sample_features(self, dimensionality: int, k: int, rng: torch.Generator) -> list[int]:
        perm = torch.randperm(dimensionality, generator=rng)
        return perm[:k].tolist()

    def _find_best_split(self, storage, rows, labels, hist, num_candidates, min_child, rng):
        X = storage.data_points(rows)
        best: Optional[SplitCandidate] = None
        for feature in self._sample_features(storage.dimensionality, num_candidates, rng):
            sweep = best_threshold_split(X[:, feature], labels, hist.size, min_child)
            if sweep is None:
                continue
            if best is None or sweep.objective < best.objective:
                best = SplitCandidate(
                    split=AxisAlignedSplit(feature=int(feature), threshold=sweep.threshold),
                    objective=sweep.objective,
                    left_mass=sweep.left_mass,
                    right_mass=sweep.right_mass,
                )
        return best


class ProjectiveDecisionTreeLearner(_BatchTreeLearner):
    """Splits on the sign of sparse random +-1 projections."""

    def _sample_projection(self, dimensionality: int, rng: torch.Generator) -> np.ndarray:
        sparsity = int(self.config.projection_sparsity)
        dims = torch.randint(0, dimensionality, (sparsity,), generator=rng).numpy()
        signs = (2 * torch.randint(0, 2, (sparsity,), generator=rng) - 1).numpy()
        weights = np.zeros(dimensionality, dtype=np.float64)
        # A dimension drawn twice keeps its last sign.
        weights[dims] = signs
        return weights / math.sqrt(sparsity)

    def _find_best_split(self, storage, rows, labels, hist, num_candidates, min_child, rng):
        X = storage.data_points(rows)
        best: Optional[SplitCandidate] = None
        for _ in range(num_candidates):
            split = ProjectionSplit(weights=self._sample_projection(storage.dimensionality, rng))
            objective, left_mass, right_mass = mask_objective(split.left_mask(X), labels, hist.size)
            if left_mass < min_child or right_mass < min_child:
                continue
            if best is None or objective < best.objective:
                best = SplitCandidate(split, objective, left_mass, right_mass)
        return best


class DotProductDecisionTreeLearner(_BatchTreeLearner):
    """Splits on the bisector between two anchor points of different classes."""

    def _find_best_split(self, storage, rows, labels, hist, num_candidates, min_child, rng):
        present = np.flatnonzero(hist.counts)
        if present.size < 2:
            return None
        rows_by_class = {int(c): rows[labels == c] for c in present}
        X = storage.data_points(rows)
        best: Optional[SplitCandidate] = None
        for _ in range(num_candidates):
            first = randint(present.size, rng)
            second = randint(present.size - 1, rng)
            if second >= first:
                second += 1
            pool_left = rows_by_class[int(present[first])]
            pool_right = rows_by_class[int(present[second])]
            x1 = np.array(storage.data_point(int(pool_left[randint(pool_left.size, rng)])))
            x2 = np.array(storage.data_point(int(pool_right[randint(pool_right.size, rng)])))
            threshold = 0.5 * (float(x2 @ x2) - float(x1 @ x1))
            split = DotProductSplit(anchor_left=x1, anchor_right=x2, threshold=threshold)
            objective, left_mass, right_mass = mask_objective(split.left_mask(X), labels, hist.size)
            if left_mass < min_child or right_mass < min_child:
                continue
            if best is None or objective < best.objective:
                best = SplitCandidate(split, objective, left_mass, right_mass)
        return best
