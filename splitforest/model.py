"""Tree structures produced by the splitforest learners."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union

import numpy as np

from .data import AbstractDataStorage
from .histogram import smoothed_log_probabilities


@dataclass(frozen=True, slots=True)
class AxisAlignedSplit:
    """``x[feature] < threshold`` routes left."""

    feature: int
    threshold: float

    def project(self, X: np.ndarray) -> np.ndarray:
        return X[:, self.feature]

    def goes_left(self, x: np.ndarray) -> bool:
        return bool(x[self.feature] < self.threshold)

    def left_mask(self, X: np.ndarray) -> np.ndarray:
        return self.project(X) < self.threshold


@dataclass(frozen=True, slots=True, eq=False)
class ProjectionSplit:
    """``<weights, x> < 0`` routes left."""

    weights: np.ndarray

    @property
    def threshold(self) -> float:
        return 0.0

    def project(self, X: np.ndarray) -> np.ndarray:
        return X @ self.weights

    def goes_left(self, x: np.ndarray) -> bool:
        return bool(float(np.dot(self.weights, x)) < 0.0)

    def left_mask(self, X: np.ndarray) -> np.ndarray:
        return self.project(X) < 0.0

    @property
    def support(self) -> np.ndarray:
        """Feature indices with a non-zero weight."""
        return np.flatnonzero(self.weights)


@dataclass(frozen=True, slots=True, eq=False)
class DotProductSplit:
    """``<x, right> - <x, left> < threshold`` routes left.

    With ``threshold = (|right|^2 - |left|^2) / 2`` this is the perpendicular
    bisector between the two anchors: points closer to ``anchor_left`` go left.
    """

    anchor_left: np.ndarray
    anchor_right: np.ndarray
    threshold: float

    def goes_left(self, x: np.ndarray) -> bool:
        inner = float(np.dot(x, self.anchor_right)) - float(np.dot(x, self.anchor_left))
        return inner < self.threshold

    def project(self, X: np.ndarray) -> np.ndarray:
        return (X @ self.anchor_right) - (X @ self.anchor_left)

    def left_mask(self, X: np.ndarray) -> np.ndarray:
        return self.project(X) < self.threshold


SplitDescriptor = Union[AxisAlignedSplit, ProjectionSplit, DotProductSplit]


@dataclass(slots=True)
class TreeNode:
    """A node of the dense node table.

    Leaves carry ``histogram`` (smoothed class log-probabilities) and no
    ``split``; internal nodes carry ``split`` and ``left_child`` (the right
    child is always ``left_child + 1``).
    """

    depth: int = 0
    split: Optional[SplitDescriptor] = None
    left_child: int = -1
    histogram: Optional[np.ndarray] = None

    @property
    def is_leaf(self) -> bool:
        return self.left_child < 0

    @property
    def right_child(self) -> int:
        return self.left_child + 1 if self.left_child >= 0 else -1


@dataclass
class DecisionTree:
    """Binary tree stored as an index-addressed node table.

    Node ids are never reused or invalidated. Callers re-resolve nodes by id
    after any call that may append, rather than holding a node across it.
    """

    nodes: List[TreeNode] = field(default_factory=list)

    def add_node(self, depth: int = 0) -> int:
        """Append an unresolved node and return its index."""
        self.nodes.append(TreeNode(depth=int(depth)))
        return len(self.nodes) - 1

    def split_node(self, node_id: int, split: SplitDescriptor) -> int:
        """Turn leaf ``node_id`` into an internal node and return the left child id."""
        node = self.nodes[node_id]
        if not node.is_leaf:
            raise RuntimeError(f"node {node_id} is already split")
        node.split = split
        node.histogram = None
        depth = node.depth + 1
        left = self.add_node(depth)
        self.add_node(depth)
        self.nodes[node_id].left_child = left
        return left

    def get_node(self, node_id: int) -> TreeNode:
        return self.nodes[node_id]

    @property
    def num_nodes(self) -> int:
        return len(self.nodes)

    @property
    def depth(self) -> int:
        return max((n.depth for n in self.nodes), default=0)

    def is_leaf(self, node_id: int) -> bool:
        return self.nodes[node_id].is_leaf

    def leaf_ids(self) -> List[int]:
        return [i for i, n in enumerate(self.nodes) if n.is_leaf]

    def find_leaf_node(self, x: np.ndarray) -> int:
        """Route a single feature vector to its leaf id."""
        if not self.nodes:
            raise RuntimeError("tree has no nodes")
        node_id = 0
        node = self.nodes[0]
        while not node.is_leaf:
            node_id = node.left_child if node.split.goes_left(x) else node.left_child + 1
            node = self.nodes[node_id]
        return node_id

    def find_leaf_nodes(self, X: np.ndarray) -> np.ndarray:
        """Route every row of ``X`` to its leaf id."""
        if not self.nodes:
            raise RuntimeError("tree has no nodes")
        X_np = np.asarray(X, dtype=np.float64)
        out = np.zeros(X_np.shape[0], dtype=np.int64)
        stack: List[tuple[int, np.ndarray]] = [(0, np.arange(X_np.shape[0], dtype=np.int64))]
        while stack:
            node_id, rows = stack.pop()
            node = self.nodes[node_id]
            if node.is_leaf:
                out[rows] = node_id
                continue
            left_mask = node.split.left_mask(X_np[rows])
            if np.any(left_mask):
                stack.append((node.left_child, rows[left_mask]))
            if not np.all(left_mask):
                stack.append((node.left_child + 1, rows[~left_mask]))
        return out


def refresh_leaf_histograms(
    tree: DecisionTree, storage: AbstractDataStorage, smoothing: float
) -> None:
    """Recompute every leaf histogram from all examples in ``storage``.

    Used after growing a tree on a bootstrap resample so that the leaf
    statistics reflect the full dataset.
    """
    num_classes = storage.class_count
    indices = np.arange(storage.size, dtype=np.int64)
    leaves = tree.find_leaf_nodes(storage.data_points(indices))
    labels = storage.class_labels(indices)
    counts = np.zeros((tree.num_nodes, num_classes), dtype=np.int64)
    np.add.at(counts, (leaves, labels), 1)
    for node_id in tree.leaf_ids():
        tree.nodes[node_id].histogram = smoothed_log_probabilities(counts[node_id], smoothing)
