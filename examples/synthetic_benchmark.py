"""Grow every splitforest learner on a synthetic classification task."""

from __future__ import annotations

import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List

import numpy as np
from sklearn.metrics import accuracy_score
from sklearn.model_selection import train_test_split

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from splitforest.config import OnlineTreeLearnerConfig, TreeLearnerConfig
from splitforest.data import DataStorage
from splitforest.learner import (
    DecisionTreeLearner,
    DotProductDecisionTreeLearner,
    ProjectiveDecisionTreeLearner,
)
from splitforest.model import DecisionTree
from splitforest.online import OnlineDecisionTreeLearner


N_SAMPLES = 4000
N_FEATURES = 20
N_CLASSES = 4
SEED = 123

MAX_DEPTH = 12


@dataclass
class BenchmarkResult:
    name: str
    fit_time: float
    num_nodes: int
    depth: int
    accuracy: float


def generate_data() -> tuple[np.ndarray, np.ndarray]:
    """Gaussian blobs with a few informative and many noise features."""
    rng = np.random.default_rng(SEED)
    centers = rng.normal(0.0, 2.0, size=(N_CLASSES, N_FEATURES))
    centers[:, 5:] = 0.0
    y = rng.integers(0, N_CLASSES, size=N_SAMPLES)
    X = centers[y] + rng.standard_normal((N_SAMPLES, N_FEATURES))
    return X, y


def accuracy(tree: DecisionTree, X: np.ndarray, y: np.ndarray) -> float:
    leaves = tree.find_leaf_nodes(X)
    preds = np.array([int(np.argmax(tree.get_node(int(leaf)).histogram)) for leaf in leaves])
    return float(accuracy_score(y, preds))


def benchmark(name: str, fit_fn: Callable[[], DecisionTree], X: np.ndarray, y: np.ndarray) -> BenchmarkResult:
    t0 = time.perf_counter()
    tree = fit_fn()
    fit_time = time.perf_counter() - t0
    return BenchmarkResult(
        name=name,
        fit_time=fit_time,
        num_nodes=tree.num_nodes,
        depth=tree.depth,
        accuracy=accuracy(tree, X, y),
    )


if __name__ == "__main__":
    X, y = generate_data()
    X_train, X_test, y_train, y_test = train_test_split(
        X, y, test_size=0.2, random_state=SEED, stratify=y
    )
    train = DataStorage(X_train, y_train, class_count=N_CLASSES)

    batch_cfg = TreeLearnerConfig(max_depth=MAX_DEPTH, min_split_examples=10, random_state=SEED)
    online_cfg = OnlineTreeLearnerConfig(
        max_depth=MAX_DEPTH,
        num_thresholds=8,
        min_split_objective=5.0,
        random_state=SEED,
    )

    results: List[BenchmarkResult] = [
        benchmark("axis", lambda: DecisionTreeLearner(batch_cfg).learn(train), X_test, y_test),
        benchmark("projective", lambda: ProjectiveDecisionTreeLearner(batch_cfg).learn(train), X_test, y_test),
        benchmark("dot-product", lambda: DotProductDecisionTreeLearner(batch_cfg).learn(train), X_test, y_test),
        benchmark("online", lambda: OnlineDecisionTreeLearner(online_cfg).learn(train), X_test, y_test),
    ]

    print("Learner       Fit (s)    Nodes  Depth  Accuracy")
    print("-" * 48)
    for res in results:
        print(
            f"{res.name:<12} {res.fit_time:>8.3f} {res.num_nodes:>8d} {res.depth:>6d} {res.accuracy:>9.4f}"
        )
