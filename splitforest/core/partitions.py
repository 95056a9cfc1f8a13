"""Per-node example partitions for batch tree growth."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np

_EMPTY = np.empty(0, dtype=np.int64)


@dataclass(frozen=True, slots=True)
class NodeTask:
    """Pending worklist entry: a node waiting to be split or resolved."""

    node_id: int
    depth: int
    sample_count: int


class PartitionArena:
    """Owns the example-index array of every pending node.

    Each array belongs to exactly one node. A node resolved as a leaf has its
    array released; a committed split ``take``s the parent's array and assigns
    two fresh arrays to the children.
    """

    def __init__(self) -> None:
        self._rows: Dict[int, np.ndarray] = {}

    def assign(self, node_id: int, rows: np.ndarray) -> None:
        if node_id in self._rows:
            raise RuntimeError(f"node {node_id} already owns a partition")
        self._rows[node_id] = np.asarray(rows, dtype=np.int64)

    def get(self, node_id: int) -> np.ndarray:
        try:
            return self._rows[node_id]
        except KeyError:
            raise RuntimeError(f"node {node_id} owns no partition") from None

    def take(self, node_id: int) -> np.ndarray:
        rows = self.get(node_id)
        del self._rows[node_id]
        return rows

    def release(self, node_id: int) -> None:
        self.take(node_id)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._rows

    def __len__(self) -> int:
        return len(self._rows)


def split_partition(rows: np.ndarray, left_mask: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Partition ``rows`` into ``(left, right)`` according to ``left_mask``."""
    if left_mask.shape != rows.shape:
        raise RuntimeError("routing mask does not match partition size")
    if left_mask.all():
        return rows, _EMPTY
    if (~left_mask).all():
        return _EMPTY, rows
    return rows[left_mask], rows[~left_mask]
