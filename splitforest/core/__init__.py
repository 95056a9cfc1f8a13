"""Core data structures and scoring routines for batch tree growth."""

from .partitions import NodeTask, PartitionArena, split_partition
from .sweep import SplitCandidate, ThresholdSweep, best_threshold_split, mask_objective

__all__ = [
    "NodeTask",
    "PartitionArena",
    "SplitCandidate",
    "ThresholdSweep",
    "best_threshold_split",
    "mask_objective",
    "split_partition",
]
