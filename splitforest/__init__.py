"""splitforest: entropy-driven decision tree induction (batch and online)."""

from .config import OnlineTreeLearnerConfig, TreeLearnerConfig
from .data import DataStorage
from .histogram import ClassHistogram
from .learner import (
    DecisionTreeLearner,
    DotProductDecisionTreeLearner,
    LearnerState,
    ProjectiveDecisionTreeLearner,
)
from .model import AxisAlignedSplit, DecisionTree, DotProductSplit, ProjectionSplit
from .online import OnlineDecisionTree, OnlineDecisionTreeLearner
from .thresholds import RandomThresholdGenerator

__all__ = [
    "AxisAlignedSplit",
    "ClassHistogram",
    "DataStorage",
    "DecisionTree",
    "DecisionTreeLearner",
    "DotProductDecisionTreeLearner",
    "DotProductSplit",
    "LearnerState",
    "OnlineDecisionTree",
    "OnlineDecisionTreeLearner",
    "OnlineTreeLearnerConfig",
    "ProjectionSplit",
    "ProjectiveDecisionTreeLearner",
    "RandomThresholdGenerator",
    "TreeLearnerConfig",
]
