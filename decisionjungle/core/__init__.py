"""Core data structures and algorithms for level-wise DAG training."""

from .frontier import commit_level, find_threshold, initialize_level, optimize_assignments
from .histogram import ClassHistogram, EfficientEntropyHistogram, weighted_entropies
from .nodes import TrainingDAGNode
from .objectives import (
    AssignmentEntropyErrorFunction,
    ChildRowEntropyErrorFunction,
    ErrorFunction,
    RowEntropyErrorFunction,
    ThresholdEntropyErrorFunction,
)

__all__ = [
    "AssignmentEntropyErrorFunction",
    "ChildRowEntropyErrorFunction",
    "ClassHistogram",
    "EfficientEntropyHistogram",
    "ErrorFunction",
    "RowEntropyErrorFunction",
    "ThresholdEntropyErrorFunction",
    "TrainingDAGNode",
    "commit_level",
    "find_threshold",
    "initialize_level",
    "optimize_assignments",
    "weighted_entropies",
]
