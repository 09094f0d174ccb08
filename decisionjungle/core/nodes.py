"""Training-time node state for the level-wise DAG optimiser."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .histogram import ClassHistogram

_EMPTY = np.empty(0, dtype=np.int64)


@dataclass(slots=True, eq=False)
class TrainingDAGNode:
    """Node of the DAG under construction.

    ``rows`` indexes into the trainer's feature matrix; examples are only ever
    partitioned, never copied. ``temp_left``/``temp_right`` are virtual slots on
    the next level and ``left``/``right`` the arena indices of committed children.
    """

    rows: np.ndarray
    class_histogram: ClassHistogram
    left_histogram: ClassHistogram
    right_histogram: ClassHistogram
    class_label: int = -1
    pure: bool = True
    entropy: float = 0.0
    feature_id: int = 0
    threshold: float = float("-inf")
    temp_left: int = 0
    temp_right: int = 0
    left: int | None = None
    right: int | None = None
    index: int = -1

    @classmethod
    def from_rows(cls, rows: np.ndarray, labels: np.ndarray, class_count: int) -> "TrainingDAGNode":
        rows_arr = np.asarray(rows, dtype=np.int64)
        node = cls(
            rows=rows_arr,
            class_histogram=ClassHistogram(class_count),
            left_histogram=ClassHistogram(class_count),
            right_histogram=ClassHistogram(class_count),
        )
        node.update_histogram_and_label(labels)
        return node

    @property
    def size(self) -> int:
        return int(self.rows.size)

    @property
    def is_coherent(self) -> bool:
        """Both virtual pointers share one slot."""
        return self.temp_left == self.temp_right

    def update_histogram_and_label(self, labels: np.ndarray) -> None:
        """Recount the node histogram from ``rows`` and refresh label, purity and entropy."""
        class_count = self.class_histogram.size
        self.class_histogram = ClassHistogram.from_labels(labels[self.rows], class_count)
        self.class_label = self.class_histogram.argmax()
        self.pure = self.class_histogram.is_pure()
        self.entropy = self.class_histogram.entropy()

    def reset_left_right_histogram(self) -> None:
        """Route every row right: empty left histogram, full right histogram."""
        self.feature_id = 0
        self.threshold = float("-inf")
        self.left_histogram = ClassHistogram(self.class_histogram.size)
        self.right_histogram = self.class_histogram.copy()

    def update_left_right_histogram(self, features: np.ndarray, labels: np.ndarray) -> None:
        """Recount the candidate split histograms for the current feature/threshold."""
        left_rows, right_rows = self.split_rows(features)
        class_count = self.class_histogram.size
        self.left_histogram = ClassHistogram.from_labels(labels[left_rows], class_count)
        self.right_histogram = ClassHistogram.from_labels(labels[right_rows], class_count)

    def split_rows(self, features: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Partition ``rows`` into left/right using ``x[feature_id] <= threshold``."""
        if self.rows.size == 0:
            return _EMPTY, _EMPTY
        mask = features[self.rows, self.feature_id] <= self.threshold
        if mask.all():
            return self.rows, _EMPTY
        if not mask.any():
            return _EMPTY, self.rows
        return self.rows[mask], self.rows[~mask]

    def release_rows(self) -> None:
        self.rows = _EMPTY
