"""Entropy objectives evaluated while optimising one DAG level.

All four measure the same quantity, the mass-weighted average entropy of a
partition of the level's examples into buckets. They differ in what is held
fixed so that repeated evaluation inside the optimiser stays cheap.
"""

from __future__ import annotations

from typing import Protocol, Sequence

import numpy as np

from .histogram import ClassHistogram, EfficientEntropyHistogram, weighted_entropies
from .nodes import TrainingDAGNode


class ErrorFunction(Protocol):
    def error(self) -> float:
        ...


def _class_count(row: Sequence[TrainingDAGNode]) -> int:
    if not row:
        return 0
    return row[0].class_histogram.size


def _slot_counts(
    row: Sequence[TrainingDAGNode],
    child_count: int,
    exclude: TrainingDAGNode | None = None,
) -> np.ndarray:
    """Aggregate left/right histograms of ``row`` into their assigned slots."""
    slots = np.zeros((child_count, _class_count(row)), dtype=np.int64)
    members = [node for node in row if node is not exclude]
    if not members:
        return slots
    lefts = np.fromiter((node.temp_left for node in members), dtype=np.int64, count=len(members))
    rights = np.fromiter((node.temp_right for node in members), dtype=np.int64, count=len(members))
    left_counts = np.stack([node.left_histogram.counts for node in members])
    right_counts = np.stack([node.right_histogram.counts for node in members])
    np.add.at(slots, lefts, left_counts)
    np.add.at(slots, rights, right_counts)
    return slots


def _row_mass(row: Sequence[TrainingDAGNode]) -> int:
    return int(sum(node.class_histogram.mass for node in row))


class RowEntropyErrorFunction:
    """Weighted entropy of the parent row itself."""

    def __init__(self, row: Sequence[TrainingDAGNode]) -> None:
        self._row = row

    def error(self) -> float:
        total = _row_mass(self._row)
        if total == 0:
            return 0.0
        return float(sum(node.class_histogram.weighted_entropy() for node in self._row)) / total


class ChildRowEntropyErrorFunction:
    """Weighted entropy of the child row implied by the current slot assignment."""

    def __init__(self, row: Sequence[TrainingDAGNode], child_count: int) -> None:
        self._row = row
        self._child_count = int(child_count)

    def slot_histograms(self) -> list[ClassHistogram]:
        slots = _slot_counts(self._row, self._child_count)
        return [ClassHistogram.from_counts(counts) for counts in slots]

    def error(self) -> float:
        slots = _slot_counts(self._row, self._child_count)
        total = int(slots.sum())
        if total == 0:
            return 0.0
        return float(weighted_entropies(slots).sum()) / total


class ThresholdEntropyErrorFunction:
    """Incremental objective for sweeping one parent's threshold.

    The contribution of every other parent to the two slots the parent occupies
    is aggregated once. ``reset`` puts all of the parent's rows on the right,
    ``move`` shifts one example to the left in O(1) and ``error`` reads the two
    live histograms.
    """

    def __init__(self, row: Sequence[TrainingDAGNode], parent: TrainingDAGNode, child_count: int) -> None:
        if parent.is_coherent:
            raise ValueError("threshold search needs distinct left/right slots")
        self._parent = parent
        others = _slot_counts(row, child_count, exclude=parent)
        self._static_left = others[parent.temp_left]
        self._static_right = others[parent.temp_right]
        rest = np.ones(child_count, dtype=bool)
        rest[[parent.temp_left, parent.temp_right]] = False
        self._rest = float(weighted_entropies(others[rest]).sum())
        self._total = int(others.sum()) + parent.class_histogram.mass
        self._parent_counts = np.asarray(parent.class_histogram.counts, dtype=np.int64)
        self._left = EfficientEntropyHistogram(parent.class_histogram.size)
        self._right = EfficientEntropyHistogram(parent.class_histogram.size)
        self.reset()

    def reset(self) -> None:
        self._left.reset()
        self._left.add_histogram(ClassHistogram.from_counts(self._static_left))
        self._right.reset()
        self._right.add_histogram(ClassHistogram.from_counts(self._static_right + self._parent_counts))

    def move(self, label: int) -> None:
        self._left.add_one(label)
        self._right.sub_one(label)

    def _normalise(self, weighted: float) -> float:
        if self._total == 0:
            return 0.0
        return (self._rest + weighted) / self._total

    def error(self) -> float:
        return self._normalise(self._left.weighted_entropy() + self._right.weighted_entropy())

    def current_error(self) -> float:
        """Error of the parent's committed split (its own left/right histograms)."""
        left = self._static_left + self._parent_left()
        right = self._static_right + self._parent_right()
        return self._normalise(float(weighted_entropies(np.stack([left, right])).sum()))

    def sweep(self, sorted_labels: np.ndarray) -> np.ndarray:
        """Errors after moving each prefix of ``sorted_labels`` to the left.

        Entry ``k`` equals :meth:`error` after ``reset`` followed by ``move`` on
        ``sorted_labels[: k + 1]``.
        """
        labels = np.asarray(sorted_labels, dtype=np.int64)
        if labels.size == 0:
            return np.empty(0, dtype=np.float64)
        onehot = np.zeros((labels.size, self._parent_counts.size), dtype=np.int64)
        onehot[np.arange(labels.size), labels] = 1
        moved = np.cumsum(onehot, axis=0)
        left = self._static_left[None, :] + moved
        right = (self._static_right + self._parent_counts)[None, :] - moved
        weighted = weighted_entropies(left) + weighted_entropies(right)
        if self._total == 0:
            return np.zeros(labels.size, dtype=np.float64)
        return (self._rest + weighted) / self._total

    def _parent_left(self) -> np.ndarray:
        return np.asarray(self._parent.left_histogram.counts, dtype=np.int64)

    def _parent_right(self) -> np.ndarray:
        return np.asarray(self._parent.right_histogram.counts, dtype=np.int64)


class AssignmentEntropyErrorFunction:
    """Objective for re-pointing one parent's left/right branches.

    Every other parent's contribution to every slot, and each slot's weighted
    entropy, are computed once. Evaluating a candidate only touches the one or
    two slots the parent would occupy.
    """

    def __init__(self, row: Sequence[TrainingDAGNode], parent: TrainingDAGNode, child_count: int) -> None:
        self._parent = parent
        self._child_count = int(child_count)
        others = _slot_counts(row, child_count, exclude=parent)
        self._slots = [ClassHistogram.from_counts(counts) for counts in others]
        self._static = weighted_entropies(others)
        self._static_sum = float(self._static.sum())
        self._total = int(others.sum()) + parent.class_histogram.mass

    @property
    def child_count(self) -> int:
        return self._child_count

    def error(self, temp_left: int | None = None, temp_right: int | None = None) -> float:
        """Row error if the parent pointed at ``temp_left``/``temp_right``.

        Defaults to the parent's current assignment.
        """
        if self._total == 0:
            return 0.0
        parent = self._parent
        left = parent.temp_left if temp_left is None else int(temp_left)
        right = parent.temp_right if temp_right is None else int(temp_right)
        if left == right:
            weighted = self._static_sum - self._static[left]
            weighted += self._slots[left].weighted_entropy(parent.left_histogram, parent.right_histogram)
        else:
            weighted = self._static_sum - self._static[left] - self._static[right]
            weighted += self._slots[left].weighted_entropy(parent.left_histogram)
            weighted += self._slots[right].weighted_entropy(parent.right_histogram)
        return float(weighted) / self._total
