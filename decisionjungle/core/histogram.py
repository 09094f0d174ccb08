"""Class histograms with (incremental) Shannon entropy."""

from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence

import numpy as np


def xlog2x(values: np.ndarray | Sequence[float]) -> np.ndarray:
    """Element-wise ``v * log2(v)`` with ``0 * log2(0) == 0``."""
    arr = np.asarray(values, dtype=np.float64)
    out = np.zeros_like(arr)
    np.log2(arr, out=out, where=arr > 0)
    out *= arr
    return out


def weighted_entropies(counts: np.ndarray) -> np.ndarray:
    """Return ``mass * entropy`` over the last axis of ``counts``.

    Uses ``m * H = m log2 m - sum(c log2 c)`` so callers can sum the result over
    buckets and divide once by the total mass.
    """
    arr = np.asarray(counts, dtype=np.float64)
    mass = arr.sum(axis=-1)
    result = xlog2x(mass) - xlog2x(arr).sum(axis=-1)
    return np.maximum(result, 0.0)


def _xlog2x_scalar(value: int) -> float:
    if value <= 0:
        return 0.0
    return value * math.log2(value)


class ClassHistogram:
    """Fixed-size vector of per-class example counts."""

    __slots__ = ("_counts", "_mass")

    def __init__(self, class_count: int) -> None:
        if class_count < 0:
            raise ValueError("class_count must be non-negative")
        self._counts = np.zeros(int(class_count), dtype=np.int64)
        self._mass = 0

    @classmethod
    def from_counts(cls, counts: Iterable[int]) -> "ClassHistogram":
        if not isinstance(counts, np.ndarray):
            counts = list(counts)
        arr = np.asarray(counts, dtype=np.int64)
        if arr.ndim != 1:
            raise ValueError("counts must be one-dimensional")
        if np.any(arr < 0):
            raise ValueError("histogram bins must be non-negative")
        hist = cls(arr.shape[0])
        hist._load(arr)
        return hist

    @classmethod
    def from_labels(cls, labels: np.ndarray, class_count: int) -> "ClassHistogram":
        labels_arr = np.asarray(labels, dtype=np.int64)
        counts = np.bincount(labels_arr, minlength=class_count)[:class_count]
        return cls.from_counts(counts)

    def _load(self, counts: np.ndarray) -> None:
        self._counts[:] = counts
        self._mass = int(counts.sum())

    # Accessors ----------------------------------------------------------

    @property
    def counts(self) -> np.ndarray:
        """Read-only view of the bins."""
        view = self._counts.view()
        view.flags.writeable = False
        return view

    @property
    def mass(self) -> int:
        return self._mass

    @property
    def size(self) -> int:
        return int(self._counts.shape[0])

    def __len__(self) -> int:
        return self.size

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ClassHistogram):
            return NotImplemented
        return self._mass == other._mass and np.array_equal(self._counts, other._counts)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._counts.tolist()})"

    def get(self, index: int) -> int:
        return int(self._counts[index])

    def to_list(self) -> list[int]:
        return [int(c) for c in self._counts]

    # Mutation -----------------------------------------------------------

    def set(self, index: int, value: int) -> None:
        if value < 0:
            raise ValueError("histogram bins must be non-negative")
        self._mass += int(value) - int(self._counts[index])
        self._counts[index] = value

    def add(self, index: int, delta: int) -> None:
        self.set(index, int(self._counts[index]) + int(delta))

    def add_one(self, index: int) -> None:
        self._counts[index] += 1
        self._mass += 1

    def sub_one(self, index: int) -> None:
        if self._counts[index] <= 0:
            raise ValueError(f"bin {index} is already empty")
        self._counts[index] -= 1
        self._mass -= 1

    def add_histogram(self, other: "ClassHistogram") -> None:
        """Add the bins of ``other`` in place."""
        self._load(self._counts + other._counts)

    def reset(self) -> None:
        self._counts[:] = 0
        self._mass = 0

    def copy(self) -> "ClassHistogram":
        return ClassHistogram.from_counts(self._counts.copy())

    # Statistics ---------------------------------------------------------

    def _combined(self, others: tuple["ClassHistogram", ...]) -> np.ndarray:
        if not others:
            return self._counts
        combined = self._counts.copy()
        for other in others:
            combined += other._counts
        return combined

    def combined_mass(self, *others: "ClassHistogram") -> int:
        return self._mass + sum(other._mass for other in others)

    def weighted_entropy(self, *others: "ClassHistogram") -> float:
        """``mass * entropy`` of this histogram plus ``others`` (not materialised)."""
        counts = self._combined(others)
        if np.count_nonzero(counts) <= 1:
            return 0.0
        return float(weighted_entropies(counts))

    def entropy(self, *others: "ClassHistogram") -> float:
        """Shannon entropy (bits) of this histogram plus ``others``.

        Defined as ``0`` when the combined mass is below one.
        """
        mass = self.combined_mass(*others)
        if mass < 1:
            return 0.0
        return self.weighted_entropy(*others) / mass

    def is_pure(self) -> bool:
        """``True`` when at most one bin is non-zero."""
        return int(np.count_nonzero(self._counts)) <= 1

    def argmax(self) -> int:
        """Lowest label among the largest bins, ``-1`` for an empty histogram."""
        if self._mass == 0:
            return -1
        return int(np.argmax(self._counts))


class EfficientEntropyHistogram(ClassHistogram):
    """Histogram caching ``c log2 c`` per bin so unit updates keep entropy in O(1)."""

    __slots__ = ("_terms", "_total", "_nonzero", "_undo")

    def __init__(self, class_count: int) -> None:
        super().__init__(class_count)
        self._terms = np.zeros(int(class_count), dtype=np.float64)
        self._total = 0.0
        self._nonzero = 0
        self._undo: Optional[tuple[int, int, float]] = None

    @classmethod
    def from_histogram(cls, histogram: ClassHistogram) -> "EfficientEntropyHistogram":
        return cls.from_counts(histogram.counts)  # type: ignore[return-value]

    def _load(self, counts: np.ndarray) -> None:
        super()._load(counts)
        self._terms[:] = [_xlog2x_scalar(int(c)) for c in self._counts]
        self._total = float(self._terms.sum())
        self._nonzero = int(np.count_nonzero(self._counts))
        self._undo = None

    def _refresh(self, index: int, before: int) -> None:
        count = int(self._counts[index])
        new = _xlog2x_scalar(count)
        undo = self._undo
        if undo is not None and undo[0] == index and undo[1] == count:
            # Inverse of the previous unit update: restore the total bit for bit.
            self._total = undo[2]
            self._undo = None
        else:
            self._undo = (index, before, self._total)
            self._total += new - self._terms[index]
        self._terms[index] = new

    def set(self, index: int, value: int) -> None:
        before = int(self._counts[index])
        super().set(index, value)
        self._refresh(index, before)
        self._nonzero = int(np.count_nonzero(self._counts))

    def add_one(self, index: int) -> None:
        super().add_one(index)
        if self._counts[index] == 1:
            self._nonzero += 1
        self._refresh(index, int(self._counts[index]) - 1)

    def sub_one(self, index: int) -> None:
        super().sub_one(index)
        if self._counts[index] == 0:
            self._nonzero -= 1
        self._refresh(index, int(self._counts[index]) + 1)

    def reset(self) -> None:
        super().reset()
        self._terms[:] = 0.0
        self._total = 0.0
        self._nonzero = 0
        self._undo = None

    def is_pure(self) -> bool:
        return self._nonzero <= 1

    def copy(self) -> "EfficientEntropyHistogram":
        return EfficientEntropyHistogram.from_histogram(self)

    @property
    def terms(self) -> np.ndarray:
        return self._terms.copy()

    def weighted_entropy(self, *others: ClassHistogram) -> float:
        if others:
            return super().weighted_entropy(*others)
        if self._nonzero <= 1:
            return 0.0
        return max(0.0, _xlog2x_scalar(self._mass) - self._total)
