"""Training data containers and delimited-text loaders."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Sequence

import numpy as np
import torch

from .exceptions import ConfigurationError, DataFormatError

_logger = logging.getLogger(__name__)


def ensure_numpy(array: np.ndarray | torch.Tensor | Sequence[float]) -> np.ndarray:
    """Convert ``array`` (ndarray, tensor, DataFrame or nested sequence) to ``np.ndarray``."""

    if isinstance(array, np.ndarray):
        return array
    if isinstance(array, torch.Tensor):  # pragma: no cover - convenience path
        return array.detach().cpu().numpy()
    return np.asarray(array)


@dataclass(frozen=True, slots=True)
class TrainingExample:
    """Immutable feature vector with its class label."""

    data_point: np.ndarray
    class_label: int


@dataclass(frozen=True, slots=True)
class TrainingSet:
    """Column-stacked training examples.

    DAG training works on row-index arrays into ``features``/``labels`` so
    bootstrap samples and node partitions never copy examples.
    """

    features: np.ndarray
    labels: np.ndarray

    def __post_init__(self) -> None:
        try:
            X_arr = np.asarray(ensure_numpy(self.features), dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError("features must be numeric") from exc
        y_raw = np.asarray(ensure_numpy(self.labels))
        if X_arr.ndim != 2:
            raise ConfigurationError("features must be a 2D array")
        if y_raw.ndim != 1 or y_raw.shape[0] != X_arr.shape[0]:
            raise ConfigurationError("labels must be 1D and aligned with the feature rows")
        if y_raw.size and not np.issubdtype(y_raw.dtype, np.integer):
            finite = np.issubdtype(y_raw.dtype, np.floating) and np.all(np.isfinite(y_raw))
            if not finite or not np.all(np.mod(y_raw, 1) == 0):
                raise ConfigurationError("class labels must be integers")
        y_arr = y_raw.astype(np.int64)
        if y_arr.size and int(y_arr.min()) < 0:
            raise ConfigurationError("all class labels must be >= 0")
        if not np.all(np.isfinite(X_arr)):
            raise ConfigurationError("features must be finite")
        object.__setattr__(self, "features", X_arr)
        object.__setattr__(self, "labels", y_arr)

    @classmethod
    def from_arrays(cls, X: np.ndarray | Sequence[Sequence[float]], y: np.ndarray | Sequence[int]) -> "TrainingSet":
        """Wrap a feature matrix and label vector; validation runs on construction."""
        return cls(features=ensure_numpy(X), labels=ensure_numpy(y))

    @classmethod
    def from_examples(cls, examples: Iterable[TrainingExample]) -> "TrainingSet":
        items = list(examples)
        if not items:
            return cls.from_arrays(np.empty((0, 0)), np.empty(0, dtype=np.int64))
        dims = {np.asarray(example.data_point).shape for example in items}
        if len(dims) != 1:
            raise ConfigurationError("all examples must have the same feature dimension")
        X = np.stack([np.asarray(example.data_point, dtype=np.float64) for example in items])
        y = np.array([example.class_label for example in items], dtype=np.int64)
        return cls.from_arrays(X, y)

    def __len__(self) -> int:
        return int(self.labels.shape[0])

    def __iter__(self) -> Iterator[TrainingExample]:
        for i in range(len(self)):
            yield self[i]

    def __getitem__(self, index: int) -> TrainingExample:
        point = self.features[index].view()
        point.flags.writeable = False
        return TrainingExample(point, int(self.labels[index]))

    @property
    def feature_dimension(self) -> int:
        return int(self.features.shape[1])

    @property
    def class_count(self) -> int:
        """Highest label plus one."""
        if len(self) == 0:
            return 0
        return int(self.labels.max()) + 1


def _read_rows(path: str | Path) -> Iterator[tuple[int, list[str]]]:
    with open(path, newline="") as handle:
        for line_no, row in enumerate(csv.reader(handle), start=1):
            if not row or all(not cell.strip() for cell in row):
                continue
            yield line_no, row


def _parse_floats(cells: Sequence[str], path: str | Path, line_no: int) -> list[float]:
    try:
        return [float(cell) for cell in cells]
    except ValueError as exc:
        raise DataFormatError(f"{path}:{line_no}: non-numeric feature value") from exc


def _stack(rows: list[list[float]], path: str | Path) -> np.ndarray:
    if not rows:
        return np.empty((0, 0), dtype=np.float64)
    width = len(rows[0])
    for i, row in enumerate(rows):
        if len(row) != width:
            raise DataFormatError(
                f"{path}: row {i + 1} has {len(row)} features, expected {width}"
            )
    return np.asarray(rows, dtype=np.float64)


def load_examples(path: str | Path) -> TrainingSet:
    """Load a labelled data file: ``label,f0,f1,...`` per line."""
    labels: list[int] = []
    rows: list[list[float]] = []
    for line_no, row in _read_rows(path):
        if len(row) < 2:
            raise DataFormatError(f"{path}:{line_no}: illegal training set row")
        try:
            labels.append(int(row[0].strip()))
        except ValueError as exc:
            raise DataFormatError(f"{path}:{line_no}: class label must be an integer") from exc
        rows.append(_parse_floats(row[1:], path, line_no))
    features = _stack(rows, path)
    _logger.debug("Loaded %d examples from %s", len(labels), path)
    if not labels:
        return TrainingSet.from_arrays(features, np.empty(0, dtype=np.int64))
    return TrainingSet.from_arrays(features, np.asarray(labels, dtype=np.int64))


def load_data_points(path: str | Path) -> np.ndarray:
    """Load an unlabelled data file: ``f0,f1,...`` per line."""
    rows = [_parse_floats(row, path, line_no) for line_no, row in _read_rows(path)]
    features = _stack(rows, path)
    _logger.debug("Loaded %d data points from %s", features.shape[0], path)
    return features
