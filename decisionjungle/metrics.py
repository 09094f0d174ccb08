"""Training statistics for fitted jungles."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import numpy as np
from sklearn.metrics import confusion_matrix as _sk_confusion_matrix

from .data import TrainingSet

if TYPE_CHECKING:
    from .model import Jungle


def training_error(jungle: "Jungle", training_set: TrainingSet) -> float:
    """Fraction of examples whose predicted label differs from the true label."""
    if len(training_set) == 0:
        return 0.0
    preds = jungle.predict_batch(training_set.features)
    return float(np.mean(preds != training_set.labels))


def confusion_matrix(
    jungle: "Jungle",
    training_set: TrainingSet,
    class_count: Optional[int] = None,
) -> np.ndarray:
    """``class_count x class_count`` counts with true labels on rows.

    Examples the jungle cannot label are left out.
    """
    if class_count is None:
        class_count = training_set.class_count
    if len(training_set) == 0 or class_count == 0:
        return np.zeros((class_count, class_count), dtype=np.int64)
    preds = jungle.predict_batch(training_set.features)
    matrix = _sk_confusion_matrix(training_set.labels, preds, labels=np.arange(class_count))
    return matrix.astype(np.int64)
