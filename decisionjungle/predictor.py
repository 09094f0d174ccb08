"""Standalone prediction utilities for persisted jungles."""

from __future__ import annotations

from pathlib import Path

import numpy as np

from .data import ensure_numpy
from .model import Jungle
from .serialization import load_jungle, loads, save_jungle


class JunglePredictor:
    """Lightweight predictor that depends only on a serialised model."""

    def __init__(self, jungle: Jungle) -> None:
        self._jungle = jungle

    @classmethod
    def from_file(cls, path: str | Path) -> "JunglePredictor":
        return cls(load_jungle(path))

    def to_file(self, path: str | Path) -> None:
        save_jungle(self._jungle, path)

    def predict(self, X: np.ndarray) -> np.ndarray:
        X_array = np.asarray(ensure_numpy(X), dtype=np.float64)
        if X_array.ndim == 1:
            X_array = X_array.reshape(1, -1)
        return self._jungle.predict_batch(X_array)

    @property
    def jungle(self) -> Jungle:
        return self._jungle


def load_predictor(text: str) -> JunglePredictor:
    return JunglePredictor(loads(text))
