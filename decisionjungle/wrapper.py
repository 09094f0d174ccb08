"""scikit-learn wrapper for decision jungles."""

from __future__ import annotations

from typing import Optional

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin

from .config import JungleConfig
from .data import TrainingSet, ensure_numpy
from .model import NO_PREDICTION, Jungle
from .trainer import JungleTrainer


class DecisionJungleClassifier(BaseEstimator, ClassifierMixin):
    """scikit-learn compatible classifier wrapping :class:`JungleTrainer`.

    Arbitrary label values are encoded to ``0..n_classes-1`` for training and
    decoded through ``classes_`` on prediction.
    """

    def __init__(
        self,
        *,
        num_dags: int = 8,
        max_depth: int = 32,
        max_width: int = 64,
        num_feature_samples: Optional[int] = None,
        use_bagging: bool = False,
        num_training_samples: Optional[int] = None,
        max_level_iterations: int = 55,
        sort_parent_nodes: bool = True,
        parallel: bool = True,
        n_jobs: Optional[int] = None,
        random_state: Optional[int] = None,
    ) -> None:
        self.num_dags = num_dags
        self.max_depth = max_depth
        self.max_width = max_width
        self.num_feature_samples = num_feature_samples
        self.use_bagging = use_bagging
        self.num_training_samples = num_training_samples
        self.max_level_iterations = max_level_iterations
        self.sort_parent_nodes = sort_parent_nodes
        self.parallel = parallel
        self.n_jobs = n_jobs
        self.random_state = random_state

    def fit(self, X: np.ndarray, y: np.ndarray) -> "DecisionJungleClassifier":
        """Fit the estimator.

        Parameters
        ----------
        X: np.ndarray
            Feature matrix of shape (n_samples, n_features).
        y: np.ndarray
            Class labels of shape (n_samples,); any sortable label values.
        """
        X_arr = np.asarray(ensure_numpy(X), dtype=np.float64)
        classes, y_encoded = np.unique(np.asarray(ensure_numpy(y)), return_inverse=True)
        config = JungleConfig(
            num_dags=self.num_dags,
            max_depth=self.max_depth,
            max_width=self.max_width,
            num_feature_samples=self.num_feature_samples,
            use_bagging=self.use_bagging,
            num_training_samples=self.num_training_samples,
            max_level_iterations=self.max_level_iterations,
            sort_parent_nodes=self.sort_parent_nodes,
            parallel=self.parallel,
            n_jobs=self.n_jobs,
            random_state=self.random_state,
        )
        trainer = JungleTrainer(config)
        self.jungle_ = trainer.train(TrainingSet.from_arrays(X_arr, y_encoded.reshape(-1)))
        self.classes_ = classes
        self.n_features_in_ = X_arr.shape[1]
        self.dag_metrics_ = list(trainer.dag_metrics)
        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        jungle = self.get_jungle()
        preds = jungle.predict_batch(np.asarray(ensure_numpy(X), dtype=np.float64))
        if np.any(preds == NO_PREDICTION):
            raise RuntimeError("Jungle produced no prediction for some rows")
        return self.classes_[preds]

    def get_jungle(self) -> Jungle:
        jungle = getattr(self, "jungle_", None)
        if jungle is None:
            raise RuntimeError("Estimator has not been fitted")
        return jungle
