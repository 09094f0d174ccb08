"""Configuration objects for decision jungle training."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass

from .exceptions import ConfigurationError


@dataclass(frozen=True, slots=True)
class JungleConfig:
    """Hyper-parameters steering jungle training.

    Parameters
    ----------
    num_dags:
        Number of independent DAGs trained for the ensemble.
    max_depth:
        Maximum number of levels grown below the root of each DAG.
    max_width:
        Maximum number of nodes per level. Once ``2 * |frontier|`` exceeds this
        value, parents start sharing child nodes.
    num_feature_samples:
        Number of features tried per threshold search. ``None`` uses
        ``ceil(sqrt(n_features))``.
    use_bagging:
        Train each DAG on a bootstrap sample (with replacement) of the
        training set instead of the full set.
    num_training_samples:
        Size of each bootstrap sample. ``None`` uses
        ``min(n_rows, floor(5 * n_rows / num_dags))``.
    max_level_iterations:
        Upper bound on threshold/assignment passes per level.
    sort_parent_nodes:
        Sort the frontier by descending entropy before handing out child slots.
    parallel:
        Train DAGs concurrently on a thread pool. Setting the environment
        variable ``DECISION_JUNGLE_DISABLE_PARALLEL=1`` forces sequential
        training regardless of this flag.
    n_jobs:
        Worker threads for parallel training. ``None`` uses the CPU count.
    random_state:
        Optional seed for feature subsampling and bootstrap sampling. ``None``
        seeds from system entropy.
    """

    num_dags: int = 1
    max_depth: int = 256
    max_width: int = 128
    num_feature_samples: int | None = None
    use_bagging: bool = False
    num_training_samples: int | None = None
    max_level_iterations: int = 55
    sort_parent_nodes: bool = True
    parallel: bool = True
    n_jobs: int | None = None
    random_state: int | None = None

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` for values training cannot use."""
        if self.num_dags < 1:
            raise ConfigurationError("num_dags must be >= 1")
        if self.max_depth < 1:
            raise ConfigurationError("max_depth must be >= 1")
        if self.max_width < 1:
            raise ConfigurationError("max_width must be >= 1")
        if self.max_level_iterations < 1:
            raise ConfigurationError("max_level_iterations must be >= 1")
        if self.num_feature_samples is not None and self.num_feature_samples < 1:
            raise ConfigurationError("num_feature_samples must be >= 1")
        if self.num_training_samples is not None and self.num_training_samples < 1:
            raise ConfigurationError("num_training_samples must be >= 1")
        if self.n_jobs is not None and self.n_jobs < 1:
            raise ConfigurationError("n_jobs must be >= 1")

    def resolve_feature_samples(self, num_features: int) -> int:
        """Return the per-search feature count for ``num_features`` columns."""
        if self.num_feature_samples is None:
            k = int(math.ceil(math.sqrt(num_features)))
        else:
            k = int(self.num_feature_samples)
        if k < 1 or k > num_features:
            raise ConfigurationError(
                f"num_feature_samples must be in [1, {num_features}], got {k}"
            )
        return k

    def resolve_training_samples(self, num_rows: int) -> int:
        """Return the bootstrap sample size for a training set of ``num_rows``."""
        if self.num_training_samples is not None:
            return int(self.num_training_samples)
        return max(1, min(num_rows, (5 * num_rows) // self.num_dags))

    def resolve_parallel(self) -> bool:
        if os.getenv("DECISION_JUNGLE_DISABLE_PARALLEL") == "1":
            return False
        return bool(self.parallel) and self.num_dags > 1

    def resolve_workers(self) -> int:
        if self.n_jobs is not None:
            return int(self.n_jobs)
        return os.cpu_count() or 1
