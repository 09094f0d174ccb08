"""Level-wise decision DAG training (LSearch) and the ensemble trainer."""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from time import perf_counter
from typing import Callable, List, Optional, Sequence

import numpy as np
import torch

from .config import JungleConfig
from .core.frontier import (
    child_count_for,
    commit_level,
    find_threshold,
    initialize_level,
    optimize_assignments,
    sample_features,
)
from .core.nodes import TrainingDAGNode
from .core.objectives import ChildRowEntropyErrorFunction, RowEntropyErrorFunction
from .data import TrainingSet
from .exceptions import ConfigurationError
from .metrics import training_error
from .model import NO_PREDICTION, DAGNode, DecisionDAG, Jungle

STOP_EPSILON = 1e-6

ProgressCallback = Callable[[int, int], None]


@dataclass(slots=True)
class LevelInstrumentation:
    level: int = 0
    parents: int = 0
    child_slots: int = 0
    children: int = 0
    tree_level: bool = False
    iterations: int = 0
    threshold_changes: int = 0
    assignment_changes: int = 0
    parent_entropy: float = 0.0
    child_entropy: float = 0.0
    committed: bool = False
    threshold_ms: float = 0.0
    assignment_ms: float = 0.0
    partition_ms: float = 0.0

    def to_dict(self) -> dict[str, int | float | bool]:
        return asdict(self)


class DAGTrainer:
    """Grows one decision DAG level by level.

    Parameters
    ----------
    config:
        Shared jungle configuration (depth, width, iterations, feature samples).
    training_set:
        Full training set. ``rows`` selects the examples this DAG trains on.
    rows:
        Row indices into ``training_set``; may contain repeats for bootstrap samples.
    class_count:
        Histogram size shared by every DAG in the jungle.
    generator:
        Random source for feature subsampling.
    """

    def __init__(
        self,
        config: JungleConfig,
        training_set: TrainingSet,
        *,
        rows: Optional[np.ndarray] = None,
        class_count: Optional[int] = None,
        generator: Optional[torch.Generator] = None,
    ) -> None:
        self.config = config
        self._features = training_set.features
        self._labels = training_set.labels
        if rows is None:
            rows = np.arange(len(training_set), dtype=np.int64)
        self._rows = np.asarray(rows, dtype=np.int64)
        if self._rows.size == 0:
            raise ConfigurationError("cannot train a DAG on an empty training set")
        self._class_count = int(class_count if class_count is not None else training_set.class_count)
        self._num_features = training_set.feature_dimension
        self._num_feature_samples = config.resolve_feature_samples(self._num_features)
        if generator is None:
            generator = torch.Generator()
            if config.random_state is not None:
                generator.manual_seed(int(config.random_state))
            else:
                generator.seed()
        self._rng = generator
        self._logger = logging.getLogger(__name__)
        self._level_logs: list[dict[str, object]] = []

    @property
    def level_logs(self) -> Sequence[dict[str, object]]:
        return self._level_logs

    def train(self) -> DecisionDAG:
        root = TrainingDAGNode.from_rows(self._rows, self._labels, self._class_count)
        arena: List[TrainingDAGNode] = [root]
        root.index = 0
        frontier: List[TrainingDAGNode] = [root]

        for level in range(1, self.config.max_depth + 1):
            if all(node.pure for node in frontier):
                break
            children = self.train_level(frontier, level)
            if not children:
                break
            for child in children:
                child.index = len(arena)
                arena.append(child)
            for parent in frontier:
                parent.left = children[parent.temp_left].index
                parent.right = children[parent.temp_right].index
            frontier = children

        return self._freeze(arena)

    def train_level(self, parents: Sequence[TrainingDAGNode], level: int = 0) -> List[TrainingDAGNode]:
        """Optimise one level; return the child row, or ``[]`` when growth stops."""
        stats = LevelInstrumentation(level=level, parents=len(parents))
        child_count = child_count_for(len(parents), self.config.max_width)
        stats.child_slots = child_count
        row = initialize_level(parents, child_count, sort_parent_nodes=self.config.sort_parent_nodes)
        tree_level = child_count == 2 * len(row)
        stats.tree_level = tree_level

        while True:
            stats.iterations += 1
            changed = False
            t0 = perf_counter()
            for node in row:
                if node.pure:
                    continue
                feature_ids = sample_features(self._num_features, self._num_feature_samples, self._rng)
                if find_threshold(node, row, child_count, self._features, self._labels, feature_ids):
                    stats.threshold_changes += 1
                    changed = True
            stats.threshold_ms += (perf_counter() - t0) * 1000.0
            if tree_level:
                break
            t0 = perf_counter()
            moved = optimize_assignments(row, child_count)
            stats.assignment_ms += (perf_counter() - t0) * 1000.0
            stats.assignment_changes += moved
            if moved:
                changed = True
            if not changed or stats.iterations >= self.config.max_level_iterations:
                break

        stats.parent_entropy = RowEntropyErrorFunction(row).error()
        stats.child_entropy = ChildRowEntropyErrorFunction(row, child_count).error()
        children: List[TrainingDAGNode] = []
        if stats.parent_entropy - stats.child_entropy > STOP_EPSILON:
            t0 = perf_counter()
            children = commit_level(row, child_count, self._features, self._labels)
            stats.partition_ms += (perf_counter() - t0) * 1000.0
            stats.committed = True
            stats.children = len(children)

        level_log = stats.to_dict()
        self._level_logs.append(level_log)
        if self._logger.isEnabledFor(logging.INFO):
            self._logger.info(json.dumps(level_log))
        return children

    @staticmethod
    def _freeze(arena: Sequence[TrainingDAGNode]) -> DecisionDAG:
        dag = DecisionDAG()
        for node in arena:
            if node.left is None:
                dag.add_node(DAGNode(class_label=node.class_label, class_histogram=node.class_histogram))
            else:
                dag.add_node(
                    DAGNode(
                        feature_id=node.feature_id,
                        threshold=node.threshold,
                        left=node.left,
                        right=node.right,
                        class_label=NO_PREDICTION,
                    )
                )
        return dag


class JungleTrainer:
    """Trains ``num_dags`` independent DAGs, optionally bagged and in parallel."""

    def __init__(self, config: JungleConfig) -> None:
        config.validate()
        self.config = config
        self._logger = logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._dag_metrics: list[dict[str, float]] = []
        self._validation_errors: list[float] = []

    @property
    def dag_metrics(self) -> Sequence[dict[str, float]]:
        return self._dag_metrics

    @property
    def validation_errors(self) -> Sequence[float]:
        return self._validation_errors

    def train(
        self,
        training_set: TrainingSet,
        *,
        report_progress: Optional[ProgressCallback] = None,
        validation_set: Optional[TrainingSet] = None,
    ) -> Jungle:
        self._validate(training_set, validation_set)
        config = self.config
        num_features = training_set.feature_dimension
        config.resolve_feature_samples(num_features)
        class_count = training_set.class_count

        master = torch.Generator()
        if config.random_state is not None:
            master.manual_seed(int(config.random_state))
        else:
            master.seed()
        seeds = torch.randint(0, 2**62, (config.num_dags,), generator=master).tolist()

        self._dag_metrics = []
        self._validation_errors = []
        finished: dict[int, DecisionDAG] = {}

        def train_one(dag_idx: int) -> None:
            start = perf_counter()
            generator = torch.Generator()
            generator.manual_seed(int(seeds[dag_idx]))
            rows = self._sample_rows(len(training_set), generator)
            trainer = DAGTrainer(
                config,
                training_set,
                rows=rows,
                class_count=class_count,
                generator=generator,
            )
            dag = trainer.train()
            elapsed = perf_counter() - start
            with self._lock:
                finished[dag_idx] = dag
                metrics: dict[str, float] = {
                    "dag": dag_idx,
                    "nodes": dag.node_count(),
                    "leaves": dag.leaf_count(),
                    "levels": sum(1 for log in trainer.level_logs if log["committed"]),
                    "rows": int(rows.size),
                    "seconds": elapsed,
                }
                if validation_set is not None:
                    partial = Jungle([finished[i] for i in sorted(finished)])
                    metrics["validation_error"] = training_error(partial, validation_set)
                    self._validation_errors.append(metrics["validation_error"])
                self._dag_metrics.append(metrics)
                if self._logger.isEnabledFor(logging.INFO):
                    self._logger.info(json.dumps(metrics))
                if report_progress is not None:
                    report_progress(len(finished), config.num_dags)

        if config.resolve_parallel():
            with ThreadPoolExecutor(max_workers=config.resolve_workers()) as executor:
                futures = [executor.submit(train_one, dag_idx) for dag_idx in range(config.num_dags)]
                for future in futures:
                    future.result()
        else:
            for dag_idx in range(config.num_dags):
                train_one(dag_idx)

        return Jungle([finished[i] for i in range(config.num_dags)])

    # Internals ----------------------------------------------------------

    def _sample_rows(self, num_rows: int, generator: torch.Generator) -> np.ndarray:
        if not self.config.use_bagging:
            return np.arange(num_rows, dtype=np.int64)
        count = self.config.resolve_training_samples(num_rows)
        sample = torch.randint(0, num_rows, (count,), generator=generator)
        return sample.numpy().astype(np.int64)

    @staticmethod
    def _validate(training_set: TrainingSet, validation_set: Optional[TrainingSet]) -> None:
        if len(training_set) == 0:
            raise ConfigurationError("training set is empty")
        if training_set.feature_dimension < 1:
            raise ConfigurationError("training examples need at least one feature")
        if int(training_set.labels.min()) < 0:
            raise ConfigurationError("all class labels must be >= 0")
        if not np.all(np.isfinite(training_set.features)):
            raise ConfigurationError("features must be finite")
        if validation_set is not None and len(validation_set) > 0:
            if validation_set.feature_dimension != training_set.feature_dimension:
                raise ConfigurationError(
                    "validation set feature dimension "
                    f"{validation_set.feature_dimension} != {training_set.feature_dimension}"
                )
