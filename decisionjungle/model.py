"""Model structures and inference utilities for decision jungles."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence

import numpy as np

from .core.histogram import ClassHistogram

NO_PREDICTION = -1


@dataclass
class FlattenedJungle:
    """Contiguous representation of the ensemble for vectorised traversal."""

    roots: np.ndarray
    features: np.ndarray
    thresholds: np.ndarray
    lefts: np.ndarray
    rights: np.ndarray
    is_leaf: np.ndarray
    labels: np.ndarray
    votes: np.ndarray


@dataclass(frozen=True, slots=True)
class PredictionResult:
    """Leaf label reached by one DAG plus the leaf's share of that label."""

    class_label: int
    confidence: float = 0.0


@dataclass(slots=True, eq=False)
class DAGNode:
    """Single node of a decision DAG.

    ``left``/``right`` index the owning :class:`DecisionDAG` arena and may be
    shared by several parents. A node is a leaf iff ``left is None``.
    """

    feature_id: int = 0
    threshold: float = 0.0
    left: Optional[int] = None
    right: Optional[int] = None
    class_label: int = NO_PREDICTION
    class_histogram: Optional[ClassHistogram] = None
    node_id: int = 0

    @property
    def is_leaf(self) -> bool:
        return self.left is None

    def casts_vote(self) -> bool:
        """Leaf whose histogram holds at least one example of its label."""
        if not self.is_leaf or self.class_histogram is None or self.class_label < 0:
            return False
        if self.class_label >= self.class_histogram.size:
            return False
        return self.class_histogram.get(self.class_label) > 0


@dataclass
class DecisionDAG:
    """Rooted decision DAG stored as a node arena."""

    nodes: List[DAGNode] = field(default_factory=list)
    root: int = 0

    def add_node(self, node: DAGNode) -> int:
        """Append ``node`` and return its index."""
        self.nodes.append(node)
        return len(self.nodes) - 1

    def leaf_index(self, x: Sequence[float] | np.ndarray) -> int:
        """Route ``x`` from the root to a leaf and return the leaf's index."""
        index = self.root
        node = self.nodes[index]
        while node.left is not None:
            if x[node.feature_id] <= node.threshold:
                index = node.left
            else:
                index = node.right  # type: ignore[assignment]
            node = self.nodes[index]
        return index

    def predict_row(self, x: Sequence[float] | np.ndarray) -> PredictionResult:
        leaf = self.nodes[self.leaf_index(x)]
        histogram = leaf.class_histogram
        if histogram is None or histogram.mass == 0 or not 0 <= leaf.class_label < histogram.size:
            return PredictionResult(leaf.class_label, 0.0)
        return PredictionResult(leaf.class_label, histogram.get(leaf.class_label) / histogram.mass)

    def reachable(self) -> List[int]:
        """Indices reachable from the root, each listed once, in depth-first order."""
        if not self.nodes:
            return []
        seen: set[int] = set()
        order: List[int] = []
        stack = [self.root]
        while stack:
            index = stack.pop()
            if index in seen:
                continue
            seen.add(index)
            order.append(index)
            node = self.nodes[index]
            if node.left is not None:
                stack.append(node.right)  # type: ignore[arg-type]
                stack.append(node.left)
        return order

    def node_count(self) -> int:
        return len(self.reachable())

    def leaf_count(self) -> int:
        return sum(1 for index in self.reachable() if self.nodes[index].is_leaf)


class Jungle:
    """Ensemble of decision DAGs combined by unweighted majority vote."""

    def __init__(self, dags: Optional[Sequence[DecisionDAG]] = None) -> None:
        self._dags: List[DecisionDAG] = list(dags or [])
        self._flattened: Optional[FlattenedJungle] = None

    @property
    def dags(self) -> Sequence[DecisionDAG]:
        return tuple(self._dags)

    def add_dag(self, dag: DecisionDAG) -> None:
        self._dags.append(dag)
        self._flattened = None

    def __len__(self) -> int:
        return len(self._dags)

    def __iter__(self) -> Iterator[DecisionDAG]:
        return iter(self._dags)

    def node_count(self) -> int:
        return sum(dag.node_count() for dag in self._dags)

    def leaf_count(self) -> int:
        return sum(dag.leaf_count() for dag in self._dags)

    def predict(self, x: Sequence[float] | np.ndarray) -> int:
        """Majority label over all DAGs, ``NO_PREDICTION`` when no DAG votes.

        A DAG votes for its leaf label only if the leaf histogram holds that
        label. Ties go to the lowest label.
        """
        votes: dict[int, int] = {}
        for dag in self._dags:
            result = dag.predict_row(x)
            if result.confidence > 0:
                votes[result.class_label] = votes.get(result.class_label, 0) + 1
        best_label = NO_PREDICTION
        best_votes = 0
        for label in sorted(votes):
            if votes[label] > best_votes:
                best_label, best_votes = label, votes[label]
        return best_label

    def predict_batch(self, X: np.ndarray) -> np.ndarray:
        """Vectorised :meth:`predict` over the rows of ``X``."""
        X_arr = np.asarray(X, dtype=np.float64)
        if X_arr.ndim != 2:
            raise ValueError("X must be 2D")
        n_rows = X_arr.shape[0]
        if not self._dags or n_rows == 0:
            return np.full(n_rows, NO_PREDICTION, dtype=np.int64)

        flat = self.flatten()
        class_count = int(flat.labels[flat.votes == 1].max(initial=NO_PREDICTION)) + 1
        if class_count <= 0:
            return np.full(n_rows, NO_PREDICTION, dtype=np.int64)
        tally = np.zeros((n_rows, class_count), dtype=np.int64)
        rows = np.arange(n_rows, dtype=np.int64)
        for root in flat.roots:
            node_idx = np.full(n_rows, root, dtype=np.int64)
            active = rows
            while active.size > 0:
                nodes = node_idx[active]
                inner = flat.is_leaf[nodes] == 0
                active = active[inner]
                nodes = nodes[inner]
                if active.size == 0:
                    break
                go_left = X_arr[active, flat.features[nodes]] <= flat.thresholds[nodes]
                node_idx[active] = np.where(go_left, flat.lefts[nodes], flat.rights[nodes])
            voting = flat.votes[node_idx].astype(bool)
            np.add.at(tally, (rows[voting], flat.labels[node_idx[voting]]), 1)

        preds = np.argmax(tally, axis=1).astype(np.int64)
        preds[tally.max(axis=1) == 0] = NO_PREDICTION
        return preds

    def flatten(self) -> FlattenedJungle:
        """Return a flattened view of the ensemble, cached until a DAG is added."""

        if self._flattened is not None:
            return self._flattened

        n_dags = len(self._dags)
        roots = np.zeros(n_dags, dtype=np.int64)
        total_nodes = int(sum(len(dag.nodes) for dag in self._dags))

        features = np.zeros(total_nodes, dtype=np.int64)
        thresholds = np.zeros(total_nodes, dtype=np.float64)
        lefts = np.full(total_nodes, -1, dtype=np.int64)
        rights = np.full(total_nodes, -1, dtype=np.int64)
        is_leaf = np.zeros(total_nodes, dtype=np.uint8)
        labels = np.full(total_nodes, NO_PREDICTION, dtype=np.int64)
        votes = np.zeros(total_nodes, dtype=np.uint8)

        cursor = 0
        for dag_idx, dag in enumerate(self._dags):
            roots[dag_idx] = cursor + dag.root
            for local_idx, node in enumerate(dag.nodes):
                global_idx = cursor + local_idx
                features[global_idx] = node.feature_id
                thresholds[global_idx] = node.threshold
                if node.left is not None:
                    lefts[global_idx] = cursor + int(node.left)
                    rights[global_idx] = cursor + int(node.right)  # type: ignore[arg-type]
                else:
                    is_leaf[global_idx] = 1
                    labels[global_idx] = node.class_label
                    votes[global_idx] = 1 if node.casts_vote() else 0
            cursor += len(dag.nodes)

        flattened = FlattenedJungle(
            roots=roots,
            features=features,
            thresholds=thresholds,
            lefts=lefts,
            rights=rights,
            is_leaf=is_leaf,
            labels=labels,
            votes=votes,
        )
        self._flattened = flattened
        return flattened
