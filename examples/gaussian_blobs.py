"""Benchmark decision jungles against scikit-learn tree ensembles on four Gaussian blobs."""

from __future__ import annotations

import logging
import sys
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List

import numpy as np
from sklearn.ensemble import RandomForestClassifier
from sklearn.metrics import accuracy_score
from sklearn.model_selection import train_test_split
from sklearn.tree import DecisionTreeClassifier

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from decisionjungle import JungleConfig, JungleTrainer, TrainingSet, load_jungle, save_jungle
from decisionjungle.metrics import confusion_matrix, training_error


N_PER_CLASS = 500
CENTERS = np.array([[-1.0, 25.0], [1.0, 1.0], [-1.0, 1.0], [1.0, -1.0]])
STD = 0.5
SEED = 123

NUM_DAGS = 8
MAX_DEPTH = 12
MAX_WIDTH = 16


@dataclass
class BenchmarkResult:
    name: str
    fit_time: float
    predict_time: float
    accuracy: float


def generate_data() -> tuple[np.ndarray, np.ndarray]:
    """Four isotropic blobs labelled 0-3."""
    rng = np.random.default_rng(SEED)
    X = np.concatenate([rng.normal(center, STD, size=(N_PER_CLASS, 2)) for center in CENTERS])
    y = np.repeat(np.arange(len(CENTERS)), N_PER_CLASS)
    return X, y


def benchmark(
    name: str,
    fit_fn: Callable[[], None],
    predict_fn: Callable[[], np.ndarray],
    y_true: np.ndarray,
) -> BenchmarkResult:
    """Measure fit/predict time and compute accuracy."""
    t0 = time.perf_counter()
    fit_fn()
    fit_time = time.perf_counter() - t0
    t1 = time.perf_counter()
    preds = predict_fn()
    predict_time = time.perf_counter() - t1
    return BenchmarkResult(name, fit_time, predict_time, float(accuracy_score(y_true, preds)))


def main() -> None:
    logging.basicConfig(level=logging.WARNING)
    X, y = generate_data()
    X_train, X_test, y_train, y_test = train_test_split(X, y, test_size=0.25, random_state=SEED, stratify=y)
    train_set = TrainingSet.from_arrays(X_train, y_train)
    test_set = TrainingSet.from_arrays(X_test, y_test)

    config = JungleConfig(num_dags=NUM_DAGS, max_depth=MAX_DEPTH, max_width=MAX_WIDTH, use_bagging=True, random_state=SEED)
    trainer = JungleTrainer(config)
    state: dict[str, object] = {}

    def progress(current: int, total: int) -> None:
        print(f"  trained DAG {current}/{total}")

    results: List[BenchmarkResult] = []
    results.append(
        benchmark(
            "DecisionJungle",
            lambda: state.update(jungle=trainer.train(train_set, report_progress=progress, validation_set=test_set)),
            lambda: state["jungle"].predict_batch(X_test),  # type: ignore[union-attr]
            y_test,
        )
    )

    tree = DecisionTreeClassifier(random_state=SEED)
    results.append(benchmark("DecisionTree", lambda: tree.fit(X_train, y_train), lambda: tree.predict(X_test), y_test))

    forest = RandomForestClassifier(n_estimators=NUM_DAGS, random_state=SEED)
    results.append(benchmark("RandomForest", lambda: forest.fit(X_train, y_train), lambda: forest.predict(X_test), y_test))

    jungle = state["jungle"]
    print(f"\nJungle: {len(jungle)} DAGs, {jungle.node_count()} nodes, {jungle.leaf_count()} leaves")  # type: ignore[attr-defined]
    print(f"Training error: {training_error(jungle, train_set):.4f}")  # type: ignore[arg-type]
    print("Confusion matrix (test):")
    print(confusion_matrix(jungle, test_set))  # type: ignore[arg-type]

    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "jungle.csv"
        save_jungle(jungle, path)  # type: ignore[arg-type]
        restored = load_jungle(path)
        same = np.array_equal(restored.predict_batch(X_test), jungle.predict_batch(X_test))  # type: ignore[attr-defined]
        print(f"Round trip through {path.name}: predictions identical = {same}")

    print("\nModel            Fit (s)   Predict (s)   Accuracy")
    for res in results:
        print(f"{res.name:<16} {res.fit_time:8.3f} {res.predict_time:12.4f} {res.accuracy:10.4f}")


if __name__ == "__main__":
    main()
