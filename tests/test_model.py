import numpy as np
import pytest

from decisionjungle.core.histogram import ClassHistogram
from decisionjungle.model import NO_PREDICTION, DAGNode, DecisionDAG, Jungle


def leaf(label: int, counts: list[int]) -> DAGNode:
    return DAGNode(class_label=label, class_histogram=ClassHistogram.from_counts(counts))


def single_leaf_dag(label: int, counts: list[int]) -> DecisionDAG:
    return DecisionDAG(nodes=[leaf(label, counts)])


def shared_dag() -> DecisionDAG:
    """Root splits on x0, both children split on x1 into the same two leaves."""
    dag = DecisionDAG()
    dag.add_node(DAGNode(feature_id=0, threshold=0.0, left=1, right=2))
    dag.add_node(DAGNode(feature_id=1, threshold=0.0, left=3, right=4))
    dag.add_node(DAGNode(feature_id=1, threshold=0.5, left=3, right=4))
    dag.add_node(leaf(0, [3, 0]))
    dag.add_node(leaf(1, [1, 2]))
    return dag


def test_empty_jungle_returns_no_prediction() -> None:
    jungle = Jungle()
    assert jungle.predict(np.array([0.0, 1.0])) == NO_PREDICTION
    np.testing.assert_array_equal(jungle.predict_batch(np.zeros((3, 2))), [NO_PREDICTION] * 3)


def test_shared_children_are_counted_once() -> None:
    dag = shared_dag()
    assert dag.reachable() == [0, 1, 3, 4, 2]
    assert dag.node_count() == 5
    assert dag.leaf_count() == 2


def test_routing_uses_less_or_equal() -> None:
    dag = shared_dag()
    assert dag.leaf_index(np.array([0.0, 0.0])) == 3
    assert dag.leaf_index(np.array([0.0, 0.1])) == 4
    assert dag.leaf_index(np.array([1.0, 0.5])) == 3
    assert dag.leaf_index(np.array([1.0, 0.6])) == 4


def test_predict_row_confidence() -> None:
    result = shared_dag().predict_row(np.array([-1.0, 1.0]))
    assert result.class_label == 1
    assert result.confidence == pytest.approx(2 / 3)


@pytest.mark.parametrize(
    "labels, expected",
    [
        ([2, 1], 1),
        ([2, 2, 1], 2),
        ([3, 0, 3, 0], 0),
        ([1], 1),
    ],
)
def test_vote_ties_resolve_to_lowest_label(labels, expected) -> None:
    jungle = Jungle([single_leaf_dag(label, [1] * 4) for label in labels])
    x = np.zeros(1)
    assert jungle.predict(x) == expected
    assert jungle.predict_batch(x.reshape(1, -1))[0] == expected


def test_leaf_without_examples_of_its_label_does_not_vote() -> None:
    jungle = Jungle([single_leaf_dag(0, [0, 3]), single_leaf_dag(0, [0, 3]), single_leaf_dag(1, [0, 1])])
    assert jungle.predict(np.zeros(1)) == 1
    only_silent = Jungle([single_leaf_dag(0, [0, 3])])
    assert only_silent.predict(np.zeros(1)) == NO_PREDICTION
    assert only_silent.predict_batch(np.zeros((2, 1))).tolist() == [NO_PREDICTION] * 2


def test_flatten_structure_and_cache() -> None:
    jungle = Jungle([shared_dag(), single_leaf_dag(1, [0, 4])])
    flat = jungle.flatten()

    np.testing.assert_array_equal(flat.roots, [0, 5])
    np.testing.assert_array_equal(flat.lefts, [1, 3, 3, -1, -1, -1])
    np.testing.assert_array_equal(flat.rights, [2, 4, 4, -1, -1, -1])
    np.testing.assert_array_equal(flat.is_leaf, [0, 0, 0, 1, 1, 1])
    np.testing.assert_array_equal(flat.labels, [-1, -1, -1, 0, 1, 1])
    np.testing.assert_array_equal(flat.votes, [0, 0, 0, 1, 1, 1])

    # Cached result should be reused until the jungle changes
    assert jungle.flatten() is flat
    jungle.add_dag(single_leaf_dag(0, [1, 0]))
    assert jungle.flatten() is not flat
    assert jungle.node_count() == 7


def test_silent_leaf_with_out_of_range_label_is_ignored_by_batch() -> None:
    jungle = Jungle([single_leaf_dag(10**12, [1]), single_leaf_dag(0, [0, 2])])
    X = np.zeros((4, 1))
    assert jungle.predict(X[0]) == NO_PREDICTION
    np.testing.assert_array_equal(jungle.predict_batch(X), [NO_PREDICTION] * 4)

    mixed = Jungle([single_leaf_dag(10**12, [1]), single_leaf_dag(1, [0, 2])])
    assert mixed.predict(X[0]) == 1
    np.testing.assert_array_equal(mixed.predict_batch(X), [1] * 4)
    assert mixed.dags[0].predict_row(X[0]).confidence == 0.0
