"""Slot initialisation, threshold/assignment search and commit for one level."""

from __future__ import annotations

import numpy as np
import pytest
import torch

from decisionjungle.core.frontier import (
    child_count_for,
    commit_level,
    find_threshold,
    initialize_level,
    optimize_assignments,
    sample_features,
)
from decisionjungle.core.nodes import TrainingDAGNode
from decisionjungle.core.objectives import ChildRowEntropyErrorFunction


def make_nodes(labels: np.ndarray, groups: list[list[int]], class_count: int = 3) -> list[TrainingDAGNode]:
    return [TrainingDAGNode.from_rows(np.array(rows), labels, class_count) for rows in groups]


def test_child_count_is_bounded_by_width() -> None:
    assert child_count_for(3, 128) == 6
    assert child_count_for(100, 128) == 128
    assert child_count_for(1, 1) == 1


def test_pure_nodes_get_a_single_shared_slot() -> None:
    labels = np.array([0, 0, 1, 1, 2, 0, 1, 2, 2, 2])
    nodes = make_nodes(labels, [[0, 1], [2, 3, 4], [5, 6], [7, 8, 9]])
    child_count = child_count_for(len(nodes), 5)
    ordered = initialize_level(nodes, child_count, sort_parent_nodes=False)

    for node in ordered:
        assert node.left_histogram.mass == 0
        assert node.right_histogram == node.class_histogram
        assert node.threshold == float("-inf")
        if node.pure:
            assert node.temp_left == node.temp_right
        else:
            assert node.temp_left != node.temp_right
    # pure, impure, impure, pure -> 0 | 1 2 | 3 4 | 5 % 5
    assert [(n.temp_left, n.temp_right) for n in ordered] == [(0, 0), (1, 2), (3, 4), (0, 0)]


def test_initialize_sorts_by_entropy_descending() -> None:
    labels = np.array([0, 0, 0, 1, 0, 1, 2, 2])
    nodes = make_nodes(labels, [[0, 1], [2, 3], [4, 5, 6, 7]])
    ordered = initialize_level(nodes, 6, sort_parent_nodes=True)
    entropies = [node.entropy for node in ordered]
    assert entropies == sorted(entropies, reverse=True)
    assert ordered[-1].pure


def test_find_threshold_separates_two_classes() -> None:
    X = np.arange(10, dtype=np.float64).reshape(-1, 1)
    y = np.array([0] * 5 + [1] * 5)
    root = TrainingDAGNode.from_rows(np.arange(10), y, 2)
    row = initialize_level([root], 2)

    changed = find_threshold(root, row, 2, X, y, np.array([0]))

    assert changed
    assert root.feature_id == 0
    assert root.threshold == pytest.approx(4.5)
    assert root.left_histogram.to_list() == [5, 0]
    assert root.right_histogram.to_list() == [0, 5]
    assert ChildRowEntropyErrorFunction(row, 2).error() == pytest.approx(0.0)


def test_find_threshold_picks_informative_feature() -> None:
    rng = np.random.default_rng(1)
    y = np.repeat([0, 1], 20)
    X = np.column_stack([rng.normal(size=40), y * 3.0 + rng.normal(scale=0.1, size=40)])
    root = TrainingDAGNode.from_rows(np.arange(40), y, 2)
    row = initialize_level([root], 2)
    assert find_threshold(root, row, 2, X, y, np.array([0, 1]))
    assert root.feature_id == 1
    assert root.left_histogram.to_list() == [20, 0]


def test_find_threshold_rejects_constant_feature() -> None:
    X = np.ones((6, 1))
    y = np.array([0, 1, 0, 1, 0, 1])
    root = TrainingDAGNode.from_rows(np.arange(6), y, 2)
    row = initialize_level([root], 2)
    assert not find_threshold(root, row, 2, X, y, np.array([0]))
    assert root.threshold == float("-inf")


def test_assignment_search_groups_matching_pure_nodes() -> None:
    labels = np.array([0, 0, 0, 0, 1, 1])
    a, b, c = make_nodes(labels, [[0, 1], [2, 3], [4, 5]], class_count=2)
    row = initialize_level([a, b, c], 2, sort_parent_nodes=False)
    assert a.temp_left == c.temp_left

    moved = optimize_assignments(row, 2)

    assert moved > 0
    assert a.temp_left == b.temp_left
    assert a.temp_left != c.temp_left
    for node in row:
        assert node.temp_left == node.temp_right
    assert ChildRowEntropyErrorFunction(row, 2).error() == pytest.approx(0.0)


def test_commit_drops_empty_children_and_redirects() -> None:
    X = np.arange(6, dtype=np.float64).reshape(-1, 1)
    y = np.array([0, 1, 0, 1, 0, 1])
    root = TrainingDAGNode.from_rows(np.arange(6), y, 2)
    row = initialize_level([root], 2)
    assert (root.temp_left, root.temp_right) == (0, 1)

    children = commit_level(row, 2, X, y)

    assert len(children) == 1
    assert root.temp_left == root.temp_right == 0
    assert children[0].class_histogram.to_list() == [3, 3]
    assert root.size == 0


def test_commit_partitions_rows_into_shared_children() -> None:
    X = np.array([[0.0], [1.0], [2.0], [3.0]])
    y = np.array([0, 1, 0, 1])
    p1 = TrainingDAGNode.from_rows(np.array([0, 1]), y, 2)
    p2 = TrainingDAGNode.from_rows(np.array([2, 3]), y, 2)
    p1.feature_id, p1.threshold, p1.temp_left, p1.temp_right = 0, 0.5, 0, 1
    p2.feature_id, p2.threshold, p2.temp_left, p2.temp_right = 0, 2.5, 0, 1

    children = commit_level([p1, p2], 2, X, y)

    assert [child.class_histogram.to_list() for child in children] == [[2, 0], [0, 2]]
    assert all(child.pure for child in children)
    assert sorted(children[0].rows.tolist()) == [0, 2]
    assert (p1.temp_left, p1.temp_right) == (0, 1)
    assert (p2.temp_left, p2.temp_right) == (0, 1)


def test_sample_features_without_replacement() -> None:
    gen = torch.Generator()
    gen.manual_seed(3)
    sample = sample_features(10, 4, gen)
    assert sample.shape == (4,)
    assert len(set(sample.tolist())) == 4
    assert all(0 <= f < 10 for f in sample)
