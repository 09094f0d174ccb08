"""Per-level LSearch steps: slot initialisation, threshold and assignment search, commit."""

from __future__ import annotations

from typing import List, Sequence

import numpy as np
import torch

from .nodes import TrainingDAGNode
from .objectives import AssignmentEntropyErrorFunction, ThresholdEntropyErrorFunction

MIN_THRESHOLD_GAP = 1e-6
# Smaller error differences are treated as ties so float noise cannot keep a level cycling.
_IMPROVEMENT_TOL = 1e-10


def child_count_for(num_parents: int, max_width: int) -> int:
    return min(2 * num_parents, max_width)


def sample_features(num_features: int, k: int, generator: torch.Generator) -> np.ndarray:
    """Draw ``k`` distinct feature ids uniformly without replacement."""
    perm = torch.randperm(num_features, generator=generator)
    return perm[:k].numpy().astype(np.int64)


def initialize_level(
    parents: Sequence[TrainingDAGNode],
    child_count: int,
    *,
    sort_parent_nodes: bool = True,
) -> List[TrainingDAGNode]:
    """Hand out child slots round-robin and reset every candidate split.

    Impure parents take two consecutive slots, pure parents a single slot shared
    by both pointers. Returns the parents in the order slots were assigned.
    """
    ordered = list(parents)
    if sort_parent_nodes:
        ordered.sort(key=lambda node: node.entropy, reverse=True)
    cursor = 0
    for node in ordered:
        node.reset_left_right_histogram()
        if node.pure:
            node.temp_left = cursor % child_count
            node.temp_right = cursor % child_count
            cursor += 1
        else:
            node.temp_left = cursor % child_count
            node.temp_right = (cursor + 1) % child_count
            cursor += 2
    return ordered


def find_threshold(
    node: TrainingDAGNode,
    row: Sequence[TrainingDAGNode],
    child_count: int,
    features: np.ndarray,
    labels: np.ndarray,
    feature_ids: np.ndarray,
) -> bool:
    """Search ``feature_ids`` for a split of ``node`` that lowers the row error.

    Returns ``True`` when the node's feature/threshold changed.
    """
    if node.size < 2 or node.pure or node.is_coherent:
        return False
    error_fn = ThresholdEntropyErrorFunction(row, node, child_count)
    best_error = error_fn.current_error()
    best_feature = node.feature_id
    best_threshold = node.threshold
    changed = False

    for feature in feature_ids:
        values = features[node.rows, feature]
        order = np.argsort(values, kind="stable")
        sorted_values = values[order]
        gaps = np.diff(sorted_values)
        valid = gaps >= MIN_THRESHOLD_GAP
        if not valid.any():
            continue
        errors = error_fn.sweep(labels[node.rows[order]])[:-1]
        errors = np.where(valid, errors, np.inf)
        k = int(np.argmin(errors))
        if errors[k] < best_error - _IMPROVEMENT_TOL:
            best_error = float(errors[k])
            best_feature = int(feature)
            best_threshold = float((sorted_values[k] + sorted_values[k + 1]) / 2.0)
            changed = True

    if changed:
        node.feature_id = best_feature
        node.threshold = best_threshold
        node.update_left_right_histogram(features, labels)
    return changed


def find_left_assignment(node: TrainingDAGNode, error_fn: AssignmentEntropyErrorFunction) -> bool:
    best_slot = node.temp_left
    best_error = error_fn.error()
    for slot in range(error_fn.child_count):
        current = error_fn.error(slot, node.temp_right)
        if current < best_error - _IMPROVEMENT_TOL:
            best_slot, best_error = slot, current
    changed = best_slot != node.temp_left
    node.temp_left = best_slot
    return changed


def find_right_assignment(node: TrainingDAGNode, error_fn: AssignmentEntropyErrorFunction) -> bool:
    best_slot = node.temp_right
    best_error = error_fn.error()
    for slot in range(error_fn.child_count):
        current = error_fn.error(node.temp_left, slot)
        if current < best_error - _IMPROVEMENT_TOL:
            best_slot, best_error = slot, current
    changed = best_slot != node.temp_right
    node.temp_right = best_slot
    return changed


def find_coherent_assignment(node: TrainingDAGNode, error_fn: AssignmentEntropyErrorFunction) -> bool:
    """Move both pointers of a pure node to the best shared slot."""
    best_slot = node.temp_left
    best_error = error_fn.error(best_slot, best_slot)
    for slot in range(error_fn.child_count):
        current = error_fn.error(slot, slot)
        if current < best_error - _IMPROVEMENT_TOL:
            best_slot, best_error = slot, current
    changed = best_slot != node.temp_left or best_slot != node.temp_right
    node.temp_left = best_slot
    node.temp_right = best_slot
    return changed


def optimize_assignments(row: Sequence[TrainingDAGNode], child_count: int) -> int:
    """One assignment pass over ``row``; returns the number of pointers moved."""
    moved = 0
    for node in row:
        if node.size == 0:
            continue
        error_fn = AssignmentEntropyErrorFunction(row, node, child_count)
        if node.pure:
            moved += int(find_coherent_assignment(node, error_fn))
        else:
            moved += int(find_left_assignment(node, error_fn))
            moved += int(find_right_assignment(node, error_fn))
    return moved


def commit_level(
    row: Sequence[TrainingDAGNode],
    child_count: int,
    features: np.ndarray,
    labels: np.ndarray,
) -> List[TrainingDAGNode]:
    """Partition every parent's rows into its slots and build the child row.

    Slots that receive no rows are dropped; a pointer into a dropped slot is
    redirected to the parent's other slot. On return each parent's
    ``temp_left``/``temp_right`` index the returned list.
    """
    class_count = row[0].class_histogram.size
    buckets: list[list[np.ndarray]] = [[] for _ in range(child_count)]
    for node in row:
        left_rows, right_rows = node.split_rows(features)
        if left_rows.size:
            buckets[node.temp_left].append(left_rows)
        if right_rows.size:
            buckets[node.temp_right].append(right_rows)

    survivors = [slot for slot in range(child_count) if buckets[slot]]
    remap = {slot: position for position, slot in enumerate(survivors)}
    children = [
        TrainingDAGNode.from_rows(np.concatenate(buckets[slot]), labels, class_count)
        for slot in survivors
    ]

    for node in row:
        left = remap.get(node.temp_left)
        right = remap.get(node.temp_right)
        if left is None:
            left = right
        if right is None:
            right = left
        if left is None or right is None:
            raise RuntimeError("parent without rows reached commit")
        node.temp_left = left
        node.temp_right = right
        node.release_rows()
    return children
