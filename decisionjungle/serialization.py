"""Flat CSV node table for persisting jungles.

Each line describes one physical node::

    nodeID,isRoot,featureID,threshold,leftChildID,rightChildID,classLabel,"h0,h1,...,hK"

IDs are assigned per jungle starting at 1; ``0`` in both child columns marks a
leaf, which then carries its label and quoted histogram. Internal nodes leave
the last two fields empty.
"""

from __future__ import annotations

import csv
import io
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Tuple

from .core.histogram import ClassHistogram
from .exceptions import ModelFormatError
from .model import NO_PREDICTION, DAGNode, DecisionDAG, Jungle

FIELD_COUNT = 8
LEAF_SENTINEL = 0


def _assign_ids(jungle: Jungle) -> List[Tuple[DecisionDAG, int, bool]]:
    """Number every reachable node once; returns ``(dag, index, is_root)`` in ID order."""
    ordered: List[Tuple[DecisionDAG, int, bool]] = []
    next_id = 1
    for dag in jungle:
        for index in dag.reachable():
            node = dag.nodes[index]
            node.node_id = next_id
            next_id += 1
            ordered.append((dag, index, index == dag.root))
    return ordered


def _format_row(dag: DecisionDAG, index: int, is_root: bool) -> List[str]:
    node = dag.nodes[index]
    common = [str(node.node_id), "1" if is_root else "0", str(node.feature_id), repr(float(node.threshold))]
    if node.is_leaf:
        histogram = node.class_histogram.to_list() if node.class_histogram is not None else []
        return common + [
            str(LEAF_SENTINEL),
            str(LEAF_SENTINEL),
            str(node.class_label),
            '"' + ",".join(str(count) for count in histogram) + '"',
        ]
    left = dag.nodes[node.left]  # type: ignore[index]
    right = dag.nodes[node.right]  # type: ignore[index]
    return common + [str(left.node_id), str(right.node_id), "", ""]


def write_jungle(jungle: Jungle, handle: io.TextIOBase) -> None:
    for dag, index, is_root in _assign_ids(jungle):
        handle.write(",".join(_format_row(dag, index, is_root)) + "\n")


def dumps(jungle: Jungle) -> str:
    buffer = io.StringIO()
    write_jungle(jungle, buffer)
    return buffer.getvalue()


def save_jungle(jungle: Jungle, path: str | Path) -> None:
    with open(path, "w", newline="") as handle:
        write_jungle(jungle, handle)


# Loading ----------------------------------------------------------------


def _parse_int(value: str, name: str, line_no: int) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ModelFormatError(f"line {line_no}: {name} must be an integer, got {value!r}") from exc


def _parse_row(row: List[str], line_no: int) -> Tuple[int, bool, DAGNode, int, int]:
    if len(row) != FIELD_COUNT:
        raise ModelFormatError(f"line {line_no}: expected {FIELD_COUNT} fields, got {len(row)}")
    node_id = _parse_int(row[0], "nodeID", line_no)
    if node_id <= 0:
        raise ModelFormatError(f"line {line_no}: nodeID must be positive")
    if row[1] not in ("0", "1"):
        raise ModelFormatError(f"line {line_no}: isRoot must be 0 or 1")
    feature_id = _parse_int(row[2], "featureID", line_no)
    try:
        threshold = float(row[3])
    except ValueError as exc:
        raise ModelFormatError(f"line {line_no}: threshold must be a float") from exc
    left_id = _parse_int(row[4], "leftChildID", line_no)
    right_id = _parse_int(row[5], "rightChildID", line_no)
    if left_id < 0 or right_id < 0:
        raise ModelFormatError(f"line {line_no}: child IDs must be non-negative")
    if (left_id == LEAF_SENTINEL) != (right_id == LEAF_SENTINEL):
        raise ModelFormatError(f"line {line_no}: exactly one child ID is the leaf sentinel")

    node = DAGNode(feature_id=feature_id, threshold=threshold, node_id=node_id)
    if left_id == LEAF_SENTINEL:
        node.class_label = _parse_int(row[6], "classLabel", line_no)
        cells = [cell for cell in row[7].split(",") if cell.strip()]
        counts = [_parse_int(cell.strip(), "histogram bin", line_no) for cell in cells]
        try:
            node.class_histogram = ClassHistogram.from_counts(counts)
        except ValueError as exc:
            raise ModelFormatError(f"line {line_no}: {exc}") from exc
    else:
        node.class_label = NO_PREDICTION
    return node_id, row[1] == "1", node, left_id, right_id


def read_jungle(handle: io.TextIOBase) -> Jungle:
    """Rebuild a jungle: create all nodes first, then resolve child IDs."""
    nodes: Dict[int, Tuple[DAGNode, int, int]] = {}
    roots: List[int] = []
    for line_no, row in enumerate(csv.reader(handle), start=1):
        if not row:
            continue
        node_id, is_root, node, left_id, right_id = _parse_row(row, line_no)
        if node_id in nodes:
            raise ModelFormatError(f"line {line_no}: duplicate nodeID {node_id}")
        nodes[node_id] = (node, left_id, right_id)
        if is_root:
            roots.append(node_id)

    for node_id, (_, left_id, right_id) in nodes.items():
        for child_id in (left_id, right_id):
            if child_id != LEAF_SENTINEL and child_id not in nodes:
                raise ModelFormatError(f"node {node_id} references missing child {child_id}")

    jungle = Jungle()
    for root_id in roots:
        dag = DecisionDAG()
        local: Dict[int, int] = {}
        stack = [root_id]
        while stack:
            node_id = stack.pop()
            if node_id in local:
                continue
            node, left_id, right_id = nodes[node_id]
            local[node_id] = dag.add_node(replace(node))
            if left_id != LEAF_SENTINEL:
                stack.append(right_id)
                stack.append(left_id)
        for node_id, index in local.items():
            _, left_id, right_id = nodes[node_id]
            if left_id != LEAF_SENTINEL:
                dag.nodes[index].left = local[left_id]
                dag.nodes[index].right = local[right_id]
        dag.root = local[root_id]
        jungle.add_dag(dag)
    return jungle


def loads(text: str) -> Jungle:
    return read_jungle(io.StringIO(text))


def load_jungle(path: str | Path) -> Jungle:
    with open(path, newline="") as handle:
        return read_jungle(handle)
