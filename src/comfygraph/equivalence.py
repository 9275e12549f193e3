"""Structural equivalence of workflows, ignoring node ids.

Two workflows are equivalent when they hold the same multiset of class types
and each node's inputs match a counterpart's. Connections are compared by the
class type and port they point at, never by node id.

Nodes that share a class type are paired by a content hash, greedily in
subject order. Only the first unmatched pair is diffed in detail, so a class
with several differing nodes reports one illustrative mismatch.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from .ir import Connection, Node, NodeRef, StructuralDiff, encode_input

logger = logging.getLogger(__name__)

_MISSING = object()


def group_by_class_type(nodes: Mapping[str, Node]) -> Dict[str, List[NodeRef]]:
    grouped: Dict[str, List[NodeRef]] = {}
    for node_id, node in nodes.items():
        grouped.setdefault(node.class_type, []).append(NodeRef(id=node_id, node=node))
    return grouped


def normalize_connection(connection: Connection, nodes: Mapping[str, Node]) -> str:
    """``ClassType:port`` of the connection's source, resolved against its own graph."""
    source = nodes.get(connection.source_id)
    class_type = source.class_type if source is not None else "UNKNOWN"
    return f"{class_type}:{connection.port}"


def _normalize_numbers(value: Any) -> Any:
    # 1.0 and 1 are the same JSON number
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (list, tuple)):
        return [_normalize_numbers(v) for v in value]
    if isinstance(value, dict):
        return {k: _normalize_numbers(v) for k, v in value.items()}
    return value


def canonical_literal(value: Any) -> str:
    return json.dumps(_normalize_numbers(value), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def literals_equal(a: Any, b: Any) -> bool:
    return canonical_literal(a) == canonical_literal(b)


def node_content_hash(node: Node, nodes: Mapping[str, Node]) -> str:
    """Canonical encoding of a node's inputs: sorted ``[name, encoded]`` pairs as JSON."""
    parts = []
    for name in sorted(node.inputs):
        value = node.inputs[name]
        if isinstance(value, Connection):
            encoded = normalize_connection(value, nodes)
        else:
            encoded = canonical_literal(value)
        parts.append([name, encoded])
    return json.dumps(parts, separators=(",", ":"), ensure_ascii=False)


def _export(value: Any) -> Any:
    return None if value is _MISSING else encode_input(value)


def compare_node_inputs(
    subject: Node,
    reference: Node,
    subject_nodes: Mapping[str, Node],
    reference_nodes: Mapping[str, Node],
    class_type: Optional[str] = None,
) -> List[StructuralDiff]:
    """Input-by-input diff of one subject node against one reference node."""
    diffs: List[StructuralDiff] = []
    names = list(dict.fromkeys([*subject.inputs, *reference.inputs]))

    for name in names:
        actual = subject.inputs.get(name, _MISSING)
        expected = reference.inputs.get(name, _MISSING)
        actual_is_conn = isinstance(actual, Connection)
        expected_is_conn = isinstance(expected, Connection)

        if actual_is_conn and expected_is_conn:
            actual_norm = normalize_connection(actual, subject_nodes)
            expected_norm = normalize_connection(expected, reference_nodes)
            if actual_norm != expected_norm:
                diffs.append(StructuralDiff(
                    type="connection_mismatch",
                    class_type=class_type,
                    input_name=name,
                    expected=expected_norm,
                    actual=actual_norm,
                    details=f'Input "{name}": connection mismatch - expected {expected_norm}, got {actual_norm}',
                ))
        elif actual_is_conn != expected_is_conn:
            diffs.append(StructuralDiff(
                type="input_mismatch",
                class_type=class_type,
                input_name=name,
                expected=_export(expected),
                actual=_export(actual),
                details=f'Input "{name}": type mismatch - one is connection, other is value',
            ))
        elif actual is _MISSING:
            diffs.append(StructuralDiff(
                type="input_mismatch",
                class_type=class_type,
                input_name=name,
                expected=_export(expected),
                actual=None,
                details=f'Input "{name}": missing in this workflow',
            ))
        elif expected is _MISSING:
            diffs.append(StructuralDiff(
                type="input_mismatch",
                class_type=class_type,
                input_name=name,
                expected=None,
                actual=_export(actual),
                details=f'Input "{name}": extra in this workflow',
            ))
        elif not literals_equal(actual, expected):
            diffs.append(StructuralDiff(
                type="input_mismatch",
                class_type=class_type,
                input_name=name,
                expected=_export(expected),
                actual=_export(actual),
                details=f'Input "{name}": expected {canonical_literal(expected)}, got {canonical_literal(actual)}',
            ))

    return diffs


def match_same_class(
    subject_refs: List[NodeRef],
    reference_refs: List[NodeRef],
    subject_nodes: Mapping[str, Node],
    reference_nodes: Mapping[str, Node],
    class_type: Optional[str] = None,
) -> List[StructuralDiff]:
    """Pair same-class nodes by content hash; diff the first unmatched pair, if any."""
    subject_hashes = [node_content_hash(ref.node, subject_nodes) for ref in subject_refs]
    reference_hashes = [node_content_hash(ref.node, reference_nodes) for ref in reference_refs]

    unmatched_subject: List[int] = []
    unmatched_reference = list(range(len(reference_refs)))
    for i, subject_hash in enumerate(subject_hashes):
        for j in unmatched_reference:
            if reference_hashes[j] == subject_hash:
                unmatched_reference.remove(j)
                break
        else:
            unmatched_subject.append(i)

    if not unmatched_subject or not unmatched_reference:
        return []

    subject_ref = subject_refs[unmatched_subject[0]]
    reference_ref = reference_refs[unmatched_reference[0]]
    logger.debug(
        "%s: %d unmatched node(s), diffing %s against %s",
        class_type, len(unmatched_subject), subject_ref.id, reference_ref.id,
    )
    return compare_node_inputs(
        subject_ref.node, reference_ref.node, subject_nodes, reference_nodes, class_type=class_type
    )


def structural_diff(subject_nodes: Mapping[str, Node], reference_nodes: Mapping[str, Node]) -> List[StructuralDiff]:
    """Diff ``subject_nodes`` against ``reference_nodes``. An empty list means equivalent."""
    diffs: List[StructuralDiff] = []
    subject_grouped = group_by_class_type(subject_nodes)
    reference_grouped = group_by_class_type(reference_nodes)

    for class_type in dict.fromkeys([*subject_grouped, *reference_grouped]):
        subject_refs = subject_grouped.get(class_type, [])
        reference_refs = reference_grouped.get(class_type, [])

        if len(subject_refs) != len(reference_refs):
            diffs.append(StructuralDiff(
                type="class_type_count_mismatch",
                class_type=class_type,
                expected=len(reference_refs),
                actual=len(subject_refs),
                details=f"{class_type}: expected {len(reference_refs)} nodes, got {len(subject_refs)}",
            ))
            continue

        if len(subject_refs) == 1:
            diffs.extend(compare_node_inputs(
                subject_refs[0].node, reference_refs[0].node,
                subject_nodes, reference_nodes, class_type=class_type,
            ))
        elif len(subject_refs) > 1:
            diffs.extend(match_same_class(
                subject_refs, reference_refs, subject_nodes, reference_nodes, class_type=class_type
            ))

    if diffs:
        logger.debug("Workflows differ: %d structural diff(s)", len(diffs))
    return diffs


def is_structurally_equivalent(subject_nodes: Mapping[str, Node], reference_nodes: Mapping[str, Node]) -> bool:
    return not structural_diff(subject_nodes, reference_nodes)
