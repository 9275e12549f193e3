from __future__ import annotations

import copy
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import networkx as nx
from pydantic import ValidationError

from .equivalence import structural_diff
from .errors import CyclicWorkflow, DuplicateNodeId, InvalidWorkflowStructure, MalformedJson, NodeNotFound
from .ir import WORKFLOW_ADAPTER, Connection, Edge, Node, NodeMeta, NodeRef, StructuralDiff, parse_input_value

logger = logging.getLogger(__name__)

_INT_ID = re.compile(r"-?\d+")


class Workflow:
    """In-memory node graph keyed by node id, in the ComfyUI API format.

    Nodes are immutable values; every mutation swaps in a modified copy and
    every read hands out a deep copy, so callers never share state with the
    workflow.
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, Node] = {}

    # -------- JSON boundary --------
    @classmethod
    def from_json(cls, data: Union[Mapping[str, Any], str]) -> "Workflow":
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                raise MalformedJson(f"Invalid JSON string: {e}") from e

        try:
            nodes = WORKFLOW_ADAPTER.validate_python(data)
        except ValidationError as e:
            raise InvalidWorkflowStructure(f"Invalid workflow JSON structure: {e}") from e

        workflow = cls()
        workflow._nodes = nodes
        logger.debug("Loaded workflow with %d nodes", len(nodes))
        return workflow

    def to_json(self) -> Dict[str, Any]:
        return {node_id: node.to_wire() for node_id, node in self._nodes.items()}

    def to_json_string(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_json(), indent=indent, ensure_ascii=False)

    # -------- nodes API --------
    def add_node(
        self,
        class_type: str,
        inputs: Optional[Mapping[str, Any]] = None,
        *,
        node_id: Optional[str] = None,
        meta: Optional[Union[NodeMeta, Mapping[str, Any]]] = None,
    ) -> str:
        if node_id is None:
            node_id = self.next_node_id()
        if node_id in self._nodes:
            raise DuplicateNodeId(node_id)

        self._nodes[node_id] = Node(class_type=class_type, inputs=dict(inputs or {}), meta=meta)
        logger.debug("Added node %s (%s)", node_id, class_type)
        return node_id

    def remove_node(self, node_id: str) -> None:
        if node_id not in self._nodes:
            return

        del self._nodes[node_id]
        for other_id, node in self._nodes.items():
            kept = {
                name: value
                for name, value in node.inputs.items()
                if not (isinstance(value, Connection) and value.source_id == node_id)
            }
            if len(kept) != len(node.inputs):
                self._nodes[other_id] = node.with_inputs(kept)
        logger.debug("Removed node %s", node_id)

    def get_node(self, node_id: str) -> Optional[Node]:
        node = self._nodes.get(node_id)
        return node.model_copy(deep=True) if node is not None else None

    def get_nodes(self) -> Dict[str, Node]:
        return {node_id: node.model_copy(deep=True) for node_id, node in self._nodes.items()}

    def get_node_count(self) -> int:
        return len(self._nodes)

    def find_nodes_by_type(self, class_type: str) -> List[NodeRef]:
        return [
            NodeRef(id=node_id, node=node.model_copy(deep=True))
            for node_id, node in self._nodes.items()
            if node.class_type == class_type
        ]

    def next_node_id(self) -> str:
        r"""One more than the largest node id matching ``-?\d+``, or "1" when there is none."""
        ids = [int(node_id) for node_id in self._nodes if _INT_ID.fullmatch(node_id)]
        return str(max(ids, default=0) + 1)

    # -------- inputs API --------
    def set_input(self, node_id: str, name: str, value: Any) -> None:
        self.update_inputs(node_id, {name: value})

    def update_inputs(self, node_id: str, inputs: Mapping[str, Any]) -> None:
        node = self._require(node_id)
        merged = dict(node.inputs)
        merged.update({name: parse_input_value(value) for name, value in inputs.items()})
        self._nodes[node_id] = node.with_inputs(merged)

    def get_input(self, node_id: str, name: str) -> Any:
        node = self._nodes.get(node_id)
        if node is None or name not in node.inputs:
            return None
        return copy.deepcopy(node.inputs[name])

    def has_input(self, node_id: str, name: str) -> bool:
        node = self._nodes.get(node_id)
        return node is not None and name in node.inputs

    def get_inputs(self, node_id: str) -> Optional[Dict[str, Any]]:
        node = self._nodes.get(node_id)
        if node is None:
            return None
        return copy.deepcopy(node.inputs)

    def clear_input(self, node_id: str, name: str) -> None:
        node = self._nodes.get(node_id)
        if node is None or name not in node.inputs:
            return
        self._nodes[node_id] = node.with_inputs({k: v for k, v in node.inputs.items() if k != name})

    # -------- edges API --------
    def add_edge(self, source_id: str, source_port: int, target_id: str, target_input: str) -> None:
        self._require(source_id)
        self._require(target_id)
        self.set_input(target_id, target_input, Connection(source_id=source_id, port=source_port))

    def remove_edge(self, target_id: str, input_name: str) -> None:
        node = self._nodes.get(target_id)
        if node is None:
            return
        if isinstance(node.inputs.get(input_name), Connection):
            self.clear_input(target_id, input_name)

    def get_edges(self) -> List[Edge]:
        return [
            Edge(source_id=conn.source_id, source_port=conn.port, target_id=target_id, target_input=name)
            for target_id, node in self._nodes.items()
            for name, conn in node.connections()
        ]

    def get_edges_from(self, source_id: str) -> List[Edge]:
        return [e for e in self.get_edges() if e.source_id == source_id]

    def get_edges_to(self, target_id: str) -> List[Edge]:
        return [e for e in self.get_edges() if e.target_id == target_id]

    def has_connection(self, source_id: str, target_id: str) -> bool:
        return any(e.source_id == source_id and e.target_id == target_id for e in self.get_edges())

    # -------- traversal --------
    def to_digraph(self) -> nx.MultiDiGraph:
        g = nx.MultiDiGraph()
        for node_id, node in self._nodes.items():
            g.add_node(node_id, class_type=node.class_type)
        for e in self.get_edges():
            # dangling references are the validator's concern
            if e.source_id in self._nodes:
                g.add_edge(e.source_id, e.target_id, port=e.source_port, input=e.target_input)
        return g

    def topological_order(self) -> List[str]:
        try:
            return list(nx.topological_sort(self.to_digraph()))
        except nx.NetworkXUnfeasible as e:
            raise CyclicWorkflow("Workflow contains a cycle") from e

    # -------- equivalence --------
    def get_structural_diff(self, other: "Workflow") -> List[StructuralDiff]:
        return structural_diff(self._nodes, other._nodes)

    def is_structurally_equivalent_to(self, other: "Workflow") -> bool:
        return not self.get_structural_diff(other)

    # -------- Python container protocol --------
    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def _require(self, node_id: str) -> Node:
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFound(node_id)
        return node


def load_workflow(path: Path) -> Workflow:
    return Workflow.from_json(Path(path).read_text(encoding="utf-8"))


def save_workflow(workflow: Workflow, path: Path, indent: Optional[int] = 2) -> None:
    Path(path).write_text(workflow.to_json_string(indent=indent), encoding="utf-8")
