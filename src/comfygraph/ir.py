from __future__ import annotations

import copy
from typing import Any, Dict, Iterator, List, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class Connection(BaseModel):
    """Reference to output ``port`` of node ``source_id``. Wire form: ``[source_id, port]``."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    port: int = Field(ge=0)

    def to_wire(self) -> List[Any]:
        return [self.source_id, self.port]


def is_connection_shape(value: Any) -> bool:
    """True for a 2-element ``[str, number]`` sequence, the wire form of a connection."""
    return (
        isinstance(value, (list, tuple))
        and len(value) == 2
        and isinstance(value[0], str)
        and isinstance(value[1], (int, float))
        and not isinstance(value[1], bool)
    )


def parse_input_value(value: Any) -> Any:
    """Turn a raw input value into either a ``Connection`` or an owned literal copy."""
    if isinstance(value, Connection):
        return value
    if is_connection_shape(value):
        source_id, port = value
        if isinstance(port, float):
            if not port.is_integer():
                raise ValueError(f"connection port must be an integer, got {port!r}")
            port = int(port)
        if port < 0:
            raise ValueError(f"connection port must be >= 0, got {port!r}")
        return Connection(source_id=source_id, port=port)
    return copy.deepcopy(value)


def encode_input(value: Any) -> Any:
    """Wire form of a parsed input value."""
    if isinstance(value, Connection):
        return value.to_wire()
    return copy.deepcopy(value)


class NodeMeta(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: Optional[str] = None


class Node(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    class_type: str
    inputs: Dict[str, Any]
    meta: Optional[NodeMeta] = Field(default=None, alias="_meta")

    @field_validator("inputs", mode="before")
    @classmethod
    def _parse_inputs(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        return {name: parse_input_value(v) for name, v in value.items()}

    def to_wire(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "inputs": {name: encode_input(v) for name, v in self.inputs.items()},
            "class_type": self.class_type,
        }
        if self.meta is not None:
            data["_meta"] = self.meta.model_dump(exclude_none=True)
        return data

    def with_inputs(self, inputs: Dict[str, Any]) -> "Node":
        """Copy of this node with ``inputs`` replaced. Values must already be parsed."""
        return self.model_copy(update={"inputs": inputs})

    def connections(self) -> Iterator[Tuple[str, Connection]]:
        for name, value in self.inputs.items():
            if isinstance(value, Connection):
                yield name, value


# wire form of a whole workflow: node id -> node
WORKFLOW_ADAPTER = TypeAdapter(Dict[str, Node])


class NodeRef(BaseModel):
    id: str
    node: Node


class Edge(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_id: str
    source_port: int
    target_id: str
    target_input: str


DiffType = Literal[
    "class_type_count_mismatch",
    "missing_node_type",
    "extra_node_type",
    "input_mismatch",
    "connection_mismatch",
]


class StructuralDiff(BaseModel):
    type: DiffType
    class_type: Optional[str] = None
    input_name: Optional[str] = None
    expected: Any = None
    actual: Any = None
    details: str
