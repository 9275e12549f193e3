class GraphError(Exception):
    """Base exception for workflow graph operations."""


class DuplicateNodeId(GraphError):
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f'Node with ID "{node_id}" already exists')


class NodeNotFound(GraphError):
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f'Node "{node_id}" does not exist')


class MalformedJson(GraphError):
    """Raised when workflow text cannot be parsed as JSON."""


class InvalidWorkflowStructure(GraphError):
    """Raised when parsed JSON is not a node-id -> node mapping."""


class CyclicWorkflow(GraphError):
    """Raised when a topological order is requested for a cyclic workflow."""
