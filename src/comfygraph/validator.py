from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List, Literal, Mapping, Optional, Set

from pydantic import BaseModel, Field, ValidationError

from .ir import WORKFLOW_ADAPTER, is_connection_shape

IssueCode = Literal["invalid_structure", "dangling_reference", "isolated"]


class ValidationIssue(BaseModel):
    node_id: Optional[str] = None
    input_name: Optional[str] = None
    code: IssueCode
    message: str
    severity: Literal["error", "warning"]


class ValidationResult(BaseModel):
    valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)


def validate_structure(raw: Any) -> ValidationResult:
    """Check that ``raw`` is a node id -> {class_type, inputs} mapping. Never raises."""
    try:
        WORKFLOW_ADAPTER.validate_python(raw)
    except ValidationError:
        return ValidationResult(valid=False, errors=[ValidationIssue(
            code="invalid_structure",
            message="Invalid workflow structure: not a valid workflow JSON object",
            severity="error",
        )])
    return ValidationResult(valid=True)


def validate_connections(raw: Mapping[str, Any]) -> ValidationResult:
    """Report dangling connection sources (errors) and unconnected nodes (warnings).

    ``raw`` must already pass ``validate_structure``.
    """
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []
    node_ids = set(raw)
    touched: Set[str] = set()

    for node_id, node in raw.items():
        for input_name, value in node["inputs"].items():
            if not is_connection_shape(value):
                continue
            source_id = value[0]
            touched.add(source_id)
            touched.add(node_id)
            if source_id not in node_ids:
                errors.append(ValidationIssue(
                    node_id=node_id,
                    input_name=input_name,
                    code="dangling_reference",
                    message=f'Node "{node_id}" references non-existent node "{source_id}" in input "{input_name}"',
                    severity="error",
                ))

    for node_id in raw:
        if node_id not in touched:
            warnings.append(ValidationIssue(
                node_id=node_id,
                code="isolated",
                message=f'Node "{node_id}" is isolated (no incoming or outgoing connections)',
                severity="warning",
            ))

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def validate_workflow(raw: Any) -> ValidationResult:
    structure = validate_structure(raw)
    if not structure.valid:
        return structure

    connections = validate_connections(raw)
    return ValidationResult(
        valid=connections.valid,
        errors=structure.errors + connections.errors,
        warnings=structure.warnings + connections.warnings,
    )


def validate_workflow_file(path: Path) -> ValidationResult:
    text = Path(path).read_text(encoding="utf-8")
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        return ValidationResult(valid=False, errors=[ValidationIssue(
            code="invalid_structure",
            message=f"Malformed JSON: {e}",
            severity="error",
        )])
    return validate_workflow(raw)
