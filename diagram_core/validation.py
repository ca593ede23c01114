"""
Diagram integrity report.

Inspects the live model for structural problems. This is diagnostic only:
nothing here repairs state, and loading a document never runs it
implicitly.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .model import DiagramModel


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Broken invariant
    WARNING = "warning"  # Suspicious, may be intentional
    INFO = "info"


@dataclass
class ValidationIssue:
    """A single issue found in a diagram."""
    severity: IssueSeverity
    message: str
    shape_id: str | None = None
    connector_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.shape_id:
            result["shape_id"] = self.shape_id
        if self.connector_id:
            result["connector_id"] = self.connector_id
        return result


def validate_model(model: "DiagramModel") -> list[ValidationIssue]:
    """
    Check a model and return the issues found.

    Checks for:
    - Connectors referencing missing shapes - ERROR
    - Self-referencing connectors - WARNING
    - Duplicate connectors (same from -> to) - WARNING
    - Groups referencing missing shapes - WARNING
    - Empty diagram - INFO
    """
    issues: list[ValidationIssue] = []

    if not model.shapes:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Diagram has no shapes"
        ))

    seen_pairs: set[tuple[str, str]] = set()
    for connector in model.connectors.values():
        for end, shape_id in (("from", connector.source), ("to", connector.target)):
            if shape_id not in model.shapes:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Connector references non-existent '{end}' shape: {shape_id}",
                    connector_id=connector.id
                ))

        if connector.source == connector.target:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Self-referencing connector (shape points to itself)",
                connector_id=connector.id,
                shape_id=connector.source
            ))

        pair = (connector.source, connector.target)
        if pair in seen_pairs:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Duplicate connector from {connector.source} to {connector.target}",
                connector_id=connector.id
            ))
        else:
            seen_pairs.add(pair)

    for group_id, members in model.groups.items():
        missing = sorted(m for m in members if m not in model.shapes)
        if missing:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Group {group_id} references missing shapes: {', '.join(missing)}"
            ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """Counts by severity; `valid` is False if any error was found."""
    errors = len([i for i in issues if i.severity == IssueSeverity.ERROR])
    return {
        "total": len(issues),
        "errors": errors,
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": errors == 0
    }
