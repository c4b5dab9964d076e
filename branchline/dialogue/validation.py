"""
Advisory structural validation for dialogue graphs.

The runner never calls this; an unvalidated graph runs until it hits a
missing node. Use it in content pipelines and tests to catch dangling
references and unreachable nodes up front.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from branchline.dialogue.models import DialogueGraph


@dataclass
class ValidationResult:
    """Outcome of validate_dialogue()."""
    valid: bool
    errors: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid


def validate_dialogue(dialogue: Union[DialogueGraph, Mapping[str, Any]]) -> ValidationResult:
    """
    Check a graph for structural problems.

    Reports:
    - a graph with no nodes
    - a missing start node
    - choices or `next` links pointing at missing nodes
    - nodes not reachable from the start node

    Returns:
        ValidationResult with one message per problem
    """
    if not isinstance(dialogue, DialogueGraph):
        dialogue = DialogueGraph.model_validate(dialogue)

    errors: list[str] = []
    nodes = dialogue.nodes

    if not nodes:
        return ValidationResult(valid=False, errors=["Dialogue must have at least one node"])

    if dialogue.start_node not in nodes:
        errors.append(f'Start node "{dialogue.start_node}" not found in nodes')

    reachable: set[str] = set()
    to_visit = [dialogue.start_node]

    while to_visit:
        node_id = to_visit.pop()
        if node_id in reachable:
            continue
        reachable.add(node_id)

        node = nodes.get(node_id)
        if node is None:
            continue

        for choice in node.choices:
            if choice.next not in nodes:
                errors.append(f'Choice in node "{node_id}" targets non-existent node "{choice.next}"')
            elif choice.next not in reachable:
                to_visit.append(choice.next)

        if node.next:
            if node.next not in nodes:
                errors.append(f'Node "{node_id}" auto-advances to non-existent node "{node.next}"')
            elif node.next not in reachable:
                to_visit.append(node.next)

    orphans = [node_id for node_id in nodes if node_id not in reachable]
    if orphans:
        errors.append(f"Unreachable nodes: {', '.join(orphans)}")

    return ValidationResult(valid=not errors, errors=errors)
