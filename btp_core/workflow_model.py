"""
workflow_model.py
=================
Intermediate Logic Apps workflow model produced by the pipeline mapper and
consumed by the JSON generator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator


class ActionType(str, Enum):
    SCOPE = "Scope"
    COMPOSE = "Compose"
    FOREACH = "Foreach"
    XML_PARSE = "XmlParse"
    XML_COMPOSE = "XmlCompose"
    FLAT_FILE_DECODING = "FlatFileDecoding"
    FLAT_FILE_ENCODING = "FlatFileEncoding"
    INVOKE_FUNCTION = "InvokeFunction"
    XSLT = "Xslt"


@dataclass
class WorkflowTrigger:
    name: str
    kind: str = "Request"
    transport_type: str = "HTTP"
    sequence: int = 0


@dataclass
class WorkflowAction:
    """One workflow action; Scope and Foreach actions nest children."""

    name: str
    type: ActionType | str = ActionType.COMPOSE
    details: str = ""
    sequence: int = 0
    # Name of the enclosing Scope/Foreach, used for @items() references.
    parent_action_name: str | None = None
    children: list[WorkflowAction] = field(default_factory=list)
    component_properties: dict[str, str] = field(default_factory=dict)

    def walk(self) -> Iterator[WorkflowAction]:
        """Yield this action and all descendants in pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class WorkflowModel:
    name: str
    triggers: list[WorkflowTrigger] = field(default_factory=list)
    actions: list[WorkflowAction] = field(default_factory=list)

    def iter_actions(self) -> Iterator[WorkflowAction]:
        for action in self.actions:
            yield from action.walk()

    @property
    def action_count(self) -> int:
        return sum(1 for _ in self.iter_actions())
