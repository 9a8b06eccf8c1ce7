"""
json_generator.py
=================
Serializes a `WorkflowModel` into a Logic Apps Standard ``workflow.json``
definition.

Top-level actions, and the children of every Scope / Foreach, are chained
linearly with ``runAfter: {"<previous>": ["SUCCEEDED"]}`` in sequence order.
Action names share one case-insensitive namespace across the whole
definition; clashes get ``_1``, ``_2`` ... suffixes.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from .workflow_model import ActionType, WorkflowAction, WorkflowModel

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "2016-06-01"
WORKFLOW_SCHEMA_URL = (
    f"https://schema.management.azure.com/providers/Microsoft.Logic/schemas/{SCHEMA_VERSION}/workflowdefinition.json#"
)
MAX_NAME_LENGTH = 80
FOREACH_CONCURRENCY = 20

_SCHEMA_PLACEHOLDER = "SCHEMA_NAME_HERE"
_FLAT_FILE_SCHEMA_PLACEHOLDER = "FLAT_FILE_SCHEMA_NAME_HERE"
_XSLT_MAP_PLACEHOLDER = "XSLT_MAP_NAME_HERE"


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------


def normalize_name(name: str | None) -> str:
    """Strip everything but letters and digits; cap at 80 characters."""
    cleaned = "".join(ch for ch in (name or "") if ch.isalnum())
    return cleaned[:MAX_NAME_LENGTH] if cleaned else "Item"


class _NameAllocator:
    def __init__(self) -> None:
        self._used: set[str] = set()

    def allocate(self, raw: str | None) -> str:
        base = normalize_name(raw)
        candidate, suffix = base, 0
        while candidate.lower() in self._used:
            suffix += 1
            candidate = f"{base}_{suffix}"
        self._used.add(candidate.lower())
        return candidate


# ---------------------------------------------------------------------------
# Per-type builders
# ---------------------------------------------------------------------------


def _with_comment(body: dict[str, Any], details: str) -> dict[str, Any]:
    if details:
        body["metadata"] = {"comment": details}
    return body


def _items_content(parent_key: str | None, fallback: str) -> str:
    return f"@items('{parent_key or fallback}')?['$content']"


def _build_compose(action: WorkflowAction, ctx: _BuildContext) -> dict[str, Any]:
    return {"type": "Compose", "inputs": action.details or "@triggerBody()"}


def _build_xml_parse(action: WorkflowAction, ctx: _BuildContext) -> dict[str, Any]:
    body = {
        "type": "XmlParse",
        "inputs": {
            "content": _items_content(ctx.parent_key, "Parse_XML_with_Schema"),
            "schema": {"source": "LogicApp", "name": _SCHEMA_PLACEHOLDER},
            "xmlReaderSettings": {
                "dtdProcessing": "Prohibit",
                "xmlNormalization": True,
                "ignoreWhitespace": True,
                "ignoreProcessingInstructions": True,
            },
            "jsonWriterSettings": {"ignoreAttributes": False, "useFullyQualifiedNames": False},
        },
    }
    return _with_comment(body, action.details or "Parse XML with Logic App schema")


def _build_xml_compose(action: WorkflowAction, ctx: _BuildContext) -> dict[str, Any]:
    body = {
        "type": "XmlCompose",
        "inputs": {
            "schema": {"source": "LogicApp", "name": _SCHEMA_PLACEHOLDER},
            "content": "@triggerBody()",
        },
    }
    return _with_comment(body, action.details or "Compose XML with Logic App schema")


def _build_flat_file_decoding(action: WorkflowAction, ctx: _BuildContext) -> dict[str, Any]:
    body = {
        "type": "FlatFileDecoding",
        "inputs": {
            "content": _items_content(ctx.parent_key, "Flat_File_Decoding"),
            "schema": {"source": "LogicApp", "name": _FLAT_FILE_SCHEMA_PLACEHOLDER},
        },
    }
    return _with_comment(body, action.details)


def _build_flat_file_encoding(action: WorkflowAction, ctx: _BuildContext) -> dict[str, Any]:
    body = {
        "type": "FlatFileEncoding",
        "inputs": {
            "content": "@triggerBody()",
            "schema": {"source": "LogicApp", "name": _FLAT_FILE_SCHEMA_PLACEHOLDER},
        },
    }
    return _with_comment(body, action.details)


def _build_invoke_function(action: WorkflowAction, ctx: _BuildContext) -> dict[str, Any]:
    props = action.component_properties
    function_name = props.get("functionName") or f"{action.name}_Function"
    parameters = {k: v for k, v in props.items() if k != "functionName"}
    if not parameters:
        parameters = {"messageContent": "@triggerBody()?['$content']"}

    body = {
        "type": "InvokeFunction",
        "inputs": {"functionName": function_name, "parameters": parameters},
    }
    return _with_comment(body, action.details)


def _build_xslt(action: WorkflowAction, ctx: _BuildContext) -> dict[str, Any]:
    map_name = action.component_properties.get("XsltFilePath") or _XSLT_MAP_PLACEHOLDER
    body = {
        "type": "Xslt",
        "inputs": {
            "content": "@triggerBody()?['$content']",
            "map": {"source": "LogicApp", "name": map_name},
        },
    }
    return _with_comment(body, action.details)


def _build_foreach(action: WorkflowAction, ctx: _BuildContext) -> dict[str, Any]:
    return {
        "type": "Foreach",
        "foreach": "@triggerBody()?['items']",
        "actions": ctx.chain(action.children, parent_key=ctx.own_key),
        "runtimeConfiguration": {"concurrency": {"repetitions": FOREACH_CONCURRENCY}},
    }


def _build_scope(action: WorkflowAction, ctx: _BuildContext) -> dict[str, Any]:
    return {"type": "Scope", "actions": ctx.chain(action.children, parent_key=None)}


def _build_unmapped(action: WorkflowAction, ctx: _BuildContext) -> dict[str, Any]:
    type_name = action.type.value if isinstance(action.type, ActionType) else str(action.type)
    text = f"// Unmapped pipeline action: {type_name}"
    if action.details:
        text += f"\n{action.details}"
    return {"type": "Compose", "inputs": text}


_BUILDERS: dict[str, Callable[[WorkflowAction, "_BuildContext"], dict[str, Any]]] = {
    ActionType.COMPOSE.value: _build_compose,
    ActionType.XML_PARSE.value: _build_xml_parse,
    ActionType.XML_COMPOSE.value: _build_xml_compose,
    ActionType.FLAT_FILE_DECODING.value: _build_flat_file_decoding,
    ActionType.FLAT_FILE_ENCODING.value: _build_flat_file_encoding,
    ActionType.INVOKE_FUNCTION.value: _build_invoke_function,
    ActionType.XSLT.value: _build_xslt,
    ActionType.FOREACH.value: _build_foreach,
    ActionType.SCOPE.value: _build_scope,
}


# ---------------------------------------------------------------------------
# Chaining
# ---------------------------------------------------------------------------


def _type_key(action: WorkflowAction) -> str:
    return action.type.value if isinstance(action.type, ActionType) else str(action.type)


def _is_empty_scope(action: WorkflowAction) -> bool:
    return _type_key(action) == ActionType.SCOPE.value and all(_is_empty_scope(c) for c in action.children)


class _BuildContext:
    def __init__(self, names: _NameAllocator, own_key: str | None = None, parent_key: str | None = None) -> None:
        self.names = names
        self.own_key = own_key
        self.parent_key = parent_key

    def chain(self, actions: list[WorkflowAction], parent_key: str | None) -> dict[str, Any]:
        """Build *actions* in sequence order, each running after the previous one."""
        chained: dict[str, Any] = {}
        previous: str | None = None

        for action in sorted(actions, key=lambda a: a.sequence):
            if _is_empty_scope(action):
                logger.debug("Skipping empty scope '%s'.", action.name)
                continue

            key = self.names.allocate(action.name)
            builder = _BUILDERS.get(_type_key(action), _build_unmapped)
            body = builder(action, _BuildContext(self.names, own_key=key, parent_key=parent_key))
            body["runAfter"] = {previous: ["SUCCEEDED"]} if previous else {}

            chained[key] = body
            previous = key

        return chained


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_workflow_definition(workflow: WorkflowModel, workflow_kind: str = "Stateful") -> dict[str, Any]:
    """Return the workflow document as plain JSON-ready data."""
    if workflow is None:
        raise ValueError("Workflow model is required.")

    names = _NameAllocator()
    trigger = workflow.triggers[0] if workflow.triggers else None
    trigger_key = names.allocate(trigger.name if trigger else "When_a_message_is_received")

    actions = _BuildContext(names).chain(workflow.actions, parent_key=None)

    return {
        "kind": workflow_kind,
        "definition": {
            "$schema": WORKFLOW_SCHEMA_URL,
            "contentVersion": "1.0.0.0",
            "triggers": {trigger_key: {"type": "Request", "kind": "Http"}},
            "actions": actions,
            "outputs": {},
        },
    }


def generate_workflow_json(workflow: WorkflowModel, workflow_kind: str = "Stateful") -> str:
    """
    Serialize *workflow* into Logic Apps ``workflow.json`` text.

    Parameters
    ----------
    workflow:
        Model produced by `map_pipeline_to_workflow`.
    workflow_kind:
        ``"Stateful"`` or ``"Stateless"``.

    Raises
    ------
    ValueError
        If *workflow* is ``None``.
    """
    definition = build_workflow_definition(workflow, workflow_kind)
    logger.info(
        "Generated %s workflow '%s' with %d top-level actions.",
        workflow_kind,
        workflow.name,
        len(definition["definition"]["actions"]),
    )
    return json.dumps(definition, indent=2, ensure_ascii=False)


def output_filename(workflow: WorkflowModel) -> str:
    return f"{workflow.name}_workflow.json"
