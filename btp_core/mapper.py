"""
mapper.py
=========
Deterministic pipeline-to-workflow mapping engine.

Converts a strongly-typed `PipelineDocument` (produced by btp_parser.py) into
a `WorkflowModel` targeting Azure Logic Apps Standard.

- Pass-through pipelines short-circuit into a single documenting action.
- Every other pipeline is walked stage by stage in the canonical order for
  its direction; each populated stage becomes a Scope whose children are the
  mapped components.
- Component-to-action dispatch is an ordered rule table per component
  classification. The first matching rule fixes the action type and the
  synthesized guidance; the component's own properties are copied last and
  win over synthesized keys.

Author: Transpiler Architect
"""

from __future__ import annotations

import itertools
import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterator

from .btp_parser import PipelineComponent, PipelineDirection, PipelineDocument, PipelineStage
from .catalog import ComponentMetadata, ComponentType, get_component_metadata
from .default_pipelines import DefaultPipelineInfo, detect_default_pipeline
from .registry import ComponentRegistry, get_default_registry
from .workflow_model import ActionType, WorkflowAction, WorkflowModel, WorkflowTrigger

logger = logging.getLogger(__name__)

RECEIVE_STAGE_ORDER: tuple[str, ...] = ("Decode", "Disassemble", "Validate", "ResolveParty")
SEND_STAGE_ORDER: tuple[str, ...] = ("PreAssemble", "Assemble", "Encode")

PASS_THRU_NOTE_NAME = "PassThru_Pipeline_Note"

# ---------------------------------------------------------------------------
# Name sanitization
# ---------------------------------------------------------------------------

_INVALID_NAME_CHARS_RE = re.compile(r"[^\w-]")


def sanitize_name(name: str | None) -> str:
    """
    Make *name* usable as a Logic Apps workflow or action name.

    Keeps letters, digits, ``_`` and ``-``; an empty result becomes ``Item``
    and a leading digit gets an ``Action_`` prefix.
    """
    cleaned = _INVALID_NAME_CHARS_RE.sub("", name or "")
    if not cleaned:
        return "Item"
    if cleaned[0].isdigit():
        return f"Action_{cleaned}"
    return cleaned


# ---------------------------------------------------------------------------
# Documentation helpers
# ---------------------------------------------------------------------------


def _component_details(component: PipelineComponent, metadata: ComponentMetadata) -> list[str]:
    lines = [
        f"// Component: {metadata.name or 'Unknown'}",
        f"// Description: {metadata.description or 'No description'}",
        f"// Behavior: {metadata.behavior or 'Unknown behavior'}",
        f"// Message Flow: {metadata.message_flow or 'Unknown flow'}",
    ]
    declared = [p for p in component.properties if p.value is not None]
    if declared:
        lines.append("// Properties:")
        lines += [f"//   {p.name} = {p.value.text or ''}" for p in declared]
    return lines


def _document_property(component: PipelineComponent, name: str) -> str | None:
    prop = component.get_property(name)
    if prop is None or prop.value is None:
        return None
    return prop.value.text


# ---------------------------------------------------------------------------
# Dispatch rules
# ---------------------------------------------------------------------------


@dataclass
class _RuleContext:
    """Mutable state a rule builder works on for one component."""

    component: PipelineComponent
    metadata: ComponentMetadata
    action: WorkflowAction
    cursor: Iterator[int]
    lines: list[str]


@dataclass(frozen=True)
class DispatchRule:
    """One ``(predicate, builder)`` row of a classification's dispatch table."""

    name: str
    action_type: ActionType
    predicate: Callable[[PipelineComponent, ComponentMetadata], bool]
    build: Callable[[_RuleContext], None]


def _name_contains(*markers: str) -> Callable[[PipelineComponent, ComponentMetadata], bool]:
    def predicate(component: PipelineComponent, metadata: ComponentMetadata) -> bool:
        return any(marker in (metadata.name or "") for marker in markers)

    return predicate


def _is_xsl_transform(component: PipelineComponent, metadata: ComponentMetadata) -> bool:
    display = metadata.name or ""
    return "XslTransform" in display or "XSL Transform" in display or "XslTransform" in (component.name or "")


def _always(component: PipelineComponent, metadata: ComponentMetadata) -> bool:
    return True


def _documentation_only(ctx: _RuleContext) -> None:
    pass


def _add_xml_parse_child(ctx: _RuleContext) -> None:
    ctx.action.children.append(
        WorkflowAction(
            name="Parse_XML_with_Schema",
            type=ActionType.XML_PARSE,
            details="\n".join([
                "// Use 'Parse XML with schema' action",
                "// ACTION REQUIRED:",
                "// 1. Upload XSD schema to Logic App artifacts",
                "// 2. Select schema in Parse XML action",
                "// 3. Configure XPath expressions for property extraction",
                "// 4. Map promoted properties from BizTalk schema annotations",
            ]),
            sequence=next(ctx.cursor),
            parent_action_name=ctx.action.name,
        )
    )


def _add_flat_file_decoding_child(ctx: _RuleContext) -> None:
    schema_name = _document_property(ctx.component, "DocumentSpecName") or "SCHEMA_NAME_HERE"
    ctx.action.children.append(
        WorkflowAction(
            name="Flat_File_Decoding",
            type=ActionType.FLAT_FILE_DECODING,
            details="\n".join([
                "// Use 'Flat file decoding' action",
                "// ACTION REQUIRED:",
                "// 1. Export flat file schema from BizTalk",
                "// 2. Upload to Integration Account",
                "// 3. Select schema in Flat File Decoding action",
                f"// 4. Schema name from property: {schema_name}",
            ]),
            sequence=next(ctx.cursor),
            parent_action_name=ctx.action.name,
        )
    )


def _xml_compose_guidance(ctx: _RuleContext) -> None:
    ctx.lines += [
        "// Use 'Compose XML with schema' action",
        "// ACTION REQUIRED:",
        "// 1. Upload XSD schema to Logic App artifacts",
        "// 2. Select schema in Compose XML action",
        "// 3. Map input data to schema structure (as JSON object)",
        "// 4. Configure envelope if needed",
    ]


def _flat_file_encoding_guidance(ctx: _RuleContext) -> None:
    ctx.lines += [
        "// Use 'Flat file encoding' action",
        "// ACTION REQUIRED:",
        "// 1. Export flat file schema from BizTalk",
        "// 2. Upload to Logic App artifacts",
        "// 3. Select schema in Flat File Encoding action",
        "// 4. Ensure input is XML matching schema structure",
    ]


def _mime_function(ctx: _RuleContext) -> None:
    decoding = "Decoder" in (ctx.metadata.name or "")
    function_name = "DecodeMimeSmimeMessage" if decoding else "EncodeMimeSmimeMessage"
    ctx.lines += [
        "// WARNING: MIME processing requires Azure Functions",
        "// IMPLEMENTATION: Deploy Azure Function with MimeKit library",
        f"// FUNCTION NAME: {function_name}",
    ]

    props = ctx.action.component_properties
    props["functionName"] = function_name
    props["messageContent"] = "@triggerBody()?['$content']"
    if decoding:
        props["validateSignature"] = "true"
        props["decryptMessage"] = "true"
    else:
        props["encryptMessage"] = "true"
        props["signMessage"] = "true"


def _party_resolution_function(ctx: _RuleContext) -> None:
    ctx.lines += [
        "// MIGRATION: Implement via Azure Functions with data store lookup",
        "// FUNCTION NAME: ResolvePartner",
        "// DATA STORE: Azure Table Storage or SQL Database",
    ]
    ctx.action.component_properties.update(
        functionName="ResolvePartner",
        certificateThumbprint="@triggerBody()?['CertificateThumbprint']",
        windowsSID="@triggerBody()?['WindowsSID']",
        resolutionMode="CertificateThenSID",
    )


def _xslt_guidance(ctx: _RuleContext) -> None:
    ctx.lines += [
        "// Use 'Transform XML' action with XSLT",
        "// ACTION REQUIRED:",
        "// 1. Export XSLT file from BizTalk pipeline component",
        "// 2. Upload XSLT to Logic App artifacts/Maps folder",
        "// 3. Test transformation with sample XML",
    ]


_DISASSEMBLING_RULES: tuple[DispatchRule, ...] = (
    DispatchRule("xml_disassembler", ActionType.FOREACH, _name_contains("XML"), _add_xml_parse_child),
    DispatchRule(
        "flat_file_disassembler", ActionType.FOREACH, _name_contains("Flat File", "FF"), _add_flat_file_decoding_child
    ),
    DispatchRule("disassembler", ActionType.FOREACH, _always, _documentation_only),
)

_ASSEMBLING_RULES: tuple[DispatchRule, ...] = (
    DispatchRule("xml_assembler", ActionType.XML_COMPOSE, _name_contains("XML"), _xml_compose_guidance),
    DispatchRule(
        "flat_file_assembler", ActionType.FLAT_FILE_ENCODING, _name_contains("Flat File", "FF"), _flat_file_encoding_guidance
    ),
    DispatchRule("assembler", ActionType.COMPOSE, _always, _documentation_only),
)

_GENERAL_RULES: tuple[DispatchRule, ...] = (
    DispatchRule("mime", ActionType.INVOKE_FUNCTION, _name_contains("MIME"), _mime_function),
    DispatchRule(
        "party_resolution", ActionType.INVOKE_FUNCTION, _name_contains("Party Resolution"), _party_resolution_function
    ),
    DispatchRule("xsl_transform", ActionType.XSLT, _is_xsl_transform, _xslt_guidance),
    DispatchRule("general", ActionType.COMPOSE, _always, _documentation_only),
)

_RULES_BY_TYPE: dict[ComponentType, tuple[DispatchRule, ...]] = {
    ComponentType.DISASSEMBLING: _DISASSEMBLING_RULES,
    ComponentType.ASSEMBLING: _ASSEMBLING_RULES,
    ComponentType.GENERAL: _GENERAL_RULES,
    ComponentType.UNKNOWN: _GENERAL_RULES,
}


def _metadata_for(component: PipelineComponent) -> ComponentMetadata:
    return component.metadata or get_component_metadata(component.identity)


def select_rule(component: PipelineComponent) -> DispatchRule:
    """Return the first dispatch rule matching *component*."""
    metadata = _metadata_for(component)
    rules = _RULES_BY_TYPE.get(metadata.type, _GENERAL_RULES)
    # Every table ends with a catch-all row.
    return next(rule for rule in rules if rule.predicate(component, metadata))


def map_component(
    component: PipelineComponent | None,
    stage: PipelineStage,
    cursor: Iterator[int],
    registry: ComponentRegistry | None = None,
    parent_action_name: str | None = None,
) -> WorkflowAction | None:
    """
    Map one pipeline component to a workflow action.

    Parameters
    ----------
    component:
        The component to map. ``None`` is skipped and returns ``None``.
    stage:
        The stage owning *component*; its name and execution mode end the
        action's details.
    cursor:
        The mapping run's sequence counter. The action takes the next value;
        synthesized children take the ones after it.
    registry:
        Registry consulted for migration notes. Defaults to the process-wide
        registry.
    parent_action_name:
        Name of the enclosing Scope.
    """
    if component is None:
        return None

    registry = registry if registry is not None else get_default_registry()
    metadata = _metadata_for(component)
    rule = select_rule(component)

    action = WorkflowAction(
        name=sanitize_name(component.component_name or component.name),
        type=rule.action_type,
        sequence=next(cursor),
        parent_action_name=parent_action_name,
    )

    lines = _component_details(component, metadata)
    notes = registry.resolve(component.identity).formatted_notes()
    if notes:
        lines.append(notes)

    rule.build(_RuleContext(component=component, metadata=metadata, action=action, cursor=cursor, lines=lines))

    stage_meta = stage.metadata
    lines.append(f"// Stage: {stage_meta.name or 'Unknown'} ({stage_meta.execution_mode.value})")
    action.details = "\n".join(lines)

    # Declared configuration always wins over synthesized keys.
    for prop in component.properties:
        if prop.name and prop.value is not None:
            action.component_properties[prop.name] = prop.value.text or ""

    logger.debug(
        "Component '%s' -> %s via rule '%s' (seq %d)",
        component.identity,
        rule.action_type.value,
        rule.name,
        action.sequence,
    )
    return action


# ---------------------------------------------------------------------------
# Main mapper class
# ---------------------------------------------------------------------------


class WorkflowMapper:
    """
    Converts a `PipelineDocument` into a `WorkflowModel`.

    The mapper holds no per-call state; one instance may map any number of
    documents, from any thread.

    Usage
    -----
    ::

        parsed = parse_pipeline_file("ReceivePipeline.btp")
        workflow = WorkflowMapper(get_default_registry()).map(parsed.document)
    """

    def __init__(self, registry: ComponentRegistry | None = None) -> None:
        self.registry = registry if registry is not None else get_default_registry()

    def map(self, document: PipelineDocument | None, workflow_name: str | None = None) -> WorkflowModel:
        if document is None:
            raise ValueError("Pipeline document is required.")

        explicit = workflow_name if workflow_name and workflow_name.strip() else None
        workflow = WorkflowModel(name=sanitize_name(explicit or document.friendly_name or "Pipeline"))
        workflow.triggers.append(self._build_trigger(document))

        cursor = itertools.count(1)

        info = detect_default_pipeline(document)
        if info.is_pass_thru:
            logger.info("Pipeline '%s' is %s; emitting pass-through note only.", workflow.name, info.name)
            workflow.actions.append(self._build_pass_thru_note(document, info, next(cursor)))
            return workflow

        order = RECEIVE_STAGE_ORDER if document.direction is PipelineDirection.RECEIVE else SEND_STAGE_ORDER
        for stage_name in order:
            stage = self._find_stage(document, stage_name)
            if stage is None or not stage.components:
                continue
            workflow.actions.append(self._map_stage(stage, cursor))

        logger.info(
            "Mapped pipeline '%s': %d scopes, %d actions.",
            workflow.name,
            len(workflow.actions),
            workflow.action_count,
        )
        return workflow

    def _map_stage(self, stage: PipelineStage, cursor: Iterator[int]) -> WorkflowAction:
        meta = stage.metadata
        scope = WorkflowAction(
            name=sanitize_name(meta.name),
            type=ActionType.SCOPE,
            details="\n".join([
                f"// Pipeline Stage: {meta.name}",
                f"// Execution Mode: {meta.execution_mode.value}",
                f"// Description: {meta.description}",
            ]),
            sequence=next(cursor),
        )
        for component in stage.components:
            action = map_component(component, stage, cursor, self.registry, parent_action_name=scope.name)
            if action is not None:
                scope.children.append(action)
        return scope

    @staticmethod
    def _find_stage(document: PipelineDocument, stage_name: str) -> PipelineStage | None:
        wanted = stage_name.lower()
        return next((s for s in document.stages if (s.name or "").lower() == wanted), None)

    @staticmethod
    def _build_trigger(document: PipelineDocument) -> WorkflowTrigger:
        receive = document.direction is PipelineDirection.RECEIVE
        return WorkflowTrigger(
            name="pipeline_receive" if receive else "pipeline_send",
            kind="Request",
            transport_type="HTTP",
            sequence=0,
        )

    @staticmethod
    def _build_pass_thru_note(document: PipelineDocument, info: DefaultPipelineInfo, sequence: int) -> WorkflowAction:
        return WorkflowAction(
            name=PASS_THRU_NOTE_NAME,
            type=ActionType.COMPOSE,
            details="\n".join([
                "// This is a PassThru pipeline - no message processing",
                f"// Original: {document.friendly_name or info.name}",
                f"// Description: {info.description}",
            ]),
            sequence=sequence,
        )


def map_pipeline_to_workflow(
    document: PipelineDocument | None,
    workflow_name: str | None = None,
    registry: ComponentRegistry | None = None,
) -> WorkflowModel:
    """
    Map *document* to a Logic Apps workflow model.

    Raises
    ------
    ValueError
        If *document* is ``None``.
    """
    return WorkflowMapper(registry).map(document, workflow_name)
