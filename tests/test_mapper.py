"""Tests for the pipeline-to-workflow mapping engine."""

import itertools

import pytest

from btp_core.btp_parser import (
    ComponentProperty,
    PipelineComponent,
    PipelineDocument,
    PipelineStage,
    PropertyValue,
)
from btp_core.catalog import (
    ASSEMBLE_STAGE_ID,
    DECODE_STAGE_ID,
    DISASSEMBLE_STAGE_ID,
    ENCODE_STAGE_ID,
    RECEIVE_PIPELINE_ID,
    SEND_PIPELINE_ID,
    VALIDATE_STAGE_ID,
)
from btp_core.mapper import (
    PASS_THRU_NOTE_NAME,
    WorkflowMapper,
    map_component,
    map_pipeline_to_workflow,
    sanitize_name,
    select_rule,
)
from btp_core.registry import ComponentRegistry
from btp_core.workflow_model import ActionType


def _prop(name, text, xsi_type="xsd:string"):
    return ComponentProperty(name=name, value=PropertyValue(type=xsi_type, text=text))


def _component(name, component_name=None, properties=()):
    return PipelineComponent(name=name, component_name=component_name, properties=list(properties))


def _stage(category_id, *components):
    return PipelineStage(category_id=category_id, components=list(components))


# ---------------------------------------------------------------------------
# Sanitization
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("123abc", "Action_123abc"),
        ("a!!b", "ab"),
        ("", "Item"),
        ("!!!", "Item"),
        (None, "Item"),
        ("MIME/SMIME decoder", "MIMESMIMEdecoder"),
        ("keep_under-score", "keep_under-score"),
        ("  7 up ", "Action_7up"),
    ],
)
def test_sanitize_name(raw, expected):
    assert sanitize_name(raw) == expected


# ---------------------------------------------------------------------------
# Whole-document mapping
# ---------------------------------------------------------------------------


class TestMapPipeline:
    def test_absent_document_raises(self, registry):
        with pytest.raises(ValueError):
            map_pipeline_to_workflow(None, registry=registry)

    def test_receive_pipeline(self, receive_document, registry):
        workflow = map_pipeline_to_workflow(receive_document, registry=registry)

        assert workflow.name == "Pipeline"
        assert len(workflow.triggers) == 1
        trigger = workflow.triggers[0]
        assert (trigger.name, trigger.kind, trigger.transport_type, trigger.sequence) == (
            "pipeline_receive", "Request", "HTTP", 0,
        )

        # Validate has no components and is skipped.
        assert [a.name for a in workflow.actions] == ["Decode", "Disassemble", "ResolveParty"]
        assert all(a.type is ActionType.SCOPE for a in workflow.actions)

        decode, disassemble, resolve = workflow.actions
        assert decode.details.splitlines() == [
            "// Pipeline Stage: Decode",
            "// Execution Mode: All",
            "// Description: Components that decode or decrypt incoming messages from one format to another",
        ]
        assert decode.children[0].type is ActionType.INVOKE_FUNCTION
        assert decode.children[0].parent_action_name == "Decode"
        assert disassemble.children[0].type is ActionType.FOREACH
        assert resolve.children[0].component_properties["functionName"] == "ResolvePartner"

    def test_send_pipeline(self, send_document, registry):
        workflow = map_pipeline_to_workflow(send_document, registry=registry)

        assert workflow.triggers[0].name == "pipeline_send"
        assert [a.name for a in workflow.actions] == ["Assemble", "Encode"]
        assemble, encode = workflow.actions
        assert assemble.children[0].type is ActionType.XML_COMPOSE
        mime = encode.children[0]
        assert mime.type is ActionType.INVOKE_FUNCTION
        assert mime.component_properties["functionName"] == "EncodeMimeSmimeMessage"
        assert mime.component_properties["encryptMessage"] == "true"
        assert mime.component_properties["signMessage"] == "true"
        assert "validateSignature" not in mime.component_properties
        assert mime.component_properties["ContentTransferEncoding"] == "base64"

    def test_sequence_numbers_are_unique_and_increasing(self, receive_document, registry):
        workflow = map_pipeline_to_workflow(receive_document, registry=registry)
        sequences = [a.sequence for a in workflow.iter_actions()]

        assert sequences == list(range(1, len(sequences) + 1))
        assert sequences == [1, 2, 3, 4, 5, 6, 7]

    def test_each_call_owns_its_counter(self, receive_document, registry):
        mapper = WorkflowMapper(registry)
        first = [a.sequence for a in mapper.map(receive_document).iter_actions()]
        second = [a.sequence for a in mapper.map(receive_document).iter_actions()]
        assert first == second

    def test_pass_thru_short_circuits(self, pass_thru_document, registry):
        workflow = map_pipeline_to_workflow(pass_thru_document, registry=registry)

        assert workflow.name == "SimplePassThru"
        assert len(workflow.triggers) == 1
        assert len(workflow.actions) == 1
        note = workflow.actions[0]
        assert note.name == PASS_THRU_NOTE_NAME
        assert note.type is ActionType.COMPOSE
        assert note.sequence == 1
        assert note.children == []
        assert note.details.splitlines() == [
            "// This is a PassThru pipeline - no message processing",
            "// Original: Simple PassThru",
            "// Description: Pass-through receive pipeline with no components for simple pass-through scenarios",
        ]

    def test_pass_thru_without_friendly_name_uses_pattern_name(self, registry):
        document = PipelineDocument(category_id=SEND_PIPELINE_ID, stages=[_stage(ENCODE_STAGE_ID)])
        workflow = map_pipeline_to_workflow(document, registry=registry)
        assert workflow.triggers[0].name == "pipeline_send"
        assert "// Original: PassThruTransmit" in workflow.actions[0].details

    @pytest.mark.parametrize(
        "explicit, friendly, expected",
        [
            ("My Flow", "Friendly", "MyFlow"),
            ("   ", "Friendly Name", "FriendlyName"),
            (None, None, "Pipeline"),
            ("2024 orders", None, "Action_2024orders"),
        ],
    )
    def test_workflow_name_resolution(self, registry, explicit, friendly, expected):
        document = PipelineDocument(category_id=RECEIVE_PIPELINE_ID, friendly_name=friendly)
        assert map_pipeline_to_workflow(document, explicit, registry).name == expected

    def test_empty_and_absent_canonical_stages_contribute_nothing(self, registry):
        document = PipelineDocument(
            category_id=RECEIVE_PIPELINE_ID,
            stages=[
                _stage(DECODE_STAGE_ID),
                _stage(VALIDATE_STAGE_ID, _component("Microsoft.BizTalk.Component.XmlValidator")),
            ],
        )
        workflow = map_pipeline_to_workflow(document, registry=registry)
        assert [a.name for a in workflow.actions] == ["Validate"]

    def test_stages_follow_canonical_order_not_document_order(self, registry):
        document = PipelineDocument(
            category_id=RECEIVE_PIPELINE_ID,
            stages=[
                _stage(VALIDATE_STAGE_ID, _component("Microsoft.BizTalk.Component.XmlValidator")),
                _stage(DECODE_STAGE_ID, _component("Microsoft.BizTalk.Component.JsonDecoder")),
            ],
        )
        workflow = map_pipeline_to_workflow(document, registry=registry)
        assert [a.name for a in workflow.actions] == ["Decode", "Validate"]

    def test_only_first_matching_stage_is_used(self, registry):
        document = PipelineDocument(
            category_id=RECEIVE_PIPELINE_ID,
            stages=[
                _stage(DECODE_STAGE_ID, _component("Microsoft.BizTalk.Component.JsonDecoder", "First")),
                _stage(DECODE_STAGE_ID, _component("Microsoft.BizTalk.Component.JsonDecoder", "Second")),
            ],
        )
        workflow = map_pipeline_to_workflow(document, registry=registry)
        assert len(workflow.actions) == 1
        assert [c.name for c in workflow.actions[0].children] == ["First"]

    def test_unknown_direction_uses_send_order(self, registry):
        document = PipelineDocument(
            stages=[
                _stage(DISASSEMBLE_STAGE_ID, _component("Microsoft.BizTalk.Component.XmlDasmComp")),
                _stage(ASSEMBLE_STAGE_ID, _component("Microsoft.BizTalk.Component.XmlAsmComp")),
            ],
        )
        workflow = map_pipeline_to_workflow(document, registry=registry)
        assert workflow.triggers[0].name == "pipeline_send"
        assert [a.name for a in workflow.actions] == ["Assemble"]

    def test_xml_disassemble_end_to_end(self, registry):
        document = PipelineDocument(
            category_id=RECEIVE_PIPELINE_ID,
            stages=[_stage(DISASSEMBLE_STAGE_ID, _component("Microsoft.BizTalk.Component.XmlDasmComp", "XML disassembler"))],
        )
        workflow = map_pipeline_to_workflow(document, registry=registry)

        assert len(workflow.triggers) == 1
        assert len(workflow.actions) == 1
        scope = workflow.actions[0]
        assert scope.name == "Disassemble"
        assert scope.type is ActionType.SCOPE
        assert len(scope.children) == 1
        foreach = scope.children[0]
        assert foreach.type is ActionType.FOREACH
        assert len(foreach.children) == 1
        child = foreach.children[0]
        assert child.name == "Parse_XML_with_Schema"
        assert child.type is ActionType.XML_PARSE
        assert child.parent_action_name == foreach.name == "XMLdisassembler"
        assert "// 1. Upload XSD schema to Logic App artifacts" in child.details
        assert [scope.sequence, foreach.sequence, child.sequence] == [1, 2, 3]

    def test_default_registry_is_used_when_none_given(self, receive_document):
        workflow = map_pipeline_to_workflow(receive_document)
        assert len(workflow.actions) == 3


# ---------------------------------------------------------------------------
# Component dispatch
# ---------------------------------------------------------------------------


class TestSelectRule:
    @pytest.mark.parametrize(
        "identity, rule_name, action_type",
        [
            ("Microsoft.BizTalk.Component.XmlDasmComp", "xml_disassembler", ActionType.FOREACH),
            ("Microsoft.BizTalk.Component.FFDasmComp", "flat_file_disassembler", ActionType.FOREACH),
            ("Microsoft.BizTalk.Component.BTFDasmComp", "disassembler", ActionType.FOREACH),
            ("Microsoft.BizTalk.Component.XmlAsmComp", "xml_assembler", ActionType.XML_COMPOSE),
            ("Microsoft.BizTalk.Component.FFAsmComp", "flat_file_assembler", ActionType.FLAT_FILE_ENCODING),
            ("Microsoft.BizTalk.Component.BTFAsmComp", "assembler", ActionType.COMPOSE),
            ("Microsoft.BizTalk.Component.MIME_SMIME_Decoder", "mime", ActionType.INVOKE_FUNCTION),
            ("Microsoft.BizTalk.Component.MIME_SMIME_Encoder", "mime", ActionType.INVOKE_FUNCTION),
            ("Microsoft.BizTalk.Component.PartyRes", "party_resolution", ActionType.INVOKE_FUNCTION),
            ("Contoso.Pipeline.XslTransformComponent", "xsl_transform", ActionType.XSLT),
            ("Contoso XSL Transform", "xsl_transform", ActionType.XSLT),
            ("Microsoft.BizTalk.Component.XmlValidator", "general", ActionType.COMPOSE),
            ("Contoso.Pipeline.Zipper", "general", ActionType.COMPOSE),
        ],
    )
    def test_rule_selection(self, identity, rule_name, action_type):
        rule = select_rule(_component(identity))
        assert rule.name == rule_name
        assert rule.action_type is action_type

    def test_metadata_name_is_what_the_rules_see(self):
        component = _component("Microsoft.BizTalk.Component.XmlDasmComp", "Renamed splitter")
        assert select_rule(component).name == "xml_disassembler"


class TestMapComponent:
    def test_absent_component(self, registry):
        assert map_component(None, _stage(DECODE_STAGE_ID), itertools.count(1), registry) is None

    def test_details_layout(self, registry):
        component = _component(
            "Microsoft.BizTalk.Component.JsonDecoder",
            "JSON decoder",
            [_prop("RootNode", "Order")],
        )
        action = map_component(component, _stage(DECODE_STAGE_ID, component), itertools.count(5), registry, "Decode")

        lines = action.details.splitlines()
        assert lines[:6] == [
            "// Component: JSON Decoder",
            "// Description: Decodes JSON messages",
            "// Behavior: Converts JSON to XML representation",
            "// Message Flow: 1 message in -> 1 message out",
            "// Properties:",
            "//   RootNode = Order",
        ]
        assert "// Use the xml() expression on the JSON payload" in lines
        assert "// Migration Complexity: Low" in lines
        assert lines[-1] == "// Stage: Decode (All)"
        assert action.name == "JSONdecoder"
        assert action.sequence == 5
        assert action.parent_action_name == "Decode"
        assert action.component_properties == {"RootNode": "Order"}

    def test_flat_file_child_names_schema(self, registry):
        component = _component(
            "Microsoft.BizTalk.Component.FFDasmComp",
            "Flat file disassembler",
            [_prop("DocumentSpecName", "Contoso.Schemas.Order")],
        )
        cursor = itertools.count(1)
        action = map_component(component, _stage(DISASSEMBLE_STAGE_ID, component), cursor, registry)

        child = action.children[0]
        assert child.name == "Flat_File_Decoding"
        assert child.type is ActionType.FLAT_FILE_DECODING
        assert child.details.splitlines()[-1] == "// 4. Schema name from property: Contoso.Schemas.Order"
        assert (action.sequence, child.sequence) == (1, 2)
        assert next(cursor) == 3
        assert action.details.splitlines()[-1] == "// Stage: Disassemble (FirstMatch)"

    def test_flat_file_child_placeholder(self, registry):
        component = _component("Microsoft.BizTalk.Component.FFDasmComp")
        action = map_component(component, _stage(DISASSEMBLE_STAGE_ID, component), itertools.count(1), registry)
        assert action.children[0].details.endswith("SCHEMA_NAME_HERE")

    def test_generic_disassembler_has_no_children(self, registry):
        component = _component("Microsoft.BizTalk.Component.BTFDasmComp")
        action = map_component(component, _stage(DISASSEMBLE_STAGE_ID, component), itertools.count(1), registry)
        assert action.type is ActionType.FOREACH
        assert action.children == []

    def test_assembler_guidance(self, registry):
        component = _component("Microsoft.BizTalk.Component.FFAsmComp")
        action = map_component(component, _stage(ASSEMBLE_STAGE_ID, component), itertools.count(1), registry)
        assert "// 4. Ensure input is XML matching schema structure" in action.details

    def test_mime_decoder_properties(self, registry):
        component = _component("Microsoft.BizTalk.Component.MIME_SMIME_Decoder")
        action = map_component(component, _stage(DECODE_STAGE_ID, component), itertools.count(1), registry)
        assert action.component_properties == {
            "functionName": "DecodeMimeSmimeMessage",
            "messageContent": "@triggerBody()?['$content']",
            "validateSignature": "true",
            "decryptMessage": "true",
        }
        assert "// FUNCTION NAME: DecodeMimeSmimeMessage" in action.details

    def test_declared_property_overrides_synthesized_key(self, registry):
        component = _component(
            "Microsoft.BizTalk.Component.MIME_SMIME_Decoder",
            properties=[_prop("functionName", "LegacyMimeDecoder"), _prop("validateSignature", "false")],
        )
        action = map_component(component, _stage(DECODE_STAGE_ID, component), itertools.count(1), registry)
        assert action.component_properties["functionName"] == "LegacyMimeDecoder"
        assert action.component_properties["validateSignature"] == "false"
        assert action.component_properties["decryptMessage"] == "true"

    def test_properties_without_name_or_value_are_skipped(self, registry):
        component = _component(
            "Contoso.Pipeline.Zipper",
            properties=[ComponentProperty(name="", value=PropertyValue(text="x")), ComponentProperty(name="NoValue")],
        )
        action = map_component(component, _stage(DECODE_STAGE_ID, component), itertools.count(1), registry)
        assert action.component_properties == {}

    def test_party_resolution_properties(self, registry):
        component = _component("Microsoft.BizTalk.Component.PartyRes", "Party resolution")
        action = map_component(component, _stage(DECODE_STAGE_ID, component), itertools.count(1), registry)
        assert action.component_properties["resolutionMode"] == "CertificateThenSID"
        assert action.component_properties["windowsSID"] == "@triggerBody()?['WindowsSID']"

    def test_xslt_guidance(self, registry):
        component = _component("Contoso.Pipeline.XslTransformComponent")
        action = map_component(component, _stage(DECODE_STAGE_ID, component), itertools.count(1), registry)
        assert "// 2. Upload XSLT to Logic App artifacts/Maps folder" in action.details

    def test_unknown_component_gets_fallback_notes(self):
        component = _component("Contoso.Pipeline.Zipper")
        action = map_component(
            component, _stage(DECODE_STAGE_ID, component), itertools.count(1), ComponentRegistry.empty()
        )
        assert action.type is ActionType.COMPOSE
        assert "// Component: Contoso.Pipeline.Zipper" in action.details
        assert "// Custom component - requires manual migration" in action.details
        assert "// Custom component detected" in action.details
        assert "// Migration Complexity: Variable" in action.details
