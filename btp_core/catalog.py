"""
catalog.py
==========
Static metadata catalog for BizTalk pipeline stages, component categories and
the out-of-box pipeline components.

The parser and the mapper never hard-code stage GUIDs or component names; they
ask this module. Every lookup is total: unknown identifiers resolve to an
"Unknown" entry instead of raising.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class StageExecutionMode(str, Enum):
    ALL = "All"
    FIRST_MATCH = "FirstMatch"
    STOP_ON_CONSUME = "StopOnConsume"


class ComponentType(str, Enum):
    GENERAL = "General"
    ASSEMBLING = "Assembling"
    DISASSEMBLING = "Disassembling"
    UNKNOWN = "Unknown"


# ---------------------------------------------------------------------------
# Stage category identifiers
# ---------------------------------------------------------------------------

DECODE_STAGE_ID = "9d0e4103-4cce-4536-83fa-4a5040674ad6"
DISASSEMBLE_STAGE_ID = "9d0e4105-4cce-4536-83fa-4a5040674ad6"
VALIDATE_STAGE_ID = "9d0e410d-4cce-4536-83fa-4a5040674ad6"
RESOLVE_PARTY_STAGE_ID = "9d0e410e-4cce-4536-83fa-4a5040674ad6"
PRE_ASSEMBLE_STAGE_ID = "9d0e4101-4cce-4536-83fa-4a5040674ad6"
ASSEMBLE_STAGE_ID = "9d0e4107-4cce-4536-83fa-4a5040674ad6"
ENCODE_STAGE_ID = "9d0e4108-4cce-4536-83fa-4a5040674ad6"

RECEIVE_PIPELINE_ID = "f66b9f5e-43ff-4f5f-ba46-885348ae1b4e"
SEND_PIPELINE_ID = "8c6b051c-0ff5-4fc2-9ae5-5016cb726282"


# ---------------------------------------------------------------------------
# Stage metadata
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StageMetadata:
    """Documented behaviour of one pipeline stage category."""

    name: str
    category_id: str | None
    execution_mode: StageExecutionMode
    min_occurs: int
    max_occurs: int
    purpose: str
    description: str
    behavior: str
    is_execution_mode_read_only: bool = True
    execution_mode_note: str = ""


_SEND_MODE_NOTE = (
    "Execution mode is always 'All' and cannot be changed. "
    "All send pipeline stages use 'All' execution mode."
)
_ALL_MODE_NOTE = "Execution mode is always 'All' and cannot be changed"

_STAGES: dict[str, StageMetadata] = {
    DECODE_STAGE_ID: StageMetadata(
        name="Decode",
        category_id=DECODE_STAGE_ID,
        execution_mode=StageExecutionMode.ALL,
        min_occurs=0,
        max_occurs=255,
        purpose="Decode or decrypt the message",
        description="Components that decode or decrypt incoming messages from one format to another",
        behavior="All components in this stage are run. Stage takes one message and produces one message.",
        execution_mode_note=_ALL_MODE_NOTE,
    ),
    DISASSEMBLE_STAGE_ID: StageMetadata(
        name="Disassemble",
        category_id=DISASSEMBLE_STAGE_ID,
        execution_mode=StageExecutionMode.FIRST_MATCH,
        min_occurs=0,
        max_occurs=255,
        purpose="Parse or disassemble the message",
        description="Components that parse or disassemble messages into zero, one, or multiple messages",
        behavior=(
            "Only the first component that recognizes the message format is run. "
            "Can produce 0-N messages. This is the ONLY stage with FirstMatch execution mode."
        ),
        execution_mode_note=(
            "Execution mode is always 'FirstMatch' and cannot be changed. "
            "This is the ONLY stage in receive pipelines with FirstMatch mode."
        ),
    ),
    VALIDATE_STAGE_ID: StageMetadata(
        name="Validate",
        category_id=VALIDATE_STAGE_ID,
        execution_mode=StageExecutionMode.ALL,
        min_occurs=0,
        max_occurs=255,
        purpose="Validate the message format",
        description="Components that validate XML messages against schemas",
        behavior="All components run. Executes once per message created by Disassemble stage.",
        execution_mode_note=_ALL_MODE_NOTE,
    ),
    RESOLVE_PARTY_STAGE_ID: StageMetadata(
        name="ResolveParty",
        category_id=RESOLVE_PARTY_STAGE_ID,
        execution_mode=StageExecutionMode.ALL,
        min_occurs=0,
        max_occurs=255,
        purpose="Resolve party information",
        description="Placeholder for Party Resolution Pipeline Component",
        behavior="All components run. Executes once per message created by Disassemble stage.",
        execution_mode_note=_ALL_MODE_NOTE,
    ),
    PRE_ASSEMBLE_STAGE_ID: StageMetadata(
        name="PreAssemble",
        category_id=PRE_ASSEMBLE_STAGE_ID,
        execution_mode=StageExecutionMode.ALL,
        min_occurs=0,
        max_occurs=255,
        purpose="Pre-processing before assembly",
        description="Custom processing before message assembly",
        behavior="All components in this stage are run.",
        execution_mode_note=_SEND_MODE_NOTE,
    ),
    ASSEMBLE_STAGE_ID: StageMetadata(
        name="Assemble",
        category_id=ASSEMBLE_STAGE_ID,
        execution_mode=StageExecutionMode.ALL,
        min_occurs=0,
        max_occurs=1,
        purpose="Assemble the message",
        description="Components that serialize messages and add envelopes",
        behavior="All components run. Maximum of 1 component in this stage.",
        execution_mode_note=_SEND_MODE_NOTE,
    ),
    ENCODE_STAGE_ID: StageMetadata(
        name="Encode",
        category_id=ENCODE_STAGE_ID,
        execution_mode=StageExecutionMode.ALL,
        min_occurs=0,
        max_occurs=255,
        purpose="Encode or encrypt the message",
        description="Components that encode or encrypt outgoing messages",
        behavior="All components in this stage are run.",
        execution_mode_note=_SEND_MODE_NOTE,
    ),
}


def get_stage_metadata(category_id: str | None) -> StageMetadata:
    """Return stage metadata for *category_id* (GUIDs compare case-insensitively)."""
    key = (category_id or "").lower()
    metadata = _STAGES.get(key)
    if metadata is not None:
        return metadata

    logger.debug("Unknown stage category id: %s", category_id)
    return StageMetadata(
        name="Unknown",
        category_id=category_id,
        execution_mode=StageExecutionMode.ALL,
        min_occurs=0,
        max_occurs=255,
        purpose="Unknown",
        description="Unknown stage",
        behavior="Unknown behavior",
        execution_mode_note="Unknown",
    )


# ---------------------------------------------------------------------------
# Component categories
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ComponentCategory:
    category_id: str | None
    name: str
    allowed_stages: tuple[str, ...]
    description: str


_CATEGORIES: dict[str, ComponentCategory] = {
    DECODE_STAGE_ID: ComponentCategory(
        category_id=DECODE_STAGE_ID,
        name="CATID_Decoder",
        allowed_stages=("Decode",),
        description=(
            "All decoding components should implement this category. MIME/SMIME Decoder is the ONLY "
            "out-of-box component that handles multi-part messages."
        ),
    ),
    DISASSEMBLE_STAGE_ID: ComponentCategory(
        category_id=DISASSEMBLE_STAGE_ID,
        name="CATID_DisassemblingParser",
        allowed_stages=("Disassemble",),
        description="All disassembling and parsing components should implement this category.",
    ),
    VALIDATE_STAGE_ID: ComponentCategory(
        category_id=VALIDATE_STAGE_ID,
        name="CATID_Validate",
        allowed_stages=("Validate",),
        description=(
            "Validation components should implement this category. XML Validator can be used "
            "in any stage except Disassemble or Assemble."
        ),
    ),
    RESOLVE_PARTY_STAGE_ID: ComponentCategory(
        category_id=RESOLVE_PARTY_STAGE_ID,
        name="CATID_PartyResolver",
        allowed_stages=("ResolveParty",),
        description=(
            "Party Resolution stage. Maps sender certificate thumbprint or Windows SID to a "
            "configured BizTalk party."
        ),
    ),
    ENCODE_STAGE_ID: ComponentCategory(
        category_id=ENCODE_STAGE_ID,
        name="CATID_Encoder",
        allowed_stages=("Encode",),
        description="All encoding components should implement this category.",
    ),
    ASSEMBLE_STAGE_ID: ComponentCategory(
        category_id=ASSEMBLE_STAGE_ID,
        name="CATID_AssemblingSerializer",
        allowed_stages=("Assemble",),
        description="All serializing and assembling components should implement this category.",
    ),
    PRE_ASSEMBLE_STAGE_ID: ComponentCategory(
        category_id=PRE_ASSEMBLE_STAGE_ID,
        name="CATID_Any",
        allowed_stages=(
            "PreAssemble", "Decode", "Disassemble", "Validate", "ResolveParty", "Assemble", "Encode",
        ),
        description="The component can be placed into any stage of a pipeline.",
    ),
}


def get_component_category(category_id: str | None) -> ComponentCategory:
    category = _CATEGORIES.get((category_id or "").lower())
    if category is not None:
        return category
    return ComponentCategory(
        category_id=category_id,
        name="Unknown",
        allowed_stages=("Unknown",),
        description="Unknown component category",
    )


# ---------------------------------------------------------------------------
# Component metadata
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ComponentMetadata:
    """Display metadata and classification of a pipeline component."""

    name: str
    type: ComponentType
    supports_probing: bool = False
    description: str = ""
    behavior: str = ""
    message_flow: str = ""


@dataclass(frozen=True)
class _ComponentPattern:
    # Any marker found in the identity selects the entry.
    markers: tuple[str, ...]
    metadata: ComponentMetadata
    requires_all: tuple[str, ...] = field(default_factory=tuple)

    def matches(self, identity: str) -> bool:
        if any(marker in identity for marker in self.markers):
            return True
        return bool(self.requires_all) and all(part in identity for part in self.requires_all)


_COMPONENT_PATTERNS: tuple[_ComponentPattern, ...] = (
    # Disassemblers
    _ComponentPattern(
        markers=("XmlDasmComp", "XML disassembler"),
        metadata=ComponentMetadata(
            name="XML Disassembler",
            type=ComponentType.DISASSEMBLING,
            supports_probing=True,
            description=(
                "Combines XML parsing and disassembling. Removes envelopes, disassembles "
                "interchanges, promotes properties."
            ),
            behavior=(
                "Parses envelope using schemas and creates a message for each document with "
                "promoted properties. Forces ALL datetime values to UTC."
            ),
            message_flow="1 interchange message in -> 0-N individual document messages out",
        ),
    ),
    _ComponentPattern(
        markers=("FFDasmComp", "Flat File Disassembler", "Flat file disassembler"),
        metadata=ComponentMetadata(
            name="Flat File Disassembler",
            type=ComponentType.DISASSEMBLING,
            supports_probing=True,
            description="Converts flat file messages to XML, disassembles into individual documents",
            behavior="Parses flat files according to schema, splits into messages, promotes properties",
            message_flow="1 message in -> 0-N messages out",
        ),
    ),
    _ComponentPattern(
        markers=("BTFDasmComp",),
        requires_all=("BizTalk Framework", "disassembler"),
        metadata=ComponentMetadata(
            name="BizTalk Framework Disassembler",
            type=ComponentType.DISASSEMBLING,
            supports_probing=True,
            description="Processes BizTalk Framework messages, handles reliable messaging",
            behavior="Disassembles BizTalk Framework envelopes, processes reliable messaging headers",
            message_flow="1 message in -> 0-N messages out",
        ),
    ),
    # Assemblers
    _ComponentPattern(
        markers=("XmlAsmComp", "XML assembler"),
        metadata=ComponentMetadata(
            name="XML Assembler",
            type=ComponentType.ASSEMBLING,
            description=(
                "Converts XML messages to appropriate format, adds envelopes, moves properties "
                "from context to body"
            ),
            behavior=(
                "Serializes message, wraps in envelope, adds headers/trailers, moves context "
                "properties to document"
            ),
            message_flow="1 message in -> 1 message out",
        ),
    ),
    _ComponentPattern(
        markers=("FFAsmComp", "Flat File Assembler", "Flat file assembler"),
        metadata=ComponentMetadata(
            name="Flat File Assembler",
            type=ComponentType.ASSEMBLING,
            description="Converts XML to flat file format, adds headers and trailers",
            behavior="Serializes XML to flat file according to schema, adds envelope components",
            message_flow="1 message in -> 1 message out",
        ),
    ),
    _ComponentPattern(
        markers=("BTFAsmComp",),
        requires_all=("BizTalk Framework", "assembler"),
        metadata=ComponentMetadata(
            name="BizTalk Framework Assembler",
            type=ComponentType.ASSEMBLING,
            description="Assembles messages with BizTalk Framework envelope for reliable messaging",
            behavior="Wraps message in BizTalk Framework envelope, adds reliable messaging headers",
            message_flow="1 message in -> 1 message out",
        ),
    ),
    # Decoders / encoders
    _ComponentPattern(
        markers=("MIME_SMIME_Decoder", "MIME/SMIME decoder"),
        metadata=ComponentMetadata(
            name="MIME/SMIME Decoder",
            type=ComponentType.GENERAL,
            description=(
                "ONLY out-of-box component that handles multi-part messages. Decrypts and "
                "validates signatures using certificates."
            ),
            behavior=(
                "Parses multi-part MIME into a multi-part message, decrypts using the service "
                "account certificate store and validates signatures."
            ),
            message_flow="1 multi-part MIME message in -> 1 multi-part message out",
        ),
    ),
    _ComponentPattern(
        markers=("MIME_SMIME_Encoder", "MIME/SMIME encoder"),
        metadata=ComponentMetadata(
            name="MIME/SMIME Encoder",
            type=ComponentType.GENERAL,
            description=(
                "Encodes messages in MIME/SMIME format. Can MIME encode, sign, or encrypt "
                "outgoing messages."
            ),
            behavior=(
                "Creates MIME structure, encrypts content using recipient certificates, adds "
                "digital signatures. Suspends the message when a certificate is missing."
            ),
            message_flow="1 message in -> 1 message out (or suspended on certificate error)",
        ),
    ),
    # Validators
    _ComponentPattern(
        markers=("XmlValidator", "XML validator"),
        metadata=ComponentMetadata(
            name="XML Validator",
            type=ComponentType.GENERAL,
            description=(
                "Validates XML messages against specified schemas. Can be used in any stage "
                "except Disassemble or Assemble."
            ),
            behavior="Performs XSD validation against configured schemas; failures suspend the message.",
            message_flow="1 message in -> 0-1 message out",
        ),
    ),
    # Party resolution
    _ComponentPattern(
        markers=("PartyRes", "Party resolution", "Party Resolution"),
        metadata=ComponentMetadata(
            name="Party Resolution",
            type=ComponentType.GENERAL,
            description=(
                "Maps sender certificate or security identifier (SID) to a configured party."
            ),
            behavior=(
                "Resolves party by certificate first (if enabled), then by SID. Stamps "
                "OriginatorPID as 's-1-5-7' when resolution fails."
            ),
            message_flow="1 message in -> 1 message out",
        ),
    ),
    # JSON
    _ComponentPattern(
        markers=("JsonDecoder", "JSON decoder"),
        metadata=ComponentMetadata(
            name="JSON Decoder",
            type=ComponentType.GENERAL,
            description="Decodes JSON messages",
            behavior="Converts JSON to XML representation",
            message_flow="1 message in -> 1 message out",
        ),
    ),
    _ComponentPattern(
        markers=("JsonEncoder", "JSON encoder"),
        metadata=ComponentMetadata(
            name="JSON Encoder",
            type=ComponentType.GENERAL,
            description="Encodes messages to JSON format",
            behavior="Converts XML to JSON representation",
            message_flow="1 message in -> 1 message out",
        ),
    ),
)


def get_component_metadata(identity: str | None) -> ComponentMetadata:
    """
    Resolve display metadata for a component identity.

    Matching is by case-sensitive substring against the known component type
    names and designer display names. Unknown identities are classified as
    ``ComponentType.UNKNOWN`` and named after the identity itself.
    """
    if identity:
        for pattern in _COMPONENT_PATTERNS:
            if pattern.matches(identity):
                return pattern.metadata

    return ComponentMetadata(
        name=identity or "Unknown",
        type=ComponentType.UNKNOWN,
        description="Unknown component type",
        behavior="Behavior not documented",
        message_flow="Unknown",
    )
