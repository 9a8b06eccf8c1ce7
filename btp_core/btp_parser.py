"""
btp_parser.py
=============
Deterministic ingestion and parsing engine for BizTalk pipeline (.btp) documents.

Responsibilities:
    - Safe XML parsing via lxml (no entity expansion, no network access).
    - Schema validation of the extracted structure via Pydantic v2 models.
    - Stage / component metadata resolution from the static catalog.
    - Clean, strongly-typed Python object graph returned to callers.

Author: Transpiler Architect
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from pathlib import Path
from typing import Any

from lxml import etree
from pydantic import BaseModel, Field, model_validator

from .catalog import (
    RECEIVE_PIPELINE_ID,
    SEND_PIPELINE_ID,
    ComponentMetadata,
    StageMetadata,
    get_component_metadata,
    get_stage_metadata,
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger(__name__)

_XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
_XML_DECLARATION_RE = re.compile(r"^\s*<\?xml[^>]*\?>")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class PipelineDirection(str, Enum):
    RECEIVE = "Receive"
    SEND = "Send"
    UNKNOWN = "Unknown"


# ---------------------------------------------------------------------------
# Component properties
# ---------------------------------------------------------------------------


class PropertyValue(BaseModel):
    """The ``<Value xsi:type="...">text</Value>`` payload of a component property."""

    type: str | None = Field(default=None, description="xsi:type, e.g. 'xsd:boolean'.")
    text: str = Field(default="")

    model_config = {"populate_by_name": True}

    @property
    def typed_value(self) -> Any:
        if not self.type or not self.text:
            return self.text

        kind = self.type.lower()
        if kind == "xsd:boolean":
            lowered = self.text.strip().lower()
            if lowered in ("true", "false"):
                return lowered == "true"
        elif kind in ("xsd:int", "xsd:integer"):
            try:
                return int(self.text)
            except ValueError:
                pass
        return self.text


class ComponentProperty(BaseModel):
    name: str = Field(default="")
    value: PropertyValue | None = Field(default=None)

    model_config = {"populate_by_name": True}


# ---------------------------------------------------------------------------
# Component / Stage / Document
# ---------------------------------------------------------------------------


class PipelineComponent(BaseModel):
    """
    One configured component inside a stage.

    ``name`` is the fully-qualified type name
    (``Microsoft.BizTalk.Component.XmlDasmComp``); ``component_name`` is the
    short designer name (``XML disassembler``).
    """

    name: str | None = Field(default=None, alias="Name")
    component_name: str | None = Field(default=None, alias="ComponentName")
    description: str | None = Field(default=None, alias="Description")
    version: str | None = Field(default=None, alias="Version")
    properties: list[ComponentProperty] = Field(default_factory=list, alias="Properties")
    cached_display_name: str | None = Field(default=None, alias="CachedDisplayName")
    cached_is_managed: bool = Field(default=False, alias="CachedIsManaged")

    # Populated from the catalog after validation; not part of the raw document.
    metadata: ComponentMetadata | None = Field(default=None, exclude=True)

    model_config = {"populate_by_name": True, "arbitrary_types_allowed": True}

    @model_validator(mode="after")
    def resolve_metadata(self) -> "PipelineComponent":
        if self.metadata is None:
            self.metadata = get_component_metadata(self.name or self.component_name)
        return self

    @property
    def identity(self) -> str:
        return self.name or self.component_name or ""

    def get_property(self, name: str) -> ComponentProperty | None:
        return next((p for p in self.properties if p.name == name), None)


class PipelineStage(BaseModel):
    category_id: str | None = Field(default=None, alias="CategoryId")
    components: list[PipelineComponent] = Field(default_factory=list, alias="Components")

    model_config = {"populate_by_name": True}

    @property
    def metadata(self) -> StageMetadata:
        return get_stage_metadata(self.category_id)

    @property
    def name(self) -> str:
        return self.metadata.name


class PipelineDocument(BaseModel):
    """
    Top-level BizTalk pipeline document model.

    Maps to the ``<Document>`` root of a ``.btp`` file.
    """

    policy_file_path: str | None = Field(default=None, alias="PolicyFilePath")
    major_version: int = Field(default=1, alias="MajorVersion")
    minor_version: int = Field(default=0, alias="MinorVersion")
    description: str | None = Field(default=None, alias="Description")
    category_id: str | None = Field(default=None, alias="CategoryId")
    friendly_name: str | None = Field(default=None, alias="FriendlyName")
    stages: list[PipelineStage] = Field(default_factory=list, alias="Stages")

    model_config = {"populate_by_name": True}

    @property
    def direction(self) -> PipelineDirection:
        """Receive/Send from the category id, falling back to the policy file name."""
        if self.category_id:
            category = self.category_id.lower()
            if category == RECEIVE_PIPELINE_ID:
                return PipelineDirection.RECEIVE
            if category == SEND_PIPELINE_ID:
                return PipelineDirection.SEND

        policy = self.policy_file_path or ""
        if "Receive" in policy:
            return PipelineDirection.RECEIVE
        if "Transmit" in policy or "Send" in policy:
            return PipelineDirection.SEND
        return PipelineDirection.UNKNOWN

    @property
    def component_count(self) -> int:
        return sum(len(stage.components) for stage in self.stages)


# ---------------------------------------------------------------------------
# XML → dict extraction
# ---------------------------------------------------------------------------


def _child_text(element: etree._Element, tag: str) -> str | None:
    child = element.find(tag)
    if child is None:
        return None
    return child.text or ""


def _extract_property(element: etree._Element) -> dict[str, Any]:
    value_el = element.find("Value")
    value = None
    if value_el is not None:
        value = {"type": value_el.get(f"{{{_XSI_NS}}}type"), "text": value_el.text or ""}
    return {"name": element.get("Name", ""), "value": value}


def _extract_component(element: etree._Element) -> dict[str, Any]:
    raw: dict[str, Any] = {}
    for tag in ("Name", "ComponentName", "Description", "Version", "CachedDisplayName"):
        text = _child_text(element, tag)
        if text is not None:
            raw[tag] = text

    managed = _child_text(element, "CachedIsManaged")
    if managed is not None:
        raw["CachedIsManaged"] = managed.strip().lower() == "true"

    raw["Properties"] = [_extract_property(p) for p in element.iterfind("Properties/Property")]
    return raw


def _extract_document(root: etree._Element) -> dict[str, Any]:
    if root.tag != "Document":
        raise ValueError(f"Expected a <Document> root element, found <{root.tag}>.")

    raw: dict[str, Any] = {key: root.get(key) for key in ("PolicyFilePath", "MajorVersion", "MinorVersion")}
    raw = {k: v for k, v in raw.items() if v is not None}

    for tag in ("Description", "CategoryId", "FriendlyName"):
        text = _child_text(root, tag)
        if text:
            raw[tag] = text

    raw["Stages"] = [
        {
            "CategoryId": stage.get("CategoryId"),
            "Components": [_extract_component(c) for c in stage.iterfind("Components/Component")],
        }
        for stage in root.iterfind("Stages/Stage")
    ]
    return raw


def _build_xml_parser() -> etree.XMLParser:
    return etree.XMLParser(resolve_entities=False, no_network=True, remove_comments=True)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


class ParsedPipeline(BaseModel):
    """
    The contract object returned by `parse_pipeline_xml`.
    Consumers should depend on this interface, not on internal models.
    """

    document: PipelineDocument
    direction: PipelineDirection
    stage_count: int
    component_count: int
    component_names: list[str]

    model_config = {"arbitrary_types_allowed": True}


def parse_pipeline_xml(raw_xml: str | bytes) -> ParsedPipeline:
    """
    Ingest and validate raw BizTalk pipeline XML.

    Parameters
    ----------
    raw_xml:
        The complete contents of a ``.btp`` file. ``bytes`` are decoded by
        the XML parser using the declared encoding; ``str`` may carry an XML
        declaration of any encoding.

    Returns
    -------
    ParsedPipeline
        A strongly-typed result envelope containing the validated document
        and derived metadata.

    Raises
    ------
    ValueError
        If the input is empty, the XML is malformed, or the structure is
        incompatible with the pipeline document schema.
    """
    if raw_xml is None or not raw_xml.strip():
        raise ValueError("Pipeline XML content cannot be empty.")

    logger.info("Beginning pipeline XML ingestion.")

    # ---- Phase 1: XML syntax ----
    try:
        if isinstance(raw_xml, str):
            # lxml rejects str input that still declares an encoding.
            root = etree.fromstring(_XML_DECLARATION_RE.sub("", raw_xml, count=1), _build_xml_parser())
        else:
            root = etree.fromstring(raw_xml, _build_xml_parser())
    except etree.XMLSyntaxError as exc:
        logger.error("XML syntax error: %s", exc)
        raise ValueError(f"Malformed pipeline XML: {exc}") from exc

    # ---- Phase 2: structure extraction + Pydantic validation ----
    try:
        document = PipelineDocument.model_validate(_extract_document(root))
    except ValueError as exc:
        # Pydantic v2 raises ValidationError, itself a ValueError subclass.
        logger.error("Pipeline schema validation failed: %s", exc)
        raise ValueError(f"Pipeline schema validation failed: {exc}") from exc

    names = [c.identity for stage in document.stages for c in stage.components]

    logger.info(
        "Pipeline '%s' resolved: direction=%s, %d stages, %d components",
        document.friendly_name or "<unnamed>",
        document.direction.value,
        len(document.stages),
        len(names),
    )

    return ParsedPipeline(
        document=document,
        direction=document.direction,
        stage_count=len(document.stages),
        component_count=len(names),
        component_names=names,
    )


def parse_pipeline_file(path: str | Path) -> ParsedPipeline:
    """
    Read and parse a ``.btp`` file from disk.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If the file content is not a valid pipeline document.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"Pipeline file not found: {file_path}")

    logger.debug("Reading pipeline file %s", file_path)
    return parse_pipeline_xml(file_path.read_bytes())
