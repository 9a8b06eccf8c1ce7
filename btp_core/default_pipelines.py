"""
default_pipelines.py
====================
Classifies a pipeline document against the out-of-box BizTalk pipeline
patterns (PassThru, XML, templates) or marks it as custom.

The workflow mapper only cares whether the result is a pass-through variant;
the CLI shows the full description.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .btp_parser import PipelineDirection, PipelineDocument

logger = logging.getLogger(__name__)


class DefaultPipelineType(str, Enum):
    PASS_THRU_RECEIVE = "PassThruReceive"
    PASS_THRU_TRANSMIT = "PassThruTransmit"
    XML_RECEIVE = "XMLReceive"
    XML_TRANSMIT = "XMLTransmit"
    RECEIVE_TEMPLATE = "ReceiveTemplate"
    TRANSMIT_TEMPLATE = "TransmitTemplate"
    CUSTOM = "Custom"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class DefaultPipelineInfo:
    type: DefaultPipelineType
    name: str
    assembly: str
    description: str
    use_cases: str
    limitations: str
    template_file: str | None = None
    policy_file: str | None = None

    @property
    def is_pass_thru(self) -> bool:
        return self.type in (DefaultPipelineType.PASS_THRU_RECEIVE, DefaultPipelineType.PASS_THRU_TRANSMIT)

    @property
    def is_default(self) -> bool:
        return self.is_pass_thru or self.type in (
            DefaultPipelineType.XML_RECEIVE,
            DefaultPipelineType.XML_TRANSMIT,
        )

    @property
    def is_template(self) -> bool:
        return self.type in (DefaultPipelineType.RECEIVE_TEMPLATE, DefaultPipelineType.TRANSMIT_TEMPLATE)


_DEFAULT_ASSEMBLY = "Microsoft.BizTalk.DefaultPipelines"

_UNKNOWN = DefaultPipelineInfo(
    type=DefaultPipelineType.UNKNOWN,
    name="Unknown",
    assembly="Unknown",
    description="Unknown pipeline type",
    use_cases="Unknown",
    limitations="Unknown",
)

_RECEIVE_TEMPLATE = DefaultPipelineInfo(
    type=DefaultPipelineType.RECEIVE_TEMPLATE,
    name="Receive Pipeline Template",
    assembly="Custom (from template)",
    description="Empty receive pipeline template from BTSReceivePipeline.btp",
    use_cases="Starting point for creating custom receive pipelines. Modify in Pipeline Designer to add components.",
    limitations=(
        "Template must be customized before use. Cannot route to orchestrations or promote "
        "properties without components."
    ),
    template_file="BTSReceivePipeline.btp",
    policy_file="BTSReceivePolicy.xml",
)

_TRANSMIT_TEMPLATE = DefaultPipelineInfo(
    type=DefaultPipelineType.TRANSMIT_TEMPLATE,
    name="Send Pipeline Template",
    assembly="Custom (from template)",
    description="Empty send pipeline template from BTSTransmitPipeline.btp",
    use_cases="Starting point for creating custom send pipelines. Modify in Pipeline Designer to add components.",
    limitations="Template must be customized before use. No message processing without components.",
    template_file="BTSTransmitPipeline.btp",
    policy_file="BTSTransmitPolicy.xml",
)

_PASS_THRU_RECEIVE = DefaultPipelineInfo(
    type=DefaultPipelineType.PASS_THRU_RECEIVE,
    name="PassThruReceive",
    assembly=_DEFAULT_ASSEMBLY,
    description="Pass-through receive pipeline with no components for simple pass-through scenarios",
    use_cases=(
        "When source and destination are known, no validation/encoding/disassembling needed. "
        "Commonly used with PassThruTransmit."
    ),
    limitations="Cannot route messages to orchestrations (no disassembler). Does not support property promotion.",
    policy_file="BTSReceivePolicy.xml",
)

_PASS_THRU_TRANSMIT = DefaultPipelineInfo(
    type=DefaultPipelineType.PASS_THRU_TRANSMIT,
    name="PassThruTransmit",
    assembly=_DEFAULT_ASSEMBLY,
    description="Pass-through send pipeline with no components",
    use_cases="When no document processing is necessary before sending the message to destination",
    limitations="No message transformation or encoding",
    policy_file="BTSTransmitPolicy.xml",
)

_XML_RECEIVE = DefaultPipelineInfo(
    type=DefaultPipelineType.XML_RECEIVE,
    name="XMLReceive",
    assembly=_DEFAULT_ASSEMBLY,
    description=(
        "XML receive pipeline with XML Disassembler in Disassemble stage and Party Resolution "
        "in ResolveParty stage"
    ),
    use_cases="Processing XML messages, disassembling envelopes, resolving parties from certificates or security IDs",
    limitations="Does not support XML documents larger than 4 gigabytes",
    policy_file="BTSReceivePolicy.xml",
)

_XML_TRANSMIT = DefaultPipelineInfo(
    type=DefaultPipelineType.XML_TRANSMIT,
    name="XMLTransmit",
    assembly=_DEFAULT_ASSEMBLY,
    description="XML send pipeline with XML Assembler in Assemble stage",
    use_cases="Assembling XML messages with envelopes before sending",
    limitations="Does not support XML documents larger than 4 gigabytes",
    policy_file="BTSTransmitPolicy.xml",
)


def detect_default_pipeline(document: PipelineDocument | None) -> DefaultPipelineInfo:
    """Return the default-pipeline pattern *document* follows."""
    if document is None:
        return _UNKNOWN

    direction = document.direction
    policy_file = document.policy_file_path or ""
    names = [c.name for stage in document.stages for c in stage.components if c.name]
    has_components = any(stage.components for stage in document.stages)

    if not has_components:
        if direction is PipelineDirection.RECEIVE and "Receive" in policy_file:
            return _RECEIVE_TEMPLATE
        if direction is PipelineDirection.SEND and "Transmit" in policy_file:
            return _TRANSMIT_TEMPLATE
        if direction is PipelineDirection.RECEIVE:
            return _PASS_THRU_RECEIVE
        if direction is PipelineDirection.SEND:
            return _PASS_THRU_TRANSMIT

    if direction is PipelineDirection.RECEIVE and any("XmlDasmComp" in n for n in names):
        return _XML_RECEIVE
    if direction is PipelineDirection.SEND and any("XmlAsmComp" in n for n in names):
        return _XML_TRANSMIT

    if has_components:
        logger.debug("Pipeline classified as custom (%d components).", document.component_count)
        return DefaultPipelineInfo(
            type=DefaultPipelineType.CUSTOM,
            name="Custom Pipeline",
            assembly="Custom",
            description="Custom pipeline with specific components configured",
            use_cases="Specialized message processing requirements",
            limitations="Varies based on components used",
            template_file="Created from BTSReceivePipeline.btp or BTSTransmitPipeline.btp template",
            policy_file=policy_file,
        )

    return _UNKNOWN
