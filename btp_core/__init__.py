"""core — deterministic pipeline parsing and workflow mapping engine."""
from .btp_parser import ParsedPipeline, PipelineDocument, parse_pipeline_file, parse_pipeline_xml
from .default_pipelines import DefaultPipelineInfo, DefaultPipelineType, detect_default_pipeline
from .json_generator import generate_workflow_json, output_filename
from .mapper import WorkflowMapper, map_pipeline_to_workflow, sanitize_name
from .registry import ComponentMapping, ComponentRegistry, get_default_registry, reset_default_registry
from .workflow_model import ActionType, WorkflowAction, WorkflowModel, WorkflowTrigger

__all__ = [
    "parse_pipeline_xml", "parse_pipeline_file", "ParsedPipeline", "PipelineDocument",
    "detect_default_pipeline", "DefaultPipelineInfo", "DefaultPipelineType",
    "WorkflowMapper", "map_pipeline_to_workflow", "sanitize_name",
    "ComponentRegistry", "ComponentMapping", "get_default_registry", "reset_default_registry",
    "WorkflowModel", "WorkflowAction", "WorkflowTrigger", "ActionType",
    "generate_workflow_json", "output_filename",
]
