"""
migration_agent.py
==================
Migration Orchestration Agent.

This module is the single coordinator between the front end (CLI) and the
backend subsystems (parser, classifier, mapper, JSON generator).

Responsibilities:
    - Own and enforce the migration workflow as a formal finite state machine.
    - Provide a clean, typed public API that the CLI delegates to.
    - Resolve the component registry once and pass it into the mapper.
    - Emit structured workflow events for progress rendering.
    - Convert parser and I/O failures into an ERROR phase with a message
      instead of letting them escape to the caller.

Author: Transpiler Architect
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import Callable

from btp_core.btp_parser import ParsedPipeline, parse_pipeline_file, parse_pipeline_xml
from btp_core.catalog import get_component_category
from btp_core.config import MigratorSettings
from btp_core.default_pipelines import DefaultPipelineInfo, detect_default_pipeline
from btp_core.json_generator import generate_workflow_json, output_filename
from btp_core.mapper import WorkflowMapper
from btp_core.registry import ComponentRegistry, get_default_registry
from btp_core.workflow_model import WorkflowModel

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Workflow state machine
# ---------------------------------------------------------------------------


class WorkflowPhase(Enum):
    """
    Ordered phases of a migration run.

    Transitions are strictly enforced: no phase can be entered unless its
    prerequisite phase has completed successfully.
    """
    IDLE = auto()
    PARSING = auto()
    PARSED = auto()
    MAPPING = auto()
    MAPPED = auto()
    GENERATING = auto()
    DONE = auto()
    ERROR = auto()


# Allowed transitions (phase → set of valid next phases)
_VALID_TRANSITIONS: dict[WorkflowPhase, set[WorkflowPhase]] = {
    WorkflowPhase.IDLE:       {WorkflowPhase.PARSING, WorkflowPhase.ERROR},
    WorkflowPhase.PARSING:    {WorkflowPhase.PARSED, WorkflowPhase.ERROR},
    WorkflowPhase.PARSED:     {WorkflowPhase.MAPPING, WorkflowPhase.PARSING, WorkflowPhase.ERROR},
    WorkflowPhase.MAPPING:    {WorkflowPhase.MAPPED, WorkflowPhase.ERROR},
    WorkflowPhase.MAPPED:     {WorkflowPhase.GENERATING, WorkflowPhase.MAPPING, WorkflowPhase.PARSING, WorkflowPhase.ERROR},
    WorkflowPhase.GENERATING: {WorkflowPhase.DONE, WorkflowPhase.ERROR},
    WorkflowPhase.DONE:       {
        WorkflowPhase.IDLE, WorkflowPhase.PARSING, WorkflowPhase.MAPPING, WorkflowPhase.GENERATING, WorkflowPhase.ERROR,
    },
    WorkflowPhase.ERROR:      {WorkflowPhase.IDLE, WorkflowPhase.PARSING},
}


# ---------------------------------------------------------------------------
# Event system
# ---------------------------------------------------------------------------


class EventKind(Enum):
    PHASE_CHANGED = "phase_changed"
    OUTPUT_WRITTEN = "output_written"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class WorkflowEvent:
    """Immutable event emitted by MigrationAgent for the front end to consume."""
    kind: EventKind
    message: str
    payload: dict = field(default_factory=dict)
    timestamp: float = field(default_factory=time.monotonic)


# Callback signature: receives a WorkflowEvent, returns nothing.
EventCallback = Callable[[WorkflowEvent], None]


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@dataclass
class MigrationState:
    """Typed container for all mutable migration state, owned by one agent."""
    phase: WorkflowPhase = WorkflowPhase.IDLE
    source_name: str | None = None
    parsed_pipeline: ParsedPipeline | None = None
    pattern: DefaultPipelineInfo | None = None
    workflow: WorkflowModel | None = None
    workflow_json: str | None = None
    workflow_kind: str | None = None
    output_path: Path | None = None
    error_message: str | None = None

    @property
    def can_map(self) -> bool:
        return (
            self.phase in {WorkflowPhase.PARSED, WorkflowPhase.MAPPED, WorkflowPhase.DONE}
            and self.parsed_pipeline is not None
        )

    @property
    def can_generate(self) -> bool:
        return self.phase in {WorkflowPhase.MAPPED, WorkflowPhase.DONE} and self.workflow is not None

    @property
    def can_write(self) -> bool:
        return self.phase == WorkflowPhase.DONE and self.workflow_json is not None


# ---------------------------------------------------------------------------
# Main agent
# ---------------------------------------------------------------------------


class MigrationAgent:
    """
    Workflow orchestration agent for the BizTalk pipeline migrator.

    Every step returns ``True``/``False`` (or a path / ``None``); failures
    are recorded in ``state.error_message`` and announced as events rather
    than raised. Calling a step out of order is a soft failure too; only a
    transition the state machine forbids raises ``RuntimeError``.

    Example
    -------
    ::

        agent = MigrationAgent()
        agent.subscribe(print)
        if agent.run("ReceivePipeline.btp", output_dir="out"):
            print(agent.state.output_path)
    """

    def __init__(
        self,
        registry: ComponentRegistry | None = None,
        settings: MigratorSettings | None = None,
    ) -> None:
        self._settings = settings or MigratorSettings()
        self._registry = registry
        self._state = MigrationState()
        self._callbacks: list[EventCallback] = []

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> MigrationState:
        return self._state

    @property
    def settings(self) -> MigratorSettings:
        return self._settings

    @property
    def registry(self) -> ComponentRegistry:
        if self._registry is None:
            self._registry = get_default_registry(self._settings.registry_path)
        return self._registry

    def reset(self) -> None:
        """Discard all parsed / mapped state."""
        logger.info("MigrationAgent: reset.")
        self._state = MigrationState()

    # ------------------------------------------------------------------
    # Event subscription
    # ------------------------------------------------------------------

    def subscribe(self, callback: EventCallback) -> None:
        """Register a callback to receive WorkflowEvents."""
        self._callbacks.append(callback)

    def _emit(self, kind: EventKind, message: str, **payload) -> None:
        event = WorkflowEvent(kind=kind, message=message, payload=payload)
        logger.debug("MigrationAgent event: %s — %s", kind.value, message)
        for cb in self._callbacks:
            try:
                cb(event)
            except Exception as exc:
                logger.warning("Event callback raised: %s", exc)

    # ------------------------------------------------------------------
    # Phase 1: Parse
    # ------------------------------------------------------------------

    def parse(self, raw_xml: str | bytes, source_name: str | None = None) -> bool:
        """
        Validate and parse raw ``.btp`` XML.

        Returns
        -------
        bool
            True on success; False on failure (error stored in state.error_message).
        """
        self._transition(WorkflowPhase.PARSING)
        self._emit(EventKind.INFO, "Validating and parsing pipeline XML…")

        try:
            parsed = parse_pipeline_xml(raw_xml)
        except ValueError as exc:
            return self._fail(f"Pipeline parse failed: {exc}")
        except Exception as exc:
            logger.exception("Unexpected parse error")
            return self._fail(f"Unexpected error during parsing: {exc}")

        return self._accept_parsed(parsed, source_name)

    def parse_file(self, path: str | Path) -> bool:
        """Read and parse a ``.btp`` file; see `parse`."""
        self._transition(WorkflowPhase.PARSING)
        self._emit(EventKind.INFO, f"Reading pipeline file {path}…", path=str(path))

        try:
            parsed = parse_pipeline_file(path)
        except FileNotFoundError as exc:
            return self._fail(str(exc))
        except ValueError as exc:
            return self._fail(f"Pipeline parse failed: {exc}")
        except OSError as exc:
            return self._fail(f"Could not read pipeline file {path}: {exc}")

        return self._accept_parsed(parsed, Path(path).stem)

    def _accept_parsed(self, parsed: ParsedPipeline, source_name: str | None) -> bool:
        self._state.parsed_pipeline = parsed
        self._state.source_name = source_name
        self._state.pattern = detect_default_pipeline(parsed.document)
        self._state.workflow = None
        self._state.workflow_json = None
        self._state.workflow_kind = None
        self._state.output_path = None
        self._state.error_message = None

        self._transition(WorkflowPhase.PARSED)
        self._emit(
            EventKind.INFO,
            f"Pipeline '{parsed.document.friendly_name or source_name or 'unnamed'}' parsed — "
            f"{parsed.stage_count} stages, {parsed.component_count} components.",
            direction=parsed.direction.value,
            stage_count=parsed.stage_count,
            component_count=parsed.component_count,
            pattern=self._state.pattern.type.value,
        )
        return True

    # ------------------------------------------------------------------
    # Phase 2: Map
    # ------------------------------------------------------------------

    def map(self, workflow_name: str | None = None) -> bool:
        """
        Run the mapping engine against the parsed pipeline.

        Must be called after a successful `parse()` / `parse_file()`. When
        *workflow_name* is blank the pipeline's friendly name, then the
        source file name, is used.
        """
        if not self._state.can_map:
            return self._fail(
                "Cannot map: pipeline has not been successfully parsed.",
                kind=EventKind.WARNING,
            )

        self._transition(WorkflowPhase.MAPPING)
        self._emit(EventKind.INFO, "Mapping pipeline stages to workflow actions…")

        parsed = self._state.parsed_pipeline
        assert parsed is not None  # guaranteed by can_map guard above
        name = workflow_name or parsed.document.friendly_name or self._state.source_name

        try:
            workflow = WorkflowMapper(self.registry).map(parsed.document, name)
        except Exception as exc:
            logger.exception("Mapping raised unexpectedly")
            return self._fail(f"Mapping engine error: {exc}")

        self._state.workflow = workflow
        self._state.workflow_json = None
        self._state.output_path = None

        self._transition(WorkflowPhase.MAPPED)
        self._emit(
            EventKind.INFO,
            f"Mapping complete. Workflow '{workflow.name}' has {workflow.action_count} actions.",
            workflow_name=workflow.name,
            action_count=workflow.action_count,
        )
        return True

    # ------------------------------------------------------------------
    # Phase 3: Generate
    # ------------------------------------------------------------------

    def generate(self, workflow_kind: str | None = None) -> bool:
        """Serialize the mapped workflow to Logic Apps JSON."""
        if not self._state.can_generate:
            return self._fail(
                "Cannot generate: pipeline has not been successfully mapped.",
                kind=EventKind.WARNING,
            )

        kind = workflow_kind or self._settings.workflow_kind
        self._transition(WorkflowPhase.GENERATING)

        try:
            text = generate_workflow_json(self._state.workflow, kind)  # type: ignore[arg-type]
        except Exception as exc:
            logger.exception("Workflow JSON generation raised unexpectedly")
            return self._fail(f"JSON generation error: {exc}")

        self._state.workflow_json = text
        self._state.workflow_kind = kind

        self._transition(WorkflowPhase.DONE)
        self._emit(EventKind.INFO, f"Generated {kind} workflow definition.", workflow_kind=kind)
        return True

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def write_output(self, output_dir: str | Path) -> Path | None:
        """Write the generated JSON into *output_dir*; returns the file path."""
        if not self._state.can_write:
            self._fail("Cannot write: no workflow has been generated.", kind=EventKind.WARNING)
            return None

        target = Path(output_dir) / self.get_output_filename()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(self._state.workflow_json or "", encoding="utf-8")
        except OSError as exc:
            self._fail(f"Could not write {target}: {exc}")
            return None

        self._state.output_path = target
        logger.info("Workflow written to %s", target)
        self._emit(EventKind.OUTPUT_WRITTEN, f"Workflow written to {target}", path=str(target))
        return target

    def run(
        self,
        path: str | Path,
        output_dir: str | Path | None = None,
        workflow_name: str | None = None,
        workflow_kind: str | None = None,
    ) -> bool:
        """Parse, map and generate in one go; write the file if *output_dir* is given."""
        if not (self.parse_file(path) and self.map(workflow_name) and self.generate(workflow_kind)):
            return False
        if output_dir is not None:
            return self.write_output(output_dir) is not None
        return True

    def get_output_filename(self) -> str:
        if self._state.workflow is not None:
            return output_filename(self._state.workflow)
        return f"{self._state.source_name or 'pipeline'}_workflow.json"

    def get_stage_summary(self) -> list[dict] | None:
        """
        Return a serialisable stage summary for display.
        Each dict represents one stage, in document order.
        """
        if not self._state.parsed_pipeline:
            return None

        summary = []
        for stage in self._state.parsed_pipeline.document.stages:
            meta = stage.metadata
            summary.append({
                "name": meta.name,
                "category_id": stage.category_id,
                "execution_mode": meta.execution_mode.value,
                "component_category": get_component_category(stage.category_id).name,
                "components": [
                    {
                        "name": c.identity,
                        "component_name": c.component_name,
                        "display_name": c.metadata.name if c.metadata else c.identity,
                        "type": c.metadata.type.value if c.metadata else "Unknown",
                        "properties": {p.name: p.value.text for p in c.properties if p.name and p.value is not None},
                    }
                    for c in stage.components
                ],
            })
        return summary

    # ------------------------------------------------------------------
    # Internal — state machine
    # ------------------------------------------------------------------

    def _transition(self, target: WorkflowPhase) -> None:
        current = self._state.phase
        allowed = _VALID_TRANSITIONS.get(current, set())

        if target not in allowed:
            raise RuntimeError(
                f"Invalid workflow transition: {current.name} → {target.name}. "
                f"Allowed targets: {sorted(p.name for p in allowed)}"
            )

        logger.info("Workflow: %s → %s", current.name, target.name)
        self._state.phase = target
        self._emit(
            EventKind.PHASE_CHANGED,
            f"Phase: {target.name}",
            previous=current.name,
            current=target.name,
        )

    def _fail(
        self,
        message: str,
        kind: EventKind = EventKind.ERROR,
    ) -> bool:
        logger.error("MigrationAgent failure: %s", message)
        self._state.error_message = message
        if kind == EventKind.ERROR:
            self._state.phase = WorkflowPhase.ERROR
        self._emit(kind, message)
        return False
