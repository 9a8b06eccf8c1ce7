"""agents — migration workflow orchestration."""
from .migration_agent import EventKind, MigrationAgent, MigrationState, WorkflowEvent, WorkflowPhase

__all__ = ["MigrationAgent", "MigrationState", "WorkflowPhase", "WorkflowEvent", "EventKind"]
