"""
registry.py
===========
Pipeline connector registry: maps BizTalk pipeline component identities to
Logic Apps migration metadata.

The registry is loaded from ``pipeline-connector-registry.json``. Loading never
raises: a missing or malformed source yields an empty registry and a log line,
and `ComponentRegistry.resolve` stays total through its custom-component and
built-in fallbacks.

Usage
-----
::

    registry = get_default_registry()
    mapping = registry.resolve("Microsoft.BizTalk.Component.XmlDasmComp")
    print(mapping.formatted_notes())
"""

from __future__ import annotations

import json
import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_PATH = Path(__file__).resolve().parent / "data" / "pipeline-connector-registry.json"

COMPONENT_NAME_TOKEN = "{{COMPONENT_NAME}}"


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class Complexity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    VARIABLE = "Variable"


class ComponentMapping(BaseModel):
    """A single registry entry: how a pipeline component migrates to Logic Apps."""

    component_name: str
    display_name: str | None = None
    category: str | None = None
    action_type: str | None = None
    description: str | None = None
    migration_notes: tuple[str, ...] = ()
    required_resources: tuple[str, ...] = ()
    complexity: Complexity = Complexity.MEDIUM
    custom_code_required: bool = False
    # Raw `logicAppsAction` block; carried through for documentation only.
    action_template: dict[str, Any] | None = None

    model_config = {"frozen": True}

    @field_validator("complexity", mode="before")
    @classmethod
    def normalise_complexity(cls, v: Any) -> Any:
        if v is None:
            return Complexity.MEDIUM
        if isinstance(v, str):
            for level in Complexity:
                if level.value.lower() == v.strip().lower():
                    return level
            logger.warning("Unrecognised complexity level %r; treating as Variable.", v)
            return Complexity.VARIABLE
        return v

    def formatted_notes(self) -> str:
        """Render the mapping as ``//`` comment lines for an action's details."""
        lines: list[str] = []
        if self.description:
            lines.append(f"// {self.description}")

        if self.migration_notes:
            lines += ["//", "// MIGRATION NOTES:"]
            lines += [f"// {note}" for note in self.migration_notes]

        if self.required_resources:
            lines += ["//", "// REQUIRED RESOURCES:"]
            lines += [f"//   - {resource}" for resource in self.required_resources]

        if self.custom_code_required:
            lines += ["//", "// WARNING: This component requires custom code development"]

        lines += ["//", f"// Migration Complexity: {self.complexity.value}"]
        return "\n".join(lines)


class _RegistryEntry(BaseModel):
    """Raw shape of one `components` / `customComponents.pattern` JSON entry."""

    display_name: str | None = Field(default=None, alias="displayName")
    category: str | None = None
    logic_apps_action: dict[str, Any] | None = Field(default=None, alias="logicAppsAction")
    migration_notes: list[str] = Field(default_factory=list, alias="migrationNotes")
    required_resources: list[str] = Field(default_factory=list, alias="requiredResources")
    complexity: str | None = None
    custom_code_required: bool = Field(default=False, alias="customCodeRequired")

    model_config = {"populate_by_name": True, "extra": "allow"}

    def action_field(self, key: str) -> str | None:
        if not self.logic_apps_action:
            return None
        value = self.logic_apps_action.get(key)
        return None if value is None else str(value)

    def to_mapping(self, component_name: str) -> ComponentMapping:
        return ComponentMapping(
            component_name=component_name,
            display_name=self.display_name,
            category=self.category,
            action_type=self.action_field("type"),
            description=self.action_field("description"),
            migration_notes=tuple(self.migration_notes),
            required_resources=tuple(self.required_resources),
            complexity=self.complexity,
            custom_code_required=self.custom_code_required,
            action_template=self.logic_apps_action,
        )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def _section(raw: Mapping[str, Any], key: str, parent: str | None = None) -> Mapping[str, Any]:
    """Return ``raw[key]`` when it is a JSON object; anything else reads as empty."""
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        label = f"{parent}.{key}" if parent else key
        logger.warning("Registry '%s' section is not an object; ignoring it.", label)
        return {}
    return value


class ComponentRegistry:
    """
    Immutable lookup table from component identity to `ComponentMapping`.

    Instances are built by `ComponentRegistry.load` or
    `ComponentRegistry.from_dict`; after construction nothing mutates them,
    so one instance may be shared freely across threads.
    """

    def __init__(
        self,
        mappings: Mapping[str, ComponentMapping] | None = None,
        custom_pattern: _RegistryEntry | None = None,
        metadata: Mapping[str, Any] | None = None,
        source: str | None = None,
    ) -> None:
        # Keys are lower-cased; insertion order is load order.
        self._mappings: dict[str, ComponentMapping] = {
            key.lower(): value for key, value in (mappings or {}).items()
        }
        self._custom_pattern = custom_pattern
        self._metadata: dict[str, Any] = dict(metadata or {})
        self.source = source

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def empty(cls, source: str | None = None) -> "ComponentRegistry":
        return cls(source=source)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], source: str | None = None) -> "ComponentRegistry":
        """Build a registry from an already-decoded registry document."""
        mappings: dict[str, ComponentMapping] = {}
        components = _section(raw, "components")
        for name, entry in components.items():
            try:
                mapping = _RegistryEntry.model_validate(entry).to_mapping(name)
            except Exception as exc:
                logger.warning("Skipping registry entry '%s': %s", name, exc)
                continue
            if name.lower() in mappings:
                logger.warning("Duplicate registry key '%s' (case-insensitive); last entry wins.", name)
            mappings[name.lower()] = mapping

        custom_pattern: _RegistryEntry | None = None
        custom_components = _section(raw, "customComponents")
        raw_pattern = custom_components.get("pattern")
        if raw_pattern is not None:
            try:
                custom_pattern = _RegistryEntry.model_validate(raw_pattern)
            except Exception as exc:
                logger.warning("Ignoring malformed customComponents.pattern: %s", exc)

        raw_metadata = _section(raw, "metadata")
        metadata = {
            table: _section(raw_metadata, table, parent="metadata")
            for table in ("complexityLevels", "requiredServices")
        }
        return cls(mappings, custom_pattern, metadata, source)

    @classmethod
    def load(cls, path: str | Path | None = None) -> "ComponentRegistry":
        """
        Load the registry from *path* (defaults to the packaged JSON file).

        Never raises: read or parse failures are logged and produce an empty
        registry.
        """
        registry_path = Path(path) if path is not None else DEFAULT_REGISTRY_PATH
        try:
            raw = json.loads(registry_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.warning("Connector registry not found at %s; using empty registry.", registry_path)
            return cls.empty(str(registry_path))
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Could not read connector registry %s: %s", registry_path, exc)
            return cls.empty(str(registry_path))
        except json.JSONDecodeError as exc:
            logger.error(
                "Connector registry %s is not valid JSON (line %d, col %d): %s",
                registry_path,
                exc.lineno,
                exc.colno,
                exc.msg,
            )
            return cls.empty(str(registry_path))

        if not isinstance(raw, dict):
            logger.error("Connector registry %s must contain a JSON object.", registry_path)
            return cls.empty(str(registry_path))

        registry = cls.from_dict(raw, source=str(registry_path))
        logger.info("Loaded %d component mappings from %s", len(registry), registry_path)
        return registry

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._mappings)

    def __contains__(self, identity: object) -> bool:
        return isinstance(identity, str) and identity.lower() in self._mappings

    def resolve(self, identity: str | None) -> ComponentMapping:
        """
        Resolve *identity* to a mapping. Never returns ``None``.

        Order: exact (case-insensitive) match, partial match on either the
        fully-qualified or the short name, the registry's custom-component
        template, then a built-in "Unknown Component" mapping.
        """
        name = identity or ""
        lowered = name.lower()

        exact = self._mappings.get(lowered)
        if exact is not None:
            return exact

        # Blank identities would suffix-match every key.
        if lowered:
            for key, mapping in self._mappings.items():
                if key.endswith(lowered) or lowered.endswith(key.rsplit(".", 1)[-1]):
                    logger.debug("Registry partial match: '%s' -> '%s'", name, mapping.component_name)
                    return mapping

        return self._custom_mapping(name)

    def resolve_all(self) -> list[ComponentMapping]:
        return list(self._mappings.values())

    def complexity_description(self, level: str | Complexity) -> str:
        key = level.value if isinstance(level, Complexity) else level
        value = (self._metadata.get("complexityLevels") or {}).get(key)
        return str(value) if value is not None else "Unknown complexity level"

    def service_description(self, service_name: str) -> str:
        value = (self._metadata.get("requiredServices") or {}).get(service_name)
        return str(value) if value is not None else "No description available"

    def _custom_mapping(self, component_name: str) -> ComponentMapping:
        pattern = self._custom_pattern
        if pattern is None:
            return ComponentMapping(
                component_name=component_name,
                display_name="Unknown Component",
                action_type="Compose",
                description="Custom component - requires manual migration",
                complexity=Complexity.VARIABLE,
                migration_notes=("Custom component detected", "Manual assessment required"),
            )

        description = pattern.action_field("description")
        if description is not None:
            description = description.replace(COMPONENT_NAME_TOKEN, component_name)

        return ComponentMapping(
            component_name=component_name,
            display_name=pattern.display_name or "Custom Component",
            category=pattern.category,
            action_type=pattern.action_field("type") or "Compose",
            description=description,
            migration_notes=tuple(pattern.migration_notes),
            required_resources=tuple(pattern.required_resources),
            complexity=pattern.complexity or Complexity.VARIABLE,
            custom_code_required=pattern.custom_code_required,
            action_template=pattern.logic_apps_action,
        )


# ---------------------------------------------------------------------------
# Process-wide default instance
# ---------------------------------------------------------------------------

_default_registry: ComponentRegistry | None = None
_default_lock = threading.Lock()


def get_default_registry(path: str | Path | None = None) -> ComponentRegistry:
    """
    Return the process-wide registry, loading it on first use.

    Only the first call's *path* is honoured; later calls return the cached
    instance.
    """
    global _default_registry
    if _default_registry is None:
        with _default_lock:
            if _default_registry is None:
                _default_registry = ComponentRegistry.load(path)
    return _default_registry


def reset_default_registry() -> None:
    """Drop the cached process-wide registry (used by tests)."""
    global _default_registry
    with _default_lock:
        _default_registry = None
