"""Tests for the pipeline connector registry."""

import json
import logging
import threading

import pytest

from btp_core.registry import (
    Complexity,
    ComponentMapping,
    ComponentRegistry,
    get_default_registry,
    reset_default_registry,
)


XML_DASM = "Microsoft.BizTalk.Component.XmlDasmComp"


class TestResolution:
    def test_packaged_registry_loads(self, registry):
        assert len(registry) >= 12
        assert XML_DASM in registry

    def test_exact_match_is_case_insensitive(self, registry):
        mapping = registry.resolve(XML_DASM.upper())
        assert mapping is registry.resolve(XML_DASM)
        assert mapping.display_name == "XML Disassembler"
        assert mapping.action_type == "XmlParse"

    def test_short_name_matches_fully_qualified_key(self, registry):
        mapping = registry.resolve("XmlDasmComp")
        assert mapping.component_name == XML_DASM

    def test_identity_ending_with_key_segment_matches(self, registry):
        mapping = registry.resolve("Contoso.Wrapped.PartyRes")
        assert mapping.display_name == "Party Resolution"

    def test_custom_template_substitutes_component_name(self, registry):
        mapping = registry.resolve("Contoso.Pipeline.Unzipper")
        assert mapping.component_name == "Contoso.Pipeline.Unzipper"
        assert mapping.display_name == "Custom Pipeline Component"
        assert "Contoso.Pipeline.Unzipper" in mapping.description
        assert "{{COMPONENT_NAME}}" not in mapping.description
        assert mapping.complexity is Complexity.VARIABLE
        assert mapping.custom_code_required is True

    def test_builtin_fallback_without_template(self):
        mapping = ComponentRegistry.empty().resolve("Anything.At.All")
        assert mapping.display_name == "Unknown Component"
        assert mapping.action_type == "Compose"
        assert mapping.complexity is Complexity.VARIABLE
        assert "Custom component detected" in mapping.migration_notes
        assert "Manual assessment required" in mapping.migration_notes

    @pytest.mark.parametrize("identity", [None, "", "   ", "!!!", "Comp.Totally.Unrelated"])
    def test_resolve_is_total(self, registry, identity):
        assert isinstance(registry.resolve(identity), ComponentMapping)

    def test_blank_identity_does_not_partial_match(self, registry):
        assert registry.resolve("").display_name == "Custom Pipeline Component"

    def test_resolve_all_excludes_synthesized_entries(self, registry):
        registry.resolve("Contoso.Pipeline.Unzipper")
        names = [m.component_name for m in registry.resolve_all()]
        assert "Contoso.Pipeline.Unzipper" not in names
        assert names[0] == XML_DASM


class TestMetadataLookups:
    def test_complexity_description(self, registry):
        assert "configuration only" in registry.complexity_description("Low")
        assert registry.complexity_description(Complexity.HIGH).startswith("No direct equivalent")

    def test_unknown_complexity_description(self, registry):
        assert registry.complexity_description("Extreme") == "Unknown complexity level"

    def test_service_description(self, registry):
        assert "certificates" in registry.service_description("Azure Key Vault")
        assert registry.service_description("Azure Quantum") == "No description available"


class TestLoading:
    def test_missing_file_yields_empty_registry(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING, logger="btp_core.registry"):
            registry = ComponentRegistry.load(tmp_path / "nope.json")
        assert len(registry) == 0
        assert registry.resolve("X").display_name == "Unknown Component"
        assert "not found" in caplog.text

    def test_malformed_json_yields_empty_registry(self, tmp_path, caplog):
        path = tmp_path / "bad.json"
        path.write_text("{ not json", encoding="utf-8")
        with caplog.at_level(logging.ERROR, logger="btp_core.registry"):
            registry = ComponentRegistry.load(path)
        assert len(registry) == 0
        assert "not valid JSON" in caplog.text

    def test_non_object_json_yields_empty_registry(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        assert len(ComponentRegistry.load(path)) == 0

    @pytest.mark.parametrize("custom_components", [["oops"], "oops", 7])
    def test_non_object_custom_components_is_ignored(self, tmp_path, caplog, custom_components):
        path = tmp_path / "registry.json"
        path.write_text(
            json.dumps({"components": {"Good.Comp": {"displayName": "Good"}}, "customComponents": custom_components}),
            encoding="utf-8",
        )
        with caplog.at_level(logging.WARNING, logger="btp_core.registry"):
            registry = ComponentRegistry.load(path)

        assert len(registry) == 1
        assert registry.resolve("Other.Thing").display_name == "Unknown Component"
        assert "customComponents" in caplog.text

    def test_non_object_components_is_ignored(self):
        registry = ComponentRegistry.from_dict({"components": ["Good.Comp"]})
        assert len(registry) == 0

    def test_non_object_metadata_tables_use_defaults(self, tmp_path, caplog):
        path = tmp_path / "registry.json"
        path.write_text(
            json.dumps({"metadata": {"complexityLevels": ["Low"], "requiredServices": "x"}}),
            encoding="utf-8",
        )
        with caplog.at_level(logging.WARNING, logger="btp_core.registry"):
            registry = ComponentRegistry.load(path)

        assert registry.complexity_description("Low") == "Unknown complexity level"
        assert registry.service_description("Azure Functions") == "No description available"
        assert "metadata.complexityLevels" in caplog.text
        assert "metadata.requiredServices" in caplog.text

    def test_non_object_metadata_section_uses_defaults(self):
        registry = ComponentRegistry.from_dict({"metadata": ["Low"]})
        assert registry.complexity_description(Complexity.LOW) == "Unknown complexity level"

    def test_malformed_entries_are_skipped(self):
        registry = ComponentRegistry.from_dict({
            "components": {
                "Good.Comp": {"displayName": "Good", "logicAppsAction": {"type": "Compose"}},
                "Bad.Comp": {"migrationNotes": 5},
                "Worse.Comp": "not an object",
            }
        })
        assert len(registry) == 1
        assert "good.comp" in registry

    def test_duplicate_keys_last_wins(self):
        registry = ComponentRegistry.from_dict({
            "components": {
                "Dup.Comp": {"displayName": "First"},
                "DUP.COMP": {"displayName": "Second"},
            }
        })
        assert len(registry) == 1
        assert registry.resolve("dup.comp").display_name == "Second"

    def test_complexity_is_normalised(self):
        registry = ComponentRegistry.from_dict({
            "components": {
                "A": {"complexity": "high"},
                "B": {"complexity": "Galactic"},
                "C": {},
            }
        })
        assert registry.resolve("A").complexity is Complexity.HIGH
        assert registry.resolve("B").complexity is Complexity.VARIABLE
        assert registry.resolve("C").complexity is Complexity.MEDIUM

    def test_custom_file(self, registry_file):
        registry = ComponentRegistry.load(registry_file)
        assert len(registry) == 1
        assert registry.resolve("ZipDecoder").display_name == "Zip Decoder"
        assert registry.resolve("Other").description == "Custom component Other needs review"
        assert registry.source == str(registry_file)


class TestFormattedNotes:
    def test_sections(self, registry):
        notes = registry.resolve("Microsoft.BizTalk.Component.MIME_SMIME_Decoder").formatted_notes()
        lines = notes.splitlines()
        assert lines[0] == "// Azure Function decoding MIME/SMIME content"
        assert "// MIGRATION NOTES:" in lines
        assert "// REQUIRED RESOURCES:" in lines
        assert "//   - Azure Key Vault" in lines
        assert "// WARNING: This component requires custom code development" in lines
        assert lines[-1] == "// Migration Complexity: High"

    def test_minimal_mapping(self):
        notes = ComponentMapping(component_name="X").formatted_notes()
        assert notes == "//\n// Migration Complexity: Medium"


class TestDefaultRegistry:
    def test_singleton(self):
        assert get_default_registry() is get_default_registry()

    def test_reset_creates_new_instance(self):
        first = get_default_registry()
        reset_default_registry()
        assert get_default_registry() is not first

    def test_first_path_wins(self, registry_file):
        registry = get_default_registry(registry_file)
        assert len(registry) == 1
        assert get_default_registry() is registry

    def test_concurrent_initialisation_yields_one_instance(self):
        seen = []

        def worker():
            seen.append(get_default_registry())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(seen) == 8
        assert all(r is seen[0] for r in seen)

    def test_packaged_json_is_well_formed(self, registry):
        raw = json.loads(open(registry.source, encoding="utf-8").read())
        assert "pattern" in raw["customComponents"]
        assert set(raw["metadata"]) == {"complexityLevels", "requiredServices"}
