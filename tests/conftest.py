"""Pytest configuration and shared fixtures."""

import json

import pytest

from btp_core.btp_parser import parse_pipeline_xml
from btp_core.registry import DEFAULT_REGISTRY_PATH, ComponentRegistry, reset_default_registry

from .samples import PASS_THRU_RECEIVE_XML, RECEIVE_PIPELINE_XML, SEND_PIPELINE_XML, write_btp


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the process-wide registry and BTP_* variables from leaking between tests."""
    for name in ("BTP_CONNECTOR_REGISTRY", "BTP_WORKFLOW_KIND", "BTP_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    reset_default_registry()
    yield
    reset_default_registry()


@pytest.fixture
def registry():
    """The packaged connector registry."""
    return ComponentRegistry.load(DEFAULT_REGISTRY_PATH)


@pytest.fixture
def receive_document():
    return parse_pipeline_xml(RECEIVE_PIPELINE_XML).document


@pytest.fixture
def send_document():
    return parse_pipeline_xml(SEND_PIPELINE_XML).document


@pytest.fixture
def pass_thru_document():
    return parse_pipeline_xml(PASS_THRU_RECEIVE_XML).document


@pytest.fixture
def receive_file(tmp_path):
    return write_btp(tmp_path / "OrderReceive.btp", RECEIVE_PIPELINE_XML)


@pytest.fixture
def send_file(tmp_path):
    return write_btp(tmp_path / "OrderSend.btp", SEND_PIPELINE_XML)


@pytest.fixture
def registry_file(tmp_path):
    """A small registry JSON with one component and a custom-component template."""
    data = {
        "components": {
            "Contoso.Pipeline.Components.ZipDecoder": {
                "displayName": "Zip Decoder",
                "category": "Decode",
                "logicAppsAction": {"type": "InvokeFunction", "description": "Unzip via Azure Function"},
                "migrationNotes": ["Port the decompression code"],
                "requiredResources": ["Azure Functions"],
                "complexity": "High",
                "customCodeRequired": True,
            }
        },
        "customComponents": {
            "pattern": {
                "displayName": "Custom Pipeline Component",
                "logicAppsAction": {"type": "Compose", "description": "Custom component {{COMPONENT_NAME}} needs review"},
                "migrationNotes": ["Custom component detected"],
                "complexity": "Variable",
            }
        },
        "metadata": {
            "complexityLevels": {"High": "Custom code required"},
            "requiredServices": {"Azure Functions": "Serverless compute"},
        },
    }
    path = tmp_path / "registry.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path
