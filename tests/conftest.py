"""Shared pytest fixtures for the ProtoForge test suite.

Provides reusable fixtures for:
- A clean ``PROTOFORGE_*`` environment for every test
- Sample prototype documents (hardware, software) and raw AI responses
- Provider configurations pointing at fake hosts
- ``httpx.MockTransport`` builders for canned provider replies
- An isolated ``ConfigStore`` under ``tmp_path``
"""

from __future__ import annotations

import json
import os
import textwrap
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from protoforge.config import ConfigStore, ProviderConfig


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove any PROTOFORGE_* variables leaking in from the developer shell."""
    for name in list(os.environ):
        if name.startswith("PROTOFORGE_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_store(tmp_path: Path) -> ConfigStore:
    """ConfigStore backed by a file under tmp_path, output dir inside tmp_path."""
    store = ConfigStore(tmp_path / "config" / "config.json")
    store.set("output_dir", str(tmp_path / "output"))
    return store


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

@pytest.fixture
def hardware_document_data() -> dict[str, Any]:
    """A complete hardware prototype document as a provider would return it."""
    return {
        "overview": {
            "projectName": "Smart Plant Monitor",
            "description": "Monitors soil moisture and waters plants automatically.",
            "category": "hardware",
            "difficulty": "Beginner",
            "estimatedTime": "4-6 hours",
        },
        "techStack": {
            "microcontroller": ["ESP32"],
            "sensors": ["Capacitive soil moisture sensor", "DHT22"],
            "actuators": ["5V water pump"],
            "communication": ["WiFi"],
            "power": ["USB 5V"],
        },
        "codeSnippets": [
            {
                "filename": "src/main.cpp",
                "language": "cpp",
                "description": "Firmware entry point",
                "code": "#include <Arduino.h>\nvoid setup() {}\nvoid loop() {}\n",
            },
            {
                "filename": "platformio.ini",
                "language": "ini",
                "description": "Build configuration",
                "code": "[env:esp32dev]\nplatform = espressif32\n",
            },
        ],
        "schematic": "graph TD\n  ESP32 --> Pump\n  Sensor --> ESP32\n",
        "bom": [
            {
                "partNumber": "ESP32-DEVKITC",
                "description": "ESP32 development board",
                "quantity": 1,
                "unitPrice": "$9.99",
                "supplierLink": "https://example.com/esp32",
            },
            {
                "partNumber": "SEN-13322",
                "description": "Soil moisture sensor",
                "quantity": "2",
                "unitPrice": "$5.95",
            },
        ],
        "buildGuide": "## Step 1\nWire the sensor to GPIO34.\n",
        "nextSteps": ["Add a battery", "Log readings to the cloud"],
    }


@pytest.fixture
def software_document_data() -> dict[str, Any]:
    """A minimal software prototype document."""
    return {
        "overview": {
            "projectName": "Todo API",
            "description": "A REST API for todos.",
            "category": "software",
        },
        "techStack": {"backend": ["Node.js", "Express"], "database": ["SQLite"]},
        "codeSnippets": [
            {"filename": "src/app.js", "language": "javascript", "code": "console.log('hi');\n"},
        ],
        "schematic": "",
        "buildGuide": "",
        "nextSteps": [],
    }


@pytest.fixture
def fenced_response(hardware_document_data: dict[str, Any]) -> str:
    """A typical chatty completion wrapping the JSON in a ```json fence."""
    body = json.dumps(hardware_document_data, indent=2)
    return textwrap.dedent("""\
        Sure! Here is your prototype:

        ```json
        {body}
        ```

        Let me know if you need changes.
    """).format(body=body)


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

@pytest.fixture
def ollama_config() -> ProviderConfig:
    return ProviderConfig(provider_id="ollama", base_url="http://ollama.test", model_name="llama3.2")


@pytest.fixture
def recorded_requests() -> list[httpx.Request]:
    """Requests seen by transports built with ``json_transport``."""
    return []


@pytest.fixture
def json_transport(recorded_requests: list[httpx.Request]) -> Callable[..., httpx.MockTransport]:
    """Factory: ``json_transport(body, status=200)`` -> MockTransport replying with JSON."""

    def _factory(body: Any, status: int = 200) -> httpx.MockTransport:
        def handler(request: httpx.Request) -> httpx.Response:
            recorded_requests.append(request)
            return httpx.Response(status, json=body)

        return httpx.MockTransport(handler)

    return _factory


@pytest.fixture
def ollama_reply(json_transport: Callable[..., httpx.MockTransport]) -> Callable[[str], httpx.MockTransport]:
    """Factory: transport answering every Ollama call with *text* as the completion."""

    def _factory(text: str) -> httpx.MockTransport:
        return json_transport({"model": "llama3.2", "response": text, "done": True})

    return _factory
