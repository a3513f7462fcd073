"""Unit tests for the parser data models (protoforge.parser.models).

Tests cover:
- Category coercion and has_bom
- GenerationRequest validation (blank description, category fallback, frozen)
- PrototypeDocument.from_data leniency for absent/mistyped fields
- camelCase serialisation and preservation of unknown keys
- BomItem quantity coercion
"""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import ValidationError

from protoforge.parser.models import (
    BomItem,
    Category,
    CodeSnippet,
    GenerationRequest,
    Overview,
    PromptPair,
    PrototypeDocument,
)


# ---------------------------------------------------------------------------
# Category
# ---------------------------------------------------------------------------


class TestCategory:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("hardware", Category.HARDWARE),
            ("  Software ", Category.SOFTWARE),
            ("HYBRID", Category.HYBRID),
            (Category.HARDWARE, Category.HARDWARE),
            ("quantum", Category.HYBRID),
            ("", Category.HYBRID),
            (None, Category.HYBRID),
            (3, Category.HYBRID),
        ],
    )
    def test_coerce(self, value, expected):
        assert Category.coerce(value) is expected

    @pytest.mark.unit
    def test_coerce_custom_default(self):
        assert Category.coerce("nope", default=Category.SOFTWARE) is Category.SOFTWARE

    @pytest.mark.unit
    def test_is_known(self):
        assert Category.is_known("Hardware") is True
        assert Category.is_known("IoT") is False
        assert Category.is_known(None) is False

    @pytest.mark.unit
    def test_has_bom(self):
        assert Category.HARDWARE.has_bom is True
        assert Category.HYBRID.has_bom is True
        assert Category.SOFTWARE.has_bom is False


# ---------------------------------------------------------------------------
# GenerationRequest / PromptPair
# ---------------------------------------------------------------------------


class TestGenerationRequest:
    @pytest.mark.unit
    def test_valid_request(self):
        request = GenerationRequest(description="A lamp", category="hardware")
        assert request.description == "A lamp"
        assert request.category is Category.HARDWARE

    @pytest.mark.unit
    def test_default_category_is_hybrid(self):
        assert GenerationRequest(description="A lamp").category is Category.HYBRID

    @pytest.mark.unit
    def test_unknown_category_falls_back_to_hybrid(self):
        assert GenerationRequest(description="x", category="quantum").category is Category.HYBRID

    @pytest.mark.unit
    @pytest.mark.parametrize("description", ["", "   ", "\n"])
    def test_blank_description_rejected(self, description):
        with pytest.raises(ValidationError):
            GenerationRequest(description=description)

    @pytest.mark.unit
    def test_frozen(self):
        request = GenerationRequest(description="x")
        with pytest.raises(ValidationError):
            request.description = "y"

    @pytest.mark.unit
    def test_prompt_pair_frozen(self):
        pair = PromptPair(system_prompt="s", user_prompt="u")
        with pytest.raises(ValidationError):
            pair.user_prompt = "other"


# ---------------------------------------------------------------------------
# PrototypeDocument
# ---------------------------------------------------------------------------


class TestPrototypeDocument:
    @pytest.mark.unit
    def test_full_document(self, hardware_document_data):
        document = PrototypeDocument.from_data(hardware_document_data)

        assert document.project_name == "Smart Plant Monitor"
        assert document.category is Category.HARDWARE
        assert document.overview.estimated_time == "4-6 hours"
        assert document.tech_stack["sensors"] == ["Capacitive soil moisture sensor", "DHT22"]
        assert document.filenames == ["src/main.cpp", "platformio.ini"]
        assert document.bom[1].quantity == 2
        assert document.bom[1].supplier_link is None
        assert document.next_steps == ["Add a battery", "Log readings to the cloud"]

    @pytest.mark.unit
    @pytest.mark.parametrize("data", [None, [], "text", 42, True])
    def test_non_object_input_gives_empty_document(self, data):
        document = PrototypeDocument.from_data(data)
        assert document.project_name == ""
        assert document.code_snippets == []
        assert document.category is Category.HYBRID

    @pytest.mark.unit
    def test_missing_fields_default(self):
        document = PrototypeDocument.from_data({})
        assert document.overview == Overview()
        assert document.tech_stack == {}
        assert document.schematic == ""
        assert document.bom == []
        assert document.build_guide == ""

    @pytest.mark.unit
    def test_wrong_types_default(self):
        document = PrototypeDocument.from_data({
            "overview": "not an object",
            "techStack": ["a", "b"],
            "codeSnippets": {"filename": "x"},
            "schematic": {"nodes": []},
            "bom": "none",
            "buildGuide": None,
            "nextSteps": 7,
        })
        assert document.overview.project_name == ""
        assert document.tech_stack == {}
        assert document.code_snippets == []
        assert document.schematic == ""
        assert document.bom == []
        assert document.build_guide == ""
        assert document.next_steps == []

    @pytest.mark.unit
    def test_non_object_list_entries_dropped(self):
        document = PrototypeDocument.from_data({
            "codeSnippets": ["main.py", {"filename": "app.py", "code": "print()"}, None],
        })
        assert document.filenames == ["app.py"]

    @pytest.mark.unit
    def test_tech_stack_string_values_become_lists(self):
        document = PrototypeDocument.from_data({"techStack": {"backend": "FastAPI", "db": ""}})
        assert document.tech_stack == {"backend": ["FastAPI"], "db": []}

    @pytest.mark.unit
    def test_next_steps_single_string(self):
        assert PrototypeDocument.from_data({"nextSteps": "Ship it"}).next_steps == ["Ship it"]

    @pytest.mark.unit
    def test_numeric_text_fields_stringified(self):
        document = PrototypeDocument.from_data({"overview": {"projectName": 2024, "estimatedTime": 3}})
        assert document.project_name == "2024"
        assert document.overview.estimated_time == "3"

    @pytest.mark.unit
    def test_unknown_category_moves_to_domain(self):
        document = PrototypeDocument.from_data({"overview": {"category": "IoT"}})
        assert document.category is Category.HYBRID
        assert document.overview.domain == "IoT"

    @pytest.mark.unit
    def test_unknown_category_keeps_existing_domain(self):
        document = PrototypeDocument.from_data({"overview": {"category": "IoT", "domain": "Garden"}})
        assert document.overview.domain == "Garden"

    @pytest.mark.unit
    def test_requested_category_used_when_unstated(self):
        document = PrototypeDocument.from_data({"overview": {}}, category="software")
        assert document.category is Category.SOFTWARE

    @pytest.mark.unit
    def test_to_json_dict_uses_camel_case(self, hardware_document_data):
        data = PrototypeDocument.from_data(hardware_document_data).to_json_dict()
        assert set(data) >= {"overview", "techStack", "codeSnippets", "schematic", "bom", "buildGuide", "nextSteps"}
        assert data["overview"]["projectName"] == "Smart Plant Monitor"
        assert data["overview"]["category"] == "hardware"
        assert data["bom"][0]["partNumber"] == "ESP32-DEVKITC"

    @pytest.mark.unit
    def test_unknown_keys_preserved(self):
        data: dict[str, Any] = {
            "overview": {"projectName": "X", "audience": "kids"},
            "license": "MIT",
        }
        out = PrototypeDocument.from_data(data).to_json_dict()
        assert out["license"] == "MIT"
        assert out["overview"]["audience"] == "kids"

    @pytest.mark.unit
    def test_round_trip_through_json_dict(self, hardware_document_data):
        document = PrototypeDocument.from_data(hardware_document_data)
        again = PrototypeDocument.from_data(document.to_json_dict())
        assert again == document

    @pytest.mark.unit
    def test_populate_by_field_name(self):
        snippet = CodeSnippet(filename="a.py", code="pass")
        document = PrototypeDocument(code_snippets=[snippet], next_steps=["go"])
        assert document.filenames == ["a.py"]


# ---------------------------------------------------------------------------
# BomItem
# ---------------------------------------------------------------------------


class TestBomItem:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "quantity, expected",
        [(3, 3), ("4", 4), ("2.0", 2), (1.9, 1), (-5, 0), ("lots", 0), (None, 0), ([1], 0)],
    )
    def test_quantity_coercion(self, quantity, expected):
        assert BomItem.model_validate({"quantity": quantity}).quantity == expected

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "quantity",
        [float("inf"), float("-inf"), float("nan"), "1e999", "-1e999", "nan", "Infinity"],
    )
    def test_non_finite_quantity_is_zero(self, quantity):
        assert BomItem.model_validate({"quantity": quantity}).quantity == 0

    @pytest.mark.unit
    def test_large_finite_quantity_kept(self):
        assert BomItem.model_validate({"quantity": 1e20}).quantity == 10**20

    @pytest.mark.unit
    def test_document_with_overflowing_quantity(self):
        document = PrototypeDocument.from_data({"bom": [{"partNumber": "R1", "quantity": float("inf")}]})
        assert document.bom[0].part_number == "R1"
        assert document.bom[0].quantity == 0

    @pytest.mark.unit
    def test_lone_surrogates_replaced(self):
        document = PrototypeDocument.from_data({
            "overview": {"projectName": "Bad \ud800 name"},
            "techStack": {"mcu\udfff": ["esp\ud800"]},
            "codeSnippets": [{"filename": "a\ud800.py", "code": "x = \"\udc00\""}],
        })
        assert document.project_name == "Bad ? name"
        assert document.tech_stack == {"mcu?": ["esp?"]}
        assert document.code_snippets[0].filename == "a?.py"
        assert document.code_snippets[0].code == "x = \"?\""

    @pytest.mark.unit
    def test_empty_optional_text_is_none(self):
        item = BomItem.model_validate({"partNumber": "R1", "unitPrice": "", "supplierLink": None})
        assert item.part_number == "R1"
        assert item.unit_price is None
        assert item.supplier_link is None
