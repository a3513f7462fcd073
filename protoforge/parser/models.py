"""Pydantic v2 models for the ProtoForge generation pipeline.

Defines the request/prompt/completion value objects and the
``PrototypeDocument`` hierarchy parsed out of provider responses. Document
models are deliberately lenient: providers return loosely-shaped JSON, so
every field defaults to an empty value when absent or of the wrong type, and
unknown keys are preserved for the ``prototype.json`` metadata file.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from protoforge.utils import scrub_text


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Category(str, Enum):
    """Project category; selects the prompt template and document shape."""
    HARDWARE = "hardware"
    SOFTWARE = "software"
    HYBRID = "hybrid"

    @classmethod
    def coerce(cls, value: Any, default: "Category | None" = None) -> "Category":
        """Map *value* onto a category, falling back to *default* (hybrid)."""
        fallback = default or cls.HYBRID
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return fallback
        return fallback

    @classmethod
    def is_known(cls, value: Any) -> bool:
        """Return ``True`` if *value* names a category exactly (case-insensitive)."""
        if isinstance(value, cls):
            return True
        return isinstance(value, str) and value.strip().lower() in {c.value for c in cls}

    @property
    def has_bom(self) -> bool:
        """Whether documents of this category carry a bill of materials."""
        return self is not Category.SOFTWARE


# ---------------------------------------------------------------------------
# Request / prompt / completion value objects
# ---------------------------------------------------------------------------

class GenerationRequest(BaseModel):
    """A single generation request supplied by a front-end."""
    model_config = ConfigDict(frozen=True)

    description: str = Field(..., description="Free-text project description")
    category: Category = Field(default=Category.HYBRID, description="Project category")

    @field_validator("description")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("description must not be empty")
        return value

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> Category:
        return Category.coerce(value)


class PromptPair(BaseModel):
    """Rendered system + user prompt for one request."""
    model_config = ConfigDict(frozen=True)

    system_prompt: str
    user_prompt: str


class RawCompletion(BaseModel):
    """Unstructured text returned by a provider call."""

    text: str = Field(default="", description="Generated text")
    provider: str = Field(default="", description="Provider that produced the text")
    model: str = Field(default="", description="Model that produced the text")
    duration_ms: float = Field(default=0.0, description="Round-trip time in ms")


# ---------------------------------------------------------------------------
# Prototype document
# ---------------------------------------------------------------------------

def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return scrub_text(value)
    if isinstance(value, (int, float, bool)):
        return str(value)
    return ""


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _as_str_list(value: Any) -> list[str]:
    return [_as_text(v) for v in _as_list(value) if _as_text(v)]


class _DocumentModel(BaseModel):
    """Base for document models: camelCase JSON keys, extra keys preserved."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class Overview(_DocumentModel):
    """High-level summary of the generated prototype."""

    project_name: str = Field(default="", description="Human-readable project name")
    description: str = Field(default="")
    category: Category = Field(default=Category.HYBRID)
    domain: str = Field(default="", description="Free-text domain label, e.g. 'IoT'")
    difficulty: str = Field(default="")
    estimated_time: str = Field(default="")

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return {}
        data = dict(data)
        raw_category = data.get("category")
        if raw_category is not None and not Category.is_known(raw_category):
            if not data.get("domain") and _as_text(raw_category):
                data["domain"] = _as_text(raw_category)
            data.pop("category")
        return data

    @field_validator(
        "project_name", "description", "domain", "difficulty", "estimated_time",
        mode="before",
    )
    @classmethod
    def _text(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, value: Any) -> Category:
        return Category.coerce(value)


class CodeSnippet(_DocumentModel):
    """One generated source file."""

    filename: str = Field(default="", description="Path relative to the project root")
    language: str = Field(default="")
    description: str = Field(default="")
    code: str = Field(default="", description="Full file text")

    @field_validator("filename", "language", "description", "code", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _as_text(value)


class BomItem(_DocumentModel):
    """One bill-of-materials line."""

    part_number: str = Field(default="")
    description: str = Field(default="")
    quantity: int = Field(default=0, ge=0)
    unit_price: Optional[str] = Field(default=None)
    supplier_link: Optional[str] = Field(default=None)

    @field_validator("part_number", "description", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity(cls, value: Any) -> int:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                return 0
        if isinstance(value, float) and not math.isfinite(value):
            return 0
        if isinstance(value, (int, float)):
            return max(int(value), 0)
        return 0

    @field_validator("unit_price", "supplier_link", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> Optional[str]:
        text = _as_text(value)
        return text or None


class PrototypeDocument(_DocumentModel):
    """Canonical structured artefact parsed from a provider response."""

    overview: Overview = Field(default_factory=Overview)
    tech_stack: dict[str, list[str]] = Field(default_factory=dict)
    code_snippets: list[CodeSnippet] = Field(default_factory=list)
    schematic: str = Field(default="", description="Diagram markup (Mermaid)")
    bom: list[BomItem] = Field(default_factory=list)
    build_guide: str = Field(default="", description="Markdown build guide")
    next_steps: list[str] = Field(default_factory=list)

    @field_validator("overview", mode="before")
    @classmethod
    def _overview(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, Overview)) else {}

    @field_validator("tech_stack", mode="before")
    @classmethod
    def _tech_stack(cls, value: Any) -> dict[str, list[str]]:
        if not isinstance(value, dict):
            return {}
        stack: dict[str, list[str]] = {}
        for key, items in value.items():
            if isinstance(items, str):
                stack[_as_text(key)] = [scrub_text(items)] if items else []
            else:
                stack[_as_text(key)] = _as_str_list(items)
        return stack

    @field_validator("code_snippets", "bom", mode="before")
    @classmethod
    def _object_list(cls, value: Any) -> list[Any]:
        return [v for v in _as_list(value) if isinstance(v, (dict, BaseModel))]

    @field_validator("schematic", "build_guide", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("next_steps", mode="before")
    @classmethod
    def _steps(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            return [value] if value else []
        return _as_str_list(value)

    # -- Construction --------------------------------------------------------

    @classmethod
    def from_data(cls, data: Any, category: Category | str | None = None) -> "PrototypeDocument":
        """Build a document from any parsed JSON value without raising.

        Non-object input produces an empty document. When the provider did
        not state a recognised ``overview.category``, *category* (the
        requested one) is used, falling back to hybrid.
        """
        if not isinstance(data, dict):
            data = {}
        document = cls.model_validate(data)
        raw_overview = data.get("overview")
        stated = raw_overview.get("category") if isinstance(raw_overview, dict) else None
        if category is not None and not Category.is_known(stated):
            document.overview.category = Category.coerce(category)
        return document

    # -- Convenience ---------------------------------------------------------

    @property
    def project_name(self) -> str:
        return self.overview.project_name

    @property
    def category(self) -> Category:
        return self.overview.category

    @property
    def filenames(self) -> list[str]:
        """Filenames of all code snippets, in document order."""
        return [s.filename for s in self.code_snippets]

    def to_json_dict(self) -> dict[str, Any]:
        """Return the document as a camelCase JSON-ready dict."""
        return self.model_dump(mode="json", by_alias=True)
