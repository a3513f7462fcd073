"""Prompt construction for prototype generation.

Each category has a system prompt template (``templates/system/<category>.j2``)
describing the exact JSON document the provider must return. All three extend
``system/base.j2`` and so share the same envelope: ``overview``,
``techStack``, ``codeSnippets``, ``schematic``, ``buildGuide`` and
``nextSteps``. They differ only in the ``techStack`` keys, whether a ``bom``
array is requested, and the prose requirements.
"""

from __future__ import annotations

from protoforge.errors import ErrorKind, ProtoForgeError
from protoforge.parser.models import Category, PromptPair
from protoforge.templates import TemplateRenderer

ENVELOPE_FIELDS: tuple[str, ...] = (
    "overview",
    "techStack",
    "codeSnippets",
    "schematic",
    "buildGuide",
    "nextSteps",
)

TECH_STACK_KEYS: dict[Category, tuple[str, ...]] = {
    Category.HARDWARE: ("microcontroller", "sensors", "actuators", "communication", "power"),
    Category.SOFTWARE: ("frontend", "backend", "database", "deployment", "tools"),
    Category.HYBRID: ("hardware", "firmware", "backend", "frontend", "communication"),
}

_renderer = TemplateRenderer()


def required_fields(category: Category | str | None) -> list[str]:
    """Top-level JSON keys the system prompt for *category* demands."""
    cat = Category.coerce(category)
    fields = list(ENVELOPE_FIELDS)
    if cat.has_bom:
        fields.insert(fields.index("buildGuide"), "bom")
    return fields


def build_system_prompt(category: Category | str | None) -> str:
    """Render the system prompt for *category* (unknown values -> hybrid)."""
    cat = Category.coerce(category)
    return _renderer.render(
        f"system/{cat.value}.j2",
        {
            "category": cat.value,
            "tech_stack_keys": TECH_STACK_KEYS[cat],
            "include_bom": cat.has_bom,
        },
    )


def build_user_prompt(description: str, category: Category | str | None) -> str:
    """Render the user prompt embedding *description* verbatim."""
    cat = Category.coerce(category)
    return _renderer.render("user.j2", {"category": cat.value, "description": description})


def build_prompt(description: str, category: Category | str | None = None) -> PromptPair:
    """Build the system/user prompt pair for one generation request.

    Raises:
        ProtoForgeError: ``INVALID_REQUEST`` if *description* is blank.
    """
    if not description or not description.strip():
        raise ProtoForgeError(ErrorKind.INVALID_REQUEST, "Project description must not be empty.")
    return PromptPair(
        system_prompt=build_system_prompt(category),
        user_prompt=build_user_prompt(description, category),
    )
