"""ProtoForge response parser.

Pulls JSON out of free-text provider completions and turns it into a typed
``PrototypeDocument``.

Usage::

    from protoforge.parser import extract

    result = extract(raw_completion)
    if result.success:
        print(result.document.overview.project_name)
"""

from protoforge.parser.extractor import ExtractionResult, extract, extract_json
from protoforge.parser.models import (
    BomItem,
    Category,
    CodeSnippet,
    GenerationRequest,
    Overview,
    PromptPair,
    PrototypeDocument,
    RawCompletion,
)

__all__ = [
    "extract",
    "extract_json",
    "ExtractionResult",
    "BomItem",
    "Category",
    "CodeSnippet",
    "GenerationRequest",
    "Overview",
    "PromptPair",
    "PrototypeDocument",
    "RawCompletion",
]
