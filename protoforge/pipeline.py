"""ProtoForge generation pipeline.

Runs one generation request end to end::

    description + category
        -> build_prompt          (protoforge.prompts)
        -> provider.complete     (protoforge.providers)
        -> extract               (protoforge.parser)
        -> materialize           (protoforge.scaffolder)
        -> GenerationResult

This module is the error boundary: every exception raised along the way
comes back as a ``GenerationFailure``; unexpected ones are logged with their
traceback and reported as ``INTERNAL_ERROR``. Front-ends (CLI,
terminal UI, web dashboard) follow progress through three milestones
delivered to ``on_progress``: STARTED, FILES_WRITTEN, FINALIZING.
"""

from __future__ import annotations

import inspect
import logging
from enum import Enum
from pathlib import Path
from typing import Annotated, Awaitable, Callable, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from protoforge.config import ProviderConfig
from protoforge.errors import ErrorKind, ProtoForgeError
from protoforge.packaging import create_zip
from protoforge.parser.extractor import extract
from protoforge.parser.models import Category, GenerationRequest, PrototypeDocument, RawCompletion
from protoforge.prompts import build_prompt
from protoforge.providers import Provider, get_provider
from protoforge.scaffolder.materializer import ProjectMaterializer
from protoforge.utils import format_duration

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


class Stage(str, Enum):
    """Progress milestones, in the order they are emitted."""

    STARTED = "started"
    FILES_WRITTEN = "files_written"
    FINALIZING = "finalizing"


_STAGE_DETAILS: dict[Stage, tuple[str, int]] = {
    Stage.STARTED: ("Initializing generation...", 10),
    Stage.FILES_WRITTEN: ("Creating project files...", 70),
    Stage.FINALIZING: ("Finalizing...", 90),
}


class ProgressEvent(BaseModel):
    """One progress notification."""

    stage: Stage
    message: str
    progress: int = Field(ge=0, le=100)

    @classmethod
    def for_stage(cls, stage: Stage) -> "ProgressEvent":
        message, progress = _STAGE_DETAILS[stage]
        return cls(stage=stage, message=message, progress=progress)


ProgressCallback = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class GenerationSuccess(BaseModel):
    """A prototype was generated and written to disk."""

    status: Literal["success"] = "success"
    document: PrototypeDocument
    raw_text: str
    output_path: Path
    archive_path: Optional[Path] = None

    @property
    def success(self) -> bool:
        return True


class GenerationFailure(BaseModel):
    """Generation stopped; ``reason`` says which component failed."""

    status: Literal["failure"] = "failure"
    reason: ErrorKind
    message: str

    @property
    def success(self) -> bool:
        return False


GenerationResult = Annotated[
    Union[GenerationSuccess, GenerationFailure],
    Field(discriminator="status"),
]


class DocumentOutcome(BaseModel):
    """Result of the in-memory half of the pipeline (no files written)."""

    document: PrototypeDocument
    completion: RawCompletion


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


async def _notify(callback: ProgressCallback | None, stage: Stage) -> None:
    if callback is None:
        return
    outcome = callback(ProgressEvent.for_stage(stage))
    if inspect.isawaitable(outcome):
        await outcome


async def generate_document(
    request: GenerationRequest,
    provider_config: ProviderConfig,
    *,
    provider: Provider | None = None,
) -> DocumentOutcome:
    """Prompt, dispatch and extract without touching the filesystem.

    Raises:
        ProtoForgeError: Any provider or extraction failure.
    """
    prompt = build_prompt(request.description, request.category)
    client = provider or get_provider(provider_config)
    logger.info("Sending request to %s (model=%s)", client.label, client.model)

    completion = await client.complete(prompt)
    logger.info(
        "Received %d characters from %s in %s",
        len(completion.text),
        client.label,
        format_duration(completion.duration_ms / 1000),
    )
    extraction = extract(completion, category=request.category)
    if not extraction.success:
        raise extraction.error
    return DocumentOutcome(document=extraction.document, completion=completion)


async def generate_prototype(
    request: GenerationRequest | str,
    provider_config: ProviderConfig,
    output_root: str | Path,
    *,
    category: Category | str | None = None,
    on_progress: ProgressCallback | None = None,
    provider: Provider | None = None,
    create_archive: bool = False,
) -> GenerationSuccess | GenerationFailure:
    """Generate and materialize one prototype.

    Args:
        request: A ``GenerationRequest`` or a bare description string
            (combined with *category*).
        provider_config: Provider connection/sampling settings.
        output_root: Directory under which the project directory is created.
        on_progress: Sync or async callback receiving ``ProgressEvent``s.
        provider: Pre-built provider (tests, custom transports); by default
            one is created from *provider_config*.
        create_archive: Also write ``<project>.zip`` next to the project.

    Returns:
        ``GenerationSuccess`` or ``GenerationFailure``; never raises.
    """
    try:
        if not isinstance(request, GenerationRequest):
            request = GenerationRequest(description=request, category=category)
    except ValidationError as exc:
        return GenerationFailure(
            reason=ErrorKind.INVALID_REQUEST,
            message=exc.errors()[0]["msg"],
        )

    try:
        await _notify(on_progress, Stage.STARTED)
        outcome = await generate_document(request, provider_config, provider=provider)

        materializer = ProjectMaterializer(output_root)
        output_path = await materializer.materialize(outcome.document)
        await _notify(on_progress, Stage.FILES_WRITTEN)

        archive_path = await create_zip(output_path) if create_archive else None
        await _notify(on_progress, Stage.FINALIZING)
    except ProtoForgeError as exc:
        logger.warning("Generation failed (%s): %s", exc.kind.value, exc.message)
        return GenerationFailure(reason=exc.kind, message=exc.message)
    except OSError as exc:
        logger.warning("Generation failed writing files: %s", exc)
        return GenerationFailure(reason=ErrorKind.IO_ERROR, message=str(exc))
    except Exception as exc:
        logger.exception("Unexpected error during generation")
        return GenerationFailure(
            reason=ErrorKind.INTERNAL_ERROR,
            message=f"Unexpected error: {type(exc).__name__}: {exc}",
        )

    return GenerationSuccess(
        document=outcome.document,
        raw_text=outcome.completion.text,
        output_path=output_path,
        archive_path=archive_path,
    )
