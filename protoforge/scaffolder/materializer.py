"""Project materialization.

Takes a ``PrototypeDocument`` and writes it to disk as a project directory:

    <output_root>/<project-slug>/
        <one file per code snippet, nested directories created>
        prototype.json      the full document (camelCase JSON)
        README.md           rendered overview
        BUILD_GUIDE.md      when the document has a build guide
        schematic.mmd       when the document has a diagram
        bom.csv             when the document has a bill of materials

Directory names are reserved atomically so concurrent requests deriving the
same slug never share a directory. Writes are not transactional: a failure
part-way leaves what was already written.
"""

from __future__ import annotations

import asyncio
import csv
import io
import logging
import posixpath
import re
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Any

from protoforge.errors import ErrorKind, MaterializeError
from protoforge.parser.models import PrototypeDocument
from protoforge.templates import TemplateRenderer
from protoforge.utils import dump_json, ensure_dir, load_json, sanitize_name

logger = logging.getLogger(__name__)

METADATA_FILE = "prototype.json"
BUILD_GUIDE_FILE = "BUILD_GUIDE.md"
SCHEMATIC_FILE = "schematic.mmd"
BOM_FILE = "bom.csv"
README_FILE = "README.md"

_MAX_SUFFIX = 10_000
_UNSAFE_CHARS = re.compile(r"[\x00-\x1f\x7f\ud800-\udfff]")


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------

def project_slug(document: PrototypeDocument, now: datetime | None = None) -> str:
    """Derive the directory name for *document*.

    Falls back to ``prototype-<UTC timestamp>`` when the project name is
    absent or sanitises to nothing.
    """
    slug = sanitize_name(document.overview.project_name or "")
    if slug:
        return slug
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d-%H%M%S")
    return f"prototype-{stamp}"


def _reserve_directory(output_root: Path, slug: str) -> Path:
    """Atomically create ``output_root/slug`` (or ``slug-2``, ``slug-3``...)."""
    output_root = ensure_dir(output_root)
    for index in range(1, _MAX_SUFFIX):
        name = slug if index == 1 else f"{slug}-{index}"
        candidate = output_root / name
        try:
            candidate.mkdir()
        except FileExistsError:
            continue
        return candidate
    raise MaterializeError(
        ErrorKind.IO_ERROR,
        f"Could not find a free directory name for '{slug}' in {output_root}",
        path=str(output_root),
    )


# ---------------------------------------------------------------------------
# Path safety
# ---------------------------------------------------------------------------

def safe_relative_path(filename: str) -> PurePosixPath:
    """Validate a snippet filename and return it as a normalised relative path.

    Raises:
        MaterializeError: ``UNSAFE_PATH`` for empty, absolute, drive-qualified
            or escaping (``..``) names and names containing control or
            surrogate characters.
    """
    raw = (filename or "").strip()
    if not raw:
        raise MaterializeError(ErrorKind.UNSAFE_PATH, "Code snippet has an empty filename.")
    if _UNSAFE_CHARS.search(raw):
        raise MaterializeError(
            ErrorKind.UNSAFE_PATH,
            f"Control or surrogate character in filename: {filename!r}",
            path=filename,
        )

    posix = raw.replace("\\", "/")
    if posix.startswith("/") or PureWindowsPath(raw).drive:
        raise MaterializeError(
            ErrorKind.UNSAFE_PATH, f"Absolute path not allowed: {filename!r}", path=filename
        )

    normalised = posixpath.normpath(posix)
    if normalised in (".", "") or normalised == ".." or normalised.startswith("../"):
        raise MaterializeError(
            ErrorKind.UNSAFE_PATH,
            f"Path escapes the project directory: {filename!r}",
            path=filename,
        )
    return PurePosixPath(normalised)


def _resolve_inside(project_dir: Path, relative: PurePosixPath) -> Path:
    """Join and re-check containment after resolving symlinks."""
    root = project_dir.resolve()
    target = (root / Path(*relative.parts)).resolve()
    if not target.is_relative_to(root):
        raise MaterializeError(
            ErrorKind.UNSAFE_PATH,
            f"Path escapes the project directory: {relative.as_posix()!r}",
            path=relative.as_posix(),
        )
    return target


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------

def render_bom_csv(document: PrototypeDocument) -> str:
    """Render the bill of materials as CSV text."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["partNumber", "description", "quantity", "unitPrice", "supplierLink"])
    for item in document.bom:
        writer.writerow([
            item.part_number,
            item.description,
            item.quantity,
            item.unit_price or "",
            item.supplier_link or "",
        ])
    return buffer.getvalue()


def _write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


# ---------------------------------------------------------------------------
# Materializer
# ---------------------------------------------------------------------------

class ProjectMaterializer:
    """Writes prototype documents into directories under ``output_root``."""

    def __init__(self, output_root: str | Path, renderer: TemplateRenderer | None = None) -> None:
        self.output_root = Path(output_root)
        self.renderer = renderer or TemplateRenderer()

    async def materialize(self, document: PrototypeDocument) -> Path:
        """Write *document* and return the absolute project directory.

        Every snippet path is validated before anything touches the disk.

        Raises:
            MaterializeError: ``UNSAFE_PATH`` for a bad snippet filename,
                ``IO_ERROR`` when the target cannot be written.
        """
        relative_paths = [safe_relative_path(s.filename) for s in document.code_snippets]

        try:
            project_dir = await asyncio.to_thread(
                _reserve_directory, self.output_root, project_slug(document)
            )
            project_dir = project_dir.resolve()
            logger.debug("Materializing %s into %s", document.project_name, project_dir)

            for snippet, relative in zip(document.code_snippets, relative_paths):
                target = _resolve_inside(project_dir, relative)
                await asyncio.to_thread(_write_text, target, snippet.code)

            await asyncio.to_thread(
                _write_text, project_dir / METADATA_FILE, dump_json(document.to_json_dict())
            )
            if document.build_guide.strip():
                await asyncio.to_thread(
                    _write_text, project_dir / BUILD_GUIDE_FILE, document.build_guide
                )
            if document.schematic.strip():
                await asyncio.to_thread(
                    _write_text, project_dir / SCHEMATIC_FILE, document.schematic
                )
            if document.bom:
                await asyncio.to_thread(
                    _write_text, project_dir / BOM_FILE, render_bom_csv(document)
                )
            if not any(p.as_posix().lower() == README_FILE.lower() for p in relative_paths):
                await self.renderer.render_to_file(
                    "project/README.md.j2",
                    project_dir / README_FILE,
                    self._readme_context(document, project_dir),
                )
        except MaterializeError:
            raise
        except OSError as exc:
            raise MaterializeError(
                ErrorKind.IO_ERROR,
                f"Could not write project to {self.output_root}: {exc}",
                path=str(exc.filename or self.output_root),
            ) from exc

        return project_dir

    @staticmethod
    def _readme_context(document: PrototypeDocument, project_dir: Path) -> dict[str, Any]:
        return {
            "project_dir": project_dir.name,
            "overview": document.overview,
            "tech_stack": {k: v for k, v in document.tech_stack.items() if v},
            "snippets": document.code_snippets,
            "bom": document.bom,
            "has_schematic": bool(document.schematic.strip()),
            "has_build_guide": bool(document.build_guide.strip()),
            "next_steps": document.next_steps,
        }


async def materialize(document: PrototypeDocument, output_root: str | Path) -> Path:
    """Convenience wrapper around ``ProjectMaterializer.materialize``."""
    return await ProjectMaterializer(output_root).materialize(document)


# ---------------------------------------------------------------------------
# Viewers
# ---------------------------------------------------------------------------

def load_project(project_dir: str | Path) -> PrototypeDocument:
    """Load the ``prototype.json`` written by ``materialize``.

    Raises:
        FileNotFoundError: If the directory has no metadata file.
    """
    return PrototypeDocument.from_data(load_json(Path(project_dir) / METADATA_FILE))


def list_projects(output_root: str | Path) -> list[dict[str, Any]]:
    """List materialized projects under *output_root*, newest first.

    Only directories containing a ``prototype.json`` are reported.
    """
    root = Path(output_root)
    if not root.is_dir():
        return []

    projects: list[dict[str, Any]] = []
    for entry in root.iterdir():
        metadata = entry / METADATA_FILE
        if not entry.is_dir() or not metadata.is_file():
            continue
        stat = metadata.stat()
        projects.append({
            "name": entry.name,
            "path": str(entry),
            "created": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
        })
    projects.sort(key=lambda p: p["created"], reverse=True)
    return projects
