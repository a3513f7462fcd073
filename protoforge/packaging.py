"""ZIP packaging of materialized projects."""

from __future__ import annotations

import asyncio
import zipfile
from pathlib import Path

from protoforge.errors import ErrorKind, MaterializeError


def archive_path_for(project_dir: str | Path) -> Path:
    """Where ``create_zip`` puts the archive: ``<parent>/<name>.zip``."""
    project = Path(project_dir)
    return project.parent / f"{project.name}.zip"


def _write_zip(project: Path, target: Path) -> Path:
    tmp = target.with_suffix(".zip.part")
    with zipfile.ZipFile(tmp, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path in sorted(project.rglob("*")):
            if path.is_file():
                archive.write(path, Path(project.name) / path.relative_to(project))
    tmp.replace(target)
    return target


async def create_zip(project_dir: str | Path) -> Path:
    """Archive *project_dir* next to itself and return the archive path.

    Entries are stored under a top-level folder named after the project.

    Raises:
        MaterializeError: ``IO_ERROR`` if the directory is missing or the
            archive cannot be written.
    """
    project = Path(project_dir)
    if not project.is_dir():
        raise MaterializeError(
            ErrorKind.IO_ERROR, f"Project directory not found: {project}", path=str(project)
        )
    target = archive_path_for(project)
    try:
        return await asyncio.to_thread(_write_zip, project, target)
    except OSError as exc:
        raise MaterializeError(
            ErrorKind.IO_ERROR, f"Could not create archive {target}: {exc}", path=str(target)
        ) from exc
