"""ProtoForge scaffolder -- writes prototype documents to disk.

Quick usage::

    from protoforge.scaffolder import ProjectMaterializer

    materializer = ProjectMaterializer("./protoforge-output")
    project_path = await materializer.materialize(document)
"""

from protoforge.scaffolder.materializer import (
    ProjectMaterializer,
    list_projects,
    load_project,
    materialize,
)

__all__ = [
    "ProjectMaterializer",
    "list_projects",
    "load_project",
    "materialize",
]
