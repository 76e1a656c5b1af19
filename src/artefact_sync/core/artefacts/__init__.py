"""
Content records and their markdown rendering.

Records (prompts, skills, workflows) are rendered into markdown files with a
metadata header, one file per record, under a folder per kind.
"""

from artefact_sync.core.artefacts.models import (
    ArtefactKind,
    ContentRecord,
    Prompt,
    SerializedFile,
    Skill,
    Workflow,
    record_from_row,
)
from artefact_sync.core.artefacts.serializer import (
    artefact_path,
    is_managed_path,
    render_markdown,
    serialize,
    slugify,
)

__all__ = [
    "ArtefactKind",
    "ContentRecord",
    "Prompt",
    "SerializedFile",
    "Skill",
    "Workflow",
    "artefact_path",
    "is_managed_path",
    "record_from_row",
    "render_markdown",
    "serialize",
    "slugify",
]
