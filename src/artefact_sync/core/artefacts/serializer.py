"""
Render content records as markdown files.

Each record becomes one markdown file with a metadata header followed by the
title, description and content. Rendering is pure: the same record always
produces byte-identical output, whatever order records are rendered in.

Layout of a rendered prompt:

    ---
    id: 3f6c...
    title: "Summarize Text"
    ...
    ---

    # Summarize Text

    <description>

    ## Prompt Content

    ```
    <content>
    ```
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any

import yaml

from artefact_sync.core.artefacts.models import (
    ArtefactKind,
    ContentRecord,
    Prompt,
    SerializedFile,
    Skill,
    Workflow,
)
from artefact_sync.core.exceptions import SerializationError

_SLUG_DISALLOWED = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")


def slugify(text: str) -> str:
    """
    Derive a file-name slug from free text.

    Example:
        >>> slugify("  Summarize   Text -- Fast! ")
        'summarize-text-fast'
    """
    slug = _SLUG_DISALLOWED.sub("", text.lower())
    slug = _WHITESPACE.sub("-", slug.strip())
    slug = _HYPHENS.sub("-", slug)
    return slug.strip("-")


def resolve_slug(record: ContentRecord) -> str:
    """
    Stored slug if present, otherwise derived from the title (then the id).

    Raises:
        SerializationError: If the stored slug is not a single path segment
    """
    if record.slug and record.slug.strip():
        slug = record.slug.strip()
        if "/" in slug or "\\" in slug or slug in (".", ".."):
            raise SerializationError(
                record.id,
                f"Slug '{slug}' of '{record.title}' must be a plain file name",
                slug=slug,
            )
        return slug
    return slugify(record.title) or slugify(record.id)


def artefact_path(record: ContentRecord, folder_prefix: str = "") -> str:
    """
    Repository path for a record.

    Args:
        record: Record to place
        folder_prefix: Folder inside the repository ("" for the root)

    Returns:
        Path like ``library/prompts/summarize-text.md``
    """
    prefix = folder_prefix.strip("/")
    name = f"{record.kind.folder}/{resolve_slug(record)}.md"
    return f"{prefix}/{name}" if prefix else name


def _needs_quotes(value: str) -> bool:
    if value == "" or value != value.strip():
        return True
    if ":" in value or '"' in value or "#" in value:
        return True
    if _WHITESPACE.search(value):
        return True
    # Plain only when a YAML reader gives back the same string.
    try:
        return yaml.safe_load(value) != value
    except yaml.YAMLError:
        return True


def _quote(value: str) -> str:
    """Double-quoted YAML scalar on a single line, control characters escaped."""
    quoted = yaml.dump(
        value,
        default_style='"',
        allow_unicode=True,
        width=float("inf"),
    )
    return quoted.strip()


def format_value(value: Any) -> str:
    """
    Render one header value.

    Lists become bracketed lists of quoted strings, booleans ``true``/``false``,
    and strings are quoted whenever a YAML reader could misread them (always
    when they contain a colon or a double quote).
    """
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_quote(str(item)) for item in value) + "]"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, datetime):
        return _quote(value.isoformat())
    if value is None:
        return '""'
    text = str(value)
    return _quote(text) if _needs_quotes(text) else text


def render_frontmatter(fields: list[tuple[str, Any]]) -> str:
    """Render the ``---`` delimited metadata header in the given field order."""
    lines = ["---"]
    lines.extend(f"{key}: {format_value(value)}" for key, value in fields)
    lines.append("---")
    return "\n".join(lines)


def header_fields(record: ContentRecord) -> list[tuple[str, Any]]:
    """Canonical header fields for a record."""
    if isinstance(record, Prompt):
        category = record.category or ""
        visibility = ("is_public", record.visibility)
    else:
        category = record.category or "general"
        visibility = ("published", record.visibility)

    return [
        ("id", record.id),
        ("title", record.title),
        ("description", record.description or ""),
        ("category", category),
        ("tags", list(record.tags)),
        visibility,
        ("rating_avg", record.rating_avg if record.rating_avg is not None else 0),
        ("rating_count", record.rating_count if record.rating_count is not None else 0),
        ("created_at", record.created_at),
        ("updated_at", record.updated_at),
    ]


def _workflow_json(workflow: Workflow) -> str:
    try:
        return json.dumps(
            workflow.json_document,
            indent=2,
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise SerializationError(
            workflow.id,
            f"Workflow '{workflow.title}' has a definition that is not valid JSON: {e}",
            title=workflow.title,
        ) from e


def _body(record: ContentRecord) -> str:
    if isinstance(record, Prompt):
        return f"## Prompt Content\n\n```\n{record.content}\n```\n"
    if isinstance(record, Skill):
        return f"## Skill Content\n\n{record.content}\n"
    if isinstance(record, Workflow):
        return f"## Workflow Definition\n\n```json\n{_workflow_json(record)}\n```\n"
    raise SerializationError(record.id, f"Unsupported record type: {type(record).__name__}")


def render_markdown(record: ContentRecord) -> str:
    """
    Render a record as a complete markdown document.

    Raises:
        SerializationError: If the record cannot be rendered
    """
    body = _body(record)
    header = render_frontmatter(header_fields(record))
    return f"{header}\n\n# {record.title}\n\n{record.description or ''}\n\n{body}"


def serialize(record: ContentRecord, folder_prefix: str = "") -> SerializedFile:
    """
    Serialize a record to its repository path and file content.

    Args:
        record: Prompt, Skill or Workflow
        folder_prefix: Folder inside the repository ("" for the root)

    Returns:
        SerializedFile with path, content and the originating record

    Raises:
        SerializationError: If the record cannot be rendered
    """
    return SerializedFile(
        path=artefact_path(record, folder_prefix),
        content=render_markdown(record),
        kind=record.kind,
        record_id=record.id,
    )


def is_managed_path(path: str, folder_prefix: str = "") -> bool:
    """Whether a repository path lives under one of the folders sync owns."""
    prefix = folder_prefix.strip("/")
    for kind in ArtefactKind:
        folder = f"{prefix}/{kind.folder}/" if prefix else f"{kind.folder}/"
        if path.startswith(folder):
            return True
    return False
