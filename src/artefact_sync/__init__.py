"""
Artefact Sync - publish a prompt library to GitHub

Renders prompts, skills and workflows as markdown files and commits them to
a GitHub repository in a single commit per sync.
"""

__version__ = "0.1.0"

# Re-export core models for convenience
from artefact_sync.core.artefacts.models import ArtefactKind, Prompt, Skill, Workflow
from artefact_sync.core.config.models import AppConfig
from artefact_sync.core.sync.models import SyncResult, SyncScope

__all__ = [
    "AppConfig",
    "ArtefactKind",
    "Prompt",
    "Skill",
    "SyncResult",
    "SyncScope",
    "Workflow",
    "__version__",
]
