"""
Configuration data models for artefact-sync.

These models define the structure of .artefact-sync.json and
~/.config/artefact-sync/config.json files, with validation and type safety
via Pydantic.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


class GitHubConfig(BaseModel):
    """
    How the GitHub API is reached.

    Controls the endpoint and how hard blob uploads push on it.
    """

    api_url: str = Field(
        default="https://api.github.com",
        description="GitHub API base URL (override for GitHub Enterprise)",
    )
    timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Per-request timeout in seconds",
    )
    max_concurrency: int = Field(
        default=8,
        ge=1,
        description="Maximum blob uploads in flight at once",
    )
    blob_retries: int = Field(
        default=0,
        ge=0,
        description="Retries for transient blob upload failures (0 disables)",
    )

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class SyncConfig(BaseModel):
    """
    Behaviour of a sync run.

    Defaults reproduce a plain full-snapshot publish: every run commits and
    files of deleted records are removed.
    """

    default_branch: str = Field(
        default="main",
        min_length=1,
        description="Branch used when the stored settings name none",
    )
    source_name: str = Field(
        default="Prompt Library",
        min_length=1,
        description="Name of the content source, used in commit messages and the seed README",
    )
    source_url: Optional[str] = Field(
        default=None,
        description="Link to the content source shown in the seed README",
    )
    prune_stale: bool = Field(
        default=True,
        description="Delete files of records that no longer exist",
    )
    skip_unchanged: bool = Field(
        default=False,
        description="Skip the commit when the new tree equals the current one",
    )


class StoreConfig(BaseModel):
    """Which record/settings store a run talks to."""

    backend: Literal["memory", "supabase"] = Field(
        default="memory",
        description="Store implementation",
    )
    supabase_url: Optional[str] = Field(
        default=None,
        description="Base URL of the Supabase project",
    )
    supabase_key: Optional[SecretStr] = Field(
        default=None,
        description="Service role key for the Supabase project",
    )


class AppConfig(BaseModel):
    """
    Complete artefact-sync configuration.

    This is the top-level model that combines all configuration sections.
    Loaded from multiple sources with precedence:
        env vars > project config > user config > defaults
    """

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    model_config = ConfigDict(extra="ignore")
