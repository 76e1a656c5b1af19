"""
Supabase store.

Reads records and sync settings from the hosted Postgres database through
its PostgREST interface, and resolves session tokens through its auth
(GoTrue) endpoint. All access uses the service role key, so every query
filters on the principal or team explicitly.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx
from pydantic import SecretStr, ValidationError

from artefact_sync.core.artefacts.models import ArtefactKind, ContentRecord, record_from_row
from artefact_sync.core.exceptions import SerializationError, StoreError
from artefact_sync.core.sync.models import Principal, SyncScope, TargetSettings

logger = logging.getLogger(__name__)

RECORD_TABLES: dict[ArtefactKind, str] = {
    ArtefactKind.PROMPT: "prompts",
    ArtefactKind.SKILL: "skills",
    ArtefactKind.WORKFLOW: "workflows",
}

SETTINGS_COLUMNS = "github_repo,github_branch,github_folder,github_last_synced_at"
CREDENTIAL_TYPE = "github_token"


class SupabaseStore:
    """
    Store backed by a Supabase project.

    Example:
        >>> async with SupabaseStore(url, SecretStr(service_key)) as store:
        ...     records = await store.fetch_records(ArtefactKind.PROMPT, principal, scope)
    """

    def __init__(
        self,
        url: str,
        service_key: SecretStr,
        *,
        timeout: float = 30.0,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize SupabaseStore.

        Args:
            url: Project URL (https://<ref>.supabase.co)
            service_key: Service role key (kept secret)
            timeout: Request timeout in seconds
            http: Optional preconfigured HTTP client
        """
        key = service_key.get_secret_value()
        self._service_headers = {"apikey": key, "Authorization": f"Bearer {key}"}
        if http is None:
            self._http = httpx.AsyncClient(base_url=url.rstrip("/"), timeout=timeout)
            self._owns_http = True
        else:
            self._http = http
            self._owns_http = False

    async def __aenter__(self) -> SupabaseStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # PostgREST helpers
    # ------------------------------------------------------------------

    async def _select(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        try:
            response = await self._http.get(
                f"/rest/v1/{table}", params=params, headers=self._service_headers
            )
        except httpx.HTTPError as e:
            raise StoreError(f"Failed to read {table}: {e}", table=table) from e

        if not response.is_success:
            logger.error("Reading %s failed with HTTP %d", table, response.status_code)
            raise StoreError(
                f"Failed to read {table} (HTTP {response.status_code})",
                table=table,
                status=response.status_code,
            )

        try:
            rows = response.json()
        except ValueError as e:
            raise StoreError(f"Malformed response reading {table}", table=table) from e
        if not isinstance(rows, list):
            raise StoreError(f"Malformed response reading {table}", table=table)
        return rows

    async def _select_one(self, table: str, params: dict[str, str]) -> dict[str, Any] | None:
        rows = await self._select(table, {**params, "limit": "1"})
        return rows[0] if rows else None

    async def _update(self, table: str, params: dict[str, str], values: dict[str, Any]) -> None:
        try:
            response = await self._http.patch(
                f"/rest/v1/{table}",
                params=params,
                json=values,
                headers={**self._service_headers, "Prefer": "return=minimal"},
            )
        except httpx.HTTPError as e:
            raise StoreError(f"Failed to update {table}: {e}", table=table) from e

        if not response.is_success:
            logger.error("Updating %s failed with HTTP %d", table, response.status_code)
            raise StoreError(
                f"Failed to update {table} (HTTP {response.status_code})",
                table=table,
                status=response.status_code,
            )

    @staticmethod
    def _scope_filter(principal: Principal, scope: SyncScope) -> dict[str, str]:
        if scope.is_team:
            return {"team_id": f"eq.{scope.team_id}"}
        return {"author_id": f"eq.{principal.user_id}", "team_id": "is.null"}

    # ------------------------------------------------------------------
    # RecordStore
    # ------------------------------------------------------------------

    async def fetch_records(
        self, kind: ArtefactKind, principal: Principal, scope: SyncScope
    ) -> list[ContentRecord]:
        rows = await self._select(
            RECORD_TABLES[kind], {"select": "*", **self._scope_filter(principal, scope)}
        )
        records = []
        for row in rows:
            try:
                records.append(record_from_row(kind, row))
            except ValidationError as e:
                record_id = str(row.get("id", "?"))
                raise SerializationError(
                    record_id, f"Invalid {kind.label} record {record_id}: {e}"
                ) from e
        logger.debug("Fetched %d %s records for %s", len(records), kind.label, scope)
        return records

    # ------------------------------------------------------------------
    # TargetStore
    # ------------------------------------------------------------------

    async def load_target_settings(
        self, principal: Principal, scope: SyncScope
    ) -> TargetSettings | None:
        if scope.is_team:
            settings_row = await self._select_one(
                "teams", {"select": SETTINGS_COLUMNS, "id": f"eq.{scope.team_id}"}
            )
            credential_filter = {"team_id": f"eq.{scope.team_id}"}
        else:
            settings_row = await self._select_one(
                "profiles", {"select": SETTINGS_COLUMNS, "id": f"eq.{principal.user_id}"}
            )
            credential_filter = {"user_id": f"eq.{principal.user_id}", "team_id": "is.null"}

        if settings_row is None:
            return None

        credential_row = await self._select_one(
            "user_credentials",
            {
                "select": "credential_value",
                "credential_type": f"eq.{CREDENTIAL_TYPE}",
                **credential_filter,
            },
        )
        token = (credential_row or {}).get("credential_value")

        return TargetSettings(
            access_token=SecretStr(token) if token else None,
            repository=settings_row.get("github_repo"),
            branch=settings_row.get("github_branch"),
            folder=settings_row.get("github_folder"),
            last_synced_at=settings_row.get("github_last_synced_at"),
        )

    async def is_team_member(self, team_id: str, user_id: str) -> bool:
        row = await self._select_one(
            "team_members",
            {"select": "role", "team_id": f"eq.{team_id}", "user_id": f"eq.{user_id}"},
        )
        return row is not None

    async def mark_synced(self, principal: Principal, scope: SyncScope, when: datetime) -> None:
        if scope.is_team:
            table, row_id = "teams", scope.team_id
        else:
            table, row_id = "profiles", principal.user_id
        await self._update(
            table, {"id": f"eq.{row_id}"}, {"github_last_synced_at": when.isoformat()}
        )

    # ------------------------------------------------------------------
    # PrincipalResolver
    # ------------------------------------------------------------------

    async def resolve_principal(self, access_token: str) -> Principal | None:
        try:
            response = await self._http.get(
                "/auth/v1/user",
                headers={
                    "apikey": self._service_headers["apikey"],
                    "Authorization": f"Bearer {access_token}",
                },
            )
        except httpx.HTTPError as e:
            raise StoreError(f"Failed to verify session: {e}") from e

        if response.status_code in (401, 403):
            return None
        if not response.is_success:
            raise StoreError(
                f"Failed to verify session (HTTP {response.status_code})",
                status=response.status_code,
            )

        data = response.json()
        user_id = data.get("id") if isinstance(data, dict) else None
        if not user_id:
            return None
        return Principal(user_id=str(user_id), email=data.get("email"))
