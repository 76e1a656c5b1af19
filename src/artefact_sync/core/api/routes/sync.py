"""
Sync trigger route.

- POST /api/sync - Publish the caller's (or a team's) records, or only test
  the connection settings
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Header, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from artefact_sync.core.exceptions import ConfigError
from artefact_sync.core.sync.models import Principal, SyncScope
from artefact_sync.core.sync.service import SyncService

logger = logging.getLogger(__name__)

router = APIRouter()


class SyncRequest(BaseModel):
    """
    Body of a sync request.

    ``teamId`` is accepted as an alternative to ``scope="team:<id>"``.
    """

    model_config = ConfigDict(populate_by_name=True)

    scope: str | None = None
    team_id: str | None = Field(default=None, alias="teamId")
    test_connection: bool = Field(default=False, alias="testConnection")

    def resolve_scope(self) -> SyncScope:
        """
        Work out the scope of the request.

        Raises:
            ConfigError: If ``scope`` is malformed or contradicts ``teamId``
        """
        if self.scope:
            try:
                scope = SyncScope.parse(self.scope)
            except ValueError as e:
                raise ConfigError(str(e)) from e
            if self.team_id and scope.team_id != self.team_id:
                raise ConfigError("scope and teamId name different teams")
            return scope
        if self.team_id:
            return SyncScope.team(self.team_id)
        return SyncScope.personal()


def _unauthorized() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED, content={"error": "Unauthorized"}
    )


async def _principal(request: Request, authorization: str | None) -> Principal | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return await request.app.state.store.resolve_principal(token.strip())


@router.post("/sync", response_model=None)
async def trigger_sync(
    request: Request,
    payload: SyncRequest | None = None,
    authorization: str | None = Header(default=None),
) -> dict[str, Any] | JSONResponse:
    """
    Publish records to the configured repository.

    Example response:
        {
          "success": true,
          "message": "Synced 12 files to GitHub",
          "filesUpdated": 12,
          "commitHash": "8f3c..."
        }

    Raises:
        SyncError: Rendered as ``{"error": message}`` by the app's handler
    """
    principal = await _principal(request, authorization)
    if principal is None:
        return _unauthorized()

    payload = payload or SyncRequest()
    scope = payload.resolve_scope()
    service: SyncService = request.app.state.sync_service

    if payload.test_connection:
        check = await service.test_connection(principal, scope)
        logger.info("Connection test for %s succeeded (%s)", scope, check.repository)
        return {"success": True, "message": check.message}

    result = await service.sync(principal, scope)
    body: dict[str, Any] = {
        "success": True,
        "message": result.message,
        "filesUpdated": result.files_updated,
    }
    if result.commit_sha:
        body["commitHash"] = result.commit_sha
    return body
