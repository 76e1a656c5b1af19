"""
FastAPI application for the sync trigger.

API Endpoints:
- POST /api/sync - Publish records, or test the connection settings
- GET /health - Health check

Usage:
    # Run the server
    artefact-sync serve

    # Or from Python
    from artefact_sync.core.api import create_app
"""

from artefact_sync.core.api.app import create_app

__all__ = ["create_app"]
