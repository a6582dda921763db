"""Application factory that serves the admin users API under its versioned prefix."""
from __future__ import annotations

import os
from typing import Optional

from fastapi import FastAPI

from .api import create_app as create_api_app
from .database import Database, resolve_database_path


API_PREFIX = "/api/v1"


def create_application(
    *,
    database: Optional[Database] = None,
    database_path: Optional[str] = None,
) -> FastAPI:
    """Create the ASGI application with the API mounted at ``/api/v1``."""

    if database is None:
        db_path = resolve_database_path(database_path or os.getenv("USERADMIN_DB_PATH"))
        database = Database(db_path)
        database.initialize()

    api_app = create_api_app(database=database, url_prefix=API_PREFIX)

    app = FastAPI(
        title="User Administration",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.database = database
    app.state.api = api_app

    app.mount(API_PREFIX, api_app)

    return app


__all__ = ["API_PREFIX", "create_application"]
