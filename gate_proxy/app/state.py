"""
Process-scoped application state.

Created by the application factory and filled in by the lifespan handler;
routes reach it through ``request.app.state.app_state``.
"""

import logging
from typing import Optional

import httpx
from sqlalchemy.engine import Engine

from .config import Settings
from .db.store import DeletedAccountStore


class AppState:
    """
    Shared resources for all request handlers.

    Holds the pooled upstream HTTP client and the deleted-account store.
    Nothing request-specific lives here.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.upstream_client: Optional[httpx.AsyncClient] = None
        self.engine: Optional[Engine] = None
        self.store: Optional[DeletedAccountStore] = None
        self.logger: logging.Logger = logging.getLogger("gate_proxy.main")
