"""
Proxy Routes - Request Classification
=====================================

Every request under the API prefix lands here and is classified by path:

- DELETE /users/me : Deletion Handler (tombstone + best-effort cleanup)
- POST /login      : Login Gate (pre- and post-authentication checks)
- anything else    : forwarded verbatim to the upstream API, including the
                     bare prefix itself

The special routes are declared before the catch-all so they take
precedence.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from ..accounts.deletion import DeletionHandler
from ..accounts.login_gate import LoginGate
from ..models import MessageResponse
from ..state import AppState
from .forwarder import UpstreamForwarder, inbound_from_request, relay_response

logger = logging.getLogger(__name__)

proxy_router = APIRouter()

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


# ============================================================================
# Dependencies
# ============================================================================

def get_app_state(request: Request) -> AppState:
    """
    Dependency returning the initialised application state.

    Raises:
        HTTPException: 503 if the lifespan has not set up the upstream client
                       or the store
    """
    app_state = getattr(request.app.state, "app_state", None)
    if app_state is None or app_state.upstream_client is None or app_state.store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Proxy not initialized",
        )
    return app_state


def get_forwarder(app_state: AppState = Depends(get_app_state)) -> UpstreamForwarder:
    return UpstreamForwarder(app_state.upstream_client, app_state.settings.upstream_base_url)


# ============================================================================
# Routes
# ============================================================================

@proxy_router.delete(
    "/users/me",
    responses={
        200: {"model": MessageResponse},
        400: {"model": MessageResponse},
        401: {"model": MessageResponse},
        500: {"model": MessageResponse},
        502: {"model": MessageResponse},
    },
)
async def delete_current_account(
    request: Request,
    app_state: AppState = Depends(get_app_state),
    forwarder: UpstreamForwarder = Depends(get_forwarder),
) -> Response:
    """Permanently delete the caller's account."""
    inbound = await inbound_from_request(request)
    handler = DeletionHandler(forwarder, app_state.store, app_state.settings)
    return await handler.handle(inbound)


@proxy_router.post(
    "/login",
    responses={403: {"model": MessageResponse}, 502: {"model": MessageResponse}},
)
async def login(
    request: Request,
    app_state: AppState = Depends(get_app_state),
    forwarder: UpstreamForwarder = Depends(get_forwarder),
) -> Response:
    """Authenticate upstream unless the account has been deleted."""
    inbound = await inbound_from_request(request)
    gate = LoginGate(forwarder, app_state.store, app_state.settings.UPSTREAM_LOGOUT_PATH)
    return await gate.handle(inbound)


@proxy_router.api_route("", methods=PROXY_METHODS, include_in_schema=False)
@proxy_router.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def forward_any(
    request: Request,
    forwarder: UpstreamForwarder = Depends(get_forwarder),
) -> Response:
    inbound = await inbound_from_request(request)
    upstream = await forwarder.forward(inbound)
    logger.debug(
        "Relayed upstream response",
        extra={"path": request.url.path, "status_code": upstream.status_code},
    )
    return relay_response(upstream, inbound.method)
