"""
Login Gate
==========

Wraps ``POST /api/login`` so that a deleted account can never obtain a
session again, although the upstream knows nothing about deletions.

Two checks run in strict order:

1. Pre-check: the submitted email is looked up before any upstream call.
2. Post-check: after a successful upstream login, the authenticated
   identity (id or email) is looked up again. This catches logins made with
   another identifier, or after an email change. The freshly issued
   upstream session is then logged out and discarded.

Both checks answer with the same 403 body so the caller cannot tell which
one fired.
"""

import logging

import httpx
from fastapi import Response, status
from fastapi.responses import JSONResponse

from .. import messages
from ..db.store import DeletedAccountStore
from ..proxy.forwarder import (
    InboundRequest,
    UpstreamForwarder,
    relay_response,
    session_cookie_header,
)
from ..proxy.identity import extract_email, extract_user_id, load_json_object
from .cleanup import best_effort_call

logger = logging.getLogger(__name__)


def denial_response() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"message": messages.ACCOUNT_DELETED_DENIAL},
    )


class LoginGate:
    def __init__(self, forwarder: UpstreamForwarder, store: DeletedAccountStore, logout_path: str):
        self._forwarder = forwarder
        self._store = store
        self._logout_path = logout_path

    async def handle(self, inbound: InboundRequest) -> Response:
        submitted_email = inbound.body_field("email")
        if submitted_email is not None:
            if await self._store.find_by_email(submitted_email) is not None:
                logger.info("Login refused before upstream call: account deleted")
                return denial_response()

        upstream = await self._forwarder.forward(inbound)

        if not upstream.is_success:
            return relay_response(upstream)

        identity = load_json_object(upstream.content)
        if identity is None:
            return relay_response(upstream)

        user_id = extract_user_id(identity)
        email = extract_email(identity)
        if user_id is None and email is None:
            return relay_response(upstream)

        tombstone = await self._store.find_tombstone(external_user_id=user_id, email=email)
        if tombstone is None:
            return relay_response(upstream)

        logger.info(
            "Login refused after upstream authentication: account deleted",
            extra={"external_user_id": tombstone.external_user_id},
        )
        await best_effort_call(
            self._forwarder,
            "POST",
            self._logout_path,
            self._session_headers(upstream, inbound),
            action="logout",
        )
        return denial_response()

    def _session_headers(self, upstream: httpx.Response, inbound: InboundRequest) -> dict:
        """Credentials for the session the login just opened."""
        cookie = session_cookie_header(upstream)
        if cookie is None:
            return self._forwarder.credential_headers(inbound.headers)

        headers = self._forwarder.credential_headers({})
        headers["cookie"] = cookie
        return headers
