"""
Deletion Handler
================

Turns ``DELETE /api/users/me`` into a permanent tombstone.

Flow:
1. Resolve "who is asking" with the caller's own credentials upstream
2. Extract the upstream account id (same fallback shapes as the login gate)
3. Return success straight away if the account is already recorded
4. Write the tombstone
5. Ask the upstream to delete the account and close the session, both
   best-effort and concurrently
6. Return success

Only identity resolution and the store write can fail the request; upstream
cleanup failures are logged and ignored.
"""

import asyncio
import logging

from fastapi import Response, status
from fastapi.responses import JSONResponse

from .. import messages
from ..config import Settings
from ..db.store import DeletedAccountStore
from ..proxy.forwarder import InboundRequest, UpstreamForwarder, UpstreamRequest
from ..proxy.identity import extract_email, extract_user_id, load_json_object
from .cleanup import best_effort_call

logger = logging.getLogger(__name__)


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


class DeletionHandler:
    def __init__(self, forwarder: UpstreamForwarder, store: DeletedAccountStore, settings: Settings):
        self._forwarder = forwarder
        self._store = store
        self._settings = settings

    async def handle(self, inbound: InboundRequest) -> Response:
        credentials = self._forwarder.credential_headers(inbound.headers)

        identity_response = await self._forwarder.send(
            UpstreamRequest(
                method="GET",
                url=self._forwarder.url_for(self._settings.UPSTREAM_CURRENT_USER_PATH),
                headers=credentials,
            )
        )
        if not identity_response.is_success:
            logger.info(
                "Account deletion refused: caller not authenticated upstream",
                extra={"status_code": identity_response.status_code},
            )
            return _message(status.HTTP_401_UNAUTHORIZED, messages.NOT_AUTHENTICATED)

        identity = load_json_object(identity_response.content)
        user_id = extract_user_id(identity)
        if user_id is None:
            logger.warning("Account deletion refused: upstream identity carries no id")
            return _message(status.HTTP_400_BAD_REQUEST, messages.IDENTITY_UNRESOLVED)

        email = extract_email(identity)

        if await self._store.find_tombstone(external_user_id=user_id, email=email) is not None:
            logger.info("Account already deleted", extra={"external_user_id": user_id})
            return _message(status.HTTP_200_OK, messages.ACCOUNT_DELETED)

        created = await self._store.record_deletion(user_id, email, identity)
        if not created:
            return _message(status.HTTP_200_OK, messages.ACCOUNT_DELETED)

        await asyncio.gather(
            best_effort_call(
                self._forwarder,
                "DELETE",
                self._settings.admin_delete_user_path(user_id),
                credentials,
                action="account deletion",
            ),
            best_effort_call(
                self._forwarder,
                "POST",
                self._settings.UPSTREAM_LOGOUT_PATH,
                credentials,
                action="logout",
            ),
        )

        return _message(status.HTTP_200_OK, messages.ACCOUNT_DELETED)
