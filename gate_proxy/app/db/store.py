"""
db/store.py

Deleted-account store: lookups and idempotent tombstone inserts.

SQLAlchemy sessions are blocking, so every public coroutine runs its query
in a worker thread and opens a fresh session from the pooled factory.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from gate_proxy.app.db.models import DeletedAccount
from gate_proxy.app.errors import StoreLookupError, StoreWriteError

logger = logging.getLogger(__name__)


class DeletedAccountStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Async API used by request handlers
    # ------------------------------------------------------------------

    async def find_by_email(self, email: str) -> DeletedAccount | None:
        return await asyncio.to_thread(self._find, None, email)

    async def find_tombstone(
        self,
        external_user_id: str | None = None,
        email: str | None = None,
    ) -> DeletedAccount | None:
        return await asyncio.to_thread(self._find, external_user_id, email)

    async def record_deletion(
        self,
        external_user_id: str,
        email: str | None,
        snapshot: Any,
    ) -> bool:
        """
        Insert a tombstone unless one already matches the id or email.

        Returns True when a row was written, False when the account was
        already recorded (including a concurrent insert losing the race on
        the unique constraints).
        """
        return await asyncio.to_thread(self._record, external_user_id, email, snapshot)

    # ------------------------------------------------------------------
    # Blocking implementation
    # ------------------------------------------------------------------

    def _find(self, external_user_id: str | None, email: str | None) -> DeletedAccount | None:
        conditions = []
        if external_user_id is not None:
            conditions.append(DeletedAccount.external_user_id == external_user_id)
        if email is not None:
            conditions.append(DeletedAccount.email == email)
        if not conditions:
            return None

        try:
            with self._session_factory() as session:
                stmt = select(DeletedAccount).where(or_(*conditions)).limit(1)
                return session.scalars(stmt).first()
        except SQLAlchemyError as exc:
            raise StoreLookupError("Deleted-account lookup failed") from exc

    def _record(self, external_user_id: str, email: str | None, snapshot: Any) -> bool:
        if self._find(external_user_id, email) is not None:
            return False

        record = DeletedAccount(
            external_user_id=external_user_id,
            email=email,
            snapshot_payload=json.dumps(snapshot, ensure_ascii=False, default=str),
        )

        with self._session_factory() as session:
            try:
                session.add(record)
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.info(
                    "Tombstone already recorded by a concurrent request",
                    extra={"external_user_id": external_user_id},
                )
                return False
            except SQLAlchemyError as exc:
                session.rollback()
                raise StoreWriteError("Deleted-account insert failed") from exc

        logger.info("Recorded deleted account", extra={"external_user_id": external_user_id})
        return True
