"""
Shared fixtures for the gate proxy tests.

The upstream API is an AsyncMock standing in for httpx.AsyncClient and
answering with real httpx.Response objects. The deleted-account store runs
on a temporary SQLite file so unique constraints behave for real.
"""

from typing import Dict, List, Optional, Tuple, Union
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from gate_proxy.app.config import Settings
from gate_proxy.app.db import (
    Base,
    DeletedAccount,
    DeletedAccountStore,
    create_db_engine,
    create_session_factory,
)
from gate_proxy.app.main import create_app

UPSTREAM = "http://upstream.test"


class UpstreamStub:
    """
    Scripted upstream API.

    Register answers with ``on(method, path, ...)``; unmatched requests get a
    404. Every call is recorded by the underlying AsyncMock.
    """

    def __init__(self):
        self._routes: Dict[Tuple[str, str], Union[httpx.Response, Exception]] = {}
        self.client = AsyncMock(spec=httpx.AsyncClient)
        self.client.request.side_effect = self._dispatch

    def on(
        self,
        method: str,
        path: str,
        response: Optional[httpx.Response] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self._routes[(method.upper(), path)] = error if error is not None else response

    async def _dispatch(self, method: str, url: str, **kwargs) -> httpx.Response:
        answer = self._routes.get((method.upper(), httpx.URL(url).path))
        if answer is None:
            return httpx.Response(404, json={"message": "Not found"})
        if isinstance(answer, Exception):
            raise answer
        return answer

    def calls_to(self, method: str, path: str) -> List:
        return [
            call for call in self.client.request.call_args_list
            if call.args[0] == method and httpx.URL(call.args[1]).path == path
        ]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        EXTERNAL_API_URL=UPSTREAM,
        DATABASE_URL=f"sqlite:///{tmp_path / 'gate.db'}",
    )


@pytest.fixture
def session_factory(settings):
    engine = create_db_engine(settings)
    Base.metadata.create_all(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return DeletedAccountStore(session_factory)


@pytest.fixture
def upstream():
    return UpstreamStub()


@pytest.fixture
def app(settings, store, upstream):
    """Application with lifespan resources replaced by test doubles."""
    app = create_app(settings)
    app.state.app_state.store = store
    app.state.app_state.upstream_client = upstream.client
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def add_tombstone(session_factory):
    def _add(external_user_id: str, email: Optional[str] = None) -> None:
        with session_factory() as session:
            session.add(
                DeletedAccount(
                    external_user_id=external_user_id,
                    email=email,
                    snapshot_payload="{}",
                )
            )
            session.commit()

    return _add


@pytest.fixture
def count_tombstones(session_factory):
    def _count(**filters) -> int:
        with session_factory() as session:
            stmt = select(func.count()).select_from(DeletedAccount).filter_by(**filters)
            return session.scalar(stmt)

    return _count
