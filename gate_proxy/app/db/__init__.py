"""
Deleted-account store exports.
"""

from gate_proxy.app.db.base import Base
from gate_proxy.app.db.models import DeletedAccount
from gate_proxy.app.db.session import create_db_engine, create_session_factory
from gate_proxy.app.db.store import DeletedAccountStore

__all__ = [
    "Base",
    "DeletedAccount",
    "DeletedAccountStore",
    "create_db_engine",
    "create_session_factory",
]
