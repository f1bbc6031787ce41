"""
Accounts Package

Business rules layered in front of the generic forwarder:

- login_gate: refuses logins of deleted accounts (before and after upstream
  authentication)
- deletion: records account deletions and cleans up upstream best-effort
- cleanup: shared best-effort upstream calls
"""

from .deletion import DeletionHandler
from .login_gate import LoginGate

__all__ = [
    "DeletionHandler",
    "LoginGate",
]
