"""
Persistence adapters.

Services depend on the ``CredentialStore`` interface; ``SQLCredentialStore``
is the SQLAlchemy-backed implementation used by the application.
"""

from .base import CredentialStore
from .sql_repository import SQLCredentialStore

__all__ = ["CredentialStore", "SQLCredentialStore"]
