"""Expose constructed client wrappers."""

from .auth_server import OAuthServerClient
from .base import CredentialStore
from .dynamodb import DynamoDBCredentialStore
from .memory_store import InMemoryCredentialStore
from .sqlite_store import SQLiteCredentialStore

__all__ = [
    "CredentialStore",
    "DynamoDBCredentialStore",
    "InMemoryCredentialStore",
    "OAuthServerClient",
    "SQLiteCredentialStore",
]
