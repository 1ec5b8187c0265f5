"""
Factory functions to provide shared clients and services as FastAPI dependencies.

Every factory is cached, so each returns one instance for the lifetime of the
process. Callers that need scoped instances construct the classes directly.
"""

from datetime import timedelta
from functools import lru_cache

from tokenkeeper.clients import (
    DynamoDBCredentialStore,
    InMemoryCredentialStore,
    OAuthServerClient,
    SQLiteCredentialStore,
)
from tokenkeeper.clients.base import CredentialStore
from tokenkeeper.core.config import get_settings
from tokenkeeper.services import (
    AuthorizationFlowService,
    EncryptingCredentialStore,
    StateRegistry,
    TokenCipherService,
    TokenRefreshService,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_state_registry() -> StateRegistry:
    """Provide the process-wide registry of pending OAuth states."""
    settings = _settings()
    return StateRegistry(default_ttl_seconds=settings.oauth.state_ttl_seconds)


@lru_cache()
def get_oauth_client() -> OAuthServerClient:
    """Create a singleton authorization server client."""
    return OAuthServerClient(_settings().oauth)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    security = _settings().security
    return TokenCipherService(
        key=security.token_encryption_key,
        enforce=security.enforce_encryption,
    )


@lru_cache()
def get_base_credential_store() -> CredentialStore:
    """Provide the configured persistence backend, without encryption."""
    storage = _settings().storage
    if storage.backend == "memory":
        return InMemoryCredentialStore()
    if storage.backend == "dynamodb":
        return DynamoDBCredentialStore(storage)
    return SQLiteCredentialStore(storage.db_path, table_name=storage.table_name)


@lru_cache()
def get_credential_store() -> CredentialStore:
    """Provide the credential store that callers above the storage layer use."""
    return EncryptingCredentialStore(get_base_credential_store(), get_token_cipher_service())


@lru_cache()
def get_token_refresh_service() -> TokenRefreshService:
    """Provide the refresh coordinator shared by all requests."""
    settings = _settings()
    return TokenRefreshService(
        store=get_credential_store(),
        oauth_client=get_oauth_client(),
        refresh_window=timedelta(seconds=settings.security.refresh_buffer_seconds),
    )


@lru_cache()
def get_authorization_service() -> AuthorizationFlowService:
    """Provide the authorization flow controller."""
    return AuthorizationFlowService(
        settings=_settings().oauth,
        state_registry=get_state_registry(),
        store=get_credential_store(),
        oauth_client=get_oauth_client(),
    )


__all__ = [
    "get_authorization_service",
    "get_base_credential_store",
    "get_credential_store",
    "get_oauth_client",
    "get_state_registry",
    "get_token_cipher_service",
    "get_token_refresh_service",
]
