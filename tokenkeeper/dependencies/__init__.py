"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_authorization_service,
    get_base_credential_store,
    get_credential_store,
    get_oauth_client,
    get_state_registry,
    get_token_cipher_service,
    get_token_refresh_service,
)
from .config import get_app_settings

__all__ = [
    "get_app_settings",
    "get_authorization_service",
    "get_base_credential_store",
    "get_credential_store",
    "get_oauth_client",
    "get_state_registry",
    "get_token_cipher_service",
    "get_token_refresh_service",
]
