"""Service layer exports."""

from .authorization import AuthorizationFlowService
from .secure_store import EncryptingCredentialStore
from .state_registry import StateRegistry
from .token_cipher import TokenCipherService
from .token_refresh import TokenRefreshService

__all__ = [
    "AuthorizationFlowService",
    "EncryptingCredentialStore",
    "StateRegistry",
    "TokenCipherService",
    "TokenRefreshService",
]
