"""Session credentials and bearer token management."""
from logid.auth.credentials import Credential, CredentialSource, mask_secret
from logid.auth.manager import AuthManager
from logid.auth.token import TOKEN_VALIDITY_SECONDS, Token, TokenStore

__all__ = [
    "AuthManager",
    "Credential",
    "CredentialSource",
    "TOKEN_VALIDITY_SECONDS",
    "Token",
    "TokenStore",
    "mask_secret",
]
