"""OAuth login and credential caching for GUS.

Components:
    - BrowserLoginFlow / login_via_browser: PKCE login through the user's
      browser with a transient local callback listener
    - get_authenticated_client: returns a cached token or logs in
    - CredentialStore backends: settings file, in-memory or Redis
      (optionally Fernet-encrypted) through py-key-value-aio
    - PKCE utilities: generate_code_verifier, generate_code_challenge,
      generate_state, generate_pkce_pair
"""

from .client import Clock, default_clock, get_authenticated_client, is_credential_fresh
from .flow import (
    BrowserLoginFlow,
    LoginState,
    build_auth_url,
    exchange_code_for_token,
    login_via_browser,
)
from .models import AuthenticatedClient, Credential, TokenResponse
from .pkce import (
    generate_code_challenge,
    generate_code_verifier,
    generate_pkce_pair,
    generate_state,
)
from .storage import (
    CredentialStore,
    KeyValueCredentialStore,
    MemoryCredentialStore,
    SettingsFileCredentialStore,
    create_credential_store,
    create_storage,
)

__all__ = [
    # Login flow
    "BrowserLoginFlow",
    "LoginState",
    "build_auth_url",
    "exchange_code_for_token",
    "login_via_browser",
    # Facade
    "Clock",
    "default_clock",
    "get_authenticated_client",
    "is_credential_fresh",
    # Models
    "AuthenticatedClient",
    "Credential",
    "TokenResponse",
    # Storage
    "CredentialStore",
    "KeyValueCredentialStore",
    "MemoryCredentialStore",
    "SettingsFileCredentialStore",
    "create_credential_store",
    "create_storage",
    # PKCE utilities
    "generate_code_challenge",
    "generate_code_verifier",
    "generate_pkce_pair",
    "generate_state",
]
