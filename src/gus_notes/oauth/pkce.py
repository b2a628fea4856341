"""PKCE (Proof Key for Code Exchange) utilities.

Implements the client side of RFC 7636: a random code_verifier kept in
memory for the duration of one login, the S256 code_challenge sent with the
authorization request, and the random ``state`` nonce checked on the
redirect.

Nothing produced here is ever logged or persisted.
"""

from __future__ import annotations

import base64
import hashlib
import secrets

# 32 bytes encode to 43 base64url characters, the RFC 7636 minimum
VERIFIER_BYTES = 32
STATE_BYTES = 16


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_code_verifier() -> str:
    """Generate a PKCE code_verifier.

    Returns:
        str: 43 characters of ``[A-Za-z0-9_-]`` from a CSPRNG
    """
    return _b64url(secrets.token_bytes(VERIFIER_BYTES))


def generate_code_challenge(code_verifier: str) -> str:
    """Compute the S256 code_challenge from a code_verifier.

    Args:
        code_verifier: The code verifier string

    Returns:
        str: BASE64URL(SHA256(code_verifier)) without padding
    """
    digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
    return _b64url(digest)


def generate_state() -> str:
    """Generate the CSRF nonce sent as the OAuth ``state`` parameter."""
    return _b64url(secrets.token_bytes(STATE_BYTES))


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge pair.

    Returns:
        tuple[str, str]: (code_verifier, code_challenge)

    Example:
        >>> verifier, challenge = generate_pkce_pair()
        >>> generate_code_challenge(verifier) == challenge
        True
    """
    code_verifier = generate_code_verifier()
    return code_verifier, generate_code_challenge(code_verifier)
