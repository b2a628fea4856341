"""Credential cache backends.

The facade only needs a single slot: ``get()`` the cached
:class:`~gus_notes.oauth.models.Credential` or ``set()`` a new one. Two
backends are provided:

- :class:`SettingsFileCredentialStore`: the credential lives under one key of
  a JSON settings file shared with other settings (default backend).
- :class:`KeyValueCredentialStore`: any ``py-key-value-aio`` store, built by
  :func:`create_storage` as in-memory or Redis, optionally Fernet-encrypted.

Writes replace the whole record; last writer wins.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import msgspec

from ..errors import ConfigurationError
from ..logging_config import get_logger
from .models import Credential

if TYPE_CHECKING:
    from key_value.aio.protocols.key_value import AsyncKeyValue

    from ..config import Settings

logger = get_logger("oauth.storage")


@runtime_checkable
class CredentialStore(Protocol):
    """Single-slot persistence contract for the cached credential."""

    async def get(self) -> Credential | None: ...

    async def set(self, credential: Credential) -> None: ...


def _to_credential(data: Any) -> Credential | None:
    if not data:
        return None
    try:
        return msgspec.convert(data, Credential)
    except msgspec.ValidationError as e:
        logger.warning("Ignoring malformed cached credential: %s", e)
        return None


class MemoryCredentialStore:
    """Process-local store, mainly for tests and one-shot CLI runs."""

    def __init__(self, credential: Credential | None = None) -> None:
        self._credential = credential

    async def get(self) -> Credential | None:
        return self._credential

    async def set(self, credential: Credential) -> None:
        self._credential = credential


class SettingsFileCredentialStore:
    """Credential stored inside a larger JSON settings blob.

    Other keys in the file are preserved on write. A missing or unreadable
    file reads as "no credential".
    """

    def __init__(self, path: str | os.PathLike[str], key: str = "gusToken") -> None:
        self.path = Path(path).expanduser()
        self.key = key

    def _load_blob(self) -> dict[str, Any]:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return {}
        try:
            data = msgspec.json.decode(raw)
        except msgspec.DecodeError:
            logger.warning("Settings file %s is not valid JSON; treating as empty", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_blob(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_bytes(msgspec.json.format(msgspec.json.encode(data), indent=2))
        os.replace(tmp, self.path)

    async def get(self) -> Credential | None:
        blob = await asyncio.to_thread(self._load_blob)
        return _to_credential(blob.get(self.key))

    async def set(self, credential: Credential) -> None:
        def _update() -> None:
            blob = self._load_blob()
            blob[self.key] = msgspec.to_builtins(credential)
            self._write_blob(blob)

        await asyncio.to_thread(_update)
        logger.debug("Stored credential in %s under key %s", self.path, self.key)


class KeyValueCredentialStore:
    """Credential stored in a ``py-key-value-aio`` store."""

    def __init__(
        self,
        storage: "AsyncKeyValue",
        key: str = "gus_token",
        collection: str = "credentials",
    ) -> None:
        self._storage = storage
        self.key = key
        self.collection = collection

    async def get(self) -> Credential | None:
        data = await self._storage.get(key=self.key, collection=self.collection)
        return _to_credential(data)

    async def set(self, credential: Credential) -> None:
        await self._storage.put(
            key=self.key,
            value=msgspec.to_builtins(credential),
            collection=self.collection,
        )
        logger.debug("Stored credential in key-value collection=%s", self.collection)


def create_storage(
    storage_type: str = "memory",
    redis_url: str | None = None,
    encryption_key: str | None = None,
) -> "AsyncKeyValue":
    """Create a key-value storage backend.

    Args:
        storage_type: 'memory' (default) or 'redis'
        redis_url: Redis connection URL (default: redis://localhost:6379)
        encryption_key: Fernet key or key material; wraps the store with
            Fernet encryption when set

    Returns:
        AsyncKeyValue: Configured storage backend

    Raises:
        ConfigurationError: If an unknown storage type is specified
    """
    storage_type = storage_type.lower()
    logger.info(
        "Creating key-value storage: type=%s, encrypted=%s",
        storage_type,
        bool(encryption_key),
    )

    if storage_type == "memory":
        from key_value.aio.stores.memory import MemoryStore

        storage: AsyncKeyValue = MemoryStore()

    elif storage_type == "redis":
        from key_value.aio.stores.redis import RedisStore

        url = redis_url or "redis://localhost:6379"
        storage = RedisStore(url=url)
        logger.debug("Created Redis storage backend: url=%s", url)

    else:
        raise ConfigurationError(f"Unknown storage type: {storage_type}")

    if encryption_key:
        from cryptography.fernet import Fernet
        from key_value.aio.wrappers.encryption.fernet import FernetEncryptionWrapper

        # A 44-character base64 Fernet key is used directly; anything else
        # is treated as source material for key derivation.
        try:
            fernet = Fernet(encryption_key.encode())
        except ValueError:
            storage = FernetEncryptionWrapper(storage, source_material=encryption_key)
        else:
            storage = FernetEncryptionWrapper(storage, fernet=fernet)
        logger.debug("Applied Fernet encryption wrapper to storage")

    return storage


def create_credential_store(settings: "Settings") -> CredentialStore:
    """Pick the credential backend named by ``settings.token_storage``."""
    if settings.token_storage == "file":
        return SettingsFileCredentialStore(settings.settings_file)
    return KeyValueCredentialStore(
        create_storage(
            settings.token_storage,
            redis_url=settings.redis_url,
            encryption_key=settings.storage_encryption_key,
        )
    )
