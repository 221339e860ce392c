"""
Encrypted local storage.

SessionStore persists three logical values in the local_state table:

- authToken:   AES-GCM encrypted AuthToken JSON (nonce || ciphertext, base64)
- syncHistory: newest-first list of SyncHistoryEntry, capped
- settings:    UserSettings

The AES key is taken from COURSE_SYNC_ENCRYPTION_KEY or generated once
and stored under ``encryptionKey``.
"""

import asyncio
import base64
import binascii
import logging
import os
import time
import uuid
from typing import Callable, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from course_sync.config import Settings, settings as default_settings
from course_sync.db.session import create_session_factory, create_state_engine, init_db
from course_sync.shared.constants import ActivityType, DEFAULT_ACTIVITY_TYPE
from course_sync.shared.errors import ErrorCode, StorageError
from .repository import LocalStateRepository

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


# =============================================================================
# Stored models
# =============================================================================

class StoredModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class AuthToken(StoredModel):
    """Garmin session captured from browser cookies."""

    session_cookie_header: str = Field(alias="sessionCookies")
    username: str
    expires_at_epoch_ms: int = Field(alias="expiresAt")
    display_name: Optional[str] = Field(default=None, alias="displayName")
    profile_image_url: Optional[str] = Field(default=None, alias="profileImageUrl")

    def is_expired(self, at_ms: int) -> bool:
        return self.expires_at_epoch_ms < at_ms


class SyncHistoryEntry(StoredModel):
    """Outcome of one sync attempt."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    route_name: str = Field(alias="routeName")
    activity_type: ActivityType = Field(alias="activityType")
    synced_at_epoch_ms: int = Field(alias="syncedAt")
    success: bool = False
    remote_course_id: Optional[str] = Field(default=None, alias="garminCourseId")
    error_message: Optional[str] = Field(default=None, alias="errorMessage")
    error_code: Optional[str] = Field(default=None, alias="errorCode")


class UserSettings(StoredModel):
    """Recognized user options."""

    default_activity_type: ActivityType = Field(
        default=DEFAULT_ACTIVITY_TYPE, alias="defaultActivityType"
    )


_history_adapter = TypeAdapter(list[SyncHistoryEntry])


# =============================================================================
# Encryption
# =============================================================================

class TokenCipher:
    """AES-256-GCM with a random 12-byte nonce prepended to the ciphertext."""

    NONCE_SIZE = 12

    def __init__(self, key: bytes):
        if len(key) != 32:
            raise StorageError(
                f"Encryption key must be 32 bytes, got {len(key)}",
                ErrorCode.ENCRYPTION_ERROR
            )
        self._aead = AESGCM(key)

    @staticmethod
    def generate_key() -> bytes:
        return AESGCM.generate_key(bit_length=256)

    @classmethod
    def from_b64(cls, encoded: str) -> "TokenCipher":
        try:
            key = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise StorageError("Encryption key is not valid base64", ErrorCode.ENCRYPTION_ERROR) from e
        return cls(key)

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(self.NONCE_SIZE)
        ciphertext = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def decrypt(self, data: str) -> str:
        """
        Raises:
            StorageError: ENCRYPTION_ERROR if the blob is corrupt or the key differs
        """
        try:
            combined = base64.b64decode(data, validate=True)
            nonce, ciphertext = combined[:self.NONCE_SIZE], combined[self.NONCE_SIZE:]
            return self._aead.decrypt(nonce, ciphertext, None).decode("utf-8")
        except (binascii.Error, ValueError, InvalidTag) as e:
            raise StorageError("Failed to decrypt stored data", ErrorCode.ENCRYPTION_ERROR) from e


# =============================================================================
# Session Store
# =============================================================================

class SessionStore:
    """
    Persistence for the auth token, sync history and settings.

    Usage:
        store = await SessionStore.open("sqlite:///./course_sync.db")
        token = await store.get_auth_token()
        await store.close()
    """

    AUTH_TOKEN_KEY = "authToken"
    SYNC_HISTORY_KEY = "syncHistory"
    SETTINGS_KEY = "settings"
    ENCRYPTION_KEY = "encryptionKey"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Optional[Settings] = None,
        clock: Callable[[], int] = now_ms,
        engine: Optional[AsyncEngine] = None
    ):
        self._session_factory = session_factory
        self.settings = settings or default_settings
        self._clock = clock
        self._engine = engine
        self._cipher: Optional[TokenCipher] = None
        self._cipher_lock = asyncio.Lock()
        # Serializes read-modify-write of history and settings
        self._write_lock = asyncio.Lock()

    @classmethod
    async def open(
        cls,
        database_url: Optional[str] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], int] = now_ms
    ) -> "SessionStore":
        """Create engine and tables, return a store that owns the engine."""
        settings = settings or default_settings
        engine = create_state_engine(database_url or settings.database_url)
        try:
            await init_db(engine)
        except SQLAlchemyError as e:
            await engine.dispose()
            raise StorageError(f"Failed to initialize local storage: {e}") from e
        return cls(create_session_factory(engine), settings=settings, clock=clock, engine=engine)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    # -------------------------------------------------------------------------
    # Raw key/value access
    # -------------------------------------------------------------------------

    async def _get(self, key: str) -> Optional[str]:
        try:
            async with self._session_factory() as db:
                return await LocalStateRepository(db).get_value(key)
        except SQLAlchemyError as e:
            logger.error(f"Storage read failed for {key}: {e}")
            raise StorageError(f"Failed to read {key}") from e

    async def _set(self, key: str, value: str) -> None:
        try:
            async with self._session_factory() as db:
                await LocalStateRepository(db).set_value(key, value)
                await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Storage write failed for {key}: {e}")
            raise StorageError(f"Failed to write {key}") from e

    async def _delete(self, key: str) -> None:
        try:
            async with self._session_factory() as db:
                if await LocalStateRepository(db).delete_key(key):
                    await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Storage delete failed for {key}: {e}")
            raise StorageError(f"Failed to delete {key}") from e

    async def _get_cipher(self) -> TokenCipher:
        async with self._cipher_lock:
            if self._cipher is not None:
                return self._cipher

            if self.settings.encryption_key:
                self._cipher = TokenCipher.from_b64(self.settings.encryption_key)
                return self._cipher

            stored = await self._get(self.ENCRYPTION_KEY)
            if stored:
                self._cipher = TokenCipher.from_b64(stored)
            else:
                key = TokenCipher.generate_key()
                await self._set(self.ENCRYPTION_KEY, base64.b64encode(key).decode("ascii"))
                logger.info("Generated new local encryption key")
                self._cipher = TokenCipher(key)
            return self._cipher

    # -------------------------------------------------------------------------
    # Auth token
    # -------------------------------------------------------------------------

    async def get_auth_token(self) -> Optional[AuthToken]:
        """
        Read the stored token.

        An expired token, or one that can no longer be decrypted (e.g.
        after an encryption key change), is deleted and reported as None.
        """
        raw = await self._get(self.AUTH_TOKEN_KEY)
        if not raw:
            return None

        cipher = await self._get_cipher()
        try:
            token = AuthToken.model_validate_json(cipher.decrypt(raw))
        except (StorageError, ValidationError) as e:
            logger.warning(f"Stored auth token is unreadable, clearing: {e}")
            await self.clear_auth_token()
            return None

        if token.is_expired(self._clock()):
            logger.info("Stored auth token expired, clearing")
            await self.clear_auth_token()
            return None

        return token

    async def save_auth_token(self, token: AuthToken) -> None:
        cipher = await self._get_cipher()
        await self._set(self.AUTH_TOKEN_KEY, cipher.encrypt(token.to_json()))

    async def clear_auth_token(self) -> None:
        await self._delete(self.AUTH_TOKEN_KEY)

    async def update_profile(
        self,
        display_name: str,
        profile_image_url: Optional[str] = None
    ) -> Optional[AuthToken]:
        """
        Attach profile metadata to the stored token.

        Returns the updated token, or None if no valid token is stored.
        """
        token = await self.get_auth_token()
        if token is None:
            return None

        updated = token.model_copy(update={
            "display_name": display_name,
            "profile_image_url": profile_image_url,
            "username": display_name,
        })
        await self.save_auth_token(updated)
        return updated

    # -------------------------------------------------------------------------
    # Sync history
    # -------------------------------------------------------------------------

    async def get_sync_history(self) -> list[SyncHistoryEntry]:
        """History entries, newest first."""
        raw = await self._get(self.SYNC_HISTORY_KEY)
        if not raw:
            return []
        try:
            return _history_adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Stored sync history is unreadable, starting over: {e}")
            return []

    async def add_sync_history_entry(self, entry: SyncHistoryEntry) -> None:
        """Prepend ``entry``, evicting the oldest beyond the history limit."""
        async with self._write_lock:
            history = await self.get_sync_history()
            history.insert(0, entry)
            trimmed = history[:self.settings.sync_history_limit]
            await self._set(
                self.SYNC_HISTORY_KEY,
                _history_adapter.dump_json(trimmed, by_alias=True).decode("utf-8")
            )

    async def clear_sync_history(self) -> None:
        async with self._write_lock:
            await self._set(self.SYNC_HISTORY_KEY, "[]")

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    async def get_settings(self) -> UserSettings:
        """Stored settings merged over defaults."""
        raw = await self._get(self.SETTINGS_KEY)
        if not raw:
            return UserSettings()
        try:
            return UserSettings.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Stored settings are unreadable, using defaults: {e}")
            return UserSettings()

    async def save_settings(self, **changes) -> UserSettings:
        """
        Update recognized settings.

        Raises:
            ValueError: For unknown option names or invalid values
        """
        unknown = set(changes) - set(UserSettings.model_fields)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")

        async with self._write_lock:
            current = await self.get_settings()
            updated = UserSettings.model_validate({**current.model_dump(), **changes})
            await self._set(self.SETTINGS_KEY, updated.to_json())
        return updated
