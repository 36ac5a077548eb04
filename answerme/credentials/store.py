"""Stored provider credentials with encrypted API keys."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from cryptography.fernet import Fernet, InvalidToken
from pydantic import BaseModel, Field

from answerme.models.credentials import ProviderCredentials
from answerme.models.errors import CredentialDecryptionError

logger = logging.getLogger(__name__)


class StoredCredential(BaseModel):
    """A user's provider configuration as persisted; the key stays encrypted."""

    id: int
    owner_id: int
    provider_name: str
    encrypted_api_key: str = Field(..., description="Fernet token of the API key")
    endpoint: str | None = None
    model: str | None = None
    is_default: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CredentialStore(ABC):
    """Resolves and decrypts a user's provider credentials."""

    @abstractmethod
    async def find(self, owner_id: int, provider_name: str | None = None) -> StoredCredential | None:
        """The named credential set, or the default one when no name is given."""

    @abstractmethod
    def decrypt(self, stored: StoredCredential) -> ProviderCredentials:
        """
        Decrypt a stored credential set.

        Raises:
            CredentialDecryptionError: If the key cannot be decrypted
        """


class InMemoryCredentialStore(CredentialStore):
    """Credential store kept in process memory."""

    def __init__(self, secret_key: str | bytes | None = None):
        if secret_key is None:
            logger.warning("No CREDENTIAL_SECRET_KEY configured, using a per-process key")
            secret_key = Fernet.generate_key()
        self._fernet = Fernet(secret_key)
        self._credentials: list[StoredCredential] = []

    def encrypt(self, api_key: str) -> str:
        return self._fernet.encrypt(api_key.encode("utf-8")).decode("ascii")

    def add(
        self,
        owner_id: int,
        provider_name: str,
        api_key: str,
        endpoint: str | None = None,
        model: str | None = None,
        is_default: bool = False,
    ) -> StoredCredential:
        """Encrypt and store a credential set; a new default replaces the old one."""
        if is_default:
            for existing in self._credentials:
                if existing.owner_id == owner_id:
                    existing.is_default = False
        stored = StoredCredential(
            id=len(self._credentials) + 1,
            owner_id=owner_id,
            provider_name=provider_name,
            encrypted_api_key=self.encrypt(api_key),
            endpoint=endpoint,
            model=model,
            is_default=is_default,
        )
        self._credentials.append(stored)
        return stored

    async def find(self, owner_id: int, provider_name: str | None = None) -> StoredCredential | None:
        owned = [c for c in self._credentials if c.owner_id == owner_id]
        if provider_name:
            wanted = provider_name.strip().lower()
            return next((c for c in owned if c.provider_name.lower() == wanted), None)
        return next((c for c in owned if c.is_default), owned[0] if owned else None)

    def decrypt(self, stored: StoredCredential) -> ProviderCredentials:
        try:
            api_key = self._fernet.decrypt(stored.encrypted_api_key.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as e:
            raise CredentialDecryptionError(
                f"Credentials {stored.id} for provider {stored.provider_name} could not be decrypted"
            ) from e
        return ProviderCredentials(
            provider_name=stored.provider_name,
            api_key=api_key,
            endpoint=stored.endpoint,
            model=stored.model,
        )
