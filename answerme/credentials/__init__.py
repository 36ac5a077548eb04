"""Provider credential resolution."""

from .store import CredentialStore, InMemoryCredentialStore, StoredCredential

__all__ = ["CredentialStore", "InMemoryCredentialStore", "StoredCredential"]
