"""Persistence layer for credential-sets and bookmarks."""

from .credential_repository import CredentialStore

__all__ = ["CredentialStore"]
