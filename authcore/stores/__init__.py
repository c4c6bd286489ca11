"""Credential store implementations."""

from authcore.stores.base import CredentialSession, CredentialStore
from authcore.stores.memory import InMemoryCredentialStore
from authcore.stores.postgres import PostgresCredentialStore

__all__ = [
    "CredentialSession",
    "CredentialStore",
    "InMemoryCredentialStore",
    "PostgresCredentialStore",
]
