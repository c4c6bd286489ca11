"""Credential service: registration, login, access tokens and rotating refresh tokens."""

__version__ = "0.1.0"
