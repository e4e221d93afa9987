"""Error taxonomy shared by every vault component.

Callers branch on the exception class, never on the message text.
"""
from __future__ import annotations


class VaultError(Exception):
	"""Base class for all pwvault errors."""


class InvalidInputError(VaultError):
	"""Malformed argument: empty password, wrong key length, bad params."""

class ValidationError(InvalidInputError):
	"""A record failed validation before being written."""

class InvalidLengthError(InvalidInputError):
	pass

class NoCharsetSelectedError(InvalidInputError):
	pass


class CryptoError(VaultError):
	pass

class AuthenticationError(CryptoError):
	"""Wrong key or tampered ciphertext; the two raise the same error."""

class RandomSourceError(CryptoError):
	pass


class StorageError(VaultError):
	pass

class NotInitializedError(StorageError):
	"""Salt or KDF parameters requested before the vault was set up."""

class NotFoundError(StorageError):
	pass

class DuplicateNameError(StorageError):
	pass

class PersistenceError(StorageError):
	"""Underlying sqlite failure, wrapped with context."""
