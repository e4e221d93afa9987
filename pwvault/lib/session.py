"""Vault setup and scoped access to the derived key.

The key lives in a bytearray owned by the `unlocked_key` block and is
zeroed on every exit path, including errors raised inside the block.
"""
from __future__ import annotations
import logging
from contextlib import contextmanager
from typing import Iterator

from config.settings import KEY_LENGTH, VAULT_VERSION
from .crypto import wipe
from .db import VaultDB
from .entries import EntryStore
from .errors import AuthenticationError, InvalidInputError, NotInitializedError, StorageError
from .kdf import Argon2Params, DEFAULT_PARAMS, derive_key, generate_salt
from .metadata import MetadataStore

log = logging.getLogger(__name__)


def initialize_vault(db: VaultDB, password: str, params: Argon2Params = DEFAULT_PARAMS) -> None:
	"""Write salt, KDF params, version markers and the key canary to a fresh vault.

	Either all of them are stored or none are.
	"""
	meta = MetadataStore(db)
	if meta.is_initialized():
		raise StorageError('Vault already initialized')
	params.validate()
	if params.key_len != KEY_LENGTH:
		raise InvalidInputError(f'Vault keys must be {KEY_LENGTH} bytes, got key_len={params.key_len}')
	salt = generate_salt()
	key = bytearray(derive_key(password, salt, params))
	try:
		meta.write_initial(salt, params, key, VAULT_VERSION)
	finally:
		wipe(key)
	log.info('Vault initialized at %s', db.path)


def _key_matches(db: VaultDB, meta: MetadataStore, key: bytearray) -> bool:
	try:
		return meta.verify_key(key)
	except NotInitializedError:
		pass
	# No canary yet: check the key against a stored record, then bind the canary to it.
	if not EntryStore(db, meta.crypto).verify_key(key):
		return False
	meta.set_verification(key)
	log.info('Stored key canary for %s', db.path)
	return True


@contextmanager
def unlocked_key(db: VaultDB, password: str) -> Iterator[bytearray]:
	"""Derive the vault key for the duration of a `with` block.

	Raises NotInitializedError if the vault was never set up, and
	AuthenticationError if the password does not match the stored canary.
	A vault without a canary (salt and params written directly) gets one on
	its first successful unlock; if it already holds records, the key must
	decrypt them first.
	"""
	meta = MetadataStore(db)
	salt = meta.get_salt()
	params = meta.get_params()
	key = bytearray(derive_key(password, salt, params))
	try:
		if len(key) != KEY_LENGTH or not _key_matches(db, meta, key):
			log.warning('Unlock failed for %s', db.path)
			raise AuthenticationError('Wrong master password or corrupted vault')
		yield key
	finally:
		wipe(key)
