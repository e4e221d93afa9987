"""Vault metadata: salt, KDF parameters, version markers.

Values are opaque strings (base64 salt, JSON params) so this layer never
has to know anything about the cryptography that consumes them.
"""
from __future__ import annotations
import base64, binascii, json, logging
from datetime import datetime, timezone
from typing import Dict, List

from .crypto import VaultCrypto, KeyLike
from .db import VaultDB
from .errors import (
	AuthenticationError, InvalidInputError, NotFoundError, NotInitializedError, PersistenceError
)
from .kdf import Argon2Params, DEFAULT_PARAMS, generate_salt

log = logging.getLogger(__name__)

KEY_SALT = 'salt'
KEY_ARGON2_PARAMS = 'argon2_params'
KEY_VERSION = 'version'
KEY_CREATED_AT = 'created_at'
KEY_VERIFICATION = 'verification'

VERIFICATION_TEXT = 'PWVAULT_MASTER_KEY_VERIFICATION'

_UPSERT = (
	"INSERT INTO metadata (key, value) VALUES (?, ?) "
	"ON CONFLICT(key) DO UPDATE SET value = excluded.value"
)


def _encode_salt(salt: bytes) -> str:
	if not salt: raise InvalidInputError('Salt cannot be empty')
	return base64.b64encode(salt).decode('ascii')


def _encode_params(params: Argon2Params) -> str:
	params.validate()
	return json.dumps(params.to_dict(), sort_keys=True)


class MetadataStore:
	def __init__(self, db: VaultDB, crypto: VaultCrypto | None = None):
		self.db = db
		self.crypto = crypto or VaultCrypto()

	def set_meta(self, key: str, value: str) -> None:
		if not key: raise InvalidInputError('Metadata key cannot be empty')
		self.db.execute(_UPSERT, (key, value))

	def set_many(self, values: Dict[str, str]) -> None:
		"""Upsert several keys in a single transaction."""
		if not all(values): raise InvalidInputError('Metadata key cannot be empty')
		self.db.executemany(_UPSERT, list(values.items()))

	def get_meta(self, key: str) -> str:
		if not key: raise InvalidInputError('Metadata key cannot be empty')
		row = self.db.query_one("SELECT value FROM metadata WHERE key = ?", (key,))
		if row is None:
			raise NotFoundError(f'Metadata key {key} not found')
		return row[0]

	def delete_meta(self, key: str) -> None:
		if not key: raise InvalidInputError('Metadata key cannot be empty')
		cur = self.db.execute("DELETE FROM metadata WHERE key = ?", (key,))
		if cur.rowcount == 0:
			raise NotFoundError(f'Metadata key {key} not found')

	def list_keys(self) -> List[str]:
		return [r[0] for r in self.db.query_all("SELECT key FROM metadata ORDER BY key")]

	def is_initialized(self) -> bool:
		return self.db.query_one(
			"SELECT COUNT(*) FROM metadata WHERE key IN (?, ?)", (KEY_SALT, KEY_ARGON2_PARAMS)
		)[0] == 2

	def _get_required(self, key: str) -> str:
		try:
			return self.get_meta(key)
		except NotFoundError:
			raise NotInitializedError(f'Vault not initialized: missing {key}') from None

	# salt

	def set_salt(self, salt: bytes) -> None:
		self.set_meta(KEY_SALT, _encode_salt(salt))

	def get_salt(self) -> bytes:
		encoded = self._get_required(KEY_SALT)
		try:
			return base64.b64decode(encoded, validate=True)
		except (binascii.Error, ValueError) as e:
			raise PersistenceError(f'Failed to decode salt: {e}') from e

	def get_or_init_salt(self) -> bytes:
		try:
			return self.get_salt()
		except NotInitializedError:
			salt = generate_salt()
			self.set_salt(salt)
			log.info('Generated new vault salt')
			return salt

	# KDF parameters

	def set_params(self, params: Argon2Params) -> None:
		self.set_meta(KEY_ARGON2_PARAMS, _encode_params(params))

	def get_params(self) -> Argon2Params:
		raw = self._get_required(KEY_ARGON2_PARAMS)
		try:
			data = json.loads(raw)
		except ValueError as e:
			raise PersistenceError(f'Failed to decode Argon2 parameters: {e}') from e
		if not isinstance(data, dict):
			raise PersistenceError('Stored Argon2 parameters are not an object')
		params = Argon2Params.from_dict(data)
		params.validate()
		return params

	def get_or_init_params(self, defaults: Argon2Params = DEFAULT_PARAMS) -> Argon2Params:
		try:
			return self.get_params()
		except NotInitializedError:
			self.set_params(defaults)
			return defaults

	# master key verification

	def set_verification(self, key: KeyLike) -> None:
		self.set_meta(KEY_VERIFICATION, self.crypto.encrypt_text(VERIFICATION_TEXT, key))

	def verify_key(self, key: KeyLike) -> bool:
		token = self._get_required(KEY_VERIFICATION)
		try:
			return self.crypto.decrypt_text(token, key) == VERIFICATION_TEXT
		except AuthenticationError:
			return False

	def write_initial(self, salt: bytes, params: Argon2Params, key: KeyLike, version: str) -> None:
		"""Store everything a new vault needs in one commit.

		Every value, the key canary included, is computed before anything is
		written, so a failure leaves the metadata table untouched.
		"""
		rows = {
			KEY_SALT: _encode_salt(salt),
			KEY_ARGON2_PARAMS: _encode_params(params),
			KEY_VERSION: version,
			KEY_CREATED_AT: datetime.now(timezone.utc).isoformat(),
			KEY_VERIFICATION: self.crypto.encrypt_text(VERIFICATION_TEXT, key),
		}
		self.set_many(rows)
