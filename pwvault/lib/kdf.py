"""Argon2id key derivation and salt generation."""
from __future__ import annotations
import logging, secrets, time
from dataclasses import dataclass, asdict
from typing import Any, Dict

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw

from config.settings import KEY_LENGTH, MIN_MEMORY_KIB, MIN_SALT_LENGTH, SALT_LENGTH
from .errors import InvalidInputError, RandomSourceError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Argon2Params:
	"""Argon2id cost parameters. `memory` is in KiB."""
	time: int = 3
	memory: int = 64 * 1024
	parallelism: int = 4
	key_len: int = KEY_LENGTH

	def validate(self) -> None:
		if self.time <= 0: raise InvalidInputError('time cost must be greater than 0')
		if self.memory <= 0: raise InvalidInputError('memory cost must be greater than 0')
		if self.parallelism <= 0: raise InvalidInputError('parallelism must be greater than 0')
		if self.key_len <= 0: raise InvalidInputError('key length must be greater than 0')
		if self.key_len < 16:
			raise InvalidInputError('key length must be at least 16 bytes')
		if self.memory < MIN_MEMORY_KIB:
			raise InvalidInputError(f'memory cost must be at least {MIN_MEMORY_KIB} KiB')

	def to_dict(self) -> Dict[str, int]:
		return asdict(self)

	@classmethod
	def from_dict(cls, raw: Dict[str, Any]) -> 'Argon2Params':
		try:
			return cls(time=int(raw['time']), memory=int(raw['memory']),
				parallelism=int(raw['parallelism']), key_len=int(raw['key_len']))
		except (KeyError, TypeError, ValueError) as e:
			raise InvalidInputError(f'Malformed Argon2 parameters: {e}') from e


DEFAULT_PARAMS = Argon2Params()


def derive_key(password: str, salt: bytes, params: Argon2Params = DEFAULT_PARAMS) -> bytes:
	"""Derive a symmetric key from the master password with Argon2id.

	Same password, salt and params always give the same key, which is
	what lets the vault be reopened without ever storing the key.
	"""
	if not password:
		raise InvalidInputError('Password cannot be empty')
	if salt is None or len(salt) < MIN_SALT_LENGTH:
		raise InvalidInputError(f'Salt must be at least {MIN_SALT_LENGTH} bytes')
	params.validate()
	started = time.perf_counter()
	try:
		key = hash_secret_raw(
			secret=password.encode('utf-8'),
			salt=bytes(salt),
			time_cost=params.time,
			memory_cost=params.memory,
			parallelism=params.parallelism,
			hash_len=params.key_len,
			type=Type.ID,
		)
	except HashingError as e:
		raise InvalidInputError(f'Key derivation rejected parameters: {e}') from e
	log.debug('Derived key (t=%d, m=%dKiB, p=%d) in %.2fs', params.time, params.memory,
		params.parallelism, time.perf_counter() - started)
	return key


def generate_salt() -> bytes:
	return generate_salt_with_length(SALT_LENGTH)


def generate_salt_with_length(length: int) -> bytes:
	if length < MIN_SALT_LENGTH:
		raise InvalidInputError(f'Salt length must be at least {MIN_SALT_LENGTH} bytes')
	try:
		return secrets.token_bytes(length)
	except OSError as e:
		raise RandomSourceError(f'Failed to generate random salt: {e}') from e
