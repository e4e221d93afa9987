"""Authenticated encryption (AES-256-GCM) for vault blobs.

Blob layout: nonce (12 bytes) || ciphertext || tag (16 bytes).
"""
from __future__ import annotations
import base64, secrets
from typing import Union
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.backends import default_backend
from config.settings import KEY_LENGTH, NONCE_LENGTH, AUTH_TAG_LENGTH
from .errors import AuthenticationError, InvalidInputError, RandomSourceError

KeyLike = Union[bytes, bytearray]

# One message for every decrypt failure so callers cannot tell them apart.
_AUTH_FAILED = 'Decryption failed (wrong key or tampered data)'


class VaultCrypto:
	def __init__(self):
		self._backend = default_backend()

	def generate_nonce(self) -> bytes:
		try:
			return secrets.token_bytes(NONCE_LENGTH)
		except OSError as e:
			raise RandomSourceError(f'Failed to generate nonce: {e}') from e

	def encrypt(self, data: bytes, key: KeyLike) -> bytes:
		if key is None or len(key) != KEY_LENGTH:
			raise InvalidInputError(f'Key must be {KEY_LENGTH} bytes')
		nonce = self.generate_nonce()
		cipher = Cipher(algorithms.AES(key), modes.GCM(nonce), backend=self._backend)
		enc = cipher.encryptor()
		ct = enc.update(data) + enc.finalize()
		return nonce + ct + enc.tag

	def decrypt(self, blob: bytes, key: KeyLike) -> bytes:
		if key is None or len(key) != KEY_LENGTH: raise AuthenticationError(_AUTH_FAILED)
		if blob is None or len(blob) < NONCE_LENGTH + AUTH_TAG_LENGTH: raise AuthenticationError(_AUTH_FAILED)
		nonce = blob[:NONCE_LENGTH]; tag = blob[-AUTH_TAG_LENGTH:]; ct = blob[NONCE_LENGTH:-AUTH_TAG_LENGTH]
		cipher = Cipher(algorithms.AES(key), modes.GCM(nonce, tag), backend=self._backend)
		dec = cipher.decryptor()
		try:
			return dec.update(ct) + dec.finalize()
		except InvalidTag:
			raise AuthenticationError(_AUTH_FAILED) from None

	def encrypt_text(self, text: str, key: KeyLike) -> str:
		return base64.b64encode(self.encrypt(text.encode('utf-8'), key)).decode('ascii')

	def decrypt_text(self, token: str, key: KeyLike) -> str:
		try:
			raw = base64.b64decode(token, validate=True)
		except ValueError:
			raise AuthenticationError(_AUTH_FAILED) from None
		return self.decrypt(raw, key).decode('utf-8')


def wipe(buffer: bytearray) -> None:
	"""Overwrite a mutable key buffer with zeros in place."""
	for i in range(len(buffer)):
		buffer[i] = 0


_default = VaultCrypto()
encrypt = _default.encrypt
decrypt = _default.decrypt
encrypt_text = _default.encrypt_text
decrypt_text = _default.decrypt_text
