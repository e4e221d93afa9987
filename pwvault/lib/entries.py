"""Encrypted entry store.

Each entry keeps its name and category in plaintext (they are the index),
while the sensitive fields and a search-text blob are encrypted with the
caller's key. The key is an argument to every call and is never kept.
"""
from __future__ import annotations
import logging, sqlite3, uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import List

from config.settings import DEFAULT_CATEGORY, KEY_LENGTH, NONCE_LENGTH
from .crypto import VaultCrypto, KeyLike
from .db import VaultDB
from .errors import (
	AuthenticationError, DuplicateNameError, InvalidInputError, NotFoundError, PersistenceError,
	ValidationError
)
from .models import Entry, EntryData, EntrySummary

log = logging.getLogger(__name__)

_SUMMARY_COLUMNS = "id, name, category, created_at, updated_at"


def _now() -> datetime:
	return datetime.now(timezone.utc)


def _summary(row: tuple) -> EntrySummary:
	return EntrySummary(row[0], row[1], row[2],
		datetime.fromisoformat(row[3]), datetime.fromisoformat(row[4]))


class EntryStore:
	def __init__(self, db: VaultDB, crypto: VaultCrypto | None = None):
		self.db = db
		self.crypto = crypto or VaultCrypto()

	def _validate(self, entry: Entry, key: KeyLike):
		if entry is None: raise ValidationError('Entry cannot be None')
		if not entry.name: raise ValidationError('Entry name cannot be empty')
		if not entry.password: raise ValidationError('Entry password cannot be empty')
		if key is None or len(key) != KEY_LENGTH:
			raise ValidationError(f'Encryption key must be {KEY_LENGTH} bytes')

	def _seal(self, entry: Entry, key: KeyLike):
		"""Encrypt payload and search text; each call draws fresh nonces."""
		data = self.crypto.encrypt(entry.data().to_json(), key)
		search = self.crypto.encrypt(entry.search_text().encode('utf-8'), key)
		return data, search

	def _name_taken(self, name: str, exclude_id: str = '') -> bool:
		return self.db.query_one(
			"SELECT 1 FROM entries WHERE name = ? AND id != ?", (name, exclude_id)
		) is not None

	def create(self, entry: Entry, key: KeyLike) -> Entry:
		self._validate(entry, key)
		if self._name_taken(entry.name):
			raise DuplicateNameError(f'Entry with name {entry.name} already exists')
		now = _now()
		stored = replace(entry, id=entry.id or str(uuid.uuid4()),
			category=entry.category or DEFAULT_CATEGORY,
			tags=list(entry.tags), created_at=now, updated_at=now)
		data, search = self._seal(stored, key)
		try:
			self.db.execute(
				"INSERT INTO entries (id, name, category, encrypted_data, encrypted_search, "
				"created_at, updated_at, encryption_nonce, search_nonce) "
				"VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
				(stored.id, stored.name, stored.category, data, search,
					now.isoformat(), now.isoformat(), data[:NONCE_LENGTH], search[:NONCE_LENGTH]),
			)
		except sqlite3.IntegrityError as e:
			# Only name and id are unique; a caller-chosen id may clash too.
			if self.db.query_one("SELECT 1 FROM entries WHERE id = ?", (stored.id,)):
				raise ValidationError(f'Entry with ID {stored.id} already exists') from e
			raise DuplicateNameError(f'Entry with name {stored.name} already exists') from e
		log.info('Created entry %s', stored.id)
		return stored

	def get(self, entry_id: str, key: KeyLike) -> Entry:
		if not entry_id: raise InvalidInputError('Entry ID cannot be empty')
		row = self.db.query_one(
			"SELECT id, name, category, created_at, updated_at, encrypted_data "
			"FROM entries WHERE id = ?", (entry_id,))
		if row is None:
			raise NotFoundError(f'Entry with ID {entry_id} not found')
		# AuthenticationError from decrypt propagates as-is.
		plain = self.crypto.decrypt(row[5], key)
		try:
			data = EntryData.from_json(plain)
		except ValueError as e:
			raise PersistenceError(f'Failed to decode entry {entry_id}: {e}') from e
		s = _summary(row[:5])
		return Entry(name=s.name, password=data.password, category=s.category,
			username=data.username, url=data.url, notes=data.notes, tags=data.tags,
			id=s.id, created_at=s.created_at, updated_at=s.updated_at)

	def id_for_name(self, name: str) -> str:
		if not name: raise InvalidInputError('Entry name cannot be empty')
		row = self.db.query_one("SELECT id FROM entries WHERE name = ?", (name,))
		if row is None:
			raise NotFoundError(f'Entry with name {name} not found')
		return row[0]

	def get_by_name(self, name: str, key: KeyLike) -> Entry:
		return self.get(self.id_for_name(name), key)

	def list(self) -> List[EntrySummary]:
		rows = self.db.query_all(f"SELECT {_SUMMARY_COLUMNS} FROM entries ORDER BY name ASC")
		return [_summary(r) for r in rows]

	def list_by_category(self, category: str) -> List[EntrySummary]:
		rows = self.db.query_all(
			f"SELECT {_SUMMARY_COLUMNS} FROM entries WHERE category = ? ORDER BY name ASC",
			(category,))
		return [_summary(r) for r in rows]

	def update(self, entry: Entry, key: KeyLike) -> Entry:
		self._validate(entry, key)
		if not entry.id: raise ValidationError('Entry ID cannot be empty')
		row = self.db.query_one("SELECT created_at, updated_at FROM entries WHERE id = ?", (entry.id,))
		if row is None:
			raise NotFoundError(f'Entry with ID {entry.id} not found')
		if self._name_taken(entry.name, exclude_id=entry.id):
			raise DuplicateNameError(f'Entry with name {entry.name} already exists')
		created = datetime.fromisoformat(row[0])
		previous = datetime.fromisoformat(row[1])
		# updated_at must move forward even when the clock has not ticked
		now = max(_now(), previous + timedelta(microseconds=1))
		stored = replace(entry, category=entry.category or DEFAULT_CATEGORY,
			tags=list(entry.tags), created_at=created, updated_at=now)
		data, search = self._seal(stored, key)
		try:
			cur = self.db.execute(
				"UPDATE entries SET name = ?, category = ?, encrypted_data = ?, encrypted_search = ?, "
				"updated_at = ?, encryption_nonce = ?, search_nonce = ? WHERE id = ?",
				(stored.name, stored.category, data, search, now.isoformat(),
					data[:NONCE_LENGTH], search[:NONCE_LENGTH], stored.id),
			)
		except sqlite3.IntegrityError as e:
			raise DuplicateNameError(f'Entry with name {stored.name} already exists') from e
		if cur.rowcount == 0:
			raise NotFoundError(f'Entry with ID {entry.id} not found')
		log.info('Updated entry %s', stored.id)
		return stored

	def delete(self, entry_id: str) -> None:
		if not entry_id: raise InvalidInputError('Entry ID cannot be empty')
		cur = self.db.execute("DELETE FROM entries WHERE id = ?", (entry_id,))
		if cur.rowcount == 0:
			raise NotFoundError(f'Entry with ID {entry_id} not found')
		log.info('Deleted entry %s', entry_id)

	def count(self) -> int:
		return self.db.query_one("SELECT COUNT(*) FROM entries")[0]

	def verify_key(self, key: KeyLike) -> bool:
		"""False if `key` cannot open a stored record. An empty store accepts any key."""
		row = self.db.query_one("SELECT encrypted_search FROM entries LIMIT 1")
		if row is None:
			return True
		try:
			self.crypto.decrypt(row[0], key)
		except AuthenticationError:
			return False
		return True

	def search(self, query: str, key: KeyLike) -> List[EntrySummary]:
		"""Entries whose decrypted search text contains every query term.

		Case-insensitive, ordered by name. Every blob is decrypted, so a
		wrong key fails with AuthenticationError even for an empty query.
		"""
		terms = query.lower().split()
		rows = self.db.query_all(
			f"SELECT {_SUMMARY_COLUMNS}, encrypted_search FROM entries ORDER BY name ASC")
		hits = []
		for row in rows:
			text = self.crypto.decrypt(row[5], key).decode('utf-8').lower()
			if all(t in text for t in terms):
				hits.append(_summary(row[:5]))
		return hits
