"""SQLite handle for a vault file.

One VaultDB owns one sqlite3 connection. It is created by the caller and
passed to the metadata and entry stores; nothing here is module-global.
"""
from __future__ import annotations
import logging, os, sqlite3
from pathlib import Path
from typing import Any, List, Optional, Sequence

from .errors import InvalidInputError, PersistenceError

log = logging.getLogger(__name__)

PRAGMAS = (
	"PRAGMA foreign_keys = ON",
	"PRAGMA journal_mode = WAL",
	"PRAGMA synchronous = NORMAL",
	"PRAGMA busy_timeout = 5000",
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS metadata (
	key TEXT PRIMARY KEY NOT NULL,
	value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS entries (
	id TEXT PRIMARY KEY NOT NULL,
	name TEXT NOT NULL UNIQUE,
	category TEXT NOT NULL DEFAULT 'general',
	encrypted_data BLOB NOT NULL,
	encrypted_search BLOB NOT NULL,
	created_at TEXT NOT NULL,
	updated_at TEXT NOT NULL,
	encryption_nonce BLOB NOT NULL,
	search_nonce BLOB NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_entries_category ON entries(category);
CREATE INDEX IF NOT EXISTS idx_entries_created_at ON entries(created_at);
CREATE INDEX IF NOT EXISTS idx_entries_updated_at ON entries(updated_at);
"""


class VaultDB:
	def __init__(self, conn: sqlite3.Connection, path: Path):
		self.conn = conn
		self._path = path

	@classmethod
	def open(cls, path: Path | str) -> 'VaultDB':
		"""Open (creating if needed) the vault database at `path`."""
		if not str(path):
			raise InvalidInputError('Database path cannot be empty')
		path = Path(path)
		try:
			path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
			conn = sqlite3.connect(str(path))
		except (OSError, sqlite3.Error) as e:
			raise PersistenceError(f'Failed to open database {path}: {e}') from e
		db = cls(conn, path)
		try:
			db._configure()
			db._create_schema()
		except PersistenceError:
			conn.close()
			raise
		if os.name == 'posix':
			try:
				os.chmod(path, 0o600)
			except OSError:
				log.warning('Could not restrict permissions on %s', path)
		return db

	@property
	def path(self) -> Path:
		return self._path

	def _configure(self):
		for pragma in PRAGMAS:
			try:
				self.conn.execute(pragma)
			except sqlite3.Error as e:
				raise PersistenceError(f'Failed to execute {pragma}: {e}') from e

	def _create_schema(self):
		try:
			self.conn.executescript(SCHEMA)
		except sqlite3.Error as e:
			raise PersistenceError(f'Failed to create schema: {e}') from e
		log.debug('Schema ready at %s', self._path)

	def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
		"""Run a write statement in its own transaction.

		IntegrityError is re-raised untouched so stores can map it to a
		domain error; any other sqlite failure becomes PersistenceError.
		"""
		try:
			with self.conn:
				return self.conn.execute(sql, params)
		except sqlite3.IntegrityError:
			raise
		except sqlite3.Error as e:
			raise PersistenceError(f'Query failed: {e}') from e

	def executemany(self, sql: str, rows: Sequence[Sequence[Any]]) -> None:
		"""Run one statement over several rows; all of them commit or none do."""
		try:
			with self.conn:
				self.conn.executemany(sql, rows)
		except sqlite3.IntegrityError:
			raise
		except sqlite3.Error as e:
			raise PersistenceError(f'Query failed: {e}') from e

	def query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[tuple]:
		try:
			return self.conn.execute(sql, params).fetchone()
		except sqlite3.Error as e:
			raise PersistenceError(f'Query failed: {e}') from e

	def query_all(self, sql: str, params: Sequence[Any] = ()) -> List[tuple]:
		try:
			return self.conn.execute(sql, params).fetchall()
		except sqlite3.Error as e:
			raise PersistenceError(f'Query failed: {e}') from e

	def backup(self, dest: Path) -> Path:
		"""Copy the live database to `dest` using sqlite's online backup."""
		dest = Path(dest)
		dest.parent.mkdir(parents=True, exist_ok=True)
		try:
			target = sqlite3.connect(str(dest))
			try:
				self.conn.backup(target)
			finally:
				target.close()
		except sqlite3.Error as e:
			raise PersistenceError(f'Backup to {dest} failed: {e}') from e
		log.info('Vault backed up to %s', dest)
		return dest

	def close(self):
		self.conn.close()

	def __enter__(self) -> 'VaultDB':
		return self

	def __exit__(self, *exc):
		self.close()
