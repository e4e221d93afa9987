"""Record types for the entry store."""
from __future__ import annotations
import json
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import List, Optional

from config.settings import DEFAULT_CATEGORY


@dataclass
class Entry:
	name: str
	password: str
	category: str = DEFAULT_CATEGORY
	username: str = ''
	url: str = ''
	notes: str = ''
	tags: List[str] = field(default_factory=list)
	id: str = ''
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None

	def search_text(self) -> str:
		"""Text the encrypted search blob is built from."""
		parts = [self.name, self.category, *self.tags, self.username, self.url]
		return ' '.join(p for p in parts if p)

	def data(self) -> 'EntryData':
		return EntryData(self.username, self.password, self.url, self.notes, list(self.tags))


@dataclass
class EntryData:
	"""The sensitive fields, serialized to JSON and stored encrypted."""
	username: str = ''
	password: str = ''
	url: str = ''
	notes: str = ''
	tags: List[str] = field(default_factory=list)

	def to_json(self) -> bytes:
		return json.dumps(asdict(self)).encode('utf-8')

	@classmethod
	def from_json(cls, raw: bytes) -> 'EntryData':
		obj = json.loads(raw.decode('utf-8'))
		return cls(
			username=obj.get('username', ''),
			password=obj.get('password', ''),
			url=obj.get('url', ''),
			notes=obj.get('notes', ''),
			tags=list(obj.get('tags') or []),
		)


@dataclass(frozen=True)
class EntrySummary:
	"""Plaintext listing row. Carries no secret fields."""
	id: str
	name: str
	category: str
	created_at: datetime
	updated_at: datetime
