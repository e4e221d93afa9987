import sqlite3
import pytest
from pathlib import Path
from pwvault.lib.crypto import VaultCrypto
from pwvault.lib.db import VaultDB
from pwvault.lib.entries import EntryStore
from pwvault.lib.errors import (
    AuthenticationError, DuplicateNameError, InvalidInputError, NotFoundError,
    NotInitializedError, PersistenceError, RandomSourceError, StorageError, ValidationError,
)
from pwvault.lib.kdf import Argon2Params, derive_key
from pwvault.lib.metadata import MetadataStore
from pwvault.lib.models import Entry, EntrySummary
from pwvault.lib.session import initialize_vault, unlocked_key

FAST = Argon2Params(time=1, memory=8192, parallelism=1)
KEY = b'k' * 32

def make_db(tmp_path: Path) -> VaultDB:
    return VaultDB.open(tmp_path / 'vault.db')

def make_store(tmp_path: Path) -> EntryStore:
    return EntryStore(make_db(tmp_path))

# metadata

def test_metadata_not_initialized(tmp_path: Path):
    meta = MetadataStore(make_db(tmp_path))
    assert not meta.is_initialized()
    with pytest.raises(NotInitializedError):
        meta.get_salt()
    with pytest.raises(NotInitializedError):
        meta.get_params()
    with pytest.raises(NotFoundError):
        meta.get_meta('version')

def test_metadata_upsert_last_write_wins(tmp_path: Path):
    meta = MetadataStore(make_db(tmp_path))
    meta.set_meta('version', '1')
    meta.set_meta('version', '2')
    assert meta.get_meta('version') == '2'
    assert meta.list_keys() == ['version']
    with pytest.raises(InvalidInputError):
        meta.set_meta('', 'x')

def test_metadata_delete(tmp_path: Path):
    meta = MetadataStore(make_db(tmp_path))
    meta.set_meta('a', '1')
    meta.delete_meta('a')
    assert meta.list_keys() == []
    with pytest.raises(NotFoundError):
        meta.delete_meta('a')

def test_salt_and_params_persist(tmp_path: Path):
    db = make_db(tmp_path); meta = MetadataStore(db)
    meta.set_salt(b's' * 32)
    meta.set_params(FAST)
    assert meta.is_initialized()
    db.close()
    meta2 = MetadataStore(make_db(tmp_path))
    assert meta2.get_salt() == b's' * 32
    assert meta2.get_params() == FAST

def test_set_params_rejects_weak_values(tmp_path: Path):
    meta = MetadataStore(make_db(tmp_path))
    with pytest.raises(InvalidInputError):
        meta.set_params(Argon2Params(time=1, memory=1024, parallelism=1))
    assert 'argon2_params' not in meta.list_keys()

def test_get_params_rejects_tampered_value(tmp_path: Path):
    meta = MetadataStore(make_db(tmp_path))
    meta.set_meta('argon2_params', '{"time": 1, "memory": 64, "parallelism": 1, "key_len": 32}')
    with pytest.raises(InvalidInputError):
        meta.get_params()
    meta.set_meta('argon2_params', 'not json')
    with pytest.raises(PersistenceError):
        meta.get_params()

def test_get_or_init(tmp_path: Path):
    meta = MetadataStore(make_db(tmp_path))
    salt = meta.get_or_init_salt()
    assert len(salt) == 32 and meta.get_or_init_salt() == salt
    assert meta.get_or_init_params(FAST) == FAST
    assert meta.get_or_init_params() == FAST

# entries

def test_create_and_read_back(tmp_path: Path):
    store = make_store(tmp_path)
    e = store.create(Entry(name='github.com', password='secret1', username='me', tags=['dev']), KEY)
    assert e.id and e.created_at == e.updated_at
    assert store.get(e.id, KEY).password == 'secret1'
    got = store.get_by_name('github.com', KEY)
    assert got.password == 'secret1' and got.username == 'me' and got.tags == ['dev']
    assert got.category == 'general'
    with pytest.raises(DuplicateNameError):
        store.create(Entry(name='github.com', password='other'), KEY)
    assert store.count() == 1

@pytest.mark.parametrize('entry,key', [
    (Entry(name='', password='x'), KEY),
    (Entry(name='n', password=''), KEY),
    (Entry(name='n', password='x'), b'short'),
])
def test_create_validation(tmp_path: Path, entry, key):
    with pytest.raises(ValidationError):
        make_store(tmp_path).create(entry, key)

def test_secrets_are_not_stored_in_plaintext(tmp_path: Path):
    store = make_store(tmp_path)
    store.create(Entry(name='site', password='hunter2-secret', username='alice@example.com'), KEY)
    store.db.close()
    raw = (tmp_path / 'vault.db').read_bytes()
    wal = tmp_path / 'vault.db-wal'
    if wal.exists():
        raw += wal.read_bytes()
    assert b'hunter2-secret' not in raw
    assert b'alice@example.com' not in raw

def test_nonce_columns_match_blobs(tmp_path: Path):
    store = make_store(tmp_path)
    store.create(Entry(name='site', password='pw'), KEY)
    data, search, n1, n2 = store.db.query_one(
        "SELECT encrypted_data, encrypted_search, encryption_nonce, search_nonce FROM entries")
    assert data[:12] == n1 and search[:12] == n2 and n1 != n2

def test_get_missing_vs_wrong_key(tmp_path: Path):
    store = make_store(tmp_path)
    e = store.create(Entry(name='site', password='pw'), KEY)
    with pytest.raises(NotFoundError):
        store.get('nope', KEY)
    with pytest.raises(NotFoundError):
        store.get_by_name('nope', KEY)
    with pytest.raises(AuthenticationError):
        store.get(e.id, b'x' * 32)

def test_tampered_record_is_not_reported_missing(tmp_path: Path):
    store = make_store(tmp_path)
    e = store.create(Entry(name='site', password='pw'), KEY)
    blob = bytearray(store.db.query_one("SELECT encrypted_data FROM entries")[0])
    blob[-1] ^= 0x01
    store.db.execute("UPDATE entries SET encrypted_data = ? WHERE id = ?", (bytes(blob), e.id))
    with pytest.raises(AuthenticationError):
        store.get(e.id, KEY)

def test_list_is_sorted_and_secret_free(tmp_path: Path):
    store = make_store(tmp_path)
    for name, cat in [('zeta', 'work'), ('alpha', 'home'), ('mid', 'work')]:
        store.create(Entry(name=name, password='pw-' + name, category=cat), KEY)
    items = store.list()
    assert [s.name for s in items] == ['alpha', 'mid', 'zeta']
    assert all(isinstance(s, EntrySummary) and not hasattr(s, 'password') for s in items)
    assert store.list() == items
    assert [s.name for s in store.list_by_category('work')] == ['mid', 'zeta']
    assert store.list_by_category('none') == []

def test_update_preserves_created(tmp_path: Path):
    store = make_store(tmp_path)
    e = store.create(Entry(name='site', password='old'), KEY)
    old_blob = store.db.query_one("SELECT encrypted_data FROM entries")[0]
    e.password = 'new'; e.notes = 'rotated'
    u = store.update(e, KEY)
    assert u.created_at == e.created_at
    assert u.updated_at > e.updated_at
    got = store.get(e.id, KEY)
    assert got.password == 'new' and got.notes == 'rotated'
    assert got.created_at == e.created_at and got.updated_at == u.updated_at
    assert store.db.query_one("SELECT encrypted_data FROM entries")[0] != old_blob

def test_update_missing_and_rename_collision(tmp_path: Path):
    store = make_store(tmp_path)
    a = store.create(Entry(name='a', password='pw'), KEY)
    store.create(Entry(name='b', password='pw'), KEY)
    with pytest.raises(NotFoundError):
        store.update(Entry(name='c', password='pw', id='missing'), KEY)
    a.name = 'b'
    with pytest.raises(DuplicateNameError):
        store.update(a, KEY)
    a.name = 'renamed'
    store.update(a, KEY)
    assert store.get_by_name('renamed', KEY).id == a.id

def test_delete_then_get(tmp_path: Path):
    store = make_store(tmp_path)
    e = store.create(Entry(name='site', password='pw'), KEY)
    store.delete(e.id)
    assert store.count() == 0
    with pytest.raises(NotFoundError):
        store.get(e.id, KEY)
    with pytest.raises(NotFoundError):
        store.delete(e.id)

def test_search(tmp_path: Path):
    store = make_store(tmp_path)
    store.create(Entry(name='GitHub', password='pw', username='octo', url='https://github.com', tags=['dev']), KEY)
    store.create(Entry(name='Gmail', password='pw', category='email', tags=['personal']), KEY)
    assert [s.name for s in store.search('dev', KEY)] == ['GitHub']
    assert [s.name for s in store.search('EMAIL', KEY)] == ['Gmail']
    assert [s.name for s in store.search('g', KEY)] == ['GitHub', 'Gmail']
    assert store.search('octo personal', KEY) == []
    with pytest.raises(AuthenticationError):
        store.search('', b'x' * 32)

# session

def test_initialize_and_unlock(tmp_path: Path):
    db = make_db(tmp_path)
    initialize_vault(db, 'master', FAST)
    meta = MetadataStore(db)
    assert meta.get_meta('version') == '1.0'
    assert meta.get_meta('created_at')
    with pytest.raises(StorageError):
        initialize_vault(db, 'master', FAST)
    with unlocked_key(db, 'master') as key:
        assert bytes(key) == derive_key('master', meta.get_salt(), FAST)
        EntryStore(db).create(Entry(name='site', password='pw'), key)
        held = key
    assert held == bytearray(32)

def test_unlock_wrong_password(tmp_path: Path):
    db = make_db(tmp_path)
    initialize_vault(db, 'master', FAST)
    with pytest.raises(AuthenticationError):
        with unlocked_key(db, 'wrong'):
            pass

def test_unlock_wipes_key_on_error(tmp_path: Path):
    db = make_db(tmp_path)
    initialize_vault(db, 'master', FAST)
    with pytest.raises(RuntimeError):
        with unlocked_key(db, 'master') as key:
            held = key
            raise RuntimeError('boom')
    assert held == bytearray(32)

def test_unlock_uninitialized(tmp_path: Path):
    with pytest.raises(NotInitializedError):
        with unlocked_key(make_db(tmp_path), 'master'):
            pass

def test_backup_copy_is_readable(tmp_path: Path):
    db = make_db(tmp_path)
    initialize_vault(db, 'master', FAST)
    dest = db.backup(tmp_path / 'b' / 'copy.db')
    conn = sqlite3.connect(str(dest))
    try:
        assert conn.execute("SELECT COUNT(*) FROM metadata").fetchone()[0] == 5
    finally:
        conn.close()

def test_set_many_is_all_or_nothing(tmp_path: Path):
    meta = MetadataStore(make_db(tmp_path))
    meta.set_many({'a': '1', 'b': '2'})
    assert meta.list_keys() == ['a', 'b']
    with pytest.raises(InvalidInputError):
        meta.set_many({'c': '3', '': 'x'})
    assert meta.list_keys() == ['a', 'b']

def test_failed_initialize_writes_nothing(tmp_path: Path):
    db = make_db(tmp_path)
    short_key = Argon2Params(time=1, memory=8192, parallelism=1, key_len=16)
    with pytest.raises(InvalidInputError):
        initialize_vault(db, 'master', short_key)
    meta = MetadataStore(db)
    assert meta.list_keys() == []
    assert not meta.is_initialized()
    initialize_vault(db, 'master', FAST)
    assert meta.is_initialized()

def test_initialize_rolls_back_when_canary_fails(monkeypatch, tmp_path: Path):
    def broken(self, text, key):
        raise RandomSourceError('no entropy')
    monkeypatch.setattr(VaultCrypto, 'encrypt_text', broken)
    db = make_db(tmp_path)
    with pytest.raises(RandomSourceError):
        initialize_vault(db, 'master', FAST)
    assert MetadataStore(db).list_keys() == []

def test_unlock_without_canary_checks_stored_records(tmp_path: Path):
    db = make_db(tmp_path); meta = MetadataStore(db)
    salt = meta.get_or_init_salt()
    meta.get_or_init_params(FAST)
    EntryStore(db).create(Entry(name='site', password='pw'), derive_key('master', salt, FAST))
    with pytest.raises(AuthenticationError):
        with unlocked_key(db, 'wrong'):
            pass
    assert 'verification' not in meta.list_keys()
    with unlocked_key(db, 'master') as key:
        assert EntryStore(db).get_by_name('site', key).password == 'pw'
    assert meta.verify_key(derive_key('master', salt, FAST))

def test_first_unlock_binds_canary_on_empty_vault(tmp_path: Path):
    db = make_db(tmp_path); meta = MetadataStore(db)
    meta.get_or_init_salt()
    meta.get_or_init_params(FAST)
    with unlocked_key(db, 'master'):
        pass
    assert 'verification' in meta.list_keys()
    with pytest.raises(AuthenticationError):
        with unlocked_key(db, 'other'):
            pass
