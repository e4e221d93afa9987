import json
import pytest
from pathlib import Path
from click.testing import CliRunner
from config.loader import AppConfig, load_config
from config.settings import BACKUP_SUFFIX, DEFAULT_VAULT_PATH
from pwvault.lib.db import VaultDB
from pwvault.lib.errors import InvalidInputError
from pwvault.lib.kdf import Argon2Params, DEFAULT_PARAMS
from pwvault.lib.session import initialize_vault
from scripts.backup import main as backup_main

FAST = Argon2Params(time=1, memory=8192, parallelism=1)

@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv('PWVAULT_VAULT_PATH', raising=False)
    monkeypatch.delenv('PWVAULT_CONFIG', raising=False)

def write(path: Path, data) -> Path:
    path.write_text(json.dumps(data))
    return path

def test_defaults_when_file_missing(tmp_path: Path):
    cfg = load_config(tmp_path / 'missing.json')
    assert cfg == AppConfig()
    assert cfg.vault_path == DEFAULT_VAULT_PATH
    assert cfg.argon2 == DEFAULT_PARAMS
    assert cfg.generator.length == 20 and cfg.generator.options.symbols

def test_file_values(tmp_path: Path):
    path = write(tmp_path / 'c.json', {
        'vault_path': str(tmp_path / 'v.db'),
        'session': {'timeout': 0},
        'password_generator': {'length': 32, 'use_symbols': False, 'exclude_ambiguous': True},
        'argon2': {'time_cost': 1, 'memory_cost': 8192, 'parallelism': 1},
        'display': {'date_format': '%d/%m/%Y'},
    })
    cfg = load_config(path)
    assert cfg.vault_path == tmp_path / 'v.db'
    assert cfg.session_timeout == 0
    assert cfg.generator.length == 32
    assert not cfg.generator.options.symbols and cfg.generator.options.exclude_ambiguous
    assert cfg.argon2 == FAST
    assert cfg.date_format == '%d/%m/%Y'

def test_env_overrides(monkeypatch, tmp_path: Path):
    path = write(tmp_path / 'c.json', {'vault_path': 'from-file.db'})
    monkeypatch.setenv('PWVAULT_VAULT_PATH', str(tmp_path / 'env.db'))
    monkeypatch.setenv('PWVAULT_CONFIG', str(path))
    assert load_config().vault_path == tmp_path / 'env.db'

@pytest.mark.parametrize('content', [
    'not json',
    '[]',
    json.dumps({'argon2': {'memory_cost': 1024}}),
    json.dumps({'session': {'timeout': 'soon'}}),
    json.dumps({'session': []}),
    json.dumps({'password_generator': {'use_symbols': 'false'}}),
    json.dumps({'password_generator': {'exclude_ambiguous': 1}}),
])
def test_invalid_config(tmp_path: Path, content):
    path = tmp_path / 'c.json'
    path.write_text(content)
    with pytest.raises(InvalidInputError):
        load_config(path)

def test_backup_script(monkeypatch, tmp_path: Path):
    vault = tmp_path / 'vault.db'
    with VaultDB.open(vault) as db:
        initialize_vault(db, 'master', FAST)
    monkeypatch.setenv('PWVAULT_VAULT_PATH', str(vault))
    monkeypatch.setenv('PWVAULT_CONFIG', str(tmp_path / 'none.json'))
    dest = tmp_path / 'backups'
    r = CliRunner().invoke(backup_main, ['--dest', str(dest)])
    assert r.exit_code == 0, r.output
    files = list(dest.iterdir())
    assert len(files) == 1 and files[0].name.endswith('.db' + BACKUP_SUFFIX)
    with VaultDB.open(files[0]) as copy:
        assert copy.query_one("SELECT value FROM metadata WHERE key = 'version'")[0] == '1.0'

def test_backup_script_without_vault(monkeypatch, tmp_path: Path):
    monkeypatch.setenv('PWVAULT_VAULT_PATH', str(tmp_path / 'absent.db'))
    monkeypatch.setenv('PWVAULT_CONFIG', str(tmp_path / 'none.json'))
    r = CliRunner().invoke(backup_main, ['--dest', str(tmp_path / 'b')])
    assert r.exit_code == 1
    assert 'nothing to backup' in r.output
