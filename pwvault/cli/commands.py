"""CLI commands implemented with click.

Thin layer over the vault core: every command opens the vault database,
derives the key only when it needs to decrypt, and renders errors.
"""
from __future__ import annotations
import functools, json, logging
from pathlib import Path
import click
from config.loader import AppConfig, load_config
from config.settings import LOG_LEVEL
from pwvault import __version__
from pwvault.lib.db import VaultDB
from pwvault.lib.entries import EntryStore
from pwvault.lib.errors import AuthenticationError, NotInitializedError, VaultError
from pwvault.lib.metadata import MetadataStore, KEY_CREATED_AT, KEY_VERSION
from pwvault.lib.models import Entry
from pwvault.lib.password import GenerateOptions, StrengthLevel, check_password_strength, check_strength, generate
from pwvault.lib.session import initialize_vault, unlocked_key

log = logging.getLogger(__name__)


def handle_errors(fn):
	"""Render core errors as a one-line message and exit status 1."""
	@functools.wraps(fn)
	def wrapper(*args, **kwargs):
		try:
			return fn(*args, **kwargs)
		except AuthenticationError:
			raise click.ClickException('Wrong master password or corrupted vault')
		except NotInitializedError:
			raise click.ClickException("Vault not initialized. Run 'pwvault init' first")
		except VaultError as e:
			raise click.ClickException(str(e))
	return wrapper


def open_vault(cfg: AppConfig) -> VaultDB:
	if not cfg.vault_path.exists():
		raise click.ClickException("Vault not initialized. Run 'pwvault init' first")
	return VaultDB.open(cfg.vault_path)


def parse_tags(raw: str | None):
	if not raw: return []
	return [t.strip() for t in raw.split(',') if t.strip()]


def fmt_time(cfg: AppConfig, ts) -> str:
	return ts.astimezone().strftime(cfg.date_format)


def echo_generated(password: str):
	r = check_strength(password)
	click.echo(f'Generated password: {password}')
	click.echo(f'  Strength: {r.level.label} (Score: {r.score}/100)')


@click.group()
@click.version_option(__version__, prog_name='pwvault')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging.')
@click.pass_context
def cli(ctx, verbose):
	"""pwvault: local encrypted password manager"""
	logging.basicConfig(level=logging.DEBUG if verbose else LOG_LEVEL,
		format='%(asctime)s %(name)s %(levelname)s %(message)s')
	try:
		ctx.obj = load_config()
	except VaultError as e:
		raise click.ClickException(str(e))


@cli.command()
@click.option('--password', prompt='Master password', hide_input=True, confirmation_prompt=True)
@click.option('--force', is_flag=True, help='Recreate if vault already exists (ALL DATA IS LOST).')
@click.pass_obj
@handle_errors
def init(cfg: AppConfig, password, force):
	"""Initialise a new encrypted vault."""
	path = cfg.vault_path
	if path.exists():
		if not force:
			raise click.ClickException(f'Vault already exists at {path} (use --force to recreate)')
		for p in (path, Path(f'{path}-wal'), Path(f'{path}-shm')):
			p.unlink(missing_ok=True)
	_, fb = check_password_strength(password)
	click.echo(f'Password strength: {fb}')
	if check_strength(password).level < StrengthLevel.FAIR:
		click.echo('Warning: weak master password. There is NO way to recover it if forgotten.')
	with VaultDB.open(path) as db:
		initialize_vault(db, password, cfg.argon2)
	p = cfg.argon2
	click.echo(f'Vault created at {path}')
	click.echo(f'  Encryption: AES-256-GCM, Key derivation: Argon2id (t={p.time}, m={p.memory // 1024}MB, p={p.parallelism})')


@cli.command()
@click.argument('name')
@click.option('--username', '-u', default='', help='Username or email')
@click.option('--url', '-l', default='', help='Website URL')
@click.option('--notes', '-n', default='', help='Additional notes')
@click.option('--category', '-c', default='general', help='Category (e.g. email, social, banking)')
@click.option('--tags', '-t', default='', help='Comma-separated tags')
@click.option('--generate', '-g', 'gen', is_flag=True, help='Generate a strong password')
@click.option('--length', default=None, type=int, help='Length of generated password')
@click.option('--password', '-p', default=None, help='Entry password (prompted if omitted)')
@click.option('--master', prompt='Master password', hide_input=True)
@click.pass_obj
@handle_errors
def add(cfg: AppConfig, name, username, url, notes, category, tags, gen, length, password, master):
	"""Add a new password entry."""
	if gen:
		password = generate(length or cfg.generator.length, cfg.generator.options)
		echo_generated(password)
	elif password is None:
		password = click.prompt('Entry password', hide_input=True)
		r = check_strength(password)
		click.echo(f'  Strength: {r.level.label} (Score: {r.score}/100)')
	entry = Entry(name=name, password=password, category=category, username=username,
		url=url, notes=notes, tags=parse_tags(tags))
	with open_vault(cfg) as db, unlocked_key(db, master) as key:
		stored = EntryStore(db).create(entry, key)
	click.echo(f'Added entry {stored.name} ({stored.id}).')


@cli.command()
@click.argument('name')
@click.option('--reveal', '-r', is_flag=True, help='Reveal password in output')
@click.option('--master', prompt='Master password', hide_input=True)
@click.pass_obj
@handle_errors
def show(cfg: AppConfig, name, reveal, master):
	"""Show a password entry."""
	with open_vault(cfg) as db, unlocked_key(db, master) as key:
		e = EntryStore(db).get_by_name(name, key)
	click.echo(f'Entry:    {e.name}')
	click.echo(f'Category: {e.category}')
	if e.username: click.echo(f'Username: {e.username}')
	if reveal:
		r = check_strength(e.password)
		click.echo(f'Password: {e.password}')
		click.echo(f'Strength: {r.level.label} (Score: {r.score}/100)')
	else:
		click.echo('Password: ' + '*' * 12 + '  (use --reveal to show)')
	if e.url: click.echo(f'URL:      {e.url}')
	if e.tags: click.echo(f"Tags:     {', '.join(e.tags)}")
	if e.notes:
		click.echo('Notes:')
		for line in e.notes.splitlines():
			click.echo(f'  {line}')
	click.echo(f'Created:  {fmt_time(cfg, e.created_at)}')
	click.echo(f'Updated:  {fmt_time(cfg, e.updated_at)}')
	click.echo(f'ID:       {e.id}')


@cli.command('list')
@click.option('--category', '-c', default=None, help='Filter by category')
@click.pass_obj
@handle_errors
def list_entries(cfg: AppConfig, category):
	"""List entries (no master password needed)."""
	with open_vault(cfg) as db:
		store = EntryStore(db)
		items = store.list_by_category(category) if category else store.list()
	if not items:
		click.echo('No entries.')
		return
	for s in items:
		click.echo(f'{s.name}  [{s.category}]  {fmt_time(cfg, s.updated_at)}')
	click.echo(f'{len(items)} entr{"y" if len(items) == 1 else "ies"}')


@cli.command()
@click.argument('query')
@click.option('--master', prompt='Master password', hide_input=True)
@click.pass_obj
@handle_errors
def search(cfg: AppConfig, query, master):
	"""Find entries by name, category, tags, username or URL."""
	with open_vault(cfg) as db, unlocked_key(db, master) as key:
		hits = EntryStore(db).search(query, key)
	if not hits:
		click.echo('No matches.')
	for s in hits:
		click.echo(f'{s.name}  [{s.category}]')


@cli.command()
@click.argument('name')
@click.option('--username', '-u', default=None)
@click.option('--password', '-p', default=None)
@click.option('--url', '-l', default=None)
@click.option('--notes', '-n', default=None)
@click.option('--category', '-c', default=None)
@click.option('--tags', '-t', default=None, help='Replace tags (comma-separated)')
@click.option('--rename', default=None, help='New entry name')
@click.option('--generate', '-g', 'gen', is_flag=True, help='Generate a new password')
@click.option('--length', default=None, type=int)
@click.option('--master', prompt='Master password', hide_input=True)
@click.pass_obj
@handle_errors
def edit(cfg: AppConfig, name, username, password, url, notes, category, tags, rename, gen, length, master):
	"""Edit an existing entry; unspecified fields are kept."""
	with open_vault(cfg) as db, unlocked_key(db, master) as key:
		store = EntryStore(db)
		e = store.get_by_name(name, key)
		if username is not None: e.username = username
		if url is not None: e.url = url
		if notes is not None: e.notes = notes
		if category is not None: e.category = category
		if tags is not None: e.tags = parse_tags(tags)
		if rename: e.name = rename
		if gen:
			e.password = generate(length or cfg.generator.length, cfg.generator.options)
			echo_generated(e.password)
		elif password is not None:
			e.password = password
		store.update(e, key)
	click.echo(f'Updated entry {e.name}.')


@cli.command()
@click.argument('name')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.pass_obj
@handle_errors
def delete(cfg: AppConfig, name, yes):
	"""Permanently delete an entry."""
	with open_vault(cfg) as db:
		store = EntryStore(db)
		entry_id = store.id_for_name(name)
		if not yes:
			click.confirm(f'Delete {name}? This cannot be undone', abort=True)
		store.delete(entry_id)
	click.echo(f'Deleted {name}.')


@cli.command('generate')
@click.option('--length', '-l', default=None, type=int, help='Password length (4-128)')
@click.option('--no-uppercase', is_flag=True)
@click.option('--no-lowercase', is_flag=True)
@click.option('--no-digits', is_flag=True)
@click.option('--no-symbols', is_flag=True)
@click.option('--exclude-ambiguous', is_flag=True, help='Exclude 0, O, 1, l, I')
@click.option('--count', default=1, type=click.IntRange(1, 10), help='Number of passwords (1-10)')
@click.option('--show-strength', is_flag=True)
@click.pass_obj
@handle_errors
def generate_cmd(cfg: AppConfig, length, no_uppercase, no_lowercase, no_digits, no_symbols,
		exclude_ambiguous, count, show_strength):
	"""Generate secure random passwords."""
	defaults = cfg.generator.options
	opts = GenerateOptions(
		uppercase=defaults.uppercase and not no_uppercase,
		lowercase=defaults.lowercase and not no_lowercase,
		digits=defaults.digits and not no_digits,
		symbols=defaults.symbols and not no_symbols,
		exclude_ambiguous=defaults.exclude_ambiguous or exclude_ambiguous,
	)
	for _ in range(count):
		pw = generate(length or cfg.generator.length, opts)
		click.echo(pw)
		if show_strength:
			r = check_strength(pw)
			click.echo(f'  Strength: {r.level.label} (Score: {r.score}/100)')


@cli.command('strength')
@click.argument('password')
def strength_cmd(password):
	"""Score a password (advisory only)."""
	score, fb = check_password_strength(password)
	click.echo(f"Score: {score} -> {fb}")


@cli.command()
@click.pass_obj
@handle_errors
def info(cfg: AppConfig):
	"""Show vault metadata (no secrets)."""
	with open_vault(cfg) as db:
		meta = MetadataStore(db)
		params = meta.get_params()
		out = {
			'path': str(db.path),
			'version': meta.get_meta(KEY_VERSION),
			'created_at': meta.get_meta(KEY_CREATED_AT),
			'argon2_params': params.to_dict(),
			'entries': EntryStore(db).count(),
		}
	click.echo(json.dumps(out, indent=2))
