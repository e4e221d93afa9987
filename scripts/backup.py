"""Simple backup utility script.

Usage (from repo root):
  python -m scripts.backup --dest backups/
"""
from __future__ import annotations
from datetime import datetime
from pathlib import Path
import click
from config.loader import load_config
from config.settings import BACKUP_SUFFIX
from pwvault.lib.db import VaultDB
from pwvault.lib.errors import VaultError

@click.command()
@click.option('--dest', type=click.Path(file_okay=False, path_type=Path), default=Path('backups'), help='Destination directory for backups.')
def main(dest: Path):
	vault_path = load_config().vault_path
	if not vault_path.exists():
		click.echo(f"No vault at {vault_path}; nothing to backup.")
		raise SystemExit(1)
	stamp = datetime.now().strftime('%Y%m%d_%H%M%S')
	target = dest / f"vault_{stamp}.db{BACKUP_SUFFIX}"
	try:
		with VaultDB.open(vault_path) as db:
			db.backup(target)
	except VaultError as e:
		raise click.ClickException(str(e))
	click.echo(f"Backup written: {target}")

if __name__ == '__main__':  # pragma: no cover
	main()
