"""Project configuration settings.

Only constants shared by the library and the CLI live here; the runtime
configuration file is handled by `config.loader`.
"""

from pathlib import Path
import os

# Security / crypto
SALT_LENGTH = 32
MIN_SALT_LENGTH = 8
KEY_LENGTH = 32  # AES-256
NONCE_LENGTH = 12  # GCM recommended nonce size
AUTH_TAG_LENGTH = 16  # GCM tag length
MIN_MEMORY_KIB = 8 * 1024  # Argon2 memory floor (8 MiB)

# Vault
VAULT_VERSION = "1.0"
DEFAULT_CATEGORY = "general"
CONFIG_DIR = Path(os.environ.get("PWVAULT_HOME", Path.home() / ".pwvault"))
DEFAULT_VAULT_PATH = CONFIG_DIR / "vault.db"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.json"

# Password generator
MIN_PASSWORD_LENGTH = 4
MAX_PASSWORD_LENGTH = 128
MAX_GENERATE_RETRIES = 10

# Backup
BACKUP_SUFFIX = ".backup"

# Logging
LOG_LEVEL = os.environ.get("PWVAULT_LOG_LEVEL", "WARNING")

__all__ = [
	'SALT_LENGTH','MIN_SALT_LENGTH','KEY_LENGTH','NONCE_LENGTH','AUTH_TAG_LENGTH','MIN_MEMORY_KIB',
	'VAULT_VERSION','DEFAULT_CATEGORY','CONFIG_DIR','DEFAULT_VAULT_PATH','DEFAULT_CONFIG_PATH',
	'MIN_PASSWORD_LENGTH','MAX_PASSWORD_LENGTH','MAX_GENERATE_RETRIES','BACKUP_SUFFIX','LOG_LEVEL'
]
