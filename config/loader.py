"""Runtime configuration read from the user's JSON settings file.

Sources, later ones winning: built-in defaults, the JSON file
(`PWVAULT_CONFIG` or ~/.pwvault/config.json), then `PWVAULT_VAULT_PATH`.
"""
from __future__ import annotations
import json, os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

from config.settings import DEFAULT_CONFIG_PATH, DEFAULT_VAULT_PATH, KEY_LENGTH
from pwvault.lib.errors import InvalidInputError
from pwvault.lib.kdf import Argon2Params, DEFAULT_PARAMS
from pwvault.lib.password import GenerateOptions


@dataclass(frozen=True)
class GeneratorSettings:
	length: int = 20
	options: GenerateOptions = field(default_factory=GenerateOptions)


@dataclass(frozen=True)
class AppConfig:
	vault_path: Path = DEFAULT_VAULT_PATH
	session_timeout: int = 300  # seconds, 0 = no timeout
	clipboard_clear_timeout: int = 30
	failed_attempts_limit: int = 5
	lockout_duration: int = 30
	generator: GeneratorSettings = field(default_factory=GeneratorSettings)
	argon2: Argon2Params = DEFAULT_PARAMS
	date_format: str = "%Y-%m-%d %H:%M"


def _flag(raw: Dict[str, Any], name: str, default: bool) -> bool:
	value = raw.get(name, default)
	if not isinstance(value, bool):
		raise InvalidInputError(f"{name} must be true or false, got {value!r}")
	return value


def _generator_from(raw: Dict[str, Any]) -> GeneratorSettings:
	opts = GenerateOptions(
		uppercase=_flag(raw, "use_uppercase", True),
		lowercase=_flag(raw, "use_lowercase", True),
		digits=_flag(raw, "use_digits", True),
		symbols=_flag(raw, "use_symbols", True),
		exclude_ambiguous=_flag(raw, "exclude_ambiguous", False),
	)
	return GeneratorSettings(length=int(raw.get("length", 20)), options=opts)


def _argon2_from(raw: Dict[str, Any]) -> Argon2Params:
	params = Argon2Params(
		time=int(raw.get("time_cost", DEFAULT_PARAMS.time)),
		memory=int(raw.get("memory_cost", DEFAULT_PARAMS.memory)),
		parallelism=int(raw.get("parallelism", DEFAULT_PARAMS.parallelism)),
		key_len=KEY_LENGTH,
	)
	# A hand-edited file must not be able to weaken new vaults.
	params.validate()
	return params


def load_config(path: Path | None = None) -> AppConfig:
	if path is None:
		env_cfg = os.environ.get("PWVAULT_CONFIG")
		path = Path(env_cfg) if env_cfg else DEFAULT_CONFIG_PATH
	raw: Dict[str, Any] = {}
	if path.exists():
		try:
			raw = json.loads(path.read_text(encoding="utf-8"))
		except (OSError, ValueError) as e:
			raise InvalidInputError(f"Cannot read config {path}: {e}") from e
		if not isinstance(raw, dict):
			raise InvalidInputError(f"Config {path} must be a JSON object")
	try:
		session = raw.get("session", {})
		clipboard = raw.get("clipboard", {})
		security = raw.get("security", {})
		vault_path = os.environ.get("PWVAULT_VAULT_PATH") or raw.get("vault_path")
		return AppConfig(
			vault_path=Path(vault_path) if vault_path else DEFAULT_VAULT_PATH,
			session_timeout=int(session.get("timeout", 300)),
			clipboard_clear_timeout=int(clipboard.get("clear_timeout", 30)),
			failed_attempts_limit=int(security.get("failed_attempts_limit", 5)),
			lockout_duration=int(security.get("lockout_duration", 30)),
			generator=_generator_from(raw.get("password_generator", {})),
			argon2=_argon2_from(raw.get("argon2", {})),
			date_format=raw.get("display", {}).get("date_format", "%Y-%m-%d %H:%M"),
		)
	except (AttributeError, TypeError, ValueError) as e:
		raise InvalidInputError(f"Invalid value in config {path}: {e}") from e
