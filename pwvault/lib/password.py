"""Password generation and strength scoring.

Generation draws from the combined charset with `secrets` and guarantees
one character from every enabled class: a bounded number of redraws,
then a deterministic patch of the missing classes.
"""
from __future__ import annotations
import math, secrets, unicodedata
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Tuple

from config.settings import MIN_PASSWORD_LENGTH, MAX_PASSWORD_LENGTH, MAX_GENERATE_RETRIES
from .errors import InvalidLengthError, NoCharsetSelectedError, RandomSourceError

UPPER = 'ABCDEFGHIJKLMNOPQRSTUVWXYZ'
LOWER = 'abcdefghijklmnopqrstuvwxyz'
DIGITS = '0123456789'
SYMBOLS = '!@#$%^&*()-_=+[]{}|;:,.<>?'
# Same classes without 0/O, 1/l/I
UPPER_UNAMBIGUOUS = 'ABCDEFGHJKLMNPQRSTUVWXYZ'
LOWER_UNAMBIGUOUS = 'abcdefghijkmnopqrstuvwxyz'
DIGITS_UNAMBIGUOUS = '23456789'

COMMON_PASSWORDS = frozenset({
	'password', 'password1', 'password123', '12345678', '123456789', 'qwerty',
	'abc123', 'monkey', '1234567', 'letmein', 'trustno1', 'dragon', 'baseball',
	'111111', 'iloveyou', 'master', 'sunshine', 'ashley', 'bailey', 'passw0rd',
	'shadow', '123123', '654321', 'superman', 'qazwsx',
})


@dataclass(frozen=True)
class GenerateOptions:
	uppercase: bool = True
	lowercase: bool = True
	digits: bool = True
	symbols: bool = True
	exclude_ambiguous: bool = False

	def classes(self) -> List[Tuple[str, str]]:
		"""(draw set, membership set) for each enabled class, in a fixed order."""
		ea = self.exclude_ambiguous
		out = []
		if self.uppercase: out.append((UPPER_UNAMBIGUOUS if ea else UPPER, UPPER))
		if self.lowercase: out.append((LOWER_UNAMBIGUOUS if ea else LOWER, LOWER))
		if self.digits: out.append((DIGITS_UNAMBIGUOUS if ea else DIGITS, DIGITS))
		if self.symbols: out.append((SYMBOLS, SYMBOLS))
		return out

	def charset(self) -> str:
		return ''.join(draw for draw, _ in self.classes())


def _meets_requirements(password: str, options: GenerateOptions) -> bool:
	return all(any(c in members for c in password) for _, members in options.classes())


def _force_requirements(chars: List[str], options: GenerateOptions) -> str:
	"""Put one representative of each missing class into the first usable slots.

	A slot is usable when its character is not the only one of its class,
	so patching never removes a class that was already covered.
	"""
	classes = options.classes()
	def class_of(c: str) -> int:
		return next(i for i, (_, members) in enumerate(classes) if c in members)
	for draw, members in classes:
		if any(c in members for c in chars):
			continue
		counts = [0] * len(classes)
		for c in chars:
			counts[class_of(c)] += 1
		for pos, c in enumerate(chars):
			if counts[class_of(c)] > 1:
				chars[pos] = draw[0]
				break
	return ''.join(chars)


def generate(length: int = 20, options: GenerateOptions | None = None) -> str:
	options = options or GenerateOptions()
	if length < MIN_PASSWORD_LENGTH or length > MAX_PASSWORD_LENGTH:
		raise InvalidLengthError(f'Password length must be between {MIN_PASSWORD_LENGTH} and {MAX_PASSWORD_LENGTH}')
	charset = options.charset()
	if not charset:
		raise NoCharsetSelectedError('At least one character type must be enabled')
	chars: List[str] = []
	for _ in range(1 + MAX_GENERATE_RETRIES):
		try:
			chars = [secrets.choice(charset) for _ in range(length)]
		except OSError as e:
			raise RandomSourceError(f'Failed to generate random number: {e}') from e
		if _meets_requirements(''.join(chars), options):
			return ''.join(chars)
	return _force_requirements(chars, options)


class StrengthLevel(IntEnum):
	VERY_WEAK = 0
	WEAK = 1
	FAIR = 2
	STRONG = 3
	VERY_STRONG = 4

	@property
	def label(self) -> str:
		return self.name.replace('_', ' ').title()


@dataclass
class StrengthResult:
	level: StrengthLevel
	score: int
	feedback: List[str] = field(default_factory=list)


def _is_symbol(c: str) -> bool:
	return unicodedata.category(c)[0] in ('P', 'S')


def _classes_present(password: str) -> Tuple[bool, bool, bool, bool]:
	upper = lower = digit = symbol = False
	for c in password:
		if c.isupper(): upper = True
		elif c.islower(): lower = True
		elif c.isdigit(): digit = True
		elif _is_symbol(c): symbol = True
	return upper, lower, digit, symbol


def estimate_entropy(password: str) -> float:
	"""Bits of entropy assuming uniform draws from the classes seen."""
	if not password:
		return 0.0
	upper, lower, digit, symbol = _classes_present(password)
	space = 26 * upper + 26 * lower + 10 * digit + 32 * symbol
	if space == 0:
		return 0.0
	return len(password) * math.log2(space)


def has_sequential_chars(password: str) -> bool:
	for a, b, c in zip(password, password[1:], password[2:]):
		x, y, z = ord(a), ord(b), ord(c)
		if x + 1 == y and y + 1 == z: return True
		if x - 1 == y and y - 1 == z: return True
	return False


def has_repeated_chars(password: str) -> bool:
	return any(a == b == c for a, b, c in zip(password, password[1:], password[2:]))


def check_strength(password: str) -> StrengthResult:
	"""Score a password 0-100. Advisory only; nothing is ever rejected on it."""
	if password.lower() in COMMON_PASSWORDS:
		return StrengthResult(StrengthLevel.VERY_WEAK, 0, ['This is a commonly used password'])
	score = 0; fb: List[str] = []
	L = len(password)
	if L < 6:
		score += L * 2; fb.append('Password is too short (minimum 12 characters recommended)')
	elif L < 8:
		score += L * 2; fb.append('Password is too short (minimum 8 characters recommended)')
	elif L < 12:
		score += 16 + (L - 8) * 2
	elif L < 16:
		score += 24 + (L - 12)
	else:
		score += 30

	upper, lower, digit, symbol = _classes_present(password)
	for present, hint in ((upper, 'Add uppercase letters'), (lower, 'Add lowercase letters'),
			(digit, 'Add numbers'), (symbol, 'Add special characters')):
		if present: score += 10
		else: fb.append(hint)
	if upper and lower and digit and symbol:
		score += 10

	score += min(20, int(estimate_entropy(password) / 5))

	if has_sequential_chars(password):
		score -= 5; fb.append('Avoid sequential characters (e.g., abc, 123)')
	if has_repeated_chars(password):
		score -= 5; fb.append('Avoid repeated characters')

	score = max(0, min(100, score))
	if score < 20: level = StrengthLevel.VERY_WEAK
	elif score < 40: level = StrengthLevel.WEAK
	elif score < 60: level = StrengthLevel.FAIR
	elif score < 80: level = StrengthLevel.STRONG
	else:
		level = StrengthLevel.VERY_STRONG; fb = []
	return StrengthResult(level, score, fb)


def check_password_strength(password: str) -> Tuple[int, str]:
	"""Return (score, "Label (score/100) - feedback") for display."""
	r = check_strength(password)
	text = f"{r.level.label} ({r.score}/100)"
	if r.feedback: text += ' - ' + ', '.join(r.feedback)
	return r.score, text
