#!/usr/bin/env python3

import os
import shlex
import shutil
from decimal import Decimal
from fractions import Fraction
from hdrpreplib.core.errors import BinaryNotFound

_QUIET_MODE = False
_COMMAND_REPORTER = None

#============================================

def set_quiet_mode(value: bool) -> None:
	global _QUIET_MODE
	_QUIET_MODE = bool(value)
	return

#============================================

def is_quiet_mode() -> bool:
	return _QUIET_MODE

#============================================

def set_command_reporter(callback) -> None:
	global _COMMAND_REPORTER
	_COMMAND_REPORTER = callback
	return

#============================================

def clear_command_reporter() -> None:
	global _COMMAND_REPORTER
	_COMMAND_REPORTER = None
	return

#============================================

def report_command(event: str, cmd: list, returncode: int = None) -> None:
	"""
	Announce a command start or finish.

	Prints the shell-quoted command on start unless quiet mode is on, and
	forwards every event to the registered reporter callback.
	"""
	showcmd = shlex.join([str(part) for part in cmd])
	if event == 'start' and not _QUIET_MODE:
		print(f"CMD: '{showcmd}'")
	if _COMMAND_REPORTER is not None:
		_COMMAND_REPORTER({
			'event': event,
			'command': showcmd,
			'returncode': returncode,
		})
	return

#============================================

def find_binary(name: str, override: str = None) -> str:
	"""
	Resolve an external tool to an executable path.

	Args:
		name: Tool name, e.g. ffmpeg.
		override: Optional explicit path or command name.

	Returns:
		str: Resolved path.
	"""
	candidate = name if override is None else override
	resolved = shutil.which(candidate)
	if resolved is None:
		raise BinaryNotFound(f"missing dependency: {candidate}")
	return resolved

#============================================

def ensure_file_exists(filepath: str) -> None:
	if not os.path.isfile(filepath):
		raise RuntimeError(f"file not found: {filepath}")
	return

#============================================

def round_half_up_fraction(value: Fraction) -> int:
	numerator = value.numerator
	denominator = value.denominator
	whole = numerator // denominator
	remainder = numerator - (whole * denominator)
	if remainder * 2 >= denominator:
		return whole + 1
	return whole

#============================================

def format_seconds_arg(seconds) -> str:
	"""
	Format a duration for an ffmpeg time option without exponent notation.

	Args:
		seconds: int or float seconds.

	Returns:
		str: Plain decimal text, e.g. "1234567" or "12.000125".
	"""
	if isinstance(seconds, int):
		return str(seconds)
	value = Decimal(repr(float(seconds)))
	if value == value.to_integral_value():
		return str(int(value))
	return format(value, 'f')
