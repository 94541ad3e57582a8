#!/usr/bin/env python3

"""
Rescale "dividend/divisor" strings to fixed-point integers.

x265 expects mastering display chromaticity in 1/50000 units and
luminance in 1/10000 units.
"""

import re
from fractions import Fraction
from hdrpreplib.core import utils
from hdrpreplib.core.errors import MalformedRational

CHROMATICITY_SCALE = 50000
LUMINANCE_SCALE = 10000

RATIONAL_PATTERN = re.compile(r'^(-?\d+)/(-?\d+)$')

#============================================

def parse_rational(raw_value) -> tuple:
	"""
	Split a rational string into integer dividend and divisor.

	Args:
		raw_value: Text such as "34000/50000".

	Returns:
		tuple: (dividend, divisor)
	"""
	if not isinstance(raw_value, str):
		raise MalformedRational(f"rational value must be a string: {raw_value!r}")
	match = RATIONAL_PATTERN.match(raw_value.strip())
	if match is None:
		raise MalformedRational(f"not a dividend/divisor value: {raw_value!r}")
	dividend = int(match.group(1))
	divisor = int(match.group(2))
	if divisor == 0:
		raise MalformedRational(f"zero divisor: {raw_value!r}")
	return (dividend, divisor)

#============================================

def normalize(raw_value, scale: int) -> int:
	"""
	Rescale a rational string to an integer count of 1/scale units.

	Ties round half up, so exact .5 results differ from Python round(),
	which rounds them to even: normalize("1/4", 2) is 1, round(0.5) is 0.
	Away from ties the two agree.
	"""
	(dividend, divisor) = parse_rational(raw_value)
	return utils.round_half_up_fraction(Fraction(dividend * scale, divisor))

#============================================

def normalize_chromaticity(raw_value) -> int:
	return normalize(raw_value, CHROMATICITY_SCALE)

#============================================

def normalize_luminance(raw_value) -> int:
	return normalize(raw_value, LUMINANCE_SCALE)
