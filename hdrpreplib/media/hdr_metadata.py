#!/usr/bin/env python3

"""
Typed records for one probed video frame and its HDR side data.
"""

from dataclasses import dataclass
from dataclasses import field
from hdrpreplib.core import rational
from hdrpreplib.core.errors import MetadataMissing

MASTERING_DISPLAY_LABEL = "display metadata"
CONTENT_LIGHT_LABEL = "light level metadata"

CHROMATICITY_FIELDS = (
	'red_x', 'red_y',
	'green_x', 'green_y',
	'blue_x', 'blue_y',
	'white_point_x', 'white_point_y',
)
LUMINANCE_FIELDS = ('min_luminance', 'max_luminance')

#============================================

@dataclass(frozen=True)
class SideData:
	side_data_type: str
	values: dict = field(default_factory=dict)

	#============================
	def require(self, key: str):
		if key not in self.values:
			raise MetadataMissing(f"{self.side_data_type}: missing field {key}")
		return self.values[key]

#============================================

@dataclass(frozen=True)
class FrameMetadata:
	color_space: str
	color_primaries: str
	color_transfer: str
	pix_fmt: str
	side_data: tuple = ()

	#============================
	def find_side_data(self, label: str):
		"""
		Return the first side data entry whose type contains label, or None.
		"""
		wanted = label.lower()
		for entry in self.side_data:
			if wanted in entry.side_data_type.lower():
				return entry
		return None

	#============================
	def require_side_data(self, label: str) -> SideData:
		entry = self.find_side_data(label)
		if entry is None:
			found = [item.side_data_type for item in self.side_data]
			raise MetadataMissing(f"no side data matching '{label}' (found: {found})")
		return entry

#============================================

@dataclass(frozen=True)
class MasteringDisplay:
	"""
	Mastering display color volume in x265 units.

	Chromaticity values count 1/50000 steps, luminance values 1/10000 cd/m2.
	"""
	red_x: int
	red_y: int
	green_x: int
	green_y: int
	blue_x: int
	blue_y: int
	white_point_x: int
	white_point_y: int
	min_luminance: int
	max_luminance: int

	#============================
	@classmethod
	def from_side_data(cls, entry: SideData):
		values = {}
		for key in CHROMATICITY_FIELDS:
			values[key] = rational.normalize_chromaticity(entry.require(key))
		for key in LUMINANCE_FIELDS:
			values[key] = rational.normalize_luminance(entry.require(key))
		return cls(**values)

#============================================

@dataclass(frozen=True)
class ContentLightLevel:
	max_content: int
	max_average: int

	#============================
	@classmethod
	def from_side_data(cls, entry: SideData):
		return cls(
			max_content=_as_int(entry, 'max_content'),
			max_average=_as_int(entry, 'max_average'),
		)

#============================================

def _as_int(entry: SideData, key: str) -> int:
	value = entry.require(key)
	if isinstance(value, bool):
		raise MetadataMissing(f"{entry.side_data_type}: {key} is not an integer")
	if isinstance(value, int):
		return value
	if isinstance(value, str) and value.strip().isdigit():
		return int(value.strip())
	raise MetadataMissing(f"{entry.side_data_type}: {key} is not an integer: {value!r}")
