#!/usr/bin/env python3

"""
Find the crop rectangle by running ffmpeg's cropdetect filter over the
first part of the file.

cropdetect refines its estimate as more frames are decoded, so the last
reported rectangle is the one kept.
"""

import re
from dataclasses import dataclass
from hdrpreplib.core import utils
from hdrpreplib.core.errors import CropDetectionFailed
from hdrpreplib.core.process import ProcessRunner

# [Parsed_cropdetect_0 @ 0x...] x1:0 x2:1919 y1:140 y2:939 w:1920 h:800 x:0 y:140 pts:1001 t:1.001000 limit:0.094118 crop=1920:800:0:140
CROP_LINE_PATTERN = re.compile(r'\bcrop=(?P<crop>\d+:\d+:\d+:\d+)\b')
ELAPSED_PATTERN = re.compile(r'(?<![\w.])t:\s*(?P<elapsed>-?\d+(?:\.\d+)?|NOPTS)\b')

#============================================

@dataclass(frozen=True)
class CropBox:
	width: int
	height: int
	x: int
	y: int

	#============================
	@classmethod
	def parse(cls, expression: str):
		parts = expression.split(':')
		if len(parts) != 4:
			raise CropDetectionFailed(f"invalid crop expression: {expression}")
		(width, height, x, y) = (int(part) for part in parts)
		return cls(width, height, x, y)

	#============================
	@property
	def expression(self) -> str:
		return f"{self.width}:{self.height}:{self.x}:{self.y}"

	#============================
	def filter_text(self) -> str:
		return f"crop={self.expression}"

#============================================

@dataclass(frozen=True)
class CropMatch:
	"""One cropdetect report, with its position inside the scan window."""
	crop: CropBox
	scan_seconds: float
	elapsed: float = None

	#============================
	@property
	def fraction(self):
		"""Share of the scan window covered, or None without a timestamp."""
		if self.elapsed is None:
			return None
		if self.scan_seconds <= 0:
			return 1.0
		return min(max(self.elapsed / self.scan_seconds, 0.0), 1.0)

#============================================

def parse_crop_line(line: str, scan_seconds: float):
	"""
	Return a CropMatch for a cropdetect report line, None for anything else.
	"""
	match = CROP_LINE_PATTERN.search(line)
	if match is None:
		return None
	crop = CropBox.parse(match.group('crop'))
	# NOPTS or no timestamp leaves elapsed unset
	elapsed = None
	time_match = ELAPSED_PATTERN.search(line)
	if time_match is not None and time_match.group('elapsed') != 'NOPTS':
		elapsed = float(time_match.group('elapsed'))
	return CropMatch(crop, scan_seconds, elapsed)

#============================================

def iter_crop_matches(lines, scan_seconds: float):
	for line in lines:
		crop_match = parse_crop_line(line, scan_seconds)
		if crop_match is not None:
			yield crop_match

#============================================

def select_crop(lines, scan_seconds: float, on_progress=None) -> CropBox:
	"""
	Fold cropdetect output into the most recently reported crop box.

	Args:
		lines: Iterable of output lines.
		scan_seconds: Length of the scan window, for progress only.
		on_progress: Optional callable receiving each CropMatch.

	Returns:
		CropBox: Last reported crop box.
	"""
	latest = None
	for crop_match in iter_crop_matches(lines, scan_seconds):
		latest = crop_match.crop
		if on_progress is not None:
			on_progress(crop_match)
	if latest is None:
		raise CropDetectionFailed("cropdetect reported no crop rectangle")
	return latest

#============================================

def build_cropdetect_command(ffmpeg: str, input_file: str, scan_seconds: float,
	hwaccel: bool = True) -> list:
	cmd = [ffmpeg, "-hide_banner", "-nostdin"]
	if hwaccel:
		cmd += ["-hwaccel", "auto"]
	cmd += ["-t", utils.format_seconds_arg(scan_seconds), "-i", input_file]
	cmd += ["-map", "0:v:0", "-vf", "cropdetect", "-f", "null", "-"]
	return cmd

#============================================

def detect_crop(ffmpeg: str, input_file: str, scan_seconds: float,
	hwaccel: bool = True, on_progress=None, cancel_event=None) -> CropBox:
	"""
	Run the cropdetect pass and return the final crop box.

	A file shorter than scan_seconds is fine; its matches are used as is.
	A set cancel_event stops the scan right after it starts; setters that
	come later call process.terminate_all() instead.
	"""
	cmd = build_cropdetect_command(ffmpeg, input_file, scan_seconds, hwaccel)
	with ProcessRunner(cmd) as runner:
		if cancel_event is not None and cancel_event.is_set():
			runner.terminate()
		try:
			crop = select_crop(runner.lines(), scan_seconds, on_progress)
		except CropDetectionFailed:
			# a crashed scan reports its exit status instead
			runner.check()
			raise
		runner.check()
	return crop
