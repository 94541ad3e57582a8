#!/usr/bin/env python3

import dataclasses
import os
import yaml

SUPPORTED_ENCODERS = ('libx265',)
TUNE_MODES = ('none', 'grain', 'animation')
# fastest to slowest
PRESETS = (
	'ultrafast', 'superfast', 'veryfast', 'faster', 'fast',
	'medium', 'slow', 'slower', 'veryslow', 'placebo',
)
MAX_CONFIG_BYTES = 10 ** 7
CONFIG_ROOT_KEY = 'hdrprep'

#============================================

@dataclasses.dataclass
class EncodeSettings():
	encoder: str = 'libx265'
	crf: int = 18
	preset: str = 'slow'
	tune: str = 'none'
	pixel_format: str = 'yuv420p10le'
	scan_seconds: float = 300
	hwaccel: bool = True
	overwrite: bool = False
	keep_partial: bool = True
	analysis_size: str = '100M'
	muxing_queue_size: int = 9999
	output_suffix: str = '.hdrprep.mkv'
	ffmpeg: str = None
	ffprobe: str = None

	#============================
	def validate(self) -> None:
		if self.encoder not in SUPPORTED_ENCODERS:
			raise RuntimeError(f"unsupported encoder: {self.encoder} "
				f"(supported: {', '.join(SUPPORTED_ENCODERS)})")
		if self.tune not in TUNE_MODES:
			raise RuntimeError(f"tune must be one of {', '.join(TUNE_MODES)}")
		if self.preset not in PRESETS:
			raise RuntimeError(f"preset must be one of {', '.join(PRESETS)}")
		if isinstance(self.crf, bool) or not isinstance(self.crf, int):
			raise RuntimeError("crf must be an integer")
		if self.crf < 0 or self.crf > 51:
			raise RuntimeError("crf must be between 0 and 51")
		if isinstance(self.scan_seconds, bool) or not isinstance(self.scan_seconds, (int, float)):
			raise RuntimeError("scan_seconds must be a number")
		if self.scan_seconds <= 0:
			raise RuntimeError("scan_seconds must be positive")
		if isinstance(self.muxing_queue_size, bool) or not isinstance(self.muxing_queue_size, int):
			raise RuntimeError("muxing_queue_size must be an integer")
		if self.muxing_queue_size <= 0:
			raise RuntimeError("muxing_queue_size must be positive")
		if not self.output_suffix:
			raise RuntimeError("output_suffix must not be empty")
		return

	#============================
	def updated(self, overrides: dict):
		"""
		Return a copy with the non-None overrides applied.
		"""
		changes = {}
		for key, value in overrides.items():
			if value is None:
				continue
			if key not in setting_names():
				raise RuntimeError(f"unknown setting: {key}")
			changes[key] = value
		return dataclasses.replace(self, **changes)

#============================================

def setting_names() -> tuple:
	return tuple(item.name for item in dataclasses.fields(EncodeSettings))

#============================================

def load_config(config_file: str) -> dict:
	"""
	Read setting defaults from a YAML file.

	Args:
		config_file: Path to a YAML file with a top-level hdrprep mapping.

	Returns:
		dict: Setting overrides keyed by EncodeSettings field name.
	"""
	if not os.path.isfile(config_file):
		raise RuntimeError(f"config file not found: {config_file}")
	if os.path.getsize(config_file) > MAX_CONFIG_BYTES:
		raise RuntimeError("config file is larger than 10MB")
	with open(config_file, 'r') as data_file:
		data = yaml.safe_load(data_file)
	if data is None:
		return {}
	if not isinstance(data, dict) or CONFIG_ROOT_KEY not in data:
		raise RuntimeError(f"config file must have a top-level '{CONFIG_ROOT_KEY}' mapping")
	section = data.get(CONFIG_ROOT_KEY) or {}
	if not isinstance(section, dict):
		raise RuntimeError(f"'{CONFIG_ROOT_KEY}' must be a mapping")
	unknown = sorted(set(section.keys()) - set(setting_names()))
	if len(unknown) > 0:
		raise RuntimeError(f"unknown config keys: {', '.join(str(key) for key in unknown)}")
	return dict(section)

#============================================

def build_settings(config_file: str = None, overrides: dict = None) -> EncodeSettings:
	"""
	Combine defaults, an optional config file, and command-line overrides.
	"""
	settings = EncodeSettings()
	if config_file is not None:
		settings = settings.updated(load_config(config_file))
	if overrides:
		settings = settings.updated(overrides)
	settings.validate()
	return settings

#============================================

def default_output_path(input_file: str, settings: EncodeSettings) -> str:
	return f"{input_file}{settings.output_suffix}"
