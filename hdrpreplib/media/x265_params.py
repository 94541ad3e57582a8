#!/usr/bin/env python3

"""
Assemble the x265 parameter string and the ffmpeg encode command.

ffmpeg applies an option to the next -i or output file that follows it,
so input options and output options are kept in separate lists and only
joined around the input path.
"""

from dataclasses import dataclass
from hdrpreplib.core.config import EncodeSettings
from hdrpreplib.media.cropdetect import CropBox
from hdrpreplib.media.hdr_metadata import ContentLightLevel
from hdrpreplib.media.hdr_metadata import FrameMetadata
from hdrpreplib.media.hdr_metadata import MasteringDisplay

#============================================

def format_master_display(display: MasteringDisplay) -> str:
	# x265 wants luminance as (max, min)
	text = (
		f"G({display.green_x},{display.green_y})"
		f"B({display.blue_x},{display.blue_y})"
		f"R({display.red_x},{display.red_y})"
		f"WP({display.white_point_x},{display.white_point_y})"
		f"L({display.max_luminance},{display.min_luminance})"
	)
	return text

#============================================

def format_max_cll(light: ContentLightLevel) -> str:
	return f"{light.max_content},{light.max_average}"

#============================================

def build_x265_params(frame: FrameMetadata, display: MasteringDisplay,
	light: ContentLightLevel) -> str:
	"""
	Build the colon separated -x265-params value.

	Color tags are copied from the probed frame without checking them;
	x265 rejects values it does not know.
	"""
	params = [
		"hdr10-opt=1",
		"repeat-headers=1",
		f"colorprim={frame.color_primaries}",
		f"transfer={frame.color_transfer}",
		f"colormatrix={frame.color_space}",
		f"master-display={format_master_display(display)}",
		f"max-cll={format_max_cll(light)}",
	]
	return ":".join(params)

#============================================

@dataclass(frozen=True)
class EncodeSpec:
	input_args: tuple
	input_file: str
	output_args: tuple
	output_file: str

	#============================
	def arguments(self) -> list:
		args = list(self.input_args)
		args += ["-i", self.input_file]
		args += list(self.output_args)
		args.append(self.output_file)
		return args

	#============================
	def command(self, ffmpeg: str) -> list:
		return [ffmpeg] + self.arguments()

#============================================

def build_input_args(settings: EncodeSettings) -> list:
	args = ["-hide_banner", "-nostdin"]
	args.append("-y" if settings.overwrite else "-n")
	args += ["-analyzeduration", settings.analysis_size]
	args += ["-probesize", settings.analysis_size]
	if settings.hwaccel:
		args += ["-hwaccel", "auto"]
	return args

#============================================

def build_output_args(crop: CropBox, x265_params: str,
	settings: EncodeSettings) -> list:
	args = ["-map", "0"]
	args += ["-c:v", settings.encoder]
	args += ["-crf", str(settings.crf)]
	args += ["-preset", settings.preset]
	if settings.tune != 'none':
		args += ["-tune", settings.tune]
	args += ["-vf", crop.filter_text()]
	args += ["-x265-params", x265_params]
	args += ["-c:a", "copy", "-c:s", "copy"]
	args += ["-max_muxing_queue_size", str(settings.muxing_queue_size)]
	args += ["-pix_fmt", settings.pixel_format]
	return args

#============================================

def build_encode_spec(input_file: str, output_file: str, crop: CropBox,
	frame: FrameMetadata, display: MasteringDisplay, light: ContentLightLevel,
	settings: EncodeSettings) -> EncodeSpec:
	x265_params = build_x265_params(frame, display, light)
	return EncodeSpec(
		input_args=tuple(build_input_args(settings)),
		input_file=input_file,
		output_args=tuple(build_output_args(crop, x265_params, settings)),
		output_file=output_file,
	)
