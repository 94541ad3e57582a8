#!/usr/bin/env python3

"""
Query the first video frame's color tags and side data with ffprobe.
"""

import json
from hdrpreplib.core import process
from hdrpreplib.core.errors import MetadataMissing
from hdrpreplib.media.hdr_metadata import FrameMetadata
from hdrpreplib.media.hdr_metadata import SideData

FRAME_ENTRIES = "frame=color_space,color_primaries,color_transfer,side_data_list,pix_fmt"
REQUIRED_FRAME_KEYS = ('color_space', 'color_primaries', 'color_transfer', 'pix_fmt')

#============================================

def build_probe_command(ffprobe: str, input_file: str) -> list:
	cmd = [
		ffprobe, "-v", "error",
		"-select_streams", "v:0",
		"-read_intervals", "%+#1",
		"-show_frames",
		"-show_entries", FRAME_ENTRIES,
		"-of", "json",
		input_file,
	]
	return cmd

#============================================

def parse_probe_output(text: str) -> FrameMetadata:
	"""
	Parse ffprobe JSON output for a single-frame query.

	Args:
		text: ffprobe stdout.

	Returns:
		FrameMetadata: Validated frame record.
	"""
	try:
		data = json.loads(text)
	except json.JSONDecodeError as exc:
		raise MetadataMissing(f"ffprobe output is not valid JSON: {exc}")
	if not isinstance(data, dict):
		raise MetadataMissing("ffprobe output is not a JSON object")
	frames = data.get('frames')
	if not isinstance(frames, list) or len(frames) != 1:
		count = len(frames) if isinstance(frames, list) else 0
		raise MetadataMissing(f"expected exactly one probed frame, found {count}")
	frame = frames[0]
	for key in REQUIRED_FRAME_KEYS:
		if key not in frame:
			raise MetadataMissing(f"probed frame has no {key}")
	side_data = []
	for raw_entry in frame.get('side_data_list', []):
		values = dict(raw_entry)
		side_data_type = str(values.pop('side_data_type', ''))
		side_data.append(SideData(side_data_type, values))
	return FrameMetadata(
		color_space=str(frame['color_space']),
		color_primaries=str(frame['color_primaries']),
		color_transfer=str(frame['color_transfer']),
		pix_fmt=str(frame['pix_fmt']),
		side_data=tuple(side_data),
	)

#============================================

def probe_frame_metadata(ffprobe: str, input_file: str) -> FrameMetadata:
	cmd = build_probe_command(ffprobe, input_file)
	# stderr stays out of the JSON document
	text = process.run_and_collect(cmd, merge_stderr=False)
	return parse_probe_output(text)
