#!/usr/bin/env python3

import os
import sys
import threading
import time
from tqdm import tqdm
from hdrpreplib.core import process
from hdrpreplib.core import utils
from hdrpreplib.core.config import EncodeSettings
from hdrpreplib.core.config import default_output_path
from hdrpreplib.core.errors import HdrPrepError
from hdrpreplib.media import cropdetect
from hdrpreplib.media import probe
from hdrpreplib.media import x265_params
from hdrpreplib.media.hdr_metadata import CONTENT_LIGHT_LABEL
from hdrpreplib.media.hdr_metadata import MASTERING_DISPLAY_LABEL
from hdrpreplib.media.hdr_metadata import ContentLightLevel
from hdrpreplib.media.hdr_metadata import MasteringDisplay

#============================================

class CropProgressBar():
	"""tqdm bar fed by cropdetect matches, measured in scanned seconds."""
	def __init__(self, scan_seconds: float):
		self.bar = tqdm(total=float(scan_seconds), unit='s', desc='cropdetect',
			bar_format='{desc}: {percentage:3.0f}%|{bar}| {n:.0f}/{total:.0f}s {postfix}')

	#============================
	def __call__(self, crop_match) -> None:
		if crop_match.elapsed is not None:
			position = min(crop_match.elapsed, self.bar.total)
			if position > self.bar.n:
				self.bar.update(position - self.bar.n)
		self.bar.set_postfix_str(f"crop={crop_match.crop.expression}", refresh=False)
		return

	#============================
	def close(self) -> None:
		self.bar.close()
		return

#============================================

def read_hdr_metadata(ffprobe: str, input_file: str) -> tuple:
	"""
	Probe the first frame and normalize its HDR side data.

	Returns:
		tuple: (FrameMetadata, MasteringDisplay, ContentLightLevel)
	"""
	frame = probe.probe_frame_metadata(ffprobe, input_file)
	display_entry = frame.require_side_data(MASTERING_DISPLAY_LABEL)
	light_entry = frame.require_side_data(CONTENT_LIGHT_LABEL)
	display = MasteringDisplay.from_side_data(display_entry)
	light = ContentLightLevel.from_side_data(light_entry)
	return (frame, display, light)

#============================================

class _ProbeThread(threading.Thread):
	"""
	Reads HDR metadata next to the crop scan and stops the scan on failure.
	"""
	def __init__(self, ffprobe: str, input_file: str):
		super().__init__(daemon=True)
		self.ffprobe = ffprobe
		self.input_file = input_file
		self.metadata = None
		self.error = None
		self.failed = threading.Event()

	#============================
	def run(self) -> None:
		try:
			self.metadata = read_hdr_metadata(self.ffprobe, self.input_file)
		except Exception as exc:
			self.error = exc
			# set before terminating so a scan that starts later sees it
			self.failed.set()
			process.terminate_all()
		return

	#============================
	def result(self) -> tuple:
		self.join()
		if self.error is not None:
			raise self.error
		return self.metadata

#============================================

class HdrPrepJob():
	def __init__(self, input_file: str, output_file: str = None,
		settings: EncodeSettings = None):
		if settings is None:
			settings = EncodeSettings()
		settings.validate()
		self.settings = settings
		self.input_file = input_file
		if output_file is None:
			output_file = default_output_path(input_file, settings)
		self.output_file = output_file
		self.ffmpeg = None
		self.ffprobe = None
		self.crop = None
		self.frame = None
		self.display = None
		self.light = None
		self.spec = None

	#============================
	def validate(self) -> None:
		utils.ensure_file_exists(self.input_file)
		if os.path.abspath(self.output_file) == os.path.abspath(self.input_file):
			raise RuntimeError("output file must differ from input file")
		self.ffmpeg = utils.find_binary('ffmpeg', self.settings.ffmpeg)
		self.ffprobe = utils.find_binary('ffprobe', self.settings.ffprobe)
		return

	#============================
	def analyze(self) -> None:
		"""
		Run the crop scan and the frame probe side by side.

		A probe or side data failure ends the crop scan early and is the
		error reported.
		"""
		probe_thread = _ProbeThread(self.ffprobe, self.input_file)
		probe_thread.start()
		progress_bar = None
		if not utils.is_quiet_mode():
			progress_bar = CropProgressBar(self.settings.scan_seconds)
		try:
			self.crop = cropdetect.detect_crop(self.ffmpeg, self.input_file,
				self.settings.scan_seconds, hwaccel=self.settings.hwaccel,
				on_progress=progress_bar, cancel_event=probe_thread.failed)
		except HdrPrepError:
			if probe_thread.failed.is_set():
				probe_thread.result()
			process.terminate_all()
			probe_thread.join()
			raise
		except BaseException:
			process.terminate_all()
			probe_thread.join()
			raise
		finally:
			if progress_bar is not None:
				progress_bar.close()
		(self.frame, self.display, self.light) = probe_thread.result()
		return

	#============================
	def prepare(self) -> x265_params.EncodeSpec:
		self.validate()
		self.analyze()
		self.spec = x265_params.build_encode_spec(self.input_file, self.output_file,
			self.crop, self.frame, self.display, self.light, self.settings)
		return self.spec

	#============================
	def encode_command(self) -> list:
		if self.spec is None:
			self.prepare()
		return self.spec.command(self.ffmpeg)

	#============================
	def run(self) -> int:
		"""
		Prepare and run the encode.

		Returns:
			int: ffmpeg exit status.
		"""
		cmd = self.encode_command()
		existed_before = os.path.exists(self.output_file)
		t0 = time.time()
		returncode = None
		try:
			with process.ProcessRunner(cmd) as runner:
				for line in runner.lines():
					if utils.is_quiet_mode():
						continue
					if line.startswith("frame=") or "speed=" in line:
						sys.stderr.write(f"\r{line.strip()[:120]}")
						sys.stderr.flush()
				returncode = runner.wait()
		finally:
			if returncode != 0:
				self._handle_partial_output(existed_before)
		if not utils.is_quiet_mode():
			sys.stderr.write("\n")
			if returncode == 0:
				print(f"Complete in {int(time.time() - t0)} seconds: {self.output_file}")
			else:
				print(f"encode failed with exit status {returncode}")
		return returncode

	#============================
	def _handle_partial_output(self, existed_before: bool) -> None:
		if not os.path.exists(self.output_file):
			return
		if existed_before and not self.settings.overwrite:
			return
		if self.settings.keep_partial:
			if not utils.is_quiet_mode():
				print(f"partial output left in place: {self.output_file}")
			return
		os.remove(self.output_file)
		if not utils.is_quiet_mode():
			print(f"removed partial output: {self.output_file}")
		return
