"""
Pytest coverage for crop detection.
"""

# Standard Library
import os
import sys
import threading
import time

# PIP3 modules
import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

# tests helpers
TESTS_DIR = os.path.abspath(os.path.dirname(__file__))
if TESTS_DIR not in sys.path:
	sys.path.insert(0, TESTS_DIR)
from fake_tools import crop_line
from fake_tools import make_fake_ffmpeg
from fake_tools import write_script

# local repo modules
from hdrpreplib.core import utils
from hdrpreplib.core.errors import CropDetectionFailed
from hdrpreplib.core.errors import SubprocessFailed
from hdrpreplib.media import cropdetect
from hdrpreplib.media.cropdetect import CropBox

#============================================

@pytest.fixture(autouse=True)
def quiet_mode():
	utils.set_quiet_mode(True)
	yield
	utils.set_quiet_mode(False)

#============================================

def test_parse_crop_line() -> None:
	crop_match = cropdetect.parse_crop_line(crop_line(2.5, "1920:800:0:140"), 10)
	assert crop_match.crop == CropBox(1920, 800, 0, 140)
	assert crop_match.elapsed == pytest.approx(2.5)
	assert crop_match.fraction == pytest.approx(0.25)

#============================================

def test_parse_crop_line_ignores_other_output() -> None:
	lines = [
		"Input #0, matroska,webm, from 'movie.mkv':",
		"  Duration: 02:01:03.04, start: 0.000000, bitrate: 45000 kb/s",
		"frame=  120 fps= 60 q=-0.0 size=N/A time=00:00:05.00 bitrate=N/A speed=2.5x",
	]
	for line in lines:
		assert cropdetect.parse_crop_line(line, 10) is None

#============================================

def test_last_match_wins() -> None:
	lines = [
		"Stream mapping:",
		crop_line(1.0, "1920:1072:0:4"),
		"frame=   30 fps=0.0 q=-0.0 size=N/A time=00:00:01.00",
		crop_line(3.0, "1920:816:0:132"),
		crop_line(5.0, "1920:800:0:140"),
		"[out#0/null @ 0x55d0c8a3e000] video:0kB audio:0kB",
	]
	assert cropdetect.select_crop(lines, 10) == CropBox(1920, 800, 0, 140)

#============================================

def test_no_match_fails_even_with_output() -> None:
	lines = ["Input #0, matroska,webm, from 'movie.mkv':", "frame=    1 fps=0.0"]
	with pytest.raises(CropDetectionFailed):
		cropdetect.select_crop(lines, 10)
	with pytest.raises(CropDetectionFailed):
		cropdetect.select_crop([], 10)

#============================================

def test_progress_does_not_change_result() -> None:
	lines = [crop_line(1.0, "1920:816:0:132"), crop_line(5.0, "1920:800:0:140")]
	events = []
	with_progress = cropdetect.select_crop(lines, 10, on_progress=events.append)
	without_progress = cropdetect.select_crop(lines, 10)
	assert with_progress == without_progress
	assert [event.elapsed for event in events] == [1.0, 5.0]
	assert events[-1].fraction == pytest.approx(0.5)

#============================================

def test_progress_fraction_is_clamped() -> None:
	crop_match = cropdetect.parse_crop_line(crop_line(12.0, "16:16:0:0"), 10)
	assert crop_match.fraction == 1.0

#============================================

def test_crop_box_text() -> None:
	box = CropBox.parse("3840:1600:0:280")
	assert box.expression == "3840:1600:0:280"
	assert box.filter_text() == "crop=3840:1600:0:280"
	with pytest.raises(CropDetectionFailed):
		CropBox.parse("3840:1600")

#============================================

def test_build_command_limits_input_duration() -> None:
	cmd = cropdetect.build_cropdetect_command("ffmpeg", "in.mkv", 300, hwaccel=True)
	input_index = cmd.index("-i")
	assert cmd[input_index + 1] == "in.mkv"
	assert cmd.index("-t") < input_index
	assert cmd[cmd.index("-t") + 1] == "300"
	assert cmd.index("-hwaccel") < input_index
	assert cmd[-4:] == ["cropdetect", "-f", "null", "-"]
	no_hw = cropdetect.build_cropdetect_command("ffmpeg", "in.mkv", 12.5, hwaccel=False)
	assert "-hwaccel" not in no_hw
	assert no_hw[no_hw.index("-t") + 1] == "12.5"

#============================================

@pytest.mark.parametrize("scan_seconds, expected", [
	(300, "300"),
	(300.0, "300"),
	(1234567, "1234567"),
	(1234567.0, "1234567"),
	(10000000, "10000000"),
	(1e7, "10000000"),
	(12.000125, "12.000125"),
	(0.1234567891, "0.1234567891"),
	(1e-07, "0.0000001"),
])
def test_scan_duration_is_exact(scan_seconds, expected) -> None:
	"""
	The -t value keeps every digit and never uses exponent notation.
	"""
	cmd = cropdetect.build_cropdetect_command("ffmpeg", "in.mkv", scan_seconds)
	value = cmd[cmd.index("-t") + 1]
	assert value == expected
	assert "e" not in value.lower()
	assert float(value) == float(scan_seconds)

#============================================

def test_detect_crop_with_fake_ffmpeg(tmp_path) -> None:
	lines = [crop_line(1.0, "1920:1080:0:0"), crop_line(5.0, "1920:800:0:140")]
	ffmpeg = make_fake_ffmpeg(str(tmp_path), lines)
	box = cropdetect.detect_crop(ffmpeg, "movie.mkv", 10, hwaccel=False)
	assert box == CropBox(1920, 800, 0, 140)

#============================================

def test_detect_crop_no_matches(tmp_path) -> None:
	ffmpeg = make_fake_ffmpeg(str(tmp_path), ["nothing useful here"])
	with pytest.raises(CropDetectionFailed):
		cropdetect.detect_crop(ffmpeg, "movie.mkv", 10)

#============================================

def test_detect_crop_nonzero_exit(tmp_path) -> None:
	line = crop_line(1.0, "1920:800:0:140")
	ffmpeg = write_script(str(tmp_path / "ffmpeg"),
		f'echo "{line}" >&2\necho "movie.mkv: Invalid data found" >&2\nexit 1')
	with pytest.raises(SubprocessFailed) as excinfo:
		cropdetect.detect_crop(ffmpeg, "movie.mkv", 10)
	assert excinfo.value.returncode == 1
	assert "Invalid data found" in excinfo.value.output_tail

#============================================

def test_crop_lines_without_usable_timestamp_still_count() -> None:
	lines = [
		"[Parsed_cropdetect_0 @ 0x55d0c8a3e2c0] x1:0 x2:1919 y1:132 y2:947 w:1920 h:816 "
		"x:0 y:132 pts:-42 t:-0.042000 limit:0.094118 crop=1920:816:0:132",
		"[Parsed_cropdetect_0 @ 0x55d0c8a3e2c0] x1:0 x2:1919 y1:140 y2:939 w:1920 h:800 "
		"x:0 y:140 pts:NOPTS t:NOPTS limit:0.094118 crop=1920:800:0:140",
	]
	negative = cropdetect.parse_crop_line(lines[0], 10)
	assert negative.crop == CropBox(1920, 816, 0, 132)
	assert negative.elapsed == pytest.approx(-0.042)
	assert negative.fraction == 0.0
	no_time = cropdetect.parse_crop_line(lines[1], 10)
	assert no_time.crop == CropBox(1920, 800, 0, 140)
	assert no_time.elapsed is None
	assert no_time.fraction is None
	assert cropdetect.parse_crop_line("crop=64:48:8:0", 10).elapsed is None
	events = []
	assert cropdetect.select_crop(lines, 10, on_progress=events.append) == CropBox(1920, 800, 0, 140)
	assert len(events) == 2

#============================================

def test_pts_field_is_not_read_as_time() -> None:
	crop_match = cropdetect.parse_crop_line(crop_line(4.0, "1920:800:0:140"), 10)
	assert crop_match.elapsed == pytest.approx(4.0)

#============================================

def test_detect_crop_honors_preset_cancel(tmp_path) -> None:
	line = crop_line(1.0, "1920:800:0:140")
	ffmpeg = write_script(str(tmp_path / "ffmpeg"), f'echo "{line}" >&2\nexec sleep 30')
	cancel_event = threading.Event()
	cancel_event.set()
	t0 = time.time()
	with pytest.raises(SubprocessFailed):
		cropdetect.detect_crop(ffmpeg, "movie.mkv", 10, cancel_event=cancel_event)
	assert time.time() - t0 < 15
