#!/usr/bin/env python3

"""
Subprocess handles whose merged stdout/stderr is consumed line by line.

Every handle registers itself while its process is alive so that an
interrupted run can terminate all children with terminate_all().
"""

import collections
import subprocess
import threading
from hdrpreplib.core import utils
from hdrpreplib.core.errors import SubprocessFailed

OUTPUT_TAIL_LINES = 30
TERMINATE_GRACE_SECONDS = 5

_LIVE_HANDLES = set()
_LIVE_LOCK = threading.Lock()

#============================================

class ProcessRunner():
	"""
	Spawn an external executable and expose its output as lines.

	Use as a context manager; the process is always waited on when the
	block exits, and terminated first if it is still running (early break,
	exception, or interrupt).
	"""
	def __init__(self, cmd: list, merge_stderr: bool = True):
		self.cmd = [str(part) for part in cmd]
		self.merge_stderr = merge_stderr
		self.proc = None
		self.returncode = None
		self._tail = collections.deque(maxlen=OUTPUT_TAIL_LINES)

	#============================
	def __enter__(self):
		self.start()
		return self

	#============================
	def __exit__(self, exc_type, exc_value, traceback) -> bool:
		self.close()
		return False

	#============================
	def start(self) -> None:
		if self.proc is not None:
			raise RuntimeError("process already started")
		utils.report_command('start', self.cmd)
		stderr_target = subprocess.STDOUT if self.merge_stderr else subprocess.DEVNULL
		# text mode splits on bare carriage returns too, which ffmpeg uses for status lines
		self.proc = subprocess.Popen(self.cmd, stdin=subprocess.DEVNULL,
			stdout=subprocess.PIPE, stderr=stderr_target,
			text=True, errors='replace', bufsize=1)
		with _LIVE_LOCK:
			_LIVE_HANDLES.add(self)
		return

	#============================
	def lines(self):
		"""
		Yield output lines without line terminators until the stream ends.

		The end of the stream says nothing about success; call wait() or
		check() for the exit status.
		"""
		if self.proc is None:
			raise RuntimeError("process not started")
		for line in self.proc.stdout:
			text = line.rstrip('\r\n')
			self._tail.append(text)
			yield text

	#============================
	def output_tail(self) -> str:
		return "\n".join(line for line in self._tail if line.strip() != '')

	#============================
	def wait(self) -> int:
		if self.returncode is None:
			self.returncode = self.proc.wait()
			self._finish()
		return self.returncode

	#============================
	def check(self) -> int:
		returncode = self.wait()
		if returncode != 0:
			raise SubprocessFailed(self.cmd, returncode, self.output_tail())
		return returncode

	#============================
	def terminate(self) -> None:
		if self.proc is None or self.proc.poll() is not None:
			return
		self.proc.terminate()
		try:
			self.proc.wait(timeout=TERMINATE_GRACE_SECONDS)
		except subprocess.TimeoutExpired:
			self.proc.kill()
		return

	#============================
	def close(self) -> None:
		if self.proc is None:
			return
		self.terminate()
		self.wait()
		if self.proc.stdout is not None and not self.proc.stdout.closed:
			self.proc.stdout.close()
		return

	#============================
	def _finish(self) -> None:
		with _LIVE_LOCK:
			_LIVE_HANDLES.discard(self)
		utils.report_command('finish', self.cmd, self.returncode)
		return

#============================================

def live_handles() -> list:
	with _LIVE_LOCK:
		return list(_LIVE_HANDLES)

#============================================

def terminate_all() -> int:
	"""
	Terminate every registered live process.

	Returns:
		int: Number of handles that were still alive.
	"""
	handles = live_handles()
	for handle in handles:
		handle.terminate()
	return len(handles)

#============================================

def run_and_collect(cmd: list, merge_stderr: bool = True) -> str:
	"""
	Run a command to completion and return its full output text.

	Raises SubprocessFailed on a nonzero exit status.
	"""
	with ProcessRunner(cmd, merge_stderr=merge_stderr) as runner:
		text = "\n".join(runner.lines())
		runner.check()
	return text
