#!/usr/bin/env python3

#============================================

class HdrPrepError(RuntimeError):
	"""Base class for every fatal hdrprep failure."""
	pass

#============================================

class BinaryNotFound(HdrPrepError):
	pass

#============================================

class CropDetectionFailed(HdrPrepError):
	pass

#============================================

class MetadataMissing(HdrPrepError):
	pass

#============================================

class MalformedRational(HdrPrepError):
	pass

#============================================

class SubprocessFailed(HdrPrepError):
	def __init__(self, cmd: list, returncode: int, output_tail: str = ''):
		self.cmd = list(cmd)
		self.returncode = returncode
		self.output_tail = output_tail
		message = f"command failed with exit status {returncode}: {cmd[0]}"
		if output_tail:
			message += f"\n{output_tail}"
		super().__init__(message)
