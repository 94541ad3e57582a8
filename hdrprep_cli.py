#!/usr/bin/env python3

import argparse
import shlex
import sys
from hdrpreplib.core import config
from hdrpreplib.core import process
from hdrpreplib.core import utils
from hdrpreplib.core.pipeline import HdrPrepJob

#============================================

def parse_args(argv: list = None):
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(
		description="Crop and re-encode an HDR10 video with its mastering metadata")
	parser.add_argument('-i', '--input', dest='input_file', required=True,
		help='input video file')
	parser.add_argument('-o', '--output', dest='output_file',
		help='output file (default: input path plus the output suffix)')
	parser.add_argument('-c', '--config', dest='config_file',
		help='yaml file with a top-level hdrprep mapping of setting defaults')
	parser.add_argument('-e', '--encoder', dest='encoder',
		choices=config.SUPPORTED_ENCODERS, help='video encoder')
	parser.add_argument('-q', '--crf', dest='crf', type=int,
		help='constant rate factor')
	parser.add_argument('-p', '--preset', dest='preset', choices=config.PRESETS,
		help='encoder speed preset')
	parser.add_argument('-t', '--tune', dest='tune', choices=config.TUNE_MODES,
		help='encoder tuning mode')
	parser.add_argument('-s', '--scan-seconds', dest='scan_seconds', type=float,
		help='seconds of video to scan for the crop rectangle (default 300)')
	parser.add_argument('-H', '--no-hwaccel', dest='hwaccel', action='store_false',
		help='disable hardware accelerated decoding')
	parser.add_argument('-y', '--overwrite', dest='overwrite', action='store_true',
		help='overwrite an existing output file')
	parser.add_argument('-r', '--remove-partial', dest='keep_partial',
		action='store_false', help='delete the output file if the encode fails')
	parser.add_argument('-k', '--keep-partial', dest='keep_partial',
		action='store_true', help='leave a failed output file for inspection')
	parser.add_argument('-n', '--print-args', dest='print_args', action='store_true',
		help='analyze and print the encode command without running it')
	parser.add_argument('-Q', '--quiet', dest='quiet', action='store_true',
		help='suppress command echo and progress output')
	parser.set_defaults(hwaccel=None, overwrite=None, keep_partial=None)
	args = parser.parse_args(argv)
	return args

#============================================

def settings_from_args(args) -> config.EncodeSettings:
	overrides = {
		'encoder': args.encoder,
		'crf': args.crf,
		'preset': args.preset,
		'tune': args.tune,
		'scan_seconds': args.scan_seconds,
		'hwaccel': args.hwaccel,
		'overwrite': args.overwrite,
		'keep_partial': args.keep_partial,
	}
	return config.build_settings(args.config_file, overrides)

#============================================

def main(argv: list = None) -> int:
	args = parse_args(argv)
	utils.set_quiet_mode(args.quiet)
	try:
		settings = settings_from_args(args)
		job = HdrPrepJob(args.input_file, output_file=args.output_file,
			settings=settings)
		if args.print_args:
			print(shlex.join(job.encode_command()))
			return 0
		returncode = job.run()
	except RuntimeError as exc:
		print(f"error: {exc}", file=sys.stderr)
		return 1
	except KeyboardInterrupt:
		process.terminate_all()
		print("interrupted", file=sys.stderr)
		return 130
	if returncode != 0:
		print(f"error: encode failed with exit status {returncode}", file=sys.stderr)
	return returncode


if __name__ == '__main__':
	sys.exit(main())
