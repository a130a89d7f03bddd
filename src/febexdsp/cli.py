"""
febexdsp's command line interface utilities.
"""

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path

import numpy as np

import febexdsp
import febexdsp.logging
from febexdsp.cal import Calibration

log = logging.getLogger(__name__)


def febexdsp_cli():
    """Entry point of the ``febexdsp`` executable.

    Sub-commands inspect a calibration file (``show-cal``) or run the pulse
    processing of one channel over a stored trace (``mwd``). Each one
    documents its arguments:

    .. code-block:: console

      $ febexdsp show-cal --help
      $ febexdsp mwd --help
    """

    parser = argparse.ArgumentParser(
        prog="febexdsp",
        description="Inspect FEBEX calibrations and process digitizer traces",
    )
    parser.add_argument(
        "--version", action="store_true", help="""Print the version and exit"""
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="""Log debug messages of febexdsp""",
    )
    parser.add_argument(
        "--debug",
        "-d",
        action="store_true",
        help="""Log debug messages of every package, numba included""",
    )

    subparsers = parser.add_subparsers()
    add_show_cal_parser(subparsers)
    add_mwd_parser(subparsers)

    args = parser.parse_args()

    if args.debug:
        febexdsp.logging.setup(logging.DEBUG, logging.root)
    else:
        febexdsp.logging.setup(logging.DEBUG if args.verbose else logging.INFO)

    if args.version:
        print(febexdsp.__version__)  # noqa: T201
        sys.exit()

    # no sub-command given
    if "func" not in args:
        parser.print_usage(sys.stderr)
        sys.exit(1)

    args.func(args)


def _add_channel_argument(parser, required):
    parser.add_argument(
        "--channel",
        "-c",
        nargs=3,
        type=int,
        metavar=("SFP", "BOARD", "CH"),
        required=required,
        help="""Address of the FEBEX channel""",
    )


def add_show_cal_parser(subparsers):
    """Configure :func:`show_cal_cli` command line interface"""

    parser_cal = subparsers.add_parser(
        "show-cal",
        description="""Print the calibration and filter parameters held in a
                       calibration file as JSON""",
    )
    parser_cal.add_argument(
        "config", help="""JSON or YAML file holding the calibration"""
    )
    _add_channel_argument(parser_cal, required=False)

    parser_cal.set_defaults(func=show_cal_cli)


def show_cal_cli(args):
    """Prints one channel, or the whole flattened store if no channel is
    given."""
    cal = Calibration(args.config)

    if args.channel is None:
        out = cal.to_dict()
    else:
        channel = cal.get_channel(*args.channel)
        if channel is None:
            log.error(
                f"channel {args.channel} is outside the configured dimensions"
            )
            sys.exit(1)
        out = dataclasses.asdict(channel)

    print(json.dumps(out, indent=2))  # noqa: T201


def add_mwd_parser(subparsers):
    """Configure :func:`mwd_cli` command line interface"""

    parser_mwd = subparsers.add_parser(
        "mwd",
        description="""Run the moving-window deconvolution over a trace and
                       print the calibrated pulses, one per line""",
    )
    parser_mwd.add_argument(
        "config", help="""JSON or YAML file holding the calibration"""
    )
    parser_mwd.add_argument(
        "trace",
        help="""Trace samples, either a NumPy .npy file or a text file of
                whitespace-separated values""",
    )
    _add_channel_argument(parser_mwd, required=True)
    parser_mwd.add_argument(
        "--seed",
        "-s",
        type=int,
        default=None,
        help="""Seed of the energy dithering. Random by default""",
    )

    parser_mwd.set_defaults(func=mwd_cli)


def mwd_cli(args):
    """Passes command line arguments to :meth:`.Calibration.process_trace`."""
    cal = Calibration(args.config, rng=args.seed)

    path = Path(args.trace)
    if path.suffix == ".npy":
        trace = np.load(path)
    else:
        trace = np.loadtxt(path)

    for pulse in cal.process_trace(*args.channel, trace):
        print(  # noqa: T201
            f"{pulse.cfd_time:.3f} {pulse.raw_amplitude:.3f} {pulse.energy:.3f}"
        )
