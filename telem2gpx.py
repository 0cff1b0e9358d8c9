#!/usr/bin/env python3
"""
Flight telemetry converter

This script reads flight telemetry in any supported format (CSV, GPX, KML,
NMEA, IGC or JSON) and writes the flight path as GPX or KML.

Usage:
    python telem2gpx.py [-c config] [-f gpx|kml] [-o outputFolder] file [file2 ...]
"""

import argparse
import sys
import logging
from pathlib import Path
from typing import List, Optional

from telem_config import Config
from telem_flight_data import FlightData
from telem_summary import telemetrySummary
from telem_constants import DEFAULT_OUT_PATH

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger('telem2gpx')


def output_path(config: Config, in_path: str) -> Path:
    """Where the converted file for an input goes"""
    out_path = Path(in_path).with_suffix('.' + config.output_type.default_extension)
    if config.outPath and config.outPath != DEFAULT_OUT_PATH:
        out_path = Path(config.outPath) / out_path.name
    return out_path


def process_file(config: Config, in_path: str, verbose: bool = False) -> Optional[Path]:
    """Convert one telemetry file; returns the output path, or None if nothing was written"""
    logger.info(f"Processing {in_path}...")
    try:
        return convert_file(config, in_path)
    except (OSError, ValueError) as e:
        logger.error(f"Error processing {in_path}: {e}", exc_info=verbose)
        return None


def convert_file(config: Config, in_path: str) -> Optional[Path]:
    with open(in_path, 'r', encoding='utf-8', errors='ignore') as track_file:
        text = track_file.read()

    flight_data = FlightData(config.column_registry())
    result = flight_data.parse_flight_data(text)
    if not result.success:
        if not config.ignore_errors:
            logger.error(f"{in_path} could not be parsed as {result.file_type.name}: {result.error_string}")
            return None
        logger.warning(f"Ignoring errors in {in_path}: {result.error_string}")

    if not flight_data.get_trajectory():
        logger.error(f"No valid track data found in {in_path}")
        return None

    logger.info('\n' + telemetrySummary(flight_data, Path(in_path).name))

    out_path = output_path(config, in_path)
    with open(out_path, 'wb') as out_file:
        if config.output_format == 'kml':
            flight_data.write_kml(out_file)
        else:
            flight_data.write_gpx(out_file)
    logger.info(f"Successfully generated: {out_path}")
    return out_path


def process_files(config: Config, paths: List[str], verbose: bool = False) -> List[Path]:
    """Convert each file in turn; a failure is logged and does not stop the rest"""
    written = []
    for in_path in paths:
        out_path = process_file(config, in_path, verbose)
        if out_path:
            written.append(out_path)
    return written


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Convert flight telemetry (CSV, GPX, KML, NMEA, IGC, JSON) into GPX or KML',
        epilog='Example: python telem2gpx.py -f kml flight.igc'
    )

    parser.add_argument('-c', '--config', default=None, help='Path to config file')
    parser.add_argument('-f', '--format', default=None, choices=['gpx', 'kml'], help='Output format (default gpx)')
    parser.add_argument('-o', '--output', default=None, help='Folder to write output files to')
    parser.add_argument('--ignore-errors', action='store_true', help='Convert whatever could be parsed despite errors')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose output')
    parser.add_argument('trackfile', nargs='+', help='Path to one or more telemetry files')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    # Set log level based on verbose flag
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = Config(args)
    written = process_files(config, args.trackfile, args.verbose)

    logger.info("Processing complete.")
    return 0 if written else 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except FileNotFoundError as e:
        logger.critical(f"File not found: {e.filename}")
        sys.exit(3)
    except ValueError as e:
        logger.critical(f"Invalid input: {e}")
        sys.exit(2)
    except Exception as e:
        logger.critical(f"Unexpected error: {e}", exc_info=True)
        sys.exit(1)
