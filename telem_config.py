#!/usr/bin/env python3
"""
Configuration handling for the flight telemetry importer

This module provides configuration management for the telem2gpx converter.
It handles command line arguments, config file loading, auto-fill thresholds
and extra known-column definitions.
"""

import configparser
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from telem_model import FileType, DataSourceType, KnownColumnType
from telem_columns import ColumnTypeRegistry, defaultColumnRows
from telem_autofill import AutoFillOptions
from telem_utils import numberOrString
from telem_constants import (
    DEFAULT_OUT_PATH,
    DEFAULT_OUTPUT_FORMAT,
    DEFAULT_TAKEOFF_SPEEDS,
    DEFAULT_TAKEOFF_SPEED_INDEX,
    DEFAULT_CROSS_COUNTRY_THRESHOLD,
    CONFIG_SECTION_DEFAULTS,
    CONFIG_SECTION_AUTOFILL,
    CONFIG_SECTION_COLUMNS,
)

# Configure logger
logger = logging.getLogger(__name__)

OUTPUT_FORMATS = {
    'gpx': FileType.GPX,
    'kml': FileType.KML,
}


@dataclass
class AutoFillSettings:
    """Auto-fill thresholds from the [AutoFill] section"""
    takeoff_speed: float = DEFAULT_TAKEOFF_SPEEDS[DEFAULT_TAKEOFF_SPEED_INDEX]
    landing_speed: Optional[float] = None
    cross_country_threshold: float = DEFAULT_CROSS_COUNTRY_THRESHOLD
    include_heliports: bool = False
    ignore_errors: bool = False

    @property
    def effective_landing_speed(self) -> float:
        """Configured landing speed, else the one that pairs with the take-off speed"""
        if self.landing_speed is not None:
            return self.landing_speed
        return AutoFillOptions.best_landing_speed_for_takeoff_speed(int(self.takeoff_speed))


class ConfigParser:
    """
    Handles parsing of configuration files.
    Separates the parsing logic from the configuration storage.
    """

    def __init__(self):
        """Initialize the config parser"""
        self.parser = configparser.RawConfigParser()

    def find_config_file(self, cli_path: Optional[str] = None) -> Optional[str]:
        """Find a configuration file to use"""
        if cli_path and os.path.isfile(cli_path):
            logger.info(f"Using configuration file: {cli_path}")
            return cli_path

        # Look in standard locations
        paths = ('.', os.path.dirname(os.path.abspath(__file__)))
        files = ('telem2gpx.conf', 'telem2gpx.ini')

        for path in paths:
            for file in files:
                full_path = os.path.join(path, file)
                if Path(full_path).is_file():
                    logger.info(f"Found configuration file: {full_path}")
                    return full_path

        logger.debug("No configuration file found, using defaults")
        return None

    def load_config_file(self, file_path: Optional[str] = None) -> bool:
        """Load configuration from file"""
        config_file = self.find_config_file(file_path)
        if not config_file:
            return False

        try:
            self.parser.read(config_file)
            return True
        except configparser.Error as e:
            logger.error(f"Error reading config file: {e}")
            return False

    def get_section(self, section_name: str) -> Dict[str, str]:
        """Get a section from the configuration file, with lower-cased keys"""
        if section_name in self.parser:
            return {key.lower(): value for key, value in self.parser[section_name].items()}
        return {}

    def get_default_settings(self) -> Dict[str, Any]:
        """Get default settings from configuration"""
        return self.get_section(CONFIG_SECTION_DEFAULTS)

    def get_autofill_settings(self) -> AutoFillSettings:
        """Extract auto-fill thresholds from configuration"""
        settings = AutoFillSettings()
        section = self.get_section(CONFIG_SECTION_AUTOFILL)

        for key, attribute in (('takeoffspeed', 'takeoff_speed'),
                               ('landingspeed', 'landing_speed'),
                               ('crosscountrythreshold', 'cross_country_threshold')):
            if key in section:
                value = numberOrString(section[key])
                if not isinstance(value, float):
                    raise ValueError(f"[{CONFIG_SECTION_AUTOFILL}] {key} must be a number: {value}")
                setattr(settings, attribute, value)

        for key, attribute in (('includeheliports', 'include_heliports'),
                               ('ignoreerrors', 'ignore_errors')):
            if key in section:
                setattr(settings, attribute, self.parse_boolean(section[key]))

        return settings

    @staticmethod
    def parse_boolean(value: str) -> bool:
        key = value.strip().lower()
        if key not in configparser.RawConfigParser.BOOLEAN_STATES:
            raise ValueError(f"Not a boolean: {value}")
        return configparser.RawConfigParser.BOOLEAN_STATES[key]

    @staticmethod
    def parse_column_config(key: str, val: str) -> Tuple[str, str, KnownColumnType, Optional[str]]:
        """Parse a known-column line: RAWNAME = FriendlyName, TypeName[, Alias]"""
        parts = [part.strip() for part in val.split(',')]
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise ValueError(f"Column {key} needs a friendly name and a type: {val}")
        alias = parts[2] if len(parts) > 2 and parts[2] else None
        return key.strip().upper(), parts[0], KnownColumnType.from_name(parts[1]), alias

    def get_column_rows(self) -> List[Tuple[str, str, KnownColumnType, Optional[str]]]:
        """Extra known columns from the [Columns] section"""
        rows = []
        if CONFIG_SECTION_COLUMNS not in self.parser:
            return rows

        for key, val in self.parser[CONFIG_SECTION_COLUMNS].items():
            try:
                rows.append(self.parse_column_config(key, val))
            except ValueError as e:
                logger.warning(f"Invalid column in section {CONFIG_SECTION_COLUMNS}: {e}")

        return rows


class Config:
    """Main configuration class for the telem2gpx converter"""

    def __init__(self, cli_args):
        """Initialize with command line arguments"""
        self.parser = ConfigParser()
        self.cli_args = cli_args

        # Initialize defaults
        self.out_path = DEFAULT_OUT_PATH
        self.output_format = DEFAULT_OUTPUT_FORMAT
        self.autofill_settings = AutoFillSettings()
        self.extra_columns: List[Tuple[str, str, KnownColumnType, Optional[str]]] = []

        # Load configuration
        self._load_config()

    def _load_config(self):
        """Load and process configuration"""
        # Load config file
        self.parser.load_config_file(self.cli_args.config)

        # Get default settings
        defaults = self.parser.get_default_settings()

        # Set output path
        if self.cli_args.output:
            self.out_path = self.cli_args.output
        elif 'outpath' in defaults:
            self.out_path = defaults['outpath']

        # Set output format
        output_format = self.cli_args.format or defaults.get('format', DEFAULT_OUTPUT_FORMAT)
        if output_format.lower() not in OUTPUT_FORMATS:
            raise ValueError(f"Unsupported output format: {output_format}")
        self.output_format = output_format.lower()

        # Auto-fill thresholds and lenient mode
        self.autofill_settings = self.parser.get_autofill_settings()
        if self.cli_args.ignore_errors:
            self.autofill_settings.ignore_errors = True

        # Extra known columns
        self.extra_columns = self.parser.get_column_rows()

    @property
    def outPath(self) -> str:
        """Get output path"""
        return self.out_path

    @property
    def ignore_errors(self) -> bool:
        return self.autofill_settings.ignore_errors

    @property
    def output_type(self) -> DataSourceType:
        """Data source entry (extension and mimetype) of the output format"""
        return DataSourceType.from_file_type(OUTPUT_FORMATS[self.output_format])

    def column_rows(self) -> List[tuple]:
        """Built-in known columns followed by the configured ones, which win on a clash"""
        return list(defaultColumnRows()) + list(self.extra_columns)

    def column_registry(self) -> ColumnTypeRegistry:
        return ColumnTypeRegistry(self.column_rows)

    def autofill_options(self, timezone_offset: int = 0) -> AutoFillOptions:
        """AutoFillOptions built from configuration; the offset (minutes) is the pilot's local zone"""
        settings = self.autofill_settings
        return AutoFillOptions(
            takeoff_speed=settings.takeoff_speed,
            landing_speed=settings.effective_landing_speed,
            cross_country_threshold=settings.cross_country_threshold,
            timezone_offset=timezone_offset,
            include_heliports=settings.include_heliports,
            ignore_errors=settings.ignore_errors,
        )
