#!/usr/bin/env python3
"""
Exception types for the flight telemetry importer

Every error carries the pipeline stage that produced it so callers can
tell a detection failure from a coercion or matching failure.
"""

from typing import Optional


class TelemetryError(ValueError):
    """Base class for all telemetry errors"""
    stage = "telemetry"

    def describe(self) -> str:
        """Message prefixed with the failing stage"""
        return f"[{self.stage}] {self}"


class FormatError(TelemetryError):
    """No parser could validate the text, or the parser found a structural problem"""
    stage = "detect"


class GeometryError(TelemetryError):
    """Invalid coordinate (out of range or exactly zero)"""
    stage = "geometry"


class ParseError(TelemetryError):
    """A raw value could not be coerced to its column's semantic type"""
    stage = "coerce"

    def __init__(self, column: str, friendly_name: str, raw_value: str, cause: Optional[Exception] = None):
        self.column = column
        self.friendly_name = friendly_name
        self.raw_value = raw_value
        self.cause = cause
        super().__init__(f"Error parsing {column} ({friendly_name}) from value {raw_value} - {cause}")

    @property
    def is_geometry(self) -> bool:
        return isinstance(self.cause, GeometryError)


class MatchError(TelemetryError):
    """No date available, or zero or ambiguous candidate flights"""
    stage = "match"


class CacheInconsistency(TelemetryError):
    """A cache entry references a missing backing file"""
    stage = "cache"
