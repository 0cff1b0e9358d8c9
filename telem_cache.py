#!/usr/bin/env python3
"""
Telemetry cache module for the flight telemetry importer

A flight's raw telemetry is kept verbatim in a raw-data store, one file per
flight. Next to it the cache keeps an encoded path and its distance so that
maps and totals do not need the raw data to be parsed again.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Union

from telem_model import FileType, LatLong, PathCodec, RawDataStore, ReferenceStore
from telem_columns import ColumnTypeRegistry
from telem_errors import CacheInconsistency
from telem_flight_data import FlightData
from telem_constants import TELEMETRY_EXTENSION

# Configure logger
logger = logging.getLogger(__name__)


@dataclass
class TelemetryCacheEntry:
    """Cached summary of one flight's telemetry"""
    flight_id: Optional[int] = None
    raw_data: Optional[str] = None
    encoded_path: Optional[str] = None
    distance: Optional[float] = None
    telemetry_type: FileType = FileType.TEXT
    error: str = ''
    compressed: int = 0

    @property
    def has_compressed_path(self) -> bool:
        return bool(self.encoded_path)

    @property
    def has_raw_path(self) -> bool:
        return bool(self.raw_data)

    @property
    def has_path(self) -> bool:
        return self.has_raw_path or self.has_compressed_path

    @property
    def uncompressed(self) -> int:
        """Size of the raw telemetry"""
        return len(self.raw_data) if self.raw_data else 0

    @property
    def encoded_size(self) -> int:
        return len(self.encoded_path) if self.encoded_path else 0

    def __str__(self) -> str:
        return f"Uncompressed {self.uncompressed} Compressed {self.compressed} Path {self.encoded_size}"


class FileRawDataStore:
    """Raw telemetry as <flight id>.telemetry files in one directory"""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def path_for(self, flight_id: Optional[int]) -> Path:
        if flight_id is None:
            raise ValueError("No flight ID for telemetry file")
        if flight_id < 0:
            raise ValueError(f"New flight {flight_id} has no telemetry file")
        # Same extension whatever the format, so a new upload overwrites the old one
        return self.directory / f"{flight_id}{TELEMETRY_EXTENSION}"

    def save(self, flight_id: int, raw_data: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self.path_for(flight_id).write_text(raw_data, encoding='utf-8')

    def load(self, flight_id: int) -> str:
        return self.path_for(flight_id).read_text(encoding='utf-8')

    def exists(self, flight_id: int) -> bool:
        return self.path_for(flight_id).is_file()

    def delete(self, flight_id: int) -> None:
        path = self.path_for(flight_id)
        if path.is_file():
            path.unlink()

    def files(self) -> List[Path]:
        if not self.directory.is_dir():
            return []
        return sorted(self.directory.glob(f"*{TELEMETRY_EXTENSION}"))


class TelemetryCache:
    """
    Computes, persists and serves cached paths and distances.
    The encoded path is authoritative once computed; raw data is re-parsed
    only when no encoded path or distance is available.
    """

    def __init__(self, codec: PathCodec,
                 raw_store: Optional[RawDataStore] = None,
                 reference_store: Optional[ReferenceStore] = None,
                 flight_data_factory: Optional[Callable[[], FlightData]] = None,
                 registry: Optional[ColumnTypeRegistry] = None):
        self.codec = codec
        self.raw_store = raw_store
        self.reference_store = reference_store
        self.registry = registry or ColumnTypeRegistry()
        self.flight_data_factory = flight_data_factory or (lambda: FlightData(self.registry))

    def refresh(self, entry: TelemetryCacheEntry, telemetry: Optional[str] = None) -> None:
        """
        Derive the encoded path, distance and format from telemetry (or the
        entry's raw data). The path is cached even if parsing reported errors.
        """
        text = telemetry if telemetry else entry.raw_data
        if not text:
            raise ValueError(f"No telemetry to derive a path from for flight {entry.flight_id}")

        logger.debug(f"Deriving cached path for flight {entry.flight_id}")
        flight_data = self.flight_data_factory()
        result = flight_data.parse_flight_data(text)
        if not result.success:
            entry.error = result.error_string

        encoded = self.codec.encode(flight_data.get_trajectory())
        entry.encoded_path = encoded.encoded_path
        entry.distance = encoded.distance
        entry.telemetry_type = result.file_type

    def distance(self, entry: TelemetryCacheEntry) -> float:
        """Cached distance, parsing the raw data if necessary; 0 if there is no path"""
        if entry.distance is None and entry.has_raw_path:
            self.refresh(entry)
        return entry.distance if entry.distance is not None else 0.0

    def path(self, entry: TelemetryCacheEntry) -> List[LatLong]:
        """Decoded path, deriving the encoded path from raw data first if needed"""
        if not entry.has_compressed_path:
            self.refresh(entry)
        return self.codec.decode(entry.encoded_path)

    def save_data(self, entry: TelemetryCacheEntry) -> None:
        if not entry.raw_data:
            raise ValueError(f"No raw data to save for flight {entry.flight_id}")
        self.raw_store.save(entry.flight_id, entry.raw_data)

    def load_data(self, entry: TelemetryCacheEntry) -> str:
        """Read the raw telemetry back from the store into the entry"""
        if not self.raw_store.exists(entry.flight_id):
            raise CacheInconsistency(f"Telemetry file for flight {entry.flight_id} not found")
        entry.raw_data = self.raw_store.load(entry.flight_id)
        return entry.raw_data

    def commit(self, entry: TelemetryCacheEntry) -> None:
        if entry.encoded_path is None and entry.raw_data:
            self.refresh(entry)
        if self.reference_store is not None:
            self.reference_store.save(entry)
        if entry.raw_data:
            self.save_data(entry)

    def delete(self, entry: TelemetryCacheEntry) -> None:
        """Remove the backing file, then the cached reference"""
        self.raw_store.delete(entry.flight_id)
        if self.reference_store is not None:
            self.reference_store.delete(entry.flight_id)

    def find_orphaned_files(self) -> List[Path]:
        """Backing files with no cached reference"""
        referenced = {self.raw_store.path_for(flight_id) for flight_id in self.reference_store.flight_ids()}
        return [path for path in self.raw_store.files() if path not in referenced]

    def find_orphaned_refs(self) -> List[int]:
        """Cached references whose backing file is missing"""
        return [flight_id for flight_id in self.reference_store.flight_ids()
                if not self.raw_store.exists(flight_id)]
