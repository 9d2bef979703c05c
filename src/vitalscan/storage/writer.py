"""Scan recordings: the raw samples of one session plus its outcome."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

if TYPE_CHECKING:
	from vitalscan.sensor.stream import Sample
	from vitalscan.session.models import ScanResult

logger = logging.getLogger(__name__)

# Schema version for compatibility checking
SCHEMA_VERSION = "1.0.0"

SAMPLE_SCHEMA = pa.schema([
	("timestamp", pa.float64()),
	("value", pa.float64()),
])


@dataclass
class SessionMetadata:
	session_id: str = ""
	modality: str = ""
	start_time: datetime = field(default_factory=datetime.now)
	config: dict[str, Any] = field(default_factory=dict)
	schema_version: str = SCHEMA_VERSION

	def __post_init__(self) -> None:
		if not self.session_id:
			self.session_id = self.start_time.strftime("%Y%m%d_%H%M%S")


@dataclass
class WriteMetrics:
	"""Metrics for tracking write performance."""

	samples_written: int = 0
	write_errors: int = 0
	bytes_written: int = 0
	last_error: str | None = None

	def to_dict(self) -> dict[str, Any]:
		return {
			"samples_written": self.samples_written,
			"write_errors": self.write_errors,
			"bytes_written": self.bytes_written,
			"last_error": self.last_error,
		}


class RecordingWriter(ABC):
	@abstractmethod
	def write_sample(self, sample: Sample) -> bool:
		"""Write sample. Returns True on success."""
		pass

	@abstractmethod
	def close(self, result: ScanResult | None = None, status: str = "complete") -> None:
		pass

	@property
	@abstractmethod
	def metrics(self) -> WriteMetrics:
		pass

	def __enter__(self) -> RecordingWriter:
		return self

	def __exit__(self, exc_type, exc_val, exc_tb) -> None:
		self.close(status="complete" if exc_type is None else "error")


class ParquetRecorder(RecordingWriter):
	"""Parquet writer for one session's samples. Result goes into file metadata."""

	def __init__(
		self,
		path: str | Path,
		metadata: SessionMetadata | None = None,
		batch_size: int = 100,
	) -> None:
		self.path = Path(path)
		self.metadata = metadata or SessionMetadata()
		self.batch_size = batch_size
		self._metrics = WriteMetrics()
		self.path.parent.mkdir(parents=True, exist_ok=True)

		self._buffer: list[dict[str, float]] = []
		self._writer: pq.ParquetWriter | None = None
		self._closed = False

		logger.info(f"ParquetRecorder initialized: {self.path}")

	@property
	def metrics(self) -> WriteMetrics:
		return self._metrics

	@property
	def closed(self) -> bool:
		return self._closed

	def write_sample(self, sample: Sample) -> bool:
		if self._closed:
			return False
		self._buffer.append({"timestamp": sample.timestamp, "value": sample.value})
		self._metrics.samples_written += 1
		if len(self._buffer) >= self.batch_size:
			return self._flush()
		return True

	def _ensure_writer(self) -> pq.ParquetWriter:
		if self._writer is None:
			self._writer = pq.ParquetWriter(self.path, SAMPLE_SCHEMA, compression="snappy")
		return self._writer

	def _flush(self) -> bool:
		if not self._buffer:
			return True

		try:
			df = pd.DataFrame(self._buffer)
			table = pa.Table.from_pandas(df, schema=SAMPLE_SCHEMA, preserve_index=False)
			self._ensure_writer().write_table(table)
			self._metrics.bytes_written += table.nbytes
			self._buffer.clear()
			return True

		except (pa.ArrowException, OSError) as e:
			self._metrics.write_errors += 1
			self._metrics.last_error = str(e)
			logger.error(f"ParquetRecorder flush error: {e}")
			return False

	def close(self, result: ScanResult | None = None, status: str = "complete") -> None:
		if self._closed:
			return
		self._closed = True

		try:
			self._flush()
			writer = self._ensure_writer()
			file_metadata = {
				b"schema_version": self.metadata.schema_version.encode(),
				b"session_id": self.metadata.session_id.encode(),
				b"modality": self.metadata.modality.encode(),
				b"start_time": self.metadata.start_time.isoformat().encode(),
				b"end_time": datetime.now().isoformat().encode(),
				b"config": json.dumps(self.metadata.config, default=str).encode(),
				b"status": status.encode(),
				b"result": json.dumps(result.to_dict() if result else None).encode(),
			}
			writer.add_key_value_metadata(file_metadata)
			writer.close()
			logger.info(
				f"ParquetRecorder closed: samples={self._metrics.samples_written}, "
				f"status={status}, errors={self._metrics.write_errors}"
			)
		except (pa.ArrowException, OSError) as e:
			self._metrics.write_errors += 1
			self._metrics.last_error = str(e)
			logger.error(f"ParquetRecorder close error: {e}")


def recording_path(data_dir: Path, metadata: SessionMetadata) -> Path:
	"""Standard file name: <start>_<modality>_<session id>.parquet."""
	stamp = metadata.start_time.strftime("%Y%m%d_%H%M%S")
	return Path(data_dir) / f"{stamp}_{metadata.modality}_{metadata.session_id}.parquet"
