"""Read stored scan recordings."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pandas as pd
import pyarrow.parquet as pq
import structlog

from vitalscan.sensor.stream import Sample
from vitalscan.session.models import ScanResult

logger = structlog.get_logger(__name__)


class RecordingReader:
	"""Read one Parquet recording written by ParquetRecorder."""

	def __init__(self, path: str | Path) -> None:
		self.path = Path(path)
		if not self.path.exists():
			raise FileNotFoundError(f"Not found: {self.path}")
		if self.path.suffix not in (".parquet", ".pq"):
			raise ValueError(f"Unsupported format: {self.path.suffix}")
		self._metadata: dict[str, Any] | None = None
		logger.info("recording_reader_init", path=str(self.path))

	@property
	def metadata(self) -> dict[str, Any]:
		if self._metadata is None:
			pf = pq.read_metadata(self.path)
			raw = pf.metadata or {}
			decoded = {k.decode(): v.decode() for k, v in raw.items() if not k.startswith(b"ARROW")}
			for key in ("config", "result"):
				if key in decoded:
					decoded[key] = json.loads(decoded[key])
			decoded["num_rows"] = pf.num_rows
			self._metadata = decoded
		return self._metadata

	@property
	def modality(self) -> str:
		return self.metadata.get("modality", "")

	@property
	def status(self) -> str:
		return self.metadata.get("status", "unknown")

	@property
	def result(self) -> ScanResult | None:
		data = self.metadata.get("result")
		return ScanResult.from_dict(data) if data else None

	def get_samples_dataframe(self) -> pd.DataFrame:
		return pd.read_parquet(self.path)

	def samples(self) -> list[Sample]:
		df = self.get_samples_dataframe()
		return [Sample(timestamp=float(t), value=float(v)) for t, v in zip(df["timestamp"], df["value"])]

	def summary(self) -> dict[str, Any]:
		meta = self.metadata
		return {
			"id": self.path.stem,
			"path": str(self.path),
			"session_id": meta.get("session_id", ""),
			"modality": meta.get("modality", ""),
			"status": meta.get("status", "unknown"),
			"start_time": meta.get("start_time", ""),
			"sample_count": meta.get("num_rows", 0),
			"result": meta.get("result"),
		}


def list_recordings(data_dir: str | Path) -> list[dict[str, Any]]:
	"""Summaries of all recordings in data_dir, newest first."""
	data_dir = Path(data_dir)
	if not data_dir.exists():
		return []

	summaries = []
	for path in sorted(data_dir.glob("*.parquet"), reverse=True):
		try:
			summaries.append(RecordingReader(path).summary())
		except (OSError, ValueError) as e:
			logger.warning("recording_unreadable", path=str(path), error=str(e))
	return summaries
