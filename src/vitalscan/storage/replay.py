"""Re-run a recorded session through the estimators on a virtual clock."""

from __future__ import annotations

import asyncio
from dataclasses import fields
from pathlib import Path

import structlog

from vitalscan.sensor.mock import MockMediaProvider, MockStream
from vitalscan.session.controller import Session
from vitalscan.session.models import Modality, ScanConfig
from vitalscan.session.scheduler import ManualScheduler

from .reader import RecordingReader

logger = structlog.get_logger(__name__)


def replay_config(reader: RecordingReader, sample_count: int) -> ScanConfig:
	"""Scan config stored with the recording, shortened to the recorded samples.

	A scan that was cut short only replays the ticks it actually sampled: the
	deadline moves to the tick after the last recorded sample.
	"""
	stored = reader.metadata.get("config") or {}
	known = {f.name for f in fields(ScanConfig)}
	config = ScanConfig(**{k: v for k, v in stored.items() if k in known})
	config.keep_stream_open = False
	config.record = False
	config.duration_ms = min(config.duration_ms, (sample_count + 1) * config.sample_interval_ms)
	return config


def replay_recording(path: str | Path) -> Session:
	"""Feed a recording's samples, in order, to a fresh session.

	Returns the finished session; its result (or error) is what the recorded
	scan would have produced from the same samples.
	"""
	reader = RecordingReader(path)
	modality = Modality(reader.modality)
	values = [s.value for s in reader.samples()]
	config = replay_config(reader, len(values))

	scheduler = ManualScheduler()
	stream = MockStream(modality.stream_kind, values=values or [0.0])
	session = Session(
		modality,
		MockMediaProvider(),
		scheduler=scheduler,
		config=config,
		session_id=f"replay-{reader.metadata.get('session_id', Path(path).stem)}",
		stream=stream,
	)

	asyncio.run(session.start())
	scheduler.advance(config.duration_ms / 1000)

	logger.info(
		"recording_replayed",
		path=str(path),
		state=session.state.value,
		samples=session.samples_taken,
		bpm=session.result.bpm if session.result else None,
	)
	return session
