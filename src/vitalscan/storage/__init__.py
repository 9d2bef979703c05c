"""Recordings of scan sessions."""

from vitalscan.storage.reader import RecordingReader, list_recordings
from vitalscan.storage.replay import replay_recording
from vitalscan.storage.writer import ParquetRecorder, RecordingWriter, SessionMetadata, recording_path

__all__ = [
	"RecordingWriter",
	"ParquetRecorder",
	"SessionMetadata",
	"recording_path",
	"RecordingReader",
	"list_recordings",
	"replay_recording",
]
