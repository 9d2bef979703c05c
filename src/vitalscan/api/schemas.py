"""Pydantic schemas for API requests/responses."""
from __future__ import annotations

from pydantic import BaseModel, Field

from vitalscan.session.models import Modality, SessionState


class StartScanRequest(BaseModel):
	modality: Modality
	duration_ms: int | None = Field(default=None, gt=0)
	facing: str | None = None  # "user", "environment", or omitted for the configured default
	phases: int | None = Field(default=None, ge=1, le=2)
	keep_stream_open: bool | None = None
	record: bool | None = None
	replace: bool = True  # cancel a running scan instead of rejecting the request


class ScanResultModel(BaseModel):
	modality: Modality
	bpm: int
	sample_count: int
	duration_ms: int
	session_id: str = ""
	completed_at: float = 0.0


class SessionErrorModel(BaseModel):
	reason: str
	message: str = ""


class SessionStatus(BaseModel):
	session_id: str
	modality: Modality
	state: SessionState
	progress_percent: float = 0.0
	samples_taken: int = 0
	result: ScanResultModel | None = None
	error: SessionErrorModel | None = None


# Recording schemas
class RecordingInfo(BaseModel):
	id: str
	path: str
	session_id: str = ""
	modality: str = ""
	status: str = "unknown"
	start_time: str = ""
	sample_count: int = 0
	result: ScanResultModel | None = None

