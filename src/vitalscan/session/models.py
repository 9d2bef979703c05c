"""Session states, configuration and the records sessions emit."""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

from vitalscan.errors import SessionError
from vitalscan.sensor.stream import StreamKind

if TYPE_CHECKING:
	from vitalscan.config import AppConfig


class Modality(str, Enum):
	PULSE = "pulse"
	BREATH = "breath"

	@property
	def stream_kind(self) -> StreamKind:
		return StreamKind.CAMERA if self is Modality.PULSE else StreamKind.MICROPHONE


class SessionState(str, Enum):
	IDLE = "idle"
	REQUESTING_ACCESS = "requesting_access"
	SAMPLING = "sampling"
	ESTIMATING = "estimating"
	COMPLETE = "complete"
	ERROR = "error"
	CANCELLED = "cancelled"

	@property
	def is_terminal(self) -> bool:
		return self in (SessionState.COMPLETE, SessionState.ERROR, SessionState.CANCELLED)


@dataclass
class ScanConfig:
	"""Per-session settings, usually derived from AppConfig."""

	duration_ms: int = 10000
	sample_interval_ms: int = 100
	progress_interval_ms: int = 100
	progress_start_percent: float = 5.0
	phases: int = 1
	facing: str | None = None
	window_seconds: float | None = 10.0  # pulse rolling window
	on_threshold: float = 10.0
	off_threshold: float = 5.0
	keep_stream_open: bool = False
	record: bool = False

	@classmethod
	def for_modality(cls, modality: Modality, app_config: AppConfig | None = None, **overrides: Any) -> ScanConfig:
		"""Build from the application config, then apply non-None overrides."""
		from vitalscan.config import get_config

		cfg = app_config or get_config()
		base = cls(
			sample_interval_ms=cfg.session.sample_interval_ms,
			progress_interval_ms=cfg.session.progress_interval_ms,
			progress_start_percent=cfg.session.progress_start_percent,
			phases=cfg.session.phases,
			keep_stream_open=cfg.session.keep_stream_open,
			record=cfg.session.record,
			on_threshold=cfg.breath.on_threshold,
			off_threshold=cfg.breath.off_threshold,
		)
		if modality is Modality.PULSE:
			base.duration_ms = cfg.pulse.duration_ms
			base.window_seconds = cfg.pulse.window_seconds
			base.facing = cfg.sensor.preferred_facing
		else:
			base.duration_ms = cfg.breath.duration_ms
			base.window_seconds = None

		if modality is Modality.BREATH:
			# microphones have no facing
			overrides.pop("facing", None)
		known = {f.name for f in fields(cls)}
		updates = {k: v for k, v in overrides.items() if k in known and v is not None}
		return replace(base, **updates)

	def validate(self) -> list[str]:
		errors = []
		if self.duration_ms <= 0:
			errors.append(f"duration_ms ({self.duration_ms}) must be positive")
		if self.sample_interval_ms <= 0:
			errors.append(f"sample_interval_ms ({self.sample_interval_ms}) must be positive")
		if self.progress_interval_ms <= 0:
			errors.append(f"progress_interval_ms ({self.progress_interval_ms}) must be positive")
		if self.phases not in (1, 2):
			errors.append(f"phases ({self.phases}) must be 1 or 2")
		if self.on_threshold <= self.off_threshold:
			errors.append(f"on_threshold ({self.on_threshold}) must be > off_threshold ({self.off_threshold})")
		return errors


@dataclass(frozen=True)
class ScanResult:
	"""The only artifact a finished session hands downstream."""
	modality: Modality
	bpm: int
	sample_count: int
	duration_ms: int
	session_id: str = ""
	completed_at: float = 0.0  # wall clock, seconds since epoch

	def to_dict(self) -> dict[str, Any]:
		return {
			"modality": self.modality.value,
			"bpm": self.bpm,
			"sample_count": self.sample_count,
			"duration_ms": self.duration_ms,
			"session_id": self.session_id,
			"completed_at": self.completed_at,
		}

	@classmethod
	def from_dict(cls, data: dict[str, Any]) -> ScanResult:
		return cls(
			modality=Modality(data["modality"]),
			bpm=int(data["bpm"]),
			sample_count=int(data["sample_count"]),
			duration_ms=int(data["duration_ms"]),
			session_id=data.get("session_id", ""),
			completed_at=float(data.get("completed_at", 0.0)),
		)


@dataclass
class SessionEvent:
	"""State transition or progress update published to subscribers."""
	session_id: str
	modality: Modality
	state: SessionState
	progress_percent: float | None = None
	phase: int | None = None
	result: ScanResult | None = None
	error: SessionError | None = None
	extra: dict[str, Any] = field(default_factory=dict)

	def to_dict(self) -> dict[str, Any]:
		data: dict[str, Any] = {
			"session_id": self.session_id,
			"modality": self.modality.value,
			"state": self.state.value,
		}
		if self.progress_percent is not None:
			data["progress_percent"] = round(self.progress_percent, 1)
		if self.phase is not None:
			data["phase"] = self.phase
		if self.result is not None:
			data["result"] = self.result.to_dict()
		if self.error is not None:
			data["error"] = self.error.to_dict()
		data.update(self.extra)
		return data
