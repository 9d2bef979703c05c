"""Scan session state machine and the controller that owns the active session."""
from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable
from dataclasses import asdict
from typing import TYPE_CHECKING, Any

import structlog

from vitalscan.errors import ErrorReason, SessionError, StreamInterruptedError, VitalScanError
from vitalscan.sensor.stream import MediaProvider, MediaStream, open_stream_with_fallback, sample_once
from vitalscan.vitals.breath import BreathRateEstimator
from vitalscan.vitals.pulse import PulseEstimator

from .models import Modality, ScanConfig, ScanResult, SessionEvent, SessionState
from .scheduler import AsyncioScheduler, Scheduler, TimerHandle

if TYPE_CHECKING:
	from vitalscan.config import AppConfig
	from vitalscan.storage.writer import RecordingWriter

logger = structlog.get_logger(__name__)

EventCallback = Callable[[SessionEvent], None]


class Session:
	"""One observation run, from start() to a terminal state.

	Owns its buffer, its timers and its stream. Whatever way the session ends,
	timers are cancelled and the stream is closed exactly once. A finished
	session is never restarted; build a new one.
	"""

	VALID_TRANSITIONS = {
		SessionState.IDLE: {SessionState.REQUESTING_ACCESS, SessionState.CANCELLED},
		SessionState.REQUESTING_ACCESS: {SessionState.SAMPLING, SessionState.ERROR, SessionState.CANCELLED},
		SessionState.SAMPLING: {SessionState.ESTIMATING, SessionState.ERROR, SessionState.CANCELLED},
		SessionState.ESTIMATING: {SessionState.COMPLETE, SessionState.ERROR, SessionState.CANCELLED},
		SessionState.COMPLETE: set(),
		SessionState.ERROR: set(),
		SessionState.CANCELLED: set(),
	}

	def __init__(
		self,
		modality: Modality,
		provider: MediaProvider,
		scheduler: Scheduler | None = None,
		config: ScanConfig | None = None,
		session_id: str | None = None,
		stream: MediaStream | None = None,
		recorder: RecordingWriter | None = None,
	) -> None:
		self.modality = Modality(modality)
		self.config = config or ScanConfig.for_modality(self.modality)
		errors = self.config.validate()
		if errors:
			raise ValueError("; ".join(errors))

		self.session_id = session_id or uuid.uuid4().hex[:12]
		self._provider = provider
		self._scheduler = scheduler or AsyncioScheduler()
		self._stream = stream
		self._recorder = recorder
		self._state = SessionState.IDLE
		self._start_time: float | None = None
		self._result: ScanResult | None = None
		self._error: SessionError | None = None
		self._phase: int | None = None
		self._samples_taken = 0
		self._last_value: float | None = None

		self._tick_handle: TimerHandle | None = None
		self._progress_handle: TimerHandle | None = None
		self._deadline_handle: TimerHandle | None = None
		self._callbacks: list[EventCallback] = []
		self._finished = asyncio.Event()

		if self.modality is Modality.PULSE:
			self._estimator: PulseEstimator | BreathRateEstimator = PulseEstimator(
				window_seconds=self.config.window_seconds or 10.0
			)
		else:
			self._estimator = BreathRateEstimator(
				on_threshold=self.config.on_threshold,
				off_threshold=self.config.off_threshold,
			)

		self._log = logger.bind(session_id=self.session_id, modality=self.modality.value)

	@property
	def state(self) -> SessionState:
		return self._state

	@property
	def result(self) -> ScanResult | None:
		return self._result

	@property
	def error(self) -> SessionError | None:
		return self._error

	@property
	def start_time(self) -> float | None:
		return self._start_time

	@property
	def stream(self) -> MediaStream | None:
		return self._stream

	@property
	def buffer(self):
		return self._estimator.buffer

	@property
	def samples_taken(self) -> int:
		return self._samples_taken

	@property
	def progress_percent(self) -> float:
		if self._state is SessionState.COMPLETE or self._state is SessionState.ESTIMATING:
			return 100.0
		if self._state is not SessionState.SAMPLING or self._start_time is None:
			return 0.0
		return self._project_progress(self._scheduler.now() - self._start_time)

	def on_event(self, callback: EventCallback) -> None:
		"""Register callback for transitions and progress updates."""
		self._callbacks.append(callback)

	def _emit(self, event: SessionEvent) -> None:
		for cb in self._callbacks:
			try:
				cb(event)
			except Exception:
				self._log.exception("event_callback_error", state=event.state.value)

	def _transition(self, new_state: SessionState, **event_fields) -> bool:
		"""Attempt state transition. Returns True if valid."""
		if new_state not in self.VALID_TRANSITIONS[self._state]:
			self._log.warning("invalid_transition", old=self._state.value, new=new_state.value)
			return False
		old_state = self._state
		self._state = new_state
		self._log.info("state_transition", old=old_state.value, new=new_state.value)
		self._emit(SessionEvent(
			session_id=self.session_id,
			modality=self.modality,
			state=new_state,
			**event_fields,
		))
		if new_state.is_terminal:
			self._finished.set()
		return True

	async def start(self) -> None:
		"""Request device access and begin sampling.

		Failures end in ERROR instead of raising. A cancel() that lands while
		access is pending wins: the stream that arrives late is closed.
		"""
		if self._state is not SessionState.IDLE:
			raise RuntimeError(f"Session {self.session_id} already started ({self._state.value})")

		self._transition(SessionState.REQUESTING_ACCESS)

		if self._stream is None:
			try:
				stream = await open_stream_with_fallback(
					self._provider, self.modality.stream_kind, self.config.facing
				)
			except asyncio.CancelledError:
				self.cancel()
				raise
			except VitalScanError as e:
				self._log.warning("access_failed", reason=e.reason.value, error=str(e))
				self._fail(SessionError.from_exception(e))
				return
			except Exception as e:
				self._log.exception("access_failed_unexpected")
				self._fail(SessionError(ErrorReason.UNSUPPORTED, f"{type(e).__name__}: {e}"))
				return

			if self._state is not SessionState.REQUESTING_ACCESS:
				# cancelled while waiting for the device
				stream.close()
				return
			self._stream = stream
		else:
			self._log.info("reusing_open_stream")

		self._begin_sampling()

	def _begin_sampling(self) -> None:
		self._start_time = self._scheduler.now()
		self._phase = 1 if self.config.phases == 2 else None
		self._transition(
			SessionState.SAMPLING,
			progress_percent=self.config.progress_start_percent,
			phase=self._phase,
		)
		self._tick_handle = self._scheduler.call_every(self.config.sample_interval_ms / 1000, self._on_tick)
		self._progress_handle = self._scheduler.call_every(
			self.config.progress_interval_ms / 1000, self._on_progress
		)
		self._deadline_handle = self._scheduler.call_later(self.config.duration_ms / 1000, self._on_deadline)

	def _on_tick(self) -> None:
		if self._state is not SessionState.SAMPLING or self._stream is None:
			return
		try:
			if not self._stream.is_live:
				raise StreamInterruptedError(f"{self.modality.stream_kind.value} stream ended")
			sample = sample_once(self._stream, self._scheduler.now())
		except VitalScanError as e:
			self._log.warning("sample_failed", reason=e.reason.value, error=str(e))
			self._fail(SessionError.from_exception(e))
			return
		except Exception as e:
			self._log.exception("sample_failed_unexpected")
			self._fail(SessionError.from_exception(e))
			return

		self._estimator.push(sample)
		self._samples_taken += 1
		self._last_value = sample.value
		if self._recorder is not None:
			self._recorder.write_sample(sample)

	def _project_progress(self, elapsed: float) -> float:
		start = self.config.progress_start_percent
		fraction = min(max(elapsed / (self.config.duration_ms / 1000), 0.0), 1.0)
		return start + (100.0 - start) * fraction

	def _on_progress(self) -> None:
		if self._state is not SessionState.SAMPLING or self._start_time is None:
			return
		elapsed = self._scheduler.now() - self._start_time
		if self.config.phases == 2:
			phase = 1 if elapsed < self.config.duration_ms / 2000 else 2
			if phase != self._phase:
				self._log.info("phase_changed", phase=phase)
				self._phase = phase
		self._emit(SessionEvent(
			session_id=self.session_id,
			modality=self.modality,
			state=self._state,
			progress_percent=self._project_progress(elapsed),
			phase=self._phase,
			extra=self._live_readout(),
		))

	def _live_readout(self) -> dict[str, Any]:
		"""Latest signal value, plus the running breath count for breath scans."""
		readout: dict[str, Any] = {"samples": self._samples_taken, "last_value": self._last_value}
		if isinstance(self._estimator, BreathRateEstimator):
			readout["cycle_count"] = self._estimator.cycle_count
		return readout

	def _on_deadline(self) -> None:
		if self._state is not SessionState.SAMPLING:
			return
		self._cancel_timers()
		self._transition(SessionState.ESTIMATING, progress_percent=100.0)

		try:
			result = self._estimate()
		except VitalScanError as e:
			self._log.warning("estimation_failed", reason=e.reason.value, error=str(e))
			self._fail(SessionError.from_exception(e))
			return

		self._result = result
		self._teardown(release_stream=not self.config.keep_stream_open, status="complete")
		self._log.info("scan_complete", bpm=result.bpm, samples=result.sample_count)
		self._transition(SessionState.COMPLETE, progress_percent=100.0, result=result)

	def _estimate(self) -> ScanResult:
		if isinstance(self._estimator, PulseEstimator):
			pulse = self._estimator.estimate()
			bpm, count, duration_ms = pulse.rate_bpm, pulse.sample_count, round(pulse.duration_s * 1000)
		else:
			breath = self._estimator.estimate(self.config.duration_ms)
			bpm, count, duration_ms = breath.rate_bpm, breath.sample_count, int(breath.window_ms)
		return ScanResult(
			modality=self.modality,
			bpm=bpm,
			sample_count=count,
			duration_ms=duration_ms,
			session_id=self.session_id,
			completed_at=time.time(),
		)

	def _fail(self, error: SessionError) -> None:
		if self._state.is_terminal:
			return
		self._error = error
		self._teardown(release_stream=True, status="error")
		self._transition(SessionState.ERROR, error=error)

	def cancel(self) -> None:
		"""Stop everything now. Safe from any state, any number of times.

		After COMPLETE this only releases a stream kept open by policy.
		"""
		if self._state.is_terminal:
			self._release_stream()
			return
		self._teardown(release_stream=True, status="cancelled")
		self._transition(SessionState.CANCELLED)

	def _cancel_timers(self) -> None:
		for handle in (self._tick_handle, self._progress_handle, self._deadline_handle):
			if handle is not None:
				handle.cancel()
		self._tick_handle = None
		self._progress_handle = None
		self._deadline_handle = None

	def _release_stream(self) -> None:
		if self._stream is not None:
			stream, self._stream = self._stream, None
			stream.close()
			self._log.info("stream_released")

	def _teardown(self, release_stream: bool, status: str) -> None:
		self._cancel_timers()
		if release_stream:
			self._release_stream()
		self._estimator.reset()
		if self._recorder is not None:
			self._recorder.close(result=self._result, status=status)
			self._recorder = None

	def detach_stream(self) -> MediaStream | None:
		"""Hand a stream kept open after COMPLETE over to the caller."""
		if self._state is not SessionState.COMPLETE:
			return None
		stream, self._stream = self._stream, None
		return stream

	async def wait(self) -> SessionState:
		"""Wait until the session reaches a terminal state."""
		await self._finished.wait()
		return self._state


class SessionController:
	"""Owns at most one active session and the stream retained between scans.

	Starting a session tears down the previous one before requesting a new
	stream, so two streams are never open at once.
	"""

	def __init__(
		self,
		provider: MediaProvider,
		scheduler: Scheduler | None = None,
		app_config: AppConfig | None = None,
	) -> None:
		from vitalscan.config import get_config

		self._provider = provider
		self._scheduler = scheduler or AsyncioScheduler()
		self._app_config = app_config or get_config()
		self._current: Session | None = None
		self._retained: MediaStream | None = None
		self._subscribers: list[EventCallback] = []
		self._start_lock: asyncio.Lock | None = None

	@property
	def current(self) -> Session | None:
		return self._current

	@property
	def retained_stream(self) -> MediaStream | None:
		return self._retained

	@property
	def app_config(self) -> AppConfig:
		return self._app_config

	def subscribe(self, callback: EventCallback) -> Callable[[], None]:
		"""Receive every event of every session. Returns an unsubscribe function."""
		self._subscribers.append(callback)

		def unsubscribe() -> None:
			if callback in self._subscribers:
				self._subscribers.remove(callback)

		return unsubscribe

	def _dispatch(self, event: SessionEvent) -> None:
		session = self._current
		if (
			event.state is SessionState.COMPLETE
			and session is not None
			and session.session_id == event.session_id
			and session.config.keep_stream_open
		):
			self._retained = session.detach_stream()
		for cb in list(self._subscribers):
			try:
				cb(event)
			except Exception:
				logger.exception("subscriber_error", session_id=event.session_id)

	def _take_retained(self, modality: Modality) -> MediaStream | None:
		stream, self._retained = self._retained, None
		if stream is None:
			return None
		if stream.kind is modality.stream_kind and stream.is_live:
			return stream
		stream.close()
		return None

	def _make_recorder(self, session_id: str, modality: Modality, config: ScanConfig) -> RecordingWriter | None:
		if not config.record:
			return None
		from vitalscan.storage.writer import ParquetRecorder, SessionMetadata, recording_path

		metadata = SessionMetadata(session_id=session_id, modality=modality.value, config=asdict(config))
		return ParquetRecorder(recording_path(self._app_config.paths.data_dir, metadata), metadata)

	async def start_session(
		self,
		modality: Modality | str,
		config: ScanConfig | None = None,
		**overrides: Any,
	) -> Session:
		"""Tear down any prior session, then build and start a new one.

		Keyword overrides (duration_ms, facing, ...) apply on top of the
		application config when no explicit config is given.
		An invalid config raises ValueError before the running session is
		touched or a recorder is created.
		"""
		modality = Modality(modality)
		config = config or ScanConfig.for_modality(modality, self._app_config, **overrides)
		errors = config.validate()
		if errors:
			raise ValueError("; ".join(errors))

		if self._current is not None:
			self._current.cancel()
		if self._start_lock is None:
			self._start_lock = asyncio.Lock()

		# A prior session still waiting on its device holds the lock until its late stream is closed
		async with self._start_lock:
			stream = self._take_retained(modality) if config.keep_stream_open else None
			if stream is None:
				self._close_retained()

			session_id = uuid.uuid4().hex[:12]
			session = Session(
				modality,
				self._provider,
				scheduler=self._scheduler,
				config=config,
				session_id=session_id,
				stream=stream,
				recorder=self._make_recorder(session_id, modality, config),
			)
			session.on_event(self._dispatch)
			self._current = session
			logger.info("session_created", session_id=session_id, modality=modality.value)
			await session.start()
		return session

	def cancel_session(self, session: Session | None = None) -> None:
		"""Cancel the given (default: current) session and drop any retained stream."""
		target = session or self._current
		if target is not None:
			target.cancel()
		self._close_retained()

	def _close_retained(self) -> None:
		if self._retained is not None:
			stream, self._retained = self._retained, None
			stream.close()

	def shutdown(self) -> None:
		"""Release everything; used on application teardown."""
		self.cancel_session()
		logger.info("session_controller_shutdown")
