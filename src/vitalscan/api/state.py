"""Global application state: the session controller and recent results."""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import TYPE_CHECKING

from vitalscan.config import AppConfig, get_config
from vitalscan.sensor.provider import create_provider
from vitalscan.session.controller import Session, SessionController
from vitalscan.session.models import ScanResult, SessionEvent, SessionState
from vitalscan.session.scheduler import AsyncioScheduler

from .schemas import ScanResultModel, SessionErrorModel, SessionStatus

if TYPE_CHECKING:
	from vitalscan.sensor.stream import MediaProvider

logger = logging.getLogger(__name__)


def session_status(session: Session) -> SessionStatus:
	result = session.result
	error = session.error
	return SessionStatus(
		session_id=session.session_id,
		modality=session.modality,
		state=session.state,
		progress_percent=round(session.progress_percent, 1),
		samples_taken=session.samples_taken,
		result=ScanResultModel(**result.to_dict()) if result else None,
		error=SessionErrorModel(**error.to_dict()) if error else None,
	)


class AppState:
	"""Global application state container."""

	def __init__(self, config: AppConfig | None = None, provider: MediaProvider | None = None) -> None:
		self.config = config or get_config()
		self.controller = SessionController(
			provider or create_provider(self.config),
			scheduler=AsyncioScheduler(),
			app_config=self.config,
		)
		self.results: deque[ScanResult] = deque(maxlen=self.config.api.result_history)
		self._pending: set[asyncio.Task] = set()
		self._unsubscribe = self.controller.subscribe(self._on_event)

	def _on_event(self, event: SessionEvent) -> None:
		if event.state is SessionState.COMPLETE and event.result is not None:
			self.results.appendleft(event.result)
			logger.info(f"Scan complete: {event.modality.value} {event.result.bpm} bpm")
		elif event.state is SessionState.ERROR and event.error is not None:
			logger.warning(f"Scan failed: {event.error.reason.value} ({event.error.message})")

		from .ws.manager import manager

		try:
			loop = asyncio.get_running_loop()
		except RuntimeError:
			logger.debug("No running loop, session event not broadcast")
			return
		task = loop.create_task(manager.broadcast("scans", {
			"type": "session_event",
			"payload": event.to_dict(),
		}))
		self._pending.add(task)
		task.add_done_callback(self._pending.discard)

	def shutdown(self) -> None:
		self._unsubscribe()
		self.controller.shutdown()


# Global singleton
_app_state: AppState | None = None


def get_app_state() -> AppState:
	global _app_state
	if _app_state is None:
		_app_state = AppState()
	return _app_state


def reset_app_state() -> None:
	"""Shut down and drop the global state."""
	global _app_state
	if _app_state is not None:
		_app_state.shutdown()
	_app_state = None
