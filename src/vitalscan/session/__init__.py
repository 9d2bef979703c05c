"""Scan sessions: lifecycle, timing and the single-session controller."""
from .controller import Session, SessionController
from .models import Modality, ScanConfig, ScanResult, SessionEvent, SessionState
from .scheduler import AsyncioScheduler, ManualScheduler, Scheduler, TimerHandle

__all__ = [
	"Session",
	"SessionController",
	"Modality",
	"ScanConfig",
	"ScanResult",
	"SessionEvent",
	"SessionState",
	# Timing
	"Scheduler",
	"TimerHandle",
	"AsyncioScheduler",
	"ManualScheduler",
]
