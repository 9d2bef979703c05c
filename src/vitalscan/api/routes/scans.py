"""Scan session API routes."""
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from ..schemas import ScanResultModel, SessionStatus, StartScanRequest
from ..state import get_app_state, session_status

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/scans", tags=["scans"])


@router.post("", response_model=SessionStatus)
async def start_scan(request: StartScanRequest):
	"""Start a scan, tearing down any running one first."""
	state = get_app_state()
	current = state.controller.current

	if current is not None and not current.state.is_terminal and not request.replace:
		raise HTTPException(status_code=409, detail=f"Scan {current.session_id} is still {current.state.value}")

	try:
		session = await state.controller.start_session(
			request.modality,
			duration_ms=request.duration_ms,
			facing=request.facing,
			phases=request.phases,
			keep_stream_open=request.keep_stream_open,
			record=request.record,
		)
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))

	logger.info(f"Scan started: {session.session_id} ({session.modality.value})")
	return session_status(session)


@router.get("/current", response_model=SessionStatus)
async def get_current_scan():
	"""Status of the most recent scan."""
	session = get_app_state().controller.current
	if session is None:
		raise HTTPException(status_code=404, detail="No scan has been started")
	return session_status(session)


@router.delete("/current", response_model=SessionStatus)
async def cancel_current_scan():
	"""Cancel the running scan. Cancelling a finished scan changes nothing."""
	state = get_app_state()
	session = state.controller.current
	if session is None:
		raise HTTPException(status_code=404, detail="No scan has been started")
	state.controller.cancel_session(session)
	return session_status(session)


@router.get("/results", response_model=list[ScanResultModel])
async def list_results(limit: int | None = None):
	"""Completed results, newest first."""
	results = list(get_app_state().results)
	if limit is not None:
		results = results[:max(limit, 0)]
	return [ScanResultModel(**r.to_dict()) for r in results]
