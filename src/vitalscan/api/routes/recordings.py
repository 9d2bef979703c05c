"""Recording API routes."""
from __future__ import annotations

import re
from pathlib import Path

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from vitalscan.storage.reader import RecordingReader, list_recordings

from ..schemas import RecordingInfo
from ..state import get_app_state

router = APIRouter(prefix="/api/recordings", tags=["recordings"])


def sanitize_recording_id(recording_id: str) -> str:
	"""Sanitize recording ID to prevent path traversal.

	Recording IDs are file stems: <start>_<modality>_<session id>.
	"""
	if not recording_id:
		raise HTTPException(status_code=400, detail="Recording ID cannot be empty")

	if '..' in recording_id or '/' in recording_id or '\\' in recording_id:
		raise HTTPException(status_code=400, detail="Invalid recording ID: path traversal not allowed")

	if not re.match(r'^[\w\-]+$', recording_id):
		raise HTTPException(status_code=400, detail="Invalid recording ID format")

	return recording_id


def get_recordings_dir() -> Path:
	return Path(get_app_state().config.paths.data_dir)


def _find_recording(recording_id: str) -> Path:
	path = get_recordings_dir() / f"{sanitize_recording_id(recording_id)}.parquet"
	if not path.exists():
		raise HTTPException(status_code=404, detail="Recording not found")
	return path


@router.get("", response_model=list[RecordingInfo])
async def get_recordings():
	"""List all recordings, newest first."""
	return [RecordingInfo(**s) for s in list_recordings(get_recordings_dir())]


@router.get("/{recording_id}", response_model=RecordingInfo)
async def get_recording(recording_id: str):
	"""Get recording details."""
	path = _find_recording(recording_id)
	try:
		return RecordingInfo(**RecordingReader(path).summary())
	except (OSError, ValueError) as e:
		raise HTTPException(status_code=500, detail=f"Unreadable recording: {e}")


@router.get("/{recording_id}/download")
async def download_recording(recording_id: str):
	path = _find_recording(recording_id)
	return FileResponse(path, filename=path.name, media_type="application/octet-stream")


@router.delete("/{recording_id}")
async def delete_recording(recording_id: str):
	"""Delete a recording."""
	_find_recording(recording_id).unlink()
	return {"deleted": recording_id}
