"""Scan session WebSocket endpoint."""
from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..state import get_app_state, session_status
from .manager import manager

logger = logging.getLogger(__name__)
router = APIRouter()


async def _send_status(websocket: WebSocket) -> None:
	session = get_app_state().controller.current
	payload = session_status(session).model_dump(mode="json") if session else None
	await manager.send_to(websocket, {"type": "session_state", "payload": payload})


@router.websocket("/ws/scans")
async def scans_websocket(websocket: WebSocket):
	"""Streams every session event; answers ping and get_status."""
	await manager.connect(websocket, "scans")
	await _send_status(websocket)

	try:
		while True:
			data = await websocket.receive_json()
			msg_type = data.get("type")
			if msg_type == "ping":
				await manager.send_to(websocket, {"type": "pong"})
			elif msg_type == "get_status":
				await _send_status(websocket)

	except WebSocketDisconnect:
		logger.info("Scans WebSocket disconnected")
	except Exception as e:
		logger.error(f"Scans WebSocket error: {e}")
	finally:
		await manager.disconnect(websocket, "scans")
