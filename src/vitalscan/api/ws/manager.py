"""WebSocket fan-out of scan session events."""
from __future__ import annotations

import asyncio
import json
import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


@dataclass
class ChannelStats:
	"""Delivery counters for one channel."""

	events_sent: int = 0
	deliveries: int = 0
	failed_deliveries: int = 0
	last_event_at: float | None = None

	def to_dict(self) -> dict[str, Any]:
		return {
			"events_sent": self.events_sent,
			"deliveries": self.deliveries,
			"failed_deliveries": self.failed_deliveries,
			"last_event_at": self.last_event_at,
		}


def stamp(message: dict[str, Any]) -> dict[str, Any]:
	"""Wrap bare payloads and add a send timestamp."""
	if "type" not in message:
		message = {"type": "data", "payload": message}
	return {"timestamp": time.time(), **message}


class ConnectionManager:
	"""Clients per channel. Events go out to everyone on the channel at once;
	a client whose send fails is forgotten.
	"""

	def __init__(self) -> None:
		self._clients: dict[str, set[WebSocket]] = defaultdict(set)
		self._stats: dict[str, ChannelStats] = defaultdict(ChannelStats)

	async def connect(self, websocket: WebSocket, channel: str) -> None:
		await websocket.accept()
		self._clients[channel].add(websocket)
		logger.info(f"Client joined '{channel}' ({len(self._clients[channel])} connected)")

	async def disconnect(self, websocket: WebSocket, channel: str) -> None:
		self._clients[channel].discard(websocket)
		logger.info(f"Client left '{channel}'")

	async def broadcast(self, channel: str, message: dict[str, Any]) -> None:
		"""Deliver one event to every client on channel."""
		clients = list(self._clients[channel])
		if not clients:
			return

		text = json.dumps(stamp(message))
		outcomes = await asyncio.gather(
			*(ws.send_text(text) for ws in clients),
			return_exceptions=True,
		)

		stats = self._stats[channel]
		stats.events_sent += 1
		stats.last_event_at = time.time()
		for ws, outcome in zip(clients, outcomes):
			if isinstance(outcome, Exception):
				stats.failed_deliveries += 1
				self._clients[channel].discard(ws)
				logger.debug(f"Dropped client from '{channel}': {outcome}")
			else:
				stats.deliveries += 1

	async def send_to(self, websocket: WebSocket, message: dict[str, Any]) -> None:
		"""Reply to a single client."""
		try:
			await websocket.send_json(stamp(message))
		except Exception as e:
			logger.error(f"Failed to send message: {e}")

	def client_count(self, channel: str) -> int:
		return len(self._clients[channel])

	def stats(self) -> dict[str, Any]:
		return {ch: s.to_dict() for ch, s in self._stats.items()}


# Global manager instance
manager = ConnectionManager()
