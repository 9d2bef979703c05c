"""FastAPI application for vitalscan."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vitalscan import __version__
from vitalscan.config import get_config

from .routes import recordings, scans
from .state import get_app_state, reset_app_state
from .ws import scans as ws_scans
from .ws.manager import manager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	"""Application lifespan handler."""
	logger.info("Starting vitalscan API")
	get_app_state().config.ensure_dirs()

	yield

	# Cleanup: closes any open camera or microphone stream
	logger.info("Shutting down vitalscan API")
	reset_app_state()


app = FastAPI(
	title="vitalscan API",
	description="Camera pulse and microphone breath-rate scans",
	version=__version__,
	lifespan=lifespan,
)

app.add_middleware(
	CORSMiddleware,
	allow_origins=get_config().api.cors_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

# REST routes
app.include_router(scans.router)
app.include_router(recordings.router)

# WebSocket routes
app.include_router(ws_scans.router)


@app.get("/")
async def root():
	"""Root endpoint."""
	return {"status": "ok", "service": "vitalscan"}


@app.get("/health")
async def health():
	"""Health check endpoint."""
	state = get_app_state()
	session = state.controller.current
	return {
		"status": "healthy",
		"session_state": session.state.value if session else None,
		"results": len(state.results),
		"mock_sensors": state.config.mock_sensors,
		"ws_clients": manager.client_count("scans"),
		"ws_stats": manager.stats(),
	}
