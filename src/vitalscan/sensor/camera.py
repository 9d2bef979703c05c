"""Fingertip camera sampler backed by OpenCV.

A background thread keeps grabbing frames so a sampling tick never waits on
the device; each tick reduces the most recent frame to its mean red level.
"""
from __future__ import annotations

import threading

import cv2
import numpy as np
import structlog
from numpy.typing import NDArray

from vitalscan.config import SensorConfig
from vitalscan.errors import DeviceBusyError, DeviceNotFoundError, StreamInterruptedError

from .signal import mean_red_channel
from .stream import MediaStream, StreamKind

logger = structlog.get_logger(__name__)

FIRST_FRAME_TIMEOUT_S = 2.0


class CameraStream(MediaStream):
	"""Open cv2.VideoCapture plus its capture thread."""

	kind = StreamKind.CAMERA

	def __init__(self, device_index: int, config: SensorConfig | None = None, facing: str | None = None) -> None:
		self._config = config or SensorConfig()
		self.device_index = device_index
		self.facing = facing
		self._cap: cv2.VideoCapture | None = None
		self._latest_frame: NDArray[np.uint8] | None = None
		self._lock = threading.Lock()
		self._frame_ready = threading.Event()
		self._stop_event = threading.Event()
		self._thread: threading.Thread | None = None
		self._live = False
		self._closed = False

	@property
	def is_open(self) -> bool:
		return self._cap is not None and not self._closed

	@property
	def is_live(self) -> bool:
		return self.is_open and self._live

	def open(self) -> None:
		"""Open the device and wait for the first frame. Blocking."""
		cap = cv2.VideoCapture(self.device_index)
		if not cap.isOpened():
			cap.release()
			raise DeviceNotFoundError(f"No camera at index {self.device_index}")

		cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._config.camera_width)
		cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._config.camera_height)
		self._cap = cap
		self._live = True

		self._stop_event.clear()
		self._thread = threading.Thread(target=self._capture_loop, daemon=True)
		self._thread.start()

		if not self._frame_ready.wait(timeout=FIRST_FRAME_TIMEOUT_S):
			self.close()
			raise DeviceBusyError(f"Camera {self.device_index} opened but delivered no frames")

		logger.info(
			"camera_opened",
			index=self.device_index,
			width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
			height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
		)

	def _capture_loop(self) -> None:
		while not self._stop_event.is_set():
			ok, frame = self._cap.read()  # type: ignore[union-attr]
			if not ok:
				if not self._stop_event.is_set():
					logger.warning("camera_frame_grab_failed", index=self.device_index)
					self._live = False
				break
			with self._lock:
				self._latest_frame = frame
			self._frame_ready.set()

	def read_value(self) -> float:
		if not self.is_live:
			raise StreamInterruptedError(f"Camera {self.device_index} stopped delivering frames")
		with self._lock:
			frame = self._latest_frame
		if frame is None:
			raise StreamInterruptedError(f"Camera {self.device_index} has no frame")
		return mean_red_channel(frame)

	def close(self) -> None:
		if self._closed:
			return
		self._closed = True
		self._stop_event.set()
		if self._thread and self._thread.is_alive():
			self._thread.join(timeout=2.0)
		self._thread = None
		if self._cap is not None:
			self._cap.release()
		self._latest_frame = None
		logger.info("camera_released", index=self.device_index)


def resolve_camera_index(config: SensorConfig, facing: str | None) -> int:
	"""Map a facing preference to a device index, default index otherwise."""
	if facing is None:
		return config.camera_index
	return config.facing_indices.get(facing, config.camera_index)


def list_cameras(max_index: int = 5) -> list[dict]:
	"""Probe the first few device indices and report which ones open."""
	found = []
	for index in range(max_index):
		cap = cv2.VideoCapture(index)
		try:
			if cap.isOpened():
				found.append({"kind": StreamKind.CAMERA.value, "index": index, "name": f"camera {index}"})
		finally:
			cap.release()
	return found
