"""Camera device backed by ``cv2.VideoCapture`` for desktop and kiosk agents."""

import asyncio
from typing import List, Optional
import cv2
import numpy as np
from app.capture.camera import HAVE_ENOUGH_DATA, CameraNotFoundError, StreamConstraints
from app.core.logging import get_logger

logger = get_logger(__name__)


class OpenCVTrack:
    def __init__(self, capture: cv2.VideoCapture):
        self._capture = capture
        self.live = True

    def stop(self) -> None:
        if self.live:
            self._capture.release()
            self.live = False


class OpenCVStream:
    def __init__(self, capture: cv2.VideoCapture):
        self._capture = capture
        self._track = OpenCVTrack(capture)

    def get_tracks(self) -> List[OpenCVTrack]:
        return [self._track]

    @property
    def ready_state(self) -> int:
        return HAVE_ENOUGH_DATA if self._track.live and self._capture.isOpened() else 0

    @property
    def video_width(self) -> int:
        return int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH)) if self._track.live else 0

    @property
    def video_height(self) -> int:
        return int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT)) if self._track.live else 0

    async def read_frame(self) -> np.ndarray:
        if not self._track.live:
            raise RuntimeError("Camera stream has been stopped")
        ok, frame = await asyncio.to_thread(self._capture.read)
        if not ok or frame is None:
            raise RuntimeError("Failed to read a frame from the camera")
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)


class OpenCVCameraDevice:
    """
    Opens camera ``index``. Webcams have no facing mode, so only the
    requested resolution is applied; the driver picks the closest it supports.
    """

    def __init__(self, index: int = 0, backend: Optional[int] = None):
        self.index = index
        self.backend = backend

    def _open(self) -> cv2.VideoCapture:
        if self.backend is None:
            return cv2.VideoCapture(self.index)
        return cv2.VideoCapture(self.index, self.backend)

    async def get_user_media(self, constraints: StreamConstraints) -> OpenCVStream:
        capture = await asyncio.to_thread(self._open)
        if not capture.isOpened():
            capture.release()
            raise CameraNotFoundError(f"No camera available at index {self.index}")

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.ideal_width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.ideal_height)
        logger.debug(
            "Opened camera %d (requested %dx%d)", self.index, constraints.ideal_width, constraints.ideal_height
        )
        return OpenCVStream(capture)
