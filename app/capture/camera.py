"""
Live camera capture for property photos.

``CameraCapture`` is the single owner of the video stream for one capture
session. Presentation code gets read-only frame snapshots, never the stream.

States::

    CLOSED -> OPENING -> LIVE -> CAPTURING -> LIVE
                  \\-> ERROR
    any state -> CLOSED  (close_camera)
"""

import asyncio
import enum
import io
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol
import numpy as np
from PIL import Image
from app.capture.evidence import EvidenceFile, PreviewHandle
from app.client.errors import DeviceError, DeviceErrorKind
from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

# Media element readiness: a full frame is available for drawing
HAVE_ENOUGH_DATA = 4
JPEG_QUALITY = 95

NOT_READY_MESSAGE = "Camera not ready. Please open camera first."


class CameraState(str, enum.Enum):
    CLOSED = "CLOSED"
    OPENING = "OPENING"
    LIVE = "LIVE"
    CAPTURING = "CAPTURING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class StreamConstraints:
    facing_mode: str = "environment"
    ideal_width: int = 1920
    ideal_height: int = 1080
    audio: bool = False


class CameraNotFoundError(Exception):
    """The device has no camera matching the request."""


class MediaTrack(Protocol):
    def stop(self) -> None:
        ...


class VideoStream(Protocol):
    ready_state: int
    video_width: int
    video_height: int

    def get_tracks(self) -> List[MediaTrack]:
        ...

    async def read_frame(self) -> np.ndarray:
        """Current frame as an RGB ``uint8`` array of shape (height, width, 3)."""
        ...


class CameraDevice(Protocol):
    async def get_user_media(self, constraints: StreamConstraints) -> VideoStream:
        ...


def classify_camera_error(exc: BaseException) -> DeviceError:
    if isinstance(exc, PermissionError):
        return DeviceError(
            DeviceErrorKind.PERMISSION_DENIED, "Camera permission denied. Please allow camera access."
        )
    if isinstance(exc, (CameraNotFoundError, FileNotFoundError)):
        return DeviceError(
            DeviceErrorKind.DEVICE_NOT_FOUND, "No camera found. Please connect a camera device."
        )
    return DeviceError(DeviceErrorKind.OTHER, str(exc) or "Failed to access camera. Please try again.")


def photo_file_name(taken_at: datetime) -> str:
    """``property-photo-<ISO timestamp>.jpg`` with ``:`` and ``.`` made filesystem-safe."""
    taken_at = taken_at.astimezone(timezone.utc)
    iso = taken_at.strftime("%Y-%m-%dT%H:%M:%S.") + f"{taken_at.microsecond // 1000:03d}Z"
    return f"property-photo-{re.sub(r'[:.]', '-', iso)}.jpg"


def encode_jpeg(frame: np.ndarray, width: int, height: int) -> bytes:
    """Rasterise a frame at the stream's native resolution and encode it as JPEG."""
    image = Image.fromarray(np.ascontiguousarray(frame, dtype=np.uint8)).convert("RGB")
    if image.size != (width, height):
        image = image.resize((width, height))
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=JPEG_QUALITY)
    return buffer.getvalue()


def _stop_tracks(stream: VideoStream) -> None:
    for track in stream.get_tracks():
        try:
            track.stop()
        except Exception as exc:
            logger.warning("Failed to stop camera track: %s", exc)


class CameraCapture:
    def __init__(
        self,
        device: Optional[CameraDevice],
        constraints: Optional[StreamConstraints] = None,
        ready_timeout: float = settings.CAMERA_READY_TIMEOUT_SECONDS,
        poll_interval: float = 0.05,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._device = device
        self._constraints = constraints or StreamConstraints()
        self._ready_timeout = ready_timeout
        self._poll_interval = poll_interval
        self._clock = clock

        self._stream: Optional[VideoStream] = None
        self._opening_stream: Optional[VideoStream] = None
        self._lock = asyncio.Lock()
        # Bumped by close_camera(); an open that sees a newer value was superseded
        self._generation = 0

        self.state = CameraState.CLOSED
        self.error: Optional[DeviceError] = None

    @property
    def has_active_stream(self) -> bool:
        return self._stream is not None

    @property
    def is_open(self) -> bool:
        return self.state in (CameraState.LIVE, CameraState.CAPTURING)

    # ── Session lifecycle ─────────────────────────────────────────────────────

    async def open_camera(self) -> bool:
        """Start a capture session. Returns True once the stream delivers frames."""
        self.close_camera()
        generation = self._generation

        async with self._lock:
            if generation != self._generation:
                return False
            if self._device is None:
                self._fail(DeviceError(DeviceErrorKind.UNSUPPORTED, "Camera is not supported on this device."))
                return False

            self.state = CameraState.OPENING
            self.error = None
            stream = None
            try:
                # Owned by the instance while opening so close_camera() can stop it
                stream = self._opening_stream = await self._device.get_user_media(self._constraints)
                if generation == self._generation:
                    await asyncio.wait_for(self._wait_for_frames(stream, generation), timeout=self._ready_timeout)
                if generation != self._generation:
                    return False
                self._opening_stream = None
                self._stream = stream
                self.state = CameraState.LIVE
                logger.info("Camera live at %dx%d", stream.video_width, stream.video_height)
                return True
            except asyncio.TimeoutError:
                if generation == self._generation:
                    self._fail(DeviceError(DeviceErrorKind.OTHER, "Camera did not start in time. Please try again."))
                return False
            except asyncio.CancelledError:
                if generation == self._generation:
                    self.state = CameraState.CLOSED
                    logger.debug("Camera open cancelled")
                raise
            except Exception as exc:
                if generation == self._generation:
                    self._fail(classify_camera_error(exc))
                return False
            finally:
                if stream is not None and self._opening_stream is stream:
                    self._opening_stream = None
                    _stop_tracks(stream)

    def close_camera(self) -> None:
        """Stop every track and drop the stream. Safe to call in any state, any number of times."""
        self._generation += 1
        opening, self._opening_stream = self._opening_stream, None
        if opening is not None:
            _stop_tracks(opening)
        stream, self._stream = self._stream, None
        if stream is not None:
            _stop_tracks(stream)
            logger.debug("Camera session closed")
        self.state = CameraState.CLOSED
        self.error = None

    async def _wait_for_frames(self, stream: VideoStream, generation: int) -> None:
        while not (stream.video_width and stream.video_height):
            if generation != self._generation:
                return
            await asyncio.sleep(self._poll_interval)

    def _fail(self, error: DeviceError) -> None:
        self.error = error
        self.state = CameraState.ERROR
        logger.warning("Camera error (%s): %s", error.kind.value, error.message)

    # ── Frames ────────────────────────────────────────────────────────────────

    def _ready_stream(self) -> Optional[VideoStream]:
        stream = self._stream
        if self.state != CameraState.LIVE or stream is None:
            return None
        if stream.ready_state < HAVE_ENOUGH_DATA or not stream.video_width or not stream.video_height:
            return None
        return stream

    async def snapshot(self) -> Optional[np.ndarray]:
        """A read-only copy of the current frame, or None when no frame is available."""
        stream = self._ready_stream()
        if stream is None:
            return None
        frame = np.array(await stream.read_frame(), dtype=np.uint8, copy=True)
        frame.setflags(write=False)
        return frame

    async def capture_photo(self) -> Optional[EvidenceFile]:
        stream = self._ready_stream()
        if stream is None:
            # Not ready is reported without leaving the current state
            self.error = DeviceError(DeviceErrorKind.OTHER, NOT_READY_MESSAGE)
            return None

        generation = self._generation
        width, height = stream.video_width, stream.video_height
        self.state = CameraState.CAPTURING
        self.error = None
        try:
            frame = await stream.read_frame()
            content = encode_jpeg(frame, width, height)
        except Exception as exc:
            if generation == self._generation:
                self.error = DeviceError(DeviceErrorKind.OTHER, str(exc) or "Failed to capture photo")
                logger.warning("Photo capture failed: %s", exc)
            return None
        finally:
            if generation == self._generation and self.state == CameraState.CAPTURING:
                self.state = CameraState.LIVE

        if generation != self._generation:
            self.error = DeviceError(DeviceErrorKind.OTHER, "Camera was closed during capture.")
            return None

        return EvidenceFile(
            file_name=photo_file_name(self._clock()),
            content=content,
            mime_type="image/jpeg",
            preview=PreviewHandle(content),
        )
