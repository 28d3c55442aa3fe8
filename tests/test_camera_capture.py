"""
Tests for the camera capture state machine.
"""

from __future__ import annotations

import asyncio
import io
from datetime import datetime, timezone

import numpy as np
import pytest
from PIL import Image

from app.capture.camera import (
    HAVE_ENOUGH_DATA,
    CameraCapture,
    CameraNotFoundError,
    CameraState,
    StreamConstraints,
    photo_file_name,
)
from app.client.errors import DeviceErrorKind


class FakeTrack:
    def __init__(self):
        self.stopped = False

    def stop(self):
        self.stopped = True


class FakeStream:
    def __init__(self, width=64, height=48, ready_state=HAVE_ENOUGH_DATA, tracks=2):
        self.video_width = width
        self.video_height = height
        self.ready_state = ready_state
        self.tracks = [FakeTrack() for _ in range(tracks)]

    def get_tracks(self):
        return list(self.tracks)

    @property
    def all_stopped(self):
        return all(track.stopped for track in self.tracks)

    async def read_frame(self):
        frame = np.zeros((self.video_height, self.video_width, 3), dtype=np.uint8)
        frame[..., 1] = 200
        return frame


class FakeDevice:
    def __init__(self, stream=None, error=None, delay=0.0):
        self.stream_factory = (lambda: stream) if stream is not None else FakeStream
        self.error = error
        self.delay = delay
        self.streams = []
        self.constraints = []

    async def get_user_media(self, constraints):
        self.constraints.append(constraints)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        stream = self.stream_factory()
        self.streams.append(stream)
        return stream


FIXED_TIME = datetime(2025, 3, 1, 9, 30, 15, 123000, tzinfo=timezone.utc)


def _camera(device, **kwargs):
    kwargs.setdefault("ready_timeout", 0.2)
    kwargs.setdefault("poll_interval", 0.005)
    return CameraCapture(device, clock=lambda: FIXED_TIME, **kwargs)


# =============================================================================
# Opening
# =============================================================================


class TestOpenCamera:
    def test_goes_live(self):
        device = FakeDevice()
        camera = _camera(device)
        assert asyncio.run(camera.open_camera()) is True
        assert camera.state == CameraState.LIVE
        assert camera.has_active_stream
        assert device.constraints == [StreamConstraints()]
        assert device.constraints[0].facing_mode == "environment"
        assert (device.constraints[0].ideal_width, device.constraints[0].ideal_height) == (1920, 1080)
        assert device.constraints[0].audio is False

    @pytest.mark.parametrize(
        "error,kind",
        [
            (PermissionError("denied"), DeviceErrorKind.PERMISSION_DENIED),
            (CameraNotFoundError("none"), DeviceErrorKind.DEVICE_NOT_FOUND),
            (OSError("driver crashed"), DeviceErrorKind.OTHER),
        ],
    )
    def test_failures_are_classified(self, error, kind):
        camera = _camera(FakeDevice(error=error))
        assert asyncio.run(camera.open_camera()) is False
        assert camera.state == CameraState.ERROR
        assert camera.error.kind == kind
        assert not camera.has_active_stream

    def test_other_failure_keeps_message(self):
        camera = _camera(FakeDevice(error=OSError("driver crashed")))
        asyncio.run(camera.open_camera())
        assert camera.error.message == "driver crashed"

    def test_no_device_is_unsupported(self):
        camera = _camera(None)
        assert asyncio.run(camera.open_camera()) is False
        assert camera.error.kind == DeviceErrorKind.UNSUPPORTED

    def test_stream_without_frames_times_out_and_is_stopped(self):
        stream = FakeStream(width=0, height=0)
        camera = _camera(FakeDevice(stream=stream), ready_timeout=0.05)
        assert asyncio.run(camera.open_camera()) is False
        assert camera.state == CameraState.ERROR
        assert stream.all_stopped
        assert not camera.has_active_stream

    def test_reopening_closes_the_previous_session(self):
        device = FakeDevice()
        camera = _camera(device)

        async def scenario():
            await camera.open_camera()
            await camera.open_camera()

        asyncio.run(scenario())
        first, second = device.streams
        assert first.all_stopped
        assert not second.all_stopped
        assert camera.state == CameraState.LIVE

    def test_concurrent_opens_leave_one_live_stream(self):
        device = FakeDevice(delay=0.01)
        camera = _camera(device)

        async def scenario():
            return await asyncio.gather(camera.open_camera(), camera.open_camera())

        results = asyncio.run(scenario())
        assert results == [False, True]
        assert camera.state == CameraState.LIVE
        live = [stream for stream in device.streams if not stream.all_stopped]
        assert len(live) == 1

    def test_close_during_open_cancels_it(self):
        device = FakeDevice(delay=0.02)
        camera = _camera(device)

        async def scenario():
            pending = asyncio.ensure_future(camera.open_camera())
            await asyncio.sleep(0.005)
            camera.close_camera()
            return await pending

        assert asyncio.run(scenario()) is False
        assert camera.state == CameraState.CLOSED
        assert not camera.has_active_stream
        assert all(stream.all_stopped for stream in device.streams)

    def test_close_while_waiting_for_frames_stops_tracks_at_once(self):
        stream = FakeStream(width=0, height=0)
        camera = _camera(FakeDevice(stream=stream), ready_timeout=5, poll_interval=1)

        async def scenario():
            pending = asyncio.ensure_future(camera.open_camera())
            await asyncio.sleep(0.03)
            assert camera.state == CameraState.OPENING
            camera.close_camera()
            stopped_on_close = stream.all_stopped
            pending.cancel()
            with pytest.raises(asyncio.CancelledError):
                await pending
            return stopped_on_close

        assert asyncio.run(scenario()) is True
        assert camera.state == CameraState.CLOSED
        assert not camera.has_active_stream

    def test_cancelled_open_stops_tracks(self):
        stream = FakeStream(width=0, height=0)
        camera = _camera(FakeDevice(stream=stream), ready_timeout=5)

        async def scenario():
            pending = asyncio.ensure_future(camera.open_camera())
            await asyncio.sleep(0.03)
            pending.cancel()
            with pytest.raises(asyncio.CancelledError):
                await pending

        asyncio.run(scenario())
        assert stream.all_stopped
        assert camera.state == CameraState.CLOSED
        assert not camera.has_active_stream


# =============================================================================
# Closing
# =============================================================================


class TestCloseCamera:
    def test_close_releases_every_track(self):
        device = FakeDevice()
        camera = _camera(device)
        asyncio.run(camera.open_camera())

        camera.close_camera()
        assert camera.state == CameraState.CLOSED
        assert not camera.has_active_stream
        assert device.streams[0].all_stopped

    def test_close_is_idempotent_in_any_state(self):
        camera = _camera(FakeDevice())
        camera.close_camera()
        camera.close_camera()
        assert camera.state == CameraState.CLOSED

        failed = _camera(FakeDevice(error=PermissionError()))
        asyncio.run(failed.open_camera())
        failed.close_camera()
        assert failed.state == CameraState.CLOSED
        assert failed.error is None

    def test_track_failure_does_not_block_close(self):
        stream = FakeStream()

        def broken_stop():
            raise RuntimeError("already ended")

        stream.tracks[0].stop = broken_stop
        camera = _camera(FakeDevice(stream=stream))
        asyncio.run(camera.open_camera())
        camera.close_camera()
        assert stream.tracks[1].stopped
        assert not camera.has_active_stream


# =============================================================================
# Capturing
# =============================================================================


class TestCapturePhoto:
    def test_captures_jpeg_at_native_resolution(self):
        camera = _camera(FakeDevice(stream=FakeStream(width=64, height=48)))

        async def scenario():
            await camera.open_camera()
            return await camera.capture_photo()

        photo = asyncio.run(scenario())
        assert photo.mime_type == "image/jpeg"
        assert photo.file_name == "property-photo-2025-03-01T09-30-15-123Z.jpg"
        assert photo.size == len(photo.content)
        assert photo.preview is not None and not photo.preview.released

        image = Image.open(io.BytesIO(photo.content))
        assert image.format == "JPEG"
        assert image.size == (64, 48)
        assert camera.state == CameraState.LIVE

    def test_rejected_when_closed(self):
        camera = _camera(FakeDevice())
        assert asyncio.run(camera.capture_photo()) is None
        assert camera.error.message == "Camera not ready. Please open camera first."
        assert camera.state == CameraState.CLOSED

    def test_rejected_before_enough_data(self):
        stream = FakeStream()
        camera = _camera(FakeDevice(stream=stream))

        async def scenario():
            await camera.open_camera()
            stream.ready_state = HAVE_ENOUGH_DATA - 1
            return await camera.capture_photo()

        assert asyncio.run(scenario()) is None
        assert camera.error is not None
        assert camera.state == CameraState.LIVE

    def test_snapshot_is_read_only(self):
        camera = _camera(FakeDevice())

        async def scenario():
            await camera.open_camera()
            return await camera.snapshot()

        frame = asyncio.run(scenario())
        assert frame.shape == (48, 64, 3)
        with pytest.raises(ValueError):
            frame[0, 0, 0] = 1

    def test_snapshot_when_closed(self):
        assert asyncio.run(_camera(FakeDevice()).snapshot()) is None


def test_photo_file_name_is_filesystem_safe():
    name = photo_file_name(FIXED_TIME)
    assert ":" not in name
    assert name.count(".") == 1
    assert name.endswith(".jpg")
