"""
================================================================================
WR TACTICIAN — CAPTURE SOURCE ADAPTER
================================================================================
Gets a live video stream for the sync loop:

  CAMERA_ONLY platform → rear-facing camera (OpenCV), for the "point one device
                         at the other device's screen" setup
  DISPLAY platform     → display capture (Pillow ImageGrab), no cursor, no audio

Both come back as one StreamHandle. Nothing outside this module branches on
the platform.

Author: WR Tactician | Version: 1.0.0
================================================================================
"""
from __future__ import annotations

import asyncio
import logging
import os
import sys
import threading
from contextlib import nullcontext
from enum import Enum
from typing import Callable, List, Optional, Tuple

from PIL import Image

from schemas.errors import CaptureError, PermissionDenied, UnsupportedDevice

try:
    from PIL import ImageGrab
    HAS_IMAGEGRAB = True
except ImportError:
    HAS_IMAGEGRAB = False

try:
    import cv2
    HAS_CV2 = True
except ImportError:
    HAS_CV2 = False

logger = logging.getLogger("wr_tactician.capture")


# =============================================================================
# PLATFORM CAPABILITY
# =============================================================================

class PlatformHint(str, Enum):
    CAMERA_ONLY = "camera_only"   # No display capture: use the rear camera
    DISPLAY = "display"           # Display capture available


def detect_platform(mode: str = "auto") -> PlatformHint:
    """Answer the one capability question the rest of the app cares about."""
    if mode == "camera":
        return PlatformHint.CAMERA_ONLY
    if mode == "display":
        return PlatformHint.DISPLAY

    if not HAS_IMAGEGRAB:
        return PlatformHint.CAMERA_ONLY
    if sys.platform.startswith("linux"):
        if not (os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY")):
            return PlatformHint.CAMERA_ONLY
    return PlatformHint.DISPLAY


# =============================================================================
# TRACKS + STREAM HANDLE
# =============================================================================

class VideoTrack:
    """
    One hardware video track.

    stop() is the owner releasing the device and does not fire ended hooks.
    end() is external termination (device gone, capture revoked) and does.
    """

    kind = "video"

    def __init__(self, label: str, release: Callable[[], None]):
        self.label = label
        self.ready_state = "live"
        self._release = release
        self._ended_callbacks: List[Callable[[], None]] = []
        self._lock = threading.Lock()
        self._device_lock: Optional[threading.Lock] = None

    def on_ended(self, callback: Callable[[], None]):
        self._ended_callbacks.append(callback)

    def guard(self, device_lock: threading.Lock):
        """Release only while holding the lock that device reads run under."""
        self._device_lock = device_lock

    def _finish(self) -> bool:
        with self._lock:
            if self.ready_state == "ended":
                return False
            self.ready_state = "ended"
        try:
            # Waits for a read already inside the device
            with self._device_lock or nullcontext():
                self._release()
        except Exception as e:
            logger.warning(f"Releasing track {self.label} failed: {e}")
        return True

    def stop(self):
        if self._finish():
            logger.debug(f"Track stopped: {self.label}")

    def end(self):
        if not self._finish():
            return
        logger.info(f"📴 Track ended externally: {self.label}")
        for callback in list(self._ended_callbacks):
            try:
                callback()
            except Exception as e:
                logger.error(f"Track ended hook failed: {e}", exc_info=True)


class StreamHandle:
    """Uniform playable stream, whatever produced it."""

    # Consecutive read failures before the track is treated as gone
    MAX_READ_FAILURES = 3

    def __init__(
        self,
        kind: PlatformHint,
        track: VideoTrack,
        reader: Callable[[], Optional[Image.Image]],
        native_size: Tuple[int, int] = (0, 0),
    ):
        self.kind = kind
        self.video_tracks: List[VideoTrack] = [track]
        self.audio_tracks: List[VideoTrack] = []
        self.native_size = native_size
        self._reader = reader
        self._read_lock = threading.Lock()
        self._failures = 0
        for t in self.tracks:
            t.guard(self._read_lock)

    @property
    def tracks(self) -> List[VideoTrack]:
        return self.video_tracks + self.audio_tracks

    @property
    def active(self) -> bool:
        return any(t.ready_state == "live" for t in self.tracks)

    def on_ended(self, callback: Callable[[], None]):
        self.video_tracks[0].on_ended(callback)

    def read_frame(self) -> Optional[Image.Image]:
        """Blocking read of the current frame. Safe to call from several threads."""
        with self._read_lock:
            if not self.active:
                return None
            try:
                frame = self._reader()
            except Exception as e:
                logger.warning(f"Frame read failed: {e}")
                frame = None

            if frame is not None:
                self._failures = 0
                self.native_size = frame.size
                return frame

            self._failures += 1
            if self._failures < self.MAX_READ_FAILURES:
                return None

        # Outside the read lock: ended hooks may stop the stream
        self.video_tracks[0].end()
        return None

    def stop(self):
        """Mark every track ended, then release once any read in progress returns."""
        for track in self.tracks:
            track.stop()


# =============================================================================
# CAPTURE SOURCES
# =============================================================================

class CaptureSource:
    """Opens a StreamHandle. Blocking; the adapter runs it off the event loop."""

    kind: PlatformHint

    def open(self) -> StreamHandle:
        raise NotImplementedError


class CameraCaptureSource(CaptureSource):
    """Rear-facing camera via OpenCV. Never falls back to another device."""

    kind = PlatformHint.CAMERA_ONLY

    def __init__(self, index: int = 1, backend: Optional[int] = None, cv2_module=None):
        self.index = index
        self.backend = backend
        self._cv2 = cv2_module

    def _module(self):
        if self._cv2 is not None:
            return self._cv2
        if not HAS_CV2:
            raise UnsupportedDevice("OpenCV is not installed", user_message="当前设备不支持相机采集")
        return cv2

    def open(self) -> StreamHandle:
        cv = self._module()
        logger.info(f"📷 Opening rear camera (index={self.index})")

        cap = cv.VideoCapture(self.index, self.backend) if self.backend is not None else cv.VideoCapture(self.index)
        if cap is None or not cap.isOpened():
            if cap is not None:
                cap.release()
            raise PermissionDenied(f"Camera {self.index} could not be opened")

        try:
            cap.set(cv.CAP_PROP_BUFFERSIZE, 1)
        except Exception:
            logger.debug("Camera does not accept CAP_PROP_BUFFERSIZE")

        width = int(cap.get(cv.CAP_PROP_FRAME_WIDTH) or 0)
        height = int(cap.get(cv.CAP_PROP_FRAME_HEIGHT) or 0)

        def read() -> Optional[Image.Image]:
            ok, frame = cap.read()
            if not ok or frame is None:
                return None
            return Image.fromarray(cv.cvtColor(frame, cv.COLOR_BGR2RGB))

        track = VideoTrack(label=f"camera:{self.index}:environment", release=cap.release)
        return StreamHandle(self.kind, track, read, native_size=(width, height))


class DisplayCaptureSource(CaptureSource):
    """Whole-display capture via Pillow. The pointer is never composited."""

    kind = PlatformHint.DISPLAY

    def __init__(self, all_screens: bool = False, grab: Optional[Callable[..., Image.Image]] = None):
        self.all_screens = all_screens
        self._grab = grab

    def _grab_frame(self) -> Image.Image:
        if self._grab is not None:
            image = self._grab()
        else:
            image = ImageGrab.grab(all_screens=self.all_screens)
        return image.convert("RGB")

    def open(self) -> StreamHandle:
        if self._grab is None and not HAS_IMAGEGRAB:
            raise UnsupportedDevice("Pillow ImageGrab is unavailable", user_message="当前设备不支持屏幕共享")

        logger.info("🖥️  Starting display capture")
        try:
            probe = self._grab_frame()
        except OSError as e:
            text = str(e).lower()
            if "xcb" in text or "x connection" in text or "display" in text:
                raise UnsupportedDevice(f"No display backend: {e}", user_message="当前设备不支持屏幕共享")
            raise PermissionDenied(f"Display capture refused: {e}")
        except Exception as e:
            raise PermissionDenied(f"Display capture refused: {e}")

        track = VideoTrack(label="display:screen", release=lambda: None)
        return StreamHandle(self.kind, track, self._grab_frame, native_size=probe.size)


# =============================================================================
# ADAPTER
# =============================================================================

class CaptureSourceAdapter:
    """
    Usage:
        adapter = CaptureSourceAdapter.from_config(config)
        stream = await adapter.acquire(detect_platform(config.capture_mode))
    """

    def __init__(self, camera: CaptureSource, display: CaptureSource):
        self.camera = camera
        self.display = display

    @classmethod
    def from_config(cls, config) -> "CaptureSourceAdapter":
        return cls(
            camera=CameraCaptureSource(index=config.rear_camera_index),
            display=DisplayCaptureSource(all_screens=config.all_screens),
        )

    async def acquire(self, platform_hint: PlatformHint) -> StreamHandle:
        """Open the platform's source. Raises PermissionDenied / UnsupportedDevice."""
        source = self.camera if platform_hint is PlatformHint.CAMERA_ONLY else self.display
        try:
            stream = await asyncio.to_thread(source.open)
        except CaptureError:
            raise
        except Exception as e:
            raise UnsupportedDevice(f"Capture source failed: {e}")
        logger.info(f"✅ Stream acquired ({stream.kind.value}, {stream.native_size[0]}x{stream.native_size[1]})")
        return stream
