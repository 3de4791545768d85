"""
LingoLens Video Pipeline - Camera Frames, Snapshots and Viewport Fitting

- Threaded capture that always hands out the freshest frame
- Downscaling for detector inference and classifier snapshots
- Mapping between source-frame coordinates and a display viewport
  (cover = crop to fill, contain = letterbox)
- Debug overlay: FPS, latency, label phase and classifier status
"""

import time
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import cv2
import numpy as np


class FitMode(Enum):
    """How a frame is scaled into a viewport of a different aspect ratio."""
    COVER = "cover"       # Fill the viewport, crop the overflow
    CONTAIN = "contain"   # Show the whole frame, pad with black bars


@dataclass
class FrameMetadata:
    """Metadata for the latest captured frame."""
    timestamp: float
    frame_number: int
    width: int
    height: int
    fps: float
    latency_ms: float = 0.0


class CameraFrameSource:
    """
    Background camera reader.

    A daemon thread keeps grabbing frames and only the newest one is kept,
    so the render loop never sees buffered, stale video.

    Usage:
        with CameraFrameSource(source=0) as camera:
            frame = camera.latest_frame
    """

    def __init__(
        self,
        source: int | str = 0,
        resolution: Optional[Tuple[int, int]] = None,
        loop: bool = False
    ):
        """
        Args:
            source: Camera index, or a video file path / stream URL
            resolution: Requested (width, height); None = device default
            loop: Restart video files when they end
        """
        self.source = source
        self.resolution = resolution
        self.loop = loop

        self._cap: Optional[cv2.VideoCapture] = None
        self._frame: Optional[np.ndarray] = None
        self._frame_lock = threading.Lock()
        self._running = False
        self._thread: Optional[threading.Thread] = None

        self._frame_count = 0
        self._start_time = 0.0
        self._capture_timestamp = 0.0
        self._latency_ms = 0.0
        self._width = 0
        self._height = 0
        self._native_fps = 0.0

        self.logger = logging.getLogger("CameraFrameSource")

    @property
    def is_file(self) -> bool:
        return isinstance(self.source, str) and "://" not in self.source

    def _open(self) -> bool:
        self._cap = cv2.VideoCapture(self.source)
        if not self._cap.isOpened():
            self.logger.error(f"Failed to open video source: {self.source}")
            return False

        if self.resolution:
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.resolution[0])
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.resolution[1])
        if not self.is_file:
            self._cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        self._width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self._height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self._native_fps = self._cap.get(cv2.CAP_PROP_FPS) or 30.0

        self.logger.info(
            f"Video source opened: {self._width}x{self._height} @ {self._native_fps:.1f}fps"
        )
        return True

    def _capture_loop(self):
        frame_interval = 1.0 / self._native_fps if self.is_file else 0.0

        while self._running:
            ok, frame = self._cap.read()
            if not ok:
                if self.is_file and self.loop:
                    self._cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
                    continue
                if self.is_file:
                    self.logger.info("End of video file reached")
                    self._running = False
                    break
                time.sleep(0.001)
                continue

            now = time.perf_counter()
            with self._frame_lock:
                self._frame = frame
                self._capture_timestamp = now
                self._frame_count += 1

            # Play files back at their native rate
            if frame_interval:
                time.sleep(frame_interval)

    def start(self) -> bool:
        """Open the source and start the reader thread."""
        if self._running:
            return True
        if not self._open():
            return False

        self._running = True
        self._start_time = time.perf_counter()
        self._frame_count = 0
        self._thread = threading.Thread(target=self._capture_loop, daemon=True)
        self._thread.start()
        self.logger.info("Capture thread started")
        return True

    def stop(self):
        """Stop the reader thread and release the device."""
        self._running = False
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=1.0)
        if self._cap:
            self._cap.release()
            self._cap = None
        with self._frame_lock:
            self._frame = None
        self.logger.info("Capture stopped")

    @property
    def latest_frame(self) -> Optional[np.ndarray]:
        """Copy of the newest frame, or None before the first one arrives."""
        with self._frame_lock:
            if self._frame is None:
                return None
            self._latency_ms = (time.perf_counter() - self._capture_timestamp) * 1000
            return self._frame.copy()

    def poll_frame(self, idle_sleep: float = 0.001) -> Optional[np.ndarray]:
        """Newest frame, or None after a short sleep so render loops don't spin."""
        frame = self.latest_frame
        if frame is None:
            time.sleep(idle_sleep)
        return frame

    @property
    def metadata(self) -> FrameMetadata:
        elapsed = time.perf_counter() - self._start_time
        return FrameMetadata(
            timestamp=self._capture_timestamp,
            frame_number=self._frame_count,
            width=self._width,
            height=self._height,
            fps=self._frame_count / elapsed if elapsed > 0 else 0.0,
            latency_ms=self._latency_ms,
        )

    @property
    def latency_ms(self) -> float:
        return self._latency_ms

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def frame_size(self) -> Tuple[int, int]:
        return (self._width, self._height)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False


class FrameProcessor:
    """Frame resizing helpers."""

    @staticmethod
    def downscale_for_tracking(
        frame: np.ndarray,
        target_width: int = 640
    ) -> Tuple[np.ndarray, float]:
        """
        Downscale a frame for inference.

        Returns:
            (small_frame, inverse_scale) - multiply coordinates found on
            small_frame by inverse_scale to get source-frame pixels
        """
        h, w = frame.shape[:2]
        if w <= target_width:
            return frame, 1.0

        scale = target_width / w
        small = cv2.resize(
            frame, (target_width, max(1, int(h * scale))),
            interpolation=cv2.INTER_LINEAR
        )
        return small, 1.0 / scale

    @staticmethod
    def snapshot(frame: np.ndarray, scale: float = 0.5) -> np.ndarray:
        """Independent downscaled copy of a frame for the classifier."""
        if scale >= 1.0:
            return frame.copy()
        h, w = frame.shape[:2]
        return cv2.resize(
            frame, (max(1, int(w * scale)), max(1, int(h * scale))),
            interpolation=cv2.INTER_AREA
        )


@dataclass(frozen=True)
class ViewportTransform:
    """
    Uniform scale + offset from source-frame pixels to viewport pixels.

    Offsets are negative on the cropped axis in COVER mode and positive on
    the padded axis in CONTAIN mode.
    """
    source_size: Tuple[int, int]
    viewport_size: Tuple[int, int]
    scale: float
    offset_x: float
    offset_y: float

    @classmethod
    def fit(
        cls,
        source_size: Tuple[int, int],
        viewport_size: Tuple[int, int],
        mode: FitMode = FitMode.COVER
    ) -> "ViewportTransform":
        sw, sh = source_size
        vw, vh = viewport_size
        if sw <= 0 or sh <= 0 or vw <= 0 or vh <= 0:
            raise ValueError(f"Invalid sizes: source={source_size}, viewport={viewport_size}")

        if mode == FitMode.COVER:
            scale = max(vw / sw, vh / sh)
        else:
            scale = min(vw / sw, vh / sh)

        return cls(
            source_size=(sw, sh),
            viewport_size=(vw, vh),
            scale=scale,
            offset_x=(vw - sw * scale) / 2,
            offset_y=(vh - sh * scale) / 2,
        )

    def map_normalized(self, nx: float, ny: float) -> Tuple[int, int]:
        """Frame-relative (0-1) point to viewport pixels."""
        sw, sh = self.source_size
        return self.map_pixel(nx * sw, ny * sh)

    def map_pixel(self, x: float, y: float) -> Tuple[int, int]:
        return (
            int(round(x * self.scale + self.offset_x)),
            int(round(y * self.scale + self.offset_y)),
        )

    def apply(self, frame: np.ndarray) -> np.ndarray:
        """Render ``frame`` into a new viewport-sized image."""
        vw, vh = self.viewport_size
        sw, sh = self.source_size
        scaled_w = max(1, int(round(sw * self.scale)))
        scaled_h = max(1, int(round(sh * self.scale)))
        scaled = cv2.resize(frame, (scaled_w, scaled_h), interpolation=cv2.INTER_LINEAR)

        canvas = np.zeros((vh, vw) + frame.shape[2:], dtype=frame.dtype)
        ox, oy = int(round(self.offset_x)), int(round(self.offset_y))

        # Overlap of the scaled frame and the canvas, in both coordinate systems
        dst_x1, dst_y1 = max(0, ox), max(0, oy)
        dst_x2, dst_y2 = min(vw, ox + scaled_w), min(vh, oy + scaled_h)
        if dst_x2 <= dst_x1 or dst_y2 <= dst_y1:
            return canvas

        src_x1, src_y1 = dst_x1 - ox, dst_y1 - oy
        canvas[dst_y1:dst_y2, dst_x1:dst_x2] = scaled[
            src_y1:src_y1 + (dst_y2 - dst_y1),
            src_x1:src_x1 + (dst_x2 - dst_x1)
        ]
        return canvas


class PerformanceOverlay:
    """
    Debug readout below the HUD: render FPS, capture latency, how often the
    label is being held through a dropout, and the classifier status.
    """

    PHASE_COLORS = {
        "tracking": (0, 255, 0),
        "holding": (0, 200, 255),
        "empty": (160, 160, 160),
    }

    def __init__(self, history_size: int = 30):
        self._history_size = history_size
        self._frame_times = []
        self._latencies = []
        self._phases = []
        self._status = ""
        self._last_time = time.perf_counter()

    def update(self, latency_ms: float = 0.0, phase: str = "", status: str = ""):
        """Record one rendered frame with its tracker phase and classifier status."""
        now = time.perf_counter()
        self._frame_times.append(now - self._last_time)
        self._last_time = now
        self._latencies.append(latency_ms)
        self._phases.append(phase)
        self._status = status

        del self._frame_times[:-self._history_size]
        del self._latencies[:-self._history_size]
        del self._phases[:-self._history_size]

    def get_fps(self) -> float:
        if not self._frame_times:
            return 0.0
        avg = sum(self._frame_times) / len(self._frame_times)
        return 1.0 / avg if avg > 0 else 0.0

    def get_latency(self) -> float:
        if not self._latencies:
            return 0.0
        return sum(self._latencies) / len(self._latencies)

    @property
    def phase(self) -> str:
        return self._phases[-1] if self._phases else ""

    def holding_ratio(self) -> float:
        """Share of recent frames where the label was held without a detection."""
        if not self._phases:
            return 0.0
        return self._phases.count("holding") / len(self._phases)

    def draw(self, frame: np.ndarray, top: int = 42) -> np.ndarray:
        fps = self.get_fps()
        if fps >= 30:
            fps_color = (0, 255, 0)
        elif fps >= 20:
            fps_color = (0, 255, 255)
        else:
            fps_color = (0, 0, 255)

        overlay = frame.copy()
        cv2.rectangle(overlay, (5, top), (250, top + 92), (0, 0, 0), -1)
        cv2.addWeighted(overlay, 0.6, frame, 0.4, 0, frame)

        cv2.putText(frame, f"FPS: {fps:.1f}  Latency: {self.get_latency():.0f}ms", (10, top + 20),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, fps_color, 1, cv2.LINE_AA)
        phase = self.phase or "-"
        cv2.putText(frame, f"Label: {phase} (held {self.holding_ratio():.0%})", (10, top + 44),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, self.PHASE_COLORS.get(phase, (200, 200, 200)),
                    1, cv2.LINE_AA)
        cv2.putText(frame, f"Classifier: {self._status or '-'}", (10, top + 68),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, (200, 200, 200), 1, cv2.LINE_AA)
        return frame
