"""
LingoLens Translation Session - One Camera Session, Two Ticks

Owns the per-session pieces and drives them from the render loop:

    frame tick           → LocalDetector → LabelTracker.update_position
    classification tick  → snapshot → ClassificationController (background)

Usage:
    session = RealtimeTranslationSession(detector, labeler, config)
    session.start()
    while running:
        label = session.process_frame(frame)
        renderer.render(frame, label)
    session.stop()
"""

import time
import logging
from typing import Callable, Optional

import numpy as np

from .config import AppConfig, normalize_language
from .classification_controller import (
    ClassificationController,
    ClassificationMode,
    RequestOutcome,
)
from .label_tracker import HIDDEN_LABEL, LabelTracker, TrackedLabel
from .object_detector import Detection
from .translations import LANGUAGE_NAMES
from .video_pipeline import FrameProcessor


class RealtimeTranslationSession:
    """
    Point-the-camera translation feature.

    Attributes:
        tracker: The label state machine
        controller: Throttled classifier front-end
        language: Current target language code
    """

    INSTRUCTIONS_SECONDS = 3.0

    def __init__(
        self,
        detector,
        labeler,
        config: Optional[AppConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        spawn: Optional[Callable] = None,
        mode: ClassificationMode = ClassificationMode.REALTIME
    ):
        """
        Args:
            detector: LocalDetector (or anything with load_async/detect_prominent)
            labeler: VisionLabeler or DictionaryLabeler
            config: Application config (default: built-in defaults)
            clock: Monotonic time source
            spawn: Background runner for classifier calls
            mode: REALTIME (timer) or MANUAL (capture on demand)
        """
        self.config = config or AppConfig()
        self.detector = detector
        self.logger = logging.getLogger("TranslationSession")
        self._clock = clock

        self.tracker = LabelTracker(self.config.tracker, clock=clock)
        self.controller = ClassificationController(
            self.tracker, labeler, self.config.classifier,
            clock=clock, spawn=spawn, mode=mode
        )

        self.language = self.config.classifier.target_language
        self._running = False
        self._started_at = 0.0
        self._next_tick_at = 0.0
        self._last_detection: Optional[Detection] = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self):
        """Camera started: fresh state, timers armed, model load kicked off."""
        if self._running:
            return
        self.detector.load_async()
        self.tracker.reset()
        self.controller.start()

        now = self._clock()
        self._started_at = now
        self._next_tick_at = now + self.config.classifier.timer_period
        self._last_detection = None
        self._running = True
        self.logger.info(
            f"Session started ({self.mode.value}, {LANGUAGE_NAMES[self.language]})"
        )

    def stop(self):
        """Camera stopped: no more ticks, in-flight results are discarded."""
        if not self._running:
            return
        self._running = False
        self.controller.stop()
        self.tracker.reset()
        self._last_detection = None
        self.logger.info("Session stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # TICKS
    # =========================================================================

    def process_frame(self, frame: np.ndarray) -> TrackedLabel:
        """
        Frame tick: detect, update the tracker, fire the classification timer.

        Returns:
            The label to render for this frame
        """
        if not self._running or frame is None:
            return HIDDEN_LABEL

        h, w = frame.shape[:2]
        detection = self.detector.detect_prominent(frame)
        self._last_detection = detection
        label = self.tracker.update_position(detection, (w, h))

        if self.mode == ClassificationMode.REALTIME:
            now = self._clock()
            if now >= self._next_tick_at:
                self._next_tick_at = now + self.config.classifier.timer_period
                self.classify(frame)

        return label

    def classify(self, frame: np.ndarray) -> RequestOutcome:
        """Classification tick (also the manual capture action)."""
        if not self._running:
            return RequestOutcome.STOPPED

        snapshot = FrameProcessor.snapshot(frame, self.config.classifier.snapshot_scale)
        detection = self._last_detection
        outcome = self.controller.request_classification(
            snapshot,
            self.language,
            hint=detection.label if detection else None,
            hint_score=detection.score if detection else 0.0,
        )
        if outcome != RequestOutcome.STARTED:
            self.logger.debug(f"Classification tick skipped: {outcome.value}")
        return outcome

    # =========================================================================
    # SETTINGS
    # =========================================================================

    @property
    def mode(self) -> ClassificationMode:
        return self.controller.mode

    def set_mode(self, mode: ClassificationMode):
        if mode == self.controller.mode:
            return
        self.controller.mode = mode
        self._next_tick_at = self._clock() + self.config.classifier.timer_period
        self.logger.info(f"Classification mode: {mode.value}")

    def toggle_mode(self) -> ClassificationMode:
        if self.mode == ClassificationMode.REALTIME:
            self.set_mode(ClassificationMode.MANUAL)
        else:
            self.set_mode(ClassificationMode.REALTIME)
        return self.mode

    def set_language(self, code: str) -> str:
        """
        Switch target language. The stored translation is dropped, and so is
        the result of any request still in flight in the previous language.
        """
        code = normalize_language(code)
        if code != self.language:
            self.language = code
            self.controller.invalidate()
            self.tracker.clear_semantic()
            self.logger.info(f"Target language: {LANGUAGE_NAMES[code]}")
        return self.language

    def cycle_language(self) -> str:
        codes = list(LANGUAGE_NAMES)
        return self.set_language(codes[(codes.index(self.language) + 1) % len(codes)])

    # =========================================================================
    # STATUS
    # =========================================================================

    @property
    def language_name(self) -> str:
        return LANGUAGE_NAMES[self.language]

    @property
    def show_instructions(self) -> bool:
        return self._running and self._clock() - self._started_at < self.INSTRUCTIONS_SECONDS

    @property
    def status_text(self) -> str:
        """Short classifier status for the HUD."""
        if not self._running:
            return "Camera off"
        if getattr(self.detector, "load_failed", False):
            return "Detector unavailable"
        # Rate-limit backoff stays silent
        if self.controller.in_flight:
            return "Analyzing..."
        return self.mode.value.capitalize()
