"""
LingoLens Label Tracker - Fusing Fast Boxes with Slow Translations

Two producers feed one on-screen label:

┌─────────────────────────────────────────────────────────────────┐
│                    FAST PATH (Every Frame)                       │
│  Local detector → prominent box → top-center anchor → EMA        │
│  Grace period: 30 missed frames before the label disappears      │
├─────────────────────────────────────────────────────────────────┤
│                    SLOW PATH (Every ~2s)                         │
│  Vision classifier → SemanticLabel (object + translation)        │
│  Applied whenever it arrives, shown on the next frame            │
└─────────────────────────────────────────────────────────────────┘

States:
    EMPTY ──detection──▶ TRACKING ──miss──▶ HOLDING ──30 misses──▶ EMPTY
                            ▲                  │
                            └────detection─────┘

All state lives in one TrackerState object. The frame loop and the
classification worker both mutate it, under the tracker lock.
"""

import time
import logging
import threading
from enum import Enum
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .config import TrackerConfig
from .object_detector import Detection, NormalizedPosition


class TrackerPhase(Enum):
    """Phase of the label state machine."""
    EMPTY = "empty"         # Nothing to show
    TRACKING = "tracking"   # Detection this frame - label follows the object
    HOLDING = "holding"     # Detection lost, label frozen at last position


@dataclass(frozen=True)
class SemanticLabel:
    """An object name with its translation, from the slow classifier."""
    object: str
    translation: str
    example_sentence: str = ""
    sentence_translation: str = ""
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> "SemanticLabel":
        """
        Parse a classifier record (camelCase keys, as returned by the service).

        Raises:
            ValueError: if the object name or translation is missing
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected an object record, got {type(data).__name__}")
        name = str(data.get("object") or "").strip()
        translation = str(data.get("translation") or "").strip()
        if not name or not translation:
            raise ValueError(f"Incomplete label record: {data!r}")
        try:
            confidence = float(data.get("confidence", 0.0) or 0.0)
        except (TypeError, ValueError):
            confidence = 0.0
        return cls(
            object=name,
            translation=translation,
            example_sentence=str(data.get("exampleSentence") or ""),
            sentence_translation=str(data.get("sentenceTranslation") or ""),
            confidence=confidence,
        )


@dataclass(frozen=True)
class TrackedLabel:
    """What the renderer draws this frame."""
    semantic: Optional[SemanticLabel]
    position: Optional[NormalizedPosition]
    visible: bool
    phase: TrackerPhase = TrackerPhase.EMPTY
    is_placeholder: bool = False

    @property
    def text(self) -> str:
        if self.semantic is None:
            return ""
        if self.is_placeholder:
            return self.semantic.object
        return f"{self.semantic.object}: {self.semantic.translation}"


HIDDEN_LABEL = TrackedLabel(semantic=None, position=None, visible=False)


@dataclass
class TrackerState:
    """Mutable per-session state. A fresh one is created on every reset."""
    smoothed_position: Optional[NormalizedPosition] = None
    missing_frame_count: int = 0
    last_classification_timestamp: Optional[float] = None
    last_semantic_label: Optional[SemanticLabel] = None
    backoff_until: Optional[float] = None
    classification_in_flight: bool = False
    semantic_clear_at: Optional[float] = None
    phase: TrackerPhase = TrackerPhase.EMPTY
    frame_index: int = 0


def smooth_position(
    previous: Optional[NormalizedPosition],
    raw: NormalizedPosition,
    alpha: float
) -> NormalizedPosition:
    """
    Exponential smoothing: ``prev + (raw - prev) * alpha``.

    The first sample initializes the filter without interpolation.
    """
    if previous is None:
        return raw
    return NormalizedPosition(
        x=previous.x + (raw.x - previous.x) * alpha,
        y=previous.y + (raw.y - previous.y) * alpha,
    )


class LabelTracker:
    """
    Stable, continuously positioned translation label.

    Thread-safe: ``update_position`` runs on the frame loop while
    ``update_semantic`` / ``schedule_semantic_clear`` are called from the
    classification worker.

    Attributes:
        config: Smoothing factor, grace period, placeholder text
    """

    def __init__(
        self,
        config: Optional[TrackerConfig] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.config = config or TrackerConfig()
        self.logger = logging.getLogger("LabelTracker")
        self._clock = clock
        self._lock = threading.RLock()
        self._state = TrackerState()
        self._current = HIDDEN_LABEL
        self._placeholder = SemanticLabel(
            object=self.config.placeholder_text, translation=""
        )

    # =========================================================================
    # FRAME TICK
    # =========================================================================

    def update_position(
        self,
        detection: Optional[Detection],
        frame_size: Tuple[int, int]
    ) -> TrackedLabel:
        """
        Advance the state machine by one frame.

        Args:
            detection: Prominent qualifying detection for this frame, or None
            frame_size: (width, height) of the frame the detection came from

        Returns:
            The label to render this frame
        """
        with self._lock:
            state = self._state
            state.frame_index += 1
            self._expire_semantic(state)

            raw = None
            if detection is not None:
                try:
                    raw = detection.bbox.anchor(frame_size)
                except ValueError as e:
                    self.logger.warning(f"Ignoring detection: {e}")

            if raw is not None:
                state.missing_frame_count = 0
                state.smoothed_position = smooth_position(
                    state.smoothed_position, raw, self.config.smoothing_factor
                )
                self._set_phase(state, TrackerPhase.TRACKING)
            else:
                grace = self.config.grace_period_frames
                state.missing_frame_count = min(state.missing_frame_count + 1, grace)
                if (state.missing_frame_count < grace
                        and state.smoothed_position is not None):
                    self._set_phase(state, TrackerPhase.HOLDING)
                elif state.phase != TrackerPhase.EMPTY:
                    state.smoothed_position = None
                    state.last_semantic_label = None
                    state.semantic_clear_at = None
                    self._set_phase(state, TrackerPhase.EMPTY)

            self._current = self._compose(state)
            return self._current

    def _set_phase(self, state: TrackerState, phase: TrackerPhase):
        if state.phase != phase:
            self.logger.debug(
                f"Frame {state.frame_index}: {state.phase.value} -> {phase.value}"
            )
            state.phase = phase

    def _compose(self, state: TrackerState) -> TrackedLabel:
        if state.phase == TrackerPhase.EMPTY or state.smoothed_position is None:
            return HIDDEN_LABEL

        semantic = state.last_semantic_label
        return TrackedLabel(
            semantic=semantic or self._placeholder,
            position=state.smoothed_position,
            visible=True,
            phase=state.phase,
            is_placeholder=semantic is None,
        )

    def _expire_semantic(self, state: TrackerState):
        if state.semantic_clear_at is not None and self._clock() >= state.semantic_clear_at:
            if state.last_semantic_label is not None:
                self.logger.info(
                    f"No object reported - clearing '{state.last_semantic_label.object}'"
                )
            state.last_semantic_label = None
            state.semantic_clear_at = None

    # =========================================================================
    # SEMANTIC UPDATES (Thread-Safe)
    # =========================================================================

    def update_semantic(
        self,
        label: SemanticLabel,
        session: Optional[TrackerState] = None
    ) -> bool:
        """
        Replace the stored semantic label wholesale.

        Args:
            label: New label from the classifier
            session: State the request was issued against. If the tracker has
                been reset since, the update is dropped.

        Returns:
            True if the label was applied
        """
        with self._lock:
            if session is not None and session is not self._state:
                self.logger.debug("Dropping label for a stale session")
                return False
            self._state.last_semantic_label = label
            self._state.semantic_clear_at = None
            return True

    def schedule_semantic_clear(
        self,
        delay: Optional[float] = None,
        session: Optional[TrackerState] = None
    ) -> bool:
        """
        Clear the stored semantic label after ``delay`` seconds.

        A pending clear is not pushed back by further calls; a later
        ``update_semantic`` cancels it.
        """
        if delay is None:
            delay = self.config.empty_result_clear_delay
        with self._lock:
            if session is not None and session is not self._state:
                return False
            if self._state.semantic_clear_at is None:
                self._state.semantic_clear_at = self._clock() + delay
            return True

    def clear_semantic(self):
        """Drop the stored semantic label immediately (e.g. language change)."""
        with self._lock:
            self._state.last_semantic_label = None
            self._state.semantic_clear_at = None

    # =========================================================================
    # SESSION
    # =========================================================================

    def reset(self):
        """Discard all state (camera stopped). In-flight results become stale."""
        with self._lock:
            self._state = TrackerState()
            self._current = HIDDEN_LABEL
        self.logger.debug("Tracker reset")

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def current(self) -> TrackedLabel:
        with self._lock:
            return self._current

    @property
    def phase(self) -> TrackerPhase:
        with self._lock:
            return self._state.phase

    @property
    def smoothed_position(self) -> Optional[NormalizedPosition]:
        with self._lock:
            return self._state.smoothed_position

    @property
    def semantic_label(self) -> Optional[SemanticLabel]:
        with self._lock:
            return self._state.last_semantic_label
