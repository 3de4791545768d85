"""
LingoLens Classification Controller - Throttle, Single-Flight, Backoff

Guards the slow vision classifier so the label tracker can poll it from a
timer without ever flooding the service:

- Throttle: at most one attempt per minimum interval (1s realtime, 3s manual)
- Single-flight: never two requests in the air
- Backoff: a 429 silences all calls for the server-suggested delay
  (or the configured default, 30s)

Results are handed to the LabelTracker from the worker thread. Every failure
degrades to "keep showing the last label"; nothing reaches the frame loop.
"""

import time
import logging
import threading
from enum import Enum
from typing import Callable, List, Optional

from .config import ClassifierConfig
from .label_tracker import LabelTracker, SemanticLabel, TrackerState
from .vision_labeler import ClassificationError, ClassificationRequest, RateLimitedError


class ClassificationMode(Enum):
    REALTIME = "realtime"   # Timer-driven
    MANUAL = "manual"       # User-triggered capture


class RequestOutcome(Enum):
    """Why a classification request was or wasn't started."""
    STARTED = "started"
    THROTTLED = "throttled"
    IN_FLIGHT = "in_flight"
    BACKING_OFF = "backing_off"
    STOPPED = "stopped"


def _spawn_daemon(work: Callable[[], None]):
    thread = threading.Thread(target=work, name="classification", daemon=True)
    thread.start()


class ClassificationController:
    """
    Runs classifier calls in the background on behalf of a LabelTracker.

    Throttle and backoff bookkeeping lives in the tracker's TrackerState, so
    resetting the tracker also resets the controller's view of the session.
    """

    def __init__(
        self,
        tracker: LabelTracker,
        labeler,
        config: Optional[ClassifierConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        spawn: Optional[Callable[[Callable[[], None]], None]] = None,
        mode: ClassificationMode = ClassificationMode.REALTIME
    ):
        """
        Args:
            tracker: Tracker that owns the session state and receives labels
            labeler: Object with ``classify(ClassificationRequest) -> list[SemanticLabel]``
            config: Intervals and default retry delay
            clock: Monotonic time source (seconds)
            spawn: Runs the request body; defaults to a daemon thread
            mode: Which minimum interval applies
        """
        self.tracker = tracker
        self.labeler = labeler
        self.config = config or ClassifierConfig()
        self.mode = mode
        self.logger = logging.getLogger("ClassificationController")
        self._clock = clock
        self._spawn = spawn or _spawn_daemon
        self._active = False
        # Survives tracker resets: a stopped session's call may still be running
        self._in_flight = False
        self._generation = 0

    def start(self):
        self._active = True

    def stop(self):
        """Stop issuing requests. Late responses are dropped by the tracker."""
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def min_interval(self) -> float:
        return self.config.interval_for(self.mode.value)

    def invalidate(self):
        """Discard the result of any request already in the air (e.g. language change)."""
        with self.tracker.lock:
            self._generation += 1

    @property
    def in_flight(self) -> bool:
        with self.tracker.lock:
            return self._in_flight

    @property
    def backoff_remaining(self) -> float:
        """Seconds until calls are allowed again after a rate limit (0 if none)."""
        with self.tracker.lock:
            until = self.tracker.state.backoff_until
        if until is None:
            return 0.0
        return max(0.0, until - self._clock())

    def request_classification(
        self,
        snapshot,
        target_language: str,
        hint: Optional[str] = None,
        hint_score: float = 0.0
    ) -> RequestOutcome:
        """
        Try to start a classification of ``snapshot``.

        A rejected request is a no-op: no network call, no state change.
        """
        with self.tracker.lock:
            if not self._active:
                return RequestOutcome.STOPPED

            session = self.tracker.state
            now = self._clock()

            if self._in_flight:
                self.logger.debug("Skipping classification: request already in flight")
                return RequestOutcome.IN_FLIGHT

            if session.backoff_until is not None and now < session.backoff_until:
                self.logger.debug(
                    f"Skipping classification: backing off for {session.backoff_until - now:.1f}s"
                )
                return RequestOutcome.BACKING_OFF

            last = session.last_classification_timestamp
            if last is not None and now - last < self.min_interval:
                self.logger.debug("Skipping classification: throttled")
                return RequestOutcome.THROTTLED

            session.last_classification_timestamp = now
            session.classification_in_flight = True
            self._in_flight = True
            generation = self._generation

        request = ClassificationRequest(
            image=snapshot,
            language=target_language,
            hint=hint,
            hint_score=hint_score,
        )
        try:
            self._spawn(lambda: self._run(session, generation, request))
        except RuntimeError as e:
            # Thread could not be started (interpreter shutting down)
            self.logger.error(f"Could not start classification: {e}")
            with self.tracker.lock:
                session.classification_in_flight = False
                self._in_flight = False
            return RequestOutcome.STOPPED
        return RequestOutcome.STARTED

    def _run(self, session: TrackerState, generation: int, request: ClassificationRequest):
        try:
            labels = self._classify(session, request)
            if labels is not None:
                self._apply(session, generation, labels)
        finally:
            with self.tracker.lock:
                session.classification_in_flight = False
                self._in_flight = False

    def _classify(
        self,
        session: TrackerState,
        request: ClassificationRequest
    ) -> Optional[List[SemanticLabel]]:
        try:
            return self.labeler.classify(request)
        except RateLimitedError as e:
            self._back_off(session, e.retry_after)
        except ClassificationError as e:
            self.logger.warning(f"Classification failed, keeping last label: {e}")
        except Exception:
            self.logger.exception("Unexpected classification failure, keeping last label")
        return None

    def _back_off(self, session: TrackerState, retry_after: Optional[float]):
        delay = retry_after if retry_after is not None else self.config.default_retry_after
        with self.tracker.lock:
            until = self._clock() + delay
            if session.backoff_until is None or until > session.backoff_until:
                session.backoff_until = until
        self.logger.warning(f"Rate limited - pausing classification for {delay:.1f}s")

    def _apply(self, session: TrackerState, generation: int, labels: List[SemanticLabel]):
        # Generation check and label update under one lock hold
        with self.tracker.lock:
            if generation != self._generation:
                self.logger.debug("Dropping result for a superseded request")
                return
            self._apply_labels(session, labels)

    def _apply_labels(self, session: TrackerState, labels: List[SemanticLabel]):
        if labels:
            if self.tracker.update_semantic(labels[0], session=session):
                self.logger.debug(f"Label updated: {labels[0].object}")
        else:
            self.tracker.schedule_semantic_clear(session=session)
