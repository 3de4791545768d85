#!/usr/bin/env python3
"""
Unit Tests for the LingoLens Label Tracker

Covers the scenarios the realtime translation feature has to get right:
A. Smoothing (convergence, no overshoot)
B. Grace period (short dropouts hold, long ones clear)
C. Classification control (single-flight, throttle, rate-limit backoff)
D. Empty results, failures and stopped sessions
E. Vision client, detector adapter, viewport mapping and rendering

Time and background work are injected, so every scenario is deterministic.
Runs under pytest or directly: python run_tests.py
"""

import sys
import os
import time
import types
import threading

import numpy as np
import httpx
import openai

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from lingolens.config import ClassifierConfig, DetectorConfig, TrackerConfig
from lingolens.object_detector import (
    BoundingBox, Detection, LocalDetector, NormalizedPosition,
    filter_detections, select_prominent,
)
from lingolens.label_tracker import LabelTracker, SemanticLabel, TrackerPhase
from lingolens.vision_labeler import (
    ClassificationError, ClassificationRequest, DictionaryLabeler,
    RateLimitedError, VisionLabeler, parse_retry_after,
)
from lingolens.classification_controller import (
    ClassificationController, ClassificationMode, RequestOutcome,
)
from lingolens.video_pipeline import (
    CameraFrameSource, FitMode, FrameProcessor, PerformanceOverlay, ViewportTransform,
)
from lingolens.overlay_renderer import TranslationOverlayRenderer
from lingolens.translation_session import RealtimeTranslationSession


FRAME_SIZE = (1000, 1000)
CUP = SemanticLabel(object="Cup", translation="Kuppi",
                    example_sentence="Juo kupista.", sentence_translation="Drink from the cup.")
BOTTLE = SemanticLabel(object="Bottle", translation="Pullo")


# =============================================================================
# FAKES
# =============================================================================

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class QueuedSpawn:
    """Captures background work instead of starting threads."""

    def __init__(self):
        self.jobs = []

    def __call__(self, work):
        self.jobs.append(work)

    def run_all(self):
        jobs, self.jobs = self.jobs, []
        for job in jobs:
            job()


def run_inline(work):
    work()


class ScriptedLabeler:
    """Returns (or raises) the queued results in order, counting calls."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0
        self.requests = []

    def classify(self, request):
        self.calls += 1
        self.requests.append(request)
        result = self.results.pop(0) if self.results else []
        if isinstance(result, Exception):
            raise result
        return result


class FakeDetector:
    """Stands in for LocalDetector in session tests."""

    def __init__(self, detection=None):
        self.detection = detection
        self.load_calls = 0
        self.load_failed = False

    def load_async(self):
        self.load_calls += 1

    def detect_prominent(self, frame):
        return self.detection


def detection_at(x, y, w=50, h=50, label="cup", score=0.9):
    return Detection(BoundingBox(x, y, w, h), label, score)


def make_controller(labeler, clock=None, spawn=None, mode=ClassificationMode.REALTIME):
    clock = clock or FakeClock()
    tracker = LabelTracker(clock=clock)
    controller = ClassificationController(
        tracker, labeler, ClassifierConfig(), clock=clock, spawn=spawn or run_inline, mode=mode
    )
    controller.start()
    return tracker, controller, clock


def blank_frame(width=640, height=480):
    return np.zeros((height, width, 3), dtype=np.uint8)


def _status_error(cls, status, message, headers=None):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(status, headers=headers or {}, request=request)
    return cls(message, response=response, body=None)


def _chat_response(content):
    message = types.SimpleNamespace(content=content)
    return types.SimpleNamespace(choices=[types.SimpleNamespace(message=message)])


def _fake_client(*outcomes):
    """OpenAI-shaped client whose create() replays outcomes."""
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        outcome = outcomes[len(calls) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return _chat_response(outcome)

    client = types.SimpleNamespace(
        chat=types.SimpleNamespace(completions=types.SimpleNamespace(create=create))
    )
    return client, calls


# =============================================================================
# A. SMOOTHING
# =============================================================================

def test_smoothing_convergence():
    """
    Test Case A1: Steady object

    Scenario:
    - 40 frames, one detection at bbox (100, 100, 50, 50) in a 1000x1000 frame

    Assertions:
    - Distance to the top-center anchor (0.125, 0.1) never grows
    - The smoothed position ends on the anchor
    """
    print("\n" + "="*60)
    print("TEST A1: Smoothing Convergence")
    print("="*60)

    tracker = LabelTracker()
    target = NormalizedPosition(0.125, 0.1)
    distances = []

    for i in range(40):
        label = tracker.update_position(detection_at(100, 100), FRAME_SIZE)
        p = tracker.smoothed_position
        distances.append(abs(p.x - target.x) + abs(p.y - target.y))
        assert label.visible, f"Label should be visible at frame {i}"

    print(f"  Final position: ({p.x:.4f}, {p.y:.4f})")
    assert all(b <= a for a, b in zip(distances, distances[1:])), "Distance must not grow"
    assert abs(p.x - 0.125) < 1e-9 and abs(p.y - 0.1) < 1e-9
    assert tracker.phase == TrackerPhase.TRACKING

    print("\n✓ TEST A1 PASSED: Smoothing Convergence")


def test_smoothing_no_overshoot():
    """
    Test Case A2: Object jumps

    Scenario:
    - Object sits at the center, then jumps to the top-left area

    Assertions:
    - First step moves exactly alpha (0.2) of the way
    - Position approaches the new anchor monotonically and never passes it
    """
    print("\n" + "="*60)
    print("TEST A2: Smoothing Without Overshoot")
    print("="*60)

    tracker = LabelTracker()
    tracker.update_position(detection_at(475, 500), FRAME_SIZE)   # anchor (0.5, 0.5)
    start = tracker.smoothed_position
    assert (start.x, start.y) == (0.5, 0.5), "First sample initializes the filter"

    xs = []
    for _ in range(40):
        tracker.update_position(detection_at(100, 100), FRAME_SIZE)
        xs.append(tracker.smoothed_position.x)

    print(f"  x after 1 step: {xs[0]:.4f}, after 40: {xs[-1]:.4f}")
    assert abs(xs[0] - (0.5 + (0.125 - 0.5) * 0.2)) < 1e-9
    assert all(b < a for a, b in zip(xs, xs[1:])), "x should decrease every frame"
    assert all(x >= 0.125 for x in xs), "Smoothing must not overshoot the raw position"
    assert abs(xs[-1] - 0.125) < 0.001

    print("\n✓ TEST A2 PASSED: Smoothing Without Overshoot")


# =============================================================================
# B. GRACE PERIOD
# =============================================================================

def test_short_dropout_holds():
    """
    Test Case B1: Hand passes in front of the object

    Scenario:
    - Detection for 10 frames, nothing for 20, detection again for 5

    Assertions:
    - Label visible on every frame
    - Phase is HOLDING during the dropout, position frozen
    """
    print("\n" + "="*60)
    print("TEST B1: Short Dropout (20 < 30 frames)")
    print("="*60)

    tracker = LabelTracker()
    visible = []

    for _ in range(10):
        visible.append(tracker.update_position(detection_at(100, 100), FRAME_SIZE).visible)
    held_at = tracker.smoothed_position

    for i in range(20):
        label = tracker.update_position(None, FRAME_SIZE)
        visible.append(label.visible)
        assert label.phase == TrackerPhase.HOLDING
        assert label.position == held_at, "Held label must not move"

    for _ in range(5):
        visible.append(tracker.update_position(detection_at(100, 100), FRAME_SIZE).visible)

    print(f"  Visible frames: {sum(visible)}/{len(visible)}")
    assert all(visible), "Label should never disappear during a short dropout"
    assert tracker.phase == TrackerPhase.TRACKING
    assert tracker.state.missing_frame_count == 0

    print("\n✓ TEST B1 PASSED: Short Dropout")


def test_long_dropout_clears():
    """
    Test Case B2: Object leaves the frame

    Scenario:
    - Detection for 10 frames, then nothing for 40

    Assertions:
    - Visible up to frame 39, hidden from frame 40 onward
    - State is EMPTY with the smoothed position and semantic label cleared
    """
    print("\n" + "="*60)
    print("TEST B2: Long Dropout (40 >= 30 frames)")
    print("="*60)

    tracker = LabelTracker()
    tracker.update_semantic(CUP)
    labels = []

    for _ in range(10):
        labels.append(tracker.update_position(detection_at(100, 100), FRAME_SIZE))
    for _ in range(40):
        labels.append(tracker.update_position(None, FRAME_SIZE))

    # Frames are 1-indexed in the scenario
    first_hidden = next(i + 1 for i, label in enumerate(labels) if not label.visible)
    print(f"  First hidden frame: {first_hidden}")
    assert first_hidden == 40
    assert all(not label.visible for label in labels[39:])
    assert tracker.phase == TrackerPhase.EMPTY
    assert tracker.smoothed_position is None
    assert tracker.semantic_label is None
    assert tracker.state.missing_frame_count == 30, "Miss counter is capped at the grace period"

    label = tracker.update_position(detection_at(300, 300), FRAME_SIZE)
    assert label.visible and label.is_placeholder, "New object starts with the placeholder"
    assert label.position == NormalizedPosition(0.325, 0.3), "No smoothing from the old object"

    print("\n✓ TEST B2 PASSED: Long Dropout")


def test_placeholder_and_semantic_text():
    """Placeholder while unclassified, object + translation once a label lands."""
    print("\n" + "="*60)
    print("TEST B3: Placeholder vs Semantic Label")
    print("="*60)

    tracker = LabelTracker()
    label = tracker.update_position(detection_at(100, 100), FRAME_SIZE)
    assert label.is_placeholder and label.text == "Analyzing…"

    tracker.update_semantic(CUP)
    label = tracker.update_position(detection_at(100, 100), FRAME_SIZE)
    print(f"  Label text: {label.text}")
    assert not label.is_placeholder
    assert label.text == "Cup: Kuppi"

    label = tracker.update_position(detection_at(100, 100), (0, 0))
    assert label.phase == TrackerPhase.HOLDING, "A zero-size frame counts as a miss"

    print("\n✓ TEST B3 PASSED: Placeholder vs Semantic Label")


# =============================================================================
# C. CLASSIFICATION CONTROL
# =============================================================================

def test_single_flight():
    """
    Test Case C1: Slow request, fast ticks

    Assertions:
    - While a request is pending every tick is rejected as IN_FLIGHT
    - Only one classifier call happens
    - Completion clears the in-flight flag and applies the label
    """
    print("\n" + "="*60)
    print("TEST C1: Single-Flight")
    print("="*60)

    labeler = ScriptedLabeler([CUP])
    spawn = QueuedSpawn()
    tracker, controller, clock = make_controller(labeler, spawn=spawn)

    assert controller.request_classification(blank_frame(), "fi") == RequestOutcome.STARTED
    outcomes = []
    for _ in range(10):
        clock.advance(2.0)
        outcomes.append(controller.request_classification(blank_frame(), "fi"))

    print(f"  Outcomes while pending: {set(o.value for o in outcomes)}")
    assert outcomes == [RequestOutcome.IN_FLIGHT] * 10
    assert len(spawn.jobs) == 1
    assert controller.in_flight

    spawn.run_all()
    assert labeler.calls == 1
    assert not controller.in_flight
    assert tracker.semantic_label == CUP

    print("\n✓ TEST C1 PASSED: Single-Flight")


def test_throttle_intervals():
    """Realtime allows one attempt per 1s, manual one per 3s."""
    print("\n" + "="*60)
    print("TEST C2: Throttle")
    print("="*60)

    labeler = ScriptedLabeler()
    tracker, controller, clock = make_controller(labeler)

    assert controller.request_classification(blank_frame(), "fi") == RequestOutcome.STARTED
    clock.advance(0.5)
    assert controller.request_classification(blank_frame(), "fi") == RequestOutcome.THROTTLED
    clock.advance(0.5)
    assert controller.request_classification(blank_frame(), "fi") == RequestOutcome.STARTED

    controller.mode = ClassificationMode.MANUAL
    clock.advance(2.0)
    assert controller.request_classification(blank_frame(), "fi") == RequestOutcome.THROTTLED
    clock.advance(1.0)
    assert controller.request_classification(blank_frame(), "fi") == RequestOutcome.STARTED

    print(f"  Classifier calls: {labeler.calls}")
    assert labeler.calls == 3

    controller.stop()
    clock.advance(10.0)
    assert controller.request_classification(blank_frame(), "fi") == RequestOutcome.STOPPED
    assert labeler.calls == 3

    print("\n✓ TEST C2 PASSED: Throttle")


def test_rate_limit_backoff():
    """
    Test Case C3: 429 with retryAfter=10

    Assertions:
    - No classifier attempt for 10 simulated seconds
    - Attempts resume once the backoff has elapsed
    - The previous label survives the rate limit
    """
    print("\n" + "="*60)
    print("TEST C3: Rate-Limit Backoff")
    print("="*60)

    labeler = ScriptedLabeler([CUP], RateLimitedError("slow down", retry_after=10.0), [BOTTLE])
    tracker, controller, clock = make_controller(labeler)

    controller.request_classification(blank_frame(), "fi")
    clock.advance(1.0)
    controller.request_classification(blank_frame(), "fi")     # 429 at t=1
    assert labeler.calls == 2
    assert tracker.semantic_label == CUP
    assert abs(controller.backoff_remaining - 10.0) < 1e-9

    outcomes = []
    while clock.now < 10.9:
        clock.advance(0.1)
        outcomes.append(controller.request_classification(blank_frame(), "fi"))

    print(f"  Attempts during backoff: {labeler.calls - 2}")
    assert labeler.calls == 2, "No attempts while backing off"
    assert set(outcomes) == {RequestOutcome.BACKING_OFF}

    clock.now = 11.0
    assert controller.request_classification(blank_frame(), "fi") == RequestOutcome.STARTED
    assert labeler.calls == 3
    assert tracker.semantic_label == BOTTLE

    print("\n✓ TEST C3 PASSED: Rate-Limit Backoff")


def test_rate_limit_default_delay():
    """A 429 without a usable delay backs off for the configured default (30s)."""
    print("\n" + "="*60)
    print("TEST C4: Default Retry Delay")
    print("="*60)

    labeler = ScriptedLabeler(RateLimitedError("slow down"))
    tracker, controller, clock = make_controller(labeler)

    controller.request_classification(blank_frame(), "fi")
    print(f"  Backoff remaining: {controller.backoff_remaining:.1f}s")
    assert abs(controller.backoff_remaining - 30.0) < 1e-9

    clock.now = 29.9
    assert controller.request_classification(blank_frame(), "fi") == RequestOutcome.BACKING_OFF
    clock.now = 30.0
    assert controller.request_classification(blank_frame(), "fi") == RequestOutcome.STARTED

    print("\n✓ TEST C4 PASSED: Default Retry Delay")


# =============================================================================
# D. EMPTY RESULTS, FAILURES, STOPPED SESSIONS
# =============================================================================

def test_empty_results_clear_after_delay():
    """
    Test Case D1: Object taken away, classifier reports nothing twice

    Assertions:
    - Semantic text survives until the 1s delay elapses
    - A second empty result does not push the clear back
    - The label keeps following the object with the placeholder afterwards
    """
    print("\n" + "="*60)
    print("TEST D1: Empty Results")
    print("="*60)

    labeler = ScriptedLabeler([CUP], [], [])
    tracker, controller, clock = make_controller(labeler)

    controller.request_classification(blank_frame(), "fi")
    assert tracker.update_position(detection_at(100, 100), FRAME_SIZE).semantic == CUP

    clock.now = 2.0
    controller.request_classification(blank_frame(), "fi")      # first empty
    clock.now = 2.9
    label = tracker.update_position(detection_at(100, 100), FRAME_SIZE)
    assert label.semantic == CUP, "Text should survive until the delay elapses"

    clock.now = 3.0
    controller.request_classification(blank_frame(), "fi")      # second empty
    label = tracker.update_position(detection_at(100, 100), FRAME_SIZE)

    print(f"  Label after delay: {label.text!r}")
    assert labeler.calls == 3
    assert tracker.semantic_label is None
    assert label.visible and label.is_placeholder

    print("\n✓ TEST D1 PASSED: Empty Results")


def test_new_label_cancels_pending_clear():
    labeler = ScriptedLabeler([CUP], [], [BOTTLE])
    tracker, controller, clock = make_controller(labeler)

    controller.request_classification(blank_frame(), "fi")
    clock.now = 1.0
    controller.request_classification(blank_frame(), "fi")      # clear due at 2.0
    clock.now = 1.5
    assert tracker.update_position(detection_at(100, 100), FRAME_SIZE).semantic == CUP
    clock.now = 2.0
    controller.request_classification(blank_frame(), "fi")
    clock.now = 5.0
    label = tracker.update_position(detection_at(100, 100), FRAME_SIZE)
    assert label.semantic == BOTTLE
    assert tracker.state.semantic_clear_at is None


def test_failures_keep_last_label():
    """Errors of any kind leave the displayed label and the loop untouched."""
    print("\n" + "="*60)
    print("TEST D2: Failures Keep Last Label")
    print("="*60)

    labeler = ScriptedLabeler(
        [CUP], ClassificationError("network down"), RuntimeError("boom")
    )
    tracker, controller, clock = make_controller(labeler)

    for _ in range(3):
        controller.request_classification(blank_frame(), "fi")
        clock.advance(1.0)

    assert labeler.calls == 3
    assert tracker.semantic_label == CUP
    assert not controller.in_flight
    assert controller.backoff_remaining == 0.0

    print("\n✓ TEST D2 PASSED: Failures Keep Last Label")


def test_stale_session_result_dropped():
    """
    Test Case D3: Camera stopped while a request is pending

    Assertions:
    - The restarted session cannot start a second call while the old one runs
    - The late result does not reach the new session
    - Requests resume once the old call has finished
    """
    print("\n" + "="*60)
    print("TEST D3: Stale Session")
    print("="*60)

    labeler = ScriptedLabeler([CUP], [BOTTLE])
    spawn = QueuedSpawn()
    tracker, controller, clock = make_controller(labeler, spawn=spawn)

    controller.request_classification(blank_frame(), "fi")
    controller.stop()
    tracker.reset()
    controller.start()

    clock.advance(2.0)
    assert controller.request_classification(blank_frame(), "fi") == RequestOutcome.IN_FLIGHT
    assert len(spawn.jobs) == 1, "Still only the old call outstanding"

    spawn.run_all()
    print(f"  Semantic label after late response: {tracker.semantic_label}")
    assert labeler.calls == 1
    assert tracker.semantic_label is None
    assert not controller.in_flight

    assert controller.request_classification(blank_frame(), "fi") == RequestOutcome.STARTED
    spawn.run_all()
    assert tracker.semantic_label == BOTTLE

    print("\n✓ TEST D3 PASSED: Stale Session")


def test_session_restart_keeps_single_flight():
    """Camera stop/start during a slow call never puts two calls in the air."""
    print("\n" + "="*60)
    print("TEST D4: Restart During a Pending Call")
    print("="*60)

    clock = FakeClock(100.0)
    spawn = QueuedSpawn()
    labeler = ScriptedLabeler([CUP], [BOTTLE])
    session = RealtimeTranslationSession(
        FakeDetector(detection_at(100, 100)), labeler, clock=clock, spawn=spawn
    )
    frame = blank_frame(1000, 1000)

    session.start()
    clock.advance(2.0)
    session.process_frame(frame)                   # tick: first call pending
    assert len(spawn.jobs) == 1

    session.stop()
    session.start()
    clock.advance(2.0)
    session.process_frame(frame)                   # tick while the old call runs
    print(f"  Outstanding calls: {len(spawn.jobs)}")
    assert len(spawn.jobs) == 1

    spawn.run_all()
    assert session.process_frame(frame).is_placeholder, "Old session's label is dropped"

    clock.advance(2.0)
    session.process_frame(frame)
    spawn.run_all()
    assert session.process_frame(frame).semantic == BOTTLE
    assert labeler.calls == 2

    print("\n✓ TEST D4 PASSED: Restart During a Pending Call")


def test_language_switch_drops_pending_result():
    """
    Test Case D5: Language changed while a request is pending

    Assertions:
    - The answer in the previous language is never shown
    - The next request in the new language is applied
    """
    print("\n" + "="*60)
    print("TEST D5: Language Switch With a Pending Request")
    print("="*60)

    clock = FakeClock(100.0)
    spawn = QueuedSpawn()
    tasse = SemanticLabel(object="Cup", translation="Tasse")
    labeler = ScriptedLabeler([CUP], [tasse])
    session = RealtimeTranslationSession(
        FakeDetector(detection_at(100, 100)), labeler, clock=clock, spawn=spawn
    )
    frame = blank_frame(1000, 1000)

    session.start()
    clock.advance(2.0)
    session.process_frame(frame)                   # request in Finnish pending
    session.set_language("fr")
    spawn.run_all()

    label = session.process_frame(frame)
    print(f"  Language: {session.language}, shown: {label.text!r}")
    assert label.is_placeholder, "Finnish answer must not appear under French"
    assert not session.controller.in_flight

    clock.advance(2.0)
    session.process_frame(frame)
    spawn.run_all()
    label = session.process_frame(frame)
    assert label.semantic == tasse
    assert labeler.requests[-1].language == "fr"

    print("\n✓ TEST D5 PASSED: Language Switch With a Pending Request")


def test_semantic_update_from_worker_thread():
    tracker = LabelTracker()
    worker = threading.Thread(target=tracker.update_semantic, args=(CUP,))
    worker.start()
    worker.join()
    label = tracker.update_position(detection_at(100, 100), FRAME_SIZE)
    assert label.semantic == CUP


# =============================================================================
# E. VISION CLIENT
# =============================================================================

def test_parse_retry_after():
    print("\n" + "="*60)
    print("TEST E1: Retry-After Parsing")
    print("="*60)

    cases = [
        ({"retry-after-ms": "850"}, "", 0.85),
        ({"Retry-After": "10"}, "", 10.0),
        ({"retry-after-ms": "2000", "retry-after": "10"}, "", 2.0),
        ({}, "Rate limit reached. Please try again in 12.5s.", 12.5),
        (None, "Please try again in 850ms", 0.85),
        ({"retry-after": "soon"}, "Too many requests", None),
    ]
    for headers, message, expected in cases:
        result = parse_retry_after(headers, message)
        print(f"  {headers!r} / {message!r} -> {result}")
        if expected is None:
            assert result is None
        else:
            assert abs(result - expected) < 1e-9

    print("\n✓ TEST E1 PASSED: Retry-After Parsing")


def test_parse_response():
    labeler = VisionLabeler(ClassifierConfig(), client=object())

    fenced = '```json\n{"objects": [{"object": "Cup", "translation": "Tasse", ' \
             '"exampleSentence": "Buvez dans la tasse.", "confidence": 0.9}]}\n```'
    labels = labeler.parse_response(fenced)
    assert labels[0].translation == "Tasse"
    assert labels[0].example_sentence == "Buvez dans la tasse."
    assert labels[0].confidence == 0.9

    assert labeler.parse_response('{"objects": []}') == []
    assert labeler.parse_response('[{"object": "Cup", "translation": "Taza"}]')[0].object == "Cup"

    mixed = labeler.parse_response('{"objects": [{"object": "Cup"}, {"object": "Pen", "translation": "Kynä"}]}')
    assert [label.object for label in mixed] == ["Pen"], "Incomplete records are skipped"

    for bad in ["not json", "", '{"objects": "cup"}']:
        try:
            labeler.parse_response(bad)
        except ClassificationError:
            continue
        raise AssertionError(f"Expected ClassificationError for {bad!r}")


def test_vision_labeler_requests_and_errors():
    """
    Test Case E2: OpenAI client behaviour

    Assertions:
    - Successful call sends a low-detail JPEG data URL and the target language
    - HTTP 429 becomes RateLimitedError with the header delay
    - Other API errors become ClassificationError
    - A missing model falls back to gpt-4o-mini once
    """
    print("\n" + "="*60)
    print("TEST E2: Vision Labeler")
    print("="*60)

    request = ClassificationRequest(image=blank_frame(320, 240), language="ru")

    client, calls = _fake_client('{"objects": [{"object": "Cup", "translation": "Чашка"}]}')
    labeler = VisionLabeler(ClassifierConfig(), client=client)
    labels = labeler.classify(request)
    content = calls[0]["messages"][0]["content"]
    assert labels[0].translation == "Чашка"
    assert "Russian" in content[0]["text"]
    assert content[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")
    assert content[1]["image_url"]["detail"] == "low"
    assert calls[0]["response_format"] == {"type": "json_object"}

    limited = _status_error(openai.RateLimitError, 429, "Rate limit reached", {"retry-after": "10"})
    client, _ = _fake_client(limited)
    try:
        VisionLabeler(ClassifierConfig(), client=client).classify(request)
        raise AssertionError("Expected RateLimitedError")
    except RateLimitedError as e:
        print(f"  429 -> retry_after={e.retry_after}")
        assert e.retry_after == 10.0

    server_error = _status_error(openai.InternalServerError, 500, "Server error")
    client, _ = _fake_client(server_error)
    try:
        VisionLabeler(ClassifierConfig(), client=client).classify(request)
        raise AssertionError("Expected ClassificationError")
    except RateLimitedError:
        raise AssertionError("A 500 is not a rate limit")
    except ClassificationError as e:
        print(f"  500 -> {e}")

    missing = _status_error(openai.NotFoundError, 404, "model not found")
    client, calls = _fake_client(missing, '{"objects": []}')
    labeler = VisionLabeler(ClassifierConfig(model_name="gpt-4o"), client=client)
    assert labeler.classify(request) == []
    assert [c["model"] for c in calls] == ["gpt-4o", "gpt-4o-mini"]

    unconfigured = VisionLabeler(ClassifierConfig(api_key=None))
    assert not unconfigured.is_available()
    try:
        unconfigured.classify(request)
        raise AssertionError("Expected ClassificationError without an API key")
    except ClassificationError:
        pass

    print("\n✓ TEST E2 PASSED: Vision Labeler")


def test_dictionary_labeler():
    labeler = DictionaryLabeler()
    image = blank_frame(32, 32)

    assert labeler.classify(ClassificationRequest(image=image, language="fi")) == []

    label = labeler.classify(ClassificationRequest(image=image, language="fr", hint="cup", hint_score=0.8))[0]
    assert (label.object, label.translation) == ("cup", "Tasse")
    assert label.example_sentence == "Buvez dans la tasse."
    assert label.confidence == 0.8

    label = labeler.classify(ClassificationRequest(image=image, language="xx", hint="cell phone"))[0]
    assert label.translation == "Matkapuhelin", "Unknown languages fall back to Finnish"

    label = labeler.classify(ClassificationRequest(image=image, language="fi", hint="gizmo"))[0]
    assert label.translation == "gizmo"
    assert label.example_sentence == "Tämä on gizmo."
    assert label.sentence_translation == "This is a/an gizmo."


# =============================================================================
# E. DETECTOR ADAPTER
# =============================================================================

def test_filter_and_prominent_selection():
    print("\n" + "="*60)
    print("TEST E3: Detection Filtering")
    print("="*60)

    detections = [
        detection_at(0, 0, 100, 100, label="cup", score=0.5),      # not strictly above
        detection_at(0, 0, 200, 200, label="Person", score=0.99),
        detection_at(0, 0, 40, 40, label="book", score=0.51),
        detection_at(0, 0, 50, 50, label="bottle", score=0.9),
        detection_at(500, 500, 50, 50, label="vase", score=0.7),
    ]
    kept = filter_detections(detections)
    print(f"  Kept: {[d.label for d in kept]}")
    assert [d.label for d in kept] == ["book", "bottle", "vase"]

    prominent = select_prominent(kept)
    assert prominent.label == "bottle", "Equal areas: the first detection wins"
    assert select_prominent([]) is None

    print("\n✓ TEST E3 PASSED: Detection Filtering")


def test_detector_async_load():
    """
    Test Case E4: Background model load

    Assertions:
    - detect() fails closed before the load
    - load_async() is idempotent
    - Boxes found on the downscaled frame come back in source pixels
    - A failed load keeps failing closed
    """
    print("\n" + "="*60)
    print("TEST E4: Detector Load")
    print("="*60)

    seen_widths = []

    class FakeModel:
        def predict(self, frame):
            seen_widths.append(frame.shape[1])
            return [
                {"class": "cup", "bbox": [10, 10, 20, 20], "score": 0.9},
                {"class": "person", "bbox": [0, 0, 300, 300], "score": 0.95},
                {"bbox": [1, 2, 3, 4]},
            ]

    factory_calls = []

    def factory():
        factory_calls.append(1)
        return FakeModel()

    detector = LocalDetector(DetectorConfig(), model_factory=factory)
    assert detector.detect(blank_frame(1280, 720)) == [], "Must fail closed before loading"

    events = [detector.load_async() for _ in range(3)]
    assert detector.wait_until_loaded(timeout=5.0)
    assert all(event is events[0] for event in events)
    assert len(factory_calls) == 1, "Model must be loaded exactly once"

    found = detector.detect(blank_frame(1280, 720))
    print(f"  Inference width: {seen_widths[-1]}, boxes: {[d.bbox for d in found]}")
    assert seen_widths[-1] == 640
    assert len(found) == 1
    assert found[0].bbox == BoundingBox(20.0, 20.0, 40.0, 40.0)
    assert detector.detect_prominent(blank_frame(1280, 720)).label == "cup"

    def broken_factory():
        raise FileNotFoundError("missing.pb")

    broken = LocalDetector(DetectorConfig(), model_factory=broken_factory)
    broken.load_async()
    assert not broken.wait_until_loaded(timeout=5.0)
    assert broken.load_failed
    assert isinstance(broken.load_error, FileNotFoundError)
    assert broken.detect(blank_frame()) == []

    print("\n✓ TEST E4 PASSED: Detector Load")


# =============================================================================
# E. VIEWPORT + RENDERING
# =============================================================================

def test_viewport_transform():
    cover = ViewportTransform.fit((1000, 500), (500, 500), FitMode.COVER)
    assert cover.scale == 1.0 and cover.offset_x == -250.0
    assert cover.map_normalized(0.5, 0.5) == (250, 250)
    assert cover.apply(blank_frame(1000, 500)).shape == (500, 500, 3)

    contain = ViewportTransform.fit((1000, 500), (500, 500), FitMode.CONTAIN)
    assert contain.scale == 0.5 and contain.offset_y == 125.0
    assert contain.map_normalized(0.0, 0.0) == (0, 125)
    assert contain.map_normalized(1.0, 1.0) == (500, 375)

    frame = np.full((500, 1000, 3), 255, dtype=np.uint8)
    boxed = contain.apply(frame)
    assert boxed[0, 250].sum() == 0, "Letterbox bars are black"
    assert boxed[250, 250].sum() == 255 * 3

    try:
        ViewportTransform.fit((0, 500), (500, 500))
        raise AssertionError("Expected ValueError for an empty source")
    except ValueError:
        pass


def test_snapshot_downscale():
    frame = blank_frame(640, 480)
    snapshot = FrameProcessor.snapshot(frame, 0.5)
    assert snapshot.shape == (240, 320, 3)
    snapshot[:] = 255
    assert frame.sum() == 0, "Snapshot must be independent of the live frame"


def test_poll_frame_sleeps_without_frames():
    camera = CameraFrameSource(source=0)
    start = time.perf_counter()
    assert camera.poll_frame(idle_sleep=0.01) is None
    assert time.perf_counter() - start >= 0.009, "Idle poll must yield the CPU"


def test_renderer():
    """Invisible labels draw nothing; visible labels draw a bubble at the anchor."""
    print("\n" + "="*60)
    print("TEST E5: Renderer")
    print("="*60)

    renderer = TranslationOverlayRenderer()
    tracker = LabelTracker()

    frame = blank_frame()
    original = frame.copy()
    renderer.render(frame, tracker.current)
    assert np.array_equal(frame, original), "Hidden label must not touch the frame"

    tracker.update_semantic(CUP)
    label = tracker.update_position(detection_at(295, 240, 50, 50), (640, 480))
    renderer.render(frame, label)
    changed = np.argwhere(frame.sum(axis=2) > 0)
    print(f"  Changed pixels: {len(changed)}")
    assert len(changed) > 0
    # Bubble sits above the anchor at (320, 240)
    assert changed[:, 0].min() < 240

    x1, y1, x2, y2 = renderer.bubble_rect((5, 5), (100, 40), (640, 480))
    assert x1 >= renderer.PADDING and y1 >= int(480 * renderer.MIN_TOP_FRACTION)

    print("\n✓ TEST E5 PASSED: Renderer")


def test_performance_overlay():
    overlay = PerformanceOverlay(history_size=4)
    for phase in ["tracking", "holding", "holding", "holding", "tracking"]:
        overlay.update(12.0, phase, "Analyzing...")

    assert overlay.phase == "tracking"
    assert overlay.holding_ratio() == 0.75, "Only the last 4 frames count"
    assert overlay.get_latency() == 12.0

    frame = blank_frame()
    overlay.draw(frame)
    assert frame.sum() > 0


# =============================================================================
# SESSION
# =============================================================================

def test_session_end_to_end():
    """
    Test Case F: Camera session with the offline labeler

    Assertions:
    - Placeholder until the first timer tick (2s after start)
    - Dictionary label appears on the frame after the tick
    - Switching language clears the old translation
    - Stopping hides the label
    """
    print("\n" + "="*60)
    print("TEST F: Session End-to-End")
    print("="*60)

    clock = FakeClock(100.0)
    detector = FakeDetector(detection_at(100, 100, label="cup", score=0.9))
    session = RealtimeTranslationSession(
        detector, DictionaryLabeler(), clock=clock, spawn=run_inline
    )
    frame = blank_frame(1000, 1000)

    assert not session.process_frame(frame).visible, "Nothing before start"
    session.start()
    session.start()
    assert detector.load_calls == 1
    assert session.show_instructions

    label = session.process_frame(frame)
    assert label.visible and label.is_placeholder

    clock.advance(2.0)
    session.process_frame(frame)                   # timer tick fires here
    label = session.process_frame(frame)
    print(f"  Label: {label.text}")
    assert label.semantic.translation == "Kuppi"
    assert label.semantic.example_sentence == "Juo kupista."

    assert session.set_language("es") == "es"
    label = session.process_frame(frame)
    assert label.is_placeholder, "Old translation must not survive a language switch"
    assert session.language_name == "Spanish"

    clock.advance(2.0)
    session.process_frame(frame)
    assert session.process_frame(frame).semantic.translation == "Taza"
    assert not session.show_instructions

    # Manual mode: no timer, captures throttled at 3s
    assert session.toggle_mode() == ClassificationMode.MANUAL
    clock.advance(2.0)
    session.process_frame(frame)
    assert session.classify(frame) == RequestOutcome.THROTTLED
    clock.advance(1.0)
    assert session.classify(frame) == RequestOutcome.STARTED

    session.stop()
    assert session.status_text == "Camera off"
    assert not session.process_frame(frame).visible
    assert session.classify(frame) == RequestOutcome.STOPPED

    print("\n✓ TEST F PASSED: Session End-to-End")


def test_tracker_config_validation():
    for bad in [dict(smoothing_factor=0.0), dict(grace_period_frames=0), dict(empty_result_clear_delay=-1)]:
        try:
            TrackerConfig(**bad)
        except ValueError:
            continue
        raise AssertionError(f"Expected ValueError for {bad}")
    assert ClassifierConfig(target_language="de").target_language == "fi"
    assert ClassifierConfig().interval_for("manual") == 3.0


# =============================================================================
# RUNNER
# =============================================================================

TESTS = [
    ("A1: Smoothing Convergence", test_smoothing_convergence),
    ("A2: Smoothing Without Overshoot", test_smoothing_no_overshoot),
    ("B1: Short Dropout", test_short_dropout_holds),
    ("B2: Long Dropout", test_long_dropout_clears),
    ("B3: Placeholder vs Semantic", test_placeholder_and_semantic_text),
    ("C1: Single-Flight", test_single_flight),
    ("C2: Throttle", test_throttle_intervals),
    ("C3: Rate-Limit Backoff", test_rate_limit_backoff),
    ("C4: Default Retry Delay", test_rate_limit_default_delay),
    ("D1: Empty Results", test_empty_results_clear_after_delay),
    ("D1b: New Label Cancels Clear", test_new_label_cancels_pending_clear),
    ("D2: Failures Keep Last Label", test_failures_keep_last_label),
    ("D3: Stale Session", test_stale_session_result_dropped),
    ("D4: Restart During a Pending Call", test_session_restart_keeps_single_flight),
    ("D5: Language Switch With a Pending Request", test_language_switch_drops_pending_result),
    ("D6: Worker Thread Update", test_semantic_update_from_worker_thread),
    ("E1: Retry-After Parsing", test_parse_retry_after),
    ("E1b: Response Parsing", test_parse_response),
    ("E2: Vision Labeler", test_vision_labeler_requests_and_errors),
    ("E2b: Dictionary Labeler", test_dictionary_labeler),
    ("E3: Detection Filtering", test_filter_and_prominent_selection),
    ("E4: Detector Load", test_detector_async_load),
    ("E5: Viewport Transform", test_viewport_transform),
    ("E5b: Snapshot", test_snapshot_downscale),
    ("E5e: Idle Frame Poll", test_poll_frame_sleeps_without_frames),
    ("E5c: Renderer", test_renderer),
    ("E5d: Performance Overlay", test_performance_overlay),
    ("F: Session End-to-End", test_session_end_to_end),
    ("G: Config Validation", test_tracker_config_validation),
]


def main():
    """Run all tests."""
    print("\n" + "="*60)
    print("LingoLens Label Tracker - Unit Tests")
    print("="*60)

    results = []
    for name, test in TESTS:
        try:
            test()
            results.append((name, True))
        except AssertionError as e:
            print(f"\n✗ TEST {name} FAILED: {e}")
            results.append((name, False))
        except Exception as e:
            print(f"\n✗ TEST {name} ERROR: {e}")
            import traceback
            traceback.print_exc()
            results.append((name, False))

    # Summary
    print("\n" + "="*60)
    print("TEST SUMMARY")
    print("="*60)
    for name, passed in results:
        status = "✓ PASSED" if passed else "✗ FAILED"
        print(f"  {name}: {status}")

    all_passed = all(result for _, result in results)
    print("\n" + ("="*60))
    if all_passed:
        print("✓ ALL TESTS PASSED")
    else:
        print("✗ SOME TESTS FAILED")
    print("="*60 + "\n")

    return 0 if all_passed else 1


if __name__ == "__main__":
    sys.exit(main())
