"""
LingoLens - Point the Camera, See the Translation

Real-time object labels for language learners. A fast local detector keeps
the label glued to the object every frame, while a slow vision model supplies
the object's name, its translation and an example sentence every few seconds.

Features:
- Exponentially smoothed label position (no jitter)
- 30-frame grace period before a lost object's label disappears
- Throttled, single-flight classifier calls with silent rate-limit backoff
- Offline dictionary labels when no vision API is configured
- Finnish, Russian, French and Spanish

Quick Start:
    from lingolens import (
        AppConfig, CameraFrameSource, LocalDetector, VisionLabeler,
        RealtimeTranslationSession, TranslationOverlayRenderer,
    )

    config = AppConfig.from_env()
    session = RealtimeTranslationSession(
        LocalDetector(config.detector), VisionLabeler(config.classifier), config
    )
    renderer = TranslationOverlayRenderer()

    with CameraFrameSource(source=0) as camera:
        session.start()
        while True:
            frame = camera.latest_frame
            if frame is None:
                continue
            label = session.process_frame(frame)
            display(renderer.render(frame, label))
"""

__version__ = "1.0.0"

from .config import (
    AppConfig,
    TrackerConfig,
    ClassifierConfig,
    DetectorConfig,
    SUPPORTED_LANGUAGES,
)

from .object_detector import (
    BoundingBox,
    NormalizedPosition,
    Detection,
    LocalDetector,
    SSDMobileNetModel,
    filter_detections,
    select_prominent,
)

from .label_tracker import (
    LabelTracker,
    SemanticLabel,
    TrackedLabel,
    TrackerPhase,
    TrackerState,
    smooth_position,
)

from .vision_labeler import (
    VisionLabeler,
    DictionaryLabeler,
    ClassificationRequest,
    ClassificationError,
    RateLimitedError,
    parse_retry_after,
)

from .classification_controller import (
    ClassificationController,
    ClassificationMode,
    RequestOutcome,
)

from .video_pipeline import (
    CameraFrameSource,
    FrameProcessor,
    FrameMetadata,
    FitMode,
    ViewportTransform,
    PerformanceOverlay,
)

from .overlay_renderer import TranslationOverlayRenderer, OverlayColors
from .translation_session import RealtimeTranslationSession
from .translations import LANGUAGE_NAMES

__all__ = [
    "__version__",

    # Config
    "AppConfig",
    "TrackerConfig",
    "ClassifierConfig",
    "DetectorConfig",
    "SUPPORTED_LANGUAGES",

    # Detection
    "BoundingBox",
    "NormalizedPosition",
    "Detection",
    "LocalDetector",
    "SSDMobileNetModel",
    "filter_detections",
    "select_prominent",

    # Tracking
    "LabelTracker",
    "SemanticLabel",
    "TrackedLabel",
    "TrackerPhase",
    "TrackerState",
    "smooth_position",

    # Classification
    "VisionLabeler",
    "DictionaryLabeler",
    "ClassificationRequest",
    "ClassificationError",
    "RateLimitedError",
    "parse_retry_after",
    "ClassificationController",
    "ClassificationMode",
    "RequestOutcome",

    # Video
    "CameraFrameSource",
    "FrameProcessor",
    "FrameMetadata",
    "FitMode",
    "ViewportTransform",
    "PerformanceOverlay",

    # Rendering / session
    "TranslationOverlayRenderer",
    "OverlayColors",
    "RealtimeTranslationSession",
    "LANGUAGE_NAMES",
]
