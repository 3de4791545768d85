"""
LingoLens Object Detector - Fast Local Detection Adapter

Runs a pre-trained COCO detector on every frame and reduces its output to the
single "prominent" object the label tracker follows:

- Drops predictions at or below the confidence threshold (0.5)
- Drops people (the feature is about objects, not faces)
- Picks the largest bounding box; ties go to the first prediction

The model is loaded once, in the background. Until the load completes
``detect()`` fails closed and returns an empty list.

Usage:
    detector = LocalDetector(DetectorConfig(model_path=..., config_path=...))
    detector.load_async()

    while True:
        prominent = detector.detect_prominent(frame)
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from .config import DetectorConfig
from .video_pipeline import FrameProcessor


# TensorFlow COCO label map (91 ids, 80 used) as emitted by SSD MobileNet graphs
COCO_LABELS: Dict[int, str] = {
    1: "person", 2: "bicycle", 3: "car", 4: "motorcycle", 5: "airplane",
    6: "bus", 7: "train", 8: "truck", 9: "boat", 10: "traffic light",
    11: "fire hydrant", 13: "stop sign", 14: "parking meter", 15: "bench",
    16: "bird", 17: "cat", 18: "dog", 19: "horse", 20: "sheep", 21: "cow",
    22: "elephant", 23: "bear", 24: "zebra", 25: "giraffe", 27: "backpack",
    28: "umbrella", 31: "handbag", 32: "tie", 33: "suitcase", 34: "frisbee",
    35: "skis", 36: "snowboard", 37: "sports ball", 38: "kite",
    39: "baseball bat", 40: "baseball glove", 41: "skateboard",
    42: "surfboard", 43: "tennis racket", 44: "bottle", 46: "wine glass",
    47: "cup", 48: "fork", 49: "knife", 50: "spoon", 51: "bowl",
    52: "banana", 53: "apple", 54: "sandwich", 55: "orange", 56: "broccoli",
    57: "carrot", 58: "hot dog", 59: "pizza", 60: "donut", 61: "cake",
    62: "chair", 63: "couch", 64: "potted plant", 65: "bed",
    67: "dining table", 70: "toilet", 72: "tv", 73: "laptop", 74: "mouse",
    75: "remote", 76: "keyboard", 77: "cell phone", 78: "microwave",
    79: "oven", 80: "toaster", 81: "sink", 82: "refrigerator", 84: "book",
    85: "clock", 86: "vase", 87: "scissors", 88: "teddy bear",
    89: "hair drier", 90: "toothbrush",
}


@dataclass(frozen=True)
class NormalizedPosition:
    """Frame-relative point, both coordinates in [0, 1]."""
    x: float
    y: float

    def to_pixels(self, width: int, height: int) -> Tuple[float, float]:
        return self.x * width, self.y * height


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in source-frame pixels (top-left corner + size)."""
    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    def top_center(self) -> Tuple[float, float]:
        return self.x + self.width / 2, self.y

    def scaled(self, factor: float) -> "BoundingBox":
        return BoundingBox(
            self.x * factor, self.y * factor,
            self.width * factor, self.height * factor
        )

    def anchor(self, frame_size: Tuple[int, int]) -> NormalizedPosition:
        """
        Normalized top-center anchor of the box.

        Args:
            frame_size: (width, height) of the frame the box is expressed in

        Raises:
            ValueError: if the frame size is not positive
        """
        frame_w, frame_h = frame_size
        if frame_w <= 0 or frame_h <= 0:
            raise ValueError(f"Invalid frame size: {frame_size}")
        cx, top = self.top_center()
        return NormalizedPosition(
            x=min(1.0, max(0.0, cx / frame_w)),
            y=min(1.0, max(0.0, top / frame_h)),
        )


@dataclass(frozen=True)
class Detection:
    """One local-detector result."""
    bbox: BoundingBox
    label: str
    score: float

    @classmethod
    def from_prediction(cls, prediction: dict) -> "Detection":
        """Build from a raw model record: {class, bbox: [x, y, w, h], score}."""
        x, y, w, h = (float(v) for v in prediction["bbox"])
        return cls(
            bbox=BoundingBox(x, y, w, h),
            label=str(prediction["class"]),
            score=float(prediction["score"]),
        )


def filter_detections(
    detections: Iterable[Detection],
    score_threshold: float = 0.5,
    excluded_labels: FrozenSet[str] = DetectorConfig().excluded_labels
) -> List[Detection]:
    """Keep confident, non-person detections in their original order."""
    return [
        d for d in detections
        if d.score > score_threshold and d.label.lower() not in excluded_labels
    ]


def select_prominent(detections: Sequence[Detection]) -> Optional[Detection]:
    """Largest-area detection; the first one wins a tie."""
    if not detections:
        return None
    # max() keeps the first maximal element
    return max(detections, key=lambda d: d.bbox.area)


class SSDMobileNetModel:
    """
    COCO SSD MobileNet running through OpenCV's DNN module.

    Expects a TensorFlow frozen graph (.pb) plus its text config (.pbtxt).
    """

    def __init__(self, model_path: str, config_path: Optional[str], input_size: int = 320):
        if not Path(model_path).exists():
            raise FileNotFoundError(f"Detector model not found: {model_path}")
        if config_path and not Path(config_path).exists():
            raise FileNotFoundError(f"Detector config not found: {config_path}")

        self._net = cv2.dnn_DetectionModel(model_path, config_path or "")
        self._net.setInputSize(input_size, input_size)
        self._net.setInputScale(1.0 / 127.5)
        self._net.setInputMean((127.5, 127.5, 127.5))
        self._net.setInputSwapRB(True)

    def predict(self, frame: np.ndarray, min_score: float = 0.3) -> List[dict]:
        """Run inference; returns raw records {class, bbox, score}."""
        class_ids, scores, boxes = self._net.detect(frame, confThreshold=min_score)
        if len(class_ids) == 0:
            return []

        predictions = []
        for class_id, score, box in zip(
            np.asarray(class_ids).flatten(),
            np.asarray(scores).flatten(),
            np.asarray(boxes).reshape(-1, 4)
        ):
            predictions.append({
                "class": COCO_LABELS.get(int(class_id), f"class_{int(class_id)}"),
                "bbox": [float(v) for v in box],
                "score": float(score),
            })
        return predictions


class LocalDetector:
    """
    Per-frame detector adapter with an idempotent background load.

    Attributes:
        config: Detector thresholds and model paths
        load_error: Exception raised by the model load, if it failed
    """

    def __init__(
        self,
        config: Optional[DetectorConfig] = None,
        model_factory: Optional[Callable[[], object]] = None
    ):
        """
        Args:
            config: Detector settings (default: DetectorConfig())
            model_factory: Zero-arg callable returning an object with
                ``predict(frame) -> list[dict]``. Defaults to SSDMobileNetModel
                built from the configured paths.
        """
        self.config = config or DetectorConfig()
        self.logger = logging.getLogger("LocalDetector")
        self._model_factory = model_factory or self._default_factory

        self._model = None
        self._load_lock = threading.Lock()
        self._load_started = False
        self._loaded = threading.Event()
        self.load_error: Optional[BaseException] = None

    def _default_factory(self):
        if not self.config.model_path:
            raise FileNotFoundError(
                "No detector model configured (set LINGOLENS_DETECTOR_MODEL)"
            )
        return SSDMobileNetModel(
            self.config.model_path,
            self.config.config_path,
            input_size=self.config.input_size
        )

    def _load_model(self):
        try:
            model = self._model_factory()
        except Exception as e:
            self.load_error = e
            self.logger.error(f"Failed to load detection model: {e}")
        else:
            self._model = model
            self.logger.info("Object detection model loaded")
        finally:
            self._loaded.set()

    def load_async(self) -> threading.Event:
        """
        Start loading the model in a background thread.

        Safe to call repeatedly: only the first call starts a load.

        Returns:
            Event that is set once the load attempt has finished
        """
        with self._load_lock:
            if self._load_started:
                return self._loaded
            self._load_started = True

        self.logger.info("Loading object detection model...")
        thread = threading.Thread(target=self._load_model, daemon=True)
        thread.start()
        return self._loaded

    def wait_until_loaded(self, timeout: Optional[float] = None) -> bool:
        """Block until the load attempt finishes. Returns True if a model is ready."""
        self._loaded.wait(timeout)
        return self.is_loaded

    @property
    def is_loaded(self) -> bool:
        return self._loaded.is_set() and self._model is not None

    @property
    def load_failed(self) -> bool:
        return self._loaded.is_set() and self.load_error is not None

    def detect(self, frame: np.ndarray) -> List[Detection]:
        """
        Detect qualifying objects in a frame.

        Returns:
            Filtered detections with boxes in source-frame pixels.
            Empty while the model is not loaded or if inference fails.
        """
        if not self.is_loaded or frame is None:
            return []

        small, inverse_scale = FrameProcessor.downscale_for_tracking(
            frame, self.config.inference_width
        )
        try:
            predictions = self._model.predict(small)
        except Exception as e:
            self.logger.error(f"Detection failed: {e}")
            return []

        detections = []
        for prediction in predictions:
            try:
                detection = Detection.from_prediction(prediction)
            except (KeyError, TypeError, ValueError) as e:
                self.logger.warning(f"Skipping malformed prediction {prediction!r}: {e}")
                continue
            if inverse_scale != 1.0:
                detection = Detection(
                    detection.bbox.scaled(inverse_scale), detection.label, detection.score
                )
            detections.append(detection)

        return filter_detections(
            detections,
            self.config.score_threshold,
            self.config.excluded_labels
        )

    def detect_prominent(self, frame: np.ndarray) -> Optional[Detection]:
        """The largest qualifying detection in the frame, if any."""
        return select_prominent(self.detect(frame))
