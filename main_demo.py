#!/usr/bin/env python3
"""
LingoLens - Realtime Camera Translation Demo

Point the camera at an everyday object: a bubble follows it with the object's
name and its translation, and an example sentence appears at the bottom.

Usage:
    python main_demo.py

Controls:
    - L: Cycle target language (Finnish, Russian, French, Spanish)
    - M: Toggle realtime / manual mode
    - SPACE: Capture & translate now (manual mode)
    - F: Toggle FPS overlay
    - Q/ESC: Quit

Without OPENAI_API_KEY the demo falls back to offline dictionary labels
built from the local detector's class names.
"""

import sys
import time
import logging
import argparse
from pathlib import Path
from typing import Optional, Tuple

import cv2  # pyright: ignore[reportMissingImports]

sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

from lingolens.config import AppConfig
from lingolens.video_pipeline import CameraFrameSource, FitMode, PerformanceOverlay, ViewportTransform
from lingolens.object_detector import LocalDetector
from lingolens.vision_labeler import DictionaryLabeler, VisionLabeler
from lingolens.classification_controller import ClassificationMode, RequestOutcome
from lingolens.translation_session import RealtimeTranslationSession
from lingolens.overlay_renderer import TranslationOverlayRenderer


class TranslationDemo:
    """Interactive OpenCV window around a RealtimeTranslationSession."""

    WINDOW_NAME = "LingoLens Camera Translation"
    INSTRUCTIONS = "Point your camera at objects for automatic translation"

    def __init__(
        self,
        config: AppConfig,
        source: int | str = 0,
        resolution: Optional[Tuple[int, int]] = None,
        viewport: Optional[Tuple[int, int]] = None,
        fit_mode: FitMode = FitMode.COVER,
        mode: ClassificationMode = ClassificationMode.REALTIME,
        loop: bool = False
    ):
        self.config = config
        self.source = source
        self.resolution = resolution
        self.viewport = viewport
        self.fit_mode = fit_mode
        self.loop = loop
        self.logger = logging.getLogger("TranslationDemo")

        labeler = VisionLabeler(config.classifier)
        if not labeler.is_available():
            self.logger.warning("Vision API unavailable - using offline dictionary labels")
            labeler = DictionaryLabeler()
        self.logger.info(f"Labeler: {labeler.status_message}")

        self.session = RealtimeTranslationSession(
            LocalDetector(config.detector), labeler, config, mode=mode
        )
        self.renderer = TranslationOverlayRenderer(font_path=config.font_path)
        self.perf = PerformanceOverlay()
        self.video: Optional[CameraFrameSource] = None

        self._show_perf = False
        self._detector_alerted = False

    def _handle_key(self, key: int, frame) -> bool:
        """Returns False when the demo should quit."""
        if key in (ord('q'), 27):
            return False
        if key in (ord('l'), ord('L')):
            self.session.cycle_language()
        elif key in (ord('m'), ord('M')):
            self.session.toggle_mode()
        elif key == ord(' '):
            outcome = self.session.classify(frame)
            if outcome == RequestOutcome.THROTTLED:
                self.logger.info("Please wait before capturing again...")
        elif key in (ord('f'), ord('F')):
            self._show_perf = not self._show_perf
        return True

    def _check_detector(self):
        # One-time alert; the tracker itself never reports errors
        if self._detector_alerted or not self.session.detector.load_failed:
            return
        self._detector_alerted = True
        self.logger.error(
            f"Object detection model could not be loaded: {self.session.detector.load_error}. "
            "Set LINGOLENS_DETECTOR_MODEL / LINGOLENS_DETECTOR_CONFIG."
        )

    def run(self) -> int:
        self.video = CameraFrameSource(
            source=self.source, resolution=self.resolution, loop=self.loop
        )
        if not self.video.start():
            self.logger.error("Could not access the camera. Please check permissions.")
            return 1

        while self.video.latest_frame is None:
            if not self.video.is_running:
                self.logger.error("No frames received from video source")
                self.video.stop()
                return 1
            time.sleep(0.01)

        self.session.start()
        cv2.namedWindow(self.WINDOW_NAME)
        self.logger.info("Demo running. Point the camera at an object.")

        try:
            while True:
                frame = self.video.poll_frame()
                if frame is None:
                    if not self.video.is_running:
                        break
                    continue

                self._check_detector()
                label = self.session.process_frame(frame)

                h, w = frame.shape[:2]
                transform = ViewportTransform.fit((w, h), self.viewport or (w, h), self.fit_mode)
                output = transform.apply(frame)
                self.renderer.render(output, label, transform)
                self.renderer.render_hud(output, self.session.language_name, self.session.status_text)
                if self.session.show_instructions:
                    self.renderer.render_banner(output, self.INSTRUCTIONS)

                self.perf.update(self.video.latency_ms, label.phase.value, self.session.status_text)
                if self._show_perf:
                    self.perf.draw(output)

                cv2.imshow(self.WINDOW_NAME, output)
                key = cv2.waitKey(1) & 0xFF
                if not self._handle_key(key, frame):
                    break

        except KeyboardInterrupt:
            self.logger.info("Interrupted by user")
        finally:
            self.session.stop()
            self.logger.info(f"Frames captured: {self.video.metadata.frame_number}")
            self.video.stop()
            cv2.destroyAllWindows()
            self.logger.info("Demo stopped.")
        return 0


def _parse_size(value: Optional[str]) -> Optional[Tuple[int, int]]:
    if not value:
        return None
    try:
        w, h = value.lower().split("x")
        return int(w), int(h)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid size (expected WxH): {value}") from None


def main():
    parser = argparse.ArgumentParser(
        description="LingoLens realtime camera translation demo",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Controls:
  L            Cycle target language
  M            Toggle realtime / manual mode
  SPACE        Capture & translate now
  F            Toggle FPS overlay
  Q/ESC        Quit

Setup:
  export OPENAI_API_KEY=your_key_here
  export LINGOLENS_DETECTOR_MODEL=frozen_inference_graph.pb
  export LINGOLENS_DETECTOR_CONFIG=ssd_mobilenet_v3_large_coco.pbtxt

Examples:
  python main_demo.py                       # Default webcam, Finnish
  python main_demo.py --language fr         # French
  python main_demo.py --source clip.mp4 --loop
  python main_demo.py --viewport 390x844    # Phone-shaped window (cropped)
        """
    )
    parser.add_argument("--source", "-s", default="0",
                        help="Camera index (0, 1, ...) or video file path")
    parser.add_argument("--resolution", "-r", type=_parse_size, default=None,
                        help="Capture resolution as WxH (e.g. 1280x720)")
    parser.add_argument("--viewport", type=_parse_size, default=None,
                        help="Display window size as WxH (default: frame size)")
    parser.add_argument("--fit", choices=["cover", "contain"], default="cover",
                        help="How video is fitted into the viewport")
    parser.add_argument("--language", "-l", choices=["fi", "ru", "fr", "es"], default=None,
                        help="Target language (default: LINGOLENS_LANGUAGE or fi)")
    parser.add_argument("--manual", action="store_true",
                        help="Start in manual capture mode")
    parser.add_argument("--loop", action="store_true",
                        help="Loop video files when they reach the end")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        default="INFO", help="Logging level")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    try:
        config = AppConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}")
        return 2
    if args.language:
        config.classifier.target_language = args.language

    try:
        source = int(args.source)
    except ValueError:
        source = args.source

    print("\n" + "=" * 60)
    print("  LingoLens - Realtime Camera Translation")
    print("=" * 60)
    print(f"  Source: {source}")
    print(f"  Language: {config.classifier.target_language}")
    print(f"  Mode: {'manual' if args.manual else 'realtime'}")
    print("=" * 60 + "\n")

    demo = TranslationDemo(
        config,
        source=source,
        resolution=args.resolution,
        viewport=args.viewport,
        fit_mode=FitMode(args.fit),
        mode=ClassificationMode.MANUAL if args.manual else ClassificationMode.REALTIME,
        loop=args.loop,
    )
    return demo.run()


if __name__ == "__main__":
    sys.exit(main())
