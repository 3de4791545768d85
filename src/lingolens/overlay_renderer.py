"""
LingoLens Overlay Renderer - Translation Bubbles on Live Video

Draws the tracker's output:
- Nothing at all when the label is not visible
- A white bubble (object name + translation) whose pointer sits on the
  object's top-center anchor
- An example-sentence panel along the bottom edge
- A slim HUD with the target language and classifier status

Shapes are drawn with OpenCV; text goes through Pillow so that accented
and Cyrillic translations render correctly.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .label_tracker import TrackedLabel
from .video_pipeline import ViewportTransform


@dataclass
class OverlayColors:
    """BGR colors."""
    bubble: Tuple[int, int, int] = (250, 250, 250)
    border: Tuple[int, int, int] = (220, 220, 220)
    object_text: Tuple[int, int, int] = (235, 99, 37)        # Blue
    translation_text: Tuple[int, int, int] = (40, 40, 40)
    placeholder_text: Tuple[int, int, int] = (120, 120, 120)
    panel: Tuple[int, int, int] = (15, 15, 15)
    panel_heading: Tuple[int, int, int] = (252, 211, 147)    # Light blue
    panel_text: Tuple[int, int, int] = (255, 255, 255)
    panel_muted: Tuple[int, int, int] = (190, 190, 190)


@dataclass
class _TextItem:
    text: str
    origin: Tuple[int, int]
    font: ImageFont.ImageFont
    color: Tuple[int, int, int]


class TranslationOverlayRenderer:
    """
    Renders a TrackedLabel onto a frame.

    Attributes:
        colors: Palette for bubble, text and panel
        bubble_opacity: Background opacity of the bubble
    """

    POINTER_SIZE = 8
    PADDING = 8
    MIN_TOP_FRACTION = 0.05
    FALLBACK_FONTS = ("DejaVuSans.ttf", "Arial.ttf", "arial.ttf")

    def __init__(
        self,
        font_path: Optional[str] = None,
        font_size: int = 22,
        small_font_size: int = 16,
        colors: Optional[OverlayColors] = None,
        bubble_opacity: float = 0.95
    ):
        self.logger = logging.getLogger("TranslationOverlayRenderer")
        self.colors = colors or OverlayColors()
        self.bubble_opacity = bubble_opacity
        self.font = self._load_font(font_path, font_size)
        self.small_font = self._load_font(font_path, small_font_size)

    def _load_font(self, font_path: Optional[str], size: int):
        candidates = ([font_path] if font_path else []) + list(self.FALLBACK_FONTS)
        for candidate in candidates:
            try:
                return ImageFont.truetype(candidate, size)
            except OSError:
                continue
        self.logger.warning("No TrueType font found, using Pillow's default bitmap font")
        return ImageFont.load_default()

    # =========================================================================
    # TEXT
    # =========================================================================

    @staticmethod
    def _text_size(text: str, font) -> Tuple[int, int]:
        left, top, right, bottom = font.getbbox(text or " ")
        return right - left, bottom - top

    @staticmethod
    def _draw_text(frame: np.ndarray, items: List[_TextItem]) -> np.ndarray:
        """Draw queued text in one Pillow pass (BGR in, BGR out, in place)."""
        if not items:
            return frame
        image = Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        draw = ImageDraw.Draw(image)
        for item in items:
            b, g, r = item.color
            left, top, _, _ = item.font.getbbox(item.text or " ")
            # Align the glyphs' visible top-left with the requested origin
            draw.text(
                (item.origin[0] - left, item.origin[1] - top),
                item.text, font=item.font, fill=(r, g, b)
            )
        frame[:] = cv2.cvtColor(np.asarray(image), cv2.COLOR_RGB2BGR)
        return frame

    # =========================================================================
    # LABEL BUBBLE
    # =========================================================================

    def bubble_lines(self, label: TrackedLabel) -> List[Tuple[str, object, Tuple[int, int, int]]]:
        """(text, font, color) for each line of the bubble."""
        if label.semantic is None:
            return []
        if label.is_placeholder:
            return [(label.semantic.object, self.small_font, self.colors.placeholder_text)]
        return [
            (label.semantic.object, self.font, self.colors.object_text),
            (label.semantic.translation, self.font, self.colors.translation_text),
        ]

    def bubble_rect(
        self,
        anchor: Tuple[int, int],
        size: Tuple[int, int],
        frame_size: Tuple[int, int]
    ) -> Tuple[int, int, int, int]:
        """
        Bubble (x1, y1, x2, y2): centered above the anchor, kept on screen.
        """
        ax, ay = anchor
        bw, bh = size
        fw, fh = frame_size

        x1 = ax - bw // 2
        x1 = max(self.PADDING, min(x1, fw - bw - self.PADDING))
        y1 = ay - self.POINTER_SIZE - bh
        y1 = max(int(fh * self.MIN_TOP_FRACTION), min(y1, fh - bh - self.PADDING))
        return x1, y1, x1 + bw, y1 + bh

    def render_label(
        self,
        frame: np.ndarray,
        label: TrackedLabel,
        transform: Optional[ViewportTransform] = None
    ) -> np.ndarray:
        """
        Draw the translation bubble for ``label``.

        Args:
            frame: Viewport-sized BGR frame (drawn on in place)
            label: Tracker output for this frame
            transform: Source→viewport mapping; identity if None
        """
        if not label.visible or label.position is None:
            return frame

        h, w = frame.shape[:2]
        if transform is None:
            transform = ViewportTransform.fit((w, h), (w, h))
        anchor = transform.map_normalized(label.position.x, label.position.y)

        lines = self.bubble_lines(label)
        if not lines:
            return frame

        sizes = [self._text_size(text, font) for text, font, _ in lines]
        line_gap = 4
        content_w = max(sw for sw, _ in sizes)
        content_h = sum(sh for _, sh in sizes) + line_gap * (len(sizes) - 1)
        bubble_w = content_w + 2 * self.PADDING
        bubble_h = content_h + 2 * self.PADDING

        x1, y1, x2, y2 = self.bubble_rect(anchor, (bubble_w, bubble_h), (w, h))

        overlay = frame.copy()
        cv2.rectangle(overlay, (x1, y1), (x2, y2), self.colors.bubble, -1)
        # Pointer on the bubble's bottom edge, as close to the anchor as the bubble allows
        px = max(x1 + self.POINTER_SIZE, min(anchor[0], x2 - self.POINTER_SIZE))
        pointer = np.array([
            [px - self.POINTER_SIZE, y2],
            [px + self.POINTER_SIZE, y2],
            [px, y2 + self.POINTER_SIZE],
        ], dtype=np.int32)
        cv2.fillPoly(overlay, [pointer], self.colors.bubble, cv2.LINE_AA)
        cv2.addWeighted(overlay, self.bubble_opacity, frame, 1 - self.bubble_opacity, 0, frame)
        cv2.rectangle(frame, (x1, y1), (x2, y2), self.colors.border, 1, cv2.LINE_AA)

        items = []
        ty = y1 + self.PADDING
        for (text, font, color), (_, sh) in zip(lines, sizes):
            items.append(_TextItem(text, (x1 + self.PADDING, ty), font, color))
            ty += sh + line_gap
        return self._draw_text(frame, items)

    # =========================================================================
    # PANELS
    # =========================================================================

    def render_example_panel(self, frame: np.ndarray, label: TrackedLabel) -> np.ndarray:
        """Example sentence + English translation along the bottom edge."""
        if not label.visible or label.is_placeholder or label.semantic is None:
            return frame
        if not label.semantic.example_sentence:
            return frame

        h, w = frame.shape[:2]
        rows = [
            ("Example:", self.small_font, self.colors.panel_heading),
            (label.semantic.example_sentence, self.small_font, self.colors.panel_text),
        ]
        if label.semantic.sentence_translation:
            rows.append(
                (label.semantic.sentence_translation, self.small_font, self.colors.panel_muted)
            )

        heights = [self._text_size(text, font)[1] for text, font, _ in rows]
        panel_h = sum(heights) + 6 * (len(rows) - 1) + 2 * self.PADDING
        x1, x2 = self.PADDING, w - self.PADDING
        y2 = h - self.PADDING
        y1 = y2 - panel_h

        overlay = frame.copy()
        cv2.rectangle(overlay, (x1, y1), (x2, y2), self.colors.panel, -1)
        cv2.addWeighted(overlay, 0.85, frame, 0.15, 0, frame)

        items = []
        ty = y1 + self.PADDING
        for (text, font, color), th in zip(rows, heights):
            items.append(_TextItem(text, (x1 + self.PADDING, ty), font, color))
            ty += th + 6
        return self._draw_text(frame, items)

    def render_hud(
        self,
        frame: np.ndarray,
        language_name: str,
        status: str = "",
        hint: str = "L language | SPACE capture | M mode | Q quit"
    ) -> np.ndarray:
        """Top band with language, classifier status and key hints."""
        h, w = frame.shape[:2]
        overlay = frame.copy()
        cv2.rectangle(overlay, (0, 0), (w, 36), (0, 0, 0), -1)
        cv2.addWeighted(overlay, 0.5, frame, 0.5, 0, frame)

        cv2.putText(frame, language_name, (10, 24),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 1, cv2.LINE_AA)
        if status:
            cv2.putText(frame, status, (140, 24),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, (0, 255, 255), 1, cv2.LINE_AA)
        if hint:
            (tw, _), _ = cv2.getTextSize(hint, cv2.FONT_HERSHEY_SIMPLEX, 0.45, 1)
            cv2.putText(frame, hint, (w - tw - 10, 24),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.45, (200, 200, 200), 1, cv2.LINE_AA)
        return frame

    def render_banner(self, frame: np.ndarray, text: str) -> np.ndarray:
        """Centered instructions strip above the bottom panel."""
        h, w = frame.shape[:2]
        tw, th = self._text_size(text, self.small_font)
        x1 = max(self.PADDING, (w - tw) // 2 - self.PADDING)
        y1 = int(h * 0.75)
        x2 = min(w - self.PADDING, x1 + tw + 2 * self.PADDING)
        y2 = y1 + th + 2 * self.PADDING

        overlay = frame.copy()
        cv2.rectangle(overlay, (x1, y1), (x2, y2), (0, 0, 0), -1)
        cv2.addWeighted(overlay, 0.7, frame, 0.3, 0, frame)
        return self._draw_text(
            frame,
            [_TextItem(text, (x1 + self.PADDING, y1 + self.PADDING), self.small_font, (255, 255, 255))]
        )

    def render(
        self,
        frame: np.ndarray,
        label: TrackedLabel,
        transform: Optional[ViewportTransform] = None
    ) -> np.ndarray:
        """Bubble + example panel. Draws nothing for an invisible label."""
        if not label.visible:
            return frame
        self.render_label(frame, label, transform)
        self.render_example_panel(frame, label)
        return frame
