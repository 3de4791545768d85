"""
LingoLens Vision Labeler - Object Naming + Translation with OpenAI GPT-4o

Sends a downscaled camera snapshot to a vision model and gets back the most
prominent object with its translation and an example sentence.

This call is slow (seconds) and rate-limited, so it is never made from the
frame loop directly; see ClassificationController.

Usage:
    labeler = VisionLabeler(ClassifierConfig(api_key="sk-..."))
    labels = labeler.classify(ClassificationRequest(image=snapshot, language="fr"))
    # [SemanticLabel(object="Cup", translation="Tasse", ...)]

Without an API key, DictionaryLabeler gives offline labels from the local
detector's class name.
"""

import re
import json
import base64
import logging
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from datetime import datetime, timezone
from typing import List, Mapping, Optional

import cv2
import numpy as np
import openai

from .config import ClassifierConfig, normalize_language
from .label_tracker import SemanticLabel
from .translations import LANGUAGE_NAMES, example_sentence, translate_object


class ClassificationError(Exception):
    """Transient failure: network error, API error or malformed payload."""


class RateLimitedError(ClassificationError):
    """The service asked us to slow down."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


_RETRY_IN_MESSAGE = re.compile(
    r"(?:try again|retry)\s+(?:in|after)\s+([0-9]+(?:\.[0-9]+)?)\s*(ms|milliseconds?|s|sec|seconds?)\b",
    re.IGNORECASE,
)


def parse_retry_after(
    headers: Optional[Mapping[str, str]] = None,
    message: str = ""
) -> Optional[float]:
    """
    Extract a retry delay in seconds from a rate-limit response.

    Checks ``retry-after-ms``, then ``retry-after`` (seconds or HTTP date),
    then phrases like "Please try again in 12.5s" in the error text.

    Returns:
        Delay in seconds, or None if nothing usable was found
    """
    if headers:
        lowered = {str(k).lower(): v for k, v in headers.items()}

        raw_ms = lowered.get("retry-after-ms")
        if raw_ms is not None:
            try:
                return max(0.0, float(raw_ms) / 1000.0)
            except ValueError:
                pass

        raw = lowered.get("retry-after")
        if raw is not None:
            try:
                return max(0.0, float(raw))
            except ValueError:
                try:
                    when = parsedate_to_datetime(raw)
                    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())
                except (TypeError, ValueError):
                    pass

    match = _RETRY_IN_MESSAGE.search(message or "")
    if match:
        value = float(match.group(1))
        if match.group(2).lower().startswith("m"):
            value /= 1000.0
        return value

    return None


@dataclass
class ClassificationRequest:
    """A snapshot to classify."""
    image: np.ndarray               # Downscaled BGR snapshot
    language: str = "fi"
    hint: Optional[str] = None      # Local detector class for the prominent box
    hint_score: float = 0.0


class VisionLabeler:
    """
    Semantic classifier backed by OpenAI's vision models.

    ``classify`` is BLOCKING - run it from a worker thread.

    Raises RateLimitedError on HTTP 429 and ClassificationError on any other
    failure; it never returns partial garbage.
    """

    MODEL_FALLBACK = "gpt-4o-mini"
    MAX_IMAGE_DIM = 768
    MAX_TOKENS = 500

    PROMPT = """Analyze this image and identify ONLY the single most prominent object in the foreground (e.g. held in hand or centered). For this object, provide:
1. The object name in English
2. Translation to {language}
3. A simple example sentence using the object in {language}
4. English translation of that sentence

Exclude people, background items, and minor details. Focus strictly on the main subject.
If there is no clear object, return an empty list.

Respond in strict JSON format:
{{
  "objects": [
    {{
      "object": "object_name",
      "translation": "translated_name",
      "exampleSentence": "sentence_in_{language}",
      "sentenceTranslation": "sentence_in_english",
      "confidence": 0.9
    }}
  ]
}}"""

    def __init__(self, config: Optional[ClassifierConfig] = None, client=None):
        """
        Args:
            config: Model name, API key, timeout, JPEG quality
            client: Pre-built OpenAI-compatible client (mainly for tests)
        """
        self.config = config or ClassifierConfig()
        self.logger = logging.getLogger("VisionLabeler")
        self._client = client
        self._model_name = self.config.model_name
        self._initialized = client is not None

        if client is None and not self.config.api_key:
            self.logger.warning(
                "No OPENAI_API_KEY found. Set it in .env or environment. "
                "Falling back to offline labels."
            )

    def _ensure_initialized(self) -> bool:
        """Lazy initialization of the OpenAI client."""
        if self._initialized:
            return self._client is not None

        self._initialized = True
        if not self.config.api_key:
            return False

        try:
            # Backoff is handled by the controller, not by SDK retries
            self._client = openai.OpenAI(
                api_key=self.config.api_key,
                timeout=self.config.request_timeout,
                max_retries=0,
            )
            self.logger.info(f"OpenAI client initialized (model: {self._model_name})")
            return True
        except openai.OpenAIError as e:
            self.logger.error(f"Failed to initialize OpenAI: {e}")
            return False

    def is_available(self) -> bool:
        return self._ensure_initialized()

    @property
    def status_message(self) -> str:
        if self._client is None and not self.config.api_key:
            return "No API key configured"
        if not self._initialized:
            return "Not initialized"
        if self._client is None:
            return "Initialization failed"
        return f"Ready ({self._model_name})"

    def encode_image(self, image: np.ndarray) -> str:
        """Encode a BGR image as a JPEG data URL."""
        h, w = image.shape[:2]
        if max(h, w) > self.MAX_IMAGE_DIM:
            scale = self.MAX_IMAGE_DIM / max(h, w)
            image = cv2.resize(
                image, (int(w * scale), int(h * scale)), interpolation=cv2.INTER_AREA
            )

        success, buffer = cv2.imencode(
            ".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, self.config.jpeg_quality]
        )
        if not success:
            raise ClassificationError("Failed to encode snapshot")

        encoded = base64.b64encode(buffer.tobytes()).decode("utf-8")
        return f"data:image/jpeg;base64,{encoded}"

    def parse_response(self, content: Optional[str]) -> List[SemanticLabel]:
        """
        Turn the model's JSON answer into labels.

        Accepts ```json fenced output and a bare list. Malformed records are
        skipped; a payload that is not JSON at all raises ClassificationError.
        """
        if not content or not content.strip():
            raise ClassificationError("Empty response from vision model")

        text = re.sub(r"```(?:json)?", "", content).strip()
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise ClassificationError(f"Vision model returned invalid JSON: {e}") from e

        if isinstance(payload, dict):
            records = payload.get("objects", [])
        else:
            records = payload
        if not isinstance(records, list):
            raise ClassificationError(f"Unexpected 'objects' payload: {records!r}")

        labels = []
        for record in records[:self.config.max_results]:
            try:
                labels.append(SemanticLabel.from_dict(record))
            except ValueError as e:
                self.logger.warning(f"Skipping malformed object record: {e}")
        return labels

    def _request(self, image_url: str, language: str):
        language_name = LANGUAGE_NAMES.get(language, LANGUAGE_NAMES["fi"])
        return self._client.chat.completions.create(
            model=self._model_name,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": self.PROMPT.format(language=language_name)},
                        {
                            "type": "image_url",
                            "image_url": {"url": image_url, "detail": "low"},
                        },
                    ],
                }
            ],
            response_format={"type": "json_object"},
            max_tokens=self.MAX_TOKENS,
            temperature=0.1,
        )

    def classify(self, request: ClassificationRequest) -> List[SemanticLabel]:
        """
        Classify a snapshot.

        Returns:
            Up to ``max_results`` labels, most prominent first (may be empty)

        Raises:
            RateLimitedError: HTTP 429 from the service
            ClassificationError: any other failure
        """
        if not self._ensure_initialized():
            raise ClassificationError("Vision API not configured")

        language = normalize_language(request.language)
        image_url = self.encode_image(request.image)

        try:
            response = self._request(image_url, language)
        except openai.NotFoundError as e:
            if self._model_name == self.MODEL_FALLBACK:
                raise ClassificationError(f"Model error: {e.message}") from e
            self.logger.warning(
                f"Model {self._model_name} not available, switching to {self.MODEL_FALLBACK}"
            )
            self._model_name = self.MODEL_FALLBACK
            return self.classify(request)
        except openai.APIStatusError as e:
            if e.status_code == 429:
                retry_after = parse_retry_after(e.response.headers, str(e.message))
                raise RateLimitedError(f"Rate limited: {e.message}", retry_after) from e
            raise ClassificationError(f"Vision API error {e.status_code}: {e.message}") from e
        except openai.APIError as e:
            raise ClassificationError(f"Vision API request failed: {e}") from e

        if not response or not response.choices:
            raise ClassificationError("Empty response from vision model")

        labels = self.parse_response(response.choices[0].message.content)
        if labels:
            self.logger.info(
                f"Identified: {labels[0].object} -> {labels[0].translation} ({language})"
            )
        else:
            self.logger.info("Vision model reported no object")
        return labels


class DictionaryLabeler:
    """
    Offline semantic labels from the local detector's class name.

    Returns an empty list when the snapshot had no prominent detection.
    """

    def __init__(self):
        self.logger = logging.getLogger("DictionaryLabeler")

    def is_available(self) -> bool:
        return True

    @property
    def status_message(self) -> str:
        return "Offline dictionary"

    def classify(self, request: ClassificationRequest) -> List[SemanticLabel]:
        if not request.hint:
            return []

        language = normalize_language(request.language)
        name = request.hint
        sentence, sentence_en = example_sentence(name, language)
        return [SemanticLabel(
            object=name,
            translation=translate_object(name, language),
            example_sentence=sentence,
            sentence_translation=sentence_en,
            confidence=request.hint_score,
        )]
