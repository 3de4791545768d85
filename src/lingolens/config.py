"""
LingoLens Configuration

Defaults for the label tracker, the classification controller and the local
detector. Every value can be overridden from the environment (or a .env file).

Usage:
    from lingolens.config import AppConfig

    config = AppConfig.from_env()
    print(config.classifier.model_name)
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Optional

from dotenv import load_dotenv


SUPPORTED_LANGUAGES = ("fi", "ru", "fr", "es")
DEFAULT_LANGUAGE = "fi"


def load_env() -> Optional[str]:
    """Load environment variables from the first .env file found."""
    possible_paths = [
        Path(__file__).resolve().parents[2] / ".env",  # src/lingolens/../../.env
        Path.cwd() / ".env",
        Path.home() / ".env",
    ]

    for env_path in possible_paths:
        if env_path.exists():
            load_dotenv(env_path, override=False)
            return str(env_path)

    return None


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def normalize_language(code: Optional[str]) -> str:
    """Map a language code onto one of the supported codes (fallback: fi)."""
    if not code:
        return DEFAULT_LANGUAGE
    code = code.strip().lower()
    return code if code in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


@dataclass
class TrackerConfig:
    """Label tracker tuning."""
    smoothing_factor: float = 0.2
    grace_period_frames: int = 30
    placeholder_text: str = "Analyzing…"
    empty_result_clear_delay: float = 1.0

    def __post_init__(self):
        if not 0.0 < self.smoothing_factor <= 1.0:
            raise ValueError("smoothing_factor must be in (0, 1]")
        if self.grace_period_frames < 1:
            raise ValueError("grace_period_frames must be >= 1")
        if self.empty_result_clear_delay < 0:
            raise ValueError("empty_result_clear_delay must be >= 0")

    @classmethod
    def from_env(cls) -> "TrackerConfig":
        return cls(
            smoothing_factor=_env_float("LINGOLENS_SMOOTHING", 0.2),
            grace_period_frames=_env_int("LINGOLENS_GRACE_FRAMES", 30),
            empty_result_clear_delay=_env_float("LINGOLENS_EMPTY_CLEAR_DELAY", 1.0),
        )


@dataclass
class ClassifierConfig:
    """Remote classification and throttling settings."""
    api_key: Optional[str] = None
    model_name: str = "gpt-4o"
    timer_period: float = 2.0
    min_interval: Dict[str, float] = field(
        default_factory=lambda: {"realtime": 1.0, "manual": 3.0}
    )
    default_retry_after: float = 30.0
    request_timeout: float = 15.0
    snapshot_scale: float = 0.5
    jpeg_quality: int = 80
    max_results: int = 3
    target_language: str = DEFAULT_LANGUAGE

    def __post_init__(self):
        self.target_language = normalize_language(self.target_language)
        if self.default_retry_after < 0:
            raise ValueError("default_retry_after must be >= 0")
        if not 0.0 < self.snapshot_scale <= 1.0:
            raise ValueError("snapshot_scale must be in (0, 1]")

    def interval_for(self, mode: str) -> float:
        """Minimum seconds between attempted calls in the given mode."""
        return self.min_interval.get(mode, self.min_interval["realtime"])

    @classmethod
    def from_env(cls) -> "ClassifierConfig":
        return cls(
            api_key=os.environ.get("OPENAI_API_KEY") or None,
            model_name=os.environ.get("OPENAI_MODEL", "gpt-4o"),
            timer_period=_env_float("LINGOLENS_CLASSIFY_PERIOD", 2.0),
            default_retry_after=_env_float("LINGOLENS_DEFAULT_RETRY_AFTER", 30.0),
            request_timeout=_env_float("LINGOLENS_REQUEST_TIMEOUT", 15.0),
            target_language=os.environ.get("LINGOLENS_LANGUAGE", DEFAULT_LANGUAGE),
        )


@dataclass
class DetectorConfig:
    """Local object detector settings."""
    model_path: Optional[str] = None
    config_path: Optional[str] = None
    score_threshold: float = 0.5
    excluded_labels: FrozenSet[str] = frozenset(
        {"person", "face", "head", "man", "woman", "child", "baby"}
    )
    input_size: int = 320
    inference_width: int = 640

    @classmethod
    def from_env(cls) -> "DetectorConfig":
        return cls(
            model_path=os.environ.get("LINGOLENS_DETECTOR_MODEL") or None,
            config_path=os.environ.get("LINGOLENS_DETECTOR_CONFIG") or None,
            score_threshold=_env_float("LINGOLENS_SCORE_THRESHOLD", 0.5),
        )


@dataclass
class AppConfig:
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    font_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "AppConfig":
        env_file = load_env()
        if env_file:
            logging.getLogger("Config").info(f"Loaded environment from {env_file}")
        return cls(
            tracker=TrackerConfig.from_env(),
            classifier=ClassifierConfig.from_env(),
            detector=DetectorConfig.from_env(),
            font_path=os.environ.get("LINGOLENS_FONT") or None,
        )
