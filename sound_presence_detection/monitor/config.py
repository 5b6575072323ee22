from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from sound_presence_detection.monitor.backends.yamnet import DEFAULT_CLASS_MAP_URL, DEFAULT_MODEL_HANDLE
from sound_presence_detection.monitor.detection_state import DetectionState

logger = logging.getLogger(__name__)

BACKEND_MODES = {"yamnet", "energy"}


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    return float(value)


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    return int(value)


def _str_env(name: str, default: str) -> str:
    return os.getenv(name, default).strip()


@dataclass(frozen=True)
class MonitorConfig:
    target_label: str = "music"
    minimum_confidence: float = 0.5
    presence_threshold: float = 0.8
    absence_threshold: float = 0.6
    presence_run_length: int = 3
    absence_run_length: int = 2
    sample_rate: int = 16000
    window_seconds: float = 1.5
    overlap_factor: float = 0.9
    audio_device: str = ""
    backend_mode: str = "yamnet"
    yamnet_model_handle: str = DEFAULT_MODEL_HANDLE
    yamnet_class_map_url: str = DEFAULT_CLASS_MAP_URL
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    log_level: str = "INFO"
    artifact_dir: str = "./artifacts"

    def __post_init__(self) -> None:
        if not self.target_label:
            raise ValueError("TARGET_LABEL must not be empty")
        if self.backend_mode not in BACKEND_MODES:
            raise ValueError("BACKEND_MODE must be 'yamnet' or 'energy'")
        if self.presence_run_length < 0 or self.absence_run_length < 0:
            raise ValueError("PRESENCE_RUN_LENGTH and ABSENCE_RUN_LENGTH must be >= 0")
        if not 0.0 <= self.overlap_factor < 1.0:
            raise ValueError("OVERLAP_FACTOR must be in [0, 1)")
        if self.window_seconds <= 0:
            raise ValueError("WINDOW_SECONDS must be > 0")

    @classmethod
    def from_env(cls) -> "MonitorConfig":
        backend_mode = _str_env("BACKEND_MODE", "yamnet").lower()
        config = cls(
            target_label=_str_env("TARGET_LABEL", "music").lower(),
            minimum_confidence=_float_env("MINIMUM_CONFIDENCE", 0.5),
            presence_threshold=_float_env("PRESENCE_THRESHOLD", 0.8),
            absence_threshold=_float_env("ABSENCE_THRESHOLD", 0.6),
            presence_run_length=_int_env("PRESENCE_RUN_LENGTH", 3),
            absence_run_length=_int_env("ABSENCE_RUN_LENGTH", 2),
            sample_rate=_int_env("SAMPLE_RATE", 16000),
            window_seconds=_float_env("WINDOW_SECONDS", 1.5),
            overlap_factor=_float_env("OVERLAP_FACTOR", 0.9),
            audio_device=_str_env("AUDIO_DEVICE", ""),
            backend_mode=backend_mode,
            yamnet_model_handle=_str_env("YAMNET_MODEL_HANDLE", DEFAULT_MODEL_HANDLE),
            yamnet_class_map_url=_str_env("YAMNET_CLASS_MAP_URL", DEFAULT_CLASS_MAP_URL),
            telegram_bot_token=_str_env("TELEGRAM_BOT_TOKEN", ""),
            telegram_chat_id=_str_env("TELEGRAM_CHAT_ID", ""),
            log_level=_str_env("LOG_LEVEL", "INFO").upper(),
            artifact_dir=_str_env("ARTIFACT_DIR", "./artifacts"),
        )
        if config.absence_threshold >= config.presence_threshold:
            logger.warning(
                "ABSENCE_THRESHOLD (%.2f) >= PRESENCE_THRESHOLD (%.2f): no hysteresis gap, detection may flicker",
                config.absence_threshold,
                config.presence_threshold,
            )
        if config.absence_threshold <= config.minimum_confidence:
            logger.warning(
                "ABSENCE_THRESHOLD (%.2f) <= MINIMUM_CONFIDENCE (%.2f): results low enough to end detection are ignored",
                config.absence_threshold,
                config.minimum_confidence,
            )
        return config

    def initial_state(self) -> DetectionState:
        return DetectionState.new(
            presence_threshold=self.presence_threshold,
            absence_threshold=self.absence_threshold,
            presence_run_length=self.presence_run_length,
            absence_run_length=self.absence_run_length,
        )
