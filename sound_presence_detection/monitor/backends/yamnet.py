from __future__ import annotations

import csv
import logging
from io import StringIO

import numpy as np
import requests

from sound_presence_detection.monitor.backends.energy import EnergyBackend
from sound_presence_detection.monitor.labels import label_key

logger = logging.getLogger(__name__)

YAMNET_SAMPLE_RATE = 16000
DEFAULT_MODEL_HANDLE = "https://tfhub.dev/google/yamnet/1"
DEFAULT_CLASS_MAP_URL = (
    "https://raw.githubusercontent.com/tensorflow/models/master/research/audioset/yamnet/yamnet_class_map.csv"
)


class YamnetBackend:
    """YAMNet sound classifier (lazy loaded) with a heuristic fallback."""

    def __init__(
        self,
        model_handle: str = DEFAULT_MODEL_HANDLE,
        class_map_url: str = DEFAULT_CLASS_MAP_URL,
        fallback: EnergyBackend | None = None,
    ) -> None:
        self.model_handle = model_handle
        self.class_map_url = class_map_url
        self.fallback = fallback or EnergyBackend()
        self._yamnet_model = None
        self._class_names: list[str] = []
        self._loaded = False
        self._last_used_fallback = False

    @staticmethod
    def _aggregate_scores(mean_scores: np.ndarray, class_names: list[str]) -> dict[str, float]:
        scores: dict[str, float] = {}
        for index, name in enumerate(class_names[: mean_scores.shape[0]]):
            key = label_key(name)
            if not key:
                continue
            scores[key] = max(scores.get(key, 0.0), float(mean_scores[index]))
        return scores

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return

        import tensorflow_hub as hub

        self._yamnet_model = hub.load(self.model_handle)
        response = requests.get(self.class_map_url, timeout=20)
        response.raise_for_status()
        rows = csv.DictReader(StringIO(response.text))
        self._class_names = [str(row.get("display_name", "")).strip() for row in rows]
        self._loaded = True
        logger.info("Loaded YAMNet with %d classes", len(self._class_names))

    def classify(self, audio_window: np.ndarray, sample_rate: int) -> dict[str, float]:
        if audio_window.size == 0:
            return {}
        try:
            self._ensure_loaded()
            result = self._classify_with_yamnet(audio_window=audio_window, sample_rate=sample_rate)
            self._last_used_fallback = False
            return result
        except Exception as exc:
            if not self._last_used_fallback:
                logger.warning("YAMNet unavailable, using heuristic fallback: %s", exc)
            self._last_used_fallback = True
            return self.fallback.classify(audio_window=audio_window, sample_rate=sample_rate)

    def _classify_with_yamnet(self, audio_window: np.ndarray, sample_rate: int) -> dict[str, float]:
        import librosa
        import tensorflow as tf

        waveform = np.asarray(audio_window, dtype=np.float32)
        if sample_rate != YAMNET_SAMPLE_RATE:
            waveform = librosa.resample(waveform, orig_sr=sample_rate, target_sr=YAMNET_SAMPLE_RATE)
        waveform = np.clip(waveform, -1.0, 1.0).astype(np.float32)
        model = self._yamnet_model
        if model is None:
            raise RuntimeError("YAMNet model is not loaded")

        scores, _, _ = model(tf.convert_to_tensor(waveform))
        mean_scores = np.mean(np.asarray(scores), axis=0)
        return self._aggregate_scores(mean_scores=mean_scores, class_names=self._class_names)

    def runtime_label(self) -> str:
        if self._last_used_fallback:
            return "yamnet=fallback"
        if self._loaded:
            return "yamnet=active"
        return "yamnet=not_loaded"
