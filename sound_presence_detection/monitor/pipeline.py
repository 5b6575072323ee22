from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator

import numpy as np

from sound_presence_detection.monitor.backends.base import ClassificationBackend
from sound_presence_detection.monitor.config import MonitorConfig
from sound_presence_detection.monitor.detection_state import DetectionState
from sound_presence_detection.monitor.notifier import TelegramNotifier
from sound_presence_detection.monitor.stream import PresenceStreamAdapter, PresenceUpdate, StreamEvent, StreamFailed


def build_backend(config: MonitorConfig) -> ClassificationBackend:
    from sound_presence_detection.monitor.backends.energy import EnergyBackend
    from sound_presence_detection.monitor.backends.yamnet import YamnetBackend

    energy = EnergyBackend(target_label=config.target_label)
    if config.backend_mode == "energy":
        return energy
    return YamnetBackend(
        model_handle=config.yamnet_model_handle,
        class_map_url=config.yamnet_class_map_url,
        fallback=energy,
    )


def classify_windows(
    backend: ClassificationBackend,
    windows: Iterable[np.ndarray],
    sample_rate: int,
) -> Iterator[dict[str, float]]:
    for window in windows:
        yield backend.classify(audio_window=np.asarray(window, dtype=np.float32), sample_rate=sample_rate)


@dataclass
class RecordingAnalysis:
    label: str
    final_state: DetectionState
    timeline: list[dict[str, object]] = field(default_factory=list)
    windows: int = 0
    detected_any: bool = False
    error: str = ""

    def as_payload(self) -> dict[str, object]:
        return {
            "label": self.label,
            "windows": self.windows,
            "detected_any": self.detected_any,
            "is_detected": self.final_state.is_detected,
            "transition_progress": self.final_state.transition_progress,
            "current_confidence": round(self.final_state.current_confidence, 4),
            "timeline": self.timeline,
            "error": self.error,
            "notice": TelegramNotifier.build_recording_notice(label=self.label, detected=self.detected_any),
        }


def analyze_windows(
    config: MonitorConfig,
    backend: ClassificationBackend,
    windows: Iterable[np.ndarray],
) -> RecordingAnalysis:
    """Run a finite sequence of windows through a fresh detector."""
    hop_seconds = config.window_seconds * (1.0 - config.overlap_factor)
    analysis = RecordingAnalysis(label=config.target_label, final_state=config.initial_state())
    counted_windows = _count(windows, analysis)

    def _collect(event: StreamEvent) -> None:
        if isinstance(event, PresenceUpdate):
            if event.state.is_detected:
                analysis.detected_any = True
            if event.transition is not None:
                analysis.timeline.append(
                    {
                        "transition": event.transition.value,
                        "window": analysis.windows - 1,
                        "offset_seconds": round((analysis.windows - 1) * hop_seconds, 3),
                        "confidence": round(event.state.current_confidence, 4),
                    }
                )
        elif isinstance(event, StreamFailed):
            analysis.error = f"{event.error.kind}: {event.error}"

    adapter = PresenceStreamAdapter(
        label=config.target_label,
        initial_state=analysis.final_state,
        consumer=_collect,
        minimum_confidence=config.minimum_confidence,
    )
    analysis.final_state = adapter.run(
        classify_windows(backend=backend, windows=counted_windows, sample_rate=config.sample_rate)
    )
    return analysis


def _count(windows: Iterable[np.ndarray], analysis: RecordingAnalysis) -> Iterator[np.ndarray]:
    for window in windows:
        analysis.windows += 1
        yield window
