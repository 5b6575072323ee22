import numpy as np

from sound_presence_detection.monitor.backends.energy import EnergyBackend
from sound_presence_detection.monitor.backends.yamnet import YamnetBackend
from sound_presence_detection.monitor.config import MonitorConfig
from sound_presence_detection.monitor.pipeline import analyze_windows, build_backend, classify_windows


class _ScriptedBackend:
    def __init__(self, confidences):
        self.confidences = list(confidences)

    def classify(self, audio_window, sample_rate):
        del audio_window, sample_rate
        return {"music": self.confidences.pop(0)}


def _windows(count):
    return [np.zeros(8, dtype=np.float32) for _ in range(count)]


def test_build_backend_respects_mode():
    assert isinstance(build_backend(MonitorConfig(backend_mode="energy")), EnergyBackend)
    assert isinstance(build_backend(MonitorConfig(backend_mode="yamnet")), YamnetBackend)


def test_classify_windows_yields_one_result_per_window():
    results = list(classify_windows(_ScriptedBackend([0.1, 0.9]), _windows(2), sample_rate=16000))
    assert results == [{"music": 0.1}, {"music": 0.9}]


def test_analyze_windows_ignores_low_confidence_results():
    config = MonitorConfig(window_seconds=1.0, overlap_factor=0.5)
    backend = _ScriptedBackend([0.9, 0.9, 0.9, 0.2, 0.1, 0.6])

    analysis = analyze_windows(config=config, backend=backend, windows=_windows(6))

    assert analysis.windows == 6
    assert analysis.detected_any
    assert analysis.final_state.is_detected
    assert analysis.final_state.transition_progress == 0
    assert analysis.timeline == [{"transition": "onset", "window": 2, "offset_seconds": 1.0, "confidence": 0.9}]
    assert analysis.error == ""


def test_analyze_windows_records_transitions():
    config = MonitorConfig(window_seconds=1.0, overlap_factor=0.5, absence_threshold=0.8)
    backend = _ScriptedBackend([0.9, 0.9, 0.9, 0.6, 0.6, 0.9])

    analysis = analyze_windows(config=config, backend=backend, windows=_windows(6))

    assert [entry["transition"] for entry in analysis.timeline] == ["onset", "end"]
    assert analysis.timeline[0]["window"] == 2
    assert analysis.timeline[0]["offset_seconds"] == 1.0
    assert analysis.timeline[1]["window"] == 4
    payload = analysis.as_payload()
    assert payload["detected_any"] is True
    assert payload["is_detected"] is False
    assert payload["transition_progress"] == 1
    assert "copyright" in payload["notice"]


def test_analyze_windows_reports_upstream_error():
    def _broken():
        yield np.zeros(8, dtype=np.float32)
        raise OSError("decoder failed")

    analysis = analyze_windows(config=MonitorConfig(), backend=_ScriptedBackend([0.9]), windows=_broken())

    assert analysis.error.startswith("stream_interrupted")
    assert analysis.final_state.transition_progress == 1
