import io

import numpy as np
import soundfile as sf
from fastapi.testclient import TestClient

from sound_presence_detection.monitor.api import create_app
from sound_presence_detection.monitor.config import MonitorConfig


class _ConstantBackend:
    def __init__(self, confidence):
        self.confidence = confidence
        self.calls = 0

    def classify(self, audio_window, sample_rate):
        del audio_window, sample_rate
        self.calls += 1
        return {"music": self.confidence}


def _client(tmp_path, confidence):
    config = MonitorConfig(window_seconds=0.5, overlap_factor=0.5, artifact_dir=str(tmp_path))
    backend = _ConstantBackend(confidence)
    return TestClient(create_app(config=config, backend=backend)), backend


def _wav_bytes(seconds=1.0, sample_rate=16000):
    buffer = io.BytesIO()
    sf.write(buffer, np.zeros(int(seconds * sample_rate), dtype=np.float32), sample_rate, format="WAV")
    return buffer.getvalue()


def test_health(tmp_path):
    client, _ = _client(tmp_path, 0.9)
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["label"] == "music"


def test_classify_reports_detection(tmp_path):
    client, backend = _client(tmp_path, 0.9)

    response = client.post("/classify", files={"file": ("clip.wav", _wav_bytes(), "audio/wav")})

    assert response.status_code == 200
    payload = response.json()
    assert backend.calls == 3
    assert payload["windows"] == 3
    assert payload["detected_any"] is True
    assert payload["is_detected"] is True
    assert payload["timeline"][0]["transition"] == "onset"
    assert "copyright" in payload["notice"]
    assert not list(tmp_path.glob("upload*"))


def test_classify_without_detection(tmp_path):
    client, _ = _client(tmp_path, 0.2)

    payload = client.post("/classify", files={"file": ("clip.wav", _wav_bytes(), "audio/wav")}).json()

    assert payload["detected_any"] is False
    assert payload["timeline"] == []
    assert payload["notice"] == "Recording complete."


def test_classify_rejects_unreadable_audio(tmp_path):
    client, _ = _client(tmp_path, 0.9)

    response = client.post("/classify", files={"file": ("clip.wav", b"not audio", "audio/wav")})

    assert response.status_code == 400
    assert response.json()["status"] == "rejected"
