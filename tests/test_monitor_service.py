import json

import requests

from sound_presence_detection.monitor.config import MonitorConfig
from sound_presence_detection.monitor.errors import AudioStreamInterrupted
from sound_presence_detection.monitor.notifier import TelegramNotifier
from sound_presence_detection.monitor.service import PresenceMonitorService
from sound_presence_detection.monitor.stream import PresenceStreamAdapter, StreamCompleted, StreamFailed


class _FakeNotifier(TelegramNotifier):
    def __init__(self, fail=False):
        super().__init__(bot_token="", chat_id="")
        self.fail = fail
        self.messages = []

    def send_text(self, message):
        if self.fail:
            raise requests.ConnectionError("offline")
        self.messages.append(message)
        return True


def _service(tmp_path, notifier=None):
    config = MonitorConfig(presence_run_length=2, absence_run_length=1, artifact_dir=str(tmp_path))
    return PresenceMonitorService(config=config, notifier=notifier or _FakeNotifier())


def _adapter(service):
    return PresenceStreamAdapter(
        label=service.config.target_label,
        initial_state=service.state,
        consumer=service.handle_event,
        minimum_confidence=service.config.minimum_confidence,
    )


def test_onset_is_saved_and_notified(tmp_path):
    notifier = _FakeNotifier()
    service = _service(tmp_path, notifier)

    _adapter(service).run([{"music": 0.85}, {"music": 0.9}])

    assert service.state.is_detected
    assert service.completed
    assert len(notifier.messages) == 1
    assert "Music detected" in notifier.messages[0]
    saved = list(tmp_path.glob("presence_onset_*.json"))
    assert len(saved) == 1
    payload = json.loads(saved[0].read_text(encoding="utf-8"))
    assert payload["label"] == "music"
    assert payload["display_name"] == "Music"
    assert payload["confidence"] == 0.9


def test_end_is_saved_without_notification(tmp_path):
    notifier = _FakeNotifier()
    config = MonitorConfig(
        presence_run_length=1,
        absence_run_length=1,
        absence_threshold=0.6,
        artifact_dir=str(tmp_path),
    )
    service = PresenceMonitorService(config=config, notifier=notifier)

    _adapter(service).run([{"music": 0.9}, {"music": 0.55}])

    assert not service.state.is_detected
    assert len(list(tmp_path.glob("presence_end_*.json"))) == 1
    assert len(notifier.messages) == 1


def test_recording_notice_reflects_detection_during_recording(tmp_path):
    service = _service(tmp_path)
    service.start_recording()
    _adapter(service).run([{"music": 0.85}, {"music": 0.9}])

    notice = service.finish_recording("clip.mov")
    assert "copyright" in notice
    assert "clip.mov" in notice


def test_recording_without_detection_is_plain(tmp_path):
    service = _service(tmp_path)
    service.start_recording()
    _adapter(service).run([{"music": 0.8}, {"speech": 0.9}])

    assert service.finish_recording() == "Recording complete."


def test_failure_stops_service(tmp_path):
    service = _service(tmp_path)
    error = AudioStreamInterrupted("lost")

    service.handle_event(StreamFailed(label="music", error=error))

    assert service.error is error
    assert not service.running


def test_completion_stops_service(tmp_path):
    service = _service(tmp_path)
    service.handle_event(StreamCompleted(label="music"))
    assert not service.running


def test_notification_failure_is_logged_not_raised(tmp_path):
    service = _service(tmp_path, _FakeNotifier(fail=True))

    _adapter(service).run([{"music": 0.85}, {"music": 0.9}])

    assert service.state.is_detected
    assert service.completed
