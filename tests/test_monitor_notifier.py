from datetime import datetime

from sound_presence_detection.monitor.notifier import TelegramNotifier


class _FakeResponse:
    def raise_for_status(self):
        return None


class _FakeSession:
    def __init__(self):
        self.calls = []

    def post(self, url, data=None, timeout=None):
        self.calls.append({"url": url, "data": data, "timeout": timeout})
        return _FakeResponse()


def test_build_onset_message_format():
    dt = datetime(2026, 2, 10, 22, 14, 5)
    text = TelegramNotifier.build_onset_message(label="music", confidence=0.87, event_at=dt)
    assert "[Sound Monitor]" in text
    assert "Music detected at 2026-02-10 22:14:05" in text
    assert "confidence=0.87" in text


def test_recording_notice_warns_about_copyright():
    warning = TelegramNotifier.build_recording_notice(label="music", detected=True, recording_path="/tmp/a.mov")
    plain = TelegramNotifier.build_recording_notice(label="music", detected=False)

    assert "copyright" in warning
    assert warning.endswith("[/tmp/a.mov]")
    assert plain == "Recording complete."


def test_send_text_posts_message():
    notifier = TelegramNotifier(bot_token="token", chat_id="chat")
    fake = _FakeSession()
    notifier._session = fake  # type: ignore[assignment]

    assert notifier.send_text("hello")
    assert len(fake.calls) == 1
    assert fake.calls[0]["url"].endswith("/sendMessage")
    assert fake.calls[0]["data"] == {"chat_id": "chat", "text": "hello"}


def test_send_text_is_noop_without_token():
    notifier = TelegramNotifier(bot_token="", chat_id="chat")
    fake = _FakeSession()
    notifier._session = fake  # type: ignore[assignment]

    assert not notifier.send_text("hello")
    assert fake.calls == []
