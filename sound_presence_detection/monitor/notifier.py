from __future__ import annotations

import logging
from datetime import datetime

import requests

from sound_presence_detection.monitor.labels import SoundIdentifier

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Sends presence notices to one Telegram chat. A no-op without a bot token."""

    def __init__(self, bot_token: str, chat_id: str, timeout_seconds: int = 15) -> None:
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.timeout_seconds = timeout_seconds
        self.base_url = f"https://api.telegram.org/bot{bot_token}"
        self._session = requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    @staticmethod
    def build_onset_message(label: str, confidence: float, event_at: datetime | None = None) -> str:
        event_time = (event_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
        return (
            f"[Sound Monitor] {SoundIdentifier.from_label(label).display_name} detected at "
            f"{event_time} (confidence={confidence:.2f})"
        )

    @staticmethod
    def build_recording_notice(label: str, detected: bool, recording_path: str = "") -> str:
        name = SoundIdentifier.from_label(label).display_name
        if detected:
            message = (
                f"{name} was detected. If the recording contains {name.lower()}, "
                "be careful about copyright."
            )
        else:
            message = "Recording complete."
        if recording_path:
            message = f"{message} [{recording_path}]"
        return message

    def send_text(self, message: str) -> bool:
        if not self.enabled:
            logger.debug("Telegram notifier disabled, not sending: %s", message)
            return False
        response = self._session.post(
            f"{self.base_url}/sendMessage",
            data={"chat_id": self.chat_id, "text": message},
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        return True
