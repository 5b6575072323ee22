from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path

import requests

from sound_presence_detection.monitor.config import MonitorConfig
from sound_presence_detection.monitor.detection_state import DetectionState, PresenceTransition
from sound_presence_detection.monitor.errors import ClassificationError
from sound_presence_detection.monitor.labels import SoundIdentifier
from sound_presence_detection.monitor.notifier import TelegramNotifier
from sound_presence_detection.monitor.stream import PresenceUpdate, StreamCompleted, StreamEvent, StreamFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PresenceEvent:
    event_at: str
    label: str
    display_name: str
    transition: str
    confidence: float


class PresenceMonitorService:
    """Single owner of a label's presence signal.

    Consumes stream events, keeps the latest detection state, records onset and
    end events and decides what the user is told when a recording finishes.
    """

    def __init__(self, config: MonitorConfig, notifier: TelegramNotifier) -> None:
        self.config = config
        self.sound = SoundIdentifier.from_label(config.target_label)
        self.notifier = notifier
        self.state: DetectionState = config.initial_state()
        self.error: ClassificationError | None = None
        self.completed = False
        self.recording_contains_label = False
        self.artifact_dir = Path(config.artifact_dir)
        self.artifact_dir.mkdir(parents=True, exist_ok=True)

    @property
    def running(self) -> bool:
        return not self.completed and self.error is None

    def handle_event(self, event: StreamEvent) -> None:
        if isinstance(event, PresenceUpdate):
            self._handle_update(event)
        elif isinstance(event, StreamCompleted):
            self.completed = True
        elif isinstance(event, StreamFailed):
            self.error = event.error
            logger.error("Presence monitoring for %s stopped: %s", event.label, event.error)

    def _handle_update(self, update: PresenceUpdate) -> None:
        self.state = update.state
        if update.state.is_detected:
            self.recording_contains_label = True
        if update.transition is None:
            return

        event = PresenceEvent(
            event_at=datetime.now().isoformat(timespec="seconds"),
            label=self.sound.label_name,
            display_name=self.sound.display_name,
            transition=update.transition.value,
            confidence=update.state.current_confidence,
        )
        self._save_event(event)
        if update.transition is PresenceTransition.ONSET:
            message = self.notifier.build_onset_message(label=self.sound.label_name, confidence=event.confidence)
            try:
                self.notifier.send_text(message)
            except requests.RequestException as exc:
                logger.error("Failed to send onset notification: %s", exc)

    def start_recording(self) -> None:
        self.recording_contains_label = self.state.is_detected

    def finish_recording(self, recording_path: str = "") -> str:
        notice = self.notifier.build_recording_notice(
            label=self.sound.label_name,
            detected=self.recording_contains_label,
            recording_path=recording_path,
        )
        logger.info("Recording finished: %s", notice)
        return notice

    def _save_event(self, event: PresenceEvent) -> None:
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        output = self.artifact_dir / f"presence_{event.transition}_{stamp}.json"
        output.write_text(json.dumps(asdict(event), indent=2), encoding="utf-8")
