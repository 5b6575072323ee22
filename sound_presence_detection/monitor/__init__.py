"""Runtime sound presence monitoring package."""

from sound_presence_detection.monitor.config import MonitorConfig
from sound_presence_detection.monitor.detection_state import DetectionState, PresenceTransition, advance
from sound_presence_detection.monitor.stream import PresenceStreamAdapter

__all__ = ["MonitorConfig", "DetectionState", "PresenceTransition", "advance", "PresenceStreamAdapter"]
