from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable


class PresenceTransition(str, Enum):
    ONSET = "onset"
    END = "end"


@dataclass(frozen=True)
class DetectionState:
    """Debounced presence signal for one label.

    Entering the detected state needs ``presence_run_length`` consecutive
    samples strictly above ``presence_threshold``; leaving it needs
    ``absence_run_length`` consecutive samples strictly below
    ``absence_threshold``. Any sample that does not qualify for the direction
    currently pursued resets ``transition_progress``.

    A run length of 0 is accepted: the progress check is then met on every
    sample, so the machine commits a transition on each sample in that
    direction.
    """

    presence_threshold: float
    absence_threshold: float
    presence_run_length: int
    absence_run_length: int
    is_detected: bool = False
    transition_progress: int = 0
    current_confidence: float = 0.0

    def __post_init__(self) -> None:
        for name in ("presence_run_length", "absence_run_length"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")
        if self.transition_progress < 0:
            raise ValueError("transition_progress must be >= 0")

    @classmethod
    def new(
        cls,
        presence_threshold: float,
        absence_threshold: float,
        presence_run_length: int,
        absence_run_length: int,
    ) -> "DetectionState":
        return cls(
            presence_threshold=float(presence_threshold),
            absence_threshold=float(absence_threshold),
            presence_run_length=presence_run_length,
            absence_run_length=absence_run_length,
        )

    @property
    def has_hysteresis_gap(self) -> bool:
        return self.absence_threshold < self.presence_threshold

    @property
    def required_run_length(self) -> int:
        """Run length that commits the next transition from this state."""
        return self.absence_run_length if self.is_detected else self.presence_run_length

    def qualifies(self, confidence: float) -> bool:
        """Whether ``confidence`` counts toward leaving the current state."""
        # NaN and infinities never count as evidence in either direction.
        if not math.isfinite(confidence):
            return False
        if self.is_detected:
            return confidence < self.absence_threshold
        return confidence > self.presence_threshold

    def advanced(self, confidence: float) -> "DetectionState":
        return advance(self, confidence)


def advance(prior: DetectionState, confidence: float) -> DetectionState:
    confidence = float(confidence)
    progress = prior.transition_progress + 1 if prior.qualifies(confidence) else 0
    is_detected = prior.is_detected

    if progress >= prior.required_run_length:
        is_detected = not is_detected
        progress = 0

    return replace(
        prior,
        is_detected=is_detected,
        transition_progress=progress,
        current_confidence=confidence,
    )


def replay(initial: DetectionState, confidences: Iterable[float]) -> list[DetectionState]:
    """Return every state derived from ``initial``, one per sample, in order."""
    history: list[DetectionState] = []
    state = initial
    for confidence in confidences:
        state = advance(state, confidence)
        history.append(state)
    return history


def transition_between(prior: DetectionState, current: DetectionState) -> PresenceTransition | None:
    if not prior.is_detected and current.is_detected:
        return PresenceTransition.ONSET
    if prior.is_detected and not current.is_detected:
        return PresenceTransition.END
    return None
