from __future__ import annotations

from typing import Protocol

import numpy as np


class ClassificationBackend(Protocol):
    def classify(self, audio_window: np.ndarray, sample_rate: int) -> dict[str, float]:
        raise NotImplementedError
