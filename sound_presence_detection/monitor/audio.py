from __future__ import annotations

import logging
from collections import deque
from pathlib import Path
from typing import Deque, Iterable, Iterator

import numpy as np

from sound_presence_detection.monitor.errors import AudioStreamInterrupted, NoMicrophoneAccess

logger = logging.getLogger(__name__)


def window_hop_samples(window_seconds: float, overlap_factor: float, sample_rate: int) -> tuple[int, int]:
    if window_seconds <= 0:
        raise ValueError("window_seconds must be > 0")
    if not 0.0 <= overlap_factor < 1.0:
        raise ValueError("overlap_factor must be in [0, 1)")
    window = max(1, int(round(window_seconds * sample_rate)))
    hop = max(1, int(round(window * (1.0 - overlap_factor))))
    return window, hop


class SlidingWindowBuffer:
    """Collects capture blocks and emits overlapping analysis windows."""

    def __init__(self, window_samples: int, hop_samples: int) -> None:
        self.window_samples = max(1, int(window_samples))
        self.hop_samples = max(1, int(hop_samples))
        self._chunks: Deque[np.ndarray] = deque()
        self._total_samples = 0

    def append(self, samples: np.ndarray) -> list[np.ndarray]:
        chunk = np.asarray(samples, dtype=np.float32).reshape(-1)
        if chunk.size:
            self._chunks.append(chunk)
            self._total_samples += chunk.size

        windows: list[np.ndarray] = []
        while self._total_samples >= self.window_samples:
            merged = np.concatenate(list(self._chunks))
            windows.append(merged[: self.window_samples].copy())
            remainder = merged[self.hop_samples :]
            self._chunks = deque([remainder]) if remainder.size else deque()
            self._total_samples = remainder.size
        return windows


def split_windows(
    samples: np.ndarray,
    window_seconds: float,
    overlap_factor: float,
    sample_rate: int,
) -> Iterator[np.ndarray]:
    window, hop = window_hop_samples(window_seconds, overlap_factor, sample_rate)
    signal = np.asarray(samples, dtype=np.float32).reshape(-1)
    if signal.size == 0:
        return
    if signal.size < window:
        yield signal
        return
    for start in range(0, signal.size - window + 1, hop):
        yield signal[start : start + window]


def iter_file_windows(
    path: str | Path,
    window_seconds: float,
    overlap_factor: float,
    sample_rate: int,
) -> Iterator[np.ndarray]:
    """Raises ``FileNotFoundError`` on call, before any window is produced."""
    clip_path = Path(path)
    if not clip_path.exists():
        raise FileNotFoundError(f"Audio file not found: {clip_path}")
    return _load_file_windows(clip_path, window_seconds, overlap_factor, sample_rate)


def _load_file_windows(
    clip_path: Path,
    window_seconds: float,
    overlap_factor: float,
    sample_rate: int,
) -> Iterator[np.ndarray]:
    import librosa

    samples, _ = librosa.load(str(clip_path), sr=sample_rate, mono=True)
    yield from split_windows(samples, window_seconds, overlap_factor, sample_rate)


def probe_audio_input(device: str = "") -> tuple[bool, str]:
    try:
        import sounddevice as sd

        if device:
            sd.check_input_settings(device=device)
            return True, f"portaudio device '{device}'"

        # default.device is an input/output pair, indexable but not a tuple
        input_device = sd.default.device[0]
        if input_device is not None and not (isinstance(input_device, int) and input_device < 0):
            return True, f"portaudio default device {input_device}"
    except Exception as exc:
        return False, f"no input device ({exc})"
    return False, "no input device (no default input device)"


def ensure_microphone_access(device: str = "") -> str:
    ok, detail = probe_audio_input(device=device)
    if not ok:
        raise NoMicrophoneAccess(detail)
    return detail


def iter_audio_windows(
    window_seconds: float,
    overlap_factor: float,
    sample_rate: int,
    device: str = "",
) -> Iterable[np.ndarray]:
    """Yield overlapping windows from the microphone until the stream breaks.

    Raises ``NoMicrophoneAccess`` before the first window when no input can
    be opened and ``AudioStreamInterrupted`` when capture fails mid-stream.
    """
    ensure_microphone_access(device=device)

    import sounddevice as sd

    window, hop = window_hop_samples(window_seconds, overlap_factor, sample_rate)
    buffer = SlidingWindowBuffer(window_samples=window, hop_samples=hop)
    try:
        stream = sd.InputStream(
            samplerate=sample_rate,
            channels=1,
            dtype="float32",
            blocksize=hop,
            device=device if device else None,
        )
    except Exception as exc:
        raise NoMicrophoneAccess(f"cannot open input stream: {exc}") from exc

    with stream:
        while True:
            try:
                data, overflowed = stream.read(hop)
            except Exception as exc:
                raise AudioStreamInterrupted(f"audio capture failed: {exc}") from exc
            if overflowed:
                logger.warning("Audio input overflowed, classification is falling behind capture")
            yield from buffer.append(data[:, 0])
