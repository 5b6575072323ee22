from __future__ import annotations

import numpy as np


class EnergyBackend:
    """
    Lightweight heuristic scorer used when YAMNet is unavailable.
    Sustained, tonal signals (low spectral flatness, steady RMS) score high
    for ``target_label``; silence and broadband noise score low.
    """

    def __init__(self, target_label: str = "music") -> None:
        self.target_label = target_label

    def classify(self, audio_window: np.ndarray, sample_rate: int) -> dict[str, float]:
        if audio_window.size == 0:
            return {self.target_label: 0.0, "silence": 1.0}

        import librosa

        signal = np.asarray(audio_window, dtype=np.float32)
        rms = float(np.sqrt(np.mean(np.square(signal))))
        if rms < 1e-4:
            return {self.target_label: 0.0, "silence": 1.0}

        n_fft = min(2048, int(2 ** np.floor(np.log2(max(signal.size, 16)))))
        flatness = float(np.mean(librosa.feature.spectral_flatness(y=signal, n_fft=n_fft)))
        frame_rms = librosa.feature.rms(y=signal, frame_length=n_fft, hop_length=max(1, n_fft // 4))[0]
        steadiness = 1.0 - min(1.0, float(np.std(frame_rms) / (np.mean(frame_rms) + 1e-8)))

        energy = min(1.0, max(0.0, 4.0 * rms))
        tonality = 1.0 - min(1.0, max(0.0, flatness))
        score = min(1.0, max(0.0, 0.5 * tonality + 0.3 * steadiness + 0.2 * energy))
        return {self.target_label: score, "silence": 0.0}
