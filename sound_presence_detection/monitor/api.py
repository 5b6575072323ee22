from __future__ import annotations

from pathlib import Path

import numpy as np
from fastapi import FastAPI, File, UploadFile
from fastapi.responses import JSONResponse

from sound_presence_detection.monitor.audio import probe_audio_input, split_windows
from sound_presence_detection.monitor.backends.base import ClassificationBackend
from sound_presence_detection.monitor.config import MonitorConfig
from sound_presence_detection.monitor.pipeline import analyze_windows, build_backend


def create_app(
    config: MonitorConfig | None = None,
    backend: ClassificationBackend | None = None,
) -> FastAPI:
    app = FastAPI(title="Sound Presence Monitor", version="0.1.0")

    config = config or MonitorConfig.from_env()
    backend = backend or build_backend(config)

    @app.get("/health")
    def health() -> dict[str, str]:
        mic_ok, mic_detail = probe_audio_input(device=config.audio_device)
        return {
            "status": "ok",
            "label": config.target_label,
            "mic": f"ready({mic_detail})" if mic_ok else f"unavailable({mic_detail})",
        }

    @app.post("/classify")
    async def classify(file: UploadFile = File(...)):
        import librosa

        suffix = Path(file.filename or "clip.wav").suffix or ".wav"
        tmp_path = Path(config.artifact_dir) / f"upload{suffix}"
        tmp_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_bytes(await file.read())

        try:
            audio, _ = librosa.load(str(tmp_path), sr=config.sample_rate, mono=True)
        except Exception as exc:
            return JSONResponse({"status": "rejected", "reason": f"unreadable audio: {exc}"}, status_code=400)
        finally:
            tmp_path.unlink(missing_ok=True)

        analysis = analyze_windows(
            config=config,
            backend=backend,
            windows=split_windows(
                np.asarray(audio, dtype=np.float32),
                window_seconds=config.window_seconds,
                overlap_factor=config.overlap_factor,
                sample_rate=config.sample_rate,
            ),
        )
        return JSONResponse(analysis.as_payload())

    return app


def main() -> int:
    import uvicorn

    uvicorn.run("sound_presence_detection.monitor.api:create_app", factory=True, host="0.0.0.0", port=8080)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
