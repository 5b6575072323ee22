from __future__ import annotations

import argparse
import itertools
import logging
import threading
from typing import Iterable, Iterator

import numpy as np

from sound_presence_detection.monitor.config import MonitorConfig
from sound_presence_detection.monitor.errors import NoMicrophoneAccess
from sound_presence_detection.monitor.notifier import TelegramNotifier
from sound_presence_detection.monitor.pipeline import analyze_windows, build_backend, classify_windows
from sound_presence_detection.monitor.service import PresenceMonitorService
from sound_presence_detection.monitor.stream import (
    PresenceStreamAdapter,
    PresenceUpdate,
    QueueConsumer,
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Debounced sound presence monitor")
    parser.add_argument("command", choices=["status", "listen", "analyze"], help="Monitor command")
    parser.add_argument("clip_path", nargs="?", default="", help="Recording to analyze (analyze only)")
    parser.add_argument("--max-windows", type=int, default=0, help="Stop after N windows in live mode (0=run forever)")
    return parser


def _until_stopped(windows: Iterable[np.ndarray], stop: threading.Event) -> Iterator[np.ndarray]:
    for window in windows:
        if stop.is_set():
            return
        yield window


def _run_listen(config: MonitorConfig, max_windows: int) -> int:
    from sound_presence_detection.monitor.audio import iter_audio_windows

    backend = build_backend(config)
    notifier = TelegramNotifier(config.telegram_bot_token, config.telegram_chat_id)
    service = PresenceMonitorService(config=config, notifier=notifier)
    consumer = QueueConsumer()
    adapter = PresenceStreamAdapter(
        label=config.target_label,
        initial_state=service.state,
        consumer=consumer,
        minimum_confidence=config.minimum_confidence,
    )
    stop = threading.Event()

    def _produce() -> None:
        windows = _until_stopped(
            iter_audio_windows(
                window_seconds=config.window_seconds,
                overlap_factor=config.overlap_factor,
                sample_rate=config.sample_rate,
                device=config.audio_device,
            ),
            stop,
        )
        if max_windows > 0:
            windows = itertools.islice(windows, max_windows)
        adapter.run(classify_windows(backend=backend, windows=windows, sample_rate=config.sample_rate))

    logging.info(
        "Listening for %s (presence>%.2f x%d, absence<%.2f x%d)",
        config.target_label,
        config.presence_threshold,
        config.presence_run_length,
        config.absence_threshold,
        config.absence_run_length,
    )
    producer = threading.Thread(target=_produce, name="classification", daemon=True)
    producer.start()
    service.start_recording()

    try:
        while service.running:
            event = consumer.get(timeout=0.5)
            if event is None:
                continue
            service.handle_event(event)
            if isinstance(event, PresenceUpdate):
                logging.debug(
                    "%s confidence=%.2f detected=%s progress=%d",
                    event.label,
                    event.state.current_confidence,
                    event.state.is_detected,
                    event.state.transition_progress,
                )
    except KeyboardInterrupt:
        logging.info("Stopping capture")
        stop.set()
        producer.join(timeout=5)
        for event in consumer.drain():
            service.handle_event(event)

    print(service.finish_recording())
    return 1 if service.error is not None else 0


def _run_analyze(config: MonitorConfig, clip_path: str) -> int:
    from sound_presence_detection.monitor.audio import iter_file_windows

    try:
        windows = iter_file_windows(
            clip_path,
            window_seconds=config.window_seconds,
            overlap_factor=config.overlap_factor,
            sample_rate=config.sample_rate,
        )
    except FileNotFoundError as exc:
        logging.error("Analysis could not start: %s: %s", NoMicrophoneAccess.kind, exc)
        return 1

    backend = build_backend(config)
    analysis = analyze_windows(config=config, backend=backend, windows=windows)
    for entry in analysis.timeline:
        print(f"{entry['offset_seconds']:>8.2f}s {entry['transition']} (confidence={entry['confidence']:.2f})")
    if analysis.error:
        logging.error("Analysis stopped early: %s", analysis.error)
        return 1
    print(TelegramNotifier.build_recording_notice(config.target_label, analysis.detected_any, clip_path))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command == "status":
        print("monitor_ready")
        return 0
    if args.command == "analyze" and not args.clip_path:
        parser.error("analyze requires a recording path")

    config = MonitorConfig.from_env()
    logging.basicConfig(level=getattr(logging, config.log_level, logging.INFO))

    if args.command == "analyze":
        return _run_analyze(config, args.clip_path)
    return _run_listen(config, args.max_windows)


if __name__ == "__main__":
    raise SystemExit(main())
