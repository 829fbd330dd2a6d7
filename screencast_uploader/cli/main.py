"""Build a recording request from the command line and run it on the worker."""

from __future__ import annotations

import argparse
import signal
from pathlib import Path
from typing import Optional, Sequence

from screencast_uploader.core.config_manager import ConfigManager
from screencast_uploader.core.logging_config import LOG_LEVEL_NAMES, configure_logging
from screencast_uploader.core.logging_utils import get_module_logger
from screencast_uploader.core.paths import CONFIG_PATH, DEFAULT_LOG_FILE
from screencast_uploader.recording.config import load_config
from screencast_uploader.recording.driver import SessionDriver
from screencast_uploader.recording.request import (
    BITRATE_STEP_KBPS,
    DEFAULT_AUDIO_DEVICE,
    DEFAULT_BITRATE_KBPS,
    MAX_BITRATE_KBPS,
    MIN_BITRATE_KBPS,
    Container,
    RateControl,
    RecordingRequest,
)
from screencast_uploader.recording.worker import RecordingWorker

_POLL_INTERVAL_S = 0.5

logger = get_module_logger("cli")


def bitrate_kbps(value: str) -> int:
    try:
        kbps = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"bitrate must be an integer, got {value!r}") from exc
    if not MIN_BITRATE_KBPS <= kbps <= MAX_BITRATE_KBPS:
        raise argparse.ArgumentTypeError(
            f"bitrate must be between {MIN_BITRATE_KBPS} and {MAX_BITRATE_KBPS} kbps"
        )
    if kbps % BITRATE_STEP_KBPS:
        raise argparse.ArgumentTypeError(f"bitrate must be a multiple of {BITRATE_STEP_KBPS} kbps")
    return kbps


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="screencast_uploader",
        description="Record the screen and stream the H.264 recording to object storage",
    )
    parser.add_argument(
        "--bucket",
        required=True,
        help="Destination object-storage bucket",
    )
    parser.add_argument(
        "--name",
        required=True,
        help="Object name without extension; the container extension is appended",
    )
    parser.add_argument(
        "--container",
        choices=[container.value for container in Container],
        default=Container.MP4.value,
        help="Output container format",
    )
    parser.add_argument(
        "--bitrate",
        type=bitrate_kbps,
        default=DEFAULT_BITRATE_KBPS,
        help=f"Target bitrate in kbps ({MIN_BITRATE_KBPS}-{MAX_BITRATE_KBPS}, step {BITRATE_STEP_KBPS})",
    )
    parser.add_argument(
        "--mode",
        type=str.upper,
        choices=[mode.value for mode in RateControl],
        default=RateControl.CBR.value,
        help="Rate control mode",
    )
    parser.add_argument(
        "--audio-device",
        default=DEFAULT_AUDIO_DEVICE,
        help="Audio device selector (recorded in the log only)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=CONFIG_PATH,
        help="key = value settings file",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVEL_NAMES,
        default=None,
        help="Logging verbosity (overrides logging.level)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        nargs="?",
        const=DEFAULT_LOG_FILE,
        default=None,
        help=f"Rotating log file (overrides logging.file; {DEFAULT_LOG_FILE} when given without a path)",
    )
    return parser


def build_request(args: argparse.Namespace) -> RecordingRequest:
    return RecordingRequest(
        destination=args.bucket,
        filename_template=args.name,
        container=Container(args.container),
        bitrate_kbps=args.bitrate,
        rate_control=RateControl(args.mode),
        audio_device=args.audio_device,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    data = ConfigManager().read_config(args.config)
    config = load_config(
        data,
        {"logging.level": args.log_level, "logging.file": args.log_file},
    )
    configure_logging(config.logging.level, log_file=config.logging.file)

    request = build_request(args)
    worker = RecordingWorker(SessionDriver(config), request)

    def _request_stop(signum, _frame) -> None:
        logger.info("Received %s, finishing recording", signal.Signals(signum).name)
        worker.stop()

    previous = {sig: signal.signal(sig, _request_stop) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        worker.start()
        while not worker.wait(_POLL_INTERVAL_S):
            pass
        worker.join()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    if worker.succeeded:
        outcome = worker.outcome
        logger.info("Uploaded %s/%s (%d bytes)", outcome.bucket, outcome.object_key, outcome.bytes_written)
        return 0

    logger.error("Recording failed: %s", worker.error)
    return 1


__all__ = ["bitrate_kbps", "build_parser", "build_request", "main"]
