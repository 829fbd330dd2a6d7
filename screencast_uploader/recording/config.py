"""Typed configuration for the recorder."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Collection, Dict, Optional, Tuple

from screencast_uploader.core.logging_config import LOG_LEVEL_NAMES
from screencast_uploader.core.logging_utils import LoggerLike, ensure_structured_logger
from screencast_uploader.core.paths import DEFAULT_OCI_CONFIG_FILE

DEFAULT_APP_ID = "screencast_uploader"
DEFAULT_SOURCE_TYPES: Tuple[str, ...] = ("monitor", "window")
DEFAULT_RESPONSE_TIMEOUT_S = 120.0
DEFAULT_INPUT_FORMAT = "pipewire"
DEFAULT_ENCODER = "libx264"
DEFAULT_PIXEL_FORMAT = "yuv420p"
DEFAULT_OCI_PROFILE = "DEFAULT"
DEFAULT_PART_SIZE_MB = 10
# Object Storage rejects multipart parts below 10 MiB, except the last one.
MIN_PART_SIZE_MB = 10
DEFAULT_LOG_LEVEL = "INFO"

SOURCE_TYPE_BITS = {"monitor": 1, "window": 2, "virtual": 4}
CURSOR_MODE_BITS = {"hidden": 1, "embedded": 2, "metadata": 4}


@dataclass(slots=True)
class CaptureSettings:
    app_id: str
    source_types: Tuple[str, ...]
    cursor_mode: Optional[str]
    response_timeout_s: float

    @property
    def source_type_mask(self) -> int:
        mask = 0
        for name in self.source_types:
            mask |= SOURCE_TYPE_BITS[name]
        return mask

    @property
    def cursor_mode_value(self) -> Optional[int]:
        if self.cursor_mode is None:
            return None
        return CURSOR_MODE_BITS[self.cursor_mode]


@dataclass(slots=True)
class TranscodeSettings:
    input_format: str
    encoder: str
    pixel_format: str
    preset: Optional[str]


@dataclass(slots=True)
class StorageSettings:
    namespace: Optional[str]
    oci_config_file: Path
    oci_profile: str
    part_size_mb: int
    content_type: Optional[str]

    @property
    def part_size(self) -> int:
        return self.part_size_mb * 1024 * 1024


@dataclass(slots=True)
class LoggingSettings:
    level: str
    file: Optional[Path]


@dataclass(slots=True)
class RecorderConfig:
    capture: CaptureSettings
    transcode: TranscodeSettings
    storage: StorageSettings
    logging: LoggingSettings


# ---------------------------------------------------------------------------
# Public API


def load_config(
    data: Optional[Dict[str, Any]] = None,
    overrides: Optional[Dict[str, Any]] = None,
    *,
    logger: LoggerLike = None,
) -> RecorderConfig:
    """Build a typed config from a flat key/value mapping plus optional overrides."""

    log = ensure_structured_logger(logger, fallback_name=__name__)
    merged: Dict[str, Any] = dict(data or {})
    if overrides:
        for key, value in overrides.items():
            if value is not None:
                merged[key] = value

    capture = CaptureSettings(
        app_id=_coerce_str(merged, ("capture.app_id", "app_id"), DEFAULT_APP_ID),
        source_types=_coerce_source_types(
            merged, ("capture.source_types", "source_types"), DEFAULT_SOURCE_TYPES, logger=log
        ),
        cursor_mode=_coerce_choice(
            merged, ("capture.cursor_mode", "cursor_mode"), CURSOR_MODE_BITS, None, logger=log
        ),
        response_timeout_s=_coerce_float(
            merged, ("capture.response_timeout_s",), DEFAULT_RESPONSE_TIMEOUT_S
        ),
    )

    transcode = TranscodeSettings(
        input_format=_coerce_str(merged, ("transcode.input_format", "input_format"), DEFAULT_INPUT_FORMAT),
        encoder=_coerce_str(merged, ("transcode.encoder", "encoder"), DEFAULT_ENCODER),
        pixel_format=_coerce_str(merged, ("transcode.pixel_format",), DEFAULT_PIXEL_FORMAT),
        preset=_coerce_optional_str(merged, ("transcode.preset", "preset"), None),
    )

    storage = StorageSettings(
        namespace=_coerce_optional_str(merged, ("storage.namespace", "namespace"), None),
        oci_config_file=_coerce_path(merged, ("storage.oci_config_file",), DEFAULT_OCI_CONFIG_FILE),
        oci_profile=_coerce_str(merged, ("storage.oci_profile", "oci_profile"), DEFAULT_OCI_PROFILE),
        part_size_mb=_coerce_part_size(merged, ("storage.part_size_mb",), DEFAULT_PART_SIZE_MB, logger=log),
        content_type=_coerce_optional_str(merged, ("storage.content_type",), None),
    )

    logging_settings = LoggingSettings(
        level=_coerce_choice(
            merged, ("logging.level", "log_level"), LOG_LEVEL_NAMES, DEFAULT_LOG_LEVEL, logger=log
        ),
        file=_coerce_optional_path(merged, ("logging.file", "log_file")),
    )

    return RecorderConfig(
        capture=capture,
        transcode=transcode,
        storage=storage,
        logging=logging_settings,
    )


# ---------------------------------------------------------------------------
# Internal helpers


def _first_present(data: Dict[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _coerce_optional_str(data: Dict[str, Any], keys: Tuple[str, ...], default: Optional[str]) -> Optional[str]:
    raw = _first_present(data, keys)
    if raw is None:
        return default
    text = str(raw).strip()
    return text if text else default


def _coerce_str(data: Dict[str, Any], keys: Tuple[str, ...], default: str) -> str:
    raw = _first_present(data, keys)
    if raw is None:
        return default
    text = str(raw).strip()
    return text or default


def _coerce_int(data: Dict[str, Any], keys: Tuple[str, ...], default: int) -> int:
    raw = _first_present(data, keys)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _coerce_part_size(data: Dict[str, Any], keys: Tuple[str, ...], default: int, *, logger) -> int:
    value = _coerce_int(data, keys, default)
    if value < MIN_PART_SIZE_MB:
        logger.debug("Raising %s from %d to the %d MiB service minimum", keys[0], value, MIN_PART_SIZE_MB)
        return MIN_PART_SIZE_MB
    return value


def _coerce_float(data: Dict[str, Any], keys: Tuple[str, ...], default: float) -> float:
    raw = _first_present(data, keys)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def _coerce_path(data: Dict[str, Any], keys: Tuple[str, ...], default: Path) -> Path:
    raw = _first_present(data, keys)
    if raw is None or raw == "":
        return Path(default)
    return Path(str(raw))


def _coerce_optional_path(data: Dict[str, Any], keys: Tuple[str, ...]) -> Optional[Path]:
    raw = _first_present(data, keys)
    if raw is None or str(raw).strip() == "":
        return None
    return Path(str(raw).strip())


def _coerce_choice(
    data: Dict[str, Any],
    keys: Tuple[str, ...],
    choices: Collection[str],
    default: Optional[str],
    *,
    logger,
) -> Optional[str]:
    raw = _coerce_optional_str(data, keys, None)
    if raw is None:
        return default
    value = raw.lower()
    if value not in choices:
        logger.debug("Ignoring unknown value %r for %s, using default %s", raw, keys[0], default)
        return default
    return value


def _coerce_source_types(
    data: Dict[str, Any],
    keys: Tuple[str, ...],
    default: Tuple[str, ...],
    *,
    logger,
) -> Tuple[str, ...]:
    raw = _first_present(data, keys)
    if raw is None:
        return default
    if isinstance(raw, (list, tuple)):
        items = [str(item) for item in raw]
    else:
        items = str(raw).split(",")
    names = []
    for item in items:
        name = item.strip().lower()
        if not name:
            continue
        if name not in SOURCE_TYPE_BITS:
            logger.debug("Failed to parse source types from %r, using default %s", raw, default)
            return default
        if name not in names:
            names.append(name)
    # An explicitly empty list asks the portal for its default behaviour.
    return tuple(names)


__all__ = [
    "CaptureSettings",
    "LoggingSettings",
    "RecorderConfig",
    "StorageSettings",
    "TranscodeSettings",
    "load_config",
]
