"""Recording parameters handed to the core by the configuration provider."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Container(str, Enum):
    MP4 = "mp4"
    MKV = "mkv"


class RateControl(str, Enum):
    CBR = "CBR"
    VBR = "VBR"


DEFAULT_CONTAINER = Container.MP4
DEFAULT_BITRATE_KBPS = 1000
MIN_BITRATE_KBPS = 100
MAX_BITRATE_KBPS = 10000
BITRATE_STEP_KBPS = 100
DEFAULT_RATE_CONTROL = RateControl.CBR
DEFAULT_AUDIO_DEVICE = "default"


@dataclass(frozen=True, slots=True)
class RecordingRequest:
    """Immutable parameter record for one recording attempt.

    ``destination`` names the object-storage bucket. It comes from the
    form's output-folder field, which is interpreted as a bucket name and
    never as a local path.
    """

    destination: str
    filename_template: str
    container: Container = DEFAULT_CONTAINER
    bitrate_kbps: int = DEFAULT_BITRATE_KBPS
    rate_control: RateControl = DEFAULT_RATE_CONTROL
    audio_device: str = DEFAULT_AUDIO_DEVICE

    @property
    def object_key(self) -> str:
        return f"{self.filename_template}.{self.container.value}"

    @property
    def bit_rate(self) -> int:
        """Target bit rate in bits per second."""
        return self.bitrate_kbps * 1000

    def describe(self) -> str:
        return (
            f"bucket={self.destination} object={self.object_key} "
            f"bitrate={self.bitrate_kbps}kbps mode={self.rate_control.value} "
            f"audio={self.audio_device}"
        )


__all__ = [
    "BITRATE_STEP_KBPS",
    "Container",
    "DEFAULT_AUDIO_DEVICE",
    "DEFAULT_BITRATE_KBPS",
    "DEFAULT_CONTAINER",
    "DEFAULT_RATE_CONTROL",
    "MAX_BITRATE_KBPS",
    "MIN_BITRATE_KBPS",
    "RateControl",
    "RecordingRequest",
]
