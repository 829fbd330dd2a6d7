"""Map the requested rate-control mode onto H.264 encoder options.

CBR holds the bit rate with a one-second rate-control buffer and equal
min/max rates, and asks x264 for CBR HRD signalling. VBR treats the bit
rate as an average target and lets peaks reach twice that within a
two-second buffer.
"""

from __future__ import annotations

from typing import Dict, Optional

from screencast_uploader.recording.request import RateControl

VBR_PEAK_FACTOR = 2

_ENCODER_MODE_OPTIONS: Dict[str, Dict[RateControl, Dict[str, str]]] = {
    "libx264": {
        RateControl.CBR: {"x264-params": "nal-hrd=cbr"},
        RateControl.VBR: {},
    },
    "h264_nvenc": {
        RateControl.CBR: {"rc": "cbr"},
        RateControl.VBR: {"rc": "vbr"},
    },
    "h264_vaapi": {
        RateControl.CBR: {"rc_mode": "CBR"},
        RateControl.VBR: {"rc_mode": "VBR"},
    },
    "h264_qsv": {
        RateControl.CBR: {},
        RateControl.VBR: {},
    },
}

_PRESET_ENCODERS = {"libx264", "h264_nvenc", "h264_qsv"}


def encoder_options(
    mode: RateControl,
    bit_rate: int,
    *,
    encoder_name: str,
    preset: Optional[str] = None,
) -> Dict[str, str]:
    """Return the AVOptions (all string valued) for ``encoder_name``."""
    if bit_rate <= 0:
        raise ValueError(f"bit rate must be positive, got {bit_rate}")

    if mode is RateControl.CBR:
        options = {
            "minrate": str(bit_rate),
            "maxrate": str(bit_rate),
            "bufsize": str(bit_rate),
        }
    else:
        peak = bit_rate * VBR_PEAK_FACTOR
        options = {
            "maxrate": str(peak),
            "bufsize": str(peak),
        }

    options.update(_ENCODER_MODE_OPTIONS.get(encoder_name, {}).get(mode, {}))
    if preset and encoder_name in _PRESET_ENCODERS:
        options["preset"] = preset
    return options


__all__ = ["VBR_PEAK_FACTOR", "encoder_options"]
