"""Unit tests for CBR/VBR encoder option mapping."""

import pytest

from screencast_uploader.recording.request import RateControl
from screencast_uploader.recording.transcode.rate_control import encoder_options


class TestCBR:

    def test_libx264_holds_rate(self):
        options = encoder_options(RateControl.CBR, 2_000_000, encoder_name="libx264")
        assert options == {
            "minrate": "2000000",
            "maxrate": "2000000",
            "bufsize": "2000000",
            "x264-params": "nal-hrd=cbr",
        }

    def test_nvenc_rc_mode(self):
        assert encoder_options(RateControl.CBR, 1_000_000, encoder_name="h264_nvenc")["rc"] == "cbr"


class TestVBR:

    def test_peak_is_twice_target(self):
        options = encoder_options(RateControl.VBR, 2_000_000, encoder_name="libx264")
        assert options == {"maxrate": "4000000", "bufsize": "4000000"}

    def test_vaapi_rc_mode(self):
        assert encoder_options(RateControl.VBR, 1_000_000, encoder_name="h264_vaapi")["rc_mode"] == "VBR"


class TestCommon:

    def test_modes_differ(self):
        cbr = encoder_options(RateControl.CBR, 1_000_000, encoder_name="libx264")
        vbr = encoder_options(RateControl.VBR, 1_000_000, encoder_name="libx264")
        assert cbr != vbr

    def test_preset_only_for_supporting_encoders(self):
        assert encoder_options(RateControl.CBR, 100_000, encoder_name="libx264", preset="veryfast")["preset"] == "veryfast"
        assert "preset" not in encoder_options(RateControl.CBR, 100_000, encoder_name="h264_vaapi", preset="veryfast")

    def test_unknown_encoder_gets_generic_options(self):
        options = encoder_options(RateControl.CBR, 500_000, encoder_name="h264_v4l2m2m")
        assert set(options) == {"minrate", "maxrate", "bufsize"}

    @pytest.mark.parametrize("bit_rate", [0, -1])
    def test_non_positive_rejected(self, bit_rate):
        with pytest.raises(ValueError):
            encoder_options(RateControl.CBR, bit_rate, encoder_name="libx264")
