"""Unit tests for RecordingRequest."""

import dataclasses

import pytest

from screencast_uploader.recording.request import (
    DEFAULT_AUDIO_DEVICE,
    DEFAULT_BITRATE_KBPS,
    Container,
    RateControl,
    RecordingRequest,
)


class TestRecordingRequest:

    def test_defaults_match_parameter_form(self):
        request = RecordingRequest(destination="rec", filename_template="demo")
        assert request.container is Container.MP4
        assert request.bitrate_kbps == DEFAULT_BITRATE_KBPS == 1000
        assert request.rate_control is RateControl.CBR
        assert request.audio_device == DEFAULT_AUDIO_DEVICE == "default"

    @pytest.mark.parametrize("container, key", [(Container.MP4, "demo.mp4"), (Container.MKV, "demo.mkv")])
    def test_object_key_appends_container_extension(self, container, key):
        request = RecordingRequest(destination="rec", filename_template="demo", container=container)
        assert request.object_key == key

    def test_bit_rate_in_bits_per_second(self, recording_request):
        assert recording_request.bit_rate == 2_000_000

    def test_immutable(self, recording_request):
        with pytest.raises(dataclasses.FrozenInstanceError):
            recording_request.bitrate_kbps = 3000

    def test_describe_lists_parameters(self, recording_request):
        text = recording_request.describe()
        assert "bucket=rec" in text
        assert "object=demo.mp4" in text
        assert "bitrate=2000kbps" in text
        assert "mode=CBR" in text
        assert "audio=default" in text

    def test_enums_accept_form_values(self):
        assert Container("mkv") is Container.MKV
        assert RateControl("VBR") is RateControl.VBR
