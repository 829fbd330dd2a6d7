"""Unit tests for exact time-base rescaling."""

from fractions import Fraction

import pytest

from screencast_uploader.recording.transcode.timebase import as_time_base, rescale, rescale_packet
from tests.infrastructure.mocks.media_mocks import MockPacket


class TestRescale:

    def test_identity_when_bases_equal(self):
        assert rescale(123456789, Fraction(1, 1_000_000), Fraction(1, 1_000_000)) == 123456789

    def test_none_passes_through(self):
        assert rescale(None, Fraction(1, 1000), Fraction(1, 90000)) is None

    def test_exact_conversion(self):
        assert rescale(1000, Fraction(1, 1000), Fraction(1, 90000)) == 90000

    def test_rounds_to_nearest(self):
        # 1 tick of 1/3 s in 1/2 s ticks is 0.666...
        assert rescale(1, Fraction(1, 3), Fraction(1, 2)) == 1
        assert rescale(1, Fraction(1, 4), Fraction(1, 1)) == 0

    def test_ties_round_away_from_zero(self):
        assert rescale(1, Fraction(1, 2), Fraction(1, 1)) == 1
        assert rescale(-1, Fraction(1, 2), Fraction(1, 1)) == -1
        assert rescale(3, Fraction(1, 2), Fraction(1, 1)) == 2

    def test_large_values_stay_exact(self):
        value = 2**53 + 1
        assert rescale(value, Fraction(1, 1), Fraction(1, 1000)) == value * 1000

    def test_string_time_bases(self):
        assert rescale(30, "1/30", "1/1000") == 1000


class TestAsTimeBase:

    @pytest.mark.parametrize("bad", [None, 0, Fraction(-1, 30)])
    def test_rejects_unusable(self, bad):
        with pytest.raises(ValueError):
            as_time_base(bad)


class TestRescalePacket:

    def test_rescales_all_timestamps_and_tags_time_base(self):
        packet = MockPacket(pts=2, dts=1, duration=1)
        rescale_packet(packet, Fraction(1, 30), Fraction(1, 90000))
        assert (packet.pts, packet.dts, packet.duration) == (6000, 3000, 3000)
        assert packet.time_base == Fraction(1, 90000)

    def test_missing_timestamps_preserved(self):
        packet = MockPacket(pts=None, dts=None, duration=0)
        rescale_packet(packet, Fraction(1, 30), Fraction(1, 90000))
        assert packet.pts is None and packet.dts is None and packet.duration == 0
