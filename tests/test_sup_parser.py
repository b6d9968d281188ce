"""
Tests for the PGS/SUP stream parser.
"""

import pytest

from conftest import SupStreamBuilder, solid_rle
from core.errors import MalformedContainer
from core.sup_parser import SupParser, decode_rle, ycbcr_to_rgba


@pytest.fixture
def parser():
    return SupParser()


class TestDisplaySets:
    """Frames and their display intervals."""

    def test_captions_with_clearing_display_sets(self, parser, sup_builder):
        data = (sup_builder
                .caption(1000).clear(3000)
                .caption(4000).clear(6500)
                .build())

        frames = parser.parse_bytes(data)

        assert [f.index for f in frames] == [0, 1]
        assert frames[0].start_ms == 1000.0
        assert frames[0].end_ms == 3000.0
        assert frames[1].start_ms == 4000.0
        assert frames[1].end_ms == 6500.0

    def test_caption_ends_when_next_caption_starts(self, parser, sup_builder):
        data = sup_builder.caption(1000).caption(2500).clear(4000).build()

        frames = parser.parse_bytes(data)

        assert len(frames) == 2
        assert frames[0].end_ms == 2500.0
        assert frames[1].start_ms == 2500.0

    def test_last_caption_gets_default_duration(self, parser, sup_builder):
        frames = parser.parse_bytes(sup_builder.caption(10000).build())

        assert len(frames) == 1
        assert frames[0].start_ms == 10000.0
        assert frames[0].end_ms == 13000.0

    def test_ticks_are_90khz(self, parser, sup_builder):
        frames = parser.parse_bytes(sup_builder.caption(2000).clear(2500).build())

        assert frames[0].start_ticks == 180000
        assert frames[0].end_ticks == 225000

    def test_palette_update_does_not_start_new_frame(self, parser, sup_builder):
        data = sup_builder.caption(1000).palette_update(1500).clear(3000).build()

        frames = parser.parse_bytes(data)

        assert len(frames) == 1
        assert frames[0].end_ms == 3000.0

    def test_forced_flag(self, parser, sup_builder):
        frames = parser.parse_bytes(sup_builder.caption(0, forced=True).clear(500).build())
        assert frames[0].forced is True

    def test_empty_stream(self, parser):
        assert parser.parse_bytes(b"") == []

    def test_only_clearing_display_sets(self, parser, sup_builder):
        assert parser.parse_bytes(sup_builder.clear(1000).clear(2000).build()) == []

    def test_parse_file(self, parser, write_sup):
        path = write_sup([(1000, 2000), (3000, None)])

        frames = parser.parse(path)

        assert len(frames) == 2
        assert frames[1].end_ms == 6000.0

    def test_parse_is_restartable(self, parser, write_sup):
        path = write_sup([(1000, 2000)])
        assert len(parser.parse(path)) == len(parser.parse(path)) == 1

    def test_start_and_end_seconds(self, parser, sup_builder):
        frames = parser.parse_bytes(sup_builder.caption(1500).clear(2250).build())
        assert (frames[0].start_seconds, frames[0].end_seconds) == (1.5, 2.25)


class TestCountFrames:
    """Frame counting without bitmap decoding."""

    def test_matches_parse(self, parser, write_sup):
        path = write_sup([(1000, 2000), (3000, None), (4000, 5000)])
        assert parser.count_frames(path) == len(parser.parse(path)) == 3

    def test_palette_updates_and_empty_bitmaps(self, parser, sup_builder, tmp_path):
        path = tmp_path / "track.sup"
        path.write_bytes(sup_builder
                         .caption(0).palette_update(200).clear(500)
                         .caption(1000, width=0, height=0).clear(1500)
                         .clear(2000)
                         .build())

        assert parser.count_frames(path) == 2

    def test_does_not_decode_bitmaps(self, parser, write_sup, monkeypatch):
        path = write_sup([(1000, 2000), (3000, 4000)])

        def _no_decoding(*args):
            raise AssertionError("bitmap decoded while counting")

        monkeypatch.setattr("core.sup_parser.decode_rle", _no_decoding)

        assert parser.count_frames(path) == 2

    def test_malformed_stream(self, parser, tmp_path):
        path = tmp_path / "bad.sup"
        path.write_bytes(b"XX" + bytes(11))
        with pytest.raises(MalformedContainer):
            parser.count_frames(path)


class TestBitmaps:
    """Decoded images."""

    def test_image_size_and_colour(self, parser, sup_builder):
        frames = parser.parse_bytes(sup_builder.caption(0, width=12, height=3).clear(100).build())
        image = frames[0].image

        assert image.size == (12, 3)
        assert image.mode == 'RGBA'
        r, g, b, a = image.getpixel((5, 1))
        assert a == 255
        assert min(r, g, b) > 240

    def test_multiple_objects_are_composited(self, parser, sup_builder):
        data = sup_builder.caption(0, objects=[(0, 100, 900, 8, 2), (1, 104, 950, 8, 2)]).clear(500).build()

        frames = parser.parse_bytes(data)

        assert len(frames) == 1
        assert frames[0].image.size == (12, 52)
        assert (frames[0].x, frames[0].y) == (100, 900)

    def test_zero_size_bitmap_is_empty(self, parser, sup_builder):
        frames = parser.parse_bytes(sup_builder.caption(0, width=0, height=0).clear(500).build())

        assert len(frames) == 1
        assert frames[0].is_empty


class TestMalformedStreams:
    """Structural errors raise MalformedContainer."""

    def test_bad_magic(self, parser, sup_builder):
        data = bytearray(sup_builder.caption(0).build())
        data[0:2] = b"XX"
        with pytest.raises(MalformedContainer, match="magic"):
            parser.parse_bytes(bytes(data))

    def test_truncated_segment(self, parser, sup_builder):
        data = sup_builder.caption(0).build()
        with pytest.raises(MalformedContainer, match="Truncated"):
            parser.parse_bytes(data[:-1])  # END segment header cut short

    def test_truncated_payload(self, parser, sup_builder):
        data = sup_builder.caption(0).build()
        # Drop the END segment and the last byte of the object payload
        with pytest.raises(MalformedContainer, match="Truncated"):
            parser.parse_bytes(data[:-14])

    def test_undefined_palette(self, parser, sup_builder):
        data = sup_builder.caption(0, palette_id=1, pds_id=0).clear(500).build()
        with pytest.raises(MalformedContainer, match="palette"):
            parser.parse_bytes(data)

    def test_inconsistent_palette_table(self, parser):
        builder = SupStreamBuilder()
        builder.segment(0x14, bytes([0, 0, 1, 2, 3]))
        with pytest.raises(MalformedContainer, match="palette"):
            parser.parse_bytes(builder.build())

    def test_unreadable_file(self, parser, tmp_path):
        with pytest.raises(MalformedContainer):
            parser.parse(tmp_path / "missing.sup")


class TestDecoding:
    """RLE and palette conversion helpers."""

    def test_ycbcr_black(self):
        assert ycbcr_to_rgba(16, 128, 128, 255) == (0, 0, 0, 255)

    def test_rle_solid_rows(self):
        assert decode_rle(solid_rle(4, 2, color=3), 4, 2) == bytearray([3] * 8)

    def test_rle_single_pixels_and_short_runs(self):
        # 2 pixels of color 0, one pixel of color 5, 2 pixels of color 7, end of line
        data = bytes([0x00, 0x02, 0x05, 0x00, 0x82, 0x07, 0x00, 0x00])
        assert decode_rle(data, 5, 1) == bytearray([0, 0, 5, 7, 7])

    def test_rle_truncated_data_leaves_zeros(self):
        assert decode_rle(bytes([0x05]), 3, 1) == bytearray([5, 0, 0])
