"""
Tests for subtitle parsing, SRT writing, timing helpers and format normalization.
"""

import pytest

from core.encoding_detection import EncodingDetector
from core.format_normalizer import DetectedFormat, FormatNormalizer
from core.subtitle_formats import ASSParser, SRTParser, SubtitleEvent, SubtitleFormatFactory, VTTParser
from core.timing_utils import TimeConverter

ASS_CONTENT = """[Script Info]
Title: Example
ScriptType: v4.00+

[V4+ Styles]
Format: Name, Fontname, Fontsize
Style: Default,Arial,20

[Events]
Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text
Dialogue: 0,0:00:05.00,0:00:07.50,Default,,0,0,0,,{\\i1}Second line{\\i0}
Dialogue: 0,0:00:01.00,0:00:03.00,Default,,0,0,0,,Hello,\\Nworld
"""

VTT_CONTENT = """WEBVTT

NOTE generated

intro
00:01.000 --> 00:03.000 align:start
<i>Hello</i> there

00:00:04.500 --> 00:00:06.000
Second cue
"""


class TestTimeConverter:

    def test_srt_round_trip_values(self):
        assert TimeConverter.time_to_seconds("01:23:45,678", "srt") == pytest.approx(5025.678)
        assert TimeConverter.seconds_to_time(3825.678, "srt") == "01:03:45,678"

    def test_ass_and_vtt(self):
        assert TimeConverter.time_to_seconds("0:00:07.50", "ass") == pytest.approx(7.5)
        assert TimeConverter.time_to_seconds("01:02.250", "vtt") == pytest.approx(62.25)
        assert TimeConverter.seconds_to_time(7.5, "ass") == "0:00:07.50"

    def test_negative_seconds_clamp_to_zero(self):
        assert TimeConverter.seconds_to_time(-1.0) == "00:00:00,000"

    def test_ticks(self):
        assert TimeConverter.ticks_to_milliseconds(90000) == 1000.0
        assert TimeConverter.ticks_to_seconds(45000) == 0.5

    @pytest.mark.parametrize("seconds, expected", [
        (12.34, "12.3s"),
        (125.0, "2m 5.0s"),
        (3825.5, "1h 3m 45.5s"),
    ])
    def test_format_duration(self, seconds, expected):
        assert TimeConverter.format_duration(seconds) == expected

    def test_invalid_time(self):
        with pytest.raises(ValueError):
            TimeConverter.time_to_seconds("abc", "srt")
        with pytest.raises(ValueError):
            TimeConverter.parse_srt_timestamp("not a timing line")


class TestSRTParser:

    def test_parse_content(self):
        content = "1\n00:00:01,000 --> 00:00:02,500\nHello\nworld\n\n2\n00:00:03,000 --> 00:00:04,000\nBye\n"
        events = SRTParser.parse_content(content).events

        assert len(events) == 2
        assert events[0].start == 1.0
        assert events[0].end == 2.5
        assert events[0].text == "Hello\nworld"

    def test_bad_blocks_are_skipped(self):
        content = "1\nbroken timing\nText\n\n2\n00:00:03,000 --> 00:00:04,000\nKept\n"
        events = SRTParser.parse_content(content).events
        assert [e.text for e in events] == ["Kept"]

    def test_to_string_orders_and_renumbers(self):
        events = [
            SubtitleEvent(5.0, 6.0, "Second"),
            SubtitleEvent(1.0, 2.0, "First"),
            SubtitleEvent(3.0, 4.0, "   "),
        ]
        assert SRTParser.to_string(events) == (
            "1\n00:00:01,000 --> 00:00:02,000\nFirst\n\n"
            "2\n00:00:05,000 --> 00:00:06,000\nSecond\n"
        )

    def test_to_string_empty(self):
        assert SRTParser.to_string([]) == ""

    def test_parse_file_with_bom(self, tmp_path):
        path = tmp_path / "bom.srt"
        path.write_bytes(b"\xef\xbb\xbf1\n00:00:01,000 --> 00:00:02,000\nHi\n")

        subtitle_file = SubtitleFormatFactory.parse_file(path)

        assert subtitle_file.encoding == "utf-8-sig"
        assert subtitle_file.events[0].text == "Hi"

    def test_unsupported_extension(self, tmp_path):
        with pytest.raises(ValueError):
            SubtitleFormatFactory.parse_file(tmp_path / "movie.sub")


class TestOtherParsers:

    def test_ass_dialogue(self):
        events = ASSParser.parse_content(ASS_CONTENT).events

        assert len(events) == 2
        assert events[0].text == "Second line"
        assert events[1].text == "Hello,\nworld"
        assert events[1].style == "Default"

    def test_vtt_cues(self):
        events = VTTParser.parse_content(VTT_CONTENT).events

        assert [e.text for e in events] == ["Hello there", "Second cue"]
        assert events[0].start == 1.0
        assert events[1].start == 4.5


class TestEncodingDetector:

    def test_utf8(self):
        assert EncodingDetector.decode("Grüße".encode("utf-8")) == ("Grüße", "utf-8")

    def test_bom(self):
        text, encoding = EncodingDetector.decode(b"\xef\xbb\xbfHi")
        assert (text, encoding) == ("Hi", "utf-8-sig")

    def test_legacy_bytes_are_decoded(self):
        text, _ = EncodingDetector.decode("Où est le café ? Très bien, merci.".encode("cp1252"))
        assert "caf" in text
        assert "�" not in text


class TestFormatNormalizer:

    def test_detect(self):
        assert FormatNormalizer.detect(ASS_CONTENT) == DetectedFormat.ASS
        assert FormatNormalizer.detect(VTT_CONTENT) == DetectedFormat.WEBVTT
        assert FormatNormalizer.detect("\ufeffWEBVTT\n") == DetectedFormat.WEBVTT
        assert FormatNormalizer.detect("1\n00:00:01,000 --> 00:00:02,000\nHi\n") == DetectedFormat.SRT

    def test_ass_to_srt_orders_events(self):
        srt = FormatNormalizer.to_srt(ASS_CONTENT)
        assert srt == (
            "1\n00:00:01,000 --> 00:00:03,000\nHello,\nworld\n\n"
            "2\n00:00:05,000 --> 00:00:07,500\nSecond line\n"
        )

    def test_srt_is_unchanged(self):
        content = "1\n00:00:01,000 --> 00:00:02,000\nHi\n"
        assert FormatNormalizer.to_srt(content) is content

    def test_normalize_file_in_place(self, tmp_path):
        path = tmp_path / "movie.en.srt"
        path.write_text(VTT_CONTENT, encoding="utf-8")

        assert FormatNormalizer.normalize_file(path) == DetectedFormat.WEBVTT

        content = path.read_text(encoding="utf-8")
        assert content.startswith("1\n00:00:01,000 --> 00:00:03,000\nHello there\n")
        assert "WEBVTT" not in content

    def test_normalize_srt_file_leaves_it_alone(self, tmp_path):
        path = tmp_path / "movie.en.srt"
        path.write_bytes(b"1\r\n00:00:01,000 --> 00:00:02,000\r\nHi\r\n")

        assert FormatNormalizer.normalize_file(path) == DetectedFormat.SRT
        assert path.read_bytes() == b"1\r\n00:00:01,000 --> 00:00:02,000\r\nHi\r\n"
