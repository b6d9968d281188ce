"""
Tests for the Tesseract recognizer and the SUP to SRT OCR pipeline.
"""

from pathlib import Path

import pytest
from PIL import Image

from fakes import FakeProcessRunner, FakeRecognizer, failed, ok
from core.errors import OperationCancelled, ProcessTimeout, ToolNotFound
from core.process_runner import CancellationToken
from core.subtitle_formats import SRTParser
from core.sup_parser import SupParser
from processors.ocr_pipeline import SupOcrPipeline
from third_party.tesseract_ocr import TesseractRecognizer, prepare_image
from utils.config import AppSettings


def tesseract_writing(text):
    """tesseract handler that writes ``text`` to <output_base>.txt."""
    def _handler(cmd):
        Path(cmd[2] + ".txt").write_text(text + "\n", encoding="utf-8")
        return ok()
    return _handler


@pytest.fixture
def caption_image():
    image = Image.new("RGBA", (40, 10), (0, 0, 0, 0))
    for x in range(5, 35):
        image.putpixel((x, 5), (255, 255, 255, 255))
    return image


class TestPrepareImage:

    def test_light_glyphs_become_dark_on_white(self, caption_image):
        prepared = prepare_image(caption_image, margin=10)

        assert prepared.mode == "L"
        assert prepared.size == (60, 30)
        assert prepared.getpixel((0, 0)) == 255
        assert prepared.getpixel((20, 15)) == 0
        assert prepared.getpixel((12, 12)) == 255

    def test_no_margin(self, caption_image):
        assert prepare_image(caption_image, margin=0).size == (40, 10)


class TestTesseractRecognizer:

    def test_build_command(self):
        recognizer = TesseractRecognizer(AppSettings(tesseract_path="/opt/tesseract", tessdata_dir="/data"))

        cmd = recognizer.build_command(Path("/tmp/a.png"), Path("/tmp/a"), "deu")

        assert cmd == ["/opt/tesseract", "/tmp/a.png", "/tmp/a", "--tessdata-dir", "/data",
                       "--psm", "6", "-l", "deu"]

    def test_recognize_reads_output_and_cleans_up(self, caption_image):
        runner = FakeProcessRunner({"tesseract": tesseract_writing("Hello there")})
        recognizer = TesseractRecognizer(runner=runner)

        assert recognizer.recognize(caption_image) == "Hello there"

        cmd = runner.calls[0]
        assert cmd[-2:] == ["-l", "eng"]
        assert runner.timeouts == [30]
        assert not Path(cmd[1]).exists()
        assert not Path(cmd[2] + ".txt").exists()

    def test_language_argument_wins(self, caption_image):
        runner = FakeProcessRunner({"tesseract": tesseract_writing("Hallo")})
        TesseractRecognizer(runner=runner).recognize(caption_image, language="deu")
        assert runner.calls[0][-1] == "deu"

    def test_failure_returns_empty_text(self, caption_image):
        runner = FakeProcessRunner({"tesseract": lambda cmd: failed("bad image")})
        assert TesseractRecognizer(runner=runner).recognize(caption_image) == ""

    def test_missing_output_returns_empty_text(self, caption_image):
        runner = FakeProcessRunner({"tesseract": lambda cmd: ok()})
        assert TesseractRecognizer(runner=runner).recognize(caption_image) == ""

    def test_timeout_returns_empty_text(self, caption_image):
        def _timeout(cmd):
            raise ProcessTimeout(cmd, 30)

        runner = FakeProcessRunner({"tesseract": _timeout})
        assert TesseractRecognizer(runner=runner).recognize(caption_image) == ""

    def test_missing_tool_propagates(self, caption_image):
        with pytest.raises(ToolNotFound):
            TesseractRecognizer(runner=FakeProcessRunner()).recognize(caption_image)


class TestSupOcrPipeline:

    def test_one_event_per_recognized_frame(self, write_sup, tmp_path):
        sup = write_sup([(1000, 2000), (3000, 4000), (5000, 6000), (7000, None)])
        output = tmp_path / "movie.en.srt"
        recognizer = FakeRecognizer(["First", "", "Third", "Fourth"])

        result = SupOcrPipeline(recognizer).process(sup, output, "eng")

        assert result.has_output
        assert result.frame_count == 4
        assert result.event_count == 3
        assert result.skipped_empty == 1
        assert recognizer.languages == ["eng"] * 4

        events = SRTParser.parse_content(output.read_text(encoding="utf-8")).events
        assert [e.text for e in events] == ["First", "Third", "Fourth"]
        assert [(e.start, e.end) for e in events] == [(1.0, 2.0), (5.0, 6.0), (7.0, 10.0)]

    def test_failed_frames_become_warnings(self, write_sup, tmp_path):
        sup = write_sup([(1000, 2000), (3000, 4000), (5000, 6000)])
        output = tmp_path / "out.srt"
        recognizer = FakeRecognizer(["One", RuntimeError("engine crashed"), "Three"])

        result = SupOcrPipeline(recognizer).process(sup, output)

        assert result.event_count == 2
        assert result.failed_frames == 1
        assert result.warnings == ["OCR failed for frame 1: engine crashed"]
        assert output.read_text(encoding="utf-8").startswith("1\n00:00:01,000 --> 00:00:02,000\nOne\n")

    def test_events_are_numbered_in_time_order(self, write_sup, tmp_path):
        sup = write_sup([(1000, 2000), (3000, 4000)])
        output = tmp_path / "out.srt"

        SupOcrPipeline(FakeRecognizer(["A", "B"])).process(sup, output)

        lines = output.read_text(encoding="utf-8").split("\n")
        assert lines[0] == "1"
        assert lines[4] == "2"
        assert lines[5] == "00:00:03,000 --> 00:00:04,000"

    def test_progress_callback(self, write_sup, tmp_path):
        sup = write_sup([(1000, 2000), (3000, 4000), (5000, None)])
        progress = []

        SupOcrPipeline(FakeRecognizer()).process(sup, tmp_path / "out.srt",
                                                 progress=lambda done, total: progress.append((done, total)))

        assert progress == [(1, 3), (2, 3), (3, 3)]

    def test_frames_are_decoded_one_at_a_time(self, write_sup, tmp_path, monkeypatch):
        sup = write_sup([(1000, 2000), (3000, 4000), (5000, 6000)])
        built = []
        build_frame = SupParser._build_frame

        def _counting_build(caption):
            built.append(caption.index)
            return build_frame(caption)

        monkeypatch.setattr(SupParser, "_build_frame", staticmethod(_counting_build))
        decoded_at_call = []
        recognizer = FakeRecognizer(on_call=lambda index: decoded_at_call.append(len(built)))

        result = SupOcrPipeline(recognizer).process(sup, tmp_path / "out.srt")

        assert result.frame_count == 3
        assert decoded_at_call == [1, 2, 3]

    def test_empty_stream_writes_nothing(self, tmp_path):
        sup = tmp_path / "empty.sup"
        sup.write_bytes(b"")
        output = tmp_path / "out.srt"

        result = SupOcrPipeline(FakeRecognizer()).process(sup, output)

        assert not result.has_output
        assert result.frame_count == 0
        assert not output.exists()

    def test_cancel_leaves_no_output(self, write_sup, tmp_path):
        sup = write_sup([(1000, 2000), (3000, 4000), (5000, 6000)])
        output = tmp_path / "out.srt"
        token = CancellationToken()
        recognizer = FakeRecognizer(on_call=lambda index: token.cancel() if index == 1 else None)

        with pytest.raises(OperationCancelled):
            SupOcrPipeline(recognizer).process(sup, output, cancel=token)

        assert recognizer.calls == 2
        assert not output.exists()

    def test_missing_tesseract_aborts(self, write_sup, tmp_path):
        sup = write_sup([(1000, 2000)])
        recognizer = FakeRecognizer([ToolNotFound("tesseract")])

        with pytest.raises(ToolNotFound):
            SupOcrPipeline(recognizer).process(sup, tmp_path / "out.srt")
