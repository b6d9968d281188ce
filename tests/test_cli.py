"""
Tests for the command-line interface.
"""

import json
import os

import pytest

from conftest import SAMPLE_SRT, SupStreamBuilder
from fakes import FakeProcessRunner, mkvextract_writing, ok
from test_ocr import tesseract_writing
from ui.cli import CLIHandler

MKV_PROBE = {"tracks": [
    {"id": 2, "type": "subtitles", "codec": "SubRip/SRT",
     "properties": {"codec_id": "S_TEXT/UTF8", "language": "eng", "track_name": "English"}},
    {"id": 3, "type": "subtitles", "codec": "VobSub",
     "properties": {"codec_id": "S_VOBSUB", "language": "eng", "track_name": "English (DVD)"}},
]}

ALL_TOOLS = ("mkvmerge", "mkvextract", "ffprobe", "ffmpeg", "tesseract")


@pytest.fixture
def env_file(tmp_path, monkeypatch):
    """An empty settings file, with no SRTX_ variables leaking in."""
    for key in list(os.environ):
        if key.startswith("SRTX_"):
            monkeypatch.delenv(key)
    path = tmp_path / "empty.env"
    path.write_text("", encoding="utf-8")
    return path


@pytest.fixture
def run_cli(env_file):
    def _run(argv, runner=None):
        handler = CLIHandler(runner=runner or FakeProcessRunner())
        args = handler.create_parser().parse_args(["--no-colors", "--env-file", str(env_file)] + argv)
        return handler.handle_command(args)
    return _run


@pytest.fixture
def video(tmp_path):
    path = tmp_path / "Movie.mkv"
    path.write_bytes(b"\x1a\x45\xdf\xa3")
    return path


def mkv_runner():
    return FakeProcessRunner({
        "mkvmerge": lambda cmd: ok(json.dumps(MKV_PROBE)),
        "mkvextract": mkvextract_writing(lambda out: SAMPLE_SRT),
    })


class TestParser:

    def test_extract_arguments(self):
        args = CLIHandler().create_parser().parse_args(
            ["extract", "movie.mkv", "-t", "3", "-o", "out.srt", "-l", "deu", "--keep-sup"])
        assert args.command == "extract"
        assert args.track == 3
        assert str(args.output) == "out.srt"
        assert args.language == "deu"
        assert args.keep_sup
        assert args.prefer_forced is None

    def test_batch_correct_defaults(self):
        args = CLIHandler().create_parser().parse_args(["batch-correct", "subs"])
        assert args.workers == 4
        assert not args.parallel
        assert args.mode is None

    def test_invalid_mode(self):
        with pytest.raises(SystemExit):
            CLIHandler().create_parser().parse_args(["correct", "a.srt", "--mode", "extreme"])

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            CLIHandler().create_parser().parse_args(["--version"])
        assert exc.value.code == 0
        assert "1.0.0" in capsys.readouterr().out


class TestCommands:

    def test_no_command(self, run_cli):
        assert run_cli([]) == 1

    def test_correct(self, run_cli, tmp_path, capsys):
        srt = tmp_path / "movie.srt"
        srt.write_text(SAMPLE_SRT, encoding="utf-8")

        assert run_cli(["correct", str(srt)]) == 0

        assert "I don't know what you mean." in srt.read_text(encoding="utf-8")
        assert "8 corrections" in capsys.readouterr().out

    def test_correct_missing_file(self, run_cli, tmp_path):
        assert run_cli(["correct", str(tmp_path / "missing.srt")]) == 1

    def test_batch_correct(self, run_cli, tmp_path, capsys):
        folder = tmp_path / "subs"
        folder.mkdir()
        (folder / "a.srt").write_text(SAMPLE_SRT, encoding="utf-8")

        assert run_cli(["batch-correct", str(folder), "--mode", "fast"]) == 0
        assert "Corrected: 1" in capsys.readouterr().out

    def test_check_tools_all_present(self, run_cli, capsys):
        runner = FakeProcessRunner({name: lambda cmd: ok() for name in ALL_TOOLS})

        assert run_cli(["check-tools"], runner) == 0
        assert capsys.readouterr().out.count("✓") == 5

    def test_check_tools_missing(self, run_cli, capsys):
        runner = FakeProcessRunner({name: lambda cmd: ok() for name in ALL_TOOLS if name != "tesseract"})

        assert run_cli(["check-tools"], runner) == 1
        out = capsys.readouterr().out
        assert "✗ tesseract" in out
        assert "1 tool(s) not available" in out

    def test_list_tracks(self, run_cli, video, capsys):
        assert run_cli(["list-tracks", str(video)], mkv_runner()) == 0

        out = capsys.readouterr().out
        assert "S_TEXT/UTF8" in out
        assert "S_VOBSUB" in out
        assert " *   2" in out

    def test_extract_automatic(self, run_cli, video, capsys):
        assert run_cli(["extract", str(video)], mkv_runner()) == 0

        output = video.parent / "Movie.en.srt"
        assert output.exists()
        assert "Extracted track 2" in capsys.readouterr().out

    def test_extract_explicit_output(self, run_cli, video, tmp_path):
        output = tmp_path / "custom.srt"
        assert run_cli(["extract", str(video), "--track", "2", "--output", str(output)], mkv_runner()) == 0
        assert output.exists()

    def test_extract_unknown_track(self, run_cli, video):
        assert run_cli(["extract", str(video), "--track", "9"], mkv_runner()) == 1

    def test_extract_vobsub_is_rejected(self, run_cli, video):
        assert run_cli(["extract", str(video), "--track", "3"], mkv_runner()) == 1
        assert not (video.parent / "Movie.en.srt").exists()

    def test_extract_without_mkvtoolnix(self, run_cli, video):
        assert run_cli(["extract", str(video)], FakeProcessRunner()) == 1

    def test_ocr_sup(self, run_cli, tmp_path, capsys):
        sup = tmp_path / "movie.sup"
        sup.write_bytes(SupStreamBuilder().caption(1000).clear(2500).build())
        runner = FakeProcessRunner({"tesseract": tesseract_writing("Hello there.")})

        assert run_cli(["ocr-sup", str(sup), "--language", "deu"], runner) == 0

        content = (tmp_path / "movie.srt").read_text(encoding="utf-8")
        assert "00:00:01,000 --> 00:00:02,500\nHello there." in content
        assert runner.calls[0][-2:] == ["-l", "deu"]
        assert "1 subtitles written" in capsys.readouterr().out

    def test_batch(self, run_cli, tmp_path, capsys):
        folder = tmp_path / "movies"
        folder.mkdir()
        for name in ("A.mkv", "B.mkv"):
            (folder / name).write_bytes(b"\x1a\x45\xdf\xa3")

        assert run_cli(["batch", str(folder)], mkv_runner()) == 0

        assert (folder / "A.en.srt").exists()
        assert (folder / "B.en.srt").exists()
        assert "Successful: 2" in capsys.readouterr().out

    def test_batch_without_videos(self, run_cli, tmp_path):
        assert run_cli(["batch", str(tmp_path)]) == 1
