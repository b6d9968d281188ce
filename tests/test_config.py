"""
Tests for settings loading, the backoff policy and file helpers.
"""

import pytest

from utils.backoff import BackoffPolicy
from utils.config import AppSettings, load_settings
from utils.file_operations import FileHandler
from utils.language_codes import is_english, to_iso639_1


class TestLoadSettings:

    def test_defaults(self):
        settings = load_settings(environ={})

        assert settings == AppSettings()
        assert settings.ocr_language == "eng"
        assert settings.file_name_pattern == "{basename}.{lang}{forced}.srt"
        assert settings.enable_multi_pass is True
        assert settings.correction_mode == "standard"

    def test_environment_values_are_coerced(self):
        settings = load_settings(environ={
            "SRTX_MKVEXTRACT": "/opt/mkvtoolnix/mkvextract",
            "SRTX_TESSERACT_PATH": "/usr/local/bin/tesseract",
            "SRTX_PRESERVE_SUP_FILES": "yes",
            "SRTX_CLEANUP_ATTEMPTS": "3",
            "SRTX_CLEANUP_MULTIPLIER": "1.5",
            "SRTX_OCR_LANGUAGE": "deu",
        })

        assert settings.mkvextract_path == "/opt/mkvtoolnix/mkvextract"
        assert settings.tesseract_path == "/usr/local/bin/tesseract"
        assert settings.preserve_sup_files is True
        assert settings.cleanup_attempts == 3
        assert settings.cleanup_multiplier == 1.5
        assert settings.ocr_language == "deu"

    def test_correction_level_preset(self):
        settings = load_settings(environ={"SRTX_CORRECTION_LEVEL": "off"})
        assert settings.enable_correction is False

    def test_invalid_boolean(self):
        with pytest.raises(ValueError):
            load_settings(environ={"SRTX_PREFER_FORCED": "maybe"})

    def test_invalid_correction_mode(self):
        with pytest.raises(ValueError):
            AppSettings(correction_mode="extreme")

    def test_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("SRTX_FFMPEG_PATH", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("SRTX_FFMPEG_PATH=/opt/ffmpeg/bin/ffmpeg\n", encoding="utf-8")

        settings = load_settings(env_file=env_file)

        assert settings.ffmpeg_path == "/opt/ffmpeg/bin/ffmpeg"

    def test_with_correction_level(self):
        settings = AppSettings().with_correction_level("standard")
        assert settings.enable_correction is True
        assert settings.enable_multi_pass is False
        with pytest.raises(ValueError):
            AppSettings().with_correction_level("extreme")

    def test_with_overrides_ignores_none(self):
        settings = AppSettings().with_overrides(ocr_language=None, preserve_sup_files=True)
        assert settings.ocr_language == "eng"
        assert settings.preserve_sup_files is True

    def test_cleanup_policy(self):
        policy = AppSettings().cleanup_policy
        assert policy.attempts == 5
        assert policy.base_delay == pytest.approx(0.1)
        assert policy.max_total_wait == pytest.approx(3.3)


class TestBackoffPolicy:

    def test_default_delays(self):
        delays = list(BackoffPolicy().delays())
        assert delays == pytest.approx([0.1, 0.2, 0.4, 0.8])

    def test_delays_respect_budget(self):
        delays = list(BackoffPolicy(attempts=10, base_delay=1.0, multiplier=2.0, max_total_wait=4.0).delays())
        assert sum(delays) == pytest.approx(4.0)
        assert delays == pytest.approx([1.0, 2.0, 1.0])

    def test_run_retries_until_success(self):
        attempts = []
        sleeps = []

        def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise PermissionError("locked")

        assert BackoffPolicy().run(flaky, sleep=sleeps.append) is True
        assert len(attempts) == 3
        assert sleeps == pytest.approx([0.1, 0.2])

    def test_run_gives_up(self):
        def always_locked():
            raise PermissionError("locked")

        sleeps = []
        assert BackoffPolicy(attempts=3).run(always_locked, sleep=sleeps.append) is False
        assert len(sleeps) == 2

    def test_other_errors_propagate(self):
        def broken():
            raise ValueError("bug")

        with pytest.raises(ValueError):
            BackoffPolicy().run(broken, sleep=lambda _: None)


class TestFileHandler:

    @pytest.mark.parametrize("size, expected", [
        (None, "0 B"),
        (0, "0 B"),
        (512, "512 B"),
        (1536, "1.5 KB"),
        (5 * 1024 ** 2, "5.0 MB"),
        (int(2.5 * 1024 ** 3), "2.5 GB"),
        (3 * 1024 ** 4, "3.0 TB"),
    ])
    def test_format_file_size(self, size, expected):
        assert FileHandler.format_file_size(size) == expected

    def test_atomic_write_replaces_content(self, tmp_path):
        target = tmp_path / "out" / "movie.srt"
        FileHandler.atomic_write(target, "first")
        FileHandler.atomic_write(target, "second")

        assert target.read_text(encoding="utf-8") == "second"
        assert [p.name for p in target.parent.iterdir()] == ["movie.srt"]

    def test_safe_delete(self, tmp_path):
        target = tmp_path / "track.sup"
        target.write_bytes(b"PG")

        assert FileHandler.safe_delete(target, sleep=lambda _: None) is True
        assert not target.exists()
        assert FileHandler.safe_delete(target, sleep=lambda _: None) is True

    def test_find_files(self, tmp_path):
        (tmp_path / "season").mkdir()
        for name in ("a.mkv", "b.MP4", "notes.txt", "season/c.mkv", "sub.srt", "season/sub.ass"):
            (tmp_path / name).write_bytes(b"")

        videos = FileHandler.find_video_files(tmp_path)
        assert [p.name for p in videos] == ["a.mkv", "b.MP4", "c.mkv"]
        assert [p.name for p in FileHandler.find_video_files(tmp_path, recursive=False)] == ["a.mkv", "b.MP4"]
        assert {p.name for p in FileHandler.find_subtitle_files(tmp_path)} == {"sub.srt", "sub.ass"}

    def test_find_files_in_missing_directory(self, tmp_path):
        assert FileHandler.find_video_files(tmp_path / "missing") == []


class TestLanguageCodes:

    @pytest.mark.parametrize("tag, expected", [
        ("eng", "en"),
        ("ger", "de"),
        ("deu", "de"),
        ("fre", "fr"),
        ("en-US", "en"),
        ("pt", "pt"),
        ("xyz", "xyz"),
        ("", "und"),
        (None, "und"),
    ])
    def test_to_iso639_1(self, tag, expected):
        assert to_iso639_1(tag) == expected

    def test_is_english(self):
        assert is_english("eng")
        assert is_english("en-GB")
        assert not is_english("jpn")
        assert not is_english(None)
