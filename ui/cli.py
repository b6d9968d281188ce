"""
Command-line interface for the SrtExtractor Suite.

This module provides the CLI for listing subtitle tracks, extracting
them to SRT (with OCR for PGS tracks), correcting SRT files and batch
processing folders of videos.
"""

import argparse
import logging
from pathlib import Path
from typing import List, Optional
from utils.config import AppSettings, CORRECTION_LEVELS, CORRECTION_MODES, load_settings
from utils.constants import APP_NAME, APP_VERSION, APP_DESCRIPTION, SUP_EXTENSION
from utils.file_operations import FileHandler
from utils.logging_config import setup_logging
from core.errors import SubtitleExtractionError, ToolNotFound, UnsupportedCodec
from core.process_runner import CancellationToken, ProcessRunner
from core.tracks import TrackDescriptor
from core.video_containers import FfmpegContainerAdapter
from processors.batch_processor import BatchCorrectionProcessor
from processors.batch_queue import BatchQueueManager
from processors.correction_rules import CorrectionRuleEngine
from processors.extraction_coordinator import (
    ExtractionCoordinator, PipelineEvent, PipelineState, generate_output_path
)
from processors.multipass_correction import CorrectionMode, MultiPassCorrectionEngine
from processors.ocr_pipeline import SupOcrPipeline
from third_party.mkvtoolnix import MkvToolNixAdapter
from third_party.tesseract_ocr import TesseractRecognizer

logger = None  # Will be initialized in setup_cli_logging


def setup_cli_logging(verbose: bool = False, debug: bool = False,
                      log_file: Optional[Path] = None, use_colors: bool = True):
    """Set up logging for CLI operations."""
    global logger

    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logger = setup_logging(level=level, log_file=log_file, use_colors=use_colors)
    return logger


class CLIHandler:
    """Handles command-line interface operations."""

    def __init__(self, runner: Optional[ProcessRunner] = None):
        """
        Initialize the CLI handler.

        Args:
            runner: Process runner shared by every tool adapter
        """
        self.runner = runner or ProcessRunner()
        self.settings: AppSettings = AppSettings()
        self.cancel = CancellationToken()

    def create_parser(self) -> argparse.ArgumentParser:
        """
        Create the main argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog='srtx',
            description=APP_DESCRIPTION,
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # List subtitle tracks
  srtx list-tracks movie.mkv

  # Extract the best track (OCR for PGS tracks)
  srtx extract movie.mkv

  # Extract a specific track to a specific file
  srtx extract movie.mkv --track 3 --output movie.en.srt

  # Convert an extracted PGS stream
  srtx ocr-sup movie.sup --language eng

  # Correct OCR errors in existing SRT files
  srtx correct movie.en.srt --mode thorough
  srtx batch-correct /media/subs --recursive --parallel

  # Extract subtitles from every video in a folder
  srtx batch /media/movies --recursive
            """
        )

        parser.add_argument('--version', action='version', version=f'{APP_NAME} {APP_VERSION}')
        parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose output')
        parser.add_argument('-d', '--debug', action='store_true', help='Enable debug output')
        parser.add_argument('--no-colors', action='store_true', help='Disable colored output')
        parser.add_argument('--log-file', type=Path, help='Also write log messages to this file')
        parser.add_argument('--env-file', type=Path, help='Settings file (default: .env)')
        parser.add_argument('--correction-level', choices=sorted(CORRECTION_LEVELS),
                            help='Correction preset (off, standard, thorough)')

        # Create subparsers for different operations
        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        self._add_track_parsers(subparsers)
        self._add_ocr_parser(subparsers)
        self._add_correction_parsers(subparsers)
        self._add_batch_parser(subparsers)

        subparsers.add_parser('check-tools', help='Check that the external tools can be started')

        return parser

    def _add_track_parsers(self, subparsers):
        """Add list-tracks and extract command parsers."""
        list_parser = subparsers.add_parser('list-tracks', help='List subtitle tracks of a video file')
        list_parser.add_argument('input', type=Path, help='Video file (MKV or MP4)')

        extract_parser = subparsers.add_parser(
            'extract',
            help='Extract a subtitle track to SRT',
            description='Extract a subtitle track to SRT. PGS tracks are converted with OCR.'
        )
        extract_parser.add_argument('input', type=Path, help='Video file (MKV or MP4)')
        extract_parser.add_argument('-t', '--track', type=int,
                                    help='Track id to extract (default: automatic selection)')
        extract_parser.add_argument('-o', '--output', type=Path,
                                    help='Output file (default: from the file name pattern)')
        extract_parser.add_argument('-l', '--language', help='OCR language, e.g. eng, deu, jpn')
        extract_parser.add_argument('--keep-sup', action='store_true',
                                    help='Keep the intermediate .sup file of PGS tracks')
        extract_parser.add_argument('--prefer-forced', action='store_true', default=None,
                                    help='Prefer forced tracks in automatic selection')
        extract_parser.add_argument('--prefer-cc', action='store_true', default=None,
                                    help='Prefer closed caption tracks in automatic selection')

    def _add_ocr_parser(self, subparsers):
        """Add ocr-sup command parser."""
        ocr_parser = subparsers.add_parser('ocr-sup', help='Convert a PGS .sup file to SRT with OCR')
        ocr_parser.add_argument('input', type=Path, help='SUP file')
        ocr_parser.add_argument('-o', '--output', type=Path, help='Output file (default: <input>.srt)')
        ocr_parser.add_argument('-l', '--language', help='OCR language, e.g. eng, deu, jpn')
        ocr_parser.add_argument('--tessdata-dir', help='Tesseract language data directory')

    def _add_correction_parsers(self, subparsers):
        """Add correct and batch-correct command parsers."""
        correct_parser = subparsers.add_parser('correct', help='Correct OCR errors in an SRT file')
        correct_parser.add_argument('input', type=Path, help='SRT file to correct in place')
        correct_parser.add_argument('-m', '--mode', choices=CORRECTION_MODES, default=None,
                                    help='Correction mode (default: from settings)')

        batch_correct_parser = subparsers.add_parser(
            'batch-correct', help='Correct OCR errors in every SRT file of a directory'
        )
        batch_correct_parser.add_argument('directory', type=Path, help='Directory to process')
        batch_correct_parser.add_argument('-r', '--recursive', action='store_true',
                                          help='Process subdirectories recursively')
        batch_correct_parser.add_argument('-m', '--mode', choices=CORRECTION_MODES, default=None,
                                          help='Correction mode (default: from settings)')
        batch_correct_parser.add_argument('--parallel', action='store_true',
                                          help='Process files in parallel')
        batch_correct_parser.add_argument('--workers', type=int, default=4,
                                          help='Number of worker threads for --parallel')

    def _add_batch_parser(self, subparsers):
        """Add batch command parser."""
        batch_parser = subparsers.add_parser(
            'batch', help='Extract the best subtitle track of every video in a directory'
        )
        batch_parser.add_argument('inputs', type=Path, nargs='+', help='Video files or directories')
        batch_parser.add_argument('-r', '--recursive', action='store_true',
                                  help='Search directories recursively')
        batch_parser.add_argument('-l', '--language', help='OCR language, e.g. eng, deu, jpn')

    def handle_command(self, args) -> int:
        """
        Handle the parsed command-line arguments.

        Args:
            args: Parsed arguments from argparse

        Returns:
            Exit code (0 for success, non-zero for failure)
        """
        setup_cli_logging(args.verbose, args.debug, args.log_file, not args.no_colors)

        if not args.command:
            logger.error("No command specified. Use --help for usage information.")
            return 1

        try:
            self.settings = self._load_settings(args)

            if args.command == 'list-tracks':
                return self._handle_list_tracks(args)
            elif args.command == 'extract':
                return self._handle_extract(args)
            elif args.command == 'ocr-sup':
                return self._handle_ocr_sup(args)
            elif args.command == 'correct':
                return self._handle_correct(args)
            elif args.command == 'batch-correct':
                return self._handle_batch_correct(args)
            elif args.command == 'batch':
                return self._handle_batch(args)
            elif args.command == 'check-tools':
                return self._handle_check_tools(args)
            else:
                logger.error(f"Unknown command: {args.command}")
                return 1

        except KeyboardInterrupt:
            self.cancel.cancel()
            logger.warning("Operation cancelled by user")
            return 1
        except ToolNotFound as e:
            logger.error(str(e))
            return 1
        except UnsupportedCodec as e:
            logger.error(str(e))
            return 1
        except (SubtitleExtractionError, IOError, ValueError) as e:
            logger.error(f"✗ {e}")
            if args.debug:
                import traceback
                traceback.print_exc()
            return 1

    def _load_settings(self, args) -> AppSettings:
        settings = load_settings(args.env_file)
        if args.correction_level:
            settings = settings.with_correction_level(args.correction_level)
        return settings

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _on_event(self, event: PipelineEvent) -> None:
        progress = f" ({event.progress:.0%})" if event.progress is not None else ""
        if event.state == PipelineState.OCR and event.message.startswith("OCR frame"):
            logger.debug(f"{event.message}{progress}")
        else:
            logger.info(f"{event.message}{progress}")

    def _build_coordinator(self, settings: AppSettings) -> ExtractionCoordinator:
        recognizer = TesseractRecognizer(settings, self.runner)
        return ExtractionCoordinator(
            settings=settings,
            mkv_adapter=MkvToolNixAdapter(settings, self.runner),
            mp4_adapter=FfmpegContainerAdapter(settings, self.runner),
            ocr_pipeline=SupOcrPipeline(recognizer),
            on_event=self._on_event,
        )

    @staticmethod
    def _format_track(track: TrackDescriptor) -> str:
        flags = []
        if track.forced:
            flags.append("forced")
        if track.closed_caption:
            flags.append("CC")
        details = [
            f"{track.track_id:>3}",
            f"{track.language or '-':<6}",
            f"{track.codec:<16}",
            f"{track.track_type or '':<9}",
        ]
        if track.frame_count is not None:
            details.append(f"{track.frame_count} frames")
        if flags:
            details.append(f"[{', '.join(flags)}]")
        if track.name:
            details.append(f"'{track.name}'")
        return "  ".join(details)

    # ------------------------------------------------------------------
    # Command handlers
    # ------------------------------------------------------------------

    def _handle_list_tracks(self, args) -> int:
        """Handle list-tracks command."""
        if not args.input.exists():
            logger.error(f"Input file not found: {args.input}")
            return 1

        coordinator = self._build_coordinator(self.settings)
        tracks = coordinator.probe(args.input, self.cancel)
        if not tracks:
            print(f"No subtitle tracks found in {args.input.name}")
            return 0

        best = coordinator.select_track(tracks)
        print(f"Subtitle tracks in {args.input.name}:")
        for track in tracks:
            marker = "*" if best is not None and track.track_id == best.track_id else " "
            print(f" {marker} {self._format_track(track)}")
        print("\n* = automatic selection")
        return 0

    def _handle_extract(self, args) -> int:
        """Handle extract command."""
        if not args.input.exists():
            logger.error(f"Input file not found: {args.input}")
            return 1

        settings = self.settings.with_overrides(
            ocr_language=args.language,
            preserve_sup_files=True if args.keep_sup else None,
            prefer_forced=args.prefer_forced,
            prefer_closed_captions=args.prefer_cc,
        )
        coordinator = self._build_coordinator(settings)
        tracks = coordinator.probe(args.input, self.cancel)

        if args.track is not None:
            track = next((t for t in tracks if t.track_id == args.track), None)
            if track is None:
                logger.error(f"Track {args.track} not found. Use list-tracks to see the available tracks.")
                return 1
        else:
            track = coordinator.select_track(tracks)
            if track is None:
                logger.error(f"No subtitle tracks found in {args.input.name}")
                return 1

        output = args.output or generate_output_path(args.input, track, settings.file_name_pattern)
        result = coordinator.extract(args.input, track, output, self.cancel)

        print(f"✓ Extracted track {track.track_id} to {result.output_path}")
        if result.ocr is not None:
            print(f"  OCR: {result.ocr.event_count} subtitles from {result.ocr.frame_count} frames")
            for warning in result.ocr.warnings:
                print(f"  ! {warning}")
        if result.correction is not None:
            print(f"  Correction: {result.correction.get_summary()}")
        return 0

    def _handle_ocr_sup(self, args) -> int:
        """Handle ocr-sup command."""
        if not args.input.exists():
            logger.error(f"Input file not found: {args.input}")
            return 1
        if args.input.suffix.lower() != SUP_EXTENSION:
            logger.warning(f"{args.input.name} does not have a {SUP_EXTENSION} extension")

        settings = self.settings.with_overrides(ocr_language=args.language, tessdata_dir=args.tessdata_dir)
        pipeline = SupOcrPipeline(TesseractRecognizer(settings, self.runner))
        output = args.output or args.input.with_suffix('.srt')

        result = pipeline.process(
            args.input, output, settings.ocr_language,
            progress=lambda done, total: logger.debug(f"OCR frame {done}/{total}"),
            cancel=self.cancel,
        )
        if not result.has_output:
            print(f"No subtitle frames found in {args.input.name}")
            return 0

        if settings.enable_correction:
            mode = CorrectionMode.from_name(settings.correction_mode)
            if settings.enable_multi_pass:
                MultiPassCorrectionEngine().process_file(output, mode, self.cancel)
            else:
                CorrectionRuleEngine().correct_file(output)

        print(f"✓ {result.event_count} subtitles written to {output}")
        if result.failed_frames:
            print(f"  {result.failed_frames} frames could not be recognized")
        return 0

    def _handle_correct(self, args) -> int:
        """Handle correct command."""
        if not args.input.exists():
            logger.error(f"Input file not found: {args.input}")
            return 1

        mode = CorrectionMode.from_name(args.mode or self.settings.correction_mode)
        result = MultiPassCorrectionEngine().process_file(args.input, mode, self.cancel)
        print(f"✓ {args.input.name}: {result.get_summary()}")
        for warning in result.warnings:
            print(f"  ! {warning}")
        return 0

    def _handle_batch_correct(self, args) -> int:
        """Handle batch-correct command."""
        if not args.directory.exists():
            logger.error(f"Directory not found: {args.directory}")
            return 1

        mode = CorrectionMode.from_name(args.mode or self.settings.correction_mode)
        processor = BatchCorrectionProcessor(max_workers=args.workers, mode=mode)
        results = processor.process_directory(args.directory, args.recursive,
                                              parallel=args.parallel, cancel=self.cancel)

        print(processor.get_processing_summary(results))
        return 0 if results['failed'] == 0 else 1

    def _collect_videos(self, inputs: List[Path], recursive: bool) -> List[Path]:
        videos: List[Path] = []
        for path in inputs:
            if path.is_dir():
                videos.extend(FileHandler.find_video_files(path, recursive))
            elif path.exists():
                videos.append(path)
            else:
                logger.warning(f"Not found: {path}")
        return videos

    def _handle_batch(self, args) -> int:
        """Handle batch command."""
        videos = self._collect_videos(args.inputs, args.recursive)
        settings = self.settings.with_overrides(ocr_language=args.language)

        queue = BatchQueueManager()
        queue.add_files(videos)
        if not len(queue):
            logger.error("No video files to process")
            return 1

        coordinator = self._build_coordinator(settings)
        try:
            summary = queue.process(coordinator.process_file, self.cancel)
        except KeyboardInterrupt:
            self.cancel.cancel()
            summary = queue.summary()

        print(summary.format())
        return 0 if not summary.errors and not summary.cancelled else 1

    def _handle_check_tools(self, args) -> int:
        """Handle check-tools command."""
        tools = [
            ("mkvmerge", self.settings.mkvmerge_path, "--version"),
            ("mkvextract", self.settings.mkvextract_path, "--version"),
            ("ffprobe", self.settings.ffprobe_path, "-version"),
            ("ffmpeg", self.settings.ffmpeg_path, "-version"),
            ("tesseract", self.settings.tesseract_path, "--version"),
        ]

        missing = 0
        for name, path, version_arg in tools:
            available = self.runner.is_available(path, version_arg)
            if not available:
                missing += 1
            print(f"  {'✓' if available else '✗'} {name:<11} {path}")

        if missing:
            print(f"\n{missing} tool(s) not available. Set their paths in .env "
                  f"(for example SRTX_MKVEXTRACT=/path/to/mkvextract).")
        return 0 if missing == 0 else 1
