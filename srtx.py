#!/usr/bin/env python3
"""
SrtExtractor Suite - Main Application Entry Point
=================================================

Extracts subtitle tracks from MKV and MP4 files into SRT files:
- Text tracks (SRT, ASS, WebVTT, mov_text) are extracted and normalized to SRT
- PGS bitmap tracks are extracted to .sup and converted with Tesseract OCR
- OCR output is cleaned up by the correction rule engine
- Whole folders of videos can be processed as a batch

Usage:
    # List the subtitle tracks of a file
    python srtx.py list-tracks movie.mkv

    # Extract the best track, or a specific one
    python srtx.py extract movie.mkv
    python srtx.py extract movie.mkv --track 3 --output movie.en.srt

    # OCR an existing .sup file and correct existing SRT files
    python srtx.py ocr-sup movie.sup --language eng
    python srtx.py correct movie.en.srt --mode thorough
    python srtx.py batch-correct subs/ --recursive

    # Batch extraction
    python srtx.py batch /media/movies --recursive

    # Help
    python srtx.py --help
    python srtx.py <command> --help

Version: 1.0.0
"""

import sys
from pathlib import Path
from typing import List, Optional

# Add the current directory to Python path for imports
sys.path.insert(0, str(Path(__file__).parent))

from ui.cli import CLIHandler


def main(argv: Optional[List[str]] = None):
    """
    Main application entry point.

    Parses the command line and exits with the exit code of the command.
    """
    argv = sys.argv[1:] if argv is None else argv
    debug_mode = '--debug' in argv or '-d' in argv

    cli_handler = CLIHandler()
    cli_parser = cli_handler.create_parser()

    try:
        args = cli_parser.parse_args(argv)
        exit_code = cli_handler.handle_command(args)
        sys.exit(exit_code)
    except SystemExit:
        # argparse calls sys.exit() for --help, --version, etc.
        raise
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if debug_mode:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
