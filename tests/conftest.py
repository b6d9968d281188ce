# tests/conftest.py
import struct
from pathlib import Path

import pytest

from fakes import FakeProcessRunner
from utils.config import AppSettings

PCS, WDS, PDS, ODS, END = 0x16, 0x17, 0x14, 0x15, 0x80

# Palette entry 1: opaque white (Y, Cr, Cb, alpha)
WHITE_ENTRY = (1, 235, 128, 128, 255)


def solid_rle(width: int, height: int, color: int = 1) -> bytes:
    """RLE data for a bitmap filled with one palette index."""
    row = bytes([0, 0xC0 | (width >> 8), width & 0xFF, color]) + b"\x00\x00"
    return row * height


class SupStreamBuilder:
    """Builds synthetic PGS streams segment by segment."""

    def __init__(self):
        self.data = bytearray()
        self.number = 0

    def segment(self, seg_type: int, payload: bytes, pts: int = 0) -> 'SupStreamBuilder':
        self.data += struct.pack('>2sIIBH', b'PG', pts, 0, seg_type, len(payload)) + payload
        return self

    def _pcs(self, pts, objects, state=0x80, palette_update=False, palette_id=0):
        payload = struct.pack('>HHB', 1920, 1080, 0x10) + struct.pack('>H', self.number)
        payload += bytes([state, 0x80 if palette_update else 0, palette_id, len(objects)])
        for object_id, x, y, forced in objects:
            payload += struct.pack('>HBBHH', object_id, 0, 0x40 if forced else 0, x, y)
        self.number += 1
        return self.segment(PCS, payload, pts)

    def _wds(self, pts):
        return self.segment(WDS, bytes([1, 0]) + struct.pack('>HHHH', 0, 0, 1920, 1080), pts)

    def _pds(self, pts, palette_id=0, entries=(WHITE_ENTRY,)):
        payload = bytes([palette_id, 0])
        for entry in entries:
            payload += bytes(entry)
        return self.segment(PDS, payload, pts)

    def _ods(self, pts, object_id, width, height, rle):
        payload = struct.pack('>HB', object_id, 0) + bytes([0xC0])
        payload += (len(rle) + 4).to_bytes(3, 'big') + struct.pack('>HH', width, height) + rle
        return self.segment(ODS, payload, pts)

    def caption(self, start_ms: int, width: int = 8, height: int = 2, forced: bool = False,
                palette_id: int = 0, pds_id=None, objects=None) -> 'SupStreamBuilder':
        """
        Add a display set showing a caption.

        ``objects`` is a list of (object_id, x, y, width, height); the
        default is a single object.
        """
        pts = start_ms * 90
        objects = objects or [(0, 100, 900, width, height)]
        self._pcs(pts, [(oid, x, y, forced) for oid, x, y, _, _ in objects], palette_id=palette_id)
        self._wds(pts)
        self._pds(pts, palette_id if pds_id is None else pds_id)
        for object_id, _, _, w, h in objects:
            self._ods(pts, object_id, w, h, solid_rle(w, h) if w and h else b"")
        return self.segment(END, b"", pts)

    def palette_update(self, at_ms: int, object_id: int = 0) -> 'SupStreamBuilder':
        """Add a palette-only update of the caption on screen."""
        pts = at_ms * 90
        self._pcs(pts, [(object_id, 100, 900, False)], state=0x00, palette_update=True)
        self._pds(pts, 0, ((1, 200, 128, 128, 255),))
        return self.segment(END, b"", pts)

    def clear(self, at_ms: int) -> 'SupStreamBuilder':
        """Add a display set that removes the caption."""
        pts = at_ms * 90
        self._pcs(pts, [], state=0x00)
        self._wds(pts)
        return self.segment(END, b"", pts)

    def build(self) -> bytes:
        return bytes(self.data)


@pytest.fixture
def sup_builder():
    return SupStreamBuilder()


@pytest.fixture
def write_sup(tmp_path: Path):
    """Write a SUP stream with one caption per (start_ms, end_ms) pair."""
    def _write(captions, name: str = "track.sup") -> Path:
        builder = SupStreamBuilder()
        for start_ms, end_ms in captions:
            builder.caption(start_ms)
            if end_ms is not None:
                builder.clear(end_ms)
        path = tmp_path / name
        path.write_bytes(builder.build())
        return path
    return _write


@pytest.fixture
def settings():
    """Settings with fast cleanup retries and default correction."""
    return AppSettings(cleanup_attempts=2, cleanup_base_delay_ms=1, cleanup_max_wait_ms=5)


@pytest.fixture
def fake_runner():
    return FakeProcessRunner()


SAMPLE_SRT = """1
00:00:01,000 --> 00:00:03,000
l dont know wbat you mean.

2
00:00:04,000 --> 00:00:06,500
|t's tbe same thing ,right?

3
00:00:07,000 --> 00:00:09,000
Wait..we should go
"""


@pytest.fixture
def sample_srt():
    return SAMPLE_SRT
