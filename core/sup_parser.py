"""
Parser for Blu-ray PGS subtitle streams (.sup files).

A SUP file is a sequence of segments, each with a 13-byte header:

    "PG" | PTS (u32, 90 kHz) | DTS (u32) | type (u8) | size (u16)

Segments are grouped into display sets terminated by an END segment.
A display set whose composition references objects shows a caption; a
display set with an empty composition clears the screen. Each caption
becomes one BitmapFrame whose end time is the start of the next display
set (or a default duration for the last one).

This module provides:
- BitmapFrame, the decoded unit handed to OCR
- SupParser, a restartable frame producer that decodes one frame at a time
- RLE bitmap decoding and YCbCr palette conversion
"""

import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from PIL import Image

from utils.constants import (
    PGS_MAGIC, PGS_SEGMENT_HEADER_SIZE, PGS_TICKS_PER_MS,
    PGS_PALETTE_SEGMENT, PGS_OBJECT_SEGMENT, PGS_COMPOSITION_SEGMENT,
    PGS_WINDOW_SEGMENT, PGS_END_SEGMENT, PGS_DEFAULT_LAST_DURATION_MS,
)
from utils.logging_config import get_logger
from core.errors import MalformedContainer
from core.timing_utils import TimeConverter

logger = get_logger(__name__)

TRANSPARENT = (0, 0, 0, 0)

_HEADER = struct.Struct('>2sIIBH')


@dataclass
class BitmapFrame:
    """One decoded caption: a rasterized image and its display interval."""
    index: int
    image: Image.Image
    start_ticks: int
    end_ticks: int
    x: int = 0
    y: int = 0
    forced: bool = False

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def start_ms(self) -> float:
        return TimeConverter.ticks_to_milliseconds(self.start_ticks)

    @property
    def end_ms(self) -> float:
        return TimeConverter.ticks_to_milliseconds(self.end_ticks)

    @property
    def start_seconds(self) -> float:
        return TimeConverter.ticks_to_seconds(self.start_ticks)

    @property
    def end_seconds(self) -> float:
        return TimeConverter.ticks_to_seconds(self.end_ticks)

    @property
    def is_empty(self) -> bool:
        """True for degenerate bitmaps that cannot contain text."""
        return self.image.width == 0 or self.image.height == 0


@dataclass
class _ObjectData:
    object_id: int
    width: int = 0
    height: int = 0
    data_length: int = 0
    data: bytearray = field(default_factory=bytearray)


@dataclass
class _CompositionObject:
    object_id: int
    window_id: int
    x: int
    y: int
    forced: bool


@dataclass
class _Composition:
    pts: int
    width: int
    height: int
    number: int
    state: int
    palette_update: bool
    palette_id: int
    objects: List[_CompositionObject]


@dataclass
class _Caption:
    """A timed caption whose bitmaps have not been decoded yet."""
    index: int
    start_ticks: int
    end_ticks: int
    palette: Dict[int, Tuple[int, int, int, int]]
    placed: List[Tuple[_CompositionObject, int, int, bytes]]


# ============================================================================
# COLOR AND BITMAP DECODING
# ============================================================================

def _clamp(value: float) -> int:
    return int(max(0, min(255, value)))


def ycbcr_to_rgba(y: int, cr: int, cb: int, alpha: int) -> Tuple[int, int, int, int]:
    """
    Convert a PGS palette entry to RGBA (BT.601).

    Example:
        >>> ycbcr_to_rgba(16, 128, 128, 255)
        (0, 0, 0, 255)
    """
    c = y - 16
    d = cb - 128
    e = cr - 128
    r = c * 1.164 + e * 1.596
    g = c * 1.164 - e * 0.813 - d * 0.392
    b = c * 1.164 + d * 2.017
    return (_clamp(r), _clamp(g), _clamp(b), alpha)


def decode_rle(data: bytes, width: int, height: int) -> bytearray:
    """
    Decode PGS run-length encoded bitmap data into palette indices.

    Encoding:
        CC                  one pixel of color CC (CC != 0)
        00 00               end of line
        00 0L               L pixels of color 0 (L < 64)
        00 4L LL            L pixels of color 0 (14-bit length)
        00 8L CC            L pixels of color CC
        00 CL LL CC         L pixels of color CC (14-bit length)

    Truncated data leaves the remaining pixels at index 0.

    Args:
        data: RLE bytes from the object definition
        width: Bitmap width
        height: Bitmap height

    Returns:
        width * height palette indices, row-major
    """
    pixels = bytearray(width * height)
    n = len(data)
    i = 0
    x = 0
    y = 0

    while i < n and y < height:
        b = data[i]
        i += 1
        if b != 0:
            color, run = b, 1
        else:
            if i >= n:
                break
            flag = data[i]
            i += 1
            if flag == 0:
                x = 0
                y += 1
                continue
            kind = flag & 0xC0
            length = flag & 0x3F
            if kind == 0x00:
                color, run = 0, length
            elif kind == 0x40:
                if i >= n:
                    break
                color, run = 0, (length << 8) | data[i]
                i += 1
            elif kind == 0x80:
                if i >= n:
                    break
                color, run = data[i], length
                i += 1
            else:
                if i + 1 >= n:
                    break
                color, run = data[i + 1], (length << 8) | data[i]
                i += 2

        if x < width and run:
            count = min(run, width - x)
            offset = y * width + x
            pixels[offset:offset + count] = bytes((color,)) * count
        x += run

    return pixels


def render_bitmap(indices: bytes, width: int, height: int,
                  palette: Dict[int, Tuple[int, int, int, int]]) -> Image.Image:
    """
    Turn palette indices into an RGBA image.

    Indices missing from the palette render fully transparent.
    """
    if width == 0 or height == 0:
        return Image.new('RGBA', (width, height), TRANSPARENT)
    index_image = Image.frombytes('L', (width, height), bytes(indices))
    channels = []
    for channel in range(4):
        lut = [palette.get(idx, TRANSPARENT)[channel] for idx in range(256)]
        channels.append(index_image.point(lut))
    return Image.merge('RGBA', channels)


# ============================================================================
# SEGMENT PARSER
# ============================================================================

class SupParser:
    """Decodes a SUP stream into BitmapFrames."""

    def __init__(self, default_last_duration_ms: int = PGS_DEFAULT_LAST_DURATION_MS):
        """
        Initialize the parser.

        Args:
            default_last_duration_ms: Display time of the final caption
                when no clearing display set follows it
        """
        self.default_last_duration_ms = default_last_duration_ms

    def parse(self, path: Path) -> List[BitmapFrame]:
        """
        Parse a SUP file into frames ordered by start time.

        Args:
            path: SUP file

        Returns:
            List of BitmapFrame (empty for streams without captions)

        Raises:
            MalformedContainer: On bad magic, truncated segments or
                undefined palette references
        """
        frames = list(self.iter_frames(path))
        logger.info(f"Parsed {len(frames)} subtitle frames from {Path(path).name}")
        return frames

    def iter_frames(self, path: Path) -> Iterator[BitmapFrame]:
        """
        Yield frames lazily; each call re-reads the file.

        Only the frame being yielded is decoded; captions waiting for
        their end time keep their compressed object data.
        """
        return self.iter_frames_bytes(self._read(path))

    def count_frames(self, path: Path) -> int:
        """
        Count the frames ``iter_frames`` would yield without decoding bitmaps.

        Segments are validated the same way, so a stream that fails to
        parse fails here too.

        Example:
            >>> SupParser().count_frames(Path("track3.sup"))
            412
        """
        data = self._read(path)
        return sum(1 for _ in self._iter_captions(data))

    def parse_bytes(self, data: bytes) -> List[BitmapFrame]:
        """Parse an in-memory SUP stream."""
        return list(self.iter_frames_bytes(data))

    def iter_frames_bytes(self, data: bytes) -> Iterator[BitmapFrame]:
        for caption in self._iter_captions(data):
            yield self._build_frame(caption)

    @staticmethod
    def _read(path: Path) -> bytes:
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise MalformedContainer(f"Cannot read SUP file {path}: {e}")

    def _iter_captions(self, data: bytes) -> Iterator[_Caption]:
        """Yield timed captions with their object data still RLE encoded."""
        palettes: Dict[int, Dict[int, Tuple[int, int, int, int]]] = {}
        objects: Dict[int, _ObjectData] = {}
        composition: Optional[_Composition] = None
        pending: Optional[_Caption] = None
        caption_index = 0

        for offset, pts, seg_type, payload in self._iter_segments(data):
            if seg_type == PGS_PALETTE_SEGMENT:
                palette_id, entries = self._parse_palette(payload, offset)
                palettes.setdefault(palette_id, {}).update(entries)

            elif seg_type == PGS_OBJECT_SEGMENT:
                self._parse_object(payload, offset, objects)

            elif seg_type == PGS_COMPOSITION_SEGMENT:
                composition = self._parse_composition(payload, pts, offset)
                if composition.state & 0x80:
                    # Epoch start: objects from the previous epoch are discarded
                    objects.clear()

            elif seg_type == PGS_WINDOW_SEGMENT:
                continue

            elif seg_type == PGS_END_SEGMENT:
                if composition is None:
                    continue
                current, composition = composition, None

                if current.palette_update and current.objects and pending is not None:
                    # Palette-only update of the caption already on screen
                    continue

                if pending is not None:
                    pending.end_ticks = max(current.pts, pending.start_ticks)
                    yield pending
                    pending = None

                if not current.objects:
                    continue

                caption = self._resolve_caption(current, palettes, objects, caption_index, offset)
                if caption is not None:
                    pending = caption
                    caption_index += 1

            else:
                logger.debug(f"Skipping unknown segment type 0x{seg_type:02x} at offset {offset}")

        if pending is not None:
            pending.end_ticks = pending.start_ticks + int(self.default_last_duration_ms * PGS_TICKS_PER_MS)
            yield pending

    @staticmethod
    def _iter_segments(data: bytes) -> Iterator[Tuple[int, int, int, bytes]]:
        offset = 0
        total = len(data)
        while offset < total:
            if total - offset < PGS_SEGMENT_HEADER_SIZE:
                raise MalformedContainer(
                    f"Truncated segment header at offset {offset} "
                    f"({total - offset} of {PGS_SEGMENT_HEADER_SIZE} bytes)"
                )
            magic, pts, _dts, seg_type, size = _HEADER.unpack_from(data, offset)
            if magic != PGS_MAGIC:
                raise MalformedContainer(
                    f"Invalid segment magic {magic!r} at offset {offset} (expected {PGS_MAGIC!r})"
                )
            start = offset + PGS_SEGMENT_HEADER_SIZE
            end = start + size
            if end > total:
                raise MalformedContainer(
                    f"Truncated segment at offset {offset}: declared {size} bytes, "
                    f"{total - start} available"
                )
            yield offset, pts, seg_type, data[start:end]
            offset = end

    @staticmethod
    def _parse_palette(payload: bytes, offset: int) -> Tuple[int, Dict[int, Tuple[int, int, int, int]]]:
        if len(payload) < 2:
            raise MalformedContainer(f"Palette segment too short at offset {offset}")
        if (len(payload) - 2) % 5 != 0:
            raise MalformedContainer(
                f"Inconsistent palette table at offset {offset}: "
                f"{len(payload) - 2} bytes is not a multiple of 5"
            )
        palette_id = payload[0]
        entries = {}
        for pos in range(2, len(payload), 5):
            index, y, cr, cb, alpha = payload[pos:pos + 5]
            entries[index] = ycbcr_to_rgba(y, cr, cb, alpha)
        return palette_id, entries

    @staticmethod
    def _parse_object(payload: bytes, offset: int, objects: Dict[int, _ObjectData]) -> None:
        if len(payload) < 4:
            raise MalformedContainer(f"Object segment too short at offset {offset}")
        object_id = struct.unpack_from('>H', payload, 0)[0]
        flags = payload[3]

        if flags & 0x80:
            if len(payload) < 11:
                raise MalformedContainer(f"First object fragment too short at offset {offset}")
            data_length = int.from_bytes(payload[4:7], 'big')
            width, height = struct.unpack_from('>HH', payload, 7)
            obj = _ObjectData(object_id, width, height, data_length, bytearray(payload[11:]))
            objects[object_id] = obj
        else:
            obj = objects.get(object_id)
            if obj is None:
                logger.debug(f"Continuation fragment for unknown object {object_id} at offset {offset}")
                return
            obj.data.extend(payload[4:])

    @staticmethod
    def _parse_composition(payload: bytes, pts: int, offset: int) -> _Composition:
        if len(payload) < 11:
            raise MalformedContainer(f"Composition segment too short at offset {offset}")
        width, height = struct.unpack_from('>HH', payload, 0)
        number = struct.unpack_from('>H', payload, 5)[0]
        state = payload[7]
        palette_update = bool(payload[8] & 0x80)
        palette_id = payload[9]
        count = payload[10]

        objects = []
        pos = 11
        for _ in range(count):
            if pos + 8 > len(payload):
                raise MalformedContainer(f"Truncated composition object at offset {offset}")
            object_id = struct.unpack_from('>H', payload, pos)[0]
            window_id = payload[pos + 2]
            obj_flags = payload[pos + 3]
            x, y = struct.unpack_from('>HH', payload, pos + 4)
            pos += 8
            if obj_flags & 0x80:
                # Cropping rectangle, not needed for OCR
                pos += 8
            objects.append(_CompositionObject(object_id, window_id, x, y, bool(obj_flags & 0x40)))

        return _Composition(pts, width, height, number, state, palette_update, palette_id, objects)

    @staticmethod
    def _resolve_caption(composition: _Composition,
                         palettes: Dict[int, Dict[int, Tuple[int, int, int, int]]],
                         objects: Dict[int, _ObjectData],
                         index: int, offset: int) -> Optional[_Caption]:
        palette = palettes.get(composition.palette_id)
        if palette is None:
            raise MalformedContainer(
                f"Composition at offset {offset} references undefined palette {composition.palette_id}"
            )

        placed = []
        for comp_obj in composition.objects:
            obj = objects.get(comp_obj.object_id)
            if obj is None:
                logger.debug(f"Composition references missing object {comp_obj.object_id}")
                continue
            placed.append((comp_obj, obj.width, obj.height, bytes(obj.data)))

        if not placed:
            return None

        # Palette entries defined later must not change this caption
        return _Caption(index, composition.pts, composition.pts, dict(palette), placed)

    @staticmethod
    def _build_frame(caption: _Caption) -> BitmapFrame:
        rendered = []
        for comp_obj, width, height, rle in caption.placed:
            indices = decode_rle(rle, width, height)
            rendered.append((comp_obj, render_bitmap(indices, width, height, caption.palette)))

        if len(rendered) == 1:
            comp_obj, image = rendered[0]
            return BitmapFrame(caption.index, image, caption.start_ticks, caption.end_ticks,
                               comp_obj.x, comp_obj.y, comp_obj.forced)

        # Several objects (e.g. two caption lines): composite them into one image
        min_x = min(c.x for c, _ in rendered)
        min_y = min(c.y for c, _ in rendered)
        max_x = max(c.x + img.width for c, img in rendered)
        max_y = max(c.y + img.height for c, img in rendered)
        canvas = Image.new('RGBA', (max_x - min_x, max_y - min_y), TRANSPARENT)
        for comp_obj, image in rendered:
            canvas.paste(image, (comp_obj.x - min_x, comp_obj.y - min_y), image)

        return BitmapFrame(caption.index, canvas, caption.start_ticks, caption.end_ticks,
                           min_x, min_y, any(c.forced for c, _ in rendered))
