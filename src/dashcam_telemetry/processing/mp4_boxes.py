"""
MP4 box lookup over an in-memory buffer.

Boxes are never materialised as a tree. Callers compose lookups along the
fixed path they need, e.g. ``moov > trak > mdia > minf > stbl``, passing the
content range of one box as the search range of the next.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import Sequence

from dashcam_telemetry.errors import BoxNotFound, MP4StructureError, Truncated

logger = logging.getLogger(__name__)

_HEADER = struct.Struct(">I4s")
_LARGE_SIZE = struct.Struct(">Q")


@dataclass(frozen=True)
class Box:
    """Content range of one box (the header is excluded)."""

    name: str  # FourCC, e.g. "moov"
    start: int  # first content byte
    end: int  # one past the last content byte

    @property
    def size(self) -> int:
        return self.end - self.start


def find_box(data: bytes, start: int, end: int, name: str) -> Box:
    """Return the first box called *name* among the siblings in ``data[start:end]``.

    Raises :class:`BoxNotFound` when the range is exhausted without a match
    and :class:`Truncated` when a box header does not fit before *end*.
    """
    end = min(end, len(data))
    target = name.encode("latin1")
    pos = start
    while pos < end:
        if pos + 8 > end:
            raise Truncated(f"Box header at {pos} runs past {end} while looking for {name}")
        size, fourcc = _HEADER.unpack_from(data, pos)
        header_size = 8
        if size == 1:  # 64-bit extended size
            if pos + 16 > end:
                raise Truncated(f"Extended box header at {pos} runs past {end}")
            size = _LARGE_SIZE.unpack_from(data, pos + 8)[0]
            header_size = 16
        elif size == 0:  # box runs to the end of the range
            size = end - pos

        if size < header_size:
            raise MP4StructureError(
                f"Box {fourcc.decode('latin1', errors='replace')!r} at {pos} "
                f"declares size {size}, smaller than its header"
            )

        if fourcc == target:
            box_end = pos + size
            if box_end > end:
                # Recordings cut short leave mdat claiming more than was written
                logger.debug(
                    "Box %s at %d claims %d bytes, clamping to range end %d",
                    name,
                    pos,
                    size,
                    end,
                )
                box_end = end
            return Box(name=name, start=pos + header_size, end=box_end)
        pos += size
    raise BoxNotFound(name, start, end)


def find_box_path(data: bytes, path: Sequence[str], start: int = 0, end: int | None = None) -> Box:
    """Follow *path* (outermost first) and return the innermost box."""
    if not path:
        raise ValueError("Box path must name at least one box")
    if end is None:
        end = len(data)
    box = find_box(data, start, end, path[0])
    for name in path[1:]:
        box = find_box(data, box.start, box.end, name)
    return box


def read_u8(data: bytes, offset: int, box: Box) -> int:
    _check_bounds(offset, 1, box)
    return data[offset]


def read_u16(data: bytes, offset: int, box: Box) -> int:
    _check_bounds(offset, 2, box)
    return struct.unpack_from(">H", data, offset)[0]


def read_u32(data: bytes, offset: int, box: Box) -> int:
    _check_bounds(offset, 4, box)
    return struct.unpack_from(">I", data, offset)[0]


def _check_bounds(offset: int, width: int, box: Box) -> None:
    if offset < box.start or offset + width > box.end:
        raise Truncated(
            f"Read of {width} bytes at {offset} falls outside {box.name} ({box.start}..{box.end})"
        )
