"""
Walk the length-prefixed NAL units of ``mdat`` and stamp each telemetry SEI
with the presentation time of the picture that follows it.

Samples in ``mdat`` use 4-byte big-endian length prefixes, not Annex-B start
codes. Only three NAL types matter here:

| Type | Role                   | Effect                                         |
|------|------------------------|------------------------------------------------|
| 6    | SEI                    | decoded and held as the pending record         |
| 1    | non-IDR coded slice    | closes one picture, advances elapsed time      |
| 5    | IDR coded slice        | closes one picture, advances elapsed time      |

Every other type (SPS, PPS, AUD, filler, ...) is skipped. A pending SEI with
no picture after it is dropped.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from typing import Iterator

import numpy as np

from dashcam_telemetry.config import config
from dashcam_telemetry.processing.mp4_boxes import Box
from dashcam_telemetry.processing.sei_decoder import decode_sei
from dashcam_telemetry.telemetry_data import TelemetryFrame, TelemetryRecord

logger = logging.getLogger(__name__)

NAL_TYPE_NON_IDR_SLICE = 1
NAL_TYPE_IDR_SLICE = 5
NAL_TYPE_SEI = 6

_PICTURE_TYPES = {NAL_TYPE_NON_IDR_SLICE, NAL_TYPE_IDR_SLICE}

_LENGTH = struct.Struct(">I")


@dataclass(frozen=True)
class NalUnit:
    nal_type: int  # low 5 bits of the NAL header
    start: int  # offset of the NAL header byte
    end: int

    def payload(self, data: bytes) -> bytes:
        return bytes(data[self.start : self.end])


@dataclass
class ScanResult:
    frames: list[TelemetryFrame] = field(default_factory=list)
    picture_count: int = 0
    sei_count: int = 0
    rejected_sei_count: int = 0
    elapsed_ms: float = 0.0


def iter_nal_units(data: bytes, mdat: Box) -> Iterator[NalUnit]:
    """Yield NAL units in ``mdat`` until the data ends or a length prefix is unusable."""
    cursor = mdat.start
    end = min(mdat.end, len(data))
    while cursor + 4 <= end:
        length = _LENGTH.unpack_from(data, cursor)[0]
        cursor += 4
        if length < 1 or cursor + length > end:
            logger.debug(
                "Stopping NAL scan at %d: length %d with %d bytes left",
                cursor - 4,
                length,
                end - cursor,
            )
            break
        yield NalUnit(nal_type=data[cursor] & 0x1F, start=cursor, end=cursor + length)
        cursor += length


def scan_media_data(data: bytes, mdat: Box, durations_ms: np.ndarray) -> ScanResult:
    """Pair each telemetry SEI with the next coded picture and stamp it with elapsed time.

    Elapsed time advances by ``durations_ms[i]`` for the *i*-th picture, or by
    ``config.DEFAULT_FRAME_DURATION_MS`` once the duration table runs out.
    """
    result = ScanResult()
    pending: TelemetryRecord | None = None
    elapsed = 0.0
    sample_count = durations_ms.shape[0]

    for nal in iter_nal_units(data, mdat):
        if nal.nal_type == NAL_TYPE_SEI:
            result.sei_count += 1
            pending = decode_sei(nal.payload(data))
            if pending is None:
                result.rejected_sei_count += 1
        elif nal.nal_type in _PICTURE_TYPES:
            if pending is not None:
                result.frames.append(TelemetryFrame(timestamp_ms=elapsed, record=pending))
                pending = None
            index = result.picture_count
            if index < sample_count:
                elapsed += float(durations_ms[index])
            else:
                elapsed += config.DEFAULT_FRAME_DURATION_MS
            result.picture_count += 1

    result.elapsed_ms = elapsed
    logger.debug(
        "NAL scan: %d pictures, %d SEI (%d rejected), %d telemetry frames",
        result.picture_count,
        result.sei_count,
        result.rejected_sei_count,
        len(result.frames),
    )
    return result
