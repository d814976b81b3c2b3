"""
Track timing and codec configuration from the MP4 sample table.

The video track is reached through a fixed path::

    moov > trak > mdia > mdhd                  timescale
                       > minf > stbl > stts    sample durations (run-length encoded)
                                     > stsd    avc1 > avcC codec configuration
                                     > ctts    composition offsets (optional)

``stts`` stores ``(sample_count, sample_delta)`` runs in timescale ticks. The
runs are expanded to one duration per coded sample, in milliseconds, which is
the unit the bitstream scanner consumes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from dashcam_telemetry.errors import BoxNotFound, MP4StructureError, Truncated
from dashcam_telemetry.processing.mp4_boxes import (
    Box,
    find_box,
    find_box_path,
    read_u8,
    read_u16,
    read_u32,
)

logger = logging.getLogger(__name__)

_MDIA_PATH = ("moov", "trak", "mdia")

# Offsets of the children inside the sample entry boxes
_STSD_ENTRIES_OFFSET = 8  # version/flags + entry_count
_AVC1_CHILDREN_OFFSET = 78  # VisualSampleEntry fixed fields

# NAL length prefix width the scanner expects
EXPECTED_NAL_LENGTH_SIZE = 4

# Smallest coded sample: a 4-byte length prefix and a 1-byte NAL header
_MIN_SAMPLE_BYTES = EXPECTED_NAL_LENGTH_SIZE + 1


@dataclass
class CodecConfig:
    """Fields read from the ``avcC`` decoder configuration record."""

    profile: int
    level: int
    nal_length_size: int
    sps_length: int
    pps_length: int | None


@dataclass
class TrackTiming:
    timescale: int  # ticks per second
    durations_ms: np.ndarray  # shape (N,), one entry per coded sample in decode order
    codec: CodecConfig
    has_composition_offsets: bool = False

    @property
    def sample_count(self) -> int:
        return int(self.durations_ms.shape[0])

    @property
    def total_duration_ms(self) -> float:
        return float(self.durations_ms.sum())


def read_timescale(data: bytes, mdia: Box) -> int:
    """Read the media timescale from ``mdhd``; its version selects the field layout."""
    mdhd = find_box(data, mdia.start, mdia.end, "mdhd")
    version = read_u8(data, mdhd.start, mdhd)
    if version == 1:
        # version/flags, 64-bit creation + modification times
        timescale = read_u32(data, mdhd.start + 20, mdhd)
    else:
        timescale = read_u32(data, mdhd.start + 12, mdhd)
    if timescale == 0:
        raise MP4StructureError("mdhd declares a timescale of 0")
    return timescale


def expand_sample_durations(
    data: bytes, stts: Box, timescale: int, max_samples: int | None = None
) -> np.ndarray:
    """Expand the ``stts`` runs into per-sample durations in milliseconds.

    If *max_samples* is given, a table declaring more samples than that raises
    :class:`MP4StructureError` before anything is allocated.
    """
    entry_count = read_u32(data, stts.start + 4, stts)
    table_start = stts.start + 8
    table_end = table_start + entry_count * 8
    if table_end > stts.end:
        raise Truncated(
            f"stts declares {entry_count} entries but holds only "
            f"{(stts.end - table_start) // 8}"
        )
    runs = np.frombuffer(data, dtype=">u4", count=entry_count * 2, offset=table_start)
    runs = runs.reshape(entry_count, 2)
    counts = runs[:, 0].astype(np.int64)
    total = int(counts.sum())
    if max_samples is not None and total > max_samples:
        raise MP4StructureError(
            f"stts declares {total} samples, more than the file can hold ({max_samples})"
        )
    deltas_ms = runs[:, 1].astype(np.float64) / timescale * 1000.0
    durations = np.repeat(deltas_ms, counts)
    logger.debug(
        "stts: %d runs expanded to %d samples (timescale %d)",
        entry_count,
        durations.shape[0],
        timescale,
    )
    return durations


def read_codec_config(data: bytes, stbl: Box) -> CodecConfig:
    """Locate ``stsd > avc1 > avcC`` and read its leading fields.

    A missing ``avc1`` means the track is not H.264 video and surfaces as
    :class:`BoxNotFound`.
    """
    stsd = find_box(data, stbl.start, stbl.end, "stsd")
    avc1 = find_box(data, stsd.start + _STSD_ENTRIES_OFFSET, stsd.end, "avc1")
    avcc = find_box(data, avc1.start + _AVC1_CHILDREN_OFFSET, avc1.end, "avcC")

    o = avcc.start
    profile = read_u8(data, o + 1, avcc)
    level = read_u8(data, o + 3, avcc)
    nal_length_size = (read_u8(data, o + 4, avcc) & 0x03) + 1

    # First SPS, then the PPS count byte and first PPS
    p = o + 6
    sps_length = read_u16(data, p, avcc)
    p += 2 + sps_length + 1
    pps_length: int | None = None
    if p + 2 <= avcc.end:
        pps_length = read_u16(data, p, avcc)

    return CodecConfig(
        profile=profile,
        level=level,
        nal_length_size=nal_length_size,
        sps_length=sps_length,
        pps_length=pps_length,
    )


def _has_composition_offsets(data: bytes, stbl: Box) -> bool:
    """True if ``ctts`` exists and shifts any sample (B-frame reordering)."""
    try:
        ctts = find_box(data, stbl.start, stbl.end, "ctts")
    except BoxNotFound:
        return False
    if ctts.size < 8:
        logger.debug("ctts holds %d bytes, too short for its header; ignoring it", ctts.size)
        return False
    entry_count = read_u32(data, ctts.start + 4, ctts)
    available = (ctts.end - ctts.start - 8) // 8
    entry_count = min(entry_count, max(available, 0))
    if entry_count == 0:
        return False
    runs = np.frombuffer(data, dtype=">u4", count=entry_count * 2, offset=ctts.start + 8)
    return bool(np.any(runs.reshape(entry_count, 2)[:, 1] != 0))


def read_track_timing(data: bytes) -> TrackTiming:
    """Read timescale, per-sample durations and codec configuration of the first track.

    Any box missing along the path raises :class:`BoxNotFound`; without a
    timescale and a sample table there is no usable timeline.
    """
    mdia = find_box_path(data, _MDIA_PATH)
    stbl = find_box_path(data, ("minf", "stbl"), mdia.start, mdia.end)

    codec = read_codec_config(data, stbl)
    if codec.nal_length_size != EXPECTED_NAL_LENGTH_SIZE:
        logger.warning(
            "avcC declares %d-byte NAL lengths; scanning assumes %d",
            codec.nal_length_size,
            EXPECTED_NAL_LENGTH_SIZE,
        )

    timescale = read_timescale(data, mdia)
    stts = find_box(data, stbl.start, stbl.end, "stts")
    durations = expand_sample_durations(
        data, stts, timescale, max_samples=len(data) // _MIN_SAMPLE_BYTES
    )

    reordered = _has_composition_offsets(data, stbl)
    if reordered:
        logger.warning(
            "Track has composition offsets (ctts); telemetry timestamps follow "
            "decode order and may be shifted around reordered frames"
        )

    return TrackTiming(
        timescale=timescale,
        durations_ms=durations,
        codec=codec,
        has_composition_offsets=reordered,
    )
