"""
Dashcam telemetry extraction: MP4 file or buffer in, :class:`TelemetryTimeline` out.

The pipeline is a single synchronous pass over an immutable buffer:

1. ``sample_timing`` reads the track timescale and expands ``stts`` into
   per-sample durations (``moov > trak > mdia > ...``).
2. ``mp4_boxes`` locates the top-level ``mdat`` box.
3. ``nal_scanner`` walks the NAL units in ``mdat``; SEI units go through
   ``sei_decoder`` and ``field_decoder`` and are stamped with the elapsed
   time of the picture that follows them.

Only container-structure failures (:class:`MP4StructureError`) abort a
parse. Parses share no state, so callers may run one per camera angle or
clip concurrently and simply discard results they no longer need.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

from dashcam_telemetry.errors import MP4StructureError
from dashcam_telemetry.processing.mp4_boxes import find_box
from dashcam_telemetry.processing.nal_scanner import scan_media_data
from dashcam_telemetry.processing.sample_timing import read_track_timing
from dashcam_telemetry.telemetry_data import TelemetryFrame, TelemetryTimeline

logger = logging.getLogger(__name__)


def parse_telemetry_frames(data: bytes) -> list[TelemetryFrame]:
    """Run the full pipeline over an in-memory MP4 and return frames in time order."""
    timing = read_track_timing(data)
    mdat = find_box(data, 0, len(data), "mdat")
    logger.debug(
        "Track: timescale %d, %d samples (%.1f s), mdat %d bytes at %d",
        timing.timescale,
        timing.sample_count,
        timing.total_duration_ms / 1000.0,
        mdat.size,
        mdat.start,
    )

    scan = scan_media_data(data, mdat, timing.durations_ms)

    if scan.picture_count != timing.sample_count:
        logger.warning(
            "Bitstream holds %d pictures but stts describes %d samples; "
            "timestamps past the table use the default frame duration",
            scan.picture_count,
            timing.sample_count,
        )
    return scan.frames


def _read_source(source: Path | str | bytes) -> tuple[bytes, str]:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source), "<buffer>"
    path = Path(source)
    with open(path, "rb") as f:
        return f.read(), path.name


def parse_timeline(source: Path | str | bytes) -> TelemetryTimeline:
    """Parse a dashcam MP4 (path or bytes) into a :class:`TelemetryTimeline`.

    Raises :class:`MP4StructureError` if the box structure is unusable and
    :class:`OSError` if the file cannot be read. A file whose SEI units carry
    no telemetry yields an empty timeline.
    """
    data, label = _read_source(source)
    t0 = time.monotonic()
    frames = parse_telemetry_frames(data)
    timeline = TelemetryTimeline(frames=tuple(frames))
    logger.info(
        "Parsed %d telemetry frames from %s (%.1f KiB, spanning %.1f s) in %.2f s",
        len(timeline),
        label,
        len(data) / 1024,
        timeline.duration_ms / 1000.0,
        time.monotonic() - t0,
    )
    return timeline


def load_timeline(source: Path | str | bytes) -> TelemetryTimeline | None:
    """Like :func:`parse_timeline`, but returns ``None`` when telemetry is unavailable.

    Files without usable structure, unreadable files, and non-dashcam
    recordings are an expected outcome; they are logged and reported as
    ``None`` rather than raised.
    """
    try:
        return parse_timeline(source)
    except MP4StructureError as exc:
        logger.warning("No telemetry: %s", exc)
    except OSError as exc:
        logger.warning("Failed to read %s: %s", source, exc)
    return None
