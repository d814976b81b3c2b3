#!/usr/bin/env python3
"""
Dump Dashcam Telemetry Script

Parses the SEI telemetry embedded in dashcam MP4 clips, logs a summary per
file, and optionally exports one CSV per clip and prints the overlay readout
at chosen playback times.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import rich.console
import rich.logging

from dashcam_telemetry.config import config
from dashcam_telemetry.processing.extract_telemetry import load_timeline
from dashcam_telemetry.telemetry_data import TelemetryTimeline
from dashcam_telemetry.utils import MPS_TO_KMH, format_telemetry_overlay

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    log_format = "\\[[bold]%(name)s[/bold]] %(message)s"
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=log_format,
        datefmt="[%X]",
        handlers=[
            rich.logging.RichHandler(
                console=rich.console.Console(color_system="auto"),
                show_level=True,
                show_path=False,
                enable_link_path=False,
                rich_tracebacks=True,
                tracebacks_show_locals=False,
                markup=True,
            )
        ],
    )


def log_summary(mp4_path: Path, timeline: TelemetryTimeline) -> None:
    if not len(timeline):
        logger.warning(f"{mp4_path.name}: no telemetry SEI found.")
        return

    df = timeline.to_dataframe()
    speed_kmh = df["vehicle_speed_mps"] * MPS_TO_KMH
    logger.info(
        f"{mp4_path.name}: {len(df)} frames over {timeline.duration_ms / 1000.0:.1f} s  |  "
        f"speed {speed_kmh.min():.1f} – {speed_kmh.max():.1f} km/h  |  "
        f"gears {', '.join(sorted(df['gear_state'].unique()))}"
    )


def process_clip(
    mp4_path: Path, csv_dir: Optional[Path], query_times_ms: List[float]
) -> bool:
    """Parses one clip, exports and queries it. Returns False if it had no timeline."""
    timeline = load_timeline(mp4_path)
    if timeline is None:
        logger.error(f"{mp4_path.name}: telemetry unavailable.")
        return False

    log_summary(mp4_path, timeline)

    for t in query_times_ms:
        frame = timeline.closest(t)
        text = format_telemetry_overlay(frame.record if frame else None)
        logger.info(f"  @ {t:.0f} ms: {text or '(no telemetry)'}")

    if csv_dir is not None and len(timeline):
        csv_dir.mkdir(parents=True, exist_ok=True)
        csv_path = csv_dir / f"{mp4_path.stem}_telemetry.csv"
        timeline.to_dataframe().to_csv(csv_path, index=False)
        logger.info(f"  Wrote {csv_path}")

    return True


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Dump dashcam SEI telemetry")
    parser.add_argument("files", nargs="+", type=Path, help="Dashcam MP4 clips")
    parser.add_argument(
        "--csv",
        action="store_true",
        help=f"Export one CSV per clip (default directory: {config.DIR.EXPORT})",
    )
    parser.add_argument("--csv-dir", type=Path, help="Directory for CSV export")
    parser.add_argument(
        "--at",
        type=float,
        action="append",
        default=[],
        metavar="MS",
        help="Print the overlay readout at this playback time (repeatable)",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    csv_dir = args.csv_dir or (config.DIR.EXPORT if args.csv else None)

    logger.info(f"Found {len(args.files)} clips to process.")
    results = [process_clip(f, csv_dir, args.at) for f in args.files]

    logger.info(
        f"Summary: {sum(results)} parsed, {len(results) - sum(results)} without telemetry."
    )
    return 0 if any(results) else 1


if __name__ == "__main__":
    sys.exit(main())
