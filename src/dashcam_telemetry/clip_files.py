"""
Clip File Module

Recognises the recorder's per-camera file naming convention:
<YYYY-MM-DD_HH-MM-SS>-<camera>.<mp4|mov>

and picks which angle of a multi-camera clip set to read telemetry from.
Every angle carries the same SEI stream, so one file per set is enough.
"""

import re
from pathlib import Path
from typing import Optional, Sequence, Union

from dashcam_telemetry.config import config

CLIP_NAME_PATTERN = re.compile(
    r"^(\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2})-"
    r"(front|back|rear|left_repeater|right_repeater|left_pillar|right_pillar)"
    r"\.(mp4|mov)$",
    re.IGNORECASE,
)


def camera_from_filename(path: Union[str, Path]) -> Optional[str]:
    """
    Return the camera angle encoded in a clip file name.

    Args:
        path: Clip file path or bare file name

    Returns:
        Optional[str]: Lower-case camera name ("rear" is reported as "back"),
        or None if the name does not follow the recorder's convention

    Example:
        >>> camera_from_filename("2024-05-01_12-30-00-left_repeater.mp4")
        'left_repeater'
    """
    match = CLIP_NAME_PATTERN.match(Path(path).name)
    if match is None:
        return None
    camera = match.group(2).lower()
    return "back" if camera == "rear" else camera


def pick_telemetry_source(paths: Sequence[Path]) -> Optional[Path]:
    """
    Choose the clip file to extract telemetry from.

    Files are ranked by config.CAMERA_PRIORITY; files whose camera cannot be
    recognised rank last. Falls back to the first path when nothing matches.

    Args:
        paths: Files of one clip set (one per camera angle)

    Returns:
        Optional[Path]: Selected file, or None if paths is empty
    """
    if not paths:
        return None

    priority = {camera: rank for rank, camera in enumerate(config.CAMERA_PRIORITY)}
    best: Optional[Path] = None
    best_rank = len(priority)
    for path in paths:
        camera = camera_from_filename(path)
        rank = priority.get(camera, len(priority)) if camera else len(priority)
        if rank < best_rank:
            best, best_rank = path, rank

    return best if best is not None else paths[0]
