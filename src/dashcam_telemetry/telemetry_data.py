"""Telemetry records decoded from dashcam SEI units and the time-indexed timeline over them.

All models are frozen: a timeline is the read-only product of one parse and
is owned by whoever requested it.
"""

from __future__ import annotations

import functools
from enum import IntEnum

import numpy as np
import pandas as pd
import pandera.pandas as pa
import pydantic

# ---------------------------------------------------------------------------
# Enumerations (values as written on the wire)
# ---------------------------------------------------------------------------


class GearState(IntEnum):
    PARK = 0
    DRIVE = 1
    REVERSE = 2
    NEUTRAL = 3


class AutopilotState(IntEnum):
    NONE = 0
    SELF_DRIVING = 1
    AUTOSTEER = 2
    TACC = 3  # traffic-aware (adaptive) cruise control


# ---------------------------------------------------------------------------
# Per-picture records
# ---------------------------------------------------------------------------


class TelemetryRecord(pydantic.BaseModel):
    """Vehicle state attached to one coded picture.

    Fields absent from the payload keep the defaults below.
    """

    model_config = pydantic.ConfigDict(frozen=True)

    version: int = 0
    gear_state: GearState = GearState.PARK
    frame_seq_no: int = 0

    vehicle_speed_mps: float = 0.0
    accelerator_pedal_position: float = 0.0
    steering_wheel_angle: float = 0.0

    blinker_on_left: bool = False
    blinker_on_right: bool = False
    brake_applied: bool = False

    autopilot_state: AutopilotState = AutopilotState.NONE

    latitude_deg: float = 0.0
    longitude_deg: float = 0.0
    heading_deg: float = 0.0

    linear_acceleration_mps2_x: float = 0.0
    linear_acceleration_mps2_y: float = 0.0
    linear_acceleration_mps2_z: float = 0.0


class TelemetryFrame(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(frozen=True)

    timestamp_ms: float
    """Presentation time relative to the start of the file."""

    record: TelemetryRecord


# ---------------------------------------------------------------------------
# Timeline dataframe schema
# ---------------------------------------------------------------------------

telemetry_frame_schema = pa.DataFrameSchema(
    columns={
        "timestamp_ms": pa.Column(
            float,
            checks=pa.Check(
                lambda s: s.is_monotonic_increasing,
                name="is_monotonic",
                error="timestamp_ms must be non-decreasing",
            ),
            nullable=False,
        ),
        "gear_state": pa.Column(str, nullable=False),
        "autopilot_state": pa.Column(str, nullable=False),
        "vehicle_speed_mps": pa.Column(float, nullable=True),
    },
    strict=False,
    coerce=True,
)


# ---------------------------------------------------------------------------
# Timeline
# ---------------------------------------------------------------------------


class TelemetryTimeline(pydantic.BaseModel):
    """Frames sorted by ``timestamp_ms`` with nearest-time lookup."""

    model_config = pydantic.ConfigDict(frozen=True)

    frames: tuple[TelemetryFrame, ...] = ()

    def __len__(self) -> int:
        return len(self.frames)

    @functools.cached_property
    def timestamps_ms(self) -> np.ndarray:
        return np.fromiter(
            (f.timestamp_ms for f in self.frames), dtype=np.float64, count=len(self.frames)
        )

    @property
    def duration_ms(self) -> float:
        return self.frames[-1].timestamp_ms if self.frames else 0.0

    def closest(self, time_ms: float) -> TelemetryFrame | None:
        """Return the frame nearest to *time_ms*; equidistant ties go to the earlier frame."""
        if not self.frames:
            return None
        ts = self.timestamps_ms
        idx = int(np.searchsorted(ts, time_ms, side="left"))
        if idx == 0:
            return self.frames[0]
        if idx == len(ts):
            return self.frames[-1]
        if abs(ts[idx - 1] - time_ms) <= abs(ts[idx] - time_ms):
            return self.frames[idx - 1]
        return self.frames[idx]

    def to_dataframe(self) -> pd.DataFrame:
        """One row per frame: ``timestamp_ms`` followed by the record fields, enums by name."""
        columns = ["timestamp_ms", *TelemetryRecord.model_fields]
        rows = []
        for frame in self.frames:
            row = frame.record.model_dump()
            row["gear_state"] = frame.record.gear_state.name
            row["autopilot_state"] = frame.record.autopilot_state.name
            row["timestamp_ms"] = frame.timestamp_ms
            rows.append(row)
        df = pd.DataFrame(rows, columns=columns)
        return telemetry_frame_schema.validate(df)
